from __future__ import annotations

import argparse

from .admin import register as register_admin
from .reports import register as register_reports
from .upload import register as register_upload


def register_all(subparsers: argparse._SubParsersAction) -> None:
    """Register all CLI command groups."""
    register_upload(subparsers)
    register_reports(subparsers)
    register_admin(subparsers)


__all__ = ["register_all"]
