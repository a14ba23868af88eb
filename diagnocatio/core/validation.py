"""Input validation for diagnocatio.

Validators normalize their input and raise the specific exceptions from
``diagnocatio.core.exceptions`` so CLI users get a clear message before any
request leaves the machine.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

from .exceptions import (
    InvalidConfigurationError,
    InvalidIdentifierError,
    InvalidURLError,
    PathValidationError,
)

# =============================================================================
# Constants
# =============================================================================

ALLOWED_URL_SCHEMES = {"http", "https"}

# Remote uids are opaque; they end up in URL paths so separators are rejected
IDENTIFIER_MAX_LENGTH = 128
_IDENTIFIER_FORBIDDEN = re.compile(r"[/\\\s?#]")

FILE_KEY_MAX_LENGTH = 255

STUDY_TYPES = ("CBCT", "PANORAMA", "FMX", "STL")
ANALYSIS_TYPE_PATTERN = re.compile(r"^[A-Z0-9_]+$")


# =============================================================================
# URL Validation
# =============================================================================


def validate_server_url(url: str) -> str:
    """Validate the API base URL and return it without trailing slashes.

    Raises:
        InvalidURLError: If URL is malformed or uses unsupported scheme.
    """
    if not url or not isinstance(url, str):
        raise InvalidURLError(str(url), "URL cannot be empty")

    url = url.strip()
    if not url:
        raise InvalidURLError(url, "URL cannot be empty")

    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidURLError(url, f"Failed to parse URL: {e}") from e

    if not parsed.scheme:
        raise InvalidURLError(url, "URL must include scheme (http:// or https://)")

    if parsed.scheme.lower() not in ALLOWED_URL_SCHEMES:
        raise InvalidURLError(
            url,
            f"Unsupported scheme '{parsed.scheme}'. Use http or https.",
        )

    if not parsed.netloc:
        raise InvalidURLError(url, "URL must include hostname")

    return url.rstrip("/")


# =============================================================================
# Identifier Validation
# =============================================================================


def validate_identifier(value: str, identifier_type: str = "identifier") -> str:
    """Validate a remote identifier (patient uid, study uid, session id, report id).

    Returns:
        The stripped identifier.

    Raises:
        InvalidIdentifierError: If the identifier is empty, too long, or
            contains characters that would alter the request path.
    """
    if not isinstance(value, str):
        raise InvalidIdentifierError(identifier_type, str(value), "must be a string")

    value = value.strip()
    if not value:
        raise InvalidIdentifierError(identifier_type, value, "cannot be empty")

    if len(value) > IDENTIFIER_MAX_LENGTH:
        raise InvalidIdentifierError(
            identifier_type,
            value,
            f"exceeds maximum length of {IDENTIFIER_MAX_LENGTH} characters",
        )

    if _IDENTIFIER_FORBIDDEN.search(value):
        raise InvalidIdentifierError(
            identifier_type,
            value,
            "cannot contain whitespace, path separators, '?' or '#'",
        )

    return value


def validate_file_key(key: str) -> str:
    """Validate an upload file key (a bare filename, no directories)."""
    if not isinstance(key, str):
        raise InvalidIdentifierError("file key", str(key), "must be a string")

    key = key.strip()
    if not key:
        raise InvalidIdentifierError("file key", key, "cannot be empty")

    if "/" in key or "\\" in key:
        raise InvalidIdentifierError("file key", key, "cannot contain path separators")

    if len(key) > FILE_KEY_MAX_LENGTH:
        raise InvalidIdentifierError(
            "file key",
            key,
            f"exceeds maximum length of {FILE_KEY_MAX_LENGTH} characters",
        )

    return key


def validate_study_type(study_type: str) -> str:
    """Validate and upper-case a study type (CBCT, PANORAMA, FMX, STL)."""
    normalized = (study_type or "").strip().upper()
    if normalized not in STUDY_TYPES:
        raise InvalidConfigurationError(
            "study_type",
            study_type,
            f"must be one of: {', '.join(STUDY_TYPES)}",
        )
    return normalized


def validate_analysis_type(analysis_type: str) -> str:
    """Validate an analysis type token such as GP or CBCT_ORTHO."""
    normalized = (analysis_type or "").strip().upper()
    if not normalized or not ANALYSIS_TYPE_PATTERN.match(normalized):
        raise InvalidConfigurationError(
            "analysis_type",
            analysis_type,
            "must be a non-empty token of letters, digits and underscores",
        )
    return normalized


# =============================================================================
# Path Validation
# =============================================================================


def validate_path_exists(
    path: Union[str, Path],
    *,
    must_be_file: bool = False,
    must_be_dir: bool = False,
    description: str = "path",
) -> Path:
    """Validate that a path exists and optionally check its type.

    Returns:
        Resolved Path object.

    Raises:
        PathValidationError: If path is invalid or doesn't meet requirements.
    """
    if not path:
        raise PathValidationError(str(path), f"{description} cannot be empty")

    path = Path(path).expanduser()

    if not path.exists():
        raise PathValidationError(str(path), f"{description} does not exist")

    if must_be_file and not path.is_file():
        raise PathValidationError(str(path), f"{description} must be a file")

    if must_be_dir and not path.is_dir():
        raise PathValidationError(str(path), f"{description} must be a directory")

    return path.resolve()


def validate_output_path(path: Union[str, Path], description: str = "output path") -> Path:
    """Validate an output file path, creating its parent directory if needed.

    Raises:
        PathValidationError: If the path is empty, names a directory, or its
            parent cannot be created or written.
    """
    if not path:
        raise PathValidationError(str(path), f"{description} cannot be empty")

    path = Path(path).expanduser()
    if path.is_dir():
        raise PathValidationError(str(path), f"{description} is a directory")

    parent = path.parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PathValidationError(str(path), f"cannot create parent directory: {e}") from e

    if not os.access(parent, os.W_OK):
        raise PathValidationError(str(path), f"parent directory is not writable: {parent}")

    return path.resolve()


# =============================================================================
# Configuration Validation
# =============================================================================


def validate_timeout(
    value: Union[int, float, str, None],
    field_name: str,
    *,
    min_value: float = 1,
    max_value: float = 86400,
    default: float = 30,
) -> float:
    """Validate a timeout or interval in seconds.

    Raises:
        InvalidConfigurationError: If the value is not a number in range.
    """
    if value is None:
        return default

    try:
        timeout = float(value)
    except (ValueError, TypeError) as e:
        raise InvalidConfigurationError(field_name, value, "must be a number") from e

    if timeout < min_value:
        raise InvalidConfigurationError(
            field_name,
            timeout,
            f"must be at least {min_value} seconds",
        )

    if timeout > max_value:
        raise InvalidConfigurationError(
            field_name,
            timeout,
            f"cannot exceed {max_value} seconds",
        )

    return timeout


def validate_positive_int(
    value: Union[int, str, None],
    field_name: str,
    *,
    max_value: Optional[int] = None,
    default: int = 1,
) -> int:
    """Validate a strictly positive integer such as a poll attempt budget."""
    if value is None:
        return default

    try:
        number = int(value)
    except (ValueError, TypeError) as e:
        raise InvalidConfigurationError(field_name, value, "must be a valid integer") from e

    if number < 1:
        raise InvalidConfigurationError(field_name, number, "must be at least 1")

    if max_value is not None and number > max_value:
        raise InvalidConfigurationError(field_name, number, f"cannot exceed {max_value}")

    return number
