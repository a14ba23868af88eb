from __future__ import annotations

import argparse
import json
from pathlib import Path

from ..config import load_config
from ..services import DiagnocatConnection, ReportService


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--env",
        dest="env_file",
        type=Path,
        default=None,
        help="Path to .env file that overrides environment variables",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")


def register(subparsers: argparse._SubParsersAction) -> None:
    status = subparsers.add_parser(
        "check-status",
        help="Show report status; diagnoses are included once it is complete",
    )
    status.add_argument("report_id", help="Analysis uid (or id_v3) returned by upload-study")
    _add_common(status)

    def handle_check_status(
        args: argparse.Namespace, parser: argparse.ArgumentParser = status
    ) -> int:
        cfg = load_config(args.env_file)
        with DiagnocatConnection.from_config(cfg) as conn:
            report = ReportService(conn).get_status(args.report_id)
        print(json.dumps(report.to_dict(), indent=2))
        return 0

    status.set_defaults(func=handle_check_status)

    analyses = subparsers.add_parser(
        "list-analyses",
        help="List the analyses requested for a patient",
    )
    analyses.add_argument("patient_uid", help="Diagnocat patient uid")
    _add_common(analyses)

    def handle_list_analyses(
        args: argparse.Namespace, parser: argparse.ArgumentParser = analyses
    ) -> int:
        cfg = load_config(args.env_file)
        with DiagnocatConnection.from_config(cfg) as conn:
            found = ReportService(conn).list_analyses(args.patient_uid)
        print(json.dumps([a.to_dict() for a in found], indent=2))
        return 0

    analyses.set_defaults(func=handle_list_analyses)

    export = subparsers.add_parser(
        "export-report",
        help="Export a report and its diagnoses as timestamped JSON",
    )
    export.add_argument("report_id", help="Analysis uid (or id_v3)")
    export.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Write the export to this file instead of stdout",
    )
    export.add_argument("--compact", action="store_true", help="Emit compact JSON")
    _add_common(export)

    def handle_export_report(
        args: argparse.Namespace, parser: argparse.ArgumentParser = export
    ) -> int:
        cfg = load_config(args.env_file)
        with DiagnocatConnection.from_config(cfg) as conn:
            exported = ReportService(conn).export_report(args.report_id)

        text = json.dumps(
            exported.to_dict(),
            indent=None if args.compact else 2,
            ensure_ascii=False,
        )
        if args.out is None:
            print(text)
        else:
            args.out.parent.mkdir(parents=True, exist_ok=True)
            args.out.write_text(text + "\n", encoding="utf-8")
        return 0

    export.set_defaults(func=handle_export_report)

    pdf = subparsers.add_parser("download-pdf", help="Download the PDF rendering of a report")
    pdf.add_argument("report_id", help="Analysis uid (or id_v3)")
    pdf.add_argument(
        "--out",
        type=Path,
        default=Path("report.pdf"),
        help="Output file (default: %(default)s)",
    )
    _add_common(pdf)

    def handle_download_pdf(
        args: argparse.Namespace, parser: argparse.ArgumentParser = pdf
    ) -> int:
        cfg = load_config(args.env_file)
        with DiagnocatConnection.from_config(cfg) as conn:
            path = ReportService(conn).download_pdf(args.report_id, args.out)
        print(path)
        return 0

    pdf.set_defaults(func=handle_download_pdf)
