from __future__ import annotations

import argparse
import json
from pathlib import Path

from ..client import DiagnocatClient
from ..config import load_config


def register(subparsers: argparse._SubParsersAction) -> None:
    upload = subparsers.add_parser(
        "upload-study",
        help="Create a study, upload its payload and request an AI analysis",
    )
    upload.add_argument("patient_uid", help="Diagnocat patient uid")
    upload.add_argument(
        "input",
        type=Path,
        help="Path to a ZIP archive or a directory of DICOM slices",
    )
    upload.add_argument(
        "--study-type",
        default=None,
        help="CBCT, PANORAMA, FMX or STL (default: DIAGNOCAT_STUDY_TYPE or CBCT)",
    )
    upload.add_argument(
        "--analysis-type",
        default=None,
        help="Analysis to request, e.g. GP (default: DIAGNOCAT_ANALYSIS_TYPE or GP)",
    )
    upload.add_argument("--study-name", default=None, help="Optional study display name")
    upload.add_argument(
        "--wait",
        action="store_true",
        help="After the upload, wait for the report and print its status",
    )
    upload.add_argument(
        "--env",
        dest="env_file",
        type=Path,
        default=None,
        help="Path to .env file that overrides environment variables",
    )
    upload.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    def handle_upload_study(
        args: argparse.Namespace, parser: argparse.ArgumentParser = upload
    ) -> int:
        if not args.input.exists():
            parser.error(f"Input not found: {args.input}")

        cfg = load_config(args.env_file)
        with DiagnocatClient.from_config(cfg) as client:
            result = client.upload_study(
                args.patient_uid,
                args.input,
                study_type=args.study_type,
                analysis_type=args.analysis_type,
                study_name=args.study_name,
            )
            output = result.to_dict()

            if args.wait and result.report_id:
                report = client.wait_for_report(result.report_id)
                output["report"] = report.to_dict()

        print(json.dumps(output, indent=2))
        return 0

    upload.set_defaults(func=handle_upload_study)
