from __future__ import annotations

import argparse
import json
from pathlib import Path

from ..config import load_config
from ..services import DiagnocatConnection, StudyService


def register(subparsers: argparse._SubParsersAction) -> None:
    create_patient = subparsers.add_parser(
        "create-patient",
        help="Create a patient and print its Diagnocat uid",
    )
    create_patient.add_argument("first_name", help="Patient first name")
    create_patient.add_argument("last_name", help="Patient last name")
    create_patient.add_argument("--gender", choices=["male", "female"], default=None)
    create_patient.add_argument("--dob", dest="date_of_birth", default=None, help="YYYY-MM-DD")
    create_patient.add_argument(
        "--patient-id",
        default=None,
        help="Clinic-side patient identifier to store with the record",
    )
    create_patient.add_argument(
        "--env",
        dest="env_file",
        type=Path,
        default=None,
        help="Path to .env file that overrides environment variables",
    )
    create_patient.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    def handle_create_patient(
        args: argparse.Namespace, parser: argparse.ArgumentParser = create_patient
    ) -> int:
        cfg = load_config(args.env_file)
        with DiagnocatConnection.from_config(cfg) as conn:
            patient = StudyService(conn).create_patient(
                args.first_name,
                args.last_name,
                gender=args.gender,
                date_of_birth=args.date_of_birth,
                patient_id=args.patient_id,
            )
        print(json.dumps({"uid": patient.uid, "patient_id": patient.patient_id}, indent=2))
        return 0

    create_patient.set_defaults(func=handle_create_patient)

    list_patients = subparsers.add_parser(
        "list-patients",
        help="List patients visible to the account",
    )
    list_patients.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum number of patients to return (default: %(default)s)",
    )
    list_patients.add_argument(
        "--env",
        dest="env_file",
        type=Path,
        default=None,
        help="Path to .env file that overrides environment variables",
    )
    list_patients.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    def handle_list_patients(
        args: argparse.Namespace, parser: argparse.ArgumentParser = list_patients
    ) -> int:
        cfg = load_config(args.env_file)
        with DiagnocatConnection.from_config(cfg) as conn:
            patients = StudyService(conn).list_patients(args.limit)
        print(json.dumps([p.to_dict() for p in patients], indent=2, ensure_ascii=False))
        return 0

    list_patients.set_defaults(func=handle_list_patients)

    check = subparsers.add_parser(
        "check-connection",
        help="Verify the API is reachable and the credentials are accepted",
    )
    check.add_argument(
        "--env",
        dest="env_file",
        type=Path,
        default=None,
        help="Path to .env file that overrides environment variables",
    )
    check.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    def handle_check_connection(
        args: argparse.Namespace, parser: argparse.ArgumentParser = check
    ) -> int:
        cfg = load_config(args.env_file)
        with DiagnocatConnection.from_config(cfg) as conn:
            status = conn.test_connection()
        print(f"Connected to {cfg['api_url']} (HTTP {status})")
        return 0 if status == 200 else 1

    check.set_defaults(func=handle_check_connection)
