#!/usr/bin/env python3
"""
seal_assessment.py - Validate and encrypt a plaintext assessment.

Usage with key file:
    python tools/seal_assessment.py --in backend_quiz.json --root store --key-file ACME.key

Usage with password:
    python tools/seal_assessment.py --in backend_quiz.json --out store/assessments/quiz1.enc --password
"""

import argparse
import getpass
import hashlib
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
from assessment_engine import crypto
from assessment_engine.models import AssessmentDescriptor, EngineConfig


def validate_assessment(data: dict, option_keys) -> list:
    """Return a list of problems; empty when the assessment can be served."""
    errors = []
    try:
        assessment = AssessmentDescriptor.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        return [f"Malformed assessment: {e}"]

    if not assessment.questions:
        errors.append("Assessment has no questions")
    if assessment.duration_seconds <= 0:
        errors.append("Duration must be positive")

    seen = set()
    for idx, question in enumerate(assessment.questions, 1):
        if question.id in seen:
            errors.append(f"Question {idx}: duplicate id '{question.id}'")
        seen.add(question.id)

        unknown = [k for k in question.options if k not in option_keys]
        if unknown:
            errors.append(f"Question {idx} ({question.id}): unknown option keys {unknown}")
        if question.correct_option is None:
            errors.append(f"Question {idx} ({question.id}): no correct option")
        elif question.correct_option not in question.options:
            errors.append(f"Question {idx} ({question.id}): correct option "
                          f"'{question.correct_option}' is not one of its options")
    return errors


def seal(in_file: str, out_file: str, key_file: str = None, use_password: bool = False) -> None:
    """Encrypt a plaintext JSON assessment."""
    try:
        with open(in_file, 'rb') as f:
            plaintext = f.read()

        try:
            data = json.loads(plaintext)
        except json.JSONDecodeError as e:
            print(f"[ERROR] Invalid JSON in input file: {e}", file=sys.stderr)
            sys.exit(1)

        errors = validate_assessment(data, EngineConfig.default().option_keys)
        if errors:
            for err in errors:
                print(f"[ERROR] {err}", file=sys.stderr)
            sys.exit(1)

        assessment = AssessmentDescriptor.from_dict(data)
        print(f"[OK] Input JSON validated")
        print(f"  Assessment: {assessment.assessment_id} ({assessment.title})")
        print(f"  Questions: {len(assessment.questions)}")
        print(f"  Duration: {assessment.duration_seconds // 60} minutes")

        if use_password:
            password = getpass.getpass("Enter encryption password: ")
            password_confirm = getpass.getpass("Confirm password: ")

            if password != password_confirm:
                print("[ERROR] Passwords do not match", file=sys.stderr)
                sys.exit(1)

            if len(password) < 8:
                print("[ERROR] Password must be at least 8 characters", file=sys.stderr)
                sys.exit(1)

            sealed = crypto.encrypt(plaintext, password=password)
            print("[OK] Using password-based encryption")
        else:
            key = Path(key_file).read_bytes().strip()
            sealed = crypto.encrypt(plaintext, key=key)
            print("[OK] Using key file encryption")

        sha256_hash = hashlib.sha256(sealed).hexdigest()

        Path(out_file).parent.mkdir(parents=True, exist_ok=True)
        with open(out_file, 'wb') as f:
            f.write(sealed)

        print(f"\n[OK] Success: Assessment encrypted")
        print(f"  Input: {in_file} ({len(plaintext)} bytes)")
        print(f"  Output: {out_file} ({len(sealed)} bytes)")
        print(f"  Method: {'Password-based' if use_password else 'Key file'}")
        print(f"  SHA256: {sha256_hash}")

    except FileNotFoundError as e:
        print(f"[ERROR] File not found: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"[ERROR] Error encrypting assessment: {e}", file=sys.stderr)
        sys.exit(1)


def main():
    parser = argparse.ArgumentParser(
        description="Validate and encrypt a plaintext JSON assessment.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python tools/seal_assessment.py --in quiz.json --root store --key-file ACME.key
  python tools/seal_assessment.py --in quiz.json --out sealed/quiz.enc --password

Notes:
  - Every question needs a correct option among its own options
  - With --root the output is <root>/assessments/<assessment_id>.enc
        """
    )
    parser.add_argument("--in", dest="in_file", required=True, help="Input plaintext JSON file")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--out", help="Output encrypted assessment file (.enc)")
    target.add_argument("--root", help="Store directory; writes assessments/<assessment_id>.enc")
    parser.add_argument("--key-file", help="File containing the encryption key (mutually exclusive with --password)")
    parser.add_argument("--password", action="store_true", help="Use password-based encryption instead of key file")

    args = parser.parse_args()

    if args.password and args.key_file:
        print("[ERROR] Cannot use both --password and --key-file", file=sys.stderr)
        sys.exit(1)

    if not args.password and not args.key_file:
        print("[ERROR] Must specify either --password or --key-file", file=sys.stderr)
        sys.exit(1)

    out_file = args.out
    if args.root:
        try:
            with open(args.in_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            assessment_id = str(data.get('assessment_id') or data['id'])
        except (OSError, json.JSONDecodeError, KeyError) as e:
            print(f"[ERROR] Cannot determine assessment id: {e}", file=sys.stderr)
            sys.exit(1)
        out_file = str(Path(args.root) / "assessments" / f"{assessment_id}.enc")

    seal(args.in_file, out_file, args.key_file, args.password)


if __name__ == "__main__":
    main()
