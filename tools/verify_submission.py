#!/usr/bin/env python3
"""
verify_submission.py - Inspect, grade and summarize stored submissions.

Examples:
  # One submission file (plaintext or encrypted)
  python tools/verify_submission.py --file store/submissions/3f2a.enc --key-file ACME.key

  # Grade one stored session and write its results file
  python tools/verify_submission.py --root store --session 3f2a --grade --results results.txt --password

  # Cohort report over every submission in the store
  python tools/verify_submission.py --root store --cohort --key-file ACME.key
"""

import argparse
import getpass
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
from assessment_engine import crypto
from assessment_engine.grader import Grader
from assessment_engine.models import CandidateDescriptor, SubmissionRecord
from assessment_engine.report import (
    CandidateResult, format_cohort_summary, generate_results_file, summarize_cohort
)
from assessment_engine.store import FileStore


def _read_record(path: Path, key, password) -> SubmissionRecord:
    data = path.read_bytes()
    if path.suffix.lower() == ".enc":
        data = crypto.decrypt(data, key=key, password=password)
    return SubmissionRecord.from_dict(json.loads(data))


def _print_record(record: SubmissionRecord) -> None:
    integrity = record.integrity_snapshot
    print("[OK] Submission decoded")
    print(f"  Session: {record.session_id}")
    print(f"  Assessment: {record.assessment_id} | Candidate: {record.candidate_id}")
    print(f"  Completed: {record.completed_at.isoformat()} ({record.completion_reason.value})")
    print(f"  Answered: {len(record.answers_by_question())}/{len(record.question_order)}")
    print(f"  Time spent: {record.time_spent_seconds}s")
    print(f"  Authenticity: {integrity.authenticity_score}% | Attention: {integrity.attention_score}%")
    print(f"  Red flags: {len(integrity.red_flags)}")
    for description, count in integrity.count_by_description().items():
        print(f"    - {description}: {count}")


def _candidates_by_id(store: FileStore) -> dict:
    return {c.candidate_id: c for c in store.iter_candidates()}


def _result_for(store: FileStore, record: SubmissionRecord, candidates: dict) -> CandidateResult:
    assessment = store.get_assessment(record.assessment_id)
    grade = Grader(assessment).grade_submission(record)
    candidate = candidates.get(record.candidate_id) or CandidateDescriptor(
        candidate_id=record.candidate_id, assessment_id=record.assessment_id, email=record.candidate_id
    )
    return CandidateResult(candidate=candidate, record=record, grade=grade)


def main():
    parser = argparse.ArgumentParser(description="Verify, grade and summarize stored submissions.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Path to a submission file (.json or .enc)")
    source.add_argument("--root", help="Store directory")
    parser.add_argument("--session", help="Session id to inspect (with --root)")
    parser.add_argument("--cohort", action="store_true", help="Summarize every submission in the store (with --root)")
    parser.add_argument("--assessment", help="Only include this assessment in the cohort summary")
    parser.add_argument("--grade", action="store_true", help="Grade the submission against its assessment (with --root)")
    parser.add_argument("--results", help="Write a results file for the graded submission")
    parser.add_argument("--key-file", help="Encryption key file (for key-file encrypted .enc files)")
    parser.add_argument("--password", action="store_true", help="Use password to decrypt (for password-encrypted .enc files)")
    parser.add_argument("--verbose", action="store_true", help="Show the expected option for missed questions")
    args = parser.parse_args()

    key = None
    password = None
    try:
        if args.key_file:
            key = Path(args.key_file).read_bytes().strip()
        if args.password:
            password = getpass.getpass("Enter decryption password: ")
    except (OSError, KeyboardInterrupt, EOFError) as e:
        print(f"[ERROR] {e}")
        sys.exit(1)

    try:
        if args.file:
            _print_record(_read_record(Path(args.file), key, password))
            sys.exit(0)

        store = FileStore(Path(args.root), key=key, password=password)
        candidates = _candidates_by_id(store)

        if args.cohort:
            results = [
                _result_for(store, record, candidates)
                for record in store.iter_submissions()
                if args.assessment is None or record.assessment_id == args.assessment
            ]
            print(format_cohort_summary(summarize_cohort(results), title="Cohort summary"))
            sys.exit(0)

        if not args.session:
            print("[ERROR] --session or --cohort is required with --root")
            sys.exit(1)

        record = store.load_submission(args.session)
        _print_record(record)
        if args.grade or args.results:
            result = _result_for(store, record, candidates)
            print()
            print(Grader(store.get_assessment(record.assessment_id)).format_results(result.grade, args.verbose))
            if args.results:
                path = generate_results_file(result, Path(args.results))
                print(f"\n[OK] Results written to {path}")

    except (LookupError, ValueError, OSError) as e:
        print(f"[ERROR] {e}")
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
