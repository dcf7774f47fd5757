"""
Console front-end for a proctored assessment session.

Loads the candidate and assessment behind an invitation link from a FileStore,
walks the candidate through the instructions and permission check, then runs
an interactive command loop until the candidate submits or time runs out.
"""

import argparse
import getpass
import sys
from pathlib import Path
from typing import Optional

from .config_loader import load_config
from .errors import AssessmentClosed, AssessmentError, PermissionDenied, PersistError
from .models import CompletionReason, EngineConfig, SubmissionRecord
from .session import AssessmentSession
from .store import FileStore


HEADER = "=" * 60

INSTRUCTIONS = """
Before you begin:
  - The assessment runs in fullscreen. Leaving fullscreen or switching
    tabs is recorded.
  - Your camera and microphone are used for proctoring throughout.
  - Copy, paste, select-all, find, developer tools and the context menu
    are disabled.
  - The timer starts as soon as you accept and cannot be paused.
  - When the time runs out your answers are submitted automatically.
"""

HELP_TEXT = """Commands:
  show              Show the current question
  answer <option>   Select an option for the current question
  next / prev       Move to the next / previous question
  goto <n>          Jump to question n
  flag              Flag or unflag the current question for review
  status            Show answered and flagged questions
  time              Show the remaining time
  integrity         Show the proctoring status
  submit            Submit the assessment
  help              Show this message"""


class AssessmentRunner:
    """Runs one session in the terminal."""

    def __init__(self):
        self.session: Optional[AssessmentSession] = None
        self.config: EngineConfig = EngineConfig.default()

    # ===== SETUP =====

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description="Proctored Assessment Runner",
            formatter_class=argparse.RawDescriptionHelpFormatter
        )
        parser.add_argument(
            "--root",
            required=True,
            help="Store directory containing assessments/, candidates/ and submissions/"
        )
        parser.add_argument(
            "--link",
            required=True,
            help="Candidate invitation link id"
        )
        parser.add_argument(
            "--config",
            help="Path to engine configuration file (default: engine.json next to the runner)"
        )
        parser.add_argument(
            "--password",
            action="store_true",
            help="Prompt for the password protecting encrypted assessments and submissions"
        )
        parser.add_argument(
            "--key-file",
            help="Fernet key file protecting encrypted assessments and submissions"
        )
        parser.add_argument(
            "--seed",
            type=int,
            help="Seed for question shuffling and the simulated face detector"
        )
        return parser

    def run(self, argv=None) -> int:
        """Main application entry point."""
        args = self.build_parser().parse_args(argv)

        try:
            self.config = load_config(Path(args.config) if args.config else None)
        except ValueError as e:
            print(f"[ERROR] {e}")
            return 1

        key = None
        password = None
        if args.key_file:
            try:
                key = Path(args.key_file).read_bytes().strip()
            except OSError as e:
                print(f"[ERROR] Could not read key file: {e}")
                return 1
        if args.password:
            try:
                password = getpass.getpass("Enter the assessment password: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\nExiting.")
                return 1
            if not password:
                print("[ERROR] A password is required.")
                return 1

        root = Path(args.root)
        store = FileStore(root, key=key, password=password,
                          default_duration_minutes=self.config.default_duration_minutes)

        print(HEADER)
        print("PROCTORED ASSESSMENT")
        print(HEADER)

        try:
            candidate = store.load_candidate(args.link)
            assessment = store.load_assessment(args.link)
        except LookupError:
            print(f"[ERROR] Invalid or expired assessment link: {args.link}")
            return 1
        except (ValueError, KeyError) as e:
            print(f"[ERROR] Could not load assessment: {e}")
            return 1

        if assessment.is_closed():
            print("[ERROR] This assessment is closed.")
            return 1

        work_dir = root / "sessions" / args.link
        work_dir.mkdir(parents=True, exist_ok=True)

        self.session = AssessmentSession(
            assessment, candidate, store,
            config=self.config,
            work_dir=work_dir,
            seed=args.seed
        )
        self.session.on_finished(self._on_finished)

        try:
            if not self.onboard():
                return 1
            self.command_loop()
            return self.finish()
        finally:
            self.session.close()

    def onboard(self) -> bool:
        """Show instructions, check permissions and start the session."""
        session = self.session
        print(f"\nWelcome, {session.candidate.display_name}")
        print(f"Assessment: {session.assessment.title} ({session.ledger.total_questions} questions, "
              f"{session.session.duration_limit_seconds // 60} minutes)")
        print(INSTRUCTIONS)

        try:
            agreed = input("Type 'yes' to accept these instructions: ").strip().lower() == 'yes'
        except (KeyboardInterrupt, EOFError):
            print("\nExiting.")
            return False

        if not agreed:
            print("You must accept the instructions to start the assessment.")
            return False

        if self.config.require_camera:
            print("\nChecking camera and microphone access...")
            if not session.check_permissions():
                print("[ERROR] Camera and microphone access is required to take this assessment.")
                return False
            print("[OK] Camera and microphone access granted")

        try:
            session.start(agreed_to_terms=True)
        except (AssessmentClosed, PermissionDenied) as e:
            print(f"[ERROR] {e}")
            return False

        print(f"\nThe assessment has started. Time remaining: {session.clock.format_remaining()}")
        return True

    # ===== COMMAND LOOP =====

    def command_loop(self):
        """Main interactive command loop."""
        print("\n" + HEADER)
        print(HELP_TEXT)
        print(HEADER + "\n")
        self.cmd_show()

        while self.session.is_in_progress():
            try:
                cmd_line = input("assessment> ").strip()
                if not cmd_line:
                    continue
                if not self.session.is_in_progress():
                    break

                parts = cmd_line.split()
                command = parts[0].lower()

                if command == 'help':
                    print(HELP_TEXT)
                elif command == 'show':
                    self.cmd_show()
                elif command == 'answer':
                    if len(parts) < 2:
                        print(f"Usage: answer <{'|'.join(self.config.option_keys)}>")
                    else:
                        self.cmd_answer(parts[1])
                elif command == 'next':
                    self.session.next_question()
                    self.cmd_show()
                elif command == 'prev':
                    self.session.previous_question()
                    self.cmd_show()
                elif command == 'goto':
                    if len(parts) < 2 or not parts[1].isdigit():
                        print("Usage: goto <question number>")
                    else:
                        self.session.go_to(int(parts[1]) - 1)
                        self.cmd_show()
                elif command == 'flag':
                    self.cmd_flag()
                elif command == 'status':
                    self.cmd_status()
                elif command == 'time':
                    self.cmd_time()
                elif command == 'integrity':
                    self.cmd_integrity()
                elif command == 'submit':
                    self.cmd_submit()
                else:
                    print(f"Unknown command: '{command}'. Type 'help' for a list of commands.")

            except (KeyboardInterrupt, EOFError):
                print("\nUse 'submit' to finish the assessment.")
            except AssessmentError as e:
                print(f"[ERROR] {e}")
            except Exception as e:
                print(f"An unexpected error occurred: {e}")
                self.session.log("ERROR", str(e))

    def cmd_show(self):
        view = self.session.state()
        question = view.current_question
        if question is None:
            print("This assessment has no questions.")
            return

        print()
        marker = " [flagged]" if view.flagged else ""
        print(f"Question {view.current_index + 1} of {view.total_questions}{marker}")
        if question.topic:
            print(f"Topic: {question.topic} | Difficulty: {question.difficulty}")
        print(question.text)
        for key, text in question.options.items():
            selected = "*" if view.selected_option == key else " "
            print(f"  {selected} {key}) {text}")
        print()

    def cmd_answer(self, option: str):
        option = option.upper()
        self.session.answer(option)
        print(f"Answer {option} recorded.")

    def cmd_flag(self):
        flagged = self.session.toggle_flag()
        print("Question flagged for review." if flagged else "Review flag removed.")

    def cmd_status(self):
        view = self.session.state()
        print()
        print(f"Answered: {view.answered_count}/{view.total_questions} "
              f"({view.progress_fraction:.0%})")
        order = self.session.session.question_order
        for i, qid in enumerate(order, start=1):
            answer = self.session.ledger.get_answer(qid)
            flag = " [flagged]" if self.session.ledger.is_flagged(qid) else ""
            print(f"- Question {i}: {answer or 'not answered'}{flag}")
        print()

    def cmd_time(self):
        view = self.session.state()
        print(f"\nTime remaining: {view.remaining_display}")
        if view.remaining_seconds <= 300:
            print("Less than 5 minutes left. Your answers are submitted automatically when time runs out.")
        print()

    def cmd_integrity(self):
        integrity = self.session.state().integrity
        print()
        print(f"Camera: {integrity.camera_status}")
        print(f"Authenticity score: {integrity.authenticity_score}%")
        print(f"Attention score: {integrity.attention_score}%")
        print(f"Checks: {integrity.total_checks}, face detected: {integrity.successful_detections}")
        if integrity.red_flags:
            print("Recent red flags:")
            for flag in integrity.red_flags[-5:]:
                print(f"  [{flag.timestamp.strftime('%H:%M:%S')}] {flag.description}")
        print()

    def cmd_submit(self):
        view = self.session.state()
        unanswered = view.total_questions - view.answered_count
        if unanswered:
            print(f"\nYou have {unanswered} unanswered question(s).")
        try:
            confirm = input("Submit the assessment now? (y/n): ").strip().lower()
        except (KeyboardInterrupt, EOFError):
            print("\nSubmission cancelled.")
            return
        if confirm != 'y':
            print("Continuing the assessment.")
            return

        try:
            self.session.submit()
        except PersistError:
            # The record is kept; finish() offers the retry.
            pass

    # ===== FINISH =====

    def _on_finished(self, record: SubmissionRecord):
        if record.completion_reason is CompletionReason.TIME_EXPIRED:
            print("\n" + "!" * 60)
            print("Time is up. Your answers have been submitted automatically.")
            print("Press Enter to continue.")
            print("!" * 60)

    def finish(self) -> int:
        """Report the outcome and retry persistence if the store failed."""
        session = self.session
        record = session.record
        if record is None:
            return 1

        while session.persist_error is not None:
            print(f"\n[ERROR] {session.persist_error}")
            try:
                retry = input("Retry saving your submission? (y/n): ").strip().lower()
            except (KeyboardInterrupt, EOFError):
                retry = 'n'
            if retry != 'y':
                print("Your submission could not be saved. Contact the assessment administrator.")
                return 1
            try:
                session.retry_persist()
            except PersistError:
                continue

        minutes, seconds = divmod(record.time_spent_seconds, 60)
        print("\n" + HEADER)
        print("ASSESSMENT COMPLETED")
        print(HEADER)
        print(f"Answered: {len(record.answers_by_question())}/{len(record.question_order)}")
        print(f"Time spent: {minutes}m {seconds}s")
        print("Thank you. Your submission has been recorded.")
        return 0


def main():
    """Entry point for the assessment runner."""
    runner = AssessmentRunner()
    sys.exit(runner.run())


if __name__ == "__main__":
    main()
