"""
Submission Assembler

Produces the single immutable SubmissionRecord of a session, shuts the
session's moving parts down, and hands the record to the store.
"""

from datetime import datetime
from typing import Callable, Optional

from .clock import SessionClock
from .environment import EnvironmentSignalSource
from .errors import PersistError, SessionStateError
from .guard import EnvironmentGuard
from .ledger import AnswerLedger
from .models import CompletionReason, Session, SessionStatus, SubmissionRecord
from .monitor import IntegrityMonitor
from .scheduler import Scheduler
from .store import SubmissionStore


class SubmissionAssembler:
    """Assembles and hands off the submission record exactly once."""

    def __init__(
        self,
        session: Session,
        scheduler: Scheduler,
        ledger: AnswerLedger,
        clock: SessionClock,
        monitor: IntegrityMonitor,
        guard: EnvironmentGuard,
        environment: EnvironmentSignalSource,
        store: SubmissionStore,
        session_logger=None,
        wall_clock: Callable[[], datetime] = datetime.now
    ):
        self.session = session
        self.scheduler = scheduler
        self.ledger = ledger
        self.clock = clock
        self.monitor = monitor
        self.guard = guard
        self.environment = environment
        self.store = store
        self.session_logger = session_logger
        self.wall_clock = wall_clock

        self.record: Optional[SubmissionRecord] = None
        self.persisted = False
        self.ack: Optional[str] = None
        self.persist_error: Optional[PersistError] = None

    def submit(self, reason: CompletionReason) -> SubmissionRecord:
        """
        Finish the session and persist its record.

        Later calls return the record produced by the first call without
        repeating any side effect.

        Raises:
            SessionStateError: the session was never started
            PersistError: the store rejected the record; it stays in
                ``self.record`` for ``retry_persist``
        """
        with self.scheduler.lock:
            if self.record is not None:
                return self.record

            status = (SessionStatus.SUBMITTED if reason is CompletionReason.USER_SUBMITTED
                      else SessionStatus.EXPIRED)
            self.session.mark_finished(status)

            self.clock.stop()
            integrity = self.monitor.stop()
            self.guard.uninstall()

            self.record = SubmissionRecord(
                session_id=self.session.session_id,
                assessment_id=self.session.assessment_id,
                candidate_id=self.session.candidate_id,
                question_order=self.session.question_order,
                answers=self.ledger.snapshot(),
                time_spent_seconds=self.clock.elapsed(),
                integrity_snapshot=integrity,
                started_at=self.session.started_at,
                completed_at=self.wall_clock(),
                completion_reason=reason
            )

            if self.environment.is_fullscreen():
                self.environment.exit_fullscreen()

            self._log(
                "SESSION_FINISH" if status is SessionStatus.SUBMITTED else "SESSION_FINISH_TIMEOUT",
                f"Answered: {self.ledger.answered_count()}/{self.ledger.total_questions}, "
                f"Authenticity: {integrity.authenticity_score}, "
                f"Time spent: {self.record.time_spent_seconds}s"
            )

            self._persist()
            return self.record

    def retry_persist(self) -> str:
        """Resend the already-assembled record. Returns the store acknowledgement."""
        with self.scheduler.lock:
            if self.record is None:
                raise SessionStateError("Nothing to persist: the session has not been submitted")
            if self.persisted:
                return self.ack
            self._persist()
            return self.ack

    def _persist(self):
        try:
            self.ack = self.store.save_submission(self.record)
        except PersistError as e:
            if e.record is None:
                e.record = self.record
            self.persist_error = e
            self._log("PERSIST_ERROR", str(e))
            raise
        except OSError as e:
            self.persist_error = PersistError(f"Could not save submission: {e}", record=self.record)
            self._log("PERSIST_ERROR", str(self.persist_error))
            raise self.persist_error from e

        self.persisted = True
        self.persist_error = None
        self._log("SUBMISSION_SAVED", f"Record stored: {self.ack}")

    def _log(self, event: str, details: str = ""):
        if self.session_logger:
            self.session_logger(event, details)
