"""
Assessment Session

Wires the session clock, answer ledger, integrity monitor, environment guard
and submission assembler together for one candidate's attempt, and exposes
the operations a front-end needs.
"""

import hashlib
import random
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .assembler import SubmissionAssembler
from .clock import SessionClock
from .detectors import Detector, MediaAcquirer, RandomDetector, SimulatedMediaAcquirer
from .environment import EnvironmentSignalSource, SimulatedEnvironment
from .errors import AssessmentClosed, PermissionDenied, PersistError, SessionStateError
from .guard import EnvironmentGuard
from .ledger import AnswerLedger
from .models import (
    AssessmentDescriptor, CandidateDescriptor, CompletionReason, EngineConfig,
    IntegrityState, Question, Session, SessionStatus, SubmissionRecord
)
from .monitor import IntegrityMonitor
from .scheduler import Scheduler, ThreadScheduler
from .store import SubmissionStore


class SessionLog:
    """Append-only activity log, mirrored to a file when a path is given."""

    def __init__(self, path: Optional[Path] = None, wall_clock: Callable[[], datetime] = datetime.now):
        self.path = path
        self.wall_clock = wall_clock
        self.entries: List[str] = []

    def log(self, event: str, details: str = ""):
        """Append an entry to the session log."""
        timestamp = self.wall_clock().strftime("%Y-%m-%d %H:%M:%S")
        log_entry = f"[{timestamp}] - {event}"
        if details:
            log_entry += f" - {details}"
        self.entries.append(log_entry)

        if self.path is not None:
            with open(self.path, 'a', encoding='utf-8') as f:
                f.write(log_entry + "\n")

    __call__ = log

    def events(self) -> List[str]:
        """Event names in order, for inspection."""
        return [entry.split(" - ")[1] for entry in self.entries]


@dataclass(frozen=True)
class SessionView:
    """Everything a front-end renders, read in one consistent step."""
    status: SessionStatus
    remaining_seconds: int
    remaining_display: str
    current_index: int
    current_question: Optional[Question]
    selected_option: Optional[str]
    flagged: bool
    answered_count: int
    total_questions: int
    progress_fraction: float
    flagged_questions: List[str]
    integrity: IntegrityState


def assign_question_order(assessment: AssessmentDescriptor, candidate: CandidateDescriptor,
                          shuffle: bool, seed: Optional[int] = None) -> List[str]:
    """
    Fix the question order for one candidate.

    When shuffling, the order is deterministic for a candidate/assessment
    pair unless an explicit seed is given.
    """
    order = [q.id for q in assessment.questions]
    if not shuffle:
        return order

    if seed is None:
        seed_string = f"{candidate.candidate_id}{assessment.assessment_id}"
        seed = int(hashlib.sha256(seed_string.encode()).hexdigest(), 16)
    random.Random(seed).shuffle(order)
    return order


def _release_late_stream(future) -> None:
    if not future.cancelled() and future.exception() is None:
        future.result().stop()


class AssessmentSession:
    """One candidate's proctored attempt at one assessment."""

    def __init__(
        self,
        assessment: AssessmentDescriptor,
        candidate: CandidateDescriptor,
        store: SubmissionStore,
        scheduler: Optional[Scheduler] = None,
        detector: Optional[Detector] = None,
        environment: Optional[EnvironmentSignalSource] = None,
        media_acquirer: Optional[MediaAcquirer] = None,
        config: Optional[EngineConfig] = None,
        work_dir: Optional[Path] = None,
        session_id: Optional[str] = None,
        seed: Optional[int] = None,
        wall_clock: Callable[[], datetime] = datetime.now
    ):
        self.assessment = assessment
        self.candidate = candidate
        self.config = config or EngineConfig.default()
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or ThreadScheduler()
        self.environment = environment or SimulatedEnvironment()
        self.media_acquirer = media_acquirer or SimulatedMediaAcquirer()
        self.wall_clock = wall_clock
        self.work_dir = Path(work_dir) if work_dir else None

        log_path = self.work_dir / self.config.session_log_name if self.work_dir else None
        self.log = SessionLog(log_path, wall_clock)
        if isinstance(self.scheduler, ThreadScheduler) and self.scheduler.error_handler is None:
            self.scheduler.error_handler = lambda e: self.log("ERROR", f"Scheduled task failed: {e}")

        self.questions = assessment.get_questions_by_id()
        question_order = assign_question_order(
            assessment, candidate, self.config.shuffle_questions, seed
        )
        duration = assessment.duration_seconds or self.config.default_duration_minutes * 60

        self.session = Session(
            session_id=session_id or uuid.uuid4().hex,
            assessment_id=assessment.assessment_id,
            candidate_id=candidate.candidate_id,
            question_order=tuple(question_order),
            duration_limit_seconds=duration
        )

        self.ledger = AnswerLedger(question_order, self.config.option_keys)
        self.clock = SessionClock(self.scheduler, session_logger=self.log)
        self.monitor = IntegrityMonitor(
            self.scheduler,
            detector or RandomDetector(seed),
            self.environment,
            self.media_acquirer,
            config=self.config,
            session_logger=self.log,
            is_live=self.is_in_progress,
            wall_clock=wall_clock
        )
        self.guard = EnvironmentGuard(
            self.environment, self.monitor, self.is_in_progress, session_logger=self.log
        )
        self.assembler = SubmissionAssembler(
            self.session, self.scheduler, self.ledger, self.clock, self.monitor,
            self.guard, self.environment, store, session_logger=self.log, wall_clock=wall_clock
        )
        self.clock.on_expire(self._on_expire)

        self.permissions_granted: Optional[bool] = None
        self.media_future = None
        self.closed = False
        self._finish_listeners: List[Callable[[SubmissionRecord], None]] = []

    # ===== STATUS =====

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    def is_in_progress(self) -> bool:
        return self.session.status is SessionStatus.IN_PROGRESS

    @property
    def record(self) -> Optional[SubmissionRecord]:
        return self.assembler.record

    @property
    def persist_error(self) -> Optional[PersistError]:
        return self.assembler.persist_error

    def on_finished(self, callback: Callable[[SubmissionRecord], None]) -> None:
        """Called once with the record when the session ends, by submit or by expiry."""
        self._finish_listeners.append(callback)

    def _require_in_progress(self):
        if not self.is_in_progress():
            raise SessionStateError(f"Session is {self.session.status.value}")

    # ===== LIFECYCLE =====

    def check_permissions(self, timeout: Optional[float] = 30.0) -> bool:
        """
        Probe camera/microphone access before the assessment starts.

        The probe stream is released immediately; the monitor acquires its
        own stream once the session runs.
        """
        future = self.media_acquirer.acquire()
        try:
            handle = future.result(timeout=timeout)
        except PermissionDenied as e:
            self.permissions_granted = False
            self.log("PERMISSION_CHECK", f"Denied: {e}")
            return False
        except Exception as e:
            # Timed out or the device failed; a late stream is released on arrival
            future.add_done_callback(_release_late_stream)
            self.permissions_granted = False
            self.log("CAMERA_ERROR", f"Permission check failed: {str(e) or type(e).__name__}")
            return False

        handle.stop()
        self.permissions_granted = True
        self.log("PERMISSION_CHECK", "Camera and microphone access granted")
        return True

    def start(self, agreed_to_terms: bool = True) -> None:
        """
        Begin the attempt: fix the clock, install the guard, start monitoring.

        Raises:
            SessionStateError: terms not accepted, session already started, or closed
            AssessmentClosed: the assessment deadline has passed
            PermissionDenied: camera/microphone required but refused
        """
        with self.scheduler.lock:
            if self.closed:
                raise SessionStateError("Session has been closed")
            if not agreed_to_terms:
                raise SessionStateError("The assessment instructions must be accepted first")
            if self.assessment.is_closed():
                raise AssessmentClosed(
                    f"Assessment {self.assessment.assessment_id} closed at {self.assessment.deadline.isoformat()}"
                )
            if self.config.require_camera:
                if self.permissions_granted is None:
                    self.check_permissions()
                if not self.permissions_granted:
                    raise PermissionDenied("Camera and microphone access is required to start")

            self.session.mark_started(self.wall_clock())
            self.environment.request_fullscreen()
            self.guard.install()
            self.clock.start(self.session.duration_limit_seconds)
            self.media_future = self.monitor.start()

            self.log(
                "SESSION_START",
                f"Candidate: {self.candidate.display_name}, Assessment: {self.assessment.assessment_id}, "
                f"Questions: {self.ledger.total_questions}, Duration: {self.clock.format_remaining()}"
            )

    def submit(self) -> SubmissionRecord:
        """Submit on the candidate's request. Repeated calls return the same record."""
        try:
            return self.assembler.submit(CompletionReason.USER_SUBMITTED)
        finally:
            if self.assembler.record is not None:
                self._notify_finished()

    def retry_persist(self) -> str:
        """Resend the assembled record after a PersistError."""
        return self.assembler.retry_persist()

    def _on_expire(self):
        try:
            self.assembler.submit(CompletionReason.TIME_EXPIRED)
        except PersistError:
            # Kept on the assembler (record + error) for the front-end to retry
            pass
        self._notify_finished()

    def _notify_finished(self):
        listeners, self._finish_listeners = self._finish_listeners, []
        for listener in listeners:
            listener(self.assembler.record)

    def close(self) -> None:
        """
        Tear the session down: cancel every task and release the camera.

        Safe on every exit path; a session closed while in progress stays
        resumable only in the sense that nothing was submitted.
        """
        with self.scheduler.lock:
            if self.is_in_progress():
                self.log("SESSION_EXIT", "Session closed without submitting")
            self.clock.stop()
            self.monitor.stop()
            self.guard.uninstall()
            self.closed = True
        if self._owns_scheduler:
            self.scheduler.shutdown()

    def __enter__(self) -> 'AssessmentSession':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ===== ANSWERS & NAVIGATION =====

    def answer(self, option: str, question_id: Optional[str] = None) -> None:
        """Answer ``question_id`` (default: the current question)."""
        with self.scheduler.lock:
            self._require_in_progress()
            qid = question_id or self.ledger.current_question_id
            self.ledger.set_answer(qid, option)
            self.log("ANSWER", f"Question: {qid}, Option: {option}")

    def toggle_flag(self, question_id: Optional[str] = None) -> bool:
        with self.scheduler.lock:
            self._require_in_progress()
            qid = question_id or self.ledger.current_question_id
            flagged = self.ledger.toggle_flag(qid)
            self.log("REVIEW_FLAG", f"Question: {qid}, Flagged: {flagged}")
            return flagged

    def next_question(self) -> int:
        with self.scheduler.lock:
            return self.ledger.next()

    def previous_question(self) -> int:
        with self.scheduler.lock:
            return self.ledger.previous()

    def go_to(self, index: int) -> int:
        with self.scheduler.lock:
            return self.ledger.go_to(index)

    def current_question(self) -> Optional[Question]:
        qid = self.ledger.current_question_id
        return self.questions.get(qid) if qid else None

    def state(self) -> SessionView:
        with self.scheduler.lock:
            question = self.current_question()
            qid = question.id if question else None
            if self.session.status is SessionStatus.NOT_STARTED:
                remaining = self.session.duration_limit_seconds
            else:
                remaining = self.clock.remaining()
            minutes, seconds = divmod(remaining, 60)
            return SessionView(
                status=self.session.status,
                remaining_seconds=remaining,
                remaining_display=f"{minutes:02d}:{seconds:02d}",
                current_index=self.ledger.current_index,
                current_question=question,
                selected_option=self.ledger.get_answer(qid) if qid else None,
                flagged=self.ledger.is_flagged(qid) if qid else False,
                answered_count=self.ledger.answered_count(),
                total_questions=self.ledger.total_questions,
                progress_fraction=self.ledger.progress_fraction(),
                flagged_questions=self.ledger.flagged_questions(),
                integrity=self.monitor.snapshot()
            )
