"""
Deterministic fakes shared by the session engine tests.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import List

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from assessment_engine.detectors import Detector, SimulatedMediaAcquirer
from assessment_engine.environment import SimulatedEnvironment
from assessment_engine.errors import PersistError
from assessment_engine.models import (
    AssessmentDescriptor, CandidateDescriptor, DetectionResult, EngineConfig, Question
)
from assessment_engine.scheduler import ManualScheduler
from assessment_engine.session import AssessmentSession
from assessment_engine.store import SubmissionStore


BASE_TIME = datetime(2024, 5, 6, 9, 0, 0)

GOOD = DetectionResult(face_present=True, face_confidence=0.95, face_count=1, looking_at_screen=True)
NO_FACE = DetectionResult(face_present=False, face_confidence=0.0, face_count=0, looking_at_screen=True)
TWO_FACES = DetectionResult(face_present=True, face_confidence=0.9, face_count=2, looking_at_screen=True)
LOOKING_AWAY = DetectionResult(face_present=True, face_confidence=0.9, face_count=1, looking_at_screen=False)


class ScriptedDetector(Detector):
    """Returns the scripted samples in order, then GOOD forever."""

    def __init__(self, samples=()):
        self.samples = list(samples)
        self.calls = 0

    def sample(self) -> DetectionResult:
        self.calls += 1
        if self.samples:
            return self.samples.pop(0)
        return GOOD


class MemoryStore(SubmissionStore):
    """Keeps saved records in a list; fails the first ``fail_times`` saves."""

    def __init__(self, fail_times: int = 0, error_cls=PersistError):
        self.saved = []
        self.attempts = 0
        self.fail_times = fail_times
        self.error_cls = error_cls

    def save_submission(self, record) -> str:
        self.attempts += 1
        if self.attempts <= self.fail_times:
            raise self.error_cls("store unavailable")
        self.saved.append(record)
        return f"ack-{len(self.saved)}"

    def load_assessment(self, link_id):
        raise LookupError(link_id)

    def load_candidate(self, link_id):
        raise LookupError(link_id)


def make_questions(count: int = 3) -> List[Question]:
    return [
        Question(
            id=f"q{i}",
            text=f"Question {i}?",
            options={"A": "one", "B": "two", "C": "three", "D": "four"},
            correct_option="B",
            topic="General"
        )
        for i in range(1, count + 1)
    ]


def make_assessment(count: int = 3, duration_seconds: int = 2700, deadline=None) -> AssessmentDescriptor:
    return AssessmentDescriptor(
        assessment_id="quiz-1",
        title="Backend Fundamentals",
        questions=make_questions(count),
        duration_seconds=duration_seconds,
        deadline=deadline
    )


def make_candidate(candidate_id: str = "cand-1", name: str = "Ada Lovelace") -> CandidateDescriptor:
    return CandidateDescriptor(
        candidate_id=candidate_id,
        assessment_id="quiz-1",
        email=f"{candidate_id}@example.com",
        name=name,
        unique_link=f"link-{candidate_id}"
    )


def wall_clock_for(scheduler: ManualScheduler):
    """Wall clock that follows the scheduler's virtual time."""
    return lambda: BASE_TIME + timedelta(seconds=scheduler.now())


def make_session(
    samples=(),
    store=None,
    environment=None,
    media_acquirer=None,
    config=None,
    assessment=None,
    work_dir=None
) -> AssessmentSession:
    """A session on virtual time with scripted detection."""
    scheduler = ManualScheduler()
    return AssessmentSession(
        assessment or make_assessment(),
        make_candidate(),
        store if store is not None else MemoryStore(),
        scheduler=scheduler,
        detector=ScriptedDetector(samples),
        environment=environment or SimulatedEnvironment(),
        media_acquirer=media_acquirer or SimulatedMediaAcquirer(),
        config=config or EngineConfig.default(),
        work_dir=work_dir,
        session_id="session-1",
        wall_clock=wall_clock_for(scheduler)
    )
