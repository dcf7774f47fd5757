"""
Data models for assessments, candidates and proctored sessions.

Provides type-safe structures for questions, assessment/candidate descriptors,
answer entries, red flags, integrity snapshots, submission records and the
engine configuration.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple

from .errors import SessionStateError


class SessionStatus(Enum):
    """Lifecycle of one candidate's attempt."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.SUBMITTED, SessionStatus.EXPIRED)


class CompletionReason(Enum):
    """Why a session ended."""
    USER_SUBMITTED = "user_submitted"
    TIME_EXPIRED = "time_expired"


class Severity(Enum):
    """Severity of a red flag. Only warning and error count against the score."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def is_score_bearing(self) -> bool:
        return self is not Severity.INFO


class FlagSource(Enum):
    """Which component raised a red flag."""
    MONITOR = "monitor"
    GUARD = "guard"


@dataclass
class Question:
    """A single multiple-choice question."""
    id: str
    text: str
    options: Dict[str, str]
    correct_option: Optional[str] = None
    difficulty: str = "Medium"
    topic: Optional[str] = None
    explanation: Optional[str] = None

    @staticmethod
    def from_dict(data: dict) -> 'Question':
        """Create a Question from a dictionary (accepts the stored column names too)."""
        return Question(
            id=str(data['id']),
            text=data.get('text') or data.get('question_text') or data.get('question', ''),
            options=dict(data['options']),
            correct_option=data.get('correct_option') or data.get('correct_answer'),
            difficulty=data.get('difficulty', 'Medium'),
            topic=data.get('topic'),
            explanation=data.get('explanation')
        )

    def to_dict(self, include_answer: bool = True) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'text': self.text,
            'options': dict(self.options),
            'difficulty': self.difficulty,
            'topic': self.topic,
        }
        if include_answer:
            data['correct_option'] = self.correct_option
            data['explanation'] = self.explanation
        return data


@dataclass
class AssessmentDescriptor:
    """An assessment as loaded by the persistence collaborator."""
    assessment_id: str
    title: str
    questions: List[Question]
    duration_seconds: int
    deadline: Optional[datetime] = None

    @staticmethod
    def from_dict(data: dict, default_duration_minutes: int = 45) -> 'AssessmentDescriptor':
        """
        Create an AssessmentDescriptor from a dictionary.

        The duration may be given as ``duration_seconds`` or, as the quiz
        table stores it, ``time_limit`` in minutes.
        """
        if 'duration_seconds' in data:
            duration = int(data['duration_seconds'])
        else:
            duration = int(data.get('time_limit', default_duration_minutes)) * 60

        deadline = None
        if data.get('deadline'):
            deadline = datetime.fromisoformat(data['deadline'])

        return AssessmentDescriptor(
            assessment_id=str(data.get('assessment_id') or data['id']),
            title=data.get('title', ''),
            questions=[Question.from_dict(q) for q in data['questions']],
            duration_seconds=duration,
            deadline=deadline
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'assessment_id': self.assessment_id,
            'title': self.title,
            'questions': [q.to_dict() for q in self.questions],
            'duration_seconds': self.duration_seconds,
            'deadline': self.deadline.isoformat() if self.deadline else None,
        }

    def get_questions_by_id(self) -> Dict[str, Question]:
        """Return a dictionary mapping question IDs to Question objects."""
        return {q.id: q for q in self.questions}

    def is_closed(self, now: Optional[datetime] = None) -> bool:
        """True when a deadline is set and has passed."""
        if self.deadline is None:
            return False
        if now is None:
            now = datetime.now(self.deadline.tzinfo)
        return now > self.deadline


@dataclass
class CandidateDescriptor:
    """An invited candidate."""
    candidate_id: str
    assessment_id: str
    email: str
    name: str = ""
    unique_link: Optional[str] = None
    status: str = "pending"

    @staticmethod
    def from_dict(data: dict) -> 'CandidateDescriptor':
        return CandidateDescriptor(
            candidate_id=str(data.get('candidate_id') or data['id']),
            assessment_id=str(data['assessment_id']),
            email=data['email'],
            name=data.get('name') or "",
            unique_link=data.get('unique_link'),
            status=data.get('status', 'pending')
        )

    @property
    def display_name(self) -> str:
        return self.name or self.email


@dataclass
class Session:
    """
    One candidate's attempt at one assessment.

    Once the status is Submitted or Expired it never changes again.
    """
    session_id: str
    assessment_id: str
    candidate_id: str
    question_order: Tuple[str, ...]
    duration_limit_seconds: int
    started_at: Optional[datetime] = None
    status: SessionStatus = SessionStatus.NOT_STARTED

    def __post_init__(self):
        self.question_order = tuple(self.question_order)

    def mark_started(self, started_at: datetime) -> None:
        if self.status is not SessionStatus.NOT_STARTED:
            raise SessionStateError(f"Cannot start a session that is {self.status.value}")
        self.started_at = started_at
        self.status = SessionStatus.IN_PROGRESS

    def mark_finished(self, status: SessionStatus) -> None:
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")
        if self.status is not SessionStatus.IN_PROGRESS:
            raise SessionStateError(f"Cannot finish a session that is {self.status.value}")
        self.status = status


@dataclass(frozen=True)
class AnswerEntry:
    """One candidate response."""
    question_id: str
    selected_option: Optional[str] = None
    flagged_for_review: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'question_id': self.question_id,
            'selected_option': self.selected_option,
            'flagged_for_review': self.flagged_for_review,
        }

    @staticmethod
    def from_dict(data: dict) -> 'AnswerEntry':
        return AnswerEntry(
            question_id=str(data['question_id']),
            selected_option=data.get('selected_option'),
            flagged_for_review=bool(data.get('flagged_for_review', False))
        )


@dataclass(frozen=True)
class RedFlag:
    """A discrete integrity observation."""
    timestamp: datetime
    description: str
    severity: Severity
    source: FlagSource = FlagSource.MONITOR

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'description': self.description,
            'severity': self.severity.value,
            'source': self.source.value,
        }

    @staticmethod
    def from_dict(data: dict) -> 'RedFlag':
        return RedFlag(
            timestamp=datetime.fromisoformat(data['timestamp']),
            description=data['description'],
            severity=Severity(data['severity']),
            source=FlagSource(data.get('source', 'monitor'))
        )


@dataclass(frozen=True)
class DetectionResult:
    """One face-detection sample."""
    face_present: bool
    face_confidence: float
    face_count: int
    looking_at_screen: bool

    def __post_init__(self):
        # Clamp to [0, 1]
        object.__setattr__(self, 'face_confidence', max(0.0, min(1.0, float(self.face_confidence))))


@dataclass(frozen=True)
class IntegrityState:
    """Snapshot of the accumulated trust signal for a session."""
    authenticity_score: int = 100
    red_flags: Tuple[RedFlag, ...] = ()
    face_detection_rate: float = 0.0
    attention_score: int = 100
    total_checks: int = 0
    successful_detections: int = 0
    flagged_events: int = 0
    camera_status: str = "pending"
    last_detection: Optional[DetectionResult] = None

    def count_by_description(self) -> Dict[str, int]:
        """Count red flags by description."""
        counts: Dict[str, int] = {}
        for flag in self.red_flags:
            counts[flag.description] = counts.get(flag.description, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        last = self.last_detection
        return {
            'authenticity_score': self.authenticity_score,
            'red_flags': [f.to_dict() for f in self.red_flags],
            'face_detection_rate': self.face_detection_rate,
            'attention_score': self.attention_score,
            'total_checks': self.total_checks,
            'successful_detections': self.successful_detections,
            'flagged_events': self.flagged_events,
            'camera_status': self.camera_status,
            'last_detection': None if last is None else {
                'face_present': last.face_present,
                'face_confidence': last.face_confidence,
                'face_count': last.face_count,
                'looking_at_screen': last.looking_at_screen,
            },
        }

    @staticmethod
    def from_dict(data: dict) -> 'IntegrityState':
        last = data.get('last_detection')
        return IntegrityState(
            authenticity_score=int(data.get('authenticity_score', 100)),
            red_flags=tuple(RedFlag.from_dict(f) for f in data.get('red_flags', [])),
            face_detection_rate=float(data.get('face_detection_rate', 0.0)),
            attention_score=int(data.get('attention_score', 100)),
            total_checks=int(data.get('total_checks', 0)),
            successful_detections=int(data.get('successful_detections', 0)),
            flagged_events=int(data.get('flagged_events', 0)),
            camera_status=data.get('camera_status', 'pending'),
            last_detection=DetectionResult(**last) if last else None
        )


@dataclass(frozen=True)
class SubmissionRecord:
    """Immutable result of a completed session."""
    session_id: str
    assessment_id: str
    candidate_id: str
    question_order: Tuple[str, ...]
    answers: Tuple[AnswerEntry, ...]
    time_spent_seconds: int
    integrity_snapshot: IntegrityState
    started_at: datetime
    completed_at: datetime
    completion_reason: CompletionReason

    def answers_by_question(self) -> Dict[str, Optional[str]]:
        """Map question id to selected option for answered questions."""
        return {
            entry.question_id: entry.selected_option
            for entry in self.answers
            if entry.selected_option is not None
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'assessment_id': self.assessment_id,
            'candidate_id': self.candidate_id,
            'question_order': list(self.question_order),
            'answers': [a.to_dict() for a in self.answers],
            'time_spent_seconds': self.time_spent_seconds,
            'integrity_snapshot': self.integrity_snapshot.to_dict(),
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat(),
            'completion_reason': self.completion_reason.value,
        }

    @staticmethod
    def from_dict(data: dict) -> 'SubmissionRecord':
        return SubmissionRecord(
            session_id=data['session_id'],
            assessment_id=data['assessment_id'],
            candidate_id=data['candidate_id'],
            question_order=tuple(data['question_order']),
            answers=tuple(AnswerEntry.from_dict(a) for a in data['answers']),
            time_spent_seconds=int(data['time_spent_seconds']),
            integrity_snapshot=IntegrityState.from_dict(data['integrity_snapshot']),
            started_at=datetime.fromisoformat(data['started_at']),
            completed_at=datetime.fromisoformat(data['completed_at']),
            completion_reason=CompletionReason(data['completion_reason'])
        )


@dataclass
class EngineConfig:
    """
    Tunable parameters of the session engine.

    Attributes:
        face_sample_interval_seconds: Period of the face-detection sampler
        screen_sample_interval_seconds: Period of the visibility/fullscreen sampler
        default_duration_minutes: Time limit used when an assessment sets none
        session_flag_penalty: Score points lost per guard-raised red flag
        monitor_flag_penalty: Score points lost per monitor-raised red flag
        attention_flag_penalty: Attention points lost per face-sample red flag
        option_keys: Allowed answer keys
        shuffle_questions: Seeded per-candidate question order
        require_camera: Refuse to start until camera/microphone are granted
        session_log_name: File name of the activity log in the work directory
    """
    face_sample_interval_seconds: float = 2.0
    screen_sample_interval_seconds: float = 1.0
    default_duration_minutes: int = 45
    session_flag_penalty: int = 5
    monitor_flag_penalty: int = 5
    attention_flag_penalty: int = 5
    option_keys: List[str] = field(default_factory=lambda: ["A", "B", "C", "D"])
    shuffle_questions: bool = False
    require_camera: bool = True
    session_log_name: str = "session.log"

    @staticmethod
    def from_dict(data: dict) -> 'EngineConfig':
        """Create EngineConfig from dictionary."""
        return EngineConfig(
            face_sample_interval_seconds=float(data.get('face_sample_interval_seconds', 2.0)),
            screen_sample_interval_seconds=float(data.get('screen_sample_interval_seconds', 1.0)),
            default_duration_minutes=int(data.get('default_duration_minutes', 45)),
            session_flag_penalty=int(data.get('session_flag_penalty', 5)),
            monitor_flag_penalty=int(data.get('monitor_flag_penalty', 5)),
            attention_flag_penalty=int(data.get('attention_flag_penalty', 5)),
            option_keys=[str(k) for k in data.get('option_keys', ["A", "B", "C", "D"])],
            shuffle_questions=bool(data.get('shuffle_questions', False)),
            require_camera=bool(data.get('require_camera', True)),
            session_log_name=data.get('session_log_name', 'session.log')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'face_sample_interval_seconds': self.face_sample_interval_seconds,
            'screen_sample_interval_seconds': self.screen_sample_interval_seconds,
            'default_duration_minutes': self.default_duration_minutes,
            'session_flag_penalty': self.session_flag_penalty,
            'monitor_flag_penalty': self.monitor_flag_penalty,
            'attention_flag_penalty': self.attention_flag_penalty,
            'option_keys': list(self.option_keys),
            'shuffle_questions': self.shuffle_questions,
            'require_camera': self.require_camera,
            'session_log_name': self.session_log_name,
        }

    def validate(self) -> tuple[bool, str]:
        """
        Validate configuration consistency.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if self.face_sample_interval_seconds <= 0 or self.screen_sample_interval_seconds <= 0:
            return False, "Sampling intervals must be positive"

        if self.default_duration_minutes < 1 or self.default_duration_minutes > 480:
            return False, "Default duration must be between 1 and 480 minutes (8 hours)"

        if any(x < 0 for x in [self.session_flag_penalty, self.monitor_flag_penalty,
                                self.attention_flag_penalty]):
            return False, "Flag penalties must be non-negative"

        if not self.option_keys:
            return False, "At least one option key is required"

        if len(set(self.option_keys)) != len(self.option_keys):
            return False, f"Duplicate option keys: {self.option_keys}"

        if not self.session_log_name:
            return False, "session_log_name must not be empty"

        return True, ""

    @staticmethod
    def default() -> 'EngineConfig':
        """Return the default configuration."""
        return EngineConfig()
