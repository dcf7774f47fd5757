"""
Exception types raised by the assessment session engine.
"""


class AssessmentError(Exception):
    """Base class for all engine errors."""


class InvalidQuestion(AssessmentError):
    """An answer or flag referenced a question outside the session's question order."""

    def __init__(self, question_id: str):
        super().__init__(f"Unknown question id: {question_id!r}")
        self.question_id = question_id


class InvalidOption(AssessmentError):
    """An answer used an option key outside the configured option set."""

    def __init__(self, option: str, allowed):
        super().__init__(f"Invalid option {option!r}; expected one of {', '.join(allowed)}")
        self.option = option
        self.allowed = tuple(allowed)


class PermissionDenied(AssessmentError):
    """Camera/microphone acquisition was refused by the platform or the candidate."""


class PersistError(AssessmentError):
    """
    Handing a submission to the persistence collaborator failed.

    The already-assembled record travels with the error so the caller can
    offer a retry without re-running the session.
    """

    def __init__(self, message: str, record=None):
        super().__init__(message)
        self.record = record


class ClockMisuse(AssessmentError):
    """Programming error in the use of the session clock (e.g. double start)."""


class AssessmentClosed(AssessmentError):
    """The assessment deadline has passed; no new session may start."""


class SessionStateError(AssessmentError):
    """Operation not allowed in the session's current status."""
