"""
Answer ledger: per-question responses, review flags and navigation position.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidQuestion, InvalidOption
from .models import AnswerEntry


class AnswerLedger:
    """Stores the candidate's answers for a fixed question order."""

    def __init__(self, question_order: Sequence[str], option_keys: Iterable[str] = ("A", "B", "C", "D")):
        self.question_order: Tuple[str, ...] = tuple(question_order)
        if len(set(self.question_order)) != len(self.question_order):
            raise ValueError("Question order contains duplicate ids")
        self.option_keys: Tuple[str, ...] = tuple(option_keys)
        self._answers: Dict[str, str] = {}
        self._flagged: Dict[str, bool] = {}
        self.current_index = 0

    @property
    def total_questions(self) -> int:
        return len(self.question_order)

    def _check_question(self, question_id: str):
        if question_id not in self.question_order:
            raise InvalidQuestion(question_id)

    def set_answer(self, question_id: str, option: str) -> None:
        """Record ``option`` for ``question_id``, replacing any earlier answer."""
        self._check_question(question_id)
        if option not in self.option_keys:
            raise InvalidOption(option, self.option_keys)
        self._answers[question_id] = option

    def get_answer(self, question_id: str) -> Optional[str]:
        self._check_question(question_id)
        return self._answers.get(question_id)

    def toggle_flag(self, question_id: str) -> bool:
        """Flip the review flag; returns the new flag value."""
        self._check_question(question_id)
        flagged = not self._flagged.get(question_id, False)
        self._flagged[question_id] = flagged
        return flagged

    def is_flagged(self, question_id: str) -> bool:
        self._check_question(question_id)
        return self._flagged.get(question_id, False)

    def flagged_questions(self) -> List[str]:
        return [qid for qid in self.question_order if self._flagged.get(qid)]

    def answered_count(self) -> int:
        return len(self._answers)

    def progress_fraction(self) -> float:
        if not self.question_order:
            return 0.0
        return self.answered_count() / self.total_questions

    # ===== NAVIGATION =====

    @property
    def current_question_id(self) -> Optional[str]:
        if not self.question_order:
            return None
        return self.question_order[self.current_index]

    def go_to(self, index: int) -> int:
        """Move to ``index`` (clamped to the valid range) and return the new index."""
        if not self.question_order:
            return 0
        self.current_index = max(0, min(index, self.total_questions - 1))
        return self.current_index

    def next(self) -> int:
        return self.go_to(self.current_index + 1)

    def previous(self) -> int:
        return self.go_to(self.current_index - 1)

    # ===== SNAPSHOT =====

    def snapshot(self) -> Tuple[AnswerEntry, ...]:
        """
        Immutable copy of every question that was answered or flagged, in
        question order.
        """
        entries = []
        for qid in self.question_order:
            option = self._answers.get(qid)
            flagged = self._flagged.get(qid, False)
            if option is None and not flagged:
                continue
            entries.append(AnswerEntry(question_id=qid, selected_option=option, flagged_for_review=flagged))
        return tuple(entries)
