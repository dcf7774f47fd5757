"""
Grader module for scoring submitted assessments against the answer key.

Provides the Grader class, which compares each answer in a SubmissionRecord
with the assessment's correct options and produces a percentage score.
"""

from typing import Any, Dict, List, Optional

from .models import AssessmentDescriptor, SubmissionRecord


class Grader:
    """Scores multiple-choice submissions."""

    def __init__(self, assessment: AssessmentDescriptor):
        self.assessment = assessment
        self.questions = assessment.get_questions_by_id()

    # ===== CHECKER =====

    def _option_match(self, selected: Optional[str], expected: Optional[str]) -> bool:
        """Option keys match after trimming and upper-casing."""
        if selected is None or expected is None:
            return False
        return selected.strip().upper() == expected.strip().upper()

    # ===== GRADING =====

    def grade_submission(self, record: SubmissionRecord) -> Dict[str, Any]:
        """
        Grade every question in the record's question order.

        Returns:
            Dictionary containing:
            - correct: Number of correctly answered questions
            - total: Number of questions in the session
            - answered: Number of questions with a selected option
            - score: Percentage of correct answers, rounded to 2 decimals
            - results: Per-question results
        """
        answers = record.answers_by_question()
        results: List[Dict[str, Any]] = []
        correct_count = 0

        for i, question_id in enumerate(record.question_order, start=1):
            question = self.questions.get(question_id)
            selected = answers.get(question_id)
            expected = question.correct_option if question else None

            if selected is None:
                status = "unanswered"
            elif self._option_match(selected, expected):
                status = "correct"
                correct_count += 1
            else:
                status = "incorrect"

            results.append({
                "question_num": i,
                "question_id": question_id,
                "topic": question.topic if question else None,
                "difficulty": question.difficulty if question else None,
                "selected": selected,
                "expected": expected,
                "status": status
            })

        total = len(record.question_order)
        score = round(100.0 * correct_count / total, 2) if total > 0 else 0.0

        return {
            "correct": correct_count,
            "total": total,
            "answered": len(answers),
            "score": score,
            "results": results
        }

    def to_responses(self, record: SubmissionRecord, grade: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Per-answer response rows (candidate, question, selected answer, correctness)."""
        if grade is None:
            grade = self.grade_submission(record)
        return [
            {
                "candidate_id": record.candidate_id,
                "question_id": r["question_id"],
                "selected_answer": r["selected"],
                "is_correct": r["status"] == "correct"
            }
            for r in grade["results"]
            if r["selected"] is not None
        ]

    # ===== UTILITY METHODS =====

    def format_results(self, grade: Dict[str, Any], show_details: bool = False) -> str:
        """
        Format grading results for terminal display.

        Args:
            grade: Results dictionary from grade_submission
            show_details: If True, show the expected option for missed questions
        """
        lines = [f"Grading {grade['total']} questions..."]

        for result in grade['results']:
            num = result['question_num']
            status = result['status']
            if status == "correct":
                lines.append(f"  Question {num}: correct")
            elif status == "incorrect":
                line = f"  Question {num}: incorrect (answered {result['selected']})"
                if show_details and result['expected']:
                    line += f", expected {result['expected']}"
                lines.append(line)
            else:
                lines.append(f"  Question {num}: not answered")

        lines.append("")
        lines.append(f"Result: {grade['correct']}/{grade['total']} correct ({grade['score']:.2f}%)")
        return "\n".join(lines)
