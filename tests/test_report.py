"""
Tests for results files and cohort analytics.
"""

import dataclasses
import pytest
from pathlib import Path

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from assessment_engine.models import IntegrityState, RedFlag, Severity
from assessment_engine.report import (
    CandidateResult, authenticity_tier, format_cohort_summary, generate_results_file,
    rank_results, summarize_cohort
)
from helpers import BASE_TIME, make_candidate, make_session


def make_result(candidate_id, score, authenticity, flags=(), time_spent=600):
    session = make_session()
    session.start()
    record = session.submit()
    integrity = IntegrityState(
        authenticity_score=authenticity,
        red_flags=tuple(RedFlag(BASE_TIME, d, Severity.WARNING) for d in flags)
    )
    record = dataclasses.replace(record, integrity_snapshot=integrity, time_spent_seconds=time_spent)
    grade = {"correct": 0, "total": 3, "answered": 0, "score": score, "results": []}
    return CandidateResult(candidate=make_candidate(candidate_id, name=candidate_id), record=record, grade=grade)


class TestTiers:
    """Test authenticity tiers."""

    @pytest.mark.parametrize("score,tier", [(100, "high"), (90, "high"), (89, "medium"),
                                            (70, "medium"), (69, "low"), (0, "low")])
    def test_tier_boundaries(self, score, tier):
        """Test the high/medium/low boundaries."""
        assert authenticity_tier(score) == tier


class TestCohortSummary:
    """Test cohort analytics."""

    def test_ranking_by_score_then_authenticity(self):
        """Test that authenticity breaks score ties."""
        results = [
            make_result("bea", 80.0, 70),
            make_result("cal", 95.0, 60),
            make_result("ada", 80.0, 95),
        ]
        ranked = [r.candidate.candidate_id for r in rank_results(results)]
        assert ranked == ["cal", "ada", "bea"]

    def test_summary(self):
        """Test averages, buckets, tiers and red flag percentages."""
        results = [
            make_result("ada", 92.0, 95, time_spent=600),
            make_result("bea", 85.0, 75, flags=["Tab switching detected", "Tab switching detected"],
                        time_spent=1200),
            make_result("cal", 40.0, 50, flags=["Tab switching detected", "Multiple faces detected"],
                        time_spent=1800),
            make_result("dan", 61.0, 100, time_spent=600),
        ]

        summary = summarize_cohort(results)

        assert summary["total"] == 4
        assert summary["average_score"] == 69.5
        assert summary["average_time_minutes"] == 17.5
        assert summary["score_distribution"] == {
            "90-100%": 1, "80-89%": 1, "70-79%": 0, "60-69%": 1, "Below 60%": 1
        }
        assert summary["authenticity"] == {"high": 2, "medium": 1, "low": 1}
        assert summary["red_flags"] == [
            {"type": "Tab switching detected", "count": 2, "percentage": 50.0},
            {"type": "Multiple faces detected", "count": 1, "percentage": 25.0},
        ]
        assert [row["candidate"] for row in summary["ranking"]] == ["ada", "bea", "dan", "cal"]
        assert summary["ranking"][0]["rank"] == 1

    def test_empty_cohort(self):
        """Test that an empty cohort produces zeroed analytics."""
        summary = summarize_cohort([])
        assert summary["total"] == 0
        assert summary["ranking"] == []
        assert "Completed attempts: 0" in format_cohort_summary(summary)


class TestResultsFile:
    """Test the per-candidate results file."""

    def test_results_file(self, tmp_path):
        """Test that the results file lists answers, score and flags."""
        session = make_session()
        session.start()
        session.answer("B")
        session.scheduler.advance(90)
        record = session.submit()
        grade = {
            "correct": 1, "total": 3, "answered": 1, "score": 33.33,
            "results": [
                {"question_num": 1, "question_id": "q1", "selected": "B", "status": "correct"},
                {"question_num": 2, "question_id": "q2", "selected": None, "status": "unanswered"},
                {"question_num": 3, "question_id": "q3", "selected": None, "status": "unanswered"},
            ]
        }
        result = CandidateResult(candidate=make_candidate(), record=record, grade=grade)

        path = generate_results_file(result, tmp_path / "results.txt")
        text = path.read_text(encoding="utf-8")

        assert text.startswith("Candidate: Ada Lovelace | Assessment: quiz-1 | Date: 2024-05-06")
        assert "(submitted, 01:30 spent)" in text
        assert "  Answer: B (correct)" in text
        assert "  NOT ANSWERED" in text
        assert "SCORE: 1/3 (33.33%)" in text
        assert "AUTHENTICITY: 100% (high confidence)" in text
        assert "RED FLAGS: none" in text
