"""
Result reports: a human-readable results file for one submission and
cohort analytics across several graded submissions.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import CandidateDescriptor, CompletionReason, SubmissionRecord


SCORE_BUCKETS = [
    ("90-100%", 90, None),
    ("80-89%", 80, 90),
    ("70-79%", 70, 80),
    ("60-69%", 60, 70),
    ("Below 60%", None, 60),
]

HIGH_CONFIDENCE = 90
MEDIUM_CONFIDENCE = 70


@dataclass
class CandidateResult:
    """A graded submission with the candidate it belongs to."""
    candidate: CandidateDescriptor
    record: SubmissionRecord
    grade: Dict[str, Any]

    @property
    def score(self) -> float:
        return self.grade["score"]

    @property
    def authenticity_score(self) -> int:
        return self.record.integrity_snapshot.authenticity_score


def authenticity_tier(score: int) -> str:
    if score >= HIGH_CONFIDENCE:
        return "high"
    if score >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def format_duration(seconds: int) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


def generate_results_file(result: CandidateResult, path: Path) -> Path:
    """Write the human-readable results.txt for one candidate."""
    record = result.record
    integrity = record.integrity_snapshot
    grade = result.grade

    lines = []
    lines.append(f"Candidate: {result.candidate.display_name} | Assessment: {record.assessment_id} | "
                 f"Date: {record.completed_at.strftime('%Y-%m-%d')}")
    reason = "submitted" if record.completion_reason is CompletionReason.USER_SUBMITTED else "time expired"
    lines.append(f"Session: {record.session_id} ({reason}, {format_duration(record.time_spent_seconds)} spent)\n")

    for item in grade["results"]:
        qn = f"q{item['question_num']}"
        lines.append(f"[{qn}: {item['question_id']}]")
        if item["status"] == "unanswered":
            lines.append("  NOT ANSWERED")
        else:
            mark = "correct" if item["status"] == "correct" else "incorrect"
            lines.append(f"  Answer: {item['selected']} ({mark})")
        lines.append("")

    lines.append(f"SCORE: {grade['correct']}/{grade['total']} ({grade['score']:.2f}%)")
    lines.append(f"AUTHENTICITY: {integrity.authenticity_score}% ({authenticity_tier(integrity.authenticity_score)} confidence)")
    lines.append(f"ATTENTION: {integrity.attention_score}% | Face detection rate: {integrity.face_detection_rate:.0%}")

    counts = {
        description: count
        for description, count in integrity.count_by_description().items()
    }
    if counts:
        lines.append("RED FLAGS:")
        for description, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
            lines.append(f"  - {description}: {count}")
    else:
        lines.append("RED FLAGS: none")

    path = Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        f.write("\n".join(lines))
    return path


def rank_results(results: List[CandidateResult]) -> List[CandidateResult]:
    """Highest score first; authenticity breaks ties."""
    return sorted(results, key=lambda r: (r.score, r.authenticity_score), reverse=True)


def _bucket(score: float) -> str:
    for label, low, high in SCORE_BUCKETS:
        if (low is None or score >= low) and (high is None or score < high):
            return label
    return SCORE_BUCKETS[-1][0]


def summarize_cohort(results: List[CandidateResult]) -> Dict[str, Any]:
    """
    Analytics over completed attempts.

    Returns:
        Dictionary containing:
        - total: Number of completed attempts
        - average_score: Mean percentage score (1 decimal)
        - average_time_minutes: Mean time spent (1 decimal)
        - ranking: Candidates ordered by score, then authenticity
        - score_distribution: Counts per score bucket
        - authenticity: Counts of high/medium/low confidence attempts
        - red_flags: Per description, how many attempts raised it
    """
    total = len(results)
    summary: Dict[str, Any] = {
        "total": total,
        "average_score": 0.0,
        "average_time_minutes": 0.0,
        "ranking": [],
        "score_distribution": {label: 0 for label, _, _ in SCORE_BUCKETS},
        "authenticity": {"high": 0, "medium": 0, "low": 0},
        "red_flags": [],
    }
    if total == 0:
        return summary

    summary["average_score"] = round(sum(r.score for r in results) / total, 1)
    summary["average_time_minutes"] = round(
        sum(r.record.time_spent_seconds for r in results) / total / 60, 1
    )

    for rank, r in enumerate(rank_results(results), start=1):
        summary["ranking"].append({
            "rank": rank,
            "candidate": r.candidate.display_name,
            "email": r.candidate.email,
            "score": r.score,
            "correct": r.grade["correct"],
            "total": r.grade["total"],
            "authenticity_score": r.authenticity_score,
            "attention_score": r.record.integrity_snapshot.attention_score,
        })

    flagged_attempts: Dict[str, int] = {}
    for r in results:
        summary["score_distribution"][_bucket(r.score)] += 1
        summary["authenticity"][authenticity_tier(r.authenticity_score)] += 1
        for description in {f.description for f in r.record.integrity_snapshot.red_flags
                            if f.severity.is_score_bearing}:
            flagged_attempts[description] = flagged_attempts.get(description, 0) + 1

    summary["red_flags"] = [
        {"type": description, "count": count, "percentage": round(100.0 * count / total, 1)}
        for description, count in sorted(flagged_attempts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
    return summary


def format_cohort_summary(summary: Dict[str, Any], title: Optional[str] = None) -> str:
    lines = []
    if title:
        lines.append(title)
        lines.append("=" * len(title))
    lines.append(f"Completed attempts: {summary['total']}")
    lines.append(f"Average score: {summary['average_score']}% | Average time: {summary['average_time_minutes']}m")
    lines.append("")
    lines.append("Ranking:")
    for row in summary["ranking"]:
        lines.append(f"  {row['rank']:>2}. {row['candidate']:<30} {row['score']:>6.2f}%  "
                     f"authenticity {row['authenticity_score']}%")
    lines.append("")
    lines.append("Score distribution:")
    for label, count in summary["score_distribution"].items():
        lines.append(f"  {label:<10} {count}")
    auth = summary["authenticity"]
    lines.append("")
    lines.append(f"Authenticity: {auth['high']} high, {auth['medium']} medium, {auth['low']} low")
    if summary["red_flags"]:
        lines.append("Red flags:")
        for row in summary["red_flags"]:
            lines.append(f"  - {row['type']}: {row['count']} ({row['percentage']}%)")
    return "\n".join(lines)
