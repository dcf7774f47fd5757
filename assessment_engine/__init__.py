"""
Proctored Assessment Engine

This package contains the components of a timed, proctored multiple-choice session:
- clock: Countdown timer with a single expiry notification
- ledger: Candidate answers, review flags and navigation
- monitor: Camera/screen sampling and the authenticity score
- guard: Tab, fullscreen and shortcut tamper detection
- assembler: One immutable submission record per session
- session: Wires the components together for one attempt
- grader, report: Scoring and cohort analytics
"""

__version__ = "1.0.0"
