"""
Risk scoring for proctored sessions

``compute_risk_score`` is a pure function over the full violation log and
the proctoring aggregate. It is called after every violation and again at
submission, so both paths always agree.
"""
from typing import Any, Dict, List, Optional

from examwatch.models.quiz_session import Severity

SEVERITY_WEIGHTS = {
    Severity.LOW.value: 5,
    Severity.MEDIUM.value: 15,
    Severity.HIGH.value: 30,
    Severity.CRITICAL.value: 50,
}

# Aggregate penalties
TAB_SWITCH_LIMIT = 5
TAB_SWITCH_PENALTY = 20
LOOK_AWAY_LIMIT = 10
LOOK_AWAY_PENALTY = 15
MULTIPLE_FACES_PENALTY = 25
NO_FACE_PENALTY = 40

MAX_RISK = 100

# Thresholds
WARNING_THRESHOLD = 50
FLAG_THRESHOLD = 70
TERMINATE_THRESHOLD = 90
TERMINATE_CRITICAL_COUNT = 2

# Review queue buckets
RISK_LEVELS = {
    "low": (0, 30),
    "medium": (30, 70),
    "high": (70, MAX_RISK + 1),
}


def compute_risk_score(
    violations: Optional[List[Dict[str, Any]]],
    proctoring_data: Optional[Dict[str, Any]]
) -> int:
    """
    Risk = sum of severity weights + aggregate penalties, clamped to [0, 100].

    Unknown severities weigh nothing; a missing aggregate applies no
    penalties.
    """
    risk = 0

    for violation in violations or []:
        risk += SEVERITY_WEIGHTS.get(violation.get("severity"), 0)

    data = proctoring_data or {}
    if (data.get("tab_switches") or 0) > TAB_SWITCH_LIMIT:
        risk += TAB_SWITCH_PENALTY
    if (data.get("look_away_count") or 0) > LOOK_AWAY_LIMIT:
        risk += LOOK_AWAY_PENALTY
    if data.get("multiple_faces_detected"):
        risk += MULTIPLE_FACES_PENALTY
    if data.get("face_detected") is False:
        risk += NO_FACE_PENALTY

    return max(0, min(MAX_RISK, risk))


def count_critical(violations: Optional[List[Dict[str, Any]]]) -> int:
    return sum(1 for v in (violations or []) if v.get("severity") == Severity.CRITICAL.value)


def should_terminate(risk_score: int, violations: Optional[List[Dict[str, Any]]]) -> bool:
    """Mid-attempt escalation: very high risk or repeated critical violations"""
    return risk_score >= TERMINATE_THRESHOLD or count_critical(violations) >= TERMINATE_CRITICAL_COUNT


def should_flag(risk_score: int) -> bool:
    return risk_score >= FLAG_THRESHOLD


def risk_level_bounds(level: str):
    """(min inclusive, max exclusive) for a review queue bucket, None if unknown"""
    return RISK_LEVELS.get(level)
