"""
Scoring - pure functions over a session's question snapshot and answer ledger

Scores are always recomputed wholesale from the ledger; nothing here is
accumulated incrementally, so replacing an answer can never leave stale
points behind. None of these functions raise on malformed data: a missing
question or odd option shape simply scores zero.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ScoreResult:
    """Result of scoring an answer ledger"""
    points_earned: int
    total_points: int
    percentage: int
    passed: bool


def correct_option_texts(question: Optional[Dict[str, Any]]) -> set:
    if not question:
        return set()
    return {
        str(opt.get("text"))
        for opt in question.get("options", []) or []
        if isinstance(opt, dict) and opt.get("is_correct")
    }


def evaluate_answer(question: Optional[Dict[str, Any]], selected_options: Iterable[Any]):
    """
    Grade one answer against a snapshot question.

    The selection is correct iff it is exactly the set of options flagged
    correct (same size, same members). This covers single- and multi-select
    questions with one rule.

    Returns:
        (is_correct, points_earned)
    """
    if not question:
        return False, 0

    correct = correct_option_texts(question)
    selected = [str(opt) for opt in (selected_options or [])]

    is_correct = bool(correct) and len(selected) == len(correct) and set(selected) == correct
    points = question.get("points") or 0

    return is_correct, (points if is_correct else 0)


def percentage_of(points_earned: int, total_points: int) -> int:
    """round(earned / total * 100), 0 when there are no points to earn"""
    if not total_points or total_points <= 0:
        return 0
    return int(round(points_earned / total_points * 100))


def compute_score(
    questions: List[Dict[str, Any]],
    answers: List[Dict[str, Any]],
    total_points: int,
    passing_score: int
) -> ScoreResult:
    """
    Score a ledger from scratch.

    Every answer is re-graded against the snapshot rather than trusting the
    stored points, so a ledger written by either the single-answer or the
    bulk path scores identically.
    """
    by_id = {str(q.get("question_id")): q for q in (questions or [])}

    points_earned = 0
    for answer in answers or []:
        question = by_id.get(str(answer.get("question_id")))
        _, points = evaluate_answer(question, answer.get("selected_options"))
        points_earned += points

    percentage = percentage_of(points_earned, total_points)
    passed = percentage >= (passing_score or 0)

    logger.debug(f"Scored ledger: {points_earned}/{total_points} = {percentage}%")

    return ScoreResult(
        points_earned=points_earned,
        total_points=total_points or 0,
        percentage=percentage,
        passed=passed
    )
