"""
Answer Ledger - per-question responses inside a running session

At most one answer per question id: a resubmission replaces the earlier
answer in place. Both the single-answer path and the bulk auto-save path
grade through ``scoring.evaluate_answer`` against the session's own
snapshot, never the live quiz.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from examwatch import db
from examwatch.models.quiz_session import QuizSession
from examwatch.services.errors import NotFoundError, ValidationError
from examwatch.services.scoring import evaluate_answer
from examwatch.services.session_lifecycle import ensure_in_progress

logger = logging.getLogger(__name__)


def upsert_answer(answers: List[Dict[str, Any]], entry: Dict[str, Any]) -> List[Dict[str, Any]]:
    """New ledger with ``entry`` replacing any answer for the same question"""
    question_id = str(entry["question_id"])
    updated = list(answers or [])

    for index, existing in enumerate(updated):
        if str(existing.get("question_id")) == question_id:
            updated[index] = entry
            return updated

    updated.append(entry)
    return updated


def build_answer(question: Dict[str, Any], selected_options, time_spent: int, now: datetime) -> Dict[str, Any]:
    is_correct, points_earned = evaluate_answer(question, selected_options)
    return {
        "question_id": str(question["question_id"]),
        "selected_options": [str(opt) for opt in selected_options],
        "is_correct": is_correct,
        "points_earned": points_earned,
        "time_spent": time_spent,
        "submitted_at": now.isoformat()
    }


def _parse_time_spent(value) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValidationError("time_spent must be a non-negative number")
    return int(value)


def submit_answer(
    session: QuizSession,
    question_id,
    selected_options,
    time_spent=None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Record one answer.

    ``time_spent`` is client-reported and stored as-is; it never gates
    anything. Returns the stored ledger entry.
    """
    now = now or datetime.utcnow()

    if question_id is None or str(question_id).strip() == "":
        raise ValidationError("question_id is required")
    if not isinstance(selected_options, list):
        raise ValidationError("selected_options must be a list")
    time_spent = _parse_time_spent(time_spent)

    ensure_in_progress(session, now)

    question = session.find_question(question_id)
    if not question:
        raise NotFoundError("Question not found in this session")

    entry = build_answer(question, selected_options, time_spent, now)
    session.answers = upsert_answer(session.answers, entry)
    db.session.commit()

    logger.debug(f"Answer recorded for session {session.id} question {question_id}")
    return entry


def _option_texts_for(question: Dict[str, Any], value) -> Optional[List[str]]:
    """
    Translate an auto-save value (option index, or list of indexes) into
    option texts from the snapshot. None when any index is out of range.
    """
    indexes = value if isinstance(value, list) else [value]
    options = question.get("options", [])

    texts = []
    for raw in indexes:
        try:
            index = int(raw)
        except (TypeError, ValueError):
            return None
        if index < 0 or index >= len(options):
            return None
        texts.append(str(options[index].get("text")))
    return texts


def save_answers(session: QuizSession, answers: Optional[Dict[str, Any]], now: Optional[datetime] = None):
    """
    Bulk auto-save: ``{question_id: option_index}``.

    Entries for unknown questions or out-of-range indexes are skipped and
    reported; an empty or missing map is a no-op.

    Returns:
        (saved_question_ids, skipped_question_ids)
    """
    now = now or datetime.utcnow()

    if answers is None:
        answers = {}
    if not isinstance(answers, dict):
        raise ValidationError("answers must be an object of question_id -> option index")

    ensure_in_progress(session, now)

    saved, skipped = [], []
    ledger = list(session.answers or [])
    existing = {str(a.get("question_id")): a for a in ledger}

    for question_id, value in answers.items():
        question = session.find_question(question_id)
        texts = _option_texts_for(question, value) if question else None
        if texts is None:
            skipped.append(str(question_id))
            continue

        previous = existing.get(str(question_id)) or {}
        entry = build_answer(question, texts, previous.get("time_spent", 0), now)
        ledger = upsert_answer(ledger, entry)
        saved.append(str(question_id))

    if saved:
        session.answers = ledger
        db.session.commit()

    if skipped:
        logger.info(f"Auto-save for session {session.id} skipped {len(skipped)} entries")

    return saved, skipped

