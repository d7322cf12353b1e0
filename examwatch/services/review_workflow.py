"""
Review Workflow - teacher overrides of a finished attempt

Only the teacher who owns the quiz may review, and only once: completed and
cancelled sessions are final. A running attempt is scored before the decision
is applied. A review approves the review, records who/when/why, and maps the
decision onto a final state:

    accept, partial_credit -> completed
    reject                 -> completed, score forced to zero
    retake_required        -> cancelled (no longer counts toward attempts)
"""
import logging
from datetime import datetime
from typing import Optional

from examwatch import db
from examwatch.models.quiz_session import (
    QuizSession, SessionStatus, ReviewStatus, FinalDecision
)
from examwatch.services.authorization_service import get_authorization_service
from examwatch.services.errors import ForbiddenError, InvalidTransitionError, ValidationError
from examwatch.services.risk_scoring import risk_level_bounds
from examwatch.services.session_events import get_session_events
from examwatch.services.session_lifecycle import expire_if_due, finalize_session
from examwatch.utils.proctor_logging import log_session_event

logger = logging.getLogger(__name__)

DECISION_STATUS = {
    FinalDecision.ACCEPT.value: SessionStatus.COMPLETED.value,
    FinalDecision.PARTIAL_CREDIT.value: SessionStatus.COMPLETED.value,
    FinalDecision.REJECT.value: SessionStatus.COMPLETED.value,
    FinalDecision.RETAKE_REQUIRED.value: SessionStatus.CANCELLED.value,
}

NEEDS_REVIEW = (ReviewStatus.PENDING.value, ReviewStatus.NEEDS_MANUAL_REVIEW.value)

MAX_PAGE_SIZE = 100


def ensure_quiz_owner(session: QuizSession, reviewer):
    if not get_authorization_service().is_quiz_owner(reviewer, session.quiz):
        raise ForbiddenError("Only the quiz creator can review this session")


def review_session(
    session: QuizSession,
    reviewer,
    decision: str,
    notes: Optional[str] = None,
    score_adjustment=None,
    now: Optional[datetime] = None
) -> QuizSession:
    """
    Apply a reviewer decision.

    ``score_adjustment`` overrides the percentage (clamped to 0-100) and
    re-derives ``passed``; a ``reject`` decision zeroes the score regardless.
    """
    now = now or datetime.utcnow()

    ensure_quiz_owner(session, reviewer)

    if decision not in DECISION_STATUS:
        raise ValidationError(f"Invalid decision: {decision}")
    if notes is not None and not isinstance(notes, str):
        raise ValidationError("notes must be a string")
    if score_adjustment is not None and (
        isinstance(score_adjustment, bool) or not isinstance(score_adjustment, (int, float))
    ):
        raise ValidationError("score_adjustment must be a number")

    if session.status in (SessionStatus.COMPLETED.value, SessionStatus.CANCELLED.value):
        raise InvalidTransitionError("Session has already been reviewed", {"status": session.status})

    # A reviewer opening a stale attempt settles it first
    expire_if_due(session, now)
    if session.status == SessionStatus.IN_PROGRESS.value:
        finalize_session(session, now)

    session.review_status = ReviewStatus.APPROVED.value
    session.reviewed_by = reviewer.id
    session.reviewed_at = now
    session.review_notes = notes or ""
    session.final_decision = decision

    if score_adjustment is not None:
        session.percentage = int(round(max(0, min(100, score_adjustment))))
        session.score = session.percentage
        session.passed = session.percentage >= (session.quiz.passing_score or 0)

    if decision == FinalDecision.REJECT.value:
        session.score = 0
        session.percentage = 0
        session.points_earned = 0
        session.passed = False

    session.status = DECISION_STATUS[decision]
    db.session.commit()

    log_session_event(session.id, "review", {
        "reviewer": reviewer.id,
        "decision": decision,
        "percentage": session.percentage,
        "status": session.status
    })

    events = get_session_events()
    payload = {
        "decision": decision,
        "status": session.status,
        "percentage": session.percentage,
        "passed": session.passed
    }
    events.notify_session_event(session.id, "session.reviewed", payload)
    events.notify_quiz_monitors(session.quiz_id, "session.reviewed", dict(payload, session_id=session.id))

    return session


def _parse_positive_int(value, name, default):
    if value is None or value == "":
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a positive integer")
    if parsed < 1:
        raise ValidationError(f"{name} must be a positive integer")
    return parsed


def list_sessions_for_review(
    classroom_id: str,
    reviewer,
    status: str = "all",
    risk_level: str = "all",
    page=1,
    limit=20
):
    """
    Review queue for a classroom, riskiest first.

    Filters:
        status: ``all``, ``needs_review`` (pending or needing manual review)
            or a concrete session status
        risk_level: ``all``, ``low`` (<30), ``medium`` (30-69), ``high`` (>=70)

    Returns:
        (sessions, total, page, pages)
    """
    if not get_authorization_service().is_classroom_teacher(reviewer, classroom_id):
        raise ForbiddenError("Access denied to this classroom")

    page = _parse_positive_int(page, "page", 1)
    limit = min(_parse_positive_int(limit, "limit", 20), MAX_PAGE_SIZE)

    query = QuizSession.query.filter(QuizSession.classroom_id == classroom_id)

    status = status or "all"
    if status == "needs_review":
        query = query.filter(QuizSession.review_status.in_(NEEDS_REVIEW))
    elif status != "all":
        if status not in {s.value for s in SessionStatus}:
            raise ValidationError(f"Invalid status filter: {status}")
        query = query.filter(QuizSession.status == status)

    risk_level = risk_level or "all"
    if risk_level != "all":
        bounds = risk_level_bounds(risk_level)
        if bounds is None:
            raise ValidationError(f"Invalid risk level: {risk_level}")
        low, high = bounds
        query = query.filter(QuizSession.risk_score >= low, QuizSession.risk_score < high)

    total = query.count()
    sessions = query.order_by(
        QuizSession.risk_score.desc(),
        QuizSession.submitted_at.asc()
    ).offset((page - 1) * limit).limit(limit).all()

    pages = (total + limit - 1) // limit
    return sessions, total, page, pages


def get_session_details(session: QuizSession, reviewer, now: Optional[datetime] = None) -> QuizSession:
    """Full session view for the owning teacher"""
    ensure_quiz_owner(session, reviewer)
    expire_if_due(session, now)
    return session
