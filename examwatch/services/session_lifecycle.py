"""
Session Lifecycle Manager

Owns the attempt state machine:

    not_started -> in_progress -> submitted | flagged -> under_review -> completed
                                                      \\-> cancelled

Timing is server-authoritative. ``time_remaining`` is fixed at start and the
live value is always derived from ``started_at``; client-reported elapsed
time is stored for analytics only. There is no background timer: any read
of an in-progress session whose time has run out submits it first.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func

from examwatch import db
from examwatch.models.quiz import Quiz
from examwatch.models.quiz_session import (
    QuizSession, SessionStatus, ReviewStatus, FINALIZED_STATUSES,
    default_proctoring_data
)
from examwatch.services.authorization_service import get_authorization_service
from examwatch.services.errors import ForbiddenError, InvalidTransitionError, NotFoundError
from examwatch.services.risk_scoring import compute_risk_score, should_flag
from examwatch.services.scoring import compute_score
from examwatch.services.session_events import get_session_events
from examwatch.utils.proctor_logging import log_session_start, log_session_end

logger = logging.getLogger(__name__)


# ============================================================================
# Lookups
# ============================================================================

def get_quiz_or_404(quiz_id: str) -> Quiz:
    quiz = db.session.get(Quiz, quiz_id)
    if not quiz:
        raise NotFoundError("Quiz not found")
    return quiz


def get_session_or_404(session_id: str) -> QuizSession:
    session = db.session.get(QuizSession, session_id)
    if not session:
        raise NotFoundError("Session not found")
    return session


def get_student_session(session_id: str, student) -> QuizSession:
    """Session owned by ``student``; other students get a 404, not a 403"""
    session = get_session_or_404(session_id)
    if not get_authorization_service().is_session_student(student, session):
        raise NotFoundError("Session not found")
    return session


def find_active_session(quiz_id: str, student_id: str) -> Optional[QuizSession]:
    return QuizSession.query.filter_by(
        quiz_id=quiz_id,
        student_id=student_id,
        status=SessionStatus.IN_PROGRESS.value
    ).first()


def count_attempts(quiz_id: str, student_id: str) -> int:
    """Attempts that count toward the cap; cancelled sessions are excluded"""
    return QuizSession.query.filter(
        QuizSession.quiz_id == quiz_id,
        QuizSession.student_id == student_id,
        QuizSession.status != SessionStatus.CANCELLED.value
    ).count()


def next_attempt_number(quiz_id: str, student_id: str) -> int:
    highest = db.session.query(func.max(QuizSession.attempt_number)).filter(
        QuizSession.quiz_id == quiz_id,
        QuizSession.student_id == student_id
    ).scalar()
    return (highest or 0) + 1


# ============================================================================
# Timing
# ============================================================================

def elapsed_seconds(session: QuizSession, now: Optional[datetime] = None) -> int:
    if not session.started_at:
        return 0
    now = now or datetime.utcnow()
    return max(0, math.floor((now - session.started_at).total_seconds()))


def compute_remaining_time(session: QuizSession, now: Optional[datetime] = None) -> int:
    """max(0, time_remaining - floor(now - started_at))"""
    return max(0, (session.time_remaining or 0) - elapsed_seconds(session, now))


def session_deadline(session: QuizSession) -> Optional[datetime]:
    if not session.started_at:
        return None
    return session.started_at + timedelta(seconds=session.time_remaining or 0)


def initial_time_remaining(quiz: Quiz, now: datetime) -> int:
    """min(duration, seconds until the window closes)"""
    until_end = math.floor((quiz.scheduled_end_time - now).total_seconds())
    return max(0, min((quiz.duration or 0) * 60, until_end))


# ============================================================================
# Start
# ============================================================================

def build_snapshot(quiz: Quiz, rng=None):
    """Shuffled copy of the quiz questions, keyed by ``question_id``"""
    return [
        {
            "question_id": q["id"],
            "type": q.get("type", "multiple-choice"),
            "question": q.get("question"),
            "options": [
                {"text": opt.get("text"), "is_correct": bool(opt.get("is_correct"))}
                for opt in q.get("options", [])
            ],
            "points": q.get("points", 1),
            "time_limit": q.get("time_limit"),
            "explanation": q.get("explanation", "")
        }
        for q in quiz.get_shuffled_questions(rng)
    ]


def start_session(
    quiz_id: str,
    student,
    client_metadata: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
    rng=None
) -> QuizSession:
    """
    Start a new attempt for ``student``.

    Raises:
        NotFoundError: quiz does not exist
        ForbiddenError: student is not enrolled in the quiz's classroom
        InvalidTransitionError: an attempt is already running (its id is
            returned in the error), the quiz is outside its window, or the
            attempt cap is reached
    """
    now = now or datetime.utcnow()
    client_metadata = client_metadata or {}

    quiz = get_quiz_or_404(quiz_id)

    if not get_authorization_service().check_classroom_access(student.id, quiz.classroom_id):
        raise ForbiddenError("Access denied to this quiz")

    active = find_active_session(quiz.id, student.id)
    if active is not None:
        expire_if_due(active, now)
        if active.status == SessionStatus.IN_PROGRESS.value:
            raise InvalidTransitionError(
                "You already have an active session for this quiz",
                {"session_id": active.id}
            )

    # Starting on the closing instant would leave no time to answer
    time_remaining = initial_time_remaining(quiz, now)
    if not quiz.can_attempt(now) or time_remaining <= 0:
        raise InvalidTransitionError(
            "Quiz is not available for attempt at this time",
            {
                "available_from": quiz.scheduled_start_time.isoformat(),
                "available_until": quiz.scheduled_end_time.isoformat()
            }
        )

    if count_attempts(quiz.id, student.id) >= (quiz.attempts or 1):
        raise InvalidTransitionError(f"Maximum attempts ({quiz.attempts}) reached for this quiz")

    session = QuizSession(
        quiz_id=quiz.id,
        student_id=student.id,
        classroom_id=quiz.classroom_id,
        status=SessionStatus.IN_PROGRESS.value,
        attempt_number=next_attempt_number(quiz.id, student.id),
        started_at=now,
        time_remaining=time_remaining,
        questions=build_snapshot(quiz, rng),
        answers=[],
        total_points=quiz.total_points or 0,
        is_proctored=quiz.is_proctored,
        proctoring_data=default_proctoring_data(),
        violations=[],
        browser_info=client_metadata.get("browser_info") or {},
        device_fingerprint=client_metadata.get("device_fingerprint"),
        ip_address=client_metadata.get("ip_address")
    )
    db.session.add(session)
    db.session.commit()

    log_session_start(session.id, quiz.id, student.id, session.attempt_number)

    events = get_session_events()
    payload = {
        "quiz_id": quiz.id,
        "student_id": student.id,
        "attempt_number": session.attempt_number,
        "time_remaining": session.time_remaining
    }
    events.notify_session_event(session.id, "session.started", payload)
    events.notify_quiz_monitors(quiz.id, "session.started", dict(payload, session_id=session.id))

    return session


# ============================================================================
# Submit / expiry
# ============================================================================

def finalize_session(session: QuizSession, submitted_at: datetime, force_flag: bool = False):
    """
    Stamp submission time, score the full ledger and settle risk.

    The caller commits. ``force_flag`` is used by proctoring escalation,
    which flags regardless of the final risk score.
    """
    quiz = session.quiz

    session.submitted_at = submitted_at
    session.time_spent = elapsed_seconds(session, submitted_at)

    result = compute_score(
        session.questions,
        session.answers,
        session.total_points,
        quiz.passing_score if quiz else 0
    )
    session.points_earned = result.points_earned
    session.percentage = result.percentage
    session.score = result.percentage
    session.passed = result.passed

    session.risk_score = compute_risk_score(session.violations, session.proctoring_data)

    if force_flag or should_flag(session.risk_score):
        session.status = SessionStatus.FLAGGED.value
        session.review_status = ReviewStatus.NEEDS_MANUAL_REVIEW.value
    else:
        session.status = SessionStatus.SUBMITTED.value

    return session


def submit_session(session: QuizSession, now: Optional[datetime] = None, auto: bool = False) -> QuizSession:
    """
    Finalize an in-progress attempt.

    A second submit is rejected with "already submitted" rather than
    re-scoring. Automatic submits are stamped at the attempt's deadline so
    a late read does not inflate ``time_spent``.
    """
    now = now or datetime.utcnow()

    if session.status in FINALIZED_STATUSES:
        raise InvalidTransitionError("Quiz already submitted", {"status": session.status})
    if session.status != SessionStatus.IN_PROGRESS.value:
        raise InvalidTransitionError("Session is not in progress", {"status": session.status})

    submitted_at = now
    if auto:
        deadline = session_deadline(session)
        if deadline and deadline < now:
            submitted_at = deadline

    finalize_session(session, submitted_at)
    db.session.commit()

    log_session_end(session.id, session.status, session.percentage, session.risk_score, auto=auto)

    events = get_session_events()
    event_type = "session.auto_submitted" if auto else "session.submitted"
    payload = {
        "status": session.status,
        "percentage": session.percentage,
        "risk_score": session.risk_score,
        "violation_count": session.violation_count
    }
    events.notify_session_event(session.id, event_type, payload)
    events.notify_quiz_monitors(session.quiz_id, event_type, dict(payload, session_id=session.id))
    if session.status == SessionStatus.FLAGGED.value:
        events.notify_quiz_monitors(session.quiz_id, "session.flagged", {
            "session_id": session.id,
            "student_id": session.student_id,
            "risk_score": session.risk_score
        })

    return session


def expire_if_due(session: QuizSession, now: Optional[datetime] = None) -> bool:
    """Submit the session if it is running and out of time; True when it did"""
    if session.status != SessionStatus.IN_PROGRESS.value:
        return False
    if compute_remaining_time(session, now) > 0:
        return False

    logger.info(f"Session {session.id} expired, submitting automatically")
    submit_session(session, now=now, auto=True)
    return True


def ensure_in_progress(session: QuizSession, now: Optional[datetime] = None):
    """
    Raise unless the session can still take answers and telemetry.

    An expired session is submitted on the spot and the caller is told so.
    """
    if session.status != SessionStatus.IN_PROGRESS.value:
        raise InvalidTransitionError("Session is not in progress", {"status": session.status})

    if expire_if_due(session, now):
        raise InvalidTransitionError(
            "Session has expired and been automatically submitted",
            {"auto_submitted": True, "status": session.status}
        )


def get_current_session(quiz_id: str, student, now: Optional[datetime] = None):
    """
    The student's running attempt for a quiz.

    Returns:
        (session, auto_submitted); when the attempt had run out of time it is
        submitted before being returned.
    """
    quiz = get_quiz_or_404(quiz_id)
    session = find_active_session(quiz.id, student.id)
    if not session:
        raise NotFoundError("No active session found for this quiz")

    auto_submitted = expire_if_due(session, now)
    return session, auto_submitted


def list_student_sessions(classroom_id: str, student, now: Optional[datetime] = None):
    """A student's attempts in a classroom, newest first, expiring stale ones"""
    if not get_authorization_service().check_classroom_access(student.id, classroom_id):
        raise ForbiddenError("Access denied to this classroom")

    sessions = QuizSession.query.filter_by(
        student_id=student.id,
        classroom_id=classroom_id
    ).order_by(QuizSession.created_at.desc()).all()

    for session in sessions:
        expire_if_due(session, now)

    return sessions
