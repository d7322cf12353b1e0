"""
Quiz Service - teacher-side management of quiz definitions

Quiz lifecycle: draft -> scheduled -> active -> ended, or -> cancelled.
Questions and timing are frozen as soon as any session references the quiz;
sessions keep their own snapshot either way.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from examwatch import db
from examwatch.models.quiz import Quiz, QuizStatus
from examwatch.models.quiz_session import QuizSession, SessionStatus
from examwatch.services.authorization_service import get_authorization_service
from examwatch.services.errors import ForbiddenError, InvalidTransitionError, ValidationError
from examwatch.services.session_lifecycle import count_attempts, find_active_session, get_quiz_or_404
from examwatch.validators.quiz_validator import get_quiz_validator

logger = logging.getLogger(__name__)

OUTCOME_DELETED = "deleted"
OUTCOME_CANCELLED = "cancelled"

# Sessions whose results must survive a quiz deletion
_KEEP_ON_DELETE = (SessionStatus.SUBMITTED.value, SessionStatus.COMPLETED.value)


def _apply_fields(quiz: Quiz, data: Dict[str, Any]):
    for key, value in data.items():
        if key == "questions":
            quiz.set_questions(value)
        else:
            setattr(quiz, key, value)


def get_owned_quiz(quiz_id: str, teacher) -> Quiz:
    quiz = get_quiz_or_404(quiz_id)
    if not get_authorization_service().is_quiz_owner(teacher, quiz):
        raise ForbiddenError("Only the quiz creator can manage this quiz")
    return quiz


def create_quiz(classroom_id: str, teacher, payload: Dict[str, Any]) -> Quiz:
    if not get_authorization_service().is_classroom_teacher(teacher, classroom_id):
        raise ForbiddenError("Access denied to this classroom")

    result = get_quiz_validator().validate(payload)
    if not result.valid:
        raise ValidationError(result.error)

    quiz = Quiz(classroom_id=classroom_id, teacher_id=teacher.id)
    _apply_fields(quiz, result.data)
    quiz.status = QuizStatus.SCHEDULED.value if payload.get("publish") else QuizStatus.DRAFT.value

    db.session.add(quiz)
    db.session.commit()

    logger.info(f"Quiz {quiz.id} created in classroom {classroom_id} ({len(quiz.questions)} questions)")
    return quiz


def list_quizzes(classroom_id: str, user):
    """Teachers see every quiz of their classroom, students only published ones"""
    auth = get_authorization_service()
    if not auth.check_classroom_access(user.id, classroom_id):
        raise ForbiddenError("Access denied to this classroom")

    query = Quiz.query.filter_by(classroom_id=classroom_id)
    if user.role != "teacher":
        query = query.filter(Quiz.status != QuizStatus.DRAFT.value)

    return query.order_by(Quiz.scheduled_start_time.asc()).all()


def get_quiz_view(quiz_id: str, user, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Quiz detail.

    The owning teacher gets the full definition. Enrolled students get the
    definition without correctness flags plus their own attempt status.
    """
    now = now or datetime.utcnow()
    quiz = get_quiz_or_404(quiz_id)
    auth = get_authorization_service()

    if auth.is_quiz_owner(user, quiz):
        return quiz.to_dict(include_answers=True)

    if user.role != "student" or not auth.check_classroom_access(user.id, quiz.classroom_id):
        raise ForbiddenError("Access denied to this quiz")
    if quiz.status == QuizStatus.DRAFT.value:
        raise ForbiddenError("Quiz has not been published")

    attempts_used = count_attempts(quiz.id, user.id)
    last_attempt = QuizSession.query.filter_by(
        quiz_id=quiz.id,
        student_id=user.id
    ).order_by(QuizSession.attempt_number.desc()).first()

    data = quiz.to_dict(include_answers=False)
    data.update({
        "user_attempts": attempts_used,
        "can_attempt": (
            quiz.can_attempt(now)
            and attempts_used < (quiz.attempts or 1)
            and find_active_session(quiz.id, user.id) is None
        ),
        "last_attempt": {
            "id": last_attempt.id,
            "status": last_attempt.status,
            "attempt_number": last_attempt.attempt_number,
            "submitted_at": last_attempt.submitted_at.isoformat() if last_attempt.submitted_at else None
        } if last_attempt else None
    })
    return data


def update_quiz(quiz_id: str, teacher, payload: Dict[str, Any]) -> Quiz:
    quiz = get_owned_quiz(quiz_id, teacher)

    if quiz.status in (QuizStatus.ACTIVE.value, QuizStatus.ENDED.value):
        raise InvalidTransitionError(f"Cannot modify a quiz that is {quiz.status}")
    if QuizSession.query.filter_by(quiz_id=quiz.id).count() > 0:
        raise InvalidTransitionError("Cannot modify a quiz that students have already attempted")

    result = get_quiz_validator().validate(payload, partial=True, existing=quiz)
    if not result.valid:
        raise ValidationError(result.error)

    _apply_fields(quiz, result.data)
    db.session.commit()

    logger.info(f"Quiz {quiz.id} updated: {sorted(result.data)}")
    return quiz


def publish_quiz(quiz_id: str, teacher) -> Quiz:
    quiz = get_owned_quiz(quiz_id, teacher)

    if quiz.status != QuizStatus.DRAFT.value:
        raise InvalidTransitionError(f"Only draft quizzes can be published (quiz is {quiz.status})")
    if not quiz.questions:
        raise ValidationError("Cannot publish a quiz without questions")

    quiz.status = QuizStatus.SCHEDULED.value
    db.session.commit()

    logger.info(f"Quiz {quiz.id} published")
    return quiz


def end_quiz(quiz_id: str, teacher) -> Quiz:
    quiz = get_owned_quiz(quiz_id, teacher)

    if quiz.status not in (QuizStatus.SCHEDULED.value, QuizStatus.ACTIVE.value):
        raise InvalidTransitionError(f"Cannot end a quiz that is {quiz.status}")

    quiz.status = QuizStatus.ENDED.value
    db.session.commit()

    logger.info(f"Quiz {quiz.id} ended")
    return quiz


def delete_quiz(quiz_id: str, teacher) -> str:
    """
    Delete a quiz, or cancel it when finished attempts exist.

    Returns:
        ``"deleted"`` (quiz and its sessions removed) or ``"cancelled"``
        (quiz kept with status cancelled so results stay readable)
    """
    quiz = get_owned_quiz(quiz_id, teacher)

    if quiz.status == QuizStatus.ACTIVE.value:
        raise InvalidTransitionError("Cannot delete an active quiz")

    finished = QuizSession.query.filter(
        QuizSession.quiz_id == quiz.id,
        QuizSession.status.in_(_KEEP_ON_DELETE)
    ).count()

    if finished:
        quiz.status = QuizStatus.CANCELLED.value
        db.session.commit()
        logger.info(f"Quiz {quiz.id} cancelled instead of deleted ({finished} finished sessions)")
        return OUTCOME_CANCELLED

    QuizSession.query.filter_by(quiz_id=quiz.id).delete(synchronize_session=False)
    db.session.delete(quiz)
    db.session.commit()

    logger.info(f"Quiz {quiz_id} deleted")
    return OUTCOME_DELETED
