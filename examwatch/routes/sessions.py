"""
Quiz Session Routes - student attempts, answers and proctoring telemetry

Every read of a running session goes through lazy expiry first, so a
student who comes back after the deadline sees the submitted attempt.
"""
from datetime import datetime
from flask import Blueprint, request, jsonify, g
from examwatch.models.quiz_session import SessionStatus
from examwatch.services.authorization_service import require_role, require_permission, Permissions
from examwatch.services.errors import InvalidTransitionError, ValidationError
from examwatch.services import answer_ledger, proctoring_monitor, session_lifecycle

sessions_bp = Blueprint("sessions", __name__, url_prefix="/api")

# Statuses whose results a student may read
RESULT_STATUSES = (
    SessionStatus.SUBMITTED.value,
    SessionStatus.FLAGGED.value,
    SessionStatus.UNDER_REVIEW.value,
    SessionStatus.COMPLETED.value,
)

SCORE_FIELDS = ("score", "percentage", "points_earned", "passed")


def student_session_view(session, now=None):
    """Session as its student sees it: no correctness, live time, gated score"""
    data = session.to_dict(include_correct_answers=False)
    quiz = session.quiz

    if session.status == SessionStatus.IN_PROGRESS.value:
        data["time_remaining"] = session_lifecycle.compute_remaining_time(session, now)
    else:
        data["time_remaining"] = 0
        if not quiz.show_results:
            for key in SCORE_FIELDS:
                data[key] = None

    data["quiz"] = {
        "id": quiz.id,
        "title": quiz.title,
        "duration": quiz.duration,
        "is_proctored": quiz.is_proctored,
        "proctoring_settings": quiz.proctoring_settings
    }
    return data


# ==================== Attempt lifecycle ====================

@sessions_bp.route("/quizzes/<quiz_id>/sessions", methods=["POST"])
@require_role("student")
def start_session(quiz_id):
    """Start a new attempt"""
    data = request.get_json(silent=True) or {}

    browser_info = data.get("browser_info") or {}
    if not isinstance(browser_info, dict):
        raise ValidationError("browser_info must be an object")

    session = session_lifecycle.start_session(
        quiz_id,
        g.current_user,
        client_metadata={
            "browser_info": browser_info,
            "device_fingerprint": data.get("device_fingerprint"),
            "ip_address": request.remote_addr
        }
    )

    return jsonify({
        "message": "Quiz session started successfully",
        "session": student_session_view(session),
        "time_remaining": session.time_remaining
    }), 201


@sessions_bp.route("/quizzes/<quiz_id>/sessions/current", methods=["GET"])
@require_permission(Permissions.SESSION_ATTEMPT)
def get_current_session(quiz_id):
    session, auto_submitted = session_lifecycle.get_current_session(quiz_id, g.current_user)

    response = {
        "session": student_session_view(session),
        "time_remaining": session_lifecycle.compute_remaining_time(session),
        "auto_submitted": auto_submitted
    }
    if auto_submitted:
        response["message"] = "Session automatically submitted due to time limit"

    return jsonify(response), 200


@sessions_bp.route("/sessions/<session_id>/submit", methods=["POST"])
@require_permission(Permissions.SESSION_ATTEMPT)
def submit_session(session_id):
    session = session_lifecycle.get_student_session(session_id, g.current_user)

    # Past the deadline the attempt is submitted as of its deadline
    auto_submitted = session_lifecycle.expire_if_due(session)
    if not auto_submitted:
        session_lifecycle.submit_session(session)

    message = "Quiz submitted successfully"
    if session.status == SessionStatus.FLAGGED.value:
        message += " Your submission is under review due to flagged activities."

    show_results = session.quiz.show_results
    return jsonify({
        "message": message,
        "session_id": session.id,
        "status": session.status,
        "auto_submitted": auto_submitted,
        "score": session.points_earned if show_results else None,
        "total_points": session.total_points,
        "percentage": session.percentage if show_results else None,
        "time_spent": session.time_spent_formatted,
        "risk_score": session.risk_score,
        "violation_count": session.violation_count
    }), 200


# ==================== Answers ====================

@sessions_bp.route("/sessions/<session_id>/answers", methods=["POST"])
@require_permission(Permissions.SESSION_ATTEMPT)
def submit_answer(session_id):
    """Record (or replace) the answer to one question"""
    session = session_lifecycle.get_student_session(session_id, g.current_user)
    data = request.get_json(silent=True) or {}

    answer_ledger.submit_answer(
        session,
        data.get("question_id"),
        data.get("selected_options"),
        data.get("time_spent")
    )

    return jsonify({
        "message": "Answer submitted successfully",
        "answers_count": len(session.answers or []),
        "time_remaining": session_lifecycle.compute_remaining_time(session)
    }), 200


@sessions_bp.route("/sessions/<session_id>/answers", methods=["PUT"])
@require_permission(Permissions.SESSION_ATTEMPT)
def save_answers(session_id):
    """Auto-save: {"answers": {question_id: option_index}}"""
    session = session_lifecycle.get_student_session(session_id, g.current_user)
    data = request.get_json(silent=True) or {}

    saved, skipped = answer_ledger.save_answers(session, data.get("answers"))

    return jsonify({
        "message": "Answers saved successfully",
        "saved": saved,
        "skipped": skipped,
        "answers_count": len(session.answers or [])
    }), 200


# ==================== Proctoring ====================

@sessions_bp.route("/sessions/<session_id>/proctoring", methods=["PUT"])
@require_permission(Permissions.SESSION_ATTEMPT)
def update_proctoring(session_id):
    session = session_lifecycle.get_student_session(session_id, g.current_user)
    data = request.get_json(silent=True) or {}

    proctoring_monitor.update_proctoring_data(session, data.get("proctoring_data"))

    return jsonify({
        "message": "Proctoring data updated",
        "risk_score": session.risk_score
    }), 200


@sessions_bp.route("/sessions/<session_id>/violations", methods=["POST"])
@require_permission(Permissions.SESSION_ATTEMPT)
def report_violation(session_id):
    session = session_lifecycle.get_student_session(session_id, g.current_user)
    data = request.get_json(silent=True) or {}

    outcome = proctoring_monitor.add_violation(session, data)

    if outcome["terminated"]:
        return jsonify({
            "message": "Session terminated due to severe violations",
            "terminated": True,
            "risk_score": outcome["risk_score"],
            "violation_count": outcome["violation_count"]
        }), 200

    return jsonify({
        "message": "Violation reported",
        "terminated": False,
        "risk_score": outcome["risk_score"],
        "violation_count": outcome["violation_count"],
        "warning": outcome["warning"]
    }), 200


# ==================== Student reads ====================

@sessions_bp.route("/sessions/<session_id>/results", methods=["GET"])
@require_permission(Permissions.SESSION_VIEW_OWN)
def get_results(session_id):
    """
    Results of a finished attempt.

    Score and pass/fail only when the quiz shows results; per-question
    answers, correct options and explanations only when it also allows
    review.
    """
    now = datetime.utcnow()
    session = session_lifecycle.get_student_session(session_id, g.current_user)
    session_lifecycle.expire_if_due(session, now)

    if session.status not in RESULT_STATUSES:
        raise InvalidTransitionError(
            "Results are not available for this session",
            {"status": session.status}
        )

    quiz = session.quiz
    result = {
        "session_id": session.id,
        "quiz_title": quiz.title,
        "status": session.status,
        "score": session.percentage if quiz.show_results else None,
        "passed": session.passed if quiz.show_results else None,
        "points_earned": session.points_earned if quiz.show_results else None,
        "total_points": session.total_points,
        "time_spent": session.time_spent_formatted,
        "submitted_at": session.submitted_at.isoformat() if session.submitted_at else None,
        "attempt_number": session.attempt_number,
        "risk_score": session.risk_score,
        "violation_count": session.violation_count,
        "review_status": session.review_status
    }

    if quiz.show_results and quiz.allow_review:
        result["answers"] = [
            {
                "question_id": a.get("question_id"),
                "selected_options": a.get("selected_options", []),
                "is_correct": a.get("is_correct", False),
                "points_earned": a.get("points_earned", 0),
                "time_spent": a.get("time_spent", 0)
            }
            for a in (session.answers or [])
        ]
        result["questions"] = session.questions or []

    return jsonify({"result": result}), 200


@sessions_bp.route("/sessions/<session_id>/student-details", methods=["GET"])
@require_permission(Permissions.SESSION_VIEW_OWN)
def get_student_session_details(session_id):
    now = datetime.utcnow()
    session = session_lifecycle.get_student_session(session_id, g.current_user)
    auto_submitted = session_lifecycle.expire_if_due(session, now)

    return jsonify({
        "session": student_session_view(session, now),
        "auto_submitted": auto_submitted
    }), 200


@sessions_bp.route("/classrooms/<classroom_id>/sessions/student", methods=["GET"])
@require_permission(Permissions.SESSION_VIEW_OWN)
def list_student_sessions(classroom_id):
    now = datetime.utcnow()
    sessions = session_lifecycle.list_student_sessions(classroom_id, g.current_user, now)

    return jsonify({
        "sessions": [student_session_view(s, now) for s in sessions],
        "count": len(sessions)
    }), 200
