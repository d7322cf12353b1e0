"""
Review Routes - teacher review queue and decisions for quiz sessions
"""
from flask import Blueprint, request, jsonify, g
from examwatch.services.authorization_service import require_permission, Permissions
from examwatch.services import review_workflow
from examwatch.services.session_lifecycle import get_session_or_404

review_bp = Blueprint("review", __name__, url_prefix="/api")


def review_queue_item(session):
    data = session.to_dict(include_correct_answers=False, include_proctoring=False)
    data["violation_summary"] = session.violation_summary
    data["student"] = session.student.to_summary() if session.student else None
    data["quiz"] = {
        "id": session.quiz.id,
        "title": session.quiz.title,
        "total_points": session.quiz.total_points
    } if session.quiz else None
    return data


@review_bp.route("/classrooms/<classroom_id>/sessions/review", methods=["GET"])
@require_permission(Permissions.SESSION_REVIEW)
def list_sessions_for_review(classroom_id):
    """Sessions in a classroom, riskiest first"""
    sessions, total, page, pages = review_workflow.list_sessions_for_review(
        classroom_id,
        g.current_user,
        status=request.args.get("status", "all"),
        risk_level=request.args.get("risk_level", "all"),
        page=request.args.get("page", 1),
        limit=request.args.get("limit", 20)
    )

    return jsonify({
        "sessions": [review_queue_item(s) for s in sessions],
        "total": total,
        "page": page,
        "pages": pages
    }), 200


@review_bp.route("/sessions/<session_id>/review", methods=["POST"])
@require_permission(Permissions.SESSION_REVIEW)
def review_session(session_id):
    session = get_session_or_404(session_id)
    data = request.get_json(silent=True) or {}

    review_workflow.review_session(
        session,
        g.current_user,
        data.get("decision"),
        notes=data.get("notes"),
        score_adjustment=data.get("score_adjustment")
    )

    return jsonify({
        "message": "Session reviewed successfully",
        "session": {
            "id": session.id,
            "student": session.student.display_name if session.student else None,
            "decision": session.final_decision,
            "final_score": session.percentage,
            "passed": session.passed,
            "status": session.status
        }
    }), 200


@review_bp.route("/sessions/<session_id>/details", methods=["GET"])
@require_permission(Permissions.SESSION_REVIEW)
def get_session_details(session_id):
    """Everything about a session, for the teacher who owns the quiz"""
    session = get_session_or_404(session_id)
    review_workflow.get_session_details(session, g.current_user)

    data = session.to_review_dict()
    data["quiz"] = session.quiz.to_dict(include_answers=True)

    return jsonify({"session": data}), 200
