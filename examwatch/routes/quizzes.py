"""
Quiz Routes - create, schedule and manage proctored quizzes
"""
from flask import Blueprint, request, jsonify, g
from examwatch.services.authorization_service import require_permission, Permissions
from examwatch.services import quiz_service

quizzes_bp = Blueprint("quizzes", __name__, url_prefix="/api")


# ==================== Teacher: Create & Manage Quizzes ====================

@quizzes_bp.route("/classrooms/<classroom_id>/quizzes", methods=["POST"])
@require_permission(Permissions.QUIZ_CREATE)
def create_quiz(classroom_id):
    """Teacher creates a quiz in one of their classrooms"""
    data = request.get_json(silent=True) or {}

    quiz = quiz_service.create_quiz(classroom_id, g.current_user, data)

    return jsonify({
        "message": "Quiz created successfully",
        "quiz": quiz.to_dict(include_answers=True)
    }), 201


@quizzes_bp.route("/quizzes/<quiz_id>", methods=["PUT"])
@require_permission(Permissions.QUIZ_MANAGE)
def update_quiz(quiz_id):
    """Update a quiz nobody has attempted yet"""
    data = request.get_json(silent=True) or {}

    quiz = quiz_service.update_quiz(quiz_id, g.current_user, data)

    return jsonify({
        "message": "Quiz updated successfully",
        "quiz": quiz.to_dict(include_answers=True)
    }), 200


@quizzes_bp.route("/quizzes/<quiz_id>/publish", methods=["POST"])
@require_permission(Permissions.QUIZ_MANAGE)
def publish_quiz(quiz_id):
    quiz = quiz_service.publish_quiz(quiz_id, g.current_user)

    return jsonify({
        "message": "Quiz published successfully",
        "quiz": quiz.to_dict(include_answers=True)
    }), 200


@quizzes_bp.route("/quizzes/<quiz_id>/end", methods=["POST"])
@require_permission(Permissions.QUIZ_MANAGE)
def end_quiz(quiz_id):
    quiz = quiz_service.end_quiz(quiz_id, g.current_user)

    return jsonify({
        "message": "Quiz ended",
        "quiz": quiz.to_dict(include_answers=True)
    }), 200


@quizzes_bp.route("/quizzes/<quiz_id>", methods=["DELETE"])
@require_permission(Permissions.QUIZ_MANAGE)
def delete_quiz(quiz_id):
    """Delete a quiz, or cancel it if students have finished attempts"""
    outcome = quiz_service.delete_quiz(quiz_id, g.current_user)

    if outcome == quiz_service.OUTCOME_CANCELLED:
        message = "Quiz has completed attempts and was cancelled instead of deleted"
    else:
        message = "Quiz deleted successfully"

    return jsonify({"message": message, "outcome": outcome}), 200


# ==================== Shared: View Quizzes ====================

@quizzes_bp.route("/classrooms/<classroom_id>/quizzes", methods=["GET"])
@require_permission(Permissions.QUIZ_VIEW)
def list_quizzes(classroom_id):
    """Quizzes in a classroom; students only see published ones, without answers"""
    user = g.current_user
    quizzes = quiz_service.list_quizzes(classroom_id, user)
    include_answers = user.role == "teacher"

    return jsonify({
        "quizzes": [q.to_dict(include_answers=include_answers) for q in quizzes],
        "count": len(quizzes)
    }), 200


@quizzes_bp.route("/quizzes/<quiz_id>", methods=["GET"])
@require_permission(Permissions.QUIZ_VIEW)
def get_quiz(quiz_id):
    return jsonify({"quiz": quiz_service.get_quiz_view(quiz_id, g.current_user)}), 200
