"""
Authorization Service - Role-Based Access Control

Tokens are issued elsewhere; this module verifies them and answers the two
questions the quiz session services need:
- is this principal the student who owns this session
- is this principal the teacher who owns this quiz
plus classroom membership checks for starting and listing sessions.
"""
import logging
from typing import Optional
from functools import wraps
from flask import request, jsonify, g
from examwatch import db
from examwatch.models.user import User
from examwatch.models.classroom import Classroom, StudentClassroom
from examwatch.utils.jwt_handler import verify_token

logger = logging.getLogger(__name__)


# ============================================================================
# Permission Definitions
# ============================================================================

class Permissions:
    """Permission constants for RBAC"""
    # Quiz definition permissions
    QUIZ_CREATE = "quiz:create"
    QUIZ_MANAGE = "quiz:manage"
    QUIZ_VIEW = "quiz:view"

    # Session permissions
    SESSION_ATTEMPT = "session:attempt"
    SESSION_VIEW_OWN = "session:view_own"
    SESSION_REVIEW = "session:review"


# Role to permissions mapping
ROLE_PERMISSIONS = {
    "student": [
        Permissions.QUIZ_VIEW,
        Permissions.SESSION_ATTEMPT,
        Permissions.SESSION_VIEW_OWN,
    ],
    "teacher": [
        Permissions.QUIZ_CREATE,
        Permissions.QUIZ_MANAGE,
        Permissions.QUIZ_VIEW,
        Permissions.SESSION_REVIEW,
    ]
}


# ============================================================================
# Authorization Service
# ============================================================================

class AuthorizationService:
    """
    Authorization checks for classrooms, quizzes and sessions.

    Usage:
        auth_service = get_authorization_service()

        if not auth_service.is_session_student(g.current_user, session):
            raise ForbiddenError("Access denied")
    """

    def has_permission(self, user: User, permission: str) -> bool:
        """Check if user has a specific permission"""
        if not user or not user.role:
            return False

        role_perms = ROLE_PERMISSIONS.get(user.role, [])
        return permission in role_perms

    def check_classroom_access(self, user_id: str, classroom_id: str) -> bool:
        """
        Check if user has access to a classroom.

        Teachers have access to classrooms they own, students to classrooms
        they are actively enrolled in.
        """
        user = db.session.get(User, user_id)
        if not user:
            return False

        classroom = db.session.get(Classroom, classroom_id)
        if not classroom:
            return False

        if user.role == "teacher":
            return classroom.teacher_id == user_id

        if user.role == "student":
            enrollment = StudentClassroom.query.filter_by(
                student_id=user_id,
                classroom_id=classroom_id,
                is_active=True
            ).first()
            return enrollment is not None

        return False

    def is_classroom_teacher(self, user: User, classroom_id: str) -> bool:
        if not user or user.role != "teacher":
            return False
        classroom = db.session.get(Classroom, classroom_id)
        return classroom is not None and classroom.teacher_id == user.id

    def is_quiz_owner(self, user: User, quiz) -> bool:
        """Teacher who created the quiz"""
        return bool(user and quiz and user.role == "teacher" and quiz.teacher_id == user.id)

    def is_session_student(self, user: User, session) -> bool:
        """Student who owns the attempt"""
        return bool(user and session and session.student_id == user.id)


# ============================================================================
# Flask Decorators
# ============================================================================

def require_auth(f):
    """Decorator to require authentication"""
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header:
            return jsonify({"error": "Missing authorization header"}), 401

        try:
            parts = auth_header.split()
            if len(parts) != 2 or parts[0].lower() != "bearer":
                return jsonify({"error": "Invalid authorization format"}), 401

            payload = verify_token(parts[1])
        except Exception as e:
            logger.warning(f"Auth failed: {e}")
            return jsonify({"error": f"Invalid token: {str(e)}"}), 401

        user = db.session.get(User, payload.get("user_id"))
        if not user or not user.is_active:
            return jsonify({"error": "User not found"}), 404

        g.current_user = user
        g.user_id = user.id

        return f(*args, **kwargs)
    return decorated


def require_role(*roles):
    """Decorator to require specific roles"""
    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated(*args, **kwargs):
            if g.current_user.role not in roles:
                return jsonify({
                    "error": f"Requires role: {', '.join(roles)}"
                }), 403

            return f(*args, **kwargs)
        return decorated
    return decorator


def require_permission(permission: str):
    """Decorator to require a permission from the role table"""
    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated(*args, **kwargs):
            if not get_authorization_service().has_permission(g.current_user, permission):
                return jsonify({"error": f"Permission denied: {permission}"}), 403

            return f(*args, **kwargs)
        return decorated
    return decorator


# Singleton
_auth_service: Optional[AuthorizationService] = None


def get_authorization_service() -> AuthorizationService:
    """Get or create authorization service singleton"""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthorizationService()
    return _auth_service
