"""
Domain errors raised by the quiz session services.

Routes never build error responses for these by hand; the app factory
registers a handler that renders ``to_dict()`` with ``status_code``.
"""
from typing import Any, Dict, Optional


class QuizSessionError(Exception):
    """Base class for quiz/session domain errors"""
    kind = "error"
    status_code = 400

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        data = {"error": self.message, "kind": self.kind}
        data.update(self.extra)
        return data


class NotFoundError(QuizSessionError):
    """Session, quiz or question id does not resolve"""
    kind = "not_found"
    status_code = 404


class ForbiddenError(QuizSessionError):
    """Principal is not the session's student or the quiz's teacher"""
    kind = "forbidden"
    status_code = 403


class InvalidTransitionError(QuizSessionError):
    """Operation not allowed in the session's (or quiz's) current state"""
    kind = "invalid_transition"
    status_code = 400


class ValidationError(QuizSessionError):
    """Malformed input, rejected before any state mutation"""
    kind = "validation"
    status_code = 400
