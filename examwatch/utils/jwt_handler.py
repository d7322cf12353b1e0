"""
JWT Token Handler Utilities

Tokens are issued by the external auth service; this module only needs to
verify them (and mint them for internal tooling and tests).
"""
import os
from datetime import datetime, timedelta
from typing import Dict, Any
import jwt


JWT_SECRET = os.getenv("JWT_SECRET", "your-super-secret-key-min-32-chars-here")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRATION_HOURS", "24"))


def create_access_token(user_id: str, role: str) -> str:
    """
    Create an access token for a user.

    Args:
        user_id: The user's UUID string
        role: User role (student, teacher, admin)

    Returns:
        Encoded JWT string
    """
    now = datetime.utcnow()

    payload = {
        "user_id": user_id,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    }

    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.ExpiredSignatureError: Token has expired
        jwt.InvalidTokenError: Token is invalid
    """
    payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])

    # Only check token type if it exists in payload (for backwards compatibility)
    if payload.get("type") and payload.get("type") != "access":
        raise jwt.InvalidTokenError("Invalid token type. Expected access")

    return payload
