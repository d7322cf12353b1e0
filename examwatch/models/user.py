"""
User model

Accounts are managed by the external auth service; this table mirrors the
fields the quiz service needs to resolve a token's principal.
"""
from datetime import datetime
import uuid
from examwatch import db


def generate_uuid():
    return str(uuid.uuid4())


class User(db.Model):
    """User model for students, teachers and admins"""
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    role = db.Column(db.String(20), nullable=False, default="student")  # admin, teacher, student
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))

    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or self.username

    def to_summary(self):
        """Name/email view used when embedding a user in other payloads"""
        return {
            "id": self.id,
            "name": self.display_name,
            "email": self.email
        }
