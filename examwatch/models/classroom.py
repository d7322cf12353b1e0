"""
Classroom and enrollment models

Classroom CRUD lives in the classroom service; these rows are read here to
answer "does this teacher own the classroom" and "is this student enrolled".
"""
from datetime import datetime
from examwatch import db
from examwatch.models.user import generate_uuid


class Classroom(db.Model):
    """Classroom owned by a teacher"""
    __tablename__ = "classrooms"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    name = db.Column(db.String(100), nullable=False)
    subject = db.Column(db.String(100))
    teacher_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    teacher = db.relationship("User", foreign_keys=[teacher_id], backref="created_classrooms")

    def to_summary(self):
        return {
            "id": self.id,
            "name": self.name,
            "subject": self.subject
        }


class StudentClassroom(db.Model):
    """Join table: links students to classrooms"""
    __tablename__ = "student_classrooms"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    student_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    classroom_id = db.Column(db.String(36), db.ForeignKey("classrooms.id"), nullable=False)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)
    is_active = db.Column(db.Boolean, default=True)

    __table_args__ = (
        db.UniqueConstraint('student_id', 'classroom_id', name='unique_student_classroom'),
    )

    student = db.relationship("User", backref="classroom_enrollments")
    classroom = db.relationship("Classroom", backref="student_enrollments")
