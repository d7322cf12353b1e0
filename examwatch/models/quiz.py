"""
Quiz definition model

A quiz is the immutable-once-attempted description of a proctored exam:
its question set, scheduling window, scoring policy and proctoring
settings. Questions are stored as a JSON list on the quiz row; each entry is

    {"id", "type", "question", "options": [{"text", "is_correct"}],
     "explanation", "points", "time_limit"}
"""
from datetime import datetime
import copy
import enum
import random
import uuid
from examwatch import db
from examwatch.models.user import generate_uuid


class QuizStatus(enum.Enum):
    """Quiz lifecycle states"""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    ENDED = "ended"
    CANCELLED = "cancelled"


DEFAULT_PROCTORING_SETTINGS = {
    "face_detection": True,
    "tab_switching_detection": True,
    "audio_monitoring": True,
    "screen_recording": False,
    "room_scan": True,
    "multiple_person_detection": True,
    "browser_lockdown": True,
    "allowed_tab_switches": 3,
    "allowed_look_aways": 5,
    "suspicious_behavior_threshold": 3
}

DEFAULT_INSTRUCTIONS = (
    "Read each question carefully and select the best answer. "
    "You cannot go back to previous questions once submitted."
)


def strip_correct_flags(question):
    """Copy of a question with the correctness flags and explanation removed"""
    return {
        "id": question.get("id"),
        "type": question.get("type", "multiple-choice"),
        "question": question.get("question"),
        "options": [{"text": opt.get("text")} for opt in question.get("options", [])],
        "points": question.get("points", 1),
        "time_limit": question.get("time_limit")
    }


class Quiz(db.Model):
    """Proctored quiz scheduled in a classroom"""
    __tablename__ = "quizzes"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    classroom_id = db.Column(db.String(36), db.ForeignKey("classrooms.id"), nullable=False, index=True)
    teacher_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    instructions = db.Column(db.Text, default=DEFAULT_INSTRUCTIONS)
    questions = db.Column(db.JSON, default=list)

    # Scheduling
    scheduled_start_time = db.Column(db.DateTime, nullable=False)
    scheduled_end_time = db.Column(db.DateTime, nullable=False)
    duration = db.Column(db.Integer, nullable=False)  # minutes

    # Scoring policy
    total_points = db.Column(db.Integer, default=0)
    passing_score = db.Column(db.Integer, default=60)  # percentage
    shuffle_questions = db.Column(db.Boolean, default=True)
    shuffle_options = db.Column(db.Boolean, default=True)
    show_results = db.Column(db.Boolean, default=False)
    allow_review = db.Column(db.Boolean, default=False)
    attempts = db.Column(db.Integer, default=1)

    # Proctoring
    is_proctored = db.Column(db.Boolean, default=True)
    proctoring_settings = db.Column(db.JSON, default=lambda: dict(DEFAULT_PROCTORING_SETTINGS))

    status = db.Column(db.String(20), default=QuizStatus.DRAFT.value, index=True)
    difficulty = db.Column(db.String(10), default="medium")
    tags = db.Column(db.JSON, default=list)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    classroom = db.relationship("Classroom", backref="quizzes")
    teacher = db.relationship("User", foreign_keys=[teacher_id])

    def set_questions(self, questions):
        """Replace the question set, assigning ids and recomputing total points"""
        normalized = []
        for q in questions or []:
            item = copy.deepcopy(q)
            item["id"] = str(item.get("id") or uuid.uuid4())
            item.setdefault("type", "multiple-choice")
            item.setdefault("explanation", "")
            item.setdefault("time_limit", 60)
            item["points"] = item.get("points", 1)
            item["options"] = [
                {"text": opt.get("text"), "is_correct": bool(opt.get("is_correct", False))}
                for opt in item.get("options", [])
            ]
            normalized.append(item)
        self.questions = normalized
        self.recalculate_total_points()

    def recalculate_total_points(self):
        self.total_points = sum((q.get("points") or 0) for q in (self.questions or []))
        return self.total_points

    def can_attempt(self, now=None):
        """Quiz is scheduled and ``now`` falls inside its window"""
        now = now or datetime.utcnow()
        return (
            self.status == QuizStatus.SCHEDULED.value
            and self.scheduled_start_time <= now <= self.scheduled_end_time
        )

    @property
    def duration_formatted(self):
        hours, minutes = divmod(self.duration or 0, 60)
        return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"

    def get_shuffled_questions(self, rng=None):
        """
        Deep copy of the question set, shuffled according to policy.

        Question order and option order are shuffled independently
        (``random.shuffle`` is a uniform Fisher-Yates shuffle).
        """
        rng = rng or random
        questions = copy.deepcopy(self.questions or [])

        if self.shuffle_questions:
            rng.shuffle(questions)

        if self.shuffle_options:
            for question in questions:
                rng.shuffle(question["options"])

        return questions

    def to_dict(self, include_answers=True):
        data = {
            "id": self.id,
            "classroom_id": self.classroom_id,
            "teacher_id": self.teacher_id,
            "title": self.title,
            "description": self.description,
            "instructions": self.instructions,
            "scheduled_start_time": self.scheduled_start_time.isoformat() if self.scheduled_start_time else None,
            "scheduled_end_time": self.scheduled_end_time.isoformat() if self.scheduled_end_time else None,
            "duration": self.duration,
            "duration_formatted": self.duration_formatted,
            "total_points": self.total_points,
            "passing_score": self.passing_score,
            "shuffle_questions": self.shuffle_questions,
            "shuffle_options": self.shuffle_options,
            "show_results": self.show_results,
            "allow_review": self.allow_review,
            "attempts": self.attempts,
            "is_proctored": self.is_proctored,
            "proctoring_settings": self.proctoring_settings,
            "status": self.status,
            "difficulty": self.difficulty,
            "tags": self.tags or [],
            "question_count": len(self.questions or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }

        if include_answers:
            data["questions"] = self.questions or []
        else:
            data["questions"] = [strip_correct_flags(q) for q in (self.questions or [])]

        return data
