"""
Quiz Session model - one row per student attempt

The session row is the unit of consistency: the question snapshot, answer
ledger, proctoring aggregate and violation log are JSON columns on it, so
every operation loads the row, mutates it and commits it in one request.
JSON columns are always reassigned (never mutated in place) so SQLAlchemy
sees the change.
"""
from datetime import datetime
import enum
from examwatch import db
from examwatch.models.user import generate_uuid


class SessionStatus(enum.Enum):
    """Attempt lifecycle states"""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    FLAGGED = "flagged"
    UNDER_REVIEW = "under_review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ReviewStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_MANUAL_REVIEW = "needs_manual_review"


class FinalDecision(enum.Enum):
    """Reviewer decision applied to a session"""
    ACCEPT = "accept"
    REJECT = "reject"
    PARTIAL_CREDIT = "partial_credit"
    RETAKE_REQUIRED = "retake_required"


class ViolationType(enum.Enum):
    """Closed set of proctoring violation kinds reported by clients"""
    TAB_SWITCH = "tab_switch"
    MULTIPLE_FACES = "multiple_faces"
    NO_FACE_DETECTED = "no_face_detected"
    LOOK_AWAY = "look_away"
    SPEECH_DETECTED = "speech_detected"
    MULTIPLE_VOICES = "multiple_voices"
    FULLSCREEN_EXIT = "fullscreen_exit"
    RIGHT_CLICK = "right_click"
    KEYBOARD_SHORTCUT = "keyboard_shortcut"
    SUSPICIOUS_BEHAVIOR = "suspicious_behavior"
    CAMERA_DISABLED = "camera_disabled"
    MICROPHONE_DISABLED = "microphone_disabled"
    ENVIRONMENT_FLAG = "environment_flag"


class Severity(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Sessions no longer accepting answers, violations or a second submit
FINALIZED_STATUSES = (
    SessionStatus.SUBMITTED.value,
    SessionStatus.FLAGGED.value,
    SessionStatus.UNDER_REVIEW.value,
    SessionStatus.COMPLETED.value,
    SessionStatus.CANCELLED.value,
)


def default_proctoring_data():
    return {
        # Face detection
        "face_detected": True,
        "multiple_faces_detected": False,
        "face_confidence": 0,
        # Behaviour
        "tab_switches": 0,
        "look_away_count": 0,
        "look_away_duration": 0,
        "suspicious_movements": 0,
        # Audio
        "speech_detected": False,
        "multiple_voices_detected": False,
        "noise_level": 0,
        # Environment
        "room_scan_completed": False,
        "environment_flags": [],
        # Browser security
        "fullscreen_exited": 0,
        "right_click_attempts": 0,
        "keyboard_shortcuts": 0,
        # Devices
        "camera_enabled": False,
        "microphone_enabled": False,
        "screen_recording_enabled": False
    }


def format_duration(seconds):
    """1h 2m 3s / 2m 3s / 3s"""
    seconds = int(seconds or 0)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


class QuizSession(db.Model):
    """A single student's attempt at a quiz"""
    __tablename__ = "quiz_sessions"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    quiz_id = db.Column(db.String(36), db.ForeignKey("quizzes.id"), nullable=False)
    student_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    classroom_id = db.Column(db.String(36), db.ForeignKey("classrooms.id"), nullable=False)

    status = db.Column(db.String(20), default=SessionStatus.NOT_STARTED.value, nullable=False)
    attempt_number = db.Column(db.Integer, default=1, nullable=False)

    # Timing (seconds)
    started_at = db.Column(db.DateTime)
    submitted_at = db.Column(db.DateTime)
    time_spent = db.Column(db.Integer, default=0)
    time_remaining = db.Column(db.Integer, default=0)

    # Snapshot of the shuffled question set taken at start, and the answer ledger
    questions = db.Column(db.JSON, default=list)
    answers = db.Column(db.JSON, default=list)
    current_question_index = db.Column(db.Integer, default=0)

    # Scoring
    score = db.Column(db.Integer, default=0)
    percentage = db.Column(db.Integer, default=0)
    total_points = db.Column(db.Integer, default=0)
    points_earned = db.Column(db.Integer, default=0)
    passed = db.Column(db.Boolean, default=False)

    # Proctoring
    is_proctored = db.Column(db.Boolean, default=True)
    proctoring_data = db.Column(db.JSON, default=default_proctoring_data)
    violations = db.Column(db.JSON, default=list)
    violation_count = db.Column(db.Integer, default=0)
    risk_score = db.Column(db.Integer, default=0, index=True)

    # Review
    review_status = db.Column(db.String(30), default=ReviewStatus.PENDING.value)
    reviewed_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    reviewed_at = db.Column(db.DateTime)
    review_notes = db.Column(db.Text)
    final_decision = db.Column(db.String(20), default=FinalDecision.ACCEPT.value)

    # Client metadata
    browser_info = db.Column(db.JSON, default=dict)
    ip_address = db.Column(db.String(45))
    device_fingerprint = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    quiz = db.relationship("Quiz")
    student = db.relationship("User", foreign_keys=[student_id])
    reviewer = db.relationship("User", foreign_keys=[reviewed_by])
    classroom = db.relationship("Classroom")

    __table_args__ = (
        db.Index("ix_quiz_sessions_quiz_student", "quiz_id", "student_id"),
        db.Index("ix_quiz_sessions_classroom_status", "classroom_id", "status"),
        db.Index("ix_quiz_sessions_status_review", "status", "review_status"),
    )

    @property
    def time_spent_formatted(self):
        return format_duration(self.time_spent)

    @property
    def violation_summary(self):
        summary = {}
        for violation in self.violations or []:
            summary[violation["type"]] = summary.get(violation["type"], 0) + 1
        return summary

    def find_question(self, question_id):
        """Question from this session's snapshot, or None"""
        question_id = str(question_id)
        return next((q for q in (self.questions or []) if str(q.get("question_id")) == question_id), None)

    def public_questions(self):
        """Snapshot with the correctness flags removed"""
        return [
            {
                "question_id": q.get("question_id"),
                "type": q.get("type", "multiple-choice"),
                "question": q.get("question"),
                "options": [{"text": opt.get("text")} for opt in q.get("options", [])],
                "points": q.get("points", 1),
                "time_limit": q.get("time_limit")
            }
            for q in (self.questions or [])
        ]

    def public_answers(self):
        """Answer ledger without correctness or points"""
        return [
            {
                "question_id": a.get("question_id"),
                "selected_options": a.get("selected_options", []),
                "time_spent": a.get("time_spent", 0),
                "submitted_at": a.get("submitted_at")
            }
            for a in (self.answers or [])
        ]

    def to_dict(self, include_correct_answers=False, include_proctoring=True):
        data = {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "student_id": self.student_id,
            "classroom_id": self.classroom_id,
            "status": self.status,
            "attempt_number": self.attempt_number,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "time_spent": self.time_spent,
            "time_spent_formatted": self.time_spent_formatted,
            "time_remaining": self.time_remaining,
            "questions": self.questions if include_correct_answers else self.public_questions(),
            "answers": (self.answers or []) if include_correct_answers else self.public_answers(),
            "current_question_index": self.current_question_index,
            "score": self.score,
            "percentage": self.percentage,
            "total_points": self.total_points,
            "points_earned": self.points_earned,
            "passed": self.passed,
            "is_proctored": self.is_proctored,
            "risk_score": self.risk_score,
            "violation_count": self.violation_count,
            "review_status": self.review_status,
            "final_decision": self.final_decision,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }

        if include_proctoring:
            data["proctoring_data"] = self.proctoring_data or {}
            data["violations"] = self.violations or []
            data["violation_summary"] = self.violation_summary

        return data

    def to_review_dict(self):
        """Teacher-facing view: everything, plus reviewer details"""
        data = self.to_dict(include_correct_answers=True)
        data.update({
            "reviewed_by": self.reviewer.to_summary() if self.reviewer else None,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "review_notes": self.review_notes,
            "browser_info": self.browser_info or {},
            "ip_address": self.ip_address,
            "device_fingerprint": self.device_fingerprint,
            "student": self.student.to_summary() if self.student else None
        })
        return data
