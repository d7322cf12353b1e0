"""
Quiz Validator - validates quiz definition payloads

Validates:
- Title and scheduling window (ISO-8601, start before end)
- Duration, attempts and passing score ranges
- Each question (text, options, at least one correct option, points)
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from dataclasses import dataclass, field

from examwatch.models.quiz import DEFAULT_PROCTORING_SETTINGS

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration
# ============================================================================

MAX_TITLE_LENGTH = 200
MIN_DURATION = 1          # minutes
MAX_DURATION = 480
MIN_ATTEMPTS = 1
MAX_ATTEMPTS = 5
MIN_OPTIONS = 2
DIFFICULTIES = ("easy", "medium", "hard")

# Fields a teacher may change with PUT
UPDATABLE_FIELDS = (
    "title", "description", "instructions", "questions",
    "scheduled_start_time", "scheduled_end_time", "duration",
    "passing_score", "shuffle_questions", "shuffle_options",
    "show_results", "allow_review", "attempts", "is_proctored",
    "proctoring_settings", "difficulty", "tags",
)

BOOLEAN_FIELDS = (
    "shuffle_questions", "shuffle_options", "show_results",
    "allow_review", "is_proctored",
)


# ============================================================================
# Quiz Validator
# ============================================================================

@dataclass
class ValidationResult:
    """Result of quiz payload validation"""
    valid: bool
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


def parse_datetime(value) -> Optional[datetime]:
    """ISO-8601 string to naive UTC datetime, None if unparseable"""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class QuizValidator:
    """
    Quiz definition validation.

    Usage:
        validator = QuizValidator()
        result = validator.validate(request.get_json())

        if not result.valid:
            raise ValidationError(result.error)
        # result.data holds the cleaned fields
    """

    def validate_question(self, index: int, question: Any) -> Optional[str]:
        """Error message for one question, None when valid"""
        label = f"Question {index + 1}"

        if not isinstance(question, dict):
            return f"{label} must be an object"

        text = question.get("question")
        if not isinstance(text, str) or not text.strip():
            return f"{label}: question text is required"

        options = question.get("options")
        if not isinstance(options, list) or len(options) < MIN_OPTIONS:
            return f"{label}: at least {MIN_OPTIONS} options are required"

        for option in options:
            if not isinstance(option, dict) or not isinstance(option.get("text"), str) or not option["text"].strip():
                return f"{label}: every option needs text"

        if not any(option.get("is_correct") for option in options):
            return f"{label}: at least one option must be correct"

        points = question.get("points", 1)
        if not _is_int(points) or points < 0:
            return f"{label}: points must be a non-negative integer"

        time_limit = question.get("time_limit")
        if time_limit is not None and (not _is_int(time_limit) or time_limit <= 0):
            return f"{label}: time_limit must be a positive integer"

        return None

    def validate_questions(self, questions: Any) -> Optional[str]:
        if not isinstance(questions, list):
            return "questions must be a list"
        seen_ids = set()
        for index, question in enumerate(questions):
            error = self.validate_question(index, question)
            if error:
                return error
            # Answers are keyed by question id, so ids must be unique
            if question.get("id"):
                question_id = str(question["id"])
                if question_id in seen_ids:
                    return f"Question {index + 1}: duplicate question id {question_id}"
                seen_ids.add(question_id)
        return None

    def validate(self, payload: Any, partial: bool = False, existing=None) -> ValidationResult:
        """
        Validate a create (``partial=False``) or update (``partial=True``)
        payload.

        For updates, ``existing`` is the stored quiz; scheduling fields not in
        the payload are taken from it so the window is still checked as a
        whole.
        """
        if not isinstance(payload, dict):
            return ValidationResult(valid=False, error="Request body must be a JSON object")

        data: Dict[str, Any] = {}

        # Title
        if "title" in payload or not partial:
            title = payload.get("title")
            if not isinstance(title, str) or not title.strip():
                return ValidationResult(valid=False, error="Title is required")
            if len(title) > MAX_TITLE_LENGTH:
                return ValidationResult(valid=False, error=f"Title must be at most {MAX_TITLE_LENGTH} characters")
            data["title"] = title.strip()

        for text_field in ("description", "instructions"):
            if text_field in payload:
                value = payload[text_field]
                if value is not None and not isinstance(value, str):
                    return ValidationResult(valid=False, error=f"{text_field} must be a string")
                data[text_field] = value

        # Scheduling
        for time_field in ("scheduled_start_time", "scheduled_end_time"):
            if time_field in payload or not partial:
                parsed = parse_datetime(payload.get(time_field))
                if parsed is None:
                    return ValidationResult(valid=False, error=f"{time_field} must be an ISO-8601 datetime")
                data[time_field] = parsed

        start = data.get("scheduled_start_time") or (existing.scheduled_start_time if existing else None)
        end = data.get("scheduled_end_time") or (existing.scheduled_end_time if existing else None)
        if start and end and start >= end:
            return ValidationResult(valid=False, error="scheduled_start_time must be before scheduled_end_time")

        if "duration" in payload or not partial:
            duration = payload.get("duration")
            if not _is_int(duration) or not MIN_DURATION <= duration <= MAX_DURATION:
                return ValidationResult(
                    valid=False,
                    error=f"duration must be between {MIN_DURATION} and {MAX_DURATION} minutes"
                )
            data["duration"] = duration

        # Scoring policy
        if "attempts" in payload:
            attempts = payload["attempts"]
            if not _is_int(attempts) or not MIN_ATTEMPTS <= attempts <= MAX_ATTEMPTS:
                return ValidationResult(valid=False, error=f"attempts must be between {MIN_ATTEMPTS} and {MAX_ATTEMPTS}")
            data["attempts"] = attempts

        if "passing_score" in payload:
            passing_score = payload["passing_score"]
            if not _is_number(passing_score) or not 0 <= passing_score <= 100:
                return ValidationResult(valid=False, error="passing_score must be between 0 and 100")
            data["passing_score"] = int(passing_score)

        for flag in BOOLEAN_FIELDS:
            if flag in payload:
                if not isinstance(payload[flag], bool):
                    return ValidationResult(valid=False, error=f"{flag} must be a boolean")
                data[flag] = payload[flag]

        if "proctoring_settings" in payload:
            settings = payload["proctoring_settings"]
            if not isinstance(settings, dict):
                return ValidationResult(valid=False, error="proctoring_settings must be an object")
            unknown = sorted(set(settings) - set(DEFAULT_PROCTORING_SETTINGS))
            if unknown:
                return ValidationResult(valid=False, error=f"Unknown proctoring settings: {', '.join(unknown)}")
            merged = dict(existing.proctoring_settings or {}) if existing else dict(DEFAULT_PROCTORING_SETTINGS)
            merged.update(settings)
            data["proctoring_settings"] = merged

        if "difficulty" in payload:
            if payload["difficulty"] not in DIFFICULTIES:
                return ValidationResult(valid=False, error=f"difficulty must be one of {', '.join(DIFFICULTIES)}")
            data["difficulty"] = payload["difficulty"]

        if "tags" in payload:
            tags = payload["tags"]
            if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
                return ValidationResult(valid=False, error="tags must be a list of strings")
            data["tags"] = tags

        # Questions
        if "questions" in payload or not partial:
            questions = payload.get("questions", [])
            error = self.validate_questions(questions)
            if error:
                return ValidationResult(valid=False, error=error)
            data["questions"] = questions

        unexpected = sorted(set(payload) - set(UPDATABLE_FIELDS) - {"publish"})
        if unexpected:
            logger.debug(f"Ignoring unknown quiz fields: {unexpected}")

        return ValidationResult(valid=True, data=data)


# Singleton
_validator: Optional[QuizValidator] = None


def get_quiz_validator() -> QuizValidator:
    """Get or create quiz validator singleton"""
    global _validator
    if _validator is None:
        _validator = QuizValidator()
    return _validator
