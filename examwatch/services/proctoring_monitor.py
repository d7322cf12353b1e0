"""
Proctoring Monitor - ingests violation events and client telemetry

Each violation is appended to the session's log, bumps the matching counter
in the proctoring aggregate, and the risk score is recomputed from scratch.
When risk crosses the termination threshold (or two critical violations
have been seen) the attempt is ended immediately and flagged for review.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from examwatch import db
from examwatch.models.quiz_session import (
    QuizSession, ViolationType, Severity, default_proctoring_data
)
from examwatch.services.errors import ValidationError
from examwatch.services.risk_scoring import (
    compute_risk_score, count_critical, should_terminate, WARNING_THRESHOLD
)
from examwatch.services.session_events import get_session_events
from examwatch.services.session_lifecycle import ensure_in_progress, finalize_session
from examwatch.utils.proctor_logging import log_violation, log_session_terminated

logger = logging.getLogger(__name__)

VIOLATION_WARNING = "Multiple violations detected. Please follow exam guidelines."

# Aggregate fields the client may report directly, with their expected types
PROCTORING_FIELD_TYPES = {
    "face_detected": bool,
    "multiple_faces_detected": bool,
    "face_confidence": (int, float),
    "tab_switches": int,
    "look_away_count": int,
    "look_away_duration": (int, float),
    "suspicious_movements": int,
    "speech_detected": bool,
    "multiple_voices_detected": bool,
    "noise_level": (int, float),
    "room_scan_completed": bool,
    "environment_flags": list,
    "fullscreen_exited": int,
    "right_click_attempts": int,
    "keyboard_shortcuts": int,
    "camera_enabled": bool,
    "microphone_enabled": bool,
    "screen_recording_enabled": bool,
}

# Counter bumped by each violation kind
_INCREMENTS = {
    ViolationType.TAB_SWITCH.value: "tab_switches",
    ViolationType.LOOK_AWAY.value: "look_away_count",
    ViolationType.FULLSCREEN_EXIT.value: "fullscreen_exited",
    ViolationType.RIGHT_CLICK.value: "right_click_attempts",
    ViolationType.KEYBOARD_SHORTCUT.value: "keyboard_shortcuts",
    ViolationType.SUSPICIOUS_BEHAVIOR.value: "suspicious_movements",
}

# Flag set by each violation kind
_FLAGS = {
    ViolationType.MULTIPLE_FACES.value: ("multiple_faces_detected", True),
    ViolationType.NO_FACE_DETECTED.value: ("face_detected", False),
    ViolationType.SPEECH_DETECTED.value: ("speech_detected", True),
    ViolationType.MULTIPLE_VOICES.value: ("multiple_voices_detected", True),
    ViolationType.CAMERA_DISABLED.value: ("camera_enabled", False),
    ViolationType.MICROPHONE_DISABLED.value: ("microphone_enabled", False),
}


def apply_violation_to_aggregate(data: Optional[Dict[str, Any]], violation: Dict[str, Any]) -> Dict[str, Any]:
    """New aggregate with the violation's category counted"""
    updated = default_proctoring_data()
    updated.update(data or {})

    kind = violation["type"]
    extra = violation.get("additional_data") or {}

    if kind in _INCREMENTS:
        field = _INCREMENTS[kind]
        updated[field] = (updated.get(field) or 0) + 1

    if kind in _FLAGS:
        field, value = _FLAGS[kind]
        updated[field] = value

    if kind == ViolationType.LOOK_AWAY.value:
        duration = extra.get("duration")
        if isinstance(duration, (int, float)) and not isinstance(duration, bool) and duration > 0:
            updated["look_away_duration"] = (updated.get("look_away_duration") or 0) + duration

    if kind == ViolationType.ENVIRONMENT_FLAG.value:
        updated["environment_flags"] = list(updated.get("environment_flags") or []) + [
            extra.get("flag") or violation.get("description")
        ]

    return updated


def build_violation(session: QuizSession, payload: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Validate a reported violation and shape the log entry"""
    payload = payload or {}

    kind = payload.get("type")
    if kind not in {v.value for v in ViolationType}:
        raise ValidationError(f"Unknown violation type: {kind}")

    severity = payload.get("severity") or Severity.MEDIUM.value
    if severity not in {s.value for s in Severity}:
        raise ValidationError(f"Unknown severity: {severity}")

    description = payload.get("description")
    if not description or not isinstance(description, str):
        raise ValidationError("description is required")

    question_number = payload.get("question_number")
    if question_number is None:
        question_number = (session.current_question_index or 0) + 1
    elif isinstance(question_number, bool) or not isinstance(question_number, int):
        raise ValidationError("question_number must be an integer")

    additional_data = payload.get("additional_data") or {}
    if not isinstance(additional_data, dict):
        raise ValidationError("additional_data must be an object")

    return {
        "id": str(uuid.uuid4()),
        "type": kind,
        "severity": severity,
        "description": description,
        "question_number": question_number,
        "additional_data": additional_data,
        "timestamp": now.isoformat(),
        "resolved": False
    }


def add_violation(session: QuizSession, payload: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Record a violation, recompute risk and escalate if needed.

    Returns:
        {"violation", "risk_score", "violation_count", "terminated", "warning"}
    """
    now = now or datetime.utcnow()

    violation = build_violation(session, payload, now)
    ensure_in_progress(session, now)

    session.violations = list(session.violations or []) + [violation]
    session.violation_count = len(session.violations)
    session.proctoring_data = apply_violation_to_aggregate(session.proctoring_data, violation)
    session.risk_score = compute_risk_score(session.violations, session.proctoring_data)

    terminated = should_terminate(session.risk_score, session.violations)
    if terminated:
        finalize_session(session, now, force_flag=True)

    db.session.commit()

    log_violation(session.id, violation["type"], violation["severity"], session.risk_score)

    events = get_session_events()
    events.notify_quiz_monitors(session.quiz_id, "session.violation", {
        "session_id": session.id,
        "student_id": session.student_id,
        "violation": violation,
        "risk_score": session.risk_score
    })

    if terminated:
        critical = count_critical(session.violations)
        log_session_terminated(session.id, session.risk_score, critical)
        payload = {"risk_score": session.risk_score, "critical_violations": critical}
        events.notify_session_event(session.id, "session.terminated", payload)
        events.notify_quiz_monitors(session.quiz_id, "session.flagged", dict(
            payload, session_id=session.id, student_id=session.student_id
        ))

    return {
        "violation": violation,
        "risk_score": session.risk_score,
        "violation_count": session.violation_count,
        "terminated": terminated,
        "warning": VIOLATION_WARNING if session.risk_score >= WARNING_THRESHOLD and not terminated else None
    }


def update_proctoring_data(session: QuizSession, updates: Dict[str, Any], now: Optional[datetime] = None) -> QuizSession:
    """
    Merge client telemetry into the aggregate.

    Only known keys are accepted and each must carry the expected type;
    the whole update is rejected otherwise. Risk is recomputed but this
    path never terminates an attempt on its own.
    """
    now = now or datetime.utcnow()

    if not isinstance(updates, dict):
        raise ValidationError("proctoring_data must be an object")

    unknown = sorted(set(updates) - set(PROCTORING_FIELD_TYPES))
    if unknown:
        raise ValidationError(f"Unknown proctoring fields: {', '.join(unknown)}")

    for key, value in updates.items():
        expected = PROCTORING_FIELD_TYPES[key]
        bool_mismatch = isinstance(value, bool) and expected is not bool
        if bool_mismatch or not isinstance(value, expected):
            raise ValidationError(f"Invalid value for {key}")

    ensure_in_progress(session, now)

    merged = default_proctoring_data()
    merged.update(session.proctoring_data or {})
    merged.update(updates)

    session.proctoring_data = merged
    session.risk_score = compute_risk_score(session.violations, session.proctoring_data)
    db.session.commit()

    logger.debug(f"Proctoring data updated for session {session.id}: {sorted(updates)}")
    return session
