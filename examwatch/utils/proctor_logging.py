"""
Proctoring Logger - Logs quiz session lifecycle and proctoring events
"""

import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def log_session_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a quiz session event.

    Args:
        session_id: Quiz session ID
        event_type: Type of event (start, submit, violation, flag, review, etc.)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[PROCTOR] session={session_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    if level == "debug":
        logger.debug(message)
    elif level == "warning":
        logger.warning(message)
    elif level == "error":
        logger.error(message)
    else:
        logger.info(message)


def log_session_start(session_id: str, quiz_id: str, student_id: str, attempt_number: int):
    """Log session start event"""
    log_session_event(
        session_id=session_id,
        event_type="session_start",
        details={
            "quiz_id": quiz_id,
            "student_id": student_id,
            "attempt": attempt_number
        }
    )


def log_session_end(session_id: str, status: str, percentage: int, risk_score: int, auto: bool = False):
    """Log session finalization"""
    log_session_event(
        session_id=session_id,
        event_type="session_auto_submit" if auto else "session_submit",
        details={
            "status": status,
            "percentage": percentage,
            "risk_score": risk_score
        },
        level="warning" if status == "flagged" else "info"
    )


def log_violation(session_id: str, violation_type: str, severity: str, risk_score: int):
    """Log a reported violation"""
    log_session_event(
        session_id=session_id,
        event_type="violation",
        details={
            "type": violation_type,
            "severity": severity,
            "risk_score": risk_score
        },
        level="warning" if severity in ("high", "critical") else "info"
    )


def log_session_terminated(session_id: str, risk_score: int, critical_count: int):
    """Log when proctoring escalation terminates an attempt"""
    log_session_event(
        session_id=session_id,
        event_type="session_terminated",
        details={
            "risk_score": risk_score,
            "critical_violations": critical_count
        },
        level="warning"
    )
