"""
Session Event Notifier - Publish quiz session events to Kafka
Topics: quiz-session-events, quiz-monitoring-events

The session services call the notifier synchronously after each state
transition. They never own the connection: the app factory builds one
notifier per app and stores it in ``app.extensions["session_events"]``.
Publishing is best effort; a broker outage is logged and the request
carries on.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from flask import current_app
from kafka import KafkaProducer
from kafka.errors import NoBrokersAvailable

logger = logging.getLogger(__name__)

SESSION_TOPIC = "quiz-session-events"
MONITOR_TOPIC = "quiz-monitoring-events"


class SessionEventNotifier:
    """
    Interface the session services publish through.

    Event types:
    - session.started
    - session.submitted
    - session.auto_submitted
    - session.flagged
    - session.terminated
    - session.violation
    - session.reviewed
    """

    def notify_session_event(self, session_id: str, event_type: str, data: Optional[Dict[str, Any]] = None) -> bool:
        raise NotImplementedError

    def notify_quiz_monitors(self, quiz_id: str, event_type: str, data: Optional[Dict[str, Any]] = None) -> bool:
        raise NotImplementedError


class NullSessionEventNotifier(SessionEventNotifier):
    """Used when event publishing is disabled"""

    def notify_session_event(self, session_id, event_type, data=None):
        logger.debug(f"Session events disabled, dropping {event_type} for session {session_id}")
        return False

    def notify_quiz_monitors(self, quiz_id, event_type, data=None):
        logger.debug(f"Session events disabled, dropping {event_type} for quiz {quiz_id}")
        return False


class KafkaSessionEventNotifier(SessionEventNotifier):
    """Kafka-backed notifier with lazy producer initialization"""

    def __init__(self, bootstrap_servers: str):
        self.bootstrap_servers = bootstrap_servers
        self._producer = None

    def get_producer(self):
        """Get or create the Kafka producer, None while the broker is unreachable"""
        if self._producer is None:
            try:
                self._producer = KafkaProducer(
                    bootstrap_servers=self.bootstrap_servers,
                    value_serializer=lambda v: json.dumps(v, default=str).encode('utf-8'),
                    key_serializer=lambda k: k.encode('utf-8') if k else None,
                    acks='all',
                    retries=3
                )
                logger.info(f"Kafka producer connected to {self.bootstrap_servers}")
            except NoBrokersAvailable:
                logger.warning(f"Kafka not available at {self.bootstrap_servers}, session events will not be published")
                return None
        return self._producer

    def _publish(self, topic: str, key: str, event: Dict[str, Any]) -> bool:
        producer = self.get_producer()
        if not producer:
            return False

        try:
            future = producer.send(topic=topic, key=key, value=event)
            future.get(timeout=10)
            logger.debug(f"Published {event['event_type']} to {topic} ({key})")
            return True
        except Exception as e:
            logger.error(f"Failed to publish {event['event_type']} to {topic}: {e}")
            return False

    def notify_session_event(self, session_id, event_type, data=None):
        event = {
            "event_type": event_type,
            "session_id": session_id,
            "timestamp": datetime.utcnow().isoformat(),
            "data": data or {}
        }
        return self._publish(SESSION_TOPIC, session_id, event)

    def notify_quiz_monitors(self, quiz_id, event_type, data=None):
        event = {
            "event_type": event_type,
            "quiz_id": quiz_id,
            "timestamp": datetime.utcnow().isoformat(),
            "data": data or {}
        }
        return self._publish(MONITOR_TOPIC, quiz_id, event)

    def close(self):
        if self._producer is not None:
            self._producer.close()
            self._producer = None


def init_session_events(app, notifier: Optional[SessionEventNotifier] = None):
    """Attach a notifier to the app; an explicit one wins over config"""
    if notifier is None:
        if app.config.get("SESSION_EVENTS_ENABLED"):
            notifier = KafkaSessionEventNotifier(app.config["KAFKA_BOOTSTRAP_SERVERS"])
        else:
            notifier = NullSessionEventNotifier()

    app.extensions["session_events"] = notifier
    return notifier


def get_session_events() -> SessionEventNotifier:
    """Notifier for the current app"""
    notifier = current_app.extensions.get("session_events")
    if notifier is None:
        notifier = init_session_events(current_app._get_current_object())
    return notifier
