"""
Unit Tests for the Kafka session event notifier
"""
from unittest.mock import Mock, patch

from kafka.errors import KafkaError, NoBrokersAvailable

from examwatch.services.session_events import (
    KafkaSessionEventNotifier, NullSessionEventNotifier,
    MONITOR_TOPIC, SESSION_TOPIC, get_session_events, init_session_events
)


class TestKafkaSessionEventNotifier:

    @patch("examwatch.services.session_events.KafkaProducer")
    def test_session_event_published(self, mock_producer_cls):
        producer = Mock()
        mock_producer_cls.return_value = producer
        notifier = KafkaSessionEventNotifier("broker:9092")

        assert notifier.notify_session_event("s-1", "session.started", {"attempt_number": 1}) is True

        kwargs = producer.send.call_args.kwargs
        assert kwargs["topic"] == SESSION_TOPIC
        assert kwargs["key"] == "s-1"
        assert kwargs["value"]["event_type"] == "session.started"
        assert kwargs["value"]["session_id"] == "s-1"
        assert kwargs["value"]["data"] == {"attempt_number": 1}
        producer.send.return_value.get.assert_called_once_with(timeout=10)

    @patch("examwatch.services.session_events.KafkaProducer")
    def test_monitor_event_keyed_by_quiz(self, mock_producer_cls):
        producer = Mock()
        mock_producer_cls.return_value = producer
        notifier = KafkaSessionEventNotifier("broker:9092")

        notifier.notify_quiz_monitors("quiz-9", "session.violation")

        kwargs = producer.send.call_args.kwargs
        assert kwargs["topic"] == MONITOR_TOPIC
        assert kwargs["key"] == "quiz-9"
        assert kwargs["value"]["quiz_id"] == "quiz-9"
        assert kwargs["value"]["data"] == {}

    @patch("examwatch.services.session_events.KafkaProducer")
    def test_producer_created_once(self, mock_producer_cls):
        notifier = KafkaSessionEventNotifier("broker:9092")

        notifier.notify_session_event("s-1", "session.started")
        notifier.notify_session_event("s-1", "session.submitted")

        mock_producer_cls.assert_called_once()

    @patch("examwatch.services.session_events.KafkaProducer")
    def test_broker_unavailable(self, mock_producer_cls):
        mock_producer_cls.side_effect = NoBrokersAvailable()
        notifier = KafkaSessionEventNotifier("broker:9092")

        assert notifier.get_producer() is None
        assert notifier.notify_session_event("s-1", "session.started") is False

    @patch("examwatch.services.session_events.KafkaProducer")
    def test_send_failure_is_reported_not_raised(self, mock_producer_cls):
        producer = Mock()
        producer.send.return_value.get.side_effect = KafkaError("timed out")
        mock_producer_cls.return_value = producer
        notifier = KafkaSessionEventNotifier("broker:9092")

        assert notifier.notify_quiz_monitors("quiz-1", "session.flagged") is False

    @patch("examwatch.services.session_events.KafkaProducer")
    def test_close(self, mock_producer_cls):
        producer = Mock()
        mock_producer_cls.return_value = producer
        notifier = KafkaSessionEventNotifier("broker:9092")
        notifier.get_producer()

        notifier.close()

        producer.close.assert_called_once()
        assert notifier._producer is None


def test_null_notifier_drops_events():
    notifier = NullSessionEventNotifier()

    assert notifier.notify_session_event("s-1", "session.started") is False
    assert notifier.notify_quiz_monitors("q-1", "session.started") is False


class TestInitSessionEvents:

    def test_disabled_uses_null_notifier(self, app):
        assert isinstance(get_session_events(), NullSessionEventNotifier)

    def test_enabled_uses_kafka(self, app):
        app.config["SESSION_EVENTS_ENABLED"] = True
        app.config["KAFKA_BOOTSTRAP_SERVERS"] = "broker:9092"

        notifier = init_session_events(app)

        assert isinstance(notifier, KafkaSessionEventNotifier)
        assert notifier.bootstrap_servers == "broker:9092"
        assert app.extensions["session_events"] is notifier

    def test_explicit_notifier_wins(self, app):
        custom = NullSessionEventNotifier()
        app.config["SESSION_EVENTS_ENABLED"] = True

        assert init_session_events(app, custom) is custom
        assert get_session_events() is custom
