import logging

from vetclinic.scheduling.events import APPOINTMENT_CONFIRMED, NotificationEvents, get_event_sink, notification_events


def test_emit_delivers_payload_to_subscribers() -> None:
    sink = NotificationEvents()
    received = []
    sink.subscribe(APPOINTMENT_CONFIRMED, received.append)

    delivered = sink.emit(APPOINTMENT_CONFIRMED, {'appointment_id': 1})

    assert delivered is True
    assert received == [{'appointment_id': 1}]


def test_emit_without_listeners_reports_undelivered() -> None:
    assert NotificationEvents().emit(APPOINTMENT_CONFIRMED, {}) is False


def test_failing_listener_is_logged_and_isolated(caplog) -> None:
    sink = NotificationEvents()
    received = []

    def _broken(payload: dict) -> None:
        raise RuntimeError('smtp timeout')

    sink.subscribe(APPOINTMENT_CONFIRMED, _broken)
    sink.subscribe(APPOINTMENT_CONFIRMED, received.append)

    with caplog.at_level(logging.ERROR, logger='vetclinic.scheduling.events'):
        delivered = sink.emit(APPOINTMENT_CONFIRMED, {'appointment_id': 2})

    assert delivered is False
    assert received == [{'appointment_id': 2}]
    assert 'Notification listener failed for appointment:confirmed' in caplog.text


def test_unsubscribe_stops_delivery() -> None:
    sink = NotificationEvents()
    received = []
    sink.subscribe(APPOINTMENT_CONFIRMED, received.append)
    sink.unsubscribe(APPOINTMENT_CONFIRMED, received.append)

    sink.emit(APPOINTMENT_CONFIRMED, {'appointment_id': 3})

    assert received == []


def test_get_event_sink_returns_shared_instance() -> None:
    assert get_event_sink() is notification_events
