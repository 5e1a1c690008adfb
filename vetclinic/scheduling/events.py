"""In-process notification event sink.

Delivery is best-effort: a failing listener is logged and never propagates to
the operation that emitted the event.
"""

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

APPOINTMENT_PROPOSED = 'appointment:proposed'
APPOINTMENT_CONFIRMED = 'appointment:confirmed'
APPOINTMENT_CANCELLED = 'appointment:cancelled'
APPOINTMENT_COMPLETED = 'appointment:completed'
APPOINTMENT_RESCHEDULED_BY_STAFF = 'appointment:rescheduled_by_staff'
RESCHEDULE_REQUESTED = 'reschedule:requested'
RESCHEDULE_APPROVED = 'reschedule:approved'
RESCHEDULE_REJECTED = 'reschedule:rejected'

Listener = Callable[[dict[str, Any]], None]


class NotificationEvents:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, event_name: str, listener: Listener) -> None:
        self._listeners[event_name].append(listener)

    def unsubscribe(self, event_name: str, listener: Listener) -> None:
        if listener in self._listeners[event_name]:
            self._listeners[event_name].remove(listener)

    def emit(self, event_name: str, payload: dict[str, Any]) -> bool:
        """Deliver ``payload`` to every listener.

        Returns False when nobody is subscribed or when any listener failed.
        """
        listeners = list(self._listeners[event_name])
        if not listeners:
            logger.debug('No listeners for %s', event_name)
            return False

        delivered = True
        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                delivered = False
                logger.exception('Notification listener failed for %s', event_name)
        logger.debug('Emitted %s to %d listener(s)', event_name, len(listeners))
        return delivered


notification_events = NotificationEvents()


def get_event_sink() -> NotificationEvents:
    return notification_events
