"""
Observer Pattern – Pipeline Events
===================================
The orchestrator and the scoring engine report progress (request start,
one outcome per provider, scoring results, degraded metrics) on an
:class:`EventBus` instead of calling loggers or UIs directly.

A subscriber is either a plain callable taking an :class:`Event` or any
object with an ``on_event(event)`` method.  Delivery is synchronous and in
subscription order; a subscriber that raises is logged and skipped.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Protocol, Union

logger = logging.getLogger(__name__)


class EventType(Enum):
    AGGREGATION_STARTED = auto()
    PROVIDER_RESPONSE = auto()
    PROVIDER_FAILED = auto()
    PROVIDER_TIMEOUT = auto()
    AGGREGATION_COMPLETE = auto()
    RESPONSES_SCORED = auto()
    SCORING_DEGRADED = auto()


WARNING_EVENTS = frozenset({
    EventType.PROVIDER_FAILED,
    EventType.PROVIDER_TIMEOUT,
    EventType.SCORING_DEGRADED,
})


@dataclass(frozen=True)
class Event:
    """One pipeline event, tagged with the run that produced it."""

    event_type: EventType
    payload: dict[str, Any] = field(default_factory=dict)
    message: str = ""
    run_id: str = ""
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type.name,
            "message": self.message,
            "payload": self.payload,
            "run_id": self.run_id,
            "timestamp": self.timestamp,
        }


class EventObserver(Protocol):
    def on_event(self, event: Event) -> None: ...


Subscriber = Union[Callable[[Event], None], EventObserver]


def _handler(subscriber: Subscriber) -> Callable[[Event], None]:
    return getattr(subscriber, "on_event", subscriber)


class EventBus:
    """Synchronous pub-sub bus.

    Usage::

        bus = EventBus()
        bus.subscribe(EventType.PROVIDER_TIMEOUT, page_on_call)
        bus.subscribe_all(LoggingObserver())
    """

    def __init__(self) -> None:
        self._by_type: dict[EventType, list[Callable[[Event], None]]] = {}
        self._wildcard: list[Callable[[Event], None]] = []

    def subscribe(self, event_type: EventType, subscriber: Subscriber) -> None:
        self._by_type.setdefault(event_type, []).append(_handler(subscriber))

    def subscribe_all(self, subscriber: Subscriber) -> None:
        """Receive every event type, once per event."""
        self._wildcard.append(_handler(subscriber))

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Remove *subscriber* from every list it was registered in."""
        fn = _handler(subscriber)
        self._wildcard = [h for h in self._wildcard if h != fn]
        for event_type, handlers in self._by_type.items():
            self._by_type[event_type] = [h for h in handlers if h != fn]

    def publish(self, event: Event) -> None:
        for fn in (*self._by_type.get(event.event_type, ()), *self._wildcard):
            try:
                fn(event)
            except Exception:
                logger.exception("Subscriber %r raised for %s", fn, event.event_type.name)


class LoggingObserver:
    """Mirror events to :mod:`logging`; failures and timeouts at WARNING."""

    def on_event(self, event: Event) -> None:
        level = logging.WARNING if event.event_type in WARNING_EVENTS else logging.INFO
        prefix = f"[{event.run_id}] " if event.run_id else ""
        logger.log(level, "%s%s: %s", prefix, event.event_type.name, event.message or event.payload)


class EventRecorder:
    """Keep every event it sees, for inspection after a run."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def on_event(self, event: Event) -> None:
        self.events.append(event)

    def types(self) -> list[EventType]:
        return [e.event_type for e in self.events]

    def for_run(self, run_id: str) -> list[Event]:
        return [e for e in self.events if e.run_id == run_id]

    def clear(self) -> None:
        self.events.clear()
