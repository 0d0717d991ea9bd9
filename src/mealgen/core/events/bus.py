from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, DefaultDict, Deque, Iterable, TypeAlias

import structlog

from mealgen.core.events.base import Event

log = structlog.get_logger()

EventHandler: TypeAlias = Callable[[Event], None]

ALL_EVENTS = "*"


@dataclass(frozen=True)
class Subscription:
    """
    Represents a subscription of a handler to a specific event_type
    ("*" means every event type).
    """

    event_type: str
    handler: EventHandler


class EventBus:
    """
    Deterministic synchronous event bus.

    - publish(event) dispatches to handlers subscribed to event.event_type, then to "*" handlers
    - dispatch order is subscription order
    - run-to-completion: events published from inside a handler are queued and
      dispatched after the current event reached every handler (causal order)
    - failures are fail-fast (raises); the pending queue is dropped
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[str, list[EventHandler]] = defaultdict(list)
        self._pending: Deque[Event] = deque()
        self._dispatching = False

    def subscribe(self, *, event_type: str, handler: EventHandler) -> Subscription:
        if not event_type:
            raise ValueError("event_type must be non-empty")
        self._handlers[event_type].append(handler)
        log.debug("bus.subscribed", event_type=event_type, handler=getattr(handler, "__name__", "handler"))
        return Subscription(event_type=event_type, handler=handler)

    def unsubscribe(self, subscription: Subscription) -> bool:
        handlers = self._handlers.get(subscription.event_type)
        if not handlers or subscription.handler not in handlers:
            return False
        handlers.remove(subscription.handler)
        return True

    def publish(self, event: Event) -> None:
        self.publish_many((event,))

    def publish_many(self, events: Iterable[Event]) -> None:
        """
        Enqueue events as one batch: handlers re-entering the bus during the
        batch are queued behind all of it.
        """
        self._pending.extend(events)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._pending:
                self._dispatch(self._pending.popleft())
        except Exception:
            self._pending.clear()
            raise
        finally:
            self._dispatching = False

    def subscribers_for(self, event_type: str) -> Iterable[EventHandler]:
        return tuple(self._handlers.get(event_type, [])) + tuple(self._handlers.get(ALL_EVENTS, []))

    def _dispatch(self, event: Event) -> None:
        # snapshot: handlers may (un)subscribe while we dispatch
        handlers = self.subscribers_for(event.event_type)
        log.debug(
            "bus.publish",
            event_type=event.event_type,
            sequence=event.sequence,
            handlers=len(handlers),
        )
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                log.exception("bus.handler_failed", event_type=event.event_type, sequence=event.sequence)
                raise
