from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Protocol, Sequence

from mealgen.core.events.base import Event
from mealgen.core.events.bus import EventBus, Subscription


EventHandler = Callable[[Event], None]


class EventComponent(Protocol):
    """
    An observer that declares which generation events it wants.
    """

    def subscriptions(self) -> Sequence[tuple[str, EventHandler]]:
        """
        Return (event_type, handler) tuples; "*" subscribes to everything.
        """
        ...


@dataclass(frozen=True, slots=True)
class WiredSubscription:
    component: str
    subscription: Subscription


@dataclass(frozen=True, slots=True)
class RouterWiring:
    """
    What register() wired, in wiring order. unwire() detaches all of it.
    """

    bus: EventBus
    subscriptions: tuple[WiredSubscription, ...]

    @property
    def components(self) -> tuple[str, ...]:
        names: list[str] = []
        for w in self.subscriptions:
            if w.component not in names:
                names.append(w.component)
        return tuple(names)

    def unwire(self) -> int:
        removed = 0
        for w in self.subscriptions:
            if self.bus.unsubscribe(w.subscription):
                removed += 1
        return removed


class EngineRouter:
    """
    Registers observer components onto an EventBus deterministically.

    Determinism rules:
      - components are wired in the order provided
      - each component's subscriptions() order is preserved
    """

    def __init__(self, *, bus: EventBus) -> None:
        self._bus = bus

    def register(self, components: Iterable[EventComponent]) -> RouterWiring:
        wired: list[WiredSubscription] = []
        seen: set[tuple[str, int]] = set()

        for component in components:
            cname = type(component).__name__

            subs = component.subscriptions()
            if not isinstance(subs, Sequence):
                raise TypeError(f"{cname}.subscriptions() must return a Sequence")

            for event_type, handler in subs:
                if not event_type:
                    raise ValueError(f"{cname} produced empty event_type")

                # same handler twice on one event type would double-deliver
                key = (event_type, id(handler))
                if key in seen:
                    raise RuntimeError(f"duplicate subscription detected: component={cname} event_type={event_type}")
                seen.add(key)

                s = self._bus.subscribe(event_type=event_type, handler=handler)
                wired.append(WiredSubscription(component=cname, subscription=s))

        return RouterWiring(bus=self._bus, subscriptions=tuple(wired))
