from __future__ import annotations

import logging
import weakref
from collections import deque
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .events import CONCRETE_KINDS, ChangeEvent, ChangeKind, EntityKind

logger = logging.getLogger(__name__)


@runtime_checkable
class Listener(Protocol):
    def on_change(self, event: ChangeEvent) -> None: ...


class StateSource(Protocol):
    """Read side used to replay current state to new listeners."""

    def get_user(self) -> Any: ...

    def all_restaurants(self) -> list[Any]: ...

    def reviews_for(self, restaurant: Any) -> list[Any]: ...

    def chat_history(self) -> list[Any]: ...


@dataclass
class _Registration:
    ref: weakref.ReferenceType
    interests: frozenset[EntityKind]


def _expand(interests: EntityKind | Iterable[EntityKind]) -> frozenset[EntityKind]:
    if isinstance(interests, EntityKind):
        interests = (interests,)
    kinds: set[EntityKind] = set()
    for kind in interests:
        kind = EntityKind(kind)
        if kind is EntityKind.all:
            kinds.update(CONCRETE_KINDS)
        else:
            kinds.add(kind)
    return frozenset(kinds)


class ChangeNotifier:
    """Fans committed changes out to weakly-held listeners.

    Delivery is synchronous, on the publishing thread, in registration
    order. A listener that has been garbage collected is dropped the next
    time the registry is walked.

    Events published from inside a listener are queued and delivered once
    the current event has reached every listener, so every listener sees
    events in commit order. A listener that raises is logged and skipped;
    the change it was told about is already committed.
    """

    def __init__(self, source: StateSource | None = None) -> None:
        self._registrations: list[_Registration] = []
        self._source = source
        self._pending: deque[ChangeEvent] = deque()
        self._dispatching = False

    def bind_source(self, source: StateSource) -> None:
        self._source = source

    def subscribe(
        self,
        listener: Listener,
        interests: EntityKind | Iterable[EntityKind] = EntityKind.all,
    ) -> None:
        kinds = _expand(interests)
        existing = self._find(listener)
        if existing is not None:
            existing.interests = kinds
        else:
            self._registrations.append(_Registration(weakref.ref(listener), kinds))
        self._replay(listener, kinds)

    def unsubscribe(self, listener: Listener) -> None:
        self._registrations = [
            r for r in self._registrations
            if r.ref() is not None and r.ref() is not listener
        ]

    @contextmanager
    def subscription(
        self,
        listener: Listener,
        interests: EntityKind | Iterable[EntityKind] = EntityKind.all,
    ) -> Iterator[Listener]:
        """Keep ``listener`` registered for the duration of the block."""
        self.subscribe(listener, interests)
        try:
            yield listener
        finally:
            self.unsubscribe(listener)

    def publish(
        self,
        kind: EntityKind,
        change: ChangeKind,
        payload: Any,
        category: str | None = None,
    ) -> None:
        self._pending.append(
            ChangeEvent(kind=kind, change=change, payload=payload, category=category)
        )
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._pending:
                event = self._pending.popleft()
                for listener, interests in self._live():
                    if event.kind in interests:
                        self._deliver(listener, event)
        finally:
            self._dispatching = False
            self._pending.clear()

    def listener_count(self) -> int:
        return len(self._live())

    def _live(self) -> list[tuple[Listener, frozenset[EntityKind]]]:
        live: list[tuple[Listener, frozenset[EntityKind]]] = []
        kept: list[_Registration] = []
        for registration in self._registrations:
            listener = registration.ref()
            if listener is None:
                continue
            kept.append(registration)
            live.append((listener, registration.interests))
        if len(kept) != len(self._registrations):
            logger.debug("Pruned %d collected listener(s)", len(self._registrations) - len(kept))
            self._registrations = kept
        return live

    def _deliver(self, listener: Listener, event: ChangeEvent) -> None:
        try:
            listener.on_change(event)
        except Exception:
            logger.error(
                "Listener %r failed on %s/%s event",
                listener, event.kind.value, event.change.value, exc_info=True,
            )

    def _find(self, listener: Listener) -> _Registration | None:
        for registration in self._registrations:
            if registration.ref() is listener:
                return registration
        return None

    def _replay(self, listener: Listener, kinds: frozenset[EntityKind]) -> None:
        if self._source is None:
            return
        # Same order as CONCRETE_KINDS so replays are deterministic
        for kind in CONCRETE_KINDS:
            if kind not in kinds:
                continue
            if kind is EntityKind.user:
                payload: Any = self._source.get_user()
            elif kind is EntityKind.restaurant:
                payload = self._source.all_restaurants()
            elif kind is EntityKind.review:
                restaurant = getattr(listener, "restaurant_reference", None)
                payload = self._source.reviews_for(restaurant) if restaurant is not None else []
            else:
                payload = self._source.chat_history()
            self._deliver(listener, ChangeEvent(kind=kind, change=ChangeKind.update, payload=payload))
