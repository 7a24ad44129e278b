from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class EntityKind(str, Enum):
    user = "user"
    restaurant = "restaurant"
    review = "review"
    chat_message = "chat_message"
    all = "all"


CONCRETE_KINDS: tuple[EntityKind, ...] = (
    EntityKind.user,
    EntityKind.restaurant,
    EntityKind.review,
    EntityKind.chat_message,
)


class ChangeKind(str, Enum):
    add = "add"
    update = "update"
    remove = "remove"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed change delivered to listeners.

    ``payload`` is the User (or ``None``) for user events and a list of
    records for every other kind. ``category`` is set when the event comes
    from a search-cache refresh.
    """

    kind: EntityKind
    change: ChangeKind
    payload: Any
    category: str | None = None
