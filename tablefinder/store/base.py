from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from ..notifier.events import EntityKind
from .models import ChatMessage, Restaurant, Review, User


class EntityStore(ABC):
    """Persistence boundary shared by the search cache, services and UI.

    Every mutation is committed before it returns and is then published to
    the change notifier. Implementations assume a single local writer.
    """

    # -- generic contract ------------------------------------------------

    @abstractmethod
    def upsert(self, kind: EntityKind, fields: Mapping[str, Any], key: str | None = None) -> Any:
        """Create or dedup a record according to the rules of ``kind``."""

    @abstractmethod
    def query(
        self,
        kind: EntityKind,
        *criteria: Any,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Any]:
        """Filter by column expressions and sort by a named column."""

    @abstractmethod
    def delete(self, record: Any) -> None:
        """Remove ``record``; silently does nothing if it is already gone."""

    # -- user ------------------------------------------------------------

    @abstractmethod
    def save_user(
        self,
        name: str,
        city: str,
        country: str,
        latitude: float,
        longitude: float,
        preferred_cuisines: Sequence[str] | None = None,
        preferred_price_tier: int = 0,
    ) -> User: ...

    @abstractmethod
    def get_user(self) -> User | None: ...

    @abstractmethod
    def update_user_image(self, data: bytes) -> User | None: ...

    @abstractmethod
    def toggle_preferred_cuisine(self, tag: str) -> User | None: ...

    # -- restaurants -----------------------------------------------------

    @abstractmethod
    def upsert_restaurants(
        self, batch: Sequence[Mapping[str, Any]]
    ) -> list[tuple[Restaurant, bool]]:
        """Insert unseen places in one commit; returns ``(record, created)`` pairs."""

    @abstractmethod
    def get_restaurant(self, place_id: str) -> Restaurant | None: ...

    @abstractmethod
    def all_restaurants(self) -> list[Restaurant]: ...

    @abstractmethod
    def favourite_restaurants(self) -> list[Restaurant]: ...

    @abstractmethod
    def toggle_favourite(self, place_id: str) -> Restaurant | None: ...

    # -- reviews ---------------------------------------------------------

    @abstractmethod
    def add_review(
        self,
        restaurant: Restaurant,
        rating: float,
        comment: str | None = None,
        author: User | None = None,
        created_at: datetime | None = None,
        relative_time: str | None = None,
    ) -> Review: ...

    @abstractmethod
    def get_review(self, review_id: str) -> Review | None: ...

    @abstractmethod
    def reviews_for(self, restaurant: Restaurant | None) -> list[Review]: ...

    @abstractmethod
    def all_reviews(self) -> list[Review]: ...

    # -- chat ------------------------------------------------------------

    @abstractmethod
    def add_chat_message(self, text: str, is_from_user: bool = False) -> ChatMessage: ...

    @abstractmethod
    def chat_history(self) -> list[ChatMessage]: ...

    @abstractmethod
    def clear_chat_history(self) -> None: ...

    # -- lifecycle -------------------------------------------------------

    @abstractmethod
    def close(self) -> None: ...
