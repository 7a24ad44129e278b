from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, inspect as sa_inspect, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from ..errors import StoreError
from ..notifier.events import ChangeKind, EntityKind
from ..notifier.notifier import ChangeNotifier
from .base import EntityStore
from .config import DEFAULT_STORE_CONFIG, StoreConfig
from .models import Base, ChatMessage, Restaurant, Review, User, as_naive_utc, utcnow

logger = logging.getLogger(__name__)

_MODELS: dict[EntityKind, type] = {
    EntityKind.user: User,
    EntityKind.restaurant: Restaurant,
    EntityKind.review: Review,
    EntityKind.chat_message: ChatMessage,
}

_KINDS: dict[type, EntityKind] = {model: kind for kind, model in _MODELS.items()}


def toggled(tags: Sequence[str], tag: str) -> list[str]:
    """Return a new list with ``tag`` removed if present, else appended."""
    if tag in tags:
        return [t for t in tags if t != tag]
    return [*tags, tag]


def _ordered_unique(tags: Sequence[str] | None) -> list[str]:
    return list(dict.fromkeys(t.strip() for t in tags or [] if t and t.strip()))


def _make_engine(config: StoreConfig):
    url = make_url(config.database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(url, echo=config.echo)

    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(
            url, echo=config.echo, connect_args={"check_same_thread": False},
        )
    return create_engine(
        url,
        echo=config.echo,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


class SqlEntityStore(EntityStore):
    """SQLAlchemy-backed store holding one long-lived session."""

    def __init__(
        self,
        notifier: ChangeNotifier,
        config: StoreConfig = DEFAULT_STORE_CONFIG,
    ) -> None:
        self.notifier = notifier
        self.engine = _make_engine(config)
        Base.metadata.create_all(self.engine)
        self._session = Session(self.engine, expire_on_commit=False)

    # -- generic contract ------------------------------------------------

    def upsert(self, kind: EntityKind, fields: Mapping[str, Any], key: str | None = None) -> Any:
        kind = EntityKind(kind)
        if kind is EntityKind.restaurant:
            place_id = key or fields.get("place_id")
            if not place_id:
                raise ValueError("restaurant upsert needs an external place id")
            record, _ = self.upsert_restaurants([{**fields, "place_id": place_id}])[0]
            return record
        if kind is EntityKind.user:
            return self.save_user(**fields)
        if kind is EntityKind.review:
            return self.add_review(**fields)
        if kind is EntityKind.chat_message:
            return self.add_chat_message(**fields)
        raise ValueError(f"cannot upsert records of kind {kind.value!r}")

    def query(
        self,
        kind: EntityKind,
        *criteria: Any,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Any]:
        model = _MODELS.get(EntityKind(kind))
        if model is None:
            raise ValueError(f"cannot query records of kind {EntityKind(kind).value!r}")

        stmt = select(model)
        if criteria:
            stmt = stmt.where(*criteria)
        if order_by:
            if order_by not in model.__table__.columns:
                raise ValueError(f"{model.__name__} has no column {order_by!r}")
            column = getattr(model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc(), model.pk)
        else:
            stmt = stmt.order_by(model.pk)
        return list(self._session.scalars(stmt))

    def delete(self, record: Any) -> None:
        kind = _KINDS.get(type(record))
        if kind is None:
            raise TypeError(f"not a stored entity: {record!r}")
        if kind is EntityKind.chat_message:
            raise ValueError("chat messages are only removed by clearing the history")

        state = sa_inspect(record)
        if not state.persistent:
            return

        cascaded: list[Review] = []
        orphaned: list[Review] = []
        if isinstance(record, Review) and record.restaurant is not None:
            record.restaurant.reviews.remove(record)
        elif isinstance(record, Restaurant):
            cascaded = list(record.reviews)
        elif isinstance(record, User):
            # Reviews outlive their author; they stay on the restaurant unattributed
            orphaned = list(record.reviews)
            for review in orphaned:
                review.author = None
        self._session.delete(record)
        self._commit()

        payload = record if kind is EntityKind.user else [record]
        self.notifier.publish(kind, ChangeKind.remove, payload)
        if cascaded:
            self.notifier.publish(EntityKind.review, ChangeKind.remove, cascaded)
        if orphaned:
            self.notifier.publish(EntityKind.review, ChangeKind.update, orphaned)

    # -- user ------------------------------------------------------------

    def save_user(
        self,
        name: str,
        city: str,
        country: str,
        latitude: float,
        longitude: float,
        preferred_cuisines: Sequence[str] | None = None,
        preferred_price_tier: int = 0,
    ) -> User:
        if not 0 <= preferred_price_tier <= 5:
            raise ValueError("preferred_price_tier must be between 0 and 5")

        user = self.get_user()
        created = user is None
        if user is None:
            user = User()
            self._session.add(user)

        user.name = name
        user.city = city
        user.country = country
        user.latitude = latitude
        user.longitude = longitude
        user.preferred_cuisines = _ordered_unique(preferred_cuisines)
        user.preferred_price_tier = preferred_price_tier
        self._commit()

        self.notifier.publish(
            EntityKind.user, ChangeKind.add if created else ChangeKind.update, user,
        )
        return user

    def get_user(self) -> User | None:
        return self._session.scalars(select(User).order_by(User.pk).limit(1)).first()

    def update_user_image(self, data: bytes) -> User | None:
        user = self.get_user()
        if user is None:
            return None
        user.image = data
        self._commit()
        self.notifier.publish(EntityKind.user, ChangeKind.update, user)
        return user

    def toggle_preferred_cuisine(self, tag: str) -> User | None:
        user = self.get_user()
        if user is None:
            return None
        user.preferred_cuisines = toggled(list(user.preferred_cuisines or []), tag)
        self._commit()
        self.notifier.publish(EntityKind.user, ChangeKind.update, user)
        return user

    # -- restaurants -----------------------------------------------------

    def upsert_restaurants(
        self, batch: Sequence[Mapping[str, Any]]
    ) -> list[tuple[Restaurant, bool]]:
        results: list[tuple[Restaurant, bool]] = []
        pending: dict[str, Restaurant] = {}

        with self._session.no_autoflush:
            for fields in batch:
                place_id = fields["place_id"]
                existing = pending.get(place_id) or self.get_restaurant(place_id)
                if existing is not None:
                    results.append((existing, False))
                    continue
                restaurant = Restaurant(**fields)
                self._session.add(restaurant)
                pending[place_id] = restaurant
                results.append((restaurant, True))

        if pending:
            self._commit()
            logger.debug("Inserted %d new restaurant(s)", len(pending))

        for restaurant, created in results:
            if created:
                self.notifier.publish(EntityKind.restaurant, ChangeKind.add, [restaurant])
        return results

    def get_restaurant(self, place_id: str) -> Restaurant | None:
        return self._session.scalars(
            select(Restaurant).where(Restaurant.place_id == place_id).limit(1)
        ).first()

    def all_restaurants(self) -> list[Restaurant]:
        return self.query(EntityKind.restaurant, order_by="name")

    def favourite_restaurants(self) -> list[Restaurant]:
        return self.query(
            EntityKind.restaurant, Restaurant.is_favourite.is_(True), order_by="name",
        )

    def toggle_favourite(self, place_id: str) -> Restaurant | None:
        restaurant = self.get_restaurant(place_id)
        if restaurant is None:
            return None
        restaurant.is_favourite = not restaurant.is_favourite
        self._commit()
        self.notifier.publish(EntityKind.restaurant, ChangeKind.update, [restaurant])
        return restaurant

    # -- reviews ---------------------------------------------------------

    def add_review(
        self,
        restaurant: Restaurant,
        rating: float,
        comment: str | None = None,
        author: User | None = None,
        created_at: datetime | None = None,
        relative_time: str | None = None,
    ) -> Review:
        if restaurant is None:
            raise ValueError("a review must belong to a restaurant")
        if not 0.0 <= rating <= 5.0:
            raise ValueError("rating must be between 0.0 and 5.0")

        review = Review(
            review_id=uuid.uuid4().hex,
            comment=comment,
            rating=float(rating),
            created_at=as_naive_utc(created_at) or utcnow(),
            relative_time=relative_time,
            restaurant=restaurant,
            author=author,
        )
        self._session.add(review)
        self._commit()

        self.notifier.publish(EntityKind.review, ChangeKind.add, [review])
        return review

    def get_review(self, review_id: str) -> Review | None:
        return self._session.scalars(
            select(Review).where(Review.review_id == review_id).limit(1)
        ).first()

    def reviews_for(self, restaurant: Restaurant | None) -> list[Review]:
        if restaurant is None or restaurant.pk is None:
            return []
        newest_first = self.query(
            EntityKind.review,
            Review.restaurant_pk == restaurant.pk,
            order_by="created_at",
            descending=True,
        )
        # Locally authored reviews float to the top, newest first within each group
        return sorted(newest_first, key=lambda review: not review.is_local)

    def all_reviews(self) -> list[Review]:
        return self.query(EntityKind.review, order_by="created_at", descending=True)

    # -- chat ------------------------------------------------------------

    def add_chat_message(self, text: str, is_from_user: bool = False) -> ChatMessage:
        message = ChatMessage(
            message_id=uuid.uuid4().hex,
            text=text,
            is_from_user=is_from_user,
            created_at=utcnow(),
        )
        self._session.add(message)
        self._commit()

        self.notifier.publish(EntityKind.chat_message, ChangeKind.add, [message])
        return message

    def chat_history(self) -> list[ChatMessage]:
        return self.query(EntityKind.chat_message, order_by="created_at")

    def clear_chat_history(self) -> None:
        removed = self.chat_history()
        if not removed:
            return
        for message in removed:
            self._session.delete(message)
        self._commit()
        self.notifier.publish(EntityKind.chat_message, ChangeKind.remove, removed)

    # -- lifecycle -------------------------------------------------------

    def close(self) -> None:
        self._session.close()
        self.engine.dispose()

    def _commit(self) -> None:
        try:
            self._session.commit()
        except SQLAlchemyError as exc:
            logger.error("Commit failed, rolling back", exc_info=True)
            self._session.rollback()
            raise StoreError(str(exc)) from exc
