"""Durable entity models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

from ..geo import Coordinate

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite does not keep tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _new_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """The single local user."""

    __tablename__ = "users"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, default="")
    city = Column(String(100), default="")
    country = Column(String(100), default="")
    preferred_cuisines = Column(JSON, nullable=False, default=list)  # ordered tags
    preferred_price_tier = Column(Integer, nullable=False, default=0)  # 1-5, 0 = not set
    latitude = Column(Float, nullable=False, default=0.0)
    longitude = Column(Float, nullable=False, default=0.0)
    image = Column(LargeBinary)

    reviews = relationship("Review", back_populates="author")

    def __repr__(self) -> str:
        return f"<User(name='{self.name}', city='{self.city}')>"

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


class Restaurant(Base):
    """A place mirrored from the provider, keyed by its external id."""

    __tablename__ = "restaurants"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    place_id = Column(String(255), unique=True, index=True, nullable=False)

    name = Column(String(255), nullable=False, index=True)
    address = Column(Text)
    phone = Column(String(50))
    website = Column(String(500))
    price_tier = Column(Integer, nullable=False, default=0)  # 1-5, 0 = unknown
    rating = Column(Float, nullable=False, default=0.0)
    rating_count = Column(Integer, nullable=False, default=0)
    cuisine = Column(String(100), default="restaurant")
    latitude = Column(Float, nullable=False, default=0.0)
    longitude = Column(Float, nullable=False, default=0.0)
    is_open = Column(Boolean, nullable=False, default=False)

    # User-local state, never taken from the provider
    is_favourite = Column(Boolean, nullable=False, default=False, index=True)
    photo_reference = Column(String(500))
    image = Column(LargeBinary)

    reviews = relationship(
        "Review",
        back_populates="restaurant",
        cascade="all, delete-orphan",
        order_by="Review.pk",
    )

    def __repr__(self) -> str:
        return f"<Restaurant(place_id='{self.place_id}', name='{self.name}')>"

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


class Review(Base):
    """A review of one restaurant; ``author`` is None for provider reviews."""

    __tablename__ = "reviews"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    review_id = Column(String(32), unique=True, index=True, nullable=False, default=_new_id)
    comment = Column(Text)
    rating = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    relative_time = Column(String(100))

    restaurant_pk = Column(Integer, ForeignKey("restaurants.pk"), nullable=False, index=True)
    author_pk = Column(Integer, ForeignKey("users.pk"), index=True)

    restaurant = relationship("Restaurant", back_populates="reviews")
    author = relationship("User", back_populates="reviews")

    def __repr__(self) -> str:
        return f"<Review(rating={self.rating}, restaurant_pk={self.restaurant_pk})>"

    @property
    def is_local(self) -> bool:
        return self.author_pk is not None or self.author is not None


class ChatMessage(Base):
    """One turn of the assistant conversation."""

    __tablename__ = "chat_messages"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(String(32), unique=True, index=True, nullable=False, default=_new_id)
    text = Column(Text, nullable=False)
    is_from_user = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        who = "user" if self.is_from_user else "assistant"
        return f"<ChatMessage({who}, {self.created_at})>"
