from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class RawPlace(BaseModel):
    """A place as returned by the provider, before reconciliation."""

    place_id: str = Field(..., min_length=1)
    display_name: str = "Unknown"
    formatted_address: str | None = None
    phone: str | None = None
    website: str | None = None
    price_level: int | None = Field(default=None, ge=1, le=5)
    rating: float | None = Field(default=None, ge=0.0, le=5.0)
    rating_count: int | None = Field(default=None, ge=0)
    types: list[str] = Field(default_factory=list)
    latitude: float = 0.0
    longitude: float = 0.0
    open_now: bool | None = None
    photo_reference: str | None = None
    image: bytes | None = None


class RawReview(BaseModel):
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    text: str | None = None
    author_name: str | None = None
    published_at: datetime | None = None
    relative_time: str | None = None
