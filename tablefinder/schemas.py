from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    city: str = ""
    country: str = ""
    preferred_cuisines: list[str] = Field(
        default_factory=list,
        description='Place type tags, e.g. ["italian_restaurant", "cafe"]',
    )
    preferred_price_tier: int = Field(default=0, ge=0, le=5)
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    city: str | None
    country: str | None
    preferred_cuisines: list[str]
    preferred_price_tier: int
    latitude: float
    longitude: float


class RestaurantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    place_id: str
    name: str
    address: str | None
    phone: str | None
    website: str | None
    price_tier: int
    rating: float
    rating_count: int
    cuisine: str | None
    latitude: float
    longitude: float
    is_open: bool
    is_favourite: bool
    photo_reference: str | None = None


class RestaurantListResponse(BaseModel):
    restaurants: list[RestaurantOut]
    category: str | None = None


class ReviewIn(BaseModel):
    rating: float = Field(..., ge=0.0, le=5.0)
    comment: str | None = Field(default=None, max_length=2000)


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    review_id: str
    comment: str | None
    rating: float
    created_at: datetime
    relative_time: str | None
    is_local: bool


class ReviewListResponse(BaseModel):
    reviews: list[ReviewOut]
