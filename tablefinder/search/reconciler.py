from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..places.models import RawPlace, RawReview
from ..store.base import EntityStore
from ..store.models import Restaurant, Review, as_naive_utc

logger = logging.getLogger(__name__)

# Generic tags that say nothing about the cuisine
_GENERIC_TYPES = {"establishment", "point_of_interest", "geocode", "food"}
DEFAULT_CUISINE = "restaurant"


def rank(raw_places: Sequence[RawPlace]) -> list[RawPlace]:
    """Most-rated first, then best-rated; ties keep provider order."""
    return sorted(
        raw_places,
        key=lambda p: (-(p.rating_count or 0), -(p.rating or 0.0)),
    )


def primary_cuisine(types: Sequence[str]) -> str:
    for place_type in types:
        if place_type not in _GENERIC_TYPES:
            return place_type
    return DEFAULT_CUISINE


def to_restaurant_fields(place: RawPlace) -> dict[str, Any]:
    """Map provider fields onto ``Restaurant`` columns.

    User-local columns (favourite flag, image set by the user) are only
    seeded here; they are never touched on a dedup hit.
    """
    price = place.price_level or 0
    return {
        "place_id": place.place_id,
        "name": place.display_name,
        "address": place.formatted_address,
        "phone": place.phone,
        "website": place.website,
        "price_tier": price if 1 <= price <= 5 else 0,
        "rating": float(place.rating or 0.0),
        "rating_count": int(place.rating_count or 0),
        "cuisine": primary_cuisine(place.types),
        "latitude": place.latitude,
        "longitude": place.longitude,
        "is_open": bool(place.open_now),
        "is_favourite": False,
        "photo_reference": place.photo_reference,
        "image": place.image,
    }


class ResultReconciler:
    """Turns raw provider results into deduplicated local records."""

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def reconcile(self, raw_places: Sequence[RawPlace]) -> list[Restaurant]:
        ranked = rank(raw_places)
        if not ranked:
            return []

        results = self.store.upsert_restaurants([to_restaurant_fields(p) for p in ranked])
        created = sum(1 for _, is_new in results if is_new)
        logger.debug("Reconciled %d place(s), %d new", len(results), created)
        return [restaurant for restaurant, _ in results]

    def reconcile_reviews(
        self, restaurant: Restaurant, raw_reviews: Sequence[RawReview]
    ) -> list[Review]:
        seen = {
            (review.comment, review.created_at)
            for review in self.store.reviews_for(restaurant)
            if not review.is_local
        }

        added: list[Review] = []
        for raw in raw_reviews:
            key = (raw.text, as_naive_utc(raw.published_at))
            if raw.published_at is not None and key in seen:
                continue
            added.append(self.store.add_review(
                restaurant,
                rating=raw.rating,
                comment=raw.text,
                author=None,
                created_at=raw.published_at,
                relative_time=raw.relative_time,
            ))
            seen.add(key)
        return added
