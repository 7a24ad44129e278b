from __future__ import annotations

import logging
from collections.abc import Sequence

from google.api_core import exceptions as core_exceptions
from google.maps import places_v1
from google.type import latlng_pb2

from ..errors import ProviderError
from ..geo import Coordinate
from .config import DEFAULT_PLACES_CONFIG, PlacesConfig
from .models import RawPlace, RawReview
from .provider import PlaceProvider

logger = logging.getLogger(__name__)

PRICE_TIERS: dict[str, int] = {
    "PRICE_LEVEL_FREE": 1,
    "PRICE_LEVEL_INEXPENSIVE": 2,
    "PRICE_LEVEL_MODERATE": 3,
    "PRICE_LEVEL_EXPENSIVE": 4,
    "PRICE_LEVEL_VERY_EXPENSIVE": 5,
}


def _circle(center: Coordinate, radius: float) -> places_v1.Circle:
    return places_v1.Circle(
        center=latlng_pb2.LatLng(latitude=center.latitude, longitude=center.longitude),
        radius=radius,
    )


def convert_place(place: places_v1.Place) -> RawPlace:
    """Convert a Place protobuf into a ``RawPlace``."""
    price_level = None
    if "price_level" in place:
        price_level = PRICE_TIERS.get(place.price_level.name)

    open_now = None
    if "current_opening_hours" in place:
        open_now = bool(place.current_opening_hours.open_now)

    photo_reference = place.photos[0].name if place.photos else None

    return RawPlace(
        place_id=place.id,
        display_name=place.display_name.text if "display_name" in place else "Unknown",
        formatted_address=place.formatted_address or None,
        phone=place.international_phone_number or None,
        website=place.website_uri or None,
        price_level=price_level,
        rating=place.rating if "rating" in place else None,
        rating_count=place.user_rating_count if "user_rating_count" in place else None,
        types=list(place.types),
        latitude=place.location.latitude if "location" in place else 0.0,
        longitude=place.location.longitude if "location" in place else 0.0,
        open_now=open_now,
        photo_reference=photo_reference,
    )


def convert_review(review: places_v1.Review) -> RawReview:
    return RawReview(
        rating=review.rating,
        text=review.text.text if "text" in review else None,
        author_name=(
            review.author_attribution.display_name if "author_attribution" in review else None
        ),
        published_at=review.publish_time if "publish_time" in review else None,
        relative_time=review.relative_publish_time_description or None,
    )


class GooglePlacesProvider(PlaceProvider):
    """Places API (New) provider over the async gRPC client."""

    def __init__(
        self,
        config: PlacesConfig = DEFAULT_PLACES_CONFIG,
        client: places_v1.PlacesAsyncClient | None = None,
    ) -> None:
        self.config = config
        self._client = client

    @property
    def client(self) -> places_v1.PlacesAsyncClient:
        if self._client is None:
            if not self.config.api_key:
                raise ProviderError("GOOGLE_PLACES_API_KEY is not configured")
            self._client = places_v1.PlacesAsyncClient(
                client_options={"api_key": self.config.api_key},
            )
        return self._client

    async def search_by_text(
        self,
        query: str,
        location_bias: Coordinate,
        radius: float,
        included_type: str = "restaurant",
        max_results: int = 5,
        min_rating: float | None = None,
    ) -> list[RawPlace]:
        request = places_v1.SearchTextRequest(
            text_query=query,
            location_bias=places_v1.SearchTextRequest.LocationBias(
                circle=_circle(location_bias, radius),
            ),
            included_type=included_type,
            max_result_count=max_results,
        )
        if min_rating is not None:
            request.min_rating = min_rating

        try:
            response = await self.client.search_text(
                request=request,
                metadata=[("x-goog-fieldmask", self.config.search_fields)],
                timeout=self.config.timeout,
            )
        except core_exceptions.GoogleAPICallError as exc:
            logger.warning("Text search failed for %r", query, exc_info=True)
            raise ProviderError(f"Text search failed: {exc}") from exc

        return [convert_place(place) for place in response.places]

    async def search_nearby(
        self,
        center: Coordinate,
        radius: float,
        included_types: Sequence[str] = ("restaurant",),
        preference_types: Sequence[str] | None = None,
        max_results: int = 10,
    ) -> list[RawPlace]:
        request = places_v1.SearchNearbyRequest(
            location_restriction=places_v1.SearchNearbyRequest.LocationRestriction(
                circle=_circle(center, radius),
            ),
            included_types=list(included_types),
            max_result_count=max_results,
        )
        if preference_types:
            request.included_primary_types = list(preference_types)

        try:
            response = await self.client.search_nearby(
                request=request,
                metadata=[("x-goog-fieldmask", self.config.search_fields)],
                timeout=self.config.timeout,
            )
        except core_exceptions.GoogleAPICallError as exc:
            logger.warning("Nearby search failed around %s", center, exc_info=True)
            raise ProviderError(f"Nearby search failed: {exc}") from exc

        return [convert_place(place) for place in response.places]

    async def fetch_place_details(self, place_id: str) -> RawPlace:
        place = await self._get_place(place_id, self.config.details_fields)
        return convert_place(place)

    async def fetch_reviews(self, place_id: str) -> list[RawReview]:
        place = await self._get_place(place_id, self.config.review_fields)
        return [convert_review(review) for review in place.reviews]

    async def _get_place(self, place_id: str, fields: str) -> places_v1.Place:
        try:
            return await self.client.get_place(
                request=places_v1.GetPlaceRequest(name=f"places/{place_id}"),
                metadata=[("x-goog-fieldmask", fields)],
                timeout=self.config.timeout,
            )
        except core_exceptions.GoogleAPICallError as exc:
            logger.warning("Place lookup failed for %s", place_id, exc_info=True)
            raise ProviderError(f"Place lookup failed for {place_id}: {exc}") from exc
