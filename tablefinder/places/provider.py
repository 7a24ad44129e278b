from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ..geo import Coordinate
from .models import RawPlace, RawReview


class PlaceProvider(ABC):
    """Remote place search consumed by the cache and discovery services.

    Implementations raise ``ProviderError`` for any remote failure.
    """

    @abstractmethod
    async def search_by_text(
        self,
        query: str,
        location_bias: Coordinate,
        radius: float,
        included_type: str = "restaurant",
        max_results: int = 5,
        min_rating: float | None = None,
    ) -> list[RawPlace]: ...

    @abstractmethod
    async def search_nearby(
        self,
        center: Coordinate,
        radius: float,
        included_types: Sequence[str] = ("restaurant",),
        preference_types: Sequence[str] | None = None,
        max_results: int = 10,
    ) -> list[RawPlace]: ...

    @abstractmethod
    async def fetch_place_details(self, place_id: str) -> RawPlace: ...

    @abstractmethod
    async def fetch_reviews(self, place_id: str) -> list[RawReview]: ...
