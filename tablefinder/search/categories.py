from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..geo import Coordinate
from ..places.models import RawPlace
from ..places.provider import PlaceProvider
from ..store.base import EntityStore


class SearchCategory(ABC):
    """A named search strategy with its own cache slot."""

    name: str
    default_radius: float

    @abstractmethod
    async def fetch(
        self,
        provider: PlaceProvider,
        store: EntityStore,
        coordinate: Coordinate,
        radius: float,
    ) -> list[list[RawPlace]]:
        """Run every provider query; each batch is ranked on its own."""


@dataclass(frozen=True)
class TextSearchCategory(SearchCategory):
    name: str
    query: str
    default_radius: float
    max_results: int = 5
    min_rating: float | None = 4.0

    async def fetch(self, provider, store, coordinate, radius):
        places = await provider.search_by_text(
            self.query,
            location_bias=coordinate,
            radius=radius,
            included_type="restaurant",
            max_results=self.max_results,
            min_rating=self.min_rating,
        )
        return [places]


@dataclass(frozen=True)
class NearbyCategory(SearchCategory):
    """Preferred cuisines first (when the user has any), then everything nearby."""

    name: str = "nearby"
    default_radius: float = 3000.0
    preference_results: int = 5
    general_results: int = 10

    async def fetch(self, provider, store, coordinate, radius):
        batches: list[list[RawPlace]] = []

        user = store.get_user()
        preferences = list(user.preferred_cuisines or []) if user is not None else []
        if preferences:
            batches.append(await provider.search_nearby(
                coordinate,
                radius,
                included_types=["restaurant"],
                preference_types=preferences,
                max_results=self.preference_results,
            ))

        batches.append(await provider.search_nearby(
            coordinate,
            radius,
            included_types=["restaurant"],
            max_results=self.general_results,
        ))
        return batches


DEFAULT_CATEGORIES: tuple[SearchCategory, ...] = (
    TextSearchCategory(
        name="trending",
        query="Most Viewed Restaurants",
        default_radius=15000.0,
    ),
    TextSearchCategory(
        name="budget",
        query="Most Viewed Affordable Restaurants",
        default_radius=10000.0,
    ),
    NearbyCategory(),
)
