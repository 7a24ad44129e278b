from __future__ import annotations

import logging

from ..geo import Coordinate
from ..places.provider import PlaceProvider
from ..store.base import EntityStore
from ..store.models import Restaurant, Review
from .config import DEFAULT_SEARCH_CACHE_CONFIG, SearchCacheConfig
from .reconciler import ResultReconciler

logger = logging.getLogger(__name__)


class DiscoveryService:
    """Uncached provider lookups that still reconcile into the store."""

    def __init__(
        self,
        store: EntityStore,
        provider: PlaceProvider,
        reconciler: ResultReconciler,
        config: SearchCacheConfig = DEFAULT_SEARCH_CACHE_CONFIG,
    ) -> None:
        self.store = store
        self.provider = provider
        self.reconciler = reconciler
        self.config = config

    async def search(
        self,
        query: str,
        coordinate: Coordinate | None = None,
        radius: float | None = None,
    ) -> list[Restaurant]:
        """Free-text restaurant search around ``coordinate``."""
        coordinate = coordinate or Coordinate.from_pair(self.config.default_coordinate)
        places = await self.provider.search_by_text(
            query,
            location_bias=coordinate,
            radius=radius or self.config.text_search_radius_m,
            included_type="restaurant",
            max_results=self.config.text_search_max_results,
        )
        return self.reconciler.reconcile(places)

    async def refresh_place(self, place_id: str) -> Restaurant:
        """Fetch one place by id; an already stored place is returned as-is."""
        place = await self.provider.fetch_place_details(place_id)
        return self.reconciler.reconcile([place])[0]

    async def import_reviews(self, restaurant: Restaurant) -> list[Review]:
        raw_reviews = await self.provider.fetch_reviews(restaurant.place_id)
        added = self.reconciler.reconcile_reviews(restaurant, raw_reviews)
        logger.info("Imported %d review(s) for %s", len(added), restaurant.place_id)
        return added

    async def locate(self, place_id: str) -> Coordinate:
        stored = self.store.get_restaurant(place_id)
        if stored is not None:
            return stored.coordinate
        place = await self.provider.fetch_place_details(place_id)
        return Coordinate(place.latitude, place.longitude)
