from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..errors import UnknownCategoryError
from ..geo import Coordinate
from ..notifier.events import ChangeKind, EntityKind
from ..notifier.notifier import ChangeNotifier
from ..places.provider import PlaceProvider
from ..store.base import EntityStore
from ..store.models import Restaurant
from .categories import DEFAULT_CATEGORIES, SearchCategory
from .config import DEFAULT_SEARCH_CACHE_CONFIG, SearchCacheConfig
from .reconciler import ResultReconciler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryState:
    last_coordinate: Coordinate | None = None
    place_ids: tuple[str, ...] = ()


class RemoteSearchCache:
    """Per-category cache of resolved place ids.

    A category is re-queried when it has never resolved anything or when
    the caller has moved more than ``refresh_distance_m`` from where it
    last resolved. Otherwise the ids are read back from the store.
    """

    def __init__(
        self,
        store: EntityStore,
        notifier: ChangeNotifier,
        provider: PlaceProvider,
        reconciler: ResultReconciler,
        config: SearchCacheConfig = DEFAULT_SEARCH_CACHE_CONFIG,
        categories: Iterable[SearchCategory] = DEFAULT_CATEGORIES,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.provider = provider
        self.reconciler = reconciler
        self.config = config
        self.categories: dict[str, SearchCategory] = {c.name: c for c in categories}
        self._states: dict[str, CategoryState] = {name: CategoryState() for name in self.categories}
        self._locks: dict[str, asyncio.Lock] = {}
        self.hits = 0
        self.misses = 0

    def state(self, category: str) -> CategoryState:
        self._category(category)
        return self._states[category]

    def invalidate(self, category: str | None = None) -> None:
        names = [category] if category is not None else list(self.categories)
        for name in names:
            self._category(name)
            self._states[name] = CategoryState()

    def needs_refresh(self, category: str, coordinate: Coordinate) -> bool:
        state = self.state(category)
        if state.last_coordinate is None or not state.place_ids:
            return True
        return coordinate.distance_to(state.last_coordinate) > self.config.refresh_distance_m

    async def resolve(
        self,
        category: str,
        coordinate: Coordinate | None = None,
        radius: float | None = None,
    ) -> list[Restaurant]:
        strategy = self._category(category)
        coordinate = coordinate or Coordinate.from_pair(self.config.default_coordinate)
        radius = radius if radius is not None else strategy.default_radius

        if not self.config.serialize_per_category:
            return await self._resolve(strategy, coordinate, radius)

        lock = self._locks.setdefault(category, asyncio.Lock())
        async with lock:
            return await self._resolve(strategy, coordinate, radius)

    async def _resolve(
        self, strategy: SearchCategory, coordinate: Coordinate, radius: float
    ) -> list[Restaurant]:
        name = strategy.name
        if not self.needs_refresh(name, coordinate):
            self.hits += 1
            cached = self._read_cached(self._states[name].place_ids)
            logger.info("Cache hit for %s: %d restaurant(s)", name, len(cached))
            return cached

        self.misses += 1
        logger.info("Cache miss for %s at %s, querying provider", name, coordinate)

        # Every batch is fetched before anything is written, so a provider
        # error or a cancellation leaves both store and cache untouched.
        batches = await strategy.fetch(self.provider, self.store, coordinate, radius)

        restaurants: list[Restaurant] = []
        seen: set[str] = set()
        for batch in batches:
            for restaurant in self.reconciler.reconcile(batch):
                if restaurant.place_id in seen:
                    continue
                seen.add(restaurant.place_id)
                restaurants.append(restaurant)

        self._states[name] = CategoryState(
            last_coordinate=coordinate,
            place_ids=tuple(r.place_id for r in restaurants),
        )
        self.notifier.publish(
            EntityKind.restaurant, ChangeKind.update, list(restaurants), category=name,
        )
        return restaurants

    def _read_cached(self, place_ids: Sequence[str]) -> list[Restaurant]:
        restaurants: list[Restaurant] = []
        for place_id in place_ids:
            restaurant = self.store.get_restaurant(place_id)
            # Ids gone from the store are skipped; the next miss replaces them
            if restaurant is not None:
                restaurants.append(restaurant)
        return restaurants

    def _category(self, category: str) -> SearchCategory:
        try:
            return self.categories[category]
        except KeyError:
            raise UnknownCategoryError(category) from None
