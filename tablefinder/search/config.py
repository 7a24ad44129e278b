from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SearchCacheConfig:
    # Moving further than this from the last resolution forces a new query
    refresh_distance_m: float = 1000.0
    # Melbourne CBD, used when the caller has no coordinate
    default_coordinate: tuple[float, float] = (-37.8136, 144.9631)
    serialize_per_category: bool = False
    text_search_radius_m: float = 10000.0
    text_search_max_results: int = 15


DEFAULT_SEARCH_CACHE_CONFIG = SearchCacheConfig()
