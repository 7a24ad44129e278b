from __future__ import annotations

import asyncio

import pytest

from fakes import MELBOURNE, RecordingListener, make_place
from tablefinder.context import create_context
from tablefinder.errors import ProviderError, UnknownCategoryError
from tablefinder.geo import Coordinate
from tablefinder.notifier.events import ChangeKind, EntityKind
from tablefinder.search.cache import CategoryState
from tablefinder.search.config import SearchCacheConfig

# About 1.1 km north of MELBOURNE
FAR = Coordinate(MELBOURNE.latitude + 0.01, MELBOURNE.longitude)
# About 110 m north of MELBOURNE
NEAR = Coordinate(MELBOURNE.latitude + 0.001, MELBOURNE.longitude)


def _resolve(ctx, category, coordinate=MELBOURNE, radius=None):
    return asyncio.run(ctx.search_cache.resolve(category, coordinate, radius))


# ── Distance ─────────────────────────────────────────────────────────────


class TestDistance:
    def test_zero_distance(self):
        assert MELBOURNE.distance_to(MELBOURNE) == 0.0

    def test_small_offsets(self):
        assert 1100 < MELBOURNE.distance_to(FAR) < 1125
        assert 100 < MELBOURNE.distance_to(NEAR) < 120

    def test_melbourne_to_sydney(self):
        sydney = Coordinate(-33.8688, 151.2093)
        assert 700_000 < MELBOURNE.distance_to(sydney) < 720_000


# ── Hits and misses ──────────────────────────────────────────────────────


class TestResolve:
    def test_first_resolve_is_a_miss(self, ctx, provider):
        provider.text_results = [make_place("a"), make_place("b")]

        restaurants = _resolve(ctx, "trending")

        assert provider.call_count == 1
        assert sorted(r.place_id for r in restaurants) == ["a", "b"]
        state = ctx.search_cache.state("trending")
        assert state.last_coordinate == MELBOURNE
        assert set(state.place_ids) == {"a", "b"}
        assert ctx.search_cache.misses == 1

    def test_trending_query_parameters(self, ctx, provider):
        provider.text_results = [make_place("a")]

        _resolve(ctx, "trending")

        kind, query, bias, radius, max_results, min_rating = provider.calls[0]
        assert kind == "text"
        assert query == "Most Viewed Restaurants"
        assert bias == MELBOURNE
        assert radius == 15000.0
        assert max_results == 5
        assert min_rating == 4.0

    def test_budget_query_and_explicit_radius(self, ctx, provider):
        provider.text_results = [make_place("a")]

        _resolve(ctx, "budget", radius=2500.0)

        assert provider.calls[0][1] == "Most Viewed Affordable Restaurants"
        assert provider.calls[0][3] == 2500.0

    def test_second_resolve_nearby_is_a_hit(self, ctx, provider):
        provider.text_results = [make_place("a", rating_count=50), make_place("b", rating_count=10)]
        first = _resolve(ctx, "trending")

        second = _resolve(ctx, "trending", NEAR)

        assert provider.call_count == 1
        assert [r.place_id for r in second] == [r.place_id for r in first] == ["a", "b"]
        assert ctx.search_cache.hits == 1

    def test_moving_past_threshold_refreshes(self, ctx, provider):
        provider.text_results = [make_place("a")]
        _resolve(ctx, "trending")

        provider.text_results = [make_place("c")]
        restaurants = _resolve(ctx, "trending", FAR)

        assert provider.call_count == 2
        assert [r.place_id for r in restaurants] == ["c"]
        assert ctx.search_cache.state("trending").last_coordinate == FAR

    def test_default_coordinate(self, ctx, provider):
        provider.text_results = [make_place("a")]

        asyncio.run(ctx.search_cache.resolve("trending"))

        assert ctx.search_cache.state("trending").last_coordinate == MELBOURNE

    def test_empty_result_is_retried(self, ctx, provider):
        assert _resolve(ctx, "trending") == []
        assert _resolve(ctx, "trending") == []

        assert provider.call_count == 2

    def test_categories_are_independent(self, ctx, provider):
        provider.text_results = [make_place("a")]
        _resolve(ctx, "trending")

        provider.text_results = [make_place("b")]
        budget = _resolve(ctx, "budget")
        trending = _resolve(ctx, "trending")

        assert [r.place_id for r in budget] == ["b"]
        assert [r.place_id for r in trending] == ["a"]
        assert provider.call_count == 2

    def test_stale_ids_are_skipped(self, ctx, provider):
        provider.text_results = [make_place("a"), make_place("b")]
        _resolve(ctx, "trending")
        ctx.store.delete(ctx.store.get_restaurant("a"))

        restaurants = _resolve(ctx, "trending")

        assert [r.place_id for r in restaurants] == ["b"]
        assert provider.call_count == 1

    def test_resolved_restaurants_are_shared_with_store(self, ctx, provider):
        provider.text_results = [make_place("a")]
        _resolve(ctx, "trending")
        ctx.store.toggle_favourite("a")

        provider.text_results = [make_place("a")]
        budget = _resolve(ctx, "budget")

        assert budget[0].is_favourite is True
        assert len(ctx.store.all_restaurants()) == 1

    def test_invalidate(self, ctx, provider):
        provider.text_results = [make_place("a")]
        _resolve(ctx, "trending")

        ctx.search_cache.invalidate("trending")

        assert ctx.search_cache.state("trending") == CategoryState()
        _resolve(ctx, "trending")
        assert provider.call_count == 2

    def test_publishes_category_update(self, ctx, provider):
        listener = RecordingListener()
        ctx.notifier.subscribe(listener, EntityKind.restaurant)
        listener.events.clear()
        provider.text_results = [make_place("a")]

        _resolve(ctx, "trending")

        updates = [e for e in listener.events if e.change is ChangeKind.update]
        assert len(updates) == 1
        assert updates[0].category == "trending"
        assert [r.place_id for r in updates[0].payload] == ["a"]


# ── Failures ─────────────────────────────────────────────────────────────


class TestFailures:
    def test_unknown_category(self, ctx, provider):
        with pytest.raises(UnknownCategoryError) as excinfo:
            _resolve(ctx, "late-night")

        assert excinfo.value.category == "late-night"
        assert isinstance(excinfo.value, KeyError)
        assert provider.call_count == 0

    def test_provider_error_leaves_state_untouched(self, ctx, provider):
        provider.text_results = [make_place("a")]
        _resolve(ctx, "trending")
        before = ctx.search_cache.state("trending")

        provider.error = ProviderError("quota exceeded")
        with pytest.raises(ProviderError):
            _resolve(ctx, "trending", FAR)

        assert ctx.search_cache.state("trending") == before
        provider.error = None
        assert [r.place_id for r in _resolve(ctx, "trending")] == ["a"]

    def test_nearby_error_after_first_batch_writes_nothing(self, ctx, provider):
        ctx.store.save_user(
            name="Ada", city="", country="", latitude=0.0, longitude=0.0,
            preferred_cuisines=["thai_restaurant"],
        )
        provider.preferred_results = [make_place("pref")]

        async def failing_general(*args, **kwargs):
            if kwargs.get("preference_types"):
                return list(provider.preferred_results)
            raise ProviderError("nearby down")

        provider.search_nearby = failing_general
        with pytest.raises(ProviderError):
            _resolve(ctx, "nearby")

        assert ctx.store.all_restaurants() == []
        assert ctx.search_cache.state("nearby") == CategoryState()

    def test_cancellation_leaves_state_untouched(self, ctx, provider):
        provider.text_results = [make_place("a")]

        async def scenario():
            provider.gate = asyncio.Event()
            task = asyncio.create_task(ctx.search_cache.resolve("trending", MELBOURNE))
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert ctx.search_cache.state("trending") == CategoryState()
        assert ctx.store.all_restaurants() == []


# ── Nearby ───────────────────────────────────────────────────────────────


class TestNearby:
    def test_without_preferences_runs_general_batch_only(self, ctx, provider):
        provider.nearby_results = [make_place("g1")]

        restaurants = _resolve(ctx, "nearby")

        assert [r.place_id for r in restaurants] == ["g1"]
        assert provider.call_count == 1
        _, center, radius, preference_types, max_results = provider.calls[0]
        assert radius == 3000.0
        assert preference_types == ()
        assert max_results == 10

    def test_preferred_batch_first_and_deduplicated(self, ctx, provider):
        ctx.store.save_user(
            name="Ada", city="", country="", latitude=0.0, longitude=0.0,
            preferred_cuisines=["thai_restaurant", "cafe"],
        )
        provider.preferred_results = [
            make_place("p1", rating_count=1),
            make_place("shared", rating_count=5),
        ]
        provider.nearby_results = [
            make_place("g1", rating_count=100),
            make_place("shared", rating_count=5),
        ]

        restaurants = _resolve(ctx, "nearby")

        assert [r.place_id for r in restaurants] == ["shared", "p1", "g1"]
        assert provider.calls[0][3] == ("thai_restaurant", "cafe")
        assert provider.calls[0][4] == 5
        assert provider.calls[1][3] == ()


# ── Concurrency ──────────────────────────────────────────────────────────


class TestConcurrency:
    def test_concurrent_misses_both_query(self, ctx, provider):
        provider.text_results = [make_place("a")]
        provider.yield_control = True

        async def scenario():
            return await asyncio.gather(
                ctx.search_cache.resolve("trending", MELBOURNE),
                ctx.search_cache.resolve("trending", MELBOURNE),
            )

        first, second = asyncio.run(scenario())

        assert provider.call_count == 2
        assert [r.place_id for r in first] == [r.place_id for r in second] == ["a"]
        assert len(ctx.store.all_restaurants()) == 1

    def test_serialized_category_queries_once(self, store_config, provider):
        ctx = create_context(
            store_config=store_config,
            provider=provider,
            search_config=SearchCacheConfig(serialize_per_category=True),
        )
        provider.text_results = [make_place("a")]
        provider.yield_control = True

        async def scenario():
            return await asyncio.gather(
                ctx.search_cache.resolve("trending", MELBOURNE),
                ctx.search_cache.resolve("trending", MELBOURNE),
            )

        try:
            first, second = asyncio.run(scenario())
        finally:
            ctx.close()

        assert provider.call_count == 1
        assert [r.place_id for r in first] == [r.place_id for r in second] == ["a"]
