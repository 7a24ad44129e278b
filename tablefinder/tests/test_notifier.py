from __future__ import annotations

import asyncio
import gc
import logging

from fakes import RecordingListener, make_place
from tablefinder.notifier.events import ChangeKind, EntityKind
from tablefinder.notifier.notifier import ChangeNotifier


def _restaurant_fields(place_id: str) -> dict:
    return {
        "place_id": place_id,
        "name": f"Place {place_id}",
        "latitude": -37.81,
        "longitude": 144.96,
    }


class TestReplay:
    def test_late_listener_gets_one_update_with_full_state(self, ctx):
        ctx.store.upsert_restaurants([_restaurant_fields(p) for p in ("a", "b", "c")])
        listener = RecordingListener()

        ctx.notifier.subscribe(listener, EntityKind.restaurant)

        assert len(listener.events) == 1
        event = listener.events[0]
        assert event.change is ChangeKind.update
        assert sorted(r.place_id for r in event.payload) == ["a", "b", "c"]

    def test_replay_covers_every_kind_in_order(self, ctx):
        listener = RecordingListener()

        ctx.notifier.subscribe(listener)

        assert [e.kind for e in listener.events] == [
            EntityKind.user, EntityKind.restaurant, EntityKind.review, EntityKind.chat_message,
        ]
        assert all(e.change is ChangeKind.update for e in listener.events)
        assert listener.events[0].payload is None

    def test_review_replay_uses_restaurant_reference(self, ctx):
        restaurant = ctx.store.upsert_restaurants([_restaurant_fields("a")])[0][0]
        review = ctx.store.add_review(restaurant, 4.0, comment="good")

        scoped = RecordingListener(restaurant_reference=restaurant)
        unscoped = RecordingListener()
        ctx.notifier.subscribe(scoped, EntityKind.review)
        ctx.notifier.subscribe(unscoped, EntityKind.review)

        assert scoped.events[0].payload == [review]
        assert unscoped.events[0].payload == []

    def test_no_replay_without_source(self):
        notifier = ChangeNotifier()
        listener = RecordingListener()

        notifier.subscribe(listener)

        assert listener.events == []


class TestDelivery:
    def test_registration_order(self):
        notifier = ChangeNotifier()
        received: list[str] = []

        class Named:
            def __init__(self, name):
                self.name = name

            def on_change(self, event):
                received.append(self.name)

        first, second, third = Named("first"), Named("second"), Named("third")
        for listener in (first, second, third):
            notifier.subscribe(listener)

        notifier.publish(EntityKind.user, ChangeKind.update, None)

        assert received == ["first", "second", "third"]

    def test_interests_filter(self):
        notifier = ChangeNotifier()
        listener = RecordingListener()
        notifier.subscribe(listener, [EntityKind.review])

        notifier.publish(EntityKind.restaurant, ChangeKind.add, [])
        notifier.publish(EntityKind.review, ChangeKind.add, [])

        assert [e.kind for e in listener.events] == [EntityKind.review]

    def test_resubscribe_replaces_interests(self):
        notifier = ChangeNotifier()
        listener = RecordingListener()
        notifier.subscribe(listener, EntityKind.review)
        notifier.subscribe(listener, EntityKind.user)

        notifier.publish(EntityKind.review, ChangeKind.add, [])
        notifier.publish(EntityKind.user, ChangeKind.update, None)

        assert notifier.listener_count() == 1
        assert [e.kind for e in listener.events] == [EntityKind.user]

    def test_category_rides_on_event(self):
        notifier = ChangeNotifier()
        listener = RecordingListener()
        notifier.subscribe(listener)

        notifier.publish(EntityKind.restaurant, ChangeKind.update, [], category="trending")

        assert listener.events[0].category == "trending"


class TestNestedPublish:
    def test_change_made_by_a_listener_reaches_others_after_the_original(self, ctx):
        restaurant = ctx.store.upsert_restaurants([_restaurant_fields("a")])[0][0]

        class DeletesNewReviews:
            def on_change(self, event):
                if event.change is ChangeKind.add:
                    for review in event.payload:
                        ctx.store.delete(review)

        moderator = DeletesNewReviews()
        observer = RecordingListener()
        ctx.notifier.subscribe(moderator, EntityKind.review)
        ctx.notifier.subscribe(observer, EntityKind.review)
        observer.events.clear()

        ctx.store.add_review(restaurant, 1.0, comment="spam")

        assert [e.change for e in observer.events] == [ChangeKind.add, ChangeKind.remove]
        assert ctx.store.reviews_for(restaurant) == []

    def test_queued_events_keep_publish_order(self):
        notifier = ChangeNotifier()
        received: list[str] = []

        class Echo:
            def on_change(self, event):
                received.append(f"first:{event.payload}")
                if event.payload == "one":
                    notifier.publish(EntityKind.user, ChangeKind.update, "two")
                    notifier.publish(EntityKind.user, ChangeKind.update, "three")

        class Tail:
            def on_change(self, event):
                received.append(f"second:{event.payload}")

        echo, tail = Echo(), Tail()
        notifier.subscribe(echo)
        notifier.subscribe(tail)

        notifier.publish(EntityKind.user, ChangeKind.update, "one")

        assert received == [
            "first:one", "second:one",
            "first:two", "second:two",
            "first:three", "second:three",
        ]


class TestFailingListener:
    def test_failure_is_logged_and_others_still_notified(self, caplog):
        notifier = ChangeNotifier()

        class Broken:
            def on_change(self, event):
                raise RuntimeError("boom")

        broken = Broken()
        healthy = RecordingListener()
        notifier.subscribe(broken)
        notifier.subscribe(healthy)

        with caplog.at_level(logging.ERROR, logger="tablefinder.notifier.notifier"):
            notifier.publish(EntityKind.restaurant, ChangeKind.add, [])
            notifier.publish(EntityKind.restaurant, ChangeKind.remove, [])

        assert [e.change for e in healthy.events] == [ChangeKind.add, ChangeKind.remove]
        assert len(caplog.records) == 2
        assert caplog.records[0].exc_info is not None

    def test_failing_listener_does_not_block_cache_refresh(self, ctx, provider):
        class Broken:
            def on_change(self, event):
                raise RuntimeError("boom")

        broken = Broken()
        ctx.notifier.subscribe(broken, EntityKind.restaurant)
        provider.text_results = [make_place("a")]

        restaurants = asyncio.run(ctx.search_cache.resolve("trending"))

        assert [r.place_id for r in restaurants] == ["a"]
        assert ctx.search_cache.state("trending").place_ids == ("a",)


class TestLifecycle:
    def test_unsubscribe_is_idempotent(self):
        notifier = ChangeNotifier()
        listener = RecordingListener()
        notifier.subscribe(listener)

        notifier.unsubscribe(listener)
        notifier.unsubscribe(listener)
        notifier.publish(EntityKind.user, ChangeKind.update, None)

        assert listener.events == []
        assert notifier.listener_count() == 0

    def test_collected_listener_is_pruned(self):
        notifier = ChangeNotifier()
        keeper = RecordingListener()
        notifier.subscribe(keeper)
        notifier.subscribe(RecordingListener())
        gc.collect()

        notifier.publish(EntityKind.user, ChangeKind.update, None)

        assert notifier.listener_count() == 1
        assert len(keeper.events) == 1

    def test_subscription_block(self):
        notifier = ChangeNotifier()
        listener = RecordingListener()

        with notifier.subscription(listener, EntityKind.chat_message):
            notifier.publish(EntityKind.chat_message, ChangeKind.add, [])
            assert notifier.listener_count() == 1

        notifier.publish(EntityKind.chat_message, ChangeKind.add, [])
        assert len(listener.events) == 1
        assert notifier.listener_count() == 0
