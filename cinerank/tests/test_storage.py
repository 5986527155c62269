"""Tests for storage layer."""

import json

import pytest

from cinerank.core.contracts import CatalogItem, MediaKind, RatingCategoryKey
from cinerank.storage import (
    DailyQuotaTracker,
    KeyValueRepo,
    NegativeFeedbackStore,
    NotInterestedStore,
    QuotaLimits,
    RatingsStore,
)
from cinerank.storage.json_utils import load_json_list, safe_json_dumps, safe_json_loads
from cinerank.tests.factories import make_rated


def _catalog_item(item_id, title=None):
    return CatalogItem(
        id=item_id,
        title=title or f"Title {item_id}",
        media_kind=MediaKind.MOVIE,
        genre_ids=[18],
        vote_average=6.1,
    )


@pytest.mark.anyio
async def test_kv_set_get_remove(session):
    """Test key-value upsert and removal."""
    kv = KeyValueRepo(session)

    assert await kv.get("u1:key") is None

    await kv.set("u1:key", "first")
    await kv.set("u1:key", "second")
    assert await kv.get("u1:key") == "second"

    await kv.remove("u1:key")
    assert await kv.get("u1:key") is None


class TestNegativeFeedbackStore:
    """Bounded rejection log."""

    @pytest.mark.anyio
    async def test_record_and_load(self, session):
        store = NegativeFeedbackStore(KeyValueRepo(session), "u1")

        entry = await store.record(_catalog_item(7, "Cats"), MediaKind.MOVIE)
        entries = await store.load(MediaKind.MOVIE)

        assert [e.item_id for e in entries] == [7]
        assert entries[0].title == "Cats"
        assert entries[0].genre_ids == [18]
        assert entries[0].external_score == 6.1
        assert entries[0].timestamp_millis == entry.timestamp_millis > 0
        assert await store.load(MediaKind.TV) == []

    @pytest.mark.anyio
    async def test_log_is_fifo_capped(self, session):
        store = NegativeFeedbackStore(KeyValueRepo(session), "u1", max_entries=5)

        for item_id in range(8):
            await store.record(_catalog_item(item_id), MediaKind.MOVIE)

        entries = await store.load(MediaKind.MOVIE)
        assert [e.item_id for e in entries] == [3, 4, 5, 6, 7]

    @pytest.mark.anyio
    async def test_default_cap_is_100(self, session):
        store = NegativeFeedbackStore(KeyValueRepo(session), "u1")

        for item_id in range(103):
            await store.record(_catalog_item(item_id), MediaKind.MOVIE)

        entries = await store.load(MediaKind.MOVIE)
        assert len(entries) == 100
        assert entries[0].item_id == 3

    @pytest.mark.anyio
    async def test_corrupt_log_reads_as_empty(self, session):
        kv = KeyValueRepo(session)
        await kv.set("u1:ai_negative_feedback_movie", "{not json")
        store = NegativeFeedbackStore(kv, "u1")

        assert await store.load(MediaKind.MOVIE) == []

        await store.record(_catalog_item(1), MediaKind.MOVIE)
        assert len(await store.load(MediaKind.MOVIE)) == 1

    @pytest.mark.anyio
    async def test_stored_format(self, session):
        kv = KeyValueRepo(session)
        store = NegativeFeedbackStore(kv, "u1")

        await store.record(_catalog_item(9, "Stored"), MediaKind.MOVIE)

        stored = json.loads(await kv.get("u1:ai_negative_feedback_movie"))
        assert stored[0]["id"] == 9
        assert stored[0]["title"] == "Stored"
        assert stored[0]["genre_ids"] == [18]
        assert stored[0]["vote_average"] == 6.1
        assert stored[0]["mediaType"] == "movie"


class TestNotInterestedStore:
    @pytest.mark.anyio
    async def test_record_is_idempotent(self, session):
        store = NotInterestedStore(KeyValueRepo(session), "u1")

        assert await store.record(42, MediaKind.MOVIE) is True
        assert await store.record(42, MediaKind.MOVIE) is False

        assert await store.load(MediaKind.MOVIE) == {42}
        assert await store.load(MediaKind.TV) == set()

    @pytest.mark.anyio
    async def test_users_are_isolated(self, session):
        kv = KeyValueRepo(session)
        await NotInterestedStore(kv, "u1").record(1, MediaKind.TV)

        assert await NotInterestedStore(kv, "u2").load(MediaKind.TV) == set()

    @pytest.mark.anyio
    async def test_corrupt_set_reads_as_empty(self, session):
        kv = KeyValueRepo(session)
        await kv.set("u1:not_interested_movie", '{"a": 1}')

        assert await NotInterestedStore(kv, "u1").load(MediaKind.MOVIE) == set()


class TestRatingsStore:
    @pytest.mark.anyio
    async def test_save_replaces_by_id(self, session):
        store = RatingsStore(KeyValueRepo(session), "u1")

        await store.save(make_rated(1, 6.0, genres=[18]))
        await store.save(make_rated(2, 8.0))
        updated = make_rated(1, 7.5, genres=[18])
        updated.rating_category = RatingCategoryKey.LIKED
        await store.save(updated)

        items = await store.load(MediaKind.MOVIE)
        by_id = {item.id: item for item in items}
        assert len(items) == 2
        assert by_id[1].user_rating == 7.5
        assert by_id[1].rating_category == RatingCategoryKey.LIKED
        assert by_id[1].genre_ids == frozenset({18})

    @pytest.mark.anyio
    async def test_legacy_records_normalized(self, session):
        kv = KeyValueRepo(session)
        await kv.set(
            "u1:rated_movie",
            json.dumps([
                {"id": 5, "title": "Old", "eloRating": 850},
                {"id": 6, "title": "Both", "userRating": 6, "eloRating": 900},
                {"id": 7, "title": "None"},
            ]),
        )

        items = await RatingsStore(kv, "u1").load(MediaKind.MOVIE)

        assert [(i.id, i.user_rating) for i in items] == [(5, 8.5), (6, 6.0)]

    @pytest.mark.anyio
    async def test_remove(self, session):
        store = RatingsStore(KeyValueRepo(session), "u1")
        await store.save(make_rated(1, 6.0))

        assert await store.remove(1, MediaKind.MOVIE) is True
        assert await store.remove(1, MediaKind.MOVIE) is False
        assert await store.load(MediaKind.MOVIE) == []


class TestDailyQuotaTracker:
    @pytest.mark.anyio
    async def test_per_kind_and_total_limits(self, session_factory):
        tracker = DailyQuotaTracker(session_factory, QuotaLimits(movie=2, tv=5, total=3))

        assert await tracker.can_call(MediaKind.MOVIE) is True
        assert await tracker.increment_call_count(MediaKind.MOVIE) == 1
        assert await tracker.increment_call_count(MediaKind.MOVIE) == 2
        assert await tracker.can_call(MediaKind.MOVIE) is False
        assert await tracker.can_call(MediaKind.TV) is True

        await tracker.increment_call_count(MediaKind.TV)

        assert await tracker.can_call(MediaKind.TV) is False
        assert await tracker.remaining_calls() == {"movie": 0, "tv": 4, "total": 0}

    @pytest.mark.anyio
    async def test_fresh_day_has_full_quota(self, session_factory):
        tracker = DailyQuotaTracker(session_factory, QuotaLimits(movie=50, tv=50, total=100))

        assert await tracker.remaining_calls() == {"movie": 50, "tv": 50, "total": 100}
        assert await tracker.can_call(MediaKind.MOVIE) is True


class TestJsonUtils:
    def test_malformed_and_absent_documents_use_default(self):
        assert safe_json_loads(None) == {}
        assert safe_json_loads("{oops", default=[]) == []
        assert safe_json_loads('[1, 2]', expected=dict) == {}

    def test_load_json_list(self):
        assert load_json_list("[3, 1]") == [3, 1]
        assert load_json_list('"text"') == []

    def test_dumps_is_compact_and_keeps_unicode(self):
        assert safe_json_dumps({"title": "Amélie", "ids": [1, 2]}) == '{"title":"Amélie","ids":[1,2]}'
        assert safe_json_dumps(None) == "{}"
        assert safe_json_dumps({1, 2}, default="[]") == "[]"
