"""Tests for the HTTP endpoints."""

from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from cinerank.core.contracts import CatalogItem, MediaKind
from cinerank.tests.factories import make_rated

ADMIN_HEADERS = {"Authorization": "Bearer test-admin-token"}


def _item_payload(item_id, rating, genres=()):
    return {"id": item_id, "title": f"Title {item_id}", "genre_ids": list(genres), "user_rating": rating}


@pytest.fixture
def recommendation_service():
    from cinerank.core.recommender import RecommendationService

    async def search(title, media_kind):
        ids = {"Heat": 1, "Ronin": 2}
        if title not in ids:
            return []
        return [CatalogItem(
            id=ids[title], title=title, media_kind=media_kind,
            poster_path=f"/{ids[title]}.jpg", vote_average=7.5, vote_count=1500,
        )]

    metadata = AsyncMock()
    metadata.search.side_effect = search
    metadata.details.return_value = {"vote_count": 1500}
    completion = AsyncMock()
    completion.complete.return_value = "Heat\nRonin"
    quota = AsyncMock()
    quota.can_call.return_value = True
    quota.remaining_calls.return_value = {"movie": 49, "tv": 50, "total": 99}

    return RecommendationService(metadata, completion, quota, request_spacing_seconds=0)


@pytest.fixture
async def client(session, recommendation_service):
    from cinerank.core.rating_flow import ComparisonSessionRegistry
    from cinerank.main import (
        app,
        get_comparison_sessions,
        get_recommendation_service,
        get_session,
    )

    registry = ComparisonSessionRegistry()

    async def override_session():
        yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_recommendation_service] = lambda: recommendation_service
    app.dependency_overrides[get_comparison_sessions] = lambda: registry

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


async def _seed_history(session, user_id, ratings):
    from cinerank.storage import KeyValueRepo, RatingsStore

    store = RatingsStore(KeyValueRepo(session), user_id)
    for item_id, rating in ratings:
        await store.save(make_rated(item_id, rating))


@pytest.mark.anyio
async def test_health_endpoint(client):
    """Test that health endpoint returns ok status."""
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.anyio
async def test_profile_endpoint(client):
    response = await client.post("/profile/movie", json={"items": [
        _item_payload(1, 9, [28]),
        _item_payload(2, 8.5, [28]),
        _item_payload(3, 3, [35]),
    ]})

    assert response.status_code == 200
    data = response.json()
    assert data["genreAffinity"] == {"Action": 6, "Comedy": -2}
    assert data["totalRatedCount"] == 3
    assert data["ratingStyle"] == "Generous"


@pytest.mark.anyio
async def test_profile_accepts_legacy_elo(client):
    response = await client.post("/profile/tv", json={"items": [
        {"id": 1, "title": "Old", "genre_ids": [18], "elo_rating": 900},
    ]})

    assert response.status_code == 200
    assert response.json()["averageRating"] == 9.0


@pytest.mark.anyio
async def test_profile_rejects_bad_input(client):
    empty = await client.post("/profile/movie", json={"items": []})
    unrated = await client.post("/profile/movie", json={"items": [{"id": 1}]})
    bad_kind = await client.post("/profile/book", json={"items": []})

    assert empty.status_code == 400
    assert unrated.status_code == 422
    assert bad_kind.status_code == 422


@pytest.mark.anyio
async def test_categories_endpoint(client):
    response = await client.post("/categories", json={
        "items": [_item_payload(i, r) for i, r in enumerate([5, 6, 7, 8, 9], start=1)]
    })

    assert response.status_code == 200
    liked = response.json()["categories"]["LIKED"]
    assert liked["midpoint"] == 7.5
    assert liked["percentile"] == [50, 74]


@pytest.mark.anyio
async def test_direct_rating_without_history(client):
    response = await client.post("/users/u1/ratings/movie/start", json={
        "item": {"id": 100, "title": "Arrival", "genre_ids": [878]},
        "sentiment": "LOVED",
    })

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "rated"
    assert data["rating"] == 8.5

    listed = await client.get("/users/u1/ratings/movie")
    items = listed.json()["items"]
    assert [(i["id"], i["userRating"], i["ratingCategory"]) for i in items] == [(100, 8.5, "LOVED")]


@pytest.mark.anyio
async def test_comparison_flow(client, session):
    await _seed_history(session, "u1", [(i, float(i)) for i in range(1, 11)])

    start = await client.post("/users/u1/ratings/movie/start", json={
        "item": {"id": 100, "title": "Arrival"},
        "sentiment": "LIKED",
    })
    assert start.json()["status"] == "comparing"
    assert start.json()["round"] == 1
    assert start.json()["suggestedRating"] == 7.0

    second = await client.post("/users/u1/ratings/movie/choice", json={"winner": "new"})
    assert second.json()["round"] == 2

    await client.post("/users/u1/ratings/movie/choice", json={"winner": "new"})
    final = await client.post("/users/u1/ratings/movie/choice", json={"winner": "new"})

    data = final.json()
    assert data["status"] == "rated"
    assert data["wins"] == 3
    # comparison items rated 5, 4 and 3; average 4 plus the three-win bonus
    assert data["rating"] == 4.5

    listed = await client.get("/users/u1/ratings/movie")
    assert len(listed.json()["items"]) == 11

    again = await client.post("/users/u1/ratings/movie/choice", json={"winner": "new"})
    assert again.status_code == 404


@pytest.mark.anyio
async def test_cancel_discards_session(client, session):
    await _seed_history(session, "u1", [(i, float(i)) for i in range(1, 11)])
    await client.post("/users/u1/ratings/movie/start", json={
        "item": {"id": 100, "title": "Arrival"},
        "sentiment": "LIKED",
    })

    cancelled = await client.delete("/users/u1/ratings/session")
    repeated = await client.delete("/users/u1/ratings/session")
    choice = await client.post("/users/u1/ratings/movie/choice", json={"winner": "new"})

    assert cancelled.json()["cancelled"] is True
    assert repeated.json()["cancelled"] is False
    assert choice.status_code == 404
    listed = await client.get("/users/u1/ratings/movie")
    assert len(listed.json()["items"]) == 10


@pytest.mark.anyio
async def test_not_interested_round_trip(client):
    payload = {"id": 1, "title": "Heat", "genre_ids": [80], "vote_average": 8.3}

    first = await client.post("/users/u1/not-interested/movie", json=payload)
    second = await client.post("/users/u1/not-interested/movie", json=payload)
    listed = await client.get("/users/u1/not-interested/movie")

    assert first.json()["added"] is True
    assert second.json()["added"] is False
    assert listed.json()["ids"] == [1]


@pytest.mark.anyio
async def test_recommendations_exclude_history_and_not_interested(
    client, session, recommendation_service
):
    await _seed_history(session, "u1", [(10 + i, r) for i, r in enumerate([9, 8, 8, 7, 6, 4])])
    await client.post(
        "/users/u1/not-interested/movie",
        json={"id": 1, "title": "Heat", "genre_ids": [80]},
    )

    response = await client.post("/users/u1/recommendations/movie", json={"watchlist_ids": []})

    assert response.status_code == 200
    recs = response.json()["recommendations"]
    assert [r["id"] for r in recs] == [2]
    assert recs[0]["isAIRecommendation"] is True
    _, prompt = recommendation_service.completion.complete.await_args.args
    assert "AVOID recommending: Heat" in prompt


@pytest.mark.anyio
async def test_recommendations_need_history(client, recommendation_service):
    response = await client.post("/users/u2/recommendations/tv", json={})

    assert response.json()["recommendations"] == []
    recommendation_service.completion.complete.assert_not_awaited()


class TestAdminEndpoints:
    @pytest.mark.anyio
    async def test_token_required(self, client):
        missing = await client.get("/admin/quota")
        wrong = await client.get("/admin/quota", headers={"Authorization": "nope"})

        assert missing.status_code == 401
        assert wrong.status_code == 403

    @pytest.mark.anyio
    async def test_quota(self, client):
        response = await client.get("/admin/quota", headers=ADMIN_HEADERS)

        assert response.json() == {"ok": True, "remaining": {"movie": 49, "tv": 50, "total": 99}}

    @pytest.mark.anyio
    async def test_cache_clear(self, client, recommendation_service):
        recommendation_service.analyzer.analyze([make_rated(1, 8)], MediaKind.MOVIE)

        response = await client.post("/admin/cache/clear", headers=ADMIN_HEADERS)

        assert response.json() == {"ok": True}
        assert len(recommendation_service.analyzer) == 0
