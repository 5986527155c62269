"""Application entrypoint for the FastAPI service."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from cinerank.config import config
from cinerank.core.categories import dynamic_categories
from cinerank.core.contracts import (
    CatalogItem,
    MediaKind,
    NewItem,
    RatedItem,
    RatingCategoryKey,
    Winner,
)
from cinerank.core.protocol import ROUNDS, ComparisonSession, ComparisonSessionError
from cinerank.core.rating_flow import ComparisonSessionRegistry, finalize_rating, plan_rating
from cinerank.core.recommender import RecommendationService
from cinerank.core.taste_profile import TasteProfileAnalyzer
from cinerank.logging import get_logger, setup_logging
from cinerank.storage import (
    DailyQuotaTracker,
    KeyValueRepo,
    NegativeFeedbackStore,
    NotInterestedStore,
    RatingsStore,
    close_engine,
    create_tables,
    get_session_factory,
)

setup_logging(config.log_level)
logger = get_logger(__name__)

profile_analyzer = TasteProfileAnalyzer()
comparison_sessions = ComparisonSessionRegistry()
_recommendation_service: RecommendationService | None = None


def build_recommendation_service() -> RecommendationService:
    """Wire the recommendation service to TMDB, the LLM and the quota table."""
    from cinerank.llm import LLMCompletionClient
    from cinerank.providers import TMDBCatalog, TMDBClient

    if not config.tmdb_bearer_token:
        raise HTTPException(
            status_code=503,
            detail="Recommendations not configured (TMDB_BEARER_TOKEN not set)",
        )

    client = TMDBClient(
        bearer_token=config.tmdb_bearer_token,
        language=config.tmdb_language,
        region=config.tmdb_region,
    )
    return RecommendationService(
        metadata=TMDBCatalog(client, region=config.tmdb_region or "US"),
        completion=LLMCompletionClient(),
        quota=DailyQuotaTracker(get_session_factory()),
        analyzer=profile_analyzer,
    )


def get_recommendation_service() -> RecommendationService:
    global _recommendation_service

    if _recommendation_service is None:
        _recommendation_service = build_recommendation_service()
    return _recommendation_service


def get_comparison_sessions() -> ComparisonSessionRegistry:
    return comparison_sessions


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    session_factory = get_session_factory()
    async with session_factory() as session:
        yield session


async def verify_admin_token(
    authorization: str | None = Header(None, alias="Authorization"),
) -> None:
    """Verify admin token for protected endpoints.

    Args:
        authorization: Authorization header value

    Raises:
        HTTPException: If token is invalid or missing
    """
    if not config.admin_token:
        raise HTTPException(
            status_code=503,
            detail="Admin endpoints not configured (ADMIN_TOKEN not set)",
        )

    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    # Support "Bearer <token>" or just "<token>"
    token = authorization
    if authorization.startswith("Bearer "):
        token = authorization[7:]

    if token != config.admin_token:
        raise HTTPException(status_code=403, detail="Invalid admin token")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting application")

    await create_tables()
    logger.info("Database tables ensured")

    yield

    logger.info("Shutting down application")

    if _recommendation_service is not None:
        await _recommendation_service.metadata.close()
        logger.info("TMDB client closed")

    await close_engine()


app = FastAPI(
    title="Cinerank",
    version="0.1.0",
    lifespan=lifespan,
)


class RatedItemPayload(BaseModel):
    """A rated title as sent by clients.

    ``elo_rating`` carries legacy 0-1000 scores and is used only when
    ``user_rating`` is absent.
    """

    id: int
    title: str = ""
    genre_ids: list[int] = Field(default_factory=list)
    user_rating: float | None = None
    elo_rating: float | None = None
    external_score: float | None = None
    external_vote_count: int | None = None
    release_date: str | None = None

    def to_rated_item(self, media_kind: MediaKind) -> RatedItem:
        return RatedItem.from_dict(
            {
                "id": self.id,
                "title": self.title,
                "genre_ids": self.genre_ids,
                "userRating": self.user_rating,
                "eloRating": self.elo_rating,
                "externalScore": self.external_score,
                "externalVoteCount": self.external_vote_count,
                "releaseDate": self.release_date,
            },
            media_kind,
        )


class RatedItemsPayload(BaseModel):
    items: list[RatedItemPayload]


class NewItemPayload(BaseModel):
    id: int
    title: str
    genre_ids: list[int] = Field(default_factory=list)
    release_date: str | None = None
    external_score: float | None = None
    external_vote_count: int | None = None

    def to_new_item(self, media_kind: MediaKind) -> NewItem:
        return NewItem(
            id=self.id,
            title=self.title,
            media_kind=media_kind,
            genre_ids=frozenset(self.genre_ids),
            release_date=self.release_date,
            external_score=self.external_score,
            external_vote_count=self.external_vote_count,
        )


class StartRatingPayload(BaseModel):
    item: NewItemPayload
    sentiment: RatingCategoryKey


class ChoicePayload(BaseModel):
    winner: Winner


class RecommendationsPayload(BaseModel):
    """Ids to keep out of the result besides the stored history."""

    seen_ids: list[int] = Field(default_factory=list)
    watchlist_ids: list[int] = Field(default_factory=list)
    skipped_ids: list[int] = Field(default_factory=list)


class NotInterestedPayload(BaseModel):
    id: int
    title: str
    genre_ids: list[int] = Field(default_factory=list)
    vote_average: float | None = None


def _to_rated_items(payload: RatedItemsPayload, media_kind: MediaKind) -> list[RatedItem]:
    try:
        return [item.to_rated_item(media_kind) for item in payload.items]
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


def _comparison_state(session: ComparisonSession, suggested_rating: float) -> dict[str, Any]:
    current = session.current_comparison
    return {
        "status": "comparing",
        "round": (session.round_index or 0) + 1,
        "rounds": ROUNDS,
        "suggestedRating": suggested_rating,
        "comparison": current.to_dict() if current else None,
    }


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"ok": True}


@app.post("/profile/{kind}")
async def build_profile(kind: MediaKind, payload: RatedItemsPayload) -> dict:
    """Analyze a rating history into a taste profile."""
    items = _to_rated_items(payload, kind)
    if not items:
        raise HTTPException(status_code=400, detail="At least one rated item is required")

    profile = profile_analyzer.analyze(items, kind)
    return {"ok": True, "ratingStyle": profile.rating_style, **profile.to_dict()}


@app.post("/categories")
async def get_categories(payload: RatedItemsPayload) -> dict:
    """Resolve the four sentiment tiers against a rating history."""
    items = _to_rated_items(payload, MediaKind.MOVIE)
    categories = dynamic_categories(items)
    return {
        "ok": True,
        "categories": {key.value: category.to_dict() for key, category in categories.items()},
    }


@app.post("/users/{user_id}/ratings/{kind}/start")
async def start_rating(
    user_id: str,
    kind: MediaKind,
    payload: StartRatingPayload,
    session: AsyncSession = Depends(get_session),
    sessions: ComparisonSessionRegistry = Depends(get_comparison_sessions),
) -> dict:
    """Rate a title by sentiment, directly or via a comparison session."""
    ratings = RatingsStore(KeyValueRepo(session), user_id)
    history = await ratings.load(kind)
    new_item = payload.item.to_new_item(kind)

    plan = plan_rating(new_item, payload.sentiment, history)
    if plan.session is None:
        rated = finalize_rating(new_item, plan.direct_rating, plan.category)
        await ratings.save(rated)
        sessions.cancel(user_id)
        return {"status": "rated", "rating": rated.user_rating, "item": rated.to_dict()}

    sessions.start(user_id, plan.session, plan.category)
    logger.info(
        f"Started comparison session for '{new_item.title}'",
        extra={"user_id": user_id, "media_kind": kind.value, "session_round": 1},
    )
    return _comparison_state(plan.session, plan.suggested_rating)


@app.post("/users/{user_id}/ratings/{kind}/choice")
async def record_choice(
    user_id: str,
    kind: MediaKind,
    payload: ChoicePayload,
    session: AsyncSession = Depends(get_session),
    sessions: ComparisonSessionRegistry = Depends(get_comparison_sessions),
) -> dict:
    """Record one comparison choice; the last one stores the rating."""
    active = sessions.get(user_id)
    if active is None or active.session.new_item.media_kind != kind:
        raise HTTPException(status_code=404, detail="No active comparison session")

    try:
        next_session = active.session.record(payload.winner)
    except ComparisonSessionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    sessions.update(user_id, next_session)
    suggested = next_session.new_item.suggested_rating or 0.0

    if not next_session.is_complete:
        return _comparison_state(next_session, suggested)

    rated = finalize_rating(next_session.new_item, next_session.final_rating, active.category)
    await RatingsStore(KeyValueRepo(session), user_id).save(rated)
    logger.info(
        f"Comparison complete for '{rated.title}': {next_session.wins} wins, "
        f"rating {rated.user_rating}",
        extra={"user_id": user_id, "media_kind": kind.value},
    )
    return {
        "status": "rated",
        "rating": rated.user_rating,
        "wins": next_session.wins,
        "item": rated.to_dict(),
    }


@app.delete("/users/{user_id}/ratings/session")
async def cancel_rating(
    user_id: str,
    sessions: ComparisonSessionRegistry = Depends(get_comparison_sessions),
) -> dict:
    """Abandon the user's comparison session without writing a rating."""
    return {"ok": True, "cancelled": sessions.cancel(user_id)}


@app.get("/users/{user_id}/ratings/{kind}")
async def list_ratings(
    user_id: str,
    kind: MediaKind,
    session: AsyncSession = Depends(get_session),
) -> dict:
    items = await RatingsStore(KeyValueRepo(session), user_id).load(kind)
    return {"ok": True, "items": [item.to_dict() for item in items]}


@app.post("/users/{user_id}/recommendations/{kind}")
async def get_recommendations(
    user_id: str,
    kind: MediaKind,
    payload: RecommendationsPayload,
    session: AsyncSession = Depends(get_session),
    service: RecommendationService = Depends(get_recommendation_service),
) -> dict:
    """Recommend titles from the stored rating history."""
    kv = KeyValueRepo(session)
    history = await RatingsStore(kv, user_id).load(kind)
    not_interested = await NotInterestedStore(kv, user_id).load(kind)

    recommendations = await service.get_recommendations(
        history,
        kind,
        seen_ids={item.id for item in history} | set(payload.seen_ids),
        watchlist_ids=payload.watchlist_ids,
        excluded_ids=set(payload.skipped_ids) | not_interested,
        feedback_store=NegativeFeedbackStore(kv, user_id),
    )
    return {
        "ok": True,
        "recommendations": [rec.to_dict() for rec in recommendations],
    }


@app.post("/users/{user_id}/not-interested/{kind}")
async def mark_not_interested(
    user_id: str,
    kind: MediaKind,
    payload: NotInterestedPayload,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Reject a recommended title for good."""
    kv = KeyValueRepo(session)
    item = CatalogItem(
        id=payload.id,
        title=payload.title,
        media_kind=kind,
        genre_ids=payload.genre_ids,
        vote_average=payload.vote_average,
    )
    await NegativeFeedbackStore(kv, user_id).record(item, kind)
    added = await NotInterestedStore(kv, user_id).record(payload.id, kind)
    return {"ok": True, "added": added}


@app.get("/users/{user_id}/not-interested/{kind}")
async def list_not_interested(
    user_id: str,
    kind: MediaKind,
    session: AsyncSession = Depends(get_session),
) -> dict:
    ids = await NotInterestedStore(KeyValueRepo(session), user_id).load(kind)
    return {"ok": True, "ids": sorted(ids)}


@app.get("/admin/quota")
async def get_quota(
    _: None = Depends(verify_admin_token),
    service: RecommendationService = Depends(get_recommendation_service),
) -> dict:
    """Return today's remaining completion calls."""
    if service.quota is None:
        raise HTTPException(status_code=503, detail="Quota tracking not configured")
    return {"ok": True, "remaining": await service.quota.remaining_calls()}


@app.post("/admin/cache/clear")
async def clear_cache(
    _: None = Depends(verify_admin_token),
    service: RecommendationService = Depends(get_recommendation_service),
) -> dict:
    """Drop cached profiles and recommendations."""
    logger.info("Admin cleared recommendation cache")
    service.clear_cache()
    return {"ok": True}


def main() -> None:
    """Run the API server."""
    logger.info(f"Starting FastAPI server on {config.host}:{config.port}")
    uvicorn.run(
        "cinerank.main:app",
        host=config.host,
        port=config.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
