"""AI recommendation service with algorithmic fallback.

Flow: quality gate -> daily quota -> request spacing -> taste profile ->
cache -> prompt -> completion -> title resolution against the catalog ->
exclusion filter. Any failure before resolution completes routes to the
similar-titles fallback; the fallback itself degrades to an empty list.
"""

import asyncio
from collections.abc import Collection, Sequence
from typing import TYPE_CHECKING

from cinerank.config import config
from cinerank.core.cache import Clock, ExpiringCache, RequestSpacer, Sleep
from cinerank.core.contracts import (
    CatalogItem,
    CompletionClient,
    MediaKind,
    MetadataProvider,
    NegativeFeedbackEntry,
    QuotaTracker,
    RatedItem,
    Recommendation,
)
from cinerank.core.matching import (
    clean_title,
    enhanced_score,
    parse_titles,
    title_confidence,
)
from cinerank.core.prompts import SYSTEM_INSTRUCTION, build_recommendation_prompt
from cinerank.core.taste_profile import TasteProfile, TasteProfileAnalyzer
from cinerank.logging import get_logger
from cinerank.storage.json_utils import safe_json_dumps

if TYPE_CHECKING:
    from cinerank.storage.repo_feedback import NegativeFeedbackStore

logger = get_logger(__name__)

CONFIDENCE_RETRY_THRESHOLD = 0.6
CACHE_KEY_PROFILE_CHARS = 100
FALLBACK_SEEDS = 3
FALLBACK_MIN_RATING = 7.0
FALLBACK_PER_SEED = 5


class QuotaExceededError(Exception):
    """Daily completion quota reached for a media kind."""

    def __init__(self, media_kind: MediaKind, remaining: dict[str, int] | None = None):
        super().__init__(f"Daily API limit reached for {media_kind.value}")
        self.media_kind = media_kind
        self.remaining = remaining or {}


class CompletionFailedError(Exception):
    """The completion service returned nothing usable."""


def filter_unseen(
    recommendations: Sequence[Recommendation],
    seen_ids: Collection[int] = (),
    watchlist_ids: Collection[int] = (),
    excluded_ids: Collection[int] = (),
) -> list[Recommendation]:
    """Drop titles already rated, on the watchlist, skipped or rejected."""
    blocked = set(seen_ids) | set(watchlist_ids) | set(excluded_ids)
    return [rec for rec in recommendations if rec.id not in blocked]


def recommendation_cache_key(profile: TasteProfile, media_kind: MediaKind) -> str:
    serialized = safe_json_dumps(profile.to_dict())
    return f"{media_kind.value}-v2-{serialized[:CACHE_KEY_PROFILE_CHARS]}"


class RecommendationService:
    """Produces personalized recommendations for a rating history.

    One instance owns the profile cache, the recommendation cache and the
    request spacer, and is shared by all callers in the process.
    """

    def __init__(
        self,
        metadata: MetadataProvider,
        completion: CompletionClient,
        quota: QuotaTracker | None = None,
        analyzer: TasteProfileAnalyzer | None = None,
        *,
        min_history: int | None = None,
        cache_ttl_seconds: float | None = None,
        request_spacing_seconds: float | None = None,
        min_vote_count: int | None = None,
        max_results: int | None = None,
        fallback_limit: int | None = None,
        clock: Clock | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self.metadata = metadata
        self.completion = completion
        self.quota = quota

        self.min_history = config.recs_min_history if min_history is None else min_history
        self.min_vote_count = (
            config.recs_min_vote_count if min_vote_count is None else min_vote_count
        )
        self.max_results = config.recs_max_results if max_results is None else max_results
        self.fallback_limit = (
            config.recs_fallback_limit if fallback_limit is None else fallback_limit
        )

        ttl = config.recs_cache_ttl_hours * 3600 if cache_ttl_seconds is None else cache_ttl_seconds
        spacing = (
            config.recs_request_spacing_ms / 1000
            if request_spacing_seconds is None
            else request_spacing_seconds
        )

        clock_kwargs = {"clock": clock} if clock is not None else {}
        sleep_kwargs = {"sleep": sleep} if sleep is not None else {}
        self._cache: ExpiringCache[list[Recommendation]] = ExpiringCache(ttl, **clock_kwargs)
        self._spacer = RequestSpacer(spacing, **clock_kwargs, **sleep_kwargs)
        self.analyzer = (
            TasteProfileAnalyzer(ttl, **clock_kwargs) if analyzer is None else analyzer
        )

    def clear_cache(self) -> None:
        """Drop cached recommendations and profiles and reset spacing."""
        self._cache.clear()
        self.analyzer.clear_cache()
        self._spacer.reset()

    async def get_recommendations(
        self,
        rated_items: Sequence[RatedItem],
        media_kind: MediaKind,
        seen_ids: Collection[int] = (),
        watchlist_ids: Collection[int] = (),
        excluded_ids: Collection[int] = (),
        feedback_store: "NegativeFeedbackStore | None" = None,
    ) -> list[Recommendation]:
        """Recommend titles for a rating history.

        Args:
            rated_items: The user's rated history for ``media_kind``
            media_kind: Movies or TV
            seen_ids: Already-rated ids
            watchlist_ids: Ids on the watchlist
            excluded_ids: Skipped plus not-interested ids
            feedback_store: Source of recently rejected titles for the prompt

        Returns:
            Recommendations, empty when history is too short or every path failed
        """
        if len(rated_items) < self.min_history:
            logger.info(
                f"Insufficient data for AI recommendations: {len(rated_items)} rated, "
                f"need {self.min_history}",
                extra={"media_kind": media_kind.value},
            )
            return []

        try:
            recommendations = await self._get_ai_recommendations(
                rated_items, media_kind, feedback_store
            )
        except QuotaExceededError as e:
            logger.warning(f"{e}. Remaining: {e.remaining}")
            recommendations = await self.get_fallback_recommendations(rated_items, media_kind)
        except Exception as e:
            logger.warning(
                f"AI recommendations failed, using fallback: {e}",
                extra={"media_kind": media_kind.value},
            )
            recommendations = await self.get_fallback_recommendations(rated_items, media_kind)

        filtered = filter_unseen(recommendations, seen_ids, watchlist_ids, excluded_ids)
        logger.info(
            f"Returning {len(filtered)} recommendations",
            extra={"media_kind": media_kind.value},
        )
        return filtered

    async def _get_ai_recommendations(
        self,
        rated_items: Sequence[RatedItem],
        media_kind: MediaKind,
        feedback_store: "NegativeFeedbackStore | None",
    ) -> list[Recommendation]:
        if self.quota is not None and not await self.quota.can_call(media_kind):
            raise QuotaExceededError(media_kind, await self.quota.remaining_calls())

        await self._spacer.wait()

        profile = self.analyzer.analyze(rated_items, media_kind)
        cache_key = recommendation_cache_key(profile, media_kind)
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.info("Using cached AI recommendations", extra={"media_kind": media_kind.value})
            return cached

        negative_feedback: list[NegativeFeedbackEntry] = []
        if feedback_store is not None:
            negative_feedback = await feedback_store.load(media_kind)

        prompt = build_recommendation_prompt(rated_items, profile, negative_feedback, media_kind)
        logger.debug(f"Recommendation prompt: {prompt[:200]}...")

        text = await self.completion.complete(SYSTEM_INSTRUCTION, prompt)
        titles = parse_titles(text or "")
        if not titles:
            raise CompletionFailedError("Completion returned no titles")
        logger.info(f"Completion suggested {len(titles)} titles")

        recommendations = await self.resolve_titles(titles, media_kind)

        if self.quota is not None:
            await self.quota.increment_call_count(media_kind)

        self._cache.purge_expired()
        self._cache.set(cache_key, recommendations)
        return recommendations

    async def resolve_titles(
        self, titles: Sequence[str], media_kind: MediaKind
    ) -> list[Recommendation]:
        """Match suggested titles to catalog entries and rank them."""
        results = await asyncio.gather(
            *(self._resolve_title(title, media_kind) for title in titles)
        )
        resolved = [
            rec
            for rec in results
            if rec is not None and (rec.item.vote_count or 0) > self.min_vote_count
        ]
        # Stable sort keeps suggestion order among equal scores
        resolved.sort(key=lambda rec: rec.rank_score, reverse=True)
        return resolved[: self.max_results]

    async def _search_best(
        self, query: str, original_title: str, media_kind: MediaKind
    ) -> tuple[CatalogItem | None, float]:
        results = await self.metadata.search(query, media_kind)
        if not results:
            return None, 0.0
        top = results[0]
        return top, title_confidence(original_title, top.title)

    async def _resolve_title(self, title: str, media_kind: MediaKind) -> Recommendation | None:
        try:
            item, confidence = await self._search_best(title, title, media_kind)

            if item is None or confidence < CONFIDENCE_RETRY_THRESHOLD:
                retry_item, retry_confidence = await self._search_best(
                    clean_title(title), title, media_kind
                )
                if retry_item is not None and retry_confidence > confidence:
                    item, confidence = retry_item, retry_confidence

            if item is None or not item.poster_path:
                logger.debug(f"No usable match for '{title}'")
                return None

            details = await self.metadata.details(item.id, media_kind)
            if details.get("vote_count") is not None:
                item.vote_count = details["vote_count"]

            return Recommendation(
                item=item,
                is_ai_recommendation=True,
                ai_confidence=confidence,
                enhanced_score=enhanced_score(item),
                details=details,
            )
        except Exception as e:
            logger.warning(f"Catalog lookup failed for '{title}': {e}")
            return None

    async def get_fallback_recommendations(
        self, rated_items: Sequence[RatedItem], media_kind: MediaKind
    ) -> list[Recommendation]:
        """Titles similar to the user's top-rated items."""
        logger.info("Using algorithmic fallback recommendations")
        try:
            seeds = sorted(
                (i for i in rated_items if i.user_rating >= FALLBACK_MIN_RATING),
                key=lambda i: i.user_rating,
                reverse=True,
            )[:FALLBACK_SEEDS]

            batches = await asyncio.gather(
                *(self._similar_for(seed, media_kind) for seed in seeds)
            )

            seen: set[int] = set()
            recommendations: list[Recommendation] = []
            for batch in batches:
                for item in batch:
                    if item.id in seen:
                        continue
                    seen.add(item.id)
                    recommendations.append(
                        Recommendation(item=item, is_ai_recommendation=False, is_fallback=True)
                    )
            return recommendations[: self.fallback_limit]
        except Exception as e:
            logger.error(f"Fallback recommendation error: {e}")
            return []

    async def _similar_for(self, seed: RatedItem, media_kind: MediaKind) -> list[CatalogItem]:
        try:
            results = await self.metadata.similar(seed.id, media_kind)
            return results[:FALLBACK_PER_SEED]
        except Exception as e:
            logger.warning(f"Similar lookup failed for '{seed.title}': {e}")
            return []
