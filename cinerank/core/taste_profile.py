"""Taste profile analysis from a user's rating history.

The profile is a pure function of the rated items: weighted genre and
decade affinities, rating habits, agreement with critical consensus and a
one-paragraph persona used in recommendation prompts.
"""

import time
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from typing import Any

from cinerank.config import config
from cinerank.core.cache import Clock, ExpiringCache
from cinerank.core.contracts import MediaKind, RatedItem
from cinerank.logging import get_logger
from cinerank.providers.tmdb_client import TMDB_GENRE_MAP

logger = get_logger(__name__)

UNKNOWN_GENRE = "Unknown"

# Tier weights by user rating
LOVED_THRESHOLD = 8.0
LIKED_THRESHOLD = 6.0
LOVED_WEIGHT = 3
LIKED_WEIGHT = 1
DISLIKED_WEIGHT = -2

# Score alignment buckets (absolute difference to consensus)
ALIGNED_DIFF = 1.0
MODERATE_DIFF = 2.5


def tier_weight(rating: float) -> int:
    """Weight an item contributes to affinities given its user rating."""
    if rating >= LOVED_THRESHOLD:
        return LOVED_WEIGHT
    if rating >= LIKED_THRESHOLD:
        return LIKED_WEIGHT
    return DISLIKED_WEIGHT


def genre_name(genre_id: int) -> str:
    return TMDB_GENRE_MAP.get(genre_id, UNKNOWN_GENRE)


class GenreAffinity(dict):
    """Genre name -> score, ordered by descending score.

    Lookups also accept TMDB genre ids, which resolve to their names.
    """

    def __missing__(self, key: Any) -> int:
        if isinstance(key, int) and not isinstance(key, bool):
            name = genre_name(key)
            if name in self:
                return self[name]
        raise KeyError(key)

    def get(self, key: Any, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def __contains__(self, key: object) -> bool:
        if isinstance(key, int) and not isinstance(key, bool):
            key = genre_name(key)
        return super().__contains__(key)


@dataclass(frozen=True)
class RatingTendencies:
    is_generous_rater: bool
    is_critical: bool
    prefers_high_consensus: bool
    is_contrarian: bool


@dataclass(frozen=True)
class ScoreAlignment:
    average_absolute_difference: float
    fraction_aligned: float
    tends_to_rate_above_consensus: bool


@dataclass
class TasteProfile:
    """Statistical summary of a user's ratings."""

    media_kind: MediaKind
    genre_affinity: GenreAffinity
    rating_tendencies: RatingTendencies
    decade_affinity: dict[str, int]
    score_alignment: ScoreAlignment
    persona_text: str
    total_rated_count: int
    average_rating: float
    rating_spread: float

    @property
    def rating_style(self) -> str:
        if self.rating_tendencies.is_generous_rater:
            return "Generous"
        if self.rating_tendencies.is_critical:
            return "Critical"
        return "Balanced"

    def top_genres(self, limit: int) -> list[tuple[str, int]]:
        return list(self.genre_affinity.items())[:limit]

    def negative_genres(self, limit: int) -> list[str]:
        return [genre for genre, score in self.genre_affinity.items() if score < 0][:limit]

    def to_dict(self) -> dict[str, Any]:
        return {
            "genreAffinity": dict(self.genre_affinity),
            "ratingTendencies": asdict(self.rating_tendencies),
            "decadeAffinity": dict(self.decade_affinity),
            "scoreAlignment": asdict(self.score_alignment),
            "totalRatedCount": self.total_rated_count,
            "averageRating": self.average_rating,
            "ratingSpread": self.rating_spread,
            "personaText": self.persona_text,
        }


def _sorted_by_score(scores: dict[str, int]) -> list[tuple[str, int]]:
    # sorted() is stable, so ties keep first-seen order
    return sorted(scores.items(), key=lambda kv: kv[1], reverse=True)


def genre_affinity(items: Iterable[RatedItem]) -> GenreAffinity:
    """Sum tier weights per genre."""
    scores: dict[str, int] = {}
    for item in items:
        weight = tier_weight(item.user_rating)
        for genre_id in sorted(item.genre_ids):
            name = genre_name(genre_id)
            scores[name] = scores.get(name, 0) + weight
    return GenreAffinity(_sorted_by_score(scores))


def decade_affinity(items: Iterable[RatedItem]) -> dict[str, int]:
    """Sum tier weights per release decade; undated items are skipped."""
    scores: dict[str, int] = {}
    for item in items:
        year = item.year
        if year is None:
            continue
        label = f"{(year // 10) * 10}s"
        scores[label] = scores.get(label, 0) + tier_weight(item.user_rating)
    return dict(_sorted_by_score(scores))


def rating_tendencies(items: Sequence[RatedItem]) -> RatingTendencies:
    total = len(items)
    generous = sum(1 for i in items if i.user_rating >= 8)
    critical = sum(1 for i in items if i.user_rating <= 5)
    high_consensus = sum(
        1
        for i in items
        if i.external_score is not None and i.external_score >= 7.5 and i.user_rating >= 7
    )
    contrarian = sum(
        1
        for i in items
        if i.external_score is not None and abs(i.external_score - i.user_rating) > 3
    )
    return RatingTendencies(
        is_generous_rater=generous / total > 0.4,
        is_critical=critical / total > 0.3,
        prefers_high_consensus=high_consensus / total > 0.5,
        is_contrarian=contrarian / total > 0.3,
    )


def score_alignment(items: Sequence[RatedItem]) -> ScoreAlignment:
    """Compare user ratings with the critical-consensus average.

    Items without a consensus score contribute to the denominators of the
    fractions but not to the mean difference.
    """
    total = len(items)
    diffs = [
        abs(i.external_score - i.user_rating) for i in items if i.external_score is not None
    ]
    aligned = sum(1 for d in diffs if alignment_bucket(d) == "aligned")
    above = sum(
        1 for i in items if i.external_score is not None and i.user_rating > i.external_score
    )
    return ScoreAlignment(
        average_absolute_difference=sum(diffs) / len(diffs) if diffs else 0.0,
        fraction_aligned=aligned / total,
        tends_to_rate_above_consensus=above > total / 2,
    )


def alignment_bucket(diff: float) -> str:
    if diff < ALIGNED_DIFF:
        return "aligned"
    if diff < MODERATE_DIFF:
        return "moderate"
    return "divergent"


def build_persona(
    genres: GenreAffinity,
    tendencies: RatingTendencies,
    alignment: ScoreAlignment,
    media_kind: MediaKind = MediaKind.MOVIE,
) -> str:
    """Compose the natural-language taste summary."""
    noun = "movies" if media_kind is MediaKind.MOVIE else "shows"
    top = [genre for genre, _ in list(genres.items())[:3]]
    disliked = [genre for genre, score in genres.items() if score < 0][:2]

    persona = f"Viewer who loves {', '.join(top)}" if top else "Viewer with eclectic taste"
    if disliked:
        persona += f" but dislikes {', '.join(disliked)}"

    if tendencies.is_generous_rater:
        persona += f". Tends to rate {noun} generously"
    elif tendencies.is_critical:
        persona += ". Has very high standards and rates critically"
    else:
        persona += ". Rates in a balanced way"

    if tendencies.prefers_high_consensus:
        persona += ". Appreciates critically acclaimed content"
    elif tendencies.is_contrarian:
        persona += ". Has unique taste that often differs from mainstream opinion"
    elif alignment.fraction_aligned > 0.6:
        persona += ". Usually agrees with critical consensus"
    else:
        persona += ". Sometimes parts ways with critical consensus"

    return persona


def analyze_taste_profile(items: Sequence[RatedItem], media_kind: MediaKind) -> TasteProfile:
    """Build a taste profile from rated items.

    Raises:
        ValueError: If ``items`` is empty. Callers gate on history size.
    """
    if not items:
        raise ValueError("Cannot analyze an empty rating history")

    ratings = [i.user_rating for i in items]
    genres = genre_affinity(items)
    tendencies = rating_tendencies(items)
    alignment = score_alignment(items)

    return TasteProfile(
        media_kind=media_kind,
        genre_affinity=genres,
        rating_tendencies=tendencies,
        decade_affinity=decade_affinity(items),
        score_alignment=alignment,
        persona_text=build_persona(genres, tendencies, alignment, media_kind),
        total_rated_count=len(items),
        average_rating=sum(ratings) / len(ratings),
        rating_spread=max(ratings) - min(ratings),
    )


def profile_cache_key(items: Iterable[RatedItem], media_kind: MediaKind) -> str:
    pairs = sorted(f"{i.id}_{i.user_rating}" for i in items)
    return f"profile_{media_kind.value}_{','.join(pairs)}"


class TasteProfileAnalyzer:
    """Memoizing wrapper around :func:`analyze_taste_profile`.

    Entries are keyed by the exact (id, rating) pairs, so a changed history
    simply misses the cache. Profiles expire with the recommendation TTL and
    expired ones are purged whenever a new profile is stored.
    """

    def __init__(self, ttl_seconds: float | None = None, clock: Clock = time.monotonic) -> None:
        ttl = config.recs_cache_ttl_hours * 3600 if ttl_seconds is None else ttl_seconds
        self._cache: ExpiringCache[TasteProfile] = ExpiringCache(ttl, clock=clock)

    def analyze(self, items: Sequence[RatedItem], media_kind: MediaKind) -> TasteProfile:
        key = profile_cache_key(items, media_kind)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        profile = analyze_taste_profile(items, media_kind)
        self._cache.purge_expired()
        self._cache.set(key, profile)
        logger.debug(
            f"Built taste profile from {profile.total_rated_count} ratings",
            extra={"media_kind": media_kind.value},
        )
        return profile

    def clear_cache(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
