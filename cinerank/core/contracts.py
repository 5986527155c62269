"""Domain contracts and type definitions."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class MediaKind(str, Enum):
    """Catalog media kinds (values match TMDB path segments)."""

    MOVIE = "movie"
    TV = "tv"

    @property
    def plural(self) -> str:
        return "movies" if self is MediaKind.MOVIE else "TV shows"


class RatingCategoryKey(str, Enum):
    """Sentiment tiers, highest first."""

    LOVED = "LOVED"
    LIKED = "LIKED"
    AVERAGE = "AVERAGE"
    DISLIKED = "DISLIKED"


class Winner(str, Enum):
    """Outcome of one pairwise comparison."""

    NEW = "new"
    COMPARISON = "comparison"


# ---------------------------------------------------------------------------
# Rating sources
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DirectRating:
    """Rating entered on the 1-10 scale."""

    value: float


@dataclass(frozen=True)
class LegacyEloRating:
    """Rating stored by older clients as an elo-style score (rating * 100)."""

    value: float


RatingSource = DirectRating | LegacyEloRating


def round_rating(value: float) -> float:
    """Round to the one-decimal precision ratings are kept at."""
    return round(value, 1)


def normalize_rating(source: RatingSource) -> float:
    """Resolve a rating source to the 1-10 scale."""
    if isinstance(source, LegacyEloRating):
        return round_rating(source.value / 100)
    return round_rating(source.value)


def rating_source_from_record(data: dict[str, Any]) -> RatingSource | None:
    """Pick the rating source out of a raw stored record.

    ``userRating`` wins over ``eloRating``; zero, missing and NaN values
    count as absent.
    """
    for key, kind in (("userRating", DirectRating), ("eloRating", LegacyEloRating)):
        raw = data.get(key)
        if raw is None:
            continue
        try:
            value = float(raw)
        except (TypeError, ValueError):
            continue
        if value and not math.isnan(value):
            return kind(value)
    return None


def release_year(date_str: str | None) -> int | None:
    """Extract the year from a full or partial ISO date string."""
    if not date_str:
        return None
    try:
        return int(str(date_str)[:4])
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

@dataclass
class RatedItem:
    """A title the user has scored."""

    id: int
    title: str
    media_kind: MediaKind
    user_rating: float
    genre_ids: frozenset[int] = frozenset()
    external_score: float | None = None
    external_vote_count: int | None = None
    release_date: str | None = None
    rating_category: RatingCategoryKey | None = None

    @property
    def year(self) -> int | None:
        return release_year(self.release_date)

    @classmethod
    def from_dict(cls, data: dict[str, Any], media_kind: MediaKind | str | None = None) -> "RatedItem":
        """Build from a stored or client-supplied record.

        Accepts camelCase and TMDB snake_case field names. Raises
        ValueError when the record carries no usable rating.
        """
        source = rating_source_from_record(data)
        if source is None:
            raise ValueError(f"Record {data.get('id')} has no rating")

        kind = MediaKind(media_kind or data.get("mediaKind") or data.get("mediaType") or "movie")
        category = data.get("ratingCategory")

        return cls(
            id=int(data["id"]),
            title=data.get("title") or data.get("name") or "",
            media_kind=kind,
            user_rating=normalize_rating(source),
            genre_ids=frozenset(data.get("genreIds") or data.get("genre_ids") or ()),
            external_score=data.get("externalScore", data.get("vote_average")),
            external_vote_count=data.get("externalVoteCount", data.get("vote_count")),
            release_date=(
                data.get("releaseDate")
                or data.get("release_date")
                or data.get("first_air_date")
            ),
            rating_category=RatingCategoryKey(category) if category else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "mediaKind": self.media_kind.value,
            "userRating": self.user_rating,
            "genreIds": sorted(self.genre_ids),
            "externalScore": self.external_score,
            "externalVoteCount": self.external_vote_count,
            "releaseDate": self.release_date,
            "ratingCategory": self.rating_category.value if self.rating_category else None,
        }


@dataclass
class NewItem:
    """A title being rated for the first time (or re-rated)."""

    id: int
    title: str
    media_kind: MediaKind
    genre_ids: frozenset[int] = frozenset()
    release_date: str | None = None
    external_score: float | None = None
    external_vote_count: int | None = None
    suggested_rating: float | None = None

    @property
    def year(self) -> int | None:
        return release_year(self.release_date)


@dataclass
class CatalogItem:
    """A title record returned by the metadata service."""

    id: int
    title: str
    media_kind: MediaKind
    poster_path: str | None = None
    vote_average: float | None = None
    vote_count: int | None = None
    genre_ids: list[int] = field(default_factory=list)
    release_date: str | None = None
    overview: str | None = None

    @property
    def year(self) -> int | None:
        return release_year(self.release_date)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "mediaKind": self.media_kind.value,
            "posterPath": self.poster_path,
            "voteAverage": self.vote_average,
            "voteCount": self.vote_count,
            "genreIds": list(self.genre_ids),
            "releaseDate": self.release_date,
            "overview": self.overview,
        }


@dataclass
class Recommendation:
    """A recommended title with its provenance and ranking signals."""

    item: CatalogItem
    is_ai_recommendation: bool
    is_fallback: bool = False
    ai_confidence: float | None = None
    enhanced_score: float | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> int:
        return self.item.id

    @property
    def rank_score(self) -> float:
        return (self.ai_confidence or 0.0) * (self.enhanced_score or 0.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.item.to_dict(),
            "isAIRecommendation": self.is_ai_recommendation,
            "isFallback": self.is_fallback,
            "aiConfidence": self.ai_confidence,
            "enhancedScore": self.enhanced_score,
        }


@dataclass
class NegativeFeedbackEntry:
    """A title the user rejected."""

    item_id: int
    title: str
    genre_ids: list[int]
    external_score: float | None
    timestamp_millis: int
    media_kind: MediaKind

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.item_id,
            "title": self.title,
            "genre_ids": list(self.genre_ids),
            "vote_average": self.external_score,
            "timestamp": self.timestamp_millis,
            "mediaType": self.media_kind.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NegativeFeedbackEntry":
        return cls(
            item_id=int(data["id"]),
            title=data.get("title") or "",
            genre_ids=list(data.get("genre_ids") or []),
            external_score=data.get("vote_average"),
            timestamp_millis=int(data.get("timestamp") or 0),
            media_kind=MediaKind(data.get("mediaType") or "movie"),
        )


# ---------------------------------------------------------------------------
# Collaborator protocols
# ---------------------------------------------------------------------------

class MetadataProvider(Protocol):
    """Catalog lookup service."""

    async def search(self, title: str, media_kind: MediaKind) -> list[CatalogItem]:
        ...

    async def details(self, item_id: int, media_kind: MediaKind) -> dict[str, Any]:
        ...

    async def similar(self, item_id: int, media_kind: MediaKind) -> list[CatalogItem]:
        ...

    async def watch_providers(self, item_id: int, media_kind: MediaKind) -> list[dict[str, Any]]:
        ...


class CompletionClient(Protocol):
    """Single-turn text completion service."""

    async def complete(self, system_instruction: str, user_prompt: str) -> str:
        ...


class KeyValueStore(Protocol):
    """String key-value persistence."""

    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...


class QuotaTracker(Protocol):
    """Daily completion-call limit enforcement."""

    async def can_call(self, media_kind: MediaKind) -> bool:
        ...

    async def increment_call_count(self, media_kind: MediaKind) -> None:
        ...

    async def remaining_calls(self) -> dict[str, int]:
        ...
