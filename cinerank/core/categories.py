"""Percentile-based rating sentiment tiers.

Tier percentile ranges are fixed; only the numeric rating values a tier
maps to depend on the user's history.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass

from cinerank.core.contracts import RatedItem, RatingCategoryKey
from cinerank.logging import get_logger

logger = get_logger(__name__)

EMPTY_HISTORY_MIDPOINT = 7.0
EMPTY_HISTORY_RANGE = (1.0, 10.0)


@dataclass(frozen=True)
class TierDefinition:
    key: RatingCategoryKey
    percentile: tuple[int, int]
    label: str
    description: str
    default_rating: float
    # Used instead of percentiles when there is no history
    absolute_floor: float


TIERS: tuple[TierDefinition, ...] = (
    TierDefinition(RatingCategoryKey.LOVED, (75, 100), "Loved it!", "This was amazing!", 8.5, 8.5),
    TierDefinition(RatingCategoryKey.LIKED, (50, 74), "Liked it", "Pretty good!", 7.0, 6.5),
    TierDefinition(RatingCategoryKey.AVERAGE, (25, 49), "It was okay", "Nothing special", 5.5, 4.5),
    TierDefinition(RatingCategoryKey.DISLIKED, (0, 24), "Disliked it", "Not for me", 3.0, 0.0),
)

TIERS_BY_KEY = {tier.key: tier for tier in TIERS}


@dataclass(frozen=True)
class RatingCategory:
    """A sentiment tier resolved against a rating history."""

    key: RatingCategoryKey
    percentile: tuple[int, int]
    label: str
    description: str
    default_rating: float
    rating_range: tuple[float, float]
    midpoint: float

    def to_dict(self) -> dict:
        return {
            "key": self.key.value,
            "percentile": list(self.percentile),
            "label": self.label,
            "description": self.description,
            "defaultRating": self.default_rating,
            "range": list(self.rating_range),
            "midpoint": self.midpoint,
        }


def history_ratings(items: Iterable[RatedItem]) -> list[float]:
    """Usable ratings from a history, sorted ascending."""
    return sorted(
        item.user_rating
        for item in items
        if item.user_rating and not math.isnan(item.user_rating)
    )


def _boundary_values(ratings: list[float], percentile: tuple[int, int]) -> tuple[float, float]:
    sorted_ratings = sorted(ratings)
    n = len(sorted_ratings)
    low_index = min(max(math.floor(percentile[0] / 100 * n), 0), n - 1)
    high_index = min(max(math.floor(percentile[1] / 100 * n), 0), n - 1)
    return sorted_ratings[low_index], sorted_ratings[high_index]


def midpoint_for_range(ratings: list[float], percentile: tuple[int, int]) -> float:
    """Midpoint of the ratings found at the two percentile boundaries.

    Args:
        ratings: Historical ratings, any order
        percentile: (low, high) percentile bounds, 0-100

    Returns:
        Midpoint rating, or 7.0 when there are no ratings
    """
    if not ratings:
        return EMPTY_HISTORY_MIDPOINT
    low, high = _boundary_values(ratings, percentile)
    return (low + high) / 2


def range_for_category(ratings: list[float], percentile: tuple[int, int]) -> tuple[float, float]:
    """Rating values at the two percentile boundaries; (1, 10) without history."""
    if not ratings:
        return EMPTY_HISTORY_RANGE
    return _boundary_values(ratings, percentile)


def dynamic_categories(items: Iterable[RatedItem]) -> dict[RatingCategoryKey, RatingCategory]:
    """Resolve all four tiers against a rating history."""
    ratings = history_ratings(items)

    if ratings:
        logger.debug(
            f"Dynamic rating ranges: min={ratings[0]} "
            f"p25={_boundary_values(ratings, (25, 25))[0]} "
            f"p50={_boundary_values(ratings, (50, 50))[0]} "
            f"p75={_boundary_values(ratings, (75, 75))[0]} max={ratings[-1]}"
        )

    return {
        tier.key: RatingCategory(
            key=tier.key,
            percentile=tier.percentile,
            label=tier.label,
            description=tier.description,
            default_rating=tier.default_rating,
            rating_range=range_for_category(ratings, tier.percentile),
            midpoint=(
                midpoint_for_range(ratings, tier.percentile) if ratings else tier.default_rating
            ),
        )
        for tier in TIERS
    }


def category_for_rating(rating: float | None, items: Iterable[RatedItem]) -> RatingCategoryKey | None:
    """Sentiment tier a rating falls into relative to a history.

    The percentile position is the index of the first historical rating at
    or above ``rating``. Positions between two integer ranges (e.g. 74.5)
    belong to the lower tier. Without history fixed thresholds apply.
    """
    if not rating:
        return None

    ratings = history_ratings(items)
    if not ratings:
        for tier in TIERS:
            if rating >= tier.absolute_floor:
                return tier.key
        return RatingCategoryKey.DISLIKED

    position = next((i for i, r in enumerate(ratings) if r >= rating), -1)
    percentile = 100.0 if position == -1 else position / len(ratings) * 100

    for tier in TIERS:
        low, high = tier.percentile
        if low <= percentile <= high:
            return tier.key
    for tier in TIERS:
        if percentile >= tier.percentile[0]:
            return tier.key
    return RatingCategoryKey.DISLIKED
