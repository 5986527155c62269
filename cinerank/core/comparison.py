"""Comparison candidate selection and similarity scoring."""

import math
from collections.abc import Sequence

from cinerank.core.contracts import NewItem, RatedItem

DEFAULT_YEAR = 2000
DEFAULT_SUGGESTED_RATING = 7.0

GENRE_WEIGHT = 40.0
YEAR_WINDOW = 20
YEAR_WEIGHT = 0.5
RATING_WINDOW = 10.0
RATING_WEIGHT = 2.0


def select_candidates(
    items: Sequence[RatedItem],
    percentile: tuple[int, int],
    exclude_id: int | None = None,
) -> list[RatedItem]:
    """Slice of the history, ranked by rating, covering a percentile range.

    Items are ordered highest rating first; the slice spans
    ``[floor(lo% * N), ceil(hi% * N))``.

    Args:
        items: Rated history
        percentile: (low, high) percentile bounds, 0-100
        exclude_id: Item to leave out (typically the one being rated)

    Returns:
        Ordered candidates, possibly empty
    """
    ranked = sorted(
        (item for item in items if item.user_rating and item.id != exclude_id),
        key=lambda item: item.user_rating,
        reverse=True,
    )
    if not ranked:
        return []

    total = len(ranked)
    start = min(max(math.floor(percentile[0] / 100 * total), 0), total)
    end = min(max(math.ceil(percentile[1] / 100 * total), 0), total)
    return ranked[start:end]


def similarity_score(existing: RatedItem, candidate: NewItem) -> float:
    """How well an already-rated item serves as a yardstick for ``candidate``.

    Genre overlap (up to 40), release-year proximity (up to 10) and rating
    proximity to the candidate's suggested rating (up to 10).
    """
    candidate_genres = set(candidate.genre_ids)
    overlap = len(candidate_genres & set(existing.genre_ids))
    score = overlap / max(len(candidate_genres), 1) * GENRE_WEIGHT

    year_diff = abs((candidate.year or DEFAULT_YEAR) - (existing.year or DEFAULT_YEAR))
    score += max(0, YEAR_WINDOW - year_diff) * YEAR_WEIGHT

    suggested = candidate.suggested_rating or DEFAULT_SUGGESTED_RATING
    rating_diff = abs(suggested - existing.user_rating)
    score += max(0.0, RATING_WINDOW - rating_diff * RATING_WEIGHT)

    return score


def rank_best_matches(
    candidates: Sequence[RatedItem],
    new_item: NewItem,
    top_n: int = 3,
) -> list[RatedItem]:
    """Top ``top_n`` candidates by similarity; ties keep input order."""
    scored = [(similarity_score(c, new_item), c) for c in candidates]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [c for _, c in scored[:top_n]]
