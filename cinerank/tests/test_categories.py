"""Tests for percentile-based rating categories."""

import pytest

from cinerank.core.categories import (
    TIERS,
    category_for_rating,
    dynamic_categories,
    midpoint_for_range,
    range_for_category,
)
from cinerank.core.contracts import RatingCategoryKey
from cinerank.tests.factories import make_rated


def test_midpoint_uses_floor_indexes():
    """N=5: p50 -> index 2 (7), p74 -> index 3 (8)."""
    assert midpoint_for_range([5, 6, 7, 8, 9], (50, 74)) == pytest.approx(7.5)


def test_midpoint_sorts_input():
    assert midpoint_for_range([9, 5, 8, 6, 7], (50, 74)) == pytest.approx(7.5)


def test_midpoint_clamps_top_percentile():
    """p75 -> index 3 (8), p100 -> index 5 clamped to 4 (9)."""
    assert midpoint_for_range([5, 6, 7, 8, 9], (75, 100)) == pytest.approx(8.5)


def test_midpoint_and_range_defaults_without_history():
    assert midpoint_for_range([], (25, 49)) == 7.0
    assert range_for_category([], (25, 49)) == (1.0, 10.0)


@pytest.mark.parametrize("percentile", [(0, 24), (25, 49), (50, 74), (75, 100), (10, 90)])
def test_midpoint_stays_within_history(percentile):
    ratings = [2.5, 9.5, 6.0, 7.0, 3.0, 8.0, 4.5]
    midpoint = midpoint_for_range(ratings, percentile)
    assert min(ratings) <= midpoint <= max(ratings)


def test_tiers_partition_percentiles():
    covered = sorted(tier.percentile for tier in TIERS)
    assert covered == [(0, 24), (25, 49), (50, 74), (75, 100)]


def test_dynamic_categories_with_history():
    items = [make_rated(i, r) for i, r in enumerate([5, 6, 7, 8, 9], start=1)]

    categories = dynamic_categories(items)

    assert set(categories) == set(RatingCategoryKey)
    liked = categories[RatingCategoryKey.LIKED]
    assert liked.midpoint == pytest.approx(7.5)
    assert liked.rating_range == (7, 8)
    assert liked.to_dict()["percentile"] == [50, 74]


def test_dynamic_categories_default_midpoints_without_history():
    categories = dynamic_categories([])

    assert categories[RatingCategoryKey.LOVED].midpoint == 8.5
    assert categories[RatingCategoryKey.LIKED].midpoint == 7.0
    assert categories[RatingCategoryKey.AVERAGE].midpoint == 5.5
    assert categories[RatingCategoryKey.DISLIKED].midpoint == 3.0
    assert categories[RatingCategoryKey.DISLIKED].rating_range == (1.0, 10.0)


class TestCategoryForRating:
    """Tier lookup for a rating relative to history."""

    def test_fixed_thresholds_without_history(self):
        assert category_for_rating(9.0, []) == RatingCategoryKey.LOVED
        assert category_for_rating(8.5, []) == RatingCategoryKey.LOVED
        assert category_for_rating(6.5, []) == RatingCategoryKey.LIKED
        assert category_for_rating(4.5, []) == RatingCategoryKey.AVERAGE
        assert category_for_rating(2.0, []) == RatingCategoryKey.DISLIKED

    def test_percentile_position(self):
        items = [make_rated(i, r) for i, r in enumerate([2, 4, 6, 8], start=1)]

        assert category_for_rating(1.0, items) == RatingCategoryKey.DISLIKED
        assert category_for_rating(4.0, items) == RatingCategoryKey.AVERAGE
        assert category_for_rating(6.0, items) == RatingCategoryKey.LIKED
        assert category_for_rating(8.0, items) == RatingCategoryKey.LOVED

    def test_rating_above_history_is_loved(self):
        items = [make_rated(i, r) for i, r in enumerate([2, 4, 6], start=1)]

        assert category_for_rating(9.5, items) == RatingCategoryKey.LOVED

    def test_gap_between_ranges_goes_to_lower_tier(self):
        """Position 149/200 -> 74.5%, between LIKED and LOVED."""
        items = [make_rated(i, 1 + i / 100) for i in range(200)]

        assert category_for_rating(items[149].user_rating, items) == RatingCategoryKey.LIKED

    def test_missing_rating(self):
        assert category_for_rating(None, []) is None
