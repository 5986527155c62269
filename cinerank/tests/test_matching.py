"""Tests for completion parsing, title confidence, scoring and prompts."""

import pytest

from cinerank.core.contracts import CatalogItem, MediaKind, NegativeFeedbackEntry
from cinerank.core.matching import (
    clean_title,
    enhanced_score,
    parse_titles,
    strip_list_marker,
    title_confidence,
)
from cinerank.core.prompts import build_recommendation_prompt
from cinerank.core.taste_profile import analyze_taste_profile
from cinerank.tests.factories import make_rated


class TestParseTitles:
    def test_strips_ordinals_and_bullets(self):
        text = "1. Heat\n2) Collateral\n- Thief\n* Manhunter\n• Miami Vice"

        assert parse_titles(text) == ["Heat", "Collateral", "Thief", "Manhunter", "Miami Vice"]

    def test_keeps_titles_starting_with_numbers(self):
        assert strip_list_marker("2001: A Space Odyssey") == "2001: A Space Odyssey"
        assert strip_list_marker("3. 12 Angry Men") == "12 Angry Men"

    def test_drops_blank_and_overlong_lines(self):
        text = "Heat\n\n   \n" + "x" * 100 + "\nRonin"

        assert parse_titles(text) == ["Heat", "Ronin"]

    def test_keeps_first_25(self):
        text = "\n".join(f"Title {i}" for i in range(40))

        titles = parse_titles(text)

        assert len(titles) == 25
        assert titles[-1] == "Title 24"


class TestTitleConfidence:
    def test_exact_match_ignores_case(self):
        assert title_confidence("The Thing", "the thing") == 1.0

    def test_containment(self):
        assert title_confidence("Alien", "Aliens") == 0.9
        assert title_confidence("Blade Runner 2049", "Blade Runner") == 0.9

    def test_token_overlap_is_capped(self):
        confidence = title_confidence("Once Upon a Time in Hollywood", "Hollywood Once Upon Time")
        assert confidence == pytest.approx(0.8)

    def test_partial_overlap(self):
        # night and living shared, four tokens on the longer side
        confidence = title_confidence("Night of the Living Dead", "Living Night Creatures")
        assert confidence == pytest.approx(0.5)

    def test_no_match(self):
        assert title_confidence("Heat", "Frozen") == 0.0
        assert title_confidence("Heat", None) == 0.0

    def test_clean_title_removes_punctuation(self):
        assert clean_title("Crouching Tiger, Hidden Dragon!") == "Crouching Tiger Hidden Dragon"


def _catalog(**overrides):
    defaults = dict(id=1, title="X", media_kind=MediaKind.MOVIE)
    defaults.update(overrides)
    return CatalogItem(**defaults)


@pytest.mark.parametrize(
    "fields, expected",
    [
        (dict(vote_average=8.5, vote_count=2000, release_date="2023-04-01"), 1.7),
        (dict(vote_average=7.2, vote_count=600, release_date="2015-01-01"), 1.3),
        (dict(vote_average=7.2, vote_count=100, release_date="2021-01-01"), 1.1),
        (dict(vote_average=5.0, vote_count=100, release_date="1985-01-01"), 0.8),
        (dict(), 1.0),
    ],
)
def test_enhanced_score(fields, expected):
    assert enhanced_score(_catalog(**fields)) == pytest.approx(expected)


def test_prompt_sections():
    items = [
        make_rated(1, 9, genres=[28], external_score=7.9),
        make_rated(2, 7, genres=[18]),
        make_rated(3, 3, genres=[35]),
    ]
    profile = analyze_taste_profile(items, MediaKind.MOVIE)
    feedback = [
        NegativeFeedbackEntry(
            item_id=10,
            title="Rejected Title",
            genre_ids=[35],
            external_score=6.0,
            timestamp_millis=1,
            media_kind=MediaKind.MOVIE,
        )
    ]

    prompt = build_recommendation_prompt(items, profile, feedback, MediaKind.MOVIE)

    assert prompt.startswith(f"RECOMMENDATION REQUEST for {profile.persona_text}")
    assert "- Title 1 (User: 9/10, TMDB: 7.9)" in prompt
    assert "- Title 2 (7/10)" in prompt
    assert "DISLIKED (Rated 1-5):\n- Title 3 (3/10)" in prompt
    assert "Preferred genres: Action (+3), Drama (+1), Comedy (-2)" in prompt
    assert "- Avoid: Comedy" in prompt
    assert "AVOID recommending: Rejected Title" in prompt
    assert "Recommend 20 movies" in prompt


def test_prompt_limits_avoid_list_to_recent_titles():
    items = [make_rated(1, 9, genres=[28])]
    profile = analyze_taste_profile(items, MediaKind.TV)
    feedback = [
        NegativeFeedbackEntry(
            item_id=i,
            title=f"Skip {i}",
            genre_ids=[],
            external_score=None,
            timestamp_millis=i,
            media_kind=MediaKind.TV,
        )
        for i in range(20)
    ]

    prompt = build_recommendation_prompt(items, profile, feedback, MediaKind.TV)

    assert "Skip 4," not in prompt
    assert "Skip 5," in prompt
    assert "Skip 19" in prompt
    assert "Recommend 20 TV shows" in prompt
