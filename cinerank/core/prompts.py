"""Prompt text for AI recommendations."""

from collections.abc import Sequence

from cinerank.core.contracts import MediaKind, NegativeFeedbackEntry, RatedItem
from cinerank.core.taste_profile import TasteProfile

SYSTEM_INSTRUCTION = (
    "You are an expert film/TV critic and recommendation engine. "
    "Provide only titles, one per line, no explanations or numbers."
)

REQUESTED_TITLES = 20
MAX_LOVED = 8
MAX_LIKED = 5
MAX_DISLIKED = 3
MAX_TOP_GENRES = 4
MAX_AVOID_GENRES = 2
MAX_AVOID_TITLES = 15


def _format_rating(value: float) -> str:
    return f"{value:g}"


def _loved_line(item: RatedItem) -> str:
    consensus = f"{item.external_score:.1f}" if item.external_score is not None else "?"
    return f"- {item.title} (User: {_format_rating(item.user_rating)}/10, TMDB: {consensus})"


def _plain_line(item: RatedItem) -> str:
    return f"- {item.title} ({_format_rating(item.user_rating)}/10)"


def build_recommendation_prompt(
    items: Sequence[RatedItem],
    profile: TasteProfile,
    negative_feedback: Sequence[NegativeFeedbackEntry],
    media_kind: MediaKind,
) -> str:
    """Compose the user prompt asking for titles that fit a taste profile."""
    content_type = media_kind.plural
    loved = [i for i in items if i.user_rating >= 8][:MAX_LOVED]
    liked = [i for i in items if 6 <= i.user_rating < 8][:MAX_LIKED]
    disliked = [i for i in items if i.user_rating < 6][:MAX_DISLIKED]

    top_genres = ", ".join(
        f"{genre} ({'+' if score > 0 else ''}{score})"
        for genre, score in profile.top_genres(MAX_TOP_GENRES)
    )
    avoid_genres = ", ".join(profile.negative_genres(MAX_AVOID_GENRES))
    alignment = (
        "Mainstream taste" if profile.score_alignment.fraction_aligned > 0.6 else "Unique taste"
    )

    sections = [
        f"RECOMMENDATION REQUEST for {profile.persona_text}",
        "LOVED (Rated 8-10):\n" + "\n".join(_loved_line(i) for i in loved),
        "LIKED (Rated 6-7):\n" + "\n".join(_plain_line(i) for i in liked),
    ]
    if disliked:
        sections.append("DISLIKED (Rated 1-5):\n" + "\n".join(_plain_line(i) for i in disliked))

    taste_lines = ["TASTE PROFILE:", f"- Preferred genres: {top_genres}"]
    if avoid_genres:
        taste_lines.append(f"- Avoid: {avoid_genres}")
    taste_lines.append(f"- Rating style: {profile.rating_style}")
    taste_lines.append(f"- TMDB alignment: {alignment}")
    sections.append("\n".join(taste_lines))

    if negative_feedback:
        recent = ", ".join(entry.title for entry in negative_feedback[-MAX_AVOID_TITLES:])
        sections.append(f"AVOID recommending: {recent}")

    sections.append(
        f"Recommend {REQUESTED_TITLES} {content_type} this user would rate 8+ based on "
        "their specific taste profile. Focus on hidden gems and perfect matches rather "
        "than obvious popular choices. Return only titles, one per line."
    )
    return "\n\n".join(sections)
