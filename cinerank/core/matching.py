"""Title parsing, fuzzy title confidence and candidate quality scoring."""

import re

from cinerank.core.contracts import CatalogItem

MAX_TITLE_LENGTH = 100
MAX_PARSED_TITLES = 25
MIN_TOKEN_LENGTH = 3
TOKEN_OVERLAP_CAP = 0.8

_ORDINAL_RE = re.compile(r"^\d+[.)]\s*")
_BULLET_RE = re.compile(r"^[-*•]\s*")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")


def strip_list_marker(line: str) -> str:
    """Remove a leading "1." / "2)" ordinal or bullet from a line.

    Bare leading numbers are kept so titles like "2001: A Space Odyssey"
    survive.
    """
    line = line.strip()
    line = _ORDINAL_RE.sub("", line)
    line = _BULLET_RE.sub("", line)
    return line.strip().strip('"').strip()


def parse_titles(text: str, limit: int = MAX_PARSED_TITLES) -> list[str]:
    """Split a completion into candidate titles, one per line."""
    titles: list[str] = []
    for raw in text.splitlines():
        title = strip_list_marker(raw)
        if 0 < len(title) < MAX_TITLE_LENGTH:
            titles.append(title)
        if len(titles) >= limit:
            break
    return titles


def clean_title(title: str) -> str:
    return _PUNCTUATION_RE.sub("", title).strip()


def title_confidence(original_title: str | None, found_title: str | None) -> float:
    """How likely ``found_title`` is the title that was asked for.

    Returns:
        1.0 for an exact (case-insensitive) match, 0.9 when one contains
        the other, otherwise a token-overlap ratio capped at 0.8
    """
    if not original_title or not found_title:
        return 0.0

    original = original_title.lower().strip()
    found = found_title.lower().strip()

    if original == found:
        return 1.0
    if original in found or found in original:
        return 0.9

    original_words = [w for w in original.split() if len(w) >= MIN_TOKEN_LENGTH]
    found_words = [w for w in found.split() if len(w) >= MIN_TOKEN_LENGTH]

    common = 0
    for ow in original_words:
        for fw in found_words:
            if ow == fw or ow in fw or fw in ow:
                common += 1

    max_words = max(len(original_words), len(found_words))
    if max_words == 0:
        return 0.0
    return min(common / max_words, TOKEN_OVERLAP_CAP)


def enhanced_score(item: CatalogItem) -> float:
    """Quality multiplier from consensus score, vote volume and recency."""
    score = 1.0
    vote_average = item.vote_average or 0.0
    vote_count = item.vote_count or 0

    if vote_average >= 7.0 and vote_count >= 500:
        score += 0.3
    if vote_average >= 8.0 and vote_count >= 1000:
        score += 0.2

    year = item.year or 2000
    if year >= 2020:
        score += 0.1
    if year >= 2022:
        score += 0.1

    if year < 2000 and vote_average < 6.5:
        score -= 0.2

    return max(0.1, score)
