"""JSON helpers for persisted documents; decoding failures degrade to defaults."""

import json
from typing import Any

from cinerank.logging import get_logger

logger = get_logger(__name__)

COMPACT_SEPARATORS = (",", ":")


def safe_json_dumps(data: Any, default: str = "{}") -> str:
    """Serialize ``data`` compactly; ``default`` if it is None or unserializable."""
    if data is None:
        return default

    try:
        return json.dumps(data, ensure_ascii=False, separators=COMPACT_SEPARATORS)
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(f"Failed to serialize JSON: {e}")
        return default


def safe_json_loads(text: str | None, default: Any = None, expected: type | None = None) -> Any:
    """Parse a stored JSON document.

    Args:
        text: Raw stored value (None or empty means absent)
        default: Returned for absent or malformed data (defaults to empty dict)
        expected: Top-level type the document must have, e.g. ``list``

    Returns:
        Parsed document, or ``default``
    """
    if default is None:
        default = {}

    if not text:
        return default

    try:
        data = json.loads(text)
    except ValueError as e:
        logger.warning(f"Discarding malformed JSON document: {e}")
        return default

    if expected is not None and not isinstance(data, expected):
        logger.warning(
            f"Discarding JSON document: expected {expected.__name__}, "
            f"got {type(data).__name__}"
        )
        return default

    return data


def load_json_list(text: str | None) -> list[Any]:
    """Parse a stored JSON array; empty list when absent or malformed."""
    return safe_json_loads(text, default=[], expected=list)


def dump_json_list(values: list[Any]) -> str:
    return safe_json_dumps(values, default="[]")
