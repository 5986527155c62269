"""Bounded log of titles the user rejected from recommendations."""

import time

from cinerank.config import config
from cinerank.core.contracts import CatalogItem, KeyValueStore, MediaKind, NegativeFeedbackEntry
from cinerank.logging import get_logger
from cinerank.storage.json_utils import dump_json_list, load_json_list

logger = get_logger(__name__)


def negative_feedback_key(user_id: str, media_kind: MediaKind) -> str:
    return f"{user_id}:ai_negative_feedback_{media_kind.value}"


class NegativeFeedbackStore:
    """Per-user, per-kind FIFO log of rejected titles.

    The log is capped at ``max_entries``; the oldest entries are evicted
    first. Absent or corrupt stored data reads as an empty log.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        user_id: str,
        max_entries: int | None = None,
    ) -> None:
        self.kv = kv
        self.user_id = user_id
        self.max_entries = max_entries if max_entries is not None else config.feedback_log_max

    async def load(self, media_kind: MediaKind) -> list[NegativeFeedbackEntry]:
        """Get logged entries for a media kind, oldest first."""
        raw = await self.kv.get(negative_feedback_key(self.user_id, media_kind))
        records = load_json_list(raw)

        entries = []
        for record in records:
            try:
                entries.append(NegativeFeedbackEntry.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed feedback entry for {self.user_id}: {e}")
        return entries

    async def record(self, item: CatalogItem, media_kind: MediaKind) -> NegativeFeedbackEntry:
        """Append a rejected title and persist the truncated log.

        Args:
            item: Rejected title
            media_kind: Media kind whose log receives the entry

        Returns:
            The stored entry
        """
        entries = await self.load(media_kind)
        entry = NegativeFeedbackEntry(
            item_id=item.id,
            title=item.title,
            genre_ids=list(item.genre_ids),
            external_score=item.vote_average,
            timestamp_millis=int(time.time() * 1000),
            media_kind=media_kind,
        )
        entries.append(entry)
        entries = entries[-self.max_entries:] if self.max_entries > 0 else []

        await self.kv.set(
            negative_feedback_key(self.user_id, media_kind),
            dump_json_list([e.to_dict() for e in entries]),
        )
        logger.info(
            f"Recorded negative feedback '{item.title}'",
            extra={"user_id": self.user_id, "media_kind": media_kind.value},
        )
        return entry
