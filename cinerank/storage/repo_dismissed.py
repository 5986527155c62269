"""Repository for not-interested item ids."""

from cinerank.core.contracts import KeyValueStore, MediaKind
from cinerank.logging import get_logger
from cinerank.storage.json_utils import dump_json_list, load_json_list

logger = get_logger(__name__)


def not_interested_key(user_id: str, media_kind: MediaKind) -> str:
    return f"{user_id}:not_interested_{media_kind.value}"


class NotInterestedStore:
    """Per-user set of item ids the user never wants recommended."""

    def __init__(self, kv: KeyValueStore, user_id: str) -> None:
        self.kv = kv
        self.user_id = user_id

    async def load(self, media_kind: MediaKind) -> set[int]:
        """Get not-interested ids for a media kind (empty if absent or corrupt)."""
        raw = await self.kv.get(not_interested_key(self.user_id, media_kind))
        values = load_json_list(raw)

        ids: set[int] = set()
        for value in values:
            try:
                ids.add(int(value))
            except (TypeError, ValueError):
                logger.warning(f"Skipping malformed not-interested id {value!r}")
        return ids

    async def record(self, item_id: int, media_kind: MediaKind) -> bool:
        """Mark an item as not interesting.

        Args:
            item_id: Item ID
            media_kind: Media kind of the item

        Returns:
            True if added, False if already present
        """
        ids = await self.load(media_kind)
        if item_id in ids:
            return False

        ids.add(item_id)
        await self.kv.set(
            not_interested_key(self.user_id, media_kind),
            dump_json_list(sorted(ids)),
        )
        return True
