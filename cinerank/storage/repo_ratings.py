"""Repository for a user's rating history."""

from cinerank.core.contracts import KeyValueStore, MediaKind, RatedItem
from cinerank.logging import get_logger
from cinerank.storage.json_utils import dump_json_list, load_json_list

logger = get_logger(__name__)


def ratings_key(user_id: str, media_kind: MediaKind) -> str:
    return f"{user_id}:rated_{media_kind.value}"


class RatingsStore:
    """Rated items per user and media kind, stored as a JSON list."""

    def __init__(self, kv: KeyValueStore, user_id: str) -> None:
        self.kv = kv
        self.user_id = user_id

    async def load(self, media_kind: MediaKind) -> list[RatedItem]:
        """Get rating history; records with legacy ratings are normalized."""
        raw = await self.kv.get(ratings_key(self.user_id, media_kind))
        records = load_json_list(raw)

        items = []
        for record in records:
            try:
                items.append(RatedItem.from_dict(record, media_kind))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unusable rating record for {self.user_id}: {e}")
        return items

    async def _store(self, media_kind: MediaKind, items: list[RatedItem]) -> None:
        await self.kv.set(
            ratings_key(self.user_id, media_kind),
            dump_json_list([item.to_dict() for item in items]),
        )

    async def save(self, item: RatedItem) -> list[RatedItem]:
        """Insert a rated item, replacing any earlier rating of the same id."""
        items = [i for i in await self.load(item.media_kind) if i.id != item.id]
        items.append(item)
        await self._store(item.media_kind, items)
        logger.info(
            f"Saved rating {item.user_rating} for '{item.title}'",
            extra={"user_id": self.user_id, "media_kind": item.media_kind.value},
        )
        return items

    async def remove(self, item_id: int, media_kind: MediaKind) -> bool:
        items = await self.load(media_kind)
        kept = [i for i in items if i.id != item_id]
        if len(kept) == len(items):
            return False
        await self._store(media_kind, kept)
        return True
