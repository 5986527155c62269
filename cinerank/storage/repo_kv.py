"""Repository for key-value persistence."""

from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from cinerank.storage.models import KeyValueEntry


class KeyValueRepo:
    """String get/set/remove over the ``kv_entries`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, key: str) -> str | None:
        stmt = select(KeyValueEntry.value).where(KeyValueEntry.key == key)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc)
        stmt = sqlite_insert(KeyValueEntry).values(key=key, value=value, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": value, "updated_at": now},
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def remove(self, key: str) -> None:
        await self.session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
        await self.session.commit()
