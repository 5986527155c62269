"""Daily completion-call quota backed by the api_call_counts table."""

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cinerank.config import config
from cinerank.core.contracts import MediaKind
from cinerank.logging import get_logger
from cinerank.storage.models import ApiCallCount

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuotaLimits:
    movie: int
    tv: int
    total: int

    @classmethod
    def from_config(cls) -> "QuotaLimits":
        return cls(
            movie=config.quota_daily_movie,
            tv=config.quota_daily_tv,
            total=config.quota_daily_total,
        )

    def for_kind(self, media_kind: MediaKind) -> int:
        return self.movie if media_kind == MediaKind.MOVIE else self.tv


def utc_day(now: datetime | None = None) -> str:
    return (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d")


class DailyQuotaTracker:
    """Per-kind and combined daily limits on completion calls.

    Each operation opens its own session so a tracker can be shared by
    the process-wide recommendation service.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        limits: QuotaLimits | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.limits = limits or QuotaLimits.from_config()

    async def _counts(self, session: AsyncSession, day: str) -> dict[str, int]:
        stmt = select(ApiCallCount.media_kind, ApiCallCount.count).where(ApiCallCount.day == day)
        result = await session.execute(stmt)
        return {row.media_kind: row.count for row in result.all()}

    async def can_call(self, media_kind: MediaKind) -> bool:
        async with self.session_factory() as session:
            counts = await self._counts(session, utc_day())

        used = counts.get(media_kind.value, 0)
        total = sum(counts.values())
        allowed = used < self.limits.for_kind(media_kind) and total < self.limits.total
        if not allowed:
            logger.warning(
                f"Daily quota reached ({used} {media_kind.value}, {total} total)",
                extra={"media_kind": media_kind.value},
            )
        return allowed

    async def increment_call_count(self, media_kind: MediaKind) -> int:
        """Count one completion call for today.

        Returns:
            Today's count for the media kind after incrementing
        """
        now = datetime.now(timezone.utc)
        day = utc_day(now)

        async with self.session_factory() as session:
            insert_stmt = sqlite_insert(ApiCallCount).values(
                day=day,
                media_kind=media_kind.value,
                count=1,
                updated_at=now,
            )
            upsert_stmt = insert_stmt.on_conflict_do_update(
                index_elements=["day", "media_kind"],
                set_={"count": ApiCallCount.count + 1, "updated_at": now},
            )
            await session.execute(upsert_stmt)
            await session.commit()

            stmt = select(ApiCallCount.count).where(
                ApiCallCount.day == day,
                ApiCallCount.media_kind == media_kind.value,
            )
            result = await session.execute(stmt)
            return result.scalar() or 0

    async def remaining_calls(self) -> dict[str, int]:
        async with self.session_factory() as session:
            counts = await self._counts(session, utc_day())

        movie_used = counts.get(MediaKind.MOVIE.value, 0)
        tv_used = counts.get(MediaKind.TV.value, 0)
        return {
            "movie": max(0, self.limits.movie - movie_used),
            "tv": max(0, self.limits.tv - tv_used),
            "total": max(0, self.limits.total - movie_used - tv_used),
        }
