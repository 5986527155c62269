"""Sentiment-to-rating flow: tier choice, comparison setup, write-back."""

import time
from collections.abc import Sequence
from dataclasses import dataclass, replace

from cinerank.config import config
from cinerank.core.cache import Clock
from cinerank.core.categories import dynamic_categories
from cinerank.core.comparison import rank_best_matches, select_candidates
from cinerank.core.contracts import NewItem, RatedItem, RatingCategoryKey, round_rating
from cinerank.core.protocol import ROUNDS, ComparisonSession
from cinerank.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RatingPlan:
    """Either a direct rating or a comparison session to run."""

    category: RatingCategoryKey
    suggested_rating: float
    session: ComparisonSession | None = None

    @property
    def direct_rating(self) -> float | None:
        return None if self.session is not None else round_rating(self.suggested_rating)


def plan_rating(
    new_item: NewItem,
    category_key: RatingCategoryKey | str,
    history: Sequence[RatedItem],
) -> RatingPlan:
    """Turn a sentiment choice into a rating plan.

    The tier midpoint becomes the item's suggested rating. With at least
    three history items in the tier a comparison session over the three
    closest matches is started; otherwise the midpoint is the rating.
    """
    key = RatingCategoryKey(category_key)
    category = dynamic_categories(history)[key]
    suggested = replace(new_item, suggested_rating=category.midpoint)

    candidates = select_candidates(history, category.percentile, exclude_id=new_item.id)
    if len(candidates) < ROUNDS:
        logger.info(
            f"Only {len(candidates)} comparison candidates for '{new_item.title}', "
            f"using {key.value} midpoint {category.midpoint:.1f}"
        )
        return RatingPlan(category=key, suggested_rating=category.midpoint)

    best = rank_best_matches(candidates, suggested, top_n=ROUNDS)
    return RatingPlan(
        category=key,
        suggested_rating=category.midpoint,
        session=ComparisonSession.start(suggested, best),
    )


def finalize_rating(
    new_item: NewItem,
    rating: float,
    category_key: RatingCategoryKey | str | None,
) -> RatedItem:
    """Build the history record for a completed rating."""
    return RatedItem(
        id=new_item.id,
        title=new_item.title,
        media_kind=new_item.media_kind,
        user_rating=round_rating(rating),
        genre_ids=frozenset(new_item.genre_ids),
        external_score=new_item.external_score,
        external_vote_count=new_item.external_vote_count,
        release_date=new_item.release_date,
        rating_category=RatingCategoryKey(category_key) if category_key else None,
    )


@dataclass
class ActiveSession:
    session: ComparisonSession
    category: RatingCategoryKey
    created_at: float


class ComparisonSessionRegistry:
    """In-memory sessions with TTL, at most one per user.

    Starting a session discards any incomplete one for the same user.
    Sessions older than ``ttl_seconds`` read as absent and are swept on
    every access.
    """

    def __init__(self, ttl_seconds: float | None = None, clock: Clock = time.monotonic) -> None:
        self._ttl = config.comparison_session_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._sessions: dict[str, ActiveSession] = {}

    def _is_expired(self, active: ActiveSession, now: float) -> bool:
        return now - active.created_at > self._ttl

    def _cleanup_expired(self) -> None:
        now = self._clock()
        expired = [uid for uid, a in self._sessions.items() if self._is_expired(a, now)]
        for user_id in expired:
            del self._sessions[user_id]
        if expired:
            logger.debug(f"Dropped {len(expired)} expired comparison sessions")

    def start(self, user_id: str, session: ComparisonSession, category: RatingCategoryKey) -> None:
        self._cleanup_expired()
        if user_id in self._sessions:
            logger.info("Discarding unfinished comparison session", extra={"user_id": user_id})
        self._sessions[user_id] = ActiveSession(
            session=session, category=category, created_at=self._clock()
        )

    def get(self, user_id: str) -> ActiveSession | None:
        self._cleanup_expired()
        return self._sessions.get(user_id)

    def update(self, user_id: str, session: ComparisonSession) -> None:
        active = self.get(user_id)
        if active is None:
            raise KeyError(user_id)
        if session.is_complete:
            del self._sessions[user_id]
        else:
            active.session = session

    def cancel(self, user_id: str) -> bool:
        """Abandon a user's session; no rating is written."""
        self._cleanup_expired()
        return self._sessions.pop(user_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)
