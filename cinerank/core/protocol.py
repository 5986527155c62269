"""Three-round pairwise comparison session.

A session is an immutable value: recording a choice returns the next
session. It starts awaiting round 0 and becomes complete after the third
choice, at which point the final rating is available.
"""

from dataclasses import dataclass, field
from enum import Enum

from cinerank.core.contracts import NewItem, RatedItem, Winner, round_rating

ROUNDS = 3
MIN_RATING = 1.0
MAX_RATING = 10.0

# Adjustment to the comparison-set average by number of rounds won
WIN_DELTAS: dict[int, float] = {3: 0.5, 2: 0.2, 1: -0.2, 0: -0.5}


class ComparisonSessionError(Exception):
    """Raised on invalid use of a comparison session."""


class SessionState(str, Enum):
    AWAITING_ROUND = "awaiting_round"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ComparisonRound:
    new_item: NewItem
    comparison_item: RatedItem
    winner: Winner


def clamp_rating(value: float) -> float:
    return min(MAX_RATING, max(MIN_RATING, value))


def rating_from_comparisons(wins: int, comparison_ratings: list[float]) -> float:
    """Final rating from the number of wins against a comparison set."""
    if wins not in WIN_DELTAS:
        raise ComparisonSessionError(f"Win count must be 0-{ROUNDS}, got {wins}")
    if not comparison_ratings:
        raise ComparisonSessionError("No comparison ratings")
    average = sum(comparison_ratings) / len(comparison_ratings)
    return round_rating(clamp_rating(average + WIN_DELTAS[wins]))


@dataclass(frozen=True)
class ComparisonSession:
    """Comparison state for one new item against three rated items."""

    new_item: NewItem
    comparison_items: tuple[RatedItem, ...]
    outcomes: tuple[ComparisonRound, ...] = field(default=())

    def __post_init__(self) -> None:
        if len(self.comparison_items) != ROUNDS:
            raise ComparisonSessionError(
                f"A session needs exactly {ROUNDS} comparison items, "
                f"got {len(self.comparison_items)}"
            )

    @classmethod
    def start(cls, new_item: NewItem, comparison_items: list[RatedItem]) -> "ComparisonSession":
        return cls(new_item=new_item, comparison_items=tuple(comparison_items))

    @property
    def state(self) -> SessionState:
        if len(self.outcomes) >= ROUNDS:
            return SessionState.COMPLETE
        return SessionState.AWAITING_ROUND

    @property
    def is_complete(self) -> bool:
        return self.state is SessionState.COMPLETE

    @property
    def round_index(self) -> int | None:
        """Zero-based round awaiting a choice, None once complete."""
        return None if self.is_complete else len(self.outcomes)

    @property
    def current_comparison(self) -> RatedItem | None:
        index = self.round_index
        return None if index is None else self.comparison_items[index]

    @property
    def wins(self) -> int:
        return sum(1 for o in self.outcomes if o.winner is Winner.NEW)

    @property
    def final_rating(self) -> float | None:
        if not self.is_complete:
            return None
        return rating_from_comparisons(
            self.wins, [o.comparison_item.user_rating for o in self.outcomes]
        )

    def record(self, winner: Winner | str) -> "ComparisonSession":
        """Record the user's choice for the current round."""
        index = self.round_index
        if index is None:
            raise ComparisonSessionError("Session is already complete")

        outcome = ComparisonRound(
            new_item=self.new_item,
            comparison_item=self.comparison_items[index],
            winner=Winner(winner),
        )
        return ComparisonSession(
            new_item=self.new_item,
            comparison_items=self.comparison_items,
            outcomes=self.outcomes + (outcome,),
        )


def start_comparison_session(new_item: NewItem, candidates: list[RatedItem]) -> ComparisonSession:
    return ComparisonSession.start(new_item, candidates)


def record_comparison_choice(
    session: ComparisonSession, winner: Winner | str
) -> ComparisonSession | float:
    """Advance a session; returns the final rating once the last round is in."""
    next_session = session.record(winner)
    if next_session.is_complete:
        return next_session.final_rating  # type: ignore[return-value]
    return next_session
