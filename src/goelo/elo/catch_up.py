"""
Catch-up boost for players who are improving faster than their rating.

A kyu player who starts weak, loses a lot early and then improves can stay
anchored below their real strength for months: each win only claws back a
few points. We keep a short log of each player's recent wins, and once it's
full, compare the average opponent beaten against the player's rating:

    gap = mean(opponents beaten) - current rating
    if gap > 100: rating += min(50, 0.3 * gap)

Only wins count; losing to strong players says nothing about being
underrated. Once the log is full the gap is checked after every game the
player plays, win or lose, and the boost is capped per application.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import date
from typing import Optional

from goelo.elo.constants import CATCH_UP_DEFAULTS


@dataclass(frozen=True)
class RecentWin:
    opponent_rating: float
    outcome: float
    rating_at_time: float


@dataclass(frozen=True)
class CatchUpEvent:
    """A single applied catch-up boost, for reporting."""
    player_id: str
    date: date
    average_beaten: float
    rating_before: float
    boost: float


def catch_up_boost(
    average_beaten: float,
    current_rating: float,
    min_gap: float | None = None,
    gap_share: float | None = None,
    max_boost: float | None = None,
) -> float:
    """
    Boost for a player whose recent wins average average_beaten.

    Returns:
        Points to add (0.0 if the gap is not above min_gap)

    Examples:
        catch_up_boost(1800, 1650)  # -> 45.0
        catch_up_boost(2000, 1600)  # -> 50.0 (capped)
        catch_up_boost(1700, 1650)  # -> 0.0
    """
    if min_gap is None:
        min_gap = CATCH_UP_DEFAULTS["min_gap"]
    if gap_share is None:
        gap_share = CATCH_UP_DEFAULTS["gap_share"]
    if max_boost is None:
        max_boost = CATCH_UP_DEFAULTS["max_boost"]

    gap = average_beaten - current_rating
    if gap <= min_gap:
        return 0.0
    return min(max_boost, gap_share * gap)


class CatchUpBooster:
    """
    Keeps each player's recent-win log and decides when to boost.

    Usage:
        booster = CatchUpBooster()
        boost = booster.observe("p1", opponent_rating=1900, outcome=1.0, current_rating=1700)
    """

    def __init__(
        self,
        log_size: int | None = None,
        min_gap: float | None = None,
        gap_share: float | None = None,
        max_boost: float | None = None,
    ):
        self.log_size = log_size or CATCH_UP_DEFAULTS["log_size"]
        self.min_gap = min_gap
        self.gap_share = gap_share
        self.max_boost = max_boost
        self._logs: dict[str, deque[RecentWin]] = {}

    def recent_wins(self, player_id: str) -> list[RecentWin]:
        return list(self._logs.get(player_id, ()))

    def observe(
        self,
        player_id: str,
        opponent_rating: float,
        outcome: float,
        current_rating: float,
    ) -> float:
        """
        Record one game and return the boost to apply (0.0 for none).

        Args:
            player_id: Player who just played
            opponent_rating: Opponent's rating going into the game
            outcome: Player's score (only wins are logged, but every game
                     re-checks a full log)
            current_rating: Player's rating after the game
        """
        log = self._logs.get(player_id)
        if outcome > 0.5:
            if log is None:
                log = deque(maxlen=self.log_size)
                self._logs[player_id] = log
            log.append(RecentWin(opponent_rating, outcome, current_rating))

        if log is None or len(log) < self.log_size:
            return 0.0

        average_beaten = sum(win.opponent_rating for win in log) / len(log)
        return catch_up_boost(
            average_beaten,
            current_rating,
            min_gap=self.min_gap,
            gap_share=self.gap_share,
            max_boost=self.max_boost,
        )

    def average_beaten(self, player_id: str) -> Optional[float]:
        log = self._logs.get(player_id)
        if not log:
            return None
        return sum(win.opponent_rating for win in log) / len(log)
