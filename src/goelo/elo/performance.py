"""
Performance-based re-estimation of a new player's starting strength.

Foreign, unknown or ungraded players often enter with a grade that says
little about how strong they really are. After their first 12 games we
estimate a rating from results alone and nudge their current rating part
of the way toward it.

The estimate is deliberately conservative:
- Stronger opponents carry more weight (w = sqrt(max(1000, opp) / 1000))
- The win rate is turned into a rating offset with a compressed logit,
  100 * ln(p / (1 - p)), capped at 200 + sqrt(|offset|). A perfect score
  puts the estimate 200 above the average opponent, not 400+.
- The estimate can't exceed the strongest win by more than 150, or fall
  more than 150 below the weakest loss. Beating only 5D players doesn't
  make someone 9D.

Only a share (30-50%) of the gap between the estimate and the player's
original grade baseline is applied, because the boosted K-factor has
already moved the rating part of the way.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

from goelo.elo.constants import DEFAULT_RATING, ESTIMATION_DEFAULTS

logger = logging.getLogger(__name__)

# (opponent rating, outcome) for one game
WindowEntry = tuple[float, float]


def _compressed_offset(win_rate: float, logit_scale: float, offset_limit: float, extreme_rate: float) -> float:
    """Rating offset for a win rate, with diminishing returns at the extremes."""
    if win_rate >= 1.0 - extreme_rate:
        return offset_limit
    if win_rate <= extreme_rate:
        return -offset_limit

    logit = logit_scale * math.log(win_rate / (1.0 - win_rate))
    bound = offset_limit + math.sqrt(abs(logit))
    return math.copysign(min(abs(logit), bound), logit)


def estimate_performance(
    window: Sequence[WindowEntry],
    weight_floor: float | None = None,
    logit_scale: float | None = None,
    offset_limit: float | None = None,
    extreme_rate: float | None = None,
    win_margin: float | None = None,
) -> float:
    """
    Estimate a rating from game results alone.

    Args:
        window: (opponent rating, outcome) pairs, outcome 1/0.5/0
        weight_floor, logit_scale, offset_limit, extreme_rate, win_margin:
            Overrides for ESTIMATION_DEFAULTS

    Returns:
        Estimated rating. DEFAULT_RATING for an empty window.

    Example:
        # 12 straight wins against 2000-rated players, best win 2100
        estimate_performance([(2000, 1.0)] * 11 + [(2100, 1.0)])  # -> ~2208.5
    """
    if weight_floor is None:
        weight_floor = ESTIMATION_DEFAULTS["weight_floor"]
    if logit_scale is None:
        logit_scale = ESTIMATION_DEFAULTS["logit_scale"]
    if offset_limit is None:
        offset_limit = ESTIMATION_DEFAULTS["offset_limit"]
    if extreme_rate is None:
        extreme_rate = ESTIMATION_DEFAULTS["extreme_rate"]
    if win_margin is None:
        win_margin = ESTIMATION_DEFAULTS["win_margin"]

    if not window:
        return float(DEFAULT_RATING)

    weighted_opponents = 0.0
    weighted_scores = 0.0
    weight_sum = 0.0
    strongest_win: Optional[float] = None
    weakest_loss: Optional[float] = None

    for opponent_rating, outcome in window:
        weight = math.sqrt(max(weight_floor, opponent_rating) / weight_floor)
        weighted_opponents += opponent_rating * weight
        weighted_scores += outcome * weight
        weight_sum += weight

        if outcome > 0.5 and (strongest_win is None or opponent_rating > strongest_win):
            strongest_win = opponent_rating
        if outcome < 0.5 and (weakest_loss is None or opponent_rating < weakest_loss):
            weakest_loss = opponent_rating

    avg_opponent = weighted_opponents / weight_sum
    win_rate = weighted_scores / weight_sum

    estimate = avg_opponent + _compressed_offset(win_rate, logit_scale, offset_limit, extreme_rate)

    if strongest_win is not None:
        estimate = min(estimate, strongest_win + win_margin)
    if weakest_loss is not None:
        estimate = max(estimate, weakest_loss - win_margin)

    return estimate


def corrected_rating(
    current_rating: float,
    estimate: float,
    baseline: float,
    correction: float | None = None,
) -> float:
    """
    Move the current rating by a share of (estimate - baseline).

    Args:
        current_rating: Rating after the estimation window
        estimate: Performance estimate
        baseline: Rating the player's original grade implied
        correction: Share of the gap to apply. Default from ESTIMATION_DEFAULTS.
    """
    if correction is None:
        correction = ESTIMATION_DEFAULTS["correction"]
    return current_rating + correction * (estimate - baseline)


class PerformanceTracker:
    """
    Collects each estimating player's first games.

    The engine calls record() after every game of a player still in the
    estimation phase. When the window fills, record() hands back the
    estimate and forgets the window.
    """

    def __init__(self, window_size: int | None = None, **estimate_options):
        self.window_size = window_size or ESTIMATION_DEFAULTS["window"]
        self._estimate_options = estimate_options
        self._windows: dict[str, list[WindowEntry]] = {}

    def __contains__(self, player_id: str) -> bool:
        return player_id in self._windows

    def window(self, player_id: str) -> list[WindowEntry]:
        """Copy of a player's current window (empty if not tracked)."""
        return list(self._windows.get(player_id, ()))

    def record(self, player_id: str, opponent_rating: float, outcome: float) -> Optional[float]:
        """
        Add one game to the player's window.

        Returns:
            The performance estimate when this game fills the window, else None
        """
        games = self._windows.setdefault(player_id, [])
        games.append((opponent_rating, outcome))

        if len(games) < self.window_size:
            return None

        estimate = estimate_performance(games, **self._estimate_options)
        logger.debug(
            "Performance window complete for %s: %d games, estimate %.1f",
            player_id, len(games), estimate,
        )
        del self._windows[player_id]
        return estimate

    def discard(self, player_id: str) -> bool:
        """Drop a player's window. Returns True if there was one."""
        return self._windows.pop(player_id, None) is not None
