"""
K-factor scaling for players whose rating isn't trusted yet.

A new, foreign-graded or returning player's rating is a guess. We scale
their K-factor up so the rating converges quickly, then let the scale fade
back to 1.0 as games accumulate.

Formula:
    scale = 1 + max(0, (threshold - games_played) / decay)

With the defaults (threshold 12, decay 6):
    0 games  -> 3.0
    6 games  -> 2.0
    12+ games -> 1.0

The scale is symmetric: it applies the same way to wins and losses.
"""

from goelo.elo.constants import UNCERTAINTY_DEFAULTS


def uncertainty_scale(
    games_played: int,
    threshold: int | None = None,
    decay: float | None = None,
) -> float:
    """
    K-factor multiplier for a player with games_played games behind them.

    Args:
        games_played: Games the player has completed so far (negative is treated as 0)
        threshold: Games at which the scale reaches 1.0.
                   Default from UNCERTAINTY_DEFAULTS.
        decay: Games per unit of scale lost. Default from UNCERTAINTY_DEFAULTS.

    Returns:
        Multiplier in [1.0, 1 + threshold / decay]

    Examples:
        uncertainty_scale(0)    # -> 3.0
        uncertainty_scale(6)    # -> 2.0
        uncertainty_scale(40)   # -> 1.0
    """
    if threshold is None:
        threshold = UNCERTAINTY_DEFAULTS["threshold"]
    if decay is None:
        decay = UNCERTAINTY_DEFAULTS["decay"]

    games = max(0, games_played)
    return 1.0 + max(0.0, (threshold - games) / decay)
