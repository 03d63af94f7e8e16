"""
Pairwise Elo exchange for a single game.

The Elo formula:
  Expected score: E_A = 1 / (1 + 10^((R_B - R_A) / 400))
  New rating: R'_A = R_A + K_A * (S_A - E_A)

Where:
  R_A, R_B = Current ratings of players A and B
  S_A = Actual score for A (1 win, 0.5 draw/jigo, 0 loss)
  K_A = Effective K for A (base K for A's rating band times A's multiplier)

Each side gets its own K so an uncertain player can move quickly while an
established opponent is only nudged. With equal K on both sides the exchange
is zero-sum.
"""

from goelo.elo.constants import ELO_SPREAD, K_DEFAULTS, MIN_RATING


def expected_score(rating: float, opponent_rating: float, spread: float = ELO_SPREAD) -> float:
    """
    Probability that a player rated `rating` beats one rated `opponent_rating`.

    Example:
        expected_score(2100, 2100)   # -> 0.5
        expected_score(2500, 2100)   # -> ~0.91
    """
    try:
        return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / spread))
    except OverflowError:
        return 0.0


def base_k(
    rating: float,
    k_base: float | None = None,
    k_strong: float | None = None,
    k_strong_threshold: float | None = None,
) -> float:
    """
    Base K-factor for a rating band.

    Ratings at or above k_strong_threshold use the lower k_strong.
    Defaults come from K_DEFAULTS.
    """
    if k_base is None:
        k_base = K_DEFAULTS["k_base"]
    if k_strong is None:
        k_strong = K_DEFAULTS["k_strong"]
    if k_strong_threshold is None:
        k_strong_threshold = K_DEFAULTS["k_strong_threshold"]

    return k_strong if rating >= k_strong_threshold else k_base


def calculate_exchange(
    rating_a: float,
    rating_b: float,
    score_a: float,
    k_a: float,
    k_b: float,
    spread: float = ELO_SPREAD,
) -> tuple[float, float, float]:
    """
    Rate one game between A and B.

    Args:
        rating_a: Player A's rating before the game
        rating_b: Player B's rating before the game
        score_a: A's actual score (1.0, 0.5 or 0.0). B scores 1 - score_a.
        k_a: Effective K-factor for A
        k_b: Effective K-factor for B
        spread: Logistic spread

    Returns:
        Tuple of (new_rating_a, new_rating_b, expected_a).
        New ratings never drop below MIN_RATING.

    Raises:
        ValueError: If score_a is not 0, 0.5 or 1
    """
    if score_a not in (0.0, 0.5, 1.0):
        raise ValueError(f"score_a must be 0, 0.5 or 1, got {score_a!r}")

    exp_a = expected_score(rating_a, rating_b, spread)
    exp_b = 1.0 - exp_a

    new_a = rating_a + k_a * (score_a - exp_a)
    new_b = rating_b + k_b * ((1.0 - score_a) - exp_b)

    return max(new_a, MIN_RATING), max(new_b, MIN_RATING), exp_a
