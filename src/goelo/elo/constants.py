"""
Rating engine constants.

Grade scale:
  Dan grades sit 100 points apart, starting at 1D = 2100.
  Kyu grades continue the same 100-point step downwards (1K = 2000,
  11K = 1000), never below MIN_RATING.
  Pro grades start at 1P = 2700 (the same strength as 7D) and climb 30
  points per grade up to 9P.

Expected score uses the standard logistic curve with a 400-point spread:
  E_A = 1 / (1 + 10^((R_B - R_A) / 400))

K-factor:
  Base K depends on the player's rating band (ratings at or above the strong
  band move more slowly), then gets multiplied by an uncertainty factor for
  players whose rating isn't trusted yet.
"""

# Grade scale
ONE_DAN_RATING = 2100
ONE_PRO_RATING = 2700
GRADE_STEP = 100
PRO_GRADE_STEP = 30
MAX_PRO_GRADE = 9
MAX_KYU_GRADE = 30

# Lowest rating any player can have, either from a grade or after a match
MIN_RATING = -900

# Baseline for a player with no usable grade (11 kyu)
DEFAULT_RATING = ONE_DAN_RATING - 11 * GRADE_STEP

# Extra points given to a foreign low-kyu grade after it is dropped one level,
# so the kyu->dan boundary stays continuous
FOREIGN_KYU_NUDGE = 50

# Foreign kyu grades up to this number are dropped one level
FOREIGN_KYU_ADJUST_LIMIT = 5

# Default home association whose grades are taken at face value
HOME_ORGANIZATION = "SWA"

# Logistic spread for expected score
ELO_SPREAD = 400.0

# Base K-factor by rating band
K_DEFAULTS = {
    "k_base": 32.0,            # K for ratings below the strong band
    "k_strong": 24.0,          # K at or above the strong band
    "k_strong_threshold": 2400.0,
}

# Uncertainty scaling for new, foreign-graded and returning players
# scale = 1 + max(0, (threshold - games) / decay)
UNCERTAINTY_DEFAULTS = {
    "threshold": 12,           # Games before the scale reaches 1.0
    "decay": 6.0,              # Games per unit of scale lost
    "opponent_damping": 0.5,   # Multiplier for an established opponent
    "joint_cap": 2.0,          # Cap when both sides are uncertain
    "returning_days": 730,     # Absence (days) that marks a returning player
}

# Performance estimation after the first games of a new player
ESTIMATION_DEFAULTS = {
    "window": 12,              # Games collected before estimating
    "weight_floor": 1000.0,    # Opponent ratings below this get weight 1.0
    "logit_scale": 100.0,      # Compressed logit: offset = scale * ln(p/(1-p))
    "offset_limit": 200.0,     # Offset magnitude before diminishing returns
    "extreme_rate": 0.01,      # Win rates within this of 0 or 1 are extreme
    "win_margin": 150.0,       # Estimate can't exceed best win + margin
    "correction": 0.5,         # Share of (estimate - baseline) applied
}

# Bounds for the share of the estimation gap applied to the current rating
CORRECTION_RANGE = (0.3, 0.5)

# Catch-up boost for players whose recent wins say they're underrated
CATCH_UP_DEFAULTS = {
    "log_size": 5,             # Recent wins remembered
    "min_gap": 100.0,          # Average beaten must exceed rating by this
    "gap_share": 0.3,          # Share of the gap given back per application
    "max_boost": 50.0,         # Cap per application
}

# Promotion floor
PROMOTION_DEFAULTS = {
    "strong_threshold": 2500,  # New-grade ratings at or above get no floor
    "floor_share": 0.5,        # Floor sits this share of a grade step below
}

# Ranked status: who appears on the rating list at a cutoff date
RANKING_DEFAULTS = {
    "active_days": 730,        # Must have played within this many days (pros exempt)
    "new_player_games": 12,    # New kyu/ungraded players stay unlisted up to this many games
}
