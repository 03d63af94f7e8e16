"""
Go rating engine.

Elo-style ratings for Go players with corrections for players whose
starting grade can't be trusted:
- Grade-based starting ratings with foreign grade adjustment
- Uncertainty-scaled K-factor for new, foreign-graded and returning players
- Performance re-estimation after a new player's first 12 games
- Catch-up boost for players whose recent wins outpace their rating
- Rating floor after a home-association promotion
"""

from goelo.elo.calculator import base_k, calculate_exchange, expected_score
from goelo.elo.catch_up import CatchUpBooster, CatchUpEvent, catch_up_boost
from goelo.elo.engine import EngineParams, MatchOrderError, RatingEngine, ratings_at
from goelo.elo.grades import Grade, GradeHistory, GradeTier, parse_grade, rating_from_grade
from goelo.elo.models import Match, MatchRating, Player
from goelo.elo.performance import PerformanceTracker, corrected_rating, estimate_performance
from goelo.elo.promotion import PromotionEvent, PromotionTracker
from goelo.elo.reporting import ReportMode, report_ratings
from goelo.elo.store import RatingStore
from goelo.elo.uncertainty import uncertainty_scale

__all__ = [
    "base_k",
    "calculate_exchange",
    "expected_score",
    "CatchUpBooster",
    "CatchUpEvent",
    "catch_up_boost",
    "EngineParams",
    "MatchOrderError",
    "RatingEngine",
    "ratings_at",
    "Grade",
    "GradeHistory",
    "GradeTier",
    "parse_grade",
    "rating_from_grade",
    "Match",
    "MatchRating",
    "Player",
    "PerformanceTracker",
    "corrected_rating",
    "estimate_performance",
    "PromotionEvent",
    "PromotionTracker",
    "ReportMode",
    "report_ratings",
    "RatingStore",
    "uncertainty_scale",
]
