"""
Input records and per-match results for the rating engine.

Players and matches are supplied by the caller (who owns storage); the
engine never mutates them. What the engine produces for each match is a
MatchRating annotation holding the before/after ratings for audit and
history display.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from goelo.elo.constants import HOME_ORGANIZATION
from goelo.elo.grades import Grade, GradeHistory


@dataclass(frozen=True)
class Player:
    """
    Caller-supplied player profile.

    Attributes:
        player_id: Unique identifier
        grades: The player's grade records
        needs_dynamic_factor: Rating not trusted yet (new, unknown-grade,
            foreign-graded or newly promoted-in local dan). Such players get
            the uncertainty-scaled K and a performance re-estimate.
        is_virtual_pool: Aggregate pool entry (e.g. an international pool).
            Rated like anyone else but excluded from all per-player tracking.
        games_played: Games completed before this processing run
        first_match_date: Date of the player's first ever match, if known.
            Used for the original grade baseline; defaults to the first
            match seen in the run.
    """
    player_id: str
    grades: GradeHistory = field(default_factory=GradeHistory)
    needs_dynamic_factor: bool = False
    is_virtual_pool: bool = False
    games_played: int = 0
    first_match_date: Optional[date] = None

    def effective_grade(
        self,
        as_of: Optional[date],
        home_organization: str = HOME_ORGANIZATION,
        international: bool = False,
    ) -> Optional[Grade]:
        return self.grades.effective_grade(as_of, home_organization, international)

    def is_pro_at(
        self,
        as_of: Optional[date],
        home_organization: str = HOME_ORGANIZATION,
        international: bool = False,
    ) -> bool:
        grade = self.effective_grade(as_of, home_organization, international)
        return grade is not None and grade.is_pro


@dataclass(frozen=True)
class Match:
    """
    One game result.

    Attributes:
        date: Day the game was played
        player_a: First player's id, or None for a bye
        player_b: Second player's id, or None for a bye
        score_a: First player's score (only the comparison with score_b matters)
        score_b: Second player's score
        factor: Explicit K override. None = computed dynamically,
            0 = void (no rating effect), any positive value = plain 1x K.
    """
    date: date
    player_a: Optional[str]
    player_b: Optional[str]
    score_a: int
    score_b: int
    factor: Optional[float] = None

    def __post_init__(self):
        if self.factor is not None and self.factor < 0:
            raise ValueError(f"factor must be non-negative, got {self.factor}")

    @property
    def is_bye(self) -> bool:
        return self.player_a is None or self.player_b is None

    @property
    def is_void(self) -> bool:
        return self.factor is not None and self.factor == 0

    @property
    def outcome_a(self) -> float:
        """Player A's game score: 1 win, 0.5 draw, 0 loss."""
        if self.score_a > self.score_b:
            return 1.0
        if self.score_a < self.score_b:
            return 0.0
        return 0.5

    @property
    def outcome_b(self) -> float:
        return 1.0 - self.outcome_a


@dataclass
class MatchRating:
    """
    What happened to the ratings in one match.

    Contains the information needed for rating history and audit.
    Skipped (bye) and void (factor 0) matches carry their pre-match ratings
    where known and zero shift.
    """
    match: Match

    # Ratings before the match
    player_a_before: Optional[float] = None
    player_b_before: Optional[float] = None

    # Ratings after the Elo exchange (before any estimation or catch-up correction)
    player_a_after: Optional[float] = None
    player_b_after: Optional[float] = None

    # K multipliers used
    multiplier_a: float = 0.0
    multiplier_b: float = 0.0

    # Pre-match win probability for A
    expected_a: Optional[float] = None

    skipped: bool = False
    void: bool = False

    @property
    def player_a_change(self) -> float:
        """Rating change for player A."""
        if self.player_a_before is None or self.player_a_after is None:
            return 0.0
        return self.player_a_after - self.player_a_before

    @property
    def player_b_change(self) -> float:
        """Rating change for player B."""
        if self.player_b_before is None or self.player_b_after is None:
            return 0.0
        return self.player_b_after - self.player_b_before

    @property
    def shift_display(self) -> str:
        """
        Rating shift for display, one decimal.

        A single figure when B lost exactly what A gained, otherwise
        "A-B" where B is the amount player B lost.
        """
        # + 0.0 turns a rounded -0.0 into 0.0
        shift_a = f"{round(self.player_a_change, 1) + 0.0:.1f}"
        shift_b = f"{round(-self.player_b_change, 1) + 0.0:.1f}"
        if shift_a == shift_b:
            return shift_a
        return f"{shift_a}-{shift_b}"

    def __repr__(self) -> str:
        if self.skipped or self.void:
            kind = "skipped" if self.skipped else "void"
            return f"<MatchRating({self.match.player_a} vs {self.match.player_b}, {kind})>"
        return (
            f"<MatchRating({self.match.player_a}: {self.player_a_before:.0f} -> {self.player_a_after:.0f}, "
            f"{self.match.player_b}: {self.player_b_before:.0f} -> {self.player_b_after:.0f})>"
        )
