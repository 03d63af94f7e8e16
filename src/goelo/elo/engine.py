"""
Rating engine: applies matches in date order and keeps ratings current.

For each match, in order:
1. Promotion floors queued on earlier dates are applied
2. Grade changes are checked and new floors queued
3. Each side's K multiplier is sized (uncertainty scale, damping for an
   established opponent, joint cap when both sides are uncertain)
4. Standard Elo exchange
5. Performance estimation for players still in their first games
6. Catch-up boost for established players whose recent wins say they're
   underrated

The engine is a pure function of the ordered match list and the players'
grade records: replaying the same input into a fresh engine gives the same
ratings. Each engine owns its own state, so independent leagues need
independent engines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable, Mapping, Optional

from goelo.elo.calculator import base_k, calculate_exchange
from goelo.elo.catch_up import CatchUpBooster, CatchUpEvent
from goelo.elo.constants import (
    CATCH_UP_DEFAULTS,
    CORRECTION_RANGE,
    DEFAULT_RATING,
    ELO_SPREAD,
    ESTIMATION_DEFAULTS,
    HOME_ORGANIZATION,
    K_DEFAULTS,
    PROMOTION_DEFAULTS,
    RANKING_DEFAULTS,
    UNCERTAINTY_DEFAULTS,
)
from goelo.elo.grades import Grade, rating_from_grade
from goelo.elo.models import Match, MatchRating, Player
from goelo.elo.performance import PerformanceTracker, corrected_rating
from goelo.elo.promotion import PromotionEvent, PromotionTracker
from goelo.elo.store import RatingStore
from goelo.elo.uncertainty import uncertainty_scale

logger = logging.getLogger(__name__)


class MatchOrderError(ValueError):
    """A match was supplied with a date earlier than one already applied."""


@dataclass
class EngineParams:
    """
    All tunable rating engine parameters in one object.

    Defaults come from constants.py. Use from_settings() to pick up the
    environment-driven configuration.
    """
    # League
    home_organization: str = HOME_ORGANIZATION
    international: bool = False

    # Base K by rating band
    k_base: float = K_DEFAULTS["k_base"]
    k_strong: float = K_DEFAULTS["k_strong"]
    k_strong_threshold: float = K_DEFAULTS["k_strong_threshold"]
    spread: float = ELO_SPREAD

    # Uncertainty scaling
    uncertainty_threshold: int = UNCERTAINTY_DEFAULTS["threshold"]
    uncertainty_decay: float = UNCERTAINTY_DEFAULTS["decay"]
    opponent_damping: float = UNCERTAINTY_DEFAULTS["opponent_damping"]
    joint_cap: float = UNCERTAINTY_DEFAULTS["joint_cap"]
    returning_days: int = UNCERTAINTY_DEFAULTS["returning_days"]

    # Performance estimation
    estimation_window: int = ESTIMATION_DEFAULTS["window"]
    estimation_correction: float = ESTIMATION_DEFAULTS["correction"]

    # Catch-up boost
    catch_up_log_size: int = CATCH_UP_DEFAULTS["log_size"]
    catch_up_min_gap: float = CATCH_UP_DEFAULTS["min_gap"]
    catch_up_gap_share: float = CATCH_UP_DEFAULTS["gap_share"]
    catch_up_max_boost: float = CATCH_UP_DEFAULTS["max_boost"]

    # Promotion floor
    promotion_strong_threshold: float = PROMOTION_DEFAULTS["strong_threshold"]
    promotion_floor_share: float = PROMOTION_DEFAULTS["floor_share"]

    # Ranked status
    ranking_active_days: int = RANKING_DEFAULTS["active_days"]
    ranking_new_player_games: int = RANKING_DEFAULTS["new_player_games"]

    def __post_init__(self):
        low, high = CORRECTION_RANGE
        if not low <= self.estimation_correction <= high:
            raise ValueError(
                f"estimation_correction must be between {low} and {high}, "
                f"got {self.estimation_correction}"
            )
        self.home_organization = self.home_organization.upper()

    @classmethod
    def from_settings(cls, config=None) -> "EngineParams":
        """Build params from Settings (the cached global settings by default)."""
        if config is None:
            from goelo.config import get_settings
            config = get_settings()
        return cls(
            home_organization=config.home_organization,
            international=config.international,
            k_base=config.k_base,
            k_strong=config.k_strong,
            k_strong_threshold=config.k_strong_threshold,
            estimation_correction=config.estimation_correction,
        )

    def get_k(self, rating: float) -> float:
        """Base K-factor for a rating."""
        return base_k(rating, self.k_base, self.k_strong, self.k_strong_threshold)


@dataclass
class _PlayerState:
    """Internal tracking of a player's progress during a run."""
    games_played: int = 0
    first_match_date: Optional[date] = None
    last_match_date: Optional[date] = None
    estimating: bool = False
    games_since_return: Optional[int] = None


class RatingEngine:
    """
    Processes matches in chronological order.

    Usage:
        engine = RatingEngine(players)
        for match in matches:          # sorted by date
            engine.apply_match(match)
        engine.flush()
        print(engine.rating("alice"))

    Or in one go:
        engine = RatingEngine(players)
        engine.run(matches)
    """

    def __init__(self, players: Mapping[str, Player], params: Optional[EngineParams] = None):
        self.players = players
        self.params = params or EngineParams()
        params = self.params

        self.store = RatingStore()
        self.estimator = PerformanceTracker(window_size=params.estimation_window)
        self.booster = CatchUpBooster(
            log_size=params.catch_up_log_size,
            min_gap=params.catch_up_min_gap,
            gap_share=params.catch_up_gap_share,
            max_boost=params.catch_up_max_boost,
        )
        self.promotions = PromotionTracker(
            self.store,
            home_organization=params.home_organization,
            international=params.international,
            strong_threshold=params.promotion_strong_threshold,
            floor_share=params.promotion_floor_share,
        )

        self.history: list[MatchRating] = []
        self.catch_up_events: list[CatchUpEvent] = []
        self._states: dict[str, _PlayerState] = {}
        self._last_date: Optional[date] = None

    @classmethod
    def from_settings(cls, players: Mapping[str, Player], config=None) -> "RatingEngine":
        """Instantiate using the environment-driven settings."""
        return cls(players, EngineParams.from_settings(config))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        matches: Iterable[Match],
        as_of: Optional[date] = None,
        on_match: Optional[Callable[[Match, MatchRating], None]] = None,
    ) -> list[MatchRating]:
        """
        Apply a sequence of matches and flush pending promotion floors.

        Args:
            matches: Matches in non-decreasing date order
            as_of: Ignore matches played after this date. Promotions recorded
                   up to as_of are applied even to players who haven't
                   played since.
            on_match: Called after each rated match (e.g. to take snapshots)

        Returns:
            Annotations for the matches applied in this call

        Raises:
            MatchOrderError: If the matches are not in date order
        """
        results = []
        for match in matches:
            if as_of is not None and match.date > as_of:
                continue
            rated = self.apply_match(match)
            results.append(rated)
            if on_match is not None and not rated.skipped and not rated.void:
                on_match(match, rated)

        if as_of is not None and (self._last_date is None or as_of >= self._last_date):
            self.apply_promotions_up_to(as_of)
        else:
            self.flush()
        return results

    def apply_match(self, match: Match) -> MatchRating:
        """
        Rate one match.

        Returns:
            MatchRating with before/after ratings

        Raises:
            MatchOrderError: If match.date is earlier than the last applied match
            KeyError: If a player id is unknown
        """
        if self._last_date is not None and match.date < self._last_date:
            raise MatchOrderError(
                f"Match on {match.date} supplied after a match on {self._last_date}; "
                "matches must be applied in date order"
            )

        if match.is_bye:
            rated = MatchRating(match=match, skipped=True)
            self.history.append(rated)
            return rated

        player_a = self._player(match.player_a)
        player_b = self._player(match.player_b)

        if self._last_date is not None and match.date > self._last_date:
            self._flush_promotions()
        self._last_date = match.date

        if match.is_void:
            rated = MatchRating(
                match=match,
                player_a_before=self._current(player_a, match.date),
                player_b_before=self._current(player_b, match.date),
                void=True,
            )
            rated.player_a_after = rated.player_a_before
            rated.player_b_after = rated.player_b_before
            self.history.append(rated)
            return rated

        for player in (player_a, player_b):
            if not player.is_virtual_pool:
                self._begin_game(player, match.date)
                self.promotions.check(player, match.date)

        rating_a = self._current(player_a, match.date)
        rating_b = self._current(player_b, match.date)

        multiplier_a, multiplier_b = self._multipliers(match, player_a, player_b)
        k_a = self.params.get_k(rating_a) * multiplier_a
        k_b = self.params.get_k(rating_b) * multiplier_b

        outcome_a = match.outcome_a
        new_a, new_b, expected_a = calculate_exchange(
            rating_a, rating_b, outcome_a, k_a, k_b, self.params.spread,
        )
        self.store.set(player_a.player_id, new_a, initial=rating_a)
        self.store.set(player_b.player_id, new_b, initial=rating_b)

        rated = MatchRating(
            match=match,
            player_a_before=rating_a,
            player_b_before=rating_b,
            player_a_after=new_a,
            player_b_after=new_b,
            multiplier_a=multiplier_a,
            multiplier_b=multiplier_b,
            expected_a=expected_a,
        )
        logger.debug(
            "%s %s %.1f -> %.1f (x%.2f) vs %s %.1f -> %.1f (x%.2f)",
            match.date, player_a.player_id, rating_a, new_a, multiplier_a,
            player_b.player_id, rating_b, new_b, multiplier_b,
        )

        self._after_game(player_a, rating_b, outcome_a, match.date)
        self._after_game(player_b, rating_a, 1.0 - outcome_a, match.date)

        self.history.append(rated)
        return rated

    def flush(self) -> None:
        """Apply promotion floors still waiting for the end of the day."""
        self._flush_promotions()

    def apply_promotions_up_to(self, as_of: date) -> None:
        """
        Detect promotions recorded on or before as_of and apply all floors.

        Catches promotions dated after a player's last game, which match
        processing alone never sees. Call it from an on_match callback before
        taking a snapshot. The engine's clock moves to as_of, so later
        matches must not be dated before it.

        Raises:
            MatchOrderError: If as_of is earlier than the last applied match
        """
        if self._last_date is not None and as_of < self._last_date:
            raise MatchOrderError(
                f"Cannot apply promotions up to {as_of}: a match on {self._last_date} "
                "has already been applied"
            )

        for player_id in list(self.store):
            player = self._player(player_id)
            if not player.is_virtual_pool:
                self.promotions.check(player, as_of)
        self._last_date = as_of
        self._flush_promotions()

    def is_ranked(self, player_id: str, as_of: Optional[date] = None) -> bool:
        """
        Whether the player belongs on the rating list at as_of.

        A ranked player has played in this run and either played within the
        last two years or is a pro. Outside an international pool, players who
        started out kyu or ungraded stay unlisted until they have more than
        12 games. Virtual pool entries are never ranked.

        Args:
            player_id: Player to check
            as_of: Cutoff date (the last applied match date by default)
        """
        player = self._player(player_id)
        state = self._states.get(player_id)
        if player.is_virtual_pool or state is None or state.last_match_date is None:
            return False

        params = self.params
        as_of = as_of or self._last_date
        is_pro = self._is_pro(player, as_of)

        active_since = as_of - timedelta(days=params.ranking_active_days)
        if state.last_match_date <= active_since and not is_pro:
            return False
        if params.international:
            return True

        is_new = state.games_played <= params.ranking_new_player_games
        if is_new and not is_pro:
            starting_grade = self._starting_grade(player, state)
            if starting_grade is None or starting_grade.is_kyu:
                return False
        return True

    def rating(self, player_id: str, as_of: Optional[date] = None) -> float:
        """
        A player's current rating.

        Players who haven't played yet get their grade baseline as of
        as_of (their latest grade when as_of is None).
        """
        stored = self.store.get(player_id)
        if stored is not None:
            return stored
        return float(self._baseline(self._player(player_id), as_of))

    def ratings(self) -> dict[str, float]:
        """Current rating of every player who has played."""
        return self.store.snapshot()

    def is_estimating(self, player_id: str) -> bool:
        """Whether the player is still in the performance estimation phase."""
        state = self._states.get(player_id)
        if state is None:
            return self._player(player_id).needs_dynamic_factor
        return state.estimating

    def games_played(self, player_id: str) -> int:
        state = self._states.get(player_id)
        if state is None:
            return self._player(player_id).games_played
        return state.games_played

    @property
    def promotion_events(self) -> list[PromotionEvent]:
        return self.promotions.events()

    def consume_promotion_events(self, player_id: str, up_to: date) -> list[PromotionEvent]:
        """Return and forget a player's promotion floors dated on or before up_to."""
        return self.promotions.consume(player_id, up_to)

    def promotion_bonuses(self, start: date, end: date) -> dict[str, float]:
        """Total promotion floor bonus per player for events within [start, end]."""
        return self.promotions.bonuses_between(start, end)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _player(self, player_id: str) -> Player:
        try:
            return self.players[player_id]
        except KeyError:
            raise KeyError(f"Unknown player id {player_id!r}") from None

    def _state(self, player: Player) -> _PlayerState:
        state = self._states.get(player.player_id)
        if state is None:
            state = _PlayerState(
                games_played=player.games_played,
                first_match_date=player.first_match_date,
                estimating=player.needs_dynamic_factor,
            )
            self._states[player.player_id] = state
        return state

    def _grade_on(self, player: Player, as_of: Optional[date]) -> Optional[Grade]:
        """Effective grade on as_of, or the earliest grade if none was recorded yet."""
        params = self.params
        grade = player.effective_grade(as_of, params.home_organization, params.international)
        if grade is None:
            grade = player.grades.earliest()
        return grade

    def _starting_grade(self, player: Player, state: _PlayerState) -> Optional[Grade]:
        return self._grade_on(player, state.first_match_date)

    def _baseline(self, player: Player, as_of: Optional[date]) -> int:
        """Rating implied by the player's grade on as_of (earliest grade if none yet)."""
        params = self.params
        grade = self._grade_on(player, as_of)
        if grade is None:
            return DEFAULT_RATING
        return rating_from_grade(
            grade,
            international=params.international,
            home_organization=params.home_organization,
        )

    def _current(self, player: Player, on: date) -> float:
        return self.store.resolve(player.player_id, self._baseline(player, on))

    def _begin_game(self, player: Player, on: date) -> None:
        """Note first-match date and detect a return after a long break."""
        state = self._state(player)
        if state.first_match_date is None:
            state.first_match_date = on
        if (
            state.last_match_date is not None
            and (on - state.last_match_date).days > self.params.returning_days
        ):
            logger.debug(
                "%s returns after %d days away",
                player.player_id, (on - state.last_match_date).days,
            )
            state.games_since_return = 0

    def _returning(self, state: _PlayerState) -> bool:
        return (
            state.games_since_return is not None
            and state.games_since_return < self.params.uncertainty_threshold
        )

    def _needs_dynamic(self, player: Player) -> bool:
        if player.is_virtual_pool:
            return False
        state = self._state(player)
        return state.estimating or self._returning(state)

    def _uncertainty(self, player: Player) -> float:
        state = self._state(player)
        games = state.games_played
        if self._returning(state):
            games = min(games, state.games_since_return)
        return uncertainty_scale(
            games,
            threshold=self.params.uncertainty_threshold,
            decay=self.params.uncertainty_decay,
        )

    def _is_pro(self, player: Player, on: Optional[date]) -> bool:
        return player.is_pro_at(on, self.params.home_organization, self.params.international)

    def _multipliers(self, match: Match, player_a: Player, player_b: Player) -> tuple[float, float]:
        """K multipliers for both sides."""
        # Any explicit factor disables dynamic scaling
        if match.factor is not None:
            return 1.0, 1.0

        params = self.params
        dynamic_a = self._needs_dynamic(player_a)
        dynamic_b = self._needs_dynamic(player_b)
        multiplier_a = multiplier_b = 1.0

        if dynamic_a:
            multiplier_a = self._uncertainty(player_a)
            # Pros always keep their own K
            if not dynamic_b and not self._is_pro(player_b, match.date):
                multiplier_b = params.opponent_damping

        if dynamic_b:
            multiplier_b = self._uncertainty(player_b)
            if not dynamic_a and not self._is_pro(player_a, match.date):
                multiplier_a = params.opponent_damping

        if dynamic_a and dynamic_b:
            multiplier_a = min(multiplier_a, params.joint_cap)
            multiplier_b = min(multiplier_b, params.joint_cap)

        return multiplier_a, multiplier_b

    def _after_game(self, player: Player, opponent_rating: float, outcome: float, on: date) -> None:
        """Counters, performance estimation and catch-up for one side."""
        if player.is_virtual_pool:
            return

        state = self._state(player)
        was_estimating = state.estimating

        state.games_played += 1
        state.last_match_date = on
        if state.games_since_return is not None:
            state.games_since_return += 1
            if state.games_since_return >= self.params.uncertainty_threshold:
                state.games_since_return = None

        if was_estimating:
            estimate = self.estimator.record(player.player_id, opponent_rating, outcome)
            if estimate is not None:
                self._apply_estimate(player, state, estimate)
            return

        current = self.store.get(player.player_id)
        boost = self.booster.observe(player.player_id, opponent_rating, outcome, current)
        if boost > 0:
            self.store.adjust(player.player_id, boost)
            event = CatchUpEvent(
                player_id=player.player_id,
                date=on,
                average_beaten=self.booster.average_beaten(player.player_id),
                rating_before=current,
                boost=boost,
            )
            self.catch_up_events.append(event)
            logger.info(
                "Catch-up boost for %s: %.1f -> %.1f (recent wins average %.1f)",
                player.player_id, current, current + boost, event.average_beaten,
            )

    def _apply_estimate(self, player: Player, state: _PlayerState, estimate: float) -> None:
        """Nudge the player toward their performance estimate and end estimation."""
        current = self.store.get(player.player_id)
        baseline = self._baseline(player, state.first_match_date)
        corrected = corrected_rating(
            current, estimate, baseline, self.params.estimation_correction,
        )
        self.store.set(player.player_id, corrected)
        state.estimating = False
        logger.info(
            "Performance estimate for %s: %.1f (grade baseline %d), rating %.1f -> %.1f",
            player.player_id, estimate, baseline, current, corrected,
        )

    def _flush_promotions(self) -> None:
        for player_id in self.promotions.flush():
            state = self._states.get(player_id)
            if state is not None and state.estimating:
                state.estimating = False
                self.estimator.discard(player_id)
                logger.info("%s promoted out of kyu; performance estimation ended", player_id)


def ratings_at(
    players: Mapping[str, Player],
    matches: Iterable[Match],
    as_of: date,
    params: Optional[EngineParams] = None,
) -> dict[str, float]:
    """
    Ratings of everyone who played on or before as_of.

    Builds a fresh engine so the result depends only on the inputs.
    """
    engine = RatingEngine(players, params)
    engine.run(matches, as_of=as_of)
    return engine.ratings()
