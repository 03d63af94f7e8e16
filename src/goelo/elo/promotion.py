"""
Rating floor after a real-world promotion.

When the home association promotes a player (say 8K -> 7K), their rating
may still sit well below the new grade, especially for fast-improving
juniors. We raise such a player to a floor half a grade step below the new
grade's rating:

    floor = rating_from_grade(new_grade) - GRADE_STEP * 0.5

Rules:
- Only home-association promotions count; foreign re-gradings aren't
  verified closely enough.
- Only promotions to grades rated below 2500 get a floor. Stronger players
  are assumed to be rated adequately already.
- Players with no rating yet are left alone; they'll enter at the new
  grade's baseline anyway.
- Floors are queued and applied once all games on the same calendar day
  have been rated, so the order of games within a day can't matter.
- A promotion out of kyu ends the player's performance estimation: the
  promotion itself is trusted evidence of their strength.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from goelo.elo.constants import GRADE_STEP, HOME_ORGANIZATION, PROMOTION_DEFAULTS
from goelo.elo.grades import Grade, rating_from_grade
from goelo.elo.models import Player
from goelo.elo.store import RatingStore

logger = logging.getLogger(__name__)


@dataclass
class PendingPromotionFloor:
    """A floor waiting for the end of the day."""
    player_id: str
    floor: float
    was_kyu: bool
    from_grade: Grade
    to_grade: Grade
    detected: date


@dataclass(frozen=True)
class PromotionEvent:
    """An applied promotion floor, for reporting."""
    player_id: str
    from_grade: Grade
    to_grade: Grade
    date: date
    bonus: float


class PromotionTracker:
    """
    Detects grade increases and applies the promotion floor.

    Usage:
        tracker = PromotionTracker(store)
        tracker.check(player, match_date)     # before rating each game
        graduated = tracker.flush()          # when the date moves on
    """

    def __init__(
        self,
        store: RatingStore,
        home_organization: str = HOME_ORGANIZATION,
        international: bool = False,
        strong_threshold: float | None = None,
        floor_share: float | None = None,
    ):
        self.store = store
        self.home_organization = home_organization.upper()
        self.international = international
        self.strong_threshold = (
            strong_threshold if strong_threshold is not None else PROMOTION_DEFAULTS["strong_threshold"]
        )
        self.floor_share = floor_share if floor_share is not None else PROMOTION_DEFAULTS["floor_share"]

        self._last_known: dict[str, Grade] = {}
        self._pending: dict[str, PendingPromotionFloor] = {}
        self._events: dict[str, list[PromotionEvent]] = {}

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def check(self, player: Player, as_of: date) -> None:
        """
        Compare the player's effective grade on as_of against the last one seen.

        The first time a player is seen, their earliest recorded grade stands
        in for the last known one so a promotion between that and today is
        still noticed.
        """
        current = player.effective_grade(as_of, self.home_organization, self.international)
        if current is None:
            return

        previous = self._last_known.get(player.player_id)
        if previous is None:
            earliest = player.grades.earliest()
            if earliest is not None and not earliest.same_rank(current):
                previous = earliest

        if previous is not None and not previous.same_rank(current):
            self.on_grade_change(player, previous, current, as_of)

        self._last_known[player.player_id] = current

    def _rating(self, grade: Grade) -> int:
        return rating_from_grade(
            grade,
            international=self.international,
            home_organization=self.home_organization,
        )

    def on_grade_change(self, player: Player, old_grade: Grade, new_grade: Grade, on: date) -> bool:
        """
        Queue a promotion floor if the change qualifies.

        Returns:
            True if a floor was queued
        """
        if new_grade.organization != self.home_organization:
            logger.debug(
                "Ignoring %s grade change for %s: %s is not the home association",
                new_grade.label, player.player_id, new_grade.organization,
            )
            return False

        old_rating = self._rating(old_grade)
        new_rating = self._rating(new_grade)
        if new_rating <= old_rating:
            return False
        if new_rating >= self.strong_threshold:
            return False
        if player.player_id not in self.store:
            return False

        floor = new_rating - GRADE_STEP * self.floor_share
        pending = self._pending.get(player.player_id)
        if pending is not None:
            pending.floor = max(pending.floor, floor)
            pending.was_kyu = pending.was_kyu or old_grade.is_kyu
            pending.to_grade = new_grade
        else:
            self._pending[player.player_id] = PendingPromotionFloor(
                player_id=player.player_id,
                floor=floor,
                was_kyu=old_grade.is_kyu,
                from_grade=old_grade,
                to_grade=new_grade,
                detected=on,
            )
        return True

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    @property
    def pending(self) -> list[PendingPromotionFloor]:
        return list(self._pending.values())

    def flush(self) -> list[str]:
        """
        Apply all queued floors.

        Returns:
            Ids of players promoted out of kyu, whose estimation phase must end
        """
        graduated: list[str] = []
        for pending in self._pending.values():
            current = self.store.get(pending.player_id)
            if current is not None and current < pending.floor:
                bonus = pending.floor - current
                self.store.set(pending.player_id, pending.floor)
                event = PromotionEvent(
                    player_id=pending.player_id,
                    from_grade=pending.from_grade,
                    to_grade=pending.to_grade,
                    date=pending.to_grade.recorded or pending.detected,
                    bonus=bonus,
                )
                self._events.setdefault(pending.player_id, []).append(event)
                logger.info(
                    "Promotion floor for %s (%s -> %s): %.1f -> %.1f",
                    pending.player_id, pending.from_grade.label, pending.to_grade.label,
                    current, pending.floor,
                )
            if pending.was_kyu:
                graduated.append(pending.player_id)

        self._pending.clear()
        return graduated

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def events(self, player_id: Optional[str] = None) -> list[PromotionEvent]:
        """Applied floors, for one player or everyone, in application order."""
        if player_id is not None:
            return list(self._events.get(player_id, ()))
        return [event for events in self._events.values() for event in events]

    def consume(self, player_id: str, up_to: date) -> list[PromotionEvent]:
        """Return and forget a player's events dated on or before up_to."""
        events = self._events.get(player_id)
        if not events:
            return []
        taken = [event for event in events if event.date <= up_to]
        self._events[player_id] = [event for event in events if event.date > up_to]
        return taken

    def bonuses_between(self, start: date, end: date) -> dict[str, float]:
        """Total floor bonus per player for events dated within [start, end]."""
        totals: dict[str, float] = {}
        for event in self.events():
            if start <= event.date <= end:
                totals[event.player_id] = totals.get(event.player_id, 0.0) + event.bonus
        return totals
