"""In-memory rating store owned by a single RatingEngine."""

from __future__ import annotations

from typing import Iterator, Optional


class RatingStore:
    """
    Current rating per player id.

    Ratings are created lazily the first time a player is rated and are
    never deleted during a run. The store also remembers the rating each
    player entered with, for delta reporting.
    """

    def __init__(self) -> None:
        self._ratings: dict[str, float] = {}
        self._initial: dict[str, float] = {}

    def __contains__(self, player_id: str) -> bool:
        return player_id in self._ratings

    def __len__(self) -> int:
        return len(self._ratings)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ratings)

    def get(self, player_id: str) -> Optional[float]:
        return self._ratings.get(player_id)

    def resolve(self, player_id: str, baseline: float) -> float:
        """Stored rating, or baseline if the player hasn't been rated yet."""
        return self._ratings.get(player_id, float(baseline))

    def set(self, player_id: str, rating: float, initial: Optional[float] = None) -> None:
        """
        Store a rating.

        Args:
            player_id: Player to update
            rating: New rating
            initial: Rating the player entered the run with; only recorded
                     the first time the player is stored
        """
        if player_id not in self._initial:
            self._initial[player_id] = float(initial if initial is not None else rating)
        self._ratings[player_id] = float(rating)

    def adjust(self, player_id: str, amount: float) -> float:
        """Add amount to a stored rating and return the new value."""
        rating = self._ratings[player_id] + amount
        self._ratings[player_id] = rating
        return rating

    def initial(self, player_id: str) -> Optional[float]:
        return self._initial.get(player_id)

    def snapshot(self) -> dict[str, float]:
        """Copy of all current ratings."""
        return dict(self._ratings)
