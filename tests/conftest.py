"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from datetime import date

import pytest

from goelo.elo.grades import GradeHistory, parse_grade
from goelo.elo.models import Player


def build_player(
    player_id: str,
    grade: str | None = "1D",
    organization: str = "SWA",
    recorded: date | None = None,
    extra_grades: tuple = (),
    **kwargs,
) -> Player:
    """
    Player with a single grade (plus optional extra (text, org, date) records).
    """
    records = []
    if grade is not None:
        records.append((grade, organization, recorded))
    records.extend(extra_grades)
    return Player(player_id=player_id, grades=GradeHistory.from_records(records), **kwargs)


@pytest.fixture
def player_factory():
    """Build players with build_player()."""
    return build_player


@pytest.fixture
def league():
    """
    A small league of established home-graded players.

    alice 1D (2100), bob 1D (2100), carol 3D (2300), dave 5K (1600)
    """
    players = [
        build_player("alice", "1D"),
        build_player("bob", "1D"),
        build_player("carol", "3D"),
        build_player("dave", "5K"),
    ]
    return {p.player_id: p for p in players}
