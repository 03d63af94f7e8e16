"""Rating tables for display: absolute ratings or change over the run."""

from __future__ import annotations

import enum
from typing import Iterable, Optional

from goelo.elo.engine import RatingEngine


class ReportMode(str, enum.Enum):
    ABSOLUTE = "absolute"
    DELTA = "delta"


def report_ratings(
    engine: RatingEngine,
    mode: ReportMode = ReportMode.ABSOLUTE,
    player_ids: Optional[Iterable[str]] = None,
) -> list[tuple[str, float]]:
    """
    Rated players with their rating (ABSOLUTE) or their change since they
    entered the run (DELTA), best first.

    Args:
        engine: Engine that has processed the matches
        mode: What to report
        player_ids: Restrict to these players. Players who haven't played
                    report their grade baseline (ABSOLUTE) or 0.0 (DELTA).
    """
    mode = ReportMode(mode)
    ids = list(player_ids) if player_ids is not None else list(engine.store)

    rows = []
    for player_id in ids:
        rating = engine.rating(player_id)
        if mode is ReportMode.DELTA:
            initial = engine.store.initial(player_id)
            value = rating - initial if initial is not None else 0.0
        else:
            value = rating
        rows.append((player_id, round(value, 1)))

    rows.sort(key=lambda row: (-row[1], row[0]))
    return rows
