"""
Grade parsing and grade-to-rating conversion.

Grades are externally issued ranks such as "5D" (5 dan), "3K" (3 kyu) or
"1P" (1st professional dan), each scoped to the organization that issued
them. Raw grade strings are parsed once into a Grade value at the boundary;
everything downstream works with the parsed form.

Conversion (see constants.py for the scale):
  Pro:  ONE_PRO_RATING + (n - 1) * PRO_GRADE_STEP, n capped at 9
  Dan:  ONE_DAN_RATING + (n - 1) * GRADE_STEP
  Kyu:  ONE_DAN_RATING - n * GRADE_STEP, n capped at 30, floored at MIN_RATING

Grades from outside the home association are treated as one level weaker
unless the rating pool is international:
  - dan grades drop one level (foreign 3D rates like home 2D)
  - kyu grades 1-5 drop one level and get a +50 nudge, so foreign 1K sits
    at 1950 between home 2K and home 1K
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Union

from goelo.elo.constants import (
    DEFAULT_RATING,
    FOREIGN_KYU_ADJUST_LIMIT,
    FOREIGN_KYU_NUDGE,
    GRADE_STEP,
    HOME_ORGANIZATION,
    MAX_KYU_GRADE,
    MAX_PRO_GRADE,
    MIN_RATING,
    ONE_DAN_RATING,
    ONE_PRO_RATING,
    PRO_GRADE_STEP,
)

logger = logging.getLogger(__name__)

_GRADE_PATTERN = re.compile(r"^\s*(\d+)\s*([PDK])\s*$", re.IGNORECASE)


class GradeTier(str, enum.Enum):
    """Pro, dan or kyu."""

    PRO = "P"
    DAN = "D"
    KYU = "K"


@dataclass(frozen=True)
class Grade:
    """
    An externally issued rank.

    Attributes:
        tier: Pro, dan or kyu
        number: Grade numeral (the 5 in "5D")
        organization: Issuing organization, upper-cased (e.g. "SWA", "CWA")
        recorded: Date the grade took effect, or None if unknown
    """
    tier: GradeTier
    number: int
    organization: str
    recorded: Optional[date] = None

    @property
    def label(self) -> str:
        """Grade text as usually written, e.g. '5D'."""
        return f"{self.number}{self.tier.value}"

    @property
    def is_kyu(self) -> bool:
        return self.tier is GradeTier.KYU

    @property
    def is_pro(self) -> bool:
        return self.tier is GradeTier.PRO

    def same_rank(self, other: Optional["Grade"]) -> bool:
        """Whether two grades are the same rank from the same organization."""
        if other is None:
            return False
        return (
            self.tier is other.tier
            and self.number == other.number
            and self.organization == other.organization
        )

    def __str__(self) -> str:
        return f"{self.label} ({self.organization})"


def parse_grade(
    text: Optional[str],
    organization: Optional[str] = None,
    recorded: Optional[date] = None,
) -> Optional[Grade]:
    """
    Parse a grade string such as "5D", "3k" or "1P".

    Args:
        text: Raw grade text
        organization: Issuing organization. Defaults to the home association.
        recorded: Date the grade took effect

    Returns:
        Parsed Grade, or None if the text is empty or unparsable
        (e.g. "K?" for an unknown kyu grade)
    """
    if not text:
        return None

    match = _GRADE_PATTERN.match(text)
    if not match:
        logger.warning("Ignoring unparsable grade %r", text)
        return None

    number = int(match.group(1))
    if number < 1:
        logger.warning("Ignoring grade with non-positive numeral %r", text)
        return None

    org = (organization or HOME_ORGANIZATION).strip().upper()
    return Grade(
        tier=GradeTier(match.group(2).upper()),
        number=number,
        organization=org,
        recorded=recorded,
    )


def rating_from_grade(
    grade: Union[Grade, str, None],
    organization: Optional[str] = None,
    international: bool = False,
    home_organization: str = HOME_ORGANIZATION,
) -> int:
    """
    Convert a grade to its baseline rating.

    Args:
        grade: Parsed Grade or raw grade text. None/empty gives DEFAULT_RATING.
        organization: Issuing organization when grade is raw text.
                      Ignored for parsed grades (they carry their own).
        international: If True, foreign grades are taken at face value
        home_organization: Association whose grades are never adjusted

    Returns:
        Integer rating baseline

    Examples:
        rating_from_grade("1D", "SWA")   # -> 2100
        rating_from_grade("3D", "CWA")   # -> 2200 (one level down)
        rating_from_grade("1K", "CWA")   # -> 1950 (2K + 50)
        rating_from_grade("2P", "SWA")   # -> 2730
        rating_from_grade(None)          # -> 1000
    """
    if not isinstance(grade, Grade):
        grade = parse_grade(grade, organization or home_organization)
    if grade is None:
        return DEFAULT_RATING

    number = grade.number
    delta = 0
    is_home = grade.organization == home_organization.upper()

    if not is_home and not international:
        if grade.tier is GradeTier.DAN:
            number -= 1
        elif grade.tier is GradeTier.KYU and number <= FOREIGN_KYU_ADJUST_LIMIT:
            number += 1
            delta = FOREIGN_KYU_NUDGE

    if grade.tier is GradeTier.PRO:
        return ONE_PRO_RATING + (min(number, MAX_PRO_GRADE) - 1) * PRO_GRADE_STEP

    if grade.tier is GradeTier.DAN:
        # Foreign 1D lands on the home 1K rating (number 0)
        return ONE_DAN_RATING + (number - 1) * GRADE_STEP + delta

    number = min(number, MAX_KYU_GRADE)
    return max(ONE_DAN_RATING - number * GRADE_STEP, MIN_RATING) + delta


def _sort_key(grade: Grade) -> date:
    return grade.recorded or date.min


class GradeHistory:
    """
    A player's grade records across organizations.

    Answers "what grade did this player hold on date X", per organization and
    combined. Undated records count as held since forever.

    Usage:
        history = GradeHistory([
            parse_grade("3K", "SWA", date(2023, 1, 1)),
            parse_grade("1K", "SWA", date(2024, 6, 1)),
            parse_grade("2D", "CWA"),
        ])
        history.grade_at(date(2024, 1, 1), "SWA")      # -> 3K (SWA)
        history.effective_grade(date(2024, 7, 1))      # -> 2D (CWA), rates 2100 > 2000
    """

    def __init__(self, grades: Iterable[Optional[Grade]] = ()):
        # Stable sort keeps insertion order for records on the same date
        self._grades: list[Grade] = sorted(
            (g for g in grades if g is not None), key=_sort_key
        )

    @classmethod
    def from_records(
        cls,
        records: Iterable[tuple[str, str, Optional[date]]],
    ) -> "GradeHistory":
        """Build from raw (grade text, organization, recorded date) tuples."""
        return cls(parse_grade(text, org, recorded) for text, org, recorded in records)

    def __len__(self) -> int:
        return len(self._grades)

    def __iter__(self):
        return iter(self._grades)

    def __bool__(self) -> bool:
        return bool(self._grades)

    def earliest(self) -> Optional[Grade]:
        """First known grade, or None if there are no records."""
        return self._grades[0] if self._grades else None

    def latest(self) -> Optional[Grade]:
        """Most recent grade regardless of date."""
        return self._grades[-1] if self._grades else None

    def grade_at(
        self,
        as_of: Optional[date],
        organization: Optional[str] = None,
    ) -> Optional[Grade]:
        """
        Most recent grade recorded on or before as_of.

        Args:
            as_of: Cutoff date. None means no cutoff.
            organization: Restrict to grades from this organization

        Returns:
            The grade, or None if nothing qualifies
        """
        org = organization.upper() if organization else None
        found = None
        for grade in self._grades:
            if as_of is not None and grade.recorded is not None and grade.recorded > as_of:
                break
            if org is None or grade.organization == org:
                found = grade
        return found

    def effective_grade(
        self,
        as_of: Optional[date],
        home_organization: str = HOME_ORGANIZATION,
        international: bool = False,
    ) -> Optional[Grade]:
        """
        The grade that counts for rating purposes on as_of.

        The home association's grade is used unless some other organization's
        current grade converts to a strictly higher rating.
        """
        home = home_organization.upper()
        current: dict[str, Grade] = {}
        for grade in self._grades:
            if as_of is not None and grade.recorded is not None and grade.recorded > as_of:
                break
            current[grade.organization] = grade

        if not current:
            return None

        best = current.get(home)
        best_rating = (
            rating_from_grade(best, international=international, home_organization=home)
            if best is not None
            else None
        )
        for org, grade in current.items():
            if org == home:
                continue
            rating = rating_from_grade(grade, international=international, home_organization=home)
            if best_rating is None or rating > best_rating:
                best, best_rating = grade, rating

        return best
