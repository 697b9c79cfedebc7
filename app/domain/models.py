from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RatingLevel(str, Enum):
    """Qualitative maturity level. Member order is the click-cycle order."""

    LARGELY_IN_PLACE = "Largely in Place"
    SOMEWHAT_IN_PLACE = "Somewhat in Place"
    NOT_IN_PLACE = "Not in Place"

    @property
    def score(self) -> int:
        return RATING_SCORES[self]

    @classmethod
    def parse(cls, value: Any) -> RatingLevel | None:
        """
        Coerce an external value to a level.

        Accepts a member, its stored value ("Largely in Place") or a member-style
        name ("LargelyInPlace", "LARGELY_IN_PLACE"). Anything else maps to None.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = _normalise_level_key(value)
        if not key:
            return None
        return _LEVEL_LOOKUP.get(key)


# Explicit scoring; the enum itself carries no numeric ordering.
RATING_SCORES: dict[RatingLevel, int] = {
    RatingLevel.LARGELY_IN_PLACE: 2,
    RatingLevel.SOMEWHAT_IN_PLACE: 1,
    RatingLevel.NOT_IN_PLACE: 0,
}

MAX_RATING_SCORE = max(RATING_SCORES.values())


def _normalise_level_key(value: str) -> str:
    return re.sub(r"[\s_]+", "", value).lower()


_LEVEL_LOOKUP: dict[str, RatingLevel] = {}
for _level in RatingLevel:
    _LEVEL_LOOKUP[_normalise_level_key(_level.value)] = _level
    _LEVEL_LOOKUP[_normalise_level_key(_level.name)] = _level


@dataclass(slots=True)
class Aspect:
    name: str
    description: str
    rating: RatingLevel | None = None
    findings: str | None = ""


@dataclass(slots=True)
class Practice:
    name: str
    rating: RatingLevel | None = None
    findings: str | None = None
    aspect_prefix: str | None = None  # set only for practices that expand into aspects
    slug: str | None = None

    @property
    def has_aspects(self) -> bool:
        return self.aspect_prefix is not None


@dataclass(slots=True)
class Pillar:
    title: str
    description: str
    color: str
    key_practices: list[Practice] = field(default_factory=list)

    def practice(self, name: str) -> Practice | None:
        for practice in self.key_practices:
            if practice.name == name:
                return practice
        return None


@dataclass(slots=True, frozen=True)
class AssessmentContext:
    project_name: str
    assessment_date: str


@dataclass(slots=True)
class PersistedRating:
    project_name: str
    assessment_date: str
    pillar_title: str
    practice_name: str
    rating: RatingLevel | None = None
    findings: str | None = None

    @property
    def natural_key(self) -> tuple[str, str, str, str]:
        return (self.project_name, self.assessment_date, self.pillar_title, self.practice_name)

    def as_record(self) -> dict[str, Any]:
        return {
            "project_name": self.project_name,
            "assessment_date": self.assessment_date,
            "pillar_title": self.pillar_title,
            "practice_name": self.practice_name,
            "rating": self.rating.value if self.rating is not None else None,
            "findings": self.findings,
        }


@dataclass(slots=True, frozen=True)
class RatingFilters:
    project_name: str
    assessment_date: str
    pillar_title: str | None = None
    practice_prefix: str | None = None  # matches "<prefix>:%"
    practice_name: str | None = None
