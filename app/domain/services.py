from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace

from ..infrastructure.exceptions import UnknownAspectError
from ..infrastructure.logging import get_logger
from .keys import aspect_practice_name, strip_prefix
from .models import (
    MAX_RATING_SCORE,
    RATING_SCORES,
    Aspect,
    AssessmentContext,
    PersistedRating,
    Pillar,
    Practice,
    RatingLevel,
)
from .taxonomy import PracticeDefinition, build_aspects

logger = get_logger(__name__)

RATING_CYCLE: tuple[RatingLevel, ...] = (
    RatingLevel.LARGELY_IN_PLACE,
    RatingLevel.SOMEWHAT_IN_PLACE,
    RatingLevel.NOT_IN_PLACE,
)

DEFAULT_LARGELY_THRESHOLD = 70.0
DEFAULT_SOMEWHAT_THRESHOLD = 30.0


def next_rating(current: RatingLevel | None) -> RatingLevel:
    """Advance one step through the click cycle; unrated starts at Largely in Place."""
    index = -1 if current is None else RATING_CYCLE.index(current)
    return RATING_CYCLE[(index + 1) % len(RATING_CYCLE)]


def rating_score(rating: RatingLevel | None) -> int:
    if rating is None:
        return 0
    return RATING_SCORES[rating]


def _rating_of(item: Aspect | Practice | RatingLevel | str | None) -> RatingLevel | None:
    if isinstance(item, (Aspect, Practice)):
        return RatingLevel.parse(item.rating)
    return RatingLevel.parse(item)


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    score: int
    max_score: int
    percentage: float
    rated: int
    total: int

    @property
    def is_rated(self) -> bool:
        return self.rated > 0


def score_breakdown(items: Iterable[Aspect | Practice | RatingLevel | str | None]) -> ScoreBreakdown:
    """
    Summarise a set of ratings.

    Unrated entries count towards ``total`` and ``max_score`` with a score of 0.
    """
    ratings = [_rating_of(item) for item in items]
    total = len(ratings)
    score = sum(rating_score(r) for r in ratings)
    max_score = total * MAX_RATING_SCORE
    percentage = (score / max_score * 100) if max_score else 0.0
    rated = sum(1 for r in ratings if r is not None)
    return ScoreBreakdown(score, max_score, percentage, rated, total)


def _check_thresholds(largely_threshold: float, somewhat_threshold: float) -> None:
    if not 0 <= somewhat_threshold < largely_threshold <= 100:
        raise ValueError(
            "Thresholds must satisfy 0 <= somewhat < largely <= 100, "
            f"got somewhat={somewhat_threshold}, largely={largely_threshold}"
        )


def level_for_percentage(
    percentage: float,
    *,
    largely_threshold: float = DEFAULT_LARGELY_THRESHOLD,
    somewhat_threshold: float = DEFAULT_SOMEWHAT_THRESHOLD,
) -> RatingLevel:
    _check_thresholds(largely_threshold, somewhat_threshold)
    if percentage >= largely_threshold:
        return RatingLevel.LARGELY_IN_PLACE
    if percentage >= somewhat_threshold:
        return RatingLevel.SOMEWHAT_IN_PLACE
    return RatingLevel.NOT_IN_PLACE


def overall_rating(
    items: Iterable[Aspect | Practice | RatingLevel | str | None],
    *,
    largely_threshold: float = DEFAULT_LARGELY_THRESHOLD,
    somewhat_threshold: float = DEFAULT_SOMEWHAT_THRESHOLD,
) -> RatingLevel | None:
    """
    Derive a practice-level rating from its aspects.

    The score percentage is ``sum(scores) / (count * 2) * 100`` with unrated
    aspects scoring 0. Returns None when nothing has been rated yet, including
    for an empty input.

    Example:
        >>> overall_rating([RatingLevel.LARGELY_IN_PLACE] * 5 + [RatingLevel.NOT_IN_PLACE] * 2)
        <RatingLevel.LARGELY_IN_PLACE: 'Largely in Place'>
    """
    breakdown = score_breakdown(items)
    if not breakdown.is_rated:
        return None
    return level_for_percentage(
        breakdown.percentage,
        largely_threshold=largely_threshold,
        somewhat_threshold=somewhat_threshold,
    )


class AspectFamily:
    """
    In-memory state for one expandable practice and its aspects.

    Mutating helpers come in two steps: ``with_next_rating`` / ``with_findings``
    return an updated copy of the aspect, and ``apply`` commits it once the
    store has accepted the write.
    """

    def __init__(self, pillar_title: str, definition: PracticeDefinition):
        if not definition.has_aspects:
            raise ValueError(f"Practice {definition.name!r} has no aspects")
        self.pillar_title = pillar_title
        self.definition = definition
        self.aspects: list[Aspect] = build_aspects(definition)
        self.practice_findings: str | None = None

    @property
    def practice_name(self) -> str:
        return self.definition.name

    @property
    def prefix(self) -> str:
        return self.definition.prefix or self.definition.name

    @property
    def slug(self) -> str:
        return self.definition.slug or ""

    def reset(self) -> None:
        self.aspects = build_aspects(self.definition)
        self.practice_findings = None

    def hydrate(self, rows: Iterable[PersistedRating]) -> int:
        """
        Replace in-memory state with stored rows.

        Aspect rows are matched on their composite practice name. The rollup row
        only contributes its findings because the overall rating is recomputed.
        Returns the number of aspect rows applied.
        """
        self.reset()
        applied = 0
        for row in rows:
            if row.practice_name == self.practice_name:
                self.practice_findings = row.findings
                continue
            aspect_name = strip_prefix(row.practice_name, self.prefix)
            if aspect_name is None:
                continue
            index = self._index(aspect_name)
            if index is None:
                logger.debug("Ignoring unknown aspect row %r", row.practice_name)
                continue
            rating = RatingLevel.parse(row.rating)
            if rating is None and row.rating is not None:
                logger.warning(
                    "Unrecognised rating %r for %s; treating as unrated", row.rating, row.practice_name
                )
            current = self.aspects[index]
            self.aspects[index] = replace(current, rating=rating, findings=row.findings or "")
            applied += 1
        return applied

    def _index(self, name: str) -> int | None:
        for index, aspect in enumerate(self.aspects):
            if aspect.name == name:
                return index
        return None

    def aspect(self, name: str) -> Aspect:
        index = self._index(name)
        if index is None:
            raise UnknownAspectError(name, self.practice_name)
        return self.aspects[index]

    def with_next_rating(self, name: str) -> Aspect:
        current = self.aspect(name)
        return replace(current, rating=next_rating(current.rating))

    def with_findings(self, name: str, findings: str | None) -> Aspect:
        return replace(self.aspect(name), findings=findings or "")

    def apply(self, aspect: Aspect) -> None:
        index = self._index(aspect.name)
        if index is None:
            raise UnknownAspectError(aspect.name, self.practice_name)
        self.aspects[index] = aspect

    def _with(self, replacing: Aspect | None) -> list[Aspect]:
        if replacing is None:
            return list(self.aspects)
        return [replacing if a.name == replacing.name else a for a in self.aspects]

    def breakdown(self, replacing: Aspect | None = None) -> ScoreBreakdown:
        return score_breakdown(self._with(replacing))

    def overall(
        self,
        replacing: Aspect | None = None,
        *,
        largely_threshold: float = DEFAULT_LARGELY_THRESHOLD,
        somewhat_threshold: float = DEFAULT_SOMEWHAT_THRESHOLD,
    ) -> RatingLevel | None:
        return overall_rating(
            self._with(replacing),
            largely_threshold=largely_threshold,
            somewhat_threshold=somewhat_threshold,
        )

    def aspect_row(
        self, context: AssessmentContext, name: str, aspect: Aspect | None = None
    ) -> PersistedRating:
        aspect = aspect or self.aspect(name)
        return PersistedRating(
            project_name=context.project_name,
            assessment_date=context.assessment_date,
            pillar_title=self.pillar_title,
            practice_name=aspect_practice_name(self.prefix, aspect.name),
            rating=aspect.rating,
            findings=aspect.findings,
        )

    def rollup_row(
        self, context: AssessmentContext, replacing: Aspect | None = None, **thresholds: float
    ) -> PersistedRating:
        return PersistedRating(
            project_name=context.project_name,
            assessment_date=context.assessment_date,
            pillar_title=self.pillar_title,
            practice_name=self.practice_name,
            rating=self.overall(replacing, **thresholds),
            findings=self.practice_findings,
        )

    def rows(
        self, context: AssessmentContext, replacing: Aspect | None = None, **thresholds: float
    ) -> list[PersistedRating]:
        """Every aspect row followed by the rollup row."""
        aspects = self._with(replacing)
        rows = [self.aspect_row(context, a.name, a) for a in aspects]
        rows.append(self.rollup_row(context, replacing, **thresholds))
        return rows


@dataclass(slots=True)
class PillarSummary:
    title: str
    color: str
    rated: int
    total: int
    percentage: float
    overall: RatingLevel | None


def summarise_pillar(
    pillar: Pillar,
    *,
    largely_threshold: float = DEFAULT_LARGELY_THRESHOLD,
    somewhat_threshold: float = DEFAULT_SOMEWHAT_THRESHOLD,
) -> PillarSummary:
    breakdown = score_breakdown(pillar.key_practices)
    overall = overall_rating(
        pillar.key_practices,
        largely_threshold=largely_threshold,
        somewhat_threshold=somewhat_threshold,
    )
    return PillarSummary(
        title=pillar.title,
        color=pillar.color,
        rated=breakdown.rated,
        total=breakdown.total,
        percentage=breakdown.percentage,
        overall=overall,
    )
