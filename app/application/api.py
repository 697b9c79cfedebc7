"""
Application API layer with error handling and validation.

This module provides the high-level operations behind the dashboard and the
practice detail pages: loading stored ratings into fresh taxonomy state,
cycling ratings with an immediate save, editing findings and batch saves.
Writes never raise; they report a ``SaveOutcome`` instead. Request handlers
wrap load and write in ``editing_family`` or ``editing_practice`` so the save
guard covers the whole read-modify-write.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass, field, replace
from typing import Any

from ..domain.keys import split_practice_name
from ..domain.models import (
    AssessmentContext,
    PersistedRating,
    Pillar,
    RatingFilters,
    RatingLevel,
)
from ..domain.schemas import (
    AssessmentContextInput,
    FindingsInput,
    PracticeRatingsBatchInput,
    ValidationResponse,
    validate_input,
)
from ..domain.services import (
    AspectFamily,
    PillarSummary,
    next_rating,
    summarise_pillar,
)
from ..domain.taxonomy import (
    PillarDefinition,
    PracticeDefinition,
    build_pillars,
    find_practice_by_slug,
    get_pillar,
)
from ..infrastructure.config import get_settings
from ..infrastructure.exceptions import (
    MultipleValidationError,
    RobustnessRatingError,
    SaveInProgressError,
    UnknownPillarError,
    UnknownPracticeError,
    ValidationError,
    handle_database_error,
    log_error_details,
)
from ..infrastructure.gateway import RatingsGateway
from ..infrastructure.logging import LogContext, get_logger, log_operation

logger = get_logger(__name__)

Scope = tuple[str, str, str, str]


@dataclass(slots=True)
class SaveOutcome:
    """Result of a write, shown to the user as a notification."""

    success: bool
    message: str
    rows_written: int = 0
    rating: RatingLevel | None = None
    overall: RatingLevel | None = None
    errors: list[str] = field(default_factory=list)
    error: RobustnessRatingError | None = None

    @classmethod
    def failed(cls, error: RobustnessRatingError) -> SaveOutcome:
        errors = [error.user_message]
        if isinstance(error, MultipleValidationError):
            errors = [e.user_message for e in error.validation_errors]
        return cls(success=False, message=error.user_message, errors=errors, error=error)


class SaveGuard:
    """
    Allows one save in flight per ``(project, date, pillar, practice)`` scope.

    Thread-safe; FastAPI runs sync endpoints on a worker pool.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._active: set[Scope] = set()

    def is_busy(self, scope: Scope) -> bool:
        with self._lock:
            return scope in self._active

    @contextmanager
    def hold(self, *scopes: Scope) -> Iterator[None]:
        with self._lock:
            for scope in scopes:
                if scope in self._active:
                    raise SaveInProgressError(scope)
            self._active.update(scopes)
        try:
            yield
        finally:
            with self._lock:
                self._active.difference_update(scopes)


@dataclass(slots=True)
class DashboardView:
    context: AssessmentContext
    pillars: list[Pillar]
    summaries: list[PillarSummary]

    def pillar(self, title: str) -> Pillar:
        for pillar in self.pillars:
            if pillar.title == title:
                return pillar
        raise UnknownPillarError(title)


def _thresholds() -> dict[str, float]:
    return get_settings().app.thresholds


def _validation_failure(result: ValidationResponse) -> RobustnessRatingError:
    errors = [ValidationError(e.field, e.message, e.value) for e in result.errors]
    if len(errors) == 1:
        return errors[0]
    return MultipleValidationError(errors)


def validate_context(project_name: str | None, assessment_date: str | None) -> AssessmentContext:
    """
    Validate and normalise the project/date pair.

    Raises:
        ValidationError: If one field is missing or malformed
        MultipleValidationError: If both are
    """
    result = validate_input(
        AssessmentContextInput,
        {"project_name": project_name, "assessment_date": assessment_date},
    )
    if not result.success or result.data is None:
        error = _validation_failure(result)
        logger.warning(f"Assessment context rejected: {error.message}")
        raise error
    return AssessmentContext(result.data["project_name"], result.data["assessment_date"])


def resolve_pillar(pillar_title: str) -> PillarDefinition:
    pillar = get_pillar(pillar_title)
    if pillar is None:
        raise UnknownPillarError(pillar_title)
    return pillar


def resolve_practice(pillar_title: str, practice_name: str) -> PracticeDefinition:
    practice = resolve_pillar(pillar_title).practice(practice_name)
    if practice is None:
        raise UnknownPracticeError(practice_name, pillar_title)
    return practice


def resolve_family(slug: str) -> AspectFamily:
    """
    Fresh aspect family state for a practice slug.

    Raises:
        UnknownPracticeError: If no expandable practice has that slug
    """
    found = find_practice_by_slug(slug)
    if found is None:
        raise UnknownPracticeError(slug)
    pillar, practice = found
    return AspectFamily(pillar.title, practice)


def _context_or_error(context: AssessmentContext) -> AssessmentContext:
    return validate_context(context.project_name, context.assessment_date)


def _write(
    gateway: RatingsGateway,
    rows: list[PersistedRating],
    scopes: Iterable[Scope],
    guard: SaveGuard | None,
    describe: str,
) -> tuple[int | None, RobustnessRatingError | None]:
    """Run one atomic upsert under the guard, converting every failure to an error."""
    scopes = tuple(scopes)
    try:
        if guard is None:
            return gateway.upsert_ratings(rows), None
        with guard.hold(*scopes):
            return gateway.upsert_ratings(rows), None
    except SaveInProgressError as e:
        logger.warning(f"Rejected concurrent save of {describe}")
        return None, e
    except Exception as e:
        error = e if isinstance(e, RobustnessRatingError) else handle_database_error(e, "save ratings")
        error_details = log_error_details(error, {"target": describe, "rows": len(rows)})
        logger.error(f"Failed to save {describe}", extra=error_details)
        return None, error


def _with_outcome(operation: str, build: Callable[[], SaveOutcome]) -> SaveOutcome:
    with LogContext(operation=operation):
        logger.info(f"Starting {operation}")
        # Validation and taxonomy errors happen before any store call
        try:
            outcome = build()
        except RobustnessRatingError as e:
            outcome = SaveOutcome.failed(e)
        if outcome.success:
            logger.info(f"Completed {operation}: {outcome.message}")
        else:
            logger.warning(f"Failed {operation}: {outcome.message}")
        return outcome


@log_operation("load_dashboard")
def load_dashboard(
    gateway: RatingsGateway, project_name: str | None, assessment_date: str | None
) -> DashboardView:
    """
    Load every pillar with stored practice ratings and findings.

    Expandable practices show the overall rating recomputed from their aspect
    rows when any are rated, and the stored rollup rating otherwise.

    Raises:
        ValidationError: If the context is invalid (no store call is made)
        DatabaseError: If the store cannot be read
    """
    context = validate_context(project_name, assessment_date)
    thresholds = _thresholds()

    with LogContext(project_name=context.project_name, assessment_date=context.assessment_date):
        rows = gateway.fetch_ratings(RatingFilters(context.project_name, context.assessment_date))

        rows_by_pillar: dict[str, list[PersistedRating]] = {}
        for row in rows:
            rows_by_pillar.setdefault(row.pillar_title, []).append(row)

        pillars = build_pillars()
        for pillar in pillars:
            pillar_rows = rows_by_pillar.get(pillar.title, [])
            rollups = {
                row.practice_name: row
                for row in pillar_rows
                if split_practice_name(row.practice_name)[1] is None
            }
            definition = resolve_pillar(pillar.title)
            for practice in pillar.key_practices:
                stored = rollups.get(practice.name)
                if stored is not None:
                    practice.rating = stored.rating
                    practice.findings = stored.findings
                practice_def = definition.practice(practice.name)
                if practice_def is not None and practice_def.has_aspects:
                    family = AspectFamily(pillar.title, practice_def)
                    if family.hydrate(pillar_rows) and family.breakdown().is_rated:
                        practice.rating = family.overall(**thresholds)

        summaries = [summarise_pillar(pillar, **thresholds) for pillar in pillars]
        logger.info(f"Loaded {len(rows)} stored ratings for dashboard")
        return DashboardView(context=context, pillars=pillars, summaries=summaries)


@log_operation("load_aspect_family")
def load_aspect_family(
    gateway: RatingsGateway, project_name: str | None, assessment_date: str | None, slug: str
) -> AspectFamily:
    """
    Fresh aspect family for ``slug`` hydrated from the store.

    Raises:
        ValidationError: If the context is invalid
        UnknownPracticeError: If the slug names no expandable practice
        DatabaseError: If the store cannot be read
    """
    context = validate_context(project_name, assessment_date)
    family = resolve_family(slug)
    rows = gateway.fetch_ratings(
        RatingFilters(
            project_name=context.project_name,
            assessment_date=context.assessment_date,
            pillar_title=family.pillar_title,
            practice_prefix=family.prefix,
            practice_name=family.practice_name,
        )
    )
    applied = family.hydrate(rows)
    logger.info(f"Hydrated {applied} aspects for {family.practice_name}")
    return family


def cycle_aspect_rating(
    gateway: RatingsGateway,
    family: AspectFamily,
    context: AssessmentContext,
    aspect_name: str,
    guard: SaveGuard | None = None,
) -> SaveOutcome:
    """
    Advance one aspect's rating and persist it immediately.

    The aspect row and the recomputed rollup row are written in one batch. The
    in-memory family only changes once the store accepts the write.

    Example:
        >>> outcome = cycle_aspect_rating(gateway, family, context, "Training Programs")
        >>> outcome.rating
        <RatingLevel.LARGELY_IN_PLACE: 'Largely in Place'>
    """

    def build() -> SaveOutcome:
        ctx = _context_or_error(context)
        updated = family.with_next_rating(aspect_name)
        thresholds = _thresholds()
        rows = [
            family.aspect_row(ctx, aspect_name, updated),
            family.rollup_row(ctx, updated, **thresholds),
        ]
        written, error = _write(
            gateway, rows, [_scope(ctx, family)], guard, f"{family.practice_name}/{aspect_name}"
        )
        if error is not None:
            return SaveOutcome.failed(error)

        family.apply(updated)
        overall = family.overall(**thresholds)
        rating = updated.rating.value if updated.rating else "unrated"
        return SaveOutcome(
            success=True,
            message=f"{aspect_name} set to {rating}",
            rows_written=written or 0,
            rating=updated.rating,
            overall=overall,
        )

    return _with_outcome("cycle_aspect_rating", build)


def update_aspect_findings(
    gateway: RatingsGateway,
    family: AspectFamily,
    context: AssessmentContext,
    aspect_name: str,
    findings: str | None,
    guard: SaveGuard | None = None,
) -> SaveOutcome:
    def build() -> SaveOutcome:
        ctx = _context_or_error(context)
        text = _validated_findings(findings)
        updated = family.with_findings(aspect_name, text)
        rows = [family.aspect_row(ctx, aspect_name, updated)]
        written, error = _write(
            gateway, rows, [_scope(ctx, family)], guard, f"{family.practice_name}/{aspect_name}"
        )
        if error is not None:
            return SaveOutcome.failed(error)

        family.apply(updated)
        return SaveOutcome(
            success=True,
            message=f"Findings saved for {aspect_name}",
            rows_written=written or 0,
            rating=updated.rating,
        )

    return _with_outcome("update_aspect_findings", build)


def save_aspect_family(
    gateway: RatingsGateway,
    family: AspectFamily,
    context: AssessmentContext,
    guard: SaveGuard | None = None,
) -> SaveOutcome:
    """Write every aspect row plus the authoritative rollup row in one batch."""

    def build() -> SaveOutcome:
        ctx = _context_or_error(context)
        thresholds = _thresholds()
        rows = family.rows(ctx, **thresholds)
        written, error = _write(gateway, rows, [_scope(ctx, family)], guard, family.practice_name)
        if error is not None:
            return SaveOutcome.failed(error)

        overall = family.overall(**thresholds)
        return SaveOutcome(
            success=True,
            message=f"Saved {family.practice_name} ({len(family.aspects)} aspects)",
            rows_written=written or 0,
            rating=overall,
            overall=overall,
        )

    return _with_outcome("save_aspect_family", build)


def _scope(context: AssessmentContext, family: AspectFamily) -> Scope:
    return (context.project_name, context.assessment_date, family.pillar_title, family.practice_name)


def _holding(guard: SaveGuard | None, scope: Scope):
    return guard.hold(scope) if guard is not None else nullcontext()


@contextmanager
def editing_family(
    gateway: RatingsGateway,
    project_name: str | None,
    assessment_date: str | None,
    slug: str,
    guard: SaveGuard | None = None,
) -> Iterator[tuple[AspectFamily, AssessmentContext]]:
    """
    Load an aspect family with its save scope held until the block exits.

    The read, the change and the write all happen under the guard, so two
    overlapping clicks cannot both act on the same stored state. Writes made
    inside the block must not pass ``guard`` again.

    Example:
        >>> with editing_family(gateway, "Acme", "2024-01-01", slug, guard) as (family, ctx):
        ...     outcome = cycle_aspect_rating(gateway, family, ctx, "Training Programs")

    Raises:
        ValidationError: If the context is invalid
        UnknownPracticeError: If the slug names no expandable practice
        SaveInProgressError: If another request holds the scope
        DatabaseError: If the store cannot be read
    """
    context = validate_context(project_name, assessment_date)
    scope = _scope(context, resolve_family(slug))
    with _holding(guard, scope):
        family = load_aspect_family(gateway, context.project_name, context.assessment_date, slug)
        yield family, context


@contextmanager
def editing_practice(
    gateway: RatingsGateway,
    project_name: str | None,
    assessment_date: str | None,
    pillar_title: str,
    practice_name: str,
    guard: SaveGuard | None = None,
) -> Iterator[tuple[Pillar, AssessmentContext]]:
    """Load a pillar for a practice-level change with the practice scope held."""
    context = validate_context(project_name, assessment_date)
    resolve_practice(pillar_title, practice_name)
    scope = (context.project_name, context.assessment_date, pillar_title, practice_name)
    with _holding(guard, scope):
        view = load_dashboard(gateway, context.project_name, context.assessment_date)
        yield view.pillar(pillar_title), view.context


def _validated_findings(findings: str | None) -> str | None:
    result = validate_input(FindingsInput, {"findings": findings})
    if not result.success or result.data is None:
        raise _validation_failure(result)
    return result.data["findings"]


def _leaf_practice(pillar: Pillar, practice_name: str):
    definition = resolve_practice(pillar.title, practice_name)
    practice = pillar.practice(practice_name)
    if practice is None:
        raise UnknownPracticeError(practice_name, pillar.title)
    return definition, practice


def cycle_practice_rating(
    gateway: RatingsGateway,
    pillar: Pillar,
    context: AssessmentContext,
    practice_name: str,
    guard: SaveGuard | None = None,
) -> SaveOutcome:
    """Advance a directly rated practice and persist it immediately."""

    def build() -> SaveOutcome:
        ctx = _context_or_error(context)
        definition, practice = _leaf_practice(pillar, practice_name)
        if definition.has_aspects:
            raise ValidationError(
                "practice_name", f"{practice_name} is rated through its aspects", practice_name
            )
        updated = replace(practice, rating=next_rating(practice.rating))
        row = _practice_row(ctx, pillar.title, updated.name, updated.rating, updated.findings)
        written, error = _write(
            gateway,
            [row],
            [(ctx.project_name, ctx.assessment_date, pillar.title, practice_name)],
            guard,
            practice_name,
        )
        if error is not None:
            return SaveOutcome.failed(error)

        practice.rating = updated.rating
        return SaveOutcome(
            success=True,
            message=f"{practice_name} set to {updated.rating.value}",
            rows_written=written or 0,
            rating=updated.rating,
        )

    return _with_outcome("cycle_practice_rating", build)


def update_practice_findings(
    gateway: RatingsGateway,
    pillar: Pillar,
    context: AssessmentContext,
    practice_name: str,
    findings: str | None,
    guard: SaveGuard | None = None,
) -> SaveOutcome:
    """Persist practice-level findings, keeping the current rating."""

    def build() -> SaveOutcome:
        ctx = _context_or_error(context)
        _definition, practice = _leaf_practice(pillar, practice_name)
        text = _validated_findings(findings)
        row = _practice_row(ctx, pillar.title, practice.name, practice.rating, text)
        written, error = _write(
            gateway,
            [row],
            [(ctx.project_name, ctx.assessment_date, pillar.title, practice_name)],
            guard,
            practice_name,
        )
        if error is not None:
            return SaveOutcome.failed(error)

        practice.findings = text
        return SaveOutcome(
            success=True,
            message=f"Findings saved for {practice_name}",
            rows_written=written or 0,
            rating=practice.rating,
        )

    return _with_outcome("update_practice_findings", build)


def _practice_row(
    context: AssessmentContext,
    pillar_title: str,
    practice_name: str,
    rating: RatingLevel | None,
    findings: str | None,
) -> PersistedRating:
    return PersistedRating(
        project_name=context.project_name,
        assessment_date=context.assessment_date,
        pillar_title=pillar_title,
        practice_name=practice_name,
        rating=rating,
        findings=findings,
    )


def save_practice_ratings(
    gateway: RatingsGateway,
    context: AssessmentContext,
    ratings: list[dict[str, Any]],
    guard: SaveGuard | None = None,
) -> SaveOutcome:
    """
    Dashboard "save all": persist directly rated practices in one batch.

    Each entry is ``{"pillar_title", "practice_name", "rating", "findings"}``.
    Expandable practices are rejected because their rating is derived.

    Example:
        >>> save_practice_ratings(gateway, context, [
        ...     {"pillar_title": "Strategy", "practice_name": "Scalability",
        ...      "rating": "Somewhat in Place", "findings": "Pilots only"},
        ... ])
    """

    def build() -> SaveOutcome:
        result = validate_input(
            PracticeRatingsBatchInput,
            {
                "project_name": context.project_name,
                "assessment_date": context.assessment_date,
                "ratings": ratings,
            },
        )
        if not result.success or result.data is None:
            raise _validation_failure(result)

        ctx = AssessmentContext(result.data["project_name"], result.data["assessment_date"])
        rows: list[PersistedRating] = []
        problems: list[ValidationError] = []
        for item in result.data["ratings"]:
            definition = resolve_pillar(item["pillar_title"]).practice(item["practice_name"])
            if definition is None:
                problems.append(
                    ValidationError("practice_name", "is not a key practice", item["practice_name"])
                )
                continue
            if definition.has_aspects:
                problems.append(
                    ValidationError(
                        "practice_name",
                        f"{definition.name} is rated through its aspects",
                        item["practice_name"],
                    )
                )
                continue
            rows.append(
                _practice_row(
                    ctx,
                    item["pillar_title"],
                    item["practice_name"],
                    RatingLevel.parse(item["rating"]),
                    item["findings"],
                )
            )
        if problems:
            raise problems[0] if len(problems) == 1 else MultipleValidationError(problems)

        scopes = [(ctx.project_name, ctx.assessment_date, r.pillar_title, r.practice_name) for r in rows]
        written, error = _write(gateway, rows, scopes, guard, f"{len(rows)} practices")
        if error is not None:
            return SaveOutcome.failed(error)

        return SaveOutcome(
            success=True,
            message=f"Saved {written} practice ratings",
            rows_written=written or 0,
        )

    return _with_outcome("save_practice_ratings", build)
