from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from app.application import api as app_api
from app.domain.models import AssessmentContext, RatingLevel
from app.domain.services import AspectFamily
from app.domain.taxonomy import PILLARS
from app.infrastructure.config import get_settings
from app.infrastructure.exceptions import (
    DatabaseError,
    MultipleValidationError,
    RobustnessRatingError,
    SaveInProgressError,
    TaxonomyError,
)
from app.infrastructure.gateway import RatingsGateway
from app.infrastructure.logging import get_logger
from app.web.dependencies import get_gateway, get_save_guard
from app.web.schemas import (
    AspectDefinitionView,
    AspectFamilyResponse,
    AspectView,
    DashboardResponse,
    ErrorResponse,
    FindingsUpdate,
    PillarDefinitionView,
    PillarView,
    PracticeDefinitionView,
    PracticeRatingsBatch,
    PracticeView,
    RatingLevelInfo,
    SaveResponse,
    TaxonomyResponse,
)

router = APIRouter(
    prefix="/api",
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
logger = get_logger(__name__)


def _status_for(error: RobustnessRatingError, *, reading: bool = False) -> int:
    if isinstance(error, SaveInProgressError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, DatabaseError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if reading and isinstance(error, TaxonomyError):
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_400_BAD_REQUEST


def error_response(error: RobustnessRatingError, *, reading: bool = False) -> JSONResponse:
    errors = [error.user_message]
    if isinstance(error, MultipleValidationError):
        errors = [e.user_message for e in error.validation_errors]
    status_code = _status_for(error, reading=reading)
    logger.info(f"Request rejected with {status_code}: {error.message}")
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": error.user_message, "errors": errors},
    )


def _outcome_response(outcome: app_api.SaveOutcome) -> SaveResponse | JSONResponse:
    if not outcome.success:
        if outcome.error is None:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"status": "error", "message": outcome.message, "errors": outcome.errors},
            )
        return error_response(outcome.error)
    return SaveResponse(
        message=outcome.message,
        rows_written=outcome.rows_written,
        rating=_value(outcome.rating),
        overall=_value(outcome.overall),
    )


def _value(rating: RatingLevel | None) -> str | None:
    return rating.value if rating is not None else None


def family_response(family: AspectFamily, context: AssessmentContext) -> AspectFamilyResponse:
    thresholds = get_settings().app.thresholds
    breakdown = family.breakdown()
    return AspectFamilyResponse(
        project_name=context.project_name,
        assessment_date=context.assessment_date,
        pillar_title=family.pillar_title,
        practice_name=family.practice_name,
        slug=family.slug,
        aspect_prefix=family.prefix,
        overall=_value(family.overall(**thresholds)),
        score=breakdown.score,
        max_score=breakdown.max_score,
        percentage=round(breakdown.percentage, 1),
        rated=breakdown.rated,
        total=breakdown.total,
        practice_findings=family.practice_findings,
        aspects=[
            AspectView(
                name=aspect.name,
                description=aspect.description,
                rating=_value(aspect.rating),
                findings=aspect.findings,
                stored_name=family.aspect_row(context, aspect.name).practice_name,
            )
            for aspect in family.aspects
        ],
    )


def _load_family(
    gateway: RatingsGateway, project: str | None, assessment_date: str | None, slug: str
) -> tuple[AspectFamily, AssessmentContext]:
    context = app_api.validate_context(project, assessment_date)
    family = app_api.load_aspect_family(
        gateway, context.project_name, context.assessment_date, slug
    )
    return family, context


@router.get("/health")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/rating-levels", response_model=list[RatingLevelInfo])
async def list_rating_levels() -> list[RatingLevelInfo]:
    return [
        RatingLevelInfo(name=level.name, value=level.value, score=level.score)
        for level in RatingLevel
    ]


@router.get("/taxonomy", response_model=TaxonomyResponse)
async def get_taxonomy() -> TaxonomyResponse:
    return TaxonomyResponse(
        pillars=[
            PillarDefinitionView(
                title=pillar.title,
                description=pillar.description,
                color=pillar.color,
                practices=[
                    PracticeDefinitionView(
                        name=practice.name,
                        has_aspects=practice.has_aspects,
                        slug=practice.slug,
                        aspect_prefix=practice.prefix,
                        aspects=[
                            AspectDefinitionView(name=a.name, description=a.description)
                            for a in practice.aspects
                        ],
                    )
                    for practice in pillar.practices
                ],
            )
            for pillar in PILLARS
        ]
    )


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    gateway: RatingsGateway = Depends(get_gateway),
):
    try:
        view = app_api.load_dashboard(gateway, project, assessment_date)
    except RobustnessRatingError as exc:
        return error_response(exc, reading=True)

    summaries = {summary.title: summary for summary in view.summaries}
    return DashboardResponse(
        project_name=view.context.project_name,
        assessment_date=view.context.assessment_date,
        pillars=[
            PillarView(
                title=pillar.title,
                description=pillar.description,
                color=pillar.color,
                rated=summaries[pillar.title].rated,
                total=summaries[pillar.title].total,
                percentage=round(summaries[pillar.title].percentage, 1),
                overall=_value(summaries[pillar.title].overall),
                practices=[
                    PracticeView(
                        name=practice.name,
                        rating=_value(practice.rating),
                        findings=practice.findings,
                        has_aspects=practice.has_aspects,
                        slug=practice.slug,
                    )
                    for practice in pillar.key_practices
                ],
            )
            for pillar in view.pillars
        ],
    )


@router.post("/dashboard/ratings", response_model=SaveResponse)
def save_dashboard_ratings(
    payload: PracticeRatingsBatch,
    gateway: RatingsGateway = Depends(get_gateway),
    guard: app_api.SaveGuard = Depends(get_save_guard),
):
    context = AssessmentContext(payload.project_name or "", payload.assessment_date or "")
    outcome = app_api.save_practice_ratings(
        gateway,
        context,
        [item.model_dump() for item in payload.ratings],
        guard=guard,
    )
    return _outcome_response(outcome)


@router.post("/pillars/{pillar}/practices/{practice}/cycle", response_model=SaveResponse)
def cycle_practice(
    pillar: str,
    practice: str,
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    gateway: RatingsGateway = Depends(get_gateway),
    guard: app_api.SaveGuard = Depends(get_save_guard),
):
    try:
        with app_api.editing_practice(
            gateway, project, assessment_date, pillar, practice, guard
        ) as (pillar_state, context):
            outcome = app_api.cycle_practice_rating(gateway, pillar_state, context, practice)
    except RobustnessRatingError as exc:
        return error_response(exc)
    return _outcome_response(outcome)


@router.put("/pillars/{pillar}/practices/{practice}/findings", response_model=SaveResponse)
def update_practice_findings(
    pillar: str,
    practice: str,
    payload: FindingsUpdate,
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    gateway: RatingsGateway = Depends(get_gateway),
    guard: app_api.SaveGuard = Depends(get_save_guard),
):
    try:
        with app_api.editing_practice(
            gateway, project, assessment_date, pillar, practice, guard
        ) as (pillar_state, context):
            outcome = app_api.update_practice_findings(
                gateway, pillar_state, context, practice, payload.findings
            )
    except RobustnessRatingError as exc:
        return error_response(exc)
    return _outcome_response(outcome)


@router.get("/practices/{slug}/aspects", response_model=AspectFamilyResponse)
def get_practice_aspects(
    slug: str,
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    gateway: RatingsGateway = Depends(get_gateway),
):
    try:
        family, context = _load_family(gateway, project, assessment_date, slug)
    except RobustnessRatingError as exc:
        return error_response(exc, reading=True)
    return family_response(family, context)


@router.post("/practices/{slug}/aspects/{aspect}/cycle", response_model=SaveResponse)
def cycle_aspect(
    slug: str,
    aspect: str,
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    gateway: RatingsGateway = Depends(get_gateway),
    guard: app_api.SaveGuard = Depends(get_save_guard),
):
    try:
        with app_api.editing_family(gateway, project, assessment_date, slug, guard) as (
            family,
            context,
        ):
            outcome = app_api.cycle_aspect_rating(gateway, family, context, aspect)
    except RobustnessRatingError as exc:
        return error_response(exc, reading=True)
    return _outcome_response(outcome)


@router.put("/practices/{slug}/aspects/{aspect}/findings", response_model=SaveResponse)
def update_aspect_findings(
    slug: str,
    aspect: str,
    payload: FindingsUpdate,
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    gateway: RatingsGateway = Depends(get_gateway),
    guard: app_api.SaveGuard = Depends(get_save_guard),
):
    try:
        with app_api.editing_family(gateway, project, assessment_date, slug, guard) as (
            family,
            context,
        ):
            outcome = app_api.update_aspect_findings(
                gateway, family, context, aspect, payload.findings
            )
    except RobustnessRatingError as exc:
        return error_response(exc, reading=True)
    return _outcome_response(outcome)


@router.post("/practices/{slug}/save", response_model=SaveResponse)
def save_practice_aspects(
    slug: str,
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    gateway: RatingsGateway = Depends(get_gateway),
    guard: app_api.SaveGuard = Depends(get_save_guard),
):
    try:
        with app_api.editing_family(gateway, project, assessment_date, slug, guard) as (
            family,
            context,
        ):
            outcome = app_api.save_aspect_family(gateway, family, context)
    except RobustnessRatingError as exc:
        return error_response(exc, reading=True)
    return _outcome_response(outcome)
