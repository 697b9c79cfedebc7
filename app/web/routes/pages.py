from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Form, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from app.application import api as app_api
from app.domain.taxonomy import get_pillar
from app.infrastructure.config import get_settings
from app.infrastructure.exceptions import RobustnessRatingError, TaxonomyError
from app.infrastructure.gateway import RatingsGateway
from app.web.dependencies import get_gateway, get_save_guard

router = APIRouter(tags=["pages"])

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


def _base_context(
    request: Request, project: str | None, assessment_date: str | None, message: str | None
) -> dict[str, object]:
    settings = get_settings()
    return {
        "request": request,
        "app_title": settings.app.title,
        "project": project or "",
        "assessment_date": assessment_date or "",
        "message": message,
        "error": None,
        "project_max_length": settings.app.project_name_max_length,
    }


def _back_to(
    request: Request, route: str, project: str | None, assessment_date: str | None, message: str, **params: str
) -> RedirectResponse:
    url = request.url_for(route, **params).include_query_params(
        project=project or "", date=assessment_date or "", message=message
    )
    return RedirectResponse(str(url), status_code=status.HTTP_303_SEE_OTHER)


@router.get("/", response_class=HTMLResponse, name="dashboard_page")
def dashboard_page(
    request: Request,
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    message: str | None = Query(None),
    gateway: RatingsGateway = Depends(get_gateway),
) -> HTMLResponse:
    context = _base_context(request, project, assessment_date, message)
    context["view"] = None
    status_code = status.HTTP_200_OK
    if project or assessment_date:
        try:
            context["view"] = app_api.load_dashboard(gateway, project, assessment_date)
        except RobustnessRatingError as exc:
            context["error"] = exc.user_message
            status_code = status.HTTP_400_BAD_REQUEST
    return templates.TemplateResponse(request, "dashboard.html", context, status_code=status_code)


@router.post("/pillars/{pillar}/practices/{practice}/cycle", name="cycle_practice_action")
def cycle_practice_action(
    request: Request,
    pillar: str,
    practice: str,
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    gateway: RatingsGateway = Depends(get_gateway),
    guard: app_api.SaveGuard = Depends(get_save_guard),
) -> RedirectResponse:
    try:
        with app_api.editing_practice(
            gateway, project, assessment_date, pillar, practice, guard
        ) as (pillar_state, context):
            message = app_api.cycle_practice_rating(gateway, pillar_state, context, practice).message
    except RobustnessRatingError as exc:
        message = exc.user_message
    return _back_to(request, "dashboard_page", project, assessment_date, message)


@router.get("/practices/{slug}", response_class=HTMLResponse, name="practice_page")
def practice_page(
    request: Request,
    slug: str,
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    message: str | None = Query(None),
    gateway: RatingsGateway = Depends(get_gateway),
) -> HTMLResponse:
    context = _base_context(request, project, assessment_date, message)
    context["family"] = None
    status_code = status.HTTP_200_OK
    try:
        family = app_api.load_aspect_family(gateway, project, assessment_date, slug)
    except TaxonomyError as exc:
        context["error"] = exc.user_message
        status_code = status.HTTP_404_NOT_FOUND
    except RobustnessRatingError as exc:
        context["error"] = exc.user_message
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        thresholds = get_settings().app.thresholds
        context["family"] = family
        context["pillar"] = get_pillar(family.pillar_title)
        context["overall"] = family.overall(**thresholds)
        context["breakdown"] = family.breakdown()
    return templates.TemplateResponse(request, "practice.html", context, status_code=status_code)


def _family_action(
    request: Request,
    slug: str,
    project: str | None,
    assessment_date: str | None,
    gateway: RatingsGateway,
    guard: app_api.SaveGuard,
    action,
) -> RedirectResponse:
    try:
        with app_api.editing_family(gateway, project, assessment_date, slug, guard) as (
            family,
            context,
        ):
            message = action(family, context).message
    except RobustnessRatingError as exc:
        message = exc.user_message
    return _back_to(request, "practice_page", project, assessment_date, message, slug=slug)


@router.post("/practices/{slug}/aspects/{aspect}/cycle", name="cycle_aspect_action")
def cycle_aspect_action(
    request: Request,
    slug: str,
    aspect: str,
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    gateway: RatingsGateway = Depends(get_gateway),
    guard: app_api.SaveGuard = Depends(get_save_guard),
) -> RedirectResponse:
    return _family_action(
        request,
        slug,
        project,
        assessment_date,
        gateway,
        guard,
        lambda family, ctx: app_api.cycle_aspect_rating(gateway, family, ctx, aspect),
    )


@router.post("/practices/{slug}/aspects/{aspect}/findings", name="aspect_findings_action")
def aspect_findings_action(
    request: Request,
    slug: str,
    aspect: str,
    findings: str = Form(""),
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    gateway: RatingsGateway = Depends(get_gateway),
    guard: app_api.SaveGuard = Depends(get_save_guard),
) -> RedirectResponse:
    return _family_action(
        request,
        slug,
        project,
        assessment_date,
        gateway,
        guard,
        lambda family, ctx: app_api.update_aspect_findings(
            gateway, family, ctx, aspect, findings
        ),
    )


@router.post("/practices/{slug}/save", name="save_practice_action")
def save_practice_action(
    request: Request,
    slug: str,
    project: str | None = Query(None),
    assessment_date: str | None = Query(None, alias="date"),
    gateway: RatingsGateway = Depends(get_gateway),
    guard: app_api.SaveGuard = Depends(get_save_guard),
) -> RedirectResponse:
    return _family_action(
        request,
        slug,
        project,
        assessment_date,
        gateway,
        guard,
        lambda family, ctx: app_api.save_aspect_family(gateway, family, ctx),
    )
