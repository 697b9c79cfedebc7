from __future__ import annotations

from fastapi import Request

from app.application.api import SaveGuard
from app.infrastructure.config import get_settings
from app.infrastructure.db import create_database_engine, create_session_factory
from app.infrastructure.gateway import RatingsGateway, SqlRatingsGateway
from app.utils.seed import initialise_database


def build_gateway() -> SqlRatingsGateway:
    """Gateway over the configured database, creating the ratings table if needed."""
    engine = create_database_engine(get_settings().database)
    initialise_database(engine)
    return SqlRatingsGateway(create_session_factory(engine))


def get_gateway(request: Request) -> RatingsGateway:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        gateway = build_gateway()
        request.app.state.gateway = gateway
    return gateway


def get_save_guard(request: Request) -> SaveGuard:
    guard = getattr(request.app.state, "save_guard", None)
    if guard is None:
        guard = SaveGuard()
        request.app.state.save_guard = guard
    return guard
