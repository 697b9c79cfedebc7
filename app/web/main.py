from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.application.api import SaveGuard
from app.infrastructure.config import get_settings
from app.infrastructure.gateway import RatingsGateway
from app.infrastructure.logging import get_logger
from app.web.dependencies import build_gateway
from app.web.routes import api, pages

STATIC_DIR = Path(__file__).resolve().parent / "static"

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if app.state.gateway is None:
        app.state.gateway = build_gateway()
        logger.info("Ratings gateway created")
    yield


def create_application(gateway: RatingsGateway | None = None) -> FastAPI:
    """
    Build the FastAPI app. Pass ``gateway`` to inject a store; otherwise one is
    created from settings at start-up.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app.title,
        version=settings.app.version,
        debug=settings.app.debug,
        lifespan=lifespan,
    )
    app.state.gateway = gateway
    app.state.save_guard = SaveGuard()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=settings.server.cors_methods,
        allow_headers=["*"],
    )

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR), check_dir=False), name="static")

    app.include_router(api.router)
    app.include_router(pages.router)

    return app


app = create_application()
