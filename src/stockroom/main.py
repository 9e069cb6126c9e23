from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from stockroom import __version__, web
from stockroom.api.router import api_router
from stockroom.core.config import get_settings
from stockroom.core.errors import install_error_handlers
from stockroom.core.logging_config import get_logger, setup_logging
from stockroom.db.session import init_db, session_scope
from stockroom.services.bootstrap import seed_defaults

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    setup_logging(settings.log_level, settings.log_file)
    init_db()
    if settings.enable_seed_data:
        with session_scope() as session:
            seed_defaults(session)
    logger.info("%s %s started", settings.app_name, __version__)
    yield
    logger.info("%s stopped", settings.app_name)


def create_application() -> FastAPI:
    application = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)
    if settings.cors_origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )
    install_error_handlers(application)
    application.include_router(api_router, prefix=settings.api_prefix)
    application.include_router(web.router)

    @application.get("/", include_in_schema=False)
    def root() -> RedirectResponse:
        return RedirectResponse(url="/web/login")

    return application


app = create_application()
