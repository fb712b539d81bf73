"""Tool Tracker - FastAPI application for the tracker view.

Lists which tools are where, lets tool metadata be edited and hands out
the mailto: links that record a borrow. Mail ingestion runs separately
(see scripts/start_smtp_server.py and scripts/start_imap_poller.py).
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from . import __version__
from .config import Settings, get_settings
from .database import create_db_engine, create_session_factory, ensure_tables
from .domain.mail.errors import StoreFailure
from .observability.logging_config import configure_logging
from .observability.middleware import CorrelationIDMiddleware
from .observability.router import router as observability_router
from .tracker.router import router as tracker_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
) -> FastAPI:
    """Application factory.

    Args:
        settings: Defaults to get_settings()
        session_factory: Defaults to one built from settings.DATABASE_URL,
            with the tables created

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()
    if session_factory is None:
        engine = create_db_engine(settings.DATABASE_URL)
        ensure_tables(engine)
        session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Tool tracker view starting, borrow address {settings.accept_address}")
        yield
        logger.info("Tool tracker view shutting down")

    app = FastAPI(
        title="Tool Tracker",
        description="Who has which tool, recorded by e-mail",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory

    app.add_middleware(CorrelationIDMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors with field-level details."""
        logger.warning(f"Validation error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "validation_error",
                "message": "Request validation failed",
                "details": [
                    {"loc": list(error.get("loc", [])), "msg": error.get("msg")}
                    for error in exc.errors()
                ],
            },
        )

    @app.exception_handler(StoreFailure)
    async def store_exception_handler(
        request: Request,
        exc: StoreFailure
    ) -> JSONResponse:
        """Logs the full error but returns a generic message."""
        logger.error(f"Store error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "error": "store_unavailable",
                "message": "The tracker store is unavailable. Please try again later.",
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}",
            exc_info=exc
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_error",
                "message": "An unexpected error occurred. Please try again later.",
            },
        )

    prefix = settings.HTTP_PREFIX.rstrip("/")
    app.include_router(observability_router, prefix=prefix)
    app.include_router(tracker_router, prefix=f"{prefix}/api")

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    uvicorn.run(
        create_app(settings),
        host=settings.LISTEN_HOST,
        port=settings.HTTP_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
