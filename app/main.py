"""Rentfy bookings service: FastAPI application entry point."""

import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from tortoise.contrib.fastapi import RegisterTortoise

from app import settings
from app.cache import close_redis
from app.deps import close_http_clients
from app.errors import BookingError, InternalError
from app.routers.booking import router as booking_router


def configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL, backtrace=settings.DEBUG)


# ---------------------------------------------------------------------------
# Error envelope: {"success": false, "error": <message>, ...}
# ---------------------------------------------------------------------------


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    body = exc.to_dict()
    if isinstance(exc, InternalError):
        logger.opt(exception=exc).error(
            "{} {} failed: {}", request.method, request.url.path, exc.detail
        )
        if settings.DEBUG and exc.detail:
            body["details"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=body)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request", "details": details},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(
        "Unhandled error on {} {}", request.method, request.url.path
    )
    body = {"success": False, "error": "Internal server error"}
    if settings.DEBUG:
        body["details"] = repr(exc)
    return JSONResponse(status_code=500, content=body)


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    async with RegisterTortoise(
        app,
        db_url=settings.db_url,
        modules={"models": ["app.models"]},
        generate_schemas=settings.generate_schemas,
    ):
        logger.info("Bookings service started")
        yield
    await close_http_clients()
    await close_redis()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Rentfy bookings", lifespan=lifespan)
    install_exception_handlers(app)
    app.include_router(booking_router)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
