"""FastAPI application factory: error mapping, request ids and the router."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from booking_engine import __version__
from booking_engine.api.router import router
from booking_engine.config import settings
from booking_engine.errors import EngineError
from booking_engine.logging_context import get_request_logger, set_request_id
from booking_engine.service import AvailabilityService, build_service

logger = get_request_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Booking engine starting up (%d-minute grid, timezone %s)",
        app.state.service.config.scheduling.slot_granularity_minutes,
        app.state.service.config.timezone,
    )
    yield
    logger.info("Booking engine shutting down...")


def create_app(service: Optional[AvailabilityService] = None) -> FastAPI:
    """Build the API around ``service``, or a fresh in-memory one."""
    app = FastAPI(title=settings.api_title, version=__version__, lifespan=lifespan)
    app.state.service = service or build_service(settings)

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(level, "%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        set_request_id(request_id)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(router)
    return app
