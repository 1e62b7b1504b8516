from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from voyonx.api.v1.router import api_router
from voyonx.core.config import get_settings
from voyonx.core.exceptions import AppError
from voyonx.core.logging import configure_logging
from voyonx.core.middleware import RequestIDMiddleware
from voyonx.core.responses import error_response, success_response
from voyonx.db.session import database_ready, dispose_engine
from voyonx.integrations.redis import close_redis, redis_ready

logger = logging.getLogger(__name__)


def _sanitize_json(value):
    if isinstance(value, dict):
        return {key: _sanitize_json(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_sanitize_json(item) for item in value]
    if isinstance(value, tuple):
        return tuple(_sanitize_json(item) for item in value)
    if isinstance(value, Exception):
        return str(value)
    return value


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    directions = "mapbox" if settings.mapbox_access_token else "straight-line"
    logger.info("Application startup", extra={"env": settings.env, "directions": directions})
    yield
    await close_redis()
    await dispose_engine()
    logger.info("Application shutdown")


settings = get_settings()
app = FastAPI(
    title=settings.project_name,
    version="0.1.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Places", "description": "Place catalog, categories and place details"},
        {"name": "Route", "description": "Personal route, stops and journey mode"},
        {"name": "Favorites", "description": "Per-device favorite places"},
        {"name": "Discovery", "description": "Category browsing, search and places near the user"},
    ],
)

app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/healthz", tags=["Health"])
async def healthz(request: Request):
    checks = {"database": await database_ready(), "redis": await redis_ready()}
    status = "ok" if all(checks.values()) else "degraded"
    return success_response(data={"status": status, **checks}, request=request)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.warning("Request failed", extra={"code": exc.code, "path": request.url.path, "details": exc.details})
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.details, request=request),
    )


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response("http_error", message, request=request),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    sanitized_errors = _sanitize_json(exc.errors())
    return JSONResponse(
        status_code=422,
        content=error_response(
            "validation_error",
            "Request validation failed",
            {"errors": sanitized_errors},
            request=request,
        ),
    )


@app.exception_handler(Exception)
async def unknown_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path}, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=error_response("internal_error", "Internal server error", request=request),
    )
