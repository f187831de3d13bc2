import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict, cast

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pythonjsonlogger.json import JsonFormatter
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.cors import CORSMiddleware

from campus_events.core.database_manager import db_manager
from campus_events.core.errors import EventRuleError
from campus_events.core.settings import get_settings
from campus_events.middleware.monitoring import (
    MonitoringMiddleware,
    get_health_status,
    get_prometheus_metrics,
)

from .api.api import api_router
from .api.openapi_tags import security_schemes, tags_metadata

settings = get_settings()

# Configure structured logging
log_handler = logging.StreamHandler()
formatter = JsonFormatter(
    """
    {
        "level": "%(levelname)s",
        "time": "%(asctime)s",
        "message": "%(message)s",
        "loggerName": "%(name)s",
        "fileName": "%(filename)s",
        "lineNumber": "%(lineno)d"
    }
    """
)
log_handler.setFormatter(formatter)
logging.basicConfig(handlers=[log_handler], level=settings.monitoring.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("Starting %s (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)

    if settings.ENVIRONMENT == "development" and not settings.TESTING:
        # Alembic owns the schema everywhere else
        await db_manager.create_all()

    db_health = await db_manager.health_check()
    if db_health.get("status") == "healthy":
        logger.info("Database connection verified")
    else:
        logger.warning("Database health check failed: %s", db_health.get("message"))

    try:
        yield
    finally:
        await db_manager.close()
        logger.info("Database connections closed")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description=settings.PROJECT_DESCRIPTION,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
    lifespan=lifespan,
)

app.add_middleware(MonitoringMiddleware)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.exception_handler(EventRuleError)  # type: ignore[misc]
async def event_rule_exception_handler(
    request: Request, exc: EventRuleError
) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(HTTPException)  # type: ignore[misc]
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    logger.warning(
        "HTTPException occurred: %s",
        exc.detail,
        extra={"status_code": exc.status_code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(SQLAlchemyError)  # type: ignore[misc]
async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    logger.error("Database error on %s: %s", request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


def custom_openapi() -> Dict[str, Any]:
    if app.openapi_schema:
        return cast(Dict[str, Any], app.openapi_schema)

    from fastapi.openapi.utils import get_openapi

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
        tags=tags_metadata,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = security_schemes

    for path_item in openapi_schema["paths"].values():
        for method_item in path_item.values():
            if isinstance(method_item, dict) and "tags" in method_item:
                if not any(
                    tag in ["Root", "Health", "Monitoring"]
                    for tag in method_item.get("tags", [])
                ):
                    method_item["security"] = [{"BearerAuth": []}]

    app.openapi_schema = openapi_schema
    return cast(Dict[str, Any], app.openapi_schema)


app.openapi = custom_openapi  # type: ignore[method-assign]


@app.get("/", tags=["Root"], summary="API Welcome Message")  # type: ignore[misc]
async def root() -> dict[str, Any]:
    return {
        "message": f"Welcome to {settings.PROJECT_NAME}",
        "version": settings.VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
        "openapi": f"{settings.API_V1_PREFIX}/openapi.json",
        "status": "operational",
    }


@app.get("/health", tags=["Health"], summary="Health Check")  # type: ignore[misc]
async def health_check() -> dict[str, Any]:
    """Operational status of the service and its database."""
    return await get_health_status()


@app.get("/metrics", tags=["Monitoring"], summary="Prometheus Metrics")  # type: ignore[misc]
async def metrics() -> PlainTextResponse:
    """
    Prometheus metrics endpoint for monitoring and alerting.

    Returns metrics in Prometheus exposition format.
    """
    if not settings.monitoring.ENABLE_PROMETHEUS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Metrics endpoint is disabled"
        )

    metrics_data = await get_prometheus_metrics()
    return PlainTextResponse(
        content=metrics_data, media_type="text/plain; version=0.0.4; charset=utf-8"
    )
