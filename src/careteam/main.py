import secrets
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.careteam.api.middlewares import setup_middlewares
from src.careteam.api.v1.router import api_router
from src.careteam.core.config import Settings, get_settings
from src.careteam.core.db import dispose_engine, get_session
from src.careteam.core.exceptions import setup_exception_handlers
from src.careteam.core.logging import get_logger, setup_logging
from src.careteam.core.rate_limit import limiter
from src.careteam.temporal.client import close_temporal_client, get_temporal_client

logger = get_logger(__name__)

OPENAPI_TAGS = [
    {"name": "teams", "description": "Care team provisioning, membership and audit log"},
    {"name": "invitations", "description": "Invitation preview, acceptance and decline"},
    {"name": "mfa", "description": "MFA enrollment, verification and backup factors"},
]

health_router = APIRouter(tags=["health"])


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    settings = get_settings()
    setup_logging(settings.debug)
    logger.info("API starting", app_name=settings.app_name, env=settings.app_env)

    yield

    await close_temporal_client()
    await dispose_engine()
    logger.info("API shutdown complete")


@health_router.get("/health")
async def health() -> JSONResponse:
    """Liveness plus dependency status.

    The database is a hard dependency. Temporal only runs the expiry sweep,
    so losing it degrades the service without taking it out of rotation.
    """
    checks = {"database": "healthy", "temporal": "healthy"}

    try:
        async with get_session() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Health check: database unreachable", error=str(exc))
        checks["database"] = "unhealthy"

    try:
        await get_temporal_client()
    except (RuntimeError, OSError) as exc:
        logger.warning("Health check: Temporal unreachable", error=str(exc))
        checks["temporal"] = "unhealthy"

    if checks["database"] != "healthy":
        overall, code = "unhealthy", status.HTTP_503_SERVICE_UNAVAILABLE
    elif checks["temporal"] != "healthy":
        overall, code = "degraded", status.HTTP_200_OK
    else:
        overall, code = "healthy", status.HTTP_200_OK

    return JSONResponse(content={"status": overall, **checks}, status_code=code)


def mount_metrics(app: FastAPI, settings: Settings) -> None:
    """Expose Prometheus metrics, behind X-Metrics-Key when one is configured."""
    instrumentator = Instrumentator(excluded_handlers=["/health", "/metrics"]).instrument(app)
    expected_key = settings.metrics_api_key
    if not expected_key:
        instrumentator.expose(app, endpoint="/metrics")
        return

    key_header = APIKeyHeader(name="X-Metrics-Key", auto_error=False)

    async def require_metrics_key(api_key: str | None = Depends(key_header)) -> None:
        if api_key is None or not secrets.compare_digest(api_key, expected_key):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or missing metrics API key",
            )

    instrumentator.expose(app, endpoint="/metrics", dependencies=[Depends(require_metrics_key)])


def create_app() -> FastAPI:
    settings = get_settings()
    docs_enabled = settings.enable_openapi

    app = FastAPI(
        title=settings.app_name,
        description="Healthcare care team invitations and MFA",
        version="0.1.0",
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    setup_exception_handlers(app)
    app.state.limiter = limiter
    app.add_exception_handler(
        RateLimitExceeded,
        _rate_limit_exceeded_handler,  # type: ignore[arg-type]
    )
    setup_middlewares(app, settings)

    app.include_router(api_router)
    app.include_router(health_router)
    mount_metrics(app, settings)

    return app


app = create_app()
