import logging
import traceback
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from creative_gateway.api.routes import router
from creative_gateway.core.config import settings, validate_settings_for_production
from creative_gateway.core.logging import setup_logging
from creative_gateway.core.metrics import PrometheusMiddleware, metrics_response
from creative_gateway.core.sentry import init_sentry
from creative_gateway.gateway.gateway import GenerationGateway
from creative_gateway.gateway.types import ErrorCode

# Configure logging before anything else
setup_logging()
init_sentry()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()
    logger.info("Starting Creative Gateway...")

    client = httpx.AsyncClient(timeout=settings.upstream_timeout_seconds)
    app.state.gateway = GenerationGateway.from_settings(settings, client)
    for name, ready in app.state.gateway.get_status().items():
        if not ready:
            logger.warning("Provider capability %s is not configured", name)

    yield

    # Shutdown
    await client.aclose()
    logger.info("Creative Gateway shut down")


app = FastAPI(
    title="Creative Gateway",
    description="Multi-provider relay for chat, image, video and speech generation",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


# Unhandled exceptions still answer with the uniform error envelope
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(
        status_code=500,
        content={"error": ErrorCode.SERVER_ERROR.value, "message": f"{type(exc).__name__}: {exc}"},
        headers={"Access-Control-Allow-Origin": settings.cors_allow_origin or "*"},
    )


app.add_middleware(PrometheusMiddleware)
app.include_router(router)


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()
