import sentry_sdk
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware

from debate_arena.api.v1 import ai_service
from debate_arena.core.config import settings
from debate_arena.utils.errors import (
    AppError,
    ErrorHandlingMiddleware,
    app_error_handler,
)
from debate_arena.utils.logger import configure_logging, get_logger

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Moderated AI persona debates backed by a resilient completion client"
    ),
    version="1.0.0",
)

# Initialize Sentry if DSN is provided
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.APP_ENV,
        traces_sample_rate=0.1,
    )
    app.add_middleware(SentryAsgiMiddleware)
    logger.info(
        "Sentry initialized with SentryAsgiMiddleware", environment=settings.APP_ENV
    )
else:
    logger.info("Sentry not configured (SENTRY_DSN not set)")

app.add_exception_handler(AppError, app_error_handler)
app.add_middleware(ErrorHandlingMiddleware)
app.include_router(ai_service.router, prefix="/api/v1")

# Initialize Prometheus metrics
instrumentator = Instrumentator(
    should_group_status_codes=False,
    excluded_handlers=["/metrics"],
)
instrumentator.instrument(app).expose(app)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info(
        "Debate Arena starting up",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        sentry_enabled=bool(settings.SENTRY_DSN),
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Release the shared completion client's HTTP connections"""
    client = getattr(app.state, "groq_client", None)
    if client is not None:
        await client.aclose()


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint"""
    return {"status": "ok"}
