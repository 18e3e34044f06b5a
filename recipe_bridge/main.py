"""FastAPI application entry point."""

import asyncio
import contextlib
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from recipe_bridge.api.routes import health, recipes, staging
from recipe_bridge.api.routes import settings as settings_routes
from recipe_bridge.config import settings
from recipe_bridge.core.request_id import get_request_id
from recipe_bridge.core.staging_store import StagingStore
from recipe_bridge.middleware.logging import RequestLoggingMiddleware
from recipe_bridge.middleware.performance import PerformanceMiddleware
from recipe_bridge.middleware.rate_limit import get_rate_limit_exceeded_handler, limiter
from recipe_bridge.middleware.security import SecurityHeadersMiddleware, setup_compression, setup_cors
from recipe_bridge.services.settings_store import SettingsStore
from recipe_bridge.utils.exceptions import (
    GeminiError,
    ImageProcessingError,
    RecipeBridgeException,
    RecipeManagerError,
    ScrapingError,
    SettingsStoreError,
    StagedRecipeNotFound,
    StagingStorageError,
    ValidationError,
)
from recipe_bridge.utils.logging_config import setup_logging

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Recipe Bridge API",
    description="Turns recipes from the web, photos, text or videos into schema.org pages "
    "and imports them into a self-hosted recipe manager",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.limiter = limiter
app.state.staging_store = StagingStore(ttl_seconds=settings.staging_ttl_seconds)
app.state.settings_store = SettingsStore(settings.settings_file)

app.add_exception_handler(RateLimitExceeded, get_rate_limit_exceeded_handler())

# Most specific first: ConfigurationError is a ValidationError
_EXCEPTION_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST, "Validation error"),
    (ImageProcessingError, status.HTTP_400_BAD_REQUEST, "Image processing error"),
    (StagedRecipeNotFound, status.HTTP_404_NOT_FOUND, "Recipe not found"),
    (StagingStorageError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Staging storage error"),
    (ScrapingError, status.HTTP_502_BAD_GATEWAY, "Scraping failed"),
    (GeminiError, status.HTTP_502_BAD_GATEWAY, "Gemini API error"),
    (RecipeManagerError, status.HTTP_502_BAD_GATEWAY, "Recipe manager error"),
    (SettingsStoreError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Settings storage error"),
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with detailed messages."""
    request_id = get_request_id()
    # Non-JSON bodies come back from pydantic as raw bytes
    errors = jsonable_encoder(exc.errors())
    logger.warning(
        "Request validation failed",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "errors": errors,
        },
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "detail": errors,
            "request_id": request_id,
        },
    )


@app.exception_handler(RecipeBridgeException)
async def recipe_bridge_exception_handler(request: Request, exc: RecipeBridgeException) -> JSONResponse:
    """Map service exceptions that escaped the routes to HTTP responses."""
    request_id = get_request_id()

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_message = "Internal server error"
    for exc_type, code, message in _EXCEPTION_STATUS:
        if isinstance(exc, exc_type):
            status_code, error_message = code, message
            break
    if isinstance(exc, RecipeManagerError) and exc.status_code in (401, 403):
        error_message = "Recipe manager authentication failed"

    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"Exception: {error_message}",
        extra={"request_id": request_id, "exception": str(exc)},
        exc_info=status_code >= 500,
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": error_message,
            "detail": str(exc),
            "request_id": request_id,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = get_request_id()
    logger.error(
        f"Unexpected exception: {str(exc)}",
        extra={"request_id": request_id},
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred",
            "request_id": request_id,
        },
    )


# Add middleware (the last one added runs first)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(PerformanceMiddleware)
app.add_middleware(RequestLoggingMiddleware)
setup_compression(app)
setup_cors(app)

app.include_router(health.router)
app.include_router(staging.router)
app.include_router(recipes.router)
app.include_router(settings_routes.router)


async def sweep_staging_store(store: StagingStore, interval: float) -> None:
    """Drop expired staged recipes every `interval` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            store.sweep()
        except Exception as e:
            logger.error(f"Staging sweep failed: {str(e)}", exc_info=True)


@app.on_event("startup")
async def startup_event():
    logger.info("Recipe Bridge API starting up...")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Staging TTL: {settings.staging_ttl_seconds}s")
    if not settings.public_base_url:
        logger.warning("PUBLIC_BASE_URL is not set, recipes will be sent to the manager as HTML")
    app.state.sweep_task = asyncio.create_task(
        sweep_staging_store(app.state.staging_store, settings.staging_sweep_interval_seconds)
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Recipe Bridge API shutting down...")
    task = getattr(app.state, "sweep_task", None)
    if task is not None:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


@app.get("/")
async def root():
    return {
        "name": "Recipe Bridge API",
        "version": "1.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("recipe_bridge.main:app", host=settings.host, port=settings.port)
