"""Recipe endpoints: extraction, translation, rendering and sending to the recipe manager."""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status

from recipe_bridge.api.dependencies import (
    get_html_renderer,
    get_recipe_extractor,
    get_recipe_publisher,
    get_user_settings,
)
from recipe_bridge.config import settings
from recipe_bridge.middleware.rate_limit import rate_limit_dependency
from recipe_bridge.models.recipe import (
    ImageTextExtraction,
    MeasurementSystem,
    PublishResult,
    Recipe,
    RecipeHtml,
    TransformRequest,
    TranslateRequest,
    TranslateResponse,
)
from recipe_bridge.models.settings import UserSettings
from recipe_bridge.services.html_renderer import RecipeHtmlRenderer
from recipe_bridge.services.recipe_extractor import RecipeExtractor
from recipe_bridge.services.recipe_publisher import RecipePublisher
from recipe_bridge.utils.exceptions import (
    GeminiError,
    ImageProcessingError,
    RecipeManagerError,
    ScrapingError,
    StagingStorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/recipes", tags=["recipes"])

# Lower than the Cloud Run request timeout so we answer (with CORS headers)
# before the gateway gives up with a bare 504.
IMAGE_EXTRACT_TIMEOUT_S = 110.0

ALLOWED_IMAGE_MIME = {"image/jpeg", "image/png", "image/webp"}


def _raise_http_error(e: Exception, failure: str) -> NoReturn:
    """Translate a service exception into the matching HTTPException."""
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid request", "detail": str(e)},
        ) from e
    if isinstance(e, ImageProcessingError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid image", "detail": str(e)},
        ) from e
    if isinstance(e, ScrapingError):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Failed to fetch recipe source", "detail": str(e)},
        ) from e
    if isinstance(e, GeminiError):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": failure, "detail": str(e)},
        ) from e
    if isinstance(e, RecipeManagerError):
        error = "Recipe manager authentication failed" if e.status_code in (401, 403) else failure
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": error, "detail": str(e)},
        ) from e
    if isinstance(e, StagingStorageError):
        logger.error(f"Failed to stage recipe HTML: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to store recipe", "detail": str(e)},
        ) from e

    logger.error(f"Unexpected error ({failure}): {str(e)}", exc_info=True)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": "Internal server error", "detail": "An unexpected error occurred"},
    ) from e


def _targets(
    user_settings: UserSettings,
    target_language: Optional[str],
    target_system: Optional[MeasurementSystem],
) -> dict:
    """Requested targets, falling back to the saved user settings."""
    system = target_system or user_settings.targetSystem
    return {
        "target_language": target_language or user_settings.targetLang,
        "target_system": MeasurementSystem(system).value,
    }


async def _read_image_upload(file: UploadFile) -> bytes:
    if file.content_type and file.content_type.lower() not in ALLOWED_IMAGE_MIME:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Invalid image type",
                "detail": f"Unsupported content-type: {file.content_type}. Allowed: {sorted(ALLOWED_IMAGE_MIME)}",
            },
        )

    image_data = await file.read()
    if not image_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid image", "detail": "Empty file"},
        )
    if len(image_data) > settings.max_request_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={"error": "File too large", "detail": f"Max size is {settings.max_request_size} bytes"},
        )
    return image_data


@router.post("/transform", response_model=Recipe)
async def transform_recipe(
    request: Request,
    body: TransformRequest,
    _: None = Depends(rate_limit_dependency),
    recipe_extractor: RecipeExtractor = Depends(get_recipe_extractor),
    user_settings: UserSettings = Depends(get_user_settings),
) -> Recipe:
    """
    Extract a recipe and rewrite it in the target language and measurement system.

    - **type**: `url`, `text`, `image` (source is a base64 data URI) or `youtube`
    - **source**: the URL, text or data URI
    - **targetLanguage** / **targetSystem**: default to the saved settings
    """
    targets = _targets(user_settings, body.targetLanguage, body.targetSystem)
    logger.info(
        "Route /recipes/transform called",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "route": "/recipes/transform",
            "params": {"type": body.type.value, "source_length": len(body.source), **targets},
        },
    )

    try:
        return await recipe_extractor.extract(body.type, body.source, **targets)
    except Exception as e:
        _raise_http_error(e, "Failed to extract recipe")


@router.post("/from-image", response_model=Recipe)
async def transform_recipe_image(
    request: Request,
    file: UploadFile = File(..., description="Recipe photo (JPEG, PNG or WebP)"),
    targetLanguage: Optional[str] = Form(None),
    targetSystem: Optional[MeasurementSystem] = Form(None),
    _: None = Depends(rate_limit_dependency),
    recipe_extractor: RecipeExtractor = Depends(get_recipe_extractor),
    user_settings: UserSettings = Depends(get_user_settings),
) -> Recipe:
    """Extract a recipe from an uploaded photo."""
    targets = _targets(user_settings, targetLanguage, targetSystem)
    logger.info(
        "Route /recipes/from-image called",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "route": "/recipes/from-image",
            "params": {"filename": file.filename, "content_type": file.content_type, **targets},
        },
    )

    try:
        image_data = await _read_image_upload(file)
        return await asyncio.wait_for(
            recipe_extractor.extract_from_image(image_data, file.filename or "image", **targets),
            timeout=IMAGE_EXTRACT_TIMEOUT_S,
        )
    except asyncio.TimeoutError as e:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail={
                "error": "Timeout",
                "detail": f"Recipe extraction took too long (> {IMAGE_EXTRACT_TIMEOUT_S:.0f}s). "
                "Try a smaller or clearer image.",
            },
        ) from e
    except Exception as e:
        _raise_http_error(e, "Failed to extract recipe from image")


@router.post("/translate", response_model=TranslateResponse)
async def translate_recipe(
    request: Request,
    body: TranslateRequest,
    _: None = Depends(rate_limit_dependency),
    recipe_extractor: RecipeExtractor = Depends(get_recipe_extractor),
    user_settings: UserSettings = Depends(get_user_settings),
) -> TranslateResponse:
    """Translate free recipe text and convert its measurements."""
    targets = _targets(user_settings, body.targetLanguage, body.targetSystem)
    logger.info(
        "Route /recipes/translate called",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "route": "/recipes/translate",
            "params": {"content_length": len(body.recipeContent), **targets},
        },
    )

    try:
        translated = await recipe_extractor.translate_text(
            body.recipeContent, source_language=body.sourceLanguage, **targets
        )
        return TranslateResponse(translatedRecipe=translated)
    except Exception as e:
        _raise_http_error(e, "Failed to translate recipe")


@router.post("/image-text", response_model=ImageTextExtraction)
async def extract_image_text(
    request: Request,
    file: UploadFile = File(...),
    targetLanguage: Optional[str] = Form(None),
    targetSystem: Optional[MeasurementSystem] = Form(None),
    _: None = Depends(rate_limit_dependency),
    recipe_extractor: RecipeExtractor = Depends(get_recipe_extractor),
) -> ImageTextExtraction:
    """
    Read the text of a recipe photo.

    Translation and measurement conversion only happen when a target is given.
    """
    logger.info(
        "Route /recipes/image-text called",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "route": "/recipes/image-text",
            "params": {"filename": file.filename, "targetLanguage": targetLanguage},
        },
    )

    try:
        image_data = await _read_image_upload(file)
        return await recipe_extractor.extract_image_text(
            image_data,
            file.filename or "image",
            target_language=targetLanguage,
            target_system=targetSystem.value if targetSystem else None,
        )
    except Exception as e:
        _raise_http_error(e, "Failed to read text from image")


@router.post("/html", response_model=RecipeHtml)
async def render_recipe_html(
    recipe: Recipe,
    _: None = Depends(rate_limit_dependency),
    renderer: RecipeHtmlRenderer = Depends(get_html_renderer),
) -> RecipeHtml:
    """Render a recipe as a schema.org Recipe HTML page."""
    try:
        return RecipeHtml(html=await renderer.render(recipe))
    except Exception as e:
        _raise_http_error(e, "Failed to render recipe HTML")


@router.post("/send", response_model=PublishResult)
async def send_recipe(
    request: Request,
    recipe: Recipe,
    _: None = Depends(rate_limit_dependency),
    publisher: RecipePublisher = Depends(get_recipe_publisher),
    user_settings: UserSettings = Depends(get_user_settings),
) -> PublishResult:
    """Render the recipe, stage it and have the recipe manager import it."""
    logger.info(
        "Route /recipes/send called",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "route": "/recipes/send",
            "params": {"name": recipe.name, "manager": user_settings.mealieUrl},
        },
    )

    try:
        return await publisher.publish(recipe, user_settings)
    except Exception as e:
        _raise_http_error(e, "Failed to send recipe to the recipe manager")
