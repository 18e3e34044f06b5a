"""Staging endpoints: hold rendered recipe HTML until the recipe manager fetches it once."""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from recipe_bridge.api.dependencies import get_staging_store
from recipe_bridge.config import settings
from recipe_bridge.core.staging_store import StagingStore
from recipe_bridge.models.staging import StageRequest, StageResponse
from recipe_bridge.services.recipe_publisher import staged_recipe_url
from recipe_bridge.utils.exceptions import StagedRecipeNotFound, StagingStorageError, ValidationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/recipe", tags=["staging"])

NOT_FOUND_MESSAGE = "Recipe not found or has expired"


def _public_base_url(request: Request) -> str:
    return settings.public_base_url or str(request.base_url)


def _serve_once(staging_store: StagingStore, recipe_id: str) -> Response:
    try:
        content = staging_store.get(recipe_id)
    except StagedRecipeNotFound:
        return PlainTextResponse(NOT_FOUND_MESSAGE, status_code=status.HTTP_404_NOT_FOUND)
    return HTMLResponse(content, media_type="text/html; charset=utf-8")


@router.post("", response_model=StageResponse)
async def stage_recipe(
    request: Request,
    payload: Optional[StageRequest] = Body(None),
    staging_store: StagingStore = Depends(get_staging_store),
) -> StageResponse:
    """
    Stage recipe HTML and return a one-time URL for it.

    The URL serves the HTML exactly once, and only until the entry expires.
    """
    html = payload.html if payload else None
    if not html:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Missing recipe HTML", "detail": "Provide 'html' in the JSON body."},
        )

    try:
        recipe_id = staging_store.put(html)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid recipe HTML", "detail": str(e)},
        ) from e
    except StagingStorageError as e:
        logger.error(f"Failed to stage recipe HTML: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to store recipe", "detail": str(e)},
        ) from e

    return StageResponse(id=recipe_id, url=staged_recipe_url(_public_base_url(request), recipe_id))


@router.get("", response_class=HTMLResponse)
async def get_staged_recipe_by_query(
    id: Optional[str] = Query(None, description="Staging id"),
    staging_store: StagingStore = Depends(get_staging_store),
) -> Response:
    if not id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Missing recipe id", "detail": "Provide the 'id' query parameter."},
        )
    return _serve_once(staging_store, id)


@router.get("/{recipe_id}", response_class=HTMLResponse)
async def get_staged_recipe(
    recipe_id: str,
    staging_store: StagingStore = Depends(get_staging_store),
) -> Response:
    """Serve the staged HTML and forget it."""
    return _serve_once(staging_store, recipe_id)
