"""User settings endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from recipe_bridge.api.dependencies import get_settings_store
from recipe_bridge.models.settings import UserSettingsUpdate, UserSettingsView
from recipe_bridge.services.settings_store import SettingsStore
from recipe_bridge.utils.exceptions import SettingsStoreError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=UserSettingsView)
async def read_settings(settings_store: SettingsStore = Depends(get_settings_store)) -> UserSettingsView:
    return UserSettingsView.from_settings(settings_store.load())


@router.put("", response_model=UserSettingsView)
async def update_settings(
    changes: UserSettingsUpdate,
    settings_store: SettingsStore = Depends(get_settings_store),
) -> UserSettingsView:
    """Partial update: fields left out of the body keep their saved value."""
    try:
        updated = settings_store.update(changes)
    except SettingsStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to save settings", "detail": str(e)},
        ) from e
    return UserSettingsView.from_settings(updated)
