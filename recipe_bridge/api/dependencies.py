"""Shared API dependencies."""

from fastapi import Depends, Request

from recipe_bridge.config import settings
from recipe_bridge.core.staging_store import StagingStore
from recipe_bridge.models.settings import UserSettings
from recipe_bridge.services.html_renderer import RecipeHtmlRenderer
from recipe_bridge.services.recipe_extractor import RecipeExtractor
from recipe_bridge.services.recipe_publisher import RecipePublisher
from recipe_bridge.services.settings_store import SettingsStore


def get_recipe_extractor() -> RecipeExtractor:
    """Get recipe extractor service instance."""
    return RecipeExtractor()


def get_html_renderer() -> RecipeHtmlRenderer:
    return RecipeHtmlRenderer()


def get_staging_store(request: Request) -> StagingStore:
    """The process-wide staging store created at app startup."""
    return request.app.state.staging_store


def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store


def get_user_settings(settings_store: SettingsStore = Depends(get_settings_store)) -> UserSettings:
    return settings_store.load()


def get_recipe_publisher(
    staging_store: StagingStore = Depends(get_staging_store),
    renderer: RecipeHtmlRenderer = Depends(get_html_renderer),
) -> RecipePublisher:
    return RecipePublisher(
        staging_store,
        renderer=renderer,
        public_base_url=settings.public_base_url,
    )
