"""Pydantic models."""

from recipe_bridge.models.recipe import (
    ImageTextExtraction,
    MeasurementSystem,
    PublishResult,
    Recipe,
    RecipeSourceType,
    TransformRequest,
)
from recipe_bridge.models.settings import UserSettings, UserSettingsUpdate, UserSettingsView
from recipe_bridge.models.staging import StageRequest, StageResponse

__all__ = [
    "ImageTextExtraction",
    "MeasurementSystem",
    "PublishResult",
    "Recipe",
    "RecipeSourceType",
    "StageRequest",
    "StageResponse",
    "TransformRequest",
    "UserSettings",
    "UserSettingsUpdate",
    "UserSettingsView",
]
