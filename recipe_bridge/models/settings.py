"""User settings models."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from recipe_bridge.models.recipe import MeasurementSystem

UiLanguage = Literal["en", "fr"]
TargetLanguage = Literal["en", "fr", "de", "es", "it"]


class UserSettings(BaseModel):
    """Per-user configuration persisted by the settings store."""

    mealieUrl: str = Field("", description="Recipe manager base URL")
    mealieApiToken: str = Field("", description="Recipe manager API token")
    uiLang: UiLanguage = "en"
    targetLang: TargetLanguage = "fr"
    targetSystem: MeasurementSystem = MeasurementSystem.METRIC


class UserSettingsUpdate(BaseModel):
    """Partial update; fields left out keep their saved value."""

    mealieUrl: Optional[str] = None
    mealieApiToken: Optional[str] = None
    uiLang: Optional[UiLanguage] = None
    targetLang: Optional[TargetLanguage] = None
    targetSystem: Optional[MeasurementSystem] = None


class UserSettingsView(BaseModel):
    """Settings as returned to clients; the token itself is never echoed."""

    mealieUrl: str
    hasApiToken: bool
    uiLang: UiLanguage
    targetLang: TargetLanguage
    targetSystem: MeasurementSystem

    @classmethod
    def from_settings(cls, user_settings: UserSettings) -> "UserSettingsView":
        return cls(
            mealieUrl=user_settings.mealieUrl,
            hasApiToken=bool(user_settings.mealieApiToken),
            uiLang=user_settings.uiLang,
            targetLang=user_settings.targetLang,
            targetSystem=user_settings.targetSystem,
        )
