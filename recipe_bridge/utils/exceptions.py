"""Custom exception classes."""

from typing import Optional


class RecipeBridgeException(Exception):
    """Base exception for Recipe Bridge application."""

    pass


class ValidationError(RecipeBridgeException):
    """Raised when input validation fails."""

    pass


class ConfigurationError(ValidationError):
    """Raised when a required user setting is missing."""

    pass


class ScrapingError(RecipeBridgeException):
    """Raised when fetching a recipe page fails."""

    pass


class GeminiError(RecipeBridgeException):
    """Raised when Gemini API call fails."""

    pass


class ImageProcessingError(RecipeBridgeException):
    """Raised when image processing fails."""

    pass


class StagedRecipeNotFound(RecipeBridgeException):
    """Raised when a staged recipe is missing, expired or already consumed."""

    def __init__(self, recipe_id: str):
        super().__init__(f"Recipe {recipe_id!r} not found or has expired")
        self.recipe_id = recipe_id


class StagingStorageError(RecipeBridgeException):
    """Raised when the staging store cannot accept a new entry."""

    pass


class RecipeManagerError(RecipeBridgeException):
    """Raised when the recipe manager rejects or fails an import."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SettingsStoreError(RecipeBridgeException):
    """Raised when user settings cannot be persisted."""

    pass
