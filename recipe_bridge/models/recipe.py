"""Recipe Pydantic models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RecipeSourceType(str, Enum):
    """Where a recipe submitted for extraction comes from."""

    URL = "url"
    TEXT = "text"
    IMAGE = "image"
    YOUTUBE = "youtube"


class MeasurementSystem(str, Enum):
    METRIC = "metric"
    US = "us"


class Recipe(BaseModel):
    """Structured recipe, field names spelled as in schema.org/Recipe."""

    name: str = Field(..., min_length=1, description="Recipe name")
    description: Optional[str] = Field(None, description="Short description")
    prepTime: Optional[str] = Field(None, description="Preparation time, e.g. '30 minutes'")
    cookTime: Optional[str] = Field(None, description="Cooking time, e.g. '1 hour'")
    totalTime: Optional[str] = Field(None, description="Total time")
    recipeYield: Optional[str] = Field(None, description="Servings, e.g. '4 servings'")
    recipeCategory: Optional[str] = Field(None, description="Category, e.g. 'Dessert'")
    recipeCuisine: Optional[str] = Field(None, description="Cuisine, e.g. 'Italian'")
    ingredients: List[str] = Field(default_factory=list, description="Ingredient lines, in order")
    instructions: List[str] = Field(default_factory=list, description="Steps, in order")
    image: Optional[str] = Field(None, description="Image URL or data URI")

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "name": "Tarte aux pommes",
                "description": "Une tarte aux pommes classique.",
                "prepTime": "30 minutes",
                "cookTime": "45 minutes",
                "totalTime": "1 heure 15 minutes",
                "recipeYield": "8 parts",
                "recipeCategory": "Dessert",
                "recipeCuisine": "Française",
                "ingredients": ["1 pâte brisée", "4 pommes", "50 g de sucre"],
                "instructions": [
                    "Préchauffer le four à 180 °C.",
                    "Étaler la pâte et disposer les pommes.",
                    "Saupoudrer de sucre et cuire 45 minutes.",
                ],
                "image": None,
            }
        },
    )

    @field_validator("ingredients", "instructions")
    @classmethod
    def _drop_blank_lines(cls, value: List[str]) -> List[str]:
        # The review form submits empty rows for lines the user cleared.
        return [line.strip() for line in value if line and line.strip()]


class TransformRequest(BaseModel):
    """Request body for /recipes/transform."""

    type: RecipeSourceType
    source: str = Field(..., min_length=1, description="URL, text, image data URI or YouTube URL")
    targetLanguage: Optional[str] = Field(None, description="Defaults to the saved target language")
    targetSystem: Optional[MeasurementSystem] = Field(None, description="Defaults to the saved system")


class TranslateRequest(BaseModel):
    """Request body for /recipes/translate."""

    recipeContent: str = Field(..., min_length=1)
    sourceLanguage: Optional[str] = None
    targetLanguage: Optional[str] = None
    targetSystem: Optional[MeasurementSystem] = None


class TranslateResponse(BaseModel):
    translatedRecipe: str


class ImageTextExtraction(BaseModel):
    """Text read from a recipe photo."""

    extractedText: str = Field(..., description="Text as it appears in the image")
    translatedText: Optional[str] = Field(None, description="Translation, if a target language was given")
    formattedText: Optional[str] = Field(None, description="Text using the target measurement system")


class RecipeHtml(BaseModel):
    """Model output schema for HTML rendering."""

    html: str


class PublishResult(BaseModel):
    """Outcome of sending a recipe to the recipe manager."""

    slug: str = Field(..., description="Recipe slug in the recipe manager")
    recipeUrl: str = Field(..., description="Recipe page in the recipe manager")
    stagedUrl: Optional[str] = Field(None, description="Staged URL the manager imported from")
