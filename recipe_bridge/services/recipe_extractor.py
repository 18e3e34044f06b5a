"""Unified recipe extraction service for every supported source type."""

from __future__ import annotations

import logging
from typing import Optional

from recipe_bridge.models.recipe import ImageTextExtraction, Recipe, RecipeSourceType
from recipe_bridge.services.gemini_service import GeminiService
from recipe_bridge.services.image_service import ImageService
from recipe_bridge.services.page_fetcher import PageFetcher
from recipe_bridge.utils.exceptions import GeminiError, ImageProcessingError
from recipe_bridge.utils.recipe_normalization import normalize_recipe_data
from recipe_bridge.utils.validators import validate_recipe_text, validate_url, validate_youtube_url

logger = logging.getLogger(__name__)


class RecipeExtractor:
    """Turns a URL, text, photo or YouTube link into a translated `Recipe`."""

    def __init__(
        self,
        gemini_service: Optional[GeminiService] = None,
        page_fetcher: Optional[PageFetcher] = None,
        image_service: Optional[ImageService] = None,
    ):
        self.gemini_service = gemini_service or GeminiService()
        self.page_fetcher = page_fetcher or PageFetcher()
        self.image_service = image_service or ImageService()

    async def extract(
        self,
        source_type: RecipeSourceType,
        source: str,
        *,
        target_language: str,
        target_system: str,
    ) -> Recipe:
        """Dispatch on the source type. Image sources are data URIs here."""
        if source_type == RecipeSourceType.URL:
            return await self.extract_from_url(source, target_language=target_language, target_system=target_system)
        if source_type == RecipeSourceType.TEXT:
            return await self.extract_from_text(source, target_language=target_language, target_system=target_system)
        if source_type == RecipeSourceType.IMAGE:
            image_data, _ = self.image_service.decode_data_uri(source)
            return await self.extract_from_image(
                image_data, "image", target_language=target_language, target_system=target_system
            )
        return await self.extract_from_youtube(source, target_language=target_language, target_system=target_system)

    async def extract_from_url(self, url: str, *, target_language: str, target_system: str) -> Recipe:
        url = validate_url(url)
        page = await self.page_fetcher.fetch(url)
        logger.info(f"[extract_from_url] Fetched {url}, sending page text to Gemini")

        recipe = await self.gemini_service.process_recipe(
            RecipeSourceType.URL,
            page.as_prompt_text(),
            target_language=target_language,
            target_system=target_system,
        )
        if recipe.image is None and page.json_ld:
            # Keep the page's own photo when the model dropped it
            recipe.image = normalize_recipe_data(page.json_ld[0]).get("image")
        return recipe

    async def extract_from_text(self, text: str, *, target_language: str, target_system: str) -> Recipe:
        text = validate_recipe_text(text)
        return await self.gemini_service.process_recipe(
            RecipeSourceType.TEXT,
            text,
            target_language=target_language,
            target_system=target_system,
        )

    async def extract_from_image(
        self,
        image_data: bytes,
        filename: str,
        *,
        target_language: str,
        target_system: str,
    ) -> Recipe:
        try:
            validated, mime_type = self.image_service.validate_image(image_data, filename)
            optimized, mime_type = self.image_service.optimize_for_vision(validated, mime_type)
            return await self.gemini_service.process_recipe(
                RecipeSourceType.IMAGE,
                filename,
                target_language=target_language,
                target_system=target_system,
                image_data=optimized,
                mime_type=mime_type,
            )
        except (ImageProcessingError, GeminiError):
            raise
        except Exception as e:
            logger.error(f"Unexpected error extracting recipe from image: {str(e)}", exc_info=True)
            raise ImageProcessingError(f"Failed to extract recipe from image: {str(e)}") from e

    async def extract_from_youtube(self, url: str, *, target_language: str, target_system: str) -> Recipe:
        url = validate_youtube_url(url)
        return await self.gemini_service.process_recipe(
            RecipeSourceType.YOUTUBE,
            url,
            target_language=target_language,
            target_system=target_system,
        )

    async def translate_text(
        self,
        text: str,
        *,
        target_language: str,
        target_system: str,
        source_language: Optional[str] = None,
    ) -> str:
        text = validate_recipe_text(text)
        return await self.gemini_service.translate_recipe(
            text,
            target_language=target_language,
            target_system=target_system,
            source_language=source_language,
        )

    async def extract_image_text(
        self,
        image_data: bytes,
        filename: str,
        *,
        target_language: Optional[str] = None,
        target_system: Optional[str] = None,
    ) -> ImageTextExtraction:
        validated, mime_type = self.image_service.validate_image(image_data, filename)
        optimized, mime_type = self.image_service.optimize_for_vision(validated, mime_type)
        return await self.gemini_service.extract_text_from_image(
            optimized,
            mime_type,
            target_language=target_language,
            target_system=target_system,
        )

