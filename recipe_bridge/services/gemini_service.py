"""
Gemini LLM service for recipe extraction, translation and HTML rendering.

Key design:
- One fixed prompt per task; every structured call requests JSON through
  response_schema + application/json.
- Strict JSON guard + automatic repair retries if Gemini returns invalid JSON / wrong schema.
- Image and video parts ride along with the prompt as the first content item's siblings,
  so repair retries can swap the prompt while keeping the media.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from typing import Any, Dict, Optional, Type, TypeVar

from google import genai
from google.genai import types
from pydantic import BaseModel, ValidationError

from recipe_bridge.config import settings
from recipe_bridge.models.recipe import (
    ImageTextExtraction,
    Recipe,
    RecipeHtml,
    RecipeSourceType,
)
from recipe_bridge.utils.exceptions import GeminiError
from recipe_bridge.utils.gemini_helpers import extract_json_object, get_response_schema
from recipe_bridge.utils.recipe_normalization import normalize_recipe_data

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

MEASUREMENT_SYSTEM_NAMES = {"metric": "Metric", "us": "US customary"}

_SOURCE_DESCRIPTIONS = {
    RecipeSourceType.URL: "the content of a recipe web page",
    RecipeSourceType.TEXT: "recipe text pasted by the user",
    RecipeSourceType.IMAGE: "a photo of a handwritten or printed recipe (attached)",
    RecipeSourceType.YOUTUBE: "a YouTube cooking video (attached)",
}


class GeminiService:
    """Service for interacting with Gemini API."""

    def __init__(self) -> None:
        self._client: Optional[genai.Client] = None

    @property
    def client(self) -> genai.Client:
        """Get or create Gemini client (lazy initialization)."""
        if self._client is None:
            if not settings.gemini_api_key:
                raise GeminiError("GEMINI_API_KEY is not configured")
            self._client = genai.Client(api_key=settings.gemini_api_key)
        return self._client

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------

    async def process_recipe(
        self,
        source_type: RecipeSourceType,
        source: str,
        *,
        target_language: str,
        target_system: str,
        image_data: Optional[bytes] = None,
        mime_type: Optional[str] = None,
    ) -> Recipe:
        """
        Extract a structured recipe from any supported source, translated to
        `target_language` with measurements in `target_system`.

        For image sources pass the bytes in `image_data`; `source` is then
        only used for logging. For YouTube, `source` is the video URL.
        """
        prompt = self._build_process_prompt(source_type, source, target_language, target_system)
        contents: Any = prompt
        model = settings.gemini_model

        if source_type == RecipeSourceType.IMAGE:
            if not image_data:
                raise GeminiError("Image source requires image data")
            contents = [prompt, self._inline_image_part(image_data, mime_type or "image/jpeg")]
            model = settings.gemini_vision_model
        elif source_type == RecipeSourceType.YOUTUBE:
            contents = [prompt, {"file_data": {"file_uri": source}}]

        try:
            logger.info(
                "Processing recipe source",
                extra={"source_type": source_type.value, "target_language": target_language},
            )
            return await self._generate_json_with_retries(
                model=model,
                contents=contents,
                response_model=Recipe,
                temperature=settings.gemini_temperature,
                normalize=normalize_recipe_data,
            )
        except GeminiError:
            raise
        except Exception as e:
            logger.error("Recipe processing failed: %s", str(e), exc_info=True)
            raise GeminiError(f"Failed to process recipe: {str(e)}") from e

    async def translate_recipe(
        self,
        recipe_content: str,
        *,
        target_language: str,
        target_system: str,
        source_language: Optional[str] = None,
    ) -> str:
        """Translate free recipe text and convert its measurements. Returns plain text."""
        prompt = self._build_translation_prompt(recipe_content, source_language, target_language, target_system)
        try:
            logger.info("Translating recipe text", extra={"target_language": target_language})
            text = await self._call_gemini(
                model=settings.gemini_model,
                contents=prompt,
                schema=None,
                temperature=settings.gemini_temperature,
            )
        except GeminiError:
            raise
        except Exception as e:
            logger.error("Recipe translation failed: %s", str(e), exc_info=True)
            raise GeminiError(f"Failed to translate recipe: {str(e)}") from e

        return text

    async def extract_text_from_image(
        self,
        image_data: bytes,
        mime_type: str,
        *,
        target_language: Optional[str] = None,
        target_system: Optional[str] = None,
    ) -> ImageTextExtraction:
        """OCR a recipe photo, optionally translating and converting measurements."""
        prompt = self._build_ocr_prompt(target_language, target_system)
        contents = [prompt, self._inline_image_part(image_data, mime_type)]
        try:
            logger.info("Extracting text from image (mime_type=%s)", mime_type)
            return await self._generate_json_with_retries(
                model=settings.gemini_vision_model,
                contents=contents,
                response_model=ImageTextExtraction,
                temperature=0.0,
            )
        except GeminiError:
            raise
        except Exception as e:
            logger.error("Image text extraction failed: %s", str(e), exc_info=True)
            raise GeminiError(f"Failed to extract text from image: {str(e)}") from e

    async def generate_recipe_html(self, recipe: Recipe) -> str:
        """Ask Gemini for schema.org-compliant recipe HTML."""
        prompt = self._build_html_prompt(recipe)
        try:
            logger.info("Generating recipe HTML", extra={"recipe_name": recipe.name})
            result = await self._generate_json_with_retries(
                model=settings.gemini_model,
                contents=prompt,
                response_model=RecipeHtml,
                temperature=0.0,
            )
        except GeminiError:
            raise
        except Exception as e:
            logger.error("Recipe HTML generation failed: %s", str(e), exc_info=True)
            raise GeminiError(f"Failed to generate recipe HTML: {str(e)}") from e

        if not result.html.strip():
            raise GeminiError("Gemini returned empty recipe HTML")
        return result.html

    # ---------------------------------------------------------------------
    # Prompts
    # ---------------------------------------------------------------------

    def _build_process_prompt(
        self,
        source_type: RecipeSourceType,
        source: str,
        target_language: str,
        target_system: str,
    ) -> str:
        system_name = MEASUREMENT_SYSTEM_NAMES.get(target_system, target_system)
        if source_type in (RecipeSourceType.IMAGE, RecipeSourceType.YOUTUBE):
            source_block = f"The recipe source is attached. Reference: {source[:200]}"
        else:
            source_block = f"The recipe source is:\n{source}"

        return f"""
You are an expert recipe parsing AI. Analyze the provided recipe source, extract all
relevant information, and return it as a single JSON object.

The recipe source type is: {source_type.value} ({_SOURCE_DESCRIPTIONS[source_type]}).

{source_block}

Instructions:
1. Extract the recipe name, description, prepTime, cookTime, totalTime, recipeYield (servings),
   recipeCategory, recipeCuisine, ingredients and instructions.
2. Translate all extracted text to the target language: {target_language}.
3. Convert all measurements to the {system_name} measurement system.
4. ingredients and instructions are ordered lists with one ingredient / one step per item.
5. If the source has no clear recipe structure (e.g. a video), assemble a clear and precise recipe.
6. If information such as prep time or cuisine is not present in the source, use null.
   Do not invent data. Only name, ingredients and instructions are required.
7. image: a URL to an image of the recipe if the source provides one, otherwise null.

Return valid JSON only: no Markdown, no ``` fences, no text before or after the JSON.
""".strip()

    def _build_translation_prompt(
        self,
        recipe_content: str,
        source_language: Optional[str],
        target_language: str,
        target_system: str,
    ) -> str:
        system_name = MEASUREMENT_SYSTEM_NAMES.get(target_system, target_system)
        return f"""
You are a recipe translator and formatter. Translate the given recipe to the target language
and rewrite the ingredients and instructions using the specified measurement system.

Source Language: {source_language or "auto-detect"}
Target Language: {target_language}
Target Measurement System: {system_name}

Recipe:
{recipe_content}

Make the translated recipe clear, accurate and easy to follow. Pay close attention to
ingredient quantities and cooking instructions.
Output only the translated and formatted recipe, without any additional text or explanations.
""".strip()

    def _build_ocr_prompt(self, target_language: Optional[str], target_system: Optional[str]) -> str:
        lines = [
            "Extract the text from the attached image of a handwritten or printed recipe.",
            "extractedText must be as faithful to the image as possible.",
        ]
        if target_language:
            lines.append(f"Also translate the extracted text to {target_language} and return it as translatedText.")
        else:
            lines.append("translatedText must be null.")
        if target_system:
            system_name = MEASUREMENT_SYSTEM_NAMES.get(target_system, target_system)
            lines.append(
                f"Also rewrite the recipe using the {system_name} measurement system and return it as formattedText."
            )
        else:
            lines.append("formattedText must be null.")
        lines.append("Return valid JSON only: no Markdown, no ``` fences.")
        return "\n".join(lines)

    def _build_html_prompt(self, recipe: Recipe) -> str:
        recipe_json = json.dumps(recipe.model_dump(exclude_none=True), ensure_ascii=False, indent=2)
        return f"""
Generate a complete, well-formed HTML page for the recipe below that follows the schema.org
Recipe standard so that recipe managers (e.g. Mealie) can scrape it.

Requirements:
- Include a <script type="application/ld+json"> block holding the schema.org Recipe JSON-LD
  with every provided field (recipeIngredient, recipeInstructions as HowToStep items, times as
  ISO 8601 durations where possible, recipeYield, recipeCategory, recipeCuisine, image, description).
- Also render the recipe as readable HTML (title, ingredient list, numbered steps).
- Do not add information that is not in the recipe.

Recipe:
{recipe_json}

Return a JSON object {{"html": "<the HTML page>"}} and nothing else.
""".strip()

    def _build_repair_prompt(self, *, error_message: str, bad_output: str, schema: Dict[str, Any]) -> str:
        schema_str = json.dumps(schema, ensure_ascii=False)
        return f"""
The previous output was not valid JSON or did not match the required schema.

Error:
{error_message}

Previous output (to repair):
{bad_output}

Requirements:
- Return a single valid JSON object only (starting with {{ and ending with }}).
- No Markdown, no ``` fences, no text before or after.
- Do not change the meaning of the data; only fix structure, fields and types to match the schema.

JSON schema (reference only):
{schema_str}
""".strip()

    # ---------------------------------------------------------------------
    # Core Gemini call + JSON guard + repair retries
    # ---------------------------------------------------------------------

    async def _generate_json_with_retries(
        self,
        *,
        model: str,
        contents: Any,
        response_model: Type[ModelT],
        temperature: float,
        normalize=None,
        max_retries: int = 2,
    ) -> ModelT:
        """
        Calls Gemini and enforces:
        - Return must contain a valid JSON object
        - JSON (after optional normalization) must validate against `response_model`
        - If it fails, we ask Gemini to repair and retry.
        """
        schema = get_response_schema(response_model)
        last_text: Optional[str] = None
        last_err: Optional[str] = None

        for attempt in range(max_retries + 1):
            try:
                response_text = await self._call_gemini(
                    model=model,
                    contents=contents,
                    schema=schema,
                    temperature=temperature,
                )
                last_text = response_text

                data = json.loads(extract_json_object(response_text))
                if not isinstance(data, dict):
                    raise GeminiError("Gemini returned JSON that is not an object")

                if normalize is not None:
                    data = normalize(data)
                return response_model.model_validate(data)

            except (json.JSONDecodeError, ValidationError, GeminiError) as e:
                last_err = str(e)
                logger.warning(
                    "Gemini JSON attempt %d/%d failed: %s",
                    attempt + 1,
                    max_retries + 1,
                    last_err,
                )

                if attempt >= max_retries:
                    break

                repair_prompt = self._build_repair_prompt(
                    error_message=last_err,
                    bad_output=last_text or "",
                    schema=schema,
                )

                # Keep any media parts, replace the prompt
                if isinstance(contents, list) and contents:
                    contents = [repair_prompt] + contents[1:]
                else:
                    contents = repair_prompt

        raise GeminiError(f"Gemini could not produce valid JSON after retries. Last error: {last_err}")

    async def _call_gemini(
        self,
        *,
        model: str,
        contents: Any,
        schema: Optional[Dict[str, Any]],
        temperature: float,
    ) -> str:
        """
        Single Gemini call. With a schema we *request* JSON via response_schema +
        application/json; without one we get plain text.
        """
        if schema is not None:
            config = types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=schema,
                temperature=temperature,
            )
        else:
            config = types.GenerateContentConfig(temperature=temperature)

        client = self.client

        def _sync_call() -> Any:
            return client.models.generate_content(model=model, contents=contents, config=config)

        resp = await asyncio.to_thread(_sync_call)

        text = getattr(resp, "text", None)
        if not text:
            raise GeminiError("Gemini returned empty response")
        logger.debug("Gemini raw response:\n%s", text)
        return text.strip()

    @staticmethod
    def _inline_image_part(image_data: bytes, mime_type: str) -> Dict[str, Any]:
        return {
            "inline_data": {
                "mime_type": mime_type,
                "data": base64.b64encode(image_data).decode("utf-8"),
            }
        }
