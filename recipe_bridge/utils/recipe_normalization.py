"""Normalize model / JSON-LD recipe output to match the Recipe model."""

import logging
import re
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

_KEY_ALIASES = {
    "title": "name",
    "recipeName": "name",
    "recipe_name": "name",
    "recipeIngredient": "ingredients",
    "recipeInstructions": "instructions",
    "steps": "instructions",
    "servings": "recipeYield",
    "yield": "recipeYield",
    "prep_time": "prepTime",
    "cook_time": "cookTime",
    "total_time": "totalTime",
    "category": "recipeCategory",
    "cuisine": "recipeCuisine",
    "imageUrl": "image",
}

_TEXT_FIELDS = (
    "name", "description", "prepTime", "cookTime", "totalTime",
    "recipeYield", "recipeCategory", "recipeCuisine",
)
_KNOWN_FIELDS = set(_TEXT_FIELDS) | {"ingredients", "instructions", "image"}

_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")


def normalize_recipe_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize recipe data from Gemini / JSON-LD to match the Recipe model.

    Handles:
    - Wrapped responses (e.g. ``{"recipe": {...}}``)
    - Alternate keys (``title``, ``recipeIngredient``, ``servings`` ...)
    - Numbers / lists where a single string is expected
    - HowToStep / HowToSection instruction objects
    - Multi-line ingredient / instruction strings
    - Image objects and lists (first usable URL wins)
    - Unknown keys (dropped)
    """
    data = _unwrap(data)

    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        target = _KEY_ALIASES.get(key, key)
        if target in _KNOWN_FIELDS and normalized.get(target) in (None, "", []):
            normalized[target] = value

    for key in _TEXT_FIELDS:
        normalized[key] = _as_text(normalized.get(key))

    normalized["ingredients"] = _as_lines(normalized.get("ingredients"))
    normalized["instructions"] = _as_lines(normalized.get("instructions"))
    normalized["image"] = _first_image(normalized.get("image"))

    return normalized


def _unwrap(data: Dict[str, Any]) -> Dict[str, Any]:
    if len(data) == 1:
        key, inner = next(iter(data.items()))
        if isinstance(inner, dict) and "recipe" in key.lower():
            logger.info(f"Unwrapping nested JSON response from key: {key}")
            return inner
    return data


def _as_text(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, list):
        parts = [str(v).strip() for v in value if v is not None and str(v).strip()]
        return parts[0] if parts else None
    if isinstance(value, dict):
        return _as_text(value.get("text") or value.get("name"))
    text = str(value).strip()
    return text or None


def _as_lines(value: Any) -> List[str]:
    """Flatten strings, lists, HowToStep and HowToSection objects into lines."""
    lines: List[str] = []

    def add(item: Any) -> None:
        if item is None:
            return
        if isinstance(item, list):
            for sub in item:
                add(sub)
        elif isinstance(item, dict):
            if "itemListElement" in item:
                add(item["itemListElement"])
            else:
                add(item.get("text") or item.get("name"))
        else:
            for line in str(item).splitlines():
                line = _LIST_MARKER.sub("", line).strip()
                if line:
                    lines.append(line)

    add(value)
    return lines


def _first_image(value: Any) -> Any:
    if isinstance(value, list):
        for item in value:
            found = _first_image(item)
            if found:
                return found
        return None
    if isinstance(value, dict):
        return _first_image(value.get("url") or value.get("contentUrl"))
    if isinstance(value, str):
        value = value.strip()
        if value.startswith(("http://", "https://", "data:image/")):
            return value
    return None
