"""Render a Recipe as schema.org-compliant HTML for recipe-manager import."""

from __future__ import annotations

import html
import json
import logging
import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from recipe_bridge.config import settings
from recipe_bridge.models.recipe import Recipe
from recipe_bridge.services.gemini_service import GeminiService
from recipe_bridge.services.page_fetcher import extract_recipe_json_ld
from recipe_bridge.utils.gemini_helpers import strip_code_fences

logger = logging.getLogger(__name__)

_ISO_DURATION = re.compile(r"^P(?=\d|T\d)(?:\d+D)?(?:T(?=\d)(?:\d+H)?(?:\d+M)?(?:\d+S)?)?$")
_DURATION_PART = re.compile(r"(\d+(?:[.,]\d+)?)\s*([^\W\d_]*)")

_HOUR_UNITS = {
    "h", "hr", "hrs", "hour", "hours", "heure", "heures",
    "std", "stunde", "stunden", "hora", "horas", "ora", "ore",
}
_MINUTE_UNITS = {
    "m", "min", "mins", "minute", "minutes", "minuten",
    "minuto", "minutos", "minuti",
}


def to_iso8601_duration(text: Optional[str]) -> Optional[str]:
    """
    Convert '1 hour 15 minutes', '1h30', '45 min' or '20' (minutes) to an
    ISO 8601 duration such as 'PT1H15M'. Returns None when unparseable.
    """
    if not text:
        return None
    t = text.strip()
    if _ISO_DURATION.match(t):
        return t
    if t.isdigit():
        return to_iso8601_duration(f"{t} min")

    total_minutes = 0.0
    matched = False
    previous_was_hours = False
    for value, unit in _DURATION_PART.findall(t.lower()):
        amount = float(value.replace(",", "."))
        if unit in _HOUR_UNITS:
            total_minutes += amount * 60
            previous_was_hours = True
            matched = True
        elif unit in _MINUTE_UNITS or (not unit and previous_was_hours):
            # The bare number in "1h30" is minutes
            total_minutes += amount
            previous_was_hours = False
            matched = True

    if not matched:
        return None

    hours, minutes = divmod(int(round(total_minutes)), 60)
    duration = "PT"
    if hours:
        duration += f"{hours}H"
    if minutes or not hours:
        duration += f"{minutes}M"
    return duration


def build_recipe_json_ld(recipe: Recipe) -> Dict[str, Any]:
    """schema.org Recipe JSON-LD for `recipe`, omitting empty fields."""
    data: Dict[str, Any] = {
        "@context": "https://schema.org",
        "@type": "Recipe",
        "name": recipe.name,
    }
    if recipe.description:
        data["description"] = recipe.description
    if recipe.image:
        data["image"] = [recipe.image]

    for key in ("prepTime", "cookTime", "totalTime"):
        value = getattr(recipe, key)
        if value:
            data[key] = to_iso8601_duration(value) or value

    for key in ("recipeYield", "recipeCategory", "recipeCuisine"):
        value = getattr(recipe, key)
        if value:
            data[key] = value

    data["recipeIngredient"] = list(recipe.ingredients)
    data["recipeInstructions"] = [
        {"@type": "HowToStep", "position": i, "text": step}
        for i, step in enumerate(recipe.instructions, start=1)
    ]
    return data


def render_recipe_template(recipe: Recipe) -> str:
    """Deterministic HTML page carrying the recipe's JSON-LD."""
    json_ld = json.dumps(build_recipe_json_ld(recipe), ensure_ascii=False, indent=2)
    # "<" cannot appear raw inside a <script> element
    json_ld = json_ld.replace("<", "\\u003c")
    esc = html.escape

    parts: List[str] = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{esc(recipe.name)}</title>",
        f'<script type="application/ld+json">\n{json_ld}\n</script>',
        "</head>",
        "<body>",
        "<article>",
        f"<h1>{esc(recipe.name)}</h1>",
    ]
    if recipe.description:
        parts.append(f"<p>{esc(recipe.description)}</p>")
    if recipe.image:
        parts.append(f'<img src="{esc(recipe.image)}" alt="{esc(recipe.name)}">')

    details = [
        (label, getattr(recipe, key))
        for label, key in (
            ("Prep time", "prepTime"),
            ("Cook time", "cookTime"),
            ("Total time", "totalTime"),
            ("Yield", "recipeYield"),
            ("Category", "recipeCategory"),
            ("Cuisine", "recipeCuisine"),
        )
        if getattr(recipe, key)
    ]
    if details:
        parts.append("<ul>")
        parts.extend(f"<li>{esc(label)}: {esc(value)}</li>" for label, value in details)
        parts.append("</ul>")

    parts.append("<h2>Ingredients</h2>")
    parts.append("<ul>")
    parts.extend(f"<li>{esc(line)}</li>" for line in recipe.ingredients)
    parts.append("</ul>")
    parts.append("<h2>Instructions</h2>")
    parts.append("<ol>")
    parts.extend(f"<li>{esc(step)}</li>" for step in recipe.instructions)
    parts.append("</ol>")
    parts.extend(["</article>", "</body>", "</html>"])
    return "\n".join(parts) + "\n"


def has_recipe_json_ld(document: str) -> bool:
    return bool(extract_recipe_json_ld(BeautifulSoup(document, "html.parser")))


class RecipeHtmlRenderer:
    """
    Renders recipes to HTML.

    In "llm" mode Gemini writes the page; output without a schema.org Recipe
    JSON-LD block is replaced by the template rendering. In "template" mode
    Gemini is not called.
    """

    def __init__(self, gemini_service: Optional[GeminiService] = None, mode: Optional[str] = None):
        self.gemini_service = gemini_service or GeminiService()
        self.mode = (mode or settings.recipe_html_mode).lower()

    async def render(self, recipe: Recipe) -> str:
        if self.mode == "template":
            return render_recipe_template(recipe)

        document = strip_code_fences(await self.gemini_service.generate_recipe_html(recipe))
        if has_recipe_json_ld(document):
            return document

        logger.warning(
            "Generated HTML has no schema.org Recipe JSON-LD, using template rendering",
            extra={"recipe_name": recipe.name},
        )
        return render_recipe_template(recipe)
