"""Send a finished recipe to the user's recipe manager."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from recipe_bridge.core.staging_store import StagingStore
from recipe_bridge.models.recipe import PublishResult, Recipe
from recipe_bridge.models.settings import UserSettings
from recipe_bridge.services.html_renderer import RecipeHtmlRenderer
from recipe_bridge.services.mealie_client import MealieClient
from recipe_bridge.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], MealieClient]


def staged_recipe_url(public_base_url: str, recipe_id: str) -> str:
    return f"{public_base_url.rstrip('/')}/api/recipe/{recipe_id}"


class RecipePublisher:
    """
    Renders a recipe and imports it into Mealie.

    With a public base URL the HTML is staged and Mealie is asked to scrape
    the one-time staged URL. Without one the HTML is posted directly.
    """

    def __init__(
        self,
        staging_store: StagingStore,
        renderer: Optional[RecipeHtmlRenderer] = None,
        public_base_url: Optional[str] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.staging_store = staging_store
        self.renderer = renderer or RecipeHtmlRenderer()
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.client_factory = client_factory or MealieClient

    async def publish(self, recipe: Recipe, user_settings: UserSettings) -> PublishResult:
        if not user_settings.mealieUrl:
            raise ConfigurationError("Recipe manager URL is not configured. Set it in the settings first.")
        client = self.client_factory(user_settings.mealieUrl, user_settings.mealieApiToken)

        html = await self.renderer.render(recipe)

        staged_url = None
        if self.public_base_url:
            recipe_id = self.staging_store.put(html)
            staged_url = staged_recipe_url(self.public_base_url, recipe_id)
            slug = await client.import_from_url(staged_url)
        else:
            slug = await client.import_from_html(html)

        logger.info(
            "Recipe imported into recipe manager",
            extra={"slug": slug, "staged": staged_url is not None},
        )
        return PublishResult(
            slug=slug,
            recipeUrl=client.recipe_page_url(slug),
            stagedUrl=staged_url,
        )
