"""Client for the Mealie recipe manager API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from recipe_bridge.config import settings
from recipe_bridge.utils.exceptions import RecipeManagerError
from recipe_bridge.utils.validators import normalize_base_url

logger = logging.getLogger(__name__)

CREATE_FROM_URL_PATH = "/api/recipes/create/url"
CREATE_FROM_HTML_PATH = "/api/recipes/create/html-or-json"


class MealieClient:
    """Creates recipes in a Mealie instance."""

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        *,
        group_slug: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = normalize_base_url(base_url)
        self.api_token = api_token or None
        self.group_slug = group_slug or settings.mealie_group_slug
        self.timeout = timeout if timeout is not None else settings.mealie_timeout
        self._transport = transport

    async def import_from_url(self, url: str, include_tags: bool = False) -> str:
        """Ask Mealie to scrape `url`. Returns the new recipe's slug."""
        logger.info("Asking recipe manager to import URL", extra={"manager": self.base_url, "url": url})
        return await self._create(CREATE_FROM_URL_PATH, {"url": url, "includeTags": include_tags})

    async def import_from_html(self, html: str, include_tags: bool = False) -> str:
        """Send the HTML itself. Returns the new recipe's slug."""
        logger.info("Sending recipe HTML to recipe manager", extra={"manager": self.base_url, "size": len(html)})
        return await self._create(CREATE_FROM_HTML_PATH, {"data": html, "includeTags": include_tags})

    def recipe_page_url(self, slug: str) -> str:
        return f"{self.base_url}/g/{self.group_slug}/r/{slug}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def _create(self, path: str, payload: Dict[str, Any]) -> str:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Recipe manager request to {path} failed: {e}")
            raise RecipeManagerError(f"Could not reach the recipe manager: {e}") from e

        if response.status_code in (401, 403):
            raise RecipeManagerError(
                "Recipe manager rejected the API token", status_code=response.status_code
            )
        if response.is_error:
            detail = response.text[:500]
            logger.error(
                f"Recipe manager returned HTTP {response.status_code}",
                extra={"path": path, "body": detail},
            )
            raise RecipeManagerError(
                f"Recipe manager returned HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        return self._parse_slug(response)

    @staticmethod
    def _parse_slug(response: httpx.Response) -> str:
        # Mealie answers with the slug as a bare JSON string
        try:
            body = response.json()
        except ValueError:
            body = response.text.strip().strip('"')

        if isinstance(body, dict):
            body = body.get("slug")
        if not isinstance(body, str) or not body:
            raise RecipeManagerError("Recipe manager response did not contain a recipe slug")
        return body
