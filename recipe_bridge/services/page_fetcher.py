"""Fetch a recipe web page and reduce it to prompt-sized text."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import httpx
from bs4 import BeautifulSoup
from markdownify import markdownify

from recipe_bridge.config import settings
from recipe_bridge.utils.exceptions import ScrapingError, ValidationError
from recipe_bridge.utils.validators import validate_url

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/123.0.0.0 Safari/537.36"
)

# Gemini handles long inputs, but beyond this the page is mostly comments/ads.
MAX_MARKDOWN_CHARS = 40_000

_COMMON_SELECTORS = (
    "[itemtype*='schema.org/Recipe']",
    ".wprm-recipe-container",
    ".tasty-recipes",
    ".recipe-content",
    "#recipe",
    "main",
    "article",
    "[role='main']",
    ".entry-content",
    ".post-content",
    "#content",
    ".content",
)
_SKIP_KEYWORDS = ("nav", "header", "footer", "sidebar", "menu", "widget", "comment")


def find_main_content(soup: BeautifulSoup) -> Tuple[Any, str]:
    """
    Find the element most likely to hold the recipe.

    Returns the element and a description of how it was found.
    """
    for sel in _COMMON_SELECTORS:
        element = soup.select_one(sel)
        if element and len(element.get_text(strip=True)) > 100:
            return element, sel

    # Fallback: the largest text block that isn't page chrome
    best_element = None
    max_text_length = 0
    for div in soup.find_all(["div", "section", "article", "main"]):
        classes = " ".join(div.get("class", [])).lower()
        id_attr = (div.get("id") or "").lower()
        if any(k in classes or k in id_attr for k in _SKIP_KEYWORDS):
            continue
        text_length = len(div.get_text(strip=True))
        if text_length > max_text_length:
            max_text_length = text_length
            best_element = div

    if best_element is not None and max_text_length > 200:
        return best_element, "auto-detected (largest content block)"

    body = soup.find("body")
    if body:
        return body, "body (fallback)"
    return soup, "entire document (fallback)"


def extract_recipe_json_ld(soup: BeautifulSoup) -> List[dict]:
    """Collect schema.org Recipe objects already embedded in the page."""
    recipes: List[dict] = []

    def collect(node: Any) -> None:
        if isinstance(node, list):
            for item in node:
                collect(item)
        elif isinstance(node, dict):
            node_type = node.get("@type")
            types = node_type if isinstance(node_type, list) else [node_type]
            if "Recipe" in types:
                recipes.append(node)
            collect(node.get("@graph"))

    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            collect(json.loads(script.string or ""))
        except json.JSONDecodeError:
            continue
    return recipes


def clean_text(s: str) -> str:
    s = (s or "").strip()
    return re.sub(r"\n{3,}", "\n\n", s)


@dataclass
class FetchedPage:
    url: str
    title: str
    markdown: str
    json_ld: List[dict] = field(default_factory=list)

    def as_prompt_text(self) -> str:
        parts = [f"SOURCE URL:\n{self.url}"]
        if self.title:
            parts.append(f"PAGE TITLE:\n{self.title}")
        if self.json_ld:
            parts.append("EMBEDDED RECIPE JSON-LD:\n" + json.dumps(self.json_ld, ensure_ascii=False)[:MAX_MARKDOWN_CHARS])
        if self.markdown:
            parts.append(f"PAGE CONTENT:\n{self.markdown}")
        return clean_text("\n\n".join(parts))


class PageFetcher:
    """Downloads a page and converts its main content to Markdown."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    @staticmethod
    async def _check_redirect_target(request: httpx.Request) -> None:
        """Validate every hop, redirects included, before it is sent."""
        try:
            validate_url(str(request.url))
        except ValidationError as e:
            raise ScrapingError(f"Refusing to fetch {request.url}: {e}") from e

    async def fetch(self, url: str) -> FetchedPage:
        logger.info(f"Fetching recipe page: {url}")
        try:
            async with httpx.AsyncClient(
                timeout=settings.http_timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                event_hooks={"request": [self._check_redirect_target]},
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ScrapingError(f"Recipe page returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ScrapingError(f"Failed to fetch recipe page: {e}") from e

        return self.parse(url, response.text)

    def parse(self, url: str, html: str) -> FetchedPage:
        soup = BeautifulSoup(html, "html.parser")
        json_ld = extract_recipe_json_ld(soup)
        title = soup.title.get_text(strip=True) if soup.title else ""

        for tag in soup(["script", "style", "noscript", "iframe", "svg"]):
            tag.decompose()

        main_element, used_selector = find_main_content(soup)
        logger.info(f"Content selector used: {used_selector}")

        markdown = clean_text(markdownify(str(main_element)))[:MAX_MARKDOWN_CHARS]
        if not markdown and not json_ld:
            raise ScrapingError("Recipe page has no readable content")

        return FetchedPage(url=url, title=title, markdown=markdown, json_ld=json_ld)
