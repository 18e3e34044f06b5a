"""Tests for the Mealie API client."""

import asyncio
import json

import httpx
import pytest

from recipe_bridge.services.mealie_client import MealieClient
from recipe_bridge.utils.exceptions import RecipeManagerError, ValidationError


def make_client(handler, **kwargs):
    return MealieClient(
        "http://mealie.local:9000/",
        "secret-token",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_import_from_url_posts_url_and_returns_slug():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json="tarte-aux-pommes")

    slug = asyncio.run(make_client(handler).import_from_url("https://bridge.example.com/api/recipe/abc"))

    assert slug == "tarte-aux-pommes"
    assert seen["url"] == "http://mealie.local:9000/api/recipes/create/url"
    assert seen["auth"] == "Bearer secret-token"
    assert seen["body"] == {"url": "https://bridge.example.com/api/recipe/abc", "includeTags": False}


def test_import_from_html_posts_data():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json="soupe")

    slug = asyncio.run(make_client(handler).import_from_html("<html></html>"))

    assert slug == "soupe"
    assert seen["path"] == "/api/recipes/create/html-or-json"
    assert seen["body"] == {"data": "<html></html>", "includeTags": False}


def test_slug_in_object_response():
    client = make_client(lambda request: httpx.Response(201, json={"slug": "gratin"}))
    assert asyncio.run(client.import_from_url("https://example.com/r")) == "gratin"


def test_missing_slug_is_error():
    client = make_client(lambda request: httpx.Response(201, json={}))
    with pytest.raises(RecipeManagerError):
        asyncio.run(client.import_from_url("https://example.com/r"))


def test_no_token_sends_no_authorization():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(201, json="slug")

    client = MealieClient("http://mealie.local", "", transport=httpx.MockTransport(handler))
    asyncio.run(client.import_from_url("https://example.com/r"))
    assert seen["auth"] is None


def test_unauthorized_is_reported():
    client = make_client(lambda request: httpx.Response(401, json={"detail": "Not authenticated"}))
    with pytest.raises(RecipeManagerError) as exc_info:
        asyncio.run(client.import_from_url("https://example.com/r"))
    assert exc_info.value.status_code == 401
    assert "token" in str(exc_info.value)


def test_server_error_carries_status():
    client = make_client(lambda request: httpx.Response(500, text="scrape failed"))
    with pytest.raises(RecipeManagerError) as exc_info:
        asyncio.run(client.import_from_url("https://example.com/r"))
    assert exc_info.value.status_code == 500
    assert "scrape failed" in str(exc_info.value)


def test_connection_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RecipeManagerError) as exc_info:
        asyncio.run(make_client(handler).import_from_html("<html></html>"))
    assert exc_info.value.status_code is None


def test_recipe_page_url():
    client = MealieClient("http://mealie.local:9000/", group_slug="family")
    assert client.recipe_page_url("tarte") == "http://mealie.local:9000/g/family/r/tarte"


def test_recipe_page_url_default_group():
    assert MealieClient("https://mealie.example.com").recipe_page_url("tarte") == (
        "https://mealie.example.com/g/home/r/tarte"
    )


@pytest.mark.parametrize("base_url", ["", "mealie.local", "ftp://mealie.local"])
def test_invalid_base_url(base_url):
    with pytest.raises(ValidationError):
        MealieClient(base_url)
