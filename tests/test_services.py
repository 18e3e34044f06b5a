"""Tests for service modules."""

import asyncio
import base64
import json
from types import SimpleNamespace

import httpx
import pytest

from recipe_bridge.models.recipe import ImageTextExtraction, Recipe, RecipeSourceType
from recipe_bridge.services.gemini_service import GeminiService
from recipe_bridge.services.image_service import ImageService
from recipe_bridge.services.page_fetcher import PageFetcher
from recipe_bridge.services.recipe_extractor import RecipeExtractor
from recipe_bridge.utils.exceptions import GeminiError, ImageProcessingError, ScrapingError, ValidationError
from recipe_bridge.utils.gemini_helpers import clean_schema_for_gemini, extract_json_object, strip_code_fences
from recipe_bridge.utils.recipe_normalization import normalize_recipe_data
from recipe_bridge.utils.validators import (
    normalize_base_url,
    validate_recipe_text,
    validate_url,
    validate_youtube_url,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64

RECIPE_PAGE = """
<html>
<head>
<title>Best Pancakes</title>
<script type="application/ld+json">
{"@context": "https://schema.org", "@graph": [
  {"@type": "WebPage", "name": "Best Pancakes"},
  {"@type": "Recipe", "name": "Pancakes", "image": {"url": "https://cdn.example.com/p.jpg"}}
]}
</script>
</head>
<body>
<nav>Home | Recipes | About</nav>
<article>
<h1>Pancakes</h1>
<p>Fluffy pancakes for a lazy Sunday morning, ready in twenty minutes with pantry staples.</p>
<ul><li>250 g flour</li><li>2 eggs</li><li>500 ml milk</li></ul>
</article>
</body>
</html>
"""


def to_data_uri(image_bytes: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"


# Validators


def test_validate_url_valid():
    assert validate_url("https://example.com/recipe") == "https://example.com/recipe"
    assert validate_url("  http://example.com/recipe ") == "http://example.com/recipe"


@pytest.mark.parametrize(
    "url",
    ["ftp://example.com", "http://localhost/recipe", "http://127.0.0.1/", "http://192.168.1.20/", "", "https://"],
)
def test_validate_url_rejects(url):
    with pytest.raises(ValidationError):
        validate_url(url)


def test_validate_youtube_url():
    assert validate_youtube_url("https://youtu.be/abc123") == "https://youtu.be/abc123"
    with pytest.raises(ValidationError):
        validate_youtube_url("https://vimeo.com/123")


def test_validate_recipe_text():
    assert validate_recipe_text("  2 eggs  ") == "2 eggs"
    with pytest.raises(ValidationError):
        validate_recipe_text("   ")
    with pytest.raises(ValidationError):
        validate_recipe_text("x" * 50_001)


def test_normalize_base_url_allows_private_hosts():
    assert normalize_base_url("http://192.168.1.20:9000/") == "http://192.168.1.20:9000"
    with pytest.raises(ValidationError):
        normalize_base_url("")


# Gemini helpers


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences("plain") == "plain"


def test_extract_json_object_from_wrapped_text():
    assert extract_json_object('Here you go: {"name": "Soup"} enjoy') == '{"name": "Soup"}'


def test_clean_schema_for_gemini():
    schema = clean_schema_for_gemini(Recipe.model_json_schema())
    assert "title" not in schema
    assert schema["properties"]["description"]["nullable"] is True
    assert schema["properties"]["description"]["type"] == "string"
    assert "name" in schema["properties"]
    assert "anyOf" not in json.dumps(schema)


# Normalization


def test_normalize_recipe_data_aliases_and_howto_steps():
    data = normalize_recipe_data(
        {
            "recipe": {
                "title": "Soup",
                "recipeIngredient": "1 onion\n- 2 carrots",
                "recipeInstructions": [
                    {"@type": "HowToSection", "itemListElement": [{"@type": "HowToStep", "text": "Chop."}]},
                    {"@type": "HowToStep", "text": "Simmer."},
                ],
                "servings": 4,
                "image": [{"url": "https://cdn.example.com/soup.jpg"}],
                "rating": 5,
            }
        }
    )
    assert data["name"] == "Soup"
    assert data["ingredients"] == ["1 onion", "2 carrots"]
    assert data["instructions"] == ["Chop.", "Simmer."]
    assert data["recipeYield"] == "4"
    assert data["image"] == "https://cdn.example.com/soup.jpg"
    assert "rating" not in data


def test_recipe_drops_blank_lines():
    recipe = Recipe(name=" Soup ", ingredients=["1 onion", " ", ""], instructions=["Chop."])
    assert recipe.name == "Soup"
    assert recipe.ingredients == ["1 onion"]


# Images


def test_decode_data_uri():
    uri = to_data_uri(PNG_BYTES, "image/png")
    content, mime_type = ImageService.decode_data_uri(uri)
    assert content == PNG_BYTES
    assert mime_type == "image/png"


@pytest.mark.parametrize(
    "uri",
    ["not a data uri", "data:image/png;base64,%%%notbase64", "data:image/gif;base64," + base64.b64encode(b"GIF89a").decode()],
)
def test_decode_data_uri_rejects(uri):
    with pytest.raises(ImageProcessingError):
        ImageService.decode_data_uri(uri)


def test_validate_image_rejects_empty():
    with pytest.raises(ImageProcessingError):
        ImageService.validate_image(b"", "empty.png")


def test_small_images_are_not_reencoded():
    assert ImageService.optimize_for_vision(PNG_BYTES, "image/png") == (PNG_BYTES, "image/png")


# Page fetching


def test_page_fetcher_parse():
    page = PageFetcher().parse("https://example.com/pancakes", RECIPE_PAGE)
    assert page.title == "Best Pancakes"
    assert page.json_ld[0]["name"] == "Pancakes"
    assert "250 g flour" in page.markdown
    assert "Home | Recipes" not in page.markdown
    assert "EMBEDDED RECIPE JSON-LD" in page.as_prompt_text()


def test_page_fetcher_fetch_http_error():
    fetcher = PageFetcher(transport=httpx.MockTransport(lambda request: httpx.Response(403)))
    with pytest.raises(ScrapingError):
        asyncio.run(fetcher.fetch("https://example.com/pancakes"))


def test_page_fetcher_fetch():
    fetcher = PageFetcher(transport=httpx.MockTransport(lambda request: httpx.Response(200, text=RECIPE_PAGE)))
    page = asyncio.run(fetcher.fetch("https://example.com/pancakes"))
    assert page.url == "https://example.com/pancakes"


def test_page_fetcher_follows_public_redirect():
    def handler(request):
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": "https://www.example.com/pancakes"})
        return httpx.Response(200, text=RECIPE_PAGE)

    fetcher = PageFetcher(transport=httpx.MockTransport(handler))
    page = asyncio.run(fetcher.fetch("https://example.com/old"))
    assert page.title == "Best Pancakes"


def test_page_fetcher_blocks_redirect_to_private_host():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(302, headers={"Location": "http://169.254.169.254/latest/meta-data/"})

    fetcher = PageFetcher(transport=httpx.MockTransport(handler))
    with pytest.raises(ScrapingError):
        asyncio.run(fetcher.fetch("https://example.com/pancakes"))
    assert seen == ["https://example.com/pancakes"]


# Gemini service


class FakeModels:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def generate_content(self, *, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        return SimpleNamespace(text=self.responses.pop(0))


def make_gemini(responses):
    service = GeminiService()
    models = FakeModels(responses)
    service._client = SimpleNamespace(models=models)
    return service, models


def test_process_recipe_normalizes_output():
    service, models = make_gemini(['```json\n{"title": "Soupe", "recipeIngredient": ["1 oignon"]}\n```'])
    recipe = asyncio.run(
        service.process_recipe(RecipeSourceType.TEXT, "1 onion", target_language="fr", target_system="metric")
    )
    assert recipe.name == "Soupe"
    assert recipe.ingredients == ["1 oignon"]
    assert models.calls[0]["config"].response_mime_type == "application/json"


def test_process_recipe_repairs_invalid_json():
    service, models = make_gemini(["not json at all", '{"name": "Soupe"}'])
    recipe = asyncio.run(
        service.process_recipe(RecipeSourceType.TEXT, "soup", target_language="fr", target_system="metric")
    )
    assert recipe.name == "Soupe"
    assert len(models.calls) == 2


def test_process_recipe_gives_up_after_retries():
    service, models = make_gemini(["{}", "{}", "{}"])
    with pytest.raises(GeminiError):
        asyncio.run(
            service.process_recipe(RecipeSourceType.TEXT, "soup", target_language="fr", target_system="metric")
        )
    assert len(models.calls) == 3


def test_process_youtube_attaches_video():
    service, models = make_gemini(['{"name": "Ramen"}'])
    asyncio.run(
        service.process_recipe(
            RecipeSourceType.YOUTUBE, "https://youtu.be/abc123", target_language="en", target_system="us"
        )
    )
    assert models.calls[0]["contents"][1] == {"file_data": {"file_uri": "https://youtu.be/abc123"}}


def test_missing_api_key(monkeypatch):
    from recipe_bridge.config import settings

    monkeypatch.setattr(settings, "gemini_api_key", "")
    with pytest.raises(GeminiError):
        GeminiService().client


# Recipe extractor


class FakeGeminiService:
    def __init__(self):
        self.calls = []

    async def process_recipe(self, source_type, source, *, target_language, target_system, image_data=None, mime_type=None):
        self.calls.append((source_type, source, mime_type))
        return Recipe(name="Pancakes")

    async def extract_text_from_image(self, image_data, mime_type, *, target_language=None, target_system=None):
        return ImageTextExtraction(extractedText="2 eggs")


def test_extractor_url_keeps_page_image():
    gemini = FakeGeminiService()
    fetcher = PageFetcher(transport=httpx.MockTransport(lambda request: httpx.Response(200, text=RECIPE_PAGE)))
    extractor = RecipeExtractor(gemini_service=gemini, page_fetcher=fetcher)

    recipe = asyncio.run(
        extractor.extract(RecipeSourceType.URL, "https://example.com/pancakes", target_language="fr", target_system="metric")
    )
    assert recipe.image == "https://cdn.example.com/p.jpg"
    assert "250 g flour" in gemini.calls[0][1]


def test_extractor_image_data_uri():
    gemini = FakeGeminiService()
    extractor = RecipeExtractor(gemini_service=gemini)
    uri = to_data_uri(PNG_BYTES, "image/png")

    asyncio.run(extractor.extract(RecipeSourceType.IMAGE, uri, target_language="fr", target_system="metric"))
    assert gemini.calls[0][0] == RecipeSourceType.IMAGE
    assert gemini.calls[0][2] == "image/png"


def test_extractor_rejects_private_url():
    extractor = RecipeExtractor(gemini_service=FakeGeminiService())
    with pytest.raises(ValidationError):
        asyncio.run(
            extractor.extract(RecipeSourceType.URL, "http://10.0.0.1/recipe", target_language="fr", target_system="metric")
        )


def test_extractor_rejects_non_youtube_video():
    extractor = RecipeExtractor(gemini_service=FakeGeminiService())
    with pytest.raises(ValidationError):
        asyncio.run(
            extractor.extract(RecipeSourceType.YOUTUBE, "https://example.com/v", target_language="fr", target_system="metric")
        )
