"""Input validation utilities."""

import ipaddress
from urllib.parse import urlparse

from recipe_bridge.utils.exceptions import ValidationError

MAX_TEXT_LENGTH = 50_000

YOUTUBE_HOSTS = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "youtu.be",
}


def validate_url(url: str) -> str:
    """
    Validate and sanitize a recipe page URL to prevent SSRF attacks.

    Args:
        url: URL to validate

    Returns:
        Validated URL string

    Raises:
        ValidationError: If URL is invalid or potentially dangerous
    """
    if not url or not isinstance(url, str):
        raise ValidationError("URL must be a non-empty string")

    url = url.strip()

    try:
        parsed = urlparse(url)
    except Exception as e:
        raise ValidationError(f"Invalid URL format: {str(e)}")

    if parsed.scheme not in ("http", "https"):
        raise ValidationError("URL must use http or https protocol")

    hostname = parsed.hostname
    if not hostname:
        raise ValidationError("URL must have a valid hostname")

    if hostname.lower() in {"localhost", "0.0.0.0"}:
        raise ValidationError("URL cannot point to localhost or private IPs")

    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        # Not an IP literal
        return url

    if address.is_private or address.is_loopback or address.is_link_local or address.is_reserved:
        raise ValidationError("URL cannot point to localhost or private IPs")

    return url


def is_youtube_url(url: str) -> bool:
    try:
        hostname = urlparse(url.strip()).hostname or ""
    except ValueError:
        return False
    return hostname.lower() in YOUTUBE_HOSTS


def validate_youtube_url(url: str) -> str:
    """Validate a YouTube video link."""
    url = validate_url(url)
    if not is_youtube_url(url):
        raise ValidationError("URL is not a YouTube link")
    return url


def validate_recipe_text(text: str) -> str:
    """Validate pasted recipe text."""
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Recipe text cannot be empty")

    text = text.strip()
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"Recipe text cannot exceed {MAX_TEXT_LENGTH} characters")
    return text


def normalize_base_url(url: str) -> str:
    """
    Validate the recipe manager base URL and strip trailing slashes.

    Unlike `validate_url`, private and local hosts are allowed: the recipe
    manager is usually self-hosted on the user's own network.
    """
    if not url or not isinstance(url, str):
        raise ValidationError("Recipe manager URL is not configured")

    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValidationError("Recipe manager URL must be an http(s) URL with a hostname")

    return url.rstrip("/")
