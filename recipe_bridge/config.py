"""Application configuration using pydantic-settings."""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys (checked when the first Gemini call is made)
    gemini_api_key: str = ""

    # Server
    port: int = 8080
    host: str = "0.0.0.0"
    public_base_url: Optional[str] = None  # URL the recipe manager uses to reach us

    # Logging
    log_level: str = "INFO"

    # HTTP Settings
    http_timeout: int = 30  # seconds
    max_request_size: int = 10 * 1024 * 1024  # 10MB

    # Rate Limiting
    rate_limit_per_hour: int = 100

    # CORS
    cors_origins: str = "*"  # Comma-separated origins or "*" for all

    # Gemini Settings
    gemini_model: str = "gemini-2.5-flash"
    gemini_vision_model: str = "gemini-2.5-pro"
    gemini_temperature: float = 0.2
    recipe_html_mode: str = "llm"  # "llm" or "template"

    # Staging store
    staging_ttl_seconds: float = 5 * 60
    staging_sweep_interval_seconds: float = 60

    # User settings persistence
    settings_file: str = "settings.json"

    # Recipe manager (Mealie)
    mealie_group_slug: str = "home"
    mealie_timeout: int = 60  # Mealie scrapes the staged page before answering

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Get list of CORS origins."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]


# Global settings instance
settings = Settings()
