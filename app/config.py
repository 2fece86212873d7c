"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable loading and sensible defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = "grounded-chat-proxy"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: str = ""

    # Secret key injected into upstream calls; empty means "not configured".
    gemini_api_key: str = ""
    gemini_api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_chat_model: str = "gemini-2.5-flash-preview-09-2025"
    gemini_image_model: str = "gemini-2.5-flash-image-preview"
    upstream_timeout: float = 60.0

    retry_max_attempts: int = 5
    retry_base_delay: float = 1.0


settings = Settings()
