"""
Configuration management for InfoRx Interpreter.

Uses Pydantic Settings for type-safe environment variable handling.
All configuration is loaded from environment variables or .env file.
"""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    app_name: str = "InfoRx Interpreter"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # ==========================================================================
    # Server
    # ==========================================================================
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: str = "*"

    # ==========================================================================
    # Rate Limiting
    # ==========================================================================
    rate_limit_per_minute: int = 30

    # ==========================================================================
    # Input
    # ==========================================================================
    max_input_length: int = 5000

    # ==========================================================================
    # Sessions
    # ==========================================================================
    session_max_idle_minutes: int = 60

    # ==========================================================================
    # Interpretation capability
    # ==========================================================================
    interpretation_url: str = "http://localhost:8000/api/interpret"
    interpretation_timeout_seconds: float = 30.0

    # Language model behind the hosted /api/interpret capability
    gemini_api_key: SecretStr = SecretStr("")
    gemini_model: str = "gemini-2.0-flash"

    # ==========================================================================
    # Speech synthesis (ElevenLabs)
    # ==========================================================================
    elevenlabs_api_key: SecretStr = SecretStr("")
    elevenlabs_base_url: str = "https://api.elevenlabs.io"
    synthesis_timeout_seconds: float = 30.0

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @property
    def allowed_origins(self) -> list[str]:
        """List of allowed CORS origins."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def speech_configured(self) -> bool:
        """Whether an ElevenLabs key is available."""
        return bool(self.elevenlabs_api_key.get_secret_value())


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Convenience access
settings = get_settings()
