"""
Centralized Configuration for Mekor Halacha
===========================================

Single source of truth for all environment variables and settings.
Uses Pydantic for validation and type safety.
"""

from typing import List, Optional, Union
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Sefaria cannot always be reached directly from the deployment network, so
# every text request goes through these forwarding relays, in order.
DEFAULT_RELAYS = [
    "https://api.allorigins.win/raw?url={encoded_url}",
    "https://cors.eu.org/{bare_url}",
    "https://corsproxy.io/?{encoded_url}",
    "https://thingproxy.freeboard.io/fetch/{url}",
]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and .env file.

    Environment variables take precedence over .env file values.
    """

    # ==========================================
    #  API KEYS
    # ==========================================

    anthropic_api_key: str = Field(
        "",
        description="Claude API key from anthropic.com",
    )

    # ==========================================
    #  APPLICATION SETTINGS
    # ==========================================

    app_name: str = "Mekor Halacha"
    app_version: str = "1.0.0"
    environment: str = "production"

    # ==========================================
    #  SERVER SETTINGS
    # ==========================================

    host: str = "0.0.0.0"
    port: int = 8000

    # CORS origins (comma-separated)
    cors_origins: Union[List[str], str] = "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173"

    # ==========================================
    #  SEFARIA API
    # ==========================================

    sefaria_base_url: str = "https://www.sefaria.org"

    # Relay templates: {url}, {encoded_url}, {bare_url}
    sefaria_relays: Union[List[str], str] = Field(default_factory=lambda: list(DEFAULT_RELAYS))
    relay_timeout: float = 10.0

    # ==========================================
    #  CLAUDE
    # ==========================================

    claude_model: str = "claude-sonnet-4-5-20250929"
    claude_max_tokens: int = 8192
    claude_temperature: float = 0.0

    # ==========================================
    #  PIPELINE SETTINGS
    # ==========================================

    # Result budgets when the user asks for "unlimited"
    unlimited_precise_limit: int = 15
    unlimited_broad_limit: int = 30
    unlimited_corpus_limit: int = 15

    # Advanced (dispute) search always asks for this many candidates
    dispute_candidate_limit: int = 20

    # Custom book map-reduce
    corpus_chunk_size: int = 10000
    corpus_chunk_overlap: int = 500
    max_quotes_for_reducer: int = 30

    # Rabbi chat sessions kept in memory; least recently used are evicted
    max_chat_sessions: int = 200

    # ==========================================
    #  LOGGING
    # ==========================================

    log_level: str = "INFO"
    log_dir: Path = Path(__file__).parent / "logs"

    # ==========================================
    #  TESTING/DEVELOPMENT
    # ==========================================

    dev_mode: bool = False

    # ==========================================
    #  VALIDATORS
    # ==========================================

    @field_validator("cors_origins", "sefaria_relays", mode="before")
    @classmethod
    def parse_comma_separated(cls, v):
        """Convert comma-separated string to list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Ensure environment is valid."""
        valid_envs = ["development", "staging", "production", "test"]
        v_lower = v.lower()
        if v_lower not in valid_envs:
            raise ValueError(f"environment must be one of {valid_envs}")
        return v_lower

    @field_validator("corpus_chunk_overlap")
    @classmethod
    def validate_overlap(cls, v, info):
        size = info.data.get("corpus_chunk_size")
        if v < 0 or (size is not None and v >= size):
            raise ValueError("corpus_chunk_overlap must be >= 0 and smaller than corpus_chunk_size")
        return v

    # ==========================================
    #  COMPUTED PROPERTIES
    # ==========================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development" or self.dev_mode

    def ensure_directories(self):
        """Ensure all required directories exist."""
        self.log_dir.mkdir(parents=True, exist_ok=True)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        # Allow extra fields for forward compatibility
        extra="ignore",
    )


# ==========================================
#  GLOBAL SETTINGS INSTANCE
# ==========================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get global settings instance (singleton pattern).

    This ensures we only load the .env file once and validate once.
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).
    """
    global _settings
    _settings = None
    return get_settings()
