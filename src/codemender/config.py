"""Configuration settings for the application."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # Gateway Configuration
    GATEWAY: str = "gemini"  # Options: gemini, openai, anthropic
    GOOGLE_API_KEY: str | None = None
    OPENAI_API_KEY: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_ENDPOINT: str = "https://generativelanguage.googleapis.com/v1beta"
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    MAX_OUTPUT_TOKENS: int = 8192

    # Review loop
    MAX_STEPS: int = 15
    GATEWAY_TIMEOUT: float = 120.0  # Seconds allowed for one model round-trip
    GATEWAY_MAX_RETRIES: int = 1  # Extra attempts after a timed-out round-trip

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


SECRET_FIELDS = {"GOOGLE_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"}

settings = Settings()
