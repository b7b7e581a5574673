"""Configuration settings for the application."""

from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Load environment variables from a .env file
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 3000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # LLM Configuration
    PLANNER: str = "openai"  # Options: openai, anthropic, tgi
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    TGI_ENDPOINT: str = "http://tgi:8080/generate"
    TGI_MAX_NEW_TOKENS: int = 500
    LLM_TIMEOUT: float = 60.0

    # Assistant persona
    ASSISTANT_NAME: str = "Thomas"
    ANSWER_LANGUAGE: str = "German"

    # Comma-separated names from the tool registry
    TOOLS: str = "duckduckgo,open_meteo"

    # Optional turn guard; unset means the agent loops until it answers
    MAX_TURNS: int | None = None

    def tool_names(self) -> list[str]:
        """Return the configured tool names, skipping blanks."""
        return [name.strip() for name in self.TOOLS.split(",") if name.strip()]


settings = Settings()
