"""Configuration management for the AI Project Manager engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # Provider credentials (the default provider's key must be set)
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")

    # Environment
    PM_ENGINE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Chat model configuration
    AI_DEFAULT_PROVIDER: str = Field(default="openai", description="Provider: openai or anthropic")
    AI_DEFAULT_MODEL: str = Field(default="gpt-4o-mini", description="Default chat model")
    AI_TEMPERATURE: float = Field(default=0.7, description="Sampling temperature for chat turns")
    AI_MAX_TOKENS_PER_REQUEST: int = Field(
        default=2000, description="Max output tokens per provider call"
    )

    # Budgeting
    AI_MONTHLY_TOKEN_LIMIT_DEFAULT: int = Field(
        default=1_000_000, description="Monthly token ceiling when a workspace has no override"
    )

    # Turn loop and history compaction
    AI_MAX_MODEL_ROUNDS: int = Field(
        default=5, description="Max provider calls per turn in the tool loop"
    )
    AI_SUMMARY_THRESHOLD: int = Field(
        default=10, description="Non-system message count above which history is summarized"
    )
    AI_SUMMARY_KEEP_RECENT: int = Field(
        default=6, description="Recent messages kept verbatim after summarization"
    )
    AI_SUMMARY_MAX_TOKENS: int = Field(default=500, description="Max tokens for the summary call")
    AI_SUMMARY_TEMPERATURE: float = Field(default=0.3, description="Temperature for the summary call")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
