"""
Configuration management using Pydantic Settings.
Reads from environment variables and an optional .env file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # LLM Configuration
    # Model names follow litellm conventions, e.g. "azure/<deployment-name>".
    llm_model: str = Field(default="gpt-4o-mini", alias="LITELLM_MODEL")
    llm_api_key: str | None = Field(default=None, alias="LLM_API_KEY")
    llm_api_base: str | None = Field(default=None, alias="LLM_API_BASE")
    llm_api_version: str | None = Field(default=None, alias="LLM_API_VERSION")
    llm_timeout: float = Field(default=60.0, alias="LLM_TIMEOUT")

    # Retry policy for the chat-completion endpoint
    llm_max_retries: int = Field(default=1, ge=0, alias="LLM_MAX_RETRIES")
    llm_retry_backoff: float = Field(default=1.0, ge=0, alias="LLM_RETRY_BACKOFF")

    # Conversation controls
    max_function_rounds: int = Field(default=3, ge=1, alias="MAX_FUNCTION_ROUNDS")

    # Leave data store
    leave_balances_file: str = Field(
        default="data/leave_balances.json", alias="LEAVE_BALANCES_FILE"
    )

    # Application Configuration
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="WARNING", alias="LOG_LEVEL")


# Global settings instance
settings = Settings()
