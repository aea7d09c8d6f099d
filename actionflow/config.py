"""
Configuration settings for ActionFlow.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    # Application
    APP_NAME: str = "ActionFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Node defaults used by the bundled workflows
    DEFAULT_MAX_RETRIES: int = 1
    DEFAULT_WAIT_SECONDS: float = 0.0

    # Runs kept in memory by the API
    RUN_HISTORY_LIMIT: int = 100

    # Logging
    LOG_LEVEL: str = "INFO"


# Global settings instance
settings = Settings()
