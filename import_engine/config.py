"""Configuration management for the import intelligence engine."""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load environment variables from .env file in ops folder
env_path = Path(__file__).parent.parent / "ops" / ".env"
load_dotenv(dotenv_path=env_path)


class MatchingConfig(BaseSettings):
    """Thresholds used by the column mapper and entity normalizer."""

    auto_apply_threshold: float = Field(default=0.5, alias="AUTO_APPLY_THRESHOLD")
    similarity_threshold: float = Field(default=0.6, alias="SIMILARITY_THRESHOLD")
    max_existing_matches: int = Field(default=3, alias="MAX_EXISTING_MATCHES")

    class Config:
        env_file = "ops/.env"
        case_sensitive = False
        extra = "ignore"


class AppConfig(BaseSettings):
    """Main application configuration."""

    # Application settings
    app_name: str = Field(default="supplier-import-engine", alias="APP_NAME")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_path: Path = Field(
        default=Path("data/import_intelligence.db"), alias="DATABASE_PATH"
    )
    rule_cache_size: int = Field(default=200, alias="RULE_CACHE_SIZE")
    """Number of companies whose active rules are kept in memory."""

    # Fan-out bound for per-value checks and decision application
    max_workers: int = Field(default=4, alias="MAX_WORKERS")

    # Import sessions kept in memory by the API
    max_import_sessions: int = Field(default=100, alias="MAX_IMPORT_SESSIONS")

    # Company used by the API when a request does not name one
    default_company_id: str = Field(default="default", alias="DEFAULT_COMPANY_ID")

    # Matching thresholds
    matching: MatchingConfig = Field(default_factory=MatchingConfig)

    # CORS configuration
    cors_origins: str = Field(default="", alias="CORS_ORIGINS")

    class Config:
        env_file = "ops/.env"
        case_sensitive = False
        extra = "ignore"

    def __init__(self, **kwargs):
        """Initialize configuration with nested settings."""
        super().__init__(**kwargs)
        # Ensure database directory exists
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


# Global configuration instance
config = AppConfig()


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    return config


def reload_config() -> AppConfig:
    """Reload configuration from environment variables."""
    global config
    config = AppConfig()
    return config
