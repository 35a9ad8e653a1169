from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Configuration settings for the Taiga MCP bridge with validation"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Taiga API connection settings
    TAIGA_API_URL: str = Field(
        default="https://api.taiga.io/api/v1",
        description="Base URL for the Taiga API, including the /api/v1 prefix"
    )

    # Default credentials, used whenever the session has to log in on its own
    TAIGA_USERNAME: Optional[str] = Field(
        default=None,
        description="Username (or email) used to authenticate against Taiga"
    )

    TAIGA_PASSWORD: Optional[str] = Field(
        default=None,
        description="Password used to authenticate against Taiga"
    )

    # Token lifetime policy
    TAIGA_TOKEN_LIFETIME: int = Field(
        default=0,
        description="Seconds a cached auth token is trusted; 0 keeps it until invalidated",
        ge=0
    )

    # Transport configuration
    TRANSPORT_MODE: str = Field(
        default="stdio",
        validation_alias="TAIGA_TRANSPORT",
        description="Transport mode for MCP communication (stdio or sse)"
    )

    # API request settings
    REQUEST_TIMEOUT: int = Field(
        default=30,
        description="Timeout for API requests in seconds",
        ge=1
    )

    # Connection pooling settings
    MAX_CONNECTIONS: int = Field(
        default=10,
        description="Maximum number of concurrent connections",
        ge=1
    )

    MAX_KEEPALIVE_CONNECTIONS: int = Field(
        default=5,
        description="Maximum number of connections to keep alive",
        ge=1
    )

    # Logging configuration
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    LOG_FILE: Optional[str] = Field(
        default=None,
        description="Optional path to a log file, in addition to stderr"
    )

    @field_validator('TAIGA_API_URL')
    @classmethod
    def strip_trailing_slash(cls, v):
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("TAIGA_API_URL cannot be empty")
        return v

    @field_validator('TRANSPORT_MODE')
    @classmethod
    def validate_transport_mode(cls, v):
        v = v.lower()
        if v not in ["stdio", "sse"]:
            raise ValueError(f"Invalid transport mode: {v}. Must be 'stdio' or 'sse'")
        return v

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v):
        v = v.upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns the process settings, read once from the environment."""
    return Settings()
