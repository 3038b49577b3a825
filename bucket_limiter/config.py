"""
Configuration management for the bucket limiter.
"""

from typing import Any, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .protocol import DEFAULT_EXPIRE_MULTIPLIER, DEFAULT_EXPIRE_PADDING_SECONDS

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 6379
DEFAULT_DB = 0
DEFAULT_PREFIX = "limiter"


class LimiterConfig(BaseSettings):
    """Connection coordinates and key layout for a limiter.

    Every field can be supplied through ``LIMITER_*`` environment variables
    or a local ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIMITER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Store
    host: str = Field(default=DEFAULT_HOST, min_length=1)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    db: int = Field(default=DEFAULT_DB, ge=0)
    password: Optional[str] = None
    socket_timeout: Optional[float] = Field(default=None, gt=0)

    # Keys
    prefix: str = Field(default=DEFAULT_PREFIX, min_length=1)
    expire_multiplier: int = Field(default=DEFAULT_EXPIRE_MULTIPLIER, ge=1)
    expire_padding_seconds: int = Field(default=DEFAULT_EXPIRE_PADDING_SECONDS, ge=0)

    # Alternate Lua source, mainly for tests and protocol variants
    script: Optional[str] = None

    log_level: str = "info"

    @field_validator("prefix")
    @classmethod
    def _prefix_has_no_separator_suffix(cls, value: str) -> str:
        if value.endswith(":"):
            raise ValueError("prefix must not end with ':'")
        return value

    @property
    def redis_url(self) -> str:
        """Redis URL built from host, port and db."""
        return f"redis://{self.host}:{self.port}/{self.db}"


def get_config(**overrides: Any) -> LimiterConfig:
    """Load configuration from the environment, applying explicit overrides.

    Raises ConfigurationError instead of pydantic's ValidationError so callers
    deal with one error hierarchy.
    """
    try:
        return LimiterConfig(**overrides)
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid limiter configuration",
            details={"errors": [
                {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]},
        ) from e
