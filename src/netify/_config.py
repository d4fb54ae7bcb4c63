import logging
import os
from enum import Enum
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from ._auth import AuthenticationProvider, StaticBearerAuthenticationProvider
from ._retry import DEFAULT_RETRY_STATUS_CODES, BackoffParameters
from ._utils.constants import (
    DOTENV_FILE,
    ENV_ACCESS_TOKEN,
    ENV_BASE_URL,
    ENV_LOG_LEVEL,
    ENV_MAX_RETRY_COUNT,
    ENV_TIMEOUT,
)
from .models.errors import BaseUrlMissingError

DEFAULT_TIMEOUT = 30.0


class LogLevel(str, Enum):
    OFF = "off"
    ERROR = "error"
    INFO = "info"
    DEBUG = "debug"

    @property
    def logging_level(self) -> Optional[int]:
        return {
            LogLevel.OFF: None,
            LogLevel.ERROR: logging.ERROR,
            LogLevel.INFO: logging.INFO,
            LogLevel.DEBUG: logging.DEBUG,
        }[self]


class NetifyConfiguration(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    base_url: str
    default_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    default_headers: Mapping[str, str] = Field(default_factory=dict)
    authentication_provider: Optional[AuthenticationProvider] = None
    max_retry_count: int = Field(default=0, ge=0)
    backoff: BackoffParameters = Field(default_factory=BackoffParameters)
    retry_status_codes: frozenset[int] = DEFAULT_RETRY_STATUS_CODES
    log_level: LogLevel = LogLevel.OFF
    strict_mode: bool = False

    @field_validator("base_url", mode="before")
    @classmethod
    def validate_base_url(cls, value: Any) -> str:
        if not value:
            raise BaseUrlMissingError()
        HttpUrl(url=str(value))
        return str(value).rstrip("/")

    @classmethod
    def from_env(
        cls, env_file: Optional[str] = None, **overrides: Any
    ) -> "NetifyConfiguration":
        """Build a configuration from ``NETIFY_*`` environment variables.

        ``env_file`` (default: ``.env`` in the working directory) is loaded
        first, without overriding variables already set. Keyword arguments
        win over the environment.

        Raises:
            BaseUrlMissingError: Neither ``base_url`` nor ``NETIFY_BASE_URL``
                is set.
        """
        load_dotenv(dotenv_path=env_file or os.path.join(os.getcwd(), DOTENV_FILE))

        values: dict[str, Any] = {}
        base_url = os.environ.get(ENV_BASE_URL)
        if base_url:
            values["base_url"] = base_url
        if timeout := os.environ.get(ENV_TIMEOUT):
            values["default_timeout"] = float(timeout)
        if max_retry_count := os.environ.get(ENV_MAX_RETRY_COUNT):
            values["max_retry_count"] = int(max_retry_count)
        if log_level := os.environ.get(ENV_LOG_LEVEL):
            values["log_level"] = LogLevel(log_level.lower())
        if access_token := os.environ.get(ENV_ACCESS_TOKEN):
            values["authentication_provider"] = StaticBearerAuthenticationProvider(
                access_token
            )

        values.update(overrides)
        if not values.get("base_url"):
            raise BaseUrlMissingError()
        return cls(**values)
