"""Configuration for the reporting pipeline."""

import os
import re
from collections.abc import Callable, Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

from result_relay.models.errors import RelayError
from result_relay.models.result import RelayMetrics

API_KEY_ENV = "RESULT_RELAY_API_KEY"
SOURCE_ENV = "RESULT_RELAY_SOURCE"
DEFAULT_API_URL = "https://api.result-relay.dev/v1/reports"


def _env_api_key() -> SecretStr:
    return SecretStr(os.environ.get(API_KEY_ENV, ""))


def _env_source() -> str:
    return os.environ.get(SOURCE_ENV, "")


class RedactionConfig(BaseModel):
    """Redaction settings.

    Patterns are plain strings (literal, case-insensitive) or compiled
    regular expressions. They extend the built-in set unless
    ``replace_built_in`` is set.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    enabled: bool = True
    patterns: Sequence[str | re.Pattern[str]] = Field(default_factory=list)
    replace_built_in: bool = False

    @model_validator(mode="before")
    @classmethod
    def _expand_shorthand(cls, data: Any) -> Any:
        """Accept ``True``/``False`` or a bare pattern list as shorthand."""
        if isinstance(data, bool):
            return {"enabled": data}
        if isinstance(data, list | tuple):
            return {"patterns": list(data)}
        return data


class RelayConfig(BaseModel):
    """Configuration for the reporting pipeline.

    Durations are in seconds.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    api_key: SecretStr = Field(default_factory=_env_api_key)
    source: str = Field(default_factory=_env_source)
    api_url: str = DEFAULT_API_URL
    enabled: bool = True
    debug: bool = False
    batch_size: int = Field(default=20, gt=0, le=1000)
    timeout: float = Field(default=15.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=10.0, ge=0)
    max_error_length: int = Field(default=4000, gt=0)
    max_stack_trace_lines: int = Field(default=20, gt=0)
    max_buffer_size: int = Field(default=1000, gt=0)
    upload_concurrency: int = Field(default=5, gt=0)
    upload_method: Literal["PUT", "POST"] = "PUT"
    redaction: RedactionConfig = Field(default_factory=RedactionConfig)
    on_error: Callable[[RelayError], None] | None = Field(default=None, exclude=True)
    on_metrics: Callable[[RelayMetrics], None] | None = Field(
        default=None, exclude=True
    )

    @property
    def confirm_url(self) -> str:
        """Endpoint used to confirm completed artifact uploads."""
        return f"{self.api_url.rstrip('/')}/confirm-uploads"

    def readiness(self) -> str | None:
        """Return why reporting cannot start, or None when it can."""
        if not self.enabled:
            return "disabled"
        if not self.api_key.get_secret_value():
            return (
                "No API key provided. Set api_key or the "
                f"{API_KEY_ENV} environment variable."
            )
        if not self.source:
            return (
                "No source provided. Set source (e.g. 'checkout-e2e') or the "
                f"{SOURCE_ENV} environment variable."
            )
        return None
