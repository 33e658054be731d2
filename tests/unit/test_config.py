"""Tests for configuration."""

import re

import pytest
from pydantic import SecretStr, ValidationError

from result_relay.config import API_KEY_ENV, SOURCE_ENV, RedactionConfig, RelayConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    monkeypatch.delenv(SOURCE_ENV, raising=False)


def test_defaults() -> None:
    """Unset options take the documented defaults."""
    config = RelayConfig()

    assert config.api_url == "https://api.result-relay.dev/v1/reports"
    assert config.batch_size == 20
    assert config.timeout == 15.0
    assert config.max_retries == 3
    assert config.retry_base_delay == 1.0
    assert config.retry_max_delay == 10.0
    assert config.max_error_length == 4000
    assert config.max_stack_trace_lines == 20
    assert config.max_buffer_size == 1000
    assert config.upload_concurrency == 5
    assert config.upload_method == "PUT"
    assert config.redaction == RedactionConfig()


def test_reads_api_key_and_source_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """API key and source fall back to environment variables."""
    monkeypatch.setenv(API_KEY_ENV, "env-key-123456")
    monkeypatch.setenv(SOURCE_ENV, "nightly")

    config = RelayConfig()

    assert config.api_key.get_secret_value() == "env-key-123456"
    assert config.source == "nightly"
    assert config.readiness() is None


def test_api_key_is_hidden_in_repr() -> None:
    """The API key never shows up in repr."""
    config = RelayConfig(api_key=SecretStr("super-secret-key"))
    assert "super-secret-key" not in repr(config)


@pytest.mark.parametrize(
    ("options", "reason"),
    [
        ({"enabled": False}, "disabled"),
        ({"source": "nightly"}, "No API key provided"),
        ({"api_key": SecretStr("key-123456789")}, "No source provided"),
    ],
)
def test_readiness_reasons(options: dict[str, object], reason: str) -> None:
    """Readiness explains why reporting cannot start."""
    result = RelayConfig.model_validate(options).readiness()

    assert result is not None
    assert result.startswith(reason)


@pytest.mark.parametrize(
    "options",
    [
        {"batch_size": 0},
        {"batch_size": 1001},
        {"timeout": 0},
        {"max_retries": -1},
        {"upload_method": "PATCH"},
    ],
)
def test_rejects_invalid_values(options: dict[str, object]) -> None:
    """Out-of-range values fail validation."""
    with pytest.raises(ValidationError):
        RelayConfig.model_validate(options)


def test_confirm_url_is_derived_from_api_url() -> None:
    """Confirm endpoint sits under the reports endpoint."""
    config = RelayConfig(api_url="http://relay.test/v1/reports/")
    assert config.confirm_url == "http://relay.test/v1/reports/confirm-uploads"


def test_redaction_accepts_shorthand() -> None:
    """Booleans and pattern lists expand to full redaction settings."""
    assert RelayConfig(redaction=False).redaction.enabled is False
    config = RelayConfig.model_validate(
        {"redaction": ["internal-host", re.compile(r"order-\d+")]}
    )
    assert config.redaction.enabled is True
    assert len(config.redaction.patterns) == 2
