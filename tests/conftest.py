"""Shared fixtures."""

from collections.abc import Iterator

import pytest
from aioresponses import aioresponses as aioresponses_cls
from pydantic import SecretStr

from result_relay.config import RelayConfig

API_KEY = "test-api-key-123456"
API_URL = "http://relay.test/v1/reports"


@pytest.fixture
def aioresponses() -> Iterator[aioresponses_cls]:
    """Mock every aiohttp request made during the test."""
    with aioresponses_cls() as mocked:
        yield mocked


@pytest.fixture
def config() -> RelayConfig:
    """Create a ready configuration with instant retries."""
    return RelayConfig(
        api_key=SecretStr(API_KEY),
        source="checkout-e2e",
        api_url=API_URL,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
    )
