"""Shared test configuration and fixtures."""

import os
from collections.abc import Iterator
from unittest.mock import patch

import pytest

_REQUIRED_ENV_VARS = {
    "ZENTO_MARKET_CONTRACT": "0x1111111111111111111111111111111111111111",
    "ZENTO_TOKEN_CONTRACT": "0x2222222222222222222222222222222222222222",
}


@pytest.fixture(autouse=True)
def _set_required_env_vars() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    """Provide dummy values for env vars required by settings.yaml.

    The default configuration references ``${ZENTO_MARKET_CONTRACT}`` and
    ``${ZENTO_TOKEN_CONTRACT}`` without defaults, so any test that triggers
    ``ConfigLoader`` against the real ``settings.yaml`` would fail where
    those variables are not set. This fixture injects placeholder
    addresses so the config loads cleanly everywhere.
    """
    missing = {k: v for k, v in _REQUIRED_ENV_VARS.items() if k not in os.environ}
    if not missing:
        yield
        return
    with patch.dict(os.environ, missing):
        yield
