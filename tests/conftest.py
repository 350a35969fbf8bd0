# tests/conftest.py

"""Shared pytest fixtures for the tracker tests."""

from collections.abc import Generator
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def isolated_settings() -> Generator[None, None, None]:
    """Blank the API keys and pin flags that ``load_dotenv`` may set."""
    with patch.multiple(
        "src.config.settings.Settings",
        RAPIDAPI_KEY="",
        RESEND_API_KEY="",
        NOTIFY_ON_INCREASE=False,
    ):
        yield
