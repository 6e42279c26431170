"""Pytest configuration for ai_model_toolkit tests."""

from __future__ import annotations

import pytest

# Ensure pytest-asyncio is always available so async tests execute without
# requiring plugins to be explicitly enabled via command line options.
pytest_plugins = ("pytest_asyncio",)


_VENDOR_KEYS = (
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GOOGLE_API_KEY",
    "MOONSHOT_API_KEY",
    "ZHIPUAI_API_KEY",
    "MINIMAX_API_KEY",
    "MISTRAL_API_KEY",
)


@pytest.fixture
def no_vendor_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove vendor API keys a developer's .env may have exported."""
    for name in _VENDOR_KEYS:
        monkeypatch.delenv(name, raising=False)
