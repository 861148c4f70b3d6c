"""Shared test fixtures."""

import os

import pytest

ANALYSIS_ENV_VARS = [
    "OPENAI_API_KEY",
    "OPENAI_BUDGET_LIMIT_USD",
    "OPENAI_BUDGET_WINDOW_HOURS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real API keys and ELEMENTFEED_ settings out of tests."""
    for key in list(os.environ):
        if key.startswith("ELEMENTFEED_") or key in ANALYSIS_ENV_VARS:
            monkeypatch.delenv(key, raising=False)
