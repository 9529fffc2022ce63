"""Pytest configuration and shared fixtures."""

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True, scope="session")
def disable_langsmith_tracing() -> None:
    """Disable LangSmith tracing during test runs.

    LangChain picks tracing up from the environment; a developer's shell
    may have it enabled. Set LANGSMITH_TEST_TRACING=true to keep it.
    """
    if os.environ.get("LANGSMITH_TEST_TRACING", "").lower() != "true":
        os.environ["LANGSMITH_TRACING"] = "false"


@pytest.fixture(autouse=True)
def clear_parley_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep PARLEY_* overrides from the developer's shell out of tests."""
    monkeypatch.delenv("PARLEY_PROVIDER", raising=False)
    monkeypatch.delenv("PARLEY_AUTO_ACCEPT", raising=False)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent
