"""Test fixtures for tattoo tests."""

from __future__ import annotations

import os
from datetime import timedelta

import pytest
import safir.logging
import structlog
from safir.logging import LogLevel, Profile
from structlog.stdlib import BoundLogger

from tattoo.asyncio import RateLimiter

from .support.github import MockGitHub


@pytest.fixture(autouse=True)
def _configure(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate tests from the environment they run in.

    This is an autouse fixture, so it will ensure that each test gets a
    git identity to commit with, and that no token or tattoo setting from
    the calling environment leaks into the configuration.
    """
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Tattoo Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "tattoo@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Tattoo Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "tattoo@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    for var in list(os.environ):
        if var.startswith("TATTOO_"):
            monkeypatch.delenv(var)


@pytest.fixture
def logger() -> BoundLogger:
    safir.logging.configure_logging(
        name="tattoo", profile=Profile.development, log_level=LogLevel.DEBUG
    )
    return structlog.get_logger("tattoo")


@pytest.fixture
def limiter() -> RateLimiter:
    return RateLimiter(20, timedelta(0))


@pytest.fixture
def github() -> MockGitHub:
    return MockGitHub()
