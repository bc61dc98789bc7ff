"""Shared pytest fixtures and test-run configuration."""

from __future__ import annotations

import os
from collections.abc import Callable

import httpx
import pytest
from stash_review.client import StashClient, StashCredentials

Handler = Callable[[httpx.Request], httpx.Response]


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom pytest options for integration test execution."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests marked as integration (live Stash server).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly enabled."""
    run_integration = config.getoption("--run-integration")
    env_enabled = os.getenv("RUN_INTEGRATION_TESTS") == "1"
    if run_integration or env_enabled:
        return

    skip_marker = pytest.mark.skip(
        reason=(
            "Integration tests are disabled by default. "
            "Use --run-integration or set RUN_INTEGRATION_TESTS=1."
        )
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture(autouse=True)
def _isolate_stash_env(monkeypatch: pytest.MonkeyPatch, request: pytest.FixtureRequest) -> None:
    """Keep a developer's Stash settings out of unit tests."""
    if "integration" in request.keywords:
        return
    for name in (
        "STASH_URL",
        "STASH_LOGIN",
        "STASH_PASSWORD",
        "STASH_TIMEOUT_SECONDS",
        "STASH_VERIFY_TLS",
    ):
        monkeypatch.delenv(name, raising=False)


class CountingTransport(httpx.MockTransport):
    """Mock transport that records how often the owning HTTP client is closed."""

    def __init__(self, handler: Handler) -> None:
        super().__init__(handler)
        self.close_count = 0

    def close(self) -> None:
        self.close_count += 1


@pytest.fixture
def counting_transport() -> Callable[[Handler], CountingTransport]:
    """Return a factory for close-counting mock transports."""
    return CountingTransport


@pytest.fixture
def make_client(
    counting_transport: Callable[[Handler], CountingTransport],
) -> Callable[[Handler], tuple[StashClient, CountingTransport]]:
    """Return a factory for Stash clients backed by a close-counting mock transport."""

    def _make_client(handler: Handler) -> tuple[StashClient, CountingTransport]:
        transport = counting_transport(handler)
        client = StashClient(
            "https://stash.example.com/",
            StashCredentials(login="login", password="password"),
            timeout_seconds=1.0,
            transport=transport,
        )
        return client, transport

    return _make_client
