"""
Shared pytest fixtures and configuration.
"""

import os
import tempfile

# keep config.json/settings.json writes away from the checkout
os.environ.setdefault("BLOCKD_DATA_DIR", tempfile.mkdtemp(prefix="blockd-tests-"))

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from blockd.api.app import create_app
from blockd.blocking.problems import Difficulty, Problem, ProblemKind
from blockd.browser.rule_installer import PolledRuleInstaller
from blockd.browser.tabs import ExtensionTabDirectory
from blockd.core.clock import VirtualClock
from blockd.core.store import MemoryStore
from blockd.service import BlockdService
from blockd.settings import DEFAULTS

BLOCK_PAGE = "chrome-extension://blockd/blocked-redirect.html"


class FixedProblems:
    """Supplier whose problem i is "i + 1 = ?" with answer i + 1."""

    def __init__(self):
        self.calls = []

    def generate(self, count, difficulty=Difficulty.MEDIUM):
        self.calls.append((count, Difficulty(difficulty)))
        return [
            Problem(f"{i} + 1 = ?", i + 1, ProblemKind.ARITHMETIC) for i in range(count)
        ]


@pytest.fixture()
def clock():
    return VirtualClock()


@pytest.fixture()
def store():
    return MemoryStore()


@pytest.fixture()
def tabs():
    return ExtensionTabDirectory()


@pytest.fixture()
def installer():
    return PolledRuleInstaller()


@pytest.fixture()
def supplier():
    return FixedProblems()


@pytest.fixture()
def settings_values():
    """Mutable settings seen by the service fixture; tests may tweak entries."""
    return dict(DEFAULTS)


@pytest.fixture()
def make_service(clock, store, tabs, installer, supplier, settings_values):
    """Build (and start) a service over the shared fakes; call again to 'restart'."""

    def _make(start=True, **overrides):
        kwargs = dict(
            supplier=supplier,
            block_page_url=BLOCK_PAGE,
            challenge_ttl_s=600,
            usage_retention_days=30,
            settings=lambda: dict(settings_values),
        )
        directory = overrides.pop("tabs", tabs)
        kwargs.update(overrides)
        service = BlockdService(clock, clock, store, directory, installer, **kwargs)
        if start:
            service.start()
        return service

    return _make


@pytest.fixture()
def service(make_service):
    return make_service()


@pytest.fixture()
def app(tmp_path):
    """Create a fresh app instance per test, backed by its own SQLite file."""
    return create_app(store_path=tmp_path / "blockd.db")


@pytest_asyncio.fixture()
async def client(app):
    """Async HTTP client wired directly to the ASGI app (no server needed)."""
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
