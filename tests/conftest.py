"""Pytest configuration and fixtures."""

import pytest
from typing import AsyncGenerator

from httpx import ASGITransport, AsyncClient

from config import Config
from shortener.common.logging_config import setup_logging
from shortener.exceptions import StorageError
from shortener.service import URLShortenerService
from shortener.store import HybridStore, MemoryBackend
from web_app import create_app

ADMIN_PASSWORD = "test-admin-secret"


class FlakyBackend(MemoryBackend):
    """Memory backend that raises StorageError while `failing` is set."""

    name = "flaky"

    def __init__(self, failing: bool = True):
        super().__init__()
        self.failing = failing

    def _check(self):
        if self.failing:
            raise StorageError("durable tier down")

    async def create(self, record):
        self._check()
        return await super().create(record)

    async def get(self, short_code):
        self._check()
        return await super().get(short_code)

    async def record_access(self, short_code, hits=1, accessed_at=None):
        self._check()
        return await super().record_access(short_code, hits=hits, accessed_at=accessed_at)

    async def delete(self, short_code):
        self._check()
        return await super().delete(short_code)

    async def load_all(self):
        self._check()
        return await super().load_all()

    async def health_check(self):
        return not self.failing


@pytest.fixture
def logger():
    """Create test logger."""
    return setup_logging(level="DEBUG")


@pytest.fixture
def config():
    """Configuration with network checks off and no .env lookup."""
    return Config(
        _env_file=None,
        storage_backend="memory",
        base_url="http://testserver",
        safety_checks_enabled=False,
        preview_enabled=False,
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def durable(logger):
    """Process-local durable tier."""
    return MemoryBackend(logger=logger)


@pytest.fixture
async def store(durable, logger) -> AsyncGenerator[HybridStore, None]:
    """Create a hybrid store over the memory backend."""
    store = HybridStore(durable=durable, logger=logger)

    yield store

    await store.close()


@pytest.fixture
def service(store, logger) -> URLShortenerService:
    """Create service instance without safety checks or previews."""
    return URLShortenerService(
        store=store,
        logger=logger,
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def app(service, config):
    """Create test FastAPI app."""
    return create_app(service_instance=service, config=config)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def sample_urls():
    """Sample URLs for testing."""
    return [
        "https://example.com/test",
        "https://github.com/user/repo",
        "https://stackoverflow.com/questions/123456",
    ]


@pytest.fixture
def flaky_backend():
    """Durable tier that is down until `failing` is cleared."""
    return FlakyBackend(failing=True)


@pytest.fixture
def admin_password():
    """Password accepted by the delete operations."""
    return ADMIN_PASSWORD
