"""Pytest configuration and shared fixtures for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import httpx  # noqa: E402
import pytest  # noqa: E402

from app.services.image_fetcher import ImageFetcher  # noqa: E402
from app.services.image_store import LocalImageStore  # noqa: E402
from app.services.ingestion import IngestionOrchestrator  # noqa: E402
from app.services.request_builder import RequestBuilder  # noqa: E402
from app.services.request_repository import InMemoryRequestRepository  # noqa: E402
from tests.helpers import FakeImageHost, make_image_bytes  # noqa: E402


@pytest.fixture
def image_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
def fake_host(image_bytes: bytes) -> FakeImageHost:
    return FakeImageHost(image_bytes)


@pytest.fixture
async def http_client(fake_host: FakeImageHost):
    client = httpx.AsyncClient(transport=fake_host.transport)
    yield client
    await client.aclose()


@pytest.fixture
def image_store(tmp_path: Path) -> LocalImageStore:
    return LocalImageStore(str(tmp_path / "compressed"), "http://testserver")


@pytest.fixture
def fetcher(http_client: httpx.AsyncClient, image_store: LocalImageStore) -> ImageFetcher:
    return ImageFetcher(http_client, image_store, timeout=5.0, quality=50, max_concurrency=4)


@pytest.fixture
def repository() -> InMemoryRequestRepository:
    return InMemoryRequestRepository()


@pytest.fixture
def orchestrator(fetcher: ImageFetcher, repository: InMemoryRequestRepository) -> IngestionOrchestrator:
    builder = RequestBuilder(repository, max_attempts=2, retry_delay=0)
    return IngestionOrchestrator(fetcher, builder, chunk_size=2)
