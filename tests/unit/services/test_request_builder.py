"""Unit tests for completing and persisting processing requests."""

from __future__ import annotations

from typing import List

import pytest

from app.core.errors import PersistenceError
from app.models.manifest import ProcessingRequest, ProductRecord, RequestStatus
from app.services.request_builder import RequestBuilder
from app.services.request_repository import InMemoryRequestRepository


class FlakyRepository(InMemoryRequestRepository):
    """Fails the first `failures` saves, then behaves."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.attempts: List[str] = []

    def save(self, request: ProcessingRequest) -> None:
        self.attempts.append(request.request_id)
        if len(self.attempts) <= self.failures:
            raise PersistenceError("store unavailable")
        super().save(request)


def _product() -> ProductRecord:
    return ProductRecord(
        serial_number=1,
        product_name="Shoe",
        input_image_urls=["https://a.example/1.png"],
        output_image_urls=[],
    )


def test_complete_sets_products_and_status() -> None:
    """Completing a pending request returns a completed copy."""
    pending = ProcessingRequest(request_id="req-1")

    completed = RequestBuilder.complete(pending, [_product()])

    assert completed.status is RequestStatus.COMPLETED
    assert completed.products == [_product()]
    assert pending.status is RequestStatus.PENDING


def test_complete_refuses_non_pending_request() -> None:
    """A request can only be completed once."""
    completed = RequestBuilder.complete(ProcessingRequest(request_id="req-1"), [])

    with pytest.raises(ValueError):
        RequestBuilder.complete(completed, [])


async def test_persist_retries_then_succeeds() -> None:
    """Transient persistence failures are retried with the same request id."""
    repository = FlakyRepository(failures=1)
    builder = RequestBuilder(repository, max_attempts=3, retry_delay=0)
    request = RequestBuilder.complete(ProcessingRequest(request_id="req-1"), [_product()])

    request_id = await builder.persist(request)

    assert request_id == "req-1"
    assert repository.attempts == ["req-1", "req-1"]
    assert repository.get("req-1") == request


async def test_persist_gives_up_after_max_attempts() -> None:
    """Persistent failures surface as PersistenceError."""
    repository = FlakyRepository(failures=10)
    builder = RequestBuilder(repository, max_attempts=3, retry_delay=0)
    request = RequestBuilder.complete(ProcessingRequest(request_id="req-1"), [])

    with pytest.raises(PersistenceError):
        await builder.persist(request)

    assert len(repository.attempts) == 3
    assert len(repository) == 0


async def test_persist_always_makes_at_least_one_attempt() -> None:
    repository = FlakyRepository(failures=1)
    builder = RequestBuilder(repository, max_attempts=0, retry_delay=0)
    request = RequestBuilder.complete(ProcessingRequest(request_id="req-1"), [])

    with pytest.raises(PersistenceError):
        await builder.persist(request)

    assert len(repository.attempts) == 1
