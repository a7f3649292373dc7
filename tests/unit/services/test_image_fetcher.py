"""Unit tests for image fetching, compression and storage."""

from __future__ import annotations

import asyncio
import io

import httpx
import pytest
from PIL import Image

from app.models.manifest import FailureKind, ValidatedRow
from app.services.image_fetcher import ImageFetcher, storage_name
from app.services.image_store import LocalImageStore
from app.utils.image_processor import ImageProcessor
from tests.helpers import FakeImageHost, image_url


async def test_fetch_and_compress_stores_jpeg(fetcher: ImageFetcher, image_store: LocalImageStore) -> None:
    """A fetched image is re-encoded as JPEG and stored under the given name."""
    outcome = await fetcher.fetch_and_compress(image_url("ok/a.png"), "req_1_1.jpg", 1)

    assert outcome.succeeded
    assert outcome.failure is None
    assert outcome.reference == "http://testserver/compressed/req_1_1.jpg"
    with Image.open(io.BytesIO(image_store.get("req_1_1.jpg"))) as img:
        assert img.format == "JPEG"


async def test_fetch_and_compress_classifies_http_status(fetcher: ImageFetcher) -> None:
    """Non-2xx responses become fetch errors, not exceptions."""
    outcome = await fetcher.fetch_and_compress(image_url("missing/a.png"), "x.jpg", 1)

    assert outcome.reference is None
    assert outcome.failure.kind is FailureKind.FETCH_ERROR
    assert "404" in outcome.failure.cause


async def test_fetch_and_compress_classifies_network_errors(fetcher: ImageFetcher) -> None:
    """Connection failures and timeouts are both fetch errors."""
    down = await fetcher.fetch_and_compress(image_url("down/a.png"), "x.jpg", 1)
    slow = await fetcher.fetch_and_compress(image_url("slow/a.png"), "y.jpg", 2)

    assert down.failure.kind is FailureKind.FETCH_ERROR
    assert slow.failure.kind is FailureKind.FETCH_ERROR
    assert slow.failure.cause.startswith("Timeout")


async def test_fetch_and_compress_classifies_undecodable_body(fetcher: ImageFetcher) -> None:
    """A body that is not a raster image is an unsupported image."""
    outcome = await fetcher.fetch_and_compress(image_url("text/a.png"), "x.jpg", 1)

    assert outcome.failure.kind is FailureKind.UNSUPPORTED_IMAGE


async def test_fetch_rejects_oversized_body(
    http_client: httpx.AsyncClient, image_store: LocalImageStore
) -> None:
    """Bodies larger than the byte cap are fetch errors."""
    small_fetcher = ImageFetcher(http_client, image_store, max_bytes=10)

    outcome = await small_fetcher.fetch_and_compress(image_url("ok/a.png"), "x.jpg", 1)

    assert outcome.failure.kind is FailureKind.FETCH_ERROR


async def test_process_row_keeps_input_order_despite_completion_order(
    image_bytes: bytes, image_store: LocalImageStore
) -> None:
    """Earlier images finishing last still land in their original positions."""
    delays = {"/first.png": 0.05, "/second.png": 0.0, "/third.png": 0.02}

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(delays[request.url.path])
        return httpx.Response(200, content=image_bytes)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        row_fetcher = ImageFetcher(client, image_store)
        row = ValidatedRow(
            row_index=3,
            serial_number=3,
            product_name="Shoe",
            input_image_urls=[image_url("first.png"), image_url("second.png"), image_url("third.png")],
        )
        outcomes = await row_fetcher.process_row("req", row)

    assert [outcome.position for outcome in outcomes] == [1, 2, 3]
    assert [outcome.url for outcome in outcomes] == row.input_image_urls
    assert outcomes[0].reference.endswith("/req_3_1.jpg")


async def test_process_row_isolates_failures(fetcher: ImageFetcher, fake_host: FakeImageHost) -> None:
    """One failing image does not affect its siblings."""
    row = ValidatedRow(
        row_index=1,
        serial_number=1,
        product_name="Shoe",
        input_image_urls=[image_url("ok/1.png"), image_url("down/2.png"), image_url("ok/3.png")],
    )

    outcomes = await fetcher.process_row("req", row)

    assert [outcome.succeeded for outcome in outcomes] == [True, False, True]
    assert len(fake_host.calls) == 3


def test_storage_name_is_keyed_by_request_and_position() -> None:
    """Names never depend on the product name."""
    assert storage_name("abc", 2, 5) == "abc_2_5.jpg"


async def test_fetch_and_compress_classifies_oversized_pixels(
    fetcher: ImageFetcher, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A small file that decodes to too many pixels is an unsupported image."""
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 5000)

    outcome = await fetcher.fetch_and_compress(image_url("bomb/a.png"), "x.jpg", 1)

    assert outcome.failure.kind is FailureKind.UNSUPPORTED_IMAGE


async def test_fetch_and_compress_never_raises_unexpected_errors(
    fetcher: ImageFetcher, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Any non-cancellation error while processing becomes a tagged failure."""

    def explode(data: bytes, quality: int = 50) -> bytes:
        raise RuntimeError("encoder crashed")

    monkeypatch.setattr(ImageProcessor, "compress", staticmethod(explode))

    outcome = await fetcher.fetch_and_compress(image_url("ok/a.png"), "x.jpg", 1)

    assert outcome.failure.kind is FailureKind.PROCESSING_ERROR
    assert "encoder crashed" in outcome.failure.cause
