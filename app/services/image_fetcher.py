import asyncio
from typing import List, Optional

import httpx
from loguru import logger

from app.models.manifest import FailureKind, ImageFailure, ImageOutcome, ValidatedRow
from app.services.image_store import LocalImageStore
from app.utils.image_processor import OUTPUT_EXTENSION, ImageProcessor, UnsupportedImageError


class FetchError(Exception):
    """Network, status, timeout or size failure while retrieving an image."""


def storage_name(request_id: str, row_index: int, image_index: int) -> str:
    """Storage key for one compressed image; indices are 1-based."""
    return f"{request_id}_{row_index}_{image_index}.{OUTPUT_EXTENSION}"


class ImageFetcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        store: LocalImageStore,
        timeout: float = 15.0,
        max_bytes: int = 20 * 1024 * 1024,
        quality: int = 50,
        max_concurrency: int = 8,
    ):
        self.client = client
        self.store = store
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.quality = quality
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def fetch(self, url: str) -> bytes:
        try:
            async with self.client.stream("GET", url, timeout=self.timeout) as response:
                if not response.is_success:
                    raise FetchError(f"HTTP {response.status_code}")

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self.max_bytes:
                    raise FetchError(f"Image too large: {declared} bytes")

                chunks = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > self.max_bytes:
                        raise FetchError(f"Image exceeds {self.max_bytes} bytes")
                    chunks.append(chunk)
                return b"".join(chunks)
        except httpx.TimeoutException as e:
            raise FetchError(f"Timeout: {type(e).__name__}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"{type(e).__name__}: {e}") from e

    def _compress_and_store(self, data: bytes, name: str) -> str:
        compressed = ImageProcessor.compress(data, quality=self.quality)
        return self.store.put(name, compressed)

    async def fetch_and_compress(self, url: str, name: str, position: int) -> ImageOutcome:
        """
        Fetches one image, re-encodes it and stores it under `name`.
        Failures are returned as data; only cancellation propagates.
        """
        failure: Optional[ImageFailure] = None
        async with self._semaphore:
            try:
                data = await self.fetch(url)
                reference = await asyncio.to_thread(self._compress_and_store, data, name)
                logger.success(f"Compressed: {url} -> {name}")
                return ImageOutcome(url=url, position=position, reference=reference)
            except FetchError as e:
                failure = ImageFailure(kind=FailureKind.FETCH_ERROR, cause=str(e))
            except UnsupportedImageError as e:
                failure = ImageFailure(kind=FailureKind.UNSUPPORTED_IMAGE, cause=str(e))
            except OSError as e:
                failure = ImageFailure(kind=FailureKind.STORE_ERROR, cause=str(e))
            except Exception as e:
                logger.exception(f"Unexpected error processing {url}: {e}")
                failure = ImageFailure(kind=FailureKind.PROCESSING_ERROR, cause=f"{type(e).__name__}: {e}")

        logger.warning(f"Image failed ({failure.kind.value}): {url} - {failure.cause}")
        return ImageOutcome(url=url, position=position, failure=failure)

    async def process_row(self, request_id: str, row: ValidatedRow) -> List[ImageOutcome]:
        """Runs every image of a row concurrently; outcomes come back indexed by input position."""
        tasks = [
            self.fetch_and_compress(url, storage_name(request_id, row.row_index, position), position)
            for position, url in enumerate(row.input_image_urls, start=1)
        ]
        outcomes = await asyncio.gather(*tasks)
        return sorted(outcomes, key=lambda outcome: outcome.position)
