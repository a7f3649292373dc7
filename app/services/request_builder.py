import asyncio
from typing import Sequence

from loguru import logger

from app.core.errors import PersistenceError
from app.models.manifest import ProcessingRequest, ProductRecord, RequestStatus
from app.services.request_repository import RequestRepository


class RequestBuilder:
    """Completes a pending request and writes it through the repository once."""

    def __init__(self, repository: RequestRepository, max_attempts: int = 3, retry_delay: float = 0.5):
        self.repository = repository
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay

    @staticmethod
    def complete(request: ProcessingRequest, products: Sequence[ProductRecord]) -> ProcessingRequest:
        if request.status is not RequestStatus.PENDING:
            raise ValueError(f"Request {request.request_id} is already {request.status.value}")
        return request.model_copy(
            update={"status": RequestStatus.COMPLETED, "products": list(products)}
        )

    async def persist(self, request: ProcessingRequest) -> str:
        # Saves are keyed by request id, so retrying is idempotent
        for attempt in range(self.max_attempts):
            try:
                await asyncio.to_thread(self.repository.save, request)
                logger.success(f"Saved request {request.request_id} ({len(request.products)} products)")
                return request.request_id
            except PersistenceError as e:
                logger.error(f"Persist attempt {attempt + 1} failed for {request.request_id}: {e.message}")
                if attempt == self.max_attempts - 1:
                    raise
                await asyncio.sleep(self.retry_delay * (attempt + 1))
