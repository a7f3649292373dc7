"""
Ingestion pipeline: manifest -> validated rows -> concurrent image work ->
product records -> one persisted ProcessingRequest.

The orchestrator is a small state machine. Every run ends in exactly one
terminal state (Done, Rejected or Failed) and returns exactly one
IngestionResult; callers turn that into exactly one response.
"""

import asyncio
import uuid
from enum import Enum
from typing import BinaryIO, Dict, List, Optional

from loguru import logger

from app.core.errors import IngestionError, InvalidRow, MalformedManifest
from app.models.manifest import ProcessingRequest, ProductRecord, ValidatedRow
from app.services.aggregator import build_product_record
from app.services.image_fetcher import ImageFetcher
from app.services.manifest_parser import parse_manifest
from app.services.request_builder import RequestBuilder
from app.services.row_validator import validate_row


class IngestionState(str, Enum):
    READING_HEADER = "ReadingHeader"
    READING_ROWS = "ReadingRows"
    VALIDATING = "Validating"
    FETCHING = "Fetching"
    AGGREGATING = "Aggregating"
    PERSISTING = "Persisting"
    DONE = "Done"
    REJECTED = "Rejected"
    FAILED = "Failed"


TERMINAL_STATES = {IngestionState.DONE, IngestionState.REJECTED, IngestionState.FAILED}

_TRANSITIONS = {
    IngestionState.READING_HEADER: {IngestionState.READING_ROWS, IngestionState.REJECTED, IngestionState.FAILED},
    IngestionState.READING_ROWS: {IngestionState.VALIDATING, IngestionState.FETCHING, IngestionState.REJECTED, IngestionState.FAILED},
    IngestionState.VALIDATING: {IngestionState.READING_ROWS, IngestionState.REJECTED, IngestionState.FAILED},
    IngestionState.FETCHING: {IngestionState.AGGREGATING, IngestionState.FAILED},
    IngestionState.AGGREGATING: {IngestionState.PERSISTING, IngestionState.FAILED},
    IngestionState.PERSISTING: {IngestionState.DONE, IngestionState.FAILED},
}


class IngestionResult:
    """The single observable outcome of one ingestion run."""

    def __init__(
        self,
        state: IngestionState,
        request_id: Optional[str] = None,
        error: Optional[IngestionError] = None,
        request: Optional[ProcessingRequest] = None,
    ):
        self.state = state
        self.request_id = request_id
        self.error = error
        self.request = request

    @property
    def ok(self) -> bool:
        return self.state is IngestionState.DONE

    def __repr__(self) -> str:
        if self.ok:
            return f"IngestionResult(Done, request_id={self.request_id})"
        code = self.error.code.value if self.error else None
        return f"IngestionResult({self.state.value}, code={code})"


class IngestionRun:
    """State of one upload. Not reusable."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        self.request = ProcessingRequest(request_id=request_id)
        self.state = IngestionState.READING_HEADER
        self.row_tasks: Dict[int, asyncio.Task] = {}
        self.rows: Dict[int, ValidatedRow] = {}

    def transition(self, new_state: IngestionState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Run {self.request_id} already ended in {self.state.value}")
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal transition {self.state.value} -> {new_state.value}")
        logger.debug(f"[{self.request_id}] {self.state.value} -> {new_state.value}")
        self.state = new_state

    async def cancel_pending(self) -> None:
        pending = [task for task in self.row_tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        # Drain so that stray completions are observed and discarded here
        await asyncio.gather(*self.row_tasks.values(), return_exceptions=True)
        if pending:
            logger.info(f"[{self.request_id}] Cancelled {len(pending)} in-flight row tasks")


class IngestionOrchestrator:
    def __init__(self, fetcher: ImageFetcher, builder: RequestBuilder, chunk_size: int = 500):
        self.fetcher = fetcher
        self.builder = builder
        self.chunk_size = chunk_size

    @staticmethod
    def new_request_id() -> str:
        return str(uuid.uuid4())

    async def run(self, manifest: BinaryIO) -> IngestionResult:
        run = IngestionRun(self.new_request_id())
        logger.info(f"🚀 Ingestion {run.request_id} started")
        try:
            return await self._run(run, manifest)
        except asyncio.CancelledError:
            await run.cancel_pending()
            raise
        except Exception as e:
            logger.exception(f"Ingestion {run.request_id} failed: {e}")
            await run.cancel_pending()
            if run.state not in TERMINAL_STATES:
                run.transition(IngestionState.FAILED)
            error = e if isinstance(e, IngestionError) else IngestionError("Internal server error")
            return IngestionResult(IngestionState.FAILED, error=error)

    def _read_and_validate(self, run: IngestionRun, manifest: BinaryIO) -> List[ValidatedRow]:
        # Runs in a worker thread: pandas parsing and validation are blocking
        rows = parse_manifest(manifest, chunk_size=self.chunk_size)
        run.transition(IngestionState.READING_ROWS)
        validated_rows = []
        for manifest_row in rows:
            run.transition(IngestionState.VALIDATING)
            validated_rows.append(validate_row(manifest_row))
            run.transition(IngestionState.READING_ROWS)
        return validated_rows

    async def _run(self, run: IngestionRun, manifest: BinaryIO) -> IngestionResult:
        try:
            validated_rows = await asyncio.to_thread(self._read_and_validate, run, manifest)
        except (InvalidRow, MalformedManifest) as e:
            # No row task exists yet, so a rejection never reaches the network
            run.transition(IngestionState.REJECTED)
            logger.warning(f"[{run.request_id}] Rejected: {e.message}")
            return IngestionResult(IngestionState.REJECTED, error=e)

        run.transition(IngestionState.FETCHING)
        for validated in validated_rows:
            run.rows[validated.row_index] = validated
            run.row_tasks[validated.row_index] = asyncio.create_task(
                self.fetcher.process_row(run.request_id, validated),
                name=f"{run.request_id}-row-{validated.row_index}",
            )

        run.transition(IngestionState.AGGREGATING)
        products: List[ProductRecord] = []
        for row_index in sorted(run.row_tasks):
            outcomes = await run.row_tasks[row_index]
            products.append(build_product_record(run.rows[row_index], outcomes))
        logger.info(f"📦 [{run.request_id}] {len(products)} products prepared")

        run.transition(IngestionState.PERSISTING)
        request = RequestBuilder.complete(run.request, products)
        await self.builder.persist(request)

        run.transition(IngestionState.DONE)
        logger.success(f"✅ Ingestion {run.request_id} done")
        return IngestionResult(IngestionState.DONE, request_id=run.request_id, request=request)
