import json
import os
import tempfile
from typing import Dict, Optional, Protocol

from loguru import logger

from app.core.errors import PersistenceError
from app.models.manifest import ProcessingRequest


class RequestRepository(Protocol):
    """Durable single-write-per-request store for processing requests."""

    def save(self, request: ProcessingRequest) -> None: ...

    def get(self, request_id: str) -> Optional[ProcessingRequest]: ...


class InMemoryRequestRepository:
    def __init__(self):
        self._records: Dict[str, dict] = {}

    def save(self, request: ProcessingRequest) -> None:
        document = request.to_document()
        existing = self._records.get(request.request_id)
        if existing is not None and existing != document:
            raise PersistenceError(f"Request {request.request_id} is already persisted")
        self._records[request.request_id] = document

    def get(self, request_id: str) -> Optional[ProcessingRequest]:
        document = self._records.get(request_id)
        if document is None:
            return None
        return ProcessingRequest.model_validate(document)

    def __len__(self) -> int:
        return len(self._records)


class JsonFileRequestRepository:
    """One JSON document per request, written atomically."""

    def __init__(self, root_dir: str):
        self.root_dir = root_dir
        os.makedirs(self.root_dir, exist_ok=True)

    def _path_for(self, request_id: str) -> Optional[str]:
        if not request_id or os.path.basename(request_id) != request_id or request_id.startswith("."):
            return None
        return os.path.join(self.root_dir, f"{request_id}.json")

    def _read(self, path: str) -> Optional[dict]:
        if not os.path.isfile(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, request: ProcessingRequest) -> None:
        path = self._path_for(request.request_id)
        if path is None:
            raise PersistenceError(f"Invalid request id: {request.request_id!r}")

        document = request.to_document()
        try:
            existing = self._read(path)
            if existing is not None:
                if existing == document:
                    return
                raise PersistenceError(f"Request {request.request_id} is already persisted")

            fd, tmp_path = tempfile.mkstemp(dir=self.root_dir, prefix=".tmp_", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, path)
            finally:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to write request {request.request_id}: {e}")
            raise PersistenceError(f"Failed to persist request {request.request_id}: {e}") from e

    def get(self, request_id: str) -> Optional[ProcessingRequest]:
        path = self._path_for(request_id)
        if path is None:
            return None
        document = self._read(path)
        if document is None:
            return None
        return ProcessingRequest.model_validate(document)
