"""Error taxonomy for the ingestion service.

Every user-visible failure carries a machine-checkable ``code``. Image-level
problems are never raised past the fetcher; they are recorded as
``ImageFailure`` data instead (see ``app.models.manifest``).
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    MISSING_FILE = "missing_file"
    MISSING_HEADERS = "missing_headers"
    MALFORMED_MANIFEST = "malformed_manifest"
    MISSING_FIELDS = "missing_fields"
    INVALID_SERIAL_NUMBER = "invalid_serial_number"
    INVALID_URLS = "invalid_urls"
    UNSUPPORTED_FILE_TYPE = "unsupported_file_type"
    INTERNAL_FAILURE = "internal_failure"
    IMAGE_NOT_FOUND = "image_not_found"
    REQUEST_NOT_FOUND = "request_not_found"


class IngestionError(Exception):
    """Base class for errors that map to a coded, user-visible response."""

    code: ErrorCode = ErrorCode.INTERNAL_FAILURE
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": self.details}


class MissingUpload(IngestionError):
    code = ErrorCode.MISSING_FILE
    status_code = 400


class UnsupportedMediaType(IngestionError):
    code = ErrorCode.UNSUPPORTED_FILE_TYPE
    status_code = 415

    def __init__(self, content_type: Optional[str]):
        super().__init__(
            "Invalid file type. Please upload a CSV file.",
            {"content_type": content_type},
        )
        self.content_type = content_type


class MalformedManifest(IngestionError):
    code = ErrorCode.MISSING_HEADERS
    status_code = 400

    def __init__(self, missing_headers: List[str], message: Optional[str] = None):
        super().__init__(
            message or f"Missing required headers: {', '.join(missing_headers)}",
            {"missing_headers": list(missing_headers)},
        )
        self.missing_headers = list(missing_headers)


class UnreadableManifest(MalformedManifest):
    """The upload could not be read as CSV at all."""

    code = ErrorCode.MALFORMED_MANIFEST

    def __init__(self, message: str):
        super().__init__([], message)


class RowErrorReason(str, Enum):
    MISSING_FIELD = "missing_field"
    INVALID_SERIAL_NUMBER = "invalid_serial_number"
    INVALID_URL = "invalid_url"


_REASON_CODES = {
    RowErrorReason.MISSING_FIELD: ErrorCode.MISSING_FIELDS,
    RowErrorReason.INVALID_SERIAL_NUMBER: ErrorCode.INVALID_SERIAL_NUMBER,
    RowErrorReason.INVALID_URL: ErrorCode.INVALID_URLS,
}


class InvalidRow(IngestionError):
    """A manifest row failed validation; fatal to the whole upload."""

    status_code = 400

    def __init__(self, row_index: int, reason: RowErrorReason, values: Optional[List[str]] = None):
        self.row_index = row_index
        self.reason = reason
        self.values = list(values or [])
        self.code = _REASON_CODES[reason]
        if reason is RowErrorReason.MISSING_FIELD:
            message = f"CSV contains empty fields in row {row_index}: {', '.join(self.values)}"
        elif reason is RowErrorReason.INVALID_SERIAL_NUMBER:
            message = f"Invalid serial number in row {row_index}: {', '.join(self.values)}"
        else:
            message = f"Invalid image URLs in row {row_index}: {', '.join(repr(v) for v in self.values)}"
        super().__init__(
            message,
            {"row_index": row_index, "reason": reason.value, "values": self.values},
        )


class PersistenceError(IngestionError):
    code = ErrorCode.INTERNAL_FAILURE
    status_code = 500


class ImageNotFound(IngestionError):
    code = ErrorCode.IMAGE_NOT_FOUND
    status_code = 404

    def __init__(self, name: str):
        super().__init__("Image not found", {"image_name": name})
        self.name = name


class RequestNotFound(IngestionError):
    code = ErrorCode.REQUEST_NOT_FOUND
    status_code = 404

    def __init__(self, request_id: str):
        super().__init__("Request not found", {"request_id": request_id})
        self.request_id = request_id
