from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

SERIAL_NUMBER_HEADER = "S. No."
PRODUCT_NAME_HEADER = "Product Name"
INPUT_URLS_HEADER = "Input Image Urls"
REQUIRED_HEADERS = [SERIAL_NUMBER_HEADER, PRODUCT_NAME_HEADER, INPUT_URLS_HEADER]


class ManifestRow(BaseModel):
    """One raw manifest entry; cells are untouched text."""
    row_index: int
    serial_number: str = ""
    product_name: str = ""
    input_image_urls: str = ""


class ValidatedRow(BaseModel):
    row_index: int
    serial_number: int = Field(gt=0)
    product_name: str
    input_image_urls: List[str] = Field(min_length=1)


class FailureKind(str, Enum):
    FETCH_ERROR = "fetch_error"
    UNSUPPORTED_IMAGE = "unsupported_image"
    STORE_ERROR = "store_error"
    PROCESSING_ERROR = "processing_error"


class ImageFailure(BaseModel):
    kind: FailureKind
    cause: str


class ImageOutcome(BaseModel):
    """Result of fetching and compressing one image: a reference or a failure, never both."""
    url: str
    position: int
    reference: Optional[str] = None
    failure: Optional[ImageFailure] = None

    @model_validator(mode="after")
    def check_exclusive(self):
        if (self.reference is None) == (self.failure is None):
            raise ValueError("ImageOutcome needs exactly one of reference or failure")
        return self

    @property
    def succeeded(self) -> bool:
        return self.reference is not None


class ProductRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    serial_number: int = Field(alias="serialNumber")
    product_name: str = Field(alias="productName")
    input_image_urls: List[str] = Field(alias="inputImageUrls")
    output_image_urls: List[str] = Field(default_factory=list, alias="outputImageUrls")


class RequestStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"


class ProcessingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(alias="requestId")
    status: RequestStatus = RequestStatus.PENDING
    products: List[ProductRecord] = Field(default_factory=list)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
