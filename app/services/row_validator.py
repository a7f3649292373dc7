from typing import List

import httpx

from app.core.errors import InvalidRow, RowErrorReason
from app.models.manifest import (
    INPUT_URLS_HEADER,
    PRODUCT_NAME_HEADER,
    SERIAL_NUMBER_HEADER,
    ManifestRow,
    ValidatedRow,
)


def is_valid_url(value: str) -> bool:
    """An absolute URL: has both a scheme and a host."""
    if not value:
        return False
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError, ValueError):
        return False
    return bool(url.scheme) and bool(url.host)


def split_urls(raw: str) -> List[str]:
    # Empty segments are kept so that "a,,b" fails validation instead of being dropped
    return [part.strip() for part in raw.split(",")]


def validate_row(row: ManifestRow) -> ValidatedRow:
    """Pure validation of one manifest row. Raises InvalidRow."""
    serial = row.serial_number.strip()
    name = row.product_name.strip()
    urls_cell = row.input_image_urls.strip()

    missing = [
        header
        for header, value in (
            (SERIAL_NUMBER_HEADER, serial),
            (PRODUCT_NAME_HEADER, name),
            (INPUT_URLS_HEADER, urls_cell),
        )
        if not value
    ]
    if missing:
        raise InvalidRow(row.row_index, RowErrorReason.MISSING_FIELD, missing)

    try:
        serial_number = int(serial)
    except ValueError:
        serial_number = 0
    if serial_number <= 0:
        raise InvalidRow(row.row_index, RowErrorReason.INVALID_SERIAL_NUMBER, [serial])

    urls = split_urls(urls_cell)
    invalid = [url for url in urls if not is_valid_url(url)]
    if invalid:
        raise InvalidRow(row.row_index, RowErrorReason.INVALID_URL, invalid)

    return ValidatedRow(
        row_index=row.row_index,
        serial_number=serial_number,
        product_name=name,
        input_image_urls=urls,
    )
