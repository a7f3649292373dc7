from typing import BinaryIO, Iterator, List

import pandas as pd
from loguru import logger
from pandas.errors import EmptyDataError, ParserError

from app.core.errors import MalformedManifest, UnreadableManifest
from app.models.manifest import (
    INPUT_URLS_HEADER,
    PRODUCT_NAME_HEADER,
    REQUIRED_HEADERS,
    SERIAL_NUMBER_HEADER,
    ManifestRow,
)

CSV_ENCODING = "utf-8-sig"


def _normalize_columns(columns) -> List[str]:
    return [str(col).strip() for col in columns]


def _cell(value) -> str:
    # Short rows come back as NaN even with keep_default_na=False
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value)


def read_header(stream: BinaryIO) -> List[str]:
    """Reads the header line and rewinds the stream. Raises MalformedManifest."""
    start = stream.tell()
    try:
        header = pd.read_csv(stream, nrows=0, dtype=str, encoding=CSV_ENCODING, index_col=False)
    except EmptyDataError:
        raise MalformedManifest(REQUIRED_HEADERS, "Manifest is empty")
    except (ParserError, UnicodeDecodeError) as e:
        raise UnreadableManifest(f"Could not read manifest as CSV: {e}")
    finally:
        stream.seek(start)

    columns = _normalize_columns(header.columns)
    missing = [h for h in REQUIRED_HEADERS if h not in columns]
    if missing:
        logger.warning(f"Manifest rejected, missing headers: {missing} (found {columns})")
        raise MalformedManifest(missing)
    return columns


def _iter_rows(stream: BinaryIO, chunk_size: int) -> Iterator[ManifestRow]:
    reader = pd.read_csv(
        stream,
        dtype=str,
        keep_default_na=False,
        encoding=CSV_ENCODING,
        index_col=False,
        chunksize=chunk_size,
    )
    row_index = 0
    with reader:
        while True:
            try:
                chunk = next(reader)
            except StopIteration:
                break
            except (ParserError, UnicodeDecodeError) as e:
                raise UnreadableManifest(
                    f"Could not read manifest rows {row_index + 1}-{row_index + chunk_size}: {e}"
                )

            chunk.columns = _normalize_columns(chunk.columns)
            for record in chunk.to_dict("records"):
                row_index += 1
                yield ManifestRow(
                    row_index=row_index,
                    serial_number=_cell(record.get(SERIAL_NUMBER_HEADER)),
                    product_name=_cell(record.get(PRODUCT_NAME_HEADER)),
                    input_image_urls=_cell(record.get(INPUT_URLS_HEADER)),
                )
    logger.debug(f"Manifest exhausted after {row_index} rows")


def parse_manifest(stream: BinaryIO, chunk_size: int = 500) -> Iterator[ManifestRow]:
    """
    Validates the manifest header eagerly, then returns a lazy iterator of rows
    in source order. The stream must be seekable and is read exactly once for rows.
    """
    read_header(stream)
    return _iter_rows(stream, chunk_size)
