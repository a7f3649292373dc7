from typing import Sequence

from loguru import logger

from app.models.manifest import ImageOutcome, ProductRecord, ValidatedRow


def build_product_record(row: ValidatedRow, outcomes: Sequence[ImageOutcome]) -> ProductRecord:
    """
    Collapses per-image outcomes into a product record.

    Successful references keep their input order; failed slots are dropped,
    so a row whose images all failed still yields a record with no outputs.
    """
    if len(outcomes) != len(row.input_image_urls):
        raise ValueError(
            f"Row {row.row_index}: expected {len(row.input_image_urls)} outcomes, got {len(outcomes)}"
        )

    ordered = sorted(outcomes, key=lambda outcome: outcome.position)
    output_urls = [outcome.reference for outcome in ordered if outcome.succeeded]

    failed = len(ordered) - len(output_urls)
    if failed:
        logger.warning(
            f"Row {row.row_index} ({row.product_name}): {failed}/{len(ordered)} images failed"
        )

    return ProductRecord(
        serial_number=row.serial_number,
        product_name=row.product_name,
        input_image_urls=list(row.input_image_urls),
        output_image_urls=output_urls,
    )
