"""Validation of untrusted extraction output before it reaches the ledger."""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from priceguard.extraction.schema import ExtractedDocument
from priceguard.shared.errors import RecordValidationError

logger = logging.getLogger(__name__)


def _format_error(error: Mapping[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ())) or "record"
    return f"{location}: {error.get('msg', 'invalid value')}"


def validate_record(record: ExtractedDocument | Mapping[str, Any]) -> ExtractedDocument:
    """Check an extracted record and return it as an ``ExtractedDocument``.

    Args:
        record: Raw mapping from an extraction provider, or an already
            parsed document

    Returns:
        Validated document

    Raises:
        RecordValidationError: If required fields are missing or malformed,
            amounts are not finite numbers, or there are no items
    """
    if isinstance(record, ExtractedDocument):
        return record

    if not isinstance(record, Mapping):
        raise RecordValidationError([f"record: expected an object, got {type(record).__name__}"])

    try:
        document = ExtractedDocument.model_validate(dict(record))
    except ValidationError as e:
        raise RecordValidationError([_format_error(err) for err in e.errors()]) from e

    mismatches = document.item_total_mismatches()
    if mismatches:
        logger.warning(
            f"Line totals differ from quantity x unit price on "
            f"{document.supplier_name} {document.invoice_number}: {', '.join(mismatches)}"
        )

    return document
