"""Enrichment of stored documents against the current baselines.

Every derived value (per-item deltas and the document status) is computed
here from scratch. Nothing is frozen at ingestion time, so a baseline
override shows up on every affected document at the next read.
"""

from collections.abc import Sequence

from priceguard.baseline.store import BaselineStore
from priceguard.ledger.models import Document, EnrichedDocument, EnrichedLineItem, LineItem
from priceguard.variance.classifier import DEFAULT_TOLERANCE, classify


def enrich_item(item: LineItem, baseline: float | None) -> EnrichedLineItem:
    """Compare one item against its baseline.

    Args:
        item: Raw line item
        baseline: Reference unit price, or None when the pair has none yet

    Returns:
        Item with previous_unit_price, price_change and percent_change set
    """
    if baseline is None:
        return EnrichedLineItem(**item.model_dump())

    price_change = item.unit_price - baseline
    percent_change = 0.0 if baseline == 0 else (price_change / baseline) * 100
    return EnrichedLineItem(
        **item.model_dump(),
        previous_unit_price=baseline,
        price_change=price_change,
        percent_change=percent_change,
    )


def enrich_document(
    document: Document,
    baselines: BaselineStore,
    tolerance: float = DEFAULT_TOLERANCE,
) -> EnrichedDocument:
    """Enrich all items of a document and recompute its status."""
    items = [
        enrich_item(item, baselines.get(document.supplier_name, item.name))
        for item in document.items
    ]
    return EnrichedDocument(
        **document.model_dump(exclude={"items"}),
        items=items,
        status=classify(items, tolerance),
    )


def enrich_documents(
    documents: Sequence[Document],
    baselines: BaselineStore,
    tolerance: float = DEFAULT_TOLERANCE,
) -> list[EnrichedDocument]:
    """Build the enriched view of a document collection.

    Output is ordered by document date, newest first. Documents sharing a
    date keep their relative order from ``documents``; ``sorted`` is stable
    with ``reverse=True`` as well.

    Inputs are never mutated.
    """
    enriched = [enrich_document(document, baselines, tolerance) for document in documents]
    return sorted(enriched, key=lambda document: document.date, reverse=True)
