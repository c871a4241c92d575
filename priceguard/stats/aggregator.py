"""Summary figures derived from the enriched document view.

All functions are pure and take the enriched view as input, so they always
reflect the current baselines.
"""

from collections.abc import Sequence

from priceguard.ledger.models import (
    DashboardStats,
    DocumentView,
    EnrichedDocument,
    SupplierSummary,
    VarianceStatus,
)

# Statuses that call for attention; a pure price decrease does not.
ALERT_STATUSES = frozenset({VarianceStatus.PRICE_INCREASE, VarianceStatus.MIXED})


def compute_stats(documents: Sequence[EnrichedDocument]) -> DashboardStats:
    """Compute dashboard counters.

    Args:
        documents: Enriched documents

    Returns:
        total_payable over documents neither paid nor on hold, variance_count
        of unpaid documents with an increase or mixed status, total_count
    """
    total_payable = sum(
        (doc.total_amount for doc in documents if not doc.is_paid and not doc.is_hold), 0.0
    )
    variance_count = sum(
        1 for doc in documents if doc.status in ALERT_STATUSES and not doc.is_paid
    )
    return DashboardStats(
        total_payable=total_payable,
        variance_count=variance_count,
        total_count=len(documents),
    )


def filter_by_view(
    documents: Sequence[EnrichedDocument], view: DocumentView = "all"
) -> list[EnrichedDocument]:
    """Select the documents shown on a history tab.

    ``outstanding`` is neither paid nor on hold, ``settled`` is paid and
    ``hold`` is on hold. ``all`` returns everything.
    """
    if view == "outstanding":
        return [doc for doc in documents if not doc.is_paid and not doc.is_hold]
    if view == "settled":
        return [doc for doc in documents if doc.is_paid]
    if view == "hold":
        return [doc for doc in documents if doc.is_hold]
    return list(documents)


def summarize_suppliers(documents: Sequence[EnrichedDocument]) -> list[SupplierSummary]:
    """Per-supplier document count, spend and variance count.

    Suppliers are listed in order of first appearance in ``documents``.
    Variance counts include paid documents.
    """
    summaries: dict[str, SupplierSummary] = {}
    for doc in documents:
        summary = summaries.get(doc.supplier_name)
        if summary is None:
            summary = SupplierSummary(
                supplier_name=doc.supplier_name,
                document_count=0,
                total_spent=0.0,
                variance_count=0,
            )
            summaries[doc.supplier_name] = summary
        summary.document_count += 1
        summary.total_spent += doc.total_amount
        if doc.status in ALERT_STATUSES:
            summary.variance_count += 1
    return list(summaries.values())


def high_risk_documents(documents: Sequence[EnrichedDocument]) -> list[EnrichedDocument]:
    """Documents flagged with a pure price increase."""
    return [doc for doc in documents if doc.status == VarianceStatus.PRICE_INCREASE]
