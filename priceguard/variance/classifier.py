"""Document-level variance classification."""

from collections.abc import Iterable

from priceguard.ledger.models import EnrichedLineItem, VarianceStatus

# Absolute currency units; absorbs floating point noise in extracted prices.
DEFAULT_TOLERANCE = 0.01


def classify(
    items: Iterable[EnrichedLineItem], tolerance: float = DEFAULT_TOLERANCE
) -> VarianceStatus:
    """Classify a document from its enriched items.

    Any item above the tolerance counts as an increase, any item below its
    negative as a decrease. Both together are ``mixed``. An empty item list
    is ``matched``.

    Args:
        items: Items carrying ``price_change``
        tolerance: Changes within +/- this amount are ignored

    Returns:
        The document's variance status
    """
    has_increase = False
    has_decrease = False
    for item in items:
        if item.price_change > tolerance:
            has_increase = True
        elif item.price_change < -tolerance:
            has_decrease = True

    if has_increase and has_decrease:
        return VarianceStatus.MIXED
    if has_increase:
        return VarianceStatus.PRICE_INCREASE
    if has_decrease:
        return VarianceStatus.PRICE_DECREASE
    return VarianceStatus.MATCHED
