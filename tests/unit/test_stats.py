"""Unit tests for dashboard statistics and history views."""

import datetime

import pytest

from priceguard.ledger.models import EnrichedDocument, VarianceStatus
from priceguard.stats.aggregator import (
    compute_stats,
    filter_by_view,
    high_risk_documents,
    summarize_suppliers,
)


def _doc(
    doc_id: str,
    total: float,
    status: VarianceStatus = VarianceStatus.MATCHED,
    supplier: str = "Acme",
    is_paid: bool = False,
    is_hold: bool = False,
) -> EnrichedDocument:
    return EnrichedDocument(
        id=doc_id,
        supplier_name=supplier,
        date=datetime.date(2024, 3, 1),
        invoice_number=f"INV-{doc_id}",
        total_amount=total,
        status=status,
        is_paid=is_paid,
        is_hold=is_hold,
    )


@pytest.fixture
def documents() -> list[EnrichedDocument]:
    """Create a mix of statuses and payment states."""
    return [
        _doc("open-increase", 100.0, VarianceStatus.PRICE_INCREASE),
        _doc("paid-mixed", 50.0, VarianceStatus.MIXED, is_paid=True),
        _doc("held-mixed", 30.0, VarianceStatus.MIXED, supplier="Globex", is_hold=True),
        _doc("open-decrease", 20.0, VarianceStatus.PRICE_DECREASE, supplier="Globex"),
        _doc("open-matched", 5.0),
    ]


class TestComputeStats:
    """Test dashboard counters."""

    def test_total_payable_excludes_paid_and_held(
        self, documents: list[EnrichedDocument]
    ) -> None:
        """Only outstanding documents count toward payable."""
        assert compute_stats(documents).total_payable == pytest.approx(125.0)

    def test_variance_count_excludes_paid(self, documents: list[EnrichedDocument]) -> None:
        """Held documents still count; paid ones and decreases do not."""
        assert compute_stats(documents).variance_count == 2

    def test_total_count(self, documents: list[EnrichedDocument]) -> None:
        """Every document is counted."""
        assert compute_stats(documents).total_count == 5

    def test_empty(self) -> None:
        """Empty ledger yields zeros."""
        stats = compute_stats([])
        assert stats.total_payable == 0.0
        assert stats.variance_count == 0
        assert stats.total_count == 0


class TestFilterByView:
    """Test history tab selection."""

    @pytest.mark.parametrize(
        ("view", "expected"),
        [
            ("all", ["open-increase", "paid-mixed", "held-mixed", "open-decrease", "open-matched"]),
            ("outstanding", ["open-increase", "open-decrease", "open-matched"]),
            ("settled", ["paid-mixed"]),
            ("hold", ["held-mixed"]),
        ],
    )
    def test_views(
        self, documents: list[EnrichedDocument], view: str, expected: list[str]
    ) -> None:
        """Each view keeps input order."""
        selected = filter_by_view(documents, view)  # type: ignore[arg-type]
        assert [doc.id for doc in selected] == expected


def test_summarize_suppliers(documents: list[EnrichedDocument]) -> None:
    """Test per-supplier totals in first-seen order, paid variances included."""
    summaries = summarize_suppliers(documents)

    assert [s.supplier_name for s in summaries] == ["Acme", "Globex"]
    acme, globex = summaries
    assert acme.document_count == 3
    assert acme.total_spent == pytest.approx(155.0)
    assert acme.variance_count == 2
    assert globex.document_count == 2
    assert globex.variance_count == 1


def test_high_risk_documents(documents: list[EnrichedDocument]) -> None:
    """Test only pure price increases are high risk."""
    assert [doc.id for doc in high_risk_documents(documents)] == ["open-increase"]
