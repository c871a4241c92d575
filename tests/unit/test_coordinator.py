"""Unit tests for IngestionCoordinator.

Tests batch ordering, failure isolation and parallel extraction with a
stubbed extraction provider.
"""

import json
import threading
import time
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from priceguard.extraction.base import ExtractionProvider, ExtractionResult
from priceguard.ingestion.coordinator import DocumentUpload, IngestionCoordinator
from priceguard.ledger.models import VarianceStatus
from priceguard.ledger.service import AuditLedger
from priceguard.shared.config import Settings
from priceguard.shared.errors import PersistenceError
from priceguard.storage.base import SnapshotStore
from priceguard.storage.file_store import FileSnapshotStore


class JsonEchoProvider(ExtractionProvider):
    """Provider whose uploads carry their record as JSON.

    Content starting with ``FAIL`` yields a failed extraction and ``BOOM``
    raises, mimicking a misbehaving provider.
    """

    def __init__(self, delays: dict[str, float] | None = None) -> None:
        super().__init__(Settings())
        self.delays = delays or {}
        self.calls: list[str] = []
        self._lock = threading.Lock()

    @property
    def provider_name(self) -> str:
        return "echo"

    def is_available(self) -> bool:
        return True

    def extract_document_fields(self, content: bytes, media_type: str) -> ExtractionResult:
        text = content.decode("utf-8")
        with self._lock:
            self.calls.append(text)
        if text.startswith("BOOM"):
            raise RuntimeError("provider crashed")
        if text.startswith("FAIL"):
            return self._failure("Could not read document")

        record: dict[str, Any] = json.loads(text)
        time.sleep(self.delays.get(record["invoice_number"], 0))
        return ExtractionResult(record=record, success=True, provider=self.provider_name)


def make_upload(
    invoice_number: str,
    items: list[tuple[str, float]],
    supplier: str = "Acme",
) -> DocumentUpload:
    """Build an upload whose content is the record itself."""
    record = {
        "doc_type": "invoice",
        "supplier_name": supplier,
        "date": "2024-03-01",
        "invoice_number": invoice_number,
        "total_amount": sum(price for _, price in items),
        "items": [
            {"name": name, "quantity": 1, "unit_price": price, "total": price}
            for name, price in items
        ],
    }
    return DocumentUpload(
        file_name=f"{invoice_number}.png",
        content=json.dumps(record).encode("utf-8"),
        media_type="image/png",
    )


def raw_upload(file_name: str, content: bytes) -> DocumentUpload:
    return DocumentUpload(file_name=file_name, content=content, media_type="image/png")


@pytest.fixture
def ledger(tmp_path: Path) -> AuditLedger:
    """Create empty ledger backed by a temp file."""
    return AuditLedger(FileSnapshotStore(tmp_path / "ledger.json"))


@pytest.fixture
def provider() -> JsonEchoProvider:
    """Create echo provider."""
    return JsonEchoProvider()


class TestSequentialBatch:
    """Test batches processed one upload at a time."""

    def test_same_new_item_seeded_once(
        self, ledger: AuditLedger, provider: JsonEchoProvider
    ) -> None:
        """Second document in the batch is judged against the first one's price."""
        coordinator = IngestionCoordinator(ledger, provider)

        result = coordinator.ingest_batch(
            [make_upload("INV-1", [("Widget", 10.0)]), make_upload("INV-2", [("Widget", 12.0)])]
        )

        assert result.total == 2
        assert result.succeeded == 2
        first, second = result.outcomes
        assert first.document is not None and second.document is not None
        assert first.document.status == VarianceStatus.MATCHED
        assert second.document.status == VarianceStatus.PRICE_INCREASE
        assert second.document.items[0].previous_unit_price == 10.0
        assert ledger.get_baseline("Acme", "Widget") == 10.0

    def test_outcomes_in_upload_order(
        self, ledger: AuditLedger, provider: JsonEchoProvider
    ) -> None:
        """Outcomes follow the order of uploads."""
        coordinator = IngestionCoordinator(ledger, provider)
        uploads = [make_upload(f"INV-{n}", [("Widget", 10.0)]) for n in range(4)]

        result = coordinator.ingest_batch(uploads)

        assert [o.file_name for o in result.outcomes] == [u.file_name for u in uploads]

    def test_empty_batch(self, ledger: AuditLedger, provider: JsonEchoProvider) -> None:
        """Empty batch is a no-op."""
        result = IngestionCoordinator(ledger, provider).ingest_batch([])

        assert result.total == 0
        assert result.outcomes == []
        assert ledger.version == 0

    def test_single_upload(self, ledger: AuditLedger, provider: JsonEchoProvider) -> None:
        """Single upload returns its outcome directly."""
        outcome = IngestionCoordinator(ledger, provider).ingest_upload(
            make_upload("INV-1", [("Widget", 10.0)])
        )

        assert outcome.success is True
        assert outcome.document is not None
        assert outcome.document.file_name == "INV-1.png"


class TestFailureIsolation:
    """Test that a failing upload does not affect the rest of the batch."""

    def test_extraction_failure(self, ledger: AuditLedger, provider: JsonEchoProvider) -> None:
        """Failed extraction is reported; later uploads still ingest."""
        coordinator = IngestionCoordinator(ledger, provider)

        result = coordinator.ingest_batch(
            [
                make_upload("INV-1", [("Widget", 10.0)]),
                raw_upload("broken.png", b"FAIL"),
                make_upload("INV-3", [("Widget", 12.0)]),
            ]
        )

        assert result.succeeded == 2
        assert result.failed == 1
        failed = result.outcomes[1]
        assert failed.success is False
        assert failed.stage == "extraction"
        assert failed.error == "Could not read document"
        assert result.outcomes[2].document is not None
        assert result.outcomes[2].document.status == VarianceStatus.PRICE_INCREASE

    def test_provider_exception(self, ledger: AuditLedger, provider: JsonEchoProvider) -> None:
        """A provider raising is treated as an extraction failure."""
        coordinator = IngestionCoordinator(ledger, provider)

        result = coordinator.ingest_batch(
            [raw_upload("crash.png", b"BOOM"), make_upload("INV-2", [("Widget", 10.0)])]
        )

        assert result.outcomes[0].stage == "extraction"
        assert "provider crashed" in (result.outcomes[0].error or "")
        assert result.outcomes[1].success is True

    def test_validation_failure(self, ledger: AuditLedger, provider: JsonEchoProvider) -> None:
        """Invalid record is rejected with field errors and seeds nothing."""
        coordinator = IngestionCoordinator(ledger, provider)
        bad = make_upload("INV-1", [("Widget", 10.0)])
        record = json.loads(bad.content)
        record["items"][0]["unit_price"] = "ten"
        bad.content = json.dumps(record).encode("utf-8")

        result = coordinator.ingest_batch([bad, make_upload("INV-2", [("Widget", 12.0)])])

        rejected = result.outcomes[0]
        assert rejected.stage == "validation"
        assert any("unit_price" in error for error in rejected.validation_errors)
        # The valid document seeds the baseline instead.
        assert ledger.get_baseline("Acme", "Widget") == 12.0

    def test_persistence_failure(self, provider: JsonEchoProvider) -> None:
        """Storage failure is reported against the affected upload only."""
        snapshot_store = MagicMock(spec=SnapshotStore)
        snapshot_store.save.side_effect = [PersistenceError("disk full"), None]
        ledger = AuditLedger(snapshot_store)
        coordinator = IngestionCoordinator(ledger, provider)

        result = coordinator.ingest_batch(
            [make_upload("INV-1", [("Widget", 10.0)]), make_upload("INV-2", [("Widget", 12.0)])]
        )

        assert result.outcomes[0].stage == "persistence"
        assert result.outcomes[1].success is True
        assert ledger.get_baseline("Acme", "Widget") == 12.0


class TestParallelExtraction:
    """Test concurrent extraction with ordered application."""

    def test_results_applied_in_upload_order(self, ledger: AuditLedger) -> None:
        """Slow first extraction must still be applied first."""
        provider = JsonEchoProvider(delays={"INV-1": 0.2})
        coordinator = IngestionCoordinator(ledger, provider, max_workers=4)

        result = coordinator.ingest_batch(
            [
                make_upload("INV-1", [("Widget", 10.0)]),
                make_upload("INV-2", [("Widget", 12.0)]),
                make_upload("INV-3", [("Widget", 8.0)]),
            ]
        )

        assert result.succeeded == 3
        statuses = [o.document.status for o in result.outcomes if o.document is not None]
        assert statuses == [
            VarianceStatus.MATCHED,
            VarianceStatus.PRICE_INCREASE,
            VarianceStatus.PRICE_DECREASE,
        ]
        assert ledger.get_baseline("Acme", "Widget") == 10.0
        assert len(provider.calls) == 3

    def test_worker_count_is_at_least_one(self, ledger: AuditLedger) -> None:
        """Non-positive worker counts fall back to sequential."""
        coordinator = IngestionCoordinator(ledger, JsonEchoProvider(), max_workers=0)
        assert coordinator.max_workers == 1
