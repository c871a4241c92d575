"""Audit ledger: the single owner of documents and baselines.

Every mutation goes through this class. Each one is staged on copies of the
current state, written to the snapshot store as one unit and only then
committed in memory, so memory and storage never disagree about which
baselines a document was ingested against.

Reads rebuild the enriched view from the current documents and baselines.
The result is cached per ledger version; every committed write bumps the
version.
"""

import logging
import threading
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from prometheus_client import Counter

from priceguard.baseline.store import BaselineStore, check_price
from priceguard.extraction.schema import ExtractedDocument
from priceguard.ingestion.validation import validate_record
from priceguard.ledger.models import (
    BaselineEntry,
    DashboardStats,
    Document,
    DocumentView,
    EnrichedDocument,
    LineItem,
    SupplierSummary,
)
from priceguard.stats import aggregator
from priceguard.storage.base import SnapshotStore
from priceguard.variance.classifier import DEFAULT_TOLERANCE
from priceguard.variance.enrichment import enrich_document, enrich_documents

logger = logging.getLogger(__name__)


baselines_seeded_total = Counter(
    "baselines_seeded_total",
    "Baselines established from a first observed price",
)

baseline_overrides_total = Counter(
    "baseline_overrides_total",
    "Manual baseline overrides",
    ["result"],  # applied, unknown_key
)


class AuditLedger:
    """Document store and baseline store behind one mutation API.

    Attributes:
        snapshot_store: Persistence collaborator receiving every committed state
        tolerance: Price change ignored when classifying documents
    """

    def __init__(
        self,
        snapshot_store: SnapshotStore,
        documents: Sequence[Document] | None = None,
        baselines: BaselineStore | Mapping[str, Mapping[str, float]] | None = None,
        tolerance: float = DEFAULT_TOLERANCE,
    ) -> None:
        """Initialize ledger with existing state.

        Args:
            snapshot_store: Where committed state is saved
            documents: Stored documents, newest ingestion first
            baselines: Existing baselines
            tolerance: Classification tolerance in currency units
        """
        self.snapshot_store = snapshot_store
        self.tolerance = tolerance
        self._documents: list[Document] = list(documents or [])
        if isinstance(baselines, BaselineStore):
            self._baselines = baselines.copy()
        else:
            self._baselines = BaselineStore.from_mapping(baselines or {})
        self._lock = threading.RLock()
        self._version = 0
        self._view: list[EnrichedDocument] | None = None
        self._view_version = -1

    @classmethod
    def load(
        cls, snapshot_store: SnapshotStore, tolerance: float = DEFAULT_TOLERANCE
    ) -> "AuditLedger":
        """Create a ledger from the latest stored snapshot."""
        snapshot = snapshot_store.load()
        return cls(
            snapshot_store,
            documents=snapshot.documents,
            baselines=snapshot.baselines,
            tolerance=tolerance,
        )

    @property
    def version(self) -> int:
        """Counter incremented by every committed mutation."""
        return self._version

    # Commands

    def ingest(
        self,
        record: ExtractedDocument | Mapping[str, Any],
        file_name: str | None = None,
    ) -> EnrichedDocument:
        """Admit a newly extracted document.

        Seeds a baseline for every (supplier, item) pair seen for the first
        time, prepends the document and persists documents and baselines
        together. A pair's first document therefore reports no variance for
        that item.

        Args:
            record: Extraction output, validated here
            file_name: Name of the uploaded file, if any

        Returns:
            The stored document, enriched against the updated baselines

        Raises:
            RecordValidationError: If the record is incomplete or malformed
            PersistenceError: If the snapshot could not be saved; nothing
                is changed in that case
        """
        extracted = validate_record(record)

        with self._lock:
            baselines = self._baselines.copy()
            seeded = [
                item.name
                for item in extracted.items
                if baselines.seed_if_absent(extracted.supplier_name, item.name, item.unit_price)
            ]

            document = Document(
                id=str(uuid.uuid4()),
                file_name=file_name,
                items=[LineItem(**item.model_dump()) for item in extracted.items],
                **extracted.model_dump(exclude={"items"}),
            )
            self._commit([document, *self._documents], baselines)

            if seeded:
                baselines_seeded_total.inc(len(seeded))
                logger.info(
                    f"Seeded {len(seeded)} baseline(s) for {extracted.supplier_name}: "
                    f"{', '.join(seeded)}"
                )
            logger.info(
                f"Ingested {document.doc_type} {document.invoice_number} from "
                f"{document.supplier_name} as {document.id}"
            )

            return enrich_document(document, self._baselines, self.tolerance)

    def update_baseline(self, supplier: str, item: str, price: float) -> bool:
        """Manually re-anchor a baseline.

        Applies retroactively: every stored document for the pair is judged
        against the new price on the next read.

        Args:
            supplier: Supplier name (exact match)
            item: Item name (exact match)
            price: New reference unit price

        Returns:
            True if the baseline was replaced, False if the pair has no
            baseline yet (nothing is created)

        Raises:
            ValueError: If price is not a positive number
            PersistenceError: If the snapshot could not be saved
        """
        price = check_price(price)
        with self._lock:
            baselines = self._baselines.copy()
            if not baselines.contains(supplier, item):
                baseline_overrides_total.labels(result="unknown_key").inc()
                logger.info(f"No baseline for {supplier!r}/{item!r}, override ignored")
                return False

            previous = baselines.get(supplier, item)
            baselines.override(supplier, item, price)
            self._commit(self._documents, baselines)

        baseline_overrides_total.labels(result="applied").inc()
        logger.info(f"Baseline for {supplier!r}/{item!r} changed from {previous} to {price}")
        return True

    def delete_document(self, document_id: str) -> bool:
        """Discard a document. Unknown ids are ignored.

        Baselines seeded by the document stay in place.

        Returns:
            True if a document was removed
        """
        with self._lock:
            remaining = [doc for doc in self._documents if doc.id != document_id]
            if len(remaining) == len(self._documents):
                logger.debug(f"Delete of unknown document {document_id} ignored")
                return False
            self._commit(remaining, self._baselines)

        logger.info(f"Deleted document {document_id}")
        return True

    def set_paid(self, document_id: str, paid: bool = True) -> bool:
        """Mark a document as settled or outstanding.

        Returns:
            True if the document exists
        """
        return self._update_flags(document_id, is_paid=paid)

    def set_hold(self, document_id: str, hold: bool = True) -> bool:
        """Put a document on hold or release it.

        Returns:
            True if the document exists
        """
        return self._update_flags(document_id, is_hold=hold)

    def _update_flags(self, document_id: str, **flags: bool) -> bool:
        with self._lock:
            found = False
            documents: list[Document] = []
            for doc in self._documents:
                if doc.id == document_id:
                    doc = doc.model_copy(update=flags)
                    found = True
                documents.append(doc)

            if not found:
                logger.debug(f"Flag update for unknown document {document_id} ignored")
                return False
            self._commit(documents, self._baselines)

        logger.info(f"Updated document {document_id}: {flags}")
        return True

    def _commit(self, documents: list[Document], baselines: BaselineStore) -> None:
        """Persist the staged state, then make it current."""
        self.snapshot_store.save(documents, baselines.snapshot())
        self._documents = documents
        self._baselines = baselines
        self._version += 1

    # Queries

    def get_enriched_view(self) -> list[EnrichedDocument]:
        """All documents enriched against current baselines, newest date first."""
        with self._lock:
            if self._view is None or self._view_version != self._version:
                self._view = enrich_documents(self._documents, self._baselines, self.tolerance)
                self._view_version = self._version
            return [doc.model_copy(deep=True) for doc in self._view]

    def get_document(self, document_id: str) -> EnrichedDocument | None:
        for doc in self.get_enriched_view():
            if doc.id == document_id:
                return doc
        return None

    def get_stats(self) -> DashboardStats:
        return aggregator.compute_stats(self.get_enriched_view())

    def documents_for_view(self, view: DocumentView = "all") -> list[EnrichedDocument]:
        return aggregator.filter_by_view(self.get_enriched_view(), view)

    def supplier_summaries(self) -> list[SupplierSummary]:
        return aggregator.summarize_suppliers(self.get_enriched_view())

    def high_risk_documents(self) -> list[EnrichedDocument]:
        return aggregator.high_risk_documents(self.get_enriched_view())

    def list_baselines(self) -> list[BaselineEntry]:
        with self._lock:
            return self._baselines.entries()

    def get_baseline(self, supplier: str, item: str) -> float | None:
        with self._lock:
            return self._baselines.get(supplier, item)

    def raw_documents(self) -> list[Document]:
        """Stored documents in ledger order, as persisted."""
        with self._lock:
            return [doc.model_copy(deep=True) for doc in self._documents]
