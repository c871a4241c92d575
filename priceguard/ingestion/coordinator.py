"""Batch ingestion of uploaded purchase documents.

Each upload is extracted, validated and applied to the ledger. Results are
applied strictly one at a time in upload order: a baseline seeded by one
document is already in place when the next document is compared, so two
documents introducing the same new item in one batch do not both seed it.

Extraction is the slow, I/O-bound step and may run concurrently when
``max_workers > 1``; only the application of results is serialized.

A failure affects only its own upload. The rest of the batch proceeds and
the failure is reported in that upload's ``IngestionOutcome``.
"""

import logging
import time
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Literal

from prometheus_client import Counter, Histogram
from pydantic import BaseModel

from priceguard.extraction.base import ExtractionProvider, ExtractionResult
from priceguard.ledger.models import EnrichedDocument
from priceguard.ledger.service import AuditLedger
from priceguard.shared.errors import ExtractionFailure, PersistenceError, RecordValidationError

logger = logging.getLogger(__name__)


documents_ingested_total = Counter(
    "documents_ingested_total",
    "Uploaded documents by ingestion outcome",
    ["status"],  # success, extraction_failed, validation_failed, persistence_failed
)

extraction_processing_duration_seconds = Histogram(
    "extraction_processing_duration_seconds",
    "Document extraction duration in seconds",
    ["provider"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

FailureStage = Literal["upload", "extraction", "validation", "persistence"]


class DocumentUpload(BaseModel):
    """A document waiting to be ingested.

    Attributes:
        file_name: Original file name
        content: Raw file bytes
        media_type: Declared MIME type
    """

    file_name: str
    content: bytes
    media_type: str


class IngestionOutcome(BaseModel):
    """Result of ingesting one upload.

    Attributes:
        file_name: Original file name
        success: Whether the document was admitted to the ledger
        document: Stored document, enriched (if successful)
        stage: Step that failed (if not successful)
        error: Error message (if not successful)
        validation_errors: Individual validation failures, if any
    """

    file_name: str
    success: bool
    document: EnrichedDocument | None = None
    stage: FailureStage | None = None
    error: str | None = None
    validation_errors: list[str] = []


class BatchResult(BaseModel):
    """Outcome of a batch, one entry per upload in upload order."""

    total: int
    succeeded: int
    failed: int
    outcomes: list[IngestionOutcome]


class IngestionCoordinator:
    """Runs uploads through extraction and into the ledger."""

    def __init__(
        self,
        ledger: AuditLedger,
        extraction_provider: ExtractionProvider,
        max_workers: int = 1,
    ) -> None:
        """Initialize coordinator.

        Args:
            ledger: Ledger receiving validated documents
            extraction_provider: Provider turning uploads into records
            max_workers: Concurrent extraction calls per batch
        """
        self.ledger = ledger
        self.extraction_provider = extraction_provider
        self.max_workers = max(1, max_workers)

    def ingest_upload(self, upload: DocumentUpload) -> IngestionOutcome:
        """Extract and ingest a single upload."""
        return self._apply(upload, self._extract(upload))

    def ingest_batch(self, uploads: Sequence[DocumentUpload]) -> BatchResult:
        """Ingest uploads in order, isolating failures.

        Args:
            uploads: Documents to ingest

        Returns:
            BatchResult with an outcome per upload, in upload order
        """
        logger.info(
            f"Ingesting batch of {len(uploads)} document(s) "
            f"with {self.max_workers} extraction worker(s)"
        )
        outcomes = [
            self._apply(upload, extraction)
            for upload, extraction in zip(uploads, self._extract_all(uploads), strict=True)
        ]
        succeeded = sum(1 for outcome in outcomes if outcome.success)
        logger.info(f"Batch finished: {succeeded}/{len(outcomes)} document(s) ingested")
        return BatchResult(
            total=len(outcomes),
            succeeded=succeeded,
            failed=len(outcomes) - succeeded,
            outcomes=outcomes,
        )

    def _extract_all(self, uploads: Sequence[DocumentUpload]) -> Iterator[ExtractionResult]:
        if self.max_workers == 1 or len(uploads) < 2:
            # Lazy: each document is applied before the next one is extracted.
            return (self._extract(upload) for upload in uploads)

        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(uploads)),
            thread_name_prefix="extraction",
        )
        try:
            # Collected up front so the pool is released before results are applied.
            results = list(executor.map(self._extract, uploads))
        finally:
            executor.shutdown(wait=True)
        return iter(results)

    def _extract(self, upload: DocumentUpload) -> ExtractionResult:
        provider = self.extraction_provider.provider_name
        start = time.time()
        try:
            result = self.extraction_provider.extract_document_fields(
                upload.content, upload.media_type
            )
        except Exception as e:
            logger.exception(f"Extraction provider {provider} raised for {upload.file_name}")
            result = ExtractionResult(
                record=None, success=False, error=f"Extraction failed: {e}", provider=provider
            )
        extraction_processing_duration_seconds.labels(provider=provider).observe(
            time.time() - start
        )
        return result

    def _apply(self, upload: DocumentUpload, extraction: ExtractionResult) -> IngestionOutcome:
        try:
            if not extraction.success or extraction.record is None:
                raise ExtractionFailure(
                    extraction.error or "Extraction returned no data", extraction.provider
                )
            document = self.ledger.ingest(extraction.record, file_name=upload.file_name)

        except ExtractionFailure as e:
            logger.warning(f"Failed to extract {upload.file_name}: {e}")
            documents_ingested_total.labels(status="extraction_failed").inc()
            return IngestionOutcome(
                file_name=upload.file_name, success=False, stage="extraction", error=str(e)
            )
        except RecordValidationError as e:
            logger.warning(f"Rejected {upload.file_name}: {e}")
            documents_ingested_total.labels(status="validation_failed").inc()
            return IngestionOutcome(
                file_name=upload.file_name,
                success=False,
                stage="validation",
                error=str(e),
                validation_errors=e.errors,
            )
        except PersistenceError as e:
            logger.error(f"Could not persist {upload.file_name}: {e}")
            documents_ingested_total.labels(status="persistence_failed").inc()
            return IngestionOutcome(
                file_name=upload.file_name, success=False, stage="persistence", error=str(e)
            )

        documents_ingested_total.labels(status="success").inc()
        return IngestionOutcome(file_name=upload.file_name, success=True, document=document)
