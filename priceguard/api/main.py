"""FastAPI application for the price variance auditor.

Exposes the ledger's command/query interface:
- Document upload (single or batch) with extraction and ingestion
- Ingestion of already extracted records
- Enriched document views, flags and deletion
- Baseline listing and manual override
- Dashboard statistics and supplier summaries
- Health, readiness and Prometheus metrics

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import logging
import time
from typing import Any

from fastapi import FastAPI, File, HTTPException, Query, Request, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from priceguard.api import metrics
from priceguard.extraction.factory import create_extraction_service
from priceguard.ingestion.coordinator import (
    BatchResult,
    DocumentUpload,
    IngestionCoordinator,
    IngestionOutcome,
)
from priceguard.ledger.models import (
    BaselineEntry,
    DashboardStats,
    DocumentView,
    EnrichedDocument,
    SupplierSummary,
)
from priceguard.ledger.service import AuditLedger
from priceguard.shared.config import get_settings
from priceguard.shared.errors import PersistenceError, RecordValidationError
from priceguard.storage.factory import create_snapshot_store
from priceguard.storage.service import MinioSnapshotStore

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Price Variance Auditor",
    description="Audits purchase documents against remembered supplier item prices",
    version=settings.service_version,
)

snapshot_store = create_snapshot_store(settings)
ledger = AuditLedger.load(snapshot_store, tolerance=settings.variance_tolerance)
extraction_service = create_extraction_service(settings)
coordinator = IngestionCoordinator(
    ledger, extraction_service, max_workers=settings.extraction_workers
)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Tracks:
    - Request count by method, endpoint, and status
    - Request duration by method and endpoint
    """
    # Skip metrics for /metrics endpoint itself
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    # Record metrics
    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=request.url.path,
    ).observe(duration)

    return response


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    """Report storage failures as 503; the ledger is left unchanged."""
    logger.error(f"Persistence failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": f"Ledger storage unavailable: {exc}"},
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    persistence_backend: str
    documents: int


class UploadResponse(BatchResult):
    """Per-file results of a document upload."""


class DocumentFlagsUpdate(BaseModel):
    """Payment state change for a document. Omitted flags stay as they are."""

    is_paid: bool | None = None
    is_hold: bool | None = None


class BaselineOverrideRequest(BaseModel):
    """Manual baseline correction."""

    supplier_name: str = Field(..., min_length=1)
    item_name: str = Field(..., min_length=1)
    unit_price: float = Field(..., gt=0, allow_inf_nan=False)


class BaselineOverrideResponse(BaseModel):
    """Result of a baseline override.

    ``updated`` is false when the pair has no baseline yet; nothing is
    created in that case.
    """

    updated: bool
    supplier_name: str
    item_name: str
    unit_price: float | None


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Health check endpoint for liveness probe.

    Returns:
        Health status information
    """
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint for Kubernetes readiness probe.

    Returns:
        Readiness status; not ready when object storage is unreachable
    """
    ready = True
    if isinstance(snapshot_store, MinioSnapshotStore):
        ready = snapshot_store.health_check()
    return ReadinessResponse(
        ready=ready,
        persistence_backend=snapshot_store.backend_name,
        documents=ledger.get_stats().total_count,
    )


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint.

    Returns:
        Prometheus metrics in text format
    """
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


@app.post("/api/v1/documents/upload", response_model=UploadResponse, tags=["Documents"])
async def upload_documents(
    files: list[UploadFile] = File(..., description="PDF or image files"),  # noqa: B008
) -> UploadResponse:
    """Upload one or more purchase documents for extraction and audit.

    Files are processed one after another in the order given, so a price
    first seen in an earlier file is already the baseline for later files.

    ## Usage Examples

    ```bash
    curl -X POST "http://localhost:8000/api/v1/documents/upload" \\
      -F "files=@invoice-1.pdf" -F "files=@invoice-2.pdf"
    ```

    ## Error Handling

    - Returns 422 if no files are sent
    - Returns 200 with per-file outcomes otherwise; a file that cannot be
      read, extracted or validated is reported with `success: false` and
      does not affect the other files

    Args:
        files: Documents to ingest

    Returns:
        Upload response with one outcome per file, in upload order
    """
    uploads: list[DocumentUpload] = []
    rejected: dict[int, IngestionOutcome] = {}

    for index, file in enumerate(files):
        file_name = file.filename or f"upload-{index + 1}"
        content = await file.read()

        if len(content) > settings.max_upload_size_bytes:
            metrics.documents_rejected_total.labels(reason="too_large").inc()
            rejected[index] = IngestionOutcome(
                file_name=file_name,
                success=False,
                stage="upload",
                error=(
                    f"File too large: {len(content)} bytes "
                    f"(limit {settings.max_upload_size_bytes})"
                ),
            )
            continue

        # Record upload size
        metrics.document_upload_size_bytes.observe(len(content))
        uploads.append(
            DocumentUpload(
                file_name=file_name,
                content=content,
                media_type=file.content_type or "application/octet-stream",
            )
        )

    # Extraction blocks on network I/O; keep it off the event loop
    batch = await run_in_threadpool(coordinator.ingest_batch, uploads)

    processed = iter(batch.outcomes)
    outcomes = [rejected[i] if i in rejected else next(processed) for i in range(len(files))]
    succeeded = sum(1 for outcome in outcomes if outcome.success)

    return UploadResponse(
        total=len(outcomes),
        succeeded=succeeded,
        failed=len(outcomes) - succeeded,
        outcomes=outcomes,
    )


@app.post(
    "/api/v1/documents",
    response_model=EnrichedDocument,
    status_code=status.HTTP_201_CREATED,
    tags=["Documents"],
)
def ingest_record(record: dict[str, Any], file_name: str | None = None) -> EnrichedDocument:
    """Ingest an already extracted document record.

    Returns:
        Stored document enriched against current baselines

    Raises:
        HTTPException: 422 if the record fails validation
    """
    try:
        return ledger.ingest(record, file_name=file_name)
    except RecordValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.errors
        ) from e


@app.get("/api/v1/documents", response_model=list[EnrichedDocument], tags=["Documents"])
def list_documents(
    view: DocumentView = Query("all", description="all, outstanding, settled or hold"),
) -> list[EnrichedDocument]:
    """List documents enriched against current baselines, newest date first."""
    return ledger.documents_for_view(view)


@app.get("/api/v1/documents/{document_id}", response_model=EnrichedDocument, tags=["Documents"])
def get_document(document_id: str) -> EnrichedDocument:
    """Get a single enriched document.

    Raises:
        HTTPException: 404 if the document does not exist
    """
    document = ledger.get_document(document_id)
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Document not found: {document_id}"
        )
    return document


@app.patch("/api/v1/documents/{document_id}", response_model=EnrichedDocument, tags=["Documents"])
def update_document_flags(document_id: str, update: DocumentFlagsUpdate) -> EnrichedDocument:
    """Mark a document paid/unpaid or put it on/off hold.

    Raises:
        HTTPException: 404 if the document does not exist
    """
    get_document(document_id)
    if update.is_paid is not None:
        ledger.set_paid(document_id, update.is_paid)
    if update.is_hold is not None:
        ledger.set_hold(document_id, update.is_hold)
    return get_document(document_id)


@app.delete(
    "/api/v1/documents/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Documents"],
)
def delete_document(document_id: str) -> Response:
    """Discard a document. Deleting an unknown id is not an error."""
    ledger.delete_document(document_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/api/v1/baselines", response_model=list[BaselineEntry], tags=["Baselines"])
def list_baselines() -> list[BaselineEntry]:
    """List every baseline price by supplier and item."""
    return ledger.list_baselines()


@app.put("/api/v1/baselines", response_model=BaselineOverrideResponse, tags=["Baselines"])
def override_baseline(request: BaselineOverrideRequest) -> BaselineOverrideResponse:
    """Manually replace a baseline price.

    Every stored document for the supplier and item is re-evaluated against
    the new price on the next read.
    """
    updated = ledger.update_baseline(request.supplier_name, request.item_name, request.unit_price)
    return BaselineOverrideResponse(
        updated=updated,
        supplier_name=request.supplier_name,
        item_name=request.item_name,
        unit_price=ledger.get_baseline(request.supplier_name, request.item_name),
    )


@app.get("/api/v1/stats", response_model=DashboardStats, tags=["Dashboard"])
def get_stats() -> DashboardStats:
    """Dashboard counters computed from current baselines."""
    return ledger.get_stats()


@app.get("/api/v1/suppliers", response_model=list[SupplierSummary], tags=["Dashboard"])
def list_suppliers() -> list[SupplierSummary]:
    """Per-supplier spend and variance counts."""
    return ledger.supplier_summaries()


@app.get(
    "/api/v1/variances/high-risk", response_model=list[EnrichedDocument], tags=["Dashboard"]
)
def list_high_risk() -> list[EnrichedDocument]:
    """Documents whose only variance is a price increase."""
    return ledger.high_risk_documents()
