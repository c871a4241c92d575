"""Purchase document models for the variance ledger.

Raw models (``LineItem``, ``Document``) are what the ledger stores and
persists. Enriched models carry values derived from the current baselines
and are rebuilt on every read; they are never persisted.
"""

import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

DocType = Literal["invoice", "credit_note", "debit_note", "quote"]
DocumentView = Literal["all", "outstanding", "settled", "hold"]


class VarianceStatus(str, Enum):
    """Document-level verdict derived from item price deltas."""

    MATCHED = "matched"
    PRICE_INCREASE = "price_increase"
    PRICE_DECREASE = "price_decrease"
    MIXED = "mixed"


class LineItem(BaseModel):
    """A single priced line on a purchase document."""

    name: str
    quantity: float
    unit_price: float
    total: float


class EnrichedLineItem(LineItem):
    """Line item compared against the supplier's baseline price."""

    previous_unit_price: float | None = None
    price_change: float = 0.0
    percent_change: float = 0.0


class Document(BaseModel):
    """Stored purchase document.

    ``id`` is assigned at ingestion and never changes. Only ``is_paid`` and
    ``is_hold`` are mutated afterwards.
    """

    id: str
    doc_type: DocType = "invoice"
    supplier_name: str
    date: datetime.date
    due_date: datetime.date | None = None
    invoice_number: str
    total_amount: float
    gst_amount: float | None = None

    # Supplier details
    bank_account: str | None = None
    credit_term: str | None = None
    abn: str | None = None
    tel: str | None = None
    email: str | None = None
    address: str | None = None

    file_name: str | None = None
    items: list[LineItem] = Field(default_factory=list)
    is_paid: bool = False
    is_hold: bool = False


class EnrichedDocument(Document):
    """Document as seen through the current baselines."""

    items: list[EnrichedLineItem] = Field(default_factory=list)  # type: ignore[assignment]
    status: VarianceStatus = VarianceStatus.MATCHED


class BaselineEntry(BaseModel):
    """One reference price, flattened for listing."""

    supplier_name: str
    item_name: str
    unit_price: float


class DashboardStats(BaseModel):
    """Summary counters for the dashboard.

    Attributes:
        total_payable: Sum of totals for documents neither paid nor on hold
        variance_count: Unpaid documents with a price increase or mixed variance
        total_count: Number of documents in the ledger
    """

    total_payable: float
    variance_count: int
    total_count: int


class SupplierSummary(BaseModel):
    """Per-supplier totals across every stored document."""

    supplier_name: str
    document_count: int
    total_spent: float
    variance_count: int
