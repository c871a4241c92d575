"""Purchase document models for structured extraction.

Field set follows what the extraction prompt asks for: header fields,
supplier contact details and priced line items. Keys are accepted in
snake_case or camelCase since models tend to answer in either.
"""

import datetime
import math

from pydantic import AliasChoices, AliasGenerator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from priceguard.ledger.models import DocType

# Both key styles are accepted; errors are reported under the snake_case name.
ACCEPT_BOTH_KEY_STYLES = ConfigDict(
    alias_generator=AliasGenerator(
        validation_alias=lambda name: AliasChoices(name, to_camel(name)),
    ),
)

# Placeholders the extraction prompt allows for "not on the document".
MISSING_MARKERS = {"", "n/a", "na", "none", "null", "-"}


def reject_bool(value: object) -> object:
    """Stop JSON true/false from being read as 1.0/0.0."""
    if isinstance(value, bool):
        raise ValueError("must be a number, not a boolean")
    return value


class ExtractedItem(BaseModel):
    """Line item as returned by the extraction collaborator."""

    model_config = ACCEPT_BOTH_KEY_STYLES

    name: str = Field(..., min_length=1, description="Item description as printed")
    quantity: float = Field(..., allow_inf_nan=False, description="Quantity")
    unit_price: float = Field(..., allow_inf_nan=False, description="Price per unit")
    total: float = Field(..., allow_inf_nan=False, description="Line total")

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("item name must not be blank")
        return value

    _amounts_not_bool = field_validator("quantity", "unit_price", "total", mode="before")(
        reject_bool
    )


class ExtractedDocument(BaseModel):
    """Structured purchase document extracted from an upload.

    Required fields are the ones the variance engine cannot work without.
    Everything else is informational.
    """

    model_config = ACCEPT_BOTH_KEY_STYLES

    doc_type: DocType = Field(..., description="invoice, credit_note, debit_note or quote")
    supplier_name: str = Field(..., min_length=1, description="Supplier/vendor company name")
    date: datetime.date = Field(..., description="Date the document was issued")
    due_date: datetime.date | None = Field(None, description="Payment due date")
    invoice_number: str = Field(..., min_length=1, description="Document number")

    # Financial details
    total_amount: float = Field(..., allow_inf_nan=False, description="Total including tax")
    gst_amount: float | None = Field(None, allow_inf_nan=False, description="GST/tax amount")

    # Supplier details
    bank_account: str | None = Field(None, description="Supplier bank account")
    credit_term: str | None = Field(None, description="Credit terms")
    abn: str | None = Field(None, description="Supplier ABN / tax id")
    tel: str | None = Field(None, description="Supplier phone")
    email: str | None = Field(None, description="Supplier email")
    address: str | None = Field(None, description="Supplier address")

    items: list[ExtractedItem] = Field(..., min_length=1, description="Priced line items")

    @field_validator("supplier_name", "invoice_number")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    _amounts_not_bool = field_validator("total_amount", "gst_amount", mode="before")(reject_bool)

    @field_validator(
        "due_date",
        "gst_amount",
        "bank_account",
        "credit_term",
        "abn",
        "tel",
        "email",
        "address",
        mode="before",
    )
    @classmethod
    def _missing_to_none(cls, value: object) -> object:
        if isinstance(value, str) and value.strip().lower() in MISSING_MARKERS:
            return None
        return value

    def item_total_mismatches(self, tolerance: float = 0.01) -> list[str]:
        """Names of items whose total differs from quantity x unit price.

        Informational only: mismatches are logged, not rejected.
        """
        return [
            item.name
            for item in self.items
            if not math.isclose(item.quantity * item.unit_price, item.total, abs_tol=tolerance)
        ]
