"""Abstract base class for extraction providers.

Enables switching between extraction providers (OpenAI, Ollama) while
keeping one interface: binary document in, untrusted structured record out.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python
"""

import base64
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from priceguard.shared.config import Settings

EXTRACTION_INSTRUCTIONS = (
    "Extract all items, quantities, and unit prices from this document. "
    "Determine if this is an 'invoice', 'credit_note', 'debit_note', or 'quote'. "
    "Also identify: 1. Supplier name, 2. Document date (YYYY-MM-DD), "
    "3. Due date (YYYY-MM-DD), 4. Document/Invoice number, "
    "5. Supplier bank account details, 6. Credit terms, 7. Supplier address, "
    "8. Supplier ABN/Tax ID, 9. Supplier phone, 10. Supplier email, "
    "11. GST amount, 12. Total amount including GST. "
    "Copy supplier and item names exactly as printed. "
    "If a text field is missing use 'N/A'; if an amount is missing use 0."
)


class ExtractionResult(BaseModel):
    """Result of extraction operation.

    Attributes:
        record: Raw structured fields, not yet validated; None on failure
        success: Whether operation succeeded
        error: Error message if operation failed
        provider: Name of provider that performed extraction (e.g., 'openai')
    """

    record: dict[str, Any] | None
    success: bool
    error: str | None = None
    provider: str


class ExtractionProvider(ABC):
    """Abstract base class for purchase document extraction providers.

    Implementations never raise for a failed document; they return an
    ``ExtractionResult`` with ``success=False`` instead.
    """

    # Media type prefixes the provider can read, e.g. "image/".
    supported_media_types: tuple[str, ...] = ("application/pdf", "image/")

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    def supports(self, media_type: str) -> bool:
        """Check whether the provider can read documents of ``media_type``."""
        return any(media_type.startswith(prefix) for prefix in self.supported_media_types)

    @abstractmethod
    def extract_document_fields(self, content: bytes, media_type: str) -> ExtractionResult:
        """Extract structured purchase document fields.

        Args:
            content: Raw document bytes
            media_type: Declared MIME type of the content

        Returns:
            ExtractionResult with the raw record or an error
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is available/configured.

        Returns:
            True if provider can be used, False otherwise
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier (e.g., 'openai', 'ollama')
        """
        pass

    def _precheck(self, content: bytes, media_type: str) -> ExtractionResult | None:
        """Reject input no provider can work with.

        Returns:
            Failed result, or None if extraction may proceed
        """
        if not content:
            return self._failure("Empty document content provided")
        if not self.supports(media_type):
            return self._failure(
                f"Unsupported media type for {self.provider_name}: {media_type or 'unknown'}"
            )
        return None

    def _failure(self, error: str) -> ExtractionResult:
        return ExtractionResult(
            record=None, success=False, error=error, provider=self.provider_name
        )

    @staticmethod
    def _encode(content: bytes) -> str:
        return base64.b64encode(content).decode("ascii")
