"""OpenAI-based extraction provider for purchase documents.

Sends the document inline (PDFs as a file part, images as a data URL) and
asks for the fields through function calling, so the answer arrives as JSON
arguments rather than prose.

Includes retry logic with exponential backoff for transient API errors.
"""

import json
import os
from typing import Any

from openai import OpenAI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from priceguard.extraction.base import (
    EXTRACTION_INSTRUCTIONS,
    ExtractionProvider,
    ExtractionResult,
)
from priceguard.shared.config import Settings


class OpenAIExtractionProvider(ExtractionProvider):
    """OpenAI-based extraction provider.

    Uses the chat completions API with function calling for structured outputs.
    Requires OPENAI_API_KEY environment variable.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize OpenAI extraction provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._client: OpenAI | None = None
        self._model = settings.openai_model

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'openai'
        """
        return "openai"

    def is_available(self) -> bool:
        """Check if OpenAI API key is configured.

        Returns:
            True if OPENAI_API_KEY environment variable is set
        """
        return os.getenv("OPENAI_API_KEY") is not None

    def extract_document_fields(self, content: bytes, media_type: str) -> ExtractionResult:
        """Extract structured purchase document fields using OpenAI.

        Args:
            content: Raw document bytes (PDF or image)
            media_type: Declared MIME type

        Returns:
            ExtractionResult with the raw record or error, provider='openai'
        """
        # Check for API key at runtime
        if not self.is_available():
            return self._failure("OPENAI_API_KEY environment variable not set")

        rejected = self._precheck(content, media_type)
        if rejected is not None:
            return rejected

        try:
            # Initialize client if not already done
            api_key = os.getenv("OPENAI_API_KEY")
            if self._client is None or self._client.api_key != api_key:
                self._client = OpenAI(api_key=api_key)

            messages = self._build_messages(content, media_type)

            # Call OpenAI with retry logic
            response = self._call_openai_with_retry(messages)

            # Parse response
            message = response.choices[0].message
            if message.function_call is None:
                return self._failure("No function call in API response")

            arguments = message.function_call.arguments
            if not arguments or not arguments.strip():
                return self._failure("Empty response from API")

            record = json.loads(arguments)
            if not isinstance(record, dict):
                return self._failure("Response is not a JSON object")

            return ExtractionResult(record=record, success=True, provider=self.provider_name)

        except Exception as e:
            return self._failure(f"Extraction failed: {str(e)}")

    @retry(
        retry=retry_if_exception_type((Exception,)),  # Retry on transient errors
        wait=wait_exponential_jitter(initial=1, max=60),  # Exponential backoff with jitter
        stop=stop_after_attempt(3),  # Max 3 attempts
        reraise=True,  # Re-raise exception after max attempts
    )
    def _call_openai_with_retry(self, messages: list[dict[str, Any]]) -> Any:
        """Call OpenAI API with retry logic for transient errors.

        Args:
            messages: Chat messages including the document part

        Returns:
            OpenAI API response

        Raises:
            Exception: After all retry attempts are exhausted
        """
        if self._client is None:
            raise RuntimeError("OpenAI client not initialized")

        return self._client.chat.completions.create(  # type: ignore[call-overload]
            model=self._model,
            messages=messages,
            functions=[self._get_document_schema()],
            function_call={"name": "extract_purchase_document"},
            temperature=0,  # Deterministic output
        )

    def _build_messages(self, content: bytes, media_type: str) -> list[dict[str, Any]]:
        """Build chat messages carrying the document inline.

        Args:
            content: Raw document bytes
            media_type: Declared MIME type

        Returns:
            Messages for chat.completions.create
        """
        data_url = f"data:{media_type};base64,{self._encode(content)}"
        if media_type == "application/pdf":
            document_part: dict[str, Any] = {
                "type": "file",
                "file": {"filename": "document.pdf", "file_data": data_url},
            }
        else:
            document_part = {"type": "image_url", "image_url": {"url": data_url}}

        return [
            {
                "role": "system",
                "content": "You are a purchase document extraction assistant.",
            },
            {
                "role": "user",
                "content": [{"type": "text", "text": EXTRACTION_INSTRUCTIONS}, document_part],
            },
        ]

    def _get_document_schema(self) -> dict[str, Any]:
        """Get OpenAI function calling schema for a purchase document.

        Returns:
            Function definition dict for OpenAI API
        """
        return {
            "name": "extract_purchase_document",
            "description": "Extract structured fields and line items from a purchase document",
            "parameters": {
                "type": "object",
                "properties": {
                    "doc_type": {
                        "type": "string",
                        "enum": ["invoice", "credit_note", "debit_note", "quote"],
                    },
                    "supplier_name": {"type": "string"},
                    "date": {"type": "string", "format": "date"},
                    "due_date": {"type": "string"},
                    "invoice_number": {"type": "string"},
                    "bank_account": {"type": "string"},
                    "credit_term": {"type": "string"},
                    "address": {"type": "string"},
                    "abn": {"type": "string"},
                    "tel": {"type": "string"},
                    "email": {"type": "string"},
                    "total_amount": {"type": "number"},
                    "gst_amount": {"type": "number"},
                    "items": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "name": {"type": "string"},
                                "quantity": {"type": "number"},
                                "unit_price": {"type": "number"},
                                "total": {"type": "number"},
                            },
                            "required": ["name", "quantity", "unit_price", "total"],
                        },
                    },
                },
                "required": [
                    "doc_type",
                    "supplier_name",
                    "date",
                    "due_date",
                    "invoice_number",
                    "total_amount",
                    "items",
                ],
            },
        }
