"""Ollama-based extraction provider for self-hosted vision models.

Runs extraction on-premises through a local Ollama server. Ollama reads
images only, so PDFs have to go through the OpenAI provider.

Requires Ollama server running on localhost:11434 with a vision model.
See: https://ollama.ai/
"""

import json
import logging
import re
from typing import Any

import httpx
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

logger = logging.getLogger(__name__)

RECORD_SCHEMA = (
    '{"doc_type": "invoice"|"credit_note"|"debit_note"|"quote", '
    '"supplier_name": string, "date": string (YYYY-MM-DD), '
    '"due_date": string (YYYY-MM-DD or "N/A"), "invoice_number": string, '
    '"bank_account": string, "credit_term": string, "address": string, '
    '"abn": string, "tel": string, "email": string, '
    '"total_amount": number, "gst_amount": number, '
    '"items": [{"name": string, "quantity": number, "unit_price": number, "total": number}]}'
)


class OllamaExtractionProvider(ExtractionProvider):
    """Ollama-based extraction provider for self-hosted LLM inference.

    Uses local Ollama server running on localhost:11434.
    Supports vision models like Llama 3.2 Vision and Qwen2.5-VL.
    """

    supported_media_types = ("image/",)

    def __init__(self, settings: Settings) -> None:
        """Initialize Ollama extraction provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._base_url = settings.ollama_base_url
        self._model = settings.ollama_model
        self._client = httpx.Client(timeout=120.0)  # LLMs can be slow

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'ollama'
        """
        return "ollama"

    def is_available(self) -> bool:
        """Check if Ollama server is running and model is available.

        Returns:
            True if Ollama server responds and model is loaded
        """
        try:
            response = self._client.get(f"{self._base_url}/api/tags")
            if response.status_code != 200:
                return False
            # Check if configured model is available
            models = response.json().get("models", [])
            model_names = [m.get("name", "").split(":")[0] for m in models]
            return self._model.split(":")[0] in model_names
        except Exception:
            return False

    def extract_document_fields(self, content: bytes, media_type: str) -> ExtractionResult:
        """Extract structured purchase document fields using Ollama.

        Args:
            content: Raw image bytes
            media_type: Declared MIME type

        Returns:
            ExtractionResult with the raw record or error
        """
        rejected = self._precheck(content, media_type)
        if rejected is not None:
            return rejected

        try:
            image_b64 = self._encode(content)
            response_text = self._call_ollama_with_retry(self._build_prompt(), image_b64)

            if not response_text.strip():
                return self._failure("Empty response from Ollama")

            record = self._parse_json_response(response_text)

            return ExtractionResult(record=record, success=True, provider=self.provider_name)

        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse JSON from Ollama response: {e}")
            return self._failure(f"JSON parsing failed: {str(e)}")
        except Exception as e:
            logger.error(f"Ollama extraction failed: {e}")
            return self._failure(f"Extraction failed: {str(e)}")

    @retry(
        retry=retry_if_exception_type((httpx.HTTPError, httpx.TimeoutException)),
        wait=wait_exponential_jitter(initial=1, max=30),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _call_ollama_with_retry(self, prompt: str, image_b64: str) -> str:
        """Call Ollama API with retry logic for transient errors.

        Args:
            prompt: Extraction prompt for the LLM
            image_b64: Base64 encoded document image

        Returns:
            Raw response text from Ollama

        Raises:
            httpx.HTTPError: After all retry attempts exhausted
        """
        response = self._client.post(
            f"{self._base_url}/api/generate",
            json={
                "model": self._model,
                "prompt": prompt,
                "images": [image_b64],
                "format": "json",
                "stream": False,
                "options": {
                    "temperature": 0,  # Deterministic output
                    "num_predict": 2048,  # Max tokens
                },
            },
        )
        response.raise_for_status()
        result: str = response.json().get("response", "")
        return result

    def _parse_json_response(self, response_text: str) -> dict[str, Any]:
        """Extract and parse a JSON object from an LLM response.

        Handles common LLM quirks like markdown code blocks.

        Args:
            response_text: Raw LLM response

        Returns:
            Parsed JSON dict

        Raises:
            json.JSONDecodeError: If no valid JSON found
            ValueError: If the JSON is not an object
        """
        # Try to extract JSON from markdown code block
        json_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", response_text)
        if json_match:
            result: Any = json.loads(json_match.group(1).strip())
        else:
            # Try to find JSON object directly, then the entire response
            json_match = re.search(r"\{[\s\S]*\}", response_text)
            text = json_match.group(0) if json_match else response_text.strip()
            result = json.loads(text)

        if not isinstance(result, dict):
            raise ValueError("Response is not a JSON object")
        return result

    def _build_prompt(self) -> str:
        """Build extraction prompt for the attached document image.

        Returns:
            Formatted prompt string
        """
        return f"""You are a purchase document extraction assistant. \
Read the attached document image and return ONLY valid JSON.

{EXTRACTION_INSTRUCTIONS}

SCHEMA:
{RECORD_SCHEMA}

OUTPUT:"""
