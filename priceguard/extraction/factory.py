"""Factory for creating extraction providers based on configuration.

Implements Factory Pattern for provider selection with registry pattern for extensibility.

Based on:
- Factory Pattern: https://refactoring.guru/design-patterns/factory-method/python
- Registry Pattern: Python Cookbook 3rd Edition, Recipe 9.22
"""

import logging

from priceguard.extraction.base import ExtractionProvider
from priceguard.extraction.ollama_provider import OllamaExtractionProvider
from priceguard.extraction.openai_provider import OpenAIExtractionProvider
from priceguard.shared.config import Settings

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Registry of available extraction providers.

    Maintains a mapping of provider names to their implementation classes.
    Supports runtime registration of new providers.
    """

    _providers: dict[str, type[ExtractionProvider]] = {
        "openai": OpenAIExtractionProvider,
        "ollama": OllamaExtractionProvider,
    }

    @classmethod
    def register(cls, name: str, provider_class: type[ExtractionProvider]) -> None:
        """Register a new provider.

        Args:
            name: Provider identifier (must match Settings.extraction_provider)
            provider_class: Provider class implementing ExtractionProvider interface
        """
        cls._providers[name] = provider_class
        logger.info(f"Registered extraction provider: {name}")

    @classmethod
    def get_provider_class(cls, name: str) -> type[ExtractionProvider]:
        """Get provider class by name.

        Args:
            name: Provider identifier

        Returns:
            Provider class implementing ExtractionProvider

        Raises:
            ValueError: If provider not found in registry
        """
        if name not in cls._providers:
            available = ", ".join(cls._providers.keys())
            raise ValueError(
                f"Unknown extraction provider: '{name}'. " f"Available providers: {available}"
            )
        return cls._providers[name]

    @classmethod
    def list_providers(cls) -> list[str]:
        """List all registered provider names.

        Returns:
            List of provider names
        """
        return list(cls._providers.keys())


def create_extraction_service(settings: Settings) -> ExtractionProvider:
    """Create extraction provider based on settings.extraction_provider.

    Availability is not probed here (for Ollama that is a network call);
    call ``is_available()`` on the result when needed.

    Args:
        settings: Application settings with extraction_provider field

    Returns:
        Configured extraction provider instance

    Raises:
        ValueError: If configured provider is unknown

    Example:
        >>> settings = Settings(extraction_provider="openai")
        >>> provider = create_extraction_service(settings)
        >>> result = provider.extract_document_fields(pdf_bytes, "application/pdf")
    """
    provider_name = settings.extraction_provider
    provider_class = ProviderRegistry.get_provider_class(provider_name)

    provider = provider_class(settings)

    logger.info(f"Created extraction provider: {provider_name}")
    return provider
