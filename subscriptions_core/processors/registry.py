"""Payment processor registry.

Maps each ``PaymentProvider`` to its adapter. Built once at startup.
"""

from typing import Dict, Iterable, List

from subscriptions_core.logging_config import get_logger
from subscriptions_core.models import PaymentProvider
from subscriptions_core.processors.base import PaymentProcessor

logger = get_logger(__name__)


class ProcessorNotConfiguredError(Exception):
    """Raised when no adapter is registered for a payment provider."""

    pass


class ProcessorRegistry:
    """Provider-indexed lookup of payment processor adapters."""

    def __init__(self, processors: Iterable[PaymentProcessor]):
        """Register adapters.

        Raises:
            ValueError: If two adapters claim the same provider
        """
        self._processors: Dict[PaymentProvider, PaymentProcessor] = {}
        for processor in processors:
            if processor.provider in self._processors:
                raise ValueError(f"Duplicate processor for provider {processor.provider.name}")
            self._processors[processor.provider] = processor

        logger.info(
            "processor_registry_initialized",
            providers=[provider.name for provider in self._processors],
        )

    def get(self, provider: PaymentProvider) -> PaymentProcessor:
        """Get the adapter for ``provider``.

        Raises:
            ProcessorNotConfiguredError: If no adapter is registered
        """
        processor = self._processors.get(provider)
        if processor is None:
            raise ProcessorNotConfiguredError(f"No processor configured for {provider.name}")
        return processor

    @property
    def providers(self) -> List[PaymentProvider]:
        return list(self._processors)

    def __contains__(self, provider: PaymentProvider) -> bool:
        return provider in self._processors

    def __len__(self) -> int:
        return len(self._processors)

    def __repr__(self) -> str:
        names = ", ".join(provider.name for provider in self._processors)
        return f"ProcessorRegistry({names})"
