"""Validation gate run around every commit that changes a slot's data."""

from typing import Awaitable, Callable

import structlog

from billing_processor.models import (
    ProcessorAggregate,
    ProcessorValidationError,
    ProviderName,
)
from billing_processor.processors.factory import AdapterRegistry

logger = structlog.get_logger(__name__)

Persist = Callable[[ProcessorAggregate], Awaitable[ProcessorAggregate]]


class ValidationGate:
    """
    Validates a candidate aggregate's slot before handing it to persistence.

    The gate wraps the commit: ``persist`` is only invoked after the adapter
    bound to the candidate slot validates it. On rejection nothing is written
    and the caller's previously loaded aggregate is unchanged.
    """

    def __init__(self, registry: AdapterRegistry) -> None:
        self._registry = registry

    async def check(
        self,
        candidate: ProcessorAggregate,
        provider: ProviderName,
        *,
        allow_unsubscribed: bool = False,
    ) -> None:
        """
        Validate ``candidate``'s slot for ``provider``.

        Args:
            candidate: Aggregate as it would be stored
            provider: Slot whose data changed
            allow_unsubscribed: Accept a record with no live subscription
                (used when the mutation is a cancellation)

        Raises:
            ProcessorValidationError: The adapter reported the record invalid
            ProcessorDataError: Any structural error raised by the adapter
        """
        adapter = self._registry.resolve(provider).from_storage(candidate.slot(provider))
        try:
            valid = await adapter.validate()
        except Exception as e:
            logger.warning(
                "processor_validation_failed",
                owner=candidate.owner,
                provider=provider.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

        if not valid and not allow_unsubscribed:
            logger.warning(
                "processor_validation_rejected",
                owner=candidate.owner,
                provider=provider.value,
            )
            raise ProcessorValidationError(
                f"{provider.value} record has no active subscription"
            )

    async def commit(
        self,
        candidate: ProcessorAggregate,
        provider: ProviderName,
        persist: Persist,
        *,
        allow_unsubscribed: bool = False,
    ) -> ProcessorAggregate:
        """Validate ``candidate`` and, only if it passes, persist it."""
        await self.check(candidate, provider, allow_unsubscribed=allow_unsubscribed)
        return await persist(candidate)
