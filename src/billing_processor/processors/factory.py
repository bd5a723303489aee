"""
Adapter registry for payment processor adapters.

The set of providers is closed: each ProviderName maps to exactly one adapter
class and no adapters can be added at runtime. Resolving a name yields an
AdapterFactory, which builds a fresh adapter bound to one slot's data.
"""

from types import MappingProxyType
from typing import Any, Mapping

import structlog

from billing_processor.config import settings
from billing_processor.models import ProviderName, ProviderRecord, StorageShape
from billing_processor.processors.base import PaymentProcessorAdapter
from billing_processor.processors.braintree_processor import BraintreeAdapter
from billing_processor.processors.heroku_processor import HerokuAdapter
from billing_processor.processors.stripe_processor import StripeAdapter

logger = structlog.get_logger(__name__)


class AdapterFactory:
    """Builds adapters for one provider with its configuration applied."""

    def __init__(
        self,
        adapter_class: type[PaymentProcessorAdapter],
        config: Mapping[str, Any] | None = None,
    ) -> None:
        self.adapter_class = adapter_class
        self.config = dict(config or {})

    @property
    def provider(self) -> ProviderName:
        return self.adapter_class.provider

    def __call__(self, bound_data: ProviderRecord | None = None) -> PaymentProcessorAdapter:
        """Create an adapter bound to ``bound_data`` (or unbound for register)."""
        return self.adapter_class(bound_data, **self.config)

    def from_storage(self, data: StorageShape) -> PaymentProcessorAdapter:
        """Create an adapter bound to a stored slot.

        Raises:
            CorruptProcessorDataError: If the slot is not a single wrapped record
        """
        return self(self.adapter_class.parse_data(data))


class AdapterRegistry:
    """
    Fixed mapping from provider name to adapter factory.

    Examples:
        registry = AdapterRegistry()
        adapter = registry.resolve("stripe")()              # unbound
        adapter = registry.resolve("stripe").from_storage(slot_data)
    """

    _ADAPTERS: Mapping[ProviderName, type[PaymentProcessorAdapter]] = MappingProxyType(
        {
            ProviderName.STRIPE: StripeAdapter,
            ProviderName.BRAINTREE: BraintreeAdapter,
            ProviderName.HEROKU: HerokuAdapter,
        }
    )

    def __init__(
        self,
        provider_config: Mapping[ProviderName, Mapping[str, Any]] | None = None,
    ) -> None:
        """
        Args:
            provider_config: Per-provider constructor arguments. Providers
                missing from the mapping use the defaults from settings.
        """
        self._provider_config = dict(provider_config or {})

    def resolve(self, provider_name: "str | ProviderName") -> AdapterFactory:
        """
        Look up the adapter factory for a provider.

        Raises:
            UnsupportedProviderError: If the name is not a supported provider
        """
        provider = ProviderName.parse(provider_name)
        adapter_class = self._ADAPTERS[provider]

        if provider in self._provider_config:
            config = self._provider_config[provider]
        else:
            config = self._default_config(provider)

        logger.debug(
            "adapter_resolved",
            provider=provider.value,
            adapter_class=adapter_class.__name__,
        )
        return AdapterFactory(adapter_class, config)

    @staticmethod
    def _default_config(provider: ProviderName) -> dict[str, Any]:
        if provider == ProviderName.STRIPE:
            return {
                "api_key": settings.stripe.api_key,
                "plan_id": settings.stripe.plan_id,
            }
        return {}

    @classmethod
    def list_providers(cls) -> list[str]:
        """Sorted names of the supported providers."""
        return sorted(p.value for p in cls._ADAPTERS)
