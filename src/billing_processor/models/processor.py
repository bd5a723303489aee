"""Processor aggregate and provider value types."""

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from billing_processor.models.exceptions import (
    NoDefaultProcessorError,
    ProcessorNotRegisteredError,
    UnsupportedProviderError,
)

# A slot as persisted: a list wrapping exactly one provider record.
StorageShape = list[dict[str, Any]]

DEFAULT_SELECTOR = "default"
ALL_SELECTOR = "all"


class ProviderName(str, Enum):
    """Supported payment processors."""

    STRIPE = "stripe"
    BRAINTREE = "braintree"
    HEROKU = "heroku"

    @classmethod
    def parse(cls, name: "str | ProviderName") -> "ProviderName":
        """Parse a provider name case-insensitively.

        Raises:
            UnsupportedProviderError: If the name is not a supported provider
        """
        if isinstance(name, ProviderName):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            available = ", ".join(p.value for p in cls)
            raise UnsupportedProviderError(
                f"Unknown processor: {name}. Available processors: {available}"
            ) from None


@dataclass(frozen=True)
class RegistrationRequest:
    """Input for registering an owner with a provider."""

    email: str
    token: str | None = None


@dataclass(frozen=True)
class ProviderRecord:
    """
    Provider-native representation of a registered billing entity.

    ``remote_customer`` is a plain snapshot of the gateway's customer object
    (``None`` for providers without a remote entity). ``billing_cycle_day``
    is fixed at registration and anchors recurring billing.
    """

    remote_customer: dict[str, Any] | None
    billing_cycle_day: int


@dataclass(frozen=True)
class MethodSummary:
    """Summary of one payment source."""

    id: str
    merchant_brand: str | None
    last_four_digits: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "merchant": self.merchant_brand,
            "lastFour": self.last_four_digits,
        }


@dataclass(frozen=True)
class Confirmation:
    """Acknowledgement of a completed remote operation."""

    provider: "ProviderName"
    remote_id: str | None
    message: str


@dataclass(frozen=True)
class ProcessorAggregate:
    """
    Per-owner record of payment processor registrations.

    Holds at most one stored record per provider (its slot) and a single
    ``default_provider`` pointer into the populated slots. Instances are
    immutable: every mutation returns a new aggregate, so a rejected commit
    never leaks into the copy the caller loaded.
    """

    owner: str
    created_at: datetime
    slots: dict[ProviderName, StorageShape] = field(default_factory=dict)
    default_provider: ProviderName | None = None
    revision: int = 0

    def __post_init__(self) -> None:
        if not self.owner:
            raise ValueError("owner required for ProcessorAggregate")
        if (
            self.default_provider is not None
            and self.default_provider not in self.slots
        ):
            raise ValueError(
                f"default_provider {self.default_provider.value} "
                "must reference a populated slot"
            )

    @classmethod
    def new(cls, owner: str, created_at: datetime | None = None) -> "ProcessorAggregate":
        return cls(owner=owner, created_at=created_at or datetime.now(timezone.utc))

    # -- reads ---------------------------------------------------------------

    def is_registered(self, provider: ProviderName) -> bool:
        return provider in self.slots

    def registered_providers(self) -> list[ProviderName]:
        """Populated providers in enumeration order."""
        return [p for p in ProviderName if p in self.slots]

    def slot(self, provider: ProviderName) -> StorageShape:
        """Return a copy of the stored data for ``provider``.

        Raises:
            ProcessorNotRegisteredError: If the slot is empty
        """
        if provider not in self.slots:
            raise ProcessorNotRegisteredError(
                f"{provider.value} PaymentProcessor is not registered"
            )
        return copy.deepcopy(self.slots[provider])

    def resolve(self, name: "str | ProviderName") -> ProviderName:
        """
        Resolve a processor selector to a populated provider.

        Args:
            name: A provider name or ``"default"``

        Raises:
            NoDefaultProcessorError: ``"default"`` requested but none is set
            UnsupportedProviderError: Unknown provider name
            ProcessorNotRegisteredError: Provider has no stored data
        """
        if not isinstance(name, ProviderName) and str(name).lower() == DEFAULT_SELECTOR:
            if self.default_provider is None:
                raise NoDefaultProcessorError(
                    f"No default PaymentProcessor set for {self.owner}"
                )
            return self.default_provider

        provider = ProviderName.parse(name)
        if provider not in self.slots:
            raise ProcessorNotRegisteredError(
                f"{provider.value} PaymentProcessor is not registered"
            )
        return provider

    # -- mutations (return new aggregates) -----------------------------------

    def with_slot(self, provider: ProviderName, data: StorageShape) -> "ProcessorAggregate":
        """Replace (or populate) a slot without touching the default."""
        slots = dict(self.slots)
        slots[provider] = copy.deepcopy(data)
        return replace(self, slots=slots)

    def with_registration(
        self, provider: ProviderName, data: StorageShape
    ) -> "ProcessorAggregate":
        """Populate a slot; the provider becomes default only if none is set."""
        updated = self.with_slot(provider, data)
        if updated.default_provider is None:
            updated = replace(updated, default_provider=provider)
        return updated

    def with_default(self, provider: ProviderName) -> "ProcessorAggregate":
        """
        Point the default at ``provider``.

        Raises:
            ProcessorNotRegisteredError: If the target slot is empty
        """
        if provider not in self.slots:
            raise ProcessorNotRegisteredError(
                f"{provider.value} PaymentProcessor is not registered"
            )
        return replace(self, default_provider=provider)

    def without_slot(self, provider: ProviderName) -> "ProcessorAggregate":
        """Clear a slot; clears the default too if it pointed there."""
        slots = dict(self.slots)
        slots.pop(provider, None)
        default = None if self.default_provider == provider else self.default_provider
        return replace(self, slots=slots, default_provider=default)

    # -- representations -----------------------------------------------------

    def to_public(self) -> dict[str, Any]:
        """Representation safe to return across the service boundary."""
        return {
            "owner": self.owner,
            "default": self.default_provider.value if self.default_provider else None,
            "processors": [p.value for p in self.registered_providers()],
            "created": self.created_at.isoformat(),
        }

    def to_document(self) -> dict[str, Any]:
        """Document form used by the persistence layer."""
        document: dict[str, Any] = {
            provider.value: copy.deepcopy(self.slots[provider])
            for provider in self.registered_providers()
        }
        document["default"] = self.default_provider.value if self.default_provider else None
        document["created"] = self.created_at.isoformat()
        return document

    @classmethod
    def from_document(
        cls, owner: str, document: dict[str, Any], revision: int = 0
    ) -> "ProcessorAggregate":
        slots = {
            provider: copy.deepcopy(document[provider.value])
            for provider in ProviderName
            if document.get(provider.value) is not None
        }
        default = document.get("default")
        return cls(
            owner=owner,
            created_at=datetime.fromisoformat(document["created"]),
            slots=slots,
            default_provider=ProviderName(default) if default else None,
            revision=revision,
        )
