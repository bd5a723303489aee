"""Base interface for payment processor adapters."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from billing_processor.models import (
    Confirmation,
    CorruptProcessorDataError,
    MethodSummary,
    ProcessorNotRegisteredError,
    ProviderName,
    ProviderRecord,
    RegistrationRequest,
    StorageShape,
)


class PaymentProcessorAdapter(ABC):
    """
    Abstract base class for payment processor adapters.

    An adapter is a stateless strategy for one provider. It is constructed
    fresh for every operation and bound (through its constructor) to the
    provider record stored in the owner's slot, or left unbound for
    operations that run before registration.

    Capabilities a provider does not support raise NotImplementedError
    rather than silently succeeding.
    """

    provider: ClassVar[ProviderName]

    def __init__(self, bound_data: ProviderRecord | None = None) -> None:
        self._bound_data = bound_data

    @property
    def is_bound(self) -> bool:
        return self._bound_data is not None

    @property
    def bound_data(self) -> ProviderRecord:
        """The provider record this adapter operates on.

        Raises:
            ProcessorNotRegisteredError: If the adapter is unbound
        """
        return self._require_bound()

    def _require_bound(self) -> ProviderRecord:
        if self._bound_data is None:
            raise ProcessorNotRegisteredError(
                f"{self.provider.value} adapter is not bound to stored processor data"
            )
        return self._bound_data

    def _unsupported(self, capability: str) -> NotImplementedError:
        return NotImplementedError(
            f"{self.provider.value} payment processor adapter does not support {capability}"
        )

    # -- remote capabilities -------------------------------------------------

    @abstractmethod
    async def register(self, request: RegistrationRequest) -> ProviderRecord:
        """
        Create the billable entity for a new owner.

        Args:
            request: Owner email and optional payment token

        Returns:
            ProviderRecord to be stored in the owner's slot

        Raises:
            InvalidEmailError: If the email is malformed
            RemoteRejectedError: If the gateway rejects the token
            RemoteInternalError: For any other gateway failure
        """

    async def validate(self) -> bool:
        """
        Check the structure of the bound record.

        Returns:
            True for exactly one live subscription on the expected plan,
            False when there is no live subscription.

        Raises:
            AmbiguousSubscriptionError: More than one live subscription
            WrongPlanError: The subscription is on an unexpected plan
        """
        raise self._unsupported("validate")

    @abstractmethod
    async def delete(self) -> Confirmation:
        """
        Delete the remote entity.

        Raises:
            NotFoundError: The remote entity no longer exists
            RemoteInternalError: Any other gateway failure
        """

    async def cancel(self) -> Confirmation:
        """Cancel the live subscription under the bound entity."""
        raise self._unsupported("cancel")

    async def add_payment_method(self, token: str) -> ProviderRecord:
        """Attach a payment source and return the refreshed record."""
        raise self._unsupported("add_payment_method")

    # -- storage transforms --------------------------------------------------

    @classmethod
    def serialize_data(cls, record: ProviderRecord) -> StorageShape:
        """Wrap a provider record into its single-slot storage shape."""
        customer = dict(record.remote_customer) if record.remote_customer is not None else None
        return [{"customer": customer, "billingDate": record.billing_cycle_day}]

    @classmethod
    def parse_data(cls, data: Any) -> ProviderRecord:
        """
        Unwrap a stored slot back into a provider record.

        Raises:
            CorruptProcessorDataError: If ``data`` is not a list holding
                exactly one well-formed record
        """
        if not isinstance(data, list) or len(data) != 1:
            raise CorruptProcessorDataError(
                f"{cls.provider.value} slot must hold exactly one record"
            )
        entry = data[0]
        if not isinstance(entry, dict) or "billingDate" not in entry:
            raise CorruptProcessorDataError(
                f"{cls.provider.value} slot record is malformed"
            )
        billing_day = entry["billingDate"]
        if not isinstance(billing_day, int) or not 1 <= billing_day <= 31:
            raise CorruptProcessorDataError(
                f"{cls.provider.value} slot has invalid billing date: {billing_day!r}"
            )
        customer = entry.get("customer")
        if customer is not None and not isinstance(customer, dict):
            raise CorruptProcessorDataError(
                f"{cls.provider.value} slot customer must be an object"
            )
        return ProviderRecord(
            remote_customer=dict(customer) if customer is not None else None,
            billing_cycle_day=billing_day,
        )

    # -- billing metadata ----------------------------------------------------

    def default_payment_method(self) -> MethodSummary | None:
        raise self._unsupported("default_payment_method")

    def billing_date(self) -> int:
        """Day of month the entity was registered."""
        return self.bound_data.billing_cycle_day

    def payment_methods(self) -> list[MethodSummary]:
        raise self._unsupported("payment_methods")
