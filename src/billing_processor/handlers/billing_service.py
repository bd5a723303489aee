"""Service-layer operations exposed to callers.

Each operation takes an owner plus an optional provider name and payload and
returns plain data: aggregates in their public form (slot data and adapter
state stripped) or the requested billing metadata. Failures are raised as
the typed errors in ``billing_processor.models.exceptions``.
"""

from typing import Any, Mapping

from billing_processor.handlers.processor_manager import ProcessorManager
from billing_processor.models import (
    ALL_SELECTOR,
    DEFAULT_SELECTOR,
    ValidationError,
)


class BillingService:
    """Thin facade over ProcessorManager returning boundary-safe data."""

    def __init__(self, manager: ProcessorManager) -> None:
        self.manager = manager

    async def create_processor(
        self,
        owner: str,
        provider_name: str,
        payload: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        aggregate = await self.manager.create(owner, provider_name, payload)
        return aggregate.to_public()

    async def get_processor(
        self, owner: str, provider_name: str = DEFAULT_SELECTOR
    ) -> dict[str, Any]:
        """
        Read one processor, the default one, or the whole record.

        Args:
            owner: Owner identifier
            provider_name: A provider name, ``"default"`` or ``"all"``

        Returns:
            For ``"all"`` the public aggregate (with an empty processor list
            when nothing is registered); otherwise the processor's name,
            whether it is the default, and its billing date.
        """
        if provider_name.lower() == ALL_SELECTOR:
            aggregate = await self.manager.get(owner)
            if aggregate is None:
                return {"owner": owner, "default": None, "processors": [], "created": None}
            return aggregate.to_public()

        aggregate, adapter = await self.manager.lookup(owner, provider_name)
        return {
            "name": adapter.provider.value,
            "default": aggregate.default_provider == adapter.provider,
            "billingDate": adapter.billing_date(),
        }

    async def set_default_processor(self, owner: str, provider_name: str) -> dict[str, Any]:
        aggregate = await self.manager.set_default(owner, provider_name)
        return aggregate.to_public()

    async def delete_processor(
        self,
        owner: str,
        provider_name: str,
        remove_empty_record: bool = False,
    ) -> dict[str, Any]:
        """
        Delete a processor registration.

        Args:
            remove_empty_record: Also drop the owner's record when this was
                the last registered processor. Off by default so an empty
                record (and its creation date) survives.
        """
        aggregate = await self.manager.delete(owner, provider_name)
        if remove_empty_record and not aggregate.slots:
            await self.manager.discard_if_empty(owner)
        return aggregate.to_public()

    async def add_payment_method(
        self,
        owner: str,
        provider_name: str,
        payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        token = payload.get("token") if payload else None
        if not token:
            raise ValidationError("Must provide a payment method token")

        aggregate = await self.manager.add_payment_method(owner, provider_name, token)
        return aggregate.to_public()

    async def cancel_subscription(self, owner: str, provider_name: str) -> dict[str, Any]:
        aggregate, confirmation = await self.manager.cancel(owner, provider_name)
        return {**aggregate.to_public(), "canceled": confirmation.remote_id}

    async def get_billing_date(self, owner: str, provider_name: str) -> int:
        return await self.manager.billing_date(owner, provider_name)

    async def get_payment_methods(
        self, owner: str, provider_name: str
    ) -> list[dict[str, Any]]:
        methods = await self.manager.payment_methods(owner, provider_name)
        return [method.to_dict() for method in methods]

    async def get_default_payment_method(
        self, owner: str, provider_name: str
    ) -> dict[str, Any] | None:
        method = await self.manager.default_payment_method(owner, provider_name)
        return method.to_dict() if method else None
