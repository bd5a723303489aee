"""
Processor aggregate operations.

This module ties the adapter layer to the stored aggregate:
- Owner lookup through the user service
- Adapter resolution through the closed registry
- Per-owner locking around the local read-check-write only
- Validation gate before every slot commit
- Compensation and reconciliation reporting when a remote mutation
  cannot be matched by a local commit

Remote gateway calls are never made while an owner lock is held. Each
mutating operation therefore re-reads the aggregate after the remote call
and re-checks its preconditions before writing.
"""

import asyncio
import functools
from typing import Any, Awaitable, Callable, Mapping, TypeVar

import structlog

from billing_processor.clients.user_client import UserDirectory
from billing_processor.handlers.validation import ValidationGate
from billing_processor.infrastructure.locking import OwnerLocks
from billing_processor.infrastructure.repository import ProcessorRepository
from billing_processor.logging_config import owner_context
from billing_processor.models import (
    DEFAULT_SELECTOR,
    Confirmation,
    MethodSummary,
    MissingEmailError,
    PartialFailureError,
    ProcessorAggregate,
    ProcessorNotRegisteredError,
    ProviderAlreadyExistsError,
    ProviderName,
    ProviderRecord,
    RegistrationRequest,
)
from billing_processor.processors.base import PaymentProcessorAdapter
from billing_processor.processors.factory import AdapterFactory, AdapterRegistry

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _owner_scoped(
    method: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """
    Bind the owner (and requested provider) to every event logged during a
    mutation, and stamp the owner on reconciliation errors raised below it.
    """

    @functools.wraps(method)
    async def wrapper(self: "ProcessorManager", owner: str, *args: Any, **kwargs: Any) -> T:
        provider_name = kwargs.get("provider_name", args[0] if args else None)
        if isinstance(provider_name, ProviderName):
            provider_name = provider_name.value
        with owner_context(owner, provider=provider_name):
            try:
                return await method(self, owner, *args, **kwargs)
            except PartialFailureError as e:
                if e.owner is None:
                    e.owner = owner
                raise

    return wrapper


class ProcessorManager:
    """Owner-scoped operations on payment processor registrations."""

    def __init__(
        self,
        registry: AdapterRegistry,
        repository: ProcessorRepository,
        users: UserDirectory,
        locks: OwnerLocks | None = None,
        gate: ValidationGate | None = None,
    ) -> None:
        self._registry = registry
        self._repository = repository
        self._users = users
        self._locks = locks or OwnerLocks()
        self._gate = gate or ValidationGate(registry)

    # -- helpers -------------------------------------------------------------

    async def _load(self, owner: str) -> ProcessorAggregate:
        """Load the aggregate, or an empty unsaved one for resolution."""
        aggregate = await self._repository.get(owner)
        return aggregate if aggregate is not None else ProcessorAggregate.new(owner)

    async def _resolve_bound(
        self, owner: str, provider_name: "str | ProviderName"
    ) -> tuple[ProcessorAggregate, ProviderName, PaymentProcessorAdapter]:
        aggregate = await self._load(owner)
        provider = aggregate.resolve(provider_name)
        adapter = self._registry.resolve(provider).from_storage(aggregate.slot(provider))
        return aggregate, provider, adapter

    def _partial_failure(
        self,
        owner: str,
        provider: ProviderName,
        operation: str,
        error: BaseException,
        remote_id: str | None = None,
    ) -> PartialFailureError:
        logger.error(
            "reconciliation_required",
            owner=owner,
            provider=provider.value,
            operation=operation,
            remote_id=remote_id,
            error_type=type(error).__name__,
            error=str(error),
        )
        return PartialFailureError(
            f"{provider.value} {operation} succeeded remotely but was not recorded for {owner}",
            owner=owner,
            provider=provider.value,
            remote_id=remote_id,
        )

    @staticmethod
    def _remote_id(record: ProviderRecord) -> str | None:
        return record.remote_customer.get("id") if record.remote_customer else None

    async def _compensate_registration(
        self,
        owner: str,
        factory: AdapterFactory,
        record: ProviderRecord,
        error: BaseException,
    ) -> None:
        """Undo a remote registration whose local commit failed."""
        if record.remote_customer is None:
            # Nothing was created remotely.
            return

        try:
            await factory(record).delete()
        except (Exception, asyncio.CancelledError) as e:
            raise self._partial_failure(
                owner, factory.provider, "register", error, self._remote_id(record)
            ) from e

        logger.warning(
            "registration_rolled_back",
            owner=owner,
            provider=factory.provider.value,
            remote_id=self._remote_id(record),
            error_type=type(error).__name__,
        )

    # -- reads ---------------------------------------------------------------

    async def get(self, owner: str) -> ProcessorAggregate | None:
        """Load the owner's aggregate, or None if nothing was ever registered."""
        return await self._repository.get(owner)

    async def adapter(
        self, owner: str, provider_name: "str | ProviderName" = DEFAULT_SELECTOR
    ) -> PaymentProcessorAdapter:
        """
        Build an adapter bound to the owner's stored data for a provider.

        Args:
            owner: Owner identifier
            provider_name: Provider name or ``"default"``

        Raises:
            NoDefaultProcessorError: ``"default"`` requested but none is set
            InvalidProcessorNameError: Unknown name (UnsupportedProviderError)
                or empty slot (ProcessorNotRegisteredError)
        """
        _, _, adapter = await self._resolve_bound(owner, provider_name)
        return adapter

    async def lookup(
        self, owner: str, provider_name: "str | ProviderName" = DEFAULT_SELECTOR
    ) -> tuple[ProcessorAggregate, PaymentProcessorAdapter]:
        """Like ``adapter``, also returning the aggregate it was bound from."""
        aggregate, _, adapter = await self._resolve_bound(owner, provider_name)
        return aggregate, adapter

    async def billing_date(self, owner: str, provider_name: "str | ProviderName") -> int:
        adapter = await self.adapter(owner, provider_name)
        return adapter.billing_date()

    async def payment_methods(
        self, owner: str, provider_name: "str | ProviderName"
    ) -> list[MethodSummary]:
        adapter = await self.adapter(owner, provider_name)
        return adapter.payment_methods()

    async def default_payment_method(
        self, owner: str, provider_name: "str | ProviderName"
    ) -> MethodSummary | None:
        adapter = await self.adapter(owner, provider_name)
        return adapter.default_payment_method()

    # -- mutations -----------------------------------------------------------

    @_owner_scoped
    async def create(
        self,
        owner: str,
        provider_name: "str | ProviderName",
        payload: Mapping[str, Any] | None = None,
    ) -> ProcessorAggregate:
        """
        Register a provider for an owner.

        The provider becomes the default only when the owner has no default
        yet. No remote call is made unless the owner has an email and the
        provider's slot is empty.

        Raises:
            MissingEmailError: Owner unknown or has no email
            UnsupportedProviderError: Unknown provider name
            ProviderAlreadyExistsError: Slot already populated
            InvalidEmailError / RemoteError: Registration refused
            ProcessorDataError: Validation gate rejected the new record
            PersistenceError: Commit failed (remote registration rolled back)
            PartialFailureError: Commit failed and rollback was impossible
        """
        user = await self._users.get_user(owner)
        if user is None or not user.email:
            raise MissingEmailError("Must provide valid email")

        factory = self._registry.resolve(provider_name)
        provider = factory.provider

        async with self._locks.hold(owner):
            current = await self._repository.get(owner)
            if current is not None and current.is_registered(provider):
                logger.info(
                    "processor_already_exists",
                    owner=owner,
                    provider=provider.value,
                )
                raise ProviderAlreadyExistsError(
                    f"{provider.value} PaymentProcessor already exists"
                )

        payload = payload or {}
        adapter = factory()
        record = await adapter.register(
            RegistrationRequest(email=user.email, token=payload.get("token"))
        )
        data = adapter.serialize_data(record)

        try:
            async with self._locks.hold(owner):
                current = await self._load(owner)
                if current.is_registered(provider):
                    raise ProviderAlreadyExistsError(
                        f"{provider.value} PaymentProcessor already exists"
                    )
                saved = await self._gate.commit(
                    current.with_registration(provider, data),
                    provider,
                    self._repository.save,
                )
        except asyncio.CancelledError as e:
            raise self._partial_failure(
                owner, provider, "register", e, self._remote_id(record)
            ) from e
        except Exception as e:
            await self._compensate_registration(owner, factory, record, e)
            raise

        logger.info(
            "processor_created",
            owner=owner,
            provider=provider.value,
            default=saved.default_provider.value if saved.default_provider else None,
        )
        return saved

    @_owner_scoped
    async def set_default(
        self, owner: str, provider_name: "str | ProviderName"
    ) -> ProcessorAggregate:
        """
        Point the owner's default at a registered provider.

        Raises:
            InvalidProcessorNameError: Unknown provider name
            ProcessorNotRegisteredError: Target slot is empty
        """
        provider = ProviderName.parse(provider_name)

        async with self._locks.hold(owner):
            current = await self._repository.get(owner)
            if current is None:
                raise ProcessorNotRegisteredError(
                    f"{provider.value} PaymentProcessor is not registered"
                )
            candidate = current.with_default(provider)
            if candidate.default_provider == current.default_provider:
                return current
            saved = await self._repository.save(candidate)

        logger.info("default_processor_set", owner=owner, provider=provider.value)
        return saved

    @_owner_scoped
    async def delete(
        self, owner: str, provider_name: "str | ProviderName"
    ) -> ProcessorAggregate:
        """
        Delete the remote entity, then clear the slot.

        Deleting the default provider leaves the owner without a default.
        A remote failure leaves the slot populated.

        Raises:
            InvalidProcessorNameError: Unknown or unregistered name
            NotFoundError / RemoteInternalError: Remote delete failed
            PartialFailureError: Remote entity deleted but the slot could
                not be cleared
        """
        _, provider, adapter = await self._resolve_bound(owner, provider_name)
        confirmation = await adapter.delete()

        try:
            async with self._locks.hold(owner):
                current = await self._load(owner)
                if current.is_registered(provider):
                    current = await self._repository.save(current.without_slot(provider))
        except (Exception, asyncio.CancelledError) as e:
            raise self._partial_failure(
                owner, provider, "delete", e, confirmation.remote_id
            ) from e

        logger.info(
            "processor_deleted",
            owner=owner,
            provider=provider.value,
            default=current.default_provider.value if current.default_provider else None,
        )
        return current

    @_owner_scoped
    async def add_payment_method(
        self, owner: str, provider_name: "str | ProviderName", token: str
    ) -> ProcessorAggregate:
        """
        Attach a payment source and store the refreshed provider record.

        The stored record must pass validation before the gateway is
        touched, so a record that could never be committed (for example
        after its subscription was cancelled) attaches nothing.

        Raises:
            InvalidProcessorNameError: Unknown or unregistered name
            ProcessorDataError: Stored record fails validation
            RemoteRejectedError: Token refused by the gateway
            PartialFailureError: Source attached remotely but not recorded
        """
        aggregate, provider, adapter = await self._resolve_bound(owner, provider_name)
        await self._gate.check(aggregate, provider)
        record = await adapter.add_payment_method(token)
        data = adapter.serialize_data(record)

        saved = await self._commit_remote_change(
            owner, provider, data, "add_payment_method", self._remote_id(record)
        )
        logger.info("payment_method_added", owner=owner, provider=provider.value)
        return saved

    @_owner_scoped
    async def cancel(
        self, owner: str, provider_name: "str | ProviderName"
    ) -> tuple[ProcessorAggregate, Confirmation]:
        """
        Cancel the live subscription and record it as cancelled.

        Raises:
            InvalidProcessorNameError: Unknown or unregistered name
            NotFoundError: No live subscription (e.g. already cancelled)
            PartialFailureError: Cancelled remotely but not recorded
        """
        _, provider, adapter = await self._resolve_bound(owner, provider_name)
        confirmation = await adapter.cancel()
        data = adapter.serialize_data(adapter.bound_data)

        saved = await self._commit_remote_change(
            owner,
            provider,
            data,
            "cancel",
            confirmation.remote_id,
            allow_unsubscribed=True,
        )
        logger.info(
            "subscription_canceled",
            owner=owner,
            provider=provider.value,
            remote_id=confirmation.remote_id,
        )
        return saved, confirmation

    async def _commit_remote_change(
        self,
        owner: str,
        provider: ProviderName,
        data: list[dict[str, Any]],
        operation: str,
        remote_id: str | None,
        *,
        allow_unsubscribed: bool = False,
    ) -> ProcessorAggregate:
        """Write refreshed slot data after a remote mutation already happened."""
        try:
            async with self._locks.hold(owner):
                current = await self._load(owner)
                if not current.is_registered(provider):
                    raise ProcessorNotRegisteredError(
                        f"{provider.value} PaymentProcessor was removed concurrently"
                    )
                return await self._gate.commit(
                    current.with_slot(provider, data),
                    provider,
                    self._repository.save,
                    allow_unsubscribed=allow_unsubscribed,
                )
        except (Exception, asyncio.CancelledError) as e:
            raise self._partial_failure(owner, provider, operation, e, remote_id) from e

    @_owner_scoped
    async def discard_if_empty(self, owner: str) -> bool:
        """Remove the owner's record when no slot is populated.

        Returns:
            True if a record was removed
        """
        async with self._locks.hold(owner):
            current = await self._repository.get(owner)
            if current is None or current.slots:
                return False
            removed = await self._repository.delete(owner)

        if removed:
            logger.info("processor_record_discarded", owner=owner)
        return removed
