"""
Stripe payment processor adapter.

Customers are created with the configured plan as their only subscription,
and a trimmed snapshot of the customer (subscriptions and card sources) is
kept as the provider record. The Stripe SDK is blocking, so every call runs
in a worker thread; the adapter never holds any lock while waiting on it.

Reference:
- https://docs.stripe.com/api/customers
- https://docs.stripe.com/api/subscriptions/cancel
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable

import stripe
import structlog

from billing_processor.models import (
    AmbiguousSubscriptionError,
    Confirmation,
    InvalidEmailError,
    MethodSummary,
    NotFoundError,
    PartialFailureError,
    ProviderName,
    ProviderRecord,
    RegistrationRequest,
    RemoteError,
    RemoteInternalError,
    RemoteRejectedError,
    WrongPlanError,
)
from billing_processor.processors.base import PaymentProcessorAdapter
from billing_processor.utils import validate_email

logger = structlog.get_logger(__name__)

# Subscriptions in these states no longer bill the customer.
_ENDED_SUBSCRIPTION_STATUSES = frozenset({"canceled", "incomplete_expired"})

_CUSTOMER_EXPANSIONS = ["sources", "subscriptions"]


def _field(obj: Any, key: str, default: Any = None) -> Any:
    # Works for plain dicts and StripeObject alike.
    return obj[key] if key in obj and obj[key] is not None else default


def _list_data(obj: Any, key: str) -> list[Any]:
    container = _field(obj, key)
    if container is None:
        return []
    return list(_field(container, "data", []))


def _subscription_plan(subscription: Any) -> str | None:
    items = _list_data(subscription, "items")
    if items and _field(items[0], "price") is not None:
        return _field(items[0]["price"], "id")
    plan = _field(subscription, "plan")
    return _field(plan, "id") if plan is not None else None


def snapshot_customer(customer: Any) -> dict[str, Any]:
    """Reduce a Stripe customer to the plain fields this service stores."""
    return {
        "id": customer["id"],
        "email": _field(customer, "email"),
        "created": _field(customer, "created"),
        "subscriptions": [
            {
                "id": sub["id"],
                "plan_id": _subscription_plan(sub),
                "status": _field(sub, "status"),
            }
            for sub in _list_data(customer, "subscriptions")
        ],
        "sources": [
            {
                "id": source["id"],
                "brand": _field(source, "brand"),
                "last4": _field(source, "last4"),
            }
            for source in _list_data(customer, "sources")
        ],
    }


class StripeAdapter(PaymentProcessorAdapter):
    """Stripe implementation of the full adapter capability set."""

    provider = ProviderName.STRIPE

    def __init__(
        self,
        bound_data: ProviderRecord | None = None,
        *,
        api_key: str,
        plan_id: str,
    ) -> None:
        """
        Initialize the Stripe adapter.

        Args:
            bound_data: Stored provider record, or None before registration
            api_key: Stripe secret API key (sk_test_... or sk_live_...),
                passed per request rather than set on the stripe module
            plan_id: Price every storage subscription must be on
        """
        super().__init__(bound_data)
        self.api_key = api_key
        self.plan_id = plan_id

    # -- gateway plumbing ----------------------------------------------------

    async def _call(
        self,
        operation: str,
        func: Callable[..., Any],
        *args: Any,
        rejectable: bool = False,
        **params: Any,
    ) -> Any:
        try:
            return await asyncio.to_thread(func, *args, api_key=self.api_key, **params)
        except stripe.StripeError as e:
            raise self._translate_error(operation, e, rejectable) from e

    def _translate_error(
        self, operation: str, error: stripe.StripeError, rejectable: bool
    ) -> RemoteError:
        """Reclassify a Stripe SDK error into the service's remote error kinds."""
        message = error.user_message or str(error)
        http_status = getattr(error, "http_status", None)

        if http_status == 404:
            logger.info(
                "stripe_resource_not_found",
                operation=operation,
                message=message,
            )
            return NotFoundError(message, provider=self.provider.value)

        if rejectable and isinstance(error, (stripe.CardError, stripe.InvalidRequestError)):
            logger.info(
                "stripe_request_rejected",
                operation=operation,
                error_code=getattr(error, "code", None),
                message=message,
            )
            return RemoteRejectedError(message, provider=self.provider.value)

        logger.error(
            "stripe_api_error",
            operation=operation,
            error_type=type(error).__name__,
            http_status=http_status,
            error=str(error),
        )
        return RemoteInternalError(
            f"Stripe {operation} failed: {message}", provider=self.provider.value
        )

    async def _retrieve_customer(self, customer_id: str) -> Any:
        customer = await self._call(
            "retrieve_customer",
            stripe.Customer.retrieve,
            customer_id,
            expand=_CUSTOMER_EXPANSIONS,
        )
        if _field(customer, "deleted", False):
            raise NotFoundError(
                f"No such customer: '{customer_id}'", provider=self.provider.value
            )
        return customer

    async def _discard_customer(self, customer_id: str) -> None:
        try:
            await self._call("delete_customer", stripe.Customer.delete, customer_id)
        except RemoteError as e:
            logger.error(
                "reconciliation_required",
                provider=self.provider.value,
                remote_id=customer_id,
                reason="customer created without subscription could not be removed",
            )
            raise PartialFailureError(
                f"Stripe customer {customer_id} left without a subscription",
                provider=self.provider.value,
                remote_id=customer_id,
            ) from e
        logger.info("stripe_customer_discarded", customer_id=customer_id)

    def _customer(self) -> dict[str, Any]:
        customer = self.bound_data.remote_customer
        if not customer:
            raise NotFoundError(
                "Stored stripe record has no customer", provider=self.provider.value
            )
        return customer

    def _live_subscriptions(self) -> list[dict[str, Any]]:
        return [
            sub
            for sub in self._customer().get("subscriptions", [])
            if sub.get("status") not in _ENDED_SUBSCRIPTION_STATUSES
        ]

    # -- capabilities --------------------------------------------------------

    async def register(self, request: RegistrationRequest) -> ProviderRecord:
        """
        Create a Stripe customer subscribed to the storage plan.

        The customer is created first (with the card token as its source when
        one is given), then subscribed and re-fetched. If either later step
        fails the customer is deleted again, so a failed registration never
        leaves a customer behind at Stripe.
        """
        if not validate_email(request.email):
            raise InvalidEmailError(f"Invalid email: {request.email}")

        params: dict[str, Any] = {"email": request.email}
        if request.token:
            params["source"] = request.token

        logger.info("stripe_registration_starting", has_token=bool(request.token))

        customer = await self._call(
            "create_customer", stripe.Customer.create, rejectable=True, **params
        )
        customer_id = customer["id"]

        try:
            await self._call(
                "create_subscription",
                stripe.Subscription.create,
                rejectable=True,
                customer=customer_id,
                items=[{"price": self.plan_id}],
            )
            customer = await self._retrieve_customer(customer_id)
        except RemoteError:
            await self._discard_customer(customer_id)
            raise

        created = _field(customer, "created")
        registered_at = (
            datetime.fromtimestamp(created, tz=timezone.utc)
            if created is not None
            else datetime.now(timezone.utc)
        )

        logger.info(
            "stripe_registration_success",
            customer_id=customer_id,
            billing_day=registered_at.day,
        )

        return ProviderRecord(
            remote_customer=snapshot_customer(customer),
            billing_cycle_day=registered_at.day,
        )

    async def validate(self) -> bool:
        subscriptions = self._live_subscriptions()

        if not subscriptions:
            return False

        if len(subscriptions) > 1:
            raise AmbiguousSubscriptionError(
                "Customer has more than one stripe subscription!"
            )

        if subscriptions[0].get("plan_id") != self.plan_id:
            raise WrongPlanError(
                f"Customer is subscribed to unknown plan: {subscriptions[0].get('plan_id')}"
            )

        return True

    async def delete(self) -> Confirmation:
        """
        Delete the Stripe customer.

        Deleted customers remain retrievable through the API for history,
        but their card details are removed and no further operations
        (such as a new subscription) are possible.
        """
        customer_id = self._customer()["id"]
        confirmation = await self._call(
            "delete_customer", stripe.Customer.delete, customer_id
        )

        if not _field(confirmation, "deleted", False):
            logger.error("stripe_customer_not_deleted", customer_id=customer_id)
            raise RemoteInternalError(
                f"Stripe did not confirm deletion of {customer_id}",
                provider=self.provider.value,
            )

        logger.info("stripe_customer_deleted", customer_id=customer_id)
        return Confirmation(
            provider=self.provider,
            remote_id=customer_id,
            message="User successfully deleted",
        )

    async def cancel(self) -> Confirmation:
        """
        Cancel the customer's live subscription.

        The bound record is updated so the subscription reads as cancelled;
        a second cancel on the same adapter therefore fails NotFoundError
        without another remote call.
        """
        subscriptions = self._live_subscriptions()
        if not subscriptions:
            raise NotFoundError(
                "No active stripe subscription to cancel", provider=self.provider.value
            )

        subscription_id = subscriptions[0]["id"]
        result = await self._call(
            "cancel_subscription", stripe.Subscription.cancel, subscription_id
        )

        status = _field(result, "status")
        if status != "canceled":
            logger.error(
                "stripe_unexpected_status",
                subscription_id=subscription_id,
                status=status,
            )
            raise RemoteInternalError(
                f"Unexpected subscription status after cancel: {status}",
                provider=self.provider.value,
            )

        customer = dict(self._customer())
        customer["subscriptions"] = [
            {**sub, "status": "canceled"} if sub["id"] == subscription_id else sub
            for sub in customer.get("subscriptions", [])
        ]
        self._bound_data = replace(self.bound_data, remote_customer=customer)

        logger.info("stripe_subscription_canceled", subscription_id=subscription_id)
        return Confirmation(
            provider=self.provider,
            remote_id=subscription_id,
            message="Subscription successfully canceled",
        )

    async def add_payment_method(self, token: str) -> ProviderRecord:
        """
        Attach a card token to the customer and re-fetch the customer so the
        default method and method list reflect the new source.

        Raises:
            RemoteRejectedError: Token refused, nothing attached
            NotFoundError: Customer no longer exists
            PartialFailureError: Source attached but the customer could not
                be re-fetched
        """
        customer_id = self._customer()["id"]

        source = await self._call(
            "create_source",
            stripe.Customer.create_source,
            customer_id,
            rejectable=True,
            source=token,
        )
        try:
            customer = await self._retrieve_customer(customer_id)
        except NotFoundError:
            raise
        except RemoteError as e:
            source_id = _field(source, "id")
            logger.error(
                "reconciliation_required",
                provider=self.provider.value,
                remote_id=source_id,
                reason="source attached but customer could not be re-fetched",
            )
            raise PartialFailureError(
                f"Stripe source {source_id} attached to {customer_id} but not recorded",
                provider=self.provider.value,
                remote_id=source_id,
            ) from e

        record = replace(self.bound_data, remote_customer=snapshot_customer(customer))
        self._bound_data = record

        logger.info(
            "stripe_payment_method_added",
            customer_id=customer_id,
            source_count=len(record.remote_customer["sources"]),
        )
        return record

    def default_payment_method(self) -> MethodSummary | None:
        methods = self.payment_methods()
        return methods[0] if methods else None

    def payment_methods(self) -> list[MethodSummary]:
        return [
            MethodSummary(
                id=source["id"],
                merchant_brand=source.get("brand"),
                last_four_digits=source.get("last4"),
            )
            for source in self._customer().get("sources", [])
        ]
