"""Pytest configuration and shared fixtures for all tests.

This module provides:
- An adapter registry configured with a fake Stripe key and plan
- An in-memory user directory standing in for the user service
- Builders for Stripe customer payloads as the SDK returns them
- A fully wired ProcessorManager / BillingService over in-memory storage
"""

from typing import Any

import pytest

from billing_processor.handlers import BillingService, ProcessorManager, ValidationGate
from billing_processor.infrastructure import InMemoryProcessorRepository, OwnerLocks
from billing_processor.models import ProviderName, User
from billing_processor.processors import AdapterRegistry

TEST_API_KEY = "sk_test_fake_key"
TEST_PLAN_ID = "price_storage_monthly"

# 2023-11-14T22:13:20Z
TEST_CREATED_TS = 1700000000
TEST_BILLING_DAY = 14


class FakeUserDirectory:
    """In-memory stand-in for the user service."""

    def __init__(self, users: dict[str, str | None] | None = None):
        self.users = dict(users or {})
        self.lookups: list[str] = []

    async def get_user(self, owner: str) -> User | None:
        self.lookups.append(owner)
        if owner not in self.users:
            return None
        return User(id=owner, email=self.users[owner])


def stripe_subscription(
    subscription_id: str = "sub_123",
    plan_id: str = TEST_PLAN_ID,
    status: str = "active",
) -> dict[str, Any]:
    """Subscription payload shaped like the Stripe API response."""
    return {
        "id": subscription_id,
        "object": "subscription",
        "status": status,
        "items": {"data": [{"id": "si_1", "price": {"id": plan_id}}]},
    }


def stripe_source(
    source_id: str = "card_123", brand: str = "Visa", last4: str = "4242"
) -> dict[str, Any]:
    return {"id": source_id, "object": "card", "brand": brand, "last4": last4}


def stripe_customer(
    customer_id: str = "cus_123",
    email: str = "user@domain.tld",
    subscriptions: list[dict[str, Any]] | None = None,
    sources: list[dict[str, Any]] | None = None,
    created: int = TEST_CREATED_TS,
) -> dict[str, Any]:
    """Expanded customer payload shaped like ``stripe.Customer.retrieve``."""
    return {
        "id": customer_id,
        "object": "customer",
        "email": email,
        "created": created,
        "subscriptions": {"data": subscriptions if subscriptions is not None else [stripe_subscription()]},
        "sources": {"data": sources if sources is not None else [stripe_source()]},
    }


def stored_stripe_slot(
    customer_id: str = "cus_123",
    subscriptions: list[dict[str, Any]] | None = None,
    sources: list[dict[str, Any]] | None = None,
    billing_day: int = TEST_BILLING_DAY,
) -> list[dict[str, Any]]:
    """A stripe slot as it sits in storage."""
    return [
        {
            "customer": {
                "id": customer_id,
                "email": "user@domain.tld",
                "created": TEST_CREATED_TS,
                "subscriptions": subscriptions
                if subscriptions is not None
                else [{"id": "sub_123", "plan_id": TEST_PLAN_ID, "status": "active"}],
                "sources": sources
                if sources is not None
                else [{"id": "card_123", "brand": "Visa", "last4": "4242"}],
            },
            "billingDate": billing_day,
        }
    ]


@pytest.fixture
def registry() -> AdapterRegistry:
    """Registry with a fake Stripe configuration."""
    return AdapterRegistry(
        provider_config={
            ProviderName.STRIPE: {"api_key": TEST_API_KEY, "plan_id": TEST_PLAN_ID},
        }
    )


@pytest.fixture
def users() -> FakeUserDirectory:
    return FakeUserDirectory(
        {
            "u1": "user@domain.tld",
            "u2": "other@domain.tld",
            "no-email": None,
            "bad-email": "wrong@domain",
        }
    )


@pytest.fixture
def repository() -> InMemoryProcessorRepository:
    return InMemoryProcessorRepository()


@pytest.fixture
def manager(registry, repository, users) -> ProcessorManager:
    return ProcessorManager(
        registry=registry,
        repository=repository,
        users=users,
        locks=OwnerLocks(),
        gate=ValidationGate(registry),
    )


@pytest.fixture
def service(manager) -> BillingService:
    return BillingService(manager)
