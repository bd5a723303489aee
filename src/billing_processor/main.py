"""
Composition root for the Billing Processor Service.

Wires configuration, logging, the database pool, the user service client,
the adapter registry and the handlers into a ready BillingService.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from billing_processor.clients.user_client import UserServiceClient
from billing_processor.config import Settings, settings as default_settings
from billing_processor.handlers import BillingService, ProcessorManager, ValidationGate
from billing_processor.infrastructure.database import open_pool
from billing_processor.infrastructure.locking import OwnerLocks
from billing_processor.infrastructure.repository import PostgresProcessorRepository
from billing_processor.logging_config import configure_logging, get_logger
from billing_processor.models import ProviderName
from billing_processor.processors.factory import AdapterRegistry

logger = get_logger(__name__)


def build_registry(config: Settings) -> AdapterRegistry:
    return AdapterRegistry(
        provider_config={
            ProviderName.STRIPE: {
                "api_key": config.stripe.api_key,
                "plan_id": config.stripe.plan_id,
            },
        }
    )


@asynccontextmanager
async def create_billing_service(
    config: Settings | None = None,
) -> AsyncIterator[BillingService]:
    """
    Build a BillingService and release its resources on exit.

    Example:
        async with create_billing_service() as service:
            await service.create_processor("user@domain.tld", "stripe", {"token": "tok_1"})
    """
    config = config or default_settings

    configure_logging(log_level=config.log_level, format_as_json=config.log_json)
    logger.info(
        "billing_service_starting",
        environment=config.environment,
        service_name=config.service_name,
    )

    registry = build_registry(config)

    async with open_pool(config) as pool:
        async with UserServiceClient(
            base_url=config.user_service.base_url,
            service_auth_token=config.user_service.service_auth_token,
            timeout_seconds=config.user_service.timeout_seconds,
        ) as users:
            manager = ProcessorManager(
                registry=registry,
                repository=PostgresProcessorRepository(pool),
                users=users,
                locks=OwnerLocks(),
                gate=ValidationGate(registry),
            )
            yield BillingService(manager)

    logger.info("billing_service_stopped")
