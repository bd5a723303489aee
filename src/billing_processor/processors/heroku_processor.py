"""
Heroku add-on (free tier) processor adapter.

Heroku bills its own customers, so there is no remote entity to create or
delete here: registration only records the billing day, and the tier has no
subscription to validate or cancel and no payment sources.
"""

from datetime import datetime, timezone

import structlog

from billing_processor.models import (
    Confirmation,
    InvalidEmailError,
    MethodSummary,
    ProviderName,
    ProviderRecord,
    RegistrationRequest,
)
from billing_processor.processors.base import PaymentProcessorAdapter
from billing_processor.utils import validate_email

logger = structlog.get_logger(__name__)


class HerokuAdapter(PaymentProcessorAdapter):
    """Free-tier adapter supporting registration, deletion and reads."""

    provider = ProviderName.HEROKU

    async def register(self, request: RegistrationRequest) -> ProviderRecord:
        if not validate_email(request.email):
            raise InvalidEmailError(f"Invalid email: {request.email}")

        billing_day = datetime.now(timezone.utc).day
        logger.info("heroku_registration_recorded", billing_day=billing_day)
        return ProviderRecord(remote_customer=None, billing_cycle_day=billing_day)

    async def validate(self) -> bool:
        self._require_bound()
        return True

    async def delete(self) -> Confirmation:
        self._require_bound()
        return Confirmation(
            provider=self.provider,
            remote_id=None,
            message="Free tier registration removed",
        )

    def default_payment_method(self) -> MethodSummary | None:
        self._require_bound()
        return None

    def payment_methods(self) -> list[MethodSummary]:
        self._require_bound()
        return []
