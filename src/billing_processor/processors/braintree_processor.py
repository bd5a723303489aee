"""Braintree processor adapter (not yet integrated).

Only the storage transforms and billing date are available so that records
written by other tooling can still be read; every remote capability raises
NotImplementedError.
"""

from billing_processor.models import Confirmation, ProviderName, ProviderRecord, RegistrationRequest
from billing_processor.processors.base import PaymentProcessorAdapter


class BraintreeAdapter(PaymentProcessorAdapter):
    provider = ProviderName.BRAINTREE

    async def register(self, request: RegistrationRequest) -> ProviderRecord:
        raise NotImplementedError("braintree payment processor adapter not yet implemented!")

    async def delete(self) -> Confirmation:
        raise NotImplementedError("braintree payment processor adapter not yet implemented!")
