"""
Payment processor adapters.

This module contains the adapter layer:
- base.PaymentProcessorAdapter: Interface every provider adapter implements
- stripe_processor.StripeAdapter: Stripe integration
- heroku_processor.HerokuAdapter: Free tier billed by Heroku (no remote calls)
- braintree_processor.BraintreeAdapter: Storage-only stub
- factory.AdapterRegistry: Closed provider-name to adapter lookup
"""

from billing_processor.processors.base import PaymentProcessorAdapter
from billing_processor.processors.braintree_processor import BraintreeAdapter
from billing_processor.processors.factory import AdapterFactory, AdapterRegistry
from billing_processor.processors.heroku_processor import HerokuAdapter
from billing_processor.processors.stripe_processor import StripeAdapter

__all__ = [
    "AdapterFactory",
    "AdapterRegistry",
    "BraintreeAdapter",
    "HerokuAdapter",
    "PaymentProcessorAdapter",
    "StripeAdapter",
]
