"""Processor operations and the service layer built on them."""

from billing_processor.handlers.billing_service import BillingService
from billing_processor.handlers.processor_manager import ProcessorManager
from billing_processor.handlers.validation import ValidationGate

__all__ = ["BillingService", "ProcessorManager", "ValidationGate"]
