"""Billing Processor Service - payment processor registrations per storage account."""

__version__ = "0.1.0"
