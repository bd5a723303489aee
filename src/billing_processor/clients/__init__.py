"""Clients for services the billing processor depends on."""

from billing_processor.clients.user_client import UserDirectory, UserServiceClient

__all__ = ["UserDirectory", "UserServiceClient"]
