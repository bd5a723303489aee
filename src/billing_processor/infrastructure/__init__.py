"""Infrastructure adapters: database pool, repositories and locking."""

from billing_processor.infrastructure.locking import OwnerLocks
from billing_processor.infrastructure.repository import (
    InMemoryProcessorRepository,
    PostgresProcessorRepository,
    ProcessorRepository,
)

__all__ = [
    "InMemoryProcessorRepository",
    "OwnerLocks",
    "PostgresProcessorRepository",
    "ProcessorRepository",
]
