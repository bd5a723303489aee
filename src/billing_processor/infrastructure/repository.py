"""Persistence for processor aggregates.

One JSON document per owner, guarded by an integer revision. ``save`` is a
compare-and-swap: it only succeeds when the stored revision still equals the
revision the aggregate was loaded at, so two concurrent read-modify-write
cycles on the same owner cannot silently overwrite each other.
"""

import copy
import json
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any

import asyncpg
import structlog

from billing_processor.models import (
    ConcurrentModificationError,
    PersistenceError,
    ProcessorAggregate,
)

logger = structlog.get_logger(__name__)


class ProcessorRepository(ABC):
    """Port for loading and storing processor aggregates."""

    @abstractmethod
    async def get(self, owner: str) -> ProcessorAggregate | None:
        """Load the owner's aggregate, or None if it was never created."""

    @abstractmethod
    async def save(self, aggregate: ProcessorAggregate) -> ProcessorAggregate:
        """
        Upsert the aggregate if its revision is still current.

        Returns:
            The stored aggregate with its new revision

        Raises:
            ConcurrentModificationError: The stored revision moved on
            PersistenceError: The store failed
        """

    @abstractmethod
    async def delete(self, owner: str) -> bool:
        """Remove the owner's aggregate. Returns True if one existed."""


class PostgresProcessorRepository(ProcessorRepository):
    """asyncpg-backed repository storing the aggregate document as JSONB."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get(self, owner: str) -> ProcessorAggregate | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT owner, document, revision
                    FROM payment_processors
                    WHERE owner = $1
                    """,
                    owner,
                )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error("processor_load_failed", owner=owner, error=str(e))
            raise PersistenceError(f"Failed to load processors for {owner}") from e

        if row is None:
            return None

        document = row["document"]
        if isinstance(document, str):
            document = json.loads(document)
        return ProcessorAggregate.from_document(row["owner"], document, row["revision"])

    async def save(self, aggregate: ProcessorAggregate) -> ProcessorAggregate:
        document = json.dumps(aggregate.to_document())
        expected = aggregate.revision

        try:
            async with self._pool.acquire() as conn:
                if expected == 0:
                    # First write: the row must not exist yet.
                    result = await conn.fetchrow(
                        """
                        INSERT INTO payment_processors (owner, document, revision, created_at, updated_at)
                        VALUES ($1, $2::jsonb, 1, $3, NOW())
                        ON CONFLICT (owner) DO NOTHING
                        RETURNING revision
                        """,
                        aggregate.owner,
                        document,
                        aggregate.created_at,
                    )
                else:
                    result = await conn.fetchrow(
                        """
                        UPDATE payment_processors
                        SET document = $2::jsonb,
                            revision = revision + 1,
                            updated_at = NOW()
                        WHERE owner = $1 AND revision = $3
                        RETURNING revision
                        """,
                        aggregate.owner,
                        document,
                        expected,
                    )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(
                "processor_save_failed",
                owner=aggregate.owner,
                revision=expected,
                error=str(e),
            )
            raise PersistenceError(f"Failed to save processors for {aggregate.owner}") from e

        if result is None:
            logger.warning(
                "processor_revision_conflict",
                owner=aggregate.owner,
                expected_revision=expected,
            )
            raise ConcurrentModificationError(
                f"Processors for {aggregate.owner} were modified concurrently"
            )

        logger.info(
            "processor_saved",
            owner=aggregate.owner,
            revision=result["revision"],
        )
        return replace(aggregate, revision=result["revision"])

    async def delete(self, owner: str) -> bool:
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM payment_processors WHERE owner = $1",
                    owner,
                )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error("processor_delete_failed", owner=owner, error=str(e))
            raise PersistenceError(f"Failed to delete processors for {owner}") from e

        # Extract number of rows deleted from result string "DELETE N"
        rows_deleted = int(result.split()[-1]) if result else 0
        if rows_deleted:
            logger.info("processor_record_deleted", owner=owner)
        return rows_deleted > 0


class InMemoryProcessorRepository(ProcessorRepository):
    """
    Dictionary-backed repository with the same revision semantics.

    Documents are deep-copied on the way in and out, so callers never share
    state with the store. Single-process only.
    """

    def __init__(self) -> None:
        self._documents: dict[str, tuple[dict[str, Any], int]] = {}

    async def get(self, owner: str) -> ProcessorAggregate | None:
        stored = self._documents.get(owner)
        if stored is None:
            return None
        document, revision = stored
        return ProcessorAggregate.from_document(owner, copy.deepcopy(document), revision)

    async def save(self, aggregate: ProcessorAggregate) -> ProcessorAggregate:
        stored = self._documents.get(aggregate.owner)
        current_revision = stored[1] if stored else 0

        if current_revision != aggregate.revision:
            raise ConcurrentModificationError(
                f"Processors for {aggregate.owner} were modified concurrently"
            )

        new_revision = current_revision + 1
        self._documents[aggregate.owner] = (aggregate.to_document(), new_revision)
        return replace(aggregate, revision=new_revision)

    async def delete(self, owner: str) -> bool:
        return self._documents.pop(owner, None) is not None

    def __len__(self) -> int:
        return len(self._documents)
