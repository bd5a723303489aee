"""Unit tests for processor repositories."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from billing_processor.infrastructure import (
    InMemoryProcessorRepository,
    PostgresProcessorRepository,
)
from billing_processor.models import (
    ConcurrentModificationError,
    PersistenceError,
    ProcessorAggregate,
    ProviderName,
)

CREATED = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
HEROKU_SLOT = [{"customer": None, "billingDate": 1}]


def heroku_aggregate(revision: int = 0) -> ProcessorAggregate:
    aggregate = ProcessorAggregate.new("u1", created_at=CREATED).with_registration(
        ProviderName.HEROKU, HEROKU_SLOT
    )
    return ProcessorAggregate(
        owner=aggregate.owner,
        created_at=aggregate.created_at,
        slots=aggregate.slots,
        default_provider=aggregate.default_provider,
        revision=revision,
    )


@pytest.fixture
def mock_conn():
    return AsyncMock()


@pytest.fixture
def mock_pool(mock_conn):
    """asyncpg pool whose acquire() yields ``mock_conn``."""
    pool = MagicMock()
    pool.acquire.return_value.__aenter__.return_value = mock_conn
    pool.acquire.return_value.__aexit__.return_value = False
    return pool


class TestInMemoryRepository:
    """Test cases for the in-memory repository."""

    @pytest.mark.asyncio
    async def test_get_missing(self):
        assert await InMemoryProcessorRepository().get("u1") is None

    @pytest.mark.asyncio
    async def test_save_and_get(self):
        repository = InMemoryProcessorRepository()

        saved = await repository.save(heroku_aggregate())
        loaded = await repository.get("u1")

        assert saved.revision == 1
        assert loaded.revision == 1
        assert loaded.slots == saved.slots
        assert loaded.default_provider is ProviderName.HEROKU
        assert loaded.created_at == CREATED

    @pytest.mark.asyncio
    async def test_stale_revision_rejected(self):
        repository = InMemoryProcessorRepository()
        first = await repository.save(heroku_aggregate())

        await repository.save(first.without_slot(ProviderName.HEROKU))

        with pytest.raises(ConcurrentModificationError):
            await repository.save(first.with_default(ProviderName.HEROKU))

    @pytest.mark.asyncio
    async def test_duplicate_insert_rejected(self):
        repository = InMemoryProcessorRepository()
        await repository.save(heroku_aggregate())

        with pytest.raises(ConcurrentModificationError):
            await repository.save(heroku_aggregate())

    @pytest.mark.asyncio
    async def test_loaded_copies_are_independent(self):
        repository = InMemoryProcessorRepository()
        await repository.save(heroku_aggregate())

        loaded = await repository.get("u1")
        loaded.slots[ProviderName.HEROKU][0]["billingDate"] = 28

        assert (await repository.get("u1")).slot(ProviderName.HEROKU)[0]["billingDate"] == 1

    @pytest.mark.asyncio
    async def test_delete(self):
        repository = InMemoryProcessorRepository()
        await repository.save(heroku_aggregate())

        assert await repository.delete("u1") is True
        assert await repository.delete("u1") is False
        assert len(repository) == 0


class TestPostgresRepositoryGet:
    """Test cases for loading from PostgreSQL."""

    @pytest.mark.asyncio
    async def test_get_found(self, mock_pool, mock_conn):
        document = heroku_aggregate().to_document()
        mock_conn.fetchrow.return_value = {
            "owner": "u1",
            "document": json.dumps(document),
            "revision": 4,
        }

        aggregate = await PostgresProcessorRepository(mock_pool).get("u1")

        assert aggregate.revision == 4
        assert aggregate.slot(ProviderName.HEROKU) == HEROKU_SLOT
        assert mock_conn.fetchrow.call_args.args[1] == "u1"

    @pytest.mark.asyncio
    async def test_get_missing(self, mock_pool, mock_conn):
        mock_conn.fetchrow.return_value = None

        assert await PostgresProcessorRepository(mock_pool).get("u1") is None

    @pytest.mark.asyncio
    async def test_get_database_error(self, mock_pool, mock_conn):
        mock_conn.fetchrow.side_effect = asyncpg.PostgresError("connection reset")

        with pytest.raises(PersistenceError):
            await PostgresProcessorRepository(mock_pool).get("u1")


class TestPostgresRepositorySave:
    """Test cases for the compare-and-swap write."""

    @pytest.mark.asyncio
    async def test_first_save_inserts(self, mock_pool, mock_conn):
        mock_conn.fetchrow.return_value = {"revision": 1}

        saved = await PostgresProcessorRepository(mock_pool).save(heroku_aggregate())

        assert saved.revision == 1
        query, owner, document, created_at = mock_conn.fetchrow.call_args.args
        assert "INSERT INTO payment_processors" in query
        assert "ON CONFLICT (owner) DO NOTHING" in query
        assert owner == "u1"
        assert json.loads(document)["default"] == "heroku"
        assert created_at == CREATED

    @pytest.mark.asyncio
    async def test_update_checks_revision(self, mock_pool, mock_conn):
        mock_conn.fetchrow.return_value = {"revision": 3}

        saved = await PostgresProcessorRepository(mock_pool).save(heroku_aggregate(revision=2))

        assert saved.revision == 3
        query, owner, _, expected = mock_conn.fetchrow.call_args.args
        assert "UPDATE payment_processors" in query
        assert "revision = $3" in query
        assert expected == 2

    @pytest.mark.asyncio
    async def test_conflict(self, mock_pool, mock_conn):
        mock_conn.fetchrow.return_value = None

        with pytest.raises(ConcurrentModificationError):
            await PostgresProcessorRepository(mock_pool).save(heroku_aggregate(revision=2))

    @pytest.mark.asyncio
    async def test_database_error(self, mock_pool, mock_conn):
        mock_conn.fetchrow.side_effect = OSError("connection refused")

        with pytest.raises(PersistenceError) as exc_info:
            await PostgresProcessorRepository(mock_pool).save(heroku_aggregate())

        assert exc_info.value.requires_reconciliation is False


class TestPostgresRepositoryDelete:
    """Test cases for removing a record."""

    @pytest.mark.asyncio
    async def test_delete(self, mock_pool, mock_conn):
        mock_conn.execute.return_value = "DELETE 1"

        assert await PostgresProcessorRepository(mock_pool).delete("u1") is True

    @pytest.mark.asyncio
    async def test_delete_missing(self, mock_pool, mock_conn):
        mock_conn.execute.return_value = "DELETE 0"

        assert await PostgresProcessorRepository(mock_pool).delete("u1") is False
