"""Unit tests for per-owner locking."""

import asyncio

import pytest

from billing_processor.infrastructure import OwnerLocks


class TestOwnerLocks:
    """Test cases for OwnerLocks.hold."""

    @pytest.mark.asyncio
    async def test_hold_and_release(self):
        locks = OwnerLocks()

        async with locks.hold("u1"):
            assert locks.is_locked("u1")
            assert len(locks) == 1

        assert not locks.is_locked("u1")
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = OwnerLocks()

        with pytest.raises(RuntimeError):
            async with locks.hold("u1"):
                raise RuntimeError("boom")

        assert not locks.is_locked("u1")
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_same_owner_serialized(self):
        locks = OwnerLocks()
        events = []

        async def worker(name: str) -> None:
            async with locks.hold("u1"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a-start", "a-end", "b-start", "b-end"]
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_different_owners_independent(self):
        locks = OwnerLocks()
        release = asyncio.Event()
        entered = asyncio.Event()

        async def hold_u1() -> None:
            async with locks.hold("u1"):
                await release.wait()

        async def hold_u2() -> None:
            async with locks.hold("u2"):
                entered.set()

        task = asyncio.create_task(hold_u1())
        await asyncio.sleep(0)
        assert locks.is_locked("u1")

        await asyncio.wait_for(hold_u2(), timeout=1)
        assert entered.is_set()

        release.set()
        await task
        assert len(locks) == 0
