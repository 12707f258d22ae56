"""Unit tests for per-name serialization."""

import asyncio
import pytest

from ovpn_admin.client_service.locks import KeyedLock


@pytest.mark.asyncio
class TestKeyedLock:
    """Test the per-key async mutex."""

    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        events = []

        async def worker(tag):
            async with locks.hold("alice"):
                events.append(f"{tag}-start")
                await asyncio.sleep(0.05)
                events.append(f"{tag}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    async def test_distinct_keys_run_concurrently(self):
        locks = KeyedLock()
        inside = asyncio.Event()

        async def holder():
            async with locks.hold("alice"):
                inside.set()
                await asyncio.sleep(0.1)

        async def other():
            await inside.wait()
            async with locks.hold("bob"):
                return locks.locked("alice")

        _, alice_was_locked = await asyncio.gather(holder(), other())

        assert alice_was_locked is True

    async def test_locks_are_released_and_dropped(self):
        locks = KeyedLock()

        async with locks.hold("alice"):
            assert locks.locked("alice")
            assert len(locks) == 1

        assert not locks.locked("alice")
        assert len(locks) == 0

    async def test_released_on_exception(self):
        locks = KeyedLock()

        with pytest.raises(RuntimeError):
            async with locks.hold("alice"):
                raise RuntimeError("boom")

        assert len(locks) == 0


@pytest.mark.asyncio
class TestToolchainSerialization:
    """Test that ledger-writing easy-rsa calls never overlap."""

    async def test_concurrent_issuance_keeps_every_ledger_line(self, registry):
        names = [f"client{i}" for i in range(5)]

        await asyncio.gather(*(registry.create(n) for n in names))

        assert sorted(await registry.list()) == names

    async def test_issuance_waits_for_toolchain_lock(self, registry):
        async with registry.revocation.toolchain_lock:
            task = asyncio.create_task(registry.create("alice"))
            await asyncio.sleep(0.1)
            assert not task.done()
            assert await registry.list() == []

        await task
        assert await registry.list() == ["alice"]
