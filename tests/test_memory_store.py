"""Tests for the in-memory Entity Store."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from finance_tracker.services.storage import (
    BatchOperation,
    InMemoryEntityStore,
    NotFoundError,
)


def _at(minutes: int) -> datetime:
    return datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes)


class TestReadsAndWrites:
    """Tests for point reads, queries and single writes."""

    def test_add_then_get(self):
        """Test add assigns an ID that get can read back."""
        store = InMemoryEntityStore()
        record_id = asyncio.run(store.add("wallets", {"userId": "u1", "name": "Cash"}))
        record = asyncio.run(store.get("wallets", record_id))
        assert record == {"userId": "u1", "name": "Cash", "id": record_id}

    def test_get_missing_returns_none(self):
        """Test a missing record reads as None."""
        assert asyncio.run(InMemoryEntityStore().get("wallets", "nope")) is None

    def test_get_returns_a_copy(self):
        """Test callers cannot mutate stored records through a read."""
        store = InMemoryEntityStore()
        asyncio.run(store.set("wallets", "w1", {"userId": "u1", "meta": {"a": 1}}))
        record = asyncio.run(store.get("wallets", "w1"))
        record["meta"]["a"] = 2
        assert asyncio.run(store.get("wallets", "w1"))["meta"] == {"a": 1}

    def test_update_missing_raises(self):
        """Test updating a missing record raises NotFoundError."""
        with pytest.raises(NotFoundError):
            asyncio.run(InMemoryEntityStore().update("wallets", "nope", {"name": "x"}))

    def test_delete_missing_is_not_an_error(self):
        """Test deleting a missing record is a no-op."""
        asyncio.run(InMemoryEntityStore().delete("wallets", "nope"))

    def test_find_is_owner_scoped_filtered_and_ordered(self):
        """Test find applies owner, equality filters, order and limit."""
        store = InMemoryEntityStore()

        async def scenario():
            await store.set("transactions", "t1", {"userId": "u1", "walletId": "w1", "date": _at(1)})
            await store.set("transactions", "t2", {"userId": "u1", "walletId": "w1", "date": _at(3)})
            await store.set("transactions", "t3", {"userId": "u1", "walletId": "w2", "date": _at(2)})
            await store.set("transactions", "t4", {"userId": "u2", "walletId": "w1", "date": _at(4)})
            newest_first = await store.find("transactions", "u1", order_by="date", walletId="w1")
            limited = await store.find("transactions", "u1", order_by="date", descending=False, limit=2)
            return newest_first, limited

        newest_first, limited = asyncio.run(scenario())
        assert [r["id"] for r in newest_first] == ["t2", "t1"]
        assert [r["id"] for r in limited] == ["t1", "t3"]

    def test_ordered_find_skips_records_without_the_field(self):
        """Test ordering on a field excludes records lacking it."""
        store = InMemoryEntityStore()

        async def scenario():
            await store.set("goals", "g1", {"userId": "u1", "createdAt": _at(1)})
            await store.set("goals", "g2", {"userId": "u1"})
            return await store.find("goals", "u1", order_by="createdAt")

        assert [r["id"] for r in asyncio.run(scenario())] == ["g1"]


class TestAtomicBatch:
    """Tests for all-or-nothing batches and increments."""

    def test_increment_adds_to_current_value(self):
        """Test increments are applied against the stored value."""
        store = InMemoryEntityStore()

        async def scenario():
            await store.set("wallets", "w1", {"userId": "u1", "balance": Decimal("10")})
            await store.increment_field("wallets", "w1", "balance", Decimal("-2.5"))
            await store.increment_field("wallets", "w1", "balance", Decimal("4"))
            return await store.get("wallets", "w1")

        assert asyncio.run(scenario())["balance"] == Decimal("11.5")

    def test_increment_of_missing_field_starts_at_zero(self):
        """Test a missing numeric field counts as zero."""
        store = InMemoryEntityStore()

        async def scenario():
            await store.set("goals", "g1", {"userId": "u1"})
            await store.increment_field("goals", "g1", "savedAmount", Decimal("7"))
            return await store.get("goals", "g1")

        assert asyncio.run(scenario())["savedAmount"] == Decimal("7")

    def test_failed_batch_leaves_nothing_behind(self):
        """Test a batch with one bad operation writes nothing."""
        store = InMemoryEntityStore()

        async def scenario():
            await store.set("wallets", "w1", {"userId": "u1", "balance": Decimal("10")})
            with pytest.raises(NotFoundError):
                await store.atomic_batch([
                    BatchOperation.set("transactions", "t1", {"userId": "u1"}),
                    BatchOperation.increment("wallets", "w1", "balance", Decimal("5")),
                    BatchOperation.increment("goals", "missing", "savedAmount", Decimal("5")),
                ])
            return await store.get("transactions", "t1"), await store.get("wallets", "w1")

        transaction, wallet = asyncio.run(scenario())
        assert transaction is None
        assert wallet["balance"] == Decimal("10")

    def test_concurrent_increments_all_land(self):
        """Test no increment is lost when many run at once."""
        store = InMemoryEntityStore()

        async def scenario():
            await store.set("wallets", "w1", {"userId": "u1", "balance": Decimal("0")})
            await asyncio.gather(*[
                store.increment_field("wallets", "w1", "balance", Decimal("1"))
                for _ in range(50)
            ])
            return await store.get("wallets", "w1")

        assert asyncio.run(scenario())["balance"] == Decimal("50")


class TestSubscriptions:
    """Tests for live owner-scoped queries."""

    def test_initial_and_subsequent_full_snapshots(self):
        """Test subscribers get the full ordered set on subscribe and on change."""
        store = InMemoryEntityStore()
        deliveries = []

        asyncio.run(store.set("debts", "d1", {"userId": "u1", "createdAt": _at(1)}))
        subscription = store.subscribe("debts", "u1", deliveries.append)
        asyncio.run(store.set("debts", "d2", {"userId": "u1", "createdAt": _at(2)}))
        asyncio.run(store.set("debts", "d3", {"userId": "u2", "createdAt": _at(3)}))

        assert [[r["id"] for r in snapshot] for snapshot in deliveries] == [
            ["d1"],
            ["d2", "d1"],
            ["d2", "d1"],
        ]
        assert subscription.active

    def test_unsubscribe_stops_deliveries(self):
        """Test unsubscribe is final and idempotent."""
        store = InMemoryEntityStore()
        deliveries = []
        subscription = store.subscribe("debts", "u1", deliveries.append)
        subscription.unsubscribe()
        subscription.unsubscribe()
        asyncio.run(store.set("debts", "d1", {"userId": "u1", "createdAt": _at(1)}))
        assert deliveries == [[]]
        assert not subscription.active

    def test_failing_callback_does_not_break_writes(self):
        """Test a broken consumer does not fail the writer."""
        store = InMemoryEntityStore()

        def broken(snapshot):
            if snapshot:
                raise RuntimeError("boom")

        store.subscribe("debts", "u1", broken)
        asyncio.run(store.set("debts", "d1", {"userId": "u1", "createdAt": _at(1)}))
        assert asyncio.run(store.get("debts", "d1")) is not None
