"""Tests for the two-tier store."""

import asyncio
from datetime import timedelta

import pytest

from shortener.exceptions import NameTaken, StorageError
from shortener.store import FastTier, HybridStore, MemoryBackend, UrlRecord
from shortener.store.base import wrap_backend_errors
from shortener.store.models import utcnow


class SlowBackend(MemoryBackend):
    """Memory backend whose writes time out the way a slow database driver does."""

    name = "slow"

    @wrap_backend_errors()
    async def create(self, record):
        raise asyncio.TimeoutError()


class TestFastTier:
    """Test the in-process tier."""

    def test_insert_if_absent(self):
        tier = FastTier()

        assert tier.insert_if_absent(UrlRecord.new("abc", "https://example.com/1"))
        assert not tier.insert_if_absent(UrlRecord.new("abc", "https://example.com/2"))
        assert tier.get("abc").original_url == "https://example.com/1"

    def test_expired_record_is_evicted(self):
        tier = FastTier()
        stale = UrlRecord.new("old", "https://example.com", expiration_days=1, now=utcnow() - timedelta(days=2))
        tier.set(stale)

        assert tier.get("old") is None
        assert len(tier) == 0
        # The code is free again
        assert tier.insert_if_absent(UrlRecord.new("old", "https://example.com/new"))

    def test_touch(self):
        tier = FastTier()
        tier.set(UrlRecord.new("abc", "https://example.com"))

        tier.touch("abc")
        record = tier.touch("abc")

        assert record.clicks == 2
        assert tier.touch("missing") is None

    def test_remove_expected_only(self):
        tier = FastTier()
        mine = UrlRecord.new("abc", "https://example.com/mine")
        tier.set(UrlRecord.new("abc", "https://example.com/theirs"))

        assert not tier.remove("abc", expected=mine)
        assert "abc" in tier
        assert tier.remove("abc")
        assert not tier.remove("abc")


class TestUrlRecord:
    def test_meta_round_trip_keeps_timestamps(self):
        record = UrlRecord.new("abc", "https://example.com", expiration_days=30).touched(hits=4)

        restored = UrlRecord.from_dict(record.to_dict())

        assert restored.short_code == "abc"
        assert restored.clicks == 4
        assert restored.created_at == record.created_at
        assert restored.expires_at == record.expires_at

    def test_ttl_seconds(self):
        now = utcnow()
        assert UrlRecord.new("a", "https://example.com", now=now).ttl_seconds(now) is None
        assert UrlRecord.new("a", "https://example.com", expiration_days=1, now=now).ttl_seconds(now) == 86400


@pytest.mark.asyncio
class TestHybridStore:
    """Test the store against a process-local durable tier."""

    async def test_put_writes_both_tiers(self, store, durable):
        record = await store.put("abc", "https://example.com", expiration_days=10)

        assert record.persisted
        assert store.fast.get("abc") is not None
        assert (await durable.get("abc")).original_url == "https://example.com"

    async def test_put_taken_code(self, store):
        await store.put("abc", "https://example.com/first")

        with pytest.raises(NameTaken):
            await store.put("abc", "https://example.com/second")

        assert (await store.get("abc")).original_url == "https://example.com/first"

    async def test_put_taken_in_durable_tier_only(self, store, durable):
        # Written by another process; this process has not seen it yet
        await durable.create(UrlRecord.new("abc", "https://example.com/elsewhere"))

        with pytest.raises(NameTaken):
            await store.put("abc", "https://example.com/mine")

        assert (await store.get("abc")).original_url == "https://example.com/elsewhere"

    async def test_read_through(self, durable, logger):
        await durable.create(UrlRecord.new("abc", "https://example.com"))
        store = HybridStore(durable=durable, logger=logger)

        assert store.fast.get("abc") is None
        record = await store.get("abc")

        assert record.original_url == "https://example.com"
        assert store.fast.get("abc") is not None
        await store.close()

    async def test_concurrent_puts_same_code(self, store):
        results = await asyncio.gather(
            *(store.put("race", f"https://example.com/{i}") for i in range(50)),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, UrlRecord)]
        assert len(winners) == 1
        assert all(isinstance(r, NameTaken) for r in results if r not in winners)
        assert (await store.get("race")).original_url == winners[0].original_url

    async def test_record_access_batches_hits(self, store, durable):
        await store.put("abc", "https://example.com")

        store.record_access("abc")
        store.record_access("abc")
        await store.tasks.drain()

        assert store.fast.get("abc").clicks == 2
        assert (await durable.get("abc")).clicks == 2

    async def test_delete(self, store, durable):
        await store.put("abc", "https://example.com")

        assert await store.delete("abc") == 1
        assert await store.get("abc") is None
        assert await durable.get("abc") is None
        assert await store.delete("abc") == 0

    async def test_delete_expired_code_counts_as_absent(self, store, durable):
        expired = UrlRecord.new("old", "https://example.com", expiration_days=1, now=utcnow() - timedelta(days=3))
        store.fast.set(expired)
        await durable.create(expired)

        assert await store.delete("old") == 0
        assert len(store.fast) == 0

    async def test_delete_all(self, store, durable):
        await store.put("one", "https://example.com/1")
        await store.put("two", "https://example.com/2")
        # Present only in the durable tier
        await durable.create(UrlRecord.new("three", "https://example.com/3"))

        assert await store.delete_all() == 3
        assert await store.list() == {}
        assert await store.delete_all() == 0

    async def test_list_prefers_durable_values(self, store, durable):
        await store.put("both", "https://example.com/both")
        store.fast.set(UrlRecord.new("clash", "https://fast.example.com"))
        await durable.create(UrlRecord.new("clash", "https://durable.example.com"))

        mapping = await store.list()

        assert mapping == {
            "both": "https://example.com/both",
            "clash": "https://durable.example.com",
        }

    async def test_warm(self, durable, logger):
        await durable.create(UrlRecord.new("one", "https://example.com/1"))
        await durable.create(UrlRecord.new("two", "https://example.com/2"))
        store = HybridStore(durable=durable, logger=logger)

        assert await store.warm() == 2
        assert len(store.fast) == 2
        await store.close()

    async def test_memory_only(self, logger):
        store = HybridStore(durable=None, logger=logger)

        await store.put("abc", "https://example.com")
        store.record_access("abc")

        assert store.backend_name == "none"
        assert (await store.get("abc")).clicks == 1
        assert (await store.health_check())["durable_tier"] is None
        assert await store.delete("abc") == 1
        await store.close()


@pytest.mark.asyncio
class TestDegradedDurableTier:
    """Durable failures keep records servable and queue them for reconciliation."""

    @pytest.fixture
    async def flaky_store(self, flaky_backend, logger):
        backend = flaky_backend
        store = HybridStore(durable=backend, logger=logger)
        yield store, backend
        await store.close()

    async def test_put_survives_durable_failure(self, flaky_store):
        store, backend = flaky_store

        record = await store.put("abc", "https://example.com")

        assert record.persisted is False
        assert (await store.get("abc")).original_url == "https://example.com"
        assert store.pending_reconciliation == ["abc"]
        assert (await store.health_check())["durable_tier"] is False

    async def test_reconcile_writes_pending_records(self, flaky_store):
        store, backend = flaky_store
        await store.put("abc", "https://example.com")

        # Still down: nothing written, still pending
        assert await store.reconcile() == 0
        assert store.pending_reconciliation == ["abc"]

        backend.failing = False
        assert await store.reconcile() == 1

        assert store.pending_reconciliation == []
        assert store.fast.get("abc").persisted
        assert (await backend.get("abc")).original_url == "https://example.com"

    async def test_reconcile_drops_record_claimed_during_outage(self, flaky_store):
        store, backend = flaky_store
        await store.put("abc", "https://example.com/mine")

        backend.failing = False
        await backend.create(UrlRecord.new("abc", "https://example.com/theirs"))

        assert await store.reconcile() == 0
        assert store.fast.get("abc") is None
        assert (await store.get("abc")).original_url == "https://example.com/theirs"

    async def test_durable_timeout_degrades_put(self, logger):
        store = HybridStore(durable=SlowBackend(), logger=logger)

        record = await store.put("abc", "https://example.com")

        assert record.persisted is False
        assert store.pending_reconciliation == ["abc"]
        await store.close()

    async def test_durable_read_failure_is_a_miss(self, flaky_store):
        store, _ = flaky_store
        assert await store.get("unknown") is None

    async def test_delete_surfaces_durable_failure(self, flaky_store):
        store, _ = flaky_store
        await store.put("abc", "https://example.com")

        with pytest.raises(StorageError):
            await store.delete("abc")

    async def test_list_falls_back_to_fast_tier(self, flaky_store):
        store, _ = flaky_store
        await store.put("abc", "https://example.com")

        assert await store.list() == {"abc": "https://example.com"}


@pytest.mark.asyncio
class TestMemoryBackend:
    async def test_list_codes_by_prefix(self):
        backend = MemoryBackend()
        for code in ("docs", "docs-v2", "blog"):
            await backend.create(UrlRecord.new(code, "https://example.com"))

        assert sorted(await backend.list_codes("docs")) == ["docs", "docs-v2"]
        assert await backend.delete_all() == 3

    async def test_timeouts_become_storage_errors(self):
        with pytest.raises(StorageError):
            await SlowBackend().create(UrlRecord.new("abc", "https://example.com"))
