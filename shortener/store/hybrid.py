"""Two-tier store: in-process fast tier in front of a durable backend."""

import asyncio
import logging
from typing import Dict, List, Optional, Set

from ..exceptions import NameTaken, StorageError
from ..tasks import BackgroundTaskRunner
from .base import DurableBackendBase
from .memory import FastTier
from .models import UrlRecord, utcnow


class HybridStore:
    """Short code -> UrlRecord store with read-through caching.

    With a durable backend configured the fast tier is a cache. The one
    exception is a record whose durable write failed: it stays servable from
    memory (flagged `persisted=False`) and is queued for reconcile(), which
    retries the write. Without a durable backend the store runs memory-only.
    """

    def __init__(
        self,
        durable: Optional[DurableBackendBase] = None,
        fast_tier: Optional[FastTier] = None,
        task_runner: Optional[BackgroundTaskRunner] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.durable = durable
        self.fast = fast_tier if fast_tier is not None else FastTier()
        self.logger = logger or logging.getLogger(__name__)
        self.tasks = task_runner or BackgroundTaskRunner(logger=self.logger)
        self._unpersisted: Set[str] = set()
        self._pending_hits: Dict[str, int] = {}

    @property
    def backend_name(self) -> str:
        return self.durable.name if self.durable is not None else "none"

    @property
    def pending_reconciliation(self) -> List[str]:
        return sorted(self._unpersisted)

    async def get(self, short_code: str) -> Optional[UrlRecord]:
        """Fast tier first; on miss read through from the durable tier."""
        record = self.fast.get(short_code)
        if record is not None or self.durable is None:
            return record

        try:
            record = await self.durable.get(short_code)
        except StorageError as e:
            self.logger.warning(f"Durable lookup failed for {short_code}, treating as miss: {e}")
            return None

        if record is None:
            return None
        # A concurrent put may have won the slot; prefer what the fast tier holds
        self.fast.insert_if_absent(record)
        self.logger.debug(f"Loaded {short_code} from {self.durable.name} into fast tier")
        return self.fast.get(short_code) or record

    async def put(
        self,
        short_code: str,
        original_url: str,
        expiration_days: Optional[int] = None,
    ) -> UrlRecord:
        """Reserve `short_code` for `original_url` in both tiers.

        The fast-tier insert-if-absent is the reservation, so two concurrent
        puts of the same code cannot both succeed. If the durable write fails
        the record is still returned (with `persisted=False`) and the failure
        is logged; availability wins over durability until reconcile() runs.

        Raises:
            NameTaken: If the code is live in either tier
        """
        record = UrlRecord.new(short_code, original_url, expiration_days)
        if not self.fast.insert_if_absent(record):
            raise NameTaken(f"Short code '{short_code}' is already in use")

        if self.durable is None:
            return record

        # Shielded so a client disconnect cannot leave a half-written record
        outcome = await asyncio.shield(asyncio.ensure_future(self._persist(record)))
        if outcome is False:
            raise NameTaken(f"Short code '{short_code}' is already in use")
        return self.fast.get(short_code) or record

    async def _persist(self, record: UrlRecord) -> Optional[bool]:
        """Write a freshly reserved record to the durable tier.

        Returns True when written, False when the durable tier already holds
        the code (the fast-tier reservation is released), None on failure.
        """
        try:
            created = await self.durable.create(record)
        except StorageError as e:
            self.logger.error(
                f"Durable write failed for {record.short_code}; serving from memory "
                f"until reconciled: {e}"
            )
            if self.fast.set_persisted(record.short_code, False):
                self._unpersisted.add(record.short_code)
            return None

        if not created:
            self.fast.remove(record.short_code, expected=record)
            return False
        return True

    def record_access(self, short_code: str) -> Optional[UrlRecord]:
        """Count a successful resolve.

        The fast tier is updated immediately; the durable update runs in the
        background, one task per code, batching hits that arrive meanwhile.
        """
        record = self.fast.touch(short_code)
        if record is None:
            return None
        if self.durable is not None and short_code not in self._unpersisted:
            self._pending_hits[short_code] = self._pending_hits.get(short_code, 0) + 1
            self.tasks.submit(f"access:{short_code}", lambda: self._flush_hits(short_code))
        return record

    async def _flush_hits(self, short_code: str) -> None:
        while self._pending_hits.get(short_code):
            hits = self._pending_hits.pop(short_code)
            try:
                await self.durable.record_access(short_code, hits=hits, accessed_at=utcnow())
            except StorageError as e:
                # Keep the hits for the next reconcile pass
                self._pending_hits[short_code] = self._pending_hits.get(short_code, 0) + hits
                self.logger.warning(f"Could not record {hits} hit(s) for {short_code}: {e}")
                return

    async def delete(self, short_code: str) -> int:
        """Remove a code from both tiers.

        Returns:
            1 if the code existed in either tier, else 0

        Raises:
            StorageError: If the durable delete fails (the record would
                otherwise come back through read-through)
        """
        # Expired records count as absent in both tiers
        removed = self.fast.remove(short_code)
        self._unpersisted.discard(short_code)
        self._pending_hits.pop(short_code, None)
        if self.durable is not None:
            removed = bool(await self.durable.delete(short_code)) or removed
        if removed:
            self.logger.info(f"Deleted short code {short_code}")
        return int(removed)

    async def delete_all(self) -> int:
        """Remove every code from both tiers and return how many were live."""
        codes = {record.short_code for record in self.fast if not record.is_expired()}
        if self.durable is not None:
            codes.update(await self.durable.list_codes())
            await self.durable.delete_all()
        self.fast.clear()
        self._unpersisted.clear()
        self._pending_hits.clear()
        self.logger.info(f"Deleted all short codes ({len(codes)})")
        return len(codes)

    async def list(self) -> Dict[str, str]:
        """Merged code -> URL mapping; durable values win on conflict."""
        merged = {r.short_code: r.original_url for r in self.fast if not r.is_expired()}
        if self.durable is None:
            return merged
        try:
            for record in await self.durable.load_all():
                merged[record.short_code] = record.original_url
        except StorageError as e:
            self.logger.warning(f"Listing from fast tier only, durable tier failed: {e}")
        return merged

    async def warm(self) -> int:
        """Bulk-load durable records into the fast tier."""
        if self.durable is None:
            return 0
        try:
            records = await self.durable.load_all()
        except StorageError as e:
            self.logger.error(f"Could not warm fast tier from {self.durable.name}: {e}")
            return 0
        loaded = sum(1 for record in records if self.fast.insert_if_absent(record))
        self.logger.info(f"Loaded {loaded} records from {self.durable.name} into fast tier")
        return loaded

    async def reconcile(self) -> int:
        """Retry failed durable writes and flush buffered hits.

        Also drops expired fast-tier entries and asks the backend to purge
        its own. Stops early when the durable tier is still failing.

        Returns:
            Number of records written to the durable tier
        """
        purged = self.fast.purge_expired()
        if purged:
            self.logger.debug(f"Purged {purged} expired fast-tier records")
        if self.durable is None:
            return 0

        written = 0
        for short_code in sorted(self._unpersisted):
            record = self.fast.get(short_code)
            if record is None:
                self._unpersisted.discard(short_code)
                continue
            try:
                created = await self.durable.create(record)
                stored = None if created else await self.durable.get(short_code)
            except StorageError as e:
                self.logger.warning(f"Reconciliation paused, durable tier still failing: {e}")
                return written
            self._unpersisted.discard(short_code)
            if created:
                self.fast.set_persisted(short_code, True)
                written += 1
            elif stored is not None and stored.original_url == record.original_url:
                # An earlier write landed even though it reported failure
                self.fast.set_persisted(short_code, True)
                missed = record.clicks - stored.clicks
                if missed > 0:
                    self._pending_hits[short_code] = self._pending_hits.get(short_code, 0) + missed
                written += 1
            else:
                # Claimed through another process while we were degraded
                self.logger.error(
                    f"Short code {short_code} was taken in {self.durable.name} during an outage; "
                    f"dropping the memory-only record for {record.original_url}"
                )
                self.fast.remove(short_code, expected=record)

        for short_code in list(self._pending_hits):
            self.tasks.submit(f"access:{short_code}", lambda c=short_code: self._flush_hits(c))

        try:
            await self.durable.purge_expired()
        except StorageError as e:
            self.logger.warning(f"Expired-record purge failed: {e}")

        if written:
            self.logger.info(f"Reconciled {written} records into {self.durable.name}")
        return written

    async def run_reconciliation(self, interval_seconds: float) -> None:
        """Call reconcile() every `interval_seconds` until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.reconcile()
            except Exception:
                self.logger.exception("Reconciliation pass failed")

    async def health_check(self) -> Dict[str, object]:
        durable_healthy = None
        if self.durable is not None:
            durable_healthy = await self.durable.health_check()
        return {
            "fast_tier": True,
            "fast_tier_size": len(self.fast),
            "durable_tier": durable_healthy,
            "backend": self.backend_name,
            "pending_reconciliation": len(self._unpersisted),
        }

    async def close(self) -> None:
        await self.tasks.close()
        if self.durable is not None:
            await self.durable.close()
