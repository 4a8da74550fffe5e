"""In-process storage: the fast tier and a non-persistent durable backend."""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from .base import DurableBackendBase
from .models import UrlRecord, utcnow


class FastTier:
    """Process-wide map of short code -> UrlRecord.

    All methods are synchronous. Running on the event loop with no await
    between check and set makes insert_if_absent atomic with respect to
    concurrent requests, and reads never wait on writers.
    """

    def __init__(self):
        self._records: Dict[str, UrlRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, short_code: str) -> bool:
        return self.get(short_code) is not None

    def __iter__(self) -> Iterator[UrlRecord]:
        return iter(list(self._records.values()))

    def get(self, short_code: str, now: Optional[datetime] = None) -> Optional[UrlRecord]:
        record = self._records.get(short_code)
        if record is None:
            return None
        if record.is_expired(now):
            self._records.pop(short_code, None)
            return None
        return record

    def insert_if_absent(self, record: UrlRecord) -> bool:
        """Insert `record` unless a live record already holds its code."""
        if self.get(record.short_code) is not None:
            return False
        self._records[record.short_code] = record
        return True

    def set(self, record: UrlRecord) -> None:
        self._records[record.short_code] = record

    def touch(self, short_code: str, accessed_at: Optional[datetime] = None) -> Optional[UrlRecord]:
        record = self.get(short_code)
        if record is None:
            return None
        updated = record.touched(accessed_at=accessed_at)
        self._records[short_code] = updated
        return updated

    def set_persisted(self, short_code: str, persisted: bool) -> bool:
        record = self._records.get(short_code)
        if record is None:
            return False
        if record.persisted != persisted:
            self._records[short_code] = replace(record, persisted=persisted)
        return True

    def remove(self, short_code: str, expected: Optional[UrlRecord] = None) -> bool:
        """Remove a live record; with `expected`, only if it is still that reservation."""
        current = self.get(short_code)
        if current is None:
            return False
        if expected is not None and (
            current.created_at != expected.created_at or current.original_url != expected.original_url
        ):
            return False
        del self._records[short_code]
        return True

    def clear(self) -> int:
        count = len(self._records)
        self._records.clear()
        return count

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        expired = [code for code, record in self._records.items() if record.is_expired(now)]
        for code in expired:
            del self._records[code]
        return len(expired)


class MemoryBackend(DurableBackendBase):
    """Durable-tier adapter that keeps records in process memory.

    Nothing survives a restart. Useful for development and tests where the
    hybrid store logic should run without an external service.
    """

    name = "memory"

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._table = FastTier()

    async def create(self, record: UrlRecord) -> bool:
        return self._table.insert_if_absent(replace(record, persisted=True))

    async def get(self, short_code: str) -> Optional[UrlRecord]:
        return self._table.get(short_code)

    async def record_access(
        self,
        short_code: str,
        hits: int = 1,
        accessed_at: Optional[datetime] = None,
    ) -> bool:
        record = self._table.get(short_code)
        if record is None:
            return False
        self._table.set(record.touched(hits=hits, accessed_at=accessed_at))
        return True

    async def delete(self, short_code: str) -> int:
        return int(self._table.remove(short_code))

    async def delete_all(self) -> int:
        self._table.purge_expired()
        return self._table.clear()

    async def list_codes(self, prefix: str = "") -> List[str]:
        return [r.short_code for r in self._table if r.short_code.startswith(prefix) and not r.is_expired()]

    async def load_all(self) -> List[UrlRecord]:
        return [r for r in self._table if not r.is_expired()]

    async def purge_expired(self) -> int:
        return self._table.purge_expired()

    async def health_check(self) -> bool:
        return True
