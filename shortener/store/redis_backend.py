"""Redis durable backend for URL shortener.

Layout, per short code (both keys share one TTL and are only written
together, by server-side scripts):

    <prefix>url:<code>   -> original URL
    <prefix>meta:<code>  -> JSON metadata (created_at, last_accessed_at, expires_at, clicks)
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..exceptions import StorageError
from .base import DurableBackendBase, wrap_backend_errors
from .models import UrlRecord, utcnow

_BATCH_SIZE = 200

# KEYS: url key, meta key. ARGV: url, meta JSON, ttl seconds (0 = no expiry).
# Both keys are written by one script so neither can exist without the other.
_CREATE_SCRIPT = """
local ttl = tonumber(ARGV[3])
if ttl > 0 then
    if not redis.call('SET', KEYS[1], ARGV[1], 'NX', 'EX', ttl) then return 0 end
    redis.call('SET', KEYS[2], ARGV[2], 'EX', ttl)
else
    if not redis.call('SET', KEYS[1], ARGV[1], 'NX') then return 0 end
    redis.call('SET', KEYS[2], ARGV[2])
end
return 1
"""

# KEYS: url key, meta key. ARGV: hits, access timestamp.
# Increments clicks inside Redis so concurrent workers never lose a hit;
# the metadata keeps the URL key's remaining TTL.
_RECORD_ACCESS_SCRIPT = """
local pttl = redis.call('PTTL', KEYS[1])
if pttl == -2 then return 0 end
local meta = {}
local raw = redis.call('GET', KEYS[2])
if raw then
    local ok, decoded = pcall(cjson.decode, raw)
    if ok and type(decoded) == 'table' then meta = decoded end
end
meta['clicks'] = (tonumber(meta['clicks']) or 0) + tonumber(ARGV[1])
meta['last_accessed_at'] = ARGV[2]
local encoded = cjson.encode(meta)
if pttl > 0 then
    redis.call('SET', KEYS[2], encoded, 'PX', pttl)
else
    redis.call('SET', KEYS[2], encoded)
end
return 1
"""


class RedisBackend(DurableBackendBase):
    """Key-value durable tier with native per-key expiration."""

    name = "redis"

    def __init__(
        self,
        redis_url: Optional[str] = None,
        key_prefix: str = "",
        timeout_seconds: float = 5.0,
        logger: Optional[logging.Logger] = None,
        client: Optional[redis.Redis] = None,
    ):
        """Initialize Redis backend.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/0)
            key_prefix: Optional namespace prepended to every key (e.g. "shortener:prod:")
            timeout_seconds: Socket connect/read timeout for every command
            logger: Optional logger instance
            client: Pre-built client (skips from_url)
        """
        if client is None and not redis_url:
            raise ValueError("redis_url is required when no client is given")
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.timeout_seconds = timeout_seconds
        self.logger = logger or logging.getLogger(__name__)
        self.client = client

    def url_key(self, short_code: str) -> str:
        return f"{self.key_prefix}url:{short_code}"

    def meta_key(self, short_code: str) -> str:
        return f"{self.key_prefix}meta:{short_code}"

    def _code_from_url_key(self, key: str) -> str:
        return key[len(self.url_key("")):]

    @wrap_backend_errors(RedisError)
    async def connect(self) -> None:
        """Connect to Redis."""
        if self.client is None:
            self.client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=self.timeout_seconds,
                socket_connect_timeout=self.timeout_seconds,
            )
        await self.client.ping()
        self.logger.info("Connected to Redis")

    def _require_client(self) -> redis.Redis:
        if self.client is None:
            raise StorageError("Redis backend is not connected")
        return self.client

    def _decode_meta(self, short_code: str, raw: Optional[str]) -> Dict[str, Any]:
        if not raw:
            return {}
        try:
            return json.loads(raw)
        except ValueError:
            self.logger.warning(f"Discarding unreadable metadata for {short_code}")
            return {}

    @wrap_backend_errors(RedisError)
    async def create(self, record: UrlRecord) -> bool:
        client = self._require_client()
        created = await client.eval(
            _CREATE_SCRIPT,
            2,
            self.url_key(record.short_code),
            self.meta_key(record.short_code),
            record.original_url,
            json.dumps(record.to_meta()),
            record.ttl_seconds() or 0,
        )
        return bool(created)

    @wrap_backend_errors(RedisError)
    async def get(self, short_code: str) -> Optional[UrlRecord]:
        client = self._require_client()
        original_url, raw_meta = await client.mget(self.url_key(short_code), self.meta_key(short_code))
        if original_url is None:
            return None
        return UrlRecord.from_meta(short_code, original_url, self._decode_meta(short_code, raw_meta))

    @wrap_backend_errors(RedisError)
    async def record_access(
        self,
        short_code: str,
        hits: int = 1,
        accessed_at: Optional[datetime] = None,
    ) -> bool:
        updated = await self._require_client().eval(
            _RECORD_ACCESS_SCRIPT,
            2,
            self.url_key(short_code),
            self.meta_key(short_code),
            hits,
            (accessed_at or utcnow()).isoformat(),
        )
        return bool(updated)

    @wrap_backend_errors(RedisError)
    async def delete(self, short_code: str) -> int:
        client = self._require_client()
        removed = await client.delete(self.url_key(short_code))
        await client.delete(self.meta_key(short_code))
        return 1 if removed else 0

    @wrap_backend_errors(RedisError)
    async def delete_all(self) -> int:
        client = self._require_client()
        codes = await self.list_codes()
        for start in range(0, len(codes), _BATCH_SIZE):
            batch = codes[start:start + _BATCH_SIZE]
            keys = [self.url_key(c) for c in batch] + [self.meta_key(c) for c in batch]
            await client.delete(*keys)
        return len(codes)

    @wrap_backend_errors(RedisError)
    async def list_codes(self, prefix: str = "") -> List[str]:
        client = self._require_client()
        codes = []
        async for key in client.scan_iter(match=f"{self.url_key(prefix)}*", count=500):
            codes.append(self._code_from_url_key(key))
        return codes

    @wrap_backend_errors(RedisError)
    async def load_all(self) -> List[UrlRecord]:
        client = self._require_client()
        codes = await self.list_codes()
        records = []
        for start in range(0, len(codes), _BATCH_SIZE):
            batch = codes[start:start + _BATCH_SIZE]
            urls = await client.mget([self.url_key(c) for c in batch])
            metas = await client.mget([self.meta_key(c) for c in batch])
            for code, url, raw_meta in zip(batch, urls, metas):
                # Expired between SCAN and MGET
                if url is None:
                    continue
                records.append(UrlRecord.from_meta(code, url, self._decode_meta(code, raw_meta)))
        return records

    async def health_check(self) -> bool:
        if self.client is None:
            return False
        try:
            await self.client.ping()
            return True
        except (RedisError, OSError) as e:
            self.logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self.client:
            await self.client.aclose()
            self.client = None
            self.logger.info("Redis connection closed")
