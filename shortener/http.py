"""Shared aiohttp client session for outbound requests."""

from typing import Optional

import aiohttp
from aiohttp import TCPConnector

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (compatible; ShortenerBot/1.0; link safety and preview checks)"
)


class HttpSessionManager:
    """Manages one pooled aiohttp session for safety probes and previews.

    Callers pass a per-request ClientTimeout; the session itself only bounds
    connection counts.
    """

    def __init__(
        self,
        max_connections: int = 100,
        max_per_host: int = 10,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.max_connections = max_connections
        self.max_per_host = max_per_host
        self.user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create the client session."""
        if self._session is None or self._session.closed:
            connector = TCPConnector(
                limit=self.max_connections,
                limit_per_host=self.max_per_host,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": self.user_agent},
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
