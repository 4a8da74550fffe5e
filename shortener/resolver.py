"""Short code -> target URL resolution."""

import logging
from typing import Optional

from .common.validators import is_reserved_path
from .exceptions import NotFound
from .store import HybridStore, UrlRecord


class Resolver:
    """Resolves short codes for the redirect route."""

    def __init__(self, store: HybridStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    async def lookup(self, short_code: str) -> UrlRecord:
        """Find the live record for `short_code` without counting a click.

        Static asset names are rejected before the store is touched.

        Raises:
            NotFound: If the code is reserved, unknown or expired
        """
        if not short_code or is_reserved_path(short_code):
            self.logger.debug(f"Static file request ignored: {short_code}")
            raise NotFound("File not found")

        record = await self.store.get(short_code)
        if record is None:
            self.logger.info(f"Short code not found: {short_code}")
            raise NotFound(f"Short code '{short_code}' not found")
        return record

    async def resolve(self, short_code: str) -> str:
        """Return the target URL and count the visit in the background."""
        record = await self.lookup(short_code)
        self.store.record_access(short_code)
        self.logger.debug(f"Redirecting {short_code} -> {record.original_url}")
        return record.original_url
