"""Business logic service for URL shortener."""

import asyncio
import logging
import secrets
from typing import Any, Dict, Iterable, List, Optional, Union

from .common.validators import MAX_URL_LENGTH, is_valid_expiration, is_valid_url
from .exceptions import SafetyRejected, ShortenerError, Unauthorized, ValidationError
from .preview import PagePreview, PreviewFetcher
from .resolver import Resolver
from .safety import SafetyValidator
from .shortcode import CodeAllocator
from .store import HybridStore, UrlRecord


class URLShortenerService:
    """Service layer for URL shortening business logic."""

    def __init__(
        self,
        store: HybridStore,
        allocator: Optional[CodeAllocator] = None,
        safety_validator: Optional[SafetyValidator] = None,
        preview_fetcher: Optional[PreviewFetcher] = None,
        resolver: Optional[Resolver] = None,
        logger: Optional[logging.Logger] = None,
        enable_custom_codes: bool = True,
        default_expiration_days: int = 365,
        max_expiration_days: int = 3650,
        max_url_length: int = MAX_URL_LENGTH,
        bulk_max_urls: int = 100,
        bulk_concurrency: int = 10,
        preview_budget_seconds: float = 3.0,
        admin_password: Optional[str] = None,
    ):
        """Initialize URL shortener service.

        Args:
            store: Two-tier store holding the mappings
            allocator: Short code allocator (built on `store` if omitted)
            safety_validator: Optional URL safety validator; None skips screening
            preview_fetcher: Optional link preview fetcher; None disables previews
            resolver: Optional resolver (built on `store` if omitted)
            logger: Optional logger
            enable_custom_codes: Whether to allow custom names
            default_expiration_days: Expiration used when a request gives none
            max_expiration_days: Upper bound on requested expiration
            max_url_length: Longest accepted target URL
            bulk_max_urls: Most URLs accepted by one bulk request
            bulk_concurrency: Bulk items processed at the same time
            preview_budget_seconds: Longest a shorten request waits for its preview
            admin_password: Shared secret for delete operations; None disables them
        """
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self.allocator = allocator or CodeAllocator(store, logger=self.logger)
        self.safety_validator = safety_validator
        self.preview_fetcher = preview_fetcher
        self.resolver = resolver or Resolver(store, logger=self.logger)
        self.enable_custom_codes = enable_custom_codes
        self.default_expiration_days = default_expiration_days
        self.max_expiration_days = max_expiration_days
        self.max_url_length = max_url_length
        self.bulk_max_urls = bulk_max_urls
        self.bulk_concurrency = bulk_concurrency
        self.preview_budget_seconds = preview_budget_seconds
        self.admin_password = admin_password

    def _validate_request(
        self,
        original_url: Any,
        custom_name: Optional[str],
        expiration_days: Optional[int],
    ) -> int:
        """Cheap local checks, run before any storage or network call.

        Returns:
            The expiration to apply, in days
        """
        if not original_url:
            raise ValidationError("URL is required")
        if not isinstance(original_url, str):
            raise ValidationError("URL must be a string")

        is_valid, error = is_valid_url(original_url, max_length=self.max_url_length)
        if not is_valid:
            raise ValidationError(error)

        if custom_name and not self.enable_custom_codes:
            raise ValidationError("Custom short codes are not enabled")

        if expiration_days is None:
            return self.default_expiration_days
        is_valid, error = is_valid_expiration(expiration_days, max_days=self.max_expiration_days)
        if not is_valid:
            raise ValidationError(error)
        return expiration_days

    async def shorten(
        self,
        original_url: str,
        custom_name: Optional[str] = None,
        expiration_days: Optional[int] = None,
        include_preview: bool = True,
    ) -> Dict[str, Any]:
        """Create a new short URL.

        The record is servable as soon as this returns. If the durable tier
        was unavailable, `persisted` is False and the write is retried by the
        store's reconciliation pass.

        Args:
            original_url: The original long URL
            custom_name: Optional custom short code (normalized before use)
            expiration_days: Days until the mapping expires
            include_preview: Whether to try fetching a link preview

        Returns:
            Dictionary with the stored record and an optional preview

        Raises:
            ValidationError: Bad URL, custom name or expiration
            SafetyRejected: URL failed the safety checks
            NameTaken: Custom name already in use
        """
        expiration_days = self._validate_request(original_url, custom_name, expiration_days)
        # Fail fast on a bad custom name before any network call
        self.allocator.normalize(custom_name)

        if self.safety_validator is not None:
            verdict = await self.safety_validator.check(original_url)
            if not verdict.safe:
                raise SafetyRejected(f"URL rejected: {verdict.reason}")

        record = await self.allocator.allocate(original_url, custom_name, expiration_days)
        self.logger.info(f"Created short URL: {record.short_code} -> {original_url}")

        preview = None
        if include_preview:
            preview = await self._fetch_preview(original_url)

        return {
            "record": record,
            "preview": preview,
        }

    async def _fetch_preview(self, url: str) -> Optional[PagePreview]:
        if self.preview_fetcher is None:
            return None
        try:
            result = await asyncio.wait_for(self.preview_fetcher.fetch(url), self.preview_budget_seconds)
        except asyncio.TimeoutError:
            self.logger.debug(f"Preview for {url} exceeded {self.preview_budget_seconds}s budget")
            return None
        if isinstance(result, PagePreview):
            return result
        self.logger.debug(f"No preview for {url}: {result.reason}")
        return None

    async def bulk_shorten(
        self,
        items: Iterable[Union[str, Dict[str, Any]]],
        default_expiration_days: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Shorten many URLs; one bad entry never fails its siblings.

        Args:
            items: URLs, or dicts with original_url / custom_name / expiration_days
            default_expiration_days: Expiration for items that give none

        Returns:
            One result dict per item, in input order, each with `success` and
            either `record` or `error`

        Raises:
            ValidationError: If more than `bulk_max_urls` items are given
        """
        items = list(items)
        if len(items) > self.bulk_max_urls:
            raise ValidationError(f"At most {self.bulk_max_urls} URLs per request")

        semaphore = asyncio.Semaphore(self.bulk_concurrency)

        async def shorten_one(item: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
            if isinstance(item, dict):
                original_url = item.get("original_url")
                custom_name = item.get("custom_name")
                expiration_days = item.get("expiration_days")
            else:
                original_url, custom_name, expiration_days = item, None, None
            if expiration_days is None:
                expiration_days = default_expiration_days

            async with semaphore:
                try:
                    result = await self.shorten(
                        original_url,
                        custom_name=custom_name,
                        expiration_days=expiration_days,
                        include_preview=False,
                    )
                except ShortenerError as e:
                    return {"original_url": original_url, "success": False, "error": str(e)}
                except Exception:
                    self.logger.exception(f"Unexpected error shortening {original_url!r}")
                    return {"original_url": original_url, "success": False, "error": "Internal error"}
            return {"original_url": original_url, "success": True, "record": result["record"]}

        results = await asyncio.gather(*(shorten_one(item) for item in items))
        succeeded = sum(1 for r in results if r["success"])
        self.logger.info(f"Bulk shorten: {succeeded}/{len(results)} succeeded")
        return list(results)

    async def resolve(self, short_code: str) -> str:
        """Get the original URL for a short code, counting the visit.

        Raises:
            NotFound: If the code is unknown, expired or a reserved asset name
        """
        return await self.resolver.resolve(short_code)

    async def get_stats(self, short_code: str) -> UrlRecord:
        """Get metadata for a short code without counting a visit.

        Raises:
            NotFound: If the code is unknown
        """
        return await self.resolver.lookup(short_code)

    async def list_urls(self) -> Dict[str, str]:
        """All live mappings, short code -> original URL."""
        return await self.store.list()

    def _authorize(self, password: Optional[str]) -> None:
        if not self.admin_password or not isinstance(password, str):
            raise Unauthorized("Invalid password")
        if not secrets.compare_digest(password.encode(), self.admin_password.encode()):
            raise Unauthorized("Invalid password")

    async def delete_short_url(self, short_code: str, password: Optional[str]) -> int:
        """Delete a short URL.

        Returns:
            1 if deleted, 0 if it did not exist

        Raises:
            Unauthorized: If the password does not match
        """
        self._authorize(password)
        return await self.store.delete(short_code)

    async def delete_all(self, password: Optional[str]) -> int:
        """Delete every short URL and return how many were removed."""
        self._authorize(password)
        return await self.store.delete_all()

    async def reconcile(self) -> int:
        """Retry durable writes that failed earlier."""
        return await self.store.reconcile()

    async def health_check(self) -> Dict[str, Any]:
        """Perform health check."""
        health = await self.store.health_check()
        durable = health["durable_tier"]
        health["overall"] = durable is not False
        return health

    async def close(self) -> None:
        """Close service connections."""
        await self.store.close()
        session_managers = {
            id(component.session_manager): component.session_manager
            for component in (self.safety_validator, self.preview_fetcher)
            if component is not None
        }
        for session_manager in session_managers.values():
            await session_manager.close()
