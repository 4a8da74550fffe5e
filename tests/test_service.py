"""Tests for service layer."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from shortener.exceptions import NameTaken, NotFound, SafetyRejected, Unauthorized, ValidationError
from shortener.preview import PagePreview, PreviewError
from shortener.safety import SafetyVerdict
from shortener.service import URLShortenerService


@pytest.mark.asyncio
class TestURLShortenerService:
    """Test URL shortener service."""

    async def test_shorten_and_resolve(self, service, sample_urls):
        """Test creating short URL and resolving it byte-for-byte."""
        url = sample_urls[2] + "?q=caf%C3%A9&x=1#frag"
        result = await service.shorten(url)
        record = result["record"]

        assert len(record.short_code) == 8
        assert record.persisted
        assert await service.resolve(record.short_code) == url

    async def test_shorten_with_custom_name(self, service, sample_urls):
        """Test creating with custom name."""
        result = await service.shorten(sample_urls[0], custom_name="Test123")

        assert result["record"].short_code == "test123"

    async def test_duplicate_custom_name(self, service, sample_urls):
        """Test duplicate custom name rejection."""
        await service.shorten(sample_urls[0], custom_name="duplicate")

        with pytest.raises(NameTaken, match="already in use"):
            await service.shorten(sample_urls[1], custom_name="duplicate")

        assert await service.resolve("duplicate") == sample_urls[0]

    async def test_default_expiration(self, service, sample_urls):
        record = (await service.shorten(sample_urls[0]))["record"]

        assert (record.expires_at - record.created_at).days == 365

    @pytest.mark.parametrize("days", [0, 3651, -5])
    async def test_invalid_expiration(self, service, sample_urls, days):
        with pytest.raises(ValidationError, match="between 1 and 3650"):
            await service.shorten(sample_urls[0], expiration_days=days)

    async def test_invalid_url(self, service):
        """Test invalid URL rejection."""
        with pytest.raises(ValidationError, match="Invalid URL format"):
            await service.shorten("not-a-url")

        with pytest.raises(ValidationError, match="required"):
            await service.shorten("")

    async def test_long_url_rejected_before_checks_or_storage(self, store, logger):
        safety = MagicMock()
        safety.check = AsyncMock(return_value=SafetyVerdict(True))
        service = URLShortenerService(store=store, safety_validator=safety, logger=logger)

        with pytest.raises(ValidationError, match="too long"):
            await service.shorten("https://example.com/" + "a" * 2000)

        safety.check.assert_not_awaited()
        assert len(store.fast) == 0

    async def test_unsafe_url_rejected(self, store, logger):
        safety = MagicMock()
        safety.check = AsyncMock(return_value=SafetyVerdict(False, "URL matches a blocked pattern"))
        service = URLShortenerService(store=store, safety_validator=safety, logger=logger)

        with pytest.raises(SafetyRejected, match="blocked pattern"):
            await service.shorten("https://example.com/scam")

        assert len(store.fast) == 0

    async def test_custom_names_disabled(self, store, logger):
        service = URLShortenerService(store=store, logger=logger, enable_custom_codes=False)

        with pytest.raises(ValidationError, match="not enabled"):
            await service.shorten("https://example.com", custom_name="mine")

    async def test_preview_attached(self, store, logger):
        fetcher = MagicMock()
        fetcher.fetch = AsyncMock(return_value=PagePreview(url="https://example.com", title="Example"))
        service = URLShortenerService(store=store, preview_fetcher=fetcher, logger=logger)

        result = await service.shorten("https://example.com")

        assert result["preview"].title == "Example"

    async def test_preview_error_means_no_preview(self, store, logger):
        fetcher = MagicMock()
        fetcher.fetch = AsyncMock(return_value=PreviewError("https://example.com", "HTTP 500"))
        service = URLShortenerService(store=store, preview_fetcher=fetcher, logger=logger)

        result = await service.shorten("https://example.com")

        assert result["preview"] is None
        assert result["record"].short_code

    async def test_slow_preview_abandoned(self, store, logger):
        async def slow_fetch(url):
            await asyncio.sleep(5)

        fetcher = MagicMock()
        fetcher.fetch = slow_fetch
        service = URLShortenerService(
            store=store,
            preview_fetcher=fetcher,
            preview_budget_seconds=0.05,
            logger=logger,
        )

        result = await service.shorten("https://example.com")

        assert result["preview"] is None

    async def test_resolve_counts_clicks_but_stats_do_not(self, service, sample_urls):
        code = (await service.shorten(sample_urls[0]))["record"].short_code

        await service.resolve(code)
        await service.resolve(code)
        await service.get_stats(code)

        assert (await service.get_stats(code)).clicks == 2

    async def test_resolve_unknown_and_reserved(self, service):
        with pytest.raises(NotFound):
            await service.resolve("nonexistent")

        with pytest.raises(NotFound, match="File not found"):
            await service.resolve("style.css")

    async def test_bulk_isolates_failures(self, service):
        results = await service.bulk_shorten([
            "https://example.com/a",
            "not-a-url",
            {"original_url": "https://example.com/b", "custom_name": "bee"},
            {"original_url": "https://example.com/c", "custom_name": "bee"},
            {"custom_name": "nourl"},
        ])

        assert [r["success"] for r in results] == [True, False, True, False, False]
        assert results[2]["record"].short_code == "bee"
        assert "Invalid URL format" in results[1]["error"]
        assert "already in use" in results[3]["error"]
        assert await service.resolve("bee") == "https://example.com/b"

    async def test_bulk_default_expiration(self, service):
        results = await service.bulk_shorten(
            ["https://example.com/a", {"original_url": "https://example.com/b", "expiration_days": 2}],
            default_expiration_days=10,
        )

        a, b = (r["record"] for r in results)
        assert (a.expires_at - a.created_at).days == 10
        assert (b.expires_at - b.created_at).days == 2

    async def test_bulk_cap(self, service):
        with pytest.raises(ValidationError, match="At most 100"):
            await service.bulk_shorten([f"https://example.com/{i}" for i in range(101)])

    async def test_delete_requires_password(self, service, sample_urls, admin_password):
        code = (await service.shorten(sample_urls[0]))["record"].short_code

        with pytest.raises(Unauthorized):
            await service.delete_short_url(code, "wrong")
        with pytest.raises(Unauthorized):
            await service.delete_short_url(code, None)

        assert await service.delete_short_url(code, admin_password) == 1
        assert await service.delete_short_url(code, admin_password) == 0
        with pytest.raises(NotFound):
            await service.resolve(code)

    async def test_delete_disabled_without_admin_password(self, store, logger):
        service = URLShortenerService(store=store, logger=logger, admin_password=None)

        with pytest.raises(Unauthorized):
            await service.delete_all("")

    async def test_delete_all(self, service, sample_urls, admin_password):
        for url in sample_urls:
            await service.shorten(url)

        assert await service.delete_all(admin_password) == 3
        assert await service.list_urls() == {}

    async def test_list_urls(self, service, sample_urls):
        await service.shorten(sample_urls[0], custom_name="first")

        assert await service.list_urls() == {"first": sample_urls[0]}

    async def test_health_check(self, service):
        """Test health check."""
        health = await service.health_check()

        assert health["overall"] is True
        assert health["backend"] == "memory"
        assert health["pending_reconciliation"] == 0
