"""Tests for URL safety checks."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from shortener.safety import SafetyValidator


def _response(status, content_type):
    response = MagicMock()
    response.status = status
    response.headers = {"Content-Type": content_type}

    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


def _session_manager(content_type="text/html; charset=utf-8", error=None, head_status=200):
    """Session manager whose session answers HEAD with `content_type` or raises `error`.

    A HEAD `head_status` other than 200 carries no content type; GET always
    answers 200 with `content_type`.
    """
    session = MagicMock()
    if error is not None:
        session.head = MagicMock(side_effect=error)
    else:
        head_type = content_type if head_status == 200 else "text/plain"
        session.head = MagicMock(return_value=_response(head_status, head_type))
    session.get = MagicMock(return_value=_response(200, content_type))

    manager = MagicMock()
    manager.get_session = AsyncMock(return_value=session)
    return manager, session


@pytest.mark.asyncio
class TestLocalChecks:
    """Checks that never touch the network."""

    @pytest.fixture
    def validator(self):
        return SafetyValidator(probe_enabled=False, session_manager=MagicMock())

    @pytest.mark.parametrize("url", [
        "https://bit.ly/abc",
        "https://tinyurl.com/xyz",
        "https://example.com/free-phishing-kit",
        "https://MALWARE.example.com/",
    ])
    async def test_pattern_blacklist(self, validator, url):
        verdict = await validator.check(url)

        assert not verdict.safe
        assert "pattern" in verdict.reason

    async def test_domain_blacklist(self, validator):
        verdict = await validator.check("https://www.grabify.link/track")

        assert not verdict.safe
        assert "blocklist" in verdict.reason.lower()

    @pytest.mark.parametrize("url", ["not-a-url", "ftp://example.com/file", "https:///nohost"])
    async def test_structure(self, validator, url):
        verdict = await validator.check(url)

        assert not verdict.safe
        assert not verdict.inconclusive

    async def test_clean_url(self, validator):
        verdict = await validator.check("https://example.com/page")

        assert verdict.safe

    async def test_custom_lists(self):
        validator = SafetyValidator(
            blacklist_patterns=[r"casino"],
            blacklist_domains=["bad.example"],
            probe_enabled=False,
            session_manager=MagicMock(),
        )

        assert not (await validator.check("https://example.com/casino")).safe
        assert not (await validator.check("https://very.bad.example/")).safe
        # Defaults are replaced, not extended
        assert (await validator.check("https://bit.ly/abc")).safe


@pytest.mark.asyncio
class TestProbe:
    """Reachability probe with a mocked aiohttp session."""

    async def test_reachable_html(self):
        manager, session = _session_manager()
        validator = SafetyValidator(session_manager=manager)

        verdict = await validator.check("https://example.com/page")

        assert verdict.safe
        kwargs = session.head.call_args.kwargs
        assert kwargs["max_redirects"] == 3
        assert kwargs["timeout"].total == 5.0

    async def test_executable_content_rejected(self):
        manager, _ = _session_manager(content_type="application/x-msdownload")
        validator = SafetyValidator(session_manager=manager)

        verdict = await validator.check("https://example.com/setup.exe")

        assert not verdict.safe
        assert not verdict.inconclusive
        assert "application/x-msdownload" in verdict.reason

    async def test_unreachable_host_is_inconclusive(self):
        manager, _ = _session_manager(error=aiohttp.ClientConnectionError("connection refused"))
        validator = SafetyValidator(session_manager=manager)

        verdict = await validator.check("https://down.example.com/")

        assert not verdict.safe
        assert verdict.inconclusive

    async def test_timeout_is_inconclusive(self):
        manager, _ = _session_manager(error=asyncio.TimeoutError())
        validator = SafetyValidator(session_manager=manager)

        verdict = await validator.check("https://slow.example.com/")

        assert not verdict.safe
        assert verdict.inconclusive

    async def test_fail_open_accepts_inconclusive(self):
        manager, _ = _session_manager(error=asyncio.TimeoutError())
        validator = SafetyValidator(session_manager=manager, fail_open=True)

        verdict = await validator.check("https://slow.example.com/")

        assert verdict.safe
        assert verdict.inconclusive

    async def test_fail_open_still_rejects_bad_content(self):
        manager, _ = _session_manager(content_type="application/java-archive")
        validator = SafetyValidator(session_manager=manager, fail_open=True)

        assert not (await validator.check("https://example.com/app.jar")).safe

    async def test_too_many_redirects(self):
        error = aiohttp.TooManyRedirects(request_info=MagicMock(), history=())
        manager, _ = _session_manager(error=error)
        validator = SafetyValidator(session_manager=manager, fail_open=True)

        verdict = await validator.check("https://loop.example.com/")

        assert not verdict.safe
        assert "redirects" in verdict.reason.lower()

    async def test_local_checks_run_before_probe(self):
        manager, session = _session_manager()
        validator = SafetyValidator(session_manager=manager)

        await validator.check("https://bit.ly/abc")
        await validator.check("not-a-url")

        session.head.assert_not_called()

    async def test_head_refused_falls_back_to_get(self):
        manager, session = _session_manager(content_type="application/x-msdownload", head_status=405)
        validator = SafetyValidator(session_manager=manager)

        verdict = await validator.check("https://example.com/download")

        assert not verdict.safe
        assert "application/x-msdownload" in verdict.reason
        session.get.assert_called_once()
        assert session.get.call_args.kwargs["max_redirects"] == 3

    async def test_get_not_used_when_head_answers(self):
        manager, session = _session_manager()
        validator = SafetyValidator(session_manager=manager)

        assert (await validator.check("https://example.com/page")).safe
        session.get.assert_not_called()
