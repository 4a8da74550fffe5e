"""Safety checks run on a target URL before it is shortened.

Checks run cheapest first and stop at the first failure:

    1. pattern blacklist (regular expressions over the whole URL)
    2. domain blacklist (substrings of the hostname)
    3. structural validation (absolute http(s) URL with a host)
    4. reachability probe (HEAD request, GET when HEAD is refused, short
       timeout, few redirects)

Network trouble during the probe never raises. It becomes an unsafe verdict
marked `inconclusive`, which callers may accept with `fail_open=True`.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlparse

import aiohttp
from aiohttp import ClientTimeout

from .common.validators import MAX_URL_LENGTH, is_valid_url
from .http import HttpSessionManager

DEFAULT_BLACKLIST_PATTERNS = (
    # Other shorteners, to stop link nesting
    r"bit\.ly",
    r"tinyurl\.com",
    r"goo\.gl",
    r"ow\.ly",
    r"is\.gd",
    r"buff\.ly",
    r"rebrand\.ly",
    r"//t\.co/",
    # Keywords
    r"phishing",
    r"malware",
    r"scam",
)

DEFAULT_BLACKLIST_DOMAINS = (
    "grabify.link",
    "iplogger.org",
    "iplogger.com",
    "2no.co",
    "blasze.com",
)

DEFAULT_BLOCKED_CONTENT_TYPES = (
    "application/x-msdownload",
    "application/x-msdos-program",
    "application/x-dosexec",
    "application/x-executable",
    "application/x-sh",
    "application/vnd.microsoft.portable-executable",
    "application/vnd.android.package-archive",
    "application/java-archive",
    "application/octet-stream",
)

# Servers that answer HEAD with these are asked again with GET
HEAD_REFUSED_STATUSES = (405, 501)


@dataclass(frozen=True)
class SafetyVerdict:
    """Outcome of a safety check.

    `inconclusive` is set when the probe could not reach a decision (timeout,
    connection failure) rather than finding a bad signal.
    """

    safe: bool
    reason: str = ""
    inconclusive: bool = False


SAFE = SafetyVerdict(safe=True)


class SafetyValidator:
    """Screens candidate target URLs."""

    def __init__(
        self,
        blacklist_patterns: Optional[Iterable[str]] = None,
        blacklist_domains: Optional[Iterable[str]] = None,
        blocked_content_types: Optional[Iterable[str]] = None,
        probe_enabled: bool = True,
        probe_timeout_seconds: float = 5.0,
        probe_max_redirects: int = 3,
        fail_open: bool = False,
        max_url_length: int = MAX_URL_LENGTH,
        session_manager: Optional[HttpSessionManager] = None,
        logger: Optional[logging.Logger] = None,
    ):
        patterns = DEFAULT_BLACKLIST_PATTERNS if blacklist_patterns is None else blacklist_patterns
        domains = DEFAULT_BLACKLIST_DOMAINS if blacklist_domains is None else blacklist_domains
        content_types = DEFAULT_BLOCKED_CONTENT_TYPES if blocked_content_types is None else blocked_content_types

        self.patterns = [re.compile(p, re.IGNORECASE) for p in patterns]
        self.domains = [d.lower() for d in domains if d]
        self.blocked_content_types = {c.lower() for c in content_types}
        self.probe_enabled = probe_enabled
        self.probe_timeout_seconds = probe_timeout_seconds
        self.probe_max_redirects = probe_max_redirects
        self.fail_open = fail_open
        self.max_url_length = max_url_length
        self.session_manager = session_manager or HttpSessionManager()
        self.logger = logger or logging.getLogger(__name__)

    async def check(self, url: str) -> SafetyVerdict:
        """Run every check in order, returning the first failure."""
        for verdict in (
            self.check_patterns(url),
            self.check_domain(url),
            self.check_structure(url),
        ):
            if not verdict.safe:
                self.logger.info(f"Rejected {url}: {verdict.reason}")
                return verdict

        if not self.probe_enabled:
            return SAFE

        verdict = await self.probe(url)
        if verdict.safe:
            return verdict
        if verdict.inconclusive and self.fail_open:
            self.logger.warning(f"Accepting {url} despite inconclusive probe: {verdict.reason}")
            return SafetyVerdict(safe=True, reason=verdict.reason, inconclusive=True)
        self.logger.info(f"Rejected {url}: {verdict.reason}")
        return verdict

    def check_patterns(self, url: str) -> SafetyVerdict:
        for pattern in self.patterns:
            if pattern.search(url):
                return SafetyVerdict(False, "URL matches a blocked pattern")
        return SAFE

    def check_domain(self, url: str) -> SafetyVerdict:
        try:
            host = (urlparse(url).hostname or "").lower()
        except ValueError:
            # Structural check reports the parse error
            return SAFE
        for domain in self.domains:
            if domain in host:
                return SafetyVerdict(False, "Domain is on the blocklist")
        return SAFE

    def check_structure(self, url: str) -> SafetyVerdict:
        is_valid, error = is_valid_url(url, max_length=self.max_url_length)
        return SAFE if is_valid else SafetyVerdict(False, error)

    async def probe(self, url: str) -> SafetyVerdict:
        """HEAD the URL, following at most `probe_max_redirects` redirects.

        Falls back to GET (headers only) when the server refuses HEAD, so the
        content type is always checked.
        """
        try:
            session = await self.session_manager.get_session()
            content_type = await self._content_type(session.head, url)
            if content_type is None:
                content_type = await self._content_type(session.get, url) or ""
        except aiohttp.TooManyRedirects:
            return SafetyVerdict(False, f"Too many redirects (max {self.probe_max_redirects})")
        except aiohttp.InvalidURL:
            return SafetyVerdict(False, "Invalid URL format")
        except aiohttp.ClientConnectionError as e:
            self.logger.debug(f"Probe connection error for {url}: {e!r}")
            return SafetyVerdict(False, "Host is unreachable", inconclusive=True)
        except asyncio.TimeoutError:
            return SafetyVerdict(False, "Host did not respond in time", inconclusive=True)
        except aiohttp.ClientError as e:
            self.logger.debug(f"Probe failed for {url}: {e!r}")
            return SafetyVerdict(False, "Host could not be checked", inconclusive=True)

        media_type = content_type.split(";")[0].strip().lower()
        if media_type in self.blocked_content_types:
            return SafetyVerdict(False, f"Executable or binary content ({media_type})")
        return SAFE

    async def _content_type(self, request, url: str) -> Optional[str]:
        """Content type served for `url`, or None if the method was refused."""
        async with request(
            url,
            allow_redirects=True,
            max_redirects=self.probe_max_redirects,
            timeout=ClientTimeout(total=self.probe_timeout_seconds),
        ) as response:
            if response.status in HEAD_REFUSED_STATUSES:
                return None
            return response.headers.get("Content-Type", "")
