"""Link preview metadata (title, description, image) for shortened URLs."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from urllib.parse import urljoin, urlparse

import aiohttp
from aiohttp import ClientTimeout
from bs4 import BeautifulSoup

from .http import HttpSessionManager

MAX_TITLE_LENGTH = 300
MAX_DESCRIPTION_LENGTH = 1000


@dataclass
class PagePreview:
    """Metadata scraped from a page."""

    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    site_name: Optional[str] = None
    favicon: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "image": self.image,
            "site_name": self.site_name,
            "favicon": self.favicon,
        }


@dataclass
class PreviewError:
    """Why no preview is available for a URL."""

    url: str
    reason: str


def _truncate(value: Optional[str], limit: int) -> Optional[str]:
    if not value:
        return None
    value = " ".join(value.split())
    return value if len(value) <= limit else value[: limit - 1].rstrip() + "…"


def parse_preview(html: str, page_url: str) -> PagePreview:
    """Extract preview metadata from an HTML document.

    Fallback order:
        title:       <title>, og:title, twitter:title
        description: meta description, og:description, twitter:description
        image:       og:image, twitter:image, <link rel="image_src">
        site name:   og:site_name, page host
        favicon:     <link rel="icon">, /favicon.ico

    Relative image and favicon URLs are resolved against `page_url`.
    """
    soup = BeautifulSoup(html, "html.parser")

    def meta(*keys: str) -> Optional[str]:
        for key in keys:
            tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
            content = tag.get("content", "").strip() if tag else ""
            if content:
                return content
        return None

    def link_href(rel: str) -> Optional[str]:
        tag = soup.find("link", rel=rel, href=True)
        href = tag["href"].strip() if tag else ""
        return href or None

    title = soup.title.get_text(strip=True) if soup.title else None
    title = title or meta("og:title", "twitter:title")
    description = meta("description", "og:description", "twitter:description")
    image = meta("og:image", "og:image:url", "twitter:image", "twitter:image:src") or link_href("image_src")

    parsed = urlparse(page_url)
    site_name = meta("og:site_name") or parsed.hostname
    favicon = link_href("icon") or link_href("apple-touch-icon") or "/favicon.ico"

    return PagePreview(
        url=page_url,
        title=_truncate(title, MAX_TITLE_LENGTH),
        description=_truncate(description, MAX_DESCRIPTION_LENGTH),
        image=urljoin(page_url, image) if image else None,
        site_name=site_name,
        favicon=urljoin(page_url, favicon),
    )


class PreviewFetcher:
    """Fetches and parses link previews. Never raises; failures come back as PreviewError."""

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        max_redirects: int = 5,
        max_bytes: int = 1024 * 1024,
        session_manager: Optional[HttpSessionManager] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.max_redirects = max_redirects
        self.max_bytes = max_bytes
        self.session_manager = session_manager or HttpSessionManager()
        self.logger = logger or logging.getLogger(__name__)

    async def fetch(self, url: str) -> Union[PagePreview, PreviewError]:
        try:
            session = await self.session_manager.get_session()
            async with session.get(
                url,
                allow_redirects=True,
                max_redirects=self.max_redirects,
                timeout=ClientTimeout(total=self.timeout_seconds),
            ) as response:
                if response.status >= 400:
                    return PreviewError(url, f"HTTP {response.status}")
                content_type = response.headers.get("Content-Type", "")
                if "html" not in content_type.lower():
                    return PreviewError(url, f"Not an HTML page ({content_type or 'unknown type'})")
                body = await response.content.read(self.max_bytes)
                charset = response.charset or "utf-8"
                final_url = str(response.url)
        except asyncio.TimeoutError:
            return PreviewError(url, f"Timed out after {self.timeout_seconds}s")
        except aiohttp.ClientError as e:
            return PreviewError(url, f"Request failed: {e}")

        try:
            html = body.decode(charset, errors="replace")
        except LookupError:
            html = body.decode("utf-8", errors="replace")

        try:
            preview = parse_preview(html, final_url)
        except Exception as e:
            # Malformed markup of any kind just means no preview
            self.logger.debug(f"Preview parse failed for {url}: {e!r}")
            return PreviewError(url, "Could not parse page metadata")

        self.logger.debug(f"Preview for {url}: {preview.title!r}")
        return preview
