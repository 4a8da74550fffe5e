"""Validation utilities for URL shortener."""

import re
from urllib.parse import urlparse
from typing import Optional, Tuple

MAX_URL_LENGTH = 2000
MAX_SHORT_CODE_LENGTH = 50

# Custom names ending with these would shadow static assets
FORBIDDEN_EXTENSIONS = (".css", ".js", ".png", ".ico", ".jpg", ".jpeg", ".gif", ".svg")

# Extensions the redirect route never treats as short codes
STATIC_EXTENSIONS = FORBIDDEN_EXTENSIONS + (".woff", ".woff2", ".ttf")

STATIC_FILES = frozenset({
    "favicon.ico",
    "favicon.png",
    "script.js",
    "style.css",
    "robots.txt",
})

RESERVED_NAMES = STATIC_FILES | frozenset({
    "sitemap.xml",
    "index.html",
    "api",
    "health",
})

_DISALLOWED_CHARS = re.compile(r"[^a-z0-9.\-_]")
_SHORT_CODE_PATTERN = re.compile(r"^[a-z0-9.\-_]+$")


def is_valid_url(url: str, max_length: int = MAX_URL_LENGTH) -> Tuple[bool, str]:
    """Validate a URL.

    Args:
        url: The URL to validate
        max_length: Maximum accepted length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not url or not isinstance(url, str):
        return False, "URL is required"

    if len(url) > max_length:
        return False, f"URL is too long (max {max_length} characters)"

    try:
        result = urlparse(url)

        # Check if scheme is http or https
        if result.scheme not in ["http", "https"]:
            return False, "Invalid URL format: URL must use http or https protocol"

        # Check if netloc (domain) exists
        if not result.netloc or not result.hostname:
            return False, "Invalid URL format: URL must have a valid domain"

        # Accessing .port raises ValueError for out-of-range ports
        result.port

        return True, ""

    except ValueError as e:
        return False, f"Invalid URL format: {str(e)}"


def normalize_custom_name(custom_name: Optional[str]) -> str:
    """Lowercase a custom name and strip disallowed characters.

    Returns an empty string when nothing usable is left.
    """
    if not custom_name:
        return ""
    return _DISALLOWED_CHARS.sub("", custom_name.strip().lower())


def is_valid_short_code(short_code: str, max_length: int = MAX_SHORT_CODE_LENGTH) -> Tuple[bool, str]:
    """Validate a (normalized) short code.

    Args:
        short_code: The short code to validate
        max_length: Maximum length for short code

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not short_code or not isinstance(short_code, str):
        return False, "Short code is required"

    if len(short_code) > max_length:
        return False, f"Short code must be at most {max_length} characters"

    if not _SHORT_CODE_PATTERN.match(short_code):
        return False, "Short code can only contain lowercase letters, numbers, dots, hyphens, and underscores"

    if short_code.endswith(FORBIDDEN_EXTENSIONS):
        return False, f"'{short_code}' conflicts with static file names, please choose another name"

    if short_code in RESERVED_NAMES:
        return False, f"'{short_code}' is a reserved word and cannot be used"

    return True, ""


def is_reserved_path(path_segment: str) -> bool:
    """Check whether a request path segment names a static asset."""
    lowered = path_segment.lower()
    return lowered in STATIC_FILES or lowered.endswith(STATIC_EXTENSIONS)


def is_valid_expiration(days: int, max_days: int = 3650) -> Tuple[bool, str]:
    """Validate an expiration window in days."""
    if isinstance(days, bool) or not isinstance(days, int):
        return False, "Expiration days must be an integer"
    if days < 1 or days > max_days:
        return False, f"Expiration days must be between 1 and {max_days}"
    return True, ""
