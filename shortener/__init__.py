"""Core business logic for URL shortener."""

from .shortcode import ShortCodeGenerator, CodeAllocator
from .safety import SafetyValidator, SafetyVerdict
from .preview import PreviewFetcher, PagePreview, PreviewError
from .resolver import Resolver
from .service import URLShortenerService

__all__ = [
    "ShortCodeGenerator",
    "CodeAllocator",
    "SafetyValidator",
    "SafetyVerdict",
    "PreviewFetcher",
    "PagePreview",
    "PreviewError",
    "Resolver",
    "URLShortenerService",
]
