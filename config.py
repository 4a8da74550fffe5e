"""Configuration management for URL shortener."""

from typing import List, Literal, Optional
from pydantic_settings import BaseSettings
from pydantic import Field

from shortener.safety import (
    DEFAULT_BLACKLIST_DOMAINS,
    DEFAULT_BLACKLIST_PATTERNS,
    DEFAULT_BLOCKED_CONTENT_TYPES,
)


class Config(BaseSettings):
    """Application configuration."""

    # Storage settings
    storage_backend: Literal["none", "memory", "redis", "postgres"] = Field(
        default="memory",
        description="Durable tier: 'redis', 'postgres', 'memory' (process-local) or 'none' (fast tier only)"
    )

    redis_url: Optional[str] = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (storage_backend=redis)"
    )

    postgres_url: Optional[str] = Field(
        default="postgresql://postgres@localhost:5432/shortener",
        description="PostgreSQL connection URL (storage_backend=postgres)"
    )

    postgres_create_tables: bool = Field(
        default=False,
        description="Create the url_records table on startup"
    )

    storage_key_prefix: str = Field(
        default="",
        description="Namespace prepended to Redis keys (e.g. 'shortener:prod:')"
    )

    storage_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Connect and command timeout for the durable tier"
    )

    warm_cache_on_startup: bool = Field(
        default=True,
        description="Load every durable record into the fast tier at startup"
    )

    reconcile_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Seconds between retries of failed durable writes"
    )

    # Server settings
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind to"
    )

    port: int = Field(
        default=3000,
        description="Port to listen on"
    )

    workers: int = Field(
        default=1,
        ge=1,
        description="Number of uvicorn worker processes. Each worker has its own fast tier."
    )

    # URL shortener settings
    base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL for short links when the request carries no host"
    )

    path_prefix: str = Field(
        default="",
        description="Path prefix for short URLs (e.g., '/s' for /s/abc123)"
    )

    short_code_length: int = Field(
        default=8,
        ge=4,
        description="Length of random short codes (hex characters)"
    )

    escalated_code_length: int = Field(
        default=12,
        ge=4,
        description="Length used after repeated collisions at short_code_length"
    )

    max_collision_retries: int = Field(
        default=5,
        ge=1,
        description="Attempts per code length when generating short codes"
    )

    enable_custom_codes: bool = Field(
        default=True,
        description="Allow users to provide custom short codes"
    )

    default_expiration_days: int = Field(
        default=365,
        ge=1,
        le=3650,
        description="Expiration applied when a request does not give one"
    )

    max_expiration_days: int = Field(
        default=3650,
        ge=1,
        description="Longest expiration a request may ask for"
    )

    max_url_length: int = Field(
        default=2000,
        description="Longest accepted target URL"
    )

    bulk_max_urls: int = Field(
        default=100,
        ge=1,
        description="Most URLs accepted by one bulk-shorten request"
    )

    admin_password: Optional[str] = Field(
        default=None,
        description="Shared secret for delete endpoints (deletes are refused when unset)"
    )

    # Safety settings
    safety_checks_enabled: bool = Field(
        default=True,
        description="Screen target URLs before shortening"
    )

    safety_probe_enabled: bool = Field(
        default=True,
        description="Probe target URLs over the network after the local checks"
    )

    safety_probe_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for the reachability probe"
    )

    safety_probe_max_redirects: int = Field(
        default=3,
        ge=0,
        description="Redirects the probe follows"
    )

    safety_probe_fail_open: bool = Field(
        default=False,
        description="Accept URLs whose probe was inconclusive (timeouts, connection errors)"
    )

    blacklist_patterns: List[str] = Field(
        default_factory=lambda: list(DEFAULT_BLACKLIST_PATTERNS),
        description="Regular expressions that reject a URL"
    )

    blacklist_domains: List[str] = Field(
        default_factory=lambda: list(DEFAULT_BLACKLIST_DOMAINS),
        description="Hostname substrings that reject a URL"
    )

    blocked_content_types: List[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_CONTENT_TYPES),
        description="Content types the probe treats as unsafe"
    )

    # Preview settings
    preview_enabled: bool = Field(
        default=True,
        description="Fetch link previews for new short URLs"
    )

    preview_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for the preview GET request"
    )

    preview_budget_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Longest a shorten response waits for its preview"
    )

    preview_max_redirects: int = Field(
        default=5,
        ge=0,
        description="Redirects the preview fetch follows"
    )

    preview_max_bytes: int = Field(
        default=1024 * 1024,
        gt=0,
        description="Largest page body read for previews"
    )

    background_max_concurrency: int = Field(
        default=100,
        ge=1,
        description="Background tasks (click updates, retries) running at once"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_file: Optional[str] = Field(
        default=None,
        description="Log file path (logs to stdout if not specified)"
    )

    log_json: bool = Field(
        default=False,
        description="Use JSON format for logs"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",  # Ignore extra environment variables
    }


def load_config() -> Config:
    """Load configuration from environment."""
    return Config()
