"""Assemble the service graph from configuration."""

import logging

from .exceptions import StorageError
from .http import HttpSessionManager
from .preview import PreviewFetcher
from .resolver import Resolver
from .safety import SafetyValidator
from .service import URLShortenerService
from .shortcode import CodeAllocator, ShortCodeGenerator
from .store import HybridStore, get_durable_backend
from .tasks import BackgroundTaskRunner


def build_service(config, logger: logging.Logger) -> URLShortenerService:
    """Construct (but do not connect) every component described by `config`."""
    durable = get_durable_backend(config, logger=logger)
    store = HybridStore(
        durable=durable,
        task_runner=BackgroundTaskRunner(max_concurrency=config.background_max_concurrency, logger=logger),
        logger=logger,
    )

    allocator = CodeAllocator(
        store,
        generator=ShortCodeGenerator(default_length=config.short_code_length),
        max_collision_retries=config.max_collision_retries,
        escalated_length=config.escalated_code_length,
        logger=logger,
    )

    session_manager = HttpSessionManager()

    safety_validator = None
    if config.safety_checks_enabled:
        safety_validator = SafetyValidator(
            blacklist_patterns=config.blacklist_patterns,
            blacklist_domains=config.blacklist_domains,
            blocked_content_types=config.blocked_content_types,
            probe_enabled=config.safety_probe_enabled,
            probe_timeout_seconds=config.safety_probe_timeout_seconds,
            probe_max_redirects=config.safety_probe_max_redirects,
            fail_open=config.safety_probe_fail_open,
            max_url_length=config.max_url_length,
            session_manager=session_manager,
            logger=logger,
        )

    preview_fetcher = None
    if config.preview_enabled:
        preview_fetcher = PreviewFetcher(
            timeout_seconds=config.preview_timeout_seconds,
            max_redirects=config.preview_max_redirects,
            max_bytes=config.preview_max_bytes,
            session_manager=session_manager,
            logger=logger,
        )

    return URLShortenerService(
        store=store,
        allocator=allocator,
        safety_validator=safety_validator,
        preview_fetcher=preview_fetcher,
        resolver=Resolver(store, logger=logger),
        logger=logger,
        enable_custom_codes=config.enable_custom_codes,
        default_expiration_days=config.default_expiration_days,
        max_expiration_days=config.max_expiration_days,
        max_url_length=config.max_url_length,
        bulk_max_urls=config.bulk_max_urls,
        preview_budget_seconds=config.preview_budget_seconds,
        admin_password=config.admin_password,
    )


async def start_service(service: URLShortenerService, config, logger: logging.Logger) -> None:
    """Connect the durable tier and warm the fast tier.

    An unreachable durable tier does not fail startup: new records are
    served from memory and written by the reconciliation pass once the
    backend answers again.
    """
    store = service.store
    if store.durable is None:
        logger.info("No durable tier configured, running memory-only")
        return

    try:
        await store.durable.connect()
    except StorageError as e:
        logger.error(f"Durable tier {store.durable.name} unavailable, degrading to memory until it recovers: {e}")
        return

    if config.warm_cache_on_startup:
        await store.warm()
