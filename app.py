#!/usr/bin/env python3
"""
Main entry point for URL shortener service.

Concurrency: requests are served concurrently on one event loop per worker
(FastAPI + aiohttp + redis.asyncio / asyncpg). Set WORKERS > 1 for
multi-process scaling; each worker keeps its own fast tier in front of the
shared durable tier.

Usage:
    python app.py

Environment variables:
    STORAGE_BACKEND - redis, postgres, memory or none
    REDIS_URL - Redis connection URL
    POSTGRES_URL - PostgreSQL connection URL
    BASE_URL - Base URL for short links
    ADMIN_PASSWORD - Shared secret for delete endpoints
    PORT - Port to listen on
    WORKERS - Number of uvicorn worker processes (default 1)
    LOG_LEVEL - Logging level
"""

import asyncio
import contextlib
import signal
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from config import load_config
from shortener.bootstrap import build_service, start_service
from shortener.common.logging_config import setup_logging
from web_app import create_app


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    config = app.state.config
    logger = app.state.logger

    logger.info("Starting URL shortener service...")

    service = build_service(config, logger)
    await start_service(service, config, logger)
    app.state.service = service

    reconcile_task = None
    if service.store.durable is not None:
        reconcile_task = asyncio.create_task(
            service.store.run_reconciliation(config.reconcile_interval_seconds)
        )

    logger.info(f"Service started successfully (durable tier: {service.store.backend_name})")

    yield

    logger.info("Shutting down URL shortener service...")

    if reconcile_task:
        reconcile_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reconcile_task
        # Last chance for records written while the durable tier was down
        await service.reconcile()

    await service.close()

    logger.info("Service stopped")


def main():
    """Main entry point."""
    config = load_config()

    logger = setup_logging(
        level=config.log_level,
        log_file=config.log_file,
        json_format=config.log_json,
    )

    logger.info("URL Shortener Service")
    logger.info(f"Configuration: {config.model_dump(exclude={'admin_password', 'redis_url', 'postgres_url'})}")

    app = create_app(service_instance=None, config=config)
    app.state.logger = logger
    app.router.lifespan_context = lifespan

    uvicorn_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        workers=config.workers,
        log_level=config.log_level.lower(),
        access_log=True,
    )

    server = uvicorn.Server(uvicorn_config)

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        server.should_exit = True

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        logger.info(f"Starting server on {config.host}:{config.port}")
        server.run()
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
