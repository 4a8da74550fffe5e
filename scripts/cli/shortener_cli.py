#!/usr/bin/env python3
"""
Command-line interface for URL shortener service.

Talks to the durable tier directly through the same service the HTTP API
uses, so it needs a shared backend (redis or postgres) to be useful against a
running deployment.

Usage:
    python shortener_cli.py shorten <url> [--custom-name NAME] [--expiration-days N]
    python shortener_cli.py get <short_code>
    python shortener_cli.py stats <short_code>
    python shortener_cli.py list
    python shortener_cli.py delete <short_code> [--password PASSWORD]
    python shortener_cli.py delete-all [--password PASSWORD]
    python shortener_cli.py reconcile
    python shortener_cli.py health
"""

import argparse
import asyncio
import json
import sys
import os
from typing import Any, Dict, Optional

# Add parent directories to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from config import load_config
from shortener.bootstrap import build_service, start_service
from shortener.common.logging_config import setup_logging
from shortener.exceptions import ShortenerError


def _emit(payload: Dict[str, Any], error: bool = False) -> int:
    print(json.dumps(payload, indent=2, default=str), file=sys.stderr if error else sys.stdout)
    return 1 if error else 0


class URLShortenerCLI:
    """Command-line interface for URL shortener."""

    def __init__(self, overrides: Optional[Dict[str, Any]] = None, verbose: bool = False):
        """Initialize CLI.

        Args:
            overrides: Config fields replacing the environment's values
            verbose: Log at DEBUG instead of WARNING
        """
        config = load_config()
        self.config = config.model_copy(update=overrides or {})
        self.logger = setup_logging(level="DEBUG" if verbose else "WARNING")
        self.service = None

    async def initialize(self):
        """Build the service and connect the durable tier."""
        self.logger.info(f"Initializing URL shortener ({self.config.storage_backend} backend)...")
        self.service = build_service(self.config, self.logger)
        await start_service(self.service, self.config, self.logger)
        self.logger.info("Initialization complete")

    async def cleanup(self):
        """Cleanup resources."""
        if self.service:
            await self.service.close()

    async def shorten(self, url: str, custom_name: Optional[str] = None, expiration_days: Optional[int] = None):
        """Shorten a URL."""
        result = await self.service.shorten(url, custom_name, expiration_days, include_preview=False)
        record = result["record"]
        return _emit({
            "success": True,
            **record.to_dict(),
            "persisted": record.persisted,
            "message": f"Successfully shortened URL to: {record.short_code}",
        })

    async def get(self, short_code: str):
        """Get original URL for a short code without counting a visit."""
        record = await self.service.get_stats(short_code)
        return _emit({
            "success": True,
            "short_code": record.short_code,
            "original_url": record.original_url,
        })

    async def stats(self, short_code: str):
        """Get statistics for a short code."""
        record = await self.service.get_stats(short_code)
        return _emit({"success": True, **record.to_dict()})

    async def list_urls(self):
        """List all live URLs."""
        urls = await self.service.list_urls()
        return _emit({"success": True, "count": len(urls), "urls": urls})

    async def delete(self, short_code: str, password: Optional[str]):
        """Delete one short URL."""
        deleted = await self.service.delete_short_url(short_code, password)
        return _emit({"success": True, "short_code": short_code, "deleted": deleted})

    async def delete_all(self, password: Optional[str]):
        """Delete every short URL."""
        deleted = await self.service.delete_all(password)
        return _emit({"success": True, "deleted": deleted})

    async def reconcile(self):
        """Write records that never reached the durable tier."""
        written = await self.service.reconcile()
        return _emit({
            "success": True,
            "written": written,
            "pending": self.service.store.pending_reconciliation,
        })

    async def health(self):
        """Check service health."""
        health_status = await self.service.health_check()
        return _emit({"success": health_status["overall"], "health": health_status}, error=not health_status["overall"])


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="URL Shortener CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Shorten a URL
  %(prog)s shorten https://example.com/long/url

  # Shorten with a custom name, expiring in 30 days
  %(prog)s shorten https://example.com/long/url --custom-name mylink --expiration-days 30

  # Get original URL
  %(prog)s get mylink

  # Get statistics
  %(prog)s stats mylink

  # Delete (password defaults to ADMIN_PASSWORD)
  %(prog)s delete mylink

  # Retry failed durable writes
  %(prog)s reconcile

  # Check health
  %(prog)s health
        """
    )

    parser.add_argument(
        "--backend",
        choices=["none", "memory", "redis", "postgres"],
        help="Durable tier (default: from STORAGE_BACKEND env)"
    )

    parser.add_argument(
        "--redis-url",
        help="Redis connection URL (default: from REDIS_URL env)"
    )

    parser.add_argument(
        "--postgres-url",
        help="PostgreSQL connection URL (default: from POSTGRES_URL env)"
    )

    parser.add_argument(
        "--no-safety",
        action="store_true",
        help="Skip safety checks when shortening"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Shorten command
    shorten_parser = subparsers.add_parser("shorten", help="Shorten a URL")
    shorten_parser.add_argument("url", help="URL to shorten")
    shorten_parser.add_argument("--custom-name", help="Custom short code")
    shorten_parser.add_argument("--expiration-days", type=int, help="Days until the short URL expires")

    # Get command
    get_parser = subparsers.add_parser("get", help="Get original URL")
    get_parser.add_argument("short_code", help="Short code to lookup")

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Get URL statistics")
    stats_parser.add_argument("short_code", help="Short code to get stats for")

    # List command
    subparsers.add_parser("list", help="List all URLs")

    # Delete commands
    delete_parser = subparsers.add_parser("delete", help="Delete a short URL")
    delete_parser.add_argument("short_code", help="Short code to delete")
    delete_parser.add_argument("--password", help="Admin password (default: from ADMIN_PASSWORD env)")

    delete_all_parser = subparsers.add_parser("delete-all", help="Delete every short URL")
    delete_all_parser.add_argument("--password", help="Admin password (default: from ADMIN_PASSWORD env)")

    # Maintenance commands
    subparsers.add_parser("reconcile", help="Retry durable writes that failed")
    subparsers.add_parser("health", help="Check service health")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    overrides = {"warm_cache_on_startup": False, "preview_enabled": False}
    if args.backend:
        overrides["storage_backend"] = args.backend
    if args.redis_url:
        overrides["redis_url"] = args.redis_url
    if args.postgres_url:
        overrides["postgres_url"] = args.postgres_url
    if args.no_safety:
        overrides["safety_checks_enabled"] = False

    # Initialize CLI
    cli = URLShortenerCLI(overrides=overrides, verbose=args.verbose)
    password = getattr(args, "password", None) or cli.config.admin_password

    try:
        await cli.initialize()

        # Execute command
        if args.command == "shorten":
            return await cli.shorten(args.url, args.custom_name, args.expiration_days)
        elif args.command == "get":
            return await cli.get(args.short_code)
        elif args.command == "stats":
            return await cli.stats(args.short_code)
        elif args.command == "list":
            return await cli.list_urls()
        elif args.command == "delete":
            return await cli.delete(args.short_code, password)
        elif args.command == "delete-all":
            return await cli.delete_all(password)
        elif args.command == "reconcile":
            return await cli.reconcile()
        elif args.command == "health":
            return await cli.health()
        else:
            parser.print_help()
            return 1

    except ShortenerError as e:
        return _emit({"success": False, "error": str(e)}, error=True)
    finally:
        await cli.cleanup()


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
