"""API routes implementation."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Request, status

from shortener.common.headers import build_base_url, get_forwarded_path_prefix
from shortener.common.url_builder import build_short_url

from .schemas import (
    AdminRequest,
    BulkShortenRequest,
    BulkShortenResponse,
    BulkShortenResult,
    DeleteResponse,
    ErrorResponse,
    HealthResponse,
    PreviewResponse,
    ShortenRequest,
    ShortenResponse,
    StatsResponse,
    UrlMapping,
)

router = APIRouter()


def _short_url(request: Request, short_code: str) -> str:
    """Build the public short URL, honouring X-Forwarded-* from a proxy."""
    config = request.app.state.config
    headers = dict(request.headers)

    base_url = build_base_url(
        headers=headers,
        fallback_base_url=config.base_url,
        request_scheme=request.url.scheme,
        request_host=request.headers.get("host"),
    )

    return build_short_url(
        short_code=short_code,
        base_url=base_url,
        path_prefix=get_forwarded_path_prefix(headers, default=config.path_prefix),
    )


@router.post(
    "/shorten",
    response_model=ShortenResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid, unsafe or taken"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
    summary="Create short URL",
    description="Create a shortened URL. Optionally provide a custom name and expiration.",
)
async def shorten_url(request: Request, body: ShortenRequest):
    """Create a shortened URL."""
    service = request.app.state.service

    result = await service.shorten(
        original_url=body.original_url,
        custom_name=body.custom_name,
        expiration_days=body.expiration_days,
    )
    record = result["record"]
    preview = result["preview"]

    return ShortenResponse(
        original_url=record.original_url,
        short_url=_short_url(request, record.short_code),
        short_code=record.short_code,
        created_at=record.created_at,
        expires_at=record.expires_at,
        persisted=record.persisted,
        preview=PreviewResponse(**preview.to_dict()) if preview else None,
    )


@router.post(
    "/bulk-shorten",
    response_model=BulkShortenResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Too many URLs"},
    },
    summary="Create many short URLs",
    description="Shorten up to 100 URLs. Each entry succeeds or fails on its own.",
)
async def bulk_shorten(request: Request, body: BulkShortenRequest):
    """Shorten a batch of URLs."""
    service = request.app.state.service

    items = [item if isinstance(item, str) else item.model_dump() for item in body.urls]
    outcomes = await service.bulk_shorten(items, default_expiration_days=body.default_expiration_days)

    results = []
    for outcome in outcomes:
        if outcome["success"]:
            record = outcome["record"]
            results.append(BulkShortenResult(
                original_url=record.original_url,
                success=True,
                short_code=record.short_code,
                short_url=_short_url(request, record.short_code),
                expires_at=record.expires_at,
            ))
        else:
            original_url = outcome["original_url"]
            results.append(BulkShortenResult(
                original_url=original_url if isinstance(original_url, str) else None,
                success=False,
                error=outcome["error"],
            ))

    succeeded = sum(1 for r in results if r.success)
    return BulkShortenResponse(results=results, succeeded=succeeded, failed=len(results) - succeeded)


@router.get(
    "/urls",
    response_model=UrlMapping,
    summary="List short URLs",
    description="Every live short code and the URL it points to.",
)
async def list_urls(request: Request):
    """List all short URLs."""
    service = request.app.state.service
    return await service.list_urls()


@router.get(
    "/stats/{short_code}",
    response_model=StatsResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Short code not found"},
    },
    summary="Get URL statistics",
    description="Click count and timestamps for a short code. Does not count as a visit.",
)
async def get_stats(request: Request, short_code: str):
    """Get statistics for a short URL."""
    service = request.app.state.service

    record = await service.get_stats(short_code)

    return StatsResponse(
        short_code=record.short_code,
        original_url=record.original_url,
        clicks=record.clicks,
        created_at=record.created_at,
        last_accessed_at=record.last_accessed_at,
        expires_at=record.expires_at,
    )


@router.delete(
    "/delete/{short_code}",
    response_model=DeleteResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid password"},
    },
    summary="Delete short URL",
)
async def delete_short_url(request: Request, short_code: str, body: Optional[AdminRequest] = None):
    """Delete one short URL. Deleting an unknown code reports zero deleted."""
    service = request.app.state.service
    deleted = await service.delete_short_url(short_code, body.password if body else None)
    return DeleteResponse(deleted=deleted)


@router.delete(
    "/delete-all",
    response_model=DeleteResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid password"},
    },
    summary="Delete every short URL",
)
async def delete_all(request: Request, body: Optional[AdminRequest] = None):
    """Delete all short URLs."""
    service = request.app.state.service
    deleted = await service.delete_all(body.password if body else None)
    return DeleteResponse(deleted=deleted)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Report fast and durable tier status.",
)
async def health_check(request: Request):
    """Health check endpoint for monitoring."""
    service = request.app.state.service

    health = await service.health_check()

    return HealthResponse(
        status="healthy" if health["overall"] else "degraded",
        fast_tier=health["fast_tier"],
        fast_tier_size=health["fast_tier_size"],
        durable_tier=health["durable_tier"],
        backend=health["backend"],
        pending_reconciliation=health["pending_reconciliation"],
        timestamp=datetime.now(timezone.utc),
    )
