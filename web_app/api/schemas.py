"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShortenRequest(CamelModel):
    """Request to shorten a URL."""

    # Left optional so a missing URL gets the service's own message
    original_url: Optional[str] = Field(None, description="The URL to shorten")
    custom_name: Optional[str] = Field(None, description="Optional custom short code")
    expiration_days: Optional[int] = Field(None, description="Days until the short URL expires (1-3650)")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "originalUrl": "https://example.com/very/long/path/to/resource",
                },
                {
                    "originalUrl": "https://github.com/user/repo",
                    "customName": "myrepo",
                    "expirationDays": 30,
                },
            ]
        },
    )


class PreviewResponse(CamelModel):
    """Link preview metadata for the target page."""

    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    site_name: Optional[str] = None
    favicon: Optional[str] = None


class ShortenResponse(CamelModel):
    """Response after shortening a URL."""

    original_url: str = Field(..., description="The original long URL")
    short_url: str = Field(..., description="The complete short URL")
    short_code: str = Field(..., description="The assigned short code")
    created_at: datetime = Field(..., description="Creation timestamp")
    expires_at: Optional[datetime] = Field(None, description="Expiration timestamp")
    persisted: bool = Field(True, description="False while the durable write is pending")
    preview: Optional[PreviewResponse] = Field(None, description="Link preview, when one was fetched in time")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "originalUrl": "https://example.com/very/long/path",
                    "shortUrl": "https://short.link/ex1",
                    "shortCode": "ex1",
                    "createdAt": "2024-01-01T12:00:00Z",
                    "expiresAt": "2025-01-01T12:00:00Z",
                    "persisted": True,
                    "preview": None,
                }
            ]
        },
    )


class BulkShortenItem(CamelModel):
    """One entry of a bulk request given as an object."""

    original_url: Optional[str] = None
    custom_name: Optional[str] = None
    expiration_days: Optional[int] = None


class BulkShortenRequest(CamelModel):
    """Request to shorten many URLs at once."""

    urls: List[Union[str, BulkShortenItem]] = Field(..., description="URLs or per-URL options")
    default_expiration_days: Optional[int] = Field(None, description="Expiration for entries that give none")


class BulkShortenResult(CamelModel):
    """Outcome for one bulk entry."""

    original_url: Optional[str] = None
    success: bool
    short_code: Optional[str] = None
    short_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    error: Optional[str] = None


class BulkShortenResponse(CamelModel):
    """Per-entry outcomes, in request order."""

    results: List[BulkShortenResult]
    succeeded: int
    failed: int


class StatsResponse(CamelModel):
    """Access statistics for one short code."""

    short_code: str
    original_url: str
    clicks: int
    created_at: datetime
    last_accessed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class AdminRequest(BaseModel):
    """Body of the admin-only delete endpoints."""

    password: Optional[str] = None


class DeleteResponse(BaseModel):
    """Number of short URLs removed."""

    deleted: int


class HealthResponse(CamelModel):
    """Health check response."""

    status: str = Field(..., description="healthy, or degraded while the durable tier is down")
    fast_tier: bool
    fast_tier_size: int
    durable_tier: Optional[bool] = Field(None, description="None when no durable tier is configured")
    backend: str
    pending_reconciliation: int
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Error response."""

    error: str = Field(..., description="Error message")


UrlMapping = Dict[str, str]
