"""Data models for URL shortener."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class UrlRecord:
    """A short code and the URL it points to, with access metadata."""

    short_code: str
    original_url: str
    created_at: datetime = field(default_factory=utcnow)
    last_accessed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    clicks: int = 0
    # False while the durable write is pending reconciliation
    persisted: bool = True

    @classmethod
    def new(
        cls,
        short_code: str,
        original_url: str,
        expiration_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> "UrlRecord":
        """Build a fresh record, optionally expiring after `expiration_days`."""
        now = now or utcnow()
        expires_at = now + timedelta(days=expiration_days) if expiration_days else None
        return cls(
            short_code=short_code,
            original_url=original_url,
            created_at=now,
            last_accessed_at=now,
            expires_at=expires_at,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) >= self.expires_at

    def ttl_seconds(self, now: Optional[datetime] = None) -> Optional[int]:
        """Seconds until expiry (at least 1), or None if the record never expires."""
        if self.expires_at is None:
            return None
        remaining = (self.expires_at - (now or utcnow())).total_seconds()
        return max(1, int(remaining))

    def touched(self, hits: int = 1, accessed_at: Optional[datetime] = None) -> "UrlRecord":
        """Return a copy with `hits` more clicks and a new access time."""
        return replace(
            self,
            clicks=self.clicks + hits,
            last_accessed_at=accessed_at or utcnow(),
        )

    def to_meta(self) -> Dict[str, Any]:
        """Metadata blob stored next to the URL in key-value backends."""
        return {
            "created_at": _format_timestamp(self.created_at),
            "last_accessed_at": _format_timestamp(self.last_accessed_at),
            "expires_at": _format_timestamp(self.expires_at),
            "clicks": self.clicks,
        }

    @classmethod
    def from_meta(cls, short_code: str, original_url: str, meta: Optional[Dict[str, Any]]) -> "UrlRecord":
        meta = meta or {}
        return cls(
            short_code=short_code,
            original_url=original_url,
            created_at=_parse_timestamp(meta.get("created_at")) or utcnow(),
            last_accessed_at=_parse_timestamp(meta.get("last_accessed_at")),
            expires_at=_parse_timestamp(meta.get("expires_at")),
            clicks=int(meta.get("clicks") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "short_code": self.short_code,
            "original_url": self.original_url,
            **self.to_meta(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UrlRecord":
        """Create from dictionary."""
        return cls.from_meta(data["short_code"], data["original_url"], data)
