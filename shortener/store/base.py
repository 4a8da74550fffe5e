"""Abstract base class for durable storage backends."""

import asyncio
import functools
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple, Type, TypeVar

from ..exceptions import StorageError
from .models import UrlRecord

F = TypeVar("F", bound=Callable[..., Any])


def wrap_backend_errors(*error_types: Type[BaseException]) -> Callable[[F], F]:
    """Re-raise backend driver errors from async methods as StorageError.

    Example:
        >>> @wrap_backend_errors(redis.RedisError)
        ... async def get(self, short_code): ...
    """
    caught: Tuple[Type[BaseException], ...] = error_types + (OSError, asyncio.TimeoutError)

    def decorator(method: F) -> F:
        @functools.wraps(method)
        async def wrapper(self, *args, **kwargs):
            try:
                return await method(self, *args, **kwargs)
            except StorageError:
                raise
            except caught as e:
                raise StorageError(
                    f"{self.name} backend failed during {method.__name__}: {e}"
                ) from e

        return wrapper  # type: ignore[return-value]

    return decorator


class DurableBackendBase(ABC):
    """Persistent tier of the store.

    Implementations must support point get/create/delete by short code, bulk
    enumeration by prefix and optional per-record expiration. Driver errors
    surface as StorageError.
    """

    name = "base"

    async def connect(self) -> None:
        """Open connections. Backends without connections keep the default."""

    @abstractmethod
    async def create(self, record: UrlRecord) -> bool:
        """Store a record unless its short code is already live.

        Args:
            record: The record to persist; `expires_at` drives expiration

        Returns:
            True if created, False if the short code already exists
        """

    @abstractmethod
    async def get(self, short_code: str) -> Optional[UrlRecord]:
        """Get a live record by short code.

        Returns:
            The record, or None if missing or expired
        """

    @abstractmethod
    async def record_access(
        self,
        short_code: str,
        hits: int = 1,
        accessed_at: Optional[datetime] = None,
    ) -> bool:
        """Add `hits` clicks and set the last access time.

        Returns:
            True if the record exists
        """

    @abstractmethod
    async def delete(self, short_code: str) -> int:
        """Delete a record.

        Returns:
            Number of records removed (0 or 1)
        """

    @abstractmethod
    async def delete_all(self) -> int:
        """Delete every record.

        Returns:
            Number of records removed
        """

    @abstractmethod
    async def list_codes(self, prefix: str = "") -> List[str]:
        """List live short codes starting with `prefix`."""

    @abstractmethod
    async def load_all(self) -> List[UrlRecord]:
        """Load every live record (used to warm the fast tier)."""

    async def purge_expired(self) -> int:
        """Remove expired records. Backends with native TTL return 0."""
        return 0

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the backend is reachable."""

    async def close(self) -> None:
        """Close connections."""
