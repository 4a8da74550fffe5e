"""Exceptions raised by the URL shortener core.

Every error a caller can act on derives from ShortenerError and carries the
HTTP status the web layer should answer with.

Classes:
    ShortenerError:
        Base class for shortener errors.

    ValidationError:
        Missing, oversized or malformed URL, custom name or expiration.

    SafetyRejected:
        The target URL failed a blacklist, structural or reachability check.

    NameTaken:
        The requested short code is already assigned.

    NotFound:
        The short code is unknown, expired or reserved.

    Unauthorized:
        The admin password did not match.

    AllocationError:
        No free random short code could be found within the retry budget.

    StorageError:
        The durable tier is unreachable or rejected an operation.
"""


class ShortenerError(Exception):
    """Base class for URL shortener errors."""

    status_code = 500


class ValidationError(ShortenerError):
    """Raised when request input fails validation."""

    status_code = 400


class SafetyRejected(ShortenerError):
    """Raised when a target URL is judged unsafe."""

    status_code = 400


class NameTaken(ShortenerError):
    """Raised when a short code is already in use."""

    status_code = 400


class NotFound(ShortenerError):
    """Raised when a short code does not resolve."""

    status_code = 404


class Unauthorized(ShortenerError):
    """Raised when an admin operation is attempted with a bad password."""

    status_code = 401


class AllocationError(ShortenerError):
    """Raised when a unique short code cannot be allocated."""

    status_code = 500


class StorageError(ShortenerError):
    """Raised by durable backends on connectivity or protocol failures.

    The store degrades to memory-only operation instead of surfacing this
    from a shorten request.
    """

    status_code = 503
