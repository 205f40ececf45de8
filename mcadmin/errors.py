"""
Error taxonomy for MC-Admin.

Every failure raised by the client layer is a CacheError. The message of
each exception is the exact text reported to management callers, so
handlers can prefix it without reformatting.
"""

# Failure texts management callers match on
CACHE_MISS = "memcache: cache miss"
MALFORMED_KEY = "malformed: key is too long or includes invalid characters"


class CacheError(Exception):
    """Base class for all cache client errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InvalidArgument(CacheError):
    """Empty or oversized input. Never retried."""


class InvalidAddress(InvalidArgument):
    """The memcached address is empty or URL-shaped."""


class NotConnected(CacheError):
    """No live connection; the caller must connect first."""

    def __init__(self, message: str = "not connected to Memcached"):
        super().__init__(message)


class ConnectionFailed(CacheError):
    """Dialing or probing the memcached server failed."""


class StorageError(CacheError):
    """A transport or protocol failure during an item operation."""


class NotFound(StorageError):
    """The server has no item under the requested key."""

    def __init__(self, message: str = CACHE_MISS):
        super().__init__(message)


class NoItemsFound(CacheError):
    """A multi-key read found none of the requested keys."""

    def __init__(self, message: str = "no items found"):
        super().__init__(message)
