"""
Management Request and Response Definitions

This module defines the data structures exchanged with management clients.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class OperationType(Enum):
    """Enumeration of supported management operations (wire names)."""
    CONNECT = "connect"
    SET = "set"
    GET = "get"
    GET_MULTIPLE = "getMultiple"
    DELETE = "delete"
    FLUSH = "flush"
    LIST_KEYS = "listKeys"
    QUIT = "quit"
    UNKNOWN = "unknown"


@dataclass
class Item:
    """
    A stored key/value pair as seen by the client operations.

    The value is kept as the exact bytes memcached returned. Items produced
    by key enumeration carry no value.
    """
    key: str
    value: Optional[bytes] = None

    def to_dict(self) -> Dict[str, str]:
        data = {"key": self.key}
        if self.value is not None:
            data["value"] = self.value.decode("utf-8", errors="replace")
        return data


@dataclass
class Request:
    """
    Represents a parsed management request.

    Attributes:
        type: The requested operation
        url: Memcached address for CONNECT
        key: Item key for SET, GET and DELETE
        keys: Item keys for GET_MULTIPLE
        value: Item value for SET
        valid: False if the payload could not be decoded
        raw: The original raw request line
    """
    type: OperationType
    url: str = ""
    key: str = ""
    keys: List[str] = field(default_factory=list)
    value: str = ""
    valid: bool = True
    raw: str = ""


@dataclass
class Response:
    """
    Represents a management response.

    Attributes:
        success: Whether the operation succeeded
        message: Confirmation message (omitted when empty)
        error: Failure reason (omitted when empty)
        items: Items returned by read operations (omitted when empty)
    """
    success: bool
    message: str = ""
    error: str = ""
    items: List[Item] = field(default_factory=list)

    @classmethod
    def ok(cls, message: str = "", items: Optional[List[Item]] = None) -> "Response":
        """Create a successful response."""
        return cls(success=True, message=message, items=list(items or []))

    @classmethod
    def failure(cls, error: str) -> "Response":
        """Create an error response."""
        return cls(success=False, error=error)

    @classmethod
    def invalid_data(cls) -> "Response":
        return cls.failure("Invalid data")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape, dropping empty optional fields."""
        data: Dict[str, Any] = {"success": self.success}
        if self.message:
            data["message"] = self.message
        if self.error:
            data["error"] = self.error
        if self.items:
            data["items"] = [item.to_dict() for item in self.items]
        return data
