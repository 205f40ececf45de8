"""Protocol module for MC-Admin."""

from .commands import Item, OperationType, Request, Response
from .parser import RequestParser
from .stats import EnumerationParser, parse_cachedump_keys, parse_slab_ids

__all__ = [
    "Item",
    "OperationType",
    "Request",
    "Response",
    "RequestParser",
    "EnumerationParser",
    "parse_cachedump_keys",
    "parse_slab_ids",
]
