"""Memcached client module for MC-Admin."""

from .connection import Connection, ConnectionManager, normalize_address
from .operations import CacheClient

__all__ = ["CacheClient", "Connection", "ConnectionManager", "normalize_address"]
