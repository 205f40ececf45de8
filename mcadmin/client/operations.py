"""
Cache Operations Client

Validated item operations over the connection held by a ConnectionManager,
plus key enumeration through the diagnostic stats commands.

Every operation checks the connection state before its arguments, so an
unconnected client always reports NotConnected regardless of input.
"""

import asyncio
import logging
from typing import List, Sequence

from ..config.settings import settings
from ..errors import (
    MALFORMED_KEY,
    CacheError,
    InvalidArgument,
    NoItemsFound,
    NotFound,
    StorageError,
)
from ..protocol.commands import Item
from ..protocol.stats import (
    build_cachedump,
    build_stats_items,
    is_error_line,
    is_terminator,
    parse_cachedump_keys,
    parse_slab_ids,
)
from .connection import (
    TRANSPORT_ERRORS,
    ConnectionManager,
    close_stream,
    describe_error,
    open_stream,
    read_line,
)

logger = logging.getLogger(__name__)


class CacheClient:
    """
    Item operations against the managed memcached server.

    The client holds no copy of cache contents; each call is a live round
    trip bounded by the manager's timeout.

    Usage:
        manager = ConnectionManager()
        client = CacheClient(manager)
        await manager.connect("localhost:11211")
        await client.set("greeting", "hello")
        item = await client.get("greeting")

    Attributes:
        manager: The ConnectionManager owning the connection
        max_key_length: Longest key accepted by set, in bytes
    """

    def __init__(self, manager: ConnectionManager, max_key_length: int = None):
        self.manager = manager
        self.max_key_length = (
            max_key_length if max_key_length is not None else settings.MAX_KEY_LENGTH
        )

    @property
    def timeout(self) -> float:
        return self.manager.timeout

    async def _call(self, method: str, *args, **kwargs):
        """Run one pymemcache call in a worker thread while holding the connection."""
        async with self.manager.acquire() as conn:
            return await asyncio.to_thread(getattr(conn.client, method), *args, **kwargs)

    # ------------------------------------------------------------------
    # Item operations
    # ------------------------------------------------------------------

    async def set(self, key: str, value: str) -> None:
        """
        Store a value under a key with no expiration.

        Both key and value are trimmed. An existing value is overwritten.

        Raises:
            NotConnected: no live connection
            InvalidArgument: empty key or value, or key over the length limit
            StorageError: transport failure or the server refused the item
        """
        self.manager.connection()

        key = key.strip()
        value = value.strip()

        if not key or not value:
            raise InvalidArgument("key and value are required")

        if len(key.encode()) > self.max_key_length:
            raise InvalidArgument(f"key too long (max {self.max_key_length} characters)")

        stored = await self._call("set", key, value.encode(), expire=0, noreply=False)
        if not stored:
            raise StorageError("item not stored")

    async def get(self, key: str) -> Item:
        """
        Fetch a single item.

        Raises:
            NotConnected: no live connection
            InvalidArgument: empty key
            NotFound: the server has no such key
            StorageError: transport or protocol failure
        """
        self.manager.connection()

        if not key:
            raise InvalidArgument("key is required")

        # pymemcache lets an all-whitespace key through to the server
        if key.isspace():
            raise StorageError(MALFORMED_KEY)

        value = await self._call("get", key)
        if value is None:
            raise NotFound()
        return Item(key=key, value=value)

    async def get_multiple(self, keys: Sequence[str]) -> List[Item]:
        """
        Fetch several items, skipping any that cannot be read.

        Absent keys and per-key errors are treated alike: the key is left
        out of the result. Partial results are a normal success.

        Raises:
            NotConnected: no live connection
            InvalidArgument: no keys given
            NoItemsFound: none of the keys could be read
        """
        self.manager.connection()

        if not keys:
            raise InvalidArgument("at least one key is required")

        items = []
        for key in keys:
            try:
                items.append(await self.get(key))
            except CacheError as exc:
                logger.debug(f"Skipping key {key!r}: {exc}")

        if not items:
            raise NoItemsFound()
        return items

    async def delete(self, key: str) -> None:
        """
        Remove an item.

        Raises:
            NotConnected: no live connection
            InvalidArgument: empty key
            NotFound: the server has no such key
            StorageError: transport or protocol failure
        """
        self.manager.connection()

        if not key:
            raise InvalidArgument("key is required")

        # pymemcache lets an all-whitespace key through to the server
        if key.isspace():
            raise StorageError(MALFORMED_KEY)

        if not await self._call("delete", key, noreply=False):
            raise NotFound()

    async def flush_all(self) -> None:
        """
        Invalidate every item on the server immediately.

        Raises:
            NotConnected: no live connection
            StorageError: transport or protocol failure
        """
        self.manager.connection()
        await self._call("flush_all", noreply=False)

    # ------------------------------------------------------------------
    # Key enumeration
    # ------------------------------------------------------------------

    async def get_all_keys(self) -> List[str]:
        """
        List every key stored on the server.

        Opens a dedicated connection, asks for the occupied slabs with
        `stats items`, then dumps each slab with `stats cachedump <id> 0`.
        Keys are returned in slab discovery order; an empty cache yields
        an empty list.

        Raises:
            NotConnected: no live connection
            StorageError: the dial failed, or any error during the
                conversation (no partial result is returned)
        """
        conn = self.manager.connection()

        try:
            reader, writer = await open_stream(conn.host, conn.port, self.timeout)
        except TRANSPORT_ERRORS as exc:
            raise StorageError(f"failed to connect: {describe_error(exc)}") from exc

        try:
            writer.write(build_stats_items())
            await writer.drain()
            slab_ids, _ = parse_slab_ids(await self._read_reply(reader))
            logger.debug(f"Occupied slabs on {conn.address}: {slab_ids}")

            keys = []
            for slab_id in slab_ids:
                writer.write(build_cachedump(slab_id, 0))
                await writer.drain()
                slab_keys, _ = parse_cachedump_keys(await self._read_reply(reader))
                keys.extend(slab_keys)

            return keys
        except TRANSPORT_ERRORS as exc:
            raise StorageError(describe_error(exc)) from exc
        finally:
            await close_stream(writer)

    async def _read_reply(self, reader) -> List[str]:
        """
        Collect the lines of one diagnostic reply.

        Stops after the END line or an error line, either of which is kept
        for the parser. EOF before then raises ConnectionResetError.
        """
        lines = []
        while True:
            line = await asyncio.wait_for(read_line(reader), self.timeout)
            lines.append(line)
            if is_terminator(line) or is_error_line(line):
                return lines
