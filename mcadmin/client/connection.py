"""
Connection Manager

Owns the single connection to the memcached server that every item
operation runs over. A Connection is replaced wholesale on each connect
attempt and never mutated in place.

Item commands travel over a pymemcache client. Key enumeration runs on
a raw asyncio stream of its own so it never waits on the item lock; the
stream helpers it uses live here too.

Address normalization:
    " host "          -> "host:11211"
    "memcached"       -> "localhost:11211"
    "memcached:11212" -> "localhost:11212"
    "tcp://host"      -> InvalidAddress
"""

import asyncio
import logging
import socket
from asyncio import StreamReader, StreamWriter
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional, Tuple

from pymemcache.client.base import Client
from pymemcache.exceptions import (
    MemcacheError,
    MemcacheIllegalInputError,
    MemcacheUnexpectedCloseError,
)

from ..config.settings import settings
from ..errors import (
    MALFORMED_KEY,
    ConnectionFailed,
    InvalidAddress,
    NotConnected,
    StorageError,
)
from ..protocol.stats import decode_line

logger = logging.getLogger(__name__)

# Errors that mean the transport is unusable
TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, asyncio.IncompleteReadError)


def describe_error(exc: BaseException) -> str:
    """Render a transport exception as a short reason string."""
    if isinstance(exc, (asyncio.TimeoutError, socket.timeout)):
        return "i/o timeout"
    if isinstance(exc, (asyncio.IncompleteReadError, MemcacheUnexpectedCloseError)):
        return "connection closed by server"
    return str(exc) or exc.__class__.__name__


def normalize_address(
        address: str,
        default_port: int = None,
        aliases: Dict[str, str] = None,
) -> str:
    """
    Validate and normalize a memcached address.

    Args:
        address: User supplied address, "host" or "host:port"
        default_port: Port appended when none is given (default from settings)
        aliases: Hostname rewrites applied after the port is resolved

    Returns:
        The normalized "host:port" string.

    Raises:
        InvalidAddress: if the address is empty or URL-shaped
    """
    default_port = default_port if default_port is not None else settings.DEFAULT_MEMCACHED_PORT
    aliases = aliases if aliases is not None else settings.HOST_ALIASES

    host = address.strip()
    if not host:
        raise InvalidAddress("URL is required")

    # URL-shaped input could redirect the transport somewhere unexpected
    if "://" in host:
        raise InvalidAddress("invalid URL format")

    if ":" not in host:
        host = f"{host}:{default_port}"

    for alias, target in aliases.items():
        prefix = f"{alias}:"
        if host.startswith(prefix):
            host = target + host[len(alias):]
            break

    return host


def split_address(address: str) -> Tuple[str, int]:
    """
    Split a normalized address into host and port.

    Raises:
        ValueError: if the port is not a valid TCP port number
    """
    host, _, port_text = address.rpartition(":")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    port = int(port_text)
    if not 0 < port < 65536:
        raise ValueError(f"invalid port {port_text!r}")
    return host, port


async def read_line(reader: StreamReader) -> str:
    """Read one reply line, treating EOF as a transport failure."""
    data = await reader.readline()
    if not data:
        raise ConnectionResetError("connection closed by server")
    return decode_line(data)


async def open_stream(host: str, port: int, timeout: float) -> Tuple[StreamReader, StreamWriter]:
    """Open a TCP stream bounded by the given timeout."""
    return await asyncio.wait_for(
        asyncio.open_connection(host, port, limit=settings.READ_BUFFER_SIZE),
        timeout,
    )


async def close_stream(writer: Optional[StreamWriter]) -> None:
    """Close a stream writer, ignoring errors from an already broken transport."""
    if writer is None:
        return
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass


@dataclass(frozen=True)
class Connection:
    """
    A verified connection to one memcached server.

    Attributes:
        address: Normalized "host:port" target
        host: Host part of the address
        port: Port part of the address
        alive: True while the transport is usable
        client: pymemcache client bound to the address, None once dead
    """
    address: str
    host: str
    port: int
    alive: bool = True
    client: Optional[Client] = field(default=None, repr=False, compare=False)


def make_client(host: str, port: int, timeout: float) -> Client:
    """Build a pymemcache client that always waits for the server's reply."""
    return Client(
        (host, port),
        connect_timeout=timeout,
        timeout=timeout,
        default_noreply=False,
        allow_unicode_keys=True,
    )


def close_client(client: Optional[Client]) -> None:
    if client is not None:
        client.close()


class ConnectionManager:
    """
    Holds at most one connection to a memcached server.

    The last connect attempt always wins: a failed attempt drops the
    previous connection and leaves the manager disconnected, with
    `address` naming the target that failed.

    The pymemcache client is blocking, so every call runs in a worker
    thread. Access is serialized with an asyncio.Lock, so exchanges from
    concurrent callers never share the socket.

    Usage:
        manager = ConnectionManager()
        await manager.connect("localhost")
        async with manager.acquire() as conn:
            await asyncio.to_thread(conn.client.get, "key")

    Attributes:
        timeout: Seconds allowed for the dial and for each socket read/write
        address: Normalized address of the most recent connect attempt
    """

    def __init__(self, timeout: float = None):
        """
        Initialize a disconnected manager.

        Args:
            timeout: Operation timeout in seconds (default from settings)
        """
        self.timeout = timeout if timeout is not None else settings.TIMEOUT
        self.address = ""
        self._connection: Optional[Connection] = None
        self._lock = asyncio.Lock()

    async def connect(self, address: str) -> Connection:
        """
        Connect to a memcached server and verify it answers.

        Args:
            address: "host" or "host:port"

        Returns:
            The new live Connection.

        Raises:
            InvalidAddress: the address is empty or URL-shaped; the
                current connection is left untouched
            ConnectionFailed: the dial or the version check failed
        """
        target = normalize_address(address)

        async with self._lock:
            self._release()
            self.address = target

            try:
                host, port = split_address(target)
            except ValueError as exc:
                raise ConnectionFailed(f"invalid address {target!r}") from exc

            logger.debug(f"Connecting to memcached at {target}")
            client = make_client(host, port, self.timeout)
            try:
                version = await asyncio.to_thread(client.version)
            except (MemcacheError, *TRANSPORT_ERRORS) as exc:
                close_client(client)
                raise ConnectionFailed(describe_error(exc)) from exc

            self._connection = Connection(
                address=target,
                host=host,
                port=port,
                client=client,
            )
            logger.debug(f"Connected to memcached {version.decode(errors='replace')} at {target}")
            return self._connection

    def is_connected(self) -> bool:
        """True iff the last connect succeeded and the transport is still usable."""
        return self._connection is not None and self._connection.alive

    def connection(self) -> Connection:
        """
        Return the current live connection.

        Raises:
            NotConnected: if there is none
        """
        if not self.is_connected():
            raise NotConnected()
        return self._connection

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Connection]:
        """
        Hold the connection for one request/reply exchange.

        A key the client refuses to send surfaces as StorageError and
        leaves the connection alive. Any other failure inside the block,
        including an unparseable reply or cancellation mid-exchange,
        leaves the socket in an unknown state, so the connection is
        marked dead.

        Raises:
            NotConnected: if there is no live connection
            StorageError: on transport, timeout or protocol failure
        """
        async with self._lock:
            conn = self.connection()
            try:
                yield conn
            except MemcacheIllegalInputError as exc:
                raise StorageError(MALFORMED_KEY) from exc
            except (MemcacheError, *TRANSPORT_ERRORS) as exc:
                logger.warning(f"Connection to {conn.address} lost: {describe_error(exc)}")
                self._invalidate(conn)
                raise StorageError(describe_error(exc)) from exc
            except asyncio.CancelledError:
                logger.warning(f"Exchange with {conn.address} cancelled")
                self._invalidate(conn)
                raise

    def _invalidate(self, conn: Connection) -> None:
        """Close the transport but remember the address as disconnected."""
        self._release()
        self._connection = Connection(
            address=conn.address,
            host=conn.host,
            port=conn.port,
            alive=False,
        )

    def _release(self) -> None:
        """Close the current transport, if any, and forget it."""
        if self._connection is not None:
            close_client(self._connection.client)
        self._connection = None

    async def close(self) -> None:
        """Release the connection."""
        async with self._lock:
            self._release()
