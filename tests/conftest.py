"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests,
including a small in-process memcached stand-in.
"""

import asyncio
import json
import socket
from contextlib import closing
from typing import AsyncGenerator, Dict, Optional, Set, Tuple

import pytest
import pytest_asyncio

from mcadmin.client.connection import ConnectionManager
from mcadmin.client.operations import CacheClient
from mcadmin.network.handlers import RequestHandler
from mcadmin.network.tcp_server import AdminServer
from mcadmin.protocol.parser import RequestParser


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Fake memcached server
# ============================================================================

class FakeMemcached:
    """
    Minimal memcached speaking the text protocol subset MC-Admin uses.

    Items are grouped into slabs by value size, so tests can populate more
    than one slab. Behaviour can be degraded per test:

        drop_commands: command words that make the server close the
            connection instead of answering ("cachedump", "get", ...)
        version_reply: line sent in answer to `version`
    """

    SLAB_SIZE = 64

    def __init__(self, host: str = '127.0.0.1', port: int = 0):
        self.host = host
        self.port = port
        self.items: Dict[str, Tuple[int, bytes]] = {}
        self.drop_commands: Set[str] = set()
        self.version_reply = "VERSION 1.6.21"
        self.connection_count = 0
        self.commands = []
        self._writers = set()
        self._server: Optional[asyncio.Server] = None

    def slab_for(self, value: bytes) -> int:
        return 1 + len(value) // self.SLAB_SIZE

    def slabs(self) -> Dict[int, list]:
        slabs: Dict[int, list] = {}
        for key, (_flags, value) in self.items.items():
            slabs.setdefault(self.slab_for(value), []).append(key)
        return slabs

    async def start(self) -> None:
        self._server = await asyncio.start_server(self.handle_client, self.host, self.port)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            for writer in list(self._writers):
                writer.close()
            await self._server.wait_closed()
            self._server = None

    async def handle_client(self, reader, writer) -> None:
        self.connection_count += 1
        self._writers.add(writer)
        try:
            while True:
                data = await reader.readline()
                if not data:
                    break
                words = data.decode().split()
                if not words:
                    continue
                self.commands.append(" ".join(words))

                if any(word in self.drop_commands for word in words[:2]):
                    break

                lines = await self.execute(words, reader)
                writer.write(b"".join(
                    (line if isinstance(line, bytes) else line.encode()) + b"\r\n"
                    for line in lines
                ))
                await writer.drain()
        except (ConnectionResetError, asyncio.IncompleteReadError):
            pass
        finally:
            self._writers.discard(writer)
            writer.close()

    async def execute(self, words, reader) -> list:
        name = words[0]

        if name == "version":
            return [self.version_reply]

        if name == "set" and len(words) == 5:
            data = await reader.readexactly(int(words[4]) + 2)
            self.items[words[1]] = (int(words[2]), data[:-2])
            return ["STORED"]

        if name == "get" and len(words) >= 2:
            lines = []
            for key in words[1:]:
                if key in self.items:
                    flags, value = self.items[key]
                    lines.append(f"VALUE {key} {flags} {len(value)}")
                    lines.append(value)
            return lines + ["END"]

        if name == "delete" and len(words) == 2:
            if self.items.pop(words[1], None) is None:
                return ["NOT_FOUND"]
            return ["DELETED"]

        if name == "flush_all":
            self.items.clear()
            return ["OK"]

        if words[:2] == ["stats", "items"]:
            lines = []
            for slab_id, keys in sorted(self.slabs().items()):
                lines.append(f"STAT items:{slab_id}:number {len(keys)}")
                lines.append(f"STAT items:{slab_id}:number_hot 0")
                lines.append(f"STAT items:{slab_id}:age 42")
            return lines + ["END"]

        if words[:2] == ["stats", "cachedump"] and len(words) == 4:
            keys = self.slabs().get(int(words[2]), [])
            limit = int(words[3])
            if limit:
                keys = keys[:limit]
            lines = [
                f"ITEM {key} [{len(self.items[key][1])} b; 0 s]" for key in keys
            ]
            return lines + ["END"]

        return ["ERROR"]


@pytest_asyncio.fixture
async def memcached() -> AsyncGenerator[FakeMemcached, None]:
    """Start a fake memcached on a random free port."""
    fake = FakeMemcached()
    await fake.start()

    yield fake

    await fake.stop()


@pytest.fixture
def memcached_address(memcached: FakeMemcached) -> str:
    return f"127.0.0.1:{memcached.port}"


# ============================================================================
# Client Fixtures
# ============================================================================

@pytest.fixture
def manager() -> ConnectionManager:
    """A disconnected ConnectionManager with a short timeout."""
    return ConnectionManager(timeout=1.0)


@pytest.fixture
def client(manager: ConnectionManager) -> CacheClient:
    return CacheClient(manager)


@pytest_asyncio.fixture
async def connected_client(
    client: CacheClient,
    memcached_address: str,
) -> AsyncGenerator[CacheClient, None]:
    """A CacheClient connected to the fake memcached."""
    await client.manager.connect(memcached_address)

    yield client

    await client.manager.close()


@pytest.fixture
def handler(manager: ConnectionManager, client: CacheClient) -> RequestHandler:
    return RequestHandler(manager, client)


@pytest.fixture
def parser() -> RequestParser:
    """Create a RequestParser instance."""
    return RequestParser()


# ============================================================================
# Admin Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest_asyncio.fixture
async def server(server_port: int) -> AsyncGenerator[AdminServer, None]:
    """
    Create and start a management server for testing.

    This fixture:
    1. Creates an AdminServer on a random free port
    2. Starts it in a background task
    3. Yields the server for testing
    4. Cleans up after the test
    """
    srv = AdminServer(
        host='127.0.0.1',
        port=server_port,
        handler=RequestHandler(ConnectionManager(timeout=1.0)),
    )

    server_task = asyncio.create_task(srv.start())

    # Wait for server to be ready
    await asyncio.sleep(0.1)

    yield srv

    await srv.stop()
    server_task.cancel()
    try:
        await server_task
    except asyncio.CancelledError:
        pass


class AdminClient:
    """
    Helper class for testing management server interactions.

    Usage:
        async with AdminClient('127.0.0.1', 5000) as client:
            response = await client.request("get", key="k")
            assert response["success"] is False
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.reader = None
        self.writer = None

    async def connect(self) -> None:
        """Establish connection to server."""
        self.reader, self.writer = await asyncio.open_connection(
            self.host, self.port
        )

    async def disconnect(self) -> None:
        """Close connection to server."""
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except OSError:
                pass

    async def send_line(self, line: str) -> dict:
        """Send a raw request line and decode the JSON response."""
        if not line.endswith('\n'):
            line += '\n'

        self.writer.write(line.encode())
        await self.writer.drain()

        response = await self.reader.readline()
        return json.loads(response.decode())

    async def request(self, op: str, **fields) -> dict:
        """Send a request built from keyword fields."""
        return await self.send_line(json.dumps(dict(fields, op=op)))

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


@pytest.fixture
def client_factory(server_port: int):
    """
    Factory fixture to create management clients.

    Usage:
        async def test_something(server, client_factory):
            async with client_factory() as admin:
                response = await admin.request("listKeys")
    """
    def factory() -> AdminClient:
        return AdminClient('127.0.0.1', server_port)
    return factory


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
