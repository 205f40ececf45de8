"""
Async Management Server Module

This module implements the asynchronous TCP server management clients
talk to. Each client connection is served by its own coroutine; all of
them share one RequestHandler and therefore one memcached connection.

Key asyncio concepts used:
- asyncio.start_server(): Create a TCP server
- StreamReader.readline(): Read a request line from the client
- StreamWriter.write() / drain(): Send the response line
- Connection cleanup with writer.close() / wait_closed()
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from typing import Optional

from ..config.settings import settings
from ..protocol.commands import OperationType, Response
from ..protocol.parser import RequestParser
from .handlers import RequestHandler

logger = logging.getLogger(__name__)

REQUEST_TOO_LARGE = "Request too large"


class AdminServer:
    """
    Asynchronous TCP server for the management protocol.

    Features:
    - Non-blocking I/O with asyncio
    - Persistent connections (multiple requests per connection)
    - Request lines capped at max_request_size; an oversized line is
      answered with an error and ends the session
    - Graceful error handling and connection cleanup
    - One shared RequestHandler across all connections

    Usage:
        server = AdminServer(host='127.0.0.1', port=5000)
        await server.start()  # Runs forever

    Attributes:
        host: Server bind address
        port: Server port number
        handler: The RequestHandler executing requests
        parser: The RequestParser for decoding requests
        max_request_size: Longest request line accepted, in bytes
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            handler: RequestHandler = None,
            max_request_size: int = None,
    ):
        """
        Initialize the server.

        Args:
            host: Bind address (default from settings)
            port: Port number (default from settings)
            handler: RequestHandler instance (creates new one if not provided)
            max_request_size: Longest request line accepted, in bytes
                (default from settings)
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.handler = handler if handler is not None else RequestHandler()
        self.max_request_size = (
            max_request_size if max_request_size is not None else settings.MAX_REQUEST_SIZE
        )
        self.parser = RequestParser()

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._running = False
        self._connection_count = 0
        self._total_requests = 0

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """
        Handle a single management client.

        Reads one JSON request per line, executes it, and writes one JSON
        response per line until the client disconnects or sends quit.
        """
        addr = writer.get_extra_info('peername')
        self._connection_count += 1
        logger.debug(f"Client connected: {addr}")

        try:
            while True:
                try:
                    data = await reader.readline()
                except (ValueError, asyncio.LimitOverrunError):
                    # The rest of the oversized line may still be in flight,
                    # so the session cannot be resynchronized
                    logger.warning(
                        f"Request from {addr} exceeds {self.max_request_size} bytes, closing"
                    )
                    response = Response.failure(REQUEST_TOO_LARGE)
                    writer.write(self.parser.format_response(response).encode())
                    await writer.drain()
                    break

                if not data:
                    logger.debug(f"Client disconnected: {addr}")
                    break

                try:
                    raw = data.decode().rstrip('\r\n')
                except UnicodeDecodeError:
                    response = Response.invalid_data()
                    writer.write(self.parser.format_response(response).encode())
                    await writer.drain()
                    continue

                if not raw.strip():
                    continue

                request = self.parser.parse_request(raw)

                if request.valid and request.type == OperationType.QUIT:
                    logger.debug(f"Client requested quit: {addr}")
                    break

                self._total_requests += 1
                response = await self.handler.handle(request)

                writer.write(self.parser.format_response(response).encode())
                await writer.drain()

        except ConnectionResetError:
            logger.debug(f"Connection reset by client: {addr}")
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {addr}: {exc}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    async def start(self) -> None:
        """
        Start the server and begin accepting connections.

        Runs until cancelled or stopped.

        Example:
            server = AdminServer(port=5000)
            asyncio.run(server.start())
        """
        if self._running:
            return

        self._server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port,
            limit=self.max_request_size,
        )
        self._running = True

        addrs = ', '.join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info(f"Serving on {addrs}")

        try:
            async with self._server:
                await self._server.serve_forever()
        except asyncio.CancelledError:
            logger.debug("Server start cancelled")
        finally:
            self._running = False

    async def stop(self) -> None:
        """
        Stop the server gracefully.

        Closes the listening socket and releases the memcached connection.
        """
        if self._server is not None:
            self._server.close()
            try:
                await self._server.wait_closed()
            finally:
                self._server = None
                self._running = False

        await self.handler.manager.close()

    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running

    def get_stats(self) -> dict:
        """
        Get server statistics.

        Returns:
            Dictionary with connection and request counts and the state of
            the memcached connection.
        """
        return {
            "running": self._running,
            "host": self.host,
            "port": self.port,
            "total_connections": self._connection_count,
            "total_requests": self._total_requests,
            "memcached": {
                "address": self.handler.manager.address,
                "connected": self.handler.manager.is_connected(),
            },
        }
