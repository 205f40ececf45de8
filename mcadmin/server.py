#!/usr/bin/env python3
"""
MC-Admin Server Entry Point

This is the main entry point for starting the management service.

Usage:
    python -m mcadmin.server                         # Default settings (127.0.0.1:5000)
    python -m mcadmin.server --port 8080             # Custom port
    python -m mcadmin.server --memcached memcached   # Connect at startup
    python -m mcadmin.server --debug                 # Enable debug logging

Environment Variables:
    MCADMIN_HOST        - Server bind address
    MCADMIN_PORT        - Server port
    MCADMIN_MEMCACHED   - Memcached address to connect to at startup
    MCADMIN_TIMEOUT     - Memcached operation timeout in seconds
    MCADMIN_MAX_REQUEST_SIZE - Longest accepted request line in bytes
    MCADMIN_DEBUG       - Enable debug mode (true/false)
    MCADMIN_LOG_LEVEL   - Log level when not in debug mode
"""

import argparse
import asyncio
import logging
import signal
import sys

from .client.connection import ConnectionManager
from .config.settings import settings
from .errors import CacheError
from .network.handlers import RequestHandler
from .network.tcp_server import AdminServer


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="MC-Admin: Memcached Management Service",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Host address to bind to",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Port number to listen on",
    )

    parser.add_argument(
        "--memcached",
        type=str,
        default=settings.MEMCACHED,
        help="Memcached address to connect to at startup",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.TIMEOUT,
        help="Memcached operation timeout in seconds",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


async def serve(args: argparse.Namespace) -> None:
    """Build the service, optionally connect, and run until stopped."""
    logger = logging.getLogger(__name__)

    manager = ConnectionManager(timeout=args.timeout)
    server = AdminServer(
        host=args.host,
        port=args.port,
        handler=RequestHandler(manager),
    )

    if args.memcached:
        try:
            await manager.connect(args.memcached)
            logger.info(f"Connected to Memcached at {manager.address}")
        except CacheError as exc:
            logger.error(f"Unable to connect to Memcached at startup: {exc}")

    loop = asyncio.get_running_loop()
    server_task = asyncio.create_task(server.start())

    def shutdown(sig: signal.Signals) -> None:
        """Handle shutdown signal."""
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        server_task.cancel()

    # Register signal handlers (Unix only)
    if sys.platform != 'win32':
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, shutdown, sig)

    try:
        await server_task
    except asyncio.CancelledError:
        pass
    finally:
        await server.stop()


def main(argv=None) -> None:
    """Main entry point for the service."""
    args = parse_args(argv)

    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    logger.info("Starting MC-Admin server")
    logger.info(f"  Host: {args.host}")
    logger.info(f"  Port: {args.port}")
    logger.info(f"  Memcached: {args.memcached or '(not connected)'}")
    logger.info(f"  Timeout: {args.timeout}s")
    logger.info(f"  Debug: {args.debug}")

    try:
        asyncio.run(serve(args))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise
    finally:
        logger.info("Server shutdown complete")


if __name__ == "__main__":
    main()
