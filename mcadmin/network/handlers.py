"""
Management Request Handlers

Translate management requests into client calls and client errors into
the exact response strings management callers depend on.
"""

import logging

from ..client.connection import ConnectionManager
from ..client.operations import CacheClient
from ..errors import CacheError
from ..protocol.commands import Item, OperationType, Request, Response

logger = logging.getLogger(__name__)


class RequestHandler:
    """
    Dispatches management requests to the cache client.

    This is the only layer that turns exceptions into response text.
    Failures are reported with an operation-specific prefix, for example
    "Error saving: key and value are required".

    Attributes:
        manager: ConnectionManager shared by all management clients
        client: CacheClient bound to that manager
    """

    def __init__(self, manager: ConnectionManager = None, client: CacheClient = None):
        self.manager = manager if manager is not None else ConnectionManager()
        self.client = client if client is not None else CacheClient(self.manager)
        self._routes = {
            OperationType.CONNECT: self.handle_connect,
            OperationType.SET: self.handle_set,
            OperationType.GET: self.handle_get,
            OperationType.GET_MULTIPLE: self.handle_get_multiple,
            OperationType.DELETE: self.handle_delete,
            OperationType.FLUSH: self.handle_flush,
            OperationType.LIST_KEYS: self.handle_list_keys,
        }

    async def handle(self, request: Request) -> Response:
        """Route a parsed request to its handler."""
        if not request.valid:
            logger.error(f"Invalid request data: {request.raw!r}")
            return Response.invalid_data()

        route = self._routes.get(request.type)
        if route is None:
            logger.warning(f"Unknown operation: {request.raw!r}")
            return Response.failure("Unknown operation")

        return await route(request)

    async def handle_connect(self, request: Request) -> Response:
        if not request.url:
            return Response.failure("URL is required")

        try:
            await self.manager.connect(request.url)
        except CacheError as exc:
            logger.error(f"Failed to connect to Memcached (url={request.url!r}): {exc}")
            return Response.failure(f"Unable to connect: {exc}")

        logger.info(f"Successfully connected to Memcached (url={request.url!r})")
        return Response.ok("Connection successful!")

    async def handle_set(self, request: Request) -> Response:
        try:
            await self.client.set(request.key, request.value)
        except CacheError as exc:
            logger.error(f"Failed to set item (key={request.key!r}): {exc}")
            return Response.failure(f"Error saving: {exc}")

        logger.info(f"Item saved successfully (key={request.key!r})")
        return Response.ok("Item saved successfully!")

    async def handle_get(self, request: Request) -> Response:
        try:
            item = await self.client.get(request.key)
        except CacheError as exc:
            logger.warning(f"Item not found (key={request.key!r}): {exc}")
            return Response.failure(f"Item not found: {exc}")

        return Response.ok(items=[item])

    async def handle_get_multiple(self, request: Request) -> Response:
        try:
            items = await self.client.get_multiple(request.keys)
        except CacheError as exc:
            logger.warning(f"Failed to get multiple items (keys={request.keys!r}): {exc}")
            return Response.failure(str(exc))

        return Response.ok(items=items)

    async def handle_delete(self, request: Request) -> Response:
        try:
            await self.client.delete(request.key)
        except CacheError as exc:
            logger.error(f"Failed to delete item (key={request.key!r}): {exc}")
            return Response.failure(f"Error deleting: {exc}")

        logger.info(f"Item deleted successfully (key={request.key!r})")
        return Response.ok("Item deleted successfully!")

    async def handle_flush(self, request: Request) -> Response:
        try:
            await self.client.flush_all()
        except CacheError as exc:
            logger.error(f"Failed to flush cache: {exc}")
            return Response.failure(f"Error flushing cache: {exc}")

        logger.info("Cache flushed successfully")
        return Response.ok("All items cleared successfully!")

    async def handle_list_keys(self, request: Request) -> Response:
        try:
            keys = await self.client.get_all_keys()
        except CacheError as exc:
            logger.error(f"Failed to list keys: {exc}")
            return Response.failure(f"Error listing keys: {exc}")

        logger.info(f"Keys listed successfully (count={len(keys)})")
        return Response.ok(
            f"Found {len(keys)} keys",
            items=[Item(key=key) for key in keys],
        )
