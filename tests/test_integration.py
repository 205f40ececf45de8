"""
Integration Tests

End-to-end tests that drive the management server against the fake
memcached, including concurrent clients sharing one connection.

Run with: python -m pytest tests/test_integration.py -v
"""

import asyncio

import pytest

from tests.conftest import AdminClient


@pytest.mark.asyncio
@pytest.mark.integration
class TestEndToEnd:
    """End-to-end integration tests."""

    async def test_complete_workflow(self, server, server_port, memcached_address):
        async with AdminClient('127.0.0.1', server_port) as client:
            assert (await client.request("connect", url=memcached_address))["success"]

            # Create multiple keys
            for key, value in [("user:1", "alice"), ("user:2", "bob"), ("user:3", "charlie")]:
                response = await client.request("set", key=key, value=value)
                assert response["success"], response

            # Read them back
            response = await client.request("getMultiple", keys=["user:1", "user:3", "user:9"])
            assert response["items"] == [
                {"key": "user:1", "value": "alice"},
                {"key": "user:3", "value": "charlie"},
            ]

            # Update a key
            await client.request("set", key="user:1", value="alice_updated")
            response = await client.request("get", key="user:1")
            assert response["items"][0]["value"] == "alice_updated"

            # Delete a key
            assert (await client.request("delete", key="user:2"))["success"]
            response = await client.request("get", key="user:2")
            assert response == {"success": False, "error": "Item not found: memcache: cache miss"}

            # Enumerate
            response = await client.request("listKeys")
            assert response["message"] == "Found 2 keys"
            assert sorted(item["key"] for item in response["items"]) == ["user:1", "user:3"]

            # Flush
            response = await client.request("flush")
            assert response["message"] == "All items cleared successfully!"
            response = await client.request("getMultiple", keys=["user:1", "user:3"])
            assert response == {"success": False, "error": "no items found"}

    async def test_failed_reconnect_disconnects(self, server, server_port, memcached_address):
        async with AdminClient('127.0.0.1', server_port) as client:
            await client.request("connect", url=memcached_address)

            response = await client.request("connect", url="http://evil.example")
            assert response["error"] == "Unable to connect: invalid URL format"
            # Rejected addresses never dial, the old connection stays
            assert (await client.request("set", key="k", value="v"))["success"]

            response = await client.request("connect", url="127.0.0.1:1")
            assert response["success"] is False

            response = await client.request("get", key="k")
            assert response["error"] == "Item not found: not connected to Memcached"

    async def test_shared_connection_between_clients(self, server, server_port, memcached_address):
        async with AdminClient('127.0.0.1', server_port) as first:
            await first.request("connect", url=memcached_address)
            await first.request("set", key="shared", value="yes")

        async with AdminClient('127.0.0.1', server_port) as second:
            response = await second.request("get", key="shared")
            assert response["items"] == [{"key": "shared", "value": "yes"}]

    @pytest.mark.slow
    async def test_concurrent_clients(self, server, server_port, memcached_address):
        async with AdminClient('127.0.0.1', server_port) as client:
            await client.request("connect", url=memcached_address)

        async def worker(n: int):
            async with AdminClient('127.0.0.1', server_port) as client:
                for i in range(20):
                    key = f"w{n}:{i}"
                    value = f"value-{n}-{i}" * (i % 5 + 1)
                    assert (await client.request("set", key=key, value=value))["success"]
                    response = await client.request("get", key=key)
                    assert response["items"] == [{"key": key, "value": value}]

        await asyncio.gather(*(worker(n) for n in range(10)))

        async with AdminClient('127.0.0.1', server_port) as client:
            response = await client.request("listKeys")
            assert response["message"] == "Found 200 keys"
