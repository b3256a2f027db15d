"""Integration tests for StoreClient against an in-process event store."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import msgpack
import pytest

from eventbench._internal.errors import ConnectError, ReadError
from eventbench.transport.client import StoreClient, parse_address

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from tests.conftest import FakeEventStore


@pytest.fixture
async def raw_server() -> AsyncIterator[Callable[..., Awaitable[str]]]:
    """Start a TCP server with a custom connection handler."""
    servers: list[asyncio.Server] = []

    async def _start(handler) -> str:
        server = await asyncio.start_server(handler, "127.0.0.1", 0)
        servers.append(server)
        return f"127.0.0.1:{server.sockets[0].getsockname()[1]}"

    yield _start
    for server in servers:
        server.close()


class TestParseAddress:
    def test_host_and_port(self):
        assert parse_address("10.1.2.3:7878") == ("10.1.2.3", 7878)

    def test_empty_host_defaults_to_loopback(self):
        assert parse_address(":7878") == ("127.0.0.1", 7878)

    @pytest.mark.parametrize("address", ["localhost", "localhost:", "localhost:http"])
    def test_invalid(self, address: str):
        with pytest.raises(ConnectError, match="expected host:port"):
            parse_address(address)


@pytest.mark.timeout(10)
class TestStoreClient:
    async def test_event_and_query(self, event_store: FakeEventStore):
        async with await StoreClient.connect(event_store.address) as client:
            reply = await client.request("EVENT in:ns entity:u1 loc:ca type:login")
            assert reply == {"status": "OK"}

            reply = await client.request("QUERY in:ns where:(loc:ca)")
            assert reply["status"] == "OK"
            assert reply["data"]["objects"] == [{"entity": "u1", "loc": "ca", "type": "login"}]

        assert client.closed
        assert event_store.commands == [
            "EVENT in:ns entity:u1 loc:ca type:login",
            "QUERY in:ns where:(loc:ca)",
        ]

    async def test_error_reply_is_data_not_exception(self, event_store: FakeEventStore):
        async with await StoreClient.connect(event_store.address) as client:
            reply = await client.request("GARBAGE_COMMAND args:none")
        assert reply["status"] == "ERR"
        assert "err_msg" in reply["data"]

    async def test_pipelined_replies_stay_in_order(self, event_store: FakeEventStore):
        async with await StoreClient.connect(event_store.address) as client:
            await client.send("EVENT in:ns entity:a loc:x")
            await client.send("EVENT in:ns entity:b loc:x")
            await client.send("QUERY in:ns where:(loc:x)")
            first = await client.receive()
            second = await client.receive()
            third = await client.receive()

        assert first == second == {"status": "OK"}
        assert [o["entity"] for o in third["data"]["objects"]] == ["a", "b"]

    async def test_empty_command_is_not_sent(self, event_store: FakeEventStore):
        async with await StoreClient.connect(event_store.address) as client:
            await client.send("")
            reply = await client.request("EVENT in:ns entity:a")
        assert reply == {"status": "OK"}
        assert event_store.commands == ["EVENT in:ns entity:a"]

    async def test_close_is_idempotent(self, event_store: FakeEventStore):
        client = await StoreClient.connect(event_store.address)
        await client.close()
        await client.close()
        assert client.closed

    async def test_connect_refused(self, closed_address: str):
        with pytest.raises(ConnectError, match="failed to connect") as exc_info:
            await StoreClient.connect(closed_address, timeout=2.0)
        assert exc_info.value.errno is not None

    async def test_read_timeout(self, raw_server):
        async def silent(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            await reader.read()
            writer.close()

        address = await raw_server(silent)
        async with await StoreClient.connect(address, timeout=0.2) as client:
            with pytest.raises(ReadError, match="timed out"):
                await client.request("QUERY in:ns where:(a:b)")

    async def test_peer_close(self, raw_server):
        async def hang_up(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            await reader.readline()
            writer.close()

        address = await raw_server(hang_up)
        async with await StoreClient.connect(address, timeout=2.0) as client:
            with pytest.raises(ReadError, match="connection closed by peer"):
                await client.request("EVENT in:ns entity:a")

    async def test_reply_split_across_packets(self, raw_server):
        payload = msgpack.packb({"status": "OK", "data": {"objects": [{"entity": "x" * 500}]}})

        async def dribble(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            await reader.readline()
            for i in range(0, len(payload), 7):
                writer.write(payload[i : i + 7])
                await writer.drain()
                await asyncio.sleep(0)
            await reader.read()
            writer.close()

        address = await raw_server(dribble)
        async with await StoreClient.connect(address, timeout=2.0) as client:
            reply = await client.request("QUERY in:ns where:(a:b)")
        assert reply["data"]["objects"][0]["entity"] == "x" * 500
