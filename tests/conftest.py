"""Shared test fixtures for the eventbench test suite."""

from __future__ import annotations

import asyncio
import re
import socket
import threading
import time
from typing import TYPE_CHECKING, Any

import msgpack
import pytest

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterator


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# In-process event store
# =============================================================================

_WHERE = re.compile(r"where:\((.*?)\)")


def _ok(data: dict[str, Any] | None = None) -> dict[str, Any]:
    reply: dict[str, Any] = {"status": "OK"}
    if data is not None:
        reply["data"] = data
    return reply


def _err(message: str) -> dict[str, Any]:
    return {"status": "ERR", "data": {"err_msg": message}}


def _pairs(text: str) -> dict[str, str]:
    """Parse ``k:v k:v`` tokens, ignoring anything without a colon."""
    return dict(tok.split(":", 1) for tok in text.split() if ":" in tok)


class FakeEventStore:
    """Minimal event store speaking the line protocol with MessagePack replies.

    ``EVENT in:<ns> entity:<e> k:v...`` stores an object that becomes
    queryable ``index_lag`` seconds later. ``QUERY in:<ns> where:(k:v ...)``
    supports ``take:N`` and ``cursor:N``; cursors are 1-based insertion ids
    and ``next_cursor`` is set when a page was truncated by ``take``.
    Anything else gets an ``ERR`` reply.

    Attributes:
        index_lag: Seconds between a write's acknowledgement and visibility.
        fail_all: Reply ``ERR`` to every command.
        commands: Every command line received, in order.
    """

    def __init__(self, *, index_lag: float = 0.0, fail_all: bool = False) -> None:
        self.index_lag = index_lag
        self.fail_all = fail_all
        self.commands: list[str] = []
        self.address = ""
        self._namespaces: dict[str, list[tuple[float, dict[str, str]]]] = {}
        self._server: asyncio.Server | None = None
        self._writers: set[asyncio.StreamWriter] = set()

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        port = self._server.sockets[0].getsockname()[1]
        self.address = f"127.0.0.1:{port}"

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for writer in list(self._writers):
            writer.close()
        await self._server.wait_closed()
        self._server = None

    def respond(self, text: str) -> dict[str, Any]:
        """Return the reply map for one command line."""
        if self.fail_all:
            return _err("server unavailable")
        verb, _, rest = text.partition(" ")
        if verb == "EVENT":
            return self._event(rest)
        if verb == "QUERY":
            return self._query(rest)
        return _err(f"unknown command: {verb}")

    def _event(self, rest: str) -> dict[str, Any]:
        attrs = _pairs(rest)
        namespace = attrs.pop("in", None)
        if not namespace or "entity" not in attrs:
            return _err("EVENT requires in: and entity:")
        visible_at = time.monotonic() + self.index_lag
        self._namespaces.setdefault(namespace, []).append((visible_at, attrs))
        return _ok()

    def _query(self, rest: str) -> dict[str, Any]:
        match = _WHERE.search(rest)
        if match is None:
            return _err("QUERY requires where:(...)")
        filters = _pairs(match.group(1))
        params = _pairs(_WHERE.sub("", rest))
        namespace = params.get("in")
        if not namespace:
            return _err("QUERY requires in:")
        try:
            take = int(params["take"]) if "take" in params else None
            cursor = int(params.get("cursor", "1"))
        except ValueError:
            return _err("take and cursor must be integers")

        now = time.monotonic()
        matches = [
            (obj_id, obj)
            for obj_id, (visible_at, obj) in enumerate(self._namespaces.get(namespace, []), start=1)
            if visible_at <= now
            and obj_id >= cursor
            and all(obj.get(k) == v for k, v in filters.items())
        ]
        page = matches[:take] if take is not None else matches
        data: dict[str, Any] = {"objects": [obj for _, obj in page]}
        if take is not None and len(matches) > take:
            data["next_cursor"] = page[-1][0] + 1
        return _ok(data)

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.add(writer)
        try:
            while line := await reader.readline():
                text = line.decode("utf-8", errors="replace").strip()
                if not text:
                    continue
                self.commands.append(text)
                writer.write(msgpack.packb(self.respond(text)))
                await writer.drain()
        except ConnectionError:
            pass
        finally:
            self._writers.discard(writer)
            writer.close()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def event_store() -> AsyncIterator[FakeEventStore]:
    """Function-scoped fake event store with immediate indexing."""
    store = FakeEventStore()
    await store.start()
    yield store
    await store.stop()


@pytest.fixture
async def make_event_store() -> AsyncIterator[Callable[..., Awaitable[FakeEventStore]]]:
    """Factory for fake event stores with custom lag or failure settings."""
    stores: list[FakeEventStore] = []

    async def _make(**kwargs: Any) -> FakeEventStore:
        store = FakeEventStore(**kwargs)
        await store.start()
        stores.append(store)
        return store

    yield _make
    for store in stores:
        await store.stop()


@pytest.fixture
def closed_address() -> str:
    """An address with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"127.0.0.1:{port}"


# =============================================================================
# Sync fixture for CLI tests
# =============================================================================


@pytest.fixture
def sync_event_store() -> Iterator[FakeEventStore]:
    """Fake event store running in a background thread for sync tests.

    The CLI runs its own event loop on the main thread, so the server
    needs a loop of its own.
    """
    store = FakeEventStore()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        loop.run_until_complete(store.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(store.stop())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield store

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)
