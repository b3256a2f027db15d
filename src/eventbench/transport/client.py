"""Async client for the event store's line protocol with MessagePack replies."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import msgpack

from eventbench._internal.errors import ConnectError, ReadError, SendError

if TYPE_CHECKING:
    from eventbench._internal.types import Response

DEFAULT_TIMEOUT = 5.0
_READ_CHUNK = 64 * 1024


def parse_address(address: str) -> tuple[str, int]:
    """Split a ``host:port`` address.

    Raises:
        ConnectError: If the address has no port or the port is not a number.
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        msg = f"invalid address {address!r}, expected host:port"
        raise ConnectError(msg)
    return host or "127.0.0.1", int(port)


class StoreClient:
    """One TCP connection to the event store.

    Commands are written as newline-terminated text; each command yields
    exactly one MessagePack-encoded reply. Every connect, send and receive
    is bounded by ``timeout`` so a hung socket cannot stall a caller.

    Use ``StoreClient.connect()`` to open a connection, or the class as an
    async context manager::

        async with await StoreClient.connect("127.0.0.1:7878") as client:
            reply = await client.request("QUERY in:ns where:(loc:ca)")

    Attributes:
        address: The ``host:port`` this client is connected to.
        timeout: Per-call deadline in seconds.
    """

    def __init__(
        self,
        address: str,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.address = address
        self.timeout = timeout
        self._reader = reader
        self._writer = writer
        self._unpacker = msgpack.Unpacker(raw=False)
        self._closed = False

    @classmethod
    async def connect(cls, address: str, timeout: float = DEFAULT_TIMEOUT) -> StoreClient:
        """Open a connection to ``address``.

        Args:
            address: ``host:port`` of the event store.
            timeout: Deadline for establishing the connection, reused as the
                per-call deadline for send and receive.

        Returns:
            A connected client.

        Raises:
            ConnectError: If the connection is refused, times out, or the
                local host cannot allocate a socket. ``errno`` is preserved.
        """
        host, port = parse_address(address)
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=timeout,
            )
        except TimeoutError:
            msg = f"failed to connect to {address}: timed out after {timeout}s"
            raise ConnectError(msg) from None
        except OSError as exc:
            msg = f"failed to connect to {address}: {exc}"
            raise ConnectError(msg, errno=exc.errno) from exc
        return cls(address, reader, writer, timeout=timeout)

    async def __aenter__(self) -> StoreClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        """Return True once ``close()`` has been called."""
        return self._closed

    async def send(self, command: str) -> None:
        """Write one command line.

        Empty commands are ignored. A trailing newline is appended if missing.

        Raises:
            SendError: If the write fails or does not drain before the deadline.
        """
        if not command:
            return
        if not command.endswith("\n"):
            command += "\n"

        try:
            self._writer.write(command.encode("utf-8"))
            await asyncio.wait_for(self._writer.drain(), timeout=self.timeout)
        except TimeoutError:
            msg = f"send timed out after {self.timeout}s"
            raise SendError(msg) from None
        except (OSError, RuntimeError) as exc:
            msg = f"send failed: {exc}"
            raise SendError(msg) from exc

    async def receive(self) -> Response:
        """Read and decode exactly one reply.

        Raises:
            ReadError: On timeout, connection close, or malformed MessagePack.
        """
        try:
            return await asyncio.wait_for(self._read_one(), timeout=self.timeout)
        except TimeoutError:
            msg = f"read timed out after {self.timeout}s"
            raise ReadError(msg) from None
        except OSError as exc:
            msg = f"read failed: {exc}"
            raise ReadError(msg) from exc

    async def request(self, command: str) -> Response:
        """Send ``command`` and return its reply."""
        await self.send(command)
        return await self.receive()

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await asyncio.wait_for(self._writer.wait_closed(), timeout=self.timeout)
        except (OSError, TimeoutError):
            # Peer already gone; the transport is closed either way
            pass

    async def _read_one(self) -> Response:
        while True:
            try:
                return next(self._unpacker)
            except StopIteration:
                pass
            except ValueError as exc:
                msg = f"malformed reply: {exc}"
                raise ReadError(msg) from exc

            chunk = await self._reader.read(_READ_CHUNK)
            if not chunk:
                msg = "connection closed by peer"
                raise ReadError(msg)
            self._unpacker.feed(chunk)
