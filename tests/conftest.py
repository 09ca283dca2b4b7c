import asyncio

import pytest_asyncio
from websockets.exceptions import ConnectionClosedOK
from websockets.protocol import State

from trojanws.digest import sha224_hex
from trojanws.header import AddressType, build_header

PASSWORD = "proxy"

_CLOSED = object()


def ipv4_handshake(password: str, host: str, port: int, payload: bytes = b"") -> bytes:
    raw = bytes(int(part) for part in host.split("."))
    return build_header(sha224_hex(password), AddressType.IPV4, raw, port, payload)


def domain_handshake(password: str, name: str, port: int, payload: bytes = b"") -> bytes:
    return build_header(sha224_hex(password), AddressType.DOMAIN, name.encode(), port, payload)


class FakeWebSocket:
    """In-memory stand-in for a websockets ServerConnection."""
    def __init__(self, *messages, remote_address=("203.0.113.7", 40000)):
        self.incoming: asyncio.Queue = asyncio.Queue()
        for message in messages:
            self.incoming.put_nowait(message)
        self.remote_address = remote_address
        self.state = State.OPEN
        self.sent = []
        self.pings = 0
        self.close_calls = 0
        self.close_code = None
        self.close_reason = None

    def feed(self, message):
        self.incoming.put_nowait(message)

    def hang_up(self):
        """Client side goes away."""
        self.state = State.CLOSED
        self.incoming.put_nowait(_CLOSED)

    @property
    def received(self) -> bytes:
        return b"".join(self.sent)

    async def recv(self):
        item = await self.incoming.get()
        if item is _CLOSED:
            self.incoming.put_nowait(_CLOSED)
            raise ConnectionClosedOK(None, None)
        return item

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.incoming.get()
        if item is _CLOSED:
            self.incoming.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    async def send(self, data):
        if self.state is not State.OPEN:
            raise ConnectionClosedOK(None, None)
        self.sent.append(bytes(data))

    async def ping(self):
        if self.state is not State.OPEN:
            raise ConnectionClosedOK(None, None)
        self.pings += 1
        return asyncio.get_running_loop().create_future()

    async def close(self, code=1000, reason=""):
        self.close_calls += 1
        if self.state is State.CLOSED:
            return
        self.state = State.CLOSED
        self.close_code = code
        self.close_reason = reason
        self.incoming.put_nowait(_CLOSED)


class TargetServer:
    """Local TCP target that records what it receives and optionally echoes it.

    With reading=False it accepts connections but never reads from them until
    released, so the relay's outbound buffer backs up.
    """
    def __init__(self, echo: bool = True, reading: bool = True):
        self.echo = echo
        self.reading = reading
        self.released = asyncio.Event()
        self.received = bytearray()
        self.connections = 0
        self.writers = []
        self.disconnected = asyncio.Event()
        self._server = None

    @property
    def port(self) -> int:
        return self._server.sockets[0].getsockname()[1]

    async def start(self):
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)

    async def stop(self):
        self.released.set()
        for writer in self.writers:
            writer.close()
        self._server.close()
        await self._server.wait_closed()

    async def _handle(self, reader, writer):
        self.connections += 1
        self.writers.append(writer)
        try:
            if not self.reading:
                await self.released.wait()
                return
            while True:
                data = await reader.read(65536)
                if not data:
                    break
                self.received += data
                if self.echo:
                    writer.write(data)
                    await writer.drain()
        except ConnectionError:
            pass
        finally:
            self.disconnected.set()
            writer.close()

    async def wait_for_bytes(self, count: int, timeout: float = 2.0):
        async def _poll():
            while len(self.received) < count:
                await asyncio.sleep(0.01)
        await asyncio.wait_for(_poll(), timeout)


async def wait_until(predicate, timeout: float = 2.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(_poll(), timeout)


@pytest_asyncio.fixture
async def target():
    server = TargetServer()
    await server.start()
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def stalled_target():
    server = TargetServer(echo=False, reading=False)
    await server.start()
    yield server
    await server.stop()
