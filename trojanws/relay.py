"""
Per-session relay engine.

    PENDING_AUTH -> CONNECTING -> RELAYING -> CLOSING -> CLOSED

Any failure before RELAYING goes straight to teardown. close() is the only
way into CLOSED and it is safe to call any number of times, from any leg.
"""

import asyncio
import logging
import random
from typing import Optional, Sequence, Union

from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from trojanws.auth import AuthValidator
from trojanws.config import RelayConfig
from trojanws.endpoints import select_endpoint
from trojanws.errors import (
    CloseCode,
    HandshakeTimeout,
    NetworkError,
    RelayError,
    clip_reason,
)
from trojanws.header import ProxyHeader, ProxyTarget, parse_header
from trojanws.manager import ConnectionManager, Session, SessionState

log = logging.getLogger("trojanws.relay")

_FINAL_STATES = (SessionState.CLOSING, SessionState.CLOSED)

# Seconds a graceful outbound close may take before the connection is aborted
UPSTREAM_CLOSE_TIMEOUT = 5


def as_bytes(message: Union[bytes, bytearray, memoryview, str]) -> bytes:
    """WebSocket text frames are relayed as their UTF-8 bytes."""
    if isinstance(message, str):
        return message.encode("utf-8")
    return bytes(message)


class RelaySession:
    """
    Drives one admitted session: handshake, auth, outbound connect, then a
    bidirectional byte pipe with a heartbeat running alongside.
    """
    def __init__(
        self,
        session: Session,
        config: RelayConfig,
        manager: ConnectionManager,
        validator: AuthValidator,
        pool: Optional[Sequence[str]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.session = session
        self.ws = session.websocket
        self.config = config
        self.manager = manager
        self.validator = validator
        self.pool = tuple(pool) if pool else config.proxy_ips
        self.rng = rng
        self._reader: Optional[asyncio.StreamReader] = None

    def _tag(self) -> str:
        return f"[{self.session.id} {self.session.peer}]"

    async def run(self):
        session = self.session
        try:
            header = await self._read_handshake()
            self.validator.check(header.token)
            session.target = header.target
            log.info(f"{self._tag()} Proxy request: {header.target}")

            await self._connect(header.target)
            await self._relay()
        except RelayError as e:
            target = session.target or "-"
            log.warning(f"{self._tag()} {type(e).__name__} (target {target}): {e}")
            await self.close(e.close_code, e.reason)
        except ConnectionClosed as e:
            log.debug(f"{self._tag()} Client disconnected during {session.state.value}: {e}")
        except Exception as e:
            log.error(f"{self._tag()} Unexpected error: {e}", exc_info=True)
            await self.close(CloseCode.INTERNAL_ERROR, "Internal error")
        finally:
            await self.close()

    # --- HANDSHAKE ---
    async def _read_handshake(self) -> ProxyHeader:
        timeout = self.config.handshake_timeout
        try:
            message = await asyncio.wait_for(self.ws.recv(), timeout)
        except asyncio.TimeoutError:
            raise HandshakeTimeout(f"No handshake within {timeout}s")
        self.session.touch()
        return parse_header(as_bytes(message))

    # --- OUTBOUND ---
    async def _connect(self, target: ProxyTarget):
        self.session.state = SessionState.CONNECTING
        host, port = select_endpoint(target, self.pool, self.rng)
        log.info(f"{self._tag()} Connecting to {host}:{port}")

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), self.config.connect_timeout
            )
        except asyncio.TimeoutError:
            raise NetworkError(f"Connect to {host}:{port} timed out")
        except (OSError, UnicodeError) as e:
            raise NetworkError(f"Connect to {host}:{port} failed: {e}")

        self.session.attach_upstream(writer)
        self._reader = reader

        if target.payload:
            try:
                writer.write(target.payload)
                await writer.drain()
            except OSError as e:
                raise NetworkError(f"Initial write to {host}:{port} failed: {e}")

    # --- PIPING ---
    async def _relay(self):
        session = self.session
        session.state = SessionState.RELAYING

        legs = [
            asyncio.create_task(self._upstream_to_client()),
            asyncio.create_task(self._client_to_upstream()),
        ]
        watched = list(legs)
        if self.config.keepalive_interval > 0:
            session.heartbeat = asyncio.create_task(self._heartbeat())
            watched.append(session.heartbeat)

        try:
            done, _ = await asyncio.wait(watched, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in legs:
                task.cancel()
            await asyncio.gather(*legs, return_exceptions=True)

        for task in done:
            if task.cancelled():
                continue
            exc = task.exception()
            if isinstance(exc, RelayError):
                raise exc
            if exc is not None:
                raise NetworkError(f"Relay failed: {exc}") from exc

        await self.close(CloseCode.NORMAL, "Connection finished")

    async def _upstream_to_client(self):
        """Target -> client. Ends on target EOF or once the channel is gone."""
        while True:
            data = await self._reader.read(self.config.buffer_size)
            if not data:
                log.debug(f"{self._tag()} Socket readable closed")
                return
            if self.ws.state is not State.OPEN:
                return
            try:
                await self.ws.send(data)
            except ConnectionClosed:
                return
            self.session.touch()

    async def _client_to_upstream(self):
        """Client -> target, one WebSocket message at a time."""
        writer = self.session.upstream
        try:
            async for message in self.ws:
                writer.write(as_bytes(message))
                await writer.drain()
                self.session.touch()
        except ConnectionClosed as e:
            log.debug(f"{self._tag()} Client channel closed: {e}")
            return
        log.debug(f"{self._tag()} Client disconnected")

    async def _heartbeat(self):
        """Ping the client every keepalive interval; return once the channel is not open."""
        interval = self.config.keepalive_interval
        while True:
            await asyncio.sleep(interval)
            if self.ws.state is not State.OPEN:
                log.debug(f"{self._tag()} Heartbeat found channel {self.ws.state.name}")
                return
            try:
                await self.ws.ping()
            except ConnectionClosed:
                return
            except (OSError, RuntimeError) as e:
                raise NetworkError(f"Keepalive send error: {e}")

    # --- TEARDOWN ---
    def _cancel_heartbeat(self):
        task = self.session.heartbeat
        if task is None:
            return
        self.session.heartbeat = None
        if task is not asyncio.current_task():
            task.cancel()

    async def _close_upstream(self, code: int):
        """Close the outbound connection, aborting it when data cannot be flushed."""
        writer = self.session.upstream
        if writer is None or writer.is_closing():
            return

        transport = writer.transport
        # Unsent bytes mean the target stopped reading; a graceful close would wait on them forever
        if code != CloseCode.NORMAL or transport.get_write_buffer_size() > 0:
            transport.abort()
        else:
            writer.close()

        try:
            await asyncio.wait_for(writer.wait_closed(), UPSTREAM_CLOSE_TIMEOUT)
        except asyncio.TimeoutError:
            log.debug(f"{self._tag()} Outbound close timed out, aborting")
            transport.abort()
        except OSError as e:
            log.debug(f"{self._tag()} Outbound close error: {e}")

    async def close(self, code: int = CloseCode.NORMAL, reason: str = "Connection finished"):
        """Tear the session down. Only the first call does anything."""
        session = self.session
        if session.state in _FINAL_STATES:
            return
        session.state = SessionState.CLOSING

        try:
            self._cancel_heartbeat()
            await self._close_upstream(code)

            if self.ws.state is not State.CLOSED:
                try:
                    await self.ws.close(int(code), clip_reason(reason))
                except (ConnectionClosed, OSError) as e:
                    log.debug(f"{self._tag()} Cleanup error: {e}")
        finally:
            session.state = SessionState.CLOSED
            if self.manager.release(session):
                log.info(f"{self._tag()} Closed with {int(code)} ({reason}), "
                         f"connection count: {self.manager.active_count}")
