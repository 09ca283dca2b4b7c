"""
WebSocket listener: admission control, session dispatch, HTTP pages and
graceful shutdown.
"""

import asyncio
import logging
import signal
from typing import Optional

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.datastructures import Headers
from websockets.http11 import Request, Response

from trojanws import pages
from trojanws.auth import AuthValidator
from trojanws.config import RelayConfig
from trojanws.endpoints import pool_from_path
from trojanws.errors import CapacityExceeded, CloseCode
from trojanws.manager import ConnectionManager
from trojanws.relay import RelaySession

log = logging.getLogger("trojanws.server")

STATS_INTERVAL = 60


def format_peer(address) -> str:
    if not address:
        return "unknown"
    return f"{address[0]}:{address[1]}"


class RelayServer:
    """
    Owns the listener and the process-wide ConnectionManager.

    Responsibilities:
    - Accept WebSocket upgrades and hand admitted ones to a RelaySession
    - Refuse upgrades past max_connections before allocating anything
    - Answer plain HTTP requests (health, status, subscription)
    - Log periodic stats and shut down cleanly on SIGINT/SIGTERM
    """
    def __init__(self, config: RelayConfig):
        self.config = config
        self.manager = ConnectionManager(config.max_connections)
        self.validator = AuthValidator(config.password)
        self.running = False
        self.shutdown_event: Optional[asyncio.Event] = None
        self._server: Optional[Server] = None

    @property
    def bound_port(self) -> Optional[int]:
        if self._server is None:
            return None
        return self._server.sockets[0].getsockname()[1]

    def _setup_signal_handlers(self):
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self._shutdown, sig)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    def _shutdown(self, sig):
        log.info(f"[SHUTDOWN] Received signal {sig}, initiating graceful shutdown...")
        self.running = False
        if self.shutdown_event is not None:
            self.shutdown_event.set()

    async def listen(self):
        """Bind the listener without blocking."""
        self._server = await serve(
            self.handle_client,
            self.config.host,
            self.config.port,
            process_request=self.process_request,
            ping_interval=None,
            max_size=None,
        )
        self.running = True
        log.info(f"Relay listening on {self.config.host}:{self.bound_port}")

    async def start(self):
        """Serve until a shutdown signal arrives."""
        log.info(f"Configuration: Max Connections={self.config.max_connections}, "
                 f"Keepalive={self.config.keepalive_interval}s, "
                 f"Relay Pool={len(self.config.proxy_ips)} endpoint(s)")
        if self.config.uses_default_password:
            log.warning("[SECURITY WARNING] Using the default password, set PASSWORD")

        self.shutdown_event = asyncio.Event()
        try:
            await self.listen()
        except OSError as e:
            log.error(f"Port bind failed: {e}")
            return

        self._setup_signal_handlers()
        stats = asyncio.create_task(self.task_stats_logger())
        log.info("[READY] Relay initialized and ready to serve")
        try:
            await self.shutdown_event.wait()
        finally:
            stats.cancel()
            await self.stop()
            log.info("Relay stopped")
            self.manager.log_stats()

    async def stop(self):
        self.running = False
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def task_stats_logger(self):
        """Periodically log relay statistics"""
        while self.running:
            await asyncio.sleep(STATS_INTERVAL)
            if self.running:
                self.manager.log_stats()

    # --- HTTP ---
    def process_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return None

        host = request.headers.get("Host") or self.config.host
        status, content_type, body = pages.route(
            request.path, host, self.config, self.manager.active_count
        )
        headers = Headers([
            ("Content-Type", content_type),
            ("Content-Length", str(len(body))),
            ("Connection", "close"),
        ])
        return Response(status.value, status.phrase, headers, body)

    # --- WEBSOCKET ---
    async def handle_client(self, websocket: ServerConnection):
        peer = format_peer(websocket.remote_address)

        session = self.manager.admit(websocket, peer)
        if session is None:
            log.warning(f"Rejected {peer}: {CapacityExceeded.reason} "
                        f"({self.manager.active_count}/{self.manager.max_connections})")
            await websocket.close(int(CloseCode.CAPACITY_EXCEEDED), CapacityExceeded.reason)
            return

        pool = pool_from_path(websocket.request.path)
        if pool:
            log.info(f"[{session.id} {peer}] Using custom proxy IP: {pool[0]}")

        await RelaySession(session, self.config, self.manager, self.validator, pool).run()
