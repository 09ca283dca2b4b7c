"""
Admission control and per-session bookkeeping.
"""

import asyncio
import itertools
import logging
import threading
import time
from enum import Enum
from typing import Any, Dict, Optional

log = logging.getLogger("trojanws.manager")


class SessionState(Enum):
    PENDING_AUTH = "pending_auth"
    CONNECTING = "connecting"
    RELAYING = "relaying"
    CLOSING = "closing"
    CLOSED = "closed"


class Session:
    """
    One admitted client connection, from handshake to teardown.

    Only ConnectionManager creates sessions and only ConnectionManager.release()
    sets `terminated`.
    """
    def __init__(self, session_id: str, websocket, peer: str = "unknown"):
        self.id = session_id
        self.websocket = websocket
        self.peer = peer
        self.state = SessionState.PENDING_AUTH
        self.created_at = time.time()
        self.last_activity = self.created_at
        self.heartbeat: Optional[asyncio.Task] = None
        self.target = None
        self._upstream: Optional[asyncio.StreamWriter] = None
        self._terminated = False

    @property
    def upstream(self) -> Optional[asyncio.StreamWriter]:
        return self._upstream

    @property
    def terminated(self) -> bool:
        return self._terminated

    def attach_upstream(self, writer: asyncio.StreamWriter):
        if self._upstream is not None:
            raise RuntimeError(f"Session {self.id} already has an outbound connection")
        self._upstream = writer

    def touch(self):
        self.last_activity = time.time()

    def __repr__(self) -> str:
        return f"<Session {self.id} {self.peer} {self.state.value}>"


class ConnectionManager:
    """
    Process-wide live session counter.

    admit() and release() take a lock so the count stays exact even when the
    manager is shared by several event loops.
    """
    def __init__(self, max_connections: int):
        self.max_connections = max_connections
        self._active = 0
        self._lock = threading.Lock()
        self._seq = itertools.count(1)
        self.sessions_total = 0
        self.sessions_rejected = 0
        self.uptime_start = time.time()

    @property
    def active_count(self) -> int:
        return self._active

    def admit(self, websocket, peer: str = "unknown") -> Optional[Session]:
        """Return a new Session, or None when at capacity."""
        with self._lock:
            if self._active >= self.max_connections:
                self.sessions_rejected += 1
                return None
            self._active += 1
            self.sessions_total += 1
            seq = next(self._seq)
            active = self._active

        session_id = f"{int(time.time() * 1000):x}-{seq}"
        log.debug(f"Admitted session {session_id} from {peer} ({active}/{self.max_connections})")
        return Session(session_id, websocket, peer)

    def release(self, session: Session) -> bool:
        """
        Free the slot held by `session`. Only the first call per session has
        any effect; returns whether this call released it.
        """
        with self._lock:
            if session._terminated:
                return False
            session._terminated = True
            self._active = max(0, self._active - 1)
            active = self._active

        log.debug(f"Released session {session.id}, connection count: {active}")
        return True

    def get_stats(self) -> Dict[str, Any]:
        return {
            'uptime_seconds': int(time.time() - self.uptime_start),
            'connections_active': self._active,
            'connections_max': self.max_connections,
            'sessions_total': self.sessions_total,
            'sessions_rejected': self.sessions_rejected,
        }

    def log_stats(self):
        stats = self.get_stats()
        log.info(f"Stats: Active Conns={stats['connections_active']}/{stats['connections_max']}, "
                 f"Total Sessions={stats['sessions_total']}, "
                 f"Rejected={stats['sessions_rejected']}, "
                 f"Uptime={stats['uptime_seconds']}s")
