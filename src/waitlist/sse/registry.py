"""SSE connection registry.

Tracks every live push channel per user and fans events out to them.
Each connection owns exactly two timers: a repeating heartbeat and an
inactivity timeout that any successful write pushes back. Removing a
connection cancels both through ``Connection.cancel_timers``.

All methods are synchronous and run on the event loop thread, so no
operation interleaves with another. Broadcasts still iterate over a
snapshot because a failed write removes the connection being visited.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from waitlist.sse.events import Connected, NotificationEvent
from waitlist.sse.framing import format_event, format_heartbeat
from waitlist.sse.sink import Sink

logger = structlog.get_logger()

DEFAULT_HEARTBEAT_INTERVAL = 30.0
DEFAULT_INACTIVITY_TIMEOUT = 300.0


class ConnectionRegistrationError(Exception):
    """The initial ``connected`` event could not be written.

    The connection has already been removed and its sink closed.
    """


@dataclass
class Connection:
    """One browser tab's subscription."""

    id: str
    user_id: str
    sink: Sink
    loop: asyncio.AbstractEventLoop
    correlation_id: str | None = None
    connected_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    messages_sent: int = 0
    heartbeat_timer: asyncio.TimerHandle | None = field(default=None, repr=False)
    inactivity_timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def timers_active(self) -> bool:
        return any(
            timer is not None and not timer.cancelled()
            for timer in (self.heartbeat_timer, self.inactivity_timer)
        )

    def cancel_timers(self) -> None:
        if self.heartbeat_timer is not None:
            self.heartbeat_timer.cancel()
        if self.inactivity_timer is not None:
            self.inactivity_timer.cancel()


class ConnectionRegistry:
    """Owns all live SSE connections, keyed by user."""

    def __init__(
        self,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        inactivity_timeout: float = DEFAULT_INACTIVITY_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.heartbeat_interval = heartbeat_interval
        self.inactivity_timeout = inactivity_timeout
        self._clock = clock
        self._connections: dict[str, dict[str, Connection]] = {}  # user_id -> {conn_id: conn}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def register(self, user_id: str, sink: Sink, correlation_id: str | None = None) -> str:
        """Add a connection, start its timers and send the ``connected`` event.

        Must be called from within the running event loop. Raises
        ConnectionRegistrationError if the first write fails.
        """
        now = self._clock()
        conn = Connection(
            id=str(uuid.uuid4()),
            user_id=user_id,
            sink=sink,
            loop=asyncio.get_running_loop(),
            correlation_id=correlation_id,
            connected_at=now,
            last_activity=now,
        )
        self._connections.setdefault(user_id, {})[conn.id] = conn
        self._schedule_heartbeat(conn)
        self._reset_inactivity(conn)

        logger.info(
            "sse_connection_established",
            user_id=user_id,
            connection_id=conn.id,
            correlation_id=correlation_id,
            total_connections=self.total_connections(),
        )

        try:
            self._write(conn, format_event(Connected()))
        except Exception as exc:
            self._drop(conn, reason="initial_write_failed")
            raise ConnectionRegistrationError(
                f"failed to send connected event to {conn.id}"
            ) from exc

        return conn.id

    def unregister(self, user_id: str, connection_id: str) -> bool:
        """Remove a connection and cancel its timers. Does not close the sink.

        Returns False when the connection was already gone.
        """
        user_conns = self._connections.get(user_id)
        if not user_conns:
            return False
        conn = user_conns.pop(connection_id, None)
        if conn is None:
            return False

        conn.cancel_timers()
        if not user_conns:
            del self._connections[user_id]

        logger.info(
            "sse_connection_closed",
            user_id=user_id,
            connection_id=connection_id,
            remaining_connections=self.total_connections(),
        )
        return True

    def close_all(self) -> None:
        """Close every connection and cancel every timer (process shutdown)."""
        connections = [c for conns in self._connections.values() for c in conns.values()]
        self._connections.clear()

        for conn in connections:
            conn.cancel_timers()
            self._close_sink(conn)

        logger.info("sse_registry_closed", closed_connections=len(connections))

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def broadcast(self, user_id: str, event: NotificationEvent) -> int:
        """Write an event to every live connection of a user.

        A failing connection is removed and closed; the rest still get the
        event. Returns the number of successful writes (0 when the user has
        no connections, which is the normal offline case).
        """
        user_conns = self._connections.get(user_id)
        if not user_conns:
            logger.debug("sse_broadcast_no_connections", user_id=user_id, event_type=event.type)
            return 0

        chunk = format_event(event)
        sent = 0
        failed = 0

        for conn in list(user_conns.values()):
            if self.get_connection(user_id, conn.id) is None:
                continue
            try:
                self._write(conn, chunk)
                sent += 1
            except Exception as exc:
                failed += 1
                logger.warning(
                    "sse_send_failed",
                    user_id=user_id,
                    connection_id=conn.id,
                    event_type=event.type,
                    error=str(exc),
                )
                self._drop(conn, reason="write_failed")

        logger.info(
            "sse_broadcast",
            user_id=user_id,
            event_type=event.type,
            success_count=sent,
            failure_count=failed,
        )
        return sent

    def _write(self, conn: Connection, chunk: str) -> None:
        conn.sink.write(chunk)
        conn.last_activity = self._clock()
        conn.messages_sent += 1
        self._reset_inactivity(conn)

    def _drop(self, conn: Connection, reason: str) -> None:
        """Internal removal after a failure or timeout: unregister and close."""
        if self.unregister(conn.user_id, conn.id):
            logger.info("sse_connection_dropped", user_id=conn.user_id, connection_id=conn.id, reason=reason)
            self._close_sink(conn)

    @staticmethod
    def _close_sink(conn: Connection) -> None:
        try:
            conn.sink.close()
        except Exception:
            logger.warning("sse_sink_close_failed", connection_id=conn.id, exc_info=True)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _schedule_heartbeat(self, conn: Connection) -> None:
        conn.heartbeat_timer = conn.loop.call_later(
            self.heartbeat_interval, self._on_heartbeat, conn.user_id, conn.id
        )

    def _reset_inactivity(self, conn: Connection) -> None:
        if conn.inactivity_timer is not None:
            conn.inactivity_timer.cancel()
        conn.inactivity_timer = conn.loop.call_later(
            self.inactivity_timeout, self._on_inactive, conn.user_id, conn.id
        )

    def _on_heartbeat(self, user_id: str, connection_id: str) -> None:
        conn = self.get_connection(user_id, connection_id)
        if conn is None:
            return
        try:
            self._write(conn, format_heartbeat(int(self._clock() * 1000)))
        except Exception as exc:
            logger.warning(
                "sse_heartbeat_failed",
                user_id=user_id,
                connection_id=connection_id,
                error=str(exc),
            )
            self._drop(conn, reason="heartbeat_failed")
            return
        self._schedule_heartbeat(conn)

    def _on_inactive(self, user_id: str, connection_id: str) -> None:
        conn = self.get_connection(user_id, connection_id)
        if conn is None:
            return
        self._drop(conn, reason="inactivity_timeout")

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_connection(self, user_id: str, connection_id: str) -> Connection | None:
        return self._connections.get(user_id, {}).get(connection_id)

    def connection_count(self, user_id: str) -> int:
        return len(self._connections.get(user_id, {}))

    def total_connections(self) -> int:
        return sum(len(conns) for conns in self._connections.values())

    def active_user_count(self) -> int:
        return len(self._connections)

    def get_stats(self) -> dict:
        return {
            "total_connections": self.total_connections(),
            "active_users": self.active_user_count(),
        }
