"""Session broadcaster: role bookkeeping for /ws connections and scan/count fan-out."""
import asyncio
import logging
from typing import Any, Protocol

from ..state import Role, ScanPayload, SessionState

logger = logging.getLogger(__name__)

SCANNER_COUNT = "scanner-count"
QR_UPDATE = "qr-update"

SEND_TIMEOUT = 5.0
OUTBOX_LIMIT = 32


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class Outbox:
    """Per-connection FIFO drained by one writer task; a slow peer only delays itself."""

    def __init__(self, conn: Connection, send_timeout: float = SEND_TIMEOUT, limit: int = OUTBOX_LIMIT):
        self.conn = conn
        self.send_timeout = send_timeout
        self.queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=limit)
        self.task = asyncio.create_task(self._run())

    def put(self, message: dict) -> None:
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Outbox full for %r, dropping %s", self.conn, message["event"])

    async def _run(self) -> None:
        while True:
            message = await self.queue.get()
            try:
                await asyncio.wait_for(self.conn.send_json(message), self.send_timeout)
            except asyncio.TimeoutError:
                logger.warning("Send %s to %r timed out after %.1fs", message["event"], self.conn, self.send_timeout)
            except Exception as e:
                logger.warning("Send %s failed: %s", message["event"], e)
            finally:
                self.queue.task_done()

    def close(self) -> None:
        self.task.cancel()


class SessionBroadcaster:
    """Owns the connection → role map and pushes updates to the right audience.

    Transitions mutate state and enqueue their messages under one lock with
    no await in between; the network sends happen in each connection's
    outbox, outside the lock. Every client therefore gets count updates in
    mutation order while a stalled client holds up nobody else.
    """

    def __init__(self, state: SessionState, send_timeout: float = SEND_TIMEOUT):
        self.state = state
        self.send_timeout = send_timeout
        self._roles: dict[Connection, Role | None] = {}
        self._outboxes: dict[Connection, Outbox] = {}
        self._lock = asyncio.Lock()

    def role_of(self, conn: Connection) -> Role | None:
        return self._roles.get(conn)

    def members(self, role: Role | None) -> list[Connection]:
        return [c for c, r in self._roles.items() if r is role]

    async def connect(self, conn: Connection) -> None:
        async with self._lock:
            self._roles.setdefault(conn, None)

    async def join_as_scanner(self, conn: Connection) -> None:
        async with self._lock:
            role = self._roles.get(conn)
            if role is Role.VIEWER:
                logger.warning("Viewer tried to re-join as scanner, ignored")
                return
            self._roles[conn] = Role.SCANNER
            count = self.state.increment_scanners()
            logger.info("Scanner joined (scanners=%d)", count)
            self._send_all(list(self._roles), SCANNER_COUNT, count)

    async def join_as_viewer(self, conn: Connection) -> None:
        async with self._lock:
            role = self._roles.get(conn)
            if role is Role.SCANNER:
                logger.warning("Scanner tried to re-join as viewer, ignored")
                return
            self._roles[conn] = Role.VIEWER
            logger.info("Viewer joined (viewers=%d)", len(self.members(Role.VIEWER)))
            if self.state.has_content():
                self._send_all([conn], QR_UPDATE, self._latest_message())

    async def qr_scanned(self, conn: Connection | None, data: Any) -> ScanPayload | None:
        """Replace the latest scan and push it to viewers. ``conn`` is None for HTTP publishers."""
        if data is None:
            logger.warning("qr-scanned without payload, dropped")
            return None
        async with self._lock:
            content = data.get("content") if isinstance(data, dict) else None
            payload = ScanPayload(content=content)
            self.state.latest = payload
            logger.info("QR scanned: %.80r", payload.content)
            self._send_all(self.members(Role.VIEWER), QR_UPDATE, self._latest_message())
            return payload

    async def disconnect(self, conn: Connection) -> None:
        async with self._lock:
            outbox = self._outboxes.pop(conn, None)
            if outbox:
                outbox.close()
            if conn not in self._roles:
                return
            role = self._roles.pop(conn)
            if role is Role.SCANNER:
                count = self.state.decrement_scanners()
                logger.info("Scanner left (scanners=%d)", count)
                self._send_all(list(self._roles), SCANNER_COUNT, count)

    async def flush(self, *conns: Connection) -> None:
        """Wait until the queued messages for ``conns`` (default: everyone) have been handed off."""
        targets = conns or tuple(self._outboxes)
        await asyncio.gather(*(self._outboxes[c].queue.join() for c in targets if c in self._outboxes))

    async def close(self) -> None:
        async with self._lock:
            for outbox in self._outboxes.values():
                outbox.close()
            self._outboxes.clear()

    def latest_message(self) -> dict | None:
        if not self.state.has_content():
            return None
        return self._latest_message()

    def snapshot(self) -> dict:
        return {
            "scanner_count": self.state.scanner_count,
            "scanners": len(self.members(Role.SCANNER)),
            "viewers": len(self.members(Role.VIEWER)),
            "unassigned": len(self.members(None)),
            "has_latest": self.state.latest is not None,
        }

    def _latest_message(self) -> dict:
        return self.state.latest.to_message(self.state.scanner_count)

    def _send_all(self, targets: list[Connection], event: str, data: Any) -> None:
        message = {"event": event, "data": data}
        for conn in targets:
            outbox = self._outboxes.get(conn)
            if outbox is None:
                outbox = self._outboxes[conn] = Outbox(conn, self.send_timeout)
            outbox.put(message)
