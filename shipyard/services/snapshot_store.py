"""
Per-view snapshot buffers with request sequencing.

Each (user, view) pair owns one buffer. A refresh takes a ticket with
``begin``; only the newest ticket may ``commit`` its payload, so a slow,
older response can never overwrite a newer one. ``fail`` records the error
but keeps the last good payload readable.

    store = SnapshotStore()
    seq = store.begin("u1", "dashboard")
    store.commit("u1", "dashboard", seq, payload)   # True unless superseded
    store.get("u1", "dashboard").payload
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

EXTENSION_KEY = "snapshot_store"


@dataclass
class ViewBuffer:
    payload: dict | None = None
    seq: int = 0
    latest_seq: int = 0
    error: str | None = None
    updated_at: datetime | None = None
    loading: bool = False

    @property
    def stale(self) -> bool:
        """A newer request is in flight, or the last one failed."""
        return self.loading or self.error is not None

    def to_dict(self) -> dict:
        return {
            "payload": self.payload,
            "request_id": self.seq,
            "stale": self.stale,
            "error": self.error,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class SnapshotStore:
    _buffers: dict = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def _buffer(self, user_key: str, view: str) -> ViewBuffer:
        key = (user_key, view)
        buf = self._buffers.get(key)
        if buf is None:
            buf = self._buffers[key] = ViewBuffer()
        return buf

    def begin(self, user_key: str, view: str) -> int:
        """Issue the next request id for this buffer."""
        with self._lock:
            buf = self._buffer(user_key, view)
            buf.latest_seq += 1
            buf.loading = True
            return buf.latest_seq

    def commit(self, user_key: str, view: str, seq: int, payload: dict) -> bool:
        """Replace the payload if ``seq`` is still the newest request; False when superseded."""
        with self._lock:
            buf = self._buffer(user_key, view)
            if seq != buf.latest_seq:
                logger.info("Discarding superseded %s snapshot seq=%d (latest=%d)",
                            view, seq, buf.latest_seq, extra={"view": view, "seq": seq})
                return False
            buf.payload = payload
            buf.seq = seq
            buf.error = None
            buf.loading = False
            buf.updated_at = datetime.now(timezone.utc)
            return True

    def fail(self, user_key: str, view: str, seq: int, message: str) -> bool:
        """Record a failed refresh; the last good payload stays in place."""
        with self._lock:
            buf = self._buffer(user_key, view)
            if seq != buf.latest_seq:
                logger.info("Ignoring failure of superseded %s request seq=%d",
                            view, seq, extra={"view": view, "seq": seq})
                return False
            buf.error = message
            buf.loading = False
            return True

    def get(self, user_key: str, view: str) -> ViewBuffer:
        """Copy of the buffer's current state."""
        with self._lock:
            buf = self._buffer(user_key, view)
            return ViewBuffer(
                payload=buf.payload, seq=buf.seq, latest_seq=buf.latest_seq,
                error=buf.error, updated_at=buf.updated_at, loading=buf.loading,
            )

    def stats(self) -> dict:
        with self._lock:
            return {
                "buffers": len(self._buffers),
                "stale": sum(1 for buf in self._buffers.values() if buf.stale),
            }

    def clear(self) -> None:
        with self._lock:
            self._buffers.clear()


def init_snapshot_store(app) -> SnapshotStore:
    store = SnapshotStore()
    app.extensions[EXTENSION_KEY] = store
    return store


def get_snapshot_store() -> SnapshotStore:
    from flask import current_app
    return current_app.extensions[EXTENSION_KEY]
