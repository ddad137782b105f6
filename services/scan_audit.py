"""
Scan Audit Log: append-only, fire-and-forget record of scans.

record() only hands the event to a bounded in-process queue; a daemon worker
thread drains it into the sink on its own database connection. Nothing here
may block or fail a resolution: a full queue drops the event, a failed write
is logged and forgotten.
"""
import logging
import queue
import threading

from constants import DEFAULT_SCAN_PLATFORM, DEFAULT_SCAN_SOURCE, SCAN_DIMENSION_MAX_LEN
from database import connect_db
from models import ScanEvent
from services.errors import AuditWriteFailure
from utils.timestamps import utc_now

logger = logging.getLogger(__name__)

_STOP = object()


def _dimension(value, default):
    value = (value or "").strip() if isinstance(value, str) else ""
    return (value or default)[:SCAN_DIMENSION_MAX_LEN]


class PostgresScanEventSink:
    """Writes scan events to qr_scan_events over a dedicated connection."""

    def __init__(self, connect=connect_db):
        self._connect = connect
        self._db = None

    def write(self, event: ScanEvent):
        try:
            if self._db is None or self._db.closed:
                self._db = self._connect()
            self._db.execute(
                """
                INSERT INTO qr_scan_events
                    (code_key_raw, code_key_normalized, user_id, platform, source, scanned_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (
                    event.code_key_raw,
                    event.code_key_normalized,
                    event.user_id,
                    event.platform,
                    event.source,
                    event.scanned_at,
                )
            )
            self._db.commit()
        except Exception as e:
            self._discard_connection()
            raise AuditWriteFailure(e) from e

    def _discard_connection(self):
        db, self._db = self._db, None
        if db is None:
            return
        try:
            db.close()
        except Exception as e:
            logger.debug(f"[Audit] close after failure raised {type(e).__name__}")

    def close(self):
        self._discard_connection()


class ScanAuditLog:
    def __init__(self, sink, *, queue_size=1000, enabled=True):
        self.sink = sink
        self.enabled = enabled
        self._queue = queue.Queue(maxsize=max(1, int(queue_size)))
        self._thread = None
        self._lock = threading.Lock()
        self.dropped = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self):
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._run, name="qr-scan-audit", daemon=True)
            self._thread.start()
        logger.info("[Audit] Scan audit worker started")

    def stop(self, timeout=5.0):
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is None:
            return
        try:
            self._queue.put(_STOP, timeout=timeout)
        except queue.Full:
            logger.warning("[Audit] Queue full at shutdown; pending scan events discarded")
        thread.join(timeout)
        self.sink.close()
        logger.info("[Audit] Scan audit worker stopped")

    def flush(self, timeout=5.0) -> bool:
        """Wait until every queued event has been handled. Returns False on timeout."""
        done = self._queue.all_tasks_done
        with done:
            if self._queue.unfinished_tasks:
                done.wait_for(lambda: not self._queue.unfinished_tasks, timeout)
            return not self._queue.unfinished_tasks

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    def record(self, raw, normalized, user_id=None, platform=DEFAULT_SCAN_PLATFORM, source=DEFAULT_SCAN_SOURCE):
        """Non-blocking. Never raises."""
        if not self.enabled:
            return
        try:
            event = ScanEvent(
                code_key_raw=(raw or "")[:512],
                code_key_normalized=normalized or "",
                user_id=str(user_id) if user_id else None,
                platform=_dimension(platform, DEFAULT_SCAN_PLATFORM),
                source=_dimension(source, DEFAULT_SCAN_SOURCE),
                scanned_at=utc_now(),
            )
            if self._thread is None:
                self.start()
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            logger.warning(f"[Audit] Queue full, scan event dropped (total dropped={self.dropped})")
        except Exception as e:
            logger.warning(f"[Audit] Failed to enqueue scan event: {type(e).__name__}")

    def _run(self):
        while True:
            event = self._queue.get()
            try:
                if event is _STOP:
                    return
                self.sink.write(event)
            except AuditWriteFailure as e:
                logger.warning(f"[Audit] {e.message}")
            except Exception as e:
                logger.warning(f"[Audit] Unexpected sink error: {type(e).__name__}")
            finally:
                self._queue.task_done()
