import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError

from hallserver import db
from hallserver.models import AnnouncementRecord
from .errors import HallError, UpstreamUnavailable

# Client-side handler that receives pushed announcements
ANNOUNCE_ROUTE = 'ANNOUNCE'

SendFn = Callable[[str, str, bytes], None]  # (connection id, route, payload)
SpawnFn = Callable[..., object]


@dataclass
class Announcement:
    payload: bytes
    recipients: List[str] = field(default_factory=list)
    reply_route: str = ANNOUNCE_ROUTE


class AnnouncementSource:
    """Time-ordered announcement store backed by ``announcement_record``.

    ``poll_next`` hands out the latest record strictly newer than the last
    one it returned, so a record is delivered at most once per process.
    """

    def __init__(self, app):
        self.app = app
        self._last_seen = None  # (created_at, id) of the last record handed out
        self._lock = threading.Lock()

    def publish(self, text: str, sender: str = 'service') -> int:
        with self.app.app_context():
            record = AnnouncementRecord(announcement=text, sender=sender, created_at=time.time())
            try:
                db.session.add(record)
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise UpstreamUnavailable(f"publish announcement: {exc}") from exc
            return record.id

    def poll_next(self) -> Optional[str]:
        with self._lock, self.app.app_context():
            query = AnnouncementRecord.query
            if self._last_seen is not None:
                last_time, last_id = self._last_seen
                query = query.filter(or_(
                    AnnouncementRecord.created_at > last_time,
                    and_(AnnouncementRecord.created_at == last_time, AnnouncementRecord.id > last_id),
                ))
            try:
                record = query.order_by(AnnouncementRecord.created_at.desc(), AnnouncementRecord.id.desc()).first()
            except SQLAlchemyError as exc:
                raise UpstreamUnavailable(f"read announcement: {exc}") from exc
            if record is None:
                return None
            self._last_seen = (record.created_at, record.id)
            return record.announcement


def _call_inline(fn, *args):
    return fn(*args)


_CLOSED = object()


class AnnouncementPipeline:
    """Poll step feeding a bounded queue drained by one fanout consumer.

    ``poll`` is the producer and blocks when the queue is full, which holds
    back the ticker until the consumer catches up. ``run_fanout`` is the
    single consumer; every recipient gets an independent spawned delivery
    whose outcome is only logged.
    """

    def __init__(self, source, registry, send: SendFn, spawn: SpawnFn = _call_inline,
                 sleep: Callable[[float], None] = time.sleep, interval: float = 1.0,
                 maxsize: int = 10, logger: Optional[logging.Logger] = None):
        self.source = source
        self.registry = registry
        self.interval = interval
        self.logger = logger or logging.getLogger(__name__)
        self._send = send
        self._spawn = spawn
        self._sleep = sleep
        self._queue: 'queue.Queue' = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def pending(self) -> int:
        return self._queue.qsize()

    def poll(self) -> bool:
        """Enqueue the newest pending announcement, if any.

        Always returns True so the ticker keeps running; read failures are
        logged and skipped.
        """
        if self.closed:
            return True
        try:
            text = self.source.poll_next()
        except HallError as exc:
            self.logger.warning(f"[announce-poll] read failed: {exc}")
            return True
        if text is None:
            return True

        announcement = Announcement(
            payload=text.encode('utf-8'),
            recipients=self.registry.list_connection_ids(),
        )
        self._queue.put(announcement)
        self.logger.info(f"[announce-poll] queued recipients={len(announcement.recipients)} pending={self.pending()}")
        return True

    def run_ticker(self) -> None:
        self.logger.info(f"[announce-ticker] started interval={self.interval}s")
        while not self.closed:
            self.poll()
            self._sleep(self.interval)
        self.logger.info("[announce-ticker] stopped")

    def run_fanout(self) -> None:
        self.logger.info("[announce-fanout] started")
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                break
            self.fanout(item)
        self.logger.info("[announce-fanout] stopped")

    def fanout(self, announcement: Announcement) -> None:
        for conn_id in announcement.recipients:
            self._spawn(self._deliver, announcement, conn_id)

    def _deliver(self, announcement: Announcement, conn_id: str) -> None:
        try:
            self._send(conn_id, announcement.reply_route, announcement.payload)
        except Exception as exc:
            self.logger.warning(f"[announce-deliver] conn={conn_id} route={announcement.reply_route} failed: {exc}")

    def close(self) -> None:
        """Stop the ticker and let the fanout consumer exit after pending items."""
        if self.closed:
            return
        self._closed.set()
        self._queue.put(_CLOSED)
