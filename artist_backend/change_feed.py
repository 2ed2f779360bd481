"""
Relays artist document changes to server-sent-event clients.

A single upstream watch on the artists collection is shared by every
connected client. It is opened with the first subscriber and kept until
``stop()`` (application shutdown). Each client owns a bounded asyncio queue
that is released when its stream ends.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import AsyncIterator, Awaitable, Callable, Optional

from artist_backend.db import DocumentChange, DocumentStore, Subscription
from artist_backend.models import ARTISTS_COLLECTION

logger = logging.getLogger(__name__)

RELAYED_KINDS = ("ADDED", "MODIFIED")
KEEPALIVE_FRAME = ": keep-alive\n\n"


def format_event(payload: str) -> str:
    return f"data: {payload}\n\n"


class ChangeFeedRelay:
    def __init__(
        self,
        db: DocumentStore,
        collection: str = ARTISTS_COLLECTION,
        *,
        queue_size: int = 100,
    ):
        self.db = db
        self.collection = collection
        self.queue_size = queue_size
        # RLock: the in-memory store delivers its initial snapshot
        # synchronously from inside watch().
        self._lock = threading.RLock()
        self._subscription: Optional[Subscription] = None
        self._subscribers: dict[int, tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = {}
        self._latest: dict[str, str] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def is_watching(self) -> bool:
        return self._subscription is not None

    def _ensure_started(self) -> None:
        if self._subscription is None:
            logger.info("Opening change feed on %s", self.collection)
            self._subscription = self.db.watch(self.collection, self._on_changes)

    def stop(self) -> None:
        with self._lock:
            if self._subscription is not None:
                self._subscription.unsubscribe()
                self._subscription = None
                logger.info("Closed change feed on %s", self.collection)
            self._latest.clear()

    def subscribe(self) -> tuple[asyncio.Queue, list[str]]:
        """
        Register a client; must be called from the event loop serving it.

        Returns the client's queue and the current documents, which the client
        receives before any queued change.
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        with self._lock:
            self._ensure_started()
            self._subscribers[id(queue)] = (loop, queue)
            snapshot = list(self._latest.values())
        logger.info("Change feed client connected (%d total)", self.subscriber_count)
        return queue, snapshot

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        with self._lock:
            self._subscribers.pop(id(queue), None)
        logger.info("Change feed client disconnected (%d left)", self.subscriber_count)

    def _on_changes(self, changes: list[DocumentChange]) -> None:
        with self._lock:
            for change in changes:
                doc_id = change.document.id
                if change.kind not in RELAYED_KINDS:
                    self._latest.pop(doc_id, None)
                    continue
                payload = json.dumps(change.document.as_dict(), default=str)
                self._latest[doc_id] = payload
                for loop, queue in list(self._subscribers.values()):
                    try:
                        loop.call_soon_threadsafe(self._deliver, queue, payload)
                    except RuntimeError:
                        # Event loop already closed; the stream's cleanup
                        # never ran.
                        self._subscribers.pop(id(queue), None)

    @staticmethod
    def _deliver(queue: asyncio.Queue, payload: str) -> None:
        try:
            queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("Change feed client is lagging; dropping event")

    async def events(
        self,
        is_disconnected: Callable[[], Awaitable[bool]],
        *,
        keepalive_seconds: float = 15.0,
    ) -> AsyncIterator[str]:
        """Yield SSE frames for one client until it disconnects."""
        queue, snapshot = self.subscribe()
        try:
            for payload in snapshot:
                yield format_event(payload)
            while not await is_disconnected():
                try:
                    payload = await asyncio.wait_for(
                        queue.get(), timeout=keepalive_seconds
                    )
                except asyncio.TimeoutError:
                    yield KEEPALIVE_FRAME
                    continue
                yield format_event(payload)
        finally:
            self.unsubscribe(queue)
