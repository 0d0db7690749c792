"""
firehose.py — Bluesky Jetstream consumer and its in-memory post buffer.

The consumer keeps one long-lived websocket open in a background task and
hands every decoded post to a sink. The default sink is FirehoseBuffer, a
bounded, time-windowed store that request handlers read synchronously,
regardless of whether the connection is currently up.

Delivery is best effort: the buffer holds whatever the most recent N posts
happened to be. On any close or error the consumer waits a fixed delay and
reconnects; there is no exponential backoff.

Lifecycle:
    GET /api/v1/firehose/start   → firehose_consumer.start()
    FIREHOSE_AUTOSTART=true      → started from the app lifespan
    app shutdown                 → firehose_consumer.stop()
"""

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Optional

import websockets

from pulselens.core.cache import Clock
from pulselens.core.config import settings
from pulselens.models.post import UnifiedPost
from pulselens.sources.base import PostSource, SourceQuery, SourceResult
from pulselens.sources.firehose_frames import (
    CommitFrame,
    InfoFrame,
    UnknownFrame,
    decode_frame,
)

logger = logging.getLogger(__name__)

PostSink = Callable[[UnifiedPost], None]


class FirehoseBuffer:
    """
    Most recent posts, de-duplicated by cid, bounded by count and age.

    Insertion order is arrival order, so the oldest entries are always at
    the front and eviction never needs a sort.
    """

    def __init__(
        self,
        max_size: int = 1000,
        max_age_seconds: float = 3600.0,
        clock: Clock = time.time,
    ) -> None:
        self.max_size = max_size
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._posts: "OrderedDict[str, tuple[float, UnifiedPost]]" = OrderedDict()

    def add(self, post: UnifiedPost) -> None:
        self._posts.pop(post.cid, None)
        self._posts[post.cid] = (self._clock(), post)

        while len(self._posts) > self.max_size:
            self._posts.popitem(last=False)

        size = len(self._posts)
        if size in (1, 10, 50) or size % 100 == 0:
            logger.info("[PostBuffer] Buffer now has %d posts", size)

        self._cleanup()

    def _cleanup(self) -> None:
        cutoff = self._clock() - self.max_age_seconds
        while self._posts:
            timestamp, _ = next(iter(self._posts.values()))
            if timestamp >= cutoff:
                break
            self._posts.popitem(last=False)

    def recent(self, query: Optional[str] = None, limit: int = 50) -> list[UnifiedPost]:
        """Newest-first snapshot, optionally keeping only posts containing `query`."""
        self._cleanup()
        needle = query.lower() if query else None
        out: list[UnifiedPost] = []
        for _, post in reversed(self._posts.values()):
            if needle and needle not in post.text.lower():
                continue
            out.append(post)
            if len(out) >= limit:
                break
        return out

    def stats(self) -> dict[str, Any]:
        self._cleanup()
        oldest = next(iter(self._posts.values()))[0] if self._posts else None
        return {"size": len(self._posts), "maxSize": self.max_size, "oldestPost": oldest}

    def __len__(self) -> int:
        return len(self._posts)


class FirehoseConsumer:
    """Reconnecting Jetstream websocket client feeding a PostSink."""

    def __init__(
        self,
        url: str,
        sink: PostSink,
        reconnect_delay: float = 5.0,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self.url = url
        self.sink = sink
        self.reconnect_delay = reconnect_delay
        self._connect = connect
        self._task: Optional[asyncio.Task] = None
        self.connected = False
        self.reconnect_count = 0
        self.posts_received = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start the background task. Returns False if it was already running."""
        if self.running:
            logger.info("[Firehose] Already running")
            return False
        logger.info("[Firehose] Starting connection to %s", self.url)
        self._task = asyncio.create_task(self._run(), name="firehose-consumer")
        return True

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.connected = False
        logger.info("[Firehose] Stopped")

    async def _run(self) -> None:
        first = True
        while True:
            if not first:
                self.reconnect_count += 1
                logger.info("[Firehose] Attempting to reconnect (#%d)...", self.reconnect_count)
            first = False
            try:
                async with self._connect(self.url) as ws:
                    self.connected = True
                    logger.info("[Firehose] Connected to Bluesky Jetstream")
                    async for message in ws:
                        try:
                            self.handle_message(message)
                        except Exception as exc:
                            logger.warning("[Firehose] Skipping undecodable message: %s", exc)
                logger.warning("[Firehose] Connection closed by server")
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("[Firehose] Connection error: %s", exc)
            finally:
                self.connected = False
            logger.info("[Firehose] Reconnecting in %.0f seconds", self.reconnect_delay)
            await asyncio.sleep(self.reconnect_delay)

    def handle_message(self, message: Any) -> int:
        """Decode one message and push its posts to the sink. Returns posts accepted."""
        frame = decode_frame(message)

        if isinstance(frame, CommitFrame):
            for post in frame.posts:
                self.sink(post)
            self.posts_received += len(frame.posts)
            return len(frame.posts)
        if isinstance(frame, InfoFrame):
            logger.info("[Firehose] Info message: %s %s", frame.name, frame.message)
        elif isinstance(frame, UnknownFrame):
            logger.debug("[Firehose] Unknown frame (%s) keys=%s", frame.reason, frame.keys)
        return 0

    def status(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "connected": self.connected,
            "reconnectCount": self.reconnect_count,
            "postsReceived": self.posts_received,
        }


class FirehoseAdapter(PostSource):
    """Exposes the buffer as a pipeline source. Reads never touch the network."""

    name = "bluesky"

    def __init__(self, buffer: FirehoseBuffer, limit: int = 100) -> None:
        self.buffer = buffer
        self.limit = limit

    async def fetch(self, query: SourceQuery) -> SourceResult:
        posts = self.buffer.recent(query.main_region or None, limit=self.limit)
        if not posts and not len(self.buffer):
            return SourceResult.empty(self.name, "firehose buffer is empty")
        return SourceResult.ok(self.name, posts)


# Module-level singletons — the consumer writes, request handlers read.
firehose_buffer = FirehoseBuffer(
    max_size=settings.firehose_buffer_size,
    max_age_seconds=settings.firehose_max_age_seconds,
)
firehose_consumer = FirehoseConsumer(
    settings.firehose_url,
    sink=firehose_buffer.add,
    reconnect_delay=settings.firehose_reconnect_delay_seconds,
)
