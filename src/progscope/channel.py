"""Cross-process delivery of progress events.

Worker processes cannot reach the coordinating scope directly, so pickled
signalers put their events on a bounded queue owned by a
``multiprocessing`` manager.  A daemon thread in the coordinator drains
the queue into the scope.
"""

from __future__ import annotations

import logging
import multiprocessing
import queue
import threading
import time
from multiprocessing.managers import RemoteError
from typing import Any, Callable

from .models import ProgressEvent

logger = logging.getLogger(__name__)

# Errors a worker may see when the coordinator side is gone or saturated
_SEND_ERRORS = (queue.Full, EOFError, OSError, RemoteError)


class ChannelEndpoint:
    """Picklable sending side of a :class:`ProgressChannel`."""

    def __init__(self, q: Any, put_timeout: float) -> None:
        self._queue = q
        self.put_timeout = put_timeout

    def send(self, event: ProgressEvent) -> bool:
        """Put one event on the queue. Failures are dropped, never raised."""
        try:
            self._queue.put(event, timeout=self.put_timeout)
            return True
        except _SEND_ERRORS as e:
            logger.debug(f"Progress event from {event.signaler_id} dropped: {e!r}")
            return False


class ProgressChannel:
    """Bounded queue plus drain thread feeding events into `sink`."""

    def __init__(
        self,
        sink: Callable[[ProgressEvent], Any],
        maxsize: int = 10_000,
        put_timeout: float = 1.0,
        drain_timeout: float = 5.0,
        poll_interval: float = 0.05,
    ) -> None:
        self._sink = sink
        self.drain_timeout = drain_timeout
        self.poll_interval = poll_interval
        self._manager = multiprocessing.Manager()
        self._queue = self._manager.Queue(maxsize)
        self._endpoint = ChannelEndpoint(self._queue, put_timeout)
        self._stop = threading.Event()
        self._closed = False
        self.delivered = 0
        self.dropped = 0
        self._thread = threading.Thread(target=self._run, name="progscope-drain", daemon=True)
        self._thread.start()
        logger.debug(f"Progress channel started (maxsize={maxsize})")

    @property
    def endpoint(self) -> ChannelEndpoint:
        return self._endpoint

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, event: Any) -> None:
        if not isinstance(event, ProgressEvent):
            logger.debug(f"Ignoring unexpected channel item {event!r}")
            return
        self._sink(event)
        self.delivered += 1

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                event = self._queue.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            except (EOFError, OSError) as e:
                logger.debug(f"Progress channel lost its manager: {e!r}")
                return
            self._deliver(event)

    def close(self) -> None:
        """Drain what is queued (bounded by `drain_timeout`) and shut down."""
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        self._thread.join(timeout=max(self.poll_interval * 4, 1.0))

        deadline = time.monotonic() + self.drain_timeout
        try:
            while time.monotonic() < deadline:
                try:
                    event = self._queue.get_nowait()
                except queue.Empty:
                    break
                self._deliver(event)
            try:
                self.dropped = self._queue.qsize()
            except (EOFError, OSError, NotImplementedError):
                self.dropped = 0
        except (EOFError, OSError) as e:
            logger.debug(f"Progress channel closed while draining: {e!r}")
        finally:
            if self.dropped:
                logger.warning(f"Drain timeout reached, {self.dropped} progress events dropped")
            self._manager.shutdown()
            logger.debug(f"Progress channel closed ({self.delivered} events delivered)")
