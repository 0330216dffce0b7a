"""
Relaying engine output from the worker thread to the presentation layer.

The worker only ever puts events on an unbounded queue, so a slow consumer
can never stall the read loop (and through it the engine's pipe). Subscribers
are called from whichever thread drains the queue, never from the worker.
"""

import queue
import logging
import threading
from typing import Callable, Iterator, List, Optional

from .models import ConversionEvent, OutputLine

EventCallback = Callable[[ConversionEvent], None]


class LineSplitter:
    """
    Splits a byte stream into lines across arbitrary chunk boundaries.

    Lines are decoded as UTF-8 with surrogateescape, so encoding a line's text
    the same way gives back exactly the bytes the engine wrote.
    """

    def __init__(self):
        self._pending = b''

    @property
    def pending(self) -> bytes:
        """Bytes of an unfinished line waiting for its newline."""
        return self._pending

    def feed(self, chunk: bytes) -> List[OutputLine]:
        """Add a chunk and return every line it completed, in order."""
        data = self._pending + chunk
        *complete, self._pending = data.split(b'\n')
        return [OutputLine(_decode(raw)) for raw in complete]

    def flush(self) -> List[OutputLine]:
        """Return the trailing partial line, if any, at end of stream."""
        if not self._pending:
            return []
        line = OutputLine(_decode(self._pending), terminated=False)
        self._pending = b''
        return [line]


def _decode(raw: bytes) -> str:
    return raw.decode('utf-8', 'surrogateescape')


class ProgressRelay:
    """Turns engine output chunks into ordered events for one job."""

    def __init__(self):
        self._queue = queue.Queue()
        self._splitter = LineSplitter()
        self._subscribers: List[EventCallback] = []
        self._lock = threading.Lock()
        self._finished = False
        self._discarded_bytes = 0
        self.logger = logging.getLogger(__name__)

    @property
    def finished(self) -> bool:
        """True once the terminal event has been published."""
        return self._finished

    @property
    def discarded_bytes(self) -> int:
        """Late output dropped because the job had already ended."""
        return self._discarded_bytes

    def subscribe(self, on_event: EventCallback):
        """Register a callback invoked by dispatch_pending() for every event."""
        self._subscribers.append(on_event)

    def feed(self, chunk: bytes) -> List[OutputLine]:
        """
        Publish the lines completed by a chunk.

        Called from the worker thread. Returns the published lines; after the
        terminal event the chunk is discarded and nothing is returned.
        """
        with self._lock:
            if self._finished:
                self._discarded_bytes += len(chunk)
                self.logger.debug(f"Discarding {len(chunk)} bytes received after the terminal event")
                return []
            lines = self._splitter.feed(chunk)
            for line in lines:
                self._queue.put(line)
            return lines

    def flush(self) -> List[OutputLine]:
        """Publish the trailing partial line at end of stream."""
        with self._lock:
            if self._finished:
                return []
            lines = self._splitter.flush()
            for line in lines:
                self._queue.put(line)
            return lines

    def finish(self, terminal_event: ConversionEvent) -> bool:
        """
        Publish the terminal event. Only the first call has any effect.

        Returns:
            bool: True if this call published the event
        """
        with self._lock:
            if self._finished:
                self.logger.warning(f"Ignoring second terminal event: {terminal_event!r}")
                return False
            self._finished = True
            self._queue.put(terminal_event)
            return True

    def get_pending(self) -> List[ConversionEvent]:
        """Take every event queued so far without blocking."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return events

    def dispatch_pending(self) -> int:
        """
        Deliver queued events to the subscribers on the calling thread.

        Meant to be called by the UI on its own schedule (e.g. once per frame).

        Returns:
            int: Number of events delivered
        """
        events = self.get_pending()
        for event in events:
            for callback in self._subscribers:
                callback(event)
        return len(events)

    def events(self, poll_interval: Optional[float] = 0.1) -> Iterator[ConversionEvent]:
        """
        Yield events as they arrive until the terminal event, blocking between them.

        Subscribers are called for each event before it is yielded.
        """
        while True:
            try:
                event = self._queue.get(timeout=poll_interval)
            except queue.Empty:
                continue
            for callback in self._subscribers:
                callback(event)
            yield event
            if event.is_terminal:
                return
