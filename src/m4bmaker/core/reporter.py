"""
Deciding the single terminal outcome of a conversion job.
"""

import logging
import threading
from collections import deque
from typing import Iterable, Optional

from .models import Cancelled, Completed, ConversionEvent, OutputLine

SUCCESS_EXIT_CODE = 0


class ResultReporter:
    """
    Keeps the tail of the engine output and produces exactly one terminal event.

    Once an outcome has been decided every further call returns that same
    event, so racing paths (worker finishing while a launch error is being
    reported, say) can never produce two.
    """

    def __init__(self, tail_lines: int = 20):
        self._tail = deque(maxlen=tail_lines)
        self._lock = threading.Lock()
        self._outcome: Optional[ConversionEvent] = None
        self.logger = logging.getLogger(__name__)

    @property
    def outcome(self) -> Optional[ConversionEvent]:
        """The terminal event, once decided."""
        return self._outcome

    @property
    def tail(self):
        return tuple(self._tail)

    def track(self, lines: Iterable[OutputLine]):
        """Remember output lines for the failure report."""
        for line in lines:
            self._tail.append(line.text)

    def report(self, exit_code: int, cancelled: bool = False) -> ConversionEvent:
        """
        Decide the outcome from the engine's exit status.

        A cancelled engine that still exits with the success code finished
        before the signal reached it (FFmpeg exits with 255 when it is
        interrupted), so that run is reported as Completed.

        Args:
            exit_code: Status returned by wait()
            cancelled: Whether cancel() signalled the engine

        Returns:
            ConversionEvent: Cancelled or Completed
        """
        if cancelled and exit_code != SUCCESS_EXIT_CODE:
            event = Cancelled(exit_code=exit_code)
        elif exit_code == SUCCESS_EXIT_CODE:
            event = Completed(success=True, exit_code=exit_code)
        else:
            event = Completed(success=False, exit_code=exit_code, tail=self.tail)
        return self._conclude(event)

    def report_launch_failure(self, error: Exception) -> ConversionEvent:
        """Decide a failed outcome for an engine that never started."""
        return self._conclude(Completed(success=False, exit_code=None, error=str(error)))

    def report_stream_error(self, error: Exception, exit_code: Optional[int]) -> ConversionEvent:
        """Decide a failed outcome when reading the engine output broke down."""
        return self._conclude(
            Completed(success=False, exit_code=exit_code, tail=self.tail, error=f"Output stream error: {error}")
        )

    def _conclude(self, event: ConversionEvent) -> ConversionEvent:
        with self._lock:
            if self._outcome is not None:
                self.logger.warning(f"Outcome already decided ({self._outcome!r}), ignoring {event!r}")
                return self._outcome
            self._outcome = event

        if isinstance(event, Completed) and event.failed:
            self.logger.error(f"Conversion failed (exit code {event.exit_code}): {event.error or 'see output tail'}")
        else:
            self.logger.info(f"Conversion finished: {event!r}")
        return event
