"""
Data model for conversion jobs and the events they produce.
"""

import itertools
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..exceptions import InvalidStateTransition


@dataclass(frozen=True)
class SourceFile:
    """An MP3 on disk and its place in the playback order."""
    path: str
    position: int


@dataclass(frozen=True)
class AudiobookMetadata:
    """Container-level tags written to the audiobook."""
    title: str
    author: str


class JobState(Enum):
    """Lifecycle states of a conversion job."""
    CREATED = "created"
    VALIDATING = "validating"
    INVALID = "invalid"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({
    JobState.INVALID, JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED
})

_ALLOWED_TRANSITIONS = {
    JobState.CREATED: {JobState.VALIDATING},
    JobState.VALIDATING: {JobState.INVALID, JobState.RUNNING},
    JobState.RUNNING: {JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED},
}

_job_ids = itertools.count(1)


@dataclass
class ConversionJob:
    """
    One export request, from validation to its terminal state.

    Sources and metadata are fixed at creation; only the state moves, and
    only along the allowed transitions.
    """
    sources: Tuple[SourceFile, ...]
    metadata: AudiobookMetadata
    destination: str
    job_id: int = field(default_factory=lambda: next(_job_ids))
    state: JobState = JobState.CREATED

    def __post_init__(self):
        positions = sorted(source.position for source in self.sources)
        if positions != list(range(len(self.sources))):
            raise ValueError(f"Source positions must be 0..{len(self.sources) - 1} without gaps "
                             f"or duplicates, got {positions}")
        self._lock = threading.Lock()

    @property
    def source_paths(self) -> Tuple[str, ...]:
        """Source paths in playback order."""
        return tuple(source.path for source in sorted(self.sources, key=lambda s: s.position))

    @property
    def is_finished(self) -> bool:
        return self.state.is_terminal

    def transition(self, new_state: JobState):
        """Move the job to new_state, raising InvalidStateTransition if not allowed."""
        with self._lock:
            if new_state not in _ALLOWED_TRANSITIONS.get(self.state, ()):
                raise InvalidStateTransition(self.job_id, self.state, new_state)
            self.state = new_state


class ConversionEvent:
    """Base class for everything a job publishes to its subscriber."""

    is_terminal = False


@dataclass(frozen=True)
class OutputLine(ConversionEvent):
    """
    One line of engine output.

    text has its line terminator removed. terminated is False only for a
    trailing partial line flushed when the stream ended without a newline.
    """
    text: str
    terminated: bool = True

    @property
    def display_text(self) -> str:
        """The line made safe for printing (undecodable bytes replaced)."""
        raw = self.text.encode('utf-8', 'surrogateescape')
        return raw.decode('utf-8', 'replace').rstrip('\r')


@dataclass(frozen=True)
class Completed(ConversionEvent):
    """
    The engine finished, successfully or not.

    exit_code is None when the engine could not be launched at all; error
    then holds the launch failure message.
    """
    success: bool
    exit_code: Optional[int] = None
    tail: Tuple[str, ...] = ()
    error: Optional[str] = None

    is_terminal = True

    @property
    def failed(self) -> bool:
        return not self.success


@dataclass(frozen=True)
class Cancelled(ConversionEvent):
    """The caller cancelled the job before the engine exited on its own."""
    exit_code: Optional[int] = None

    is_terminal = True
