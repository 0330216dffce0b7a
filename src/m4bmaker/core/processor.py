"""
Orchestration of a conversion: validate, build the command, run the engine
on a worker thread, relay its output and report the outcome.
"""

import logging
import threading
from typing import Iterable, Iterator, List, Optional

from .command import build_command, format_command
from .models import Cancelled, Completed, ConversionEvent, ConversionJob, JobState
from .relay import EventCallback, ProgressRelay
from .reporter import ResultReporter
from .runner import ProcessRunner, RunningProcess
from .validator import InputValidator
from ..config import ConversionSettings
from ..exceptions import ConversionInProgressError, LaunchError


class ConversionSession:
    """
    A running (or finished) conversion job as seen by the presentation layer.

    Events are read with dispatch_pending() or events(); the worker thread
    never calls into the subscriber itself.
    """

    def __init__(self, job: ConversionJob, relay: ProgressRelay, reporter: ResultReporter):
        self.job = job
        self.relay = relay
        self.reporter = reporter
        self.process: Optional[RunningProcess] = None
        self._thread: Optional[threading.Thread] = None
        self._done = threading.Event()
        self._lock = threading.Lock()
        # Set when cancel() arrives after the job entered RUNNING but before the engine exists
        self._cancel_requested = False
        self.logger = logging.getLogger(__name__)

    @property
    def done(self) -> bool:
        """True once the terminal event has been published and the engine reaped."""
        return self._done.is_set()

    @property
    def terminal_event(self) -> Optional[ConversionEvent]:
        return self.reporter.outcome

    def cancel(self) -> bool:
        """
        Cancel the job if it is running.

        Returns:
            bool: True if the engine was signalled, or will be as soon as
                it has been spawned; False (a no-op) in any other state
        """
        with self._lock:
            if self.job.state is not JobState.RUNNING:
                return False
            if self.process is None:
                self._cancel_requested = True
                return True
            process = self.process
        return process.cancel()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the job to reach its terminal state. Returns False on timeout."""
        return self._done.wait(timeout)

    def dispatch_pending(self) -> int:
        """Deliver queued events to the subscribers on the calling thread."""
        return self.relay.dispatch_pending()

    def events(self) -> Iterator[ConversionEvent]:
        """Yield events until the terminal one, blocking between them."""
        return self.relay.events()

    def _launch(self, runner: ProcessRunner, argv: List[str]):
        self.job.transition(JobState.RUNNING)
        try:
            process = runner.start(argv)
        except LaunchError as e:
            self._finish(self.reporter.report_launch_failure(e))
            return

        with self._lock:
            self.process = process
            cancel_requested = self._cancel_requested
        if cancel_requested:
            process.cancel()

        self._thread = threading.Thread(
            target=self._pump,
            name=f"m4bmaker-job-{self.job.job_id}",
            daemon=True,
        )
        try:
            self._thread.start()
        except RuntimeError as e:
            # No worker to reap the engine, so do it here
            self.logger.error(f"Could not start worker for job {self.job.job_id}: {e}")
            process.close()
            self._finish(self.reporter.report_launch_failure(e))

    def _pump(self):
        """Worker thread: stream engine output until it ends, then report."""
        process = self.process
        event = None
        try:
            while True:
                chunk = process.read_next_chunk()
                if chunk is None:
                    break
                self.reporter.track(self.relay.feed(chunk))

            self.reporter.track(self.relay.flush())
            exit_code = process.wait()
            event = self.reporter.report(exit_code, cancelled=process.cancelled)

        except (OSError, ValueError) as e:
            # A cancelled engine can tear the pipe down under the reader
            process.close()
            self.reporter.track(self.relay.flush())
            if process.cancelled:
                event = self.reporter.report(process.returncode, cancelled=True)
            else:
                self.logger.error(f"Error reading engine output for job {self.job.job_id}: {e}")
                event = self.reporter.report_stream_error(e, process.returncode)

        finally:
            process.close()
            if event is None:
                # Unexpected exception escaping the loop; still end the job observably
                event = self.reporter.report_stream_error(RuntimeError("worker stopped unexpectedly"),
                                                          process.returncode)
            self._finish(event)

    def _finish(self, event: ConversionEvent):
        if isinstance(event, Cancelled):
            state = JobState.CANCELLED
        elif isinstance(event, Completed) and event.success:
            state = JobState.COMPLETED
        else:
            state = JobState.FAILED

        self.job.transition(state)
        self.relay.finish(event)
        self._done.set()
        self.logger.info(f"Job {self.job.job_id} finished: {state.value}")


class ConversionProcessor:
    """
    Entry point for exports.

    Only one job runs at a time; start_export() while a job is running raises
    ConversionInProgressError instead of queueing, since two engines writing
    the same destination would corrupt it.
    """

    def __init__(self, settings: Optional[ConversionSettings] = None,
                 runner: Optional[ProcessRunner] = None,
                 validator: Optional[InputValidator] = None):
        """
        Initialize the processor.

        Args:
            settings: Engine and encoder settings
            runner: Process runner (injectable for tests)
            validator: Input validator
        """
        self.settings = settings or ConversionSettings()
        self.runner = runner or ProcessRunner(self.settings)
        self.validator = validator or InputValidator()
        self.history: List[ConversionJob] = []
        self._active: Optional[ConversionSession] = None
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    @property
    def active_session(self) -> Optional[ConversionSession]:
        """The session currently running, if any."""
        session = self._active
        if session is not None and session.done:
            return None
        return session

    def start_export(self, files: Iterable[str], title: Optional[str], author: Optional[str],
                     destination: Optional[str], on_event: Optional[EventCallback] = None) -> ConversionSession:
        """
        Validate an export request and start converting it.

        Validation errors are raised here, before anything is spawned. Launch
        errors are not raised: they end the returned session with a failed
        Completed event, like any other engine failure.

        Args:
            files: Source MP3 paths in playback order
            title: Audiobook title
            author: Audiobook author
            destination: Path of the .m4b file to write
            on_event: Optional subscriber for the session's events

        Returns:
            ConversionSession: Handle on the job

        Raises:
            ConversionInProgressError: Another job is still running
            ValidationError: The request is invalid
        """
        with self._lock:
            active = self.active_session
            if active is not None:
                raise ConversionInProgressError(active.job.job_id, active.job.destination)

            job = self.validator.validate(files, title, author, destination)
            argv = build_command(job, self.settings)
            self.logger.info(f"Starting job {job.job_id}: {len(job.sources)} file(s) -> {job.destination}")
            self.logger.debug(f"Engine command: {format_command(argv)}")

            relay = ProgressRelay()
            if on_event is not None:
                relay.subscribe(on_event)
            session = ConversionSession(job, relay, ResultReporter(self.settings.tail_lines))

            self._active = session
            self.history.append(job)
            session._launch(self.runner, argv)
            return session

    def cancel_active(self) -> bool:
        """Cancel the running job, if there is one."""
        session = self.active_session
        if session is None:
            return False
        return session.cancel()

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Cancel any running job and wait for its engine to be reaped.

        Returns:
            bool: False if the job was still running when the timeout expired
        """
        session = self._active
        if session is None:
            return True
        session.cancel()
        return session.join(timeout)
