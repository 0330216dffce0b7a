"""
Launching and supervising the transcoding engine.
"""

import shutil
import logging
import subprocess
import threading
from typing import Callable, List, Optional

import psutil

from ..config import ConversionSettings
from ..exceptions import EngineNotFoundError, SpawnFailedError


class RunningProcess:
    """
    Handle on a running engine process.

    stdout and stderr arrive merged in one pipe. The handle owns the child:
    close() always leaves it reaped, whether it exited on its own, was
    cancelled, or the caller simply lost interest.
    """

    def __init__(self, process, chunk_size: int = 4096, terminate_grace_seconds: float = 5.0):
        self._process = process
        self._stream = process.stdout
        self.chunk_size = chunk_size
        self.terminate_grace_seconds = terminate_grace_seconds
        self._lock = threading.Lock()
        self._cancelled = False
        self._closed = False
        self.logger = logging.getLogger(__name__)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def cancelled(self) -> bool:
        """True if cancel() sent a termination signal while the child was running."""
        return self._cancelled

    @property
    def returncode(self) -> Optional[int]:
        return self._process.poll()

    def read_next_chunk(self) -> Optional[bytes]:
        """
        Block until output is available.

        Returns:
            bytes: Whatever the engine has written since the last call, or
                None once the stream has ended
        """
        if self._stream is None or self._stream.closed:
            return None
        data = self._stream.read(self.chunk_size)
        if not data:
            return None
        return data

    def cancel(self) -> bool:
        """
        Ask the engine to stop.

        Returns:
            bool: True if a termination signal was sent, False if the process
                had already exited (cancel is then a no-op)
        """
        with self._lock:
            if self._cancelled:
                return False
            if self._process.poll() is not None:
                return False
            self._cancelled = True

        self.logger.info(f"Cancelling engine process {self.pid}")
        self._signal_tree(kill=False)
        return True

    def wait(self) -> int:
        """Wait for the engine to exit and return its exit status."""
        return self._process.wait()

    def close(self):
        """Terminate the engine if it is still running, reap it and release the pipe."""
        if self._closed:
            return
        self._closed = True

        if self._process.poll() is None:
            self.logger.warning(f"Engine process {self.pid} still running on close, terminating")
            self._signal_tree(kill=False)
            try:
                self._process.wait(timeout=self.terminate_grace_seconds)
            except subprocess.TimeoutExpired:
                self.logger.warning(f"Engine process {self.pid} ignored terminate, killing")
                self._signal_tree(kill=True)
                self._process.wait()

        if self._stream is not None:
            try:
                self._stream.close()
            except OSError as e:
                self.logger.warning(f"Error closing engine output pipe: {e}")

    def _signal_tree(self, kill: bool):
        # Wrapper launchers (snap, shell shims) may run the real engine as a child
        try:
            children = psutil.Process(self.pid).children(recursive=True)
        except psutil.Error:
            children = []

        for child in children:
            try:
                if kill:
                    child.kill()
                else:
                    child.terminate()
            except psutil.NoSuchProcess:
                pass

        try:
            if kill:
                self._process.kill()
            else:
                self._process.terminate()
        except ProcessLookupError:
            self.logger.debug(f"Engine process {self.pid} already exited")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False


class ProcessRunner:
    """Starts the engine with a literal argument vector."""

    def __init__(self, settings: Optional[ConversionSettings] = None,
                 popen_factory: Callable = subprocess.Popen,
                 which: Callable[[str], Optional[str]] = shutil.which):
        """
        Initialize the runner.

        Args:
            settings: Chunk size and termination grace period
            popen_factory: Callable with the subprocess.Popen signature
            which: Resolves an executable name against the search path
        """
        self.settings = settings or ConversionSettings()
        self._popen = popen_factory
        self._which = which
        self.logger = logging.getLogger(__name__)

    def start(self, argv: List[str]) -> RunningProcess:
        """
        Spawn the engine.

        Args:
            argv: Argument vector, executable first

        Returns:
            RunningProcess: Handle for streaming, cancelling and reaping

        Raises:
            EngineNotFoundError: The executable is not on the search path
            SpawnFailedError: The operating system refused to start it, or an
                argument cannot be passed to it (e.g. an embedded NUL)
        """
        engine = argv[0]
        executable = self._which(engine)
        if executable is None:
            self.logger.error(f"Engine not found on PATH: {engine}")
            raise EngineNotFoundError(engine)

        try:
            process = self._popen(
                [executable] + list(argv[1:]),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=0,
            )
        except FileNotFoundError as e:
            # Removed between lookup and launch
            raise EngineNotFoundError(engine, f"Transcoding engine '{engine}' disappeared: {e}") from e
        except (OSError, ValueError) as e:
            # ValueError: an argument Popen cannot pass on, e.g. an embedded NUL
            self.logger.error(f"Failed to launch {engine}: {e}")
            raise SpawnFailedError(engine, e) from e

        self.logger.info(f"Engine process {process.pid} started")
        return RunningProcess(
            process,
            chunk_size=self.settings.chunk_size,
            terminate_grace_seconds=self.settings.terminate_grace_seconds,
        )
