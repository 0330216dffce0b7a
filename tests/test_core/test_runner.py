"""
Tests for the ProcessRunner and RunningProcess classes.
"""

import pytest
import sys
import subprocess
from unittest.mock import Mock

import psutil

from m4bmaker.config import ConversionSettings
from m4bmaker.core.runner import ProcessRunner
from m4bmaker.exceptions import EngineNotFoundError, SpawnFailedError

SLEEPER = "import sys, time; print('started', flush=True); time.sleep(60)"


def read_all(process):
    data = b''
    while True:
        chunk = process.read_next_chunk()
        if chunk is None:
            return data
        data += chunk


def found(name):
    return name


class TestProcessRunner:
    """Test cases for ProcessRunner.start."""

    def test_engine_not_found_never_spawns(self):
        """Test that a missing engine is reported without spawning anything."""
        popen = Mock()
        runner = ProcessRunner(popen_factory=popen, which=lambda name: None)

        with pytest.raises(EngineNotFoundError) as exc_info:
            runner.start(["ffmpeg", "-i", "a.mp3"])

        assert exc_info.value.engine == "ffmpeg"
        popen.assert_not_called()

    def test_real_lookup_of_missing_engine(self):
        """Test the default PATH lookup with a name that cannot exist."""
        with pytest.raises(EngineNotFoundError):
            ProcessRunner().start(["m4bmaker-no-such-engine-7f3a"])

    def test_spawn_failure_is_wrapped(self):
        """Test that other OS errors become SpawnFailedError."""
        error = PermissionError(13, "Permission denied")
        runner = ProcessRunner(popen_factory=Mock(side_effect=error), which=found)

        with pytest.raises(SpawnFailedError) as exc_info:
            runner.start(["ffmpeg"])

        assert exc_info.value.os_error is error

    def test_embedded_nul_is_a_spawn_failure(self):
        """Test that an argument the OS cannot accept is reported, not raised raw."""
        runner = ProcessRunner(which=lambda name: sys.executable)

        with pytest.raises(SpawnFailedError) as exc_info:
            runner.start(["ffmpeg", "-metadata", "title=My\x00Book"])

        assert isinstance(exc_info.value.os_error, ValueError)

    def test_vanished_engine_is_not_found(self):
        """Test a binary removed between lookup and launch."""
        runner = ProcessRunner(popen_factory=Mock(side_effect=FileNotFoundError(2, "gone")), which=found)

        with pytest.raises(EngineNotFoundError):
            runner.start(["ffmpeg"])

    def test_argument_vector_without_shell(self, fake_popen):
        """Test that the engine gets a literal list with merged output streams."""
        popen = fake_popen()
        runner = ProcessRunner(popen_factory=popen, which=lambda name: "/usr/bin/" + name)

        runner.start(["ffmpeg", "-i", "a b; c.mp3"])

        argv, kwargs = popen.calls[0]
        assert argv == ["/usr/bin/ffmpeg", "-i", "a b; c.mp3"]
        assert not kwargs.get('shell', False)
        assert kwargs['stdout'] == subprocess.PIPE
        assert kwargs['stderr'] == subprocess.STDOUT
        assert kwargs['stdin'] == subprocess.DEVNULL

    def test_settings_reach_the_handle(self, fake_popen):
        """Test that chunk size and grace period come from the settings."""
        settings = ConversionSettings(chunk_size=128, terminate_grace_seconds=0.5)
        runner = ProcessRunner(settings, popen_factory=fake_popen(), which=found)

        process = runner.start(["ffmpeg"])

        assert process.chunk_size == 128
        assert process.terminate_grace_seconds == 0.5


class TestRunningProcessWithFake:
    """Test cases for RunningProcess against a scripted process."""

    def test_chunks_then_end_of_stream(self, fake_popen):
        """Test that chunks are returned as produced, then None."""
        runner = ProcessRunner(popen_factory=fake_popen([b"one\n", b"tw", b"o\n"]), which=found)
        process = runner.start(["ffmpeg"])

        assert process.read_next_chunk() == b"one\n"
        assert process.read_next_chunk() == b"tw"
        assert process.read_next_chunk() == b"o\n"
        assert process.read_next_chunk() is None
        assert process.wait() == 0

    def test_cancel_after_exit_is_noop(self, fake_popen):
        """Test that cancelling a finished process does nothing."""
        popen = fake_popen([b"done\n"], returncode=0)
        process = ProcessRunner(popen_factory=popen, which=found).start(["ffmpeg"])
        read_all(process)
        process.wait()

        assert process.cancel() is False
        assert process.cancelled is False
        assert popen.processes[0].terminated is False

    def test_cancel_only_signals_once(self, fake_popen):
        """Test that a second cancel is a no-op."""
        popen = fake_popen([b"x\n"] * 5)
        process = ProcessRunner(popen_factory=popen, which=found).start(["ffmpeg"])

        assert process.cancel() is True
        assert process.cancel() is False
        assert process.cancelled is True
        assert popen.processes[0].terminated is True

    def test_close_releases_pipe(self, fake_popen):
        """Test that close() closes the output stream."""
        popen = fake_popen([b"x\n"])
        process = ProcessRunner(popen_factory=popen, which=found).start(["ffmpeg"])
        read_all(process)
        process.wait()

        process.close()

        assert popen.processes[0].stdout.closed
        assert process.read_next_chunk() is None


class TestRunningProcessWithChild:
    """Test cases for RunningProcess with a real child process."""

    def test_streams_merged_output_and_exit_code(self, python_popen):
        """Test that stdout and stderr arrive in one stream and the exit code is kept."""
        script = ("import sys; sys.stdout.write('out\\n'); sys.stdout.flush(); "
                  "sys.stderr.write('err\\n'); sys.stderr.flush(); sys.exit(3)")
        runner = ProcessRunner(popen_factory=python_popen(script), which=found)

        with runner.start(["ffmpeg"]) as process:
            data = read_all(process)
            assert process.wait() == 3

        assert b"out" in data
        assert b"err" in data

    def test_cancel_terminates_and_reaps(self, python_popen):
        """Test that cancel ends the stream and the child is reaped."""
        runner = ProcessRunner(popen_factory=python_popen(SLEEPER), which=found)
        process = runner.start(["ffmpeg"])
        pid = process.pid

        assert process.read_next_chunk().startswith(b"started")
        assert process.cancel() is True

        read_all(process)
        returncode = process.wait()
        process.close()

        assert returncode != 0
        assert process.cancelled is True
        assert not psutil.pid_exists(pid)

    def test_close_reaps_running_child(self, python_popen):
        """Test that dropping interest still terminates and reaps the child."""
        runner = ProcessRunner(popen_factory=python_popen(SLEEPER), which=found)
        process = runner.start(["ffmpeg"])
        pid = process.pid

        process.close()

        assert process.returncode is not None
        assert process.cancelled is False
        assert not psutil.pid_exists(pid)

    @pytest.mark.skipif(sys.platform == "win32", reason="SIGTERM cannot be ignored on Windows")
    def test_close_kills_child_ignoring_terminate(self, python_popen):
        """Test that a child ignoring SIGTERM is killed after the grace period."""
        script = ("import signal, time; signal.signal(signal.SIGTERM, signal.SIG_IGN); "
                  "print('ready', flush=True); time.sleep(60)")
        settings = ConversionSettings(terminate_grace_seconds=0.5)
        runner = ProcessRunner(settings, popen_factory=python_popen(script), which=found)
        process = runner.start(["ffmpeg"])
        process.read_next_chunk()  # Handler is installed once 'ready' arrives

        process.close()

        assert process.returncode == -9
