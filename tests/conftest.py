"""
Pytest configuration and fixtures for m4bmaker tests.
"""

import pytest
import os
import sys
import shutil
import tempfile
import subprocess

# Far above any real pid_max, so psutil never finds a process behind a fake
FAKE_PID = 999999999


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def sample_audio_files(temp_dir):
    """Create sample audio files for testing."""
    # Placeholder MP3s; validation only looks at the file system, never the content
    files = []
    for i in range(3):
        filename = f"chapter_{i+1:02d}.mp3"
        filepath = os.path.join(temp_dir, filename)

        with open(filepath, 'wb') as f:
            f.write(b'ID3\x03\x00\x00\x00\x00\x00\x00' + b'\x00' * 100)

        files.append(filepath)

    return files


@pytest.fixture
def destination(temp_dir):
    """Destination path for the audiobook."""
    return os.path.join(temp_dir, "book.m4b")


class ScriptedStream:
    """Pipe stand-in returning one scripted chunk per read."""

    def __init__(self, chunks):
        self._chunks = list(chunks)
        self.closed = False

    def read(self, size=-1):
        if self.closed or not self._chunks:
            return b''
        return self._chunks.pop(0)

    def drain(self):
        self._chunks = []

    def close(self):
        self.closed = True


class FakeProcess:
    """Popen stand-in that replays scripted output and an exit code."""

    def __init__(self, chunks=(), returncode=0, pid=FAKE_PID):
        self.stdout = ScriptedStream(chunks)
        self.pid = pid
        self._returncode = returncode
        self.returncode = None
        self.terminated = False
        self.killed = False

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        if self.returncode is None:
            self.returncode = self._returncode
        return self.returncode

    def terminate(self):
        self.terminated = True
        self.stdout.drain()
        if self.returncode is None:
            self.returncode = -15

    def kill(self):
        self.killed = True
        self.stdout.drain()
        if self.returncode is None:
            self.returncode = -9


class FakePopenFactory:
    """Records every spawn request and hands out scripted FakeProcesses."""

    def __init__(self, chunks=(), returncode=0):
        self.chunks = chunks
        self.returncode = returncode
        self.calls = []
        self.processes = []

    def __call__(self, argv, **kwargs):
        self.calls.append((argv, kwargs))
        process = FakeProcess(self.chunks, self.returncode)
        self.processes.append(process)
        return process


@pytest.fixture
def fake_popen():
    """Factory for scripted fake engine processes."""
    def make(chunks=(), returncode=0):
        return FakePopenFactory(chunks, returncode)
    return make


@pytest.fixture
def python_popen():
    """
    Factory for spawners that run a Python snippet instead of the engine.

    The engine argument vector is ignored; the child really runs, so pipes,
    signals and reaping behave exactly as they would for FFmpeg.
    """
    def make(script):
        def popen(argv, **kwargs):
            return subprocess.Popen([sys.executable, '-c', script], **kwargs)
        return popen
    return make
