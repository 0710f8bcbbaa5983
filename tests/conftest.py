"""Shared fakes: a virtual clock, a scripted event source and a command runner."""

import subprocess
from collections import deque
from pathlib import Path

import pytest

from cdnwatch.config import SyncCommand, WatcherConfig
from cdnwatch.events import SourceClosed


class FakeClock:
    """Monotonic clock that only moves when the source says time passed."""

    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now


class ScriptedSource:
    """Delivers ``(arrival_time, item)`` pairs against a :class:`FakeClock`.

    Waiting with a timeout advances the clock; waiting without one once the
    script is exhausted closes the source.
    """

    def __init__(self, clock, script=(), early_wakeups=0):
        self.clock = clock
        self.script = deque(script)
        self.waits = []
        self.early_wakeups = early_wakeups

    def push(self, at, item):
        self.script.append((at, item))

    def next_event(self, timeout=None):
        self.waits.append(timeout)
        if self.script:
            at, item = self.script[0]
            if timeout is None or at <= self.clock.now + timeout:
                self.script.popleft()
                self.clock.now = max(self.clock.now, at)
                return item
        if timeout is None:
            raise SourceClosed()
        if self.early_wakeups:
            self.early_wakeups -= 1
            self.clock.now += timeout / 2
            return None
        self.clock.now += timeout
        return None


class FakeRunner:
    """Stands in for ``subprocess.run`` and records every invocation."""

    def __init__(self, returncodes=None, raises=None):
        self.calls = []
        self.returncodes = returncodes or {}
        self.raises = raises or {}

    def __call__(self, argv, **kwargs):
        self.calls.append((list(argv), kwargs))
        key = self.key_for(argv)
        if key in self.raises:
            raise self.raises[key]
        code, out, err = self.returncodes.get(key, (0, f"{key} out\n", ""))
        return subprocess.CompletedProcess(argv, code, stdout=out, stderr=err)

    @staticmethod
    def key_for(argv):
        if len(argv) > 3 and argv[1] == "-C":
            return argv[3]
        return "script"

    @property
    def keys(self):
        return [self.key_for(argv) for argv, _ in self.calls]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scripted_source(clock):
    def factory(script=(), **kwargs):
        return ScriptedSource(clock, script, **kwargs)

    return factory


@pytest.fixture
def fake_runner():
    return FakeRunner


@pytest.fixture
def repo_root(tmp_path):
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def watcher_config(repo_root):
    return WatcherConfig(
        root_path=repo_root,
        sync_command=SyncCommand(interpreter="/usr/bin/python3", script="scripts/sync_files.py"),
    )


@pytest.fixture
def root():
    return Path("/repo")
