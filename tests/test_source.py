"""Tests for the watchdog-backed event source."""

import queue
from pathlib import Path

import pytest
from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from cdnwatch.events import ChangeEvent, EventType, SourceClosed, SourceError
from cdnwatch.filters import RelevanceFilter
from cdnwatch.source import EventSource, QueueingHandler, to_change_event


class FakeObserver:
    def __init__(self):
        self.scheduled = []
        self.alive = False
        self.stopped = False

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((handler, path, recursive))

    def start(self):
        self.alive = True

    def stop(self):
        self.stopped = True
        self.alive = False

    def join(self, timeout=None):
        pass

    def is_alive(self):
        return self.alive


class TestToChangeEvent:
    """Mapping watchdog notifications onto change events."""

    @pytest.mark.parametrize(
        "event_cls, kind",
        [
            (FileCreatedEvent, EventType.CREATED),
            (FileModifiedEvent, EventType.MODIFIED),
            (FileDeletedEvent, EventType.DELETED),
        ],
    )
    def test_change_kinds(self, event_cls, kind):
        event = to_change_event(event_cls("/repo/a.txt"))
        assert event == ChangeEvent(kind=kind, paths=frozenset({Path("/repo/a.txt")}))

    def test_move_reports_both_paths(self):
        event = to_change_event(FileMovedEvent("/repo/old.md", "/repo/new.md"))
        assert event.kind is EventType.MOVED
        assert event.paths == frozenset({Path("/repo/old.md"), Path("/repo/new.md")})

    def test_directory_modifications_are_access(self):
        event = to_change_event(DirModifiedEvent("/repo/posts"))
        assert event.kind is EventType.ACCESSED

    @pytest.mark.parametrize("event_cls", [DirCreatedEvent, DirDeletedEvent])
    def test_directory_structure_changes_still_count(self, event_cls):
        event = to_change_event(event_cls("/repo/posts"))
        assert RelevanceFilter(Path("/repo")).matches(event)

    def test_nested_generated_file_write_is_ignored(self):
        # inotify reports the write plus a modification of the parent directory.
        relevance = RelevanceFilter(Path("/repo"))
        burst = [
            FileModifiedEvent("/repo/posts/index.html"),
            DirModifiedEvent("/repo/posts"),
            FileClosedEvent("/repo/posts/index.html"),
        ]
        assert not any(relevance.matches(to_change_event(event)) for event in burst)

    def test_other_kinds_become_access(self):
        event = to_change_event(FileClosedEvent("/repo/a.txt"))
        assert event.kind is EventType.ACCESSED

    def test_bytes_paths_are_decoded(self):
        event = to_change_event(FileCreatedEvent(b"/repo/a.txt"))
        assert event.paths == frozenset({Path("/repo/a.txt")})


def test_handler_reports_undecodable_events():
    events = queue.Queue()
    handler = QueueingHandler(events)

    handler.dispatch(FileModifiedEvent(None))

    item = events.get_nowait()
    assert isinstance(item, SourceError)
    assert isinstance(item.error, TypeError)


def test_handler_enqueues_events():
    events = queue.Queue()
    handler = QueueingHandler(events)

    handler.dispatch(FileCreatedEvent("/repo/a.txt"))

    assert events.get_nowait() == ChangeEvent(
        kind=EventType.CREATED, paths=frozenset({Path("/repo/a.txt")})
    )


class TestEventSource:
    """Queue semantics seen by the monitor."""

    @pytest.fixture
    def observer(self):
        return FakeObserver()

    @pytest.fixture
    def source(self, observer):
        source = EventSource(Path("/repo"), liveness_interval=0.01, observer=observer)
        source.start()
        return source

    def test_start_schedules_recursive_watch(self, source, observer):
        handler, path, recursive = observer.scheduled[0]
        assert isinstance(handler, QueueingHandler)
        assert path == str(Path("/repo"))
        assert recursive is True

    def test_timeout_returns_none(self, source):
        assert source.next_event(timeout=0.01) is None

    def test_delivers_queued_items_in_order(self, source, observer):
        handler = observer.scheduled[0][0]
        handler.dispatch(FileCreatedEvent("/repo/a.txt"))
        handler.dispatch(FileModifiedEvent(None))

        first = source.next_event()
        second = source.next_event(timeout=0.01)

        assert first.kind is EventType.CREATED
        assert isinstance(second, SourceError)

    def test_close_drains_then_raises(self, source, observer):
        observer.scheduled[0][0].dispatch(FileModifiedEvent("/repo/a.txt"))

        source.close()

        assert observer.stopped
        assert source.next_event().kind is EventType.MODIFIED
        with pytest.raises(SourceClosed):
            source.next_event()
        with pytest.raises(SourceClosed):
            source.next_event(timeout=0.01)

    def test_dead_observer_closes_source(self, source, observer):
        observer.alive = False

        with pytest.raises(SourceClosed):
            source.next_event()
        with pytest.raises(SourceClosed):
            source.next_event(timeout=0.01)


def test_rewriting_nested_generated_file_yields_nothing_relevant(tmp_path):
    posts = tmp_path / "posts"
    posts.mkdir()
    generated = posts / "index.html"
    generated.write_text("<html>v1</html>", encoding="utf-8")
    root = tmp_path.resolve()
    source = EventSource(root)
    relevance = RelevanceFilter(root)
    source.start()
    try:
        generated.write_text("<html>v2</html>", encoding="utf-8")
        delivered = []
        item = source.next_event(timeout=1.0)
        while item is not None:
            delivered.append(item)
            item = source.next_event(timeout=0.3)
    finally:
        source.close()

    relevant = [
        item.describe() for item in delivered
        if isinstance(item, ChangeEvent) and relevance.matches(item)
    ]
    assert relevant == []
