"""Recursive filesystem event source backed by watchdog."""
from __future__ import annotations

import logging
import os
import queue
from pathlib import Path
from typing import Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .events import ChangeEvent, EventType, SourceClosed, SourceError, SourceItem

logger = logging.getLogger(__name__)

_CLOSED = object()

_EVENT_TYPES = {
    "created": EventType.CREATED,
    "modified": EventType.MODIFIED,
    "deleted": EventType.DELETED,
    "moved": EventType.MOVED,
}


def _decode(raw: Union[str, bytes]) -> Path:
    return Path(os.fsdecode(raw))


def to_change_event(event: FileSystemEvent) -> ChangeEvent:
    """Translate a watchdog event into a :class:`ChangeEvent`."""

    kind = _EVENT_TYPES.get(event.event_type, EventType.ACCESSED)
    if event.is_directory and kind is EventType.MODIFIED:
        # Reported for the parent whenever a child file is written; the child event already covers it.
        kind = EventType.ACCESSED
    paths = {_decode(event.src_path)}
    dest_path = getattr(event, "dest_path", "")
    if dest_path:
        paths.add(_decode(dest_path))
    return ChangeEvent(kind=kind, paths=frozenset(paths))


class QueueingHandler(FileSystemEventHandler):
    """Pushes every watchdog notification onto a queue for the monitor thread."""

    def __init__(self, events: "queue.Queue[object]"):
        super().__init__()
        self._events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            item: SourceItem = to_change_event(event)
        except Exception as exc:
            item = SourceError(exc)
        self._events.put(item)


class EventSource:
    """Single-producer queue fed by a recursive watchdog observer.

    ``next_event`` is the only blocking primitive the monitor uses: it returns
    the next item, ``None`` when ``timeout`` elapses first, and raises
    :class:`SourceClosed` after :meth:`close` or if the observer thread dies.
    """

    def __init__(self, root: Path, *, liveness_interval: float = 1.0, observer=None):
        self._root = root
        self._liveness_interval = liveness_interval
        self._events: "queue.Queue[object]" = queue.Queue()
        self._observer = observer if observer is not None else Observer()
        self._closed = False

    @property
    def root(self) -> Path:
        return self._root

    def start(self) -> None:
        self._observer.schedule(QueueingHandler(self._events), str(self._root), recursive=True)
        self._observer.start()
        logger.debug("Watching %s recursively", self._root)

    def close(self) -> None:
        """Stop the observer; pending notifications are still delivered before closing."""

        if self._closed:
            return
        self._closed = True
        self._observer.stop()
        self._events.put(_CLOSED)
        if self._observer.is_alive():
            self._observer.join()

    def next_event(self, timeout: Optional[float] = None) -> Optional[SourceItem]:
        if timeout is not None:
            try:
                item = self._events.get(timeout=timeout)
            except queue.Empty:
                self._check_alive()
                return None
            return self._unwrap(item)

        while True:
            try:
                item = self._events.get(timeout=self._liveness_interval)
            except queue.Empty:
                self._check_alive()
                continue
            return self._unwrap(item)

    def _unwrap(self, item: object) -> SourceItem:
        if item is _CLOSED:
            # Keep the sentinel so repeated calls keep reporting closed.
            self._events.put(_CLOSED)
            raise SourceClosed()
        return item  # type: ignore[return-value]

    def _check_alive(self) -> None:
        if self._closed or self._observer.is_alive():
            return
        logger.error("Filesystem observer stopped unexpectedly")
        self._closed = True
        self._events.put(_CLOSED)
        raise SourceClosed()
