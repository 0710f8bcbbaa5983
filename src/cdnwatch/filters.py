"""Decide which filesystem changes should count toward a sync."""
from __future__ import annotations

import logging
from pathlib import Path, PurePath
from typing import Iterable, Union

from .events import SYNC_EVENT_TYPES, ChangeEvent

logger = logging.getLogger(__name__)

# Files written by the sync script itself; changes to them are derived, not source edits.
DEFAULT_IGNORED_NAMES = ("index.html", "contents.json")
LOGS_DIR_NAME = "logs"

PathLike = Union[str, PurePath]


def is_relevant(
    path: PathLike,
    *,
    ignored_names: Iterable[str] = DEFAULT_IGNORED_NAMES,
    logs_dir_name: str = LOGS_DIR_NAME,
) -> bool:
    """Return True if a change to ``path`` (relative to the watched root) should trigger a sync."""

    relative = PurePath(path)
    filename = relative.name
    if not filename:
        return False

    if filename in set(ignored_names):
        return False

    # The watcher's own journal lives under logs/ and must not retrigger it.
    if any(part == logs_dir_name for part in relative.parts):
        return False

    return True


class RelevanceFilter:
    """Applies :func:`is_relevant` to events reported for an absolute root."""

    def __init__(
        self,
        root: Path,
        *,
        ignored_names: Iterable[str] = DEFAULT_IGNORED_NAMES,
        logs_dir_name: str = LOGS_DIR_NAME,
    ):
        self._root = root
        self._ignored_names = frozenset(ignored_names)
        self._logs_dir_name = logs_dir_name

    @property
    def root(self) -> Path:
        return self._root

    def is_relevant_path(self, path: Path) -> bool:
        try:
            relative = path.relative_to(self._root)
        except ValueError:
            logger.debug("Ignoring path outside watched root: %s", path)
            return False
        return is_relevant(
            relative,
            ignored_names=self._ignored_names,
            logs_dir_name=self._logs_dir_name,
        )

    def matches(self, event: ChangeEvent) -> bool:
        """True when the event kind counts and any of its paths is relevant."""

        if event.kind not in SYNC_EVENT_TYPES:
            return False
        return any(self.is_relevant_path(path) for path in event.paths)
