"""Event models shared across watcher components."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import FrozenSet, Union


class EventType(str, Enum):
    """Kinds of filesystem changes emitted by the event source."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    MOVED = "moved"
    ACCESSED = "accessed"


# Renames alter the tree just like an in-place modification.
SYNC_EVENT_TYPES = frozenset(
    {EventType.CREATED, EventType.MODIFIED, EventType.DELETED, EventType.MOVED}
)


@dataclass(frozen=True)
class ChangeEvent:
    """One notification from the watched directory tree."""

    kind: EventType
    paths: FrozenSet[Path]

    def describe(self) -> str:
        names = ", ".join(sorted(str(path) for path in self.paths))
        return f"[{names}] ({self.kind.value})"


@dataclass(frozen=True)
class SourceError:
    """A notification that could not be delivered correctly."""

    error: BaseException

    def describe(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


SourceItem = Union[ChangeEvent, SourceError]


class SourceClosed(Exception):
    """Raised by an event source once no further notifications will arrive."""
