"""Debounced dispatch loop: coalesce bursts of changes into a single sync."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Optional, Protocol

from .actions import SyncAction, SyncResult
from .config import DEBOUNCE_WINDOW, WatcherConfig, load_config
from .events import SourceClosed, SourceError, SourceItem
from .filters import RelevanceFilter
from .journal import install_journal
from .source import EventSource

logger = logging.getLogger(__name__)


class ChangeSource(Protocol):
    def next_event(self, timeout: Optional[float] = None) -> Optional[SourceItem]:
        ...


@dataclass
class MonitorStats:
    """Counters emitted by the monitor for observability."""

    events_seen: int = 0
    relevant_events: int = 0
    source_errors: int = 0
    syncs: int = 0
    failed_syncs: int = 0


class DebounceMonitor:
    """Fires the sync action once per quiet period after relevant changes.

    The monitor is either idle (``pending_since is None``) or pending since
    the most recent relevant change. Every relevant change restarts the
    window; once ``window`` seconds pass without one, the sync runs and the
    monitor returns to idle whatever the outcome.
    """

    def __init__(
        self,
        source: ChangeSource,
        relevance: RelevanceFilter,
        sync: Callable[[], SyncResult],
        *,
        window: float = DEBOUNCE_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._source = source
        self._relevance = relevance
        self._sync = sync
        self._window = window
        self._clock = clock
        self._pending_since: Optional[float] = None
        self._stats = MonitorStats()

    @property
    def pending_since(self) -> Optional[float]:
        return self._pending_since

    @property
    def stats(self) -> MonitorStats:
        return self._stats

    def run(self) -> None:
        """Consume the source until it closes."""

        while True:
            timeout = self._next_timeout()
            if timeout == 0.0:
                self._fire()
                continue
            try:
                item = self._source.next_event(timeout)
            except SourceClosed:
                break
            if item is None:
                # Deadline reached; re-checked by _next_timeout on the next pass.
                continue
            self._handle(item)

        logger.info(
            "Service shutting down normally. (%s events, %s syncs, %s failed)",
            self._stats.events_seen,
            self._stats.syncs,
            self._stats.failed_syncs,
        )

    def _next_timeout(self) -> Optional[float]:
        if self._pending_since is None:
            return None
        elapsed = self._clock() - self._pending_since
        return max(self._window - elapsed, 0.0)

    def _handle(self, item: SourceItem) -> None:
        if isinstance(item, SourceError):
            self._stats.source_errors += 1
            logger.error("Notify error: %s", item.describe())
            return

        self._stats.events_seen += 1
        if not self._relevance.matches(item):
            logger.debug("Ignoring change %s", item.describe())
            return

        self._stats.relevant_events += 1
        self._pending_since = self._clock()
        logger.info("Change: %s", item.describe())

    def _fire(self) -> None:
        self._stats.syncs += 1
        try:
            result = self._sync()
        except Exception:
            self._stats.failed_syncs += 1
            logger.exception("Sync action raised an unexpected error")
        else:
            if not result.success:
                self._stats.failed_syncs += 1
                reason = result.failure.reason if result.failure else "unknown"
                logger.error("Sync failed: %s", reason)
            else:
                logger.info("Sync completed")
        finally:
            # No retry: only a new relevant change re-arms the window.
            self._pending_since = None


def run(root_path: str, config: Optional[WatcherConfig] = None) -> None:
    """Watch ``root_path`` and keep it synchronized; blocks until the source closes."""

    if config is None:
        config = load_config(root_override=root_path).watcher
    root = Path(root_path).resolve()
    if config.root_path != root:
        config = replace(config, root_path=root)

    install_journal(root, logs_dir=config.logs_dir)
    logger.info("Service started.")

    source = EventSource(root)
    relevance = RelevanceFilter(
        root,
        ignored_names=config.ignored_names,
        logs_dir_name=config.logs_dir,
    )
    monitor = DebounceMonitor(
        source,
        relevance,
        SyncAction(config).run,
        window=config.debounce_seconds,
    )
    source.start()
    try:
        monitor.run()
    except KeyboardInterrupt:
        logger.info("Monitor interrupted by user")
    finally:
        source.close()
