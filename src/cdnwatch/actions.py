"""The sync action: regenerate the repository contents, then add, commit and push."""
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from .config import WatcherConfig

logger = logging.getLogger(__name__)

CommandRunner = Callable[..., "subprocess.CompletedProcess[str]"]

COMMIT_MESSAGE = "auto: synchronize and update files at {timestamp}"


@dataclass(frozen=True)
class SyncFailure:
    """Why a sync attempt stopped before reaching version control."""

    reason: str
    returncode: Optional[int] = None
    stdout: str = ""
    stderr: str = ""


@dataclass(frozen=True)
class StepOutcome:
    """Captured result of one best-effort version-control step."""

    name: str
    argv: List[str]
    returncode: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.returncode == 0


@dataclass
class SyncResult:
    """Outcome of one sync attempt."""

    success: bool
    failure: Optional[SyncFailure] = None
    steps: List[StepOutcome] = field(default_factory=list)

    @classmethod
    def failed(cls, failure: SyncFailure) -> "SyncResult":
        return cls(success=False, failure=failure)


class SyncAction:
    """Runs the sync script and, if it succeeds, the git add/commit/push triplet.

    Only the script decides success. The three git steps are each attempted
    regardless of how the previous one went and are reported through the log.
    """

    def __init__(
        self,
        config: WatcherConfig,
        *,
        runner: CommandRunner = subprocess.run,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._config = config
        self._runner = runner
        self._clock = clock

    @property
    def root(self) -> Path:
        return self._config.root_path

    def run(self) -> SyncResult:
        failure = self._run_script()
        if failure is not None:
            return SyncResult.failed(failure)

        message = COMMIT_MESSAGE.format(timestamp=self._clock().strftime("%Y-%m-%d %H:%M:%S"))
        steps = [
            self._vcs_step("add", ["add", "."]),
            self._vcs_step("commit", ["commit", "-m", message]),
            self._vcs_step("push", ["push", self._config.remote, self._config.branch]),
        ]
        return SyncResult(success=True, steps=steps)

    def vcs_argv(self, args: Sequence[str]) -> List[str]:
        return [self._config.vcs, "-C", str(self.root), *args]

    def _run_script(self) -> Optional[SyncFailure]:
        argv = self._config.sync_command.argv()
        logger.info("Running sync script: %s", self._config.sync_command.script)
        try:
            completed = self._runner(argv, cwd=str(self.root), capture_output=True, text=True, errors="replace")
        except OSError as exc:
            logger.error("Sync script could not be started: %s", exc)
            return SyncFailure(reason=f"could not start {argv[0]}: {exc}")

        if completed.returncode != 0:
            stdout = _text(completed.stdout)
            stderr = _text(completed.stderr)
            logger.error("Sync script failed with status: %s", completed.returncode)
            logger.error("Sync script output: %s", stdout)
            logger.error("Sync script error output: %s", stderr)
            return SyncFailure(
                reason="sync script exited with a non-zero status",
                returncode=completed.returncode,
                stdout=stdout,
                stderr=stderr,
            )
        return None

    def _vcs_step(self, name: str, args: Sequence[str]) -> StepOutcome:
        argv = self.vcs_argv(args)
        logger.info("--- %s %s ---", self._config.vcs, name)
        try:
            completed = self._runner(argv, capture_output=True, text=True, errors="replace")
        except OSError as exc:
            logger.error("%s %s could not be started: %s", self._config.vcs, name, exc)
            return StepOutcome(name=name, argv=argv, error=str(exc))

        outcome = StepOutcome(
            name=name,
            argv=argv,
            returncode=completed.returncode,
            stdout=_text(completed.stdout).strip(),
            stderr=_text(completed.stderr).strip(),
        )
        _log_step_output(outcome)
        return outcome


def run_sync(root: Path, config: WatcherConfig, **kwargs: Any) -> SyncResult:
    """Run one sync for ``root`` using the rest of ``config``."""

    if config.root_path != root:
        config = replace(config, root_path=root)
    return SyncAction(config, **kwargs).run()


def _log_step_output(outcome: StepOutcome) -> None:
    level = logging.INFO if outcome.returncode == 0 else logging.WARNING
    if outcome.returncode != 0:
        logger.log(level, "%s exited with status %s", outcome.name, outcome.returncode)
    if outcome.stdout:
        logger.log(level, "%s", outcome.stdout)
    if outcome.stderr:
        logger.log(level, "%s", outcome.stderr)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
