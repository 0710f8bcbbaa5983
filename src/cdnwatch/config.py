"""Configuration loading utilities for the repository watcher."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml  # type: ignore

from .filters import DEFAULT_IGNORED_NAMES, LOGS_DIR_NAME


logger = logging.getLogger(__name__)

ROOT_ENV_VAR = "CDN_REPO_PATH"
SYNC_COMMAND_ENV_VAR = "CDN_REPO_SYNC_FILES_SCRIPT_PATH"
SYNC_COMMAND_DELIMITER = ";"

DEBOUNCE_WINDOW = 4 * 60 + 30.0  # seconds


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class SyncCommand:
    """Interpreter plus script that regenerates the repository contents."""

    interpreter: str
    script: str

    def argv(self) -> List[str]:
        return [self.interpreter, self.script]


@dataclass
class WatcherConfig:
    """Options describing what to watch and how to synchronize it."""

    root_path: Path
    sync_command: SyncCommand
    vcs: str = "git"
    remote: str = "origin"
    branch: str = "master"
    debounce_seconds: float = DEBOUNCE_WINDOW
    ignored_names: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORED_NAMES))
    logs_dir: str = LOGS_DIR_NAME


@dataclass
class AppConfig:
    """Top-level configuration structure."""

    watcher: WatcherConfig


def load_config(
    path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    root_override: Optional[str] = None,
) -> AppConfig:
    """Build the configuration from the environment and an optional YAML file.

    The watched root and the sync command come from ``CDN_REPO_PATH`` and
    ``CDN_REPO_SYNC_FILES_SCRIPT_PATH``; the file may supply them as a fallback
    and may tune the remaining watcher options.
    """

    env = os.environ if environ is None else environ
    raw = _read_config_file(path) if path is not None else {}

    watcher_raw = raw.get("watcher", {})
    if watcher_raw is None:
        watcher_raw = {}
    if not isinstance(watcher_raw, dict):
        raise ConfigError("'watcher' section must be a mapping")

    root_value = root_override or env.get(ROOT_ENV_VAR) or watcher_raw.get("root_path")
    base_dir = path.parent if path is not None else Path.cwd()
    root_path = _parse_root_path(root_value, base_dir=base_dir)

    command_value = env.get(SYNC_COMMAND_ENV_VAR) or watcher_raw.get("sync_command")
    sync_command = _parse_sync_command(command_value)

    watcher = WatcherConfig(
        root_path=root_path,
        sync_command=sync_command,
        vcs=_ensure_str(watcher_raw.get("vcs", "git"), "watcher.vcs"),
        remote=_ensure_str(watcher_raw.get("remote", "origin"), "watcher.remote"),
        branch=_ensure_str(watcher_raw.get("branch", "master"), "watcher.branch"),
        debounce_seconds=_parse_debounce(watcher_raw.get("debounce_seconds", DEBOUNCE_WINDOW)),
        ignored_names=_ensure_str_list(
            watcher_raw.get("ignored_names", list(DEFAULT_IGNORED_NAMES)),
            "watcher.ignored_names",
        ),
        logs_dir=_ensure_str(watcher_raw.get("logs_dir", LOGS_DIR_NAME), "watcher.logs_dir"),
    )
    logger.debug(
        "Loaded watcher config root=%s command=%s push=%s/%s window=%ss",
        watcher.root_path,
        watcher.sync_command.argv(),
        watcher.remote,
        watcher.branch,
        watcher.debounce_seconds,
    )
    return AppConfig(watcher=watcher)


def parse_sync_command(value: str) -> SyncCommand:
    """Split ``"<interpreter>;<script>"`` into its two parts."""

    interpreter, sep, script = value.partition(SYNC_COMMAND_DELIMITER)
    interpreter = interpreter.replace('"', "").strip()
    if not interpreter:
        raise ConfigError(f"{SYNC_COMMAND_ENV_VAR} is missing the interpreter path")
    if not sep:
        raise ConfigError(
            f"{SYNC_COMMAND_ENV_VAR} must be '<interpreter>{SYNC_COMMAND_DELIMITER}<script>'"
        )
    script = script.replace('"', "").replace("\\", "/").strip()
    if not script:
        raise ConfigError(f"{SYNC_COMMAND_ENV_VAR} is missing the script path")
    return SyncCommand(interpreter=interpreter, script=script)


def _read_config_file(path: Path) -> dict:
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:  # pragma: no cover - logging helper
        raise ConfigError(f"Failed to parse YAML configuration: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")
    return data


def _parse_root_path(raw: Any, *, base_dir: Path) -> Path:
    if raw is None or raw == "":
        raise ConfigError(f"{ROOT_ENV_VAR} environment variable not set")
    if not isinstance(raw, str):
        raise ConfigError("watcher.root_path must be a string")

    root_path = Path(raw.replace('"', "")).expanduser()
    if not root_path.is_absolute():
        root_path = base_dir / root_path
    root_path = root_path.resolve()

    if not root_path.is_dir():
        raise ConfigError(f"Watched root is not a directory: {root_path}")
    return root_path


def _parse_sync_command(raw: Any) -> SyncCommand:
    if raw is None or raw == "":
        raise ConfigError(f"{SYNC_COMMAND_ENV_VAR} environment variable not set")
    if isinstance(raw, str):
        return parse_sync_command(raw)
    if isinstance(raw, dict):
        interpreter = raw.get("interpreter")
        script = raw.get("script")
        if not isinstance(interpreter, str) or not isinstance(script, str):
            raise ConfigError("watcher.sync_command must include 'interpreter' and 'script' strings")
        return SyncCommand(interpreter=interpreter, script=script.replace("\\", "/"))
    raise ConfigError("watcher.sync_command must be a string or a mapping")


def _parse_debounce(value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigError("watcher.debounce_seconds must be numeric")
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError("watcher.debounce_seconds must be numeric") from exc
    if seconds <= 0:
        raise ConfigError("watcher.debounce_seconds must be positive")
    return seconds


def _ensure_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{field_name} must be a non-empty string")
    return value


def _ensure_str_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{field_name} must be a list of strings")
    items: List[str] = []
    for elem in value:
        if not isinstance(elem, str):
            raise ConfigError(f"{field_name} must contain only strings")
        items.append(elem)
    return items
