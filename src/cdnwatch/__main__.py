"""Command-line entry point for the repository watcher."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .config import ConfigError, load_config
from .monitor import run

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def configure_logging(level_name: str, stream=None) -> logging.Handler:
    """Attach the console handler at the requested level.

    The level lives on the handler, not the root logger, so the daily journal
    still receives INFO records while the console stays as quiet as asked.
    """

    level = getattr(logging, level_name.upper(), logging.INFO)
    console = logging.StreamHandler(stream)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root = logging.getLogger()
    root.addHandler(console)
    root.setLevel(min(level, logging.INFO))
    return console


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Watch a content repository and sync it to git after changes settle"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML file with watcher settings (CDN_REPO_* environment variables take precedence)",
    )
    parser.add_argument(
        "--root",
        default=None,
        help="Directory to watch (default: $CDN_REPO_PATH)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Console logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    args = parser.parse_args()

    configure_logging(args.log_level)

    config_path = Path(args.config) if args.config else None
    try:
        app_config = load_config(config_path, root_override=args.root)
    except ConfigError as exc:
        logging.error("%s", exc)
        raise SystemExit(2) from exc

    watcher = app_config.watcher
    run(str(watcher.root_path), watcher)


if __name__ == "__main__":
    main()
