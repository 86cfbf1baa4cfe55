"""Server startup utilities: structured logging and startup banner.

Handles server initialization tasks that run before the main event loop:
- Structured logging (JSON to file, human-readable to console)
- Server version and configuration logging

All paths are constructed from conventions.py constants.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from thread_wrangler import __version__, conventions
from thread_wrangler.schema import WranglerSettings


def log_file_path() -> Path:
    """Return the server log file path, constructed from conventions."""
    return (
        Path(conventions.WRANGLER_HOME).expanduser()
        / conventions.SERVER_DIR
        / conventions.SERVER_LOG_FILE
    )


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured file logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string."""
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(log_file: Path | None = None, level: int = logging.INFO) -> None:
    """Configure structured logging: JSON to file, human-readable to console.

    Args:
        log_file: Path for the JSON log file. Uses convention default if None.
        level: Logging level for both handlers.
    """
    if log_file is None:
        log_file = log_file_path()

    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)

    # Console handler: human-readable
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.addHandler(console_handler)

    # File handler: JSON structured (with rotation)
    file_handler = RotatingFileHandler(
        str(log_file), maxBytes=10 * 1024 * 1024, backupCount=3
    )
    file_handler.setFormatter(JSONFormatter())
    root.addHandler(file_handler)


def log_startup_info(
    *,
    host: str,
    port: int,
    apps: list[str],
    settings: WranglerSettings,
    simulator_mode: bool,
    logger: logging.Logger,
) -> None:
    """Log server version, bind address, loaded apps and the active policy."""
    logger.info("Thread Wrangler Server v%s", __version__)
    logger.info("Bind: %s:%d (simulator_mode=%s)", host, port, simulator_mode)
    if apps:
        logger.info("Loaded apps: %s", ", ".join(apps))
    else:
        logger.info("No apps loaded")

    policy = settings.wrangler
    logger.info(
        "Policy: private=%s direct=%s group=%s cross_team=%s max_count=%s",
        policy.move_thread_from_private_channel_enable,
        policy.move_thread_from_direct_message_channel_enable,
        policy.move_thread_from_group_message_channel_enable,
        policy.move_thread_to_another_team_enable,
        policy.max_thread_count or "unlimited",
    )
