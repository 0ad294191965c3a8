"""Logging for the catalog pipeline.

Human-readable lines go to stdout; pipeline events (state transitions,
category progress, price updates) are appended to a per-day JSONL file so
a run can be replayed from disk.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

__all__ = [
    "setup_logging",
    "get_logger",
    "log_scrape_event",
    "LOG_DIR",
]

LOG_DIR = Path(__file__).parent.parent / "logs"
ROOT_LOGGER = "petfood"

_LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}


class JSONLEventHandler(logging.Handler):
    """Append each record as one JSON object to ``<prefix>_<YYYYmmdd>.jsonl``.

    Records logged through :func:`log_scrape_event` carry an ``event`` name
    and a ``data`` object; plain log calls carry only the message.
    """

    def __init__(self, log_dir: Path, prefix: str = ROOT_LOGGER):
        super().__init__()
        log_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir = log_dir
        self.prefix = prefix

    def path_for(self, when: datetime) -> Path:
        return self.log_dir / f"{self.prefix}_{when:%Y%m%d}.jsonl"

    def emit(self, record: logging.LogRecord) -> None:
        try:
            when = datetime.fromtimestamp(record.created, tz=timezone.utc)
            entry: Dict[str, Any] = {
                "ts": when.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            event = getattr(record, "event_type", None)
            if event:
                entry["event"] = event
                entry["data"] = getattr(record, "event_data", {})

            with open(self.path_for(when), "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        except Exception:
            self.handleError(record)


class ColorFormatter(logging.Formatter):
    """Wrap each line in the ANSI colour of its level."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno)
        return f"{color}{line}\033[0m" if color else line


def setup_logging(
    level: int = logging.INFO,
    log_to_file: bool = True,
    log_to_console: bool = True,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """Configure the ``petfood`` logger tree.

    Calling it again replaces the handlers of the previous call. The JSONL
    file always records DEBUG and up; the console follows ``level``.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(logging.DEBUG if log_to_file else level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if log_to_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level)
        formatter_cls = ColorFormatter if sys.stdout.isatty() else logging.Formatter
        console.setFormatter(formatter_cls("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S"))
        root.addHandler(console)

    if log_to_file:
        root.addHandler(JSONLEventHandler(log_dir or LOG_DIR))

    return root


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger under the ``petfood.`` namespace, e.g. ``get_logger("scraper")``."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def log_scrape_event(
    event_type: str,
    data: Dict[str, Any],
    level: int = logging.INFO,
    logger_name: str = ROOT_LOGGER,
) -> None:
    """Log a structured pipeline event.

    ``data["message"]``, when present, becomes the log line; everything else
    is stored under ``data`` in the JSONL record.
    """
    payload = {k: v for k, v in data.items() if k != "message"}
    get_logger(logger_name).log(
        level,
        data.get("message", event_type),
        extra={"event_type": event_type, "event_data": payload},
    )
