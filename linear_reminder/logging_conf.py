"""Logging setup: console, rotating file and optional Better Stack shipping."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from logtail import LogtailHandler

from linear_reminder import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _betterstack_handler(formatter: logging.Formatter) -> Optional[logging.Handler]:
    """Build the Better Stack handler, or None when no source token is set."""
    if not settings.BETTERSTACK_SOURCE_TOKEN:
        return None

    kwargs = {"source_token": settings.BETTERSTACK_SOURCE_TOKEN}
    if settings.BETTERSTACK_INGEST_HOST:
        kwargs["host"] = settings.BETTERSTACK_INGEST_HOST
    handler = LogtailHandler(**kwargs)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level_name: Optional[str] = None, log_dir: Optional[Path] = None) -> logging.Logger:
    """Configure the root logger and return the package logger."""
    level = getattr(logging, (level_name or settings.LOG_LEVEL).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = []

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)

    log_file = (log_dir or settings.LOGS_DIR) / "app.log"
    file_handler = RotatingFileHandler(
        log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    try:
        remote = _betterstack_handler(formatter)
    except Exception as e:
        root.warning(f"Failed to initialize BetterStack logging: {e}")
        remote = None
    if remote is not None:
        root.addHandler(remote)
        host = settings.BETTERSTACK_INGEST_HOST or "default (in.logs.betterstack.com)"
        root.info(f"BetterStack logging enabled (host: {host})")

    # Per-request access lines are noise next to our own intake logs
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    return logging.getLogger("linear_reminder")


logger = setup_logging()
