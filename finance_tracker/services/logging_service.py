from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5


def _file_handler(path: Path, level: int, formatter: logging.Formatter, rotating: bool) -> logging.Handler:
    if rotating:
        handler: logging.Handler = RotatingFileHandler(str(path), maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT)
    else:
        handler = logging.FileHandler(str(path))
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _has_file_handler(logger: logging.Logger, path: Path) -> bool:
    return any(
        getattr(h, "baseFilename", None) == str(path)
        for h in logger.handlers
        if isinstance(h, logging.FileHandler)
    )


def configure_logging(log_dir: Path, production: bool = False) -> None:
    """Configure application logging (file + console) and attach to uvicorn loggers.

    In production the files rotate (10MB, keep 5) and the console only
    shows warnings. Idempotent: safe to call multiple times.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    server_log_path = log_dir / "server.log"
    auth_log_path = log_dir / "auth.log"
    scheduler_log_path = log_dir / "scheduler.log"

    # Main formatter
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    formatter = logging.Formatter(fmt)

    # Detailed formatter for auth and scheduler logs
    detailed_fmt = "%(asctime)s %(levelname)s %(name)s [%(filename)s:%(lineno)d]: %(message)s"
    detailed_formatter = logging.Formatter(detailed_fmt)

    server_handler = _file_handler(
        server_log_path, logging.INFO if production else logging.DEBUG, formatter, production
    )

    # Console handler
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(logging.WARNING if production else logging.INFO)
    stream_handler.setFormatter(formatter)

    # Root logger configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if not _has_file_handler(root_logger, server_log_path):
        root_logger.addHandler(server_handler)

    if not any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in root_logger.handlers
    ):
        root_logger.addHandler(stream_handler)

    # Component loggers get their own file in addition to propagating to root
    for logger_name, path in (
        ("finance_tracker.auth", auth_log_path),
        ("finance_tracker.scheduler", scheduler_log_path),
    ):
        lg = logging.getLogger(logger_name)
        lg.setLevel(logging.DEBUG)
        if not _has_file_handler(lg, path):
            lg.addHandler(_file_handler(path, logging.DEBUG, detailed_formatter, production))

    # Uvicorn loggers (uvicorn.error propagates into "uvicorn")
    for uv_logger_name in ("uvicorn", "uvicorn.access"):
        lg = logging.getLogger(uv_logger_name)
        lg.setLevel(logging.INFO)
        if not _has_file_handler(lg, server_log_path):
            lg.addHandler(server_handler)
