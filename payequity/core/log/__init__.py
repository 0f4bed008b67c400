"""Logging for the service: rich console output fed from a queue, optional daily files."""
from __future__ import annotations

import atexit
import logging
import os
from dataclasses import dataclass, replace
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from queue import SimpleQueue
from threading import RLock
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install as install_rich_traceback

from .context import ContextFilter, log_context
from .progress import progress_manager
from .timing import timeit

__all__ = [
    "init_logging",
    "get_logger",
    "shutdown_logging",
    "log_context",
    "progress_manager",
    "timeit",
]

APP_LOGGER = "payequity"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(context)s%(message)s"


@dataclass(frozen=True)
class LoggingConfig:
    level: str | int = "INFO"
    log_dir: Optional[Path] = None
    rich_tracebacks: bool = True

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        raw_dir = os.getenv("LOG_DIR", "").strip()
        return cls(level=os.getenv("LOG_LEVEL", "INFO"), log_dir=Path(raw_dir) if raw_dir else None)

    @property
    def numeric_level(self) -> int:
        if isinstance(self.level, int):
            return self.level
        return getattr(logging, str(self.level).upper(), logging.INFO)


_lock = RLock()
_active: LoggingConfig | None = None
_listener: QueueListener | None = None
_context_filter = ContextFilter()


def _console_handler(cfg: LoggingConfig) -> logging.Handler:
    # Logs go to stderr so CLI tables on stdout stay clean.
    console = Console(stderr=True)
    progress_manager.use_console(console)
    handler = RichHandler(
        console=console,
        rich_tracebacks=cfg.rich_tracebacks,
        show_path=False,
        markup=False,
        log_time_format="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(logging.Formatter("%(context)s%(message)s"))
    return handler


def _file_handler(log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        log_dir / f"{APP_LOGGER}.log", when="midnight", encoding="utf-8", delay=True
    )
    handler.namer = lambda name: name.replace(".log.", "_") + ".log"
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def _stop_locked() -> None:
    global _active, _listener
    if _listener is not None:
        _listener.stop()
        for handler in _listener.handlers:
            handler.close()
    _listener = None
    _active = None
    progress_manager.reset_console()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)


def init_logging(**overrides: object) -> None:
    """Route every record through one queue to the rich console and optional log files.

    Defaults come from ``LOG_LEVEL`` and ``LOG_DIR``; keyword arguments override
    them. Calling again with the same effective configuration is a no-op.
    """

    global _active, _listener
    cfg = LoggingConfig.from_env()
    known = {key: value for key, value in overrides.items() if hasattr(cfg, key)}
    cfg = replace(cfg, **known)

    with _lock:
        if _active == cfg:
            return
        _stop_locked()

        if cfg.rich_tracebacks:
            install_rich_traceback(show_locals=False)
        handlers = [_console_handler(cfg)]
        if cfg.log_dir is not None:
            handlers.append(_file_handler(cfg.log_dir))
        for handler in handlers:
            handler.setLevel(cfg.numeric_level)

        queue: SimpleQueue = SimpleQueue()
        queue_handler = QueueHandler(queue)
        queue_handler.setLevel(cfg.numeric_level)
        # Context variables are read on the producing thread, before the record is queued.
        queue_handler.addFilter(_context_filter)

        root = logging.getLogger()
        root.setLevel(logging.NOTSET)
        root.addHandler(queue_handler)
        _listener = QueueListener(queue, *handlers, respect_handler_level=True)
        _listener.start()
        _active = cfg


def shutdown_logging() -> None:
    """Flush queued records and detach the handlers."""

    with _lock:
        _stop_locked()


atexit.register(shutdown_logging)


def get_logger(name: str | None = None) -> logging.Logger:
    with _lock:
        if _active is None:
            init_logging()
    return logging.getLogger(name or APP_LOGGER)
