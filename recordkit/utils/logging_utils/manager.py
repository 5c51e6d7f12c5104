from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

LOGGER_NAMESPACE = "recordkit"

# Category -> file name under the log directory.
CATEGORY_FILES: Dict[str, str] = {
    "model": "model.log",
    "query": "query.log",
}

_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the fields attached to records in the current context."""

    return dict(_log_context.get())


@contextmanager
def log_context(**fields: Any):
    """Attach ``fields`` to every record logged inside the block; ``None`` values are skipped."""

    merged = {**_log_context.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _log_context.set(merged)
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextAwareFormatter(logging.Formatter):
    """Text or JSON formatter that appends the active :func:`log_context` fields."""

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None, *, json_format: bool = False) -> None:
        super().__init__(fmt=fmt or "[%(asctime)s] %(levelname)s %(name)s - %(message)s", datefmt=datefmt)
        self.json_format = json_format

    def format(self, record: logging.LogRecord) -> str:
        context = _log_context.get()
        if not self.json_format:
            line = super().format(record)
            if context:
                line += " | " + " ".join(f"{key}={value}" for key, value in sorted(context.items()))
            return line

        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if context:
            payload["context"] = dict(context)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class LoggerManager:
    """
    Hands out ``recordkit.<category>`` loggers.

    With category files enabled and a base directory set, each category
    writes to its own timed-rotating file. A logger left without handlers
    propagates, so a host application's logging setup receives its records.
    """

    def __init__(
        self,
        *,
        base_dir: Optional[str] = None,
        enable_category_files: bool = False,
        rotation_when: str = "midnight",
        rotation_interval: int = 1,
        backup_count: int = 7,
        default_level: int = logging.INFO,
        category_levels: Optional[Dict[str, int]] = None,
        enable_console: bool = False,
        console_level: Optional[int] = None,
        console_json: bool = False,
        json_format: bool = False,
        text_format: Optional[str] = None,
        date_format: Optional[str] = None,
    ) -> None:
        self.base_dir = Path(base_dir) if base_dir else None
        self.enable_category_files = enable_category_files and self.base_dir is not None
        self.rotation = {"when": rotation_when, "interval": rotation_interval, "backupCount": backup_count}
        self.default_level = default_level
        self.category_levels = {k.lower(): v for k, v in (category_levels or {}).items()}
        self.enable_console = enable_console
        self.console_level = console_level if console_level is not None else default_level
        self.console_json = console_json
        self.json_format = json_format
        self.text_format = text_format
        self.date_format = date_format
        self._loggers: Dict[str, logging.Logger] = {}
        self._console_handler: Optional[logging.Handler] = None

    def get_logger(self, category: str) -> logging.Logger:
        key = category.strip().lower()
        logger = self._loggers.get(key)
        if logger is not None:
            return logger

        logger = logging.getLogger(f"{LOGGER_NAMESPACE}.{key}")
        logger.setLevel(self.category_levels.get(key, self.default_level))

        if self.enable_category_files:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            handler = TimedRotatingFileHandler(
                self.base_dir / CATEGORY_FILES.get(key, f"{key}.log"),
                encoding="utf-8",
                utc=True,
                **self.rotation,
            )
            handler.setFormatter(self._formatter(self.json_format))
            logger.addHandler(handler)

        if self.enable_console:
            if self._console_handler is None:
                self._console_handler = logging.StreamHandler()
                self._console_handler.setLevel(self.console_level)
                self._console_handler.setFormatter(self._formatter(self.console_json))
            logger.addHandler(self._console_handler)

        logger.propagate = not logger.handlers
        self._loggers[key] = logger
        return logger

    def _formatter(self, json_format: bool) -> ContextAwareFormatter:
        return ContextAwareFormatter(self.text_format, self.date_format, json_format=json_format)

    def shutdown(self) -> None:
        """Close and detach every handler this manager attached."""

        for logger in self._loggers.values():
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
            logger.propagate = True
        self._loggers.clear()
        self._console_handler = None


def _to_level(value: Any, default: int = logging.INFO) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        level = logging.getLevelName(value.strip().upper())
        if isinstance(level, int):
            return level
    return default


_manager: Optional[LoggerManager] = None


def init_logger(config: Any) -> LoggerManager:
    """
    Replace the shared manager with one built from the ``LOGGING_*``
    attributes of ``config``. Missing attributes keep the manager defaults.
    """

    global _manager

    def setting(name: str, default: Any = None) -> Any:
        value = getattr(config, name, None)
        return default if value is None else value

    manager = LoggerManager(
        base_dir=setting("LOGGING_BASE_DIR"),
        enable_category_files=bool(setting("LOGGING_ENABLE_CATEGORY_FILES", False)),
        rotation_when=setting("LOGGING_ROTATION_WHEN", "midnight"),
        rotation_interval=int(setting("LOGGING_ROTATION_INTERVAL", 1)),
        backup_count=int(setting("LOGGING_ROTATION_BACKUP_COUNT", 7)),
        default_level=_to_level(setting("LOGGING_DEFAULT_LEVEL")),
        category_levels={name: _to_level(level) for name, level in setting("LOGGING_CATEGORY_LEVELS", {}).items()},
        enable_console=bool(setting("LOGGING_CONSOLE_ENABLED", False)),
        console_level=_to_level(setting("LOGGING_CONSOLE_LEVEL")),
        console_json=bool(setting("LOGGING_CONSOLE_JSON", False)),
        json_format=bool(setting("LOGGING_JSON_FORMAT", False)),
        text_format=setting("LOGGING_TEXT_FORMAT"),
        date_format=setting("LOGGING_DATE_FORMAT"),
    )

    shutdown_logger()
    _manager = manager
    return _manager


def logger_manager() -> LoggerManager:
    global _manager
    if _manager is None:
        _manager = LoggerManager()
    return _manager


def shutdown_logger() -> None:
    global _manager
    if _manager is not None:
        _manager.shutdown()
        _manager = None


def get_logger(category: str) -> logging.Logger:
    return logger_manager().get_logger(category)
