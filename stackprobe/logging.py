"""Logging for stackprobe scans.

Every logger lives under the ``stackprobe`` hierarchy. Records emitted while
a root is being scanned carry ``scan_root`` and ``scan_category`` attributes;
verbose console output and the log file render them as a ``[root category]``
prefix so interleaved matches from several roots stay attributable.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, MutableMapping, Optional, Tuple

_LOGGER_NAME = "stackprobe"

_CONSOLE_FORMAT = "[stackprobe] %(levelname)s %(message)s"
_VERBOSE_FORMAT = "[stackprobe] %(levelname)s %(scan_context)s%(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(scan_context)s%(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the stackprobe hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


class ScanLogger(logging.LoggerAdapter):
    """Adapter tagging records with the root, and optionally the category, being scanned."""

    def __init__(self, logger: logging.Logger, root: str | Path, category: Optional[str] = None) -> None:
        super().__init__(logger, {"scan_root": str(root), "scan_category": category or ""})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs

    def for_category(self, category: str) -> "ScanLogger":
        return ScanLogger(self.logger, self.extra["scan_root"], category)


class _ScanContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        parts = [
            value
            for value in (getattr(record, "scan_root", ""), getattr(record, "scan_category", ""))
            if value
        ]
        record.scan_context = f"[{' '.join(parts)}] " if parts else ""
        return True


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Install console output (with scan context when verbose) and an optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    context_filter = _ScanContextFilter()
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.addFilter(context_filter)
    stream_handler.setFormatter(logging.Formatter(_VERBOSE_FORMAT if verbose else _CONSOLE_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.addFilter(context_filter)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = ["ScanLogger", "configure_logging", "get_logger"]
