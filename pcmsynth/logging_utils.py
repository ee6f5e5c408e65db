"""
Logging setup for pcmsynth.

The ``pcmsynth`` logger gets a terse console handler (warnings and up, or
everything when ``PCMSYNTH_DEBUG`` is set) and a debug-level file handler in
the log directory. Aborted renders and unreadable inputs are appended to the
same file, with their context and traceback, by :func:`log_exception`.
"""

from __future__ import annotations

import logging
import os
import sys
import traceback
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from types import MappingProxyType

LOGGER_NAME = "pcmsynth"
LOG_DIR_ENV = "PCMSYNTH_LOG_DIR"
DEBUG_ENV = "PCMSYNTH_DEBUG"
LOG_FILE_NAME = "pcmsynth.log"

_LOGGER = logging.getLogger("pcmsynth.logging")
_configured = False

_LEVEL_TAGS: Mapping[int, str] = MappingProxyType(
    {
        logging.DEBUG: "[debug]",
        logging.INFO: "[info]",
        logging.WARNING: "[warn]",
        logging.ERROR: "[error]",
        logging.CRITICAL: "[fatal]",
    }
)


class _TaggedFormatter(logging.Formatter):
    """Console lines read ``[warn] pcmsynth.pipeline: message``."""

    def __init__(self) -> None:
        super().__init__("%(tag)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        record.tag = _LEVEL_TAGS.get(record.levelno, f"[{record.levelname.lower()}]")
        return super().format(record)


def debug_enabled() -> bool:
    return bool(os.environ.get(DEBUG_ENV))


def get_log_dir() -> Path:
    configured = os.environ.get(LOG_DIR_ENV)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".cache" / "pcmsynth" / "logs"


def get_log_path() -> Path:
    return get_log_dir() / LOG_FILE_NAME


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.__stderr__)
    handler.setLevel(logging.DEBUG if debug_enabled() else logging.WARNING)
    handler.setFormatter(_TaggedFormatter())
    return handler


def _file_handler() -> logging.Handler | None:
    path = get_log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        _LOGGER.warning("File logging disabled for %s: %s", path, exc)
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-7s %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
    )
    return handler


def configure_logging(*, force: bool = False) -> logging.Logger:
    """Attach pcmsynth's handlers once.

    ``force`` drops the current handlers and builds them again, which picks up
    changes to ``PCMSYNTH_LOG_DIR`` and ``PCMSYNTH_DEBUG``. The console handler
    is skipped when the application already configured the root logger; our
    records still reach it through propagation.
    """
    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    if _configured and not force:
        return logger

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG)

    if force or not logging.getLogger().handlers:
        logger.addHandler(_console_handler())
    file_handler = _file_handler()
    if file_handler is not None:
        logger.addHandler(file_handler)

    logger.propagate = True
    _configured = True
    return logger


def log_exception(
    context: str, exc: BaseException, *, details: Mapping[str, object] | None = None
) -> Path | None:
    """Append ``exc`` with its render context to the log file.

    Returns the file written, or None when the log directory is unusable.
    """
    stamp = datetime.now().isoformat(timespec="seconds")
    lines = [f"[{stamp}] {context}: {type(exc).__name__}: {exc}"]
    lines.extend(f"    {key} = {value!r}" for key, value in (details or {}).items())
    entry = "\n".join(lines) + "\n"
    if exc.__traceback__ is not None:
        entry += "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    path = get_log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(entry + "\n")
    except OSError as log_exc:
        _LOGGER.warning("Could not record %s failure in %s: %s", context, path, log_exc)
        return None
    return path
