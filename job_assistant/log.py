"""Logging setup shared by the scanner, the analyzer and the CLI.

Console output goes to stdout at ``LOG_LEVEL``; a daily file under ``logs/``
(or ``ASSISTANT_LOG_DIR``) always records DEBUG.
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

_DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s  %(levelname)-8s  %(short_name)-12s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_PACKAGE_PREFIX = "job_assistant."
_QUIET = ("asyncio", "httpx", "httpcore", "openai")
_configured = False


class _ShortNameFilter(logging.Filter):
    """Adds ``short_name``: the logger name without the package prefix."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(_PACKAGE_PREFIX):
            name = name[len(_PACKAGE_PREFIX):]
        record.short_name = name
        return True


def get_logger(name: str) -> logging.Logger:
    """Named logger; the first call installs the handlers."""
    global _configured
    if not _configured:
        configure()
        _configured = True
    return logging.getLogger(name)


def configure(level_name: str | None = None, log_dir: Path | None = None) -> None:
    level_name = (level_name or os.environ.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for noisy in _QUIET:
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    if any(getattr(h, "_assistant", False) for h in root.handlers):
        return

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FMT)
    short_names = _ShortNameFilter()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)
    console.addFilter(short_names)
    console._assistant = True  # type: ignore[attr-defined]
    root.addHandler(console)

    directory = log_dir or Path(os.environ.get("ASSISTANT_LOG_DIR") or _DEFAULT_LOG_DIR)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(directory / f"assistant_{datetime.now():%Y-%m-%d}.log", encoding="utf-8")
    except OSError as exc:
        root.warning("File logging disabled: %s", exc)
        return
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    fh.addFilter(short_names)
    fh._assistant = True  # type: ignore[attr-defined]
    root.addHandler(fh)
