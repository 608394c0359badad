"""
log_setup.py
------------
Console + rotating-file logging for the roaming loop.

Every line carries the loop iteration and a phase tag
(scan / select / roam / connectivity, or startup / loop):

  2025-01-01 12:00:00 [INFO] [iter=3] [roam] Roam successful - connected to ...
"""

import contextvars
import logging
from logging.handlers import RotatingFileHandler

from colorama import Fore, Style, init

from ssidroam.common import get_log_file_path

init(autoreset=True)

LOG_FORMAT = "%(asctime)s [%(levelname)s] [iter=%(iteration)s] [%(phase)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

PHASES = ("scan", "select", "roam", "connectivity", "startup", "loop")

current_iteration = contextvars.ContextVar("current_iteration", default="-")

_PHASE_COLOURS = {
    "scan": Fore.CYAN,
    "select": Fore.BLUE,
    "roam": Fore.MAGENTA,
    "connectivity": Fore.GREEN,
}


class ContextFilter(logging.Filter):
    """Fill in iteration/phase for records that did not come through a PhaseLogger."""

    def filter(self, record):
        if not hasattr(record, "iteration"):
            record.iteration = current_iteration.get()
        if not hasattr(record, "phase"):
            record.phase = "-"
        return True


class ColourFormatter(logging.Formatter):
    def format(self, record):
        line = super().format(record)
        if record.levelno >= logging.ERROR:
            return Fore.RED + Style.BRIGHT + line + Style.RESET_ALL
        if record.levelno >= logging.WARNING:
            return Fore.YELLOW + line + Style.RESET_ALL
        colour = _PHASE_COLOURS.get(getattr(record, "phase", None))
        if colour:
            return colour + line + Style.RESET_ALL
        return line


class PhaseLogger(logging.LoggerAdapter):
    """LoggerAdapter that stamps a fixed phase and the current loop iteration."""

    def __init__(self, logger, phase):
        if phase not in PHASES:
            raise ValueError(f"unknown log phase {phase!r}, expected one of {', '.join(PHASES)}")
        super().__init__(logger, {"phase": phase})

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("phase", self.extra["phase"])
        extra.setdefault("iteration", current_iteration.get())
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name, phase):
    return PhaseLogger(logging.getLogger(name), phase)


def setup_logging(level="INFO", log_file=None, colour=True, max_bytes=5 * 1024 * 1024, backups=3):
    """Configure the root logger once; returns the file path being written."""
    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler()
    console.setFormatter((ColourFormatter if colour else logging.Formatter)(LOG_FORMAT, DATE_FORMAT))
    console.addFilter(ContextFilter())
    root.addHandler(console)

    log_path = log_file or get_log_file_path()
    file_handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backups)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    file_handler.addFilter(ContextFilter())
    root.addHandler(file_handler)

    return log_path
