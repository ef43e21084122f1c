from __future__ import annotations

from enum import StrEnum
import logging
import sys

from fwsize.const import ENV_NO_COLOR
from fwsize.helpers import get_bool_env


class AnsiFore(StrEnum):
    KEEP = ""
    BLACK = "\033[30m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD_RED = "\033[1;31m"
    BOLD_CYAN = "\033[1;36m"
    RESET = "\033[0m"


def _use_color(stream=None) -> bool:
    if get_bool_env(ENV_NO_COLOR):
        return False
    stream = stream or sys.stdout
    return hasattr(stream, "isatty") and stream.isatty()


def color(col: AnsiFore, msg: str, reset: bool = True) -> str:
    if not _use_color() or col == AnsiFore.KEEP:
        return msg
    return f"{col}{msg}{AnsiFore.RESET if reset else ''}"


class FwsizeLogFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.DEBUG: AnsiFore.CYAN,
        logging.INFO: AnsiFore.GREEN,
        logging.WARNING: AnsiFore.YELLOW,
        logging.ERROR: AnsiFore.RED,
        logging.CRITICAL: AnsiFore.BOLD_RED,
    }

    def __init__(self, *, include_timestamp: bool, colored: bool) -> None:
        fmt = "%(asctime)s " if include_timestamp else ""
        fmt += "%(levelname)s %(message)s"
        super().__init__(fmt=fmt, style="%")
        self._colored = colored

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        if not self._colored:
            return formatted
        prefix = self.LEVEL_COLORS.get(record.levelno, AnsiFore.KEEP)
        return f"{prefix}{formatted}{AnsiFore.RESET}"


def setup_log(
    log_level: str | int = logging.INFO,
    include_timestamp: bool = False,
) -> None:
    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        FwsizeLogFormatter(
            include_timestamp=include_timestamp,
            colored=_use_color(sys.stderr),
        )
    )

    root = logging.getLogger()
    # Repeated setup (tests, serve after analyze) must not duplicate output
    for existing in list(root.handlers):
        if isinstance(existing.formatter, FwsizeLogFormatter):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    # Tornado access logs are noisy at debug level
    logging.getLogger("tornado.access").setLevel(max(log_level, logging.INFO))
