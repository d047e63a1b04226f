import logging
import logging.config
import os
from datetime import datetime
from logging import Logger

from pytz import timezone

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# libraries that are too chatty below WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "asyncpg")

_RESET = "\033[0m"
_COLORS = {
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "white": "\033[37m",
}
_LEVEL_MARKERS = {
    logging.WARNING: "⚠️ ",
    logging.ERROR: "⛔ ",
    logging.CRITICAL: "⛔ ",
}


def _is_debug() -> bool:
    return os.getenv("LOG_LEVEL", "info").strip().lower() == "debug"


class CustomFormatter(logging.Formatter):
    """Timestamps in the configured timezone, warnings and errors get a marker."""

    def __init__(self, tz_name, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, self.tz)
        return stamp.strftime(datefmt) if datefmt else stamp.isoformat()

    def format(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # third-party logger with mismatched %-args
            message = str(record.msg)
        record.msg = _LEVEL_MARKERS.get(record.levelno, "") + message
        record.args = ()
        return super().format(record)


class ColoredFormatter(CustomFormatter):
    """Console variant that wraps a line in the ANSI color passed as ``color=``."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _COLORS.get(getattr(record, "color", None) or "")
        return f"{ansi}{line}{_RESET}" if ansi and line else line


class ColorLogger:
    """Logger wrapper whose log methods accept an optional ``color=`` name.

        logger.info("Backfill finished", color="green")

    Only the console handler renders the color; the log file stays plain.
    Anything else (setLevel, handlers, ...) is passed to the wrapped logger.
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    def _log(self, level: int, msg, args, color: str | None, kwargs: dict) -> None:
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        # keep the caller's frame as the record origin
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.DEBUG, msg, args, color, kwargs)

    def info(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.INFO, msg, args, color, kwargs)

    def warning(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.WARNING, msg, args, color, kwargs)

    def error(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.ERROR, msg, args, color, kwargs)

    def critical(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.CRITICAL, msg, args, color, kwargs)

    def exception(self, msg, *args, color: str | None = None, **kwargs):
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, args, color, kwargs)

    def log(self, level: int, msg, *args, color: str | None = None, **kwargs):
        self._log(level, msg, args, color, kwargs)

    def __getattr__(self, name):
        return getattr(self._logger, name)


def _formatter(factory, tz_name: str) -> dict:
    return {"()": factory, "format": LOG_FORMAT, "datefmt": DATE_FORMAT, "tz_name": tz_name}


def setup_logging(name: str = "risk_similarity") -> ColorLogger:
    """Configure the root logger and return the application logger.

    Console output goes to stdout, the plain-text log file to
    ``$ROOT_DIR/logs/<LOG_FILE>`` (``app.log`` in the working directory by
    default). LOG_LEVEL=debug lowers every handler to DEBUG and unmutes the
    libraries in QUIET_LOGGERS. TIMEZONE sets the timestamp zone.
    """
    level = logging.DEBUG if _is_debug() else logging.INFO
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")
    log_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
    os.makedirs(log_dir, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": _formatter(CustomFormatter, tz_name),
                "colored": _formatter(ColoredFormatter, tz_name),
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "colored",
                    "level": level,
                    "stream": "ext://sys.stdout",
                },
                "file": {
                    "class": "logging.FileHandler",
                    "formatter": "plain",
                    "level": level,
                    "filename": os.path.join(log_dir, os.getenv("LOG_FILE", "app.log")),
                    "encoding": "utf-8",
                },
            },
            "root": {"handlers": ["console", "file"], "level": level},
        }
    )

    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(level if level == logging.DEBUG else logging.WARNING)

    return ColorLogger(logging.getLogger(name))
