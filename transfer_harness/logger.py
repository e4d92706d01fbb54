import logging
import pytz
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

# static logger names
HARNESS_LOGGER_NAME = "harnesslog"
SERVER_LOGGER_NAME = "serverlog"
MOCK_LOGGER_NAME = "mocklog"
UVICORN_LOG = "uvicorn"
UVICORN_ACCESSS_LOG = "uvicorn.access"
UVICORN_ERROR_LOG = "uvicorn.error"

HARNESS_LOG_FILE = "harness.log"
SERVER_LOG_FILE = "server.log"
MOCK_LOG_FILE = "mock.log"
SCREENSHOT_DIR = "screenshots"

# logger name -> (file in the run dir, echo to console)
_RUN_LOGGERS: Dict[str, tuple[str, bool]] = {
    HARNESS_LOGGER_NAME: (HARNESS_LOG_FILE, True),
    SERVER_LOGGER_NAME: (SERVER_LOG_FILE, True),
    MOCK_LOGGER_NAME: (MOCK_LOG_FILE, True),
    UVICORN_LOG: (SERVER_LOG_FILE, False),
    UVICORN_ACCESSS_LOG: (SERVER_LOG_FILE, False),
    UVICORN_ERROR_LOG: (SERVER_LOG_FILE, False),
}

_LOG_FORMAT = "%(asctime)s:[%(funcName)s:%(lineno)s] - %(message)s"
_EASTERN = pytz.timezone("US/Eastern")


def converter(timestamp):
    return datetime.fromtimestamp(timestamp, tz=pytz.utc).astimezone(_EASTERN).timetuple()


formatter = logging.Formatter(_LOG_FORMAT, datefmt="%H:%M:%S")
formatter.converter = converter


def _resolve_log_level(level: Optional[str]) -> int:
    if not level:
        return logging.INFO
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


class ExcludeStringsFilter(logging.Filter):
    """Drops records whose message contains any of the given substrings."""
    # browsers ask for a favicon on every page load and the host 404s it
    DEFAULT_EXCLUDE_STRS = ("/favicon.ico",)

    def __init__(self, exclude_strs: Optional[Iterable[str]] = None):
        super().__init__()
        self.exclude_strs = [*(exclude_strs or ()), *self.DEFAULT_EXCLUDE_STRS]

    def filter(self, record):
        message = record.getMessage()
        return not any(s in message for s in self.exclude_strs)


def get_file_handler(log_file: str | Path) -> logging.FileHandler:
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(formatter)
    return handler


def get_console_handler(exclude_strs: Optional[List[str]] = None) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)
    handler.setFormatter(formatter)
    handler.addFilter(ExcludeStringsFilter(exclude_strs))
    return handler


class _RunLogFactory:
    """
    Wires the harness loggers to one run directory.

    Layout:

        <base_dir>/<YYYY-MM-DD>/<N>/
            harness.log       scenario runner + browser
            server.log        static content host + uvicorn
            mock.log          interception fixtures
            screenshots/      failure screenshots

    N counts up per day, so every factory gets a fresh directory.
    """
    def __init__(self, base_dir: str | Path, *, log_level: Optional[str] = None) -> None:
        self._base_dir = Path(base_dir)
        self._level = _resolve_log_level(log_level)
        self._run_dir = self._next_run_dir()
        self.setup_static_loggers()

    def _next_run_dir(self) -> Path:
        date_dir = self._base_dir / datetime.now().strftime("%Y-%m-%d")
        date_dir.mkdir(parents=True, exist_ok=True)
        taken = [int(p.name) for p in date_dir.iterdir() if p.is_dir() and p.name.isdigit()]
        run_dir = date_dir / str(max(taken, default=0) + 1)
        (run_dir / SCREENSHOT_DIR).mkdir(parents=True)
        return run_dir

    def setup_static_loggers(self) -> None:
        # uvicorn.* share server.log with serverlog; one handler per file
        file_handlers: Dict[str, logging.FileHandler] = {}
        for name, (filename, echo) in _RUN_LOGGERS.items():
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
            logger.setLevel(self._level)
            logger.propagate = False

            if filename not in file_handlers:
                file_handlers[filename] = get_file_handler(self._run_dir / filename)
            logger.addHandler(file_handlers[filename])
            if echo:
                logger.addHandler(get_console_handler())

    def get_log_dir(self) -> Path:
        return self._run_dir

    def get_screenshot_dir(self) -> Path:
        return self._run_dir / SCREENSHOT_DIR


_RUN_LOG_FACTORY_SINGLETON: Optional[_RunLogFactory] = None


def get_or_init_log_factory(
    base_dir: Optional[str | Path] = None,
    *,
    log_level: Optional[str] = None,
    new: bool = False
) -> _RunLogFactory:
    """
    Return the process-wide run log factory, creating it on first use or
    when new=True. base_dir defaults to ".harness/logs".

    Usage:
    log_factory = get_or_init_log_factory(LOG_DIR, log_level="info", new=True)
    screenshots = log_factory.get_screenshot_dir()
    """
    global _RUN_LOG_FACTORY_SINGLETON
    if _RUN_LOG_FACTORY_SINGLETON is None or new:
        _RUN_LOG_FACTORY_SINGLETON = _RunLogFactory(base_dir or ".harness/logs", log_level=log_level)
    return _RUN_LOG_FACTORY_SINGLETON
