"""
Logging utilities for the web crawler system.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .config import LoggingConfig

# Record attributes copied into JSON output when present
CRAWL_FIELDS = ('url', 'event', 'status', 'error', 'worker', 'progress')

THIRD_PARTY_LOGGERS = ('aiohttp', 'asyncio', 'chardet', 'charset_normalizer')


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with crawl context fields when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'line': record.lineno
        }

        for key in CRAWL_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class CrawlerLogAdapter(logging.LoggerAdapter):
    """Logger adapter that attaches crawl context (worker id, URL, event) to records."""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(self.extra)
        extra.update(kwargs.get('extra') or {})
        kwargs['extra'] = extra
        return msg, kwargs

    def bind(self, **context) -> 'CrawlerLogAdapter':
        """Return a new adapter with `context` added to every record."""
        return CrawlerLogAdapter(self.logger, {**self.extra, **context})

    def log_url_event(self, level: int, url: str, message: str,
                      event: str = 'url', **fields):
        """
        Log something that happened to one URL.

        `event` names what happened (visited, failed, ...); extra keyword
        fields such as status or error are attached to the record.
        """
        fields.update(url=url, event=event)
        self.log(level, message, extra=fields)

    def log_crawl_progress(self, message: str, progress: Dict[str, Any]):
        """Log a snapshot of crawl counters."""
        self.info(message, extra={'event': 'progress', 'progress': progress})


class ThirdPartyFilter(logging.Filter):
    """Drops records below WARNING that come from library loggers."""

    def __init__(self, prefixes: Iterable[str] = THIRD_PARTY_LOGGERS):
        super().__init__()
        self.prefixes = tuple(prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.WARNING:
            return True
        return not record.name.startswith(self.prefixes)


def _rotating_handler(path: Path, level: int, max_bytes: int, backups: int,
                      formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backups,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(config: LoggingConfig, filter_third_party: bool = True) -> logging.Logger:
    """
    Configure the root logger for a crawl.

    Installs a console handler (INFO and up), a rotating crawl log with every
    record, and a rotating errors.log next to it. Records are rendered as
    JSON when `config.json` is set.

    Returns:
        The configured root logger
    """
    log_file = Path(config.file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    if config.json:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(config.format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    handlers: List[logging.Handler] = [
        console_handler,
        _rotating_handler(log_file, logging.DEBUG, 50 * 1024 * 1024, 5, formatter),
        _rotating_handler(log_file.parent / 'errors.log', logging.ERROR,
                          10 * 1024 * 1024, 3, formatter),
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(config.level.upper())
    root_logger.handlers.clear()

    for handler in handlers:
        if filter_third_party:
            handler.addFilter(ThirdPartyFilter())
        root_logger.addHandler(handler)

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging to {log_file} at level {config.level}")
    return root_logger


def get_crawler_logger(name: str, **context) -> CrawlerLogAdapter:
    """Module logger wrapped in a CrawlerLogAdapter carrying `context`."""
    return CrawlerLogAdapter(logging.getLogger(name), context)


def log_system_info():
    """Log the platform, interpreter and machine resources the crawl runs on."""
    import platform
    import psutil

    logger = logging.getLogger(__name__)

    logger.info(f"Platform: {platform.platform()}")
    logger.info(f"Python version: {sys.version.split()[0]}")
    logger.info(f"CPU cores: {psutil.cpu_count()}")
    logger.info(f"Memory: {psutil.virtual_memory().total / 1024**3:.1f} GB")
