import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import orjson
from rich.logging import RichHandler

from sharepoint_connector.main.config import get_loglevel
from sharepoint_connector.main.request_context import get_request_context

JSON_LOGS_ENABLED = os.getenv("JSON_LOGS", "true").lower() in {"1", "true", "yes", "on"}

SERVICE_NAME = "sharepoint-connector"

# Third party clients log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "aiohttp.access", "arq.worker", "arq.jobs")

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class ContextJSONFormatter(logging.Formatter):
    """One JSON object per line.

    Keys, in order of precedence: the fixed envelope, the run context bound by
    the pipeline and worker (``correlation_id``, ``file_id``, ``job_id``), then
    whatever the call site passed via ``extra``.
    """

    RUN_KEYS = ("correlation_id", "file_id", "job_id", "job_try", "step", "site_id")

    def format(self, record: logging.LogRecord) -> str:
        log: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname.lower(),
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = get_request_context()
        for key in self.RUN_KEYS:
            value = getattr(record, key, None)
            if value is None:
                value = context.get(key)
            if value is not None:
                log[key] = value

        for key, value in context.items():
            if value is not None:
                log.setdefault(key, value)

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_") or value is None:
                continue
            log.setdefault(key, value)

        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
            log.setdefault("error_type", record.exc_info[0].__name__)

        return orjson.dumps(log, default=str).decode()


def _quiet_noisy_loggers(level: int) -> None:
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if level <= logging.DEBUG else logging.WARNING)


_quiet_noisy_loggers(get_loglevel())


class SimpleLogger(logging.Logger):
    def __init__(self, name=SERVICE_NAME, level=logging.WARNING):
        logging.Logger.__init__(self, name, level)

        if JSON_LOGS_ENABLED:
            handler = logging.StreamHandler(stream=sys.stdout)
            handler.setFormatter(ContextJSONFormatter())
        else:
            handler = RichHandler(rich_tracebacks=True, markup=False, show_path=False)

        handler.setLevel(level)
        self.addHandler(handler)


def get_logger(module_name: str):
    # Not registered with the logging manager; each module owns its handler
    return SimpleLogger(name=module_name, level=get_loglevel())
