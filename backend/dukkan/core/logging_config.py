"""
Logging setup for the Dukkan back office

Every record emitted while a request is being served carries the request id
and the route (`POST /api/v1/sales`), so a stock change or a ledger entry in
the logs can be traced back to the call that caused it.

Usage:
    from dukkan.core.logging_config import setup_logging

    setup_logging()                     # once, at application startup
    logger = logging.getLogger(__name__)
    logger.info("Stock updated", extra={"product_id": product_id})
"""

import json
import logging
import logging.config
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, NamedTuple, Optional

from dukkan.core.config import settings

__all__ = [
    "setup_logging",
    "build_logging_config",
    "bind_request",
    "reset_request",
    "current_request_id",
    "RequestContextFilter",
    "JsonFormatter",
]


class RequestContext(NamedTuple):
    request_id: str
    route: str


_request_context: ContextVar[Optional[RequestContext]] = ContextVar("request_context", default=None)

# Attribute names of a bare LogRecord; anything beyond these came in via extra=
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "message", "asctime", "request_id", "route",
}

_QUIET_LOGGERS = ("uvicorn.access", "boto3", "botocore", "urllib3")


def bind_request(request_id: str, method: str, path: str) -> Token:
    """Attach a request to the current task; pass the token to reset_request()"""
    return _request_context.set(RequestContext(request_id, f"{method} {path}"))


def reset_request(token: Token) -> None:
    _request_context.reset(token)


def current_request_id() -> Optional[str]:
    context = _request_context.get()
    return context.request_id if context else None


class RequestContextFilter(logging.Filter):
    """Copies the bound request onto each record; `-` outside a request"""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _request_context.get()
        record.request_id = context.request_id if context else "-"
        record.route = context.route if context else "-"
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line, extra= fields included"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "route": getattr(record, "route", "-"),
        }
        entry.update(
            (key, value) for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        )
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def build_logging_config(level: str, log_format: str, log_file: Optional[str] = None) -> Dict[str, Any]:
    """dictConfig schema: console handler, optional rotating file handler"""
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": log_format,
            "filters": ["request_context"],
        },
    }
    if log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 1_000_000,
            "backupCount": 3,
            "encoding": "utf-8",
            "formatter": "json",
            "filters": ["request_context"],
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_context": {"()": RequestContextFilter}},
        "formatters": {
            "json": {"()": JsonFormatter},
            "text": {
                "format": "%(asctime)s %(levelname)-8s [%(request_id)s %(route)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": handlers,
        "root": {"level": level, "handlers": list(handlers)},
        "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
    }


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure the root logger from arguments, then settings, then environment defaults"""
    production = settings.ENVIRONMENT == "production"
    level = (level or settings.LOG_LEVEL or ("INFO" if production else "DEBUG")).upper()
    log_format = (log_format or settings.LOG_FORMAT or ("json" if production else "text")).lower()
    if log_format not in ("json", "text"):
        log_format = "text"

    logging.config.dictConfig(build_logging_config(level, log_format, settings.LOG_FILE))
    logging.getLogger(__name__).info(
        f"Logging configured: level={level} format={log_format} env={settings.ENVIRONMENT}"
    )
