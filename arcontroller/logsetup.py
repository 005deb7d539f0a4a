"""Logger construction and an HTTP transport that logs round trips."""

from __future__ import annotations

import logging
import re
import sys

LOG_LEVEL_DEBUG = "debug"
LOG_LEVEL_INFO = "info"
LOG_LEVEL_WARN = "warn"
LOG_LEVEL_ERROR = "error"

HEADER_RATE_LIMIT_REMAINING = "X-RateLimit-Remaining"
HEADER_FROM_CACHE = "X-From-Cache"

_NAMED = {
    LOG_LEVEL_DEBUG: logging.DEBUG,
    LOG_LEVEL_INFO: logging.INFO,
    LOG_LEVEL_WARN: logging.WARNING,
    LOG_LEVEL_ERROR: logging.ERROR,
}


def verbosity(v: int) -> int:
    """Logging level for verbosity ``v``: V(0) is INFO, V(1) DEBUG, deeper below."""
    if v <= 1:
        return logging.INFO - 10 * v
    return max(1, logging.DEBUG - v + 1)


def parse_log_level(log_level: str) -> int:
    """Turn a level name or a signed integer (-1 debug .. 2 error) into a logging level."""
    if log_level in _NAMED:
        return _NAMED[log_level]
    if not re.fullmatch(r"[+-]?\d+", log_level):
        raise ValueError(f"Failed to parse --log-level={log_level}")
    level = int(log_level)
    if not -128 <= level <= 127:
        raise ValueError(f"Failed to parse --log-level={log_level}: out of range")
    if level >= 0:
        return logging.INFO + 10 * level
    return verbosity(-level)


def new_logger(log_level: str) -> logging.Logger:
    """Return the controller's logger writing to stderr at the given level."""
    level = parse_log_level(log_level)
    logger = logging.getLogger("actions-runner-controller")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s\t%(levelname)s\t%(name)s\t%(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        ))
        logger.addHandler(handler)
    return logger


def _kv(pairs) -> str:
    return " ".join(f"{k}={v}" for k, v in pairs)


class LoggingTransport:
    """Wraps a transport and logs every response that it returns."""

    def __init__(self, transport, log: logging.Logger | None = None) -> None:
        self.transport = transport
        self.log = log

    def round_trip(self, request):
        response = self.transport.round_trip(request)
        if response is not None:
            self._log(request, response)
        return response

    def _log(self, request, response) -> None:
        if self.log is None:
            return
        marked = response.headers.get(HEADER_FROM_CACHE) == "1"
        pairs = [("from_cache", marked), ("method", request.method), ("url", request.url)]
        if not marked:
            pairs.append(("ratelimit_remaining", response.headers.get(HEADER_RATE_LIMIT_REMAINING, "")))
        if self.log.isEnabledFor(verbosity(4)):
            body = response.content.decode(errors="replace") if response.content else ""
            self.log.log(verbosity(4), "Logging HTTP round-trip %s", _kv([
                ("method", request.method),
                ("requestHeader", dict(request.headers)),
                ("statusCode", response.status_code),
                ("responseHeader", dict(response.headers)),
                ("responseBody", body),
            ]))
        self.log.log(verbosity(3), "Seen HTTP response %s", _kv(pairs))