"""Rate-limit gauges fed from API response headers."""

from __future__ import annotations

import re
from collections.abc import Mapping

HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_LIMIT_REMAINING = "X-RateLimit-Remaining"

_INT = re.compile(r"[+-]?\d+")


class Gauge:
    """A named metric holding a single value."""

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help = help_text
        self.value = 0.0

    def set(self, value: float) -> None:
        self.value = float(value)


RATE_LIMIT = Gauge("github_rate_limit", "The maximum number of requests you're permitted to make per hour")
RATE_LIMIT_REMAINING = Gauge(
    "github_rate_limit_remaining", "The number of requests remaining in the current rate limit window"
)


def _atoi(text: str | None) -> int | None:
    if text is None or not _INT.fullmatch(text):
        return None
    return int(text)


def parse_response(headers: Mapping[str, str]) -> None:
    """Update the gauges from rate-limit headers that parse as integers."""
    limit = _atoi(headers.get(HEADER_RATE_LIMIT))
    if limit is not None:
        RATE_LIMIT.set(limit)
    remaining = _atoi(headers.get(HEADER_RATE_LIMIT_REMAINING))
    if remaining is not None:
        RATE_LIMIT_REMAINING.set(remaining)


class MetricsTransport:
    """Wraps a transport and records rate-limit metrics of its responses."""

    def __init__(self, transport) -> None:
        self.transport = transport

    def round_trip(self, request):
        response = self.transport.round_trip(request)
        if response is not None:
            parse_response(response.headers)
        return response