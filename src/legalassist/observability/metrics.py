from __future__ import annotations

"""Prometheus metrics for the LegalAssist chat formatting service.

Adds an HTTP middleware that records request latency per method/path/status,
plus formatter latency and failure counters.
"""

import time
from typing import Callable, Awaitable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

# Histogram buckets chosen for web latencies (seconds)
REQUEST_LATENCY = Histogram(
    "legalassist_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

# The formatter runs on every streamed token, so buckets start well below 1ms
FORMAT_LATENCY = Histogram(
    "legalassist_format_seconds",
    "Time spent formatting one chat message snapshot",
    buckets=(0.0001, 0.00025, 0.0005, 0.001, 0.0025, 0.005, 0.01, 0.05, 0.1),
)

FORMATTER_FAILURES = Counter(
    "legalassist_formatter_failures",
    "Formatter calls that fell back to unformatted output",
    labelnames=("kind",),
)


def record_formatter_failure(kind: str) -> None:
    try:
        FORMATTER_FAILURES.labels(kind=kind).inc()
    except Exception:
        # Metrics must never break formatting
        pass


def sanitize_path(path: str) -> str:
    """Reduce high-cardinality paths to a coarse label.

    Keeps the first two static segments (e.g. /chat/format) and drops the rest.
    """
    if not path:
        return "/"
    segs = [s for s in path.split("?")[0].split("/") if s]
    if not segs:
        return "/"
    if segs[0] == "api":
        segs = segs[1:]
    return "/" + "/".join(segs[:2])


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        # Avoid observing the metrics endpoint itself
        if request.url.path.endswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        try:
            REQUEST_LATENCY.labels(
                method=request.method,
                path=sanitize_path(request.url.path),
                status=str(response.status_code),
            ).observe(elapsed)
        except Exception:
            # Never block the request due to metrics
            pass
        return response

    return middleware
