from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterator, Tuple

from flask import g, has_request_context, request


HTTP_LATENCY_LIMITS_MS = (5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0)
DISPATCH_LATENCY_LIMITS_MS = (10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 20000.0)

_BACKGROUND_REQUEST_ID: contextvars.ContextVar[str] = contextvars.ContextVar("background_request_id", default="")

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES = frozenset(logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}


def _clean_request_id(value: str | None) -> str:
    return str(value or "").strip()


def set_log_request_id(request_id: str | None) -> None:
    _BACKGROUND_REQUEST_ID.set(_clean_request_id(request_id))


@contextlib.contextmanager
def bind_request_id(request_id: str | None) -> Iterator[str]:
    """Tag log lines emitted outside a Flask request (CLI commands, scripts)."""
    token = _BACKGROUND_REQUEST_ID.set(_clean_request_id(request_id))
    try:
        yield _BACKGROUND_REQUEST_ID.get() or "n/a"
    finally:
        _BACKGROUND_REQUEST_ID.reset(token)


def current_request_id(default: str | None = None) -> str:
    if has_request_context():
        bound = _clean_request_id(getattr(g, "request_id", None))
        if bound:
            return bound
    return _BACKGROUND_REQUEST_ID.get() or default or "n/a"


def ensure_request_id() -> str:
    """Return the id of the current request, adopting ``X-Request-Id`` when the caller sent one."""
    existing = _clean_request_id(getattr(g, "request_id", None))
    if not existing:
        existing = _clean_request_id(request.headers.get("X-Request-Id")) or uuid.uuid4().hex
        g.request_id = existing
    set_log_request_id(existing)
    return existing


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if has_request_context():
            payload["request_id"] = current_request_id()
            payload["method"] = request.method
            payload["path"] = request.path
        else:
            payload["request_id"] = _clean_request_id(getattr(record, "request_id", None)) or current_request_id()

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRIBUTES or key.startswith("_") or key in payload:
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, separators=(",", ":"), default=str)


def configure_json_logging(app) -> None:
    if not app.config.get("LOG_JSON", True):
        return
    level = getattr(logging, str(app.config.get("LOG_LEVEL") or "INFO").strip().upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # Flask's own handler would print every line twice.
    app.logger.handlers = []
    app.logger.propagate = True


class _Histogram:
    def __init__(self, limits: Tuple[float, ...]) -> None:
        self.limits = limits
        self.count = 0
        self.total = 0.0
        self.maximum = 0.0
        self.buckets = [0] * len(limits)

    def observe(self, value: float) -> None:
        value = max(0.0, float(value))
        self.count += 1
        self.total += value
        self.maximum = max(self.maximum, value)
        for index, limit in enumerate(self.limits):
            if value <= limit:
                self.buckets[index] += 1

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else 0.0

    def to_dict(self) -> Dict[str, object]:
        cumulative = {f"{limit:g}": count for limit, count in zip(self.limits, self.buckets)}
        cumulative["+Inf"] = self.count
        return {"count": self.count, "sum": round(self.total, 2), "buckets": cumulative}


@dataclass
class _RouteStats:
    latency: _Histogram
    errors: int = 0


class MetricsRegistry:
    """Process-local counters for HTTP traffic and workflow dispatch outcomes."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._routes: Dict[str, _RouteStats] = {}
        self._dispatch_outcomes: Dict[Tuple[str, str], int] = {}
        self._dispatch_latency = _Histogram(DISPATCH_LATENCY_LIMITS_MS)

    def observe_http(self, method: str, route: str, status_code: int, duration_ms: float) -> None:
        key = f"{(method or 'GET').upper()} {route or 'unknown'}"
        with self._lock:
            stats = self._routes.get(key)
            if stats is None:
                stats = self._routes[key] = _RouteStats(latency=_Histogram(HTTP_LATENCY_LIMITS_MS))
            stats.latency.observe(duration_ms)
            if int(status_code) >= 400:
                stats.errors += 1

    def observe_dispatch(self, action: str, outcome: str, duration_ms: float) -> None:
        key = (action or "unknown", outcome or "unknown")
        with self._lock:
            self._dispatch_outcomes[key] = self._dispatch_outcomes.get(key, 0) + 1
            self._dispatch_latency.observe(duration_ms)

    def snapshot(self) -> dict:
        with self._lock:
            by_route = [
                {
                    "route": route,
                    "requests": stats.latency.count,
                    "errors": stats.errors,
                    "avg_latency_ms": round(stats.latency.mean, 2),
                    "max_latency_ms": round(stats.latency.maximum, 2),
                }
                for route, stats in self._routes.items()
            ]
            by_route.sort(key=lambda item: item["requests"], reverse=True)

            by_action: Dict[str, Dict[str, int]] = {}
            for (action, outcome), count in sorted(self._dispatch_outcomes.items()):
                by_action.setdefault(action, {})[outcome] = count

            return {
                "requests_total": sum(item["requests"] for item in by_route),
                "errors_total": sum(item["errors"] for item in by_route),
                "by_route": by_route[:40],
                "workflow_dispatch": {
                    "total": self._dispatch_latency.count,
                    "by_action": by_action,
                    "avg_duration_ms": round(self._dispatch_latency.mean, 2),
                    "latency_ms": self._dispatch_latency.to_dict(),
                },
            }

    def reset(self) -> None:
        with self._lock:
            self._routes.clear()
            self._dispatch_outcomes.clear()
            self._dispatch_latency = _Histogram(DISPATCH_LATENCY_LIMITS_MS)


_METRICS = MetricsRegistry()


def mark_request_start() -> None:
    g.request_started_at = time.perf_counter()


def observe_response(response):
    started = getattr(g, "request_started_at", None)
    elapsed_ms = (time.perf_counter() - started) * 1000.0 if started else 0.0
    route = request.url_rule.rule if request.url_rule is not None else request.path
    _METRICS.observe_http(request.method, route, response.status_code, elapsed_ms)
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
    return response


def observe_dispatch(action: str, outcome: str, duration_ms: float) -> None:
    _METRICS.observe_dispatch(action, outcome, duration_ms)


def metrics_snapshot() -> dict:
    return _METRICS.snapshot()


def reset_metrics_for_tests() -> None:
    _METRICS.reset()
