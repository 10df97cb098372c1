from __future__ import annotations

import json
import logging
import time
from collections import Counter
from contextlib import contextmanager
from threading import Lock
from typing import Any, Iterator


logger = logging.getLogger("marketing_ops_console")

_counters_lock = Lock()
_counters: Counter[str] = Counter()


def _normalize(value: Any) -> Any:
    """Reduce a log/label value to something `json.dumps` accepts."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(key): _normalize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_normalize(item) for item in value)
    return str(value)


def _render_labels(labels: dict[str, Any]) -> str:
    return ",".join(f"{name}={labels[name]}" for name in sorted(labels))


def metric_key(name: str, **labels: Any) -> str:
    """`name` alone, or `name|k1=v1,k2=v2` with labels in key order."""
    return f"{name}|{_render_labels(labels)}" if labels else name


def incr_metric(name: str, value: int = 1, **labels: Any) -> None:
    key = metric_key(name, **{label: _normalize(item) for label, item in labels.items()})
    with _counters_lock:
        _counters[key] += value


def metrics_snapshot(prefix: str | None = None) -> dict[str, int]:
    with _counters_lock:
        counters = dict(_counters)
    if not prefix:
        return counters
    return {key: count for key, count in counters.items() if key.startswith(prefix)}


def reset_metrics() -> None:
    with _counters_lock:
        _counters.clear()


def log_event(
    event: str,
    *,
    level: int = logging.INFO,
    request_id: str | None = None,
    **fields: Any,
) -> None:
    """Emit one JSON object per line on the console logger."""
    payload: dict[str, Any] = {"event": event}
    if request_id:
        payload["request_id"] = request_id
    payload.update({key: _normalize(value) for key, value in fields.items()})
    logger.log(level, json.dumps(payload, sort_keys=True))


@contextmanager
def observe_upstream_call(operation: str, *, request_id: str | None = None) -> Iterator[None]:
    """Count and log one upstream console API call, labelled with its outcome."""
    started = time.monotonic()
    try:
        yield
    except Exception as exc:
        incr_metric("console_api.calls", operation=operation, outcome="error")
        log_event(
            "console_api_call_failed",
            level=logging.WARNING,
            request_id=request_id,
            operation=operation,
            elapsed_ms=int((time.monotonic() - started) * 1000),
            error=str(exc),
        )
        raise
    incr_metric("console_api.calls", operation=operation, outcome="ok")
    log_event(
        "console_api_call",
        level=logging.DEBUG,
        request_id=request_id,
        operation=operation,
        elapsed_ms=int((time.monotonic() - started) * 1000),
    )
