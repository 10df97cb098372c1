from __future__ import annotations

from typing import Any, Protocol


class UpstreamErrorLike(Protocol):
    @property
    def category(self) -> str: ...

    @property
    def retryable(self) -> bool: ...

    @property
    def status_code(self) -> int | None: ...


def console_error_http_status(exc: UpstreamErrorLike) -> int:
    if exc.status_code in {400, 404, 409, 422}:
        return exc.status_code
    return 503 if exc.retryable else 502


def console_error_detail(*, operation: str, exc: UpstreamErrorLike) -> dict[str, Any]:
    return {
        "type": "upstream_error",
        "operation": operation,
        "category": exc.category,
        "retryable": exc.retryable,
        "status_code": exc.status_code,
        "message": str(exc),
    }
