from __future__ import annotations

from src.models.base import ConsoleModel


class GhlBulkLinkDraftRow(ConsoleModel):
    line: int
    raw: str
    account_key: str
    location_id: str
    location_name: str | None = None
    error: str | None = None


class GhlBulkLinkResult(ConsoleModel):
    line: int
    account_key: str = ""
    location_id: str = ""
    location_name: str | None = None
    success: bool = False
    error: str | None = None


class BulkLinkApplyResult(ConsoleModel):
    total: int = 0
    linked: int = 0
    failed: int = 0
    results: list[GhlBulkLinkResult] = []


class BulkLinkPreviewSummary(ConsoleModel):
    total: int
    valid: int
    invalid: int
    ready: bool
    notice: str


class BulkLinkInputRequest(ConsoleModel):
    input: str


class BulkLinkApplyRequest(ConsoleModel):
    input: str = ""
    preview: list[GhlBulkLinkDraftRow] = []


class BulkLinkPreviewResponse(ConsoleModel):
    rows: list[GhlBulkLinkDraftRow]
    summary: BulkLinkPreviewSummary


class BulkLinkApplyResponse(ConsoleModel):
    rows: list[GhlBulkLinkDraftRow]
    result: BulkLinkApplyResult
    results_by_line: dict[int, GhlBulkLinkResult] = {}
    message: str
