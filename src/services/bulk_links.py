from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from src.config import settings
from src.domain.bulk_links import (
    describe_apply_result,
    match_results_to_rows,
    parse_bulk_link_input_value,
    revalidate_bulk_link_rows,
    summarize_bulk_link_preview,
    valid_rows,
)
from src.models.location_links import (
    BulkLinkApplyResponse,
    BulkLinkApplyResult,
    BulkLinkPreviewResponse,
    GhlBulkLinkDraftRow,
)
from src.observability import incr_metric, log_event
from src.providers.console import client as console_client


class BulkLinkValidationError(ValueError):
    """The batch has nothing valid to send, or more rows than upstream accepts."""


@dataclass
class BulkLinkSession:
    """
    Preview/apply cycle for agency location links.

    `preview()` always re-parses the current input. `apply()` reuses an existing
    preview and only parses when there is none, then sends the error-free rows
    in one request.
    """

    known_account_keys: set[str]
    input: str = ""
    preview_rows: list[GhlBulkLinkDraftRow] = field(default_factory=list)
    result: BulkLinkApplyResult | None = None

    @classmethod
    def for_accounts(cls, account_keys: Iterable[str], input: str = "") -> "BulkLinkSession":
        return cls(known_account_keys=set(account_keys), input=input)

    def preview(self) -> BulkLinkPreviewResponse:
        self.preview_rows = parse_bulk_link_input_value(self.input, self.known_account_keys)
        self.result = None
        return BulkLinkPreviewResponse(
            rows=self.preview_rows,
            summary=summarize_bulk_link_preview(self.preview_rows),
        )

    def adopt_preview(self, rows: Iterable[GhlBulkLinkDraftRow]) -> None:
        """Use a preview built elsewhere, checked again against this session's accounts."""
        self.preview_rows = revalidate_bulk_link_rows(rows, self.known_account_keys)
        self.result = None

    def apply(self, request_id: str | None = None) -> BulkLinkApplyResponse:
        if not self.preview_rows:
            self.preview_rows = parse_bulk_link_input_value(self.input, self.known_account_keys)
        self.result = None

        rows_to_send = valid_rows(self.preview_rows)
        if not rows_to_send:
            raise BulkLinkValidationError("No valid rows to apply")
        if len(rows_to_send) > settings.bulk_link_max_rows:
            raise BulkLinkValidationError(
                f"mappings cannot exceed {settings.bulk_link_max_rows} rows per request"
            )

        data = console_client.bulk_link_locations(
            [
                {
                    "line": row.line,
                    "accountKey": row.account_key,
                    "locationId": row.location_id,
                    "locationName": row.location_name,
                }
                for row in rows_to_send
            ],
            request_id=request_id,
        )
        self.result = BulkLinkApplyResult(
            total=_to_int(data.get("total")),
            linked=_to_int(data.get("linked")),
            failed=_to_int(data.get("failed")),
            results=_result_rows(data.get("results")),
        )
        incr_metric("location_links.bulk_apply", outcome="partial" if self.result.failed else "ok")
        log_event(
            "location_links_bulk_applied",
            request_id=request_id,
            sent=len(rows_to_send),
            linked=self.result.linked,
            failed=self.result.failed,
        )
        return BulkLinkApplyResponse(
            rows=self.preview_rows,
            result=self.result,
            results_by_line=match_results_to_rows(self.preview_rows, self.result),
            message=describe_apply_result(self.result),
        )


def _result_rows(value: object) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict) and isinstance(item.get("line"), int)]


def _to_int(value: object) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
