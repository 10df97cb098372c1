from __future__ import annotations

import re
from typing import Iterable

from src.models.location_links import (
    BulkLinkApplyResult,
    BulkLinkPreviewSummary,
    GhlBulkLinkDraftRow,
    GhlBulkLinkResult,
)


_ACCOUNT_HEADER_TOKENS = {"accountkey", "account_key", "account"}
_LOCATION_HEADER_TOKENS = {"locationid", "location_id", "location"}
_LINE_SPLIT = re.compile(r"\r?\n")

MALFORMED_ROW_ERROR = 'Expected "accountKey,locationId[,locationName]"'


def _is_header_row(account_key: str, location_id: str) -> bool:
    return (
        account_key.lower() in _ACCOUNT_HEADER_TOKENS
        and location_id.lower() in _LOCATION_HEADER_TOKENS
    )


def _row_error(account_key: str, location_id: str, known: set[str], seen: set[str]) -> str | None:
    if not account_key or not location_id:
        return MALFORMED_ROW_ERROR
    if account_key not in known:
        return f'Unknown account key "{account_key}"'
    if account_key in seen:
        return f'Duplicate account key "{account_key}" in this batch'
    seen.add(account_key)
    return None


def parse_bulk_link_input_value(raw: str, known_account_keys: Iterable[str]) -> list[GhlBulkLinkDraftRow]:
    """
    Parse pasted `accountKey,locationId[,locationName]` lines into draft rows.

    Blank lines, `#` comments and a header row are skipped; every other line
    yields exactly one row, with `error` set when it fails validation.
    """
    known = set(known_account_keys)
    seen_account_keys: set[str] = set()
    rows: list[GhlBulkLinkDraftRow] = []

    for index, raw_line in enumerate(_LINE_SPLIT.split(raw or "")):
        trimmed = raw_line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue

        separator = "\t" if "\t" in raw_line else ","
        parts = [part.strip() for part in raw_line.split(separator)]
        account_key = parts[0] if parts else ""
        location_id = parts[1] if len(parts) > 1 else ""
        location_name = ",".join(parts[2:]).strip() or None
        if _is_header_row(account_key, location_id):
            continue

        rows.append(
            GhlBulkLinkDraftRow(
                line=index + 1,
                raw=raw_line,
                account_key=account_key,
                location_id=location_id,
                location_name=location_name,
                error=_row_error(account_key, location_id, known, seen_account_keys),
            )
        )
    return rows


def revalidate_bulk_link_rows(
    rows: Iterable[GhlBulkLinkDraftRow],
    known_account_keys: Iterable[str],
) -> list[GhlBulkLinkDraftRow]:
    """
    Re-run line validation over rows that were previewed elsewhere.

    Rows keep their order and line numbers. An error already on a row stands;
    a row without one is checked exactly as the parser would check it.
    """
    known = set(known_account_keys)
    seen_account_keys: set[str] = set()
    checked: list[GhlBulkLinkDraftRow] = []
    for row in rows:
        account_key = row.account_key.strip()
        location_id = row.location_id.strip()
        error = row.error or _row_error(account_key, location_id, known, seen_account_keys)
        checked.append(
            row.model_copy(
                update={
                    "account_key": account_key,
                    "location_id": location_id,
                    "location_name": (row.location_name or "").strip() or None,
                    "error": error,
                }
            )
        )
    return checked


def valid_rows(rows: Iterable[GhlBulkLinkDraftRow]) -> list[GhlBulkLinkDraftRow]:
    return [row for row in rows if not row.error]


def summarize_bulk_link_preview(rows: list[GhlBulkLinkDraftRow]) -> BulkLinkPreviewSummary:
    valid_count = len(valid_rows(rows))
    if not rows:
        notice = "No mapping rows found. Paste one mapping per line."
    elif valid_count == 0:
        notice = "No valid rows found. Fix validation errors and try again."
    else:
        notice = f"Preview ready: {valid_count} valid row{'' if valid_count == 1 else 's'}"
    return BulkLinkPreviewSummary(
        total=len(rows),
        valid=valid_count,
        invalid=len(rows) - valid_count,
        ready=valid_count > 0,
        notice=notice,
    )


def match_results_to_rows(
    rows: list[GhlBulkLinkDraftRow],
    result: BulkLinkApplyResult,
) -> dict[int, GhlBulkLinkResult]:
    """Pair upstream link results with the draft rows they came from, by line number."""
    lines = {row.line for row in rows}
    return {item.line: item for item in result.results if item.line in lines}


def describe_apply_result(result: BulkLinkApplyResult) -> str:
    if result.failed > 0:
        return f"Linked {result.linked}/{result.total} sub-accounts ({result.failed} failed)"
    suffix = "" if result.linked == 1 else "s"
    return f"Linked {result.linked} sub-account{suffix} successfully"
