from __future__ import annotations

import pytest

from src.config import settings
from src.domain.bulk_links import (
    MALFORMED_ROW_ERROR,
    describe_apply_result,
    parse_bulk_link_input_value,
    revalidate_bulk_link_rows,
    summarize_bulk_link_preview,
)
from src.models.location_links import BulkLinkApplyResult, GhlBulkLinkDraftRow
from src.providers.console import client as console_client
from src.services.bulk_links import BulkLinkSession, BulkLinkValidationError


def test_duplicate_account_key_is_flagged_on_second_row():
    rows = parse_bulk_link_input_value("acme,loc1\nacme,loc2", {"acme"})

    assert len(rows) == 2
    assert rows[0].error is None
    assert "Duplicate" in rows[1].error


def test_unknown_account_key_is_flagged():
    rows = parse_bulk_link_input_value("ghost,loc1", set())

    assert len(rows) == 1
    assert "Unknown account key" in rows[0].error


def test_header_row_is_skipped():
    rows = parse_bulk_link_input_value("accountKey,locationId\nacme,loc1", {"acme"})

    assert len(rows) == 1
    assert rows[0].account_key == "acme"
    assert rows[0].line == 2


def test_header_synonyms_are_case_insensitive():
    rows = parse_bulk_link_input_value("Account_Key\tLOCATION\nacme\tloc1", {"acme"})

    assert [row.account_key for row in rows] == ["acme"]


def test_every_content_line_produces_one_row():
    raw = "\n".join(
        [
            "# agency import",
            "",
            "accountkey,locationid",
            "acme,loc1,Acme Motors",
            "   ",
            "ghost,loc2",
            "acme,loc3",
            "justonetoken",
            "  # indented comment",
            "beta,",
        ]
    )

    rows = parse_bulk_link_input_value(raw, {"acme", "beta"})

    assert [row.line for row in rows] == [4, 6, 7, 8, 10]
    assert [row.error is None for row in rows] == [True, False, False, False, False]


def test_validation_order_first_failure_wins():
    rows = parse_bulk_link_input_value("ghost,\nacme,loc1\nacme,loc1", {"acme"})

    assert rows[0].error == MALFORMED_ROW_ERROR
    assert rows[1].error is None
    assert rows[2].error == 'Duplicate account key "acme" in this batch'


def test_invalid_rows_do_not_count_as_seen_for_duplicates():
    rows = parse_bulk_link_input_value("acme,\nacme,loc1", {"acme"})

    assert rows[0].error == MALFORMED_ROW_ERROR
    assert rows[1].error is None


def test_tab_separated_rows_and_crlf_line_endings():
    rows = parse_bulk_link_input_value("acme\tloc1\tAcme, North\r\nbeta\tloc2", {"acme", "beta"})

    assert [(row.account_key, row.location_id, row.location_name) for row in rows] == [
        ("acme", "loc1", "Acme, North"),
        ("beta", "loc2", None),
    ]


def test_location_name_keeps_embedded_commas():
    rows = parse_bulk_link_input_value("acme, loc1 , Acme Motors, Downtown", {"acme"})

    assert rows[0].location_id == "loc1"
    assert rows[0].location_name == "Acme Motors,Downtown"
    assert rows[0].raw == "acme, loc1 , Acme Motors, Downtown"


def test_empty_input_yields_no_rows():
    assert parse_bulk_link_input_value("", {"acme"}) == []
    assert parse_bulk_link_input_value(None, {"acme"}) == []


def _draft(line, account_key, location_id, error=None):
    return GhlBulkLinkDraftRow(
        line=line,
        raw=f"{account_key},{location_id}",
        account_key=account_key,
        location_id=location_id,
        error=error,
    )


def test_revalidate_flags_rows_a_client_marked_clean():
    rows = revalidate_bulk_link_rows(
        [
            _draft(1, " acme ", "loc1"),
            _draft(2, "acme", ""),
            _draft(3, "acme", "loc3"),
            _draft(4, "beta", "loc4"),
        ],
        {"acme"},
    )

    assert [row.line for row in rows] == [1, 2, 3, 4]
    assert rows[0].account_key == "acme"
    assert rows[0].error is None
    assert rows[1].error == MALFORMED_ROW_ERROR
    assert rows[2].error == 'Duplicate account key "acme" in this batch'
    assert rows[3].error == 'Unknown account key "beta"'


def test_revalidate_keeps_existing_errors_and_does_not_count_them_as_seen():
    rows = revalidate_bulk_link_rows(
        [_draft(1, "acme", "loc1", error="Rejected in review"), _draft(2, "acme", "loc2")],
        {"acme"},
    )

    assert rows[0].error == "Rejected in review"
    assert rows[1].error is None


def test_preview_summary_notices():
    assert summarize_bulk_link_preview([]).notice == "No mapping rows found. Paste one mapping per line."

    invalid_only = summarize_bulk_link_preview(parse_bulk_link_input_value("ghost,loc1", set()))
    assert invalid_only.ready is False
    assert invalid_only.invalid == 1
    assert invalid_only.notice == "No valid rows found. Fix validation errors and try again."

    mixed = summarize_bulk_link_preview(parse_bulk_link_input_value("acme,loc1\nghost,loc2", {"acme"}))
    assert (mixed.total, mixed.valid, mixed.invalid, mixed.ready) == (2, 1, 1, True)
    assert mixed.notice == "Preview ready: 1 valid row"


def test_describe_apply_result():
    assert describe_apply_result(BulkLinkApplyResult(total=3, linked=2, failed=1)) == (
        "Linked 2/3 sub-accounts (1 failed)"
    )
    assert describe_apply_result(BulkLinkApplyResult(total=1, linked=1, failed=0)) == (
        "Linked 1 sub-account successfully"
    )


def test_session_preview_replaces_previous_rows():
    session = BulkLinkSession.for_accounts(["acme", "beta"], input="acme,loc1")
    session.preview()

    session.input = "beta,loc2\nbeta,loc3"
    response = session.preview()

    assert [row.account_key for row in response.rows] == ["beta", "beta"]
    assert response.summary.valid == 1
    assert session.preview_rows == response.rows


def test_session_apply_sends_only_valid_rows_and_matches_results(monkeypatch):
    calls: list[list[dict]] = []

    def _fake_bulk_link(mappings, request_id=None):
        calls.append(mappings)
        return {
            "total": 2,
            "linked": 1,
            "failed": 1,
            "results": [
                {"line": 1, "accountKey": "acme", "locationId": "loc1", "success": True},
                {"line": 3, "accountKey": "beta", "locationId": "loc3", "success": False, "error": "Location not found"},
                {"line": 99, "accountKey": "other", "success": True},
                "garbage",
            ],
        }

    monkeypatch.setattr(console_client, "bulk_link_locations", _fake_bulk_link)
    session = BulkLinkSession.for_accounts(["acme", "beta"], input="acme,loc1,Acme\nghost,loc2\nbeta,loc3")

    response = session.apply(request_id="req-1")

    assert calls == [
        [
            {"line": 1, "accountKey": "acme", "locationId": "loc1", "locationName": "Acme"},
            {"line": 3, "accountKey": "beta", "locationId": "loc3", "locationName": None},
        ]
    ]
    assert len(response.rows) == 3
    assert set(response.results_by_line) == {1, 3}
    assert response.results_by_line[3].error == "Location not found"
    assert response.message == "Linked 1/2 sub-accounts (1 failed)"
    assert session.result is not None
    assert session.result.failed == 1


def test_session_apply_reuses_existing_preview(monkeypatch):
    sent: list[list[dict]] = []

    def _fake_bulk_link(mappings, request_id=None):
        sent.append(mappings)
        return {"total": 1, "linked": 1, "failed": 0, "results": []}

    monkeypatch.setattr(console_client, "bulk_link_locations", _fake_bulk_link)
    session = BulkLinkSession.for_accounts(["acme", "beta"], input="acme,loc1")
    session.preview()
    session.input = "beta,loc9"

    response = session.apply()

    assert [mapping["accountKey"] for mapping in sent[0]] == ["acme"]
    assert response.message == "Linked 1 sub-account successfully"


def test_session_apply_without_valid_rows_raises(monkeypatch):
    def _unexpected(*args, **kwargs):
        raise AssertionError("should not call upstream")

    monkeypatch.setattr(console_client, "bulk_link_locations", _unexpected)
    session = BulkLinkSession.for_accounts([], input="ghost,loc1")

    with pytest.raises(BulkLinkValidationError, match="No valid rows to apply"):
        session.apply()


def test_session_apply_rejects_batches_over_the_row_limit(monkeypatch):
    monkeypatch.setattr(settings, "bulk_link_max_rows", 1)
    session = BulkLinkSession.for_accounts(["acme", "beta"], input="acme,loc1\nbeta,loc2")

    with pytest.raises(BulkLinkValidationError, match="cannot exceed 1 rows"):
        session.apply()


def test_session_apply_revalidates_an_adopted_preview(monkeypatch):
    sent: list[list[dict]] = []

    def _fake_bulk_link(mappings, request_id=None):
        sent.append(mappings)
        return {"total": 1, "linked": 1, "failed": 0, "results": []}

    monkeypatch.setattr(console_client, "bulk_link_locations", _fake_bulk_link)
    session = BulkLinkSession.for_accounts(["acme"])
    session.adopt_preview([_draft(1, "acme", "loc1"), _draft(2, "acme", "loc2"), _draft(3, "beta", "loc3")])

    session.apply()

    assert sent == [[{"line": 1, "accountKey": "acme", "locationId": "loc1", "locationName": None}]]
    assert [row.error is None for row in session.preview_rows] == [True, False, False]
