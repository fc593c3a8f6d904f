"""
test_spreadsheet_ledger.py — Tests for the spreadsheet ledger channel and
its A1 / Sheets client helpers.

Covers:
    • A1 notation (column letters, quoted titles, row index parsing)
    • Tab resolution, header validation, identifier column lookup
    • Deduplication scan (duplicate → no append)
    • Row construction against the v1 / v2 column maps
    • Failure classification (terminal layout errors, 429/5xx retryable)
    • Credential absence

Spreadsheet I/O is replaced by FakeSheetsClient, an in-memory
implementation of the SheetsClient protocol that records appends.

Run with:
    pytest tests/test_spreadsheet_ledger.py -v
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from backend.lender_delivery.core.config import Settings
from backend.lender_delivery.core.errors import (
    ExternalServiceError,
    LedgerValidationError,
    SubmissionConfigError,
)
from backend.lender_delivery.submissions.channels.sheets_client import (
    GoogleSheetsClient,
    _execute,
    a1_range,
    column_index_to_letter,
    load_service_account_credentials,
    parse_row_index,
    quote_sheet_title,
)
from backend.lender_delivery.submissions.channels.spreadsheet_ledger import (
    SpreadsheetLedgerChannel,
    find_existing_row,
    resolve_sheet_title,
)
from backend.lender_delivery.submissions.column_maps import get_column_map
from backend.lender_delivery.submissions.models import (
    ApplicationSnapshot,
    DocumentSnapshot,
    SpreadsheetConfig,
    SubmissionPayload,
)


# ═══════════════════════════════════════════════════════════════════════════
# Test Fixtures
# ═══════════════════════════════════════════════════════════════════════════

SPREADSHEET_ID = "sheet-abc"
V1_HEADERS = get_column_map("v1").headers
V2_HEADERS = get_column_map("v2").headers


class FakeSheetsClient:
    """In-memory SheetsClient: tabs of rows, appends recorded."""

    def __init__(
        self,
        tabs: Optional[Dict[str, List[List[Any]]]] = None,
        error: Optional[BaseException] = None,
    ):
        self.tabs = tabs if tabs is not None else {"Sheet1": [list(V1_HEADERS)]}
        self.error = error
        self.value_requests: List[str] = []
        self.appends: List[tuple] = []

    async def get_sheet_titles(self, spreadsheet_id: str) -> List[str]:
        if self.error is not None:
            raise self.error
        return list(self.tabs)

    async def get_values(self, spreadsheet_id: str, range_a1: str) -> List[List[Any]]:
        self.value_requests.append(range_a1)
        title, cells = range_a1.rsplit("!", 1)
        rows = self.tabs[title[1:-1].replace("''", "'")]
        if cells == "1:1":
            return rows[:1]
        column = cells.split(":")[0]
        index = _letter_to_index(column)
        return [[row[index]] if index < len(row) else [] for row in rows]

    async def append_row(self, spreadsheet_id: str, range_a1: str, row: Sequence[Any]) -> Optional[str]:
        title = range_a1.rsplit("!", 1)[0]
        rows = self.tabs[title[1:-1].replace("''", "'")]
        rows.append(list(row))
        self.appends.append((range_a1, list(row)))
        last = column_index_to_letter(len(row) - 1)
        return f"{title}!A{len(rows)}:{last}{len(rows)}"


def _letter_to_index(letters: str) -> int:
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - 64)
    return index - 1


def _make_payload(app_id: str = "app-123", documents: tuple = ()) -> SubmissionPayload:
    """Create a test payload with v1 ledger fields populated."""
    return SubmissionPayload(
        application=ApplicationSnapshot(
            id=app_id,
            name="Acme Bakery",
            metadata={
                "applicant": {"firstName": "Ada", "lastName": "Lovelace", "email": "ada@acme.test"},
                "business": {
                    "legalName": "Acme Bakery LLC",
                    "address": {"city": "Austin", "state": "TX"},
                },
                "financials": {"annualRevenue": 1200000, "term": 24},
            },
            product_type="term_loan",
            requested_amount=50000,
        ),
        documents=documents,
        submitted_at=datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc),
    )


def _make_config(version: str = "v1", sheet_name: Optional[str] = None) -> SpreadsheetConfig:
    return SpreadsheetConfig(
        spreadsheet_id=SPREADSHEET_ID, column_map_version=version, sheet_name=sheet_name,
    )


def _submit(client, payload=None, config=None, settings=None):
    payload = payload or _make_payload()
    channel = SpreadsheetLedgerChannel(
        payload, config or _make_config(), settings=settings, sheets_client=client,
    )
    return asyncio.run(channel.submit(payload))


def _http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b'{"error": {"message": "boom"}}')


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: A1 Notation
# ═══════════════════════════════════════════════════════════════════════════

class TestA1Helpers:
    """Test column letters, quoting and row parsing."""

    @pytest.mark.parametrize("index, letter", [
        (0, "A"), (5, "F"), (25, "Z"), (26, "AA"), (27, "AB"), (51, "AZ"), (52, "BA"), (701, "ZZ"), (702, "AAA"),
    ])
    def test_column_letters(self, index, letter):
        assert column_index_to_letter(index) == letter

    def test_negative_index(self):
        with pytest.raises(ValueError):
            column_index_to_letter(-1)

    def test_quote_title(self):
        assert quote_sheet_title("My Tab") == "'My Tab'"
        assert quote_sheet_title("Bob's Deals") == "'Bob''s Deals'"

    def test_a1_range(self):
        assert a1_range("Sheet1", "1:1") == "'Sheet1'!1:1"

    @pytest.mark.parametrize("updated_range, row", [
        ("Sheet1!A2:F2", 2),
        ("'My Tab'!A17:T17", 17),
        ("'Deals'!$A$9:$C$9", 9),
        ("Sheet1", None),
        ("", None),
        (None, None),
    ])
    def test_parse_row_index(self, updated_range, row):
        assert parse_row_index(updated_range) == row


class TestLedgerHelpers:
    """Test tab resolution and the id column scan."""

    def test_first_tab_when_unset(self):
        assert resolve_sheet_title(["Deals", "Archive"], None) == "Deals"

    def test_exact_match(self):
        assert resolve_sheet_title(["Deals", "Archive"], "Archive") == "Archive"

    def test_match_is_case_sensitive(self):
        with pytest.raises(LedgerValidationError):
            resolve_sheet_title(["Deals"], "deals")

    def test_no_tabs(self):
        with pytest.raises(LedgerValidationError) as exc_info:
            resolve_sheet_title([], None)
        assert exc_info.value.message == "Unable to resolve Google Sheet tab name."

    def test_existing_row_skips_header(self):
        column = [["Application ID"], ["a-1"], [], [" app-123 "]]
        assert find_existing_row(column, "app-123") == 4
        assert find_existing_row(column, "Application ID") is None

    def test_numeric_cells_match(self):
        assert find_existing_row([["Application ID"], [42]], "42") == 2


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Successful Delivery
# ═══════════════════════════════════════════════════════════════════════════

class TestAppend:
    """Test the append path."""

    def test_appends_v1_row(self):
        client = FakeSheetsClient()
        result = _submit(client)

        assert result.success is True
        assert result.retryable is False
        assert result.failure_reason is None
        assert result.response.status == "appended"
        assert result.response.detail == "Application appended to Google Sheet."
        assert result.response.external_reference == "2"

        assert len(client.appends) == 1
        range_a1, row = client.appends[0]
        assert range_a1 == "'Sheet1'!A:T"
        assert len(row) == len(V1_HEADERS)
        cells = dict(zip(V1_HEADERS, row))
        assert cells["Application ID"] == "app-123"
        assert cells["Submitted At"] == "2024-03-01T12:30:00+00:00"
        assert cells["Applicant First Name"] == "Ada"
        assert cells["Business City"] == "Austin"
        assert cells["Requested Amount"] == 50000
        assert cells["Annual Revenue"] == 1200000
        assert cells["Applicant Phone"] == ""

    def test_row_follows_sheet_column_order(self):
        headers = ["Notes", "Requested Amount", "Application ID"] + [
            h for h in V1_HEADERS if h not in ("Requested Amount", "Application ID")
        ]
        client = FakeSheetsClient({"Sheet1": [headers]})
        _submit(client)

        _, row = client.appends[0]
        assert row[:3] == ["", 50000, "app-123"]

    def test_header_cells_are_trimmed(self):
        headers = [f" {h} " for h in V1_HEADERS]
        client = FakeSheetsClient({"Sheet1": [headers]})
        assert _submit(client).success is True

    def test_named_tab_with_quote(self):
        client = FakeSheetsClient({"Summary": [["x"]], "Bob's Deals": [list(V1_HEADERS)]})
        result = _submit(client, config=_make_config(sheet_name="Bob's Deals"))
        assert result.success is True
        assert client.appends[0][0] == "'Bob''s Deals'!A:T"

    def test_v2_document_columns(self):
        doc = DocumentSnapshot(
            document_id="d1", document_type="bank_statement",
            title="March", version_id="v-1", version=3,
        )
        client = FakeSheetsClient({"Sheet1": [list(V2_HEADERS)]})
        result = _submit(client, payload=_make_payload(documents=(doc,)), config=_make_config("v2"))

        assert result.success is True
        cells = dict(zip(V2_HEADERS, client.appends[0][1]))
        assert cells["Primary Document Type"] == "bank_statement"
        assert cells["Primary Document Version"] == 3

    def test_existing_rows_push_reference_down(self):
        client = FakeSheetsClient({"Sheet1": [list(V1_HEADERS), ["other-1"], ["other-2"]]})
        assert _submit(client).response.external_reference == "4"

    def test_id_column_range_requested(self):
        client = FakeSheetsClient()
        _submit(client)
        assert client.value_requests == ["'Sheet1'!1:1", "'Sheet1'!A:A"]


class TestDeduplication:
    """Test the idempotent replay path."""

    def test_duplicate_skips_append(self):
        client = FakeSheetsClient({"Sheet1": [list(V1_HEADERS), ["other"], ["app-123"]]})
        result = _submit(client)

        assert result.success is True
        assert result.response.status == "duplicate"
        assert result.response.detail == "Application already exists in sheet."
        assert result.response.external_reference == "3"
        assert client.appends == []

    def test_second_submission_is_duplicate(self):
        client = FakeSheetsClient()
        first = _submit(client)
        second = _submit(client)
        assert first.response.status == "appended"
        assert second.response.status == "duplicate"
        assert second.response.external_reference == first.response.external_reference
        assert len(client.appends) == 1


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Failures
# ═══════════════════════════════════════════════════════════════════════════

def _assert_terminal(result, detail: str):
    assert result.success is False
    assert result.response.status == "error"
    assert result.failure_reason == "google_sheet_error"
    assert result.retryable is False
    assert result.response.detail == detail


class TestLayoutFailures:
    """Test terminal layout and configuration failures."""

    def test_requested_tab_missing(self):
        client = FakeSheetsClient()
        result = _submit(client, config=_make_config(sheet_name="Deals"))
        _assert_terminal(result, "Unable to access requested Google Sheet tab.")

    def test_no_tabs(self):
        _assert_terminal(_submit(FakeSheetsClient({})), "Unable to resolve Google Sheet tab name.")

    def test_header_row_missing(self):
        _assert_terminal(_submit(FakeSheetsClient({"Sheet1": []})), "Google Sheet header row is missing.")

    def test_blank_header_row(self):
        _assert_terminal(_submit(FakeSheetsClient({"Sheet1": [["", "  "]]})), "Google Sheet header row is missing.")

    def test_header_drift(self):
        headers = [h for h in V1_HEADERS if h != "Business Tax ID"]
        client = FakeSheetsClient({"Sheet1": [headers]})
        _assert_terminal(_submit(client), "Google Sheet mapping does not match sheet headers.")
        assert client.appends == []

    def test_unknown_column_map_version(self):
        client = FakeSheetsClient()
        _assert_terminal(_submit(client, config=_make_config("v99")), "Google Sheet columnMapVersion is invalid.")
        assert client.appends == []


class TestTransportFailures:
    """Test classification of spreadsheet service errors."""

    @pytest.mark.parametrize("status, retryable", [
        (429, True),
        (500, True),
        (503, True),
        (403, False),
        (404, False),
    ])
    def test_status_classification(self, status, retryable):
        error = ExternalServiceError("google_sheets", "boom", status_code=status)
        result = _submit(FakeSheetsClient(error=error))
        assert result.success is False
        assert result.failure_reason == "google_sheet_error"
        assert result.retryable is retryable

    def test_raw_http_error_classified(self):
        result = _submit(FakeSheetsClient(error=_http_error(503)))
        assert result.retryable is True
        assert result.failure_reason == "google_sheet_error"

    def test_unexpected_error_is_terminal(self):
        result = _submit(FakeSheetsClient(error=RuntimeError("socket closed")))
        assert result.retryable is False
        assert result.response.detail == "socket closed"

    def test_missing_credentials(self):
        config = Settings(
            _env_file=None,
            GOOGLE_SERVICE_ACCOUNT_EMAIL=None,
            GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY=None,
        )
        _assert_terminal(
            _submit(None, settings=config),
            "Missing Google service account credentials.",
        )


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Google Sheets Client
# ═══════════════════════════════════════════════════════════════════════════

class TestGoogleSheetsClient:
    """Test credential loading, append options and error wrapping."""

    def test_from_settings_requires_credentials(self):
        config = Settings(_env_file=None, GOOGLE_SERVICE_ACCOUNT_EMAIL="svc@proj.iam.test")
        with pytest.raises(SubmissionConfigError) as exc_info:
            GoogleSheetsClient.from_settings(config)
        assert exc_info.value.message == "Missing Google service account credentials."

    def test_blank_key_counts_as_missing(self):
        config = Settings(
            _env_file=None,
            GOOGLE_SERVICE_ACCOUNT_EMAIL="svc@proj.iam.test",
            GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY="   ",
        )
        with pytest.raises(SubmissionConfigError):
            load_service_account_credentials(config)

    def test_private_key_newlines_unescaped(self):
        config = Settings(
            _env_file=None,
            GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY="-----BEGIN-----\\nabc\\n-----END-----",
        )
        assert config.google_private_key == "-----BEGIN-----\nabc\n-----END-----"

    def test_execute_wraps_http_error(self):
        class _Request:
            def execute(self):
                raise _http_error(429)

        with pytest.raises(ExternalServiceError) as exc_info:
            asyncio.run(_execute(_Request()))
        assert exc_info.value.status_code == 429
        assert exc_info.value.details["service"] == "google_sheets"

    def test_execute_returns_response(self):
        class _Request:
            def execute(self):
                return {"updates": {"updatedRange": "Sheet1!A2:T2"}}

        assert asyncio.run(_execute(_Request()))["updates"]["updatedRange"] == "Sheet1!A2:T2"

    def test_append_writes_cells_literally(self):
        client = GoogleSheetsClient.__new__(GoogleSheetsClient)
        client._service = MagicMock()
        values = client._service.spreadsheets.return_value.values.return_value
        values.append.return_value.execute.return_value = {
            "updates": {"updatedRange": "'Deals'!A7:C7"},
        }
        row = ["=HYPERLINK(\"http://x.test\")", "00123", 50000]

        updated_range = asyncio.run(client.append_row("sheet-abc", "'Deals'!A:C", row))

        assert updated_range == "'Deals'!A7:C7"
        values.append.assert_called_once_with(
            spreadsheetId="sheet-abc",
            range="'Deals'!A:C",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [row]},
        )
