"""
spreadsheet_ledger.py — Shared spreadsheet ledger submission channel.

Appends one row per application to a lender-owned Google Sheet, laid out
by a versioned column map.

═══════════════════════════════════════════════════════════════════════════
DELIVERY FLOW (strictly ordered; each step may end the submission)
═══════════════════════════════════════════════════════════════════════════

    1. Authenticate         service-account credential from settings
    2. Resolve tab          sheetName exact match, else first tab
    3. Header row           row 1 must exist and contain every mapped header
    4. Identifier column    the map entry whose path is application.id
    5. Dedup scan           read the id column; existing id → "duplicate"
    6. Build row            one cell per sheet header, via column map paths
    7. Append               single values.append (INSERT_ROWS)
    8. Row index            parsed from the reported updatedRange

Any exception in 1–8 becomes a google_sheet_error result; 429 / 5xx
from the service are retryable, everything else (including the layout
checks in 2–4) is terminal.

═══════════════════════════════════════════════════════════════════════════
IDEMPOTENCY LIMITS
═══════════════════════════════════════════════════════════════════════════

Steps 5 and 7 are two round-trips with no transactional isolation. Two
concurrent submissions for the same application can both pass the scan
and both append. This channel is at-least-once tolerant, not
exactly-once: callers needing strict uniqueness must serialise
submissions per application id upstream.
"""

from __future__ import annotations

import logging
import time
from typing import Any, List, Optional

from backend.lender_delivery.core.config import Settings, get_settings
from backend.lender_delivery.core.errors import LedgerValidationError, is_retryable_error
from backend.lender_delivery.submissions.channels.base import SubmissionChannel
from backend.lender_delivery.submissions.channels.sheets_client import (
    GoogleSheetsClient,
    SheetsClient,
    a1_range,
    column_index_to_letter,
    parse_row_index,
)
from backend.lender_delivery.submissions.column_maps import ColumnMap, get_column_map
from backend.lender_delivery.submissions.field_paths import resolve_cell
from backend.lender_delivery.submissions.models import (
    FailureReason,
    SpreadsheetConfig,
    SubmissionMethod,
    SubmissionPayload,
    SubmissionResult,
    SubmissionStatus,
)

logger = logging.getLogger(__name__)


def _cell_text(cell: Any) -> str:
    return "" if cell is None else str(cell).strip()


def resolve_sheet_title(titles: List[str], requested: Optional[str]) -> str:
    """Pick the target tab: exact title match when requested, else the first."""
    if requested:
        if requested not in titles:
            raise LedgerValidationError(
                "Unable to access requested Google Sheet tab.", sheet_name=requested,
            )
        return requested
    if not titles:
        raise LedgerValidationError("Unable to resolve Google Sheet tab name.")
    return titles[0]


def find_missing_headers(column_map: ColumnMap, header_row: List[str]) -> List[str]:
    present = set(header_row)
    return [header for header in column_map.headers if header not in present]


def build_row(payload: SubmissionPayload, column_map: ColumnMap, header_row: List[str]) -> List[Any]:
    """One cell per sheet header; unmapped headers stay empty."""
    return [resolve_cell(payload, column_map.path_for(header)) for header in header_row]


def find_existing_row(id_column: List[List[Any]], application_id: str) -> Optional[int]:
    """1-based row number of an existing id, skipping the header cell."""
    target = _cell_text(application_id)
    for offset, row in enumerate(id_column[1:], start=2):
        if row and _cell_text(row[0]) == target:
            return offset
    return None


class SpreadsheetLedgerChannel(SubmissionChannel):
    """Deduplicated append of one application row to a lender ledger."""

    method = SubmissionMethod.GOOGLE_SHEET

    def __init__(
        self,
        payload: SubmissionPayload,
        config: SpreadsheetConfig,
        *,
        settings: Optional[Settings] = None,
        sheets_client: Optional[SheetsClient] = None,
    ):
        self.payload = payload
        self.config = config
        self._settings = settings
        self._sheets_client = sheets_client

    def _client(self) -> SheetsClient:
        if self._sheets_client is None:
            self._sheets_client = GoogleSheetsClient.from_settings(
                self._settings or get_settings()
            )
        return self._sheets_client

    def _log_extra(self, payload: SubmissionPayload, **more: Any) -> dict:
        return {
            "application_id": payload.application.id,
            "spreadsheet_id": self.config.spreadsheet_id,
            "channel": self.method.value,
            **more,
        }

    async def submit(self, payload: SubmissionPayload) -> SubmissionResult:
        started = time.monotonic()
        spreadsheet_id = self.config.spreadsheet_id
        application_id = payload.application.id

        logger.info(
            "[SHEET] Submitting application %s to spreadsheet %s (map %s)",
            application_id, spreadsheet_id, self.config.column_map_version,
            extra=self._log_extra(payload),
        )

        try:
            # ── 1. Authenticate ──
            client = self._client()
            column_map = get_column_map(self.config.column_map_version)

            # ── 2. Resolve tab ──
            titles = await client.get_sheet_titles(spreadsheet_id)
            sheet_title = resolve_sheet_title(titles, self.config.sheet_name)

            # ── 3. Header row ──
            header_values = await client.get_values(spreadsheet_id, a1_range(sheet_title, "1:1"))
            header_row = [_cell_text(cell) for cell in (header_values[0] if header_values else [])]
            if not any(header_row):
                raise LedgerValidationError(
                    "Google Sheet header row is missing.", sheet_title=sheet_title,
                )
            missing = find_missing_headers(column_map, header_row)
            if missing:
                raise LedgerValidationError(
                    "Google Sheet mapping does not match sheet headers.",
                    missing_headers=missing, column_map_version=column_map.version,
                )

            # ── 4. Identifier column ──
            id_header = column_map.application_id_header
            if id_header is None:
                raise LedgerValidationError("Application ID mapping is required.")
            if id_header not in header_row:
                raise LedgerValidationError(
                    "Application ID column is missing from sheet.", header=id_header,
                )
            id_letter = column_index_to_letter(header_row.index(id_header))

            # ── 5. Dedup scan ──
            id_column = await client.get_values(
                spreadsheet_id, a1_range(sheet_title, f"{id_letter}:{id_letter}"),
            )
            existing_row = find_existing_row(id_column, application_id)
            if existing_row is not None:
                logger.info(
                    "[SHEET] Application %s already in %s row %d, skipping append",
                    application_id, sheet_title, existing_row,
                    extra=self._log_extra(payload, sheet_title=sheet_title),
                )
                return SubmissionResult.succeeded(
                    SubmissionStatus.DUPLICATE,
                    detail="Application already exists in sheet.",
                    external_reference=str(existing_row),
                )

            # ── 6. Build row ──
            row = build_row(payload, column_map, header_row)

            # ── 7. Append ──
            end_letter = column_index_to_letter(len(header_row) - 1)
            updated_range = await client.append_row(
                spreadsheet_id, a1_range(sheet_title, f"A:{end_letter}"), row,
            )

            # ── 8. Row index ──
            row_index = parse_row_index(updated_range)
            external_reference = str(row_index) if row_index is not None else updated_range

        except Exception as exc:
            retryable = is_retryable_error(exc)
            detail = getattr(exc, "message", None) or str(exc) or "Unknown Google Sheets error."
            logger.error(
                "[SHEET] Submission of %s to %s failed (retryable=%s): %s",
                application_id, spreadsheet_id, retryable, detail,
                extra=self._log_extra(
                    payload, failure_reason=FailureReason.GOOGLE_SHEET_ERROR.value,
                ),
            )
            return SubmissionResult.failed(
                SubmissionStatus.ERROR,
                FailureReason.GOOGLE_SHEET_ERROR,
                retryable=retryable,
                detail=detail,
            )

        duration_ms = round((time.monotonic() - started) * 1000, 1)
        logger.info(
            "[SHEET] Appended application %s to %s (%s) in %.1f ms",
            application_id, sheet_title, updated_range, duration_ms,
            extra=self._log_extra(payload, sheet_title=sheet_title, duration_ms=duration_ms),
        )
        return SubmissionResult.succeeded(
            SubmissionStatus.APPENDED,
            detail="Application appended to Google Sheet.",
            external_reference=external_reference,
        )
