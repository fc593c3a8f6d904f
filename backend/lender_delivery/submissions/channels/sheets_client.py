"""
sheets_client.py — Spreadsheet service access for the ledger channel.

The ledger channel needs four things from the spreadsheet service:

    1. tab titles               spreadsheets.get (sheets.properties.title)
    2. a value range            spreadsheets.values.get   (row 1, id column)
    3. append one row           spreadsheets.values.append
    4. the range it landed in   append response → updates.updatedRange

SheetsClient is that surface as an async protocol. GoogleSheetsClient
implements it with google-api-python-client; its calls are blocking, so
each `execute()` runs in a worker thread. API failures surface as
ExternalServiceError carrying the HTTP status.

Rows are appended with valueInputOption RAW: cells are stored exactly as
sent, so applicant text starting with "=" is never evaluated as a
formula and numeric-looking ids keep their leading zeros.

A1 notation helpers live here as well: tab titles are always quoted so
titles with spaces or punctuation resolve correctly.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, List, Optional, Protocol, Sequence

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from backend.lender_delivery.core.config import Settings, get_settings
from backend.lender_delivery.core.errors import ExternalServiceError, SubmissionConfigError

logger = logging.getLogger(__name__)

_ROW_IN_RANGE = re.compile(r"!\$?[A-Za-z]+\$?(\d+)")

# Cells are stored as sent: no formula parsing, no number coercion
VALUE_INPUT_OPTION = "RAW"
INSERT_DATA_OPTION = "INSERT_ROWS"


# ═══════════════════════════════════════════════════════════════════════════
# A1 Notation
# ═══════════════════════════════════════════════════════════════════════════

def column_index_to_letter(index: int) -> str:
    """0 → A, 25 → Z, 26 → AA."""
    if index < 0:
        raise ValueError(f"column index must be >= 0, got {index}")
    result = ""
    current = index + 1
    while current > 0:
        current, remainder = divmod(current - 1, 26)
        result = chr(65 + remainder) + result
    return result


def quote_sheet_title(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def a1_range(title: str, cells: str) -> str:
    return f"{quote_sheet_title(title)}!{cells}"


def parse_row_index(updated_range: Optional[str]) -> Optional[int]:
    """Row number of the first cell in e.g. "Sheet1!A7:F7" → 7."""
    if not updated_range:
        return None
    match = _ROW_IN_RANGE.search(updated_range)
    return int(match.group(1)) if match else None


# ═══════════════════════════════════════════════════════════════════════════
# Client Protocol
# ═══════════════════════════════════════════════════════════════════════════

class SheetsClient(Protocol):
    async def get_sheet_titles(self, spreadsheet_id: str) -> List[str]:
        ...

    async def get_values(self, spreadsheet_id: str, range_a1: str) -> List[List[Any]]:
        ...

    async def append_row(
        self,
        spreadsheet_id: str,
        range_a1: str,
        row: Sequence[Any],
    ) -> Optional[str]:
        """Append one row; return the updated range reported by the service."""
        ...


# ═══════════════════════════════════════════════════════════════════════════
# Google Sheets API v4
# ═══════════════════════════════════════════════════════════════════════════

def load_service_account_credentials(config: Settings) -> service_account.Credentials:
    """
    Build service-account credentials from settings.

    Raises
    ------
    SubmissionConfigError
        Client email or private key is not configured.
    """
    if not config.has_google_credentials:
        raise SubmissionConfigError(
            "Missing Google service account credentials.",
            field="GOOGLE_SERVICE_ACCOUNT_EMAIL",
        )
    info = {
        "type": "service_account",
        "client_email": (config.GOOGLE_SERVICE_ACCOUNT_EMAIL or "").strip(),
        "private_key": config.google_private_key,
        "token_uri": config.GOOGLE_TOKEN_URI,
    }
    return service_account.Credentials.from_service_account_info(
        info, scopes=list(config.GOOGLE_SHEETS_SCOPES),
    )


async def _execute(request: Any) -> dict:
    """Run a blocking discovery request off the event loop."""
    try:
        return await asyncio.to_thread(request.execute) or {}
    except HttpError as exc:
        status = getattr(exc.resp, "status", None)
        raise ExternalServiceError(
            "google_sheets",
            getattr(exc, "reason", "") or str(exc),
            status_code=int(status) if status is not None else None,
            uri=getattr(exc, "uri", None),
        ) from exc


class GoogleSheetsClient:
    """SheetsClient backed by the Sheets v4 discovery client."""

    def __init__(self, credentials: service_account.Credentials):
        self._service = build(
            "sheets", "v4", credentials=credentials, cache_discovery=False,
        )

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "GoogleSheetsClient":
        return cls(load_service_account_credentials(config or get_settings()))

    async def get_sheet_titles(self, spreadsheet_id: str) -> List[str]:
        request = self._service.spreadsheets().get(
            spreadsheetId=spreadsheet_id,
            fields="sheets.properties.title",
        )
        response = await _execute(request)
        titles: List[str] = []
        for sheet in response.get("sheets") or []:
            title = ((sheet or {}).get("properties") or {}).get("title")
            if title:
                titles.append(title)
        return titles

    async def get_values(self, spreadsheet_id: str, range_a1: str) -> List[List[Any]]:
        request = self._service.spreadsheets().values().get(
            spreadsheetId=spreadsheet_id,
            range=range_a1,
        )
        response = await _execute(request)
        return response.get("values") or []

    async def append_row(
        self,
        spreadsheet_id: str,
        range_a1: str,
        row: Sequence[Any],
    ) -> Optional[str]:
        request = self._service.spreadsheets().values().append(
            spreadsheetId=spreadsheet_id,
            range=range_a1,
            valueInputOption=VALUE_INPUT_OPTION,
            insertDataOption=INSERT_DATA_OPTION,
            body={"values": [list(row)]},
        )
        response = await _execute(request)
        updated_range = (response.get("updates") or {}).get("updatedRange")
        logger.debug("[SHEET] Appended to %s → %s", range_a1, updated_range)
        return updated_range
