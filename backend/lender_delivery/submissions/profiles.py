"""
profiles.py — Submission profile resolution.

Turns a raw lender configuration row into a submit-ready
SubmissionProfile, validating channel-specific configuration eagerly so
a misconfigured lender fails here, before any channel is constructed.

Method normalisation:

    raw value              resolved method
    ─────────────────      ───────────────
    " API "                api
    "google_sheets"        google_sheet   (legacy alias)
    "google_sheet"         google_sheet
    "email"                email
    None / "" / other      email          (tolerates unset legacy rows)

All failures are raised; no partial profile is ever returned.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from backend.lender_delivery.core.errors import LenderNotFoundError, SubmissionConfigError
from backend.lender_delivery.submissions.models import (
    SpreadsheetConfig,
    SubmissionMethod,
    SubmissionProfile,
)
from backend.lender_delivery.submissions.store import LenderConfigRow, LenderConfigStore

logger = logging.getLogger(__name__)

_LEGACY_ALIASES = {
    "google_sheets": SubmissionMethod.GOOGLE_SHEET,
}


def normalize_submission_method(value: Any) -> SubmissionMethod:
    """Canonicalise stored method text; unknown values default to email."""
    if not isinstance(value, str):
        return SubmissionMethod.EMAIL
    normalized = value.strip().lower()
    if normalized in _LEGACY_ALIASES:
        return _LEGACY_ALIASES[normalized]
    try:
        return SubmissionMethod(normalized)
    except ValueError:
        return SubmissionMethod.EMAIL


def _trimmed(config: Mapping, key: str) -> str:
    value = config.get(key)
    return value.strip() if isinstance(value, str) else ""


def parse_spreadsheet_config(config: Any) -> SpreadsheetConfig:
    """
    Parse `submission_config` for the google_sheet channel.

    Raises
    ------
    SubmissionConfigError
        When the config is absent, or spreadsheetId / columnMapVersion is
        missing or blank.
    """
    if not isinstance(config, Mapping):
        raise SubmissionConfigError(
            "Google Sheet submission config is required.",
            field="submission_config",
        )
    spreadsheet_id = _trimmed(config, "spreadsheetId")
    column_map_version = _trimmed(config, "columnMapVersion")
    sheet_name = _trimmed(config, "sheetName") or None

    if not spreadsheet_id:
        raise SubmissionConfigError(
            "submission_config.spreadsheetId is required.",
            field="spreadsheetId",
        )
    if not column_map_version:
        raise SubmissionConfigError(
            "submission_config.columnMapVersion is required.",
            field="columnMapVersion",
        )
    return SpreadsheetConfig(
        spreadsheet_id=spreadsheet_id,
        column_map_version=column_map_version,
        sheet_name=sheet_name,
    )


def build_submission_profile(lender_id: str, row: LenderConfigRow) -> SubmissionProfile:
    """Validate a configuration row into a submit-ready profile."""
    method = normalize_submission_method(row.submission_method)
    submission_email: Optional[str] = row.submission_email
    submission_config = row.submission_config

    if method is SubmissionMethod.EMAIL:
        if not isinstance(submission_email, str) or not submission_email.strip():
            raise SubmissionConfigError(
                "Submission email is required.",
                field="submission_email", lender_id=lender_id,
            )
        submission_email = submission_email.strip()

    elif method is SubmissionMethod.API:
        if submission_config is None:
            raise SubmissionConfigError(
                "Submission config is required for API submissions.",
                field="submission_config", lender_id=lender_id,
            )

    elif method is SubmissionMethod.GOOGLE_SHEET:
        parse_spreadsheet_config(submission_config)

    return SubmissionProfile(
        lender_id=lender_id,
        lender_name=row.name or "",
        method=method,
        submission_email=submission_email,
        submission_config=submission_config,
    )


async def resolve_submission_profile(
    lender_id: str,
    store: LenderConfigStore,
) -> SubmissionProfile:
    """
    Load and validate a lender's delivery configuration.

    Parameters
    ----------
    lender_id : str
    store : LenderConfigStore
        Single-row lookup by lender id.

    Returns
    -------
    SubmissionProfile

    Raises
    ------
    LenderNotFoundError
        No configuration row exists.
    SubmissionConfigError
        Channel configuration is missing or malformed.
    """
    row = await store.fetch_lender(lender_id)
    if row is None:
        raise LenderNotFoundError(lender_id)

    try:
        profile = build_submission_profile(lender_id, row)
    except SubmissionConfigError as exc:
        logger.warning(
            "Lender %s has invalid submission config: %s",
            lender_id, exc.message,
            extra={"lender_id": lender_id},
        )
        raise

    logger.debug(
        "Resolved submission profile for %s → %s",
        lender_id, profile.method.value,
        extra={"lender_id": lender_id, "channel": profile.method.value},
    )
    return profile
