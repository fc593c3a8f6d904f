"""
router.py — Submission routing.

Selects and builds the channel for a resolved profile once, at
construction time, and exposes a single `submit()` to callers.

═══════════════════════════════════════════════════════════════════════════
DISPATCH
═══════════════════════════════════════════════════════════════════════════

    profile.method     channel                       bound to
    ──────────────     ───────────────────────────   ──────────────────────────
    google_sheet       SpreadsheetLedgerChannel      payload, SpreadsheetConfig
    email              EmailSubmissionChannel        submission_email, payload
    api                PartnerApiSubmissionChannel   lender_id, payload, attempt
    anything else      UnsupportedSubmissionMethodError (raised here)

Construction may raise (unsupported method, config re-check). `submit()`
never raises; every failure comes back as a SubmissionResult.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

import httpx

from backend.lender_delivery.core.config import Settings
from backend.lender_delivery.core.errors import (
    SubmissionConfigError,
    UnsupportedSubmissionMethodError,
)
from backend.lender_delivery.core.logging_config import submission_log_context
from backend.lender_delivery.submissions.channels.base import SubmissionChannel
from backend.lender_delivery.submissions.channels.email_channel import EmailSubmissionChannel
from backend.lender_delivery.submissions.channels.partner_api import PartnerApiSubmissionChannel
from backend.lender_delivery.submissions.channels.sheets_client import SheetsClient
from backend.lender_delivery.submissions.channels.spreadsheet_ledger import (
    SpreadsheetLedgerChannel,
)
from backend.lender_delivery.submissions.models import (
    SubmissionMethod,
    SubmissionPayload,
    SubmissionProfile,
    SubmissionResult,
)
from backend.lender_delivery.submissions.profiles import parse_spreadsheet_config

logger = logging.getLogger(__name__)


def _coerce_method(method: Any) -> SubmissionMethod:
    if isinstance(method, SubmissionMethod):
        return method
    try:
        return SubmissionMethod(method)
    except ValueError:
        raise UnsupportedSubmissionMethodError(method) from None


def _partner_endpoint(config: Any) -> Optional[str]:
    if isinstance(config, Mapping):
        endpoint = config.get("endpoint")
        if isinstance(endpoint, str) and endpoint.strip():
            return endpoint.strip()
    return None


class SubmissionRouter:
    """
    Binds one profile and payload to the channel that delivers them.

    Parameters
    ----------
    profile : SubmissionProfile
        Output of `resolve_submission_profile`.
    payload : SubmissionPayload
    attempt : int
        Zero-based attempt counter supplied by the orchestrator.
    settings : Settings, optional
    sheets_client : SheetsClient, optional
        Injected spreadsheet client (tests, shared connections).
    http_client : httpx.AsyncClient, optional
        Injected client for partner API http mode.

    Raises
    ------
    UnsupportedSubmissionMethodError
        `profile.method` is not email, api or google_sheet.
    SubmissionConfigError
        The channel-specific configuration is missing.
    """

    def __init__(
        self,
        profile: SubmissionProfile,
        payload: SubmissionPayload,
        attempt: int = 0,
        *,
        settings: Optional[Settings] = None,
        sheets_client: Optional[SheetsClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.profile = profile
        self.payload = payload
        self.attempt = attempt
        self.method = _coerce_method(profile.method)

        if self.method is SubmissionMethod.GOOGLE_SHEET:
            config = parse_spreadsheet_config(profile.submission_config)
            self._channel: SubmissionChannel = SpreadsheetLedgerChannel(
                payload, config, settings=settings, sheets_client=sheets_client,
            )

        elif self.method is SubmissionMethod.EMAIL:
            to = (profile.submission_email or "").strip()
            if not to:
                raise SubmissionConfigError(
                    "Submission email is required.",
                    field="submission_email", lender_id=profile.lender_id,
                )
            self._channel = EmailSubmissionChannel(to, payload, settings=settings)

        else:
            self._channel = PartnerApiSubmissionChannel(
                profile.lender_id,
                payload,
                attempt,
                endpoint=_partner_endpoint(profile.submission_config),
                http_client=http_client,
                settings=settings,
            )

        logger.debug(
            "[ROUTER] Routed application %s for lender %s → %s",
            payload.application.id, profile.lender_id, type(self._channel).__name__,
            extra={"application_id": payload.application.id, "lender_id": profile.lender_id},
        )

    @property
    def channel(self) -> SubmissionChannel:
        return self._channel

    async def submit(self) -> SubmissionResult:
        with submission_log_context(
            application_id=self.payload.application.id,
            lender_id=self.profile.lender_id,
            channel=self.method.value,
            attempt=self.attempt,
        ):
            return await self._channel.submit(self.payload)
