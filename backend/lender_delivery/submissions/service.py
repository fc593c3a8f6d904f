"""
service.py — Caller-facing delivery entry point.

Pipeline (one attempt, no retries):

    resolve_submission_profile → SubmissionRouter → channel.submit → log

Configuration errors (lender missing, invalid config, unsupported method)
are raised to the caller. Delivery failures are returned in the
SubmissionResult; the orchestrator decides whether to call again with
attempt + 1 based on `result.retryable`.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx

from backend.lender_delivery.core.config import Settings
from backend.lender_delivery.core.logging_config import submission_log_context
from backend.lender_delivery.submissions.channels.sheets_client import SheetsClient
from backend.lender_delivery.submissions.models import SubmissionPayload, SubmissionResult
from backend.lender_delivery.submissions.profiles import resolve_submission_profile
from backend.lender_delivery.submissions.router import SubmissionRouter
from backend.lender_delivery.submissions.store import LenderConfigStore

logger = logging.getLogger(__name__)


async def deliver_submission(
    lender_id: str,
    payload: SubmissionPayload,
    attempt: int,
    store: LenderConfigStore,
    *,
    settings: Optional[Settings] = None,
    sheets_client: Optional[SheetsClient] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> SubmissionResult:
    """
    Deliver one submission attempt to a lender.

    Parameters
    ----------
    lender_id : str
    payload : SubmissionPayload
        Snapshot built by the caller for this attempt.
    attempt : int
        Zero-based attempt counter.
    store : LenderConfigStore
        Source of the lender's delivery configuration.

    Returns
    -------
    SubmissionResult

    Raises
    ------
    LenderNotFoundError, SubmissionConfigError, UnsupportedSubmissionMethodError
    """
    application_id = payload.application.id
    with submission_log_context(application_id=application_id, lender_id=lender_id, attempt=attempt):
        profile = await resolve_submission_profile(lender_id, store)
        router = SubmissionRouter(
            profile,
            payload,
            attempt,
            settings=settings,
            sheets_client=sheets_client,
            http_client=http_client,
        )

        started = time.monotonic()
        result = await router.submit()
        duration_ms = round((time.monotonic() - started) * 1000, 1)

    extra = {
        "application_id": application_id,
        "lender_id": lender_id,
        "channel": router.method.value,
        "attempt": attempt,
        "duration_ms": duration_ms,
    }
    if result.success:
        logger.info(
            "Delivered application %s to lender %s via %s: %s",
            application_id, lender_id, router.method.value, result.response.status,
            extra=extra,
        )
    else:
        logger.warning(
            "Delivery of application %s to lender %s via %s failed: %s (retryable=%s)",
            application_id, lender_id, router.method.value,
            result.failure_reason, result.retryable,
            extra={**extra, "failure_reason": result.failure_reason},
        )
    return result
