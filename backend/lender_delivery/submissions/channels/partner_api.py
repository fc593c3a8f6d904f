"""
partner_api.py — Partner HTTP API submission channel.

Delivery mechanism:
    • simulation (default): deterministic outcomes used by the test suite
      and local development in place of a real lender integration
    • http: POST the payload JSON to the lender's configured endpoint

═══════════════════════════════════════════════════════════════════════════
SIMULATED OUTCOMES
═══════════════════════════════════════════════════════════════════════════

    Condition                                         Result
    ───────────────────────────────────────────       ──────────────────────
    lender_id == "timeout" and attempt == 0           lender_timeout, retry
    attempt == 0 and metadata.forceFailure truthy     lender_error,   retry
    otherwise                                         accepted

The same channel invoked again with attempt ≥ 1 succeeds, so an
external retry loop driven by `retryable` converges.

═══════════════════════════════════════════════════════════════════════════
HTTP OUTCOMES
═══════════════════════════════════════════════════════════════════════════

    Transport outcome              failure_reason     retryable
    ──────────────────────         ──────────────     ─────────
    2xx                            —                  —
    no endpoint configured         lender_error       False
    timeout                        lender_timeout     True
    429 / 5xx                      lender_error       True
    other 4xx                      lender_error       False
    connection / protocol error    lender_error       True

Headers sent: Idempotency-Key (application id), X-Submission-Attempt.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from backend.lender_delivery.core.config import Settings, get_settings
from backend.lender_delivery.core.errors import is_retryable_status
from backend.lender_delivery.submissions.channels.base import SubmissionChannel
from backend.lender_delivery.submissions.models import (
    FailureReason,
    SubmissionMethod,
    SubmissionPayload,
    SubmissionResult,
    SubmissionStatus,
)

logger = logging.getLogger(__name__)

SIMULATED_TIMEOUT_LENDER_ID = "timeout"


def _extract_reference(response: httpx.Response) -> Optional[str]:
    try:
        body: Any = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("reference", "id"):
            value = body.get(key)
            if value is not None and value != "":
                return str(value)
    return None


class PartnerApiSubmissionChannel(SubmissionChannel):
    """Submits to a lender's partner API; `attempt` is zero-based."""

    method = SubmissionMethod.API

    def __init__(
        self,
        lender_id: str,
        payload: SubmissionPayload,
        attempt: int = 0,
        *,
        endpoint: Optional[str] = None,
        mode: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        config = settings or get_settings()
        self.lender_id = lender_id
        self.payload = payload
        self.attempt = attempt
        self.endpoint = endpoint
        self.mode = (mode or config.PARTNER_API_MODE).strip().lower()
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None
            else config.PARTNER_API_TIMEOUT_SECONDS
        )
        self._http_client = http_client

    def _log_extra(self, payload: SubmissionPayload, **more: Any) -> dict:
        return {
            "application_id": payload.application.id,
            "lender_id": self.lender_id,
            "attempt": self.attempt,
            "channel": self.method.value,
            **more,
        }

    async def submit(self, payload: SubmissionPayload) -> SubmissionResult:
        if self.mode != "http":
            return self._submit_simulated(payload)
        if not self.endpoint:
            logger.error(
                "[PARTNER_API] No endpoint configured for lender %s in http mode",
                self.lender_id,
                extra=self._log_extra(payload, failure_reason=FailureReason.LENDER_ERROR.value),
            )
            return SubmissionResult.failed(
                SubmissionStatus.ERROR,
                FailureReason.LENDER_ERROR,
                retryable=False,
                detail="Partner API endpoint is required.",
            )
        return await self._submit_http(payload)

    # ── Simulation ──

    def _submit_simulated(self, payload: SubmissionPayload) -> SubmissionResult:
        metadata = payload.application.metadata or {}

        if self.lender_id == SIMULATED_TIMEOUT_LENDER_ID and self.attempt == 0:
            logger.warning(
                "[PARTNER_API] Simulated timeout for lender %s (attempt %d)",
                self.lender_id, self.attempt,
                extra=self._log_extra(payload, failure_reason=FailureReason.LENDER_TIMEOUT.value),
            )
            return SubmissionResult.failed(
                SubmissionStatus.TIMEOUT,
                FailureReason.LENDER_TIMEOUT,
                retryable=True,
                detail="Lender did not respond.",
            )

        if self.attempt == 0 and metadata.get("forceFailure"):
            logger.warning(
                "[PARTNER_API] Forced lender error for application %s",
                payload.application.id,
                extra=self._log_extra(payload, failure_reason=FailureReason.LENDER_ERROR.value),
            )
            return SubmissionResult.failed(
                SubmissionStatus.ERROR,
                FailureReason.LENDER_ERROR,
                retryable=True,
                detail="Forced lender error.",
            )

        logger.info(
            "[PARTNER_API] Application %s accepted by lender %s (simulated)",
            payload.application.id, self.lender_id,
            extra=self._log_extra(payload),
        )
        return SubmissionResult.succeeded(SubmissionStatus.ACCEPTED)

    # ── HTTP ──

    async def _post(self, client: httpx.AsyncClient, payload: SubmissionPayload) -> httpx.Response:
        return await client.post(
            self.endpoint,
            json=payload.to_dict(),
            headers={
                "Idempotency-Key": payload.application.id,
                "X-Submission-Attempt": str(self.attempt),
            },
            timeout=self.timeout_seconds,
        )

    async def _submit_http(self, payload: SubmissionPayload) -> SubmissionResult:
        started = time.monotonic()
        try:
            if self._http_client is not None:
                response = await self._post(self._http_client, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, payload)
            response.raise_for_status()

        except httpx.TimeoutException as exc:
            logger.warning(
                "[PARTNER_API] Lender %s timed out: %s", self.lender_id, exc,
                extra=self._log_extra(payload, failure_reason=FailureReason.LENDER_TIMEOUT.value),
            )
            return SubmissionResult.failed(
                SubmissionStatus.TIMEOUT,
                FailureReason.LENDER_TIMEOUT,
                retryable=True,
                detail="Lender did not respond.",
            )

        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            retryable = is_retryable_status(status_code)
            logger.error(
                "[PARTNER_API] Lender %s returned HTTP %d (retryable=%s)",
                self.lender_id, status_code, retryable,
                extra=self._log_extra(
                    payload,
                    failure_reason=FailureReason.LENDER_ERROR.value,
                    status_code=status_code,
                ),
            )
            return SubmissionResult.failed(
                SubmissionStatus.ERROR,
                FailureReason.LENDER_ERROR,
                retryable=retryable,
                detail=f"Lender responded with HTTP {status_code}.",
            )

        except httpx.HTTPError as exc:
            logger.error(
                "[PARTNER_API] Transport error for lender %s: %s", self.lender_id, exc,
                extra=self._log_extra(payload, failure_reason=FailureReason.LENDER_ERROR.value),
            )
            return SubmissionResult.failed(
                SubmissionStatus.ERROR,
                FailureReason.LENDER_ERROR,
                retryable=True,
                detail=str(exc) or type(exc).__name__,
            )

        except Exception as exc:
            logger.exception(
                "[PARTNER_API] Could not submit application %s to lender %s",
                payload.application.id, self.lender_id,
                extra=self._log_extra(payload, failure_reason=FailureReason.LENDER_ERROR.value),
            )
            return SubmissionResult.failed(
                SubmissionStatus.ERROR,
                FailureReason.LENDER_ERROR,
                retryable=False,
                detail=str(exc) or type(exc).__name__,
            )

        duration_ms = round((time.monotonic() - started) * 1000, 1)
        logger.info(
            "[PARTNER_API] Application %s accepted by lender %s (HTTP %d, %.1f ms)",
            payload.application.id, self.lender_id, response.status_code, duration_ms,
            extra=self._log_extra(payload, status_code=response.status_code, duration_ms=duration_ms),
        )
        return SubmissionResult.succeeded(
            SubmissionStatus.ACCEPTED,
            external_reference=_extract_reference(response),
        )
