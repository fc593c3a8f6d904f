"""
Centralised error handling — exception hierarchy + failure classification.

Provides:
    • Domain-specific exception classes
    • Status-code extraction from arbitrary transport errors
    • The retryable heuristic shared by every channel (429 / 5xx)

Two tiers:
    Configuration errors — raised by profile resolution and router
        construction; never retried because retrying without fixing the
        lender configuration cannot succeed.
    Transport errors — captured by each channel into a SubmissionResult;
        never raised across a channel's submit().

Usage:
    from backend.lender_delivery.core.errors import (
        LenderNotFoundError,
        SubmissionConfigError,
        extract_status_code,
        is_retryable_status,
    )

    raise SubmissionConfigError("Submission email is required.", field="submission_email")
"""

from __future__ import annotations

from typing import Any, Dict, Optional


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class LenderDeliveryError(Exception):
    """Base exception for all subsystem errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class LenderNotFoundError(LenderDeliveryError):
    """No configuration row exists for the lender."""

    def __init__(self, lender_id: str):
        super().__init__(
            message="Lender not found.",
            error_code="LENDER_NOT_FOUND",
            details={"lender_id": lender_id},
        )


class SubmissionConfigError(LenderDeliveryError):
    """Lender submission configuration is missing or malformed."""

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        d = {**details}
        if field:
            d["field"] = field
        super().__init__(
            message=message,
            error_code="SUBMISSION_CONFIG_ERROR",
            details=d,
        )


class UnsupportedSubmissionMethodError(LenderDeliveryError):
    """Profile names a method no channel implements."""

    def __init__(self, method: Any):
        super().__init__(
            message="Unsupported submission method.",
            error_code="UNSUPPORTED_SUBMISSION_METHOD",
            details={"method": str(method)},
        )


class LedgerValidationError(LenderDeliveryError):
    """Spreadsheet layout does not match the configured column map (terminal)."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message,
            error_code="LEDGER_VALIDATION_ERROR",
            details=details,
        )


class ExternalServiceError(LenderDeliveryError):
    """Call to an external delivery service failed."""

    def __init__(
        self,
        service: str,
        message: str = "",
        *,
        status_code: Optional[int] = None,
        **details: Any,
    ):
        super().__init__(
            message=f"External service '{service}' failed: {message}",
            error_code="EXTERNAL_SERVICE_ERROR",
            details={"service": service, "status_code": status_code, **details},
        )
        self.status_code = status_code


# ═══════════════════════════════════════════════════════════════════════════
# Failure Classification
# ═══════════════════════════════════════════════════════════════════════════

def _as_status(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def extract_status_code(exc: BaseException) -> Optional[int]:
    """
    Find an HTTP-like status code on an exception, if it carries one.

    Looks at, in order:
        exc.status_code            (ExternalServiceError, googleapiclient HttpError)
        exc.resp.status            (googleapiclient HttpError / httplib2)
        exc.response.status_code   (httpx.HTTPStatusError)
        exc.response.status
        exc.code                   (integer codes only)
    """
    candidates = [getattr(exc, "status_code", None)]

    resp = getattr(exc, "resp", None)
    if resp is not None:
        candidates.append(getattr(resp, "status", None))

    response = getattr(exc, "response", None)
    if response is not None:
        candidates.append(getattr(response, "status_code", None))
        candidates.append(getattr(response, "status", None))

    candidates.append(getattr(exc, "code", None))

    for candidate in candidates:
        status = _as_status(candidate)
        if status is not None:
            return status
    return None


def is_retryable_status(status_code: Optional[int]) -> bool:
    """429 and any 5xx are transient; everything else is terminal."""
    if status_code is None:
        return False
    return status_code == 429 or 500 <= status_code <= 599


def is_retryable_error(exc: BaseException) -> bool:
    """Classify an exception raised during channel I/O."""
    return is_retryable_status(extract_status_code(exc))
