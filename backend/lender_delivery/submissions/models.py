"""
models.py — Shared data structures for lender submission delivery.

Defines:
    • SubmissionMethod   — delivery channel discriminant
    • SubmissionStatus   — normalised response status per outcome
    • FailureReason      — failure taxonomy codes
    • ApplicationSnapshot / DocumentSnapshot / SubmissionPayload
                         — the immutable snapshot every channel consumes
    • SubmissionResponse / SubmissionResult
                         — the uniform outcome every channel produces
    • SpreadsheetConfig  — parsed google_sheet submission config
    • SubmissionProfile  — resolved, submit-ready lender configuration

═══════════════════════════════════════════════════════════════════════════
OUTCOME TAXONOMY
═══════════════════════════════════════════════════════════════════════════

    Channel          status       failure_reason        retryable
    ──────────       ──────────   ──────────────────    ─────────
    email            accepted     —                     False
    api              accepted     —                     False
    api              timeout      lender_timeout        True
    api              error        lender_error          True / False
    google_sheet     appended     —                     False
    google_sheet     duplicate    —                     False
    google_sheet     error        google_sheet_error    429/5xx only

`retryable` is meaningful only when `success` is False. The caller
(external orchestrator) is the only layer that decides to retry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class SubmissionMethod(str, Enum):
    """Available delivery channels."""
    EMAIL        = "email"
    API          = "api"
    GOOGLE_SHEET = "google_sheet"


class SubmissionStatus(str, Enum):
    """Normalised `response.status` values."""
    ACCEPTED  = "accepted"
    APPENDED  = "appended"
    DUPLICATE = "duplicate"    # idempotent replay, no write performed
    TIMEOUT   = "timeout"
    ERROR     = "error"


class FailureReason(str, Enum):
    """Failure taxonomy codes (never raw error messages)."""
    LENDER_TIMEOUT     = "lender_timeout"
    LENDER_ERROR       = "lender_error"
    GOOGLE_SHEET_ERROR = "google_sheet_error"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return _now().isoformat()


# ═══════════════════════════════════════════════════════════════════════════
# Payload (read-only snapshot)
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DocumentSnapshot:
    """One accepted document version attached to the submission."""
    document_id: str
    document_type: str
    title: str
    version_id: str
    version: int
    metadata: Dict[str, Any] = field(default_factory=dict)
    content: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "document_type": self.document_type,
            "title": self.title,
            "version_id": self.version_id,
            "version": self.version,
            "metadata": dict(self.metadata),
            "content": self.content,
        }


@dataclass(frozen=True)
class ApplicationSnapshot:
    """
    Loan application fields as they stood when the snapshot was taken.

    Attributes
    ----------
    id : str
        Application identifier; the ledger deduplication key.
    owner_user_id : str | None
        Owning user reference.
    name : str
        Display name of the application.
    metadata : dict
        Free-form intake data (applicant, business, financials, flags).
    product_type : str
    lender_id, lender_product_id : str | None
    requested_amount : float | int | None
    """
    id: str
    name: str = ""
    owner_user_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    product_type: str = ""
    lender_id: Optional[str] = None
    lender_product_id: Optional[str] = None
    requested_amount: Optional[Union[int, float]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "name": self.name,
            "metadata": dict(self.metadata),
            "product_type": self.product_type,
            "lender_id": self.lender_id,
            "lender_product_id": self.lender_product_id,
            "requested_amount": self.requested_amount,
        }


@dataclass(frozen=True)
class SubmissionPayload:
    """Immutable snapshot assembled by the caller once per delivery attempt."""
    application: ApplicationSnapshot
    documents: Tuple[DocumentSnapshot, ...] = ()
    submitted_at: datetime = field(default_factory=_now)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubmissionPayload":
        """Build a payload from a plain mapping (e.g. a queued JSON message)."""
        app = data.get("application") or {}
        docs = data.get("documents") or []
        submitted_at = data.get("submitted_at")
        if isinstance(submitted_at, str):
            submitted_at = datetime.fromisoformat(submitted_at.replace("Z", "+00:00"))
        return cls(
            application=ApplicationSnapshot(
                id=str(app["id"]),
                name=app.get("name") or "",
                owner_user_id=app.get("owner_user_id"),
                metadata=dict(app.get("metadata") or {}),
                product_type=app.get("product_type") or "",
                lender_id=app.get("lender_id"),
                lender_product_id=app.get("lender_product_id"),
                requested_amount=app.get("requested_amount"),
            ),
            documents=tuple(
                DocumentSnapshot(
                    document_id=str(d["document_id"]),
                    document_type=d.get("document_type") or "",
                    title=d.get("title") or "",
                    version_id=str(d.get("version_id") or ""),
                    version=int(d.get("version") or 0),
                    metadata=dict(d.get("metadata") or {}),
                    content=d.get("content") or "",
                )
                for d in docs
            ),
            submitted_at=submitted_at or _now(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "application": self.application.to_dict(),
            "documents": [d.to_dict() for d in self.documents],
            "submitted_at": self.submitted_at.isoformat(),
        }


# ═══════════════════════════════════════════════════════════════════════════
# Result (uniform across channels)
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SubmissionResponse:
    """Normalised echo of what happened, regardless of channel."""
    status: str
    received_at: str = field(default_factory=now_iso)
    detail: Optional[str] = None
    external_reference: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "detail": self.detail,
            "received_at": self.received_at,
            "external_reference": self.external_reference,
        }


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of one submit() invocation."""
    success: bool
    response: SubmissionResponse
    failure_reason: Optional[str] = None
    retryable: bool = False

    @classmethod
    def succeeded(
        cls,
        status: SubmissionStatus,
        *,
        detail: Optional[str] = None,
        external_reference: Optional[str] = None,
    ) -> "SubmissionResult":
        return cls(
            success=True,
            response=SubmissionResponse(
                status=status.value,
                detail=detail,
                external_reference=external_reference,
            ),
        )

    @classmethod
    def failed(
        cls,
        status: SubmissionStatus,
        reason: FailureReason,
        *,
        retryable: bool,
        detail: Optional[str] = None,
    ) -> "SubmissionResult":
        return cls(
            success=False,
            response=SubmissionResponse(status=status.value, detail=detail),
            failure_reason=reason.value,
            retryable=retryable,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "response": self.response.to_dict(),
            "failure_reason": self.failure_reason,
            "retryable": self.retryable,
        }


# ═══════════════════════════════════════════════════════════════════════════
# Lender Configuration
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SpreadsheetConfig:
    """Parsed `submission_config` for method=google_sheet."""
    spreadsheet_id: str
    column_map_version: str
    sheet_name: Optional[str] = None  # None → first tab

    def to_dict(self) -> Dict[str, Any]:
        return {
            "spreadsheetId": self.spreadsheet_id,
            "sheetName": self.sheet_name,
            "columnMapVersion": self.column_map_version,
        }


@dataclass(frozen=True)
class SubmissionProfile:
    """
    Resolved per-lender delivery configuration.

    A resolved profile is always submit-ready: channels never re-check
    that configuration is present, only that the target is reachable.
    `method` is kept as a plain string-valued member so a profile built
    by hand with an unknown method still reaches the router, which
    rejects it.
    """
    lender_id: str
    lender_name: str
    method: Union[SubmissionMethod, str]
    submission_email: Optional[str] = None
    submission_config: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        method = self.method.value if isinstance(self.method, SubmissionMethod) else self.method
        return {
            "lender_id": self.lender_id,
            "lender_name": self.lender_name,
            "method": method,
            "submission_email": self.submission_email,
            "submission_config": self.submission_config,
        }
