"""
email_channel.py — Email submission channel.

Delivery mechanism:
    • Renders a subject and plain-text summary for the lender inbox
    • Hands off to the mail relay (external collaborator)

No transport is modelled at this layer, so the channel always accepts.
The relay owns bounce handling and delivery receipts.

═══════════════════════════════════════════════════════════════════════════
MESSAGE TEMPLATE
═══════════════════════════════════════════════════════════════════════════

    Subject: Loan application submission: {name} ({application_id})
    Body:
        Application: {name}
        Application ID: {application_id}
        Product: {product_type}
        Requested Amount: {requested_amount}
        Submitted At: {submitted_at}

        Documents:
          - {title} ({document_type}, v{version})
"""

from __future__ import annotations

import logging
from typing import Optional

from backend.lender_delivery.core.config import Settings, get_settings
from backend.lender_delivery.submissions.channels.base import SubmissionChannel
from backend.lender_delivery.submissions.models import (
    SubmissionMethod,
    SubmissionPayload,
    SubmissionResult,
    SubmissionStatus,
)

logger = logging.getLogger(__name__)

EMAIL_EXTERNAL_REFERENCE = "email_stub"


def build_subject(payload: SubmissionPayload) -> str:
    app = payload.application
    name = app.name or "Untitled application"
    return f"Loan application submission: {name} ({app.id})"


def _format_amount(amount) -> str:
    if amount is None:
        return "n/a"
    if isinstance(amount, (int, float)):
        return f"{amount:,.2f}"
    return str(amount)


def build_plain_body(payload: SubmissionPayload) -> str:
    app = payload.application
    lines = [
        f"Application: {app.name or 'n/a'}",
        f"Application ID: {app.id}",
        f"Product: {app.product_type or 'n/a'}",
        f"Requested Amount: {_format_amount(app.requested_amount)}",
        f"Submitted At: {payload.submitted_at.isoformat()}",
        "",
        "Documents:",
    ]
    if payload.documents:
        lines.extend(
            f"  - {doc.title} ({doc.document_type}, v{doc.version})"
            for doc in payload.documents
        )
    else:
        lines.append("  (none)")
    return "\n".join(lines) + "\n"


class EmailSubmissionChannel(SubmissionChannel):
    """Accepts the submission for delivery to the lender's inbox."""

    method = SubmissionMethod.EMAIL

    def __init__(
        self,
        to: str,
        payload: SubmissionPayload,
        *,
        settings: Optional[Settings] = None,
    ):
        self.to = to
        self.payload = payload
        self.from_address = (settings or get_settings()).SUBMISSION_FROM_ADDRESS

    async def submit(self, payload: SubmissionPayload) -> SubmissionResult:
        subject = build_subject(payload)
        body = build_plain_body(payload)

        logger.info(
            "[EMAIL] Application %s → %s (from %s): Subject='%s' (%d chars)",
            payload.application.id, self.to, self.from_address, subject, len(body),
            extra={"application_id": payload.application.id, "channel": self.method.value},
        )

        return SubmissionResult.succeeded(
            SubmissionStatus.ACCEPTED,
            detail=f"accepted for delivery to {self.to}",
            external_reference=EMAIL_EXTERNAL_REFERENCE,
        )
