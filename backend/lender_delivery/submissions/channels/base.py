"""
base.py — The one capability every channel implements.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from backend.lender_delivery.submissions.models import (
    SubmissionMethod,
    SubmissionPayload,
    SubmissionResult,
)


class SubmissionChannel(ABC):
    """
    Deliver a payload to one lender through one channel.

    Implementations must not raise from `submit`; every failure, including
    configuration problems discovered late, is returned as a
    SubmissionResult with success=False.
    """

    method: SubmissionMethod

    @abstractmethod
    async def submit(self, payload: SubmissionPayload) -> SubmissionResult:
        ...
