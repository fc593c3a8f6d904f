"""
store.py — Read access to the lender configuration store.

One row per lender: submission_method, submission_email, name,
submission_config. This subsystem never writes the table; lender
management workflows own it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import JSON, String, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from backend.lender_delivery.core.database import Base

logger = logging.getLogger(__name__)


class LenderRecord(Base):
    """ORM mapping of the columns this subsystem reads from `lenders`."""
    __tablename__ = "lenders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    submission_method: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    submission_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    submission_config: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)


@dataclass(frozen=True)
class LenderConfigRow:
    """Raw lender configuration as stored (not yet validated)."""
    submission_method: Optional[str] = None
    submission_email: Optional[str] = None
    name: Optional[str] = None
    submission_config: Optional[Dict[str, Any]] = None


class LenderConfigStore(Protocol):
    async def fetch_lender(self, lender_id: str) -> Optional[LenderConfigRow]:
        ...


class SqlLenderConfigStore:
    """LenderConfigStore backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def fetch_lender(self, lender_id: str) -> Optional[LenderConfigRow]:
        stmt = (
            select(
                LenderRecord.submission_method,
                LenderRecord.submission_email,
                LenderRecord.name,
                LenderRecord.submission_config,
            )
            .where(LenderRecord.id == lender_id)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        row = result.first()
        if row is None:
            logger.debug("No lender configuration row for %s", lender_id)
            return None
        return LenderConfigRow(
            submission_method=row.submission_method,
            submission_email=row.submission_email,
            name=row.name,
            submission_config=row.submission_config,
        )


class InMemoryLenderConfigStore:
    """Dict-backed store for local development and tests."""

    def __init__(self, rows: Optional[Dict[str, LenderConfigRow]] = None):
        self._rows: Dict[str, LenderConfigRow] = dict(rows or {})

    def put(self, lender_id: str, row: LenderConfigRow) -> None:
        self._rows[lender_id] = row

    async def fetch_lender(self, lender_id: str) -> Optional[LenderConfigRow]:
        return self._rows.get(lender_id)
