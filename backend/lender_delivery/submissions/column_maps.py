"""
column_maps.py — Versioned ledger column maps.

A column map pairs spreadsheet header text with a dotted payload path
(see field_paths.py). Lenders pin a version through
`submission_config.columnMapVersion`; when a lender's sheet layout
changes, a new version is registered instead of editing the old one, so
rows written under the previous layout stay interpretable.

Every map carries exactly one entry whose path is `application.id`.
That header's column is the ledger's deduplication key.

═══════════════════════════════════════════════════════════════════════════
REGISTERED VERSIONS
═══════════════════════════════════════════════════════════════════════════

    v1  Merchant ledger: identifiers, applicant, business, address,
        amount / product, financials.
    v2  v1 + first attached document (type, title, version).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from backend.lender_delivery.core.errors import SubmissionConfigError

APPLICATION_ID_PATH = "application.id"


@dataclass(frozen=True)
class ColumnMap:
    """Ordered header → path mapping for one ledger layout version."""
    version: str
    columns: Tuple[Tuple[str, str], ...]

    @property
    def headers(self) -> List[str]:
        return [header for header, _ in self.columns]

    def path_for(self, header: str) -> Optional[str]:
        for mapped_header, path in self.columns:
            if mapped_header == header:
                return path
        return None

    @property
    def application_id_header(self) -> Optional[str]:
        """Header of the single entry that targets the application id."""
        for header, path in self.columns:
            if path == APPLICATION_ID_PATH:
                return header
        return None

    def as_dict(self) -> Dict[str, str]:
        return dict(self.columns)


def validate_column_map(column_map: ColumnMap) -> None:
    """Reject maps that cannot be used for deduplicated appends."""
    if not column_map.version.strip():
        raise SubmissionConfigError("Column map version is required.", field="version")
    if not column_map.columns:
        raise SubmissionConfigError(
            "Column map must define at least one column.",
            field="columns", version=column_map.version,
        )
    headers = column_map.headers
    if len(set(headers)) != len(headers):
        raise SubmissionConfigError(
            "Column map headers must be unique.",
            field="columns", version=column_map.version,
        )
    id_entries = [h for h, p in column_map.columns if p == APPLICATION_ID_PATH]
    if len(id_entries) != 1:
        raise SubmissionConfigError(
            f"Column map must map exactly one header to {APPLICATION_ID_PATH}.",
            field="columns", version=column_map.version, matches=len(id_entries),
        )


# ═══════════════════════════════════════════════════════════════════════════
# Built-in Maps
# ═══════════════════════════════════════════════════════════════════════════

_V1_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("Application ID",          APPLICATION_ID_PATH),
    ("Submitted At",            "submitted_at"),
    ("Applicant First Name",    "application.metadata.applicant.firstName"),
    ("Applicant Last Name",     "application.metadata.applicant.lastName"),
    ("Applicant Email",         "application.metadata.applicant.email"),
    ("Applicant Phone",         "application.metadata.applicant.phone"),
    ("Business Legal Name",     "application.metadata.business.legalName"),
    ("Business Tax ID",         "application.metadata.business.taxId"),
    ("Business Entity Type",    "application.metadata.business.entityType"),
    ("Business Address Line 1", "application.metadata.business.address.line1"),
    ("Business City",           "application.metadata.business.address.city"),
    ("Business State",          "application.metadata.business.address.state"),
    ("Business Postal Code",    "application.metadata.business.address.postalCode"),
    ("Business Country",        "application.metadata.business.address.country"),
    ("Requested Amount",        "application.requested_amount"),
    ("Product Type",            "application.product_type"),
    ("Requested Term",          "application.metadata.financials.term"),
    ("Annual Revenue",          "application.metadata.financials.annualRevenue"),
    ("Monthly Revenue",         "application.metadata.financials.monthlyRevenue"),
    ("Banking Summary",         "application.metadata.financials.bankingSummary"),
)

_V2_COLUMNS: Tuple[Tuple[str, str], ...] = _V1_COLUMNS + (
    ("Primary Document Type",    "documents.0.document_type"),
    ("Primary Document Title",   "documents.0.title"),
    ("Primary Document Version", "documents.0.version"),
)

_REGISTRY: Dict[str, ColumnMap] = {}


def register_column_map(column_map: ColumnMap) -> ColumnMap:
    """Validate and register a column map under its version."""
    validate_column_map(column_map)
    _REGISTRY[column_map.version] = column_map
    return column_map


def get_column_map(version: Optional[str]) -> ColumnMap:
    """Look up a registered map; unknown or blank versions are config errors."""
    key = (version or "").strip()
    column_map = _REGISTRY.get(key) if key else None
    if column_map is None:
        raise SubmissionConfigError(
            "Google Sheet columnMapVersion is invalid.",
            field="columnMapVersion", version=version,
        )
    return column_map


def available_column_map_versions() -> List[str]:
    return sorted(_REGISTRY)


register_column_map(ColumnMap(version="v1", columns=_V1_COLUMNS))
register_column_map(ColumnMap(version="v2", columns=_V2_COLUMNS))
