"""
field_paths.py — Bounded dotted-path resolution into a submission payload.

Column maps address payload fields with paths such as:

    application.id
    application.metadata.applicant.firstName
    documents.0.title

Each segment is applied to the current value:

    Mapping            → key lookup
    list / tuple       → numeric index (non-numeric segment → None)
    dataclass instance → attribute lookup on declared fields only
    anything else      → None (walk stops)

Resolution never raises; an unresolvable path yields None, which the
ledger writes as an empty cell.
"""

from __future__ import annotations

import dataclasses
import json
import math
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Optional, Union

CellValue = Union[str, int, float]


def _step(current: Any, segment: str) -> Any:
    if segment == "":
        return current
    if isinstance(current, Mapping):
        return current.get(segment)
    if isinstance(current, (list, tuple)):
        if not segment.isdigit():
            return None
        index = int(segment)
        return current[index] if index < len(current) else None
    if dataclasses.is_dataclass(current) and not isinstance(current, type):
        names = {f.name for f in dataclasses.fields(current)}
        return getattr(current, segment) if segment in names else None
    return None


def resolve_path(source: Any, path: str) -> Any:
    """Walk `path` through `source`; None when any step cannot be taken."""
    if not path:
        return None
    current = source
    for segment in path.split("."):
        if current is None:
            return None
        current = _step(current, segment)
    return current


def _jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return value.to_dict() if hasattr(value, "to_dict") else dataclasses.asdict(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_cell_value(value: Any) -> CellValue:
    """
    Convert a resolved value into a spreadsheet cell.

    None → "" ; finite numbers stay numeric ; everything else is text.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return str(value)
        return value
    if isinstance(value, str):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (Mapping, list, tuple)) or dataclasses.is_dataclass(value):
        return json.dumps(value, default=_jsonable, separators=(",", ":"))
    return str(value)


def resolve_cell(source: Any, path: Optional[str]) -> CellValue:
    """Resolve a mapped path straight to a cell value."""
    if not path:
        return ""
    return to_cell_value(resolve_path(source, path))
