"""
Record Mapping
==============
The strict boundary between the portal's loosely-typed grid rows and
``ExtractedRecord``.  Downstream code never sees the raw row shape.

Also holds the two pure business rules of a search:
    - the default search window (today back N calendar months)
    - partition sanitising
"""

from __future__ import annotations

import calendar
import re
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from ..models import ExtractedRecord

# Record field → raw grid columns, first non-empty wins
ROW_FIELDS: Dict[str, Tuple[str, ...]] = {
    "id": ("SR_IDX",),
    "title": ("REQ_TITLE",),
    "status": ("STATUS",),
    "submitted_at": ("REQ_DATE", "PROC_DATE"),
    "request_type": ("PT_NAME",),
    "requestor": ("REQ_NAME",),
    "handler": ("WRITER",),
}


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _first(raw: Mapping[str, Any], keys: Sequence[str]) -> str:
    for key in keys:
        value = _text(raw.get(key))
        if value:
            return value
    return ""


def map_row(raw: Mapping[str, Any], detail_url_template: str) -> ExtractedRecord:
    """Map one raw grid row.  Every field is a string; absent → ``""``."""
    if not isinstance(raw, Mapping):
        raw = {}
    values = {name: _first(raw, keys) for name, keys in ROW_FIELDS.items()}
    record_id = values["id"]
    detail_url = detail_url_template.format(id=record_id) if record_id else ""
    return ExtractedRecord(detail_url=detail_url, **values)


def map_rows(rows: Iterable[Any], detail_url_template: str) -> List[ExtractedRecord]:
    return [map_row(row, detail_url_template) for row in rows or []]


def months_before(day: date, months: int) -> date:
    """Same day *months* calendar months earlier, clamped to month length."""
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def search_window(today: date, months: int = 6) -> Tuple[str, str]:
    """Return ``(start, end)`` as ``YYYY-MM-DD`` strings."""
    return months_before(today, months).isoformat(), today.isoformat()


def sanitize_partition(partition: str, separator: str = "N") -> str:
    """Keep only digits and the literal separator token."""
    if not partition:
        return ""
    allowed = "0-9" + re.escape(separator)
    return re.sub(f"[^{allowed}]", "", partition)
