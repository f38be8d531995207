# xsslab/services/export.py
from __future__ import annotations

import csv
import io
from typing import Any, Dict, List, Optional

from xsslab.errors import ValidationError
from xsslab.repositories.events import EventFilter, EventRecord, EventStore

EXPORT_FORMATS = ("csv", "json")

CSV_HEADERS = ["ID", "Category", "Action", "Payload", "IP Address", "User Agent", "Severity", "Timestamp"]


def _row(ev: EventRecord) -> List[Any]:
    return [
        ev.id,
        ev.category,
        ev.action,
        ev.payload,
        ev.actor_address,
        ev.actor_agent,
        ev.severity.value,
        ev.created_at.isoformat(),
    ]


def to_csv(events: List[EventRecord]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for ev in events:
        writer.writerow(_row(ev))
    return buf.getvalue()


def to_json(events: List[EventRecord]) -> List[Dict[str, Any]]:
    out = []
    for ev in events:
        d = ev.to_dict()
        d["created_at"] = ev.created_at.isoformat()
        out.append(d)
    return out


async def export_events(store: EventStore, fmt: str = "csv", flt: Optional[EventFilter] = None):
    """Whole log (or the filtered slice), newest first, as CSV text or JSON-ready dicts."""
    fmt = (fmt or "csv").lower()
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(f"unsupported export format: {fmt}")
    events = await store.list_events(flt, limit=None)
    if fmt == "csv":
        return to_csv(events)
    return to_json(events)
