# heater_backend/api/serialization.py
from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from heater_backend.core.state import CurrentValue, ErrorRef, Snapshot, ValueDescriptor

ErrorTextLookup = Callable[[int], Optional[str]]


def serialize_current_value(cur: CurrentValue, error_text: ErrorTextLookup | None = None) -> Dict[str, Any]:
    value = cur.latest.value
    out: Dict[str, Any] = {
        "value_type_id": cur.value_type_id,
        "label": cur.label,
        "unit": cur.unit,
        "is_logged": cur.is_logged,
        "value": value.as_number(),
        "timestamp": cur.latest.timestamp,
    }
    if isinstance(value, ErrorRef):
        out["error_id"] = value.error_id
        out["error_text"] = error_text(value.error_id) if error_text is not None else None
    return out


def serialize_snapshot(snapshot: Snapshot, error_text: ErrorTextLookup | None = None) -> Dict[str, Any]:
    # klucze JSON muszą być stringami
    return {
        str(vid): serialize_current_value(cur, error_text)
        for vid, cur in sorted(snapshot.items())
    }


def serialize_descriptor(d: ValueDescriptor) -> Dict[str, Any]:
    return {
        "id": d.id,
        "label": d.label,
        "unit": d.unit,
        "is_logged": d.is_logged,
    }
