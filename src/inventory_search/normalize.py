"""Normalization boundary between raw store documents and `PropertyRecord`.

Store documents are inconsistent: the same attribute may be missing, a
scalar, or a list, and some attributes use different keys depending on who
entered them. This module is the only place that ambiguity is resolved;
everything downstream works on canonical records.

Nothing here raises on malformed input. Unparseable values become an empty
list (multi-value fields) or None (scalar fields).
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .models import PropertyRecord


BEDROOMS_MIN = 0.0
BEDROOMS_MAX = 15.0
STUDIO_LABELS = {"studio", "st"}

_TRUE_STRINGS = {"true", "t", "yes", "y", "1"}
_FALSE_STRINGS = {"false", "f", "no", "n", "0"}

# canonical name -> source keys, in preference order. Canonical names come
# first so an already-normalized record maps onto itself.
_STRING_FIELDS: Dict[str, Tuple[str, ...]] = {
    "description_raw": ("description_raw", "message_body_raw"),
    "other_details": ("other_details",),
    "location_raw": ("location_raw",),
    "furnishing": ("furnishing",),
    "mortgage_or_cash": ("mortgage_or_cash",),
    "whatsapp_participant": ("whatsapp_participant",),
    "agent_phone": ("agent_phone", "phone"),
    "group_jid": ("group_jid", "groupJID", "whatsapp_remote_jid"),
    "evolution_instance_id": ("evolution_instance_id",),
}

_NUMBER_FIELDS: Dict[str, Tuple[str, ...]] = {
    "price_aed": ("price_aed",),
    "budget_min_aed": ("budget_min_aed",),
    "budget_max_aed": ("budget_max_aed",),
    "area_sqft": ("area_sqft",),
}

_BOOL_FIELDS = (
    "is_off_plan",
    "is_distressed_deal",
    "is_urgent",
    "is_agent_covered",
    "is_direct",
    "has_maid_bedroom",
    "is_mortgage_approved",
    "is_community_agnostic",
)

_AGENT_DETAIL_KEYS = {
    "whatsapp_participant": "whatsapp_participant",
    "agent_phone": "agent_phone",
    "phone": "agent_phone",
    "whatsapp_remote_jid": "group_jid",
    "evolution_instance_id": "evolution_instance_id",
}


def as_list(value: Any) -> List[Any]:
    """Absent -> [], scalar -> [scalar], list/tuple/set -> list."""

    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def parse_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    return None


def clean_string(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def parse_bedroom(value: Any) -> Optional[float]:
    """Return a valid bedroom count or None.

    Valid counts lie in [0, 15] on a 0.5 grid; 0 is a studio. Out-of-range
    codes used by data entry (and values like 2.3) are rejected, never
    clamped or rounded into range.
    """

    if isinstance(value, str) and value.strip().lower() in STUDIO_LABELS:
        return 0.0
    number = parse_number(value)
    if number is None:
        return None
    if number < BEDROOMS_MIN or number > BEDROOMS_MAX:
        return None
    doubled = number * 2
    if abs(doubled - round(doubled)) > 1e-9:
        return None
    return round(doubled) / 2


def _parse_bathroom(value: Any) -> Optional[float]:
    number = parse_number(value)
    if number is None or number < 0:
        return None
    return number


def dedupe_numbers(values: Iterable[Any], parse: Callable[[Any], Optional[float]]) -> List[float]:
    out = set()
    for value in values:
        parsed = parse(value)
        if parsed is not None:
            out.add(parsed)
    return sorted(out)


def dedupe_strings(values: Iterable[Any]) -> List[str]:
    """Trimmed, non-empty strings; case-insensitive duplicates keep the first spelling."""

    seen = set()
    out: List[str] = []
    for value in values:
        text = clean_string(value)
        if text is None:
            continue
        key = text.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(text)
    return out


def _first_present(data: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _communities_source(data: Mapping[str, Any]) -> Any:
    # `communities` wins whenever it is present, even as an empty list;
    # the scalar `community` key is only a fallback.
    if data.get("communities") is not None:
        return data["communities"]
    return data.get("community")


def _split_row(raw: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Return (document, row metadata) for a store row or a bare document."""

    data = raw.get("data")
    if isinstance(data, Mapping):
        meta = {k: v for k, v in raw.items() if k != "data"}
        return dict(data), meta
    return dict(raw), {}


def _agent_details(meta: Mapping[str, Any]) -> Dict[str, Any]:
    unit = meta.get("inventory_unit")
    if isinstance(unit, list):
        unit = unit[0] if unit else None
    details = unit.get("agent_details") if isinstance(unit, Mapping) else None
    if not isinstance(details, Mapping):
        return {}
    out: Dict[str, Any] = {}
    for source_key, canonical in _AGENT_DETAIL_KEYS.items():
        value = clean_string(details.get(source_key))
        if value is not None and canonical not in out:
            out[canonical] = value
    return out


def _record_id(data: Mapping[str, Any], meta: Mapping[str, Any], sequence_key: Optional[int]) -> str:
    for source in (meta, data):
        value = clean_string(_first_present(source, ("record_id", "id")))
        if value is not None:
            return value
    return "" if sequence_key is None else str(sequence_key)


def _sequence_key(data: Mapping[str, Any], meta: Mapping[str, Any]) -> Optional[int]:
    for source in (meta, data):
        number = parse_number(_first_present(source, ("sequence_key", "pk")))
        if number is not None:
            return int(number)
    return None


def normalize_document(raw: Any) -> PropertyRecord:
    """Coerce a raw store row, bare document, or canonical record into a `PropertyRecord`.

    Idempotent: feeding the output (or its dict form) back in yields an
    equal record.
    """

    if isinstance(raw, PropertyRecord):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        return PropertyRecord(record_id="")

    data, meta = _split_row(raw)
    sequence_key = _sequence_key(data, meta)

    fields: Dict[str, Any] = {
        "record_id": _record_id(data, meta, sequence_key),
        "sequence_key": sequence_key,
        "kind": _lower(data.get("kind")),
        "transaction_type": _lower(data.get("transaction_type")),
        "bedrooms": dedupe_numbers(as_list(data.get("bedrooms")), parse_bedroom),
        "bathrooms": dedupe_numbers(as_list(data.get("bathrooms")), _parse_bathroom),
        "property_types": dedupe_strings(
            as_list(_first_present(data, ("property_types", "property_type")))
        ),
        "communities": dedupe_strings(as_list(_communities_source(data))),
        "developers": dedupe_strings(as_list(data.get("developers"))),
        "updated_at": clean_string(_first_present(meta, ("updated_at",)))
        or clean_string(data.get("updated_at")),
    }

    for name, keys in _NUMBER_FIELDS.items():
        fields[name] = parse_number(_first_present(data, keys))
    for name, keys in _STRING_FIELDS.items():
        fields[name] = clean_string(_first_present(data, keys))
    for name in _BOOL_FIELDS:
        fields[name] = parse_bool(data.get(name))

    for name, value in _agent_details(meta).items():
        fields[name] = value

    return PropertyRecord(**fields)


def normalize_many(rows: Iterable[Any]) -> List[PropertyRecord]:
    return [normalize_document(row) for row in rows]


def _lower(value: Any) -> Optional[str]:
    text = clean_string(value)
    return text.lower() if text is not None else None
