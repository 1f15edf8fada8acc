from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet


@dataclass(frozen=True)
class FieldDefinition:
    name: str
    doc_key: str
    record_attr: str
    native_ops: FrozenSet[str] = frozenset()
    residual_ops: FrozenSet[str] = frozenset()

    def check_native(self, op: str) -> None:
        if op not in self.native_ops:
            raise ValueError(f"Unsupported native op for {self.name}: {op}")

    def check_residual(self, op: str) -> None:
        if op not in self.residual_ops:
            raise ValueError(f"Unsupported residual op for {self.name}: {op}")


_SCALAR = frozenset({"eq", "not_null"})
_RANGE = frozenset({"gte", "lte"})
_FLAG = frozenset({"is_true", "false_or_null"})


def _field(name, doc_key=None, record_attr=None, native=(), residual=()):
    return FieldDefinition(
        name=name,
        doc_key=doc_key or name,
        record_attr=record_attr or name,
        native_ops=frozenset(native),
        residual_ops=frozenset(residual),
    )


# Filterable document fields. `doc_key` is the key inside the stored JSON
# document; `record_attr` is the PropertyRecord attribute after normalization.
# Set-overlap fields have no native ops: the store cannot match their
# normalized form.
FILTER_FIELDS: Dict[str, FieldDefinition] = {
    f.name: f
    for f in (
        _field("kind", native=_SCALAR),
        _field("transaction_type", native=_SCALAR),
        _field("bedrooms", residual={"overlap"}),
        _field("communities", residual={"overlap_ci"}),
        _field("property_type", record_attr="property_types", residual={"overlap_ci"}),
        _field("price_aed", native=_RANGE, residual=_RANGE),
        _field("budget_min_aed", native={"lte"}, residual={"lte"}),
        _field("budget_max_aed", native={"gte"}, residual={"gte"}),
        _field("area_sqft", native=_RANGE, residual=_RANGE),
        _field("is_off_plan", native=_FLAG),
        _field("is_distressed_deal", native=_FLAG),
        _field("description", doc_key="message_body_raw", record_attr="description_raw", native={"ilike"}),
    )
}


def get_field(name: str) -> FieldDefinition:
    field = FILTER_FIELDS.get(name)
    if field is None:
        raise ValueError(f"Unknown field: {name}")
    return field
