"""Translate `FilterCriteria` into store predicates.

The store's query API handles key-path equality, ranges, case-insensitive
substring and containment of a single literal in an array. It cannot
express "any of these values overlaps any of the record's values", and its
exact comparisons cannot see the normalized form of a value ("studio" is 0
bedrooms, " apartment" is "Apartment"). Set-overlap fields are therefore
always evaluated in-process on normalized records.

Ranges are pushed down as a prefilter only. Stored JSON compares by type
before value, so a price kept as the string "1,250,000" cannot be compared
numerically by the store; the prefilter keeps such documents and the
residual range check decides on the parsed number.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from ..models import KIND_CLIENT_REQUEST, KIND_LISTING, FilterCriteria, PropertyRecord
from ..normalize import clean_string, parse_bedroom
from .filters import get_field


@dataclass(frozen=True)
class NativePredicate:
    field: str
    op: str
    value: Any = None

    def __post_init__(self) -> None:
        get_field(self.field).check_native(self.op)

    @property
    def doc_key(self) -> str:
        return get_field(self.field).doc_key


@dataclass(frozen=True)
class ResidualPredicate:
    field: str
    op: str
    values: Tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        get_field(self.field).check_residual(self.op)

    def matches(self, record: PropertyRecord) -> bool:
        value = getattr(record, get_field(self.field).record_attr, None)
        if self.op in RANGE_OPS:
            return in_range(value, self.op, self.values[0])
        return overlaps(self.values, value or (), self.op)


@dataclass(frozen=True)
class ClassifiedFilters:
    pushdown: Tuple[NativePredicate, ...] = ()
    residual: Tuple[ResidualPredicate, ...] = ()

    @property
    def is_simple(self) -> bool:
        return not self.residual


RANGE_OPS = ("gte", "lte")

# Every stored document must carry a kind and a transaction type to be searchable.
SANITY_PREDICATES = (
    NativePredicate("kind", "not_null"),
    NativePredicate("transaction_type", "not_null"),
)


def match_key(value: Any) -> Optional[str]:
    text = clean_string(value)
    return text.casefold() if text is not None else None


def overlaps(selected: Iterable[Any], record_values: Iterable[Any], op: str = "overlap") -> bool:
    """Set-overlap: True iff the two value sets share at least one element.

    `overlap_ci` compares trimmed, case-folded strings exactly (no substring).
    """

    if op == "overlap_ci":
        wanted = {k for k in (match_key(v) for v in selected) if k is not None}
        have = {k for k in (match_key(v) for v in record_values) if k is not None}
    elif op == "overlap":
        wanted = set(selected)
        have = set(record_values)
    else:
        raise ValueError(f"Unsupported residual op: {op}")
    return not wanted.isdisjoint(have)


def in_range(value: Optional[float], op: str, bound: float) -> bool:
    # A missing number never satisfies a range.
    if value is None:
        return False
    if op == "gte":
        return value >= bound
    return value <= bound


def selected_bedrooms(criteria: FilterCriteria) -> Tuple[float, ...]:
    out: List[float] = []
    for raw in criteria.bedrooms:
        value = parse_bedroom(raw)
        if value is not None and value not in out:
            out.append(value)
    return tuple(out)


def selected_strings(values: Sequence[str]) -> Tuple[str, ...]:
    out: List[str] = []
    seen = set()
    for raw in values:
        text = clean_string(raw)
        if text is None or text.casefold() in seen:
            continue
        seen.add(text.casefold())
        out.append(text)
    return tuple(out)


def _bool_predicate(name: str, value: Optional[bool]) -> Optional[NativePredicate]:
    if value is None:
        return None
    return NativePredicate(name, "is_true" if value else "false_or_null")


def range_bounds(criteria: FilterCriteria) -> List[Tuple[str, str, float]]:
    """(field, op, bound) triples for the price, budget and area filters.

    The price field depends on the kind: listings carry `price_aed`, client
    requests a [`budget_min_aed`, `budget_max_aed`] window. With no kind
    selected both apply.
    """

    kind = (criteria.unit_kind or "").strip().lower()
    out: List[Tuple[str, str, float]] = []
    if kind in ("", KIND_LISTING):
        if criteria.budget_min is not None:
            out.append(("price_aed", "gte", criteria.budget_min))
        if criteria.budget_max is not None:
            out.append(("price_aed", "lte", criteria.budget_max))
    if kind in ("", KIND_CLIENT_REQUEST) and criteria.price_aed is not None:
        out.append(("budget_min_aed", "lte", criteria.price_aed))
        out.append(("budget_max_aed", "gte", criteria.price_aed))
    if criteria.area_sqft_min is not None:
        out.append(("area_sqft", "gte", criteria.area_sqft_min))
    if criteria.area_sqft_max is not None:
        out.append(("area_sqft", "lte", criteria.area_sqft_max))
    return out


def residual_predicates(criteria: FilterCriteria) -> Tuple[ResidualPredicate, ...]:
    """Set-overlap predicates for the multi-value fields, at any selection count."""

    out: List[ResidualPredicate] = []
    bedrooms = selected_bedrooms(criteria)
    if bedrooms:
        out.append(ResidualPredicate("bedrooms", "overlap", bedrooms))
    property_types = selected_strings(criteria.property_type)
    if property_types:
        out.append(ResidualPredicate("property_type", "overlap_ci", property_types))
    communities = selected_strings(criteria.communities)
    if communities:
        out.append(ResidualPredicate("communities", "overlap_ci", communities))
    return tuple(out)


def classify(criteria: FilterCriteria) -> ClassifiedFilters:
    pushdown: List[NativePredicate] = list(SANITY_PREDICATES)
    residual: List[ResidualPredicate] = list(residual_predicates(criteria))

    kind = clean_string(criteria.unit_kind)
    if kind:
        pushdown.append(NativePredicate("kind", "eq", kind.lower()))
    transaction_type = clean_string(criteria.transaction_type)
    if transaction_type:
        pushdown.append(NativePredicate("transaction_type", "eq", transaction_type.lower()))

    for name, op, bound in range_bounds(criteria):
        pushdown.append(NativePredicate(name, op, bound))
        residual.append(ResidualPredicate(name, op, (float(bound),)))

    for name in ("is_off_plan", "is_distressed_deal"):
        predicate = _bool_predicate(name, getattr(criteria, name))
        if predicate is not None:
            pushdown.append(predicate)

    keyword = clean_string(criteria.keyword_search)
    if keyword:
        pushdown.append(NativePredicate("description", "ilike", keyword))

    return ClassifiedFilters(pushdown=tuple(pushdown), residual=tuple(residual))


def apply_residual(records: Iterable[PropertyRecord], residual: Sequence[ResidualPredicate]) -> List[PropertyRecord]:
    if not residual:
        return list(records)
    return [r for r in records if all(p.matches(r) for p in residual)]
