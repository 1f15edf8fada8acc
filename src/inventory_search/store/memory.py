from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..errors import StoreQueryError
from ..normalize import parse_number
from ..search.query import NativePredicate
from .base import ORDER_RECENT, ORDER_SEQUENCE, RANGE_FLOOR


def _text(value: Any) -> Optional[str]:
    # Mirrors the store's `->>` text extraction.
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _json_rank(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, str):
        return 1
    if isinstance(value, bool):
        return 3
    if isinstance(value, (int, float)):
        return 2
    if isinstance(value, list):
        return 4
    return 5


def compare_json_number(value: Any, number: float) -> int:
    """Order a stored JSON value against a number the way the store's `->` path does.

    Values of another type compare by type rank only, so the string "450"
    sorts below every number.
    """

    rank = _json_rank(value)
    if rank != 2:
        return -1 if rank < 2 else 1
    return (value > number) - (value < number)


def eval_native(document: Dict[str, Any], predicate: NativePredicate) -> bool:
    key = predicate.doc_key
    value = document.get(key)
    op = predicate.op
    if op == "not_null":
        return value is not None
    if op == "eq":
        return _text(value) == predicate.value
    if op in ("gte", "lte"):
        # A missing key is SQL null; it fails every comparison.
        if key not in document:
            return False
        order = compare_json_number(value, float(predicate.value))
        if op == "lte":
            return order <= 0
        return order >= 0 or compare_json_number(value, float(RANGE_FLOOR)) < 0
    if op == "ilike":
        text = _text(value)
        return text is not None and str(predicate.value).lower() in text.lower()
    if op == "is_true":
        return _text(value) == "true"
    if op == "false_or_null":
        return value is None or _text(value) == "false"
    raise ValueError(f"Unsupported native op: {op}")


class InMemoryStore:
    """Fixture-backed deterministic store.

    Evaluates native predicates with the hosted store's semantics, including
    its type-first ordering of JSON values in range comparisons, and counts
    calls so tests can assert how often the store was hit.
    """

    name = "memory"

    def __init__(self, rows: Iterable[Dict[str, Any]], fail_on_fetch: Optional[int] = None) -> None:
        self._rows: List[Dict[str, Any]] = []
        for index, row in enumerate(rows, start=1):
            if "data" not in row:
                row = {"pk": index, "id": str(index), "data": dict(row), "updated_at": None}
            self._rows.append(row)
        self.fetch_calls = 0
        self.count_calls = 0
        self.fail_on_fetch = fail_on_fetch

    @classmethod
    def from_fixture(cls, path: str | Path) -> "InMemoryStore":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        if isinstance(raw, dict):
            raw = raw.get("rows", [])
        if not isinstance(raw, list):
            raise ValueError("fixture must be a JSON list of rows")
        return cls([row for row in raw if isinstance(row, dict)])

    @property
    def calls(self) -> int:
        return self.fetch_calls + self.count_calls

    def _matching(self, predicates: Sequence[NativePredicate]) -> List[Dict[str, Any]]:
        return [
            row
            for row in self._rows
            if all(eval_native(row.get("data") or {}, p) for p in predicates)
        ]

    def fetch_page(
        self,
        predicates: Sequence[NativePredicate],
        offset: int,
        limit: int,
        order: str = ORDER_RECENT,
    ) -> List[Dict[str, Any]]:
        self.fetch_calls += 1
        if self.fail_on_fetch is not None and self.fetch_calls >= self.fail_on_fetch:
            raise StoreQueryError("store query failed", details=f"fetch call {self.fetch_calls}")
        rows = self._matching(predicates)
        if order == ORDER_SEQUENCE:
            rows.sort(key=lambda r: parse_number(r.get("pk")) or 0)
        else:
            rows.sort(
                key=lambda r: (str(r.get("updated_at") or ""), parse_number(r.get("pk")) or 0),
                reverse=True,
            )
        return [dict(r) for r in rows[offset : offset + limit]]

    def count(self, predicates: Sequence[NativePredicate]) -> int:
        self.count_calls += 1
        return len(self._matching(predicates))
