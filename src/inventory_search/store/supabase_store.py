from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..config import Settings
from ..errors import StoreQueryError
from ..search.query import NativePredicate
from .base import ORDER_RECENT, ORDER_SEQUENCE, RANGE_FLOOR


logger = logging.getLogger("invsearch.store")

SELECT_COLUMNS = "pk, id, data, updated_at, inventory_unit:inventory_unit_pk(agent_details)"


def escape_like(value: str) -> str:
    return str(value).replace("%", "\\%").replace("_", "\\_")


def format_number(value: float) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def apply_predicate(query: Any, predicate: NativePredicate) -> Any:
    """Apply one native predicate to a PostgREST request builder."""

    key = predicate.doc_key
    text_path = f"data->>{key}"
    json_path = f"data->{key}"
    op = predicate.op
    if op == "not_null":
        return query.not_.is_(text_path, "null")
    if op == "eq":
        return query.eq(text_path, predicate.value)
    if op == "gte":
        # Numbers kept as strings sort below every number; keep them for the
        # in-process range check.
        n = format_number(predicate.value)
        return query.or_(f"{json_path}.gte.{n},{json_path}.lt.{RANGE_FLOOR}")
    if op == "lte":
        # Type order already keeps string-typed numbers here.
        return query.lte(json_path, predicate.value)
    if op == "ilike":
        return query.ilike(text_path, f"%{escape_like(predicate.value)}%")
    if op == "is_true":
        return query.eq(text_path, "true")
    if op == "false_or_null":
        return query.or_(f"{text_path}.eq.false,{text_path}.is.null")
    raise ValueError(f"Unsupported native op: {op}")


class SupabaseStore:
    """Document store backed by a Supabase (PostgREST) table of JSON documents."""

    name = "supabase"

    def __init__(self, client: Any, table: str = "inventory_unit_preference") -> None:
        self._client = client
        self.table = table

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseStore":
        settings.validate_store()
        from supabase import create_client

        client = create_client(settings.supabase_url, settings.supabase_key)
        return cls(client, table=settings.table)

    def _execute(self, query: Any, what: str) -> Any:
        try:
            return query.execute()
        except Exception as e:
            logger.warning("%s failed on %s: %s", what, self.table, e)
            raise StoreQueryError(f"{what} failed", details=str(e)) from e

    def fetch_page(
        self,
        predicates: Sequence[NativePredicate],
        offset: int,
        limit: int,
        order: str = ORDER_RECENT,
    ) -> List[Dict[str, Any]]:
        query = self._client.table(self.table).select(SELECT_COLUMNS)
        for predicate in predicates:
            query = apply_predicate(query, predicate)
        if order == ORDER_SEQUENCE:
            query = query.order("pk")
        else:
            query = query.order("updated_at", desc=True).order("pk", desc=True)
        query = query.range(offset, offset + limit - 1)
        response = self._execute(query, "batch query")
        return list(response.data or [])

    def count(self, predicates: Sequence[NativePredicate]) -> int:
        query = self._client.table(self.table).select("pk", count="exact", head=True)
        for predicate in predicates:
            query = apply_predicate(query, predicate)
        response = self._execute(query, "count query")
        count: Optional[int] = getattr(response, "count", None)
        return int(count or 0)
