from __future__ import annotations

from typing import Any, Dict, List, Protocol, Sequence

from ..search.query import NativePredicate


# Most recently updated first; used by the single-query fast path.
ORDER_RECENT = "recent"
# Monotonic store key, ascending; stable across batches.
ORDER_SEQUENCE = "sequence"

# Range predicates are prefilters. Stored JSON orders by type first
# (null < string < number < boolean < array < object), so `gte` also keeps
# everything below this number, which covers numbers held as strings.
RANGE_FLOOR = "-1e308"


class DocumentStore(Protocol):
    """Pluggable document store.

    Implementations apply only native predicates; anything else is the
    caller's job. Failures must surface as `StoreQueryError`.
    """

    name: str

    def fetch_page(
        self,
        predicates: Sequence[NativePredicate],
        offset: int,
        limit: int,
        order: str = ORDER_RECENT,
    ) -> List[Dict[str, Any]]:
        ...

    def count(self, predicates: Sequence[NativePredicate]) -> int:
        ...
