"""Smart refinement: reuse the previous full result set instead of re-querying.

The guard is a pure function of the two criteria and of whether a previous
result set exists, so it can be tested on its own. The cache itself is a
latency optimization only; losing it just means the next search is a fresh
fetch.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Sequence

from ..models import BASIC_FILTERS, MULTI_VALUE_FILTERS, FilterCriteria, PropertyRecord, SearchResultPage
from ..normalize import normalize_document
from .engine import sort_recent_first
from .query import apply_residual, classify, match_key, selected_bedrooms, selected_strings


def _selection(criteria: FilterCriteria, name: str) -> FrozenSet:
    """The selection as the residual filter will match it."""

    if name == "bedrooms":
        return frozenset(selected_bedrooms(criteria))
    return frozenset(match_key(v) for v in selected_strings(getattr(criteria, name)))


def is_refinement(
    new: FilterCriteria,
    previous: Optional[FilterCriteria],
    previous_results: Optional[Sequence[PropertyRecord]],
) -> bool:
    if previous is None or not previous_results:
        return False

    for name in BASIC_FILTERS:
        if getattr(new, name) != getattr(previous, name):
            return False

    grew = False
    for name in MULTI_VALUE_FILTERS:
        old_values = _selection(previous, name)
        new_values = _selection(new, name)
        if not old_values <= new_values:
            return False
        if new_values != old_values:
            grew = True
    return grew


def refine(new: FilterCriteria, previous_results: Iterable[PropertyRecord]) -> SearchResultPage:
    """Re-filter a previous full result set for `new` and paginate it.

    Applies the same in-process predicates as a fresh batch search.
    """

    records = [normalize_document(r) for r in previous_results]
    filtered = sort_recent_first(apply_residual(records, classify(new).residual))
    return SearchResultPage.paginate(filtered, new.page, new.page_size)


@dataclass
class _Baseline:
    criteria: FilterCriteria
    results: List[PropertyRecord]


class RefinementCache:
    """Per-session baseline for refinement checks.

    Holds exactly one entry: the criteria and full result set of the last
    completed search. Never share an instance between sessions.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._baseline: Optional[_Baseline] = None

    @property
    def previous_criteria(self) -> Optional[FilterCriteria]:
        with self._lock:
            return self._baseline.criteria if self._baseline else None

    @property
    def previous_results(self) -> List[PropertyRecord]:
        with self._lock:
            return list(self._baseline.results) if self._baseline else []

    def can_refine(self, criteria: FilterCriteria) -> bool:
        with self._lock:
            baseline = self._baseline
        if baseline is None:
            return False
        return is_refinement(criteria, baseline.criteria, baseline.results)

    def refine(self, criteria: FilterCriteria) -> Optional[SearchResultPage]:
        """Refined page for `criteria`, or None when the guard does not hold."""

        with self._lock:
            baseline = self._baseline
        if baseline is None or not is_refinement(criteria, baseline.criteria, baseline.results):
            return None
        page = refine(criteria, baseline.results)
        self.remember(criteria, page.all_records)
        return page

    def remember(self, criteria: FilterCriteria, results: Sequence[PropertyRecord]) -> None:
        with self._lock:
            self._baseline = _Baseline(criteria=criteria, results=list(results))

    def clear(self) -> None:
        with self._lock:
            self._baseline = None
