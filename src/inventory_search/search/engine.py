from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..models import FilterCriteria, PropertyRecord, SearchResultPage
from ..normalize import normalize_many
from ..store.base import ORDER_RECENT, ORDER_SEQUENCE, DocumentStore
from .query import apply_residual, classify


logger = logging.getLogger("invsearch.engine")

ProgressCallback = Callable[[Dict[str, Any]], None]

DEFAULT_BATCH_SIZE = 1000
DEFAULT_MAX_SCAN = 50000
DEFAULT_FAST_PATH_MAX_PAGE_SIZE = 100


def sort_recent_first(records: List[PropertyRecord]) -> List[PropertyRecord]:
    return sorted(
        records,
        key=lambda r: (r.updated_at or "", r.sequence_key or 0),
        reverse=True,
    )


def progress_event(current: int, total: int, phase: str) -> Dict[str, Any]:
    return {"current": current, "total": total, "phase": phase}


@dataclass
class ScanStep:
    batch_no: int
    scanned: int
    estimate: int
    records: List[PropertyRecord]

    def progress(self) -> Dict[str, Any]:
        return progress_event(self.scanned, self.estimate, f"Fetching batch {self.batch_no}")


class SearchEngine:
    """Runs a `FilterCriteria` against a document store.

    Two paths, chosen once from the static classification:

    - fast path: no residual predicates and a small page. One paginated
      store query plus one exact count.
    - batch path: scan the store in fixed-size batches ordered by the
      monotonic key (only pushdown predicates applied by the store),
      normalize, apply residual predicates in-process, then paginate.

    A store failure on any batch propagates as `StoreQueryError`; batches
    already accumulated are dropped with the call frame.
    """

    def __init__(
        self,
        store: DocumentStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_scan: int = DEFAULT_MAX_SCAN,
        fast_path_max_page_size: int = DEFAULT_FAST_PATH_MAX_PAGE_SIZE,
    ) -> None:
        self.store = store
        self.batch_size = max(1, int(batch_size))
        self.max_scan = max(1, int(max_scan))
        self.fast_path_max_page_size = fast_path_max_page_size

    @classmethod
    def from_settings(cls, store: DocumentStore, settings) -> "SearchEngine":
        return cls(
            store,
            batch_size=settings.batch_size,
            max_scan=settings.max_scan,
            fast_path_max_page_size=settings.fast_path_max_page_size,
        )

    def uses_fast_path(self, criteria: FilterCriteria) -> bool:
        return classify(criteria).is_simple and criteria.page_size <= self.fast_path_max_page_size

    def fetch_filtered(
        self,
        criteria: FilterCriteria,
        on_progress: Optional[ProgressCallback] = None,
        include_all: bool = False,
    ) -> SearchResultPage:
        """Return one page of fully filtered results.

        `include_all` asks for the complete filtered set in
        `SearchResultPage.all_records` (the refinement baseline); it forces
        the batch path because the fast path only ever sees one page.
        """

        started = time.perf_counter()
        if not include_all and self.uses_fast_path(criteria):
            page = self._fast_path(criteria)
            path = "fast"
        else:
            accumulated: List[PropertyRecord] = []
            for step in self.iter_scan(criteria):
                accumulated.extend(step.records)
                if on_progress is not None:
                    on_progress(step.progress())
            page = self.finish(criteria, accumulated)
            path = "batch"
        self.log_done(criteria, page, path, started)
        return page

    def log_done(self, criteria: FilterCriteria, page: SearchResultPage, path: str, started: float) -> None:
        logger.info(
            "search done path=%s total=%s",
            path,
            page.total_results,
            extra={
                "path": path,
                "criteria": criteria.log_fields(),
                "total_results": page.total_results,
                "seconds": round(time.perf_counter() - started, 6),
            },
        )

    def _fast_path(self, criteria: FilterCriteria) -> SearchResultPage:
        pushdown = classify(criteria).pushdown
        rows = self.store.fetch_page(
            pushdown,
            offset=criteria.page * criteria.page_size,
            limit=criteria.page_size,
            order=ORDER_RECENT,
        )
        total = self.store.count(pushdown)
        return SearchResultPage.from_slice(
            normalize_many(rows),
            total_results=total,
            page=criteria.page,
            page_size=criteria.page_size,
        )

    def iter_scan(self, criteria: FilterCriteria) -> Iterator[ScanStep]:
        """Fetch batches until a short batch or the scan cap; yield each normalized batch."""

        pushdown = classify(criteria).pushdown
        seen = set()
        scanned = 0
        batch_no = 0
        while scanned < self.max_scan:
            limit = min(self.batch_size, self.max_scan - scanned)
            rows = self.store.fetch_page(pushdown, offset=scanned, limit=limit, order=ORDER_SEQUENCE)
            batch_no += 1
            scanned += len(rows)
            short = len(rows) < limit

            fresh: List[PropertyRecord] = []
            for record in normalize_many(rows):
                key = record.sequence_key if record.sequence_key is not None else record.record_id
                if key in seen:
                    continue
                seen.add(key)
                fresh.append(record)

            estimate = scanned if short else min(self.max_scan, scanned + self.batch_size)
            yield ScanStep(batch_no=batch_no, scanned=scanned, estimate=estimate, records=fresh)
            if short:
                return
        logger.warning(
            "scan cap reached scanned=%s cap=%s",
            scanned,
            self.max_scan,
            extra={"scanned": scanned, "cap": self.max_scan},
        )

    def finish(self, criteria: FilterCriteria, accumulated: List[PropertyRecord]) -> SearchResultPage:
        """Apply residual predicates to a completed scan and paginate."""

        if not accumulated:
            return SearchResultPage.empty(criteria.page, criteria.page_size)
        filtered = sort_recent_first(apply_residual(accumulated, classify(criteria).residual))
        return SearchResultPage.paginate(filtered, criteria.page, criteria.page_size)
