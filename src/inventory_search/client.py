"""HTTP client for the search service.

Reads the NDJSON progress stream and falls back to the plain endpoint when
the stream breaks. One `SearchClient` is one user session: it owns the
refinement baseline and the supersede counter.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .errors import StoreQueryError, StreamInterrupted
from .models import FilterCriteria, PropertyRecord, SearchResultPage
from .search.params import criteria_to_params
from .search.refinement import RefinementCache
from .search.streaming import EVENT_BATCH, EVENT_COMPLETE, EVENT_ERROR, EVENT_PROGRESS


logger = logging.getLogger("invsearch.client")

STREAM_PATH = "/api/properties-with-progress"
PLAIN_PATH = "/api/properties"

STATUS_SWITCHING_MODES = "Connection issue, switching modes"

ProgressCallback = Callable[[Dict[str, Any]], None]
StatusCallback = Callable[[str], None]


def _page_from_payload(payload: Dict[str, Any], all_results: Optional[List[Any]] = None) -> SearchResultPage:
    pagination = payload.get("pagination") or {}
    records = [PropertyRecord.model_validate(p) for p in payload.get("properties") or []]
    everything = [PropertyRecord.model_validate(p) for p in all_results or []]
    return SearchResultPage.from_slice(
        records,
        total_results=int(pagination.get("totalResults", len(records))),
        page=int(pagination.get("currentPage", 0)),
        page_size=int(pagination.get("pageSize", len(records) or 1)),
        all_records=everything,
    )


class SearchClient:
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_status: Optional[StatusCallback] = None,
        timeout: float = 120.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.on_progress = on_progress
        self.on_status = on_status
        self.timeout = timeout
        self.refinement = RefinementCache()
        self.results: Optional[SearchResultPage] = None
        self.last_error: Optional[str] = None
        self._generation = 0
        self._lock = threading.Lock()

    def _next_generation(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _status(self, message: str) -> None:
        if self.on_status is not None:
            self.on_status(message)

    def search(self, criteria: FilterCriteria) -> Optional[SearchResultPage]:
        """Run one search; returns None when superseded or failed.

        On failure `last_error` is set and `results` keeps the previous page.
        """

        generation = self._next_generation()
        params = criteria_to_params(criteria)
        refining = self.refinement.can_refine(criteria)
        if refining:
            previous = [r.model_dump() for r in self.refinement.previous_results]
            params += [("is_refinement", "true"), ("previous_results", json.dumps(previous, default=str))]

        try:
            try:
                outcome = self._stream(params, generation)
            except (StreamInterrupted, requests.RequestException) as e:
                if not self._is_current(generation):
                    return None
                logger.warning("stream failed, falling back to plain endpoint: %s", e)
                self._status(STATUS_SWITCHING_MODES)
                outcome = self._fallback_fetch(criteria, generation)
        except (StoreQueryError, requests.RequestException) as e:
            if self._is_current(generation):
                self.last_error = str(e)
                logger.warning("search failed: %s", e)
            return None

        if outcome is None or not self._is_current(generation):
            return None
        page, baseline = outcome
        self.results = page
        self.last_error = None
        if baseline is None:
            self.refinement.clear()
        else:
            self.refinement.remember(criteria, baseline)
        return page

    def _stream(
        self, params: List[Tuple[str, str]], generation: int
    ) -> Optional[Tuple[SearchResultPage, Optional[List[PropertyRecord]]]]:
        resp = self.session.get(
            self.base_url + STREAM_PATH, params=params, stream=True, timeout=self.timeout
        )
        try:
            resp.raise_for_status()
            for line in resp.iter_lines(decode_unicode=True):
                if not self._is_current(generation):
                    return None
                if not line:
                    continue
                try:
                    event = json.loads(line)
                except ValueError as e:
                    raise StreamInterrupted("malformed stream event") from e
                kind = event.get("type")
                if kind == EVENT_PROGRESS:
                    if self.on_progress is not None:
                        self.on_progress(event)
                elif kind == EVENT_BATCH:
                    continue
                elif kind == EVENT_COMPLETE:
                    page = _page_from_payload(event, event.get("all_results"))
                    return page, page.all_records
                elif kind == EVENT_ERROR:
                    raise StoreQueryError(event.get("error") or "search failed", details=event.get("details"))
        finally:
            resp.close()
        raise StreamInterrupted("stream ended before a terminal event")

    def _fallback_fetch(
        self, criteria: FilterCriteria, generation: int
    ) -> Optional[Tuple[SearchResultPage, Optional[List[PropertyRecord]]]]:
        """Same criteria via the plain endpoint, without refinement state."""

        resp = self.session.get(
            self.base_url + PLAIN_PATH, params=criteria_to_params(criteria), timeout=self.timeout
        )
        if not self._is_current(generation):
            return None
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            raise StoreQueryError(
                body.get("error") or f"HTTP {resp.status_code}", details=body.get("details")
            )
        page = _page_from_payload(resp.json())
        # Only a page holding the whole result set can serve as a baseline.
        complete = page.current_page == 0 and len(page.records) == page.total_results
        return page, (list(page.records) if complete else None)
