"""Progress-streaming protocol (server side).

One search request produces an ordered stream of newline-delimited JSON
events:

    progress* -> batch* -> complete | error

The first event is always a `progress` event ("Starting search"); exactly one
terminal event (`complete` or `error`) ends the stream. The generator holds
no state beyond its own frame, so a client that disconnects mid-stream frees
everything when the response closes the generator.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..errors import StoreQueryError
from ..models import FilterCriteria, PropertyRecord, SearchResultPage
from .engine import SearchEngine, progress_event
from .refinement import refine


logger = logging.getLogger("invsearch.stream")

EVENT_PROGRESS = "progress"
EVENT_BATCH = "batch"
EVENT_COMPLETE = "complete"
EVENT_ERROR = "error"
TERMINAL_EVENTS = (EVENT_COMPLETE, EVENT_ERROR)

BATCH_EVENT_SIZE = 100


def encode_event(event: Dict[str, Any]) -> str:
    return json.dumps(event, ensure_ascii=False, default=str) + "\n"


def _dump(records: Sequence[PropertyRecord]) -> List[Dict[str, Any]]:
    return [r.model_dump() for r in records]


def progress(current: int, total: int, phase: str) -> Dict[str, Any]:
    return {"type": EVENT_PROGRESS, **progress_event(current, total, phase)}


def batch_event(records: Sequence[PropertyRecord]) -> Dict[str, Any]:
    return {"type": EVENT_BATCH, "properties": _dump(records)}


def complete_event(page: SearchResultPage) -> Dict[str, Any]:
    return {
        "type": EVENT_COMPLETE,
        "properties": _dump(page.records),
        "pagination": page.pagination().model_dump(),
        "all_results": _dump(page.all_records or page.records),
    }


def error_event(error: str, details: str = "") -> Dict[str, Any]:
    return {"type": EVENT_ERROR, "error": error, "details": details}


def stream_search(
    engine: SearchEngine,
    criteria: FilterCriteria,
    previous_results: Optional[Sequence[PropertyRecord]] = None,
    batch_event_size: int = BATCH_EVENT_SIZE,
) -> Iterator[str]:
    """Yield encoded events for one search.

    With `previous_results`, the refinement path is taken and the store is
    not touched. Otherwise progress is reported live per scanned batch and
    the filtered result set follows in `batch` chunks once the scan is
    complete, so a failed scan never leaks partial results.
    """

    yield encode_event(progress(0, 0, "Starting search"))

    if previous_results:
        yield encode_event(progress(0, len(previous_results), "Refining previous results"))
        page = refine(criteria, previous_results)
        logger.info(
            "refined search total=%s",
            page.total_results,
            extra={"path": "refine", "criteria": criteria.log_fields(), "total_results": page.total_results},
        )
        yield encode_event(complete_event(page))
        return

    started = time.perf_counter()
    accumulated: List[PropertyRecord] = []
    try:
        for step in engine.iter_scan(criteria):
            accumulated.extend(step.records)
            yield encode_event({"type": EVENT_PROGRESS, **step.progress()})
    except StoreQueryError as e:
        logger.warning("streamed search failed: %s", e, extra={"details": e.details})
        yield encode_event(error_event("Failed to fetch properties", e.details or str(e)))
        return

    yield encode_event(progress(len(accumulated), len(accumulated), "Applying filters"))
    page = engine.finish(criteria, accumulated)
    everything = page.all_records
    size = max(1, int(batch_event_size))
    for start in range(0, len(everything), size):
        yield encode_event(batch_event(everything[start : start + size]))
    engine.log_done(criteria, page, "stream", started)
    yield encode_event(complete_event(page))
