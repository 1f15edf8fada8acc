from __future__ import annotations

import logging
from typing import List

from .cache import cache_get_or_load
from .errors import StoreQueryError
from .models import FilterCriteria, FilterOptions, PropertyRecord
from .normalize import dedupe_numbers, dedupe_strings
from .search.engine import SearchEngine


logger = logging.getLogger("invsearch.api")

CACHE_KEY = ("filter_options",)

DEFAULT_KINDS = ["listing", "client_request"]
DEFAULT_TRANSACTION_TYPES = ["sale", "rent"]
DEFAULT_PROPERTY_TYPES = [
    "apartment",
    "villa",
    "townhouse",
    "penthouse",
    "office",
    "retail",
    "warehouse",
]
DEFAULT_BEDROOMS = [0.0, 1.0, 2.0, 3.0, 4.0, 5.0, 6.0]


def default_filter_options() -> FilterOptions:
    return FilterOptions(
        kinds=list(DEFAULT_KINDS),
        transactionTypes=list(DEFAULT_TRANSACTION_TYPES),
        propertyTypes=list(DEFAULT_PROPERTY_TYPES),
        bedrooms=list(DEFAULT_BEDROOMS),
        communities=[],
    )


def build_filter_options(records: List[PropertyRecord]) -> FilterOptions:
    return FilterOptions(
        kinds=sorted(dedupe_strings(r.kind for r in records)),
        transactionTypes=sorted(dedupe_strings(r.transaction_type for r in records)),
        propertyTypes=sorted(
            dedupe_strings(value for r in records for value in r.property_types),
            key=str.casefold,
        ),
        bedrooms=dedupe_numbers((b for r in records for b in r.bedrooms), float),
        communities=sorted(
            dedupe_strings(value for r in records for value in r.communities),
            key=str.casefold,
        ),
    )


def scan_filter_options(engine: SearchEngine) -> FilterOptions:
    """Distinct values across the whole (sanity-filtered) record set."""

    records: List[PropertyRecord] = []
    for step in engine.iter_scan(FilterCriteria()):
        records.extend(step.records)
    return build_filter_options(records)


def get_filter_options(engine: SearchEngine, ttl: int = 86400) -> FilterOptions:
    """Cached filter options; static defaults when the store is unavailable.

    Defaults are not cached, so the next call retries the store.
    """

    try:
        return cache_get_or_load(CACHE_KEY, lambda: scan_filter_options(engine), ttl=ttl)
    except StoreQueryError as e:
        logger.warning("filter options fell back to defaults: %s", e, extra={"details": e.details})
        return default_filter_options()
