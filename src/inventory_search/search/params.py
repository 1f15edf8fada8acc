"""Query-string parsing for the search endpoints.

Malformed fragments never fail a request; they become an absent filter.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from ..models import FilterCriteria, PropertyRecord
from ..normalize import clean_string, normalize_document, parse_bool, parse_number


logger = logging.getLogger("invsearch.api")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000


def _values(params: Mapping[str, Any], name: str) -> List[str]:
    getlist = getattr(params, "getlist", None)
    if callable(getlist):
        raw = list(getlist(name))
    else:
        raw = params.get(name)
        if raw is None:
            raw = []
        elif not isinstance(raw, (list, tuple)):
            raw = [raw]
    return [str(v) for v in raw if v is not None]


def _first(params: Mapping[str, Any], name: str) -> Optional[str]:
    values = _values(params, name)
    return clean_string(values[0]) if values else None


def split_multi(values: Iterable[str]) -> Tuple[str, ...]:
    """Repeatable and comma-separated forms both work; blanks are dropped."""

    out: List[str] = []
    for value in values:
        for part in str(value).split(","):
            part = part.strip()
            if part and part not in out:
                out.append(part)
    return tuple(out)


def _number(params: Mapping[str, Any], name: str) -> Optional[float]:
    return parse_number(_first(params, name))


def _int(params: Mapping[str, Any], name: str, default: int) -> int:
    number = parse_number(_first(params, name))
    if number is None:
        return default
    return int(number)


def criteria_from_params(params: Mapping[str, Any]) -> FilterCriteria:
    page = _int(params, "page", 0)
    if page < 0:
        page = 0
    page_size = _int(params, "pageSize", DEFAULT_PAGE_SIZE)
    if page_size < 1:
        page_size = DEFAULT_PAGE_SIZE
    page_size = min(page_size, MAX_PAGE_SIZE)

    return FilterCriteria(
        unit_kind=_first(params, "unit_kind"),
        transaction_type=_first(params, "transaction_type"),
        bedrooms=split_multi(_values(params, "bedrooms")),
        communities=split_multi(_values(params, "communities")),
        property_type=split_multi(_values(params, "property_type")),
        budget_min=_number(params, "budget_min"),
        budget_max=_number(params, "budget_max"),
        price_aed=_number(params, "price_aed"),
        area_sqft_min=_number(params, "area_sqft_min"),
        area_sqft_max=_number(params, "area_sqft_max"),
        is_off_plan=parse_bool(_first(params, "is_off_plan")),
        is_distressed_deal=parse_bool(_first(params, "is_distressed_deal")),
        keyword_search=_first(params, "keyword_search"),
        page=page,
        page_size=page_size,
    )


def previous_results_from_params(params: Mapping[str, Any]) -> Optional[List[PropertyRecord]]:
    """Previous full result set sent by a refining client, or None.

    Only honored when `is_refinement` is truthy. Bad JSON is ignored and the
    request falls back to a fresh fetch.
    """

    if not parse_bool(_first(params, "is_refinement")):
        return None
    raw = _first(params, "previous_results")
    if not raw:
        return None
    try:
        decoded = json.loads(raw)
    except ValueError:
        logger.info("ignoring malformed previous_results")
        return None
    if not isinstance(decoded, list):
        return None
    return [normalize_document(item) for item in decoded if isinstance(item, dict)]


def _format_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def criteria_to_params(criteria: FilterCriteria) -> List[Tuple[str, str]]:
    """Inverse of `criteria_from_params`, as repeatable query pairs."""

    pairs: List[Tuple[str, str]] = []
    for name in (
        "unit_kind",
        "transaction_type",
        "budget_min",
        "budget_max",
        "price_aed",
        "area_sqft_min",
        "area_sqft_max",
        "is_off_plan",
        "is_distressed_deal",
        "keyword_search",
    ):
        value = getattr(criteria, name)
        if value is not None:
            pairs.append((name, _format_param(value)))
    for name in ("bedrooms", "communities", "property_type"):
        for value in getattr(criteria, name):
            pairs.append((name, value))
    pairs.append(("page", str(criteria.page)))
    pairs.append(("pageSize", str(criteria.page_size)))
    return pairs
