from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


KIND_LISTING = "listing"
KIND_CLIENT_REQUEST = "client_request"

MULTI_VALUE_FILTERS = ("bedrooms", "communities", "property_type")

# Fields whose change can move records in or out of the matched set in ways
# that re-filtering a previous result set cannot reproduce.
BASIC_FILTERS = (
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
)


class PropertyRecord(BaseModel):
    """Canonical inventory record.

    Every list field is deduplicated and holds only valid values; scalar
    fields are null when the source value was missing or unparseable.
    """

    record_id: str
    sequence_key: Optional[int] = None

    kind: Optional[str] = None
    transaction_type: Optional[str] = None

    bedrooms: List[float] = Field(default_factory=list)
    bathrooms: List[float] = Field(default_factory=list)
    property_types: List[str] = Field(default_factory=list)
    communities: List[str] = Field(default_factory=list)
    developers: List[str] = Field(default_factory=list)

    price_aed: Optional[float] = None
    budget_min_aed: Optional[float] = None
    budget_max_aed: Optional[float] = None
    area_sqft: Optional[float] = None

    description_raw: Optional[str] = None
    other_details: Optional[str] = None
    location_raw: Optional[str] = None
    furnishing: Optional[str] = None
    mortgage_or_cash: Optional[str] = None

    is_off_plan: Optional[bool] = None
    is_distressed_deal: Optional[bool] = None
    is_urgent: Optional[bool] = None
    is_agent_covered: Optional[bool] = None
    is_direct: Optional[bool] = None
    has_maid_bedroom: Optional[bool] = None
    is_mortgage_approved: Optional[bool] = None
    is_community_agnostic: Optional[bool] = None

    whatsapp_participant: Optional[str] = None
    agent_phone: Optional[str] = None
    group_jid: Optional[str] = None
    evolution_instance_id: Optional[str] = None

    updated_at: Optional[str] = None

    @property
    def is_studio(self) -> bool:
        return 0.0 in self.bedrooms


@dataclass(frozen=True)
class FilterCriteria:
    unit_kind: Optional[str] = None
    transaction_type: Optional[str] = None
    bedrooms: Tuple[str, ...] = ()
    communities: Tuple[str, ...] = ()
    property_type: Tuple[str, ...] = ()
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    price_aed: Optional[float] = None
    area_sqft_min: Optional[float] = None
    area_sqft_max: Optional[float] = None
    is_off_plan: Optional[bool] = None
    is_distressed_deal: Optional[bool] = None
    keyword_search: Optional[str] = None
    page: int = 0
    page_size: int = 50

    def with_page(self, page: int, page_size: Optional[int] = None) -> "FilterCriteria":
        return replace(self, page=page, page_size=page_size or self.page_size)

    def log_fields(self) -> Dict[str, Any]:
        """Loggable summary; free text is reported by length only."""

        out: Dict[str, Any] = {}
        for name in BASIC_FILTERS:
            value = getattr(self, name)
            if value is None:
                continue
            if name == "keyword_search":
                out["keyword_len"] = len(value)
                continue
            out[name] = value
        for name in MULTI_VALUE_FILTERS:
            values = getattr(self, name)
            if values:
                out[name] = list(values)
        out["page"] = self.page
        out["page_size"] = self.page_size
        return out


class PaginationInfo(BaseModel):
    currentPage: int
    pageSize: int
    totalResults: int
    totalPages: int
    hasMore: bool


@dataclass
class SearchResultPage:
    records: List[PropertyRecord]
    current_page: int
    page_size: int
    total_results: int
    total_pages: int
    has_more: bool
    all_records: List[PropertyRecord] = field(default_factory=list)

    @classmethod
    def paginate(
        cls,
        filtered: List[PropertyRecord],
        page: int,
        page_size: int,
        keep_all: bool = True,
    ) -> "SearchResultPage":
        total = len(filtered)
        return cls.from_slice(
            filtered[page * page_size : (page + 1) * page_size],
            total_results=total,
            page=page,
            page_size=page_size,
            all_records=list(filtered) if keep_all else [],
        )

    @classmethod
    def from_slice(
        cls,
        records: List[PropertyRecord],
        total_results: int,
        page: int,
        page_size: int,
        all_records: Optional[List[PropertyRecord]] = None,
    ) -> "SearchResultPage":
        total_pages = math.ceil(total_results / page_size) if page_size else 0
        return cls(
            records=list(records),
            current_page=page,
            page_size=page_size,
            total_results=total_results,
            total_pages=total_pages,
            has_more=(page + 1) < total_pages,
            all_records=list(all_records or []),
        )

    @classmethod
    def empty(cls, page: int, page_size: int) -> "SearchResultPage":
        return cls.from_slice([], total_results=0, page=page, page_size=page_size)

    def pagination(self) -> PaginationInfo:
        return PaginationInfo(
            currentPage=self.current_page,
            pageSize=self.page_size,
            totalResults=self.total_results,
            totalPages=self.total_pages,
            hasMore=self.has_more,
        )


class SearchResponse(BaseModel):
    properties: List[PropertyRecord]
    pagination: PaginationInfo


class FilterOptions(BaseModel):
    kinds: List[str] = Field(default_factory=list)
    transactionTypes: List[str] = Field(default_factory=list)
    propertyTypes: List[str] = Field(default_factory=list)
    bedrooms: List[float] = Field(default_factory=list)
    communities: List[str] = Field(default_factory=list)
