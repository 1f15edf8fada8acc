from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from ...config import Settings, get_settings
from ...errors import WebhookError
from ...filter_options import get_filter_options
from ...models import FilterOptions, SearchResponse
from ...search.engine import SearchEngine
from ...search.params import criteria_from_params, previous_results_from_params
from ...search.refinement import refine
from ...search.streaming import stream_search
from ...webhook import InquiryPayload, send_inquiry
from ..deps import get_engine


logger = logging.getLogger("invsearch.api")

router = APIRouter(tags=["search"])


@router.get("/properties", response_model=SearchResponse)
def properties(request: Request, engine: SearchEngine = Depends(get_engine)) -> SearchResponse:
    criteria = criteria_from_params(request.query_params)
    previous = previous_results_from_params(request.query_params)
    if previous:
        page = refine(criteria, previous)
    else:
        page = engine.fetch_filtered(criteria)
    return SearchResponse(properties=page.records, pagination=page.pagination())


@router.get("/properties-with-progress")
def properties_with_progress(request: Request, engine: SearchEngine = Depends(get_engine)):
    criteria = criteria_from_params(request.query_params)
    previous = previous_results_from_params(request.query_params)
    generator = stream_search(engine, criteria, previous_results=previous)
    return StreamingResponse(generator, media_type="application/x-ndjson")


@router.get("/filter-options", response_model=FilterOptions)
def filter_options(
    engine: SearchEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
) -> FilterOptions:
    return get_filter_options(engine, ttl=settings.filter_options_ttl_s)


@router.post("/inquiries")
def create_inquiry(
    body: Dict[str, Any] = Body(...),
    settings: Settings = Depends(get_settings),
):
    try:
        payload = InquiryPayload.model_validate(body)
    except ValidationError as e:
        detail = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in e.errors()
        ]
        raise HTTPException(status_code=400, detail=detail)
    try:
        return send_inquiry(payload, settings.webhook_url)
    except WebhookError as e:
        raise HTTPException(status_code=502, detail=str(e))
