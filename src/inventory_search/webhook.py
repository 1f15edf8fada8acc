from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, Field, field_validator

from .errors import ConfigurationError, WebhookError
from .models import KIND_LISTING


logger = logging.getLogger("invsearch.webhook")

E164 = re.compile(r"^\+[1-9]\d{1,14}$")
_KEYWORDS_LINE = re.compile(r"Keywords: [^\n]+\n?")

DEFAULT_TIMEOUT_S = 15.0


class InquiryPayload(BaseModel):
    whatsapp_number: str
    looking_for: str
    transaction_type: str
    property_type: List[str]
    bedrooms: List[str]
    communities: List[str]
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    listing_price: Optional[float] = None
    notes: Optional[str] = None
    portal_link: Optional[str] = None
    is_off_plan: Optional[bool] = None
    is_distressed: Optional[bool] = None
    selected_unit_ids: List[str] = Field(default_factory=list)
    keyword_search: Optional[str] = None

    @field_validator("whatsapp_number")
    @classmethod
    def _check_whatsapp(cls, value: str) -> str:
        # Accept the usual "+971 50 123 4567" spacing.
        compact = re.sub(r"[\s\-()]", "", value or "")
        if not E164.match(compact):
            raise ValueError("whatsapp_number must include the country code, e.g. +971501234567")
        return compact

    @field_validator("looking_for", "transaction_type")
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("property_type", "bedrooms", "communities")
    @classmethod
    def _required_selection(cls, values: List[str]) -> List[str]:
        cleaned = [str(v).strip() for v in values if str(v).strip()]
        if not cleaned:
            raise ValueError("at least one value is required")
        return cleaned


def search_keywords(keyword_search: Optional[str]) -> List[str]:
    return [k for k in (keyword_search or "").split() if k.strip()]


def notes_with_keywords(notes: Optional[str], keywords: List[str]) -> Optional[str]:
    """Append a single `Keywords: a, b` line; an older keywords line is replaced."""

    base = _KEYWORDS_LINE.sub("", notes or "").strip()
    if not keywords:
        return base or None
    line = "Keywords: " + ", ".join(keywords)
    return f"{base}\n{line}" if base else line


def webhook_body(payload: InquiryPayload) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "agentWhatsApp": payload.whatsapp_number,
        "unitKind": payload.looking_for,
        "transactionType": payload.transaction_type,
        "propertyType": list(payload.property_type),
        "beds": list(payload.bedrooms),
        "communities": list(payload.communities),
        "distressed": payload.is_distressed,
        "offPlan": payload.is_off_plan,
        "notes": notes_with_keywords(payload.notes, search_keywords(payload.keyword_search)),
        "portalLink": payload.portal_link,
        "selectedUnitIds": list(payload.selected_unit_ids),
    }
    # Only the price fields matching the inquiry kind are sent.
    if payload.looking_for == KIND_LISTING:
        body["budgetMinAed"] = payload.price_min
        body["budgetMaxAed"] = payload.price_max
    else:
        body["priceAed"] = payload.listing_price
    return body


def send_inquiry(
    payload: InquiryPayload,
    url: Optional[str],
    timeout: float = DEFAULT_TIMEOUT_S,
    session: Optional[requests.Session] = None,
) -> Dict[str, Any]:
    """POST the inquiry once. No retries; the caller reports failure to the user."""

    if not url:
        raise ConfigurationError("WEBHOOK_URL is not configured")
    body = webhook_body(payload)
    poster = session or requests
    try:
        resp = poster.post(url, json=body, timeout=timeout)
    except requests.RequestException as e:
        logger.warning("webhook unreachable: %s", e)
        raise WebhookError(f"webhook unreachable: {e}") from e
    if resp.status_code >= 400:
        logger.warning("webhook rejected inquiry status=%s", resp.status_code)
        raise WebhookError(f"webhook returned {resp.status_code}")
    logger.info(
        "inquiry forwarded",
        extra={"status": resp.status_code, "selected_units": len(payload.selected_unit_ids)},
    )
    return {"success": True, "status": resp.status_code}
