"""Package initializer for `inventory_search`."""

from .models import FilterCriteria, PropertyRecord, SearchResultPage
from .normalize import normalize_document

__all__ = ["FilterCriteria", "PropertyRecord", "SearchResultPage", "normalize_document"]
