"""Request-scoped providers; tests replace them through `app.dependency_overrides`."""

from __future__ import annotations

import threading

from fastapi import Depends

from ..config import Settings, get_settings
from ..search.engine import SearchEngine
from ..store.base import DocumentStore
from ..store.supabase_store import SupabaseStore


_store_lock = threading.Lock()
_store = {"instance": None}


def get_store(settings: Settings = Depends(get_settings)) -> DocumentStore:
    with _store_lock:
        if _store["instance"] is None:
            _store["instance"] = SupabaseStore.from_settings(settings)
        return _store["instance"]


def get_engine(
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> SearchEngine:
    return SearchEngine.from_settings(store, settings)


def reset_store() -> None:
    with _store_lock:
        _store["instance"] = None
