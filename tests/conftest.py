import logging
import os
import socket
import sys
import urllib.request
from pathlib import Path

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC = REPO_ROOT / "src"
FIXTURES = Path(__file__).resolve().parent / "fixtures"

# Prefer repo sources over any installed package.
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def block_network(monkeypatch):
    if os.getenv("LIVE") == "1":
        return

    real_connect = socket.socket.connect

    def guarded_connect(sock, address):
        host = address[0]
        if host not in ("127.0.0.1", "localhost"):
            raise RuntimeError("Network access blocked in tests")
        return real_connect(sock, address)

    monkeypatch.setattr(socket.socket, "connect", guarded_connect)
    monkeypatch.setattr(
        urllib.request,
        "urlopen",
        lambda *args, **kwargs: (_ for _ in ()).throw(
            RuntimeError("Network access blocked in tests")
        ),
    )


@pytest.fixture(autouse=True)
def clean_state(monkeypatch):
    from inventory_search.api.deps import reset_store
    from inventory_search.cache import cache_clear
    from inventory_search.config import reset_settings_cache

    for name in (
        "SUPABASE_URL",
        "SUPABASE_ANON_KEY",
        "WEBHOOK_URL",
        "SEARCH_BATCH_SIZE",
        "SEARCH_MAX_SCAN",
        "SEARCH_FAST_PATH_MAX_PAGE_SIZE",
        "CACHE",
        "LOG_JSON",
    ):
        monkeypatch.delenv(name, raising=False)
    cache_clear()
    reset_settings_cache()
    reset_store()
    yield
    cache_clear()
    reset_settings_cache()
    reset_store()
    # configure_logging() detaches the package logger; reattach it for caplog.
    root = logging.getLogger("invsearch")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True
    root.setLevel(logging.NOTSET)


@pytest.fixture
def fixture_path():
    return FIXTURES / "inventory_rows.json"


@pytest.fixture
def make_doc():
    def _make(**fields):
        doc = {"kind": "listing", "transaction_type": "sale"}
        doc.update(fields)
        return doc

    return _make


@pytest.fixture
def scenario_docs(make_doc):
    """Five listings: two match bedrooms and price, one bedrooms only, two neither."""

    return [
        make_doc(bedrooms=2, price_aed=750000, communities=["Marina"]),
        make_doc(bedrooms=[3], price_aed=900000, communities=["JBR"]),
        make_doc(bedrooms=3, price_aed=2500000),
        make_doc(bedrooms=1, price_aed=600000),
        make_doc(bedrooms=5, price_aed=5000000),
    ]


@pytest.fixture
def marina_docs(make_doc):
    """Ten Marina listings plus unrelated ones elsewhere."""

    docs = [
        make_doc(bedrooms=i % 4, communities=["Dubai Marina", "Marina"], updated_at=f"2024-01-{i + 1:02d}")
        for i in range(10)
    ]
    docs += [
        make_doc(bedrooms=2, communities=["Downtown Dubai"]),
        make_doc(bedrooms=2, community="Palm Jumeirah"),
    ]
    return docs


@pytest.fixture
def mixed_form_docs(make_doc):
    """Values whose stored text differs from their normalized form (ids 1-4)."""

    return [
        make_doc(property_type="Apartment", bedrooms="studio", updated_at="2024-02-04"),
        make_doc(property_type=["Villa"], bedrooms=["2.0"], updated_at="2024-02-03"),
        make_doc(property_type=" office ", bedrooms=3, updated_at="2024-02-02"),
        make_doc(property_type="Penthouse", bedrooms="ST", updated_at="2024-02-01"),
    ]
