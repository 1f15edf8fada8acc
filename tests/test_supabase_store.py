"""PostgREST translation, checked against a recording query builder."""
import pytest

from inventory_search.config import Settings
from inventory_search.errors import ConfigurationError, StoreQueryError
from inventory_search.search.query import NativePredicate
from inventory_search.store.base import ORDER_RECENT, ORDER_SEQUENCE
from inventory_search.store.supabase_store import SupabaseStore, apply_predicate


class _Response:
    def __init__(self, data=None, count=None):
        self.data = data
        self.count = count


class RecordingQuery:
    def __init__(self, log, response=None, error=None):
        self.log = log
        self.response = response or _Response(data=[])
        self.error = error

    @property
    def not_(self):
        self.log.append(("not_",))
        return self

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.log.append((name, args, kwargs))
            return self

        return method

    def execute(self):
        if self.error is not None:
            raise self.error
        return self.response


class FakeClient:
    def __init__(self, response=None, error=None):
        self.log = []
        self.response = response
        self.error = error

    def table(self, name):
        self.log.append(("table", (name,), {}))
        return RecordingQuery(self.log, self.response, self.error)


def _apply(predicate):
    log = []
    apply_predicate(RecordingQuery(log), predicate)
    return log


def test_scalar_predicates():
    assert _apply(NativePredicate("kind", "eq", "listing")) == [("eq", ("data->>kind", "listing"), {})]
    assert _apply(NativePredicate("kind", "not_null")) == [("not_",), ("is_", ("data->>kind", "null"), {})]
    assert _apply(NativePredicate("price_aed", "gte", 500000)) == [
        ("or_", ("data->price_aed.gte.500000,data->price_aed.lt.-1e308",), {})
    ]
    assert _apply(NativePredicate("area_sqft", "lte", 900)) == [("lte", ("data->area_sqft", 900), {})]
    assert _apply(NativePredicate("is_off_plan", "is_true")) == [("eq", ("data->>is_off_plan", "true"), {})]
    assert _apply(NativePredicate("is_off_plan", "false_or_null")) == [
        ("or_", ("data->>is_off_plan.eq.false,data->>is_off_plan.is.null",), {})
    ]


def test_keyword_is_escaped_substring_on_message_body():
    assert _apply(NativePredicate("description", "ilike", "50%_off")) == [
        ("ilike", ("data->>message_body_raw", "%50\\%\\_off%"), {})
    ]


def test_unknown_op_is_rejected():
    with pytest.raises(ValueError):
        _apply(NativePredicate("kind", "regex", "x"))


def test_batch_query_orders_by_sequence_and_ranges():
    client = FakeClient(_Response(data=[{"pk": 1}]))
    store = SupabaseStore(client, table="units")

    rows = store.fetch_page([NativePredicate("kind", "eq", "listing")], offset=1000, limit=1000, order=ORDER_SEQUENCE)

    assert rows == [{"pk": 1}]
    assert client.log[0] == ("table", ("units",), {})
    assert ("order", ("pk",), {}) in client.log
    assert ("range", (1000, 1999), {}) in client.log


def test_page_query_orders_most_recent_first():
    client = FakeClient()
    SupabaseStore(client).fetch_page([], offset=0, limit=50, order=ORDER_RECENT)
    assert ("order", ("updated_at",), {"desc": True}) in client.log
    assert ("order", ("pk",), {"desc": True}) in client.log


def test_count_uses_exact_head_request():
    client = FakeClient(_Response(count=42))
    assert SupabaseStore(client).count([]) == 42
    assert ("select", ("pk",), {"count": "exact", "head": True}) in client.log


def test_store_errors_become_store_query_error():
    client = FakeClient(error=RuntimeError("permission denied for table"))
    with pytest.raises(StoreQueryError) as excinfo:
        SupabaseStore(client).fetch_page([], offset=0, limit=10)
    assert excinfo.value.details == "permission denied for table"


def test_from_settings_validates_first():
    settings = Settings(
        supabase_url=None,
        supabase_key=None,
        table="inventory_unit_preference",
        webhook_url=None,
        batch_size=1000,
        max_scan=50000,
        fast_path_max_page_size=100,
        filter_options_ttl_s=86400,
        log_level="INFO",
        log_json=False,
    )
    with pytest.raises(ConfigurationError):
        SupabaseStore.from_settings(settings)
