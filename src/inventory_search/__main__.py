import argparse
import json
import sys

from .config import get_settings
from .errors import ConfigurationError, StoreQueryError
from .filter_options import get_filter_options
from .logging_setup import configure_logging
from .models import SearchResponse
from .search.engine import SearchEngine
from .search.params import criteria_from_params
from .search.streaming import stream_search
from .store.memory import InMemoryStore


def _build_parser():
    parser = argparse.ArgumentParser(
        description="Real-estate inventory search CLI",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, etc.)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as one JSON object per line",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Run a filtered search")
    search.add_argument("--fixture", default=None, help="JSON file of raw documents instead of the live store")
    search.add_argument("--stream", action="store_true", help="Print NDJSON progress events")
    search.add_argument("--unit-kind", default=None)
    search.add_argument("--transaction-type", default=None)
    search.add_argument("--bedrooms", action="append", default=[], help="Repeatable or comma-separated")
    search.add_argument("--communities", action="append", default=[], help="Repeatable or comma-separated")
    search.add_argument("--property-type", action="append", default=[], help="Repeatable or comma-separated")
    search.add_argument("--budget-min", default=None)
    search.add_argument("--budget-max", default=None)
    search.add_argument("--price-aed", default=None)
    search.add_argument("--area-sqft-min", default=None)
    search.add_argument("--area-sqft-max", default=None)
    search.add_argument("--is-off-plan", default=None)
    search.add_argument("--is-distressed-deal", default=None)
    search.add_argument("--keyword", dest="keyword_search", default=None)
    search.add_argument("--page", default="0")
    search.add_argument("--page-size", dest="pageSize", default="50")

    options = sub.add_parser("options", help="Print filter options")
    options.add_argument("--fixture", default=None, help="JSON file of raw documents instead of the live store")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=5000)

    sub.add_parser("check-env", help="Validate store configuration")
    return parser


_SEARCH_PARAMS = (
    "unit_kind",
    "transaction_type",
    "bedrooms",
    "communities",
    "property_type",
    "budget_min",
    "budget_max",
    "price_aed",
    "area_sqft_min",
    "area_sqft_max",
    "is_off_plan",
    "is_distressed_deal",
    "keyword_search",
    "page",
    "pageSize",
)


def _engine(args, settings):
    if args.fixture:
        store = InMemoryStore.from_fixture(args.fixture)
    else:
        from .store.supabase_store import SupabaseStore

        store = SupabaseStore.from_settings(settings)
    return SearchEngine.from_settings(store, settings)


def _run_search(args, settings, out):
    params = {name: getattr(args, name) for name in _SEARCH_PARAMS}
    criteria = criteria_from_params({k: v for k, v in params.items() if v is not None})
    engine = _engine(args, settings)
    if args.stream:
        for line in stream_search(engine, criteria):
            out.write(line)
        return 0
    page = engine.fetch_filtered(criteria)
    response = SearchResponse(properties=page.records, pagination=page.pagination())
    out.write(response.model_dump_json() + "\n")
    return 0


def main(argv=None, out=None):
    out = out or sys.stdout
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, args.log_json or settings.log_json, stream=sys.stderr)

    try:
        if args.command == "check-env":
            settings.validate_store()
            out.write(json.dumps({"ok": True, "table": settings.table}) + "\n")
            return 0
        if args.command == "serve":
            import uvicorn

            settings.validate_store()
            uvicorn.run("inventory_search.api.app:app", host=args.host, port=args.port)
            return 0
        if args.command == "options":
            options = get_filter_options(_engine(args, settings), ttl=settings.filter_options_ttl_s)
            out.write(options.model_dump_json() + "\n")
            return 0
        return _run_search(args, settings, out)
    except ConfigurationError as exc:
        out.write(json.dumps({"ok": False, "error": str(exc)}) + "\n")
        return 1
    except StoreQueryError as exc:
        out.write(json.dumps({"ok": False, "error": str(exc), "details": exc.details}) + "\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
