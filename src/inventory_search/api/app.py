from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from ..config import get_settings
from ..errors import ConfigurationError, StoreQueryError
from ..logging_setup import configure_logging
from ..search.query import SANITY_PREDICATES
from ..store.base import DocumentStore
from .deps import get_store
from .routes.search import router as search_router


logger = logging.getLogger("invsearch.api")


def health():
    return {"status": "ok"}


def check_configuration():
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    # Refuse to serve with missing or template credentials.
    settings.validate_store()
    logger.info("store configured table=%s", settings.table)


@asynccontextmanager
async def lifespan(app):
    check_configuration()
    yield


app = FastAPI(title="inventory_search", lifespan=lifespan)
app.include_router(search_router, prefix="/api")


@app.exception_handler(StoreQueryError)
def _store_query_error(request: Request, exc: StoreQueryError):
    logger.warning("store query failed path=%s: %s", request.url.path, exc, extra={"details": exc.details})
    return JSONResponse(
        status_code=502,
        content={"error": "Failed to fetch properties", "details": exc.details or str(exc)},
    )


@app.exception_handler(ConfigurationError)
def _configuration_error(request: Request, exc: ConfigurationError):
    return JSONResponse(status_code=503, content={"error": "Service not configured", "details": str(exc)})


@app.get("/health")
def health_route():
    return health()


@app.get("/api/test-db")
def check_db(store: DocumentStore = Depends(get_store)):
    try:
        count = store.count(SANITY_PREDICATES)
    except StoreQueryError as e:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Database connection failed", "details": e.details or str(e)},
        )
    return {
        "success": True,
        "recordCount": count,
        "message": "Database connection successful",
    }
