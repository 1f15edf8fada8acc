from collections import defaultdict

import requests

from inventory_search.client import PLAIN_PATH, STATUS_SWITCHING_MODES, STREAM_PATH, SearchClient
from inventory_search.models import FilterCriteria, SearchResponse
from inventory_search.search.engine import SearchEngine
from inventory_search.search.params import criteria_from_params, previous_results_from_params
from inventory_search.search.refinement import refine
from inventory_search.search.streaming import stream_search
from inventory_search.store.memory import InMemoryStore


BASE = "http://search.test"
MARINA = FilterCriteria(communities=("Marina",))


class FakeResponse:
    def __init__(self, lines=None, payload=None, status_code=200, break_after=None):
        self.lines = lines or []
        self.payload = payload
        self.status_code = status_code
        self.break_after = break_after

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")

    def iter_lines(self, decode_unicode=False):
        for index, line in enumerate(self.lines):
            if self.break_after is not None and index == self.break_after:
                raise requests.ConnectionError("connection reset")
            yield line.rstrip("\n")

    def json(self):
        return self.payload

    def close(self):
        pass


class InProcessSession:
    """Serves both endpoints from the real server functions."""

    def __init__(self, store, break_stream_after=None, plain_status=200):
        self.engine = SearchEngine(store)
        self.break_stream_after = break_stream_after
        self.plain_status = plain_status
        self.calls = []

    def get(self, url, params=None, stream=False, timeout=None):
        path = url[len(BASE):]
        self.calls.append((path, list(params or [])))
        query = defaultdict(list)
        for key, value in params or []:
            query[key].append(value)
        criteria = criteria_from_params(query)
        if path == STREAM_PATH:
            previous = previous_results_from_params(query)
            lines = list(stream_search(self.engine, criteria, previous))
            return FakeResponse(lines=lines, break_after=self.break_stream_after)
        if path == PLAIN_PATH:
            if self.plain_status >= 400:
                return FakeResponse(
                    payload={"error": "Failed to fetch properties", "details": "boom"},
                    status_code=self.plain_status,
                )
            page = self.engine.fetch_filtered(criteria)
            body = SearchResponse(properties=page.records, pagination=page.pagination())
            return FakeResponse(payload=body.model_dump())
        raise AssertionError(f"unexpected path {path}")


def test_stream_search_sets_results_and_baseline(marina_docs):
    progress = []
    client = SearchClient(BASE, session=InProcessSession(InMemoryStore(marina_docs)), on_progress=progress.append)

    page = client.search(MARINA)

    assert page.total_results == 10
    assert client.results is page
    assert progress[0]["phase"] == "Starting search"
    assert client.refinement.previous_criteria == MARINA
    assert len(client.refinement.previous_results) == 10


def test_refinement_reuses_previous_results(marina_docs):
    store = InMemoryStore(marina_docs)
    session = InProcessSession(store)
    client = SearchClient(BASE, session=session)

    client.search(MARINA)
    assert store.calls == 1
    page = client.search(FilterCriteria(communities=("Marina", "JBR")))

    assert page.total_results == 10
    assert store.calls == 1
    sent = dict(session.calls[-1][1])
    assert sent["is_refinement"] == "true"
    assert "previous_results" in sent


def test_dropped_stream_falls_back_to_plain_endpoint(marina_docs):
    statuses = []
    session = InProcessSession(InMemoryStore(marina_docs), break_stream_after=2)
    client = SearchClient(BASE, session=session, on_status=statuses.append)

    page = client.search(MARINA)

    assert statuses == [STATUS_SWITCHING_MODES]
    assert [path for path, _ in session.calls] == [STREAM_PATH, PLAIN_PATH]
    assert page.total_results == 10
    # The whole result set fit on the page, so it can serve as a baseline.
    assert client.refinement.previous_criteria == MARINA


def test_stream_without_terminal_event_falls_back(marina_docs):
    session = InProcessSession(InMemoryStore(marina_docs))
    original = session.get

    def truncated(url, params=None, stream=False, timeout=None):
        response = original(url, params=params, stream=stream, timeout=timeout)
        if url.endswith(STREAM_PATH):
            response.lines = response.lines[:2]
        return response

    session.get = truncated
    client = SearchClient(BASE, session=session)
    page = client.search(MARINA)

    assert page.total_results == 10
    assert session.calls[-1][0] == PLAIN_PATH


def test_partial_fallback_page_is_not_a_baseline(marina_docs):
    session = InProcessSession(InMemoryStore(marina_docs), break_stream_after=1)
    client = SearchClient(BASE, session=session)

    page = client.search(MARINA.with_page(0, 3))

    assert len(page.records) == 3
    assert page.total_results == 10
    assert client.refinement.previous_criteria is None


def test_failures_keep_previous_results(marina_docs):
    store = InMemoryStore(marina_docs)
    session = InProcessSession(store)
    client = SearchClient(BASE, session=session)
    first = client.search(MARINA)

    session.break_stream_after = 1
    session.plain_status = 502
    assert client.search(FilterCriteria(communities=("JBR",))) is None
    assert client.results is first
    assert "Failed to fetch properties" in client.last_error


def test_error_event_does_not_fall_back(marina_docs):
    session = InProcessSession(InMemoryStore(marina_docs, fail_on_fetch=1))
    client = SearchClient(BASE, session=session)

    assert client.search(MARINA) is None
    assert [path for path, _ in session.calls] == [STREAM_PATH]
    assert client.results is None
    assert client.last_error == "Failed to fetch properties"


def test_newer_search_supersedes_in_flight_one(marina_docs):
    session = InProcessSession(InMemoryStore(marina_docs))
    newer = FilterCriteria(communities=("Downtown Dubai",))
    seen = []

    def on_progress(event):
        seen.append(event)
        if len(seen) == 1:
            client.search(newer)

    client = SearchClient(BASE, session=session, on_progress=on_progress)
    assert client.search(MARINA) is None
    assert client.results.total_results == 1
    assert client.refinement.previous_criteria == newer
