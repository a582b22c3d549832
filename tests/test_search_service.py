import httpx
import pytest
from conftest import json_response

from config.config import Config
from orchestrator.source_identifier import SourceIdentifier
from tools.web.contracts import SearchParams
from tools.web.factory import create_search_service_from_config
from tools.web.google_search_client import GoogleSearchClient, _qa_summary
from tools.web.search_service import SearchService
from tools.web.tavily_client import TavilySearchClient, build_query

GOOGLE_ITEMS = {
    "items": [
        {
            "title": "javascript - onmouseover event handler - Stack Overflow",
            "link": "https://stackoverflow.com/questions/1234/onmouseover",
            "snippet": "How do I attach\nan onmouseover handler?",
            "pagemap": {
                "question": [{"upvotecount": "17", "name": "onmouseover"}],
                "answer": [{"upvotecount": "25"}, {"upvotecount": "4"}],
            },
        },
        {
            "title": "Element: mouseover event - Web APIs | MDN",
            "link": "https://developer.mozilla.org/en-US/docs/Web/API/Element/mouseover_event",
            "snippet": "The mouseover event is fired...",
        },
        {"title": "Some blog", "link": "https://example.com/mouse", "snippet": ""},
        {"title": "No link"},
    ]
}


def google_service(make_http_client, handler):
    client = GoogleSearchClient("engine-1", "google-key", http_client=make_http_client(handler))
    return SearchService(client, "google", SourceIdentifier.from_yaml())


def test_google_results_are_ordered_and_annotated(make_http_client):
    response = google_service(make_http_client, lambda request: json_response(200, GOOGLE_ITEMS)).search(
        SearchParams(query="on mouse over event handler")
    )

    assert response.ok
    assert [r.url for r in response.results] == [
        "https://stackoverflow.com/questions/1234/onmouseover",
        "https://developer.mozilla.org/en-US/docs/Web/API/Element/mouseover_event",
        "https://example.com/mouse",
    ]
    assert [r.source_kind for r in response.results] == ["structured_qa", "documentation_corpus", "unknown"]
    first = response.results[0]
    assert first.snippet.startswith("How do I attach an onmouseover handler?")
    assert first.snippet.endswith("(question votes: 17, answers: 2, top answer votes: 25)")


def test_vote_summary_omits_missing_parts():
    assert _qa_summary({"question": [{"upvotecount": "3"}]}) == "(question votes: 3)"
    assert _qa_summary({"answer": [{"upvotecount": "x"}]}) == ""


def test_google_request_parameters(make_http_client):
    seen = []

    def handler(request):
        seen.append(request)
        return json_response(200, {})

    response = google_service(make_http_client, handler).search(
        SearchParams(query="mouseover", exact_terms="addEventListener", exclude_terms="jquery", start=11)
    )

    assert response.ok
    assert response.results == []
    params = seen[0].url.params
    assert params["q"] == "mouseover"
    assert params["cx"] == "engine-1"
    assert params["key"] == "google-key"
    assert params["exactTerms"] == "addEventListener"
    assert params["excludeTerms"] == "jquery"
    assert params["start"] == "11"


def test_optional_parameters_omitted(make_http_client):
    seen = []

    def handler(request):
        seen.append(request)
        return json_response(200, {})

    google_service(make_http_client, handler).search(SearchParams(query="mouseover"))

    for name in ("exactTerms", "excludeTerms", "start"):
        assert name not in seen[0].url.params


def test_provider_error_becomes_response_error(make_http_client):
    handler = lambda request: json_response(403, {"error": {"message": "Daily limit exceeded"}})
    response = google_service(make_http_client, handler).search(SearchParams(query="x"))

    assert not response.ok
    assert "403" in response.error
    assert "Daily limit exceeded" in response.error


def test_transport_error_becomes_response_error(make_http_client):
    def handler(request):
        raise httpx.ConnectTimeout("timeout", request=request)

    response = google_service(make_http_client, handler).search(SearchParams(query="x"))
    assert not response.ok


@pytest.mark.parametrize(
    "kwargs",
    [{"query": ""}, {"query": "   "}, {"query": "x", "start": 0}, {"query": "x", "start": 101}],
)
def test_invalid_params(kwargs):
    with pytest.raises(ValueError):
        SearchParams(**kwargs)


class StubTavily:
    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.calls = []

    def search(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return {"results": self.results}


def test_tavily_query_folding():
    params = SearchParams(query="mouseover", exact_terms="event bubbling", exclude_terms="jquery react")
    assert build_query(params) == 'mouseover "event bubbling" -jquery -react'


def test_tavily_results_and_start_offset():
    stub = StubTavily([{"title": f"R{i}", "url": f"https://example.com/{i}", "content": f"c{i}"} for i in range(15)])
    client = TavilySearchClient("tvly-key", client=stub)

    results = client.search(SearchParams(query="x", start=11))

    assert [r.title for r in results] == ["R10", "R11", "R12", "R13", "R14"]
    assert stub.calls[0]["max_results"] == 20


def test_tavily_failure_becomes_response_error():
    client = TavilySearchClient("tvly-key", client=StubTavily(error=RuntimeError("quota")))
    response = SearchService(client, "tavily").search(SearchParams(query="x"))

    assert not response.ok
    assert "quota" in response.error


def test_factory_requires_google_credentials():
    with pytest.raises(ValueError):
        create_search_service_from_config(Config({"SEARCH_PROVIDER": "google"}))


def test_factory_builds_google_service(base_env):
    service = create_search_service_from_config(Config(base_env))
    try:
        assert service.provider == "google"
        assert isinstance(service.client, GoogleSearchClient)
    finally:
        service.close()
