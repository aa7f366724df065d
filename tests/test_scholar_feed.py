from unittest.mock import MagicMock, patch

import pytest
import requests

from models import Paper
from scholar_feed import (
    UpstreamTransientError,
    UpstreamUnauthorized,
    fetch_page,
    normalize_page,
    normalize_result,
)

FULL_RESULT = {
    "title": "Perturb-seq: dissecting molecular circuits",
    "link": "https://example.org/perturb-seq",
    "snippet": "Genetic screens with single-cell readout.",
    "type": "Html",
    "publication_info": {
        "summary": "A Dixit, R Parnas - Cell, 2016 - cell.com",
        "authors": [{"name": "A Dixit"}, {"name": "R Parnas"}],
    },
    "inline_links": {"cited_by": {"total": 2412}},
    "resources": [{"link": "https://example.org/perturb-seq.pdf"}, {"link": "https://mirror.org/x.pdf"}],
}


def _mock_resp(status_code: int = 200, payload=None, json_error: bool = False) -> MagicMock:
    """Return a mock requests.Response."""
    mock = MagicMock()
    mock.status_code = status_code
    mock.ok = 200 <= status_code < 400
    if json_error:
        mock.json.side_effect = ValueError("Expecting value")
    else:
        mock.json.return_value = payload
    return mock


def test_normalize_result_maps_every_field() -> None:
    paper = normalize_result(FULL_RESULT)

    assert paper == Paper(
        title="Perturb-seq: dissecting molecular circuits",
        authors="A Dixit; R Parnas",
        publication_info="A Dixit, R Parnas - Cell, 2016 - cell.com",
        link="https://example.org/perturb-seq",
        pdf_link="https://example.org/perturb-seq.pdf",
        cited_by=2412,
        type="Html",
        snippet="Genetic screens with single-cell readout.",
    )


def test_normalize_result_empty_item_gives_defaults() -> None:
    assert normalize_result({}) == Paper()


def test_normalize_result_tolerates_wrong_types() -> None:
    item = {
        "title": None,
        "publication_info": "not a dict",
        "inline_links": {"cited_by": {"total": "12"}},
        "resources": ["not a dict"],
    }

    paper = normalize_result(item)

    assert paper.title == ""
    assert paper.authors == ""
    assert paper.publication_info == ""
    assert paper.cited_by == 0
    assert paper.pdf_link == ""


def test_normalize_result_author_without_name_keeps_position() -> None:
    item = {"publication_info": {"authors": [{"name": "A"}, {}, {"name": "C"}]}}
    assert normalize_result(item).authors == "A; ; C"


def test_normalize_result_negative_citations_default_to_zero() -> None:
    item = {"inline_links": {"cited_by": {"total": -3}}}
    assert normalize_result(item).cited_by == 0


def test_normalize_page_skips_non_objects() -> None:
    papers = normalize_page([FULL_RESULT, "junk", None, {"title": "Second"}])

    assert [p.title for p in papers] == ["Perturb-seq: dissecting molecular circuits", "Second"]


def test_fetch_page_sends_serpapi_params() -> None:
    payload = {"organic_results": [FULL_RESULT]}

    with patch("scholar_feed.requests.get", return_value=_mock_resp(payload=payload)) as mock_get:
        results = fetch_page("secret", "perturb seq", 20)

    assert results == [FULL_RESULT]
    params = mock_get.call_args.kwargs["params"]
    assert params == {
        "engine": "google_scholar",
        "q": "perturb seq",
        "hl": "en",
        "start": "20",
        "api_key": "secret",
    }


def test_fetch_page_missing_organic_results_is_empty_page() -> None:
    with patch("scholar_feed.requests.get", return_value=_mock_resp(payload={"search_metadata": {}})):
        assert fetch_page("secret", "q", 0) == []


def test_fetch_page_unauthorized() -> None:
    with patch("scholar_feed.requests.get", return_value=_mock_resp(status_code=401)):
        with pytest.raises(UpstreamUnauthorized):
            fetch_page("bad-key", "q", 0)


def test_fetch_page_other_http_error_is_transient() -> None:
    with patch("scholar_feed.requests.get", return_value=_mock_resp(status_code=503)):
        with pytest.raises(UpstreamTransientError, match="HTTP 503"):
            fetch_page("secret", "q", 0)


def test_fetch_page_network_error_is_transient() -> None:
    with patch("scholar_feed.requests.get", side_effect=requests.ConnectionError("reset")):
        with pytest.raises(UpstreamTransientError, match="reset"):
            fetch_page("secret", "q", 0)


def test_fetch_page_unparseable_body_is_transient() -> None:
    with patch("scholar_feed.requests.get", return_value=_mock_resp(json_error=True)):
        with pytest.raises(UpstreamTransientError):
            fetch_page("secret", "q", 0)


def test_fetch_page_logical_error_field() -> None:
    payload = {"error": "Your account has run out of searches."}

    with patch("scholar_feed.requests.get", return_value=_mock_resp(payload=payload)):
        with pytest.raises(UpstreamTransientError, match="run out of searches"):
            fetch_page("secret", "q", 0)
