"""Google Scholar (via SerpAPI) page fetching and record normalization."""

from __future__ import annotations

import logging
import os
from typing import Any

import requests

from models import Paper

SERPAPI_SEARCH_URL = "https://serpapi.com/search"
SERPAPI_ENGINE = "google_scholar"
REQUEST_TIMEOUT_SECONDS = float(os.getenv("SERPAPI_TIMEOUT_SECONDS", "30"))
PAGE_SIZE = 10

LOGGER = logging.getLogger(__name__)


class UpstreamUnauthorized(RuntimeError):
    """SerpAPI rejected the API key (HTTP 401)."""


class UpstreamTransientError(RuntimeError):
    """Network, HTTP, parse or logical error on a single page fetch."""


def fetch_page(api_key: str, query: str, start: int) -> list[dict[str, Any]]:
    """Fetch one page of Google Scholar results starting at offset ``start``.

    Returns the raw ``organic_results`` list, which is empty when Scholar has
    nothing left to serve.

    Raises:
        UpstreamUnauthorized: the API key was rejected.
        UpstreamTransientError: any other failure, including an ``error``
            field in an otherwise successful response.
    """
    params = {
        "engine": SERPAPI_ENGINE,
        "q": query,
        "hl": "en",
        "start": str(start),
        "api_key": api_key,
    }

    try:
        response = requests.get(SERPAPI_SEARCH_URL, params=params, timeout=REQUEST_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        raise UpstreamTransientError(str(exc)) from exc

    if response.status_code == 401:
        raise UpstreamUnauthorized("Invalid API key. Please check your SerpAPI key.")
    if not response.ok:
        raise UpstreamTransientError(f"HTTP {response.status_code}")

    try:
        body = response.json()
    except ValueError as exc:
        raise UpstreamTransientError(f"Unparseable SerpAPI response: {exc}") from exc

    if not isinstance(body, dict):
        raise UpstreamTransientError("Unexpected SerpAPI payload shape: expected an object")
    if body.get("error"):
        raise UpstreamTransientError(str(body["error"]))

    results = body.get("organic_results")
    if not isinstance(results, list):
        results = []

    LOGGER.debug("SerpAPI page start=%s returned %s results", start, len(results))
    return results


def normalize_page(results: Any) -> list[Paper]:
    """Normalize a list of organic results, skipping anything that is not an object."""
    if not isinstance(results, list):
        return []
    return [normalize_result(item) for item in results if isinstance(item, dict)]


def normalize_result(item: dict[str, Any]) -> Paper:
    """Map one SerpAPI organic result to a Paper. Never raises."""
    publication = _as_dict(item.get("publication_info"))
    inline_links = _as_dict(item.get("inline_links"))
    cited_by = _as_dict(inline_links.get("cited_by"))

    authors = publication.get("authors")
    author_names = [_as_str(_as_dict(a).get("name")) for a in authors] if isinstance(authors, list) else []

    resources = item.get("resources")
    pdf_link = ""
    if isinstance(resources, list) and resources:
        pdf_link = _as_str(_as_dict(resources[0]).get("link"))

    return Paper(
        title=_as_str(item.get("title")),
        authors="; ".join(author_names),
        publication_info=_as_str(publication.get("summary")),
        link=_as_str(item.get("link")),
        pdf_link=pdf_link,
        cited_by=_as_count(cited_by.get("total")),
        type=_as_str(item.get("type")),
        snippet=_as_str(item.get("snippet")),
    )


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _as_count(value: Any) -> int:
    # bool is an int subclass; treat it as missing.
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return 0
