"""Web scraping and search tools."""

from __future__ import annotations

import json
import logging
from typing import Optional
from urllib.parse import urlparse

import html2text
import httpx
from langchain_core.tools import BaseTool, tool

from ..config import get_settings

logger = logging.getLogger(__name__)

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"

_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/116.0.0.0 Safari/537.36"
)


def html_to_markdown(html: str, ignore_links: bool = False) -> str:
    converter = html2text.HTML2Text()
    converter.ignore_links = ignore_links
    converter.body_width = 0
    return converter.handle(html).strip()


@tool
async def webscrape(url: str, ignore_links: bool = False, max_length: Optional[int] = None) -> str:
    """Fetch a web page and return its content as Markdown.

    Args:
        url: Absolute http(s) URL of the page.
        ignore_links: Drop hyperlinks from the Markdown output.
        max_length: Truncate the output to this many characters.
    """

    if urlparse(url).scheme not in {"http", "https"}:
        return f"Error fetching the URL {url}"

    try:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.get(url, headers={"User-Agent": _USER_AGENT}, timeout=20.0)
    except httpx.HTTPError as exc:
        logger.warning("webscrape failed for %s: %s", url, exc)
        return f"Error fetching the URL {url}"

    if response.status_code != 200:
        return f"Failed to fetch the URL. Status code: {response.status_code}"

    output = html_to_markdown(response.text, ignore_links=ignore_links)
    if max_length and len(output) > max_length:
        output = output[:max_length]
    return output


@tool
async def google_search(
    query: str,
    results: int = 5,
    exactTerms: str = "",
    excludeTerms: str = "",
    cx: Optional[str] = None,
) -> str:
    """Search Google through the Custom Search JSON API.

    Args:
        query: Search query.
        results: Number of results to return (1-10).
        exactTerms: Phrase every result must contain.
        excludeTerms: Word or phrase no result may contain.
        cx: Custom search engine id overriding the configured one.
    """

    settings = get_settings()
    api_key = settings.google_search_developer_key
    engine_id = cx or settings.google_search_cx_id
    if not api_key or not engine_id:
        return "Google Search API key or Custom Search Engine (CSE) ID is missing."

    params = {
        "key": api_key,
        "cx": engine_id,
        "q": query,
        "num": results or 5,
        "exactTerms": exactTerms,
        "excludeTerms": excludeTerms,
        "hl": "en",
    }
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(GOOGLE_SEARCH_URL, params=params, timeout=20.0)
            response.raise_for_status()
            data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("google_search failed for %r: %s", query, exc)
        return "An error occurred while performing the Google search."

    items = data.get("items") if isinstance(data, dict) else None
    if not items:
        return "No results found"
    return json.dumps(items, indent=2)


def get_tools() -> list[BaseTool]:
    return [webscrape, google_search]
