from __future__ import annotations

import asyncio
import logging
import re
from typing import TypedDict
from urllib.parse import unquote

import httpx

logger = logging.getLogger(__name__)

DUCKDUCKGO_HTML_URL = "https://html.duckduckgo.com/html/"

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "en-US,en;q=0.9",
}

_RESULT_PATTERN = re.compile(
    r'<a[^>]*class="result__a"[^>]*href="([^"]*)"[^>]*>([^<]*)</a>[\s\S]*?<a[^>]*class="result__snippet"[^>]*>([^<]*)<'
)
_REDIRECT_LINK_PATTERN = re.compile(r'href="/l/\?uddg=([^&"]+)[^"]*"[^>]*>([^<]+)<')
_LINKEDIN_PATH_PATTERN = re.compile(r"linkedin\.com/in/[a-zA-Z0-9\-_%]+")
_UDDG_PARAM = re.compile(r"uddg=([^&]+)")

# Aggregators and search engines never count as evidence that a person exists.
_NOISE_DOMAINS = (
    "google.",
    "bing.",
    "yahoo.",
    "duckduckgo.",
    "zoominfo.",
    "rocketreach.",
    "signalhire.",
    "apollo.io",
    "lusha.",
)

MAX_SOURCES = 5
SEARCH_DELAY_SECONDS = 0.15


class SearchResult(TypedDict):
    title: str
    url: str
    snippet: str


class ContactVerification(TypedDict):
    linkedin_url: str | None
    sources: list[str]
    verified: bool


def parse_search_results(html: str, *, query: str, max_results: int) -> list[SearchResult]:
    """Results from a DuckDuckGo HTML page, with redirect links unwrapped."""
    results: list[SearchResult] = []
    for encoded_url, title, snippet in _RESULT_PATTERN.findall(html):
        if len(results) >= max_results:
            break
        redirect = _UDDG_PARAM.search(encoded_url)
        results.append(
            {
                "url": unquote(redirect.group(1)) if redirect else encoded_url,
                "title": title.strip(),
                "snippet": snippet.strip(),
            }
        )

    if not results:
        for encoded_url, title in _REDIRECT_LINK_PATTERN.findall(html):
            if len(results) >= max_results:
                break
            results.append({"url": unquote(encoded_url), "title": title.strip(), "snippet": ""})

    if not results and "linkedin" in query.lower():
        unique_paths = list(dict.fromkeys(_LINKEDIN_PATH_PATTERN.findall(html)))
        for path in unique_paths[:max_results]:
            results.append({"url": f"https://www.{path}", "title": "LinkedIn Profile", "snippet": ""})

    return results


async def search_duckduckgo(query: str, max_results: int = 5) -> list[SearchResult]:
    try:
        async with httpx.AsyncClient(timeout=15.0, follow_redirects=True) as client:
            res = await client.get(DUCKDUCKGO_HTML_URL, params={"q": query}, headers=_HEADERS)
    except httpx.HTTPError as exc:
        logger.warning("DuckDuckGo search error", extra={"query": query[:50], "error": str(exc)})
        return []

    if res.status_code >= 400:
        logger.warning("DuckDuckGo search failed", extra={"query": query[:50], "http_status": res.status_code})
        return []

    results = parse_search_results(res.text, query=query, max_results=max_results)
    if not results:
        logger.info("No web search results", extra={"query": query[:50]})
    return results


def _is_evidence(url: str) -> bool:
    return not any(domain in url for domain in _NOISE_DOMAINS)


async def research_contact(name: str, company: str, company_domain: str | None = None) -> ContactVerification:
    """Look a person up on the open web.

    Finds a LinkedIn profile when one is indexed and collects up to five source
    URLs mentioning the person. A contact seen in two or more sources counts as
    verified.
    """
    sources: list[str] = []
    linkedin_url: str | None = None

    for result in await search_duckduckgo(f'"{name}" "{company}" site:linkedin.com/in', 3):
        if "linkedin.com/in/" in result["url"]:
            linkedin_url = result["url"]
            sources.append(result["url"])
            break

    await asyncio.sleep(SEARCH_DELAY_SECONDS)

    for result in await search_duckduckgo(f'"{name}" "{company}"', 8):
        url = result["url"]
        if not _is_evidence(url) or url in sources:
            continue
        if not linkedin_url and "linkedin.com/in/" in url:
            linkedin_url = url
        if len(sources) < MAX_SOURCES:
            sources.append(url)

    if not linkedin_url and company_domain:
        await asyncio.sleep(SEARCH_DELAY_SECONDS)
        for result in await search_duckduckgo(f'"{name}" site:{company_domain}', 3):
            url = result["url"]
            if _is_evidence(url) and url not in sources and len(sources) < MAX_SOURCES:
                sources.append(url)

    return {"linkedin_url": linkedin_url, "sources": sources, "verified": len(sources) >= 2}

