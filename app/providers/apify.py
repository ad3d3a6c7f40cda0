from __future__ import annotations

import asyncio
import logging
import random
import re
import time
import uuid
from typing import Any

import httpx

from app.contracts.contacts import Company, Person
from app.providers.common import ProviderAdapterResult, as_dict, as_list, as_str, now_ms, parse_json_or_raw

logger = logging.getLogger(__name__)

APIFY_BASE_URL = "https://api.apify.com/v2"

APOLLO_SCRAPER_ACTOR = "apify/apollo-io-scraper"
GOOGLE_SEARCH_SCRAPER_ACTOR = "apify/google-search-scraper"

_TERMINAL_FAILURE_STATUSES = {"FAILED", "ABORTED", "TIMED-OUT"}
_MAX_BACKOFF_SECONDS = 30.0


class ApifyActorError(RuntimeError):
    pass


async def sleep_with_jitter(base_seconds: float, jitter_seconds: float) -> None:
    await asyncio.sleep(base_seconds + random.uniform(0, jitter_seconds))


async def _backoff(attempt: int, base_seconds: float = 1.0) -> None:
    delay = min(base_seconds * (2**attempt), _MAX_BACKOFF_SECONDS) + random.uniform(0, 0.5)
    logger.warning("Apify rate limited (429), backing off", extra={"attempt": attempt + 1, "delay_seconds": delay})
    await asyncio.sleep(delay)


async def run_actor(
    client: httpx.AsyncClient,
    *,
    api_key: str,
    actor_id: str,
    actor_input: dict[str, Any],
    memory_mb: int = 256,
    timeout_seconds: int = 300,
    wait_for_finish_seconds: int = 120,
) -> list[dict[str, Any]]:
    """Start an actor run, poll it to completion and return its dataset items.

    Runs use the Apify proxy with concurrency 1. Raises ApifyActorError when
    the run cannot be started, ends in a failure state, or outlives
    ``wait_for_finish_seconds``.
    """
    path_actor_id = actor_id.replace("/", "~")
    start_res = await client.post(
        f"{APIFY_BASE_URL}/acts/{path_actor_id}/runs",
        params={"token": api_key},
        json={
            **actor_input,
            "proxyConfiguration": {"useApifyProxy": True},
            "maxConcurrency": 1,
            "memory": memory_mb,
            "timeout": timeout_seconds,
        },
    )
    if start_res.status_code >= 400:
        raise ApifyActorError(f"Apify actor start failed: {start_res.status_code}")
    run = as_dict(parse_json_or_raw(start_res.text, start_res.json).get("data"))
    run_id = as_str(run.get("id"))
    if not run_id:
        raise ApifyActorError("Apify actor start returned no run id")

    deadline = time.monotonic() + wait_for_finish_seconds
    attempt = 0
    while time.monotonic() < deadline:
        status_res = await client.get(f"{APIFY_BASE_URL}/actor-runs/{run_id}", params={"token": api_key})
        if status_res.status_code == 429:
            await _backoff(attempt)
            attempt += 1
            continue
        if status_res.status_code >= 400:
            raise ApifyActorError(f"Failed to get run status: {status_res.status_code}")

        run = as_dict(parse_json_or_raw(status_res.text, status_res.json).get("data"))
        status = run.get("status")
        if status == "SUCCEEDED":
            dataset_res = await client.get(
                f"{APIFY_BASE_URL}/datasets/{run.get('defaultDatasetId')}/items",
                params={"token": api_key},
            )
            if dataset_res.status_code >= 400:
                raise ApifyActorError(f"Failed to fetch Apify dataset: {dataset_res.status_code}")
            items = dataset_res.json()
            return [item for item in as_list(items) if isinstance(item, dict)]
        if status in _TERMINAL_FAILURE_STATUSES:
            raise ApifyActorError(f"Apify actor run {status}")

        await sleep_with_jitter(2.0, 1.0)
        attempt = 0

    raise ApifyActorError("Apify actor run timed out waiting for results")


def _first_str(raw: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = raw.get(key)
        if value is None or value == "":
            continue
        candidate = as_str(str(value))
        if candidate:
            return candidate
    return None


def normalize_apollo_scraper_result(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": _first_str(raw, "name", "fullName", "full_name") or "",
        "title": _first_str(raw, "title", "position", "headline") or "",
        "email": _first_str(raw, "email"),
        "linkedin": _first_str(raw, "linkedinUrl", "linkedin_url", "linkedin"),
        "source": "apify-apollo",
    }


_PIPE_SUFFIX = re.compile(r"\s*\|.*$")


def normalize_google_search_result(raw: dict[str, Any]) -> dict[str, Any]:
    # Result titles look like "Jane Doe - CEO - Acme | LinkedIn".
    parts = [part.strip() for part in str(raw.get("title") or "").split(" - ")]
    name = _PIPE_SUFFIX.sub("", parts[0]).strip() if parts else ""
    job_title = _PIPE_SUFFIX.sub("", parts[1]).strip() if len(parts) > 1 else ""
    return {
        "name": name,
        "title": job_title,
        "email": None,
        "linkedin": _first_str(raw, "url"),
        "source": "apify-google",
    }


def person_from_scraped(contact: dict[str, Any], company: Company) -> Person:
    email = contact.get("email") or ""
    return Person(
        id=f"person-apify-{now_ms()}-{uuid.uuid4().hex[:7]}",
        company=company.name,
        company_id=company.id,
        name=contact["name"],
        title=contact.get("title") or "",
        email=email,
        linkedin=contact.get("linkedin") or "",
        source="apify",
        verification_status="unverified",
        # Scraped emails still need verification.
        email_certainty=60 if email else 0,
        email_source=f"Apify ({contact.get('source')})" if email else "Needs email lookup",
        email_verified=False,
    )


async def search_apollo_via_scraper(
    *,
    api_key: str,
    domain: str,
    max_results: int = 10,
    wait_for_finish_seconds: int = 180,
) -> ProviderAdapterResult:
    start_ms = now_ms()
    try:
        async with httpx.AsyncClient(timeout=60.0) as client:
            items = await run_actor(
                client,
                api_key=api_key,
                actor_id=APOLLO_SCRAPER_ACTOR,
                actor_input={
                    "searchUrl": f"https://app.apollo.io/#/people?qOrganizationDomains[]={domain}",
                    "maxResults": max_results,
                },
                wait_for_finish_seconds=wait_for_finish_seconds,
            )
    except (ApifyActorError, httpx.HTTPError, ValueError) as exc:
        return {
            "attempt": {
                "provider": "apify",
                "action": "apollo_scraper",
                "status": "failed",
                "error": str(exc),
                "duration_ms": now_ms() - start_ms,
            },
            "mapped": [],
        }

    contacts = [contact for contact in map(normalize_apollo_scraper_result, items) if contact["name"]]
    return {
        "attempt": {
            "provider": "apify",
            "action": "apollo_scraper",
            "status": "found" if contacts else "not_found",
            "duration_ms": now_ms() - start_ms,
        },
        "mapped": contacts,
    }


async def google_search_contacts(
    *,
    api_key: str,
    company_name: str,
    target_roles: list[str],
    wait_for_finish_seconds: int = 60,
) -> ProviderAdapterResult:
    role_query = " OR ".join(f'"{role}"' for role in target_roles[:2])
    query = f'"{company_name}" {role_query} site:linkedin.com/in'
    start_ms = now_ms()
    try:
        async with httpx.AsyncClient(timeout=60.0) as client:
            items = await run_actor(
                client,
                api_key=api_key,
                actor_id=GOOGLE_SEARCH_SCRAPER_ACTOR,
                actor_input={
                    "queries": query,
                    "maxPagesPerQuery": 1,
                    "resultsPerPage": 10,
                    "mobileResults": False,
                },
                wait_for_finish_seconds=wait_for_finish_seconds,
            )
    except (ApifyActorError, httpx.HTTPError, ValueError) as exc:
        return {
            "attempt": {
                "provider": "apify",
                "action": "google_search_scraper",
                "status": "failed",
                "error": str(exc),
                "duration_ms": now_ms() - start_ms,
            },
            "mapped": [],
        }

    contacts = [
        contact
        for contact in (
            normalize_google_search_result(item) for item in items if "linkedin.com/in" in str(item.get("url") or "")
        )
        if contact["name"]
    ]
    return {
        "attempt": {
            "provider": "apify",
            "action": "google_search_scraper",
            "status": "found" if contacts else "not_found",
            "duration_ms": now_ms() - start_ms,
        },
        "mapped": contacts,
    }
