from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable
from typing import Any

import httpx
from pydantic import ValidationError

from app.config import Settings, get_settings
from app.contracts.contacts import (
    CreditsUsed,
    FindContactsSelectedRequest,
    FindContactsSelectedResponse,
    FindContactsSelectedSummary,
    Person,
    ProviderResponse,
    ProviderResult,
    ProviderSelection,
    ProviderSummary,
)
from app.providers.common import as_dict, as_list, as_str, parse_json_or_raw
from app.services.contact_dedup import dedupe_contacts
from app.services.contact_research import person_from_researched_contact
from app.services.seniority import (
    count_at_or_above,
    min_seniority_rank,
    seniority_breakdown,
    sort_contacts,
    with_seniority,
)
from app.services.sse import SSELineBuffer, parse_data_line

logger = logging.getLogger(__name__)

AI_SEARCH = "aiSearch"

PROVIDER_ENDPOINTS: dict[str, str] = {
    "apollo": "/api/find-contacts-apollo",
    "hunter": "/api/find-contacts-hunter",
    "apify": "/api/find-contacts-apify",
    AI_SEARCH: "/api/research-contacts",
}

APIFY_CREDITS_PER_ACTOR_RUN = 0.02
NO_PROVIDERS_ERROR = "No providers selected or configured. Enable at least one provider."


def enabled_providers(selection: ProviderSelection, settings: Settings) -> list[str]:
    """Providers that are both switched on by the caller and have a configured key."""
    candidates = (
        ("apollo", selection.apollo, settings.apollo_api_key),
        ("hunter", selection.hunter, settings.hunter_api_key),
        ("apify", selection.apify, settings.apify_api_key),
        (AI_SEARCH, selection.ai_search, settings.google_api_key),
    )
    return [name for name, enabled, api_key in candidates if enabled and api_key]


def apify_credits(actor_runs_used: int) -> float:
    return round(actor_runs_used * APIFY_CREDITS_PER_ACTOR_RUN, 4)


def credits_for(provider: str, response: ProviderResponse) -> int | float:
    if provider in {"apollo", "hunter"}:
        return response.summary.credits_used or len(response.persons)
    if provider == "apify":
        return apify_credits(response.summary.actor_runs_used or 0)
    # AI search is free; the count is reported for visibility only.
    return len(response.persons)


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def provider_response_from_body(provider: str, body: dict[str, Any]) -> ProviderResponse:
    """Provider response with invalid contact records skipped one by one."""
    persons: list[Person] = []
    for index, raw_person in enumerate(as_list(body.get("persons"))):
        try:
            persons.append(Person.model_validate(raw_person))
        except ValidationError as exc:
            logger.warning(
                "Skipping invalid provider contact",
                extra={"provider": provider, "index": index, "error": str(exc)},
            )

    try:
        summary = ProviderSummary.model_validate(as_dict(body.get("summary")))
    except ValidationError as exc:
        logger.warning("Ignoring invalid provider summary", extra={"provider": provider, "error": str(exc)})
        summary = ProviderSummary()

    error = body.get("error")
    return ProviderResponse(
        persons=persons,
        summary=summary,
        error=str(error) if error else None,
    )


async def call_provider(
    *,
    provider: str,
    url: str,
    payload: dict[str, Any],
    timeout: float,
) -> ProviderResponse:
    """POST ``payload`` to one provider endpoint. Never raises; failures come back as ``error``."""
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            res = await client.post(url, json=payload)
        if not _is_success(res.status_code):
            body = parse_json_or_raw(res.text, res.json)
            return ProviderResponse(error=as_str(body.get("error")) or f"HTTP {res.status_code}")
        return provider_response_from_body(provider, as_dict(res.json()))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Provider call failed", extra={"provider": provider, "error": _error_message(exc)})
        return ProviderResponse(error=_error_message(exc))


async def collect_research_persons(chunks: AsyncIterable[bytes]) -> list[Person]:
    """Contacts carried by ``result.contacts`` in an AI-research SSE stream.

    Lines that are not ``data:`` frames, or whose JSON does not parse, are skipped.
    """
    buffer = SSELineBuffer()
    persons: list[Person] = []

    def _consume(lines: list[str]) -> None:
        for line in lines:
            event = parse_data_line(line)
            if event is None:
                continue
            contacts = as_dict(event.get("result")).get("contacts")
            if not isinstance(contacts, list):
                continue
            for raw_contact in as_list(contacts):
                person = person_from_researched_contact(as_dict(raw_contact))
                if person is not None:
                    persons.append(person)

    async for chunk in chunks:
        _consume(buffer.feed(chunk))
    _consume(buffer.flush())
    return persons


async def call_ai_search(
    *,
    url: str,
    payload: dict[str, Any],
    timeout: float,
    companies_count: int,
) -> ProviderResponse:
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            async with client.stream("POST", url, json=payload) as res:
                if not _is_success(res.status_code):
                    return ProviderResponse(error=f"HTTP {res.status_code}")
                persons = await collect_research_persons(res.aiter_bytes())
    except Exception as exc:  # noqa: BLE001
        logger.warning("Provider call failed", extra={"provider": AI_SEARCH, "error": _error_message(exc)})
        return ProviderResponse(error=_error_message(exc))

    return ProviderResponse(
        persons=persons,
        summary=ProviderSummary(companies_processed=companies_count, contacts_found=len(persons)),
    )


async def execute_find_contacts_selected(
    *,
    request_data: FindContactsSelectedRequest,
    base_url: str,
) -> FindContactsSelectedResponse:
    """Run every enabled provider in parallel and merge their contacts.

    One provider failing never affects the others: its error is recorded in
    ``provider_results`` and it contributes no contacts and no credits.
    """
    if not request_data.companies:
        return FindContactsSelectedResponse()

    settings = get_settings()
    providers = enabled_providers(request_data.providers, settings)
    if not providers:
        return FindContactsSelectedResponse(error=NO_PROVIDERS_ERROR)

    root = settings.provider_base_url or base_url.rstrip("/")
    payload = {
        "companies": [company.model_dump(mode="json", by_alias=True) for company in request_data.companies],
        "context": request_data.context.model_dump(mode="json", by_alias=True),
    }
    timeout = settings.provider_call_timeout_seconds

    calls = []
    for provider in providers:
        url = f"{root}{PROVIDER_ENDPOINTS[provider]}"
        if provider == AI_SEARCH:
            calls.append(
                call_ai_search(url=url, payload=payload, timeout=timeout, companies_count=len(request_data.companies))
            )
        else:
            calls.append(call_provider(provider=provider, url=url, payload=payload, timeout=timeout))

    logger.info("Running providers in parallel", extra={"providers": providers})
    settled = await asyncio.gather(*calls, return_exceptions=True)

    credits_used = CreditsUsed()
    provider_results: dict[str, ProviderResult] = {}
    all_persons: list[Person] = []

    for provider, outcome in zip(providers, settled):
        if isinstance(outcome, BaseException):
            response = ProviderResponse(error=_error_message(outcome))
        else:
            response = outcome

        if response.error:
            provider_results[provider] = ProviderResult(found=0, errors=response.error)
            continue

        setattr(credits_used, "ai_search" if provider == AI_SEARCH else provider, credits_for(provider, response))
        provider_results[provider] = ProviderResult(found=len(response.persons))
        all_persons.extend(response.persons)
        logger.info("Provider contacts received", extra={"provider": provider, "count": len(response.persons)})

    deduped = dedupe_contacts(all_persons)
    logger.info("Contacts deduplicated", extra={"before": len(all_persons), "after": len(deduped)})

    persons = sort_contacts(with_seniority(deduped))

    target_seniority = request_data.context.target_seniority
    minimum_rank = min_seniority_rank(target_seniority)
    breakdown = seniority_breakdown(persons)
    meets_minimum = count_at_or_above(persons, minimum_rank)
    logger.info(
        "Seniority breakdown",
        extra={"breakdown": breakdown, "min_seniority_rank": minimum_rank, "meets_min_seniority": meets_minimum},
    )

    return FindContactsSelectedResponse(
        persons=persons,
        credits_used=credits_used,
        provider_results=provider_results,
        summary=FindContactsSelectedSummary(
            companies_processed=len(request_data.companies),
            contacts_found=len(persons),
            providers_used=[name for name, result in provider_results.items() if result.found > 0],
            seniority_breakdown=breakdown,
            target_seniority=target_seniority,
            min_seniority_rank=minimum_rank,
            meets_min_seniority=meets_minimum,
        ),
    )
