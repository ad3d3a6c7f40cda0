from __future__ import annotations

import asyncio
import logging

import httpx

from app.config import get_settings
from app.contracts.contacts import Company, Person, ProjectContext, ProviderContactsOutput, ProviderSummary
from app.providers import apify, apollo, hunter
from app.providers.common import domain_from_website
from app.utils.exceptions import ProviderAuthError, ProviderRequestError

logger = logging.getLogger(__name__)

DEFAULT_TARGET_ROLES = ["CEO", "Managing Director", "Sales Director", "Business Development"]
HUNTER_DEFAULT_TARGET_ROLES = ["CEO", "Managing Director", "Sales Director"]
HUNTER_SENIOR_LEVELS = {"executive", "senior", "director"}
HUNTER_MIN_CONTACTS_PER_COMPANY = 3

APOLLO_REQUEST_DELAY_SECONDS = 0.2
HUNTER_REQUEST_DELAY_SECONDS = 0.3
RATE_LIMIT_WAIT_SECONDS = 1.0


def company_domain(company: Company) -> str | None:
    return company.domain.strip() or domain_from_website(company.website)


async def execute_find_contacts_apollo(
    *,
    companies: list[Company],
    context: ProjectContext,
    api_key: str,
) -> ProviderContactsOutput:
    if not companies:
        return ProviderContactsOutput(persons=[], summary=ProviderSummary())

    person_titles = context.target_roles or DEFAULT_TARGET_ROLES
    persons: list[Person] = []
    credits_used = 0

    for company in companies:
        domain = company_domain(company)
        if not domain:
            continue
        try:
            result = await apollo.search_people(api_key=api_key, domain=domain, person_titles=person_titles)
        except httpx.HTTPError as exc:
            logger.warning("Apollo request failed", extra={"company": company.name, "error": str(exc)})
            continue

        attempt = result["attempt"]
        if attempt["status"] == "failed":
            http_status = attempt.get("http_status")
            logger.warning(
                "Apollo API error",
                extra={"company": company.name, "http_status": http_status, "raw_response": attempt.get("raw_response")},
            )
            if http_status == 401:
                raise ProviderAuthError("Apollo")
            if http_status == 422:
                raise ProviderRequestError(
                    "Apollo API request failed. The endpoint or request format may have changed."
                )
            if http_status == 429:
                await asyncio.sleep(RATE_LIMIT_WAIT_SECONDS)
            continue

        credits_used += 1
        for raw_person in result["mapped"]:
            person = apollo.person_from_apollo(raw_person, company)
            if person is not None:
                persons.append(person)

        await asyncio.sleep(APOLLO_REQUEST_DELAY_SECONDS)

    seen: set[str] = set()
    unique_persons: list[Person] = []
    for person in persons:
        key = f"{person.name.lower()}-{person.company_id}"
        if key in seen:
            continue
        seen.add(key)
        unique_persons.append(person)

    return ProviderContactsOutput(
        persons=unique_persons,
        summary=ProviderSummary(
            companies_processed=len(companies),
            contacts_found=len(unique_persons),
            credits_used=credits_used,
        ),
    )


def _is_relevant_hunter_contact(person: Person, hunter_seniority: str | None, target_roles: list[str]) -> bool:
    title = person.title.lower()
    if any(role.lower() in title for role in target_roles):
        return True
    return bool(hunter_seniority) and hunter_seniority.lower() in HUNTER_SENIOR_LEVELS


async def execute_find_contacts_hunter(
    *,
    companies: list[Company],
    context: ProjectContext,
    api_key: str,
) -> ProviderContactsOutput:
    if not companies:
        return ProviderContactsOutput(persons=[], summary=ProviderSummary())

    target_roles = context.target_roles or HUNTER_DEFAULT_TARGET_ROLES
    persons: list[Person] = []
    credits_used = 0

    for company in companies:
        domain = company_domain(company)
        if not domain:
            continue
        try:
            result = await hunter.domain_search(api_key=api_key, domain=domain)
        except httpx.HTTPError as exc:
            logger.warning("Hunter request failed", extra={"company": company.name, "error": str(exc)})
            continue

        attempt = result["attempt"]
        if attempt["status"] == "failed":
            http_status = attempt.get("http_status")
            logger.warning("Hunter API error", extra={"company": company.name, "http_status": http_status})
            if http_status == 401:
                raise ProviderAuthError("Hunter")
            if http_status == 429:
                await asyncio.sleep(RATE_LIMIT_WAIT_SECONDS)
            continue

        credits_used += 1
        kept_for_company = 0
        for entry in result["mapped"]:
            person = hunter.person_from_hunter(entry, company)
            if person is None:
                continue
            # Keep target-role matches, and top up small companies to a few contacts regardless.
            hunter_seniority = entry.get("seniority") if isinstance(entry.get("seniority"), str) else None
            if (
                _is_relevant_hunter_contact(person, hunter_seniority, target_roles)
                or kept_for_company < HUNTER_MIN_CONTACTS_PER_COMPANY
            ):
                persons.append(person)
                kept_for_company += 1

        await asyncio.sleep(HUNTER_REQUEST_DELAY_SECONDS)

    return ProviderContactsOutput(
        persons=persons,
        summary=ProviderSummary(
            companies_processed=len(companies),
            contacts_found=len(persons),
            credits_used=credits_used,
        ),
    )


async def execute_find_contacts_apify(
    *,
    companies: list[Company],
    context: ProjectContext,
    api_key: str,
) -> ProviderContactsOutput:
    if not companies:
        return ProviderContactsOutput(persons=[], summary=ProviderSummary(actor_runs_used=0))

    settings = get_settings()
    target_roles = context.target_roles or DEFAULT_TARGET_ROLES
    persons: list[Person] = []
    actor_runs_used = 0

    for company in companies:
        domain = company_domain(company)
        if not domain:
            continue

        logger.info("Searching Apollo scraper", extra={"company": company.name, "domain": domain})
        result = await apify.search_apollo_via_scraper(
            api_key=api_key,
            domain=domain,
            wait_for_finish_seconds=settings.apify_apollo_scraper_wait_seconds,
        )
        actor_runs_used += 1

        if not result["mapped"]:
            logger.info("No Apollo scraper results, trying Google search", extra={"company": company.name})
            result = await apify.google_search_contacts(
                api_key=api_key,
                company_name=company.name,
                target_roles=target_roles,
                wait_for_finish_seconds=settings.apify_google_search_wait_seconds,
            )
            actor_runs_used += 1

        for contact in result["mapped"]:
            persons.append(apify.person_from_scraped(contact, company))
        logger.info(
            "Apify contacts found",
            extra={"company": company.name, "action": result["attempt"]["action"], "count": len(result["mapped"])},
        )

        await apify.sleep_with_jitter(0.5, 0.3)

    return ProviderContactsOutput(
        persons=persons,
        summary=ProviderSummary(
            companies_processed=len(companies),
            contacts_found=len(persons),
            actor_runs_used=actor_runs_used,
        ),
    )
