from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from typing import Any

from pydantic import ValidationError

from app.contracts.contacts import Company, Person, ProjectContext
from app.contracts.research import ResearchedContact, ResearchResult
from app.providers import gemini, websearch
from app.providers.common import as_dict, as_list, as_str, now_ms
from app.services.provider_operations import DEFAULT_TARGET_ROLES, company_domain
from app.services.sse import format_sse_event

logger = logging.getLogger(__name__)

COMPANY_DELAY_SECONDS = 0.3
VERIFY_TOP_CONTACTS = 5
VERIFY_DELAY_SECONDS = 0.1


def person_from_researched_contact(raw: dict[str, Any]) -> Person | None:
    """Canonical contact for one AI-research contact.

    Research never finds emails. The model's seniority guess is not carried over;
    seniority is classified from the title like any other contact without one.
    """
    try:
        contact = ResearchedContact.model_validate(raw)
    except ValidationError:
        return None
    return Person(
        id=contact.id or f"ai-{now_ms()}-{uuid.uuid4().hex[:7]}",
        company=contact.company,
        company_id=contact.company_id,
        name=contact.name,
        title=contact.title,
        email="",
        linkedin=contact.linkedin_url,
        source="web_research",
        verification_status="verified" if contact.verified else "unverified",
        email_certainty=0,
        email_source="Needs email lookup",
        email_verified=False,
    )


def build_research_prompt(company: Company, domain: str, context: ProjectContext, target_roles: list[str]) -> str:
    return f"""You are researching contacts at "{company.name}" ({company.website or domain}) for a business outreach campaign.

## Target Profile
We're looking for people in these roles: {", ".join(target_roles)}

## Context
- Client: {context.client_name or "Not specified"}
- Product: {context.product or "Not specified"}
- Value Proposition: {context.value_proposition or "Not specified"}

## Your Task
Find 5-10 real people who work at {company.name} in senior or decision-making roles.

For each person, provide:
1. Full name (as found online)
2. Job title
3. LinkedIn URL (if known)
4. Seniority level: Executive, Director, Manager, Staff, or Unknown
5. Relevance score (1-10): how relevant they are to our target roles
6. Brief reasoning: why they might be a good contact for this outreach

## Important
- Only include REAL people you can verify from web sources
- Prioritize people who match our target roles
- If you can't find anyone, return an empty list

## Output Format
Return ONLY valid JSON (no markdown, no explanation):
{{
  "contacts": [
    {{
      "name": "Full Name",
      "title": "Job Title",
      "linkedinUrl": "https://linkedin.com/in/...",
      "seniority": "Executive",
      "relevanceScore": 9,
      "reasoning": "CEO, key decision maker for partnerships"
    }}
  ],
  "searchQueries": ["queries you used"]
}}"""


def researched_contacts_from_model(parsed: dict[str, Any], company: Company) -> list[ResearchedContact]:
    timestamp = now_ms()
    contacts: list[ResearchedContact] = []
    for idx, item in enumerate(as_list(parsed.get("contacts"))):
        item_dict = as_dict(item)
        name = as_str(item_dict.get("name"))
        if not name:
            continue
        try:
            contacts.append(
                ResearchedContact(
                    id=f"research-{company.id}-{idx}-{timestamp}",
                    company=company.name,
                    company_id=company.id,
                    name=name,
                    title=item_dict.get("title"),
                    linkedin_url="",
                    seniority=item_dict.get("seniority"),
                    relevance_score=item_dict.get("relevanceScore"),
                    reasoning=item_dict.get("reasoning"),
                )
            )
        except ValidationError:
            logger.debug("Skipping malformed researched contact", extra={"company": company.name, "index": idx})
    contacts.sort(key=lambda contact: contact.relevance_score, reverse=True)
    return contacts


async def verify_contact(contact: ResearchedContact, *, company_name: str, domain: str | None) -> None:
    """Fill LinkedIn URL, research sources and ``verified`` from a web search. Failures leave the contact as is."""
    try:
        verification = await websearch.research_contact(contact.name, company_name, domain)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Contact verification failed", extra={"contact": contact.name, "error": str(exc)})
        return
    if verification["linkedin_url"]:
        contact.linkedin_url = verification["linkedin_url"]
    contact.research_sources = verification["sources"]
    contact.verified = verification["verified"]


async def stream_research_contacts(
    *,
    companies: list[Company],
    context: ProjectContext,
    api_key: str,
    model: str,
) -> AsyncIterator[str]:
    """SSE frames for AI contact research, one ``company_done`` event per company."""
    target_roles = context.target_roles or DEFAULT_TARGET_ROLES
    valid_companies = [company for company in companies if company.verification_status != "failed"]
    total = len(valid_companies)
    all_results: list[ResearchResult] = []
    total_contacts = 0

    yield format_sse_event(
        "progress",
        {"phase": "starting", "message": f"Starting research for {total} companies...", "current": 0, "total": total},
    )

    for index, company in enumerate(valid_companies, start=1):
        domain = company_domain(company) or company.name.lower().replace(" ", "")
        yield format_sse_event(
            "progress",
            {
                "phase": "searching",
                "message": f"Searching for contacts at {company.name}...",
                "company": company.name,
                "current": index,
                "total": total,
            },
        )
        yield format_sse_event(
            "progress",
            {
                "phase": "analyzing",
                "message": f"AI analyzing {company.name}...",
                "company": company.name,
                "current": index,
                "total": total,
            },
        )

        try:
            result = await gemini.generate_json(
                api_key=api_key,
                model=model,
                prompt=build_research_prompt(company, domain, context, target_roles),
                action="research_contacts",
            )
            parsed = result["mapped"]
            contacts = researched_contacts_from_model(parsed, company) if parsed is not None else None
        except Exception as exc:  # noqa: BLE001
            logger.warning("Contact research failed", extra={"company": company.name, "error": str(exc)})
            yield format_sse_event(
                "progress",
                {
                    "phase": "error",
                    "message": f"Couldn't research {company.name}, skipping...",
                    "company": company.name,
                    "current": index,
                    "total": total,
                },
            )
            continue

        if contacts is None:
            logger.warning(
                "Failed to parse research response",
                extra={"company": company.name, "attempt_status": result["attempt"].get("status")},
            )
            continue

        yield format_sse_event(
            "progress",
            {
                "phase": "verifying",
                "message": f"Verifying contacts at {company.name}...",
                "company": company.name,
                "current": index,
                "total": total,
            },
        )
        for contact in contacts[:VERIFY_TOP_CONTACTS]:
            await verify_contact(contact, company_name=company.name, domain=domain)
            await asyncio.sleep(VERIFY_DELAY_SECONDS)

        company_result = ResearchResult(
            company_id=company.id,
            company_name=company.name,
            contacts=contacts,
            search_queries=[query for query in as_list(parsed.get("searchQueries")) if isinstance(query, str)],
        )
        all_results.append(company_result)
        total_contacts += len(contacts)

        yield format_sse_event(
            "company_done",
            {
                "phase": "company_done",
                "message": f"Found {len(contacts)} contacts at {company.name}",
                "company": company.name,
                "contactsFound": len(contacts),
                "current": index,
                "total": total,
                "result": company_result.model_dump(mode="json", by_alias=True, exclude_none=True),
            },
        )
        await asyncio.sleep(COMPANY_DELAY_SECONDS)

    yield format_sse_event(
        "complete",
        {
            "results": [item.model_dump(mode="json", by_alias=True, exclude_none=True) for item in all_results],
            "summary": {"companiesProcessed": total, "contactsFound": total_contacts},
        },
    )
