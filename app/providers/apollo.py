from __future__ import annotations

import uuid
from typing import Any

import httpx

from app.contracts.contacts import Company, Person
from app.providers.common import ProviderAdapterResult, as_dict, as_list, as_str, now_ms, parse_json_or_raw

APOLLO_PEOPLE_SEARCH_URL = "https://api.apollo.io/api/v1/mixed_people/api_search"

# Apollo's own email_status values mapped to our certainty / source label.
_EMAIL_STATUS_CERTAINTY: dict[str, tuple[int, str]] = {
    "verified": (100, "Apollo verified"),
    "guessed": (75, "Apollo pattern"),
}


def _full_name(person: dict[str, Any]) -> str | None:
    first_name = as_str(person.get("first_name"))
    last_name = as_str(person.get("last_name"))
    if first_name and last_name:
        return f"{first_name} {last_name}"
    return as_str(person.get("name")) or first_name


def person_from_apollo(person: dict[str, Any], company: Company) -> Person | None:
    """Canonical contact for one Apollo ``people`` entry; None when it has no usable name."""
    full_name = _full_name(person)
    if not full_name:
        return None

    email = as_str(person.get("email")) or ""
    email_status = as_str(person.get("email_status"))
    email_certainty = 0
    email_source = ""
    if email:
        email_certainty, email_source = _EMAIL_STATUS_CERTAINTY.get(email_status or "", (60, "Apollo"))

    source_id = as_str(person.get("id")) or str(now_ms())
    return Person(
        id=f"person-apollo-{source_id}-{uuid.uuid4().hex[:7]}",
        company=company.name,
        company_id=company.id,
        name=full_name,
        title=as_str(person.get("title")) or "",
        email=email,
        linkedin=as_str(person.get("linkedin_url")) or "",
        source="apollo",
        verification_status="verified" if email_status == "verified" else "unverified",
        email_certainty=email_certainty,
        email_source=email_source,
        email_verified=email_status == "verified",
    )


async def search_people(
    *,
    api_key: str,
    domain: str,
    person_titles: list[str],
    per_page: int = 5,
) -> ProviderAdapterResult:
    start_ms = now_ms()
    async with httpx.AsyncClient(timeout=30.0) as client:
        res = await client.post(
            APOLLO_PEOPLE_SEARCH_URL,
            headers={
                "Content-Type": "application/json",
                "Cache-Control": "no-cache",
                "X-Api-Key": api_key,
            },
            json={
                # Apollo expects a single domain string here, not a list.
                "q_organization_domains": domain,
                "person_titles": person_titles,
                "page": 1,
                "per_page": per_page,
            },
        )
        body = parse_json_or_raw(res.text, res.json)

    if res.status_code >= 400:
        return {
            "attempt": {
                "provider": "apollo",
                "action": "people_search",
                "status": "failed",
                "http_status": res.status_code,
                "duration_ms": now_ms() - start_ms,
                "raw_response": body,
            },
            "mapped": [],
        }

    people = [as_dict(item) for item in as_list(body.get("people")) if isinstance(item, dict)]
    return {
        "attempt": {
            "provider": "apollo",
            "action": "people_search",
            "status": "found" if people else "not_found",
            "duration_ms": now_ms() - start_ms,
            "raw_response": body,
        },
        "mapped": people,
    }
