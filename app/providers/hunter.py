from __future__ import annotations

import uuid
from typing import Any

import httpx

from app.contracts.contacts import Company, Person
from app.providers.common import ProviderAdapterResult, as_dict, as_list, as_str, now_ms, parse_json_or_raw

HUNTER_DOMAIN_SEARCH_URL = "https://api.hunter.io/v2/domain-search"
HUNTER_VERIFIED_CONFIDENCE = 90


def _confidence(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def person_from_hunter(entry: dict[str, Any], company: Company) -> Person | None:
    """Canonical contact for one Hunter ``emails`` entry.

    Generic mailboxes (info@, sales@) and entries without any name are skipped.
    """
    if entry.get("type") == "generic":
        return None
    full_name = " ".join(part for part in (as_str(entry.get("first_name")), as_str(entry.get("last_name"))) if part)
    if not full_name:
        return None

    confidence = _confidence(entry.get("confidence"))
    verified = confidence >= HUNTER_VERIFIED_CONFIDENCE
    return Person(
        id=f"person-hunter-{now_ms()}-{uuid.uuid4().hex[:7]}",
        company=company.name,
        company_id=company.id,
        name=full_name,
        title=as_str(entry.get("position")) or as_str(entry.get("department")) or "Unknown",
        email=as_str(entry.get("value")) or "",
        linkedin=as_str(entry.get("linkedin")) or "",
        source="hunter",
        verification_status="verified" if verified else "unverified",
        email_certainty=confidence,
        email_source=f"Hunter ({confidence}% confidence)",
        email_verified=verified,
    )


async def domain_search(
    *,
    api_key: str,
    domain: str,
    limit: int = 10,
) -> ProviderAdapterResult:
    start_ms = now_ms()
    async with httpx.AsyncClient(timeout=30.0) as client:
        res = await client.get(
            HUNTER_DOMAIN_SEARCH_URL,
            params={"domain": domain, "api_key": api_key, "limit": str(limit)},
            headers={"Accept": "application/json"},
        )
        body = parse_json_or_raw(res.text, res.json)

    if res.status_code >= 400:
        return {
            "attempt": {
                "provider": "hunter",
                "action": "domain_search",
                "status": "failed",
                "http_status": res.status_code,
                "duration_ms": now_ms() - start_ms,
                "raw_response": body,
            },
            "mapped": [],
        }

    emails = [as_dict(item) for item in as_list(as_dict(body.get("data")).get("emails")) if isinstance(item, dict)]
    return {
        "attempt": {
            "provider": "hunter",
            "action": "domain_search",
            "status": "found" if emails else "not_found",
            "duration_ms": now_ms() - start_ms,
            "raw_response": body,
        },
        "mapped": emails,
    }
