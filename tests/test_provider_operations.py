from __future__ import annotations

from typing import Any

import pytest

from app.contracts.contacts import Company, ProjectContext
from app.services import provider_operations
from app.utils.exceptions import ProviderAuthError, ProviderRequestError

_COMPANIES = [
    Company(id="c1", name="Acme", domain="acme.com"),
    Company(id="c2", name="Globex", website="https://www.globex.com"),
    Company(id="c3", name="No Website"),
]


async def _no_sleep(delay: float) -> None:
    _ = delay


@pytest.fixture(autouse=True)
def _skip_delays(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(provider_operations.asyncio, "sleep", _no_sleep)


def _apollo_found(people: list[dict[str, Any]]) -> dict[str, Any]:
    return {"attempt": {"provider": "apollo", "action": "people_search", "status": "found"}, "mapped": people}


@pytest.mark.asyncio
async def test_apollo_searches_each_company_with_a_domain(monkeypatch: pytest.MonkeyPatch):
    seen_domains: list[str] = []

    async def _stub_search(**kwargs):
        seen_domains.append(kwargs["domain"])
        assert kwargs["person_titles"] == ["Head of Sales"]
        return _apollo_found(
            [
                {"id": "1", "first_name": "Ada", "last_name": "Lovelace", "title": "CEO", "email": "ada@x.com", "email_status": "verified"},
                {"id": "2", "name": "Ada Lovelace", "title": "CEO"},
                {"id": "3", "title": "Nameless"},
            ]
        )

    monkeypatch.setattr(provider_operations.apollo, "search_people", _stub_search)

    result = await provider_operations.execute_find_contacts_apollo(
        companies=_COMPANIES,
        context=ProjectContext(target_roles=["Head of Sales"]),
        api_key="apollo-key",
    )

    assert seen_domains == ["acme.com", "globex.com"]
    # Same name at the same company is kept once; nameless entries are dropped.
    assert [(p.name, p.company_id) for p in result.persons] == [("Ada Lovelace", "c1"), ("Ada Lovelace", "c2")]
    assert result.persons[0].email_certainty == 100
    assert result.persons[0].email_verified is True
    assert result.summary.credits_used == 2
    assert result.summary.companies_processed == 3
    assert result.summary.contacts_found == 2


@pytest.mark.asyncio
async def test_apollo_uses_default_titles_without_target_roles(monkeypatch: pytest.MonkeyPatch):
    seen_titles: list[list[str]] = []

    async def _stub_search(**kwargs):
        seen_titles.append(kwargs["person_titles"])
        return _apollo_found([])

    monkeypatch.setattr(provider_operations.apollo, "search_people", _stub_search)

    await provider_operations.execute_find_contacts_apollo(
        companies=_COMPANIES[:1], context=ProjectContext(), api_key="apollo-key"
    )

    assert seen_titles == [provider_operations.DEFAULT_TARGET_ROLES]


@pytest.mark.asyncio
async def test_apollo_invalid_key_aborts(monkeypatch: pytest.MonkeyPatch):
    async def _stub_search(**kwargs):
        _ = kwargs
        return {"attempt": {"provider": "apollo", "status": "failed", "http_status": 401}, "mapped": []}

    monkeypatch.setattr(provider_operations.apollo, "search_people", _stub_search)

    with pytest.raises(ProviderAuthError) as exc_info:
        await provider_operations.execute_find_contacts_apollo(
            companies=_COMPANIES, context=ProjectContext(), api_key="bad"
        )

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Invalid Apollo API key"


@pytest.mark.asyncio
async def test_apollo_request_format_error_aborts(monkeypatch: pytest.MonkeyPatch):
    async def _stub_search(**kwargs):
        _ = kwargs
        return {"attempt": {"provider": "apollo", "status": "failed", "http_status": 422}, "mapped": []}

    monkeypatch.setattr(provider_operations.apollo, "search_people", _stub_search)

    with pytest.raises(ProviderRequestError):
        await provider_operations.execute_find_contacts_apollo(
            companies=_COMPANIES, context=ProjectContext(), api_key="apollo-key"
        )


@pytest.mark.asyncio
async def test_apollo_rate_limited_company_is_skipped_without_credit(monkeypatch: pytest.MonkeyPatch):
    responses = [
        {"attempt": {"provider": "apollo", "status": "failed", "http_status": 429}, "mapped": []},
        _apollo_found([{"id": "9", "first_name": "Grace", "last_name": "Hopper", "title": "CTO"}]),
    ]

    async def _stub_search(**kwargs):
        _ = kwargs
        return responses.pop(0)

    monkeypatch.setattr(provider_operations.apollo, "search_people", _stub_search)

    result = await provider_operations.execute_find_contacts_apollo(
        companies=_COMPANIES, context=ProjectContext(), api_key="apollo-key"
    )

    assert [p.company_id for p in result.persons] == ["c2"]
    assert result.summary.credits_used == 1


def _hunter_entry(first: str, last: str, position: str, **overrides: Any) -> dict[str, Any]:
    entry = {
        "value": f"{first.lower()}@acme.com",
        "type": "personal",
        "confidence": 80,
        "first_name": first,
        "last_name": last,
        "position": position,
        "seniority": None,
        "department": None,
        "linkedin": None,
    }
    entry.update(overrides)
    return entry


@pytest.mark.asyncio
async def test_hunter_keeps_relevant_roles_and_tops_up_to_three(monkeypatch: pytest.MonkeyPatch):
    async def _stub_domain_search(**kwargs):
        assert kwargs["domain"] == "acme.com"
        return {
            "attempt": {"provider": "hunter", "action": "domain_search", "status": "found"},
            "mapped": [
                _hunter_entry("Info", "", "", type="generic"),
                _hunter_entry("Ann", "A", "Accountant"),
                _hunter_entry("Ben", "B", "Designer"),
                _hunter_entry("Cat", "C", "Engineer"),
                _hunter_entry("Dan", "D", "Support"),
                _hunter_entry("Eve", "E", "Chief Executive Officer", confidence=95),
                _hunter_entry("Fay", "F", "Ops", seniority="executive"),
            ],
        }

    monkeypatch.setattr(provider_operations.hunter, "domain_search", _stub_domain_search)

    result = await provider_operations.execute_find_contacts_hunter(
        companies=_COMPANIES[:1],
        context=ProjectContext(target_roles=["Chief Executive"]),
        api_key="hunter-key",
    )

    assert [p.name for p in result.persons] == ["Ann A", "Ben B", "Cat C", "Eve E", "Fay F"]
    eve = result.persons[3]
    assert eve.email_verified is True
    assert eve.verification_status == "verified"
    assert eve.email_certainty == 95
    assert result.persons[0].email_verified is False
    assert result.summary.credits_used == 1


@pytest.mark.asyncio
async def test_hunter_invalid_key_aborts(monkeypatch: pytest.MonkeyPatch):
    async def _stub_domain_search(**kwargs):
        _ = kwargs
        return {"attempt": {"provider": "hunter", "status": "failed", "http_status": 401}, "mapped": []}

    monkeypatch.setattr(provider_operations.hunter, "domain_search", _stub_domain_search)

    with pytest.raises(ProviderAuthError):
        await provider_operations.execute_find_contacts_hunter(
            companies=_COMPANIES, context=ProjectContext(), api_key="bad"
        )


@pytest.mark.asyncio
async def test_apify_falls_back_to_google_and_counts_actor_runs(monkeypatch: pytest.MonkeyPatch):
    calls: list[str] = []

    async def _stub_apollo_scraper(**kwargs):
        calls.append(f"apollo:{kwargs['domain']}")
        if kwargs["domain"] == "acme.com":
            return {
                "attempt": {"provider": "apify", "action": "apollo_scraper", "status": "found"},
                "mapped": [
                    {"name": "Ada Lovelace", "title": "CEO", "email": "ada@acme.com", "linkedin": None, "source": "apify-apollo"}
                ],
            }
        return {"attempt": {"provider": "apify", "action": "apollo_scraper", "status": "not_found"}, "mapped": []}

    async def _stub_google(**kwargs):
        calls.append(f"google:{kwargs['company_name']}")
        return {"attempt": {"provider": "apify", "action": "google_search_scraper", "status": "not_found"}, "mapped": []}

    async def _stub_jitter(base_seconds: float, jitter_seconds: float) -> None:
        _ = (base_seconds, jitter_seconds)

    monkeypatch.setattr(provider_operations.apify, "search_apollo_via_scraper", _stub_apollo_scraper)
    monkeypatch.setattr(provider_operations.apify, "google_search_contacts", _stub_google)
    monkeypatch.setattr(provider_operations.apify, "sleep_with_jitter", _stub_jitter)

    result = await provider_operations.execute_find_contacts_apify(
        companies=_COMPANIES, context=ProjectContext(), api_key="apify-key"
    )

    assert calls == ["apollo:acme.com", "apollo:globex.com", "google:Globex"]
    assert result.summary.actor_runs_used == 3
    assert len(result.persons) == 1
    ada = result.persons[0]
    assert ada.source == "apify"
    assert ada.email_certainty == 60
    assert ada.email_verified is False
    assert ada.email_source == "Apify (apify-apollo)"


@pytest.mark.asyncio
async def test_empty_company_list_returns_empty_summary():
    result = await provider_operations.execute_find_contacts_apify(
        companies=[], context=ProjectContext(), api_key="apify-key"
    )

    assert result.persons == []
    assert result.summary.actor_runs_used == 0
