from __future__ import annotations

import re
from collections import Counter

from app.contracts.contacts import Person, SeniorityTier

# Checked in order; the first tier whose pattern matches wins.
_TIER_PATTERNS: tuple[tuple[SeniorityTier, re.Pattern[str]], ...] = (
    (
        "Executive",
        re.compile(r"\b(ceo|cfo|coo|cmo|cto|cio|chief|president|founder|owner|partner|principal)\b"),
    ),
    (
        "Director",
        re.compile(r"\b(director|vp|vice president|head of|svp|evp|general manager|gm)\b"),
    ),
    (
        "Manager",
        re.compile(r"\b(manager|lead|supervisor|team lead|senior|sr\.?)\b"),
    ),
    (
        "Staff",
        re.compile(
            r"\b(associate|assistant|coordinator|specialist|analyst|executive|officer|representative|intern|junior|jr\.?)\b"
        ),
    ),
)

SENIORITY_RANKS: dict[str, int] = {
    "Executive": 4,
    "Director": 3,
    "Manager": 2,
    "Staff": 1,
    "Unknown": 0,
}

MIN_SENIORITY_RANKS: dict[str, int] = {
    "any": 0,
    "c-suite": 4,
    "director": 3,
    "senior": 2,
    "mid-senior": 2,
    "mid": 0,
    "junior": 0,
}


def classify_seniority(title: str | None) -> SeniorityTier:
    lowered = (title or "").lower()
    for tier, pattern in _TIER_PATTERNS:
        if pattern.search(lowered):
            return tier
    return "Unknown"


def seniority_rank(seniority: str | None) -> int:
    return SENIORITY_RANKS.get(seniority or "Unknown", 0)


def min_seniority_rank(target_seniority: str | None) -> int:
    return MIN_SENIORITY_RANKS.get(target_seniority or "any", 0)


def with_seniority(contacts: list[Person]) -> list[Person]:
    """Fill in seniority from the title where the provider did not set one."""
    return [
        contact if contact.seniority else contact.model_copy(update={"seniority": classify_seniority(contact.title)})
        for contact in contacts
    ]


def sort_contacts(contacts: list[Person]) -> list[Person]:
    """Group by company id (case-insensitive), most senior first within a company. Stable."""
    return sorted(contacts, key=lambda contact: (contact.company_id.casefold(), -seniority_rank(contact.seniority)))


def seniority_breakdown(contacts: list[Person]) -> dict[str, int]:
    return dict(Counter(contact.seniority or "Unknown" for contact in contacts))


def count_at_or_above(contacts: list[Person], minimum_rank: int) -> int:
    return sum(1 for contact in contacts if seniority_rank(contact.seniority) >= minimum_rank)
