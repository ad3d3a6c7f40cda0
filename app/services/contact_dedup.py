from __future__ import annotations

import re

from app.contracts.contacts import Person

_NON_LETTERS = re.compile(r"[^a-z]")

# Trailing parts that follow a comma without inverting the name ("John Doe, Jr.").
_NAME_SUFFIXES = {"jr", "sr", "ii", "iii", "iv", "phd", "md", "mba"}


def _uninvert(name: str) -> str:
    # "O'Brien, Jane" -> "Jane O'Brien"
    parts = name.split(",")
    if len(parts) != 2:
        return name
    last, first = parts[0].strip(), parts[1].strip()
    if not last or not first or _NON_LETTERS.sub("", first.lower()) in _NAME_SUFFIXES:
        return name
    return f"{first} {last}"


def normalize_name(name: str) -> str:
    """Lowercase and drop everything outside a-z.

    Lossy on purpose: "O'Brien, Jane" and "jane obrien" both become "janeobrien",
    and two different people whose names strip to the same letters at the same
    company collapse into one record.
    """
    return _NON_LETTERS.sub("", _uninvert(name or "").lower())


def name_company_key(person: Person) -> str:
    return f"{normalize_name(person.name)}|{person.company_id}"


def completeness_score(person: Person) -> int:
    return (2 if person.email else 0) + (1 if person.linkedin else 0) + (1 if person.title else 0)


def should_replace(existing: Person, candidate: Person) -> bool:
    """True when ``candidate`` is a better record for the same person than ``existing``.

    Verified email wins, then higher email certainty, then the more complete
    record. Full ties keep ``existing``.
    """
    if candidate.email_verified and not existing.email_verified:
        return True
    if not candidate.email_verified and existing.email_verified:
        return False

    candidate_certainty = candidate.effective_email_certainty
    existing_certainty = existing.effective_email_certainty
    if candidate_certainty > existing_certainty:
        return True
    if candidate_certainty < existing_certainty:
        return False

    return completeness_score(candidate) > completeness_score(existing)


def dedupe_contacts(contacts: list[Person]) -> list[Person]:
    """Collapse records of the same person into one.

    Contacts with an email are keyed by lowercased email; contacts without one
    by normalized name + company id. An email-less record is dropped when an
    emailed record for the same name and company survived. Output keeps
    insertion order (emailed records first) and is not sorted.
    """
    by_email: dict[str, Person] = {}
    by_name_company: dict[str, Person] = {}

    for contact in contacts:
        if contact.email:
            key = contact.email.lower()
            bucket = by_email
        else:
            key = name_company_key(contact)
            bucket = by_name_company

        existing = bucket.get(key)
        if existing is None or should_replace(existing, contact):
            bucket[key] = contact

    emailed_keys = {name_company_key(contact) for contact in by_email.values()}

    result = list(by_email.values())
    for contact in by_name_company.values():
        if name_company_key(contact) in emailed_keys:
            continue
        result.append(contact)
    return result
