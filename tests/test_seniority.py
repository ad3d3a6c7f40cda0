from __future__ import annotations

import pytest

from app.contracts.contacts import Person
from app.services.seniority import (
    classify_seniority,
    count_at_or_above,
    min_seniority_rank,
    seniority_breakdown,
    seniority_rank,
    sort_contacts,
    with_seniority,
)


def _person(person_id: str, company_id: str, title: str = "", seniority: str | None = None) -> Person:
    return Person(
        id=person_id,
        company="Acme",
        company_id=company_id,
        name=f"Person {person_id}",
        title=title,
        seniority=seniority,
        source="apollo",
    )


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("Chief Executive Officer", "Executive"),
        ("Co-Founder & CTO", "Executive"),
        ("Senior Director of Sales", "Director"),
        ("VP of Marketing", "Director"),
        ("Head of Partnerships", "Director"),
        ("Executive Director", "Director"),
        ("Sr. Account Manager", "Manager"),
        ("Engineering Team Lead", "Manager"),
        ("Sales Executive", "Staff"),
        ("Jr. Analyst", "Staff"),
        ("Barista", "Unknown"),
        ("", "Unknown"),
    ],
)
def test_classify_seniority_first_match_wins(title: str, expected: str):
    assert classify_seniority(title) == expected


def test_keywords_match_on_word_boundaries_only():
    # "leader" and "directory" are not "lead" / "director".
    assert classify_seniority("Thought Leader") == "Unknown"
    assert classify_seniority("Directory Assistant") == "Staff"


def test_ranks_and_thresholds():
    assert [seniority_rank(t) for t in ("Executive", "Director", "Manager", "Staff", "Unknown", None)] == [
        4,
        3,
        2,
        1,
        0,
        0,
    ]
    assert min_seniority_rank("c-suite") == 4
    assert min_seniority_rank("director") == 3
    assert min_seniority_rank("senior") == 2
    assert min_seniority_rank("mid-senior") == 2
    assert min_seniority_rank("mid") == 0
    assert min_seniority_rank("junior") == 0
    assert min_seniority_rank("any") == 0
    assert min_seniority_rank("galactic-overlord") == 0


def test_with_seniority_keeps_provider_value():
    contacts = [
        _person("1", "A", title="CEO"),
        _person("2", "A", title="CEO", seniority="Staff"),
    ]

    result = with_seniority(contacts)

    assert [p.seniority for p in result] == ["Executive", "Staff"]
    assert contacts[0].seniority is None


def test_sort_groups_by_company_then_most_senior_first():
    contacts = with_seniority(
        [
            _person("b1", "B", title="Analyst"),
            _person("a2", "A", title="Sales Manager"),
            _person("a4", "A", title="CEO"),
        ]
    )

    result = sort_contacts(contacts)

    assert [(p.company_id, seniority_rank(p.seniority)) for p in result] == [("A", 4), ("A", 2), ("B", 1)]


def test_sort_is_stable_for_equal_company_and_rank():
    contacts = with_seniority(
        [
            _person("first", "A", title="Analyst"),
            _person("second", "A", title="Coordinator"),
            _person("third", "A", title="Specialist"),
        ]
    )

    assert [p.id for p in sort_contacts(contacts)] == ["first", "second", "third"]


def test_breakdown_and_threshold_count_do_not_drop_contacts():
    contacts = with_seniority(
        [
            _person("1", "A", title="CEO"),
            _person("2", "A", title="Analyst"),
            _person("3", "B", title="Analyst"),
            _person("4", "B", title="Barista"),
        ]
    )

    assert seniority_breakdown(contacts) == {"Executive": 1, "Staff": 2, "Unknown": 1}
    assert count_at_or_above(contacts, min_seniority_rank("c-suite")) == 1
    assert count_at_or_above(contacts, min_seniority_rank("any")) == 4
    assert len(contacts) == 4


def test_sort_orders_company_ids_case_insensitively():
    contacts = with_seniority(
        [
            _person("upper-b", "B", title="Analyst"),
            _person("lower-a", "a", title="Analyst"),
            _person("upper-a", "A", title="CEO"),
        ]
    )

    assert [p.id for p in sort_contacts(contacts)] == ["upper-a", "lower-a", "upper-b"]
