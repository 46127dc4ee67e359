from datetime import datetime, timedelta, timezone

import pytest

from app.assignments.targeting import is_actionable, is_visible, parse_deadline

CSE_2_1 = {
    "target_branches": ["CSE"],
    "target_years": ["2"],
    "target_semesters": ["1"],
    "target_sections": [],
}


def test_empty_sections_means_every_section():
    student = {"branch_id": "CSE", "year": 2, "semester": 1, "section": "B"}
    assert is_visible(CSE_2_1, student)


def test_branch_mismatch_hides_assignment():
    student = {"branch_id": "ECE", "year": 2, "semester": 1, "section": "B"}
    assert not is_visible(CSE_2_1, student)


@pytest.mark.parametrize("field,value", [("year", 3), ("semester", 2)])
def test_year_or_semester_mismatch_hides_assignment(field, value):
    student = {"branch_id": "CSE", "year": 2, "semester": 1, "section": "B", field: value}
    assert not is_visible(CSE_2_1, student)


def test_sections_restrict_when_given():
    assignment = {**CSE_2_1, "target_sections": ["A", "C"]}
    assert is_visible(assignment, {"branch_id": "CSE", "year": 2, "semester": 1, "section": "a"})
    assert not is_visible(assignment, {"branch_id": "CSE", "year": 2, "semester": 1, "section": "B"})


def test_years_compare_as_strings_on_both_sides():
    assignment = {**CSE_2_1, "target_years": [2], "target_semesters": [1]}
    assert is_visible(assignment, {"branch_id": "CSE", "year": "2", "semester": "1", "section": "A"})


def test_independent_sets_allow_cross_combinations():
    assignment = {
        "target_branches": ["CSE", "ECE"],
        "target_years": ["2", "3"],
        "target_semesters": ["1"],
        "target_sections": [],
    }
    # ECE year 3 was never meant as a pair, but each attribute matches on its own
    assert is_visible(assignment, {"branch_id": "ECE", "year": 3, "semester": 1, "section": "A"})


def test_target_classes_match_exact_tuples():
    assignment = {
        "target_branches": ["CSE", "ECE"],
        "target_years": ["2", "3"],
        "target_semesters": ["1"],
        "target_classes": [
            {"branch_id": "CSE", "year": "2", "semester": "1", "section": None},
            {"branch_id": "ECE", "year": "3", "semester": "1", "section": "A"},
        ],
    }
    assert is_visible(assignment, {"branch_id": "CSE", "year": 2, "semester": 1, "section": "D"})
    assert is_visible(assignment, {"branch_id": "ECE", "year": 3, "semester": 1, "section": "A"})
    assert not is_visible(assignment, {"branch_id": "ECE", "year": 3, "semester": 1, "section": "B"})
    assert not is_visible(assignment, {"branch_id": "ECE", "year": 2, "semester": 1, "section": "A"})


def test_no_targeting_reaches_nobody():
    assert not is_visible({}, {"branch_id": "CSE", "year": 2, "semester": 1, "section": "A"})


def test_actionable_until_deadline():
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    assignment = {"deadline": now + timedelta(minutes=1)}
    assert is_actionable(assignment, now)
    assert not is_actionable(assignment, now + timedelta(minutes=1))
    assert not is_actionable(assignment, now + timedelta(days=1))


def test_missing_deadline_is_not_actionable():
    assert not is_actionable({"deadline": None})


@pytest.mark.parametrize("value", [
    "2026-03-01T12:00:00Z",
    "2026-03-01T12:00:00+00:00",
    "2026-03-01T17:30:00+05:30",
    datetime(2026, 3, 1, 12, 0),
    {"seconds": 1772366400},
    1772366400,
])
def test_parse_deadline_normalizes_to_utc(value):
    assert parse_deadline(value) == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
