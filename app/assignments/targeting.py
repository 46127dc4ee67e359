"""
Assignment audience and deadline rules

An assignment reaches a student when the student's branch, year, semester and
section fall inside its targeting. Two forms are supported:

- target_classes: explicit (branch, year, semester, section) tuples; the
  student must match one tuple exactly (a tuple without section covers every
  section of that class)
- target_branches / target_years / target_semesters / target_sections:
  independent sets; each attribute is checked on its own, and an empty
  target_sections means every section

When target_classes is non-empty it is authoritative and the sets are ignored.
Years and semesters are compared in their string form on both sides.
"""

from datetime import datetime, timezone
from typing import Any, Mapping, Optional


def _norm(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _norm_section(value: Any) -> str:
    return _norm(value).upper()


def matches_target_class(target: Mapping, student: Mapping) -> bool:
    if _norm(target.get("branch_id")) != _norm(student.get("branch_id")):
        return False
    if _norm(target.get("year")) != _norm(student.get("year")):
        return False
    if _norm(target.get("semester")) != _norm(student.get("semester")):
        return False
    section = target.get("section")
    return not section or _norm_section(section) == _norm_section(student.get("section"))


def is_visible(assignment: Mapping, student: Mapping) -> bool:
    """Whether the student is in the assignment's audience (deadline ignored)"""
    target_classes = assignment.get("target_classes") or []
    if target_classes:
        return any(matches_target_class(t, student) for t in target_classes)

    branches = {_norm(b) for b in assignment.get("target_branches") or []}
    years = {_norm(y) for y in assignment.get("target_years") or []}
    semesters = {_norm(s) for s in assignment.get("target_semesters") or []}
    sections = {_norm_section(s) for s in assignment.get("target_sections") or []}

    return (
        _norm(student.get("branch_id")) in branches
        and _norm(student.get("year")) in years
        and _norm(student.get("semester")) in semesters
        and (not sections or _norm_section(student.get("section")) in sections)
    )


def parse_deadline(value: Any) -> Optional[datetime]:
    """
    Normalize a stored deadline to an aware UTC datetime

    Accepts datetime, ISO-8601 strings (with or without 'Z'), epoch seconds
    and {"seconds": n} timestamp mappings. Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, Mapping) and "seconds" in value:
        parsed = datetime.fromtimestamp(value["seconds"], tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unsupported deadline value: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_actionable(assignment: Mapping, now: Optional[datetime] = None) -> bool:
    """Open for submission while now < deadline; no deadline means closed"""
    deadline = parse_deadline(assignment.get("deadline"))
    if deadline is None:
        return False
    now = parse_deadline(now) if now is not None else utc_now()
    return now < deadline
