"""
Intake term map used while the student lists courses they already took.

Every function returns a new map; the caller's map is never modified.
"""

from normalizer import course_key
from planning_rules import DUPLICATE_COURSE, INVALID_TARGET, rejection
from terms import enumerate_inclusive, normalize_term_label, successor


def seed_term_map(
    start_term: str | None,
    current_term: str | None,
    existing: dict[str, list[dict]] | None = None,
) -> dict[str, list[dict]]:
    """Ensure a (possibly empty) bucket exists for every term start..current."""
    out = {t: list(cs) for t, cs in (existing or {}).items()}
    if not start_term or not current_term:
        return out
    for term in enumerate_inclusive(start_term, current_term) or []:
        out.setdefault(term, [])
    return out


def is_planned(term_map: dict[str, list[dict]], course_id: str) -> bool:
    key = course_key({"course_id": course_id})
    return any(course_key(c) == key for cs in term_map.values() for c in cs)


def add_to_term(term_map: dict[str, list[dict]], term: str, course: dict) -> dict:
    label = normalize_term_label(term)
    if label is None or label not in term_map:
        return rejection(INVALID_TARGET, f"'{term}' is not one of your terms.")
    if is_planned(term_map, course.get("course_id")):
        return rejection(DUPLICATE_COURSE, f"{course.get('course_id')} is already listed.")
    out = {t: list(cs) for t, cs in term_map.items()}
    out[label].append(course)
    return {"ok": True, "term_map": out}


def build_plan_handoff(
    term_map: dict[str, list[dict]],
    start_term: str,
    current_term: str,
    major: str,
    career_path_id: str,
    career_path_name: str | None = None,
) -> dict:
    """
    Payload passed from intake to plan generation.

    Keeps the aggregate `selected_courses` list alongside the per-term map so
    older consumers that only know the aggregate keep working.
    """
    current_label = normalize_term_label(current_term) or current_term
    current_courses = list(term_map.get(current_label, []))
    previous_term_courses = {t: list(cs) for t, cs in term_map.items() if t != current_label}
    prev_courses = [c for cs in previous_term_courses.values() for c in cs]
    return {
        "major": major,
        "career_path_id": career_path_id,
        "career_path_name": career_path_name or "Career Path",
        "selected_courses": prev_courses + current_courses,
        "completed_prev_courses": prev_courses,
        "current_term_courses": current_courses,
        "previous_term_courses": previous_term_courses,
        "start_term": normalize_term_label(start_term) or start_term,
        "current_term": current_label,
        "upcoming_term": successor(current_label) if current_label else None,
    }
