import sys

from normalizer import course_key, course_level, placeholder_course
from planning_rules import MAX_RECOMMENDATIONS, RECOMMENDATION_FETCH_LIMIT


def pathway_course_ids(pathway: dict | None) -> list[str]:
    """Core, then recommended, then optional ids; first occurrence wins."""
    if not pathway:
        return []
    ids = []
    for field in ("core_courses", "recommended_courses", "optional_courses"):
        ids.extend(str(c).strip() for c in pathway.get(field) or [] if str(c).strip())
    return list(dict.fromkeys(ids))


def fetch_course_or_placeholder(course_id: str, lookup) -> dict:
    """Course details from `lookup`, or a placeholder so lists never show a hole."""
    try:
        details = lookup(course_id)
    except Exception as exc:
        print(f"[WARN] Course lookup failed for {course_id}: {exc}", file=sys.stderr)
        details = None
    return details if details else placeholder_course(course_id)


def derive_recommendations(
    pathway: dict | None,
    planned_courses: list[dict],
    lookup,
    fetch_limit: int = RECOMMENDATION_FETCH_LIMIT,
    max_results: int = MAX_RECOMMENDATIONS,
) -> list[dict]:
    """
    Top pathway courses the student has not planned yet, lowest level first.

    `lookup(course_id) -> dict | None` is the course detail collaborator.
    Falls back to the unfiltered list when every candidate is already planned,
    so the student always sees something when the pathway has courses.
    """
    ids = pathway_course_ids(pathway)[:fetch_limit]
    if not ids:
        return []

    details = [fetch_course_or_placeholder(cid, lookup) for cid in ids]
    planned = {course_key(c) for c in planned_courses or []}

    by_level = sorted(details, key=lambda c: course_level(c.get("course_id")))
    filtered = [c for c in by_level if course_key(c) not in planned]
    if not filtered:
        filtered = by_level
    return filtered[:max_results]
