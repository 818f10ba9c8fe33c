from credits import course_credits, sum_credits
from normalizer import course_key
from planning_rules import (
    CAP_MESSAGE,
    CREDIT_CAP,
    DUPLICATE_COURSE,
    DUPLICATE_IN_TERM_MESSAGE,
    CAPACITY_EXCEEDED,
    NO_CAPACITY,
    NO_ROOM_MESSAGE,
    rejection,
)


def build_semester_plan(name: str, courses) -> dict:
    courses = list(courses or [])
    return {"name": name, "courses": courses, "total_credits": sum_credits(courses)}


def schedule_from_mapping(mapping: dict | None) -> list[dict]:
    """
    Generator output {term: [course, ...]} -> ordered semester plans.

    The generator is trusted: totals are computed but the cap is not enforced.
    """
    if not mapping:
        return []
    return [build_semester_plan(name, courses) for name, courses in mapping.items()]


def contains_course(courses, course_id) -> bool:
    key = course_key({"course_id": course_id})
    return any(course_key(c) == key for c in courses or [])


def place_in_earliest_available(course: dict, future_plans: list[dict], cap: int = CREDIT_CAP) -> dict:
    """
    Append `course` to the first future semester that stays within `cap`.

    Returns:
        {"ok": True, "plans": [...], "index": 2}
    or a rejection when the course is already planned or no semester has room.
    The input plans are left untouched.
    """
    course_id = course.get("course_id")
    if any(contains_course(p.get("courses"), course_id) for p in future_plans):
        return rejection(DUPLICATE_COURSE, f"{course_id} is already in your plan.")

    credits = course_credits(course)
    for i, plan in enumerate(future_plans):
        if plan.get("total_credits", 0) + credits <= cap:
            plans = list(future_plans)
            plans[i] = build_semester_plan(plan["name"], list(plan.get("courses", [])) + [course])
            return {"ok": True, "plans": plans, "index": i}

    return rejection(NO_CAPACITY, NO_ROOM_MESSAGE)


def place_in_target(
    course: dict,
    target_courses: list[dict],
    cap: int = CREDIT_CAP,
    duplicate_message: str = DUPLICATE_IN_TERM_MESSAGE,
) -> dict:
    """
    Append `course` to one explicit semester's course list.

    Returns {"ok": True, "courses": [...], "total_credits": n} or a rejection
    when the course is already there or the semester would exceed `cap`.
    """
    if contains_course(target_courses, course.get("course_id")):
        return rejection(DUPLICATE_COURSE, duplicate_message)
    if sum_credits(target_courses) + course_credits(course) > cap:
        return rejection(CAPACITY_EXCEEDED, CAP_MESSAGE)
    courses = list(target_courses or []) + [course]
    return {"ok": True, "courses": courses, "total_credits": sum_credits(courses)}


def remove_course(courses, course_id) -> tuple[list[dict], dict | None]:
    """Remove the first matching course. Returns (new_list, removed_or_None)."""
    key = course_key({"course_id": course_id})
    courses = list(courses or [])
    for idx, c in enumerate(courses):
        if course_key(c) == key:
            removed = courses.pop(idx)
            return courses, removed
    return courses, None
