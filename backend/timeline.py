import math

from credits import (
    completed_progress,
    format_credits,
    format_semesters,
    instructor_display_name,
    semester_difficulty,
    sum_credits,
)
from planning_rules import TARGET_TERM_CREDITS, TOTAL_CREDITS_REQUIRED, TOTAL_PLANNING_TERMS


def max_future_terms(finished_count: int, total_terms: int = TOTAL_PLANNING_TERMS) -> int:
    """Future semesters left in the horizon after finished terms and the current one."""
    return max(total_terms - (finished_count + 1), 0)


def estimate_timeline(
    completed_credits: int,
    planned_credits: int = 0,
    credits_per_term: int = TARGET_TERM_CREDITS,
    required: int = TOTAL_CREDITS_REQUIRED,
) -> dict:
    """
    Rough graduation timeline estimate based on remaining credits.

    Args:
        completed_credits: credits from finished terms
        planned_credits: credits in the current term and future plan
        credits_per_term: assumed load for unplanned terms

    Returns:
        {
          "remaining_credits_total": 30,
          "unplanned_credits": 0,
          "estimated_min_terms": 2,
          "disclaimer": "..."
        }
    """
    remaining = max(required - completed_credits, 0)
    unplanned = max(remaining - planned_credits, 0)
    estimated_terms = math.ceil(remaining / credits_per_term) if remaining > 0 else 0

    return {
        "remaining_credits_total": remaining,
        "unplanned_credits": unplanned,
        "estimated_min_terms": estimated_terms,
        "disclaimer": (
            f"Rough estimate. Assumes {credits_per_term} credits per term "
            "and all courses offered each term. Ignores prerequisites and "
            "actual degree requirements."
        ),
    }


def _course_card(course: dict) -> dict:
    return {
        **course,
        "credits_label": format_credits(course.get("credit_hours")),
        "instructor_label": instructor_display_name(course.get("instructors")),
        "semesters_label": format_semesters(course.get("semesters")),
    }


def _section(term: str, courses: list[dict], status: str, collapsed: bool) -> dict:
    return {
        "term": term,
        "status": status,
        "courses": [_course_card(c) for c in courses],
        "total_credits": sum_credits(courses),
        "difficulty": semester_difficulty(courses),
        "collapsed": collapsed,
    }


def build_timeline_view(snapshot: dict) -> dict:
    """
    Render-ready view of a plan snapshot (see PlanMutator.snapshot).

    Finished terms start collapsed and empty finished terms are hidden; the
    current term and future semesters start open.
    """
    sections = []
    finished_courses = []
    for term, courses in snapshot.get("finished_terms", {}).items():
        finished_courses.extend(courses)
        if courses:
            sections.append(_section(term, courses, "finished", True))

    current_courses = snapshot.get("current_courses", [])
    if snapshot.get("current_term"):
        sections.append(_section(snapshot["current_term"], current_courses, "current", False))

    planned = sum_credits(current_courses)
    for plan in snapshot.get("future_plans", []):
        planned += plan.get("total_credits", 0)
        sections.append(_section(plan["name"], plan.get("courses", []), "future", False))

    progress = completed_progress(finished_courses)
    return {
        "sections": sections,
        "progress": progress,
        "estimate": estimate_timeline(progress["completed_credits"], planned),
    }
