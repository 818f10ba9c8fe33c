import math
import re
from numbers import Number

import pandas as pd

from planning_rules import DEFAULT_CREDITS, TOTAL_CREDITS_REQUIRED


_FIRST_INT = re.compile(r"\d+")


def _is_number(val) -> bool:
    if isinstance(val, bool) or not isinstance(val, Number):
        return False
    try:
        return not pd.isna(val)
    except (TypeError, ValueError):
        return False


def _as_int(val):
    if isinstance(val, float) and val.is_integer():
        return int(val)
    return val


def normalize_credits(raw):
    """
    Collapse any credit-hour shape into one number.

    Handles:
      4                          -> 4
      [3, 4] / []                -> 3 / 3 (first element)
      "3-4 credit hours" / "TBD" -> 3 / 3 (first integer literal)
      {"min": 3, "max": 5}       -> 3 (min, else max, else credits)
      None, NaN, anything else   -> 3

    Never raises: catalog metadata is unreliable and every cap check runs
    through this function.
    """
    if _is_number(raw):
        return _as_int(raw)
    if isinstance(raw, (list, tuple)):
        if not raw or not raw[0]:
            return DEFAULT_CREDITS
        return normalize_credits(raw[0])
    if isinstance(raw, str):
        m = _FIRST_INT.search(raw)
        return int(m.group(0)) if m else DEFAULT_CREDITS
    if isinstance(raw, dict):
        for key in ("min", "max", "credits"):
            val = raw.get(key)
            if val:
                return normalize_credits(val)
        return DEFAULT_CREDITS
    return DEFAULT_CREDITS


def course_credits(course: dict):
    return normalize_credits((course or {}).get("credit_hours"))


def sum_credits(courses) -> int:
    return sum(course_credits(c) for c in courses or [])


def completed_progress(courses, required: int = TOTAL_CREDITS_REQUIRED) -> dict:
    """
    Degree progress from finished-term courses only.

    Returns:
        {"completed_credits": 45, "percentage": 38, "remaining_credits": 75}
    """
    completed = sum_credits(courses)
    pct = min(int(math.floor(completed / required * 100 + 0.5)), 100) if required > 0 else 100
    return {
        "completed_credits": completed,
        "percentage": pct,
        "remaining_credits": max(required - completed, 0),
    }


def semester_difficulty(courses) -> str:
    """Average course_avg_difficulty bucketed into Easy / Medium / Hard."""
    diffs = [
        c.get("course_avg_difficulty")
        for c in courses or []
        if _is_number(c.get("course_avg_difficulty"))
    ]
    if not diffs:
        return "Unknown"
    avg = sum(diffs) / len(diffs)
    if avg <= 2.5:
        return "Easy"
    if avg <= 3.5:
        return "Medium"
    return "Hard"


def format_credits(raw):
    """Display value for a credit field: free text is shown as written."""
    if isinstance(raw, str):
        return raw
    return normalize_credits(raw)


def instructor_display_name(instructors) -> str:
    if not instructors:
        return "Staff"
    if isinstance(instructors, str):
        names = [instructors]
    elif isinstance(instructors, dict):
        names = list(instructors.keys())
    elif isinstance(instructors, (list, tuple)):
        names = [str(n) for n in instructors]
    else:
        return "Staff"
    distinct = list(dict.fromkeys(names))
    if not distinct:
        return "Staff"
    return ", ".join(name.replace(",", "", 1) for name in distinct[:2])


def format_semesters(semesters) -> str:
    if not semesters:
        return "Fall, Spring"
    if isinstance(semesters, (list, tuple)):
        return ", ".join(str(s) for s in semesters)
    if isinstance(semesters, str):
        return semesters
    if isinstance(semesters, dict):
        return ", ".join(str(v) for v in semesters.values()) or "Fall, Spring"
    return "Unknown"
