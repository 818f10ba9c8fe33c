import re

from planning_rules import DEFAULT_CREDITS, UNKNOWN_COURSE_LEVEL

# Matches: CS 124, CS-124, cs124, MATH 221, STAT 400, ECE 391H, etc.
CANONICAL = re.compile(r'^([A-Za-z]{2,6})\s*[-]?\s*(\d{2,4}[A-Za-z]?)$')

_WHITESPACE = re.compile(r"\s+")
_LEVEL = re.compile(r"(\d{2,3})")


def normalize_course_id(raw) -> str:
    """Comparison key for a course id: whitespace removed, upper-cased."""
    if raw is None:
        return ""
    return _WHITESPACE.sub("", str(raw)).upper()


def course_key(course: dict) -> str:
    return normalize_course_id((course or {}).get("course_id"))


def normalize_code(raw: str) -> str | None:
    """
    Normalizes a course id to display 'DEPT NNN' format.
    Handles: 'cs124', 'CS-124', 'CS 124', 'ece391h'
    Returns None if the string cannot be parsed as a course id.
    """
    if not raw or not raw.strip():
        return None
    m = CANONICAL.match(raw.strip())
    if m:
        dept = m.group(1).upper()
        num = m.group(2).upper()
        return f"{dept} {num}"
    return None


def normalize_input(raw_str: str, catalog_codes: set | None = None) -> dict:
    """
    Splits comma/newline/semicolon-separated input and normalizes each id.

    Returns:
      {
        "valid":          ["CS 124", "MATH 221"],  # normalized (+ in catalog when one is given)
        "invalid":        ["asdfasdf"],            # failed regex
        "not_in_catalog": ["CS 999"]               # valid format but unknown course
      }
    """
    if not raw_str or not raw_str.strip():
        return {"valid": [], "invalid": [], "not_in_catalog": []}

    tokens = re.split(r'[,\n;]+', raw_str)
    valid = []
    invalid = []
    not_in_catalog = []
    seen: set[str] = set()

    for token in tokens:
        token = token.strip()
        if not token:
            continue
        normalized = normalize_code(token)
        if normalized is None:
            if token not in seen:
                invalid.append(token)
                seen.add(token)
        elif normalized in seen:
            pass  # deduplicate silently
        elif catalog_codes is not None and normalized not in catalog_codes:
            not_in_catalog.append(normalized)
            seen.add(normalized)
        else:
            valid.append(normalized)
            seen.add(normalized)

    return {"valid": valid, "invalid": invalid, "not_in_catalog": not_in_catalog}


def course_level(course_id) -> int:
    """First 2-3 digit run in the id ('CS 225' -> 225), else 999."""
    m = _LEVEL.search(str(course_id or ""))
    return int(m.group(1)) if m else UNKNOWN_COURSE_LEVEL


def department_of(course_id) -> str:
    parts = str(course_id or "").split(" ")
    return parts[0] if parts[0] else "UNK"


def placeholder_course(course_id: str) -> dict:
    """Stand-in shown when course details cannot be fetched."""
    return {
        "course_id": course_id,
        "title": "Suggested Course",
        "department": department_of(course_id),
        "credit_hours": DEFAULT_CREDITS,
    }


def dedupe_courses(courses) -> list[dict]:
    """Drop repeated course ids (normalized), keeping the first occurrence."""
    out = []
    seen: set[str] = set()
    for course in courses or []:
        key = course_key(course)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(course)
    return out
