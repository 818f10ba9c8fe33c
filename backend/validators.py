"""
Pure input-validation helpers for the /api/plans endpoints.
No Flask or data-loader imports.
"""

from typing import List, Optional, Tuple

from normalizer import normalize_code, normalize_input
from plan_state import CurrentTerm, FutureTerm, location_from_index
from terms import SEM_RE, enumerate_inclusive


_CURRENT_ALIASES = {"current", "current_term", "-1"}


def validate_plan_body(body) -> Tuple[Optional[str], Optional[str]]:
    """Returns (error_code, message) on invalid input, (None, None) on success."""
    if not isinstance(body, dict):
        return "INVALID_INPUT", "Request body must be a JSON object."
    if not str(body.get("career_path_id") or "").strip():
        return "INVALID_INPUT", "Select a career path before generating a plan."
    current = body.get("current_term")
    if not current or not SEM_RE.match(str(current).strip()):
        return "INVALID_INPUT", f"'current_term' value '{current}' is not a valid semester (e.g. 'Fall 2024')."
    start = body.get("start_term")
    if start not in (None, ""):
        if not SEM_RE.match(str(start).strip()):
            return "INVALID_INPUT", f"'start_term' value '{start}' is not a valid semester (e.g. 'Fall 2023')."
        if enumerate_inclusive(str(start), str(current)) is None:
            return "INVALID_INPUT", "The start semester must come before the current semester."
    prev_map = body.get("previous_term_courses")
    if prev_map is not None and not isinstance(prev_map, dict):
        return "INVALID_INPUT", "'previous_term_courses' must map a semester to a list of courses."
    if isinstance(prev_map, dict):
        for term in prev_map:
            if not SEM_RE.match(str(term).strip()):
                return "INVALID_INPUT", f"'{term}' is not a valid semester (e.g. 'Spring 2024')."
    return None, None


def parse_location(raw) -> Tuple[Optional[object], Optional[str]]:
    """
    Parse a target semester from a request body.

    None / "" -> (None, None)             earliest semester with room
    "current" / -1 -> (CurrentTerm(), None)
    2 / "2" -> (FutureTerm(2), None)
    Anything else -> (None, message)
    """
    if raw is None or raw == "":
        return None, None
    if isinstance(raw, str) and raw.strip().lower() in _CURRENT_ALIASES:
        return CurrentTerm(), None
    if isinstance(raw, bool):
        return None, f"'{raw}' is not a valid semester position."
    try:
        return location_from_index(int(raw)), None
    except (TypeError, ValueError):
        return None, f"'{raw}' is not a valid semester position."


def parse_required_location(raw, field: str) -> Tuple[Optional[object], Optional[str]]:
    location, err = parse_location(raw)
    if err:
        return None, err
    if location is None:
        return None, f"'{field}' is required."
    return location, None


def coerce_course_entries(raw, catalog_codes: Optional[set] = None) -> Tuple[List[object], List[str]]:
    """
    Accept courses as a list of course objects / id strings or a comma
    separated string of ids.

    Returns (entries, rejected); entries are dicts with a course_id or
    normalized id strings. When `catalog_codes` is given, id strings missing
    from the catalog are rejected along with unparseable tokens. Course objects
    carry their own details and are never checked against the catalog.
    """
    if raw is None or raw == "":
        return [], []
    if isinstance(raw, str):
        parsed = normalize_input(raw, catalog_codes)
        return list(parsed["valid"]), list(parsed["invalid"]) + list(parsed["not_in_catalog"])
    if not isinstance(raw, list):
        return [], [str(raw)]

    entries: List[object] = []
    invalid: List[str] = []
    for item in raw:
        if isinstance(item, dict) and str(item.get("course_id") or "").strip():
            entries.append(item)
        elif isinstance(item, str) and normalize_code(item):
            code = normalize_code(item)
            if catalog_codes is not None and code not in catalog_codes:
                invalid.append(code)
            else:
                entries.append(code)
        else:
            invalid.append(str(item))
    return entries, invalid


def location_label(location) -> object:
    if isinstance(location, CurrentTerm):
        return "current"
    if isinstance(location, FutureTerm):
        return location.index
    return location
