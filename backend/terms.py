import re

from planning_rules import TERM_WALK_GUARD


SEM_RE = re.compile(r"^(Spring|Summer|Fall)\s+(\d{4})$", re.IGNORECASE)

# Order of seasons within one calendar year.
SEASON_RANK = {"Spring": 0, "Summer": 1, "Fall": 2}


def parse_term(label) -> tuple[str, int] | None:
    """Split 'Fall 2024' into ('Fall', 2024). Returns None for anything else."""
    if not isinstance(label, str):
        return None
    m = SEM_RE.match(label.strip())
    if not m:
        return None
    return m.group(1).capitalize(), int(m.group(2))


def normalize_term_label(label) -> str | None:
    parsed = parse_term(label)
    if parsed is None:
        return None
    season, year = parsed
    return f"{season} {year}"


def successor(term: str) -> str | None:
    """
    Next major term:
    - Spring YYYY -> Fall YYYY (skip Summer)
    - Summer YYYY -> Fall YYYY
    - Fall YYYY   -> Spring YYYY+1
    """
    parsed = parse_term(term)
    if parsed is None:
        return None
    season, year = parsed
    if season in ("Spring", "Summer"):
        return f"Fall {year}"
    return f"Spring {year + 1}"


def predecessor(term: str) -> str | None:
    """Previous major term. Only defined for Spring and Fall."""
    parsed = parse_term(term)
    if parsed is None:
        return None
    season, year = parsed
    if season == "Spring":
        return f"Fall {year - 1}"
    if season == "Fall":
        return f"Spring {year}"
    return None


def enumerate_inclusive(start: str, end: str, guard: int = TERM_WALK_GUARD) -> list[str] | None:
    """
    Inclusive list of terms walking successor() from start to end.

    Returns None when end is never reached within `guard` steps (end before
    start, Summer end terms) or when either label is malformed.
    """
    current = normalize_term_label(start)
    target = normalize_term_label(end)
    if current is None or target is None:
        return None

    out: list[str] = []
    for _ in range(guard):
        out.append(current)
        if current == target:
            return out
        nxt = successor(current)
        if nxt is None:
            return None
        current = nxt
    return None


def finished_terms(start: str, current: str) -> list[str] | None:
    """Terms strictly before `current` in the start..current range."""
    terms = enumerate_inclusive(start, current)
    if terms is None:
        return None
    return terms[:-1]


def term_sort_key(term: str) -> tuple[int, int]:
    parsed = parse_term(term)
    if parsed is None:
        return (10**6, 99)
    season, year = parsed
    return (year, SEASON_RANK[season])
