import sys

from credits import course_credits
from normalizer import course_key
from planning_rules import CREDIT_CAP
from terms import finished_terms, normalize_term_label, predecessor, term_sort_key


def distribute_across_terms(
    courses: list[dict],
    finished: list[str],
    cap: int = CREDIT_CAP,
    overflow_term: str | None = None,
) -> dict[str, list[dict]]:
    """
    Greedy single-pass fill of finished terms, earliest first.

    Courses keep their input order. The cursor moves to the next term whenever
    the course would push the cursor term over `cap`; once every term is used
    up, the remaining courses all land in the last finished term regardless of
    cap. With no finished terms, everything goes to `overflow_term` (if any).
    """
    result: dict[str, list[dict]] = {t: [] for t in finished}
    if not finished:
        if overflow_term and courses:
            result[overflow_term] = list(courses)
        return result

    last = finished[-1]
    i = 0
    term_credits = 0
    for course in courses:
        credits = course_credits(course)
        while i < len(finished) and term_credits + credits > cap:
            i += 1
            term_credits = 0
        if i >= len(finished):
            result[last].append(course)
            continue
        result[finished[i]].append(course)
        term_credits += credits
    return result


def build_history_buckets(
    courses: list[dict],
    start_term: str | None,
    current_term: str | None,
    cap: int = CREDIT_CAP,
) -> dict[str, list[dict]]:
    """
    Reconstruct finished-term buckets from an aggregate list of completed courses.

    Unknown or malformed program dates fall back to a single bucket for the
    term before `current_term`; if that term does not exist either, the
    courses are dropped.
    """
    courses = list(courses or [])
    prev = predecessor(current_term) if current_term else None

    terms = None
    if start_term and current_term:
        terms = finished_terms(start_term, current_term)

    if terms is None:
        if prev:
            return {prev: courses} if courses else {}
        if courses:
            print(
                f"[WARN] No term to hold {len(courses)} completed course(s) "
                f"(start={start_term!r}, current={current_term!r}); dropping them.",
                file=sys.stderr,
            )
        return {}

    return distribute_across_terms(courses, terms, cap=cap, overflow_term=prev)


def build_term_bucket_map(
    current_term: str | None,
    current_courses: list[dict] | None = None,
    previous_term_courses: dict[str, list[dict]] | None = None,
    completed_courses: list[dict] | None = None,
    start_term: str | None = None,
    cap: int = CREDIT_CAP,
) -> dict[str, list[dict]]:
    """
    Term -> courses for every finished term plus the current term.

    An explicit per-term breakdown keeps its courses as given but its terms are
    put in calendar order; otherwise the aggregate completed list goes through
    build_history_buckets(). A course id keeps only its first occurrence across
    the whole map (finished terms first, earliest term first, then the current
    term).
    """
    if previous_term_courses:
        labelled = [
            (normalize_term_label(t) or t, list(cs or []))
            for t, cs in previous_term_courses.items()
        ]
        finished_map = dict(sorted(labelled, key=lambda item: term_sort_key(item[0])))
    else:
        finished_map = build_history_buckets(completed_courses or [], start_term, current_term, cap=cap)

    current_label = normalize_term_label(current_term) or current_term
    raw_map = dict(finished_map)
    if current_label:
        raw_map.pop(current_label, None)
        raw_map[current_label] = list(current_courses or [])

    seen: set[str] = set()
    bucket_map: dict[str, list[dict]] = {}
    dropped = 0
    for term, term_courses in raw_map.items():
        kept = []
        for course in term_courses:
            key = course_key(course)
            if not key or key in seen:
                dropped += 1
                continue
            seen.add(key)
            kept.append(course)
        bucket_map[term] = kept
    if dropped:
        print(f"[INFO] Removed {dropped} duplicate course entr(ies) from term buckets.")
    return bucket_map


def flatten_finished(bucket_map: dict[str, list[dict]], current_term: str | None) -> list[dict]:
    current_label = normalize_term_label(current_term) or current_term
    out = []
    for term, term_courses in bucket_map.items():
        if term == current_label:
            continue
        out.extend(term_courses)
    return out
