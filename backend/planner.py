import sys

from normalizer import course_key
from plan_state import PlanMutator
from planning_rules import MIN_SEARCH_QUERY_LENGTH
from recommendations import derive_recommendations, fetch_course_or_placeholder


GENERATION_FAILED_MESSAGE = "We couldn't refresh your plan right now. Showing your last schedule."


def generate_future_plan(mutator: PlanMutator, generator, token: int | None = None) -> dict:
    """
    Ask the generator for future semesters and load them into `mutator`.

    A failure keeps the previous schedule and records generation_error. A
    response for a superseded token is dropped.
    """
    if token is None:
        token = mutator.begin_generation()
    request = mutator.generation_request()
    try:
        mapping = generator.generate(
            request["start_term"],
            request["career_path_id"],
            request["prior_courses"],
            request["max_future_terms"],
        )
    except Exception as exc:
        print(f"[WARN] Plan generation failed for path={request['career_path_id']}: {exc}", file=sys.stderr)
        recorded = mutator.record_generation_failure(token, GENERATION_FAILED_MESSAGE)
        return {"applied": False, "stale": not recorded, "error": GENERATION_FAILED_MESSAGE}

    applied = mutator.apply_generated_schedule(token, mapping)
    return {"applied": applied, "stale": not applied, "error": None}


def create_plan(handoff: dict, generator) -> tuple[PlanMutator, dict]:
    mutator = PlanMutator.from_handoff(handoff)
    outcome = generate_future_plan(mutator, generator)
    return mutator, outcome


def planned_courses(mutator: PlanMutator) -> list[dict]:
    snap = mutator.snapshot()
    out = [c for courses in snap["finished_terms"].values() for c in courses]
    out.extend(snap["current_courses"])
    for plan in snap["future_plans"]:
        out.extend(plan["courses"])
    return out


def recommendations_for(mutator: PlanMutator, catalog) -> list[dict]:
    if not mutator.career_path_id:
        return []
    try:
        pathway = catalog.get_pathway(mutator.career_path_id)
    except Exception as exc:
        print(f"[WARN] Pathway lookup failed for {mutator.career_path_id}: {exc}", file=sys.stderr)
        return []
    return derive_recommendations(pathway, planned_courses(mutator), catalog.get_course)


def search_courses(catalog, query: str, mutator: PlanMutator | None = None, limit: int = 5) -> list[dict]:
    """Course search results flagged with whether they are already in the plan."""
    if len(str(query or "").strip()) < MIN_SEARCH_QUERY_LENGTH:
        return []
    try:
        results = catalog.search(query, limit)
    except Exception as exc:
        print(f"[WARN] Course search failed for {query!r}: {exc}", file=sys.stderr)
        return []
    planned = mutator.planned_ids() if mutator is not None else set()
    return [
        {**course, "already_planned": course_key(course) in planned}
        for course in results[:limit]
    ]


def resolve_course(catalog, course_id: str) -> dict:
    """Catalog details for an id, falling back to a placeholder course."""
    return fetch_course_or_placeholder(course_id, catalog.get_course)
