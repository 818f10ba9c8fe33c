"""
Collaborators the planning engine talks to: course search, course details,
career pathways and plan generation.

LocalCatalog / LocalPlanGenerator serve the CSV catalog loaded by data_loader.
RemotePlannerClient calls an external planner service over HTTP. Both expose
the same methods, so the server can swap one for the other by configuration.
"""

import urllib.parse

import requests

from credits import course_credits
from normalizer import course_key, course_level, normalize_course_id, placeholder_course
from planning_rules import CREDIT_CAP, MIN_SEARCH_QUERY_LENGTH, TARGET_TERM_CREDITS
from recommendations import pathway_course_ids
from terms import normalize_term_label, successor


class LocalCatalog:
    def __init__(self, data: dict):
        self._data = data

    def get_course(self, course_id: str) -> dict | None:
        course = self._data["catalog"].get(normalize_course_id(course_id))
        return dict(course) if course else None

    def search(self, query: str, limit: int = 5) -> list[dict]:
        """Id matches (prefix first) and title matches, lowest level first."""
        q = str(query or "").strip()
        if len(q) < MIN_SEARCH_QUERY_LENGTH:
            return []
        df = self._data["courses_df"]
        if len(df) == 0:
            return []
        key = normalize_course_id(q)
        id_hit = df["course_key"].str.contains(key, regex=False)
        title_hit = df["title"].astype(str).str.lower().str.contains(q.lower(), regex=False)
        hits = df[id_hit | title_hit].copy()
        if len(hits) == 0:
            return []
        hits["_not_prefix"] = ~hits["course_key"].str.startswith(key)
        hits["_level"] = hits["course_id"].map(course_level)
        hits = hits.sort_values(["_not_prefix", "_level", "course_key"], kind="stable")
        return [dict(self._data["catalog"][k]) for k in hits["course_key"].head(limit)]

    def list_pathways(self) -> list[dict]:
        return [
            {"id": p["id"], "label": p["label"], "color": p["color"]}
            for p in sorted(self._data["pathways"].values(), key=lambda p: p["label"])
        ]

    def get_pathway(self, pathway_id: str) -> dict | None:
        pathway = self._data["pathways"].get(str(pathway_id or "").strip())
        if pathway is None:
            return None
        return {k: (list(v) if isinstance(v, list) else v) for k, v in pathway.items()}


class LocalPlanGenerator:
    """
    Fills future semesters from a career pathway: core, then recommended, then
    optional courses, skipping anything already taken. Each semester is filled
    until it reaches `target_credits` and never beyond `cap`.
    """

    def __init__(self, catalog: LocalCatalog, target_credits: int = TARGET_TERM_CREDITS, cap: int = CREDIT_CAP):
        self.catalog = catalog
        self.target_credits = target_credits
        self.cap = cap

    def generate(
        self,
        start_term: str,
        career_path_id: str,
        prior_courses: list[dict],
        max_future_terms: int,
    ) -> dict[str, list[dict]]:
        pathway = self.catalog.get_pathway(career_path_id)
        if pathway is None:
            raise ValueError(f"unknown career path: {career_path_id!r}")

        taken = {course_key(c) for c in prior_courses or []}
        queue = []
        for cid in pathway_course_ids(pathway):
            if normalize_course_id(cid) in taken:
                continue
            queue.append(self.catalog.get_course(cid) or placeholder_course(cid))

        schedule: dict[str, list[dict]] = {}
        term = normalize_term_label(start_term)
        for _ in range(max(int(max_future_terms), 0)):
            if term is None:
                break
            picked: list[dict] = []
            remaining: list[dict] = []
            total = 0
            for course in queue:
                credits = course_credits(course)
                if total < self.target_credits and total + credits <= self.cap:
                    picked.append(course)
                    total += credits
                else:
                    remaining.append(course)
            schedule[term] = picked
            queue = remaining
            term = successor(term)
        return schedule


class RemotePlannerClient:
    """HTTP client for an external planner service. Errors propagate to the caller."""

    def __init__(self, base_url: str, timeout: float = 30.0, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _get_json(self, path: str, params: dict | None = None, allow_missing: bool = False):
        resp = self._session.get(self._url(path), params=params, timeout=self.timeout)
        if allow_missing and resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    def search(self, query: str, limit: int = 5) -> list[dict]:
        if len(str(query or "").strip()) < MIN_SEARCH_QUERY_LENGTH:
            return []
        data = self._get_json("/courses/search", {"q": query, "limit": limit})
        if isinstance(data, dict):
            data = data.get("courses", [])
        return list(data or [])

    def get_course(self, course_id: str) -> dict | None:
        quoted = urllib.parse.quote(str(course_id), safe="")
        return self._get_json(f"/courses/{quoted}", allow_missing=True) or None

    def list_pathways(self) -> list[dict]:
        data = self._get_json("/pathways")
        if isinstance(data, dict):
            data = data.get("pathways", [])
        return list(data or [])

    def get_pathway(self, pathway_id: str) -> dict | None:
        quoted = urllib.parse.quote(str(pathway_id), safe="")
        return self._get_json(f"/pathways/{quoted}", allow_missing=True) or None

    def generate(
        self,
        start_term: str,
        career_path_id: str,
        prior_courses: list[dict],
        max_future_terms: int,
    ) -> dict[str, list[dict]]:
        resp = self._session.post(
            self._url("/plans/generate"),
            json={
                "start_term": start_term,
                "career_path_id": career_path_id,
                "prior_courses": prior_courses,
                "max_future_terms": max_future_terms,
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        schedule = data.get("schedule") if isinstance(data, dict) else None
        if not isinstance(schedule, dict):
            raise ValueError("planner service returned no schedule")
        return schedule
