"""
Live, user-editable plan: the current term plus the future semesters.

All reads and writes go through PlanMutator so that the plan invariants hold
after every operation:
  - each semester's total_credits equals the sum of its courses' credits,
  - add/move never leave a semester above CREDIT_CAP,
  - a course id appears at most once across finished, current and future terms.

Every operation validates first and only then applies; a rejected operation
leaves the state exactly as it was.
"""

import copy
import threading
from dataclasses import dataclass

from allocator import (
    build_semester_plan,
    contains_course,
    place_in_earliest_available,
    place_in_target,
    remove_course,
    schedule_from_mapping,
)
from credits import course_credits, sum_credits
from history import build_term_bucket_map, flatten_finished
from normalizer import course_key, dedupe_courses
from planning_rules import (
    COURSE_NOT_FOUND,
    CREDIT_CAP,
    DUPLICATE_COURSE,
    DUPLICATE_IN_CURRENT_MESSAGE,
    DUPLICATE_IN_TERM_MESSAGE,
    CAPACITY_EXCEEDED,
    INVALID_TARGET,
    MOVE_CAP_MESSAGE,
    SAME_LOCATION,
    rejection,
)
from terms import finished_terms, normalize_term_label, successor
from timeline import max_future_terms


@dataclass(frozen=True)
class CurrentTerm:
    pass


@dataclass(frozen=True)
class FutureTerm:
    index: int


def location_from_index(index) -> CurrentTerm | FutureTerm:
    """Legacy UI index: -1 is the current term, 0..n-1 are future semesters."""
    index = int(index)
    if index == -1:
        return CurrentTerm()
    if index < 0:
        raise ValueError(f"invalid semester index: {index}")
    return FutureTerm(index)


def location_to_index(location) -> int:
    return -1 if isinstance(location, CurrentTerm) else location.index


@dataclass(frozen=True)
class AddCourse:
    course: dict
    target: CurrentTerm | FutureTerm | None = None


@dataclass(frozen=True)
class RemoveCourse:
    course_id: str


@dataclass(frozen=True)
class MoveCourse:
    course_id: str
    source: CurrentTerm | FutureTerm
    destination: CurrentTerm | FutureTerm


@dataclass(frozen=True)
class ChangeCareerPath:
    path_id: str
    path_name: str | None = None


class PlanMutator:
    """Owns one student's plan state for the length of a planning session."""

    def __init__(
        self,
        current_term: str,
        current_courses=None,
        future_plans=None,
        finished_buckets=None,
        start_term: str | None = None,
        career_path_id: str | None = None,
        career_path_name: str | None = None,
        major: str | None = None,
        cap: int = CREDIT_CAP,
    ):
        self._lock = threading.RLock()
        self.current_term = normalize_term_label(current_term) or current_term
        self.start_term = normalize_term_label(start_term) or start_term
        self.major = major
        self.cap = cap
        self.current_courses: list[dict] = list(current_courses or [])
        self.future_plans: list[dict] = [
            build_semester_plan(p["name"], p.get("courses", [])) for p in future_plans or []
        ]
        self.finished_buckets: dict[str, list[dict]] = {
            t: list(cs) for t, cs in (finished_buckets or {}).items()
        }
        self.career_path_id = career_path_id
        self.career_path_name = career_path_name or career_path_id or ""
        self.generation_token = 0
        self.is_generating = False
        self.generation_error: str | None = None

    @classmethod
    def from_handoff(cls, handoff: dict, cap: int = CREDIT_CAP) -> "PlanMutator":
        """Build the plan state from the intake payload (see intake.build_plan_handoff)."""
        current_term = handoff.get("current_term")
        start_term = handoff.get("start_term")
        prev_agg = handoff.get("completed_prev_courses")
        if prev_agg is None:
            prev_agg = handoff.get("selected_courses") or []
        bucket_map = build_term_bucket_map(
            current_term,
            current_courses=handoff.get("current_term_courses") or [],
            previous_term_courses=handoff.get("previous_term_courses"),
            completed_courses=prev_agg,
            start_term=start_term,
            cap=cap,
        )
        current_label = normalize_term_label(current_term) or current_term
        current_courses = bucket_map.pop(current_label, []) if current_label else []
        return cls(
            current_term,
            current_courses=current_courses,
            finished_buckets=bucket_map,
            start_term=start_term,
            career_path_id=handoff.get("career_path_id"),
            career_path_name=handoff.get("career_path_name"),
            major=handoff.get("major"),
            cap=cap,
        )

    # ── Lookups ───────────────────────────────────────────────────────────────

    def _valid_location(self, location) -> bool:
        if isinstance(location, CurrentTerm):
            return True
        if isinstance(location, FutureTerm):
            return 0 <= location.index < len(self.future_plans)
        return False

    def _courses_at(self, location) -> list[dict]:
        if isinstance(location, CurrentTerm):
            return self.current_courses
        return self.future_plans[location.index]["courses"]

    def _total_at(self, location) -> int:
        if isinstance(location, CurrentTerm):
            return sum_credits(self.current_courses)
        return self.future_plans[location.index]["total_credits"]

    def _set_courses_at(self, location, courses: list[dict]) -> None:
        if isinstance(location, CurrentTerm):
            self.current_courses = courses
        else:
            name = self.future_plans[location.index]["name"]
            self.future_plans[location.index] = build_semester_plan(name, courses)

    def _term_name(self, location) -> str:
        if isinstance(location, CurrentTerm):
            return self.current_term
        return self.future_plans[location.index]["name"]

    def locate(self, course_id):
        """Where a course sits: a finished term name, CurrentTerm(), FutureTerm(i) or None."""
        key = course_key({"course_id": course_id})
        for term, term_courses in self.finished_buckets.items():
            if any(course_key(c) == key for c in term_courses):
                return term
        if contains_course(self.current_courses, course_id):
            return CurrentTerm()
        for i, plan in enumerate(self.future_plans):
            if contains_course(plan["courses"], course_id):
                return FutureTerm(i)
        return None

    def finished_courses(self) -> list[dict]:
        return flatten_finished(self.finished_buckets, None)

    def current_total(self) -> int:
        return sum_credits(self.current_courses)

    def planned_ids(self) -> set[str]:
        keys = {course_key(c) for c in self.finished_courses()}
        keys.update(course_key(c) for c in self.current_courses)
        for plan in self.future_plans:
            keys.update(course_key(c) for c in plan["courses"])
        return keys

    # ── Mutations ─────────────────────────────────────────────────────────────

    def add(self, course: dict, target=None) -> dict:
        """Add to an explicit semester, or to the earliest one with room when target is None."""
        with self._lock:
            course_id = course.get("course_id")
            if target is not None and not self._valid_location(target):
                return rejection(INVALID_TARGET, "That semester does not exist in your plan.")

            found = self.locate(course_id)
            if found is not None:
                if found == target:
                    msg = DUPLICATE_IN_CURRENT_MESSAGE if isinstance(target, CurrentTerm) else DUPLICATE_IN_TERM_MESSAGE
                elif isinstance(found, str):
                    msg = f"{course_id} was already completed in {found}."
                else:
                    msg = f"{course_id} is already planned for {self._term_name(found)}."
                return rejection(DUPLICATE_COURSE, msg)

            if target is None:
                result = place_in_earliest_available(course, self.future_plans, cap=self.cap)
                if not result["ok"]:
                    return result
                self.future_plans = result["plans"]
                return {"ok": True, "location": FutureTerm(result["index"])}

            result = place_in_target(course, self._courses_at(target), cap=self.cap)
            if not result["ok"]:
                return result
            self._set_courses_at(target, result["courses"])
            return {"ok": True, "location": target}

    def remove(self, course_id: str) -> dict:
        """Remove from the future semesters first, then from the current term."""
        with self._lock:
            for i, plan in enumerate(self.future_plans):
                courses, removed = remove_course(plan["courses"], course_id)
                if removed is not None:
                    self.future_plans[i] = build_semester_plan(plan["name"], courses)
                    return {"ok": True, "removed": True, "location": FutureTerm(i)}
            courses, removed = remove_course(self.current_courses, course_id)
            if removed is not None:
                self.current_courses = courses
                return {"ok": True, "removed": True, "location": CurrentTerm()}
            return {"ok": True, "removed": False, "location": None}

    def move(self, course_id: str, source, destination) -> dict:
        with self._lock:
            if source == destination:
                return rejection(SAME_LOCATION, "The course is already in that semester.")
            if not self._valid_location(source) or not self._valid_location(destination):
                return rejection(INVALID_TARGET, "That semester does not exist in your plan.")

            src_courses = self._courses_at(source)
            key = course_key({"course_id": course_id})
            moving = next((c for c in src_courses if course_key(c) == key), None)
            if moving is None:
                return rejection(COURSE_NOT_FOUND, f"{course_id} is not in {self._term_name(source)}.")

            if contains_course(self._courses_at(destination), course_id):
                return rejection(DUPLICATE_COURSE, DUPLICATE_IN_TERM_MESSAGE)

            # Capacity is checked against the destination total before the move.
            if self._total_at(destination) + course_credits(moving) > self.cap:
                return rejection(CAPACITY_EXCEEDED, MOVE_CAP_MESSAGE)

            new_src, removed = remove_course(src_courses, course_id)
            new_dest = list(self._courses_at(destination)) + [removed]
            self._set_courses_at(source, new_src)
            self._set_courses_at(destination, new_dest)
            return {"ok": True, "location": destination}

    def change_career_path(self, path_id: str, path_name: str | None = None) -> dict:
        """Switch career path. The future semesters must then be regenerated by the caller."""
        with self._lock:
            if path_id == self.career_path_id:
                return {"ok": True, "regenerate": False}
            self.career_path_id = path_id
            self.career_path_name = path_name or path_id
            token = self.begin_generation()
            return {"ok": True, "regenerate": True, "token": token}

    def dispatch(self, command) -> dict:
        if isinstance(command, AddCourse):
            return self.add(command.course, command.target)
        if isinstance(command, RemoveCourse):
            return self.remove(command.course_id)
        if isinstance(command, MoveCourse):
            return self.move(command.course_id, command.source, command.destination)
        if isinstance(command, ChangeCareerPath):
            return self.change_career_path(command.path_id, command.path_name)
        raise TypeError(f"unsupported plan command: {type(command).__name__}")

    def rebuild_history(self, start_term: str | None, completed_courses=None, previous_term_courses=None) -> None:
        """
        Replace the finished-term buckets wholesale after program dates change.

        The current term and future semesters are kept as they are; incoming
        completed courses that already sit there are dropped from the history.
        """
        with self._lock:
            live = {course_key(c) for c in self.current_courses}
            for plan in self.future_plans:
                live.update(course_key(c) for c in plan["courses"])

            if completed_courses is None and not previous_term_courses:
                completed_courses = self.finished_courses()
            dropped = 0

            def keep(courses):
                nonlocal dropped
                kept = [c for c in courses or [] if course_key(c) not in live]
                dropped += len(courses or []) - len(kept)
                return kept

            incoming = keep(dedupe_courses(completed_courses))
            incoming_map = None
            if previous_term_courses:
                incoming_map = {t: keep(cs) for t, cs in previous_term_courses.items()}
            if dropped:
                print(f"[INFO] Ignored {dropped} completed course entr(ies) already in the current or future plan.")

            bucket_map = build_term_bucket_map(
                self.current_term,
                previous_term_courses=incoming_map,
                completed_courses=incoming,
                start_term=start_term,
                cap=self.cap,
            )
            bucket_map.pop(self.current_term, None)
            self.start_term = normalize_term_label(start_term) or start_term
            self.finished_buckets = bucket_map

    # ── Generation hand-off ───────────────────────────────────────────────────

    def begin_generation(self) -> int:
        """
        Start a new generation request; every earlier token becomes stale.

        Staleness is decided by token alone: a response for an older token is
        dropped even when it was requested for the same career path.
        """
        with self._lock:
            self.generation_token += 1
            self.is_generating = True
            return self.generation_token

    def generation_request(self) -> dict:
        with self._lock:
            terms = finished_terms(self.start_term or self.current_term, self.current_term) or []
            return {
                "start_term": successor(self.current_term) or self.current_term,
                "career_path_id": self.career_path_id,
                "prior_courses": copy.deepcopy(self.finished_courses() + self.current_courses),
                "max_future_terms": max_future_terms(len(terms)),
            }

    def apply_generated_schedule(self, token: int, mapping: dict | None) -> bool:
        with self._lock:
            if token != self.generation_token:
                print(f"[INFO] Dropping stale plan response (token {token}, latest {self.generation_token}).")
                return False
            self.future_plans = schedule_from_mapping(mapping)
            self.is_generating = False
            self.generation_error = None
            return True

    def record_generation_failure(self, token: int, message: str) -> bool:
        """Keep the last good schedule and remember why generation failed."""
        with self._lock:
            if token != self.generation_token:
                return False
            self.is_generating = False
            self.generation_error = message
            return True

    def snapshot(self) -> dict:
        with self._lock:
            return copy.deepcopy({
                "major": self.major,
                "start_term": self.start_term,
                "current_term": self.current_term,
                "career_path_id": self.career_path_id,
                "career_path_name": self.career_path_name,
                "finished_terms": self.finished_buckets,
                "current_courses": self.current_courses,
                "current_total_credits": sum_credits(self.current_courses),
                "future_plans": self.future_plans,
                "is_generating": self.is_generating,
                "generation_error": self.generation_error,
            })
