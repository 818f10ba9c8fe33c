"""Tests for allocator.py: semester plans, earliest-available placement, target placement."""

from allocator import (
    build_semester_plan,
    contains_course,
    place_in_earliest_available,
    place_in_target,
    remove_course,
    schedule_from_mapping,
)


def _course(course_id, credits=3):
    return {"course_id": course_id, "credit_hours": credits}


def _plan(name, *credits):
    prefix = name.split()[0].upper()
    courses = [_course(f"{prefix} {name[-2:]}{i}", c) for i, c in enumerate(credits)]
    return build_semester_plan(name, courses)


class TestBuildSemesterPlan:
    def test_total_matches_courses(self):
        plan = build_semester_plan("Spring 2025", [_course("CS 124"), _course("CS 225", "3-4"), _course("CS 498", None)])
        assert plan["total_credits"] == 9

    def test_empty(self):
        assert build_semester_plan("Fall 2025", None) == {"name": "Fall 2025", "courses": [], "total_credits": 0}

    def test_schedule_from_mapping_keeps_order(self):
        plans = schedule_from_mapping({
            "Spring 2025": [_course("CS 341", 4)],
            "Fall 2025": [],
            "Spring 2026": [_course("CS 411"), _course("CS 421")],
        })
        assert [p["name"] for p in plans] == ["Spring 2025", "Fall 2025", "Spring 2026"]
        assert [p["total_credits"] for p in plans] == [4, 0, 6]
        assert schedule_from_mapping(None) == []

    def test_contains_course_normalizes(self):
        assert contains_course([_course("CS 225")], "cs225")
        assert not contains_course(None, "CS 225")


class TestPlaceInEarliestAvailable:
    def test_skips_full_semesters(self):
        plans = [
            _plan("Spring 2025", 4, 4, 4, 4, 4),
            _plan("Fall 2025", 4, 4, 4, 3, 3),
            _plan("Spring 2026", 5),
        ]
        assert [p["total_credits"] for p in plans] == [20, 18, 5]
        result = place_in_earliest_available(_course("CS 440", 3), plans)
        assert result["ok"] is True
        assert result["index"] == 2
        assert result["plans"][2]["total_credits"] == 8
        assert result["plans"][2]["courses"][-1]["course_id"] == "CS 440"

    def test_fits_exactly_at_cap(self):
        plans = [_plan("Spring 2025", 4, 4, 4, 4, 1)]
        result = place_in_earliest_available(_course("CS 440", 3), plans)
        assert result["index"] == 0
        assert result["plans"][0]["total_credits"] == 20

    def test_no_room(self):
        plans = [
            _plan("Spring 2025", 4, 4, 4, 4, 4),
            _plan("Fall 2025", 4, 4, 4, 3, 3),
        ]
        result = place_in_earliest_available(_course("CS 440", 3), plans)
        assert result["ok"] is False
        assert result["error"]["error_code"] == "NO_CAPACITY"
        assert "20 credits" in result["error"]["message"]

    def test_no_future_semesters(self):
        result = place_in_earliest_available(_course("CS 440"), [])
        assert result["error"]["error_code"] == "NO_CAPACITY"

    def test_duplicate_rejected(self):
        plans = [_plan("Spring 2025", 3), _plan("Fall 2025", 3)]
        dup = plans[1]["courses"][0]["course_id"]
        result = place_in_earliest_available(_course(dup), plans)
        assert result["error"]["error_code"] == "DUPLICATE_COURSE"

    def test_inputs_not_mutated(self):
        plans = [_plan("Spring 2025", 3)]
        before = [dict(p, courses=list(p["courses"])) for p in plans]
        place_in_earliest_available(_course("CS 440"), plans)
        assert plans == before

    def test_missing_credits_count_as_three(self):
        plans = [_plan("Spring 2025", 4, 4, 4, 4, 2)]
        result = place_in_earliest_available({"course_id": "CS 498"}, plans)
        assert result["error"]["error_code"] == "NO_CAPACITY"


class TestPlaceInTarget:
    def test_appends(self):
        result = place_in_target(_course("CS 440", 3), [_course("CS 225", 4)])
        assert result["ok"] is True
        assert result["total_credits"] == 7
        assert [c["course_id"] for c in result["courses"]] == ["CS 225", "CS 440"]

    def test_over_cap(self):
        target = [_course("CS 100", 19)]
        result = place_in_target(_course("CS 440", 3), target)
        assert result["error"]["error_code"] == "CAPACITY_EXCEEDED"
        assert result["error"]["message"] == "Cannot add course. Semester limit is 20 credits."
        assert len(target) == 1

    def test_duplicate_message(self):
        result = place_in_target(
            _course("CS 225"),
            [_course("CS 225")],
            duplicate_message="This course is already in the current semester!",
        )
        assert result["error"] == {
            "error_code": "DUPLICATE_COURSE",
            "message": "This course is already in the current semester!",
        }


class TestRemoveCourse:
    def test_removes_first_match(self):
        courses = [_course("CS 124"), _course("CS 128")]
        remaining, removed = remove_course(courses, "cs 124")
        assert removed["course_id"] == "CS 124"
        assert [c["course_id"] for c in remaining] == ["CS 128"]
        assert len(courses) == 2

    def test_missing(self):
        remaining, removed = remove_course([_course("CS 124")], "CS 999")
        assert removed is None
        assert len(remaining) == 1
