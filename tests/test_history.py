import pytest
from history import (
    build_history_buckets,
    build_term_bucket_map,
    distribute_across_terms,
    flatten_finished,
)


def _courses(*credits, prefix="CS"):
    return [
        {"course_id": f"{prefix} {100 + i}", "credit_hours": c}
        for i, c in enumerate(credits)
    ]


def _ids(bucket_map):
    return sorted(c["course_id"] for cs in bucket_map.values() for c in cs)


class TestDistributeAcrossTerms:
    def test_fills_earliest_term_to_cap(self):
        courses = _courses(5, 5, 5, 5, 5)
        result = distribute_across_terms(courses, ["Fall 2023", "Spring 2024"])
        assert result["Fall 2023"] == courses[:4]
        assert result["Spring 2024"] == courses[4:]

    def test_overflow_lands_in_last_term(self):
        courses = _courses(*([5] * 9))
        result = distribute_across_terms(courses, ["Fall 2023", "Spring 2024"])
        assert len(result["Fall 2023"]) == 4
        assert len(result["Spring 2024"]) == 5

    def test_oversized_course_skips_to_last_term(self):
        courses = _courses(25, 3)
        result = distribute_across_terms(courses, ["Fall 2023", "Spring 2024"])
        assert result["Fall 2023"] == []
        assert result["Spring 2024"] == courses

    def test_cursor_never_moves_back(self):
        courses = _courses(18, 4, 1)
        result = distribute_across_terms(courses, ["Fall 2023", "Spring 2024"])
        # the 1-credit course would fit in Fall 2023 but the cursor has moved on
        assert [c["credit_hours"] for c in result["Fall 2023"]] == [18]
        assert [c["credit_hours"] for c in result["Spring 2024"]] == [4, 1]

    def test_missing_credits_count_as_default(self):
        courses = [{"course_id": f"CS {100 + i}"} for i in range(7)]
        result = distribute_across_terms(courses, ["Fall 2023", "Spring 2024"])
        assert len(result["Fall 2023"]) == 6
        assert len(result["Spring 2024"]) == 1

    def test_no_terms_uses_overflow_term(self):
        courses = _courses(3, 4)
        assert distribute_across_terms(courses, [], overflow_term="Spring 2024") == {
            "Spring 2024": courses
        }

    def test_every_term_present_even_if_empty(self):
        result = distribute_across_terms([], ["Fall 2023", "Spring 2024"])
        assert result == {"Fall 2023": [], "Spring 2024": []}

    @pytest.mark.parametrize("credits", [
        (3, 4, 3, 4, 3, 4, 3, 4),
        (20, 20, 20, 20),
        (1, 19, 2, 18, 25, 3),
        ("3-4", None, {"min": 2}, [5], "TBD"),
    ])
    def test_never_drops_courses(self, credits):
        courses = _courses(*credits)
        terms = ["Fall 2022", "Spring 2023", "Fall 2023"]
        result = distribute_across_terms(courses, terms)
        assert _ids(result) == sorted(c["course_id"] for c in courses)


class TestBuildHistoryBuckets:
    def test_valid_range(self):
        courses = _courses(5, 5, 5, 5, 5)
        result = build_history_buckets(courses, "Fall 2023", "Fall 2024")
        assert list(result) == ["Fall 2023", "Spring 2024"]
        assert len(result["Fall 2023"]) == 4
        assert len(result["Spring 2024"]) == 1

    def test_start_equals_current_goes_to_previous_term(self):
        courses = _courses(3, 3)
        assert build_history_buckets(courses, "Fall 2024", "Fall 2024") == {"Spring 2024": courses}

    def test_missing_start_uses_previous_term(self):
        courses = _courses(3, 3)
        assert build_history_buckets(courses, None, "Spring 2025") == {"Fall 2024": courses}

    def test_reversed_range_uses_previous_term(self):
        courses = _courses(4)
        assert build_history_buckets(courses, "Spring 2025", "Fall 2024") == {"Spring 2024": courses}

    def test_malformed_start_uses_previous_term(self):
        courses = _courses(4)
        assert build_history_buckets(courses, "Fal 2023", "Fall 2024") == {"Spring 2024": courses}

    def test_no_previous_term_drops_with_warning(self, capsys):
        courses = _courses(4)
        assert build_history_buckets(courses, None, "Summer 2024") == {}
        assert "[WARN]" in capsys.readouterr().err

    def test_empty_courses(self):
        assert build_history_buckets([], None, "Fall 2024") == {}


class TestBuildTermBucketMap:
    def test_explicit_map_used_verbatim(self):
        prev = {"fall 2023": _courses(25), "Spring 2024": _courses(3, prefix="MATH")}
        result = build_term_bucket_map(
            "Fall 2024",
            current_courses=_courses(4, prefix="STAT"),
            previous_term_courses=prev,
            completed_courses=_courses(3, prefix="PHYS"),
            start_term="Fall 2023",
        )
        assert list(result) == ["Fall 2023", "Spring 2024", "Fall 2024"]
        # 25 credits kept as given; explicit data is not re-bucketed
        assert result["Fall 2023"][0]["credit_hours"] == 25
        assert _ids(result) == ["CS 100", "MATH 100", "STAT 100"]

    def test_explicit_map_sorted_by_term(self):
        prev = {
            "Spring 2024": _courses(3, prefix="ECE"),
            "Fall 2022": _courses(3, prefix="CS"),
            "Spring 2023": _courses(3, prefix="MATH"),
            "Fall 2023": _courses(3, prefix="PHYS"),
        }
        result = build_term_bucket_map("Fall 2024", previous_term_courses=prev)
        assert list(result) == ["Fall 2022", "Spring 2023", "Fall 2023", "Spring 2024", "Fall 2024"]
        assert result["Spring 2024"][0]["course_id"] == "ECE 100"

    def test_explicit_map_earliest_term_wins_duplicates(self):
        result = build_term_bucket_map(
            "Fall 2024",
            previous_term_courses={"Spring 2024": _courses(3), "Fall 2023": _courses(4)},
        )
        assert result["Fall 2023"][0]["credit_hours"] == 4
        assert result["Spring 2024"] == []

    def test_aggregate_goes_through_bucketer(self):
        result = build_term_bucket_map(
            "Fall 2024",
            current_courses=_courses(4, prefix="STAT"),
            completed_courses=_courses(5, 5, 5, 5, 5),
            start_term="Fall 2023",
        )
        assert [len(v) for v in result.values()] == [4, 1, 1]
        assert list(result)[-1] == "Fall 2024"

    def test_duplicates_keep_first_occurrence(self, capsys):
        dup = {"course_id": "cs 100", "credit_hours": 3}
        result = build_term_bucket_map(
            "Fall 2024",
            current_courses=[dup],
            previous_term_courses={"Spring 2024": _courses(3)},
        )
        assert result["Spring 2024"][0]["course_id"] == "CS 100"
        assert result["Fall 2024"] == []
        assert "[INFO]" in capsys.readouterr().out

    def test_current_term_in_explicit_map_is_replaced(self):
        result = build_term_bucket_map(
            "Fall 2024",
            current_courses=_courses(4, prefix="STAT"),
            previous_term_courses={"Fall 2024": _courses(3), "Spring 2024": _courses(3, prefix="MATH")},
        )
        assert list(result) == ["Spring 2024", "Fall 2024"]
        assert _ids({"x": result["Fall 2024"]}) == ["STAT 100"]

    def test_flatten_finished_skips_current(self):
        bucket_map = {
            "Spring 2024": _courses(3),
            "Fall 2024": _courses(4, prefix="STAT"),
        }
        assert [c["course_id"] for c in flatten_finished(bucket_map, "fall 2024")] == ["CS 100"]
