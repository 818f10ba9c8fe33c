import pytest
import requests

from credits import sum_credits
from data_loader import load_data
from services import LocalCatalog, LocalPlanGenerator, RemotePlannerClient


COURSES_CSV = """course_id,title,department,credit_hours,course_avg_difficulty,course_avg_gpa,instructors,semesters
CS 124,Introduction to Computer Science I,CS,3,2.8,3.41,,Fall;Spring
CS 222,Software Design Lab,CS,1,2.0,3.70,,Fall;Spring
CS 225,Data Structures,CS,4,3.6,3.02,,Fall;Spring
CS 341,System Programming,CS,4,4.1,2.88,,Fall;Spring
CS 374,Introduction to Algorithms,CS,4,4.3,2.80,,Fall;Spring
CS 411,Database Systems,CS,3-4,3.2,3.35,,Fall;Spring
CS 421,Programming Languages and Compilers,CS,3,3.8,3.00,,Fall
CS 427,Software Engineering I,CS,3-4,2.9,3.45,,Fall;Spring
MATH 225,Introductory Matrix Theory,MATH,2,2.9,3.30,,Fall
STAT 107,Data Science Discovery,STAT,4,2.1,3.60,,Fall;Spring
"""

PATHWAYS_CSV = """pathway_id,label,color,course_id,role
software-engineering,Software Engineer,#2563eb,CS 225,core
software-engineering,Software Engineer,#2563eb,CS 341,core
software-engineering,Software Engineer,#2563eb,CS 374,core
software-engineering,Software Engineer,#2563eb,CS 427,core
software-engineering,Software Engineer,#2563eb,CS 222,recommended
software-engineering,Software Engineer,#2563eb,CS 411,recommended
software-engineering,Software Engineer,#2563eb,CS 421,optional
software-engineering,Software Engineer,#2563eb,CS 599,optional
data-science,Data Scientist,#16a34a,STAT 107,core
"""


@pytest.fixture
def catalog(tmp_path):
    (tmp_path / "courses.csv").write_text(COURSES_CSV)
    (tmp_path / "pathways.csv").write_text(PATHWAYS_CSV)
    return LocalCatalog(load_data(str(tmp_path)))


class TestLocalCatalog:
    def test_get_course_normalizes_id(self, catalog):
        assert catalog.get_course("cs225")["title"] == "Data Structures"
        assert catalog.get_course("CS 999") is None

    def test_get_course_returns_copy(self, catalog):
        catalog.get_course("CS 225")["title"] = "changed"
        assert catalog.get_course("CS 225")["title"] == "Data Structures"

    def test_search_prefix_then_level(self, catalog):
        results = catalog.search("cs 22")
        assert [c["course_id"] for c in results] == ["CS 222", "CS 225"]

    def test_search_includes_title_matches(self, catalog):
        results = catalog.search("data")
        assert {c["course_id"] for c in results} == {"CS 225", "CS 411", "STAT 107"}
        assert results[0]["course_id"] == "STAT 107"

    def test_search_ties_break_on_id(self, catalog):
        results = catalog.search("225")
        assert [c["course_id"] for c in results] == ["CS 225", "MATH 225"]

    def test_search_short_query(self, catalog):
        assert catalog.search("c") == []

    def test_search_limit(self, catalog):
        assert len(catalog.search("CS", limit=3)) == 3

    def test_pathways(self, catalog):
        assert [p["id"] for p in catalog.list_pathways()] == ["data-science", "software-engineering"]
        pathway = catalog.get_pathway("software-engineering")
        assert pathway["core_courses"][0] == "CS 225"
        assert catalog.get_pathway("nope") is None


class TestLocalPlanGenerator:
    def test_fills_terms_to_target(self, catalog):
        gen = LocalPlanGenerator(catalog)
        schedule = gen.generate("Spring 2025", "software-engineering", [{"course_id": "CS 225"}], 4)
        assert list(schedule) == ["Spring 2025", "Fall 2025", "Spring 2026", "Fall 2026"]
        first = [c["course_id"] for c in schedule["Spring 2025"]]
        assert first == ["CS 341", "CS 374", "CS 427", "CS 222", "CS 411"]
        assert [c["course_id"] for c in schedule["Fall 2025"]] == ["CS 421", "CS 599"]
        assert schedule["Spring 2026"] == []

    def test_unknown_course_becomes_placeholder(self, catalog):
        schedule = LocalPlanGenerator(catalog).generate("Spring 2025", "software-engineering", [], 3)
        placeholders = [c for cs in schedule.values() for c in cs if c["title"] == "Suggested Course"]
        assert [c["course_id"] for c in placeholders] == ["CS 599"]

    def test_respects_cap(self, catalog):
        gen = LocalPlanGenerator(catalog, target_credits=30, cap=8)
        schedule = gen.generate("Fall 2025", "software-engineering", [], 2)
        for courses in schedule.values():
            assert sum_credits(courses) <= 8

    def test_zero_terms(self, catalog):
        assert LocalPlanGenerator(catalog).generate("Spring 2025", "data-science", [], 0) == {}

    def test_unknown_path(self, catalog):
        with pytest.raises(ValueError):
            LocalPlanGenerator(catalog).generate("Spring 2025", "astronaut", [], 3)


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append(("GET", url, params, timeout))
        return self.responses[url]

    def post(self, url, json=None, timeout=None):
        self.calls.append(("POST", url, json, timeout))
        return self.responses[url]


class TestRemotePlannerClient:
    BASE = "http://planner.test/api/"

    def _client(self, responses):
        session = FakeSession(responses)
        return RemotePlannerClient(self.BASE, timeout=5, session=session), session

    def test_search(self):
        client, session = self._client({
            "http://planner.test/api/courses/search": FakeResponse(payload={"courses": [{"course_id": "CS 225"}]}),
        })
        assert client.search("CS 225") == [{"course_id": "CS 225"}]
        assert session.calls[0][2] == {"q": "CS 225", "limit": 5}
        assert session.calls[0][3] == 5

    def test_short_search_skips_request(self):
        client, session = self._client({})
        assert client.search("c") == []
        assert session.calls == []

    def test_get_course_quotes_id(self):
        client, _ = self._client({
            "http://planner.test/api/courses/CS%20225": FakeResponse(payload={"course_id": "CS 225"}),
        })
        assert client.get_course("CS 225") == {"course_id": "CS 225"}

    def test_get_course_missing(self):
        client, _ = self._client({
            "http://planner.test/api/courses/CS%20999": FakeResponse(status_code=404),
        })
        assert client.get_course("CS 999") is None

    def test_server_error_propagates(self):
        client, _ = self._client({
            "http://planner.test/api/pathways": FakeResponse(status_code=503),
        })
        with pytest.raises(requests.HTTPError):
            client.list_pathways()

    def test_generate(self):
        schedule = {"Spring 2025": [{"course_id": "CS 341"}]}
        client, session = self._client({
            "http://planner.test/api/plans/generate": FakeResponse(payload={"schedule": schedule}),
        })
        assert client.generate("Spring 2025", "security", [], 5) == schedule
        assert session.calls[0][2]["max_future_terms"] == 5

    def test_generate_without_schedule(self):
        client, _ = self._client({
            "http://planner.test/api/plans/generate": FakeResponse(payload={"error": "busy"}),
        })
        with pytest.raises(ValueError):
            client.generate("Spring 2025", "security", [], 5)
