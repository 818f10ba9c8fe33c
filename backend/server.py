import os
import sys
import time
import threading
import uuid
from collections import OrderedDict, defaultdict

# Ensure backend/ is on sys.path so sibling imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

from data_loader import load_data
from intake import add_to_term, build_plan_handoff, seed_term_map
from plan_state import ChangeCareerPath, MoveCourse, AddCourse, RemoveCourse
from planner import (
    create_plan,
    generate_future_plan,
    recommendations_for,
    resolve_course,
    search_courses,
)
from services import LocalCatalog, LocalPlanGenerator, RemotePlannerClient
from terms import enumerate_inclusive, normalize_term_label, successor
from timeline import build_timeline_view
from validators import (
    coerce_course_entries,
    location_label,
    parse_location,
    parse_required_location,
    validate_plan_body,
)

load_dotenv()

app = Flask(__name__)

# ── Paths ─────────────────────────────────────────────────────────────────────
BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BACKEND_DIR)
_DEFAULT_DATA_PATH = os.path.join(PROJECT_ROOT, "data")
_env_data_path = os.environ.get("DATA_PATH")
if not _env_data_path:
    DATA_PATH = _DEFAULT_DATA_PATH
elif not os.path.isabs(_env_data_path):
    DATA_PATH = os.path.join(PROJECT_ROOT, _env_data_path)
else:
    DATA_PATH = _env_data_path
_data_lock = threading.Lock()
_data_mtime = None

# -- Rate limiting (manual token bucket, 10 plan generations/min per IP) ----
_RATE_LIMIT_MAX = 10
_RATE_LIMIT_WINDOW = 60  # seconds
_rate_limit_lock = threading.Lock()
_rate_limit_tracker: dict[str, list[float]] = defaultdict(list)


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, float(raw))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, int(raw))
    except (TypeError, ValueError):
        return default


_SLOW_REQUEST_LOG_MS = _env_float("SLOW_REQUEST_LOG_MS", 750.0, minimum=0.0)
_PLAN_SESSION_LIMIT = _env_int("PLAN_SESSION_LIMIT", 256, minimum=1)
PLANNER_SERVICE_URL = os.environ.get("PLANNER_SERVICE_URL", "").strip()
_PLANNER_SERVICE_TIMEOUT = _env_float("PLANNER_SERVICE_TIMEOUT", 30.0, minimum=1.0)


class _LruSessionStore:
    """Thread-safe bounded in-memory store of live plans. Oldest plan is evicted first."""

    def __init__(self, max_size: int):
        self.max_size = max(1, int(max_size))
        self._lock = threading.Lock()
        self._items: OrderedDict[str, object] = OrderedDict()

    def get(self, key: str):
        with self._lock:
            if key not in self._items:
                return None
            value = self._items.pop(key)
            self._items[key] = value
            return value

    def set(self, key: str, value) -> None:
        with self._lock:
            if key in self._items:
                self._items.pop(key)
            self._items[key] = value
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


_plans = _LruSessionStore(_PLAN_SESSION_LIMIT)


def _check_rate_limit(ip: str) -> bool:
    """Return True if request is allowed, False if rate-limited."""
    now = time.time()
    with _rate_limit_lock:
        timestamps = _rate_limit_tracker[ip]
        _rate_limit_tracker[ip] = [t for t in timestamps if now - t < _RATE_LIMIT_WINDOW]
        if len(_rate_limit_tracker[ip]) >= _RATE_LIMIT_MAX:
            return False
        _rate_limit_tracker[ip].append(now)
        return True


def _data_file_mtime(path: str):
    try:
        if os.path.isdir(path):
            mtimes = [
                os.path.getmtime(os.path.join(path, f))
                for f in os.listdir(path)
                if f.endswith(".csv")
            ]
            return max(mtimes) if mtimes else None
        return os.path.getmtime(path)
    except OSError:
        return None


def _build_collaborators(data: dict):
    """(catalog, generator): remote planner service when configured, else the local CSV catalog."""
    if PLANNER_SERVICE_URL:
        client = RemotePlannerClient(PLANNER_SERVICE_URL, timeout=_PLANNER_SERVICE_TIMEOUT)
        return client, client
    catalog = LocalCatalog(data)
    return catalog, LocalPlanGenerator(catalog)


# ── Startup data load ──────────────────────────────────────────────────────────
try:
    _data = load_data(DATA_PATH)
    _data_mtime = _data_file_mtime(DATA_PATH)
    print(f"[OK] Loaded {len(_data['catalog'])} courses and {len(_data['pathways'])} pathways from {DATA_PATH}")
except FileNotFoundError:
    if DATA_PATH != _DEFAULT_DATA_PATH and os.path.exists(_DEFAULT_DATA_PATH):
        print(
            f"[WARN] DATA_PATH not found ({DATA_PATH}); "
            f"falling back to default catalog ({_DEFAULT_DATA_PATH}).",
            file=sys.stderr,
        )
        DATA_PATH = _DEFAULT_DATA_PATH
        _data = load_data(DATA_PATH)
        _data_mtime = _data_file_mtime(DATA_PATH)
        print(f"[OK] Loaded {len(_data['catalog'])} courses from {DATA_PATH}")
    else:
        print(f"[FATAL] Catalog not found: {DATA_PATH}", file=sys.stderr)
        sys.exit(1)
except Exception as exc:
    print(f"[FATAL] Failed to load catalog: {exc}", file=sys.stderr)
    sys.exit(1)

_catalog, _generator = _build_collaborators(_data)
if PLANNER_SERVICE_URL:
    print(f"[INFO] Using remote planner service at {PLANNER_SERVICE_URL}")


def _reload_data_if_changed(force: bool = False) -> bool:
    """
    Hot-reload the CSV catalog when DATA_PATH changes on disk.

    Returns True when a reload occurred, else False. Live plans keep the
    course objects they already hold.
    """
    global _data, _catalog, _generator, _data_mtime

    candidate_mtime = _data_file_mtime(DATA_PATH)
    if not force:
        if candidate_mtime is None:
            return False
        if _data_mtime is not None and candidate_mtime <= _data_mtime:
            return False

    with _data_lock:
        latest_mtime = _data_file_mtime(DATA_PATH)
        if not force:
            if latest_mtime is None:
                return False
            if _data_mtime is not None and latest_mtime <= _data_mtime:
                return False

        try:
            new_data = load_data(DATA_PATH)
        except Exception as exc:
            print(f"[WARN] Catalog reload failed; keeping previous catalog: {exc}", file=sys.stderr)
            return False

        _data = new_data
        _catalog, _generator = _build_collaborators(new_data)
        _data_mtime = latest_mtime if latest_mtime is not None else candidate_mtime
        print(f"[OK] Reloaded {len(new_data['catalog'])} courses from {DATA_PATH}")
        return True


def _refresh_data_if_needed() -> None:
    try:
        _reload_data_if_changed()
    except Exception as exc:
        print(f"[WARN] Catalog reload check failed: {exc}", file=sys.stderr)


# -- Security headers ------------------------------------------------------
@app.before_request
def _start_request_timer():
    g._request_start_time = time.perf_counter()


@app.after_request
def _add_security_headers(response):
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "same-origin"

    started = getattr(g, "_request_start_time", None)
    if started is not None:
        duration_ms = (time.perf_counter() - started) * 1000.0
        if duration_ms >= _SLOW_REQUEST_LOG_MS:
            endpoint = request.endpoint or "unknown"
            print(
                f"[SLOW] {request.method} {request.path} "
                f"endpoint={endpoint} status={response.status_code} duration_ms={duration_ms:.1f}"
            )
    return response


# -- Health endpoint --------------------------------------------------------
@app.route("/health", methods=["GET"])
def health_endpoint():
    return jsonify({
        "status": "ok",
        "version": "1.0.0",
        "catalog_courses": len(_data.get("catalog", {})),
        "remote_planner": bool(PLANNER_SERVICE_URL),
    })


# -- Response helpers -------------------------------------------------------
def _error(error_code: str, message: str, status: int):
    return jsonify({
        "mode": "error",
        "error": {"error_code": error_code, "message": message},
    }), status


def _rejected(result: dict):
    return jsonify({"mode": "error", "error": result["error"]}), 409


def _client_ip() -> str:
    return request.headers.get("X-Forwarded-For", request.remote_addr or "").split(",")[0].strip()


def _rate_limited() -> bool:
    return not app.config.get("TESTING") and not _check_rate_limit(_client_ip())


def _catalog_codes():
    """Known course ids for input checks; None when a remote planner owns the catalog."""
    if PLANNER_SERVICE_URL:
        return None
    return _data.get("catalog_codes")


def _resolve_entries(entries) -> list[dict]:
    return [e if isinstance(e, dict) else resolve_course(_catalog, e) for e in entries]


def _plan_payload(plan_id: str, mutator, extra: dict | None = None) -> dict:
    snapshot = mutator.snapshot()
    timeline = build_timeline_view(snapshot)
    # Finished terms as an ordered list; jsonify sorts object keys.
    plan = {
        **snapshot,
        "finished_terms": [
            {"term": term, "courses": courses}
            for term, courses in snapshot["finished_terms"].items()
        ],
    }
    payload = {
        "mode": "plan",
        "plan_id": plan_id,
        "plan": plan,
        "upcoming_term": successor(snapshot["current_term"]),
        "timeline": timeline,
    }
    if extra:
        payload.update(extra)
    return payload


def _get_plan_or_404(plan_id: str):
    mutator = _plans.get(plan_id)
    if mutator is None:
        return None, _error("PLAN_NOT_FOUND", "This plan has expired. Start a new plan.", 404)
    return mutator, None


# ── 500 handler ────────────────────────────────────────────────────────────────
@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return e
    print(f"[WARN] Unhandled error: {e}", file=sys.stderr)
    return jsonify({
        "mode": "error",
        "error": {
            "error_code": "SERVER_ERROR",
            "message": "An unexpected server error occurred.",
        },
    }), 500


# ── Routes ─────────────────────────────────────────────────────────────────────
@app.route("/api/terms", methods=["GET"])
def get_terms():
    start = request.args.get("start", "")
    end = request.args.get("end", "")
    terms = enumerate_inclusive(start, end)
    if terms is None:
        return _error("INVALID_INPUT", "The start semester must be a valid semester before the end semester.", 400)
    return jsonify({
        "terms": terms,
        "finished": terms[:-1],
        "current": terms[-1],
        "upcoming": successor(terms[-1]),
    })


@app.route("/api/pathways", methods=["GET"])
def get_pathways():
    """Career paths for the intake selector."""
    _refresh_data_if_needed()
    try:
        pathways = _catalog.list_pathways()
    except Exception as exc:
        print(f"[WARN] Pathway listing failed: {exc}", file=sys.stderr)
        pathways = []
    return jsonify({"pathways": pathways})


@app.route("/api/courses/search", methods=["GET"])
def search_courses_endpoint():
    _refresh_data_if_needed()
    query = request.args.get("q", "")
    limit = request.args.get("limit", 5)
    try:
        limit = max(1, min(int(limit), 25))
    except (TypeError, ValueError):
        limit = 5
    mutator = _plans.get(request.args.get("plan_id", "")) if request.args.get("plan_id") else None
    return jsonify({"courses": search_courses(_catalog, query, mutator=mutator, limit=limit)})


@app.route("/api/plans", methods=["POST"])
def create_plan_endpoint():
    if _rate_limited():
        return _error("RATE_LIMITED", "Too many requests. Please wait before submitting again.", 429)
    _refresh_data_if_needed()

    body = request.get_json(force=True, silent=True)
    err_code, err_msg = validate_plan_body(body)
    if err_code:
        return _error(err_code, err_msg, 400)

    current_term = normalize_term_label(body["current_term"])
    start_term = normalize_term_label(body.get("start_term") or "") or None

    codes = _catalog_codes()
    current_entries, bad_current = coerce_course_entries(body.get("current_term_courses"), codes)
    completed_entries, bad_completed = coerce_course_entries(body.get("completed_courses"), codes)
    prev_map_raw = body.get("previous_term_courses") or {}
    prev_map: dict[str, list[dict]] = {}
    bad_prev: list[str] = []
    for term, raw in prev_map_raw.items():
        entries, bad = coerce_course_entries(raw, codes)
        prev_map[normalize_term_label(term)] = _resolve_entries(entries)
        bad_prev.extend(bad)
    invalid = bad_current + bad_completed + bad_prev
    if invalid:
        return _error("INVALID_INPUT", f"Unrecognized course id(s): {', '.join(invalid)}", 400)

    current_courses = _resolve_entries(current_entries)
    if prev_map:
        term_map = seed_term_map(start_term, current_term, {t: [] for t in [*prev_map, current_term]})
        for term, courses in [*prev_map.items(), (current_term, current_courses)]:
            for course in courses:
                result = add_to_term(term_map, term, course)
                if not result["ok"]:
                    return _error(result["error"]["error_code"], result["error"]["message"], 400)
                term_map = result["term_map"]
        handoff = build_plan_handoff(
            term_map,
            start_term,
            current_term,
            body.get("major", ""),
            str(body["career_path_id"]).strip(),
            body.get("career_path_name"),
        )
    else:
        handoff = {
            "major": body.get("major", ""),
            "career_path_id": str(body["career_path_id"]).strip(),
            "career_path_name": body.get("career_path_name"),
            "completed_prev_courses": _resolve_entries(completed_entries),
            "current_term_courses": current_courses,
            "start_term": start_term,
            "current_term": current_term,
        }

    mutator, outcome = create_plan(handoff, _generator)
    plan_id = uuid.uuid4().hex
    _plans.set(plan_id, mutator)
    return jsonify(_plan_payload(plan_id, mutator, {"generation": outcome})), 201


@app.route("/api/plans/<plan_id>", methods=["GET"])
def get_plan(plan_id):
    mutator, err = _get_plan_or_404(plan_id)
    if err:
        return err
    return jsonify(_plan_payload(plan_id, mutator))


@app.route("/api/plans/<plan_id>/courses", methods=["POST"])
def add_course_endpoint(plan_id):
    mutator, err = _get_plan_or_404(plan_id)
    if err:
        return err
    body = request.get_json(force=True, silent=True) or {}

    target, loc_err = parse_location(body.get("target"))
    if loc_err:
        return _error("INVALID_INPUT", loc_err, 400)

    course = body.get("course")
    if not isinstance(course, dict) or not str(course.get("course_id") or "").strip():
        course_id = str(body.get("course_id") or "").strip()
        if not course_id:
            return _error("INVALID_INPUT", "Provide a course_id or a course object.", 400)
        try:
            course = _catalog.get_course(course_id)
        except Exception as exc:
            print(f"[WARN] Course lookup failed for {course_id}: {exc}", file=sys.stderr)
            course = None
        if course is None:
            return _error("UNKNOWN_COURSE", f"{course_id} was not found in the course catalog.", 400)

    result = mutator.dispatch(AddCourse(course, target))
    if not result["ok"]:
        return _rejected(result)
    return jsonify(_plan_payload(plan_id, mutator, {"location": location_label(result["location"])}))


@app.route("/api/plans/<plan_id>/courses/<path:course_id>", methods=["DELETE"])
def remove_course_endpoint(plan_id, course_id):
    mutator, err = _get_plan_or_404(plan_id)
    if err:
        return err
    result = mutator.dispatch(RemoveCourse(course_id))
    return jsonify(_plan_payload(plan_id, mutator, {"removed": result["removed"]}))


@app.route("/api/plans/<plan_id>/move", methods=["POST"])
def move_course_endpoint(plan_id):
    mutator, err = _get_plan_or_404(plan_id)
    if err:
        return err
    body = request.get_json(force=True, silent=True) or {}
    course_id = str(body.get("course_id") or "").strip()
    if not course_id:
        return _error("INVALID_INPUT", "'course_id' is required.", 400)
    source, src_err = parse_required_location(body.get("from"), "from")
    if src_err:
        return _error("INVALID_INPUT", src_err, 400)
    destination, dest_err = parse_required_location(body.get("to"), "to")
    if dest_err:
        return _error("INVALID_INPUT", dest_err, 400)

    result = mutator.dispatch(MoveCourse(course_id, source, destination))
    if not result["ok"]:
        return _rejected(result)
    return jsonify(_plan_payload(plan_id, mutator))


@app.route("/api/plans/<plan_id>/career-path", methods=["POST"])
def change_career_path_endpoint(plan_id):
    mutator, err = _get_plan_or_404(plan_id)
    if err:
        return err
    body = request.get_json(force=True, silent=True) or {}
    path_id = str(body.get("career_path_id") or "").strip()
    if not path_id:
        return _error("INVALID_INPUT", "'career_path_id' is required.", 400)

    if path_id != mutator.career_path_id and _rate_limited():
        return _error("RATE_LIMITED", "Too many requests. Please wait before submitting again.", 429)

    result = mutator.dispatch(ChangeCareerPath(path_id, body.get("career_path_name")))
    outcome = None
    if result["regenerate"]:
        outcome = generate_future_plan(mutator, _generator, token=result["token"])
    return jsonify(_plan_payload(plan_id, mutator, {"regenerated": result["regenerate"], "generation": outcome}))


@app.route("/api/plans/<plan_id>/regenerate", methods=["POST"])
def regenerate_plan_endpoint(plan_id):
    mutator, err = _get_plan_or_404(plan_id)
    if err:
        return err
    if _rate_limited():
        return _error("RATE_LIMITED", "Too many requests. Please wait before submitting again.", 429)
    outcome = generate_future_plan(mutator, _generator)
    return jsonify(_plan_payload(plan_id, mutator, {"generation": outcome}))


@app.route("/api/plans/<plan_id>/recommendations", methods=["GET"])
def recommendations_endpoint(plan_id):
    mutator, err = _get_plan_or_404(plan_id)
    if err:
        return err
    return jsonify({"recommendations": recommendations_for(mutator, _catalog)})


app.add_url_rule("/api/health", endpoint="api_health", view_func=health_endpoint, methods=["GET"])


# -- API catch-all (404 for unknown /api/* routes) -------------------
@app.route("/api/<path:rest>", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
def api_catch_all(rest):
    return jsonify({"error": f"/api/{rest} not found"}), 404


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(host="0.0.0.0", port=port, debug=debug)
