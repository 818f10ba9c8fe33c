# Maximum total credit hours permitted in one semester.
CREDIT_CAP = 20

# Credit hours assumed when a course's metadata is missing or unparseable.
DEFAULT_CREDITS = 3

# Total planning horizon: finished + current + future terms.
TOTAL_PLANNING_TERMS = 8

# Step bound for term walks (covers 10 academic years).
TERM_WALK_GUARD = 20

# Credits needed to graduate, used for the progress ring.
TOTAL_CREDITS_REQUIRED = 120

# Target load the local generator aims for per future semester.
TARGET_TERM_CREDITS = 15

# Pathway course ids fetched / recommendations shown.
RECOMMENDATION_FETCH_LIMIT = 30
MAX_RECOMMENDATIONS = 8

# Level used when a course id carries no number.
UNKNOWN_COURSE_LEVEL = 999

# Minimum query length before the course search collaborator is called.
MIN_SEARCH_QUERY_LENGTH = 2

# Rejection codes surfaced to the UI.
CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
NO_CAPACITY = "NO_CAPACITY"
DUPLICATE_COURSE = "DUPLICATE_COURSE"
COURSE_NOT_FOUND = "COURSE_NOT_FOUND"
SAME_LOCATION = "SAME_LOCATION"
INVALID_TARGET = "INVALID_TARGET"

CAP_MESSAGE = f"Cannot add course. Semester limit is {CREDIT_CAP} credits."
MOVE_CAP_MESSAGE = f"A semester cannot exceed {CREDIT_CAP} credits."
NO_ROOM_MESSAGE = (
    f"No semester has room under {CREDIT_CAP} credits. "
    "Remove a course or use '+ Add Elective' to rearrange."
)
DUPLICATE_IN_TERM_MESSAGE = "This course is already in the semester!"
DUPLICATE_IN_CURRENT_MESSAGE = "This course is already in the current semester!"


def rejection(error_code: str, message: str) -> dict:
    """Standard rejected-mutation payload. State is never touched on rejection."""
    return {"ok": False, "error": {"error_code": error_code, "message": message}}
