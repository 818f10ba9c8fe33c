import os
import re

import pandas as pd

from normalizer import course_key, normalize_code, normalize_course_id


PATHWAY_ROLES = {
    "core": "core_courses",
    "recommended": "recommended_courses",
    "optional": "optional_courses",
}

_COURSE_COLUMNS = [
    "course_id",
    "title",
    "department",
    "credit_hours",
    "course_avg_difficulty",
    "course_avg_gpa",
    "instructors",
    "semesters",
]
_PATHWAY_COLUMNS = ["pathway_id", "label", "color", "course_id", "role"]
_PURE_INT = re.compile(r"^\d+$")


def _split_list(val) -> list[str]:
    if val is None or (not isinstance(val, str) and pd.isna(val)):
        return []
    return [part.strip() for part in str(val).split(";") if part.strip()]


def _coerce_credit_hours(val):
    """'3' -> 3; free text such as '3-4' or '1 to 4' stays text."""
    text = str(val or "").strip()
    if not text:
        return None
    if _PURE_INT.match(text):
        return int(text)
    return text


def _num_or_none(val):
    num = pd.to_numeric(val, errors="coerce")
    return float(num) if pd.notna(num) else None


def _course_record(row: pd.Series) -> dict:
    course_id = str(row.get("course_id", "") or "").strip()
    department = str(row.get("department", "") or "").strip() or course_id.split(" ")[0]
    return {
        "course_id": course_id,
        "title": str(row.get("title", "") or "").strip(),
        "department": department,
        "credit_hours": _coerce_credit_hours(row.get("credit_hours")),
        "course_avg_difficulty": _num_or_none(row.get("course_avg_difficulty")),
        "course_avg_gpa": _num_or_none(row.get("course_avg_gpa")),
        "instructors": _split_list(row.get("instructors")),
        "semesters": _split_list(row.get("semesters")),
    }


def _read_csv(path: str, columns: list[str]) -> pd.DataFrame:
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    for col in columns:
        if col not in df.columns:
            df[col] = ""
    return df


def _normalize_courses_df(courses_df: pd.DataFrame) -> pd.DataFrame:
    courses_df = courses_df.copy()
    courses_df["course_id"] = courses_df["course_id"].astype(str).str.strip()
    courses_df = courses_df[courses_df["course_id"] != ""].copy()
    courses_df["course_key"] = courses_df["course_id"].map(normalize_course_id)
    dupes = courses_df[courses_df["course_key"].duplicated()]["course_id"].tolist()
    if dupes:
        print(f"[WARN] {len(dupes)} duplicate course row(s) ignored: {sorted(dupes)}")
    return courses_df.drop_duplicates(subset=["course_key"], keep="first").reset_index(drop=True)


def _build_pathways(pathways_df: pd.DataFrame) -> dict[str, dict]:
    pathways: dict[str, dict] = {}
    for _, row in pathways_df.iterrows():
        pid = str(row.get("pathway_id", "") or "").strip()
        if not pid:
            continue
        entry = pathways.setdefault(pid, {
            "id": pid,
            "label": str(row.get("label", "") or "").strip() or pid,
            "color": str(row.get("color", "") or "").strip() or "#6b7280",
            "core_courses": [],
            "recommended_courses": [],
            "optional_courses": [],
        })
        course_id = str(row.get("course_id", "") or "").strip()
        role = str(row.get("role", "") or "").strip().lower()
        field = PATHWAY_ROLES.get(role)
        if course_id and field and course_id not in entry[field]:
            entry[field].append(course_id)
    return pathways


def load_data(data_path: str) -> dict:
    """Load the course catalog and career pathways from a CSV directory. Raises on missing files."""
    courses_df = _normalize_courses_df(
        _read_csv(os.path.join(data_path, "courses.csv"), _COURSE_COLUMNS)
    )
    pathways_path = os.path.join(data_path, "pathways.csv")
    if os.path.exists(pathways_path):
        pathways_df = _read_csv(pathways_path, _PATHWAY_COLUMNS)
    else:
        pathways_df = pd.DataFrame(columns=_PATHWAY_COLUMNS)

    catalog = {}
    for _, row in courses_df.iterrows():
        record = _course_record(row)
        catalog[course_key(record)] = record
    pathways = _build_pathways(pathways_df)

    # ── Startup data integrity checks ──────────────────────────────────────
    bad_roles = sorted(
        set(pathways_df["role"].astype(str).str.strip().str.lower()) - set(PATHWAY_ROLES) - {""}
    )
    if bad_roles:
        print(f"[WARN] Unknown pathway role(s) ignored: {bad_roles}")

    pathway_ids = {
        normalize_course_id(cid)
        for p in pathways.values()
        for field in PATHWAY_ROLES.values()
        for cid in p[field]
    }
    orphaned = pathway_ids - set(catalog)
    if orphaned:
        print(f"[WARN] {len(orphaned)} pathway course(s) not found in courses.csv: {sorted(orphaned)}")

    return {
        "courses_df": courses_df,
        "pathways_df": pathways_df,
        "catalog": catalog,
        "catalog_codes": {normalize_code(c["course_id"]) or c["course_id"] for c in catalog.values()},
        "pathways": pathways,
    }
