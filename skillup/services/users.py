"""
User records — one `users` table for admins, faculty and students.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, status

from skillup.core.database import single_row
from skillup.core.security import FACULTY, STUDENT, get_password_hash
from skillup.utils.query import escape_like, ilike_any, page_range

logger = logging.getLogger(__name__)

SEARCH_COLUMNS = ["first_name", "last_name", "email", "username", "roll_number"]


def public_user(row: Optional[dict]) -> Optional[dict]:
    if row is None:
        return None
    return {k: v for k, v in row.items() if k != "password_hash"}


def normalize(role: str, fields: dict) -> dict:
    data = {k: v for k, v in fields.items() if v is not None}
    if data.get("email"):
        data["email"] = data["email"].strip().lower()
    if data.get("username"):
        data["username"] = data["username"].strip()
        if role == STUDENT:
            data["username"] = data["username"].upper()
    if data.get("roll_number"):
        data["roll_number"] = data["roll_number"].strip().upper()
    return data


def find_users(
    db,
    column: str,
    value: str,
    role: Optional[str] = None,
    exclude_id: Optional[str] = None,
) -> list[dict]:
    """Users whose `column` equals `value`, ignoring case.

    PostgREST also reads `*` in an ilike pattern as a wildcard, so the rows
    it returns are compared exactly here.
    """
    query = db.table("users").select("*").ilike(column, escape_like(value))
    if role:
        query = query.eq("role", role)
    if exclude_id:
        query = query.neq("id", exclude_id)
    wanted = value.lower()
    return [row for row in query.execute().data or [] if str(row.get(column) or "").lower() == wanted]


def ensure_unique(db, data: dict, exclude_id: Optional[str] = None) -> None:
    """409 when email, username or roll number already belongs to another user."""
    checks = [
        ("email", "Email already exists."),
        ("username", "Username already exists."),
        ("roll_number", "Roll number already exists."),
    ]
    for column, message in checks:
        value = data.get(column)
        if not value:
            continue
        if find_users(db, column, value, exclude_id=exclude_id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message)


def get_user(db, user_id: str, role: Optional[str] = None) -> Optional[dict]:
    query = db.table("users").select("*").eq("id", user_id)
    if role:
        query = query.eq("role", role)
    return single_row(query.maybe_single().execute())


def get_user_or_404(db, user_id: str, role: str) -> dict:
    row = get_user(db, user_id, role)
    if not row:
        raise HTTPException(status_code=404, detail=f"{role.capitalize()} not found")
    return row


def create_user(db, role: str, fields: dict) -> dict:
    data = normalize(role, fields)
    ensure_unique(db, data)

    password = data.pop("password")
    now = datetime.now(timezone.utc).isoformat()
    record = {
        **data,
        "role": role,
        "password_hash": get_password_hash(password),
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }
    result = db.table("users").insert(record).execute()
    user = result.data[0]
    logger.info("Created %s %s (%s)", role, user["id"], user.get("email"))
    return public_user(user)


def update_user(db, user: dict, fields: dict) -> dict:
    """Apply a partial update; a `password` field is re-hashed."""
    data = normalize(user["role"], fields)
    ensure_unique(db, data, exclude_id=user["id"])

    if "password" in data:
        data["password_hash"] = get_password_hash(data.pop("password"))
    data["updated_at"] = datetime.now(timezone.utc).isoformat()

    result = db.table("users").update(data).eq("id", user["id"]).execute()
    return public_user(result.data[0] if result.data else {**user, **data})


def list_users(
    db,
    role: str,
    page: int = 1,
    limit: int = 10,
    search: str = "",
    department: Optional[str] = None,
    ids: Optional[list[str]] = None,
) -> tuple[list[dict], int]:
    """One page of users of a role, newest first, with the total count."""
    if ids is not None and not ids:
        return [], 0

    query = db.table("users").select("*", count="exact").eq("role", role)
    if ids is not None:
        query = query.in_("id", ids)
    if department:
        query = query.eq("department", department)
    expression = ilike_any(SEARCH_COLUMNS, search or "")
    if expression:
        query = query.or_(expression)

    start, end = page_range(page, limit)
    result = query.order("created_at", desc=True).range(start, end).execute()
    total = result.count if result.count is not None else len(result.data)
    return [public_user(row) for row in result.data], total


def users_by_ids(db, ids: list[str]) -> dict[str, dict]:
    if not ids:
        return {}
    result = db.table("users").select("*").in_("id", list(ids)).execute()
    return {row["id"]: public_user(row) for row in result.data}


def display_name(user: Optional[dict]) -> str:
    if not user:
        return "Unknown"
    return f"{user.get('first_name', '')} {user.get('last_name', '')}".strip()


def attach_batches(db, students: list[dict]) -> list[dict]:
    """Computed Student.batch: the batches whose roster lists the student."""
    ids = [s["id"] for s in students]
    if not ids:
        return students
    links = db.table("batch_students").select("*").in_("student_id", ids).execute().data
    batch_ids = list({link["batch_id"] for link in links})
    batches = {}
    if batch_ids:
        rows = db.table("batches").select("*").in_("id", batch_ids).execute().data
        batches = {b["id"]: {"id": b["id"], "name": b["name"], "academic_year": b.get("academic_year")} for b in rows}

    by_student: dict[str, list] = {}
    for link in links:
        if link["batch_id"] in batches:
            by_student.setdefault(link["student_id"], []).append(batches[link["batch_id"]])
    return [{**s, "batches": by_student.get(s["id"], [])} for s in students]


def attach_courses(db, faculty: list[dict]) -> list[dict]:
    """Computed Faculty.courses from the course_faculty links."""
    ids = [f["id"] for f in faculty]
    if not ids:
        return faculty
    links = db.table("course_faculty").select("*").in_("faculty_id", ids).execute().data
    course_ids = list({link["course_id"] for link in links})
    courses = {}
    if course_ids:
        rows = db.table("courses").select("*").in_("id", course_ids).execute().data
        courses = {c["id"]: {"id": c["id"], "title": c["title"], "course_code": c["course_code"]} for c in rows}

    by_faculty: dict[str, list] = {}
    for link in links:
        if link["course_id"] in courses:
            by_faculty.setdefault(link["faculty_id"], []).append(courses[link["course_id"]])
    return [{**f, "courses": by_faculty.get(f["id"], [])} for f in faculty]


def with_memberships(db, user: dict) -> dict:
    if user["role"] == STUDENT:
        return attach_batches(db, [user])[0]
    if user["role"] == FACULTY:
        return attach_courses(db, [user])[0]
    return user
