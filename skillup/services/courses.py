"""
Course records and their batch/faculty links.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, status

from skillup.core.security import FACULTY
from skillup.services import enrollment
from skillup.services.batches import ensure_batches
from skillup.services.users import users_by_ids
from skillup.utils.query import ilike_any, page_range

logger = logging.getLogger(__name__)

LINK_FIELDS = ("faculty_ids", "batch_ids")


def _ensure_code_free(db, code: str, exclude_id: Optional[str] = None) -> None:
    query = db.table("courses").select("id").eq("course_code", code)
    if exclude_id:
        query = query.neq("id", exclude_id)
    if query.limit(1).execute().data:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Course code already exists.")


def _ensure_faculty(db, faculty_ids: list[str]) -> None:
    found = users_by_ids(db, faculty_ids)
    missing = [f for f in faculty_ids if found.get(f, {}).get("role") != FACULTY]
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown faculty: {', '.join(missing)}")


def course_view(db, course: dict) -> dict:
    """Course row with its faculty, batches and computed student roster size."""
    faculty = users_by_ids(db, enrollment.course_faculty_ids(db, course["id"]))
    batch_ids = enrollment.course_batch_ids(db, course["id"])
    batches = []
    if batch_ids:
        batches = db.table("batches").select("*").in_("id", batch_ids).execute().data
    return {
        **course,
        "faculty": [
            {k: f.get(k) for k in ("id", "first_name", "last_name", "email", "department")}
            for f in faculty.values()
        ],
        "batches": [{k: b.get(k) for k in ("id", "name", "academic_year", "department")} for b in batches],
        "student_count": len(enrollment.students_in_batches(db, batch_ids)),
    }


def list_courses(
    db,
    page: int = 1,
    limit: int = 10,
    search: str = "",
    course_status: Optional[str] = None,
    ids: Optional[list[str]] = None,
) -> tuple[list[dict], int]:
    if ids is not None and not ids:
        return [], 0
    query = db.table("courses").select("*", count="exact")
    if ids is not None:
        query = query.in_("id", ids)
    if course_status:
        query = query.eq("status", course_status)
    expression = ilike_any(["title", "course_code", "department"], search or "")
    if expression:
        query = query.or_(expression)
    start, end = page_range(page, limit)
    result = query.order("created_at", desc=True).range(start, end).execute()
    total = result.count if result.count is not None else len(result.data)
    return [course_view(db, c) for c in result.data], total


def create_course(db, fields: dict, creator: dict) -> dict:
    data = {k: v for k, v in fields.items() if v is not None and k not in LINK_FIELDS}
    faculty_ids = fields.get("faculty_ids") or []
    batch_ids = fields.get("batch_ids") or []

    _ensure_code_free(db, data["course_code"])
    _ensure_faculty(db, faculty_ids)
    ensure_batches(db, batch_ids)

    result = db.table("courses").insert({
        **data,
        "created_by": creator["id"],
        "creator_role": creator["role"],
        "created_at": datetime.now(timezone.utc).isoformat(),
    }).execute()
    course = result.data[0]

    enrollment.sync_course_faculty(db, course["id"], faculty_ids)
    enrollment.sync_course_batches(db, course["id"], batch_ids)
    logger.info("Course %s (%s) created by %s %s", course["id"], course["course_code"], creator["role"], creator["id"])
    return course_view(db, course)


def update_course(db, course: dict, fields: dict, allow_faculty_change: bool = True) -> dict:
    """Partial update. Batch changes go through the enrollment sync."""
    data = {k: v for k, v in fields.items() if v is not None and k not in LINK_FIELDS}
    if data.get("course_code") and data["course_code"] != course.get("course_code"):
        _ensure_code_free(db, data["course_code"], exclude_id=course["id"])

    faculty_ids = fields.get("faculty_ids")
    batch_ids = fields.get("batch_ids")
    if faculty_ids is not None:
        if not allow_faculty_change:
            raise HTTPException(status_code=403, detail="Faculty cannot change a course's faculty list.")
        _ensure_faculty(db, faculty_ids)
    if batch_ids is not None:
        ensure_batches(db, batch_ids)

    if data:
        result = db.table("courses").update(data).eq("id", course["id"]).execute()
        course = result.data[0] if result.data else {**course, **data}
    if faculty_ids is not None:
        enrollment.sync_course_faculty(db, course["id"], faculty_ids)
    if batch_ids is not None:
        enrollment.sync_course_batches(db, course["id"], batch_ids)
    return course_view(db, course)


def search_courses(db, term: str, ids: Optional[list[str]] = None, limit: int = 10) -> list[dict]:
    expression = ilike_any(["title", "course_code"], term or "")
    if not expression or (ids is not None and not ids):
        return []
    query = db.table("courses").select("id, title, course_code").or_(expression)
    if ids is not None:
        query = query.in_("id", ids)
    rows = query.limit(limit).execute().data
    return [{k: r.get(k) for k in ("id", "title", "course_code")} for r in rows]
