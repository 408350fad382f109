"""
Batch records. The roster is written only through enrollment.sync_batch_students.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, status

from skillup.core.security import STUDENT
from skillup.services import enrollment
from skillup.services.users import users_by_ids
from skillup.utils.query import ilike_any, page_range

logger = logging.getLogger(__name__)


def _ensure_unique(db, name: str, academic_year: str, department: str, exclude_id: Optional[str] = None) -> None:
    query = (
        db.table("batches")
        .select("id")
        .eq("name", name)
        .eq("academic_year", academic_year)
        .eq("department", department)
    )
    if exclude_id:
        query = query.neq("id", exclude_id)
    if query.limit(1).execute().data:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A batch with this name, academic year and department already exists.",
        )


def ensure_students(db, student_ids: list[str]) -> None:
    found = users_by_ids(db, student_ids)
    missing = [s for s in student_ids if found.get(s, {}).get("role") != STUDENT]
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown students: {', '.join(missing)}")


def batch_view(db, batch: dict) -> dict:
    students = users_by_ids(db, enrollment.batch_student_ids(db, batch["id"]))
    course_ids = enrollment.course_ids_for_batches(db, [batch["id"]])
    courses = []
    if course_ids:
        courses = db.table("courses").select("*").in_("id", course_ids).execute().data
    return {
        **batch,
        "students": [
            {k: s.get(k) for k in ("id", "first_name", "last_name", "email", "roll_number", "username")}
            for s in students.values()
        ],
        "courses": [{k: c.get(k) for k in ("id", "title", "course_code")} for c in courses],
    }


def list_batches(
    db,
    page: int = 1,
    limit: int = 10,
    search: str = "",
    ids: Optional[list[str]] = None,
) -> tuple[list[dict], int]:
    if ids is not None and not ids:
        return [], 0
    query = db.table("batches").select("*", count="exact")
    if ids is not None:
        query = query.in_("id", ids)
    expression = ilike_any(["name", "academic_year", "department"], search or "")
    if expression:
        query = query.or_(expression)
    start, end = page_range(page, limit)
    result = query.order("created_at", desc=True).range(start, end).execute()
    total = result.count if result.count is not None else len(result.data)
    return [batch_view(db, b) for b in result.data], total


def create_batch(db, fields: dict, creator: dict) -> dict:
    student_ids = fields.get("student_ids") or []
    _ensure_unique(db, fields["name"], fields["academic_year"], fields["department"])
    ensure_students(db, student_ids)

    result = db.table("batches").insert({
        "name": fields["name"],
        "academic_year": fields["academic_year"],
        "department": fields["department"],
        "created_by": creator["id"],
        "creator_role": creator["role"],
        "created_at": datetime.now(timezone.utc).isoformat(),
    }).execute()
    batch = result.data[0]

    enrollment.sync_batch_students(db, batch["id"], student_ids)
    logger.info("Batch %s created by %s %s with %d student(s)", batch["id"], creator["role"], creator["id"], len(student_ids))
    return batch_view(db, batch)


def update_batch(db, batch: dict, fields: dict) -> dict:
    data = {k: v for k, v in fields.items() if v is not None and k != "student_ids"}
    merged = {**batch, **data}
    if data:
        _ensure_unique(db, merged["name"], merged["academic_year"], merged["department"], exclude_id=batch["id"])
        result = db.table("batches").update(data).eq("id", batch["id"]).execute()
        batch = result.data[0] if result.data else merged

    student_ids = fields.get("student_ids")
    if student_ids is not None:
        ensure_students(db, student_ids)
        enrollment.sync_batch_students(db, batch["id"], student_ids)
    return batch_view(db, batch)


def search_batches(db, term: str, ids: Optional[list[str]] = None, limit: int = 10) -> list[dict]:
    expression = ilike_any(["name"], term or "")
    if not expression or (ids is not None and not ids):
        return []
    query = db.table("batches").select("id, name, academic_year, department").or_(expression)
    if ids is not None:
        query = query.in_("id", ids)
    rows = query.limit(limit).execute().data
    return [{k: r.get(k) for k in ("id", "name", "academic_year", "department")} for r in rows]


def ensure_batches(db, batch_ids: list[str]) -> None:
    if not batch_ids:
        return
    found = {row["id"] for row in db.table("batches").select("id").in_("id", batch_ids).execute().data}
    missing = [b for b in batch_ids if b not in found]
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown batches: {', '.join(missing)}")
