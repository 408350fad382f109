"""
Tasks — status projection, validation and per-task statistics.

A task's status is never stored. It is recomputed on every read from the
publish/due window:

    now <  publish_date            -> Upcoming
    publish_date <= now <= due     -> Active
    now >  due_date                -> Completed
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from fastapi import HTTPException, status

from skillup.core.database import single_row
from skillup.services import enrollment
from skillup.services.enrollment import GRADED
from skillup.services.users import users_by_ids
from skillup.utils.query import ilike_any, iso, page_range, to_utc

logger = logging.getLogger(__name__)

STUDENT_FIELDS = ("id", "first_name", "last_name", "email", "roll_number", "photo")


class TaskStatus(str, Enum):
    UPCOMING = "Upcoming"
    ACTIVE = "Active"
    COMPLETED = "Completed"


def task_status(publish_date, due_date, now: datetime) -> TaskStatus:
    publish = to_utc(publish_date)
    due = to_utc(due_date)
    now = to_utc(now)
    if publish and now < publish:
        return TaskStatus.UPCOMING
    if due and now > due:
        return TaskStatus.COMPLETED
    return TaskStatus.ACTIVE


def with_status(task: dict, now: datetime) -> dict:
    return {
        **task,
        "status": task_status(task.get("publish_date"), task.get("due_date"), now).value,
    }


def is_deadline_passed(task: dict, now: datetime) -> bool:
    due = to_utc(task.get("due_date"))
    return bool(due and to_utc(now) > due)


def validate_window(publish_date, due_date) -> None:
    publish = to_utc(publish_date)
    due = to_utc(due_date)
    if publish and due and due < publish:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Due date must be on or after the publish date.",
        )


def task_record(fields: dict, now: datetime) -> dict:
    """Row for a new task; publish date defaults to now."""
    data = {k: v for k, v in fields.items() if v is not None}
    data["publish_date"] = iso(data.get("publish_date") or now)
    data["due_date"] = iso(data["due_date"])
    validate_window(data["publish_date"], data["due_date"])
    return data


def task_changes(task: dict, fields: dict) -> dict:
    """Partial update for a task; the date window is checked against the merged row."""
    changes = {k: v for k, v in fields.items() if v is not None}
    for key in ("publish_date", "due_date"):
        if key in changes:
            changes[key] = iso(changes[key])
    validate_window(
        changes.get("publish_date", task.get("publish_date")),
        changes.get("due_date", task.get("due_date")),
    )
    return changes


def get_task(db, task_id: str) -> Optional[dict]:
    return single_row(db.table("tasks").select("*").eq("id", task_id).maybe_single().execute())


def get_task_or_404(db, task_id: str) -> dict:
    task = get_task(db, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def task_stats(db, task_id: str) -> dict:
    """Counts over the task's Grade rows: enrolled, submitted and graded."""
    grades = db.table("grades").select("*").eq("task_id", task_id).execute().data
    return {
        "enrolled": len(grades),
        "submitted": sum(1 for g in grades if g.get("submission_id")),
        "graded": sum(1 for g in grades if g.get("status") == GRADED),
    }


def list_tasks(
    db,
    now: datetime,
    page: int = 1,
    limit: int = 10,
    search: str = "",
    course_ids: Optional[list[str]] = None,
    task_status_filter: Optional[str] = None,
) -> tuple[list[dict], int]:
    """One page of tasks, soonest due first, each with its live status."""
    if course_ids is not None and not course_ids:
        return [], 0
    query = db.table("tasks").select("*", count="exact")
    if course_ids is not None:
        query = query.in_("course_id", course_ids)
    expression = ilike_any(["title", "description"], search or "")
    if expression:
        query = query.or_(expression)

    stamp = iso(now)
    if task_status_filter == TaskStatus.UPCOMING.value:
        query = query.gt("publish_date", stamp)
    elif task_status_filter == TaskStatus.ACTIVE.value:
        query = query.lte("publish_date", stamp).gte("due_date", stamp)
    elif task_status_filter == TaskStatus.COMPLETED.value:
        query = query.lt("due_date", stamp)

    start, end = page_range(page, limit)
    result = query.order("due_date").range(start, end).execute()
    total = result.count if result.count is not None else len(result.data)

    courses = {}
    ids = list({t["course_id"] for t in result.data})
    if ids:
        courses = {c["id"]: c for c in db.table("courses").select("*").in_("id", ids).execute().data}
    rows = [
        {
            **with_status(t, now),
            "course": {k: courses.get(t["course_id"], {}).get(k) for k in ("id", "title", "course_code")},
        }
        for t in result.data
    ]
    return rows, total


def create_task(db, fields: dict, created_by: str, now: datetime) -> dict:
    data = task_record(fields, now)
    result = db.table("tasks").insert({
        **data,
        "created_by": created_by,
        "created_at": iso(now),
    }).execute()
    task = result.data[0]
    enrollment.seed_task_grades(db, task)
    logger.info("Task %s created in course %s by %s", task["id"], task["course_id"], created_by)
    return with_status(task, now)


def update_task(db, task: dict, fields: dict, now: datetime) -> dict:
    """Partial update; moving the task to another course reseeds its Grade rows."""
    changes = task_changes(task, fields)
    new_course = changes.pop("course_id", None)
    if new_course and new_course != task["course_id"]:
        enrollment.reassign_task_course(db, task, new_course)
        task = {**task, "course_id": new_course}
        logger.info("Task %s moved to course %s", task["id"], new_course)
    if changes:
        result = db.table("tasks").update(changes).eq("id", task["id"]).execute()
        task = result.data[0] if result.data else {**task, **changes}
    return with_status(task, now)


def task_detail(db, task: dict, now: datetime) -> dict:
    course = single_row(db.table("courses").select("*").eq("id", task["course_id"]).maybe_single().execute())
    return {
        **with_status(task, now),
        "course": {k: (course or {}).get(k) for k in ("id", "title", "course_code")},
        "stats": task_stats(db, task["id"]),
    }


def task_grades(db, task: dict) -> list[dict]:
    """Grade rows of a task with the student and submission attached."""
    grades = db.table("grades").select("*").eq("task_id", task["id"]).execute().data
    students = users_by_ids(db, [g["student_id"] for g in grades])
    submission_ids = [g["submission_id"] for g in grades if g.get("submission_id")]
    submissions = {}
    if submission_ids:
        rows = db.table("submissions").select("*").in_("id", submission_ids).execute().data
        submissions = {s["id"]: s for s in rows}
    return [
        {
            **g,
            "student": {k: students.get(g["student_id"], {}).get(k) for k in STUDENT_FIELDS},
            "submission": submissions.get(g.get("submission_id")),
        }
        for g in grades
    ]


def task_submissions(db, task: dict) -> list[dict]:
    """Every enrolled student with their submission, or 'Not Submitted'."""
    student_ids = enrollment.enrolled_student_ids(db, task["course_id"])
    students = users_by_ids(db, student_ids)
    rows = db.table("submissions").select("*").eq("task_id", task["id"]).execute().data
    by_student = {s["student_id"]: s for s in rows}
    grades = {
        g["student_id"]: g
        for g in db.table("grades").select("*").eq("task_id", task["id"]).execute().data
    }

    combined = []
    for sid in student_ids:
        submission = by_student.get(sid)
        grade = grades.get(sid, {})
        combined.append({
            "student": {k: students.get(sid, {}).get(k) for k in STUDENT_FIELDS},
            "submission_id": submission["id"] if submission else None,
            "status": submission["status"] if submission else "Not Submitted",
            "submitted_at": submission.get("submitted_at") if submission else None,
            "content": submission.get("content") if submission else None,
            "attachments": (submission.get("attachments") or []) if submission else [],
            "grade_id": grade.get("id"),
            "grade": grade.get("grade"),
            "feedback": grade.get("feedback") or "",
        })
    return combined
