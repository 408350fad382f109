"""
Student router — enrolled courses and tasks, submission, grades, dashboard.
Enrollment is always derived from the student's batches.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from skillup.core.access import ensure_course_access, ensure_task_access
from skillup.core.database import get_supabase, single_row
from skillup.core.security import STUDENT, require_role
from skillup.schemas.tasks import SubmissionCreate
from skillup.services import analytics, courses, enrollment, tasks
from skillup.services.submissions import submit_task
from skillup.services.users import display_name, get_user
from skillup.utils.response import paginated_response, success_response

router = APIRouter(prefix="/api/student", tags=["Student"])

student_only = require_role([STUDENT])


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _my_grades(db, student_id: str, task_ids: list[str]) -> dict[str, dict]:
    if not task_ids:
        return {}
    rows = (
        db.table("grades")
        .select("*")
        .eq("student_id", student_id)
        .in_("task_id", task_ids)
        .execute()
    ).data
    return {g["task_id"]: g for g in rows}


@router.get("/dashboard-stats")
async def get_dashboard_stats(user: dict = Depends(student_only)):
    db = get_supabase()
    return success_response(data=analytics.student_dashboard(db, user["id"], _now()))


# ===== COURSES =====

@router.get("/courses/all")
async def list_courses(
    page: int = Query(1, ge=1),
    limit: int = Query(6, ge=1, le=100),
    search: str = "",
    user: dict = Depends(student_only),
):
    db = get_supabase()
    ids = enrollment.student_course_ids(db, user["id"])
    rows, total = courses.list_courses(db, page, limit, search, ids=ids)
    return paginated_response(rows, total, page, limit)


@router.get("/courses/details/{course_id}")
async def get_course(course_id: str, user: dict = Depends(student_only)):
    db = get_supabase()
    course = ensure_course_access(db, user, course_id)
    now = _now()
    course_tasks = (
        db.table("tasks").select("*").eq("course_id", course_id).order("publish_date", desc=True).execute()
    ).data
    grades = _my_grades(db, user["id"], [t["id"] for t in course_tasks])
    return success_response(data={
        "course": courses.course_view(db, course),
        "tasks": [tasks.with_status(t, now) for t in course_tasks],
        "grades": list(grades.values()),
    })


# ===== TASKS =====

@router.get("/tasks/all")
async def list_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(9, ge=1, le=100),
    search: str = "",
    course_id: Optional[str] = Query(None, alias="courseId"),
    task_status: Optional[str] = Query(None, alias="status"),
    user: dict = Depends(student_only),
):
    db = get_supabase()
    course_ids = enrollment.student_course_ids(db, user["id"])
    if course_id:
        course_ids = [c for c in course_ids if c == course_id]
    rows, total = tasks.list_tasks(db, _now(), page, limit, search, course_ids, task_status)

    grades = _my_grades(db, user["id"], [t["id"] for t in rows])
    data = [
        {
            **t,
            "grade": grades.get(t["id"]),
            "submission_status": "Submitted" if (grades.get(t["id"]) or {}).get("submission_id") else "Not Submitted",
        }
        for t in rows
    ]
    return paginated_response(data, total, page, limit)


@router.get("/tasks/details/{task_id}")
async def get_task(task_id: str, user: dict = Depends(student_only)):
    db = get_supabase()
    task = ensure_task_access(db, user, task_id)
    now = _now()

    submission = single_row(
        db.table("submissions")
        .select("*")
        .eq("task_id", task_id)
        .eq("student_id", user["id"])
        .maybe_single()
        .execute()
    )
    grade = _my_grades(db, user["id"], [task_id]).get(task_id)
    creator = get_user(db, task["created_by"]) if task.get("created_by") else None

    return success_response(data={
        "task": {**tasks.task_detail(db, task, now), "created_by_name": display_name(creator)},
        "grade": grade,
        "submission": submission,
        "submission_status": "Submitted" if submission else "Not Submitted",
        "is_deadline_passed": tasks.is_deadline_passed(task, now),
    })


@router.post("/tasks/{task_id}/submit")
async def submit(task_id: str, body: SubmissionCreate, user: dict = Depends(student_only)):
    db = get_supabase()
    task = tasks.get_task_or_404(db, task_id)
    result = submit_task(
        db,
        task,
        user["id"],
        body.content,
        [a.model_dump() for a in body.attachments],
        _now(),
    )
    return success_response(data=result, message="Task submitted successfully")


# ===== GRADES =====

@router.get("/grades")
async def get_grades(user: dict = Depends(student_only)):
    """Graded rows only, newest first, with the score as a percentage of max points."""
    db = get_supabase()
    rows = (
        db.table("grades")
        .select("*")
        .eq("student_id", user["id"])
        .order("created_at", desc=True)
        .execute()
    ).data
    rows = [g for g in rows if g.get("grade") is not None]

    task_rows = {}
    task_ids = list({g["task_id"] for g in rows})
    if task_ids:
        task_rows = {t["id"]: t for t in db.table("tasks").select("*").in_("id", task_ids).execute().data}
    course_ids = list({g["course_id"] for g in rows})
    course_rows = {}
    if course_ids:
        course_rows = {c["id"]: c for c in db.table("courses").select("*").in_("id", course_ids).execute().data}

    data = []
    for g in rows:
        task = task_rows.get(g["task_id"], {})
        course = course_rows.get(g["course_id"], {})
        max_points = task.get("max_points")
        data.append({
            **g,
            "task": {"id": task.get("id"), "title": task.get("title"), "max_points": max_points},
            "course": {"id": course.get("id"), "title": course.get("title"), "course_code": course.get("course_code")},
            "percentage": round(g["grade"] / max_points * 100, 2) if max_points else None,
        })
    return success_response(data=data)
