"""
Admin router — full management of faculty, students, batches, courses,
tasks and grading, plus dashboard, analytics and platform settings.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from skillup.core.access import ensure_batch_access, ensure_course_access, ensure_task_access
from skillup.core.database import get_supabase, single_row
from skillup.core.security import ADMIN, FACULTY, STUDENT, require_role
from skillup.schemas.academic import (
    BatchCreate,
    BatchUpdate,
    CourseCreate,
    CourseUpdate,
    FacultyCreate,
    FacultyUpdate,
    StudentCreate,
    StudentUpdate,
)
from skillup.schemas.settings import PlatformSettings, PlatformSettingsUpdate
from skillup.schemas.tasks import GradeBulk, TaskCreate, TaskUpdate
from skillup.services import analytics, batches, courses, enrollment, tasks
from skillup.services.grading import apply_grades
from skillup.services.users import (
    attach_batches,
    attach_courses,
    create_user,
    get_user_or_404,
    list_users,
    public_user,
    update_user,
)
from skillup.utils.query import ilike_any
from skillup.utils.response import paginated_response, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])

admin_only = require_role([ADMIN])


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ===== DASHBOARD =====

@router.get("/dashboard-stats")
async def get_dashboard_stats(user: dict = Depends(admin_only)):
    db = get_supabase()
    return success_response(data=analytics.admin_dashboard(db, _now()))


# ===== FACULTY =====

@router.post("/faculty/add", status_code=status.HTTP_201_CREATED)
async def add_faculty(body: FacultyCreate, user: dict = Depends(admin_only)):
    db = get_supabase()
    faculty = create_user(db, FACULTY, body.model_dump())
    return success_response(data=faculty, message="Faculty added successfully")


@router.get("/faculty/all")
async def list_faculty(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    department: Optional[str] = None,
    user: dict = Depends(admin_only),
):
    db = get_supabase()
    rows, total = list_users(db, FACULTY, page, limit, search, department)
    return paginated_response(attach_courses(db, rows), total, page, limit)


@router.put("/faculty/update/{faculty_id}")
async def update_faculty(faculty_id: str, body: FacultyUpdate, user: dict = Depends(admin_only)):
    db = get_supabase()
    faculty = get_user_or_404(db, faculty_id, FACULTY)
    updated = update_user(db, faculty, body.model_dump(exclude_none=True))
    return success_response(data=updated, message="Faculty updated successfully")


@router.delete("/faculty/delete/{faculty_id}")
async def delete_faculty(faculty_id: str, user: dict = Depends(admin_only)):
    db = get_supabase()
    get_user_or_404(db, faculty_id, FACULTY)
    orphaned = enrollment.delete_faculty(db, faculty_id)
    return success_response(
        data={"orphaned_courses": orphaned},
        message="Faculty deleted successfully",
    )


# ===== STUDENTS =====

@router.post("/students/add", status_code=status.HTTP_201_CREATED)
async def add_student(body: StudentCreate, user: dict = Depends(admin_only)):
    db = get_supabase()
    batches.ensure_batches(db, body.batch_ids)
    fields = body.model_dump(exclude={"batch_ids"})
    student = create_user(db, STUDENT, fields)
    if body.batch_ids:
        enrollment.enroll_student(db, student["id"], body.batch_ids)
    return success_response(data=attach_batches(db, [student])[0], message="Student added successfully")


@router.get("/students/all")
async def list_students(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    department: Optional[str] = None,
    batch_id: Optional[str] = None,
    user: dict = Depends(admin_only),
):
    db = get_supabase()
    ids = enrollment.batch_student_ids(db, batch_id) if batch_id else None
    rows, total = list_users(db, STUDENT, page, limit, search, department, ids)
    return paginated_response(attach_batches(db, rows), total, page, limit)


@router.get("/students/search")
async def search_students(q: str = "", user: dict = Depends(admin_only)):
    db = get_supabase()
    if len(q.strip()) < 2:
        return success_response(data=[])
    rows, _ = list_users(db, STUDENT, 1, 10, q)
    return success_response(data=rows)


@router.put("/students/update/{student_id}")
async def update_student(student_id: str, body: StudentUpdate, user: dict = Depends(admin_only)):
    db = get_supabase()
    student = get_user_or_404(db, student_id, STUDENT)
    if body.batch_ids:
        batches.ensure_batches(db, body.batch_ids)
    fields = body.model_dump(exclude_none=True, exclude={"batch_ids"})
    updated = update_user(db, student, fields) if fields else public_user(student)
    if body.batch_ids is not None:
        enrollment.set_student_batches(db, student_id, body.batch_ids)
    return success_response(data=attach_batches(db, [updated])[0], message="Student updated successfully")


@router.delete("/students/delete/{student_id}")
async def delete_student(student_id: str, user: dict = Depends(admin_only)):
    db = get_supabase()
    get_user_or_404(db, student_id, STUDENT)
    enrollment.delete_student(db, student_id)
    return success_response(message="Student and all associated records deleted successfully")


# ===== BATCHES =====

@router.get("/batches/all")
async def list_batches(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    user: dict = Depends(admin_only),
):
    db = get_supabase()
    rows, total = batches.list_batches(db, page, limit, search)
    return paginated_response(rows, total, page, limit)


@router.post("/batches/add", status_code=status.HTTP_201_CREATED)
async def add_batch(body: BatchCreate, user: dict = Depends(admin_only)):
    db = get_supabase()
    batch = batches.create_batch(db, body.model_dump(), user)
    return success_response(data=batch, message="Batch created successfully")


@router.put("/batches/update/{batch_id}")
async def update_batch(batch_id: str, body: BatchUpdate, user: dict = Depends(admin_only)):
    db = get_supabase()
    batch = ensure_batch_access(db, user, batch_id)
    updated = batches.update_batch(db, batch, body.model_dump())
    return success_response(data=updated, message="Batch updated successfully")


@router.delete("/batches/delete/{batch_id}")
async def delete_batch(batch_id: str, user: dict = Depends(admin_only)):
    db = get_supabase()
    ensure_batch_access(db, user, batch_id)
    enrollment.delete_batch(db, batch_id)
    return success_response(message="Batch deleted successfully")


# ===== COURSES =====

@router.get("/courses/all")
async def list_courses(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    course_status: Optional[str] = Query(None, alias="status"),
    user: dict = Depends(admin_only),
):
    db = get_supabase()
    rows, total = courses.list_courses(db, page, limit, search, course_status)
    return paginated_response(rows, total, page, limit)


@router.get("/courses/details/{course_id}")
async def get_course(course_id: str, user: dict = Depends(admin_only)):
    db = get_supabase()
    course = ensure_course_access(db, user, course_id)
    return success_response(data=courses.course_view(db, course))


@router.post("/courses/add", status_code=status.HTTP_201_CREATED)
async def add_course(body: CourseCreate, user: dict = Depends(admin_only)):
    db = get_supabase()
    course = courses.create_course(db, body.model_dump(), user)
    return success_response(data=course, message="Course created successfully")


@router.put("/courses/update/{course_id}")
async def update_course(course_id: str, body: CourseUpdate, user: dict = Depends(admin_only)):
    db = get_supabase()
    course = ensure_course_access(db, user, course_id)
    updated = courses.update_course(db, course, body.model_dump())
    return success_response(data=updated, message="Course updated successfully")


@router.delete("/courses/delete/{course_id}")
async def delete_course(course_id: str, user: dict = Depends(admin_only)):
    db = get_supabase()
    ensure_course_access(db, user, course_id)
    enrollment.delete_course(db, course_id)
    return success_response(message="Course deleted successfully")


@router.get("/search/assignables")
async def search_assignables(type: str = "", q: str = "", user: dict = Depends(admin_only)):
    """Faculty or batches to attach to a course."""
    db = get_supabase()
    if not type or len(q.strip()) < 2:
        return success_response(data=[])
    if type == "faculty":
        expression = ilike_any(["first_name", "last_name"], q)
        rows = []
        if expression:
            rows = (
                db.table("users")
                .select("id, first_name, last_name, department")
                .eq("role", FACULTY)
                .or_(expression)
                .limit(10)
                .execute()
            ).data
        data = [{k: r.get(k) for k in ("id", "first_name", "last_name", "department")} for r in rows]
    elif type == "batch":
        data = batches.search_batches(db, q)
    else:
        raise HTTPException(status_code=400, detail="Invalid search type.")
    return success_response(data=data)


# ===== TASKS =====

@router.get("/tasks/all")
async def list_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    course_id: Optional[str] = None,
    task_status: Optional[str] = Query(None, alias="status"),
    user: dict = Depends(admin_only),
):
    db = get_supabase()
    rows, total = tasks.list_tasks(
        db, _now(), page, limit, search,
        course_ids=[course_id] if course_id else None,
        task_status_filter=task_status,
    )
    return paginated_response(rows, total, page, limit)


@router.get("/tasks/details/{task_id}")
async def get_task(task_id: str, user: dict = Depends(admin_only)):
    db = get_supabase()
    task = ensure_task_access(db, user, task_id)
    return success_response(data=tasks.task_detail(db, task, _now()))


@router.post("/tasks/add", status_code=status.HTTP_201_CREATED)
async def add_task(body: TaskCreate, user: dict = Depends(admin_only)):
    """Admin-created tasks are attributed to the course's first faculty member."""
    db = get_supabase()
    ensure_course_access(db, user, body.course_id)
    faculty_ids = enrollment.course_faculty_ids(db, body.course_id)
    if not faculty_ids:
        raise HTTPException(status_code=400, detail="Course has no faculty to own this task.")

    task = tasks.create_task(db, body.model_dump(), faculty_ids[0], _now())
    return success_response(data=task, message="Task created successfully")


@router.put("/tasks/update/{task_id}")
async def update_task(task_id: str, body: TaskUpdate, user: dict = Depends(admin_only)):
    db = get_supabase()
    task = ensure_task_access(db, user, task_id)
    fields = body.model_dump()
    if body.course_id and body.course_id != task["course_id"]:
        ensure_course_access(db, user, body.course_id)
        faculty_ids = enrollment.course_faculty_ids(db, body.course_id)
        if not faculty_ids:
            raise HTTPException(status_code=400, detail="New course is invalid or has no assigned faculty.")
        # The owner must teach the course the task lives in
        if task.get("created_by") not in faculty_ids:
            fields["created_by"] = faculty_ids[0]
    updated = tasks.update_task(db, task, fields, _now())
    return success_response(data=updated, message="Task updated successfully")


@router.delete("/tasks/delete/{task_id}")
async def delete_task(task_id: str, user: dict = Depends(admin_only)):
    db = get_supabase()
    ensure_task_access(db, user, task_id)
    enrollment.delete_task(db, task_id)
    return success_response(message="Task deleted successfully")


@router.get("/tasks/{task_id}/grades")
async def get_task_grades(task_id: str, user: dict = Depends(admin_only)):
    db = get_supabase()
    task = ensure_task_access(db, user, task_id)
    return success_response(data={
        "task": tasks.with_status(task, _now()),
        "grades": tasks.task_grades(db, task),
    })


@router.post("/tasks/{task_id}/grade")
async def grade_task(task_id: str, body: GradeBulk, user: dict = Depends(admin_only)):
    db = get_supabase()
    ensure_task_access(db, user, task_id)
    result = apply_grades(db, task_id, body.grades, user, _now())
    return success_response(data=result, message="Grades updated successfully")


@router.get("/tasks/{task_id}/submissions")
async def get_task_submissions(task_id: str, user: dict = Depends(admin_only)):
    db = get_supabase()
    task = ensure_task_access(db, user, task_id)
    return success_response(data={
        "task": tasks.with_status(task, _now()),
        "submissions": tasks.task_submissions(db, task),
    })


@router.get("/search/task-assignables")
async def search_task_assignables(type: str = "", q: str = "", user: dict = Depends(admin_only)):
    """Courses a task can be attached to."""
    db = get_supabase()
    if type != "course" or not q.strip():
        return success_response(data=[])
    return success_response(data=courses.search_courses(db, q))


# ===== ANALYTICS =====

@router.get("/analytics")
async def get_analytics(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    department: Optional[str] = None,
    user: dict = Depends(admin_only),
):
    db = get_supabase()
    return success_response(data=analytics.admin_analytics(db, start_date, end_date, department))


# ===== SETTINGS =====

@router.get("/settings")
async def get_settings(user: dict = Depends(admin_only)):
    db = get_supabase()
    row = single_row(db.table("settings").select("*").eq("key", "global").maybe_single().execute())
    if not row:
        row = db.table("settings").insert(
            {"key": "global", **PlatformSettings().model_dump()}
        ).execute().data[0]
        logger.info("Created default platform settings")
    return success_response(data=row)


@router.put("/settings")
async def update_settings(body: PlatformSettingsUpdate, user: dict = Depends(admin_only)):
    db = get_supabase()
    row = single_row(db.table("settings").select("*").eq("key", "global").maybe_single().execute())
    merged = {**PlatformSettings().model_dump(), **(row or {}), **body.model_dump(exclude_none=True)}
    merged.update({"key": "global", "updated_at": _now().isoformat()})
    result = db.table("settings").upsert(merged, on_conflict="key").execute()
    logger.info("Platform settings updated by %s", user["id"])
    return success_response(data=result.data[0], message="Settings updated successfully.")
