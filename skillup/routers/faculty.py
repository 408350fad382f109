"""
Faculty router — courses the caller teaches, their tasks and grading,
students and batches, dashboard and analytics.
Every course/task endpoint checks that the caller teaches the course.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from skillup.core.access import (
    ensure_batch_access,
    ensure_course_access,
    ensure_student_access,
    ensure_task_access,
    faculty_course_ids,
)
from skillup.core.database import get_supabase
from skillup.core.security import FACULTY, STUDENT, require_role
from skillup.schemas.academic import BatchCreate, BatchUpdate, CourseCreate, CourseUpdate, StudentCreate, StudentUpdate
from skillup.schemas.tasks import GradeBulk, TaskCreate, TaskUpdate
from skillup.services import analytics, batches, courses, enrollment, tasks
from skillup.services.grading import apply_grades
from skillup.services.users import attach_batches, create_user, list_users, public_user, update_user
from skillup.utils.response import paginated_response, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/faculty", tags=["Faculty"])

faculty_only = require_role([FACULTY])


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _my_batch_ids(db, faculty_id: str) -> list[str]:
    batch_ids = []
    for course_id in faculty_course_ids(db, faculty_id):
        batch_ids.extend(enrollment.course_batch_ids(db, course_id))
    return list(dict.fromkeys(batch_ids))


# ===== DASHBOARD =====

@router.get("/dashboard-stats")
async def get_dashboard_stats(user: dict = Depends(faculty_only)):
    db = get_supabase()
    return success_response(data=analytics.faculty_dashboard(db, user["id"], _now()))


@router.get("/my-courses")
async def get_my_courses(user: dict = Depends(faculty_only)):
    db = get_supabase()
    ids = faculty_course_ids(db, user["id"])
    rows = db.table("courses").select("id, title, course_code").in_("id", ids).execute().data if ids else []
    return success_response(data=[{k: r.get(k) for k in ("id", "title", "course_code")} for r in rows])


# ===== TASKS =====

@router.get("/tasks/all")
async def list_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(9, ge=1, le=100),
    search: str = "",
    course_id: Optional[str] = Query(None, alias="courseId"),
    task_status: Optional[str] = Query(None, alias="status"),
    user: dict = Depends(faculty_only),
):
    db = get_supabase()
    course_ids = faculty_course_ids(db, user["id"])
    if course_id:
        course_ids = [c for c in course_ids if c == course_id]
    rows, total = tasks.list_tasks(db, _now(), page, limit, search, course_ids, task_status)
    return paginated_response(rows, total, page, limit)


@router.get("/tasks/details/{task_id}")
async def get_task(task_id: str, user: dict = Depends(faculty_only)):
    db = get_supabase()
    task = ensure_task_access(db, user, task_id)
    return success_response(data=tasks.task_detail(db, task, _now()))


@router.post("/tasks/add", status_code=status.HTTP_201_CREATED)
async def add_task(body: TaskCreate, user: dict = Depends(faculty_only)):
    db = get_supabase()
    ensure_course_access(db, user, body.course_id)
    task = tasks.create_task(db, body.model_dump(), user["id"], _now())
    return success_response(data=task, message="Task created successfully")


@router.put("/tasks/update/{task_id}")
async def update_task(task_id: str, body: TaskUpdate, user: dict = Depends(faculty_only)):
    db = get_supabase()
    task = ensure_task_access(db, user, task_id)
    if body.course_id and body.course_id != task["course_id"]:
        ensure_course_access(db, user, body.course_id)
    updated = tasks.update_task(db, task, body.model_dump(), _now())
    return success_response(data=updated, message="Task updated successfully")


@router.delete("/tasks/delete/{task_id}")
async def delete_task(task_id: str, user: dict = Depends(faculty_only)):
    db = get_supabase()
    ensure_task_access(db, user, task_id)
    enrollment.delete_task(db, task_id)
    return success_response(message="Task deleted successfully")


@router.get("/search/task-assignables")
async def search_task_assignables(type: str = "", q: str = "", user: dict = Depends(faculty_only)):
    db = get_supabase()
    if type != "course" or not q.strip():
        return success_response(data=[])
    return success_response(data=courses.search_courses(db, q, ids=faculty_course_ids(db, user["id"])))


@router.get("/tasks/{task_id}/grades")
async def get_task_grades(task_id: str, user: dict = Depends(faculty_only)):
    db = get_supabase()
    task = ensure_task_access(db, user, task_id)
    return success_response(data={
        "task": tasks.with_status(task, _now()),
        "grades": tasks.task_grades(db, task),
    })


@router.post("/tasks/{task_id}/grade")
async def grade_task(task_id: str, body: GradeBulk, user: dict = Depends(faculty_only)):
    db = get_supabase()
    ensure_task_access(db, user, task_id)
    result = apply_grades(db, task_id, body.grades, user, _now())
    return success_response(data=result, message="Grades updated successfully")


@router.get("/tasks/{task_id}/submissions")
async def get_task_submissions(task_id: str, user: dict = Depends(faculty_only)):
    db = get_supabase()
    task = ensure_task_access(db, user, task_id)
    return success_response(data={
        "task": tasks.with_status(task, _now()),
        "submissions": tasks.task_submissions(db, task),
    })


# ===== ANALYTICS =====

@router.get("/analytics")
async def get_analytics(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user: dict = Depends(faculty_only),
):
    db = get_supabase()
    return success_response(data=analytics.faculty_analytics(db, user["id"], start_date, end_date))


# ===== STUDENTS =====

@router.get("/students")
async def list_students(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    user: dict = Depends(faculty_only),
):
    """All students, each tagged with the caller's courses they take."""
    db = get_supabase()
    rows, total = list_users(db, STUDENT, page, limit, search)

    my_courses = faculty_course_ids(db, user["id"])
    titles = {}
    if my_courses:
        titles = {c["id"]: c["title"] for c in db.table("courses").select("id, title").in_("id", my_courses).execute().data}

    data = []
    for student in attach_batches(db, rows):
        batch_ids = [b["id"] for b in student["batches"]]
        shared = set(enrollment.course_ids_for_batches(db, batch_ids)) & set(my_courses)
        data.append({**student, "courses": sorted(titles[c] for c in shared if c in titles)})
    return paginated_response(data, total, page, limit)


@router.post("/students", status_code=status.HTTP_201_CREATED)
async def add_student(body: StudentCreate, user: dict = Depends(faculty_only)):
    db = get_supabase()
    if body.batch_ids:
        batches.ensure_batches(db, body.batch_ids)
        for batch_id in body.batch_ids:
            ensure_batch_access(db, user, batch_id)
    student = create_user(db, STUDENT, body.model_dump(exclude={"batch_ids"}))
    if body.batch_ids:
        enrollment.enroll_student(db, student["id"], body.batch_ids)
    return success_response(data=attach_batches(db, [student])[0], message="Student added successfully")


@router.get("/my-batches")
async def get_my_batches(user: dict = Depends(faculty_only)):
    """Batches linked to any course the caller teaches."""
    db = get_supabase()
    ids = _my_batch_ids(db, user["id"])
    if not ids:
        return success_response(data=[])
    rows = db.table("batches").select("*").in_("id", ids).order("academic_year", desc=True).order("name").execute().data
    return success_response(data=[{k: r.get(k) for k in ("id", "name", "academic_year", "department")} for r in rows])


@router.put("/students/{student_id}")
async def update_student(student_id: str, body: StudentUpdate, user: dict = Depends(faculty_only)):
    db = get_supabase()
    student = ensure_student_access(db, user, student_id)
    if body.batch_ids is not None:
        raise HTTPException(status_code=403, detail="Use batch management to move students between batches.")
    fields = body.model_dump(exclude_none=True, exclude={"batch_ids"})
    updated = update_user(db, student, fields) if fields else public_user(student)
    return success_response(data=updated, message="Student updated successfully.")


@router.delete("/students/{student_id}")
async def delete_student(student_id: str, user: dict = Depends(faculty_only)):
    db = get_supabase()
    ensure_student_access(db, user, student_id)
    enrollment.delete_student(db, student_id)
    return success_response(message="Student and all associated data deleted.")


@router.get("/students/search")
async def search_students(q: str = "", user: dict = Depends(faculty_only)):
    db = get_supabase()
    if len(q.strip()) < 2:
        return success_response(data=[])
    rows, _ = list_users(db, STUDENT, 1, 10, q)
    return success_response(data=rows)


# ===== BATCHES =====

@router.get("/batches/all")
async def list_batches(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    user: dict = Depends(faculty_only),
):
    db = get_supabase()
    rows, total = batches.list_batches(db, page, limit, search)
    return paginated_response(rows, total, page, limit)


@router.post("/batches/add", status_code=status.HTTP_201_CREATED)
async def add_batch(body: BatchCreate, user: dict = Depends(faculty_only)):
    db = get_supabase()
    batch = batches.create_batch(db, body.model_dump(), user)
    return success_response(data=batch, message="Batch created successfully")


@router.put("/batches/update/{batch_id}")
async def update_batch(batch_id: str, body: BatchUpdate, user: dict = Depends(faculty_only)):
    db = get_supabase()
    batch = ensure_batch_access(db, user, batch_id)
    updated = batches.update_batch(db, batch, body.model_dump())
    return success_response(data=updated, message="Batch updated successfully")


@router.delete("/batches/delete/{batch_id}")
async def delete_batch(batch_id: str, user: dict = Depends(faculty_only)):
    db = get_supabase()
    ensure_batch_access(db, user, batch_id)
    enrollment.delete_batch(db, batch_id)
    return success_response(message="Batch deleted successfully")


@router.get("/search-batches")
async def search_batches(q: str = "", user: dict = Depends(faculty_only)):
    db = get_supabase()
    return success_response(data=batches.search_batches(db, q))


# ===== COURSES =====

@router.get("/courses/all")
async def list_courses(
    page: int = Query(1, ge=1),
    limit: int = Query(6, ge=1, le=100),
    search: str = "",
    user: dict = Depends(faculty_only),
):
    db = get_supabase()
    rows, total = courses.list_courses(db, page, limit, search, ids=faculty_course_ids(db, user["id"]))
    return paginated_response(rows, total, page, limit)


@router.get("/courses/details/{course_id}")
async def get_course(course_id: str, user: dict = Depends(faculty_only)):
    db = get_supabase()
    course = ensure_course_access(db, user, course_id)
    course_tasks = db.table("tasks").select("*").eq("course_id", course_id).order("due_date").execute().data
    return success_response(data={
        "course": courses.course_view(db, course),
        "tasks": [tasks.with_status(t, _now()) for t in course_tasks],
    })


@router.post("/courses/add", status_code=status.HTTP_201_CREATED)
async def add_course(body: CourseCreate, user: dict = Depends(faculty_only)):
    """The creating faculty member always teaches the new course."""
    db = get_supabase()
    fields = body.model_dump()
    fields["faculty_ids"] = [user["id"]]
    course = courses.create_course(db, fields, user)
    return success_response(data=course, message="Course created successfully")


@router.put("/courses/{course_id}")
async def update_course(course_id: str, body: CourseUpdate, user: dict = Depends(faculty_only)):
    db = get_supabase()
    course = ensure_course_access(db, user, course_id)
    updated = courses.update_course(db, course, body.model_dump(), allow_faculty_change=False)
    return success_response(data=updated, message="Course updated successfully")


@router.delete("/courses/delete/{course_id}")
async def delete_course(course_id: str, user: dict = Depends(faculty_only)):
    db = get_supabase()
    ensure_course_access(db, user, course_id)
    enrollment.delete_course(db, course_id)
    return success_response(message="Course, tasks, and grades deleted successfully.")
