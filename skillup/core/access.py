"""
Resource ownership checks, one per resource, parameterized by the caller.

    admin    -> always allowed
    faculty  -> must teach the course (course_faculty)
    student  -> must be enrolled (one of their batches is linked to the course)

Each check loads the resource, raises 404 when it does not exist and 403
when the caller may not touch it, and returns the row.
"""

from fastapi import HTTPException, status

from skillup.core.database import single_row
from skillup.core.security import ADMIN, FACULTY, STUDENT
from skillup.services import enrollment


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def faculty_course_ids(db, faculty_id: str) -> list[str]:
    result = db.table("course_faculty").select("course_id").eq("faculty_id", faculty_id).execute()
    return list(dict.fromkeys(row["course_id"] for row in result.data))


def can_access_course(db, user: dict, course_id: str) -> bool:
    if user["role"] == ADMIN:
        return True
    if user["role"] == FACULTY:
        return user["id"] in enrollment.course_faculty_ids(db, course_id)
    if user["role"] == STUDENT:
        return enrollment.is_enrolled(db, user["id"], course_id)
    return False


def ensure_course_access(db, user: dict, course_id: str) -> dict:
    course = single_row(db.table("courses").select("*").eq("id", course_id).maybe_single().execute())
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    if not can_access_course(db, user, course_id):
        if user["role"] == STUDENT:
            raise _forbidden("You are not enrolled in this course.")
        raise _forbidden("You do not teach this course.")
    return course


def ensure_task_access(db, user: dict, task_id: str) -> dict:
    task = single_row(db.table("tasks").select("*").eq("id", task_id).maybe_single().execute())
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    if not can_access_course(db, user, task["course_id"]):
        if user["role"] == STUDENT:
            raise _forbidden("You are not enrolled in this task's course.")
        raise _forbidden("You do not teach this task's course.")
    return task


def ensure_batch_access(db, user: dict, batch_id: str) -> dict:
    """Faculty may manage batches they created or that belong to a course they teach."""
    batch = single_row(db.table("batches").select("*").eq("id", batch_id).maybe_single().execute())
    if not batch:
        raise HTTPException(status_code=404, detail="Batch not found")
    if user["role"] == ADMIN:
        return batch
    if user["role"] == FACULTY:
        if batch.get("created_by") == user["id"]:
            return batch
        linked = enrollment.course_ids_for_batches(db, [batch_id])
        if set(linked) & set(faculty_course_ids(db, user["id"])):
            return batch
    raise _forbidden("You cannot manage this batch.")


def faculty_student_ids(db, faculty_id: str) -> list[str]:
    """Students in any batch of any course the faculty teaches."""
    batch_ids = []
    for course_id in faculty_course_ids(db, faculty_id):
        batch_ids.extend(enrollment.course_batch_ids(db, course_id))
    return enrollment.students_in_batches(db, list(dict.fromkeys(batch_ids)))


def ensure_student_access(db, user: dict, student_id: str) -> dict:
    student = single_row(
        db.table("users").select("*").eq("id", student_id).eq("role", STUDENT).maybe_single().execute()
    )
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    if user["role"] == ADMIN:
        return student
    if user["role"] == FACULTY and student_id in faculty_student_ids(db, user["id"]):
        return student
    if user["role"] == STUDENT and student_id == user["id"]:
        return student
    raise _forbidden("You cannot manage this student.")
