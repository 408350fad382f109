"""
Student submission workflow.
"""

import logging
from datetime import datetime

from fastapi import HTTPException, status

from skillup.core.database import single_row
from skillup.services.enrollment import GRADED, PENDING, is_enrolled
from skillup.services.tasks import is_deadline_passed
from skillup.utils.query import iso

logger = logging.getLogger(__name__)

ON_TIME = "On-Time"


def submit_task(
    db,
    task: dict,
    student_id: str,
    content: str,
    attachments: list[dict],
    now: datetime,
) -> dict:
    """
    Record (or overwrite) the student's submission for a task.

    Rejected when the student is not enrolled in the task's course, when
    the deadline has passed, or when their Grade is already Graded. On
    success the Grade points at the submission and goes back to Pending.
    """
    if not is_enrolled(db, student_id, task["course_id"]):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not enrolled in this course.",
        )

    if is_deadline_passed(task, now):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Task deadline has passed.",
        )

    grade = single_row(
        db.table("grades")
        .select("*")
        .eq("task_id", task["id"])
        .eq("student_id", student_id)
        .maybe_single()
        .execute()
    )
    if grade and grade.get("status") == GRADED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This task has already been graded.",
        )

    payload = {
        "content": content,
        "attachments": attachments,
        "submitted_at": iso(now),
        "status": ON_TIME,
    }
    existing = single_row(
        db.table("submissions")
        .select("*")
        .eq("task_id", task["id"])
        .eq("student_id", student_id)
        .maybe_single()
        .execute()
    )
    if existing:
        result = db.table("submissions").update(payload).eq("id", existing["id"]).execute()
    else:
        result = db.table("submissions").insert({
            **payload,
            "task_id": task["id"],
            "student_id": student_id,
            "course_id": task["course_id"],
        }).execute()
    submission = result.data[0]

    link = {"submission_id": submission["id"], "status": PENDING}
    if grade:
        linked = db.table("grades").update(link).eq("id", grade["id"]).execute()
    else:
        linked = db.table("grades").insert({
            **link,
            "task_id": task["id"],
            "student_id": student_id,
            "course_id": task["course_id"],
        }).execute()

    logger.info(
        "Student %s %s task %s",
        student_id, "resubmitted" if existing else "submitted", task["id"],
    )
    return {"submission": submission, "grade": linked.data[0] if linked.data else None}
