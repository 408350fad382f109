"""
Bulk grading of a task's Grade rows.
"""

import logging
from datetime import datetime

from postgrest.exceptions import APIError

from skillup.services.enrollment import GRADED, PENDING
from skillup.utils.query import iso

logger = logging.getLogger(__name__)


def apply_grades(db, task_id: str, entries: list, grader: dict, now: datetime) -> dict:
    """
    Apply {grade_id, grade, feedback} entries to the task's Grade rows.

    A numeric grade marks the row Graded and stamps graded_at; a blank grade
    puts it back to Pending with graded_at cleared. Rows of other tasks are
    never touched. Each entry is written on its own, so one failure (a
    non-numeric grade, an unknown id) does not stop the rest.
    """
    updated: list[str] = []
    failed: list[dict] = []

    for entry in entries:
        if isinstance(entry.grade, str):
            failed.append({"grade_id": entry.grade_id, "reason": f"Grade must be a number, got {entry.grade!r}"})
            continue
        graded = entry.grade is not None
        changes = {
            "grade": entry.grade,
            "feedback": entry.feedback,
            "status": GRADED if graded else PENDING,
            "graded_at": iso(now) if graded else None,
            "graded_by": grader["id"],
            "grader_role": grader["role"],
        }
        try:
            result = (
                db.table("grades")
                .update(changes)
                .eq("id", entry.grade_id)
                .eq("task_id", task_id)
                .execute()
            )
        except APIError as e:
            logger.warning("Grade %s on task %s not saved: %s", entry.grade_id, task_id, e.message)
            failed.append({"grade_id": entry.grade_id, "reason": e.message})
            continue

        if result.data:
            updated.append(entry.grade_id)
        else:
            failed.append({"grade_id": entry.grade_id, "reason": "Grade not found for this task"})

    logger.info(
        "Task %s graded by %s %s: %d updated, %d failed",
        task_id, grader["role"], grader["id"], len(updated), len(failed),
    )
    return {"updated": updated, "failed": failed}
