"""
Enrollment synchronization.

Membership lives in three join tables:

    batch_students  (batch_id, student_id)   authoritative batch roster
    course_batches  (course_id, batch_id)    batches enrolled in a course
    course_faculty  (course_id, faculty_id)  faculty teaching a course

A student is enrolled in a course when one of their batches is linked to it.
For every enrolled (student, task of the course) pair exactly one Grade row
must exist; it is the placeholder for work the student is expected to hand in.
The functions below keep those Grade rows (and Submissions) in step with
membership changes. Every step is its own store round trip; there is no
transaction around a workflow.
"""

import logging
from dataclasses import dataclass, field

from skillup.core.database import fetch_all

logger = logging.getLogger(__name__)

PENDING = "Pending"
GRADED = "Graded"


@dataclass
class EnrollmentDiff:
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


def _unique(ids) -> list[str]:
    return list(dict.fromkeys(str(i) for i in ids if i))


def _column(result, name: str) -> list[str]:
    return _unique(row[name] for row in (result.data or []))


# ---------------------------------------------------------------------------
# Membership reads
# ---------------------------------------------------------------------------

def batch_student_ids(db, batch_id: str) -> list[str]:
    result = db.table("batch_students").select("student_id").eq("batch_id", batch_id).execute()
    return _column(result, "student_id")


def students_in_batches(db, batch_ids: list[str]) -> list[str]:
    if not batch_ids:
        return []
    rows = fetch_all(
        lambda: db.table("batch_students").select("student_id").in_("batch_id", batch_ids),
        order_by="student_id",
    )
    return _unique(row["student_id"] for row in rows)


def student_batch_ids(db, student_id: str) -> list[str]:
    result = db.table("batch_students").select("batch_id").eq("student_id", student_id).execute()
    return _column(result, "batch_id")


def course_batch_ids(db, course_id: str) -> list[str]:
    result = db.table("course_batches").select("batch_id").eq("course_id", course_id).execute()
    return _column(result, "batch_id")


def course_faculty_ids(db, course_id: str) -> list[str]:
    result = db.table("course_faculty").select("faculty_id").eq("course_id", course_id).execute()
    return _column(result, "faculty_id")


def course_ids_for_batches(db, batch_ids: list[str]) -> list[str]:
    if not batch_ids:
        return []
    result = db.table("course_batches").select("course_id").in_("batch_id", batch_ids).execute()
    return _column(result, "course_id")


def task_ids_for_courses(db, course_ids: list[str]) -> list[str]:
    if not course_ids:
        return []
    result = db.table("tasks").select("id").in_("course_id", course_ids).execute()
    return _column(result, "id")


def enrolled_student_ids(db, course_id: str) -> list[str]:
    """Course.students: union of the rosters of the course's batches."""
    return students_in_batches(db, course_batch_ids(db, course_id))


def student_course_ids(db, student_id: str) -> list[str]:
    return course_ids_for_batches(db, student_batch_ids(db, student_id))


def is_enrolled(db, student_id: str, course_id: str) -> bool:
    return bool(set(student_batch_ids(db, student_id)) & set(course_batch_ids(db, course_id)))


# ---------------------------------------------------------------------------
# Grade placeholder maintenance
# ---------------------------------------------------------------------------

def create_grade_placeholders(db, tasks: list[dict], student_ids: list[str]) -> int:
    """Insert a Pending Grade for each (task, student) pair that lacks one.

    `tasks` are rows carrying `id` and `course_id`. Existing pairs are left
    untouched by the unique key on (task_id, student_id).
    """
    rows = [
        {
            "task_id": task["id"],
            "student_id": student_id,
            "course_id": task["course_id"],
            "status": PENDING,
            "submission_id": None,
        }
        for task in tasks
        for student_id in _unique(student_ids)
    ]
    if not rows:
        return 0
    db.table("grades").upsert(
        rows, on_conflict="task_id,student_id", ignore_duplicates=True
    ).execute()
    return len(rows)


def remove_task_records(db, task_ids: list[str], student_ids: list[str] | None = None) -> None:
    """Delete Grade and Submission rows for the tasks (optionally only for some students)."""
    if not task_ids:
        return
    for table in ("grades", "submissions"):
        query = db.table(table).delete().in_("task_id", task_ids)
        if student_ids is not None:
            if not student_ids:
                continue
            query = query.in_("student_id", student_ids)
        query.execute()


def _tasks_for_courses(db, course_ids: list[str]) -> list[dict]:
    if not course_ids:
        return []
    result = db.table("tasks").select("id, course_id").in_("course_id", course_ids).execute()
    return result.data or []


def _withdraw(db, student_ids: list[str], course_ids: list[str]) -> None:
    """Drop records of students who are no longer enrolled in these courses.

    A student who still reaches a course through another batch keeps
    their Grade and Submission rows for it.
    """
    for course_id in course_ids:
        task_ids = task_ids_for_courses(db, [course_id])
        if not task_ids:
            continue
        still_enrolled = set(enrolled_student_ids(db, course_id))
        gone = [s for s in student_ids if s not in still_enrolled]
        if gone:
            remove_task_records(db, task_ids, gone)
            logger.info("Withdrew %d student(s) from course %s", len(gone), course_id)


def _enroll(db, student_ids: list[str], course_ids: list[str]) -> int:
    return create_grade_placeholders(db, _tasks_for_courses(db, course_ids), student_ids)


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------

def sync_batch_students(db, batch_id: str, student_ids: list[str]) -> EnrollmentDiff:
    """Make `student_ids` the roster of the batch and reconcile Grade rows.

    The diff is taken against the stored roster right before mutating, so
    re-running with the same list changes nothing.
    """
    current = batch_student_ids(db, batch_id)
    desired = _unique(student_ids)
    diff = EnrollmentDiff(
        added=[s for s in desired if s not in current],
        removed=[s for s in current if s not in desired],
    )
    if not diff.changed:
        return diff

    course_ids = course_ids_for_batches(db, [batch_id])

    if diff.removed:
        (
            db.table("batch_students")
            .delete()
            .eq("batch_id", batch_id)
            .in_("student_id", diff.removed)
            .execute()
        )
        _withdraw(db, diff.removed, course_ids)

    if diff.added:
        db.table("batch_students").upsert(
            [{"batch_id": batch_id, "student_id": s} for s in diff.added],
            on_conflict="batch_id,student_id",
            ignore_duplicates=True,
        ).execute()
        created = _enroll(db, diff.added, course_ids)
        logger.info("Batch %s: %d grade placeholder(s) requested", batch_id, created)

    logger.info(
        "Batch %s roster synced: +%d -%d student(s) across %d course(s)",
        batch_id, len(diff.added), len(diff.removed), len(course_ids),
    )
    return diff


def sync_course_batches(db, course_id: str, batch_ids: list[str]) -> EnrollmentDiff:
    """Make `batch_ids` the batches of the course and reconcile Grade rows."""
    current = course_batch_ids(db, course_id)
    desired = _unique(batch_ids)
    diff = EnrollmentDiff(
        added=[b for b in desired if b not in current],
        removed=[b for b in current if b not in desired],
    )
    if not diff.changed:
        return diff

    # Add before remove: withdrawal must see the final set of links.
    if diff.added:
        db.table("course_batches").upsert(
            [{"course_id": course_id, "batch_id": b} for b in diff.added],
            on_conflict="course_id,batch_id",
            ignore_duplicates=True,
        ).execute()
        _enroll(db, students_in_batches(db, diff.added), [course_id])

    if diff.removed:
        (
            db.table("course_batches")
            .delete()
            .eq("course_id", course_id)
            .in_("batch_id", diff.removed)
            .execute()
        )
        _withdraw(db, students_in_batches(db, diff.removed), [course_id])

    logger.info(
        "Course %s batches synced: +%d -%d batch(es)",
        course_id, len(diff.added), len(diff.removed),
    )
    return diff


def sync_course_faculty(db, course_id: str, faculty_ids: list[str]) -> EnrollmentDiff:
    current = course_faculty_ids(db, course_id)
    desired = _unique(faculty_ids)
    diff = EnrollmentDiff(
        added=[f for f in desired if f not in current],
        removed=[f for f in current if f not in desired],
    )
    if diff.removed:
        (
            db.table("course_faculty")
            .delete()
            .eq("course_id", course_id)
            .in_("faculty_id", diff.removed)
            .execute()
        )
    if diff.added:
        db.table("course_faculty").upsert(
            [{"course_id": course_id, "faculty_id": f} for f in diff.added],
            on_conflict="course_id,faculty_id",
            ignore_duplicates=True,
        ).execute()
    return diff


def enroll_student(db, student_id: str, batch_ids: list[str]) -> None:
    """Add one student to several batches, seeding their Grade rows."""
    for batch_id in _unique(batch_ids):
        sync_batch_students(db, batch_id, batch_student_ids(db, batch_id) + [student_id])


def set_student_batches(db, student_id: str, batch_ids: list[str]) -> EnrollmentDiff:
    """Move a student to exactly these batches, one roster sync per touched batch.

    New batches are joined first; leaving the old ones afterwards only
    withdraws the student from courses none of their batches still reach.
    """
    current = student_batch_ids(db, student_id)
    desired = _unique(batch_ids)
    diff = EnrollmentDiff(
        added=[b for b in desired if b not in current],
        removed=[b for b in current if b not in desired],
    )
    enroll_student(db, student_id, diff.added)
    for batch_id in diff.removed:
        roster = [s for s in batch_student_ids(db, batch_id) if s != student_id]
        sync_batch_students(db, batch_id, roster)
    return diff


def seed_task_grades(db, task: dict) -> int:
    """One Pending Grade per student enrolled in the task's course."""
    students = enrolled_student_ids(db, task["course_id"])
    created = create_grade_placeholders(db, [task], students)
    logger.info("Task %s: %d grade placeholder(s) requested", task["id"], created)
    return created


def reassign_task_course(db, task: dict, course_id: str) -> int:
    """Move a task to another course: old course's records go, new roster is seeded."""
    remove_task_records(db, [task["id"]])
    db.table("tasks").update({"course_id": course_id}).eq("id", task["id"]).execute()
    return seed_task_grades(db, {**task, "course_id": course_id})


# ---------------------------------------------------------------------------
# Cascading deletes
# ---------------------------------------------------------------------------

def delete_task(db, task_id: str) -> None:
    remove_task_records(db, [task_id])
    db.table("tasks").delete().eq("id", task_id).execute()
    logger.info("Deleted task %s with its submissions and grades", task_id)


def delete_course(db, course_id: str) -> None:
    task_ids = task_ids_for_courses(db, [course_id])
    remove_task_records(db, task_ids)
    db.table("tasks").delete().eq("course_id", course_id).execute()
    db.table("course_batches").delete().eq("course_id", course_id).execute()
    db.table("course_faculty").delete().eq("course_id", course_id).execute()
    db.table("courses").delete().eq("id", course_id).execute()
    logger.info("Deleted course %s and %d task(s)", course_id, len(task_ids))


def delete_batch(db, batch_id: str) -> None:
    sync_batch_students(db, batch_id, [])
    db.table("course_batches").delete().eq("batch_id", batch_id).execute()
    db.table("batches").delete().eq("id", batch_id).execute()
    logger.info("Deleted batch %s", batch_id)


def delete_student(db, student_id: str) -> None:
    db.table("submissions").delete().eq("student_id", student_id).execute()
    db.table("grades").delete().eq("student_id", student_id).execute()
    db.table("batch_students").delete().eq("student_id", student_id).execute()
    db.table("users").delete().eq("id", student_id).execute()
    logger.info("Deleted student %s and all associated records", student_id)


def delete_faculty(db, faculty_id: str) -> list[str]:
    """Remove a faculty member and their teaching links.

    Courses and tasks they own stay in place; the ids of courses left with
    no faculty at all are returned.
    """
    result = db.table("course_faculty").select("course_id").eq("faculty_id", faculty_id).execute()
    course_ids = _column(result, "course_id")
    db.table("course_faculty").delete().eq("faculty_id", faculty_id).execute()
    db.table("users").delete().eq("id", faculty_id).execute()

    orphaned = [c for c in course_ids if not course_faculty_ids(db, c)]
    if orphaned:
        logger.warning("Faculty %s deleted; course(s) left without faculty: %s", faculty_id, orphaned)
    return orphaned
