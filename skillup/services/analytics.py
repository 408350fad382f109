"""
Dashboard and analytics aggregations.

Rows are pulled with filtered selects, paged past the PostgREST row cap,
and grouped here; averages skip ungraded (null) grades.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from skillup.core.access import faculty_course_ids
from skillup.core.database import fetch_all
from skillup.core.security import FACULTY, STUDENT
from skillup.services import enrollment
from skillup.services.enrollment import GRADED
from skillup.services.tasks import TaskStatus, task_status
from skillup.services.users import display_name, users_by_ids
from skillup.utils.query import date_bounds, iso, to_utc


def _avg(values) -> float:
    present = [v for v in values if v is not None]
    return round(sum(present) / len(present), 2) if present else 0


def _percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0


def _created_between(query, lower=None, upper=None):
    if lower:
        query = query.gte("created_at", lower)
    if upper:
        query = query.lte("created_at", upper)
    return query


def _rows_in(db, table: str, column: str, ids: list[str], lower=None, upper=None) -> list[dict]:
    if not ids:
        return []
    return fetch_all(lambda: _created_between(db.table(table).select("*").in_(column, list(ids)), lower, upper))


def _all_rows(db, table: str, lower=None, upper=None) -> list[dict]:
    return fetch_all(lambda: _created_between(db.table(table).select("*"), lower, upper))


def _titles(db, table: str, ids) -> dict[str, dict]:
    ids = list(ids)
    if not ids:
        return {}
    return {row["id"]: row for row in fetch_all(lambda: db.table(table).select("*").in_("id", ids))}


def _grade_kpis(grades: list[dict]) -> dict:
    return {
        "total_submissions": sum(1 for g in grades if g.get("submission_id")),
        "total_graded": sum(1 for g in grades if g.get("status") == GRADED),
        "average_score": _avg(g.get("grade") for g in grades),
    }


def _daily_counts(rows: list[dict], key: str = "created_at") -> list[dict]:
    counts: dict[str, int] = defaultdict(int)
    for row in rows:
        stamp = to_utc(row.get(key))
        if stamp:
            counts[stamp.date().isoformat()] += 1
    return [{"date": day, "count": counts[day]} for day in sorted(counts)]


def _course_performance(db, grades: list[dict], limit: int = 10) -> list[dict]:
    by_course: dict[str, list[dict]] = defaultdict(list)
    for g in grades:
        by_course[g["course_id"]].append(g)
    courses = _titles(db, "courses", by_course)
    rows = [
        {
            "course_id": course_id,
            "course_name": courses.get(course_id, {}).get("title", "Unknown"),
            "average_grade": _avg(g.get("grade") for g in rows),
            "submission_count": sum(1 for g in rows if g.get("submission_id")),
        }
        for course_id, rows in by_course.items()
    ]
    rows.sort(key=lambda r: r["average_grade"], reverse=True)
    return rows[:limit]


def _faculty_performance(db, tasks: list[dict], limit: int = 10) -> list[dict]:
    by_creator: dict[str, list[str]] = defaultdict(list)
    for task in tasks:
        if task.get("created_by"):
            by_creator[task["created_by"]].append(task["id"])

    faculty = users_by_ids(db, list(by_creator))
    rows = []
    for faculty_id, task_ids in by_creator.items():
        if faculty_id not in faculty:
            continue
        grades = _rows_in(db, "grades", "task_id", task_ids)
        rows.append({
            "faculty_id": faculty_id,
            "faculty_name": display_name(faculty[faculty_id]),
            "task_count": len(task_ids),
            "average_grade": _avg(g.get("grade") for g in grades),
        })
    rows.sort(key=lambda r: r["average_grade"], reverse=True)
    return rows[:limit]


def _points_by_student(db, grades: list[dict]) -> dict[str, dict]:
    """Earned and possible points per student over graded rows."""
    graded = [g for g in grades if g.get("grade") is not None]
    tasks = _titles(db, "tasks", {g["task_id"] for g in graded})
    totals: dict[str, dict] = defaultdict(lambda: {"earned": 0.0, "possible": 0.0, "tasks_completed": 0})
    for g in graded:
        entry = totals[g["student_id"]]
        entry["earned"] += g["grade"]
        entry["possible"] += tasks.get(g["task_id"], {}).get("max_points") or 0
        entry["tasks_completed"] += 1
    return totals


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

def admin_dashboard(db, now: datetime) -> dict:
    tasks = _all_rows(db, "tasks")
    users = fetch_all(lambda: db.table("users").select("*").in_("role", [STUDENT, FACULTY]))
    students = [u for u in users if u["role"] == STUDENT]
    faculty = [u for u in users if u["role"] == FACULTY]
    grades = _all_rows(db, "grades")

    active = sum(
        1 for t in tasks
        if task_status(t.get("publish_date"), t.get("due_date"), now) == TaskStatus.ACTIVE
    )

    year = to_utc(now).year
    monthly = {m: {"month": m, "tasks": 0, "students": 0, "faculty": 0} for m in range(1, 13)}
    for key, rows in (("tasks", tasks), ("students", students), ("faculty", faculty)):
        for row in rows:
            created = to_utc(row.get("created_at"))
            if created and created.year == year:
                monthly[created.month][key] += 1

    graded = sum(1 for g in grades if g.get("status") == GRADED)
    completion = _percent(graded, len(grades))

    scores: dict[str, dict] = defaultdict(lambda: {"total_score": 0.0, "tasks_completed": 0})
    for g in grades:
        if g.get("grade") is not None:
            scores[g["student_id"]]["total_score"] += g["grade"]
            scores[g["student_id"]]["tasks_completed"] += 1
    by_id = {s["id"]: s for s in students}
    ranked = sorted(
        (sid for sid in scores if sid in by_id),
        key=lambda sid: scores[sid]["total_score"],
        reverse=True,
    )[:5]
    ranked += [s["id"] for s in students if s["id"] not in ranked][: 5 - len(ranked)]
    top_students = [
        {
            "student_id": sid,
            "name": display_name(by_id[sid]),
            "photo": by_id[sid].get("photo") or "",
            "total_score": scores[sid]["total_score"] if sid in scores else 0,
            "tasks_completed": scores[sid]["tasks_completed"] if sid in scores else 0,
        }
        for sid in ranked
    ]

    created: dict[str, int] = defaultdict(int)
    for t in tasks:
        if t.get("created_by"):
            created[t["created_by"]] += 1
    faculty_by_id = {f["id"]: f for f in faculty}
    top = sorted((fid for fid in created if fid in faculty_by_id), key=lambda fid: created[fid], reverse=True)[:5]
    top += [f["id"] for f in faculty if f["id"] not in top][: 5 - len(top)]
    top_faculty = [
        {
            "faculty_id": fid,
            "name": display_name(faculty_by_id[fid]),
            "photo": faculty_by_id[fid].get("photo") or "",
            "department": faculty_by_id[fid].get("department") or "N/A",
            "tasks_created": created.get(fid, 0),
        }
        for fid in top
    ]

    return {
        "kpis": {
            "total_students": len(students),
            "total_faculty": len(faculty),
            "active_tasks": active,
            "completion_rate": f"{completion:.1f}%",
        },
        "monthly_stats": list(monthly.values()),
        "top_students": top_students,
        "top_faculty": top_faculty,
    }


def admin_analytics(
    db,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    department: Optional[str] = None,
) -> dict:
    lower, upper = date_bounds(start_date, end_date)

    if department:
        courses = fetch_all(lambda: db.table("courses").select("id").eq("department", department))
        grades = _rows_in(db, "grades", "course_id", [c["id"] for c in courses], lower, upper)
    else:
        grades = _all_rows(db, "grades", lower, upper)

    return {
        "kpis": _grade_kpis(grades),
        "submission_trend": _daily_counts(_all_rows(db, "submissions", lower, upper)),
        "course_performance": _course_performance(db, grades),
        "faculty_performance": _faculty_performance(db, _all_rows(db, "tasks", lower, upper)),
        "date_range": {"start_date": lower, "end_date": upper},
    }


# ---------------------------------------------------------------------------
# Faculty
# ---------------------------------------------------------------------------

def _faculty_scope(db, faculty_id: str) -> tuple[list[str], list[str], list[str]]:
    course_ids = faculty_course_ids(db, faculty_id)
    batch_ids: list[str] = []
    for course_id in course_ids:
        batch_ids.extend(enrollment.course_batch_ids(db, course_id))
    batch_ids = list(dict.fromkeys(batch_ids))
    return course_ids, batch_ids, enrollment.students_in_batches(db, batch_ids)


def _top_students(db, grades: list[dict], limit: int = 5) -> list[dict]:
    totals = _points_by_student(db, grades)
    ranked = sorted(totals, key=lambda sid: totals[sid]["earned"], reverse=True)[:limit]
    users = users_by_ids(db, ranked)
    return [
        {
            "student_id": sid,
            "name": display_name(users.get(sid)),
            "photo": (users.get(sid) or {}).get("photo") or "",
            "total_score": _percent(totals[sid]["earned"], totals[sid]["possible"]),
            "tasks_completed": totals[sid]["tasks_completed"],
        }
        for sid in ranked
    ]


def faculty_dashboard(db, faculty_id: str, now: datetime) -> dict:
    course_ids, _, student_ids = _faculty_scope(db, faculty_id)
    my_tasks = fetch_all(lambda: db.table("tasks").select("*").eq("created_by", faculty_id))
    task_ids = [t["id"] for t in my_tasks]
    max_points = {t["id"]: t.get("max_points") or 0 for t in my_tasks}

    graded = [g for g in _rows_in(db, "grades", "task_id", task_ids) if g.get("grade") is not None]
    earned = sum(g["grade"] for g in graded)
    possible = sum(max_points.get(g["task_id"], 0) for g in graded)

    due_now = to_utc(now)
    active = sum(1 for t in my_tasks if to_utc(t.get("due_date")) and to_utc(t["due_date"]) >= due_now)

    week_ago = iso(due_now - timedelta(days=7))
    recent = _rows_in(db, "submissions", "task_id", task_ids, lower=week_ago)

    latest = sorted(
        _rows_in(db, "submissions", "task_id", task_ids),
        key=lambda s: s.get("created_at") or "",
        reverse=True,
    )[:5]
    students = users_by_ids(db, [s["student_id"] for s in latest])
    tasks_by_id = {t["id"]: t for t in my_tasks}
    courses = _titles(db, "courses", {t["course_id"] for t in my_tasks})
    recent_activity = [
        {
            "submission_id": s["id"],
            "student_name": display_name(students.get(s["student_id"])),
            "task_title": tasks_by_id.get(s["task_id"], {}).get("title"),
            "course_title": courses.get(tasks_by_id.get(s["task_id"], {}).get("course_id"), {}).get("title"),
            "submitted_at": s.get("submitted_at"),
        }
        for s in latest
    ]

    return {
        "kpis": {
            "my_courses": len(course_ids),
            "total_students": len(student_ids),
            "active_assignments": active,
            "average_grade": _percent(earned, possible),
        },
        "submission_trend": _daily_counts(recent),
        "top_students": _top_students(db, _rows_in(db, "grades", "student_id", student_ids)),
        "recent_activity": recent_activity,
    }


def faculty_analytics(
    db,
    faculty_id: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> dict:
    lower, upper = date_bounds(start_date, end_date)
    course_ids, batch_ids, _ = _faculty_scope(db, faculty_id)
    grades = _rows_in(db, "grades", "course_id", course_ids, lower, upper)

    batches = _titles(db, "batches", batch_ids)
    batch_performance = []
    for batch_id in batch_ids:
        roster = set(enrollment.batch_student_ids(db, batch_id))
        linked = set(enrollment.course_ids_for_batches(db, [batch_id])) & set(course_ids)
        rows = [g for g in grades if g["student_id"] in roster and g["course_id"] in linked]
        batch_performance.append({
            "batch_id": batch_id,
            "batch_name": batches.get(batch_id, {}).get("name"),
            "average_grade": _avg(g.get("grade") for g in rows),
            "submission_count": sum(1 for g in rows if g.get("submission_id")),
            "student_count": len({g["student_id"] for g in rows}),
        })
    batch_performance.sort(key=lambda r: r["average_grade"], reverse=True)

    my_tasks = fetch_all(
        lambda: _created_between(db.table("tasks").select("*").eq("created_by", faculty_id), lower, upper)
    )

    return {
        "kpis": _grade_kpis(grades),
        "submission_trend": _daily_counts(_rows_in(db, "submissions", "course_id", course_ids, lower, upper)),
        "course_performance": _course_performance(db, grades),
        "batch_performance": batch_performance,
        "faculty_performance": _faculty_performance(db, my_tasks),
        "top_students": _top_students(db, grades),
        "date_range": {"start_date": lower, "end_date": upper},
    }


# ---------------------------------------------------------------------------
# Student
# ---------------------------------------------------------------------------

def student_dashboard(db, student_id: str, now: datetime) -> dict:
    course_ids = enrollment.student_course_ids(db, student_id)
    tasks = _rows_in(db, "tasks", "course_id", course_ids)
    task_ids = [t["id"] for t in tasks]

    submitted = {s["task_id"] for s in _rows_in(db, "submissions", "task_id", task_ids) if s["student_id"] == student_id}
    grades = [g for g in _rows_in(db, "grades", "task_id", task_ids) if g["student_id"] == student_id]
    totals = _points_by_student(db, grades).get(student_id, {"earned": 0, "possible": 0})

    open_tasks = [
        t for t in tasks
        if t["id"] not in submitted
        and task_status(t.get("publish_date"), t.get("due_date"), now) == TaskStatus.ACTIVE
    ]
    open_tasks.sort(key=lambda t: to_utc(t["due_date"]))
    courses = _titles(db, "courses", course_ids)

    four_weeks_ago = to_utc(now) - timedelta(weeks=4)
    weekly: dict[int, int] = defaultdict(int)
    for g in grades:
        graded_at = to_utc(g.get("graded_at"))
        if g.get("grade") is not None and graded_at and graded_at >= four_weeks_ago:
            weekly[graded_at.isocalendar()[1]] += 1

    return {
        "kpis": {
            "enrolled_courses": len(course_ids),
            "pending_assignments": len(open_tasks),
            "completed_tasks": sum(1 for g in grades if g.get("grade") is not None),
            "average_score": _percent(totals["earned"], totals["possible"]),
        },
        "task_completion_trend": [
            {"week": f"Week {w}", "tasks_completed": c} for w, c in sorted(weekly.items())
        ],
        "upcoming_deadlines": [
            {
                **t,
                "course": {
                    "id": t["course_id"],
                    "title": courses.get(t["course_id"], {}).get("title"),
                    "course_code": courses.get(t["course_id"], {}).get("course_code"),
                },
            }
            for t in open_tasks[:5]
        ],
    }
