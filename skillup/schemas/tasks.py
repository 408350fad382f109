"""
Pydantic schemas for tasks, grading and submissions.
"""

from datetime import datetime
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Literal, Optional, Union

from skillup.utils.query import to_utc

TaskType = Literal["Assignment", "Quiz", "Project", "Lab Report"]


class Attachment(BaseModel):
    file_name: str
    url: str
    file_type: Optional[str] = None


# ---- Task ----
class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    type: TaskType = "Assignment"
    photo: Optional[str] = None
    course_id: str
    publish_date: Optional[datetime] = None  # defaults to now
    due_date: datetime
    max_points: float = Field(default=100, ge=0)
    attachments: List[Attachment] = []

    @model_validator(mode="after")
    def check_window(self):
        if self.publish_date and to_utc(self.due_date) < to_utc(self.publish_date):
            raise ValueError("Due date must be on or after the publish date.")
        return self


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[TaskType] = None
    photo: Optional[str] = None
    course_id: Optional[str] = None
    publish_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    max_points: Optional[float] = Field(default=None, ge=0)
    attachments: Optional[List[Attachment]] = None

    @model_validator(mode="after")
    def check_window(self):
        if self.publish_date and self.due_date and to_utc(self.due_date) < to_utc(self.publish_date):
            raise ValueError("Due date must be on or after the publish date.")
        return self


# ---- Grading ----
class GradeEntry(BaseModel):
    grade_id: str
    # blank resets the row to Pending; a non-numeric string is kept and reported as failed
    grade: Union[float, str, None] = None
    feedback: Optional[str] = ""

    @field_validator("grade", mode="before")
    @classmethod
    def blank_grade(cls, v: Union[str, float, int, None]):
        if v is None:
            return None
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            try:
                return float(v)
            except ValueError:
                return v
        return v


class GradeBulk(BaseModel):
    grades: List[GradeEntry] = Field(min_length=1)


# ---- Submission ----
class SubmissionCreate(BaseModel):
    content: str = ""
    attachments: List[Attachment] = []
