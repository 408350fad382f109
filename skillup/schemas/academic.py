"""
Pydantic schemas for students, faculty, batches and courses.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional

CourseStatus = Literal["Active", "Archived", "Upcoming"]


# ---- Student ----
class StudentCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    username: str = Field(min_length=2)
    password: str = Field(min_length=6)
    roll_number: str = Field(min_length=1)
    department: Optional[str] = None
    semester: Optional[int] = None
    photo: Optional[str] = None
    batch_ids: List[str] = []


class StudentUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)
    roll_number: Optional[str] = None
    department: Optional[str] = None
    semester: Optional[int] = None
    photo: Optional[str] = None
    batch_ids: Optional[List[str]] = None  # replaces the student's batches when given


# ---- Faculty ----
class FacultyCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    username: str = Field(min_length=2)
    password: str = Field(min_length=6)
    department: Optional[str] = None
    photo: Optional[str] = None


class FacultyUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)
    department: Optional[str] = None
    photo: Optional[str] = None
    is_active: Optional[bool] = None


# ---- Batch ----
class BatchCreate(BaseModel):
    name: str = Field(min_length=1)
    academic_year: str = Field(min_length=1)
    department: str = Field(min_length=1)
    student_ids: List[str] = []


class BatchUpdate(BaseModel):
    name: Optional[str] = None
    academic_year: Optional[str] = None
    department: Optional[str] = None
    student_ids: Optional[List[str]] = None


# ---- Course ----
class CourseCreate(BaseModel):
    course_code: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: Optional[str] = None
    photo: Optional[str] = None
    department: Optional[str] = None
    academic_year: Optional[str] = None
    semester: Optional[int] = None
    status: CourseStatus = "Upcoming"
    faculty_ids: List[str] = []
    batch_ids: List[str] = []

    @field_validator("course_code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()


class CourseUpdate(BaseModel):
    course_code: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    photo: Optional[str] = None
    department: Optional[str] = None
    academic_year: Optional[str] = None
    semester: Optional[int] = None
    status: Optional[CourseStatus] = None
    faculty_ids: Optional[List[str]] = None
    batch_ids: Optional[List[str]] = None

    @field_validator("course_code")
    @classmethod
    def upper_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v
