"""
Pydantic schemas for authentication and profile management.
"""

from pydantic import BaseModel, Field
from typing import Optional


class UserRegister(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    username: str = Field(min_length=2)
    password: str = Field(min_length=6)
    department: Optional[str] = None
    roll_number: Optional[str] = None  # students only
    semester: Optional[int] = None


class UserLogin(BaseModel):
    username: str  # username, or email when it contains "@"
    password: str


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    department: Optional[str] = None
    semester: Optional[int] = None
    photo: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)
