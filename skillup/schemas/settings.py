"""
Platform settings stored as a single `settings` row (key "global").
"""

from pydantic import BaseModel
from typing import List, Optional


class PlatformSettings(BaseModel):
    platform_name: str = "SkillUp Platform"
    platform_logo: Optional[str] = None
    support_email: Optional[str] = None
    allow_student_registration: bool = False
    allow_late_submissions: bool = True
    max_upload_size_mb: int = 10
    allowed_file_types: List[str] = [".pdf", ".docx", ".pptx", ".zip", ".jpg", ".png"]
    maintenance_mode: bool = False
    maintenance_message: str = "The platform is currently down for maintenance. We will be back shortly!"


class PlatformSettingsUpdate(BaseModel):
    platform_name: Optional[str] = None
    platform_logo: Optional[str] = None
    support_email: Optional[str] = None
    allow_student_registration: Optional[bool] = None
    allow_late_submissions: Optional[bool] = None
    max_upload_size_mb: Optional[int] = None
    allowed_file_types: Optional[List[str]] = None
    maintenance_mode: Optional[bool] = None
    maintenance_message: Optional[str] = None
