from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class TargetClass(BaseModel):
    """Exact audience tuple; section None covers every section"""
    branch_id: str
    year: str
    semester: str
    section: Optional[str] = None


class Assignment(BaseModel):
    title: str
    description: str
    year: int
    semester: int
    branch_id: str
    subject_id: str
    subject_name: Optional[str] = None
    faculty_id: str  # uid of the owning faculty member
    faculty_name: Optional[str] = None
    deadline: datetime
    target_branches: List[str] = []
    target_years: List[str] = []  # stored as strings, compared as strings
    target_semesters: List[str] = []
    target_sections: List[str] = []  # empty = every section
    target_classes: List[TargetClass] = []  # non-empty overrides the sets above
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class Submission(BaseModel):
    assignment_id: str
    assignment_title: Optional[str] = None
    subject_id: Optional[str] = None
    faculty_id: str
    student_id: str  # uid
    student_name: str
    student_email: Optional[str] = None
    roll_number: Optional[str] = None
    file_url: str
    file_name: str
    file_path: str
    content_type: Optional[str] = None
    status: str = "pending"
    feedback: Optional[str] = None
    submitted_at: datetime = Field(default_factory=datetime.utcnow)
    resubmitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
