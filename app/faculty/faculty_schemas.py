from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime
from app.assignments.assignment_models import TargetClass


def _as_strings(values):
    if values is None:
        return []
    if isinstance(values, (str, int)):
        values = [values]
    return [str(v).strip() for v in values if str(v).strip()]

# ==================== REQUEST SCHEMAS ====================

class TargetClassInput(BaseModel):
    branch_id: str
    year: str
    semester: str
    section: Optional[str] = None

    @validator('year', 'semester', pre=True)
    def as_string(cls, v):
        return str(v).strip()

    @validator('section', pre=True)
    def upper_section(cls, v):
        if v is None or not str(v).strip():
            return None
        return str(v).strip().upper()

class AssignmentCreate(BaseModel):
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=10)
    year: int = Field(..., ge=1, le=4)
    semester: int = Field(..., ge=1, le=2)
    branch_id: str
    subject_id: str
    deadline: datetime
    target_branches: List[str] = []
    target_years: List[str] = []
    target_semesters: List[str] = []
    target_sections: List[str] = []
    target_classes: List[TargetClassInput] = []

    @validator('title', 'description', pre=True)
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @validator('branch_id', 'subject_id')
    def validate_required(cls, v):
        if not v or not v.strip():
            raise ValueError('This field is required')
        return v.strip()

    @validator('target_branches', 'target_years', 'target_semesters', pre=True)
    def normalize_targets(cls, v):
        return _as_strings(v)

    @validator('target_sections', pre=True)
    def normalize_sections(cls, v):
        return [s.upper() for s in _as_strings(v)]

class AssignmentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=10)
    deadline: Optional[datetime] = None
    target_branches: Optional[List[str]] = None
    target_years: Optional[List[str]] = None
    target_semesters: Optional[List[str]] = None
    target_sections: Optional[List[str]] = None
    target_classes: Optional[List[TargetClassInput]] = None

    @validator('target_branches', 'target_years', 'target_semesters', pre=True)
    def normalize_targets(cls, v):
        return _as_strings(v) if v is not None else None

    @validator('target_sections', pre=True)
    def normalize_sections(cls, v):
        return [s.upper() for s in _as_strings(v)] if v is not None else None

class SubmissionReview(BaseModel):
    feedback: Optional[str] = Field(None, max_length=2000)

class FeedbackRequest(BaseModel):
    grading_approach: str = Field(..., min_length=1, max_length=4000)
    remarks: str = Field(..., min_length=1, max_length=4000)

# ==================== RESPONSE SCHEMAS ====================

class AssignmentResponse(BaseModel):
    id: str
    title: str
    description: str
    year: int
    semester: int
    branch_id: str
    subject_id: str
    subject_name: Optional[str] = None
    faculty_id: str
    faculty_name: Optional[str] = None
    deadline: datetime
    target_branches: List[str] = []
    target_years: List[str] = []
    target_semesters: List[str] = []
    target_sections: List[str] = []
    target_classes: List[TargetClass] = []
    created_at: datetime
    updated_at: Optional[datetime] = None
    submission_count: Optional[int] = None
    pending_count: Optional[int] = None

class SubmissionResponse(BaseModel):
    id: str
    assignment_id: str
    assignment_title: Optional[str] = None
    subject_id: Optional[str] = None
    faculty_id: str
    student_id: str
    student_name: str
    student_email: Optional[str] = None
    roll_number: Optional[str] = None
    file_url: str
    file_name: str
    status: str
    feedback: Optional[str] = None
    submitted_at: datetime
    resubmitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None

class FeedbackResponse(BaseModel):
    suggestions: str
