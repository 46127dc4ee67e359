from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime
from app.admin.admin_models import FacultyClass


def _check_email(value: str) -> str:
    value = value.strip().lower()
    local, _, domain = value.partition("@")
    if not local or "." not in domain:
        raise ValueError('Invalid email address')
    return value


def _check_section(value: str) -> str:
    value = value.strip().upper()
    if len(value) != 1 or not value.isalpha():
        raise ValueError('Section must be a single letter')
    return value

# ==================== CATALOG REQUESTS ====================

class BranchCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

    @validator('name')
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Branch name is required')
        return v.strip()

class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    branch_id: str
    code: Optional[str] = Field(None, max_length=20)
    credits: Optional[int] = Field(None, ge=0, le=10)
    description: Optional[str] = None
    year: Optional[int] = Field(None, ge=1, le=4)
    semester: Optional[int] = Field(None, ge=1, le=2)

    @validator('name', 'branch_id')
    def validate_required(cls, v):
        if not v or not v.strip():
            raise ValueError('This field is required')
        return v.strip()

class SubjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    branch_id: Optional[str] = None
    code: Optional[str] = Field(None, max_length=20)
    credits: Optional[int] = Field(None, ge=0, le=10)
    description: Optional[str] = None
    year: Optional[int] = Field(None, ge=1, le=4)
    semester: Optional[int] = Field(None, ge=1, le=2)
    is_active: Optional[bool] = None

class SubjectBatchCreate(BaseModel):
    """
    Create several subjects for one (branch, year, semester) at once
    Blank names are dropped; at least one name must remain
    """
    branch_id: str
    year: int = Field(..., ge=1, le=4)
    semester: int = Field(..., ge=1, le=2)
    names: List[str]

    @validator('names')
    def drop_blank_names(cls, v):
        names = [n.strip() for n in v if n and n.strip()]
        if not names:
            raise ValueError('At least one subject name is required')
        return names

# ==================== PROVISIONING REQUESTS ====================

class StudentCreate(BaseModel):
    roll_number: str = Field(..., min_length=1, max_length=20)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: str
    password: str = Field(..., min_length=6)
    branch_id: str
    year: int = Field(..., ge=1, le=4)
    semester: int = Field(..., ge=1, le=2)
    section: str

    @validator('roll_number')
    def validate_roll_number(cls, v):
        v = v.strip().upper()
        if not v.isalnum():
            raise ValueError('Roll number must be alphanumeric')
        return v

    @validator('email')
    def validate_email(cls, v):
        return _check_email(v)

    @validator('section')
    def validate_section(cls, v):
        return _check_section(v)

class StudentUpdate(BaseModel):
    roll_number: Optional[str] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    branch_id: Optional[str] = None
    year: Optional[int] = Field(None, ge=1, le=4)
    semester: Optional[int] = Field(None, ge=1, le=2)
    section: Optional[str] = None

    @validator('roll_number')
    def validate_roll_number(cls, v):
        if v is None:
            return v
        v = v.strip().upper()
        if not v.isalnum():
            raise ValueError('Roll number must be alphanumeric')
        return v

    @validator('section')
    def validate_section(cls, v):
        return _check_section(v) if v is not None else v

class FacultyClassInput(BaseModel):
    """subjects omitted -> every catalog subject of that branch/year/semester"""
    branch_id: str
    year: int = Field(..., ge=1, le=4)
    semester: int = Field(..., ge=1, le=2)
    subjects: Optional[List[str]] = None

class FacultyCreate(BaseModel):
    faculty_id: str = Field(..., min_length=1, max_length=30)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: str
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    department: Optional[str] = None
    classes: List[FacultyClassInput]

    @validator('email')
    def validate_email(cls, v):
        return _check_email(v)

    @validator('classes')
    def validate_classes(cls, v):
        if not v:
            raise ValueError('At least one class is required')
        return v

class FacultyUpdate(BaseModel):
    faculty_id: Optional[str] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = None
    department: Optional[str] = None
    is_active: Optional[bool] = None

class AssignClassesRequest(BaseModel):
    classes: List[FacultyClassInput]

    @validator('classes')
    def validate_classes(cls, v):
        if not v:
            raise ValueError('At least one class is required')
        return v

# ==================== RESPONSE SCHEMAS ====================

class BranchResponse(BaseModel):
    id: str
    name: str
    created_at: datetime

class SubjectResponse(BaseModel):
    id: str
    name: str
    branch_id: str
    code: Optional[str] = None
    credits: Optional[int] = None
    description: Optional[str] = None
    year: Optional[int] = None
    semester: Optional[int] = None
    is_active: bool = True
    created_at: datetime
    updated_at: Optional[datetime] = None

class StudentResponse(BaseModel):
    id: str
    roll_number: str
    first_name: str
    last_name: str
    email: str
    branch_id: str
    year: int
    semester: int
    section: str
    created_at: datetime

class FacultyResponse(BaseModel):
    id: str
    faculty_id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    department: Optional[str] = None
    classes: List[FacultyClass] = []
    is_active: bool = True
    created_at: datetime

class StudentPage(BaseModel):
    total: int
    page: int
    page_size: int
    students: List[StudentResponse]

class FacultyPage(BaseModel):
    total: int
    page: int
    page_size: int
    faculty: List[FacultyResponse]
