from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

# ==================== CATALOG ====================

class Branch(BaseModel):
    name: str  # e.g. "Computer Science"
    created_at: datetime = Field(default_factory=datetime.utcnow)

class Subject(BaseModel):
    name: str
    branch_id: str  # must reference an existing branch
    code: Optional[str] = None  # e.g. CO211
    credits: Optional[int] = None
    description: Optional[str] = None
    year: Optional[int] = None
    semester: Optional[int] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

# ==================== PEOPLE ====================

class FacultyClass(BaseModel):
    """One (branch, year, semester) a faculty member teaches, with its subjects"""
    branch_id: str
    branch_name: Optional[str] = None
    year: int
    semester: int
    subjects: List[str] = []  # subject ids

class StudentProfile(BaseModel):
    """Stored in users/{uid}"""
    roll_number: str
    first_name: str
    last_name: str
    email: str
    branch_id: str
    year: int  # 1-4
    semester: int  # 1-2
    section: str  # single letter, upper-case
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

class FacultyProfile(BaseModel):
    """Stored in faculties/{uid}; its existence grants the faculty role"""
    faculty_id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    department: Optional[str] = None
    classes: List[FacultyClass] = []
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
