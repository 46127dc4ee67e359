from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from datetime import date
from app.auth.permissions import (
    get_current_faculty,
    verify_assignment_ownership,
    verify_submission_access,
    FacultyContext
)
from app.faculty.faculty_schemas import (
    AssignmentCreate, AssignmentUpdate, AssignmentResponse,
    SubmissionResponse, SubmissionReview,
    FeedbackRequest, FeedbackResponse
)
from app.faculty import faculty_service as service
from app.assignments.submission_status import SubmissionAction, SubmissionStatus
from app.core.dependencies import get_repository, get_blob_store, get_feedback_generator


router = APIRouter(prefix="/faculty", tags=["Faculty"])

# ==================== DASHBOARD ====================

@router.get("/dashboard")
async def faculty_dashboard(
    faculty: FacultyContext = Depends(get_current_faculty),
    repo=Depends(get_repository)
):
    """
    Assigned classes, own assignments and the number awaiting review
    """
    return await service.faculty_dashboard(repo, faculty)

@router.get("/students")
async def class_students(
    branch_id: str,
    year: int = Query(..., ge=1, le=4),
    semester: int = Query(..., ge=1, le=2),
    section: Optional[str] = None,
    faculty: FacultyContext = Depends(get_current_faculty),
    repo=Depends(get_repository)
):
    """
    Students of one assigned class, optionally one section
    """
    students = await service.list_class_students(repo, faculty, branch_id, year, semester, section)
    return {"total_students": len(students), "students": students}

@router.get("/subjects")
async def class_subjects(
    branch_id: str,
    year: int = Query(..., ge=1, le=4),
    semester: int = Query(..., ge=1, le=2),
    faculty: FacultyContext = Depends(get_current_faculty),
    repo=Depends(get_repository)
):
    return await service.subjects_for_class(repo, faculty, branch_id, year, semester)

# ==================== ASSIGNMENTS ====================

@router.post("/assignments", response_model=AssignmentResponse, status_code=201)
async def create_assignment(
    data: AssignmentCreate,
    faculty: FacultyContext = Depends(get_current_faculty),
    repo=Depends(get_repository)
):
    """
    Create an assignment for a class and subject the faculty member teaches
    """
    return await service.create_assignment(repo, faculty, data.dict())

@router.get("/assignments", response_model=List[AssignmentResponse])
async def list_assignments(
    faculty: FacultyContext = Depends(get_current_faculty),
    repo=Depends(get_repository)
):
    return await service.list_faculty_assignments(repo, faculty)

@router.get("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: str,
    faculty: FacultyContext = Depends(get_current_faculty),
    repo=Depends(get_repository)
):
    assignment = await verify_assignment_ownership(repo, assignment_id, faculty)
    return await service.get_assignment_detail(repo, assignment)

@router.patch("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: str,
    data: AssignmentUpdate,
    faculty: FacultyContext = Depends(get_current_faculty),
    repo=Depends(get_repository)
):
    assignment = await verify_assignment_ownership(repo, assignment_id, faculty)
    return await service.update_assignment(repo, faculty, assignment, data.dict(exclude_none=True))

@router.delete("/assignments/{assignment_id}", status_code=204)
async def delete_assignment(
    assignment_id: str,
    faculty: FacultyContext = Depends(get_current_faculty),
    repo=Depends(get_repository),
    blobs=Depends(get_blob_store)
):
    """
    Delete an assignment and every submission made to it
    """
    assignment = await verify_assignment_ownership(repo, assignment_id, faculty)
    await service.delete_assignment(repo, blobs, faculty, assignment)
    return None

# ==================== SUBMISSIONS ====================

@router.get("/submissions", response_model=List[SubmissionResponse])
async def list_submissions(
    assignment_id: Optional[str] = None,
    status: Optional[SubmissionStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    faculty: FacultyContext = Depends(get_current_faculty),
    repo=Depends(get_repository)
):
    """
    Submissions to own assignments, filterable by assignment, status and day range
    """
    return await service.list_faculty_submissions(
        repo, faculty, assignment_id, status.value if status else None, start_date, end_date
    )

@router.post("/submissions/{submission_id}/verify", response_model=SubmissionResponse)
async def verify_submission(
    submission_id: str,
    data: Optional[SubmissionReview] = None,
    faculty: FacultyContext = Depends(get_current_faculty),
    repo=Depends(get_repository)
):
    submission = await verify_submission_access(repo, submission_id, faculty)
    return await service.review_submission(
        repo, faculty, submission, SubmissionAction.VERIFY, data.feedback if data else None
    )

@router.post("/submissions/{submission_id}/reject", response_model=SubmissionResponse)
async def reject_submission(
    submission_id: str,
    data: Optional[SubmissionReview] = None,
    faculty: FacultyContext = Depends(get_current_faculty),
    repo=Depends(get_repository)
):
    """
    Reject a pending submission; the student may then re-submit
    """
    submission = await verify_submission_access(repo, submission_id, faculty)
    return await service.review_submission(
        repo, faculty, submission, SubmissionAction.REJECT, data.feedback if data else None
    )

# ==================== AI FEEDBACK ====================

@router.post("/feedback-suggestions", response_model=FeedbackResponse)
async def feedback_suggestions(
    data: FeedbackRequest,
    faculty: FacultyContext = Depends(get_current_faculty),
    generator=Depends(get_feedback_generator)
):
    """
    AI suggestions on a grading approach and the remarks given to students
    """
    suggestions = await generator.suggest(data.grading_approach, data.remarks)
    return {"suggestions": suggestions}
