from fastapi import APIRouter, Depends, File, UploadFile
from typing import List
from app.auth.permissions import get_current_student, StudentContext
from app.faculty.faculty_schemas import SubmissionResponse
from app.students import student_service as service
from app.core.dependencies import get_repository, get_blob_store, get_settings


router = APIRouter(prefix="/student", tags=["Student"])

@router.get("/dashboard")
async def student_dashboard(
    student: StudentContext = Depends(get_current_student),
    repo=Depends(get_repository)
):
    """
    Active assignments with submission status, archived submissions and
    pending / verified / rejected groupings
    """
    return await service.student_dashboard(repo, student)

@router.get("/assignments")
async def list_assignments(
    student: StudentContext = Depends(get_current_student),
    repo=Depends(get_repository)
):
    """
    Assignments open to this student, each with its submission if any
    """
    entries = await service.list_student_assignments(repo, student)
    return {"total": len(entries), "assignments": entries}

@router.post("/assignments/{assignment_id}/submit", response_model=SubmissionResponse, status_code=201)
async def submit_assignment(
    assignment_id: str,
    file: UploadFile = File(...),
    student: StudentContext = Depends(get_current_student),
    repo=Depends(get_repository),
    blobs=Depends(get_blob_store),
    settings=Depends(get_settings)
):
    """
    Upload a file (.pdf .doc .docx .txt .jpg .jpeg .png, up to 10 MB)

    Replaces a pending or rejected submission; a verified one cannot change.
    """
    data = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    return await service.submit_assignment(
        repo, blobs, settings, student, assignment_id,
        file.filename or "", data, file.content_type
    )

@router.get("/submissions", response_model=List[SubmissionResponse])
async def my_submissions(
    student: StudentContext = Depends(get_current_student),
    repo=Depends(get_repository)
):
    return await service.get_student_submissions(repo, student)
