from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from app.auth.permissions import get_current_admin, AdminContext
from app.admin.admin_schemas import (
    BranchCreate, BranchResponse,
    SubjectCreate, SubjectUpdate, SubjectBatchCreate, SubjectResponse,
    StudentCreate, StudentUpdate, StudentResponse, StudentPage,
    FacultyCreate, FacultyUpdate, FacultyResponse, FacultyPage,
    AssignClassesRequest
)
from app.admin import catalog_service as catalog
from app.admin import provisioning_service as provisioning
from app.core.audit import get_audit_trail
from app.core.dependencies import get_repository, get_identity_provider, get_role_service


router = APIRouter(prefix="/admin", tags=["Admin"])

# ==================== DASHBOARD ====================

@router.get("/dashboard")
async def admin_dashboard(
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    """
    Catalog, people and submission counts
    """
    return {
        "admin": {"uid": admin.uid, "email": admin.email},
        "overview": await provisioning.admin_overview(repo)
    }

# ==================== BRANCHES ====================

@router.post("/branches", response_model=BranchResponse, status_code=201)
async def create_branch(
    data: BranchCreate,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    """
    Create a branch (branches are never deleted)
    """
    return await catalog.create_branch(repo, admin, data.name)

@router.get("/branches", response_model=List[BranchResponse])
async def list_branches(
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    return await catalog.list_branches(repo)

# ==================== SUBJECTS ====================

@router.post("/subjects", response_model=SubjectResponse, status_code=201)
async def create_subject(
    data: SubjectCreate,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    """
    Create a subject under an existing branch
    """
    return await catalog.create_subject(repo, admin, data.dict())

@router.post("/subjects/batch", response_model=List[SubjectResponse], status_code=201)
async def batch_create_subjects(
    data: SubjectBatchCreate,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    """
    Create several subjects for one branch/year/semester, with generated codes
    """
    return await catalog.batch_create_subjects(
        repo, admin, data.branch_id, data.year, data.semester, data.names
    )

@router.get("/subjects", response_model=List[SubjectResponse])
async def list_subjects(
    branch_id: Optional[str] = None,
    year: Optional[int] = Query(None, ge=1, le=4),
    semester: Optional[int] = Query(None, ge=1, le=2),
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    return await catalog.list_subjects(repo, branch_id, year, semester)

@router.patch("/subjects/{subject_id}", response_model=SubjectResponse)
async def update_subject(
    subject_id: str,
    data: SubjectUpdate,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    return await catalog.update_subject(repo, admin, subject_id, data.dict(exclude_none=True))

@router.delete("/subjects/{subject_id}", status_code=204)
async def delete_subject(
    subject_id: str,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    await catalog.delete_subject(repo, admin, subject_id)
    return None

# ==================== STUDENTS ====================

@router.post("/students", response_model=StudentResponse, status_code=201)
async def create_student(
    data: StudentCreate,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository),
    identity=Depends(get_identity_provider),
    roles=Depends(get_role_service)
):
    """
    Create the student's sign-in account and profile
    """
    return await provisioning.create_student(repo, identity, roles, admin, data.dict())

@router.get("/students", response_model=StudentPage)
async def list_students(
    branch_id: Optional[str] = None,
    year: Optional[int] = Query(None, ge=1, le=4),
    semester: Optional[int] = Query(None, ge=1, le=2),
    section: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    """
    Filter students by class, search by roll number, name or email
    """
    return await provisioning.list_students(
        repo, branch_id, year, semester, section, search, page, page_size
    )

@router.get("/students/{uid}", response_model=StudentResponse)
async def get_student(
    uid: str,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    return await provisioning.get_student(repo, uid)

@router.patch("/students/{uid}", response_model=StudentResponse)
async def update_student(
    uid: str,
    data: StudentUpdate,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    return await provisioning.update_student(repo, admin, uid, data.dict(exclude_none=True))

@router.delete("/students/{uid}", status_code=204)
async def delete_student(
    uid: str,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository),
    identity=Depends(get_identity_provider),
    roles=Depends(get_role_service)
):
    await provisioning.delete_student(repo, identity, roles, admin, uid)
    return None

# ==================== FACULTY ====================

@router.post("/faculty", response_model=FacultyResponse, status_code=201)
async def create_faculty(
    data: FacultyCreate,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository),
    identity=Depends(get_identity_provider),
    roles=Depends(get_role_service)
):
    """
    Create a faculty account with its assigned classes
    """
    return await provisioning.create_faculty(repo, identity, roles, admin, data.dict())

@router.get("/faculty", response_model=FacultyPage)
async def list_faculty(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    return await provisioning.list_faculty(repo, search, page, page_size)

@router.get("/faculty/{uid}", response_model=FacultyResponse)
async def get_faculty(
    uid: str,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    return await provisioning.get_faculty(repo, uid)

@router.patch("/faculty/{uid}", response_model=FacultyResponse)
async def update_faculty(
    uid: str,
    data: FacultyUpdate,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    return await provisioning.update_faculty(repo, admin, uid, data.dict(exclude_none=True))

@router.post("/faculty/{uid}/classes", response_model=FacultyResponse)
async def assign_classes(
    uid: str,
    data: AssignClassesRequest,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    """
    Add classes to a faculty member; a class already assigned is skipped
    """
    return await provisioning.assign_classes(repo, admin, uid, [c.dict() for c in data.classes])

@router.delete("/faculty/{uid}", status_code=204)
async def delete_faculty(
    uid: str,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository),
    identity=Depends(get_identity_provider),
    roles=Depends(get_role_service)
):
    await provisioning.delete_faculty(repo, identity, roles, admin, uid)
    return None

# ==================== ADMIN ROLES ====================

@router.put("/roles/admin/{uid}")
async def grant_admin(
    uid: str,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository),
    roles=Depends(get_role_service)
):
    await provisioning.grant_admin(repo, roles, admin, uid)
    return {"status": "success", "message": "Admin role granted"}

@router.delete("/roles/admin/{uid}")
async def revoke_admin(
    uid: str,
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository),
    roles=Depends(get_role_service)
):
    await provisioning.revoke_admin(repo, roles, admin, uid)
    return {"status": "success", "message": "Admin role revoked"}

# ==================== AUDIT ====================

@router.get("/audit-logs")
async def audit_logs(
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    admin: AdminContext = Depends(get_current_admin),
    repo=Depends(get_repository)
):
    logs = await get_audit_trail(repo, target_type, target_id, limit)
    return {"total": len(logs), "logs": logs}
