import logging
from datetime import datetime
from typing import List, Optional

from app.admin.admin_models import FacultyClass, FacultyProfile, StudentProfile
from app.admin.catalog_service import get_branch, list_subjects
from app.auth.firebase_auth import IdentityProvider
from app.auth.permissions import AdminContext
from app.auth.role_resolver import RoleService
from app.core.audit import log_audit
from app.core.exceptions import ConflictError, NotFoundError, StorageError
from app.core.repository import DocumentRepository

logger = logging.getLogger(__name__)

# ==================== HELPERS ====================

async def _create_account_with_profile(
    repo: DocumentRepository,
    identity: IdentityProvider,
    collection: str,
    email: str,
    password: str,
    display_name: str,
    profile: dict
) -> str:
    """
    Create the identity account, then the profile document keyed by its uid

    If the profile write fails the account is deleted again so no orphan
    account is left behind.
    """
    uid = await identity.create_user(email, password, display_name)

    try:
        await repo.set(collection, uid, profile)
    except Exception as e:
        logger.error(f"Profile write to {collection}/{uid} failed, removing account: {e}", exc_info=True)
        await identity.delete_user(uid)
        raise StorageError("Could not save the profile, please try again", operation=f"create_{collection}")

    return uid

async def _resolve_classes(repo: DocumentRepository, classes: List[dict]) -> List[dict]:
    """Validate branches, fill branch names and default subject lists"""
    resolved = []
    for cls in classes:
        branch = await get_branch(repo, cls["branch_id"])
        subjects = cls.get("subjects")
        if subjects is None:
            catalog = await list_subjects(repo, cls["branch_id"], cls["year"], cls["semester"])
            subjects = [s["id"] for s in catalog]

        resolved.append(FacultyClass(
            branch_id=cls["branch_id"],
            branch_name=branch.get("name"),
            year=int(cls["year"]),
            semester=int(cls["semester"]),
            subjects=list(dict.fromkeys(subjects)),
        ).dict())
    return resolved

def merge_classes(existing: List[dict], added: List[dict]) -> List[dict]:
    """Append classes, skipping any (branch, year, semester) already present"""
    merged = list(existing)
    seen = {(c.get("branch_id"), int(c.get("year")), int(c.get("semester"))) for c in existing}
    for cls in added:
        key = (cls["branch_id"], int(cls["year"]), int(cls["semester"]))
        if key in seen:
            continue
        seen.add(key)
        merged.append(cls)
    return merged

def _paginate(items: List[dict], page: int, page_size: int) -> List[dict]:
    start = (max(page, 1) - 1) * page_size
    return items[start:start + page_size]

def _matches_search(doc: dict, search: Optional[str], fields) -> bool:
    if not search:
        return True
    needle = search.strip().lower()
    return any(needle in str(doc.get(f) or "").lower() for f in fields)

# ==================== STUDENTS ====================

async def create_student(
    repo: DocumentRepository,
    identity: IdentityProvider,
    roles: RoleService,
    admin: AdminContext,
    data: dict
) -> dict:
    """Provision a student account and its users/{uid} profile"""
    await get_branch(repo, data["branch_id"])

    if await repo.find_one("users", {"roll_number": data["roll_number"]}):
        raise ConflictError(f"Roll number {data['roll_number']} is already registered")

    profile = StudentProfile(
        roll_number=data["roll_number"],
        first_name=data["first_name"],
        last_name=data["last_name"],
        email=data["email"],
        branch_id=data["branch_id"],
        year=data["year"],
        semester=data["semester"],
        section=data["section"],
    )

    uid = await _create_account_with_profile(
        repo, identity, "users", data["email"], data["password"],
        f"{data['first_name']} {data['last_name']}", profile.dict()
    )
    roles.invalidate(uid)
    await log_audit(repo, admin, "create_student", "student", uid, {"roll_number": profile.roll_number})

    logger.info(f"Student provisioned: {profile.roll_number} ({uid})")
    return await repo.get("users", uid)

async def get_student(repo: DocumentRepository, uid: str) -> dict:
    student = await repo.get("users", uid)
    if not student:
        raise NotFoundError("Student", uid)
    return student

async def update_student(repo: DocumentRepository, admin: AdminContext, uid: str, data: dict) -> dict:
    student = await get_student(repo, uid)

    update_data = {k: v for k, v in data.items() if v is not None}
    if "branch_id" in update_data:
        await get_branch(repo, update_data["branch_id"])

    roll_number = update_data.get("roll_number")
    if roll_number and roll_number != student.get("roll_number"):
        holder = await repo.find_one("users", {"roll_number": roll_number})
        if holder and holder["id"] != uid:
            raise ConflictError(f"Roll number {roll_number} is already registered")

    update_data["updated_at"] = datetime.utcnow()
    await repo.update("users", uid, update_data)
    await log_audit(repo, admin, "update_student", "student", uid, update_data)

    return await repo.get("users", uid)

async def delete_student(
    repo: DocumentRepository,
    identity: IdentityProvider,
    roles: RoleService,
    admin: AdminContext,
    uid: str
):
    """Remove the profile and the identity account"""
    await get_student(repo, uid)
    await repo.delete("users", uid)
    await identity.delete_user(uid)
    roles.invalidate(uid)
    await log_audit(repo, admin, "delete_student", "student", uid)

async def list_students(
    repo: DocumentRepository,
    branch_id: Optional[str] = None,
    year: Optional[int] = None,
    semester: Optional[int] = None,
    section: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 25
) -> dict:
    where = {}
    if branch_id:
        where["branch_id"] = branch_id
    if year is not None:
        where["year"] = int(year)
    if semester is not None:
        where["semester"] = int(semester)
    if section:
        where["section"] = section.strip().upper()

    students = await repo.query("users", where=where, order_by="roll_number")
    students = [
        s for s in students
        if _matches_search(s, search, ("roll_number", "first_name", "last_name", "email"))
    ]

    return {
        "total": len(students),
        "page": page,
        "page_size": page_size,
        "students": _paginate(students, page, page_size),
    }

# ==================== FACULTY ====================

async def create_faculty(
    repo: DocumentRepository,
    identity: IdentityProvider,
    roles: RoleService,
    admin: AdminContext,
    data: dict
) -> dict:
    """Provision a faculty account with at least one class"""
    classes = await _resolve_classes(repo, data["classes"])

    profile = FacultyProfile(
        faculty_id=data["faculty_id"],
        first_name=data["first_name"],
        last_name=data["last_name"],
        email=data["email"],
        phone=data.get("phone"),
        department=data.get("department"),
        classes=merge_classes([], classes),
    )

    uid = await _create_account_with_profile(
        repo, identity, "faculties", data["email"], data["password"],
        f"{data['first_name']} {data['last_name']}", profile.dict()
    )
    roles.invalidate(uid)
    await log_audit(repo, admin, "create_faculty", "faculty", uid, {"faculty_id": profile.faculty_id})

    logger.info(f"Faculty provisioned: {profile.faculty_id} ({uid})")
    return await repo.get("faculties", uid)

async def get_faculty(repo: DocumentRepository, uid: str) -> dict:
    faculty = await repo.get("faculties", uid)
    if not faculty:
        raise NotFoundError("Faculty", uid)
    return faculty

async def update_faculty(repo: DocumentRepository, admin: AdminContext, uid: str, data: dict) -> dict:
    await get_faculty(repo, uid)

    update_data = {k: v for k, v in data.items() if v is not None}
    update_data["updated_at"] = datetime.utcnow()
    await repo.update("faculties", uid, update_data)
    await log_audit(repo, admin, "update_faculty", "faculty", uid, update_data)

    return await repo.get("faculties", uid)

async def assign_classes(repo: DocumentRepository, admin: AdminContext, uid: str, classes: List[dict]) -> dict:
    """Add classes to a faculty member; duplicates of an existing class are ignored"""
    faculty = await get_faculty(repo, uid)
    resolved = await _resolve_classes(repo, classes)

    merged = merge_classes(faculty.get("classes", []), resolved)
    await repo.update("faculties", uid, {"classes": merged, "updated_at": datetime.utcnow()})
    await log_audit(
        repo, admin, "assign_classes", "faculty", uid,
        {"added": len(merged) - len(faculty.get("classes", []))}
    )

    return await repo.get("faculties", uid)

async def delete_faculty(
    repo: DocumentRepository,
    identity: IdentityProvider,
    roles: RoleService,
    admin: AdminContext,
    uid: str
):
    await get_faculty(repo, uid)
    await repo.delete("faculties", uid)
    await identity.delete_user(uid)
    roles.invalidate(uid)
    await log_audit(repo, admin, "delete_faculty", "faculty", uid)

async def list_faculty(
    repo: DocumentRepository,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 25
) -> dict:
    faculty = await repo.query("faculties", order_by="faculty_id")
    faculty = [
        f for f in faculty
        if _matches_search(f, search, ("faculty_id", "first_name", "last_name", "email", "department"))
    ]

    return {
        "total": len(faculty),
        "page": page,
        "page_size": page_size,
        "faculty": _paginate(faculty, page, page_size),
    }

# ==================== ADMIN ROLES ====================

async def grant_admin(repo: DocumentRepository, roles: RoleService, admin: AdminContext, uid: str):
    await repo.set("roles_admin", uid, {"granted_by": admin.uid, "granted_at": datetime.utcnow()})
    roles.invalidate(uid)
    await log_audit(repo, admin, "grant_admin", "admin_role", uid)

async def revoke_admin(repo: DocumentRepository, roles: RoleService, admin: AdminContext, uid: str):
    if not await repo.delete("roles_admin", uid):
        raise NotFoundError("Admin role", uid)
    roles.invalidate(uid)
    await log_audit(repo, admin, "revoke_admin", "admin_role", uid)

# ==================== DASHBOARD ====================

async def admin_overview(repo: DocumentRepository) -> dict:
    """Counts shown on the admin dashboard"""
    submissions = await repo.query("submissions")
    by_status = {}
    for submission in submissions:
        status = submission.get("status")
        by_status[status] = by_status.get(status, 0) + 1

    return {
        "branches": len(await repo.query("branches")),
        "subjects": len(await repo.query("subjects")),
        "students": len(await repo.query("users")),
        "faculty": len(await repo.query("faculties")),
        "assignments": len(await repo.query("assignments")),
        "submissions": len(submissions),
        "submissions_by_status": by_status,
    }
