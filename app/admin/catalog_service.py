import logging
from datetime import datetime
from typing import List, Optional

from app.admin.admin_models import Branch, Subject
from app.auth.permissions import AdminContext
from app.core.audit import log_audit
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.repository import DocumentRepository, generate_id

logger = logging.getLogger(__name__)

DEFAULT_BATCH_CREDITS = 3

# ==================== BRANCHES ====================

async def create_branch(repo: DocumentRepository, admin: AdminContext, name: str) -> dict:
    """Create a branch; names are unique case-insensitively"""
    for existing in await repo.query("branches"):
        if existing.get("name", "").strip().lower() == name.strip().lower():
            raise ConflictError(f"Branch '{name}' already exists")

    branch = Branch(name=name.strip())
    branch_id = await repo.add("branches", branch.dict(), doc_id=generate_id("BR"))
    await log_audit(repo, admin, "create_branch", "branch", branch_id, {"name": branch.name})

    logger.info(f"Branch created: {branch.name} ({branch_id})")
    return await repo.get("branches", branch_id)

async def list_branches(repo: DocumentRepository) -> List[dict]:
    return await repo.query("branches", order_by="name")

async def get_branch(repo: DocumentRepository, branch_id: str) -> dict:
    branch = await repo.get("branches", branch_id)
    if not branch:
        raise NotFoundError("Branch", branch_id)
    return branch

# ==================== SUBJECTS ====================

async def list_subjects(
    repo: DocumentRepository,
    branch_id: Optional[str] = None,
    year: Optional[int] = None,
    semester: Optional[int] = None
) -> List[dict]:
    where = {}
    if branch_id:
        where["branch_id"] = branch_id
    if year is not None:
        where["year"] = int(year)
    if semester is not None:
        where["semester"] = int(semester)
    return await repo.query("subjects", where=where, order_by="name")

async def list_subjects_for_class(repo: DocumentRepository, branch_id: str, year, semester) -> List[dict]:
    """
    Subjects of one class; falls back to every subject of the branch when the
    catalog has none tagged with that year and semester
    """
    subjects = await list_subjects(repo, branch_id, int(year), int(semester))
    if subjects:
        return subjects
    return await list_subjects(repo, branch_id)

async def create_subject(repo: DocumentRepository, admin: AdminContext, data: dict) -> dict:
    """Create a subject under an existing branch"""
    await get_branch(repo, data["branch_id"])

    subject = Subject(**data)
    subject_id = await repo.add("subjects", subject.dict(), doc_id=generate_id("SUB"))
    await log_audit(repo, admin, "create_subject", "subject", subject_id, {"name": subject.name})

    return await repo.get("subjects", subject_id)

async def update_subject(repo: DocumentRepository, admin: AdminContext, subject_id: str, data: dict) -> dict:
    """Update subject details"""
    subject = await repo.get("subjects", subject_id)
    if not subject:
        raise NotFoundError("Subject", subject_id)

    update_data = {k: v for k, v in data.items() if v is not None}
    if "branch_id" in update_data and update_data["branch_id"] != subject.get("branch_id"):
        await get_branch(repo, update_data["branch_id"])

    update_data["updated_at"] = datetime.utcnow()
    await repo.update("subjects", subject_id, update_data)
    await log_audit(repo, admin, "update_subject", "subject", subject_id, update_data)

    return await repo.get("subjects", subject_id)

async def delete_subject(repo: DocumentRepository, admin: AdminContext, subject_id: str):
    """Delete a subject (faculty class lists keep any stale id untouched)"""
    if not await repo.delete("subjects", subject_id):
        raise NotFoundError("Subject", subject_id)

    await log_audit(repo, admin, "delete_subject", "subject", subject_id)

def batch_subject_code(branch_name: str, year: int, semester: int, index: int) -> str:
    """First two letters of the branch, then year, semester and 1-based index"""
    return f"{branch_name[:2].upper()}{year}{semester}{index}"

async def batch_create_subjects(
    repo: DocumentRepository,
    admin: AdminContext,
    branch_id: str,
    year: int,
    semester: int,
    names: List[str]
) -> List[dict]:
    """
    Create one subject per non-blank name, all or nothing

    If any write fails, the subjects already written by this call are deleted
    and the original error is re-raised.
    """
    names = [n.strip() for n in names if n and n.strip()]
    if not names:
        raise ValidationError("At least one subject name is required", field="names")

    branch = await get_branch(repo, branch_id)
    branch_name = branch.get("name", "")

    created_ids: List[str] = []
    try:
        for index, name in enumerate(names, start=1):
            subject = Subject(
                name=name,
                branch_id=branch_id,
                code=batch_subject_code(branch_name, year, semester, index),
                credits=DEFAULT_BATCH_CREDITS,
                description=f"{name} for {branch_name} Year {year} Semester {semester}",
                year=int(year),
                semester=int(semester),
                is_active=True,
            )
            created_ids.append(await repo.add("subjects", subject.dict(), doc_id=generate_id("SUB")))
    except Exception:
        logger.error(
            f"Batch subject creation failed after {len(created_ids)} of {len(names)}; rolling back",
            exc_info=True
        )
        for subject_id in created_ids:
            await repo.delete("subjects", subject_id)
        raise

    await log_audit(
        repo, admin, "batch_create_subjects", "branch", branch_id,
        {"year": year, "semester": semester, "count": len(created_ids)}
    )

    return [await repo.get("subjects", subject_id) for subject_id in created_ids]
