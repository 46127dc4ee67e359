import logging
import time
from datetime import datetime
from typing import Dict, List, Optional

from app.assignments.assignment_models import Submission
from app.assignments.submission_status import (
    NOT_SUBMITTED, SubmissionAction, SubmissionStatus, next_status, status_text
)
from app.assignments.targeting import is_actionable, is_visible, utc_now
from app.auth.permissions import StudentContext
from app.core.blob_store import BlobStore, submission_blob_path, validate_upload
from app.core.config import Settings
from app.core.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from app.core.repository import DocumentRepository, generate_id

logger = logging.getLogger(__name__)

# ==================== ASSIGNMENT DISCOVERY ====================

async def _audience_assignments(repo: DocumentRepository, student: StudentContext) -> List[dict]:
    """Assignments whose audience includes the student, soonest deadline first"""
    candidates = await repo.query(
        "assignments",
        array_contains={"target_branches": student.branch_id},
        order_by="deadline"
    )
    return [a for a in candidates if is_visible(a, student.profile)]

async def get_active_assignments(repo: DocumentRepository, student: StudentContext) -> List[dict]:
    """Visible assignments still open for submission"""
    now = utc_now()
    return [a for a in await _audience_assignments(repo, student) if is_actionable(a, now)]

async def get_student_submissions(repo: DocumentRepository, student: StudentContext) -> List[dict]:
    return await repo.query(
        "submissions", where={"student_id": student.uid}, order_by="submitted_at", descending=True
    )

def _entry(assignment: Optional[dict], submission: Optional[dict], archived: bool) -> dict:
    status = submission.get("status") if submission else NOT_SUBMITTED
    return {
        "assignment": assignment,
        "submission": submission,
        "status": status,
        "status_text": status_text(status),
        "archived": archived,
    }

async def list_student_assignments(repo: DocumentRepository, student: StudentContext) -> List[dict]:
    """Active assignments, each with the student's submission (if any)"""
    submissions = {s["assignment_id"]: s for s in await get_student_submissions(repo, student)}
    return [
        _entry(a, submissions.get(a["id"]), archived=False)
        for a in await get_active_assignments(repo, student)
    ]

async def student_dashboard(repo: DocumentRepository, student: StudentContext) -> dict:
    """
    Active assignments joined with submissions, plus archived entries for
    submissions whose assignment is closed or gone
    """
    active = await get_active_assignments(repo, student)
    active_ids = {a["id"] for a in active}
    submissions = await get_student_submissions(repo, student)
    by_assignment = {s["assignment_id"]: s for s in submissions}

    entries = [_entry(a, by_assignment.get(a["id"]), archived=False) for a in active]

    for submission in submissions:
        if submission["assignment_id"] in active_ids:
            continue
        assignment = await repo.get("assignments", submission["assignment_id"])
        if assignment is None:
            assignment = {
                "id": submission["assignment_id"],
                "title": submission.get("assignment_title"),
                "subject_id": submission.get("subject_id"),
            }
        entries.append(_entry(assignment, submission, archived=True))

    grouped: Dict[str, List[dict]] = {s.value: [] for s in SubmissionStatus}
    for entry in entries:
        if entry["status"] in grouped:
            grouped[entry["status"]].append(entry)

    to_do = [
        e for e in entries
        if not e["archived"] and e["status"] != SubmissionStatus.VERIFIED.value
    ]

    return {
        "student": {
            "uid": student.uid,
            "name": student.name,
            "roll_number": student.roll_number,
            "branch_id": student.branch_id,
            "year": student.year,
            "semester": student.semester,
            "section": student.section,
        },
        "assignments": entries,
        "pending_assignments": to_do,
        "submissions": grouped,
        "counts": {
            "active": len(active),
            "to_do": len(to_do),
            **{status: len(items) for status, items in grouped.items()},
        },
    }

# ==================== SUBMISSION ====================

async def submit_assignment(
    repo: DocumentRepository,
    blobs: BlobStore,
    settings: Settings,
    student: StudentContext,
    assignment_id: str,
    file_name: str,
    data: bytes,
    content_type: Optional[str] = None
) -> dict:
    """
    Upload a file for an assignment and record it as pending

    First submission creates the record; later ones replace the file of a
    pending or rejected submission in place. A verified submission is final.
    """
    assignment = await repo.get("assignments", assignment_id)
    if not assignment or not is_visible(assignment, student.profile):
        raise NotFoundError("Assignment", assignment_id)

    if not is_actionable(assignment):
        raise ValidationError("The deadline for this assignment has passed", field="deadline")

    validate_upload(file_name, len(data), settings.ALLOWED_EXTENSIONS, settings.MAX_UPLOAD_BYTES)

    existing = await repo.find_one(
        "submissions", {"assignment_id": assignment_id, "student_id": student.uid}
    )
    current = existing.get("status") if existing else None
    next_status(current, SubmissionAction.SUBMIT)

    path = submission_blob_path(student.uid, assignment_id, file_name, int(time.time() * 1000))
    file_url = await blobs.upload(path, data, content_type or "application/octet-stream")

    try:
        if existing is None:
            submission_id = await _create_submission(
                repo, student, assignment, file_name, file_url, path, content_type
            )
        else:
            submission_id = await _replace_submission(
                repo, existing, file_name, file_url, path, content_type
            )
    except Exception:
        logger.error(f"Submission write failed for {assignment_id}/{student.uid}; removing upload", exc_info=True)
        await blobs.delete(path)
        raise

    if existing and existing.get("file_path") and existing["file_path"] != path:
        try:
            await blobs.delete(existing["file_path"])
        except StorageError:
            logger.warning(f"Orphaned file left at {existing['file_path']}")

    logger.info(f"Submission recorded: {assignment_id} by {student.uid}")
    return await repo.get("submissions", submission_id)

async def _create_submission(
    repo: DocumentRepository,
    student: StudentContext,
    assignment: dict,
    file_name: str,
    file_url: str,
    path: str,
    content_type: Optional[str]
) -> str:
    submission = Submission(
        assignment_id=assignment["id"],
        assignment_title=assignment.get("title"),
        subject_id=assignment.get("subject_id"),
        faculty_id=assignment["faculty_id"],
        student_id=student.uid,
        student_name=student.name,
        student_email=student.email,
        roll_number=student.roll_number,
        file_url=file_url,
        file_name=file_name,
        file_path=path,
        content_type=content_type,
        status=SubmissionStatus.PENDING.value,
    )
    # Unique (assignment_id, student_id): a concurrent first submission loses here
    return await repo.add("submissions", submission.dict(), doc_id=generate_id("SUBM"))

async def _replace_submission(
    repo: DocumentRepository,
    existing: dict,
    file_name: str,
    file_url: str,
    path: str,
    content_type: Optional[str]
) -> str:
    now = datetime.utcnow()
    changes = {
        "file_url": file_url,
        "file_name": file_name,
        "file_path": path,
        "content_type": content_type,
        "status": SubmissionStatus.PENDING.value,
        "feedback": None,
        "submitted_at": now,
        "resubmitted_at": now,
        "reviewed_at": None,
        "reviewed_by": None,
    }
    updated = await repo.update(
        "submissions", existing["id"], changes,
        expected={"status": existing.get("status"), "file_path": existing.get("file_path")}
    )
    if not updated:
        raise ConflictError("Your submission was reviewed while uploading, please reload and try again")
    return existing["id"]
