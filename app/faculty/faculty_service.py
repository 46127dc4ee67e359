import logging
from datetime import datetime, date, time
from typing import List, Optional

from app.admin.catalog_service import list_subjects_for_class
from app.assignments.assignment_models import Assignment
from app.assignments.submission_status import SubmissionAction, SubmissionStatus, next_status
from app.assignments.targeting import parse_deadline, utc_now
from app.auth.permissions import FacultyContext
from app.core.audit import log_audit
from app.core.blob_store import BlobStore
from app.core.exceptions import (
    AuthorizationError, ConflictError, NotFoundError, StorageError, ValidationError
)
from app.core.repository import DocumentRepository, generate_id

logger = logging.getLogger(__name__)

# ==================== DASHBOARD ====================

async def faculty_dashboard(repo: DocumentRepository, faculty: FacultyContext) -> dict:
    """Assigned classes with subject names, plus assignment and review counts"""
    classes = []
    for cls in faculty.classes:
        subjects = []
        for subject_id in cls.get("subjects", []):
            subject = await repo.get("subjects", subject_id)
            if subject:
                subjects.append({"id": subject_id, "name": subject.get("name"), "code": subject.get("code")})
        classes.append({**cls, "subjects": subjects})

    assignments = await list_faculty_assignments(repo, faculty)
    pending = await repo.query(
        "submissions",
        where={"faculty_id": faculty.uid, "status": SubmissionStatus.PENDING.value}
    )

    return {
        "faculty": {
            "uid": faculty.uid,
            "faculty_id": faculty.faculty_id,
            "name": faculty.name,
            "email": faculty.email,
        },
        "classes": classes,
        "assignments": assignments,
        "pending_reviews": len(pending),
    }

async def list_class_students(
    repo: DocumentRepository,
    faculty: FacultyContext,
    branch_id: str,
    year: int,
    semester: int,
    section: Optional[str] = None
) -> List[dict]:
    """Students of one of the faculty member's classes"""
    if not faculty.teaches(branch_id, year, semester):
        raise AuthorizationError("You are not assigned to this class")

    where = {"branch_id": branch_id, "year": int(year), "semester": int(semester)}
    if section:
        where["section"] = section.strip().upper()

    return await repo.query("users", where=where, order_by="roll_number")

async def subjects_for_class(
    repo: DocumentRepository,
    faculty: FacultyContext,
    branch_id: str,
    year: int,
    semester: int
) -> List[dict]:
    """Subject picker for assignment creation, limited to subjects the faculty teaches"""
    subjects = await list_subjects_for_class(repo, branch_id, year, semester)
    return [s for s in subjects if faculty.teaches(branch_id, year, semester, s["id"])]

# ==================== ASSIGNMENTS ====================

def normalize_targeting(data: dict) -> dict:
    """
    Fill targeting from the assignment's own class

    Empty branch/year/semester sets default to the assignment's own value;
    branches named in target_classes are added to target_branches so
    branch lookups find them.
    """
    targeting = {
        "target_branches": list(data.get("target_branches") or []),
        "target_years": list(data.get("target_years") or []),
        "target_semesters": list(data.get("target_semesters") or []),
        "target_sections": list(data.get("target_sections") or []),
        "target_classes": list(data.get("target_classes") or []),
    }

    if not targeting["target_branches"]:
        targeting["target_branches"] = [data["branch_id"]]
    if not targeting["target_years"]:
        targeting["target_years"] = [str(data["year"])]
    if not targeting["target_semesters"]:
        targeting["target_semesters"] = [str(data["semester"])]

    for target in targeting["target_classes"]:
        if target["branch_id"] not in targeting["target_branches"]:
            targeting["target_branches"].append(target["branch_id"])

    return targeting

async def _check_class_and_subject(
    repo: DocumentRepository,
    faculty: FacultyContext,
    branch_id: str,
    year: int,
    semester: int,
    subject_id: str
) -> dict:
    subject = await repo.get("subjects", subject_id)
    if not subject:
        raise NotFoundError("Subject", subject_id)

    if subject.get("branch_id") != branch_id:
        raise ValidationError("Subject does not belong to the selected branch", field="subject_id")

    if not faculty.teaches(branch_id, year, semester, subject_id):
        raise AuthorizationError("You are not assigned to teach this subject for the selected class")

    return subject

async def create_assignment(repo: DocumentRepository, faculty: FacultyContext, data: dict) -> dict:
    """Create an assignment for one of the faculty member's classes"""
    subject = await _check_class_and_subject(
        repo, faculty, data["branch_id"], data["year"], data["semester"], data["subject_id"]
    )

    deadline = parse_deadline(data["deadline"])
    if deadline <= utc_now():
        raise ValidationError("Deadline must be in the future", field="deadline")

    assignment = Assignment(
        title=data["title"],
        description=data["description"],
        year=int(data["year"]),
        semester=int(data["semester"]),
        branch_id=data["branch_id"],
        subject_id=data["subject_id"],
        subject_name=subject.get("name"),
        faculty_id=faculty.uid,
        faculty_name=faculty.name,
        deadline=deadline,
        **normalize_targeting(data)
    )

    assignment_id = await repo.add("assignments", assignment.dict(), doc_id=generate_id("ASG"))
    await log_audit(repo, faculty, "create_assignment", "assignment", assignment_id, {"title": assignment.title})

    logger.info(f"Assignment created: {assignment.title} ({assignment_id}) by {faculty.uid}")
    return await repo.get("assignments", assignment_id)

async def _with_counts(repo: DocumentRepository, assignment: dict) -> dict:
    submissions = await repo.query("submissions", where={"assignment_id": assignment["id"]})
    assignment["submission_count"] = len(submissions)
    assignment["pending_count"] = sum(1 for s in submissions if s.get("status") == SubmissionStatus.PENDING.value)
    return assignment

async def list_faculty_assignments(repo: DocumentRepository, faculty: FacultyContext) -> List[dict]:
    """Assignments owned by the faculty member, newest first"""
    assignments = await repo.query(
        "assignments", where={"faculty_id": faculty.uid}, order_by="created_at", descending=True
    )
    return [await _with_counts(repo, a) for a in assignments]

async def get_assignment_detail(repo: DocumentRepository, assignment: dict) -> dict:
    return await _with_counts(repo, assignment)

async def update_assignment(
    repo: DocumentRepository,
    faculty: FacultyContext,
    assignment: dict,
    data: dict
) -> dict:
    """Update text, deadline or targeting; class and subject stay fixed"""
    update_data = {k: v for k, v in data.items() if v is not None}

    if "deadline" in update_data:
        update_data["deadline"] = parse_deadline(update_data["deadline"])

    targeting_keys = {"target_branches", "target_years", "target_semesters", "target_sections", "target_classes"}
    if targeting_keys & update_data.keys():
        merged = {**assignment, **update_data}
        update_data.update(normalize_targeting(merged))

    update_data["updated_at"] = datetime.utcnow()
    await repo.update("assignments", assignment["id"], update_data)
    await log_audit(
        repo, faculty, "update_assignment", "assignment", assignment["id"],
        {"fields": sorted(k for k in update_data if k != "updated_at")}
    )

    return await repo.get("assignments", assignment["id"])

async def delete_assignment(
    repo: DocumentRepository,
    blobs: BlobStore,
    faculty: FacultyContext,
    assignment: dict
):
    """Delete an assignment together with its submissions and their files"""
    submissions = await repo.query("submissions", where={"assignment_id": assignment["id"]})

    for submission in submissions:
        await repo.delete("submissions", submission["id"])
        if submission.get("file_path"):
            try:
                await blobs.delete(submission["file_path"])
            except StorageError:
                logger.warning(f"Orphaned file left at {submission['file_path']}")

    await repo.delete("assignments", assignment["id"])
    await log_audit(
        repo, faculty, "delete_assignment", "assignment", assignment["id"],
        {"submissions_removed": len(submissions)}
    )

# ==================== SUBMISSIONS ====================

async def list_faculty_submissions(
    repo: DocumentRepository,
    faculty: FacultyContext,
    assignment_id: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> List[dict]:
    """Submissions to the faculty member's assignments, newest first"""
    where = {"faculty_id": faculty.uid}
    if assignment_id:
        where["assignment_id"] = assignment_id
    if status:
        where["status"] = status

    submissions = await repo.query("submissions", where=where, order_by="submitted_at", descending=True)

    # Whole days, inclusive on both ends
    start = parse_deadline(datetime.combine(start_date, time.min)) if start_date else None
    end = parse_deadline(datetime.combine(end_date, time.max)) if end_date else None
    if start or end:
        filtered = []
        for submission in submissions:
            submitted_at = parse_deadline(submission.get("submitted_at"))
            if submitted_at is None:
                continue
            if start and submitted_at < start:
                continue
            if end and submitted_at > end:
                continue
            filtered.append(submission)
        submissions = filtered

    return submissions

async def review_submission(
    repo: DocumentRepository,
    faculty: FacultyContext,
    submission: dict,
    action: SubmissionAction,
    feedback: Optional[str] = None
) -> dict:
    """
    Verify or reject a pending submission

    The write is conditional on the status and file read here, so a
    concurrent re-submission or review makes this call fail instead of
    overwriting it.
    """
    current = submission.get("status")
    target = next_status(current, action)

    changes = {
        "status": target.value,
        "reviewed_at": datetime.utcnow(),
        "reviewed_by": faculty.uid,
    }
    if feedback is not None:
        changes["feedback"] = feedback

    # Pinned to the file that was reviewed, not just the status
    expected = {"status": current, "file_path": submission.get("file_path")}
    updated = await repo.update("submissions", submission["id"], changes, expected=expected)
    if not updated:
        raise ConflictError("Submission changed while you were reviewing it, please reload")

    await log_audit(
        repo, faculty, f"{action.value}_submission", "submission", submission["id"],
        {"assignment_id": submission.get("assignment_id"), "student_id": submission.get("student_id")}
    )

    return await repo.get("submissions", submission["id"])
