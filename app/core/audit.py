from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.repository import DocumentRepository


class AuditLog(BaseModel):
    actor_id: str  # identity uid
    actor_email: Optional[str] = None
    role: str  # admin, faculty, student
    action: str  # create_subject, verify_submission, etc.
    target_type: str  # branch, subject, student, faculty, assignment, submission
    target_id: str
    metadata: dict = {}
    timestamp: datetime = Field(default_factory=datetime.utcnow)


async def log_audit(
    repo: DocumentRepository,
    actor,
    action: str,
    target_type: str,
    target_id: str,
    metadata: dict = None
):
    """
    Log destructive or important admin/faculty actions for auditability

    Args:
        repo: document repository
        actor: context object exposing uid, email and role
        action: Action performed (e.g., 'create_assignment', 'delete_student')
        target_type: Resource type (e.g., 'subject', 'assignment', 'submission')
        target_id: ID of the resource
        metadata: Additional context (optional)
    """
    audit_log = AuditLog(
        actor_id=actor.uid,
        actor_email=actor.email,
        role=actor.role,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata or {},
    )

    await repo.add("audit_logs", audit_log.dict())


async def get_audit_trail(
    repo: DocumentRepository,
    target_type: str = None,
    target_id: str = None,
    limit: int = 100
) -> List[dict]:
    """
    Retrieve audit logs newest first, with optional filters
    """
    where = {}

    if target_type:
        where["target_type"] = target_type

    if target_id:
        where["target_id"] = target_id

    return await repo.query("audit_logs", where=where, order_by="timestamp", descending=True, limit=limit)
