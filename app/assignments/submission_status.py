"""
Submission status lifecycle

    (none)   --submit--> pending
    pending  --submit--> pending    replace a file that has not been reviewed
    rejected --submit--> pending    re-submission after rejection
    pending  --verify--> verified
    pending  --reject--> rejected

verified is terminal. Every other pair raises InvalidTransitionError.
"""

from enum import Enum
from typing import Dict, Optional, Tuple

from app.core.exceptions import InvalidTransitionError


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class SubmissionAction(str, Enum):
    SUBMIT = "submit"
    VERIFY = "verify"
    REJECT = "reject"


NOT_SUBMITTED = "not_submitted"

STATUS_TEXT = {
    SubmissionStatus.PENDING.value: "Pending for Verification",
    SubmissionStatus.VERIFIED.value: "Verified",
    SubmissionStatus.REJECTED.value: "Rejected",
    NOT_SUBMITTED: "Not Submitted",
}

TRANSITIONS: Dict[Tuple[Optional[SubmissionStatus], SubmissionAction], SubmissionStatus] = {
    (None, SubmissionAction.SUBMIT): SubmissionStatus.PENDING,
    (SubmissionStatus.PENDING, SubmissionAction.SUBMIT): SubmissionStatus.PENDING,
    (SubmissionStatus.REJECTED, SubmissionAction.SUBMIT): SubmissionStatus.PENDING,
    (SubmissionStatus.PENDING, SubmissionAction.VERIFY): SubmissionStatus.VERIFIED,
    (SubmissionStatus.PENDING, SubmissionAction.REJECT): SubmissionStatus.REJECTED,
}


def next_status(current: Optional[str], action: SubmissionAction) -> SubmissionStatus:
    """
    Apply action to the current status

    Raises:
        InvalidTransitionError: action not allowed from current
    """
    try:
        current_status = SubmissionStatus(current) if current is not None else None
    except ValueError:
        raise InvalidTransitionError(current, SubmissionAction(action).value)

    target = TRANSITIONS.get((current_status, SubmissionAction(action)))
    if target is None:
        raise InvalidTransitionError(current, SubmissionAction(action).value)
    return target


def status_text(status: Optional[str]) -> str:
    return STATUS_TEXT.get(status or NOT_SUBMITTED, STATUS_TEXT[NOT_SUBMITTED])
