from typing import Optional

from fastapi import Depends, Header, HTTPException

from app.auth.firebase_auth import Identity, SessionManager
from app.auth.role_resolver import Role, RoleService
from app.core.dependencies import get_repository, get_role_service, get_session_manager
from app.core.exceptions import AuthenticationError
from app.core.repository import DocumentRepository


class PortalUser:
    """Signed-in identity with its resolved role"""
    def __init__(self, identity: Identity, role: Role, dashboard_path: str):
        self.uid = identity.uid
        self.email = identity.email
        self.role = role.value
        self.dashboard_path = dashboard_path
        self.identity = identity


class AdminContext(PortalUser):
    pass


class FacultyContext:
    """
    Contains validated faculty profile and assigned classes
    """
    role = Role.FACULTY.value

    def __init__(self, user: PortalUser, profile: dict):
        self.uid = user.uid
        self.email = user.email or profile.get("email")
        self.faculty_id = profile.get("faculty_id")
        self.first_name = profile.get("first_name", "")
        self.last_name = profile.get("last_name", "")
        self.classes = profile.get("classes", [])
        self.profile = profile

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def teaches(self, branch_id: str, year, semester, subject_id: Optional[str] = None) -> bool:
        """Whether one of the assigned classes matches (and lists subject_id, if given)"""
        for cls in self.classes:
            if (
                cls.get("branch_id") == branch_id
                and str(cls.get("year")) == str(year)
                and str(cls.get("semester")) == str(semester)
            ):
                if subject_id is None or subject_id in cls.get("subjects", []):
                    return True
        return False


class StudentContext:
    """
    Contains validated student profile (branch/year/semester/section scope)
    """
    role = Role.STUDENT.value

    def __init__(self, user: PortalUser, profile: dict):
        self.uid = user.uid
        self.email = user.email or profile.get("email")
        self.roll_number = profile.get("roll_number")
        self.first_name = profile.get("first_name", "")
        self.last_name = profile.get("last_name", "")
        self.branch_id = profile.get("branch_id")
        self.year = profile.get("year")
        self.semester = profile.get("semester")
        self.section = profile.get("section")
        self.profile = profile

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


async def get_optional_identity(
    authorization: Optional[str] = Header(None),
    sessions: SessionManager = Depends(get_session_manager)
) -> Optional[Identity]:
    """Identity from a 'Bearer <session token>' header, or None for guests"""
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    try:
        return sessions.verify(parts[1])
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=e.message)


async def get_current_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return identity


async def get_current_user(
    identity: Identity = Depends(get_current_identity),
    roles: RoleService = Depends(get_role_service)
) -> PortalUser:
    resolution = await roles.resolve(identity)
    return PortalUser(identity, resolution.role, resolution.dashboard_path)


def require_roles(*allowed: Role):
    """
    Dependency factory: 401 without a session, 403 when the resolved role is
    not one of `allowed`
    """
    async def dependency(user: PortalUser = Depends(get_current_user)) -> PortalUser:
        if user.role not in {r.value for r in allowed}:
            raise HTTPException(
                status_code=403,
                detail=f"Access denied. {' or '.join(r.value.title() for r in allowed)} privileges required."
            )
        return user

    return dependency


async def get_current_admin(user: PortalUser = Depends(require_roles(Role.ADMIN))) -> AdminContext:
    return AdminContext(user.identity, Role.ADMIN, user.dashboard_path)


async def get_current_faculty(
    user: PortalUser = Depends(require_roles(Role.FACULTY)),
    repo: DocumentRepository = Depends(get_repository)
) -> FacultyContext:
    """
    Dependency: Validates user is faculty and returns their context

    Raises:
        401: No session
        403: Not faculty
        404: Faculty profile not found
    """
    profile = await repo.get("faculties", user.uid)

    if not profile:
        raise HTTPException(
            status_code=404,
            detail="Faculty profile not found. Ask an administrator to complete your registration."
        )

    return FacultyContext(user, profile)


async def get_current_student(
    user: PortalUser = Depends(require_roles(Role.STUDENT)),
    repo: DocumentRepository = Depends(get_repository)
) -> StudentContext:
    """
    Dependency: Validates user is a student and returns their context

    Raises:
        401: No session
        403: Not a student
        404: Student profile not found
    """
    profile = await repo.get("users", user.uid)

    if not profile:
        raise HTTPException(
            status_code=404,
            detail="Student profile not found. Ask an administrator to complete your registration."
        )

    return StudentContext(user, profile)


async def verify_assignment_ownership(
    repo: DocumentRepository,
    assignment_id: str,
    faculty: FacultyContext
) -> dict:
    """
    Validates faculty owns this assignment

    Raises:
        404: Assignment not found
        403: Not the owner
    """
    assignment = await repo.get("assignments", assignment_id)

    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")

    if assignment.get("faculty_id") != faculty.uid:
        raise HTTPException(status_code=403, detail="Not authorized to access this assignment")

    return assignment


async def verify_submission_access(
    repo: DocumentRepository,
    submission_id: str,
    faculty: FacultyContext
) -> dict:
    """
    Validates faculty can review this submission (owns its assignment)

    Raises:
        404: Submission not found
        403: Not authorized
    """
    submission = await repo.get("submissions", submission_id)

    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")

    assignment = await repo.get("assignments", submission.get("assignment_id"))
    owner = assignment.get("faculty_id") if assignment else submission.get("faculty_id")

    if owner != faculty.uid:
        raise HTTPException(status_code=403, detail="Not authorized to review this submission")

    return submission
