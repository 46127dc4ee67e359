from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from app.auth.firebase_auth import Identity, InMemoryIdentityProvider
from app.auth.permissions import AdminContext, FacultyContext, PortalUser, StudentContext
from app.auth.role_resolver import Role
from app.core.blob_store import InMemoryBlobStore
from app.core.config import Settings
from app.core.repository import InMemoryRepository
from app.faculty.feedback_ai import FeedbackGenerator
from app.main import create_app

ADMIN_EMAIL = "admin@jbiet.edu.in"


class StubFeedbackGenerator(FeedbackGenerator):

    def __init__(self):
        self.calls = []

    async def suggest(self, grading_approach: str, remarks: str) -> str:
        self.calls.append((grading_approach, remarks))
        return "Use a rubric and explain each deduction."


@pytest.fixture
def settings():
    return Settings(session_jwt_secret="test-secret", role_cache_ttl_seconds=0, log_level="WARNING")


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def blobs():
    return InMemoryBlobStore()


@pytest.fixture
def identity():
    return InMemoryIdentityProvider()


@pytest.fixture
def feedback():
    return StubFeedbackGenerator()


@pytest.fixture
def app(settings, repo, blobs, identity, feedback):
    return create_app(
        settings=settings,
        repository=repo,
        blob_store=blobs,
        identity_provider=identity,
        feedback_generator=feedback,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(app):
    def _headers(uid: str, email: str) -> dict:
        token = app.state.sessions.create(Identity(uid=uid, email=email))
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def admin_ctx():
    return AdminContext(Identity(uid="admin-uid", email=ADMIN_EMAIL), Role.ADMIN, "/admin/dashboard")


@pytest.fixture
async def catalog(repo):
    """Two branches and the subjects of CSE year 2 semester 1"""
    now = datetime.utcnow()
    await repo.set("branches", "CSE", {"name": "Computer Science", "created_at": now})
    await repo.set("branches", "ECE", {"name": "Electronics", "created_at": now})
    for subject_id, name in (("DS", "Data Structures"), ("DBMS", "Databases")):
        await repo.set("subjects", subject_id, {
            "name": name, "branch_id": "CSE", "year": 2, "semester": 1,
            "is_active": True, "created_at": now,
        })
    return repo


@pytest.fixture
async def faculty_ctx(catalog):
    profile = {
        "faculty_id": "F001",
        "first_name": "Asha",
        "last_name": "Rao",
        "email": "asha@jbiet.edu.in",
        "classes": [{"branch_id": "CSE", "year": 2, "semester": 1, "subjects": ["DS"]}],
        "is_active": True,
        "created_at": datetime.utcnow(),
    }
    await catalog.set("faculties", "fac-uid", profile)
    user = PortalUser(Identity(uid="fac-uid", email="asha@jbiet.edu.in"), Role.FACULTY, "/faculty/dashboard")
    return FacultyContext(user, {**profile, "id": "fac-uid"})


def make_student(uid: str = "stu-uid", branch_id: str = "CSE", year: int = 2, semester: int = 1, section: str = "B"):
    profile = {
        "id": uid,
        "roll_number": f"21{uid.upper().replace('-', '')}",
        "first_name": "Ravi",
        "last_name": "Kumar",
        "email": f"{uid}@jbiet.edu.in",
        "branch_id": branch_id,
        "year": year,
        "semester": semester,
        "section": section,
        "created_at": datetime.utcnow(),
    }
    user = PortalUser(Identity(uid=uid, email=profile["email"]), Role.STUDENT, "/student/dashboard")
    return StudentContext(user, profile)


@pytest.fixture
def student_factory():
    return make_student


@pytest.fixture
async def student_ctx(catalog):
    student = make_student()
    await catalog.set("users", student.uid, student.profile)
    return student
