import pytest

from app.admin import provisioning_service as provisioning
from app.auth.firebase_auth import Identity
from app.auth.role_resolver import Role, RolePolicy, RoleService
from app.core.exceptions import ConflictError, NotFoundError, StorageError

POLICY = RolePolicy.build(["admin@jbiet.edu.in"], ["faculty@jbiet.edu.in"], admin_substring_match=True)

STUDENT = {
    "roll_number": "21CS001",
    "first_name": "Ravi",
    "last_name": "Kumar",
    "email": "ravi@jbiet.edu.in",
    "password": "secret123",
    "branch_id": "CSE",
    "year": 2,
    "semester": 1,
    "section": "B",
}

FACULTY = {
    "faculty_id": "F010",
    "first_name": "Meera",
    "last_name": "Iyer",
    "email": "meera@jbiet.edu.in",
    "password": "secret123",
    "phone": "9999999999",
    "department": "CSE",
    "classes": [{"branch_id": "CSE", "year": 2, "semester": 1, "subjects": None}],
}


@pytest.fixture
def roles(repo):
    return RoleService(repo, POLICY, ttl_seconds=300)


async def test_create_student_writes_profile_keyed_by_uid(catalog, identity, roles, admin_ctx):
    student = await provisioning.create_student(catalog, identity, roles, admin_ctx, dict(STUDENT))

    assert student["id"] in identity.accounts
    assert student["roll_number"] == "21CS001"
    assert student["section"] == "B"
    assert "password" not in student
    assert (await roles.resolve(Identity(student["id"], STUDENT["email"]))).role == Role.STUDENT


async def test_duplicate_email_is_reported(catalog, identity, roles, admin_ctx):
    await provisioning.create_student(catalog, identity, roles, admin_ctx, dict(STUDENT))

    with pytest.raises(ConflictError) as exc:
        await provisioning.create_student(
            catalog, identity, roles, admin_ctx, {**STUDENT, "roll_number": "21CS002"}
        )
    assert exc.value.message == "This email is already registered."


async def test_duplicate_roll_number_is_rejected(catalog, identity, roles, admin_ctx):
    await provisioning.create_student(catalog, identity, roles, admin_ctx, dict(STUDENT))

    with pytest.raises(ConflictError):
        await provisioning.create_student(
            catalog, identity, roles, admin_ctx, {**STUDENT, "email": "other@jbiet.edu.in"}
        )
    assert len(identity.accounts) == 1


async def test_student_needs_existing_branch(catalog, identity, roles, admin_ctx):
    with pytest.raises(NotFoundError):
        await provisioning.create_student(catalog, identity, roles, admin_ctx, {**STUDENT, "branch_id": "NOPE"})
    assert identity.accounts == {}


async def test_failed_profile_write_removes_account(catalog, identity, roles, admin_ctx, monkeypatch):
    async def broken_set(collection, doc_id, data):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(catalog, "set", broken_set)

    with pytest.raises(StorageError):
        await provisioning.create_student(catalog, identity, roles, admin_ctx, dict(STUDENT))

    assert identity.accounts == {}


async def test_create_faculty_defaults_subjects_from_catalog(catalog, identity, roles, admin_ctx):
    faculty = await provisioning.create_faculty(catalog, identity, roles, admin_ctx, dict(FACULTY))

    assert faculty["faculty_id"] == "F010"
    assert len(faculty["classes"]) == 1
    cls = faculty["classes"][0]
    assert cls["branch_name"] == "Computer Science"
    assert set(cls["subjects"]) == {"DS", "DBMS"}

    resolution = await roles.resolve(Identity(faculty["id"], FACULTY["email"]))
    assert resolution.role == Role.FACULTY


async def test_assign_classes_skips_existing_class(catalog, identity, roles, admin_ctx):
    faculty = await provisioning.create_faculty(catalog, identity, roles, admin_ctx, dict(FACULTY))

    updated = await provisioning.assign_classes(catalog, admin_ctx, faculty["id"], [
        {"branch_id": "CSE", "year": 2, "semester": 1, "subjects": ["DS"]},
        {"branch_id": "ECE", "year": 3, "semester": 2, "subjects": []},
    ])

    keys = [(c["branch_id"], c["year"], c["semester"]) for c in updated["classes"]]
    assert keys == [("CSE", 2, 1), ("ECE", 3, 2)]
    assert set(updated["classes"][0]["subjects"]) == {"DS", "DBMS"}


async def test_delete_faculty_revokes_role(catalog, identity, roles, admin_ctx):
    faculty = await provisioning.create_faculty(catalog, identity, roles, admin_ctx, dict(FACULTY))
    who = Identity(faculty["id"], FACULTY["email"])
    assert (await roles.resolve(who)).role == Role.FACULTY

    await provisioning.delete_faculty(catalog, identity, roles, admin_ctx, faculty["id"])

    assert faculty["id"] not in identity.accounts
    assert (await roles.resolve(who)).role == Role.STUDENT


async def test_grant_and_revoke_admin(catalog, roles, admin_ctx):
    who = Identity("u9", "staff@jbiet.edu.in")
    assert (await roles.resolve(who)).role == Role.STUDENT

    await provisioning.grant_admin(catalog, roles, admin_ctx, "u9")
    assert (await roles.resolve(who)).role == Role.ADMIN

    await provisioning.revoke_admin(catalog, roles, admin_ctx, "u9")
    assert (await roles.resolve(who)).role == Role.STUDENT


async def test_list_students_filters_searches_and_paginates(catalog, identity, roles, admin_ctx):
    for i, (branch, section) in enumerate([("CSE", "A"), ("CSE", "B"), ("CSE", "B"), ("ECE", "B")]):
        await provisioning.create_student(catalog, identity, roles, admin_ctx, {
            **STUDENT,
            "roll_number": f"21X{i:03d}",
            "email": f"s{i}@jbiet.edu.in",
            "first_name": "Anil" if i == 2 else "Ravi",
            "branch_id": branch,
            "section": section,
        })

    cse_b = await provisioning.list_students(catalog, branch_id="CSE", section="b")
    assert cse_b["total"] == 2

    found = await provisioning.list_students(catalog, search="anil")
    assert [s["roll_number"] for s in found["students"]] == ["21X002"]

    page = await provisioning.list_students(catalog, page=2, page_size=3)
    assert page["total"] == 4
    assert [s["roll_number"] for s in page["students"]] == ["21X003"]


async def test_update_and_delete_student(catalog, identity, roles, admin_ctx):
    student = await provisioning.create_student(catalog, identity, roles, admin_ctx, dict(STUDENT))

    updated = await provisioning.update_student(catalog, admin_ctx, student["id"], {"section": "C", "year": 3})
    assert updated["section"] == "C"
    assert updated["year"] == 3

    await provisioning.delete_student(catalog, identity, roles, admin_ctx, student["id"])
    assert await catalog.get("users", student["id"]) is None
    assert student["id"] not in identity.accounts


async def test_update_cannot_take_another_students_roll_number(catalog, identity, roles, admin_ctx):
    first = await provisioning.create_student(catalog, identity, roles, admin_ctx, dict(STUDENT))
    second = await provisioning.create_student(
        catalog, identity, roles, admin_ctx,
        {**STUDENT, "roll_number": "21CS002", "email": "second@jbiet.edu.in"}
    )

    with pytest.raises(ConflictError):
        await provisioning.update_student(catalog, admin_ctx, second["id"], {"roll_number": first["roll_number"]})
    assert (await catalog.get("users", second["id"]))["roll_number"] == "21CS002"

    # Keeping one's own roll number is not a clash
    same = await provisioning.update_student(
        catalog, admin_ctx, second["id"], {"roll_number": "21CS002", "section": "A"}
    )
    assert same["section"] == "A"
