from datetime import datetime, timedelta, timezone

ADMIN_EMAIL = "admin@jbiet.edu.in"


def deadline(days=7):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat().replace("+00:00", "Z")


def seed_admin(client, auth_headers):
    return auth_headers("admin-uid", ADMIN_EMAIL)


def provision_world(client, admin):
    """Branch, batch subjects, one faculty member and one student via the admin API"""
    branch = client.post("/admin/branches", json={"name": "Computer Science"}, headers=admin).json()

    subjects = client.post("/admin/subjects/batch", json={
        "branch_id": branch["id"], "year": 2, "semester": 1, "names": ["Data Structures", "Databases"],
    }, headers=admin).json()

    faculty = client.post("/admin/faculty", json={
        "faculty_id": "F001",
        "first_name": "Asha",
        "last_name": "Rao",
        "email": "asha@jbiet.edu.in",
        "password": "secret123",
        "classes": [{"branch_id": branch["id"], "year": 2, "semester": 1}],
    }, headers=admin).json()

    student = client.post("/admin/students", json={
        "roll_number": "21cs001",
        "first_name": "Ravi",
        "last_name": "Kumar",
        "email": "ravi@jbiet.edu.in",
        "password": "secret123",
        "branch_id": branch["id"],
        "year": 2,
        "semester": 1,
        "section": "b",
    }, headers=admin).json()

    return branch, subjects, faculty, student


def login(client, email, password="secret123"):
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    body = response.json()
    return body, {"Authorization": f"Bearer {body['access_token']}"}


def test_health_and_about(client):
    assert client.get("/health").json()["status"] == "ok"
    assert "student" in client.get("/about").json()["roles"]


def test_guest_role_without_session(client):
    body = client.get("/auth/role").json()
    assert body["role"] == "guest"
    assert body["dashboard_path"] == "/"


def test_protected_routes_need_session(client):
    assert client.get("/admin/branches").status_code == 401
    assert client.get("/student/dashboard").status_code == 401
    assert client.get("/admin/branches", headers={"Authorization": "Bearer nonsense"}).status_code == 401


def test_wrong_password_is_rejected(client, identity):
    identity.add_account("ravi@jbiet.edu.in", "secret123")
    response = client.post("/auth/login", json={"email": "ravi@jbiet.edu.in", "password": "wrong"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_admin_substring_login_lands_on_admin_dashboard(client, identity):
    identity.add_account("notadmin@x.com", "secret123")
    body, headers = login(client, "notadmin@x.com")

    assert body["role"] == "admin"
    assert body["dashboard_path"] == "/admin/dashboard"
    assert client.get("/admin/dashboard", headers=headers).status_code == 200


def test_logout_revokes_session(client, identity):
    identity.add_account("ravi@jbiet.edu.in", "secret123")
    _, headers = login(client, "ravi@jbiet.edu.in")

    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert client.get("/auth/role", headers=headers).status_code == 401


def test_id_token_exchange(client, identity):
    uid = identity.add_account("faculty@jbiet.edu.in", "secret123")
    body = client.post("/auth/session", json={"id_token": f"token-{uid}"}).json()
    assert body["role"] == "faculty"
    assert body["dashboard_path"] == "/faculty/dashboard"


def test_students_cannot_reach_admin_routes(client, auth_headers, identity):
    admin = seed_admin(client, auth_headers)
    provision_world(client, admin)
    _, student = login(client, "ravi@jbiet.edu.in")

    response = client.get("/admin/students", headers=student)
    assert response.status_code == 403
    assert client.get("/faculty/dashboard", headers=student).status_code == 403


def test_admin_provisioning_flow(client, auth_headers):
    admin = seed_admin(client, auth_headers)
    branch, subjects, faculty, student = provision_world(client, admin)

    assert [s["code"] for s in subjects] == ["CO211", "CO212"]
    assert student["roll_number"] == "21CS001"
    assert student["section"] == "B"
    assert len(faculty["classes"][0]["subjects"]) == 2

    listing = client.get("/admin/students", params={"branch_id": branch["id"], "section": "B"}, headers=admin)
    assert listing.json()["total"] == 1

    duplicate = client.post("/admin/students", json={
        "roll_number": "21CS999", "first_name": "X", "last_name": "Y", "email": "ravi@jbiet.edu.in",
        "password": "secret123", "branch_id": branch["id"], "year": 2, "semester": 1, "section": "A",
    }, headers=admin)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "This email is already registered."


def test_validation_errors_are_422(client, auth_headers):
    admin = seed_admin(client, auth_headers)
    branch = client.post("/admin/branches", json={"name": "Computer Science"}, headers=admin).json()

    bad_student = client.post("/admin/students", json={
        "roll_number": "21-CS-001", "first_name": "Ravi", "last_name": "Kumar", "email": "ravi@jbiet.edu.in",
        "password": "secret123", "branch_id": branch["id"], "year": 5, "semester": 1, "section": "AB",
    }, headers=admin)
    assert bad_student.status_code == 422

    blank_batch = client.post("/admin/subjects/batch", json={
        "branch_id": branch["id"], "year": 1, "semester": 1, "names": ["", "  "],
    }, headers=admin)
    assert blank_batch.status_code == 422

    orphan_subject = client.post("/admin/subjects", json={"name": "Maths", "branch_id": "NOPE"}, headers=admin)
    assert orphan_subject.status_code == 404


def test_assignment_submission_review_cycle(client, auth_headers):
    admin = seed_admin(client, auth_headers)
    branch, subjects, _, _ = provision_world(client, admin)
    _, faculty = login(client, "asha@jbiet.edu.in")
    _, student = login(client, "ravi@jbiet.edu.in")

    too_short = client.post("/faculty/assignments", json={
        "title": "Lab", "description": "short", "year": 2, "semester": 1,
        "branch_id": branch["id"], "subject_id": subjects[0]["id"], "deadline": deadline(),
    }, headers=faculty)
    assert too_short.status_code == 422

    created = client.post("/faculty/assignments", json={
        "title": "Linked Lists",
        "description": "Implement a doubly linked list with tests",
        "year": 2,
        "semester": 1,
        "branch_id": branch["id"],
        "subject_id": subjects[0]["id"],
        "deadline": deadline(),
        "target_years": [2],
        "target_semesters": [1],
    }, headers=faculty)
    assert created.status_code == 201, created.text
    assignment = created.json()
    assert assignment["target_years"] == ["2"]

    entries = client.get("/student/assignments", headers=student).json()["assignments"]
    assert [e["status_text"] for e in entries] == ["Not Submitted"]

    upload = client.post(
        f"/student/assignments/{assignment['id']}/submit",
        files={"file": ("answer.pdf", b"%PDF-1.4 answer", "application/pdf")},
        headers=student,
    )
    assert upload.status_code == 201, upload.text
    submission = upload.json()
    assert submission["status"] == "pending"

    bad_type = client.post(
        f"/student/assignments/{assignment['id']}/submit",
        files={"file": ("answer.exe", b"MZ", "application/octet-stream")},
        headers=student,
    )
    assert bad_type.status_code == 422

    queue = client.get("/faculty/submissions", params={"status": "pending"}, headers=faculty).json()
    assert [s["id"] for s in queue] == [submission["id"]]

    verified = client.post(
        f"/faculty/submissions/{submission['id']}/verify", json={"feedback": "Well done"}, headers=faculty
    )
    assert verified.status_code == 200
    assert verified.json()["status"] == "verified"

    again = client.post(
        f"/student/assignments/{assignment['id']}/submit",
        files={"file": ("answer-v2.pdf", b"%PDF-1.4 v2", "application/pdf")},
        headers=student,
    )
    assert again.status_code == 409
    assert again.json()["code"] == "INVALID_TRANSITION"

    dashboard = client.get("/student/dashboard", headers=student).json()
    assert dashboard["counts"]["verified"] == 1
    assert dashboard["pending_assignments"] == []


def test_faculty_cannot_review_other_faculty_submissions(client, auth_headers, identity):
    admin = seed_admin(client, auth_headers)
    branch, subjects, _, _ = provision_world(client, admin)
    client.post("/admin/faculty", json={
        "faculty_id": "F002", "first_name": "Other", "last_name": "Person", "email": "other@jbiet.edu.in",
        "password": "secret123", "classes": [{"branch_id": branch["id"], "year": 2, "semester": 1}],
    }, headers=admin)

    _, owner = login(client, "asha@jbiet.edu.in")
    _, other = login(client, "other@jbiet.edu.in")
    _, student = login(client, "ravi@jbiet.edu.in")

    assignment = client.post("/faculty/assignments", json={
        "title": "Linked Lists", "description": "Implement a doubly linked list with tests",
        "year": 2, "semester": 1, "branch_id": branch["id"], "subject_id": subjects[0]["id"],
        "deadline": deadline(),
    }, headers=owner).json()
    submission = client.post(
        f"/student/assignments/{assignment['id']}/submit",
        files={"file": ("answer.txt", b"answer", "text/plain")},
        headers=student,
    ).json()

    assert client.post(f"/faculty/submissions/{submission['id']}/reject", headers=other).status_code == 403
    assert client.delete(f"/faculty/assignments/{assignment['id']}", headers=other).status_code == 403
    assert client.get("/faculty/submissions", headers=other).json() == []


def test_feedback_suggestions(client, auth_headers, feedback):
    admin = seed_admin(client, auth_headers)
    provision_world(client, admin)
    _, faculty = login(client, "asha@jbiet.edu.in")

    response = client.post("/faculty/feedback-suggestions", json={
        "grading_approach": "Marks for output only", "remarks": "Good",
    }, headers=faculty)

    assert response.status_code == 200
    assert response.json()["suggestions"] == "Use a rubric and explain each deduction."
    assert feedback.calls == [("Marks for output only", "Good")]


def test_profile_returns_role_document(client, auth_headers):
    admin = seed_admin(client, auth_headers)
    _, _, _, student = provision_world(client, admin)
    _, headers = login(client, "ravi@jbiet.edu.in")

    body = client.get("/profile", headers=headers).json()
    assert body["role"] == "student"
    assert body["profile"]["roll_number"] == student["roll_number"]
