from mess.extensions import db
from mess.models import Teacher, User, AttendanceRecord, Bill
from mess.services import reconciler


def _login(client, username, password, role=None):
    payload = {"username": username, "password": password}
    if role:
        payload["role"] = role
    return client.post("/auth/login", json=payload)


def test_login_returns_token_and_user(client):
    response = _login(client, "admin", "admin123")
    assert response.status_code == 200
    body = response.get_json()
    assert body["access_token"]
    assert body["user"]["role"] == "admin"


def test_login_rejects_bad_password_and_wrong_role(client, teacher):
    assert _login(client, "admin", "nope").status_code == 401
    assert _login(client, "teacher1", "secret1", role="admin").status_code == 401
    assert _login(client, "teacher1", "secret1", role="teacher").status_code == 200


def test_login_requires_credentials(client):
    response = client.post("/auth/login", json={"username": ""})
    assert response.status_code == 400


def test_me_includes_teacher_profile(client, teacher, headers_for):
    response = client.get("/auth/me", headers=headers_for(teacher.user))
    body = response.get_json()
    assert response.status_code == 200
    assert body["must_change_password"] is True
    assert body["teacher"]["full_name"] == "Amina Khan"


def test_logout_revokes_token(client):
    token = _login(client, "admin", "admin123").get_json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    assert client.get("/auth/validate", headers=headers).status_code == 200
    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert client.get("/auth/validate", headers=headers).status_code == 401


def test_change_password_clears_flag(client, teacher, headers_for):
    headers = headers_for(teacher.user)
    bad = client.post("/auth/change-password", headers=headers,
                      json={"current_password": "wrong", "new_password": "another1"})
    assert bad.status_code == 400

    ok = client.post("/auth/change-password", headers=headers,
                     json={"current_password": "secret1", "new_password": "another1"})
    assert ok.status_code == 200
    assert User.query.filter_by(username="teacher1").first().must_change_password is False
    assert _login(client, "teacher1", "another1").status_code == 200


def test_endpoints_require_login(client):
    assert client.get("/teachers/").status_code == 401
    assert client.get("/billing/").status_code == 401


def test_teacher_cannot_use_admin_endpoints(client, teacher, headers_for):
    headers = headers_for(teacher.user)
    assert client.get("/teachers/", headers=headers).status_code == 403
    assert client.post("/billing/generate", headers=headers, json={}).status_code == 403


def test_create_and_list_teachers(client, admin_headers):
    payload = {
        "full_name": "Dua Fatima", "email": "dua@school.test", "phone_number": "0300-1234567",
        "department": "Maths", "username": "dua", "password": "welcome1",
    }
    created = client.post("/teachers/", headers=admin_headers, json=payload)
    assert created.status_code == 201
    assert created.get_json()["teacher"]["username"] == "dua"

    duplicate = client.post("/teachers/", headers=admin_headers, json=dict(payload, email="other@school.test"))
    assert duplicate.status_code == 409

    listing = client.get("/teachers/?search=dua", headers=admin_headers).get_json()
    assert listing["total"] == 1
    assert listing["teachers"][0]["email"] == "dua@school.test"


def test_create_teacher_validation(client, admin_headers):
    response = client.post("/teachers/", headers=admin_headers, json={"full_name": "No Email"})
    assert response.status_code == 400
    assert response.get_json()["error"] == "ValidationError"


def test_teacher_sees_only_own_profile(client, teacher, other_teacher, headers_for):
    headers = headers_for(teacher.user)
    assert client.get("/teachers/me", headers=headers).get_json()["id"] == teacher.id
    assert client.get(f"/teachers/{teacher.id}", headers=headers).status_code == 200
    assert client.get(f"/teachers/{other_teacher.id}", headers=headers).status_code == 403


def test_deleting_teacher_removes_everything(client, teacher, other_teacher, record, admin_headers):
    record(teacher, 3)
    reconciler.generate(teacher.id, 6, 2025)
    teacher_id, user_id = teacher.id, teacher.user_id

    response = client.delete(f"/teachers/{teacher_id}", headers=admin_headers)

    assert response.status_code == 200
    assert Teacher.query.filter_by(full_name="Amina Khan").first() is None
    assert AttendanceRecord.query.filter_by(teacher_id=teacher_id).count() == 0
    assert Bill.query.filter_by(teacher_id=teacher_id).count() == 0
    assert User.query.filter_by(id=user_id).first() is None
    assert Teacher.query.count() == 1


def test_deactivating_teacher_blocks_login(client, teacher, admin_headers):
    response = client.put(f"/teachers/{teacher.id}", headers=admin_headers, json={"is_active": False})
    assert response.status_code == 200
    assert _login(client, "teacher1", "secret1").status_code == 401


def test_active_flag_accepts_text_values(client, teacher, admin_headers):
    off = client.put(f"/teachers/{teacher.id}", headers=admin_headers, json={"is_active": "false"})
    assert off.status_code == 200
    assert db.session.get(Teacher, teacher.id).is_active is False

    bad = client.put(f"/teachers/{teacher.id}", headers=admin_headers, json={"is_active": "maybe"})
    assert bad.status_code == 400
    assert bad.get_json()["error"] == "ValidationError"

    created = client.post("/teachers/", headers=admin_headers, json={
        "full_name": "Esha Noor", "email": "esha@school.test", "phone_number": "0300-7654321",
        "department": "Urdu", "username": "esha", "password": "welcome1", "is_active": "0",
    })
    assert created.status_code == 201
    assert created.get_json()["teacher"]["is_active"] is False

    inactive = client.get("/teachers/?active=false", headers=admin_headers).get_json()
    assert sorted(t["full_name"] for t in inactive["teachers"]) == ["Amina Khan", "Esha Noor"]


def test_dashboard_summary(client, teacher, record, admin_headers):
    record(teacher, 15)
    body = client.get("/dashboard/summary", headers=admin_headers).get_json()
    assert body["totalTeachers"] == 1
    assert body["todaysAttendance"] == 1
    assert body["pendingDisputes"] == 0
    assert len(body["recentAttendance"]) == 1
