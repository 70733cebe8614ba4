import pytest

from LearningCenterApp.tests.utils import login
from LearningCenterApp.users.models import User

pytestmark = pytest.mark.django_db


def test_me_returns_own_profile(student):
    resp = login(student).get("/api/auth/me/")
    assert resp.status_code == 200
    assert resp.data["email"] == student.email
    assert resp.data["role"] == "STUDENT"


def test_anonymous_gets_error_body():
    from rest_framework.test import APIClient
    resp = APIClient().get("/api/classes/")
    assert resp.status_code == 401
    assert "error" in resp.data


def test_admin_creates_user_and_duplicate_email_conflicts(admin):
    client = login(admin)
    payload = {"email": "new@example.com", "name": "New Teacher", "role": "TEACHER", "password": "longpassword"}
    resp = client.post("/api/users/", payload, format="json")
    assert resp.status_code == 201
    assert User.objects.get(email="new@example.com").check_password("longpassword")

    again = client.post("/api/users/", {**payload, "email": "NEW@example.com"}, format="json")
    assert again.status_code == 409
    assert again.data["error"]


def test_non_admin_cannot_list_or_create_users(teacher):
    client = login(teacher)
    assert client.get("/api/users/").status_code == 403
    assert client.post("/api/users/", {"email": "x@example.com", "name": "X"}, format="json").status_code == 403


def test_admin_listing_is_newest_first(admin, teacher, student):
    resp = login(admin).get("/api/users/admin/")
    assert resp.status_code == 200
    assert [u["id"] for u in resp.data] == sorted((u["id"] for u in resp.data), reverse=True)


def test_self_update_but_no_role_change(student):
    client = login(student)
    ok = client.patch(f"/api/users/{student.id}/", {"name": "Samuel"}, format="json")
    assert ok.status_code == 200
    assert ok.data["name"] == "Samuel"
    denied = client.patch(f"/api/users/{student.id}/", {"role": "ADMIN"}, format="json")
    assert denied.status_code == 403
    student.refresh_from_db()
    assert student.role == "STUDENT"


def test_user_cannot_see_other_users(student, other_student):
    assert login(student).get(f"/api/users/{other_student.id}/").status_code == 404


def test_admin_changes_role_and_email_conflict(admin, student, other_student):
    client = login(admin)
    resp = client.patch(f"/api/users/{student.id}/", {"role": "TEACHER"}, format="json")
    assert resp.status_code == 200
    assert resp.data["role"] == "TEACHER"
    clash = client.patch(f"/api/users/{student.id}/", {"email": other_student.email}, format="json")
    assert clash.status_code == 409


def test_admin_cannot_delete_self(admin, student):
    client = login(admin)
    resp = client.delete(f"/api/users/{admin.id}/")
    assert resp.status_code == 400
    assert "error" in resp.data
    assert client.delete(f"/api/users/{student.id}/").status_code == 204
    assert not User.objects.filter(pk=student.id).exists()


def test_teacher_and_student_directories(admin, teacher, student, other_student, klass, enrolled):
    t_client = login(teacher)
    teachers = t_client.get("/api/teachers/")
    assert [u["id"] for u in teachers.data] == [teacher.id]

    roster = t_client.get(f"/api/students/?class_id={klass.id}")
    assert [u["id"] for u in roster.data] == [student.id]
    assert login(student).get("/api/students/").status_code == 403


def test_person_classes_admin_or_self(teacher, other_teacher, student, klass, enrolled):
    assert [c["id"] for c in login(teacher).get(f"/api/teachers/{teacher.id}/classes/").data] == [klass.id]
    assert [c["id"] for c in login(student).get(f"/api/students/{student.id}/classes/").data] == [klass.id]
    assert login(other_teacher).get(f"/api/teachers/{teacher.id}/classes/").status_code == 403


def test_email_longer_than_username_limit_is_rejected(admin, student):
    long_email = "a" * 140 + "@example.com"
    client = login(admin)
    resp = client.post("/api/users/", {"email": long_email, "name": "Long", "password": "longpassword"}, format="json")
    assert resp.status_code == 400
    assert "email" in resp.data["details"]
    assert not User.objects.filter(email=long_email).exists()
    assert client.patch(f"/api/users/{student.id}/", {"email": long_email}, format="json").status_code == 400
