import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from model_bakery import baker

from LearningCenterApp.classes.models import ClassMaterial, Enrollment, EnrollmentRequest
from LearningCenterApp.tests.utils import login

pytestmark = pytest.mark.django_db

SCHEDULE = "Mondays and Wednesdays, 6:00 PM - 8:00 PM"


def test_teacher_creates_class(teacher):
    resp = login(teacher).post("/api/classes/", {
        "name": "Conversation", "schedule": SCHEDULE, "start_date": "2024-01-01",
        "end_date": "2024-01-07", "tags": ["speaking"],
    }, format="json")
    assert resp.status_code == 201
    assert resp.data["teacher"]["id"] == teacher.id
    assert resp.data["total_students"] == 0


def test_bad_schedule_is_400_with_error_body(teacher):
    resp = login(teacher).post("/api/classes/", {"name": "X", "schedule": "Mondays at noon"}, format="json")
    assert resp.status_code == 400
    assert resp.data["error"].startswith("schedule:")
    assert "schedule" in resp.data["details"]


def test_student_and_admin_cannot_use_teacher_create(student, admin):
    assert login(student).post("/api/classes/", {"name": "X"}, format="json").status_code == 403
    assert login(admin).post("/api/classes/", {"name": "X"}, format="json").status_code == 403


def test_admin_create_for_teacher(admin, teacher, student):
    client = login(admin)
    resp = client.post("/api/classes/admin-create/", {"name": "Reading", "teacher_id": teacher.id}, format="json")
    assert resp.status_code == 201
    assert resp.data["teacher"]["id"] == teacher.id
    bad = client.post("/api/classes/admin-create/", {"name": "Reading", "teacher_id": student.id}, format="json")
    assert bad.status_code == 400
    assert login(teacher).post(
        "/api/classes/admin-create/", {"name": "R", "teacher_id": teacher.id}, format="json"
    ).status_code == 403


def test_class_visibility_matrix(klass, teacher, other_teacher, admin, student, other_student, enrolled):
    other = baker.make("classes.Class", teacher=other_teacher, name="Algebra", tags=["math"])
    ids = lambda resp: sorted(c["id"] for c in resp.data)
    assert ids(login(admin).get("/api/classes/")) == sorted([klass.id, other.id])
    assert ids(login(teacher).get("/api/classes/")) == [klass.id]
    assert ids(login(student).get("/api/classes/")) == [klass.id]
    assert ids(login(student).get("/api/classes/?available=true")) == [other.id]
    assert ids(login(admin).get("/api/classes/?tag=math")) == [other.id]
    assert ids(login(admin).get("/api/classes/?search=english")) == [klass.id]
    assert login(other_student).get(f"/api/classes/{klass.id}/").status_code == 404
    assert login(student).get(f"/api/classes/{klass.id}/").data["total_students"] == 1


def test_student_sees_full_headcount(klass, student, other_student, enrolled):
    baker.make("classes.Enrollment", klass=klass, student=other_student)
    client = login(student)
    [row] = client.get("/api/classes/").data
    assert row["total_students"] == 2
    assert client.get(f"/api/classes/{klass.id}/").data["total_students"] == 2
    [mine] = client.get(f"/api/students/{student.id}/classes/").data
    assert mine["total_students"] == 2


def test_optional_pagination(klass, teacher):
    baker.make("classes.Class", teacher=teacher, _quantity=2)
    client = login(teacher)
    assert isinstance(client.get("/api/classes/").data, list)
    page = client.get("/api/classes/?page_size=2").data
    assert page["count"] == 3
    assert len(page["results"]) == 2


def test_update_and_delete_by_owner_only(klass, teacher, other_teacher, student, enrolled):
    assert login(student).patch(f"/api/classes/{klass.id}/", {"name": "Mine"}, format="json").status_code == 403
    assert login(other_teacher).patch(f"/api/classes/{klass.id}/", {"name": "Mine"}, format="json").status_code == 404
    resp = login(teacher).patch(f"/api/classes/{klass.id}/", {"max_students": 12}, format="json")
    assert resp.status_code == 200
    assert resp.data["max_students"] == 12
    assert login(teacher).delete(f"/api/classes/{klass.id}/").status_code == 204


def test_enrollments_roster(klass, teacher, admin, student, other_student):
    client = login(teacher)
    add = client.post(f"/api/classes/{klass.id}/enrollments/", {"student_id": student.id}, format="json")
    assert add.status_code == 201
    dup = client.post(f"/api/classes/{klass.id}/enrollments/", {"student_id": student.id}, format="json")
    assert dup.status_code == 409
    roster = login(admin).get(f"/api/classes/{klass.id}/enrollments/")
    assert [e["student"]["id"] for e in roster.data] == [student.id]
    assert login(student).get(f"/api/classes/{klass.id}/enrollments/").status_code == 403

    removed = client.delete(f"/api/classes/{klass.id}/enrollments/?student_id={student.id}")
    assert removed.status_code == 204
    assert not Enrollment.objects.filter(klass=klass, student=student).exists()
    assert client.delete(f"/api/classes/{klass.id}/enrollments/").status_code == 400


def test_student_unenrolls_self(klass, student, enrolled):
    resp = login(student).post(f"/api/classes/{klass.id}/unenroll/", {"student_id": student.id}, format="json")
    assert resp.status_code == 204
    assert not Enrollment.objects.filter(klass=klass, student=student).exists()


def test_sessions_endpoint(teacher):
    klass = baker.make(
        "classes.Class", teacher=teacher, schedule=SCHEDULE,
        start_date="2024-01-01", end_date="2024-01-31",
    )
    resp = login(teacher).get(f"/api/classes/{klass.id}/sessions/?start=2024-01-01&end=2024-01-07")
    assert resp.status_code == 200
    assert [s["starts_at"][:16] for s in resp.data] == ["2024-01-01T18:00", "2024-01-03T18:00"]
    assert resp.data[0]["key"].startswith(f"{klass.id}-")
    assert len(login(teacher).get(f"/api/classes/{klass.id}/sessions/").data) == 10
    assert login(teacher).get(f"/api/classes/{klass.id}/sessions/?start=bad").status_code == 400


def test_attendance_endpoint(teacher, student, enrolled, klass):
    klass.start_date, klass.end_date = "2024-01-01", "2024-01-31"
    klass.save()
    client = login(teacher)
    resp = client.post(f"/api/classes/{klass.id}/attendance/",
                       {"student_id": student.id, "date": "2024-01-03", "status": "present"}, format="json")
    assert resp.status_code == 200
    off_day = client.post(f"/api/classes/{klass.id}/attendance/",
                          {"student_id": student.id, "date": "2024-01-02", "status": "present"}, format="json")
    assert off_day.status_code == 400
    listing = client.get(f"/api/classes/{klass.id}/attendance/?date=2024-01-03")
    assert [(a["student"]["id"], a["status"]) for a in listing.data] == [(student.id, "present")]
    assert login(student).get(f"/api/classes/{klass.id}/attendance/").status_code == 403


# ---------- Enrollment requests ----------

def test_request_approve_flow(klass, teacher, student):
    s_client = login(student)
    created = s_client.post(f"/api/classes/{klass.id}/enrollment-requests/", {"message": "hi"}, format="json")
    assert created.status_code == 201
    assert created.data["status"] == "pending"
    dup = s_client.post(f"/api/classes/{klass.id}/enrollment-requests/", {}, format="json")
    assert dup.status_code == 409
    assert "error" in dup.data

    t_client = login(teacher)
    pending = t_client.get(f"/api/classes/{klass.id}/enrollment-requests/?status=pending")
    assert [r["id"] for r in pending.data] == [created.data["id"]]
    approved = t_client.post(f"/api/classes/{klass.id}/enrollment-requests/{created.data['id']}/approve/")
    assert approved.status_code == 200
    assert approved.data["status"] == "approved"
    assert Enrollment.objects.filter(klass=klass, student=student).exists()

    again = t_client.post(f"/api/classes/{klass.id}/enrollment-requests/{created.data['id']}/reject/")
    assert again.status_code == 409


def test_reject_and_permission(klass, teacher, admin, student, other_student):
    req = baker.make("classes.EnrollmentRequest", klass=klass, student=student)
    assert login(admin).post(
        f"/api/classes/{klass.id}/enrollment-requests/{req.id}/approve/"
    ).status_code == 403
    resp = login(teacher).post(
        f"/api/classes/{klass.id}/enrollment-requests/{req.id}/reject/", {"message": "Full term"}, format="json"
    )
    assert resp.status_code == 200
    assert resp.data["response_message"] == "Full term"
    assert EnrollmentRequest.objects.get(pk=req.id).status == "rejected"
    assert login(other_student).get(f"/api/classes/{klass.id}/enrollment-requests/").data == []


def test_request_is_looked_up_within_its_class(klass, teacher, student):
    other = baker.make("classes.Class", teacher=teacher, name="Algebra")
    req = baker.make("classes.EnrollmentRequest", klass=other, student=student)
    client = login(teacher)
    assert client.post(f"/api/classes/{klass.id}/enrollment-requests/{req.id}/approve/").status_code == 404
    assert client.post(f"/api/classes/{other.id}/enrollment-requests/{req.id}/approve/").status_code == 200


def test_session_window_is_bounded(klass, teacher):
    client = login(teacher)
    huge = client.get(f"/api/classes/{klass.id}/sessions/?start=1900-01-01&end=2399-12-31")
    assert huge.status_code == 400
    assert "366 days" in huge.data["error"]
    year = client.get(f"/api/classes/{klass.id}/sessions/?start=2024-01-01&end=2024-12-31")
    assert year.status_code == 200
    assert len(year.data) == 105


# ---------- Materials ----------

def reading(name="notes.pdf"):
    body = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n"
    return SimpleUploadedFile(name, body, content_type="application/pdf")


def test_teacher_uploads_material_and_students_list_it(media_root, klass, teacher, student, enrolled):
    resp = login(teacher).post(
        f"/api/classes/{klass.id}/materials/",
        {"file": reading(), "name": "Unit 1 notes", "description": "Read before Monday"},
        format="multipart",
    )
    assert resp.status_code == 201
    assert resp.data["name"] == "Unit 1 notes"
    assert resp.data["file_type"] == "PDF"
    assert resp.data["uploaded_by"]["id"] == teacher.id
    assert resp.data["download_url"].startswith("http://testserver/")

    listed = login(student).get(f"/api/classes/{klass.id}/materials/")
    assert listed.status_code == 200
    assert [m["id"] for m in listed.data] == [resp.data["id"]]


def test_material_upload_rejects_other_files(media_root, klass, teacher):
    notes = SimpleUploadedFile("notes.txt", b"plain text notes\n", content_type="text/plain")
    resp = login(teacher).post(f"/api/classes/{klass.id}/materials/", {"file": notes}, format="multipart")
    assert resp.status_code == 400
    assert "file" in resp.data["details"]

    disguised = SimpleUploadedFile("notes.pdf", b"plain text notes\n", content_type="application/pdf")
    resp = login(teacher).post(f"/api/classes/{klass.id}/materials/", {"file": disguised}, format="multipart")
    assert resp.status_code == 400
    assert not ClassMaterial.objects.exists()


def test_material_writes_are_for_the_owner(media_root, klass, teacher, admin, student, enrolled):
    url = f"/api/classes/{klass.id}/materials/"
    assert login(student).post(url, {"file": reading()}, format="multipart").status_code == 403
    assert login(admin).post(url, {"file": reading()}, format="multipart").status_code == 403
    assert not ClassMaterial.objects.exists()


def test_teacher_deletes_material(media_root, klass, teacher):
    client = login(teacher)
    created = client.post(f"/api/classes/{klass.id}/materials/", {"file": reading()}, format="multipart").data
    assert client.delete(f"/api/classes/{klass.id}/materials/").status_code == 400
    assert client.delete(f"/api/classes/{klass.id}/materials/?material_id=999999").status_code == 404
    assert client.delete(f"/api/classes/{klass.id}/materials/?material_id={created['id']}").status_code == 204
    assert client.get(f"/api/classes/{klass.id}/materials/").data == []
