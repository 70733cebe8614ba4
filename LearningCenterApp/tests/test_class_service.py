from datetime import date

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from model_bakery import baker
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from LearningCenterApp.classes.models import Attendance, Class, ClassMaterial, Enrollment, EnrollmentRequest
from LearningCenterApp.core.choices import AttendanceStatus, EnrollmentRequestStatus
from LearningCenterApp.core.exceptions import (
    ClassFullError, DuplicateRequestError, InvalidTransitionError
)
from LearningCenterApp.domain.services import class_service
from LearningCenterApp.notifications.models import Notification

pytestmark = pytest.mark.django_db

SCHEDULE = "Mondays and Wednesdays, 6:00 PM - 8:00 PM"


# ---------- Class CRUD ----------

def test_teacher_creates_own_class(teacher):
    klass = class_service.create_class(teacher, {"name": "Math", "schedule": SCHEDULE})
    assert klass.teacher == teacher


def test_student_cannot_create_class(student):
    with pytest.raises(PermissionDenied):
        class_service.create_class(student, {"name": "Math"})


def test_admin_must_name_a_teacher(admin, teacher, student):
    with pytest.raises(ValidationError):
        class_service.create_class(admin, {"name": "Math"})
    with pytest.raises(ValidationError):
        class_service.create_class(admin, {"name": "Math"}, teacher=student)
    assert class_service.create_class(admin, {"name": "Math"}, teacher=teacher).teacher == teacher


def test_unparseable_schedule_is_rejected_on_write(teacher, klass):
    with pytest.raises(ValidationError):
        class_service.create_class(teacher, {"name": "Art", "schedule": "sometimes"})
    with pytest.raises(ValidationError):
        class_service.update_class(teacher, klass, {"schedule": "Mondays, 9:00 PM - 8:00 PM"})


def test_blank_schedule_is_allowed(teacher):
    assert class_service.create_class(teacher, {"name": "Self-paced", "schedule": ""}).schedule == ""


def test_inverted_date_range_rejected(teacher, klass):
    with pytest.raises(ValidationError):
        class_service.update_class(teacher, klass, {"start_date": date(2024, 2, 1), "end_date": date(2024, 1, 1)})


def test_only_owner_or_admin_updates_and_deletes(klass, other_teacher, admin):
    with pytest.raises(PermissionDenied):
        class_service.update_class(other_teacher, klass, {"name": "Hijacked"})
    with pytest.raises(PermissionDenied):
        class_service.delete_class(other_teacher, klass)
    class_service.delete_class(admin, klass)
    assert not Class.objects.filter(pk=klass.pk).exists()


def test_visible_classes_by_role(klass, teacher, other_teacher, admin, student, enrolled):
    other = baker.make("classes.Class", teacher=other_teacher, tags=["math"])
    assert set(class_service.visible_classes(admin)) == {klass, other}
    assert list(class_service.visible_classes(teacher)) == [klass]
    assert list(class_service.visible_classes(student)) == [klass]
    assert list(class_service.available_classes(student)) == [other]


def test_visible_classes_search_and_tag(klass, other_teacher, admin):
    baker.make("classes.Class", name="Algebra", teacher=other_teacher, tags=["Math"])
    assert [c.name for c in class_service.visible_classes(admin, search="english")] == ["Evening English"]
    assert [c.name for c in class_service.visible_classes(admin, tag="math")] == ["Algebra"]
    assert class_service.visible_classes(admin, tag="nope") == []


# ---------- Direct enrollment ----------

def test_enroll_student_and_duplicate(klass, teacher, student):
    class_service.enroll_student(teacher, klass, student)
    with pytest.raises(DuplicateRequestError):
        class_service.enroll_student(teacher, klass, student)


def test_enroll_rejects_non_student_and_other_teacher(klass, teacher, other_teacher, student):
    with pytest.raises(ValidationError):
        class_service.enroll_student(teacher, klass, other_teacher)
    with pytest.raises(PermissionDenied):
        class_service.enroll_student(other_teacher, klass, student)


def test_enroll_respects_capacity(teacher, student, other_student):
    klass = baker.make("classes.Class", teacher=teacher, max_students=1)
    class_service.enroll_student(teacher, klass, student)
    with pytest.raises(ClassFullError):
        class_service.enroll_student(teacher, klass, other_student)


def test_student_can_unenroll_self_but_not_others(klass, student, other_student, enrolled):
    baker.make("classes.Enrollment", klass=klass, student=other_student)
    with pytest.raises(PermissionDenied):
        class_service.unenroll_student(student, klass, other_student)
    class_service.unenroll_student(student, klass, student)
    assert not Enrollment.objects.filter(klass=klass, student=student).exists()
    with pytest.raises(NotFound):
        class_service.unenroll_student(student, klass, student)


# ---------- Enrollment requests ----------

def test_request_then_approve_creates_enrollment(klass, teacher, student):
    req = class_service.request_enrollment(student, klass, "please")
    assert req.status == EnrollmentRequestStatus.PENDING

    req = class_service.approve_request(teacher, req)
    assert req.status == EnrollmentRequestStatus.APPROVED
    assert req.responded_by == teacher
    assert req.responded_at is not None
    assert Enrollment.objects.filter(klass=klass, student=student).count() == 1
    assert Notification.objects.filter(user=student, title="Enrollment approved").exists()


def test_reject_stores_reason(klass, teacher, student):
    req = class_service.request_enrollment(student, klass)
    req = class_service.reject_request(teacher, req, "Class is for advanced learners")
    assert req.status == EnrollmentRequestStatus.REJECTED
    assert req.response_message == "Class is for advanced learners"
    assert not Enrollment.objects.filter(klass=klass, student=student).exists()


def test_duplicate_pending_or_approved_request(klass, teacher, student):
    req = class_service.request_enrollment(student, klass)
    with pytest.raises(DuplicateRequestError):
        class_service.request_enrollment(student, klass)
    class_service.approve_request(teacher, req)
    with pytest.raises(DuplicateRequestError):
        class_service.request_enrollment(student, klass)


def test_rejected_request_does_not_block_new_one(klass, teacher, student):
    class_service.reject_request(teacher, class_service.request_enrollment(student, klass))
    again = class_service.request_enrollment(student, klass, "second try")
    assert again.status == EnrollmentRequestStatus.PENDING
    assert EnrollmentRequest.objects.filter(klass=klass, student=student).count() == 2


def test_only_students_request(klass, teacher):
    with pytest.raises(PermissionDenied):
        class_service.request_enrollment(teacher, klass)


def test_only_owning_teacher_transitions(klass, other_teacher, admin, student):
    req = class_service.request_enrollment(student, klass)
    for actor in (other_teacher, admin, student):
        with pytest.raises(PermissionDenied):
            class_service.approve_request(actor, req)
        with pytest.raises(PermissionDenied):
            class_service.reject_request(actor, req)
    req.refresh_from_db()
    assert req.status == EnrollmentRequestStatus.PENDING


def test_terminal_states_are_final(klass, teacher, student):
    req = class_service.approve_request(teacher, class_service.request_enrollment(student, klass))
    with pytest.raises(InvalidTransitionError):
        class_service.reject_request(teacher, req)
    with pytest.raises(InvalidTransitionError):
        class_service.approve_request(teacher, req)


def test_approve_into_full_class(teacher, student, other_student):
    klass = baker.make("classes.Class", teacher=teacher, max_students=1)
    class_service.enroll_student(teacher, klass, other_student)
    req = class_service.request_enrollment(student, klass)
    with pytest.raises(ClassFullError):
        class_service.approve_request(teacher, req)
    req.refresh_from_db()
    assert req.status == EnrollmentRequestStatus.PENDING


# ---------- Attendance ----------

@pytest.fixture
def dated_class(klass):
    klass.start_date, klass.end_date = date(2024, 1, 1), date(2024, 1, 31)
    klass.save()
    return klass


def test_mark_attendance_upserts(dated_class, teacher, student, enrolled):
    class_service.mark_attendance(teacher, dated_class, student, date(2024, 1, 3), AttendanceStatus.PRESENT)
    class_service.mark_attendance(teacher, dated_class, student, date(2024, 1, 3), AttendanceStatus.ABSENT)
    [record] = Attendance.objects.filter(klass=dated_class, student=student)
    assert record.status == AttendanceStatus.ABSENT


@pytest.mark.parametrize("on_date", [date(2024, 1, 2), date(2023, 12, 25), date(2024, 2, 5)])
def test_attendance_only_on_class_days_in_range(dated_class, teacher, student, enrolled, on_date):
    with pytest.raises(ValidationError):
        class_service.mark_attendance(teacher, dated_class, student, on_date, AttendanceStatus.PRESENT)


def test_attendance_any_day_when_schedule_does_not_parse(dated_class, teacher, student, enrolled):
    Class.objects.filter(pk=dated_class.pk).update(schedule="by arrangement")
    dated_class.refresh_from_db()
    record = class_service.mark_attendance(teacher, dated_class, student, date(2024, 1, 2), AttendanceStatus.PRESENT)
    assert record.pk


def test_attendance_rules_on_actor_and_student(dated_class, admin, teacher, other_student):
    with pytest.raises(PermissionDenied):
        class_service.mark_attendance(admin, dated_class, other_student, date(2024, 1, 3), AttendanceStatus.PRESENT)
    with pytest.raises(ValidationError):
        class_service.mark_attendance(teacher, dated_class, other_student, date(2024, 1, 3), AttendanceStatus.PRESENT)


# ---------- Materials ----------

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n"


def pdf(name="week1.pdf"):
    return SimpleUploadedFile(name, PDF_BYTES, content_type="application/pdf")


def test_owner_uploads_material(media_root, klass, teacher):
    material = class_service.upload_material(teacher, klass, pdf(), description="Reading for week 1")
    assert material.name == "week1.pdf"
    assert material.file_type == "PDF"
    assert material.file_size == len(PDF_BYTES)
    assert material.uploaded_by == teacher


@pytest.mark.parametrize("who", ["admin", "other_teacher", "student"])
def test_only_owner_uploads_material(media_root, request, klass, enrolled, who):
    with pytest.raises(PermissionDenied):
        class_service.upload_material(request.getfixturevalue(who), klass, pdf())
    assert not ClassMaterial.objects.exists()


def test_members_list_materials_newest_first(media_root, klass, teacher, admin, student, other_student, enrolled):
    first = class_service.upload_material(teacher, klass, pdf("a.pdf"))
    second = class_service.upload_material(teacher, klass, pdf("b.pdf"), name="Week 2")
    for actor in (teacher, admin, student):
        assert list(class_service.class_materials(actor, klass)) == [second, first]
    with pytest.raises(PermissionDenied):
        class_service.class_materials(other_student, klass)


def test_only_owner_deletes_material(media_root, klass, teacher, admin, enrolled, student):
    material = class_service.upload_material(teacher, klass, pdf())
    for actor in (admin, student):
        with pytest.raises(PermissionDenied):
            class_service.delete_material(actor, material)
    class_service.delete_material(teacher, material)
    assert not ClassMaterial.objects.filter(pk=material.pk).exists()
