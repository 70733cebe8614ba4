"""Serializers for users, classes, enrollments, assignments, submissions, meetings and notifications."""

from rest_framework import serializers
from django.conf import settings
from django.contrib.auth import get_user_model

from LearningCenterApp.classes.models import Class, ClassMaterial, Enrollment, EnrollmentRequest, Attendance
from LearningCenterApp.learning.models import Assignment, AssignmentFile, Submission, SubmissionFile
from LearningCenterApp.scheduling.models import Meeting, MeetingParticipant
from LearningCenterApp.notifications.models import Notification
from LearningCenterApp.core.choices import AttendanceStatus, MeetingType, UserRole
from LearningCenterApp.core.validators import validate_attachment_mime, validate_file_size, validate_material_file
from LearningCenterApp.domain.services.meeting_service import format_duration

User = get_user_model()


# ---------- Users ----------

class UserSerializer(serializers.ModelSerializer):
    """Public, safe representation of a user."""

    class Meta:
        model = User
        fields = ["id", "email", "name", "role", "avatar_url"]


class UserAdminSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "email", "name", "role", "avatar_url", "date_joined", "last_login", "is_active"]


class UserWriteSerializer(serializers.Serializer):
    """Create/update payload. Email uniqueness is checked by the user service (409)."""
    email = serializers.EmailField(max_length=150, help_text="Also stored as the username, so at most 150 characters.")
    name = serializers.CharField(max_length=150)
    role = serializers.ChoiceField(choices=UserRole.choices, required=False)
    avatar_url = serializers.URLField(required=False, allow_null=True, allow_blank=True)
    password = serializers.CharField(write_only=True, required=False, min_length=8,
                                     help_text="Password (write-only).")


# ---------- Classes ----------

class ClassWriteSerializer(serializers.ModelSerializer):
    """Serializer for creating/updating a class."""
    tags = serializers.ListField(child=serializers.CharField(max_length=50), required=False)

    class Meta:
        model = Class
        fields = [
            "name", "description", "schedule", "start_date", "end_date", "max_students",
            "tags", "learning_method", "meeting_url", "image",
        ]
        extra_kwargs = {
            "schedule": {"help_text": 'Recurring schedule, e.g. "Mondays and Wednesdays, 6:00 PM - 8:00 PM".'},
            "max_students": {"min_value": 1},
        }


class AdminClassCreateSerializer(ClassWriteSerializer):
    teacher_id = serializers.IntegerField(help_text="Owning teacher.")

    class Meta(ClassWriteSerializer.Meta):
        fields = ClassWriteSerializer.Meta.fields + ["teacher_id"]


class ClassReadSerializer(serializers.ModelSerializer):
    """Serializer for reading class details including teacher and headcount."""
    teacher = UserSerializer()
    total_students = serializers.SerializerMethodField()

    class Meta:
        model = Class
        fields = [
            "id", "name", "description", "teacher", "schedule", "start_date", "end_date",
            "max_students", "total_students", "tags", "learning_method", "meeting_url", "image",
            "created_at", "updated_at",
        ]

    def get_total_students(self, obj: Class) -> int:
        annotated = getattr(obj, "total_students", None)
        return annotated if annotated is not None else obj.enrollments.count()


class EnrollmentSerializer(serializers.ModelSerializer):
    student = UserSerializer(read_only=True)

    class Meta:
        model = Enrollment
        fields = ["id", "student", "enrolled_at"]


class StudentIdSerializer(serializers.Serializer):
    student_id = serializers.IntegerField()


class EnrollmentRequestSerializer(serializers.ModelSerializer):
    student = UserSerializer(read_only=True)
    responded_by = UserSerializer(read_only=True)
    class_id = serializers.IntegerField(source="klass_id", read_only=True)

    class Meta:
        model = EnrollmentRequest
        fields = [
            "id", "class_id", "student", "message", "status", "response_message",
            "requested_at", "responded_at", "responded_by",
        ]
        read_only_fields = ["status", "response_message", "requested_at", "responded_at"]


class EnrollmentRequestCreateSerializer(serializers.Serializer):
    message = serializers.CharField(required=False, allow_blank=True, default="")


class EnrollmentResponseSerializer(serializers.Serializer):
    """Approval note or rejection reason."""
    message = serializers.CharField(required=False, allow_blank=True, default="")


class AttendanceSerializer(serializers.ModelSerializer):
    student = UserSerializer(read_only=True)

    class Meta:
        model = Attendance
        fields = ["id", "student", "date", "status", "updated_at"]


class AttendanceWriteSerializer(serializers.Serializer):
    student_id = serializers.IntegerField()
    date = serializers.DateField()
    status = serializers.ChoiceField(choices=AttendanceStatus.choices)


class ClassMaterialSerializer(serializers.ModelSerializer):
    uploaded_by = UserSerializer(read_only=True)
    download_url = serializers.SerializerMethodField()

    class Meta:
        model = ClassMaterial
        fields = [
            "id", "name", "description", "file_type", "file_size", "uploaded_by", "uploaded_at", "download_url",
        ]
        read_only_fields = fields

    def get_download_url(self, obj: ClassMaterial) -> str:
        request = self.context.get("request")
        url = obj.file.url
        return request.build_absolute_uri(url) if request else url


class MaterialUploadSerializer(serializers.Serializer):
    file = serializers.FileField(help_text="PDF, DOC or DOCX.")
    name = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_file(self, file_obj):
        validate_file_size(file_obj)
        validate_material_file(file_obj)
        return file_obj


class ClassSessionSerializer(serializers.Serializer):
    """A derived, never stored, class occurrence."""
    key = serializers.CharField()
    class_id = serializers.IntegerField()
    class_name = serializers.CharField()
    teacher_id = serializers.IntegerField()
    teacher_name = serializers.CharField()
    starts_at = serializers.DateTimeField()
    ends_at = serializers.DateTimeField()
    meeting_url = serializers.CharField()


def validate_date_span(start, end) -> None:
    """`end` not before `start` and at most MAX_CALENDAR_DAYS after it."""
    if end < start:
        raise serializers.ValidationError("`end` must not be before `start`.")
    limit = settings.MAX_CALENDAR_DAYS
    if (end - start).days > limit:
        raise serializers.ValidationError(f"Date ranges are limited to {limit} days.")


class DateRangeSerializer(serializers.Serializer):
    start = serializers.DateField(required=False)
    end = serializers.DateField(required=False)

    def validate(self, data):
        if data.get("start") and data.get("end"):
            validate_date_span(data["start"], data["end"])
        return data


# ---------- Assignments ----------

class AssignmentWriteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Assignment
        fields = ["title", "description", "due_date", "points", "assignment_type"]
        extra_kwargs = {"points": {"min_value": 1}}


class AssignmentCreateSerializer(AssignmentWriteSerializer):
    class_id = serializers.IntegerField()

    class Meta(AssignmentWriteSerializer.Meta):
        fields = AssignmentWriteSerializer.Meta.fields + ["class_id"]


class AssignmentFileSerializer(serializers.ModelSerializer):
    class Meta:
        model = AssignmentFile
        fields = ["id", "assignment", "file", "file_name", "file_size", "file_type", "uploaded_at"]
        read_only_fields = fields


class AssignmentReadSerializer(serializers.ModelSerializer):
    class_id = serializers.IntegerField(source="klass_id", read_only=True)
    class_name = serializers.CharField(source="klass.name", read_only=True)
    teacher = UserSerializer(read_only=True)
    files = AssignmentFileSerializer(many=True, read_only=True)

    class Meta:
        model = Assignment
        fields = [
            "id", "title", "description", "class_id", "class_name", "teacher", "due_date",
            "points", "assignment_type", "files", "created_at", "updated_at",
        ]


class TeacherAssignmentSerializer(AssignmentReadSerializer):
    submission_count = serializers.IntegerField(read_only=True)
    graded_count = serializers.IntegerField(read_only=True)

    class Meta(AssignmentReadSerializer.Meta):
        fields = AssignmentReadSerializer.Meta.fields + ["submission_count", "graded_count"]


class FileUploadSerializer(serializers.Serializer):
    """Multipart upload; size and MIME type validated with libmagic."""
    file = serializers.FileField(help_text="File; size/type validated.")

    def validate_file(self, file_obj):
        validate_file_size(file_obj)
        validate_attachment_mime(file_obj)
        return file_obj


class AssignmentFileUploadSerializer(FileUploadSerializer):
    assignment_id = serializers.IntegerField()


class SubmissionFileUploadSerializer(FileUploadSerializer):
    submission_id = serializers.IntegerField()


# ---------- Submissions ----------

class SubmissionFileSerializer(serializers.ModelSerializer):
    class Meta:
        model = SubmissionFile
        fields = ["id", "submission", "file", "file_name", "file_size", "file_type", "uploaded_at"]
        read_only_fields = fields


class SubmissionMiniSerializer(serializers.ModelSerializer):
    """Compact submission representation attached to a student's assignment row."""

    class Meta:
        model = Submission
        fields = ["id", "status", "grade", "feedback", "submitted_at", "graded_at"]


class SubmissionReadSerializer(serializers.ModelSerializer):
    """Detailed submission view including student, grade and files."""
    student = UserSerializer(read_only=True)
    assignment_title = serializers.CharField(source="assignment.title", read_only=True)
    points = serializers.IntegerField(source="assignment.points", read_only=True)
    is_late = serializers.BooleanField(read_only=True)
    files = SubmissionFileSerializer(many=True, read_only=True)

    class Meta:
        model = Submission
        fields = [
            "id", "assignment", "assignment_title", "points", "student", "content", "notes",
            "status", "grade", "feedback", "submitted_at", "graded_at", "graded_by", "is_late",
            "files", "updated_at",
        ]


class SubmitSerializer(serializers.Serializer):
    content = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class GradeSerializer(serializers.Serializer):
    submission_id = serializers.IntegerField()
    grade = serializers.FloatField(help_text="0 to the assignment's points.")
    feedback = serializers.CharField(required=False, allow_blank=True, default="")


class StudentAssignmentSerializer(serializers.Serializer):
    """An assignment with the student's submission and derived progress."""
    assignment = AssignmentReadSerializer()
    submission = SubmissionMiniSerializer(allow_null=True)
    status = serializers.CharField(source="progress.status")
    is_late = serializers.BooleanField(source="progress.is_late")
    days_remaining = serializers.IntegerField(source="progress.days_remaining")


# ---------- Meetings ----------

class MeetingReadSerializer(serializers.ModelSerializer):
    teacher = UserSerializer(read_only=True)
    student = UserSerializer(read_only=True)
    class_id = serializers.IntegerField(source="klass_id", read_only=True)
    duration = serializers.SerializerMethodField()
    participant_count = serializers.SerializerMethodField()

    class Meta:
        model = Meeting
        fields = [
            "id", "title", "description", "type", "start_time", "end_time", "duration",
            "is_online", "meeting_link", "location", "status", "max_participants",
            "participant_count", "teacher", "student", "class_id", "created_at",
        ]

    def get_duration(self, obj: Meeting) -> str:
        return format_duration(obj.start_time, obj.end_time)

    def get_participant_count(self, obj: Meeting) -> int:
        annotated = getattr(obj, "participant_count", None)
        return annotated if annotated is not None else obj.participants.count()


class MeetingWriteSerializer(serializers.ModelSerializer):
    class_id = serializers.IntegerField(required=False, allow_null=True)
    student_id = serializers.IntegerField(required=False, allow_null=True)
    teacher_id = serializers.IntegerField(required=False, allow_null=True,
                                          help_text="Admins only; defaults to the caller.")

    class Meta:
        model = Meeting
        fields = [
            "title", "description", "type", "start_time", "end_time", "is_online",
            "meeting_link", "location", "max_participants", "class_id", "student_id", "teacher_id",
        ]

    def validate(self, data):
        if data.get("type", MeetingType.ONE_ON_ONE) == MeetingType.GROUP and data.get("student_id"):
            raise serializers.ValidationError("Group meetings cannot name a single student.")
        return super().validate(data)


class MeetingParticipantSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = MeetingParticipant
        fields = ["id", "meeting", "user", "joined_at"]


class CalendarEntrySerializer(serializers.Serializer):
    key = serializers.CharField()
    kind = serializers.CharField()
    title = serializers.CharField()
    starts_at = serializers.DateTimeField()
    ends_at = serializers.DateTimeField()
    meeting_id = serializers.IntegerField(allow_null=True)
    class_id = serializers.IntegerField(allow_null=True)
    is_online = serializers.BooleanField()
    meeting_url = serializers.CharField(allow_blank=True)


# ---------- Notifications ----------

class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ["id", "title", "message", "type", "is_read", "related_id", "created_at"]
        read_only_fields = fields
