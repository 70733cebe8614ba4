"""REST API views for users, classes, enrollments, assignments, submissions, meetings and notifications."""

from datetime import date, timedelta

from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from django.utils import timezone

from rest_framework import serializers, status, mixins, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiResponse,
    OpenApiParameter,
)

from LearningCenterApp.api.mixins import PaginationMixin
from LearningCenterApp.api.throttles import SubmissionRateThrottle
from LearningCenterApp.classes.models import Class
from LearningCenterApp.core.access import is_admin
from LearningCenterApp.core.choices import UserRole
from LearningCenterApp.core.permissions import (
    IsAdmin,
    IsAdminOrSelf,
    IsClassManager,
    IsMeetingParticipant,
    IsTeacherOrAdmin,
    SubmissionParticipant,
)
from LearningCenterApp.domain.services import (
    class_service,
    learning_service,
    meeting_service,
    notification_service,
    user_service,
)
from LearningCenterApp.learning.models import Assignment, Submission
from LearningCenterApp.scheduling.models import Meeting
from LearningCenterApp.scheduling.sessions import class_sessions
from LearningCenterApp.api.serializers import (
    UserSerializer,
    UserAdminSerializer,
    UserWriteSerializer,
    ClassReadSerializer,
    ClassWriteSerializer,
    AdminClassCreateSerializer,
    EnrollmentSerializer,
    StudentIdSerializer,
    EnrollmentRequestSerializer,
    EnrollmentRequestCreateSerializer,
    EnrollmentResponseSerializer,
    AttendanceSerializer,
    AttendanceWriteSerializer,
    ClassMaterialSerializer,
    MaterialUploadSerializer,
    ClassSessionSerializer,
    DateRangeSerializer,
    AssignmentReadSerializer,
    AssignmentWriteSerializer,
    AssignmentCreateSerializer,
    TeacherAssignmentSerializer,
    StudentAssignmentSerializer,
    AssignmentFileSerializer,
    AssignmentFileUploadSerializer,
    SubmissionFileSerializer,
    SubmissionFileUploadSerializer,
    SubmissionReadSerializer,
    SubmitSerializer,
    GradeSerializer,
    MeetingReadSerializer,
    MeetingWriteSerializer,
    MeetingParticipantSerializer,
    CalendarEntrySerializer,
    NotificationSerializer,
    validate_date_span,
)

AUTH_RESPONSES = {
    401: OpenApiResponse(description="Authentication required."),
    403: OpenApiResponse(description="Forbidden"),
    404: OpenApiResponse(description="Not Found"),
}

VALIDATION_RESPONSE = {
    400: OpenApiResponse(description="Validation failed."),
}

CONFLICT_RESPONSE = {
    409: OpenApiResponse(description="Conflicts with the current state."),
}

CALENDAR_WINDOW = timedelta(days=30)

User = get_user_model()


def _query_int(request: Request, name: str) -> int | None:
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError({name: ["A valid integer is required."]})


def _query_date(request: Request, name: str) -> date | None:
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        return serializers.DateField().to_internal_value(raw)
    except ValidationError as exc:
        raise ValidationError({name: exc.detail})


def _date_range(request: Request):
    ser = DateRangeSerializer(data=request.query_params)
    ser.is_valid(raise_exception=True)
    return ser.validated_data.get("start"), ser.validated_data.get("end")


# ---------- Auth ----------
@extend_schema(tags=["Auth"], responses={200: UserSerializer, **AUTH_RESPONSES})
class MeView(APIView):
    """The authenticated user's own profile."""

    def get(self, request: Request) -> Response:
        return Response(UserSerializer(request.user).data)


# ---------- Users ----------
@extend_schema_view(
    list=extend_schema(tags=["Users"], responses={200: UserSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Users"], responses={200: UserSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Users"],
        request=UserWriteSerializer,
        responses={201: UserSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE, **CONFLICT_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin"]}},
    ),
    update=extend_schema(
        tags=["Users"],
        request=UserWriteSerializer,
        responses={200: UserSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE, **CONFLICT_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin"], "ownership": "self"}},
    ),
    partial_update=extend_schema(
        tags=["Users"],
        request=UserWriteSerializer,
        responses={200: UserSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE, **CONFLICT_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin"], "ownership": "self"}},
    ),
    destroy=extend_schema(
        tags=["Users"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin"]}},
    ),
)
class UserViewSet(PaginationMixin, viewsets.ModelViewSet):
    """User administration; non-admins can only read and edit themselves."""
    serializer_class = UserSerializer

    def get_permissions(self) -> list:
        if self.action in ("list", "create", "admin", "destroy"):
            return [IsAuthenticated(), IsAdmin()]
        return [IsAuthenticated(), IsAdminOrSelf()]

    def get_queryset(self):
        user = self.request.user
        qs = User.objects.order_by("name", "id")
        return qs if is_admin(user) else qs.filter(pk=user.pk)

    def list(self, request: Request, *args, **kwargs) -> Response:
        qs = self.get_queryset()
        role = request.query_params.get("role")
        if role:
            qs = qs.filter(role=role)
        return self.paginate_and_respond(qs, UserSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = UserWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = user_service.create_user(request.user, ser.validated_data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        target = self.get_object()
        ser = UserWriteSerializer(data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        user = user_service.update_user(request.user, target, ser.validated_data)
        return Response(UserSerializer(user).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        target = get_object_or_404(User, pk=kwargs["pk"])
        user_service.delete_user(request.user, target)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Users"], responses={200: UserAdminSerializer(many=True), **AUTH_RESPONSES})
    @action(detail=False, methods=["get"], url_path="admin")
    def admin(self, request: Request) -> Response:
        """All users, newest first, with account metadata."""
        qs = User.objects.order_by("-date_joined", "-id")
        return self.paginate_and_respond(qs, UserAdminSerializer)


class _RoleDirectoryViewSet(PaginationMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    role: str = ""
    serializer_class = UserSerializer

    def get_queryset(self):
        return user_service.users_with_role(self.role)

    @extend_schema(responses={200: ClassReadSerializer(many=True), **AUTH_RESPONSES})
    @action(detail=True, methods=["get"], url_path="classes")
    def classes(self, request: Request, pk: int | None = None) -> Response:
        """Classes taught by (teachers) or enrolled in by (students) this user; admin or self."""
        person = self.get_object()
        if not (is_admin(request.user) or request.user.pk == person.pk):
            raise PermissionDenied("You can only view your own classes")
        if self.role == UserRole.STUDENT:
            qs = Class.objects.where_enrolled(person)
        else:
            qs = Class.objects.for_teacher(person)
        qs = qs.with_student_count().select_related("teacher").order_by("start_date", "id")
        return self.paginate_and_respond(qs, ClassReadSerializer)


@extend_schema_view(list=extend_schema(tags=["Users"], responses={200: UserSerializer(many=True), **AUTH_RESPONSES}))
@extend_schema(tags=["Users"])
class TeacherViewSet(_RoleDirectoryViewSet):
    """Teachers directory."""
    role = UserRole.TEACHER


@extend_schema_view(
    list=extend_schema(
        tags=["Users"],
        parameters=[OpenApiParameter("class_id", int, OpenApiParameter.QUERY, required=False)],
        responses={200: UserSerializer(many=True), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["admin", "teacher"]}},
    )
)
@extend_schema(tags=["Users"])
class StudentViewSet(_RoleDirectoryViewSet):
    """Students directory for admins and teachers."""
    role = UserRole.STUDENT

    def list(self, request: Request, *args, **kwargs) -> Response:
        qs = user_service.students(request.user, class_id=_query_int(request, "class_id"))
        return self.paginate_and_respond(qs, UserSerializer)


# ---------- Classes ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Classes"],
        parameters=[
            OpenApiParameter("search", str, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("tag", str, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("available", bool, OpenApiParameter.QUERY, required=False,
                             description="Students: classes not joined yet."),
        ],
        responses={200: ClassReadSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Classes"], responses={200: ClassReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Classes"],
        request=ClassWriteSerializer,
        responses={201: ClassReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner-on-create"}},
    ),
    update=extend_schema(
        tags=["Classes"],
        request=ClassWriteSerializer,
        responses={200: ClassReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "owner"}},
    ),
    partial_update=extend_schema(
        tags=["Classes"],
        request=ClassWriteSerializer,
        responses={200: ClassReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "owner"}},
    ),
    destroy=extend_schema(
        tags=["Classes"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "owner"}},
    ),
)
class ClassViewSet(PaginationMixin, viewsets.ModelViewSet):
    """Class CRUD, roster, sessions and attendance."""
    serializer_class = ClassWriteSerializer
    permission_classes = [IsAuthenticated, IsClassManager]

    def get_serializer_class(self):
        if self.action in ("list", "retrieve"):
            return ClassReadSerializer
        return ClassWriteSerializer

    def get_queryset(self):
        """Return class queryset filtered by visibility."""
        return Class.objects.visible_to(self.request.user).with_student_count().select_related("teacher")

    def list(self, request: Request, *args, **kwargs) -> Response:
        params = request.query_params
        search = params.get("search")
        if params.get("available", "").lower() in ("1", "true", "yes"):
            if request.user.role != UserRole.STUDENT:
                raise PermissionDenied("Only students browse available classes")
            qs = class_service.available_classes(request.user, search=search)
        else:
            qs = class_service.visible_classes(request.user, search=search, tag=params.get("tag"))
        return self.paginate_and_respond(qs, ClassReadSerializer)

    def _read(self, klass: Class, code: int = status.HTTP_200_OK) -> Response:
        return Response(ClassReadSerializer(klass, context={"request": self.request}).data, status=code)

    def create(self, request: Request, *args, **kwargs) -> Response:
        """Teachers create classes they own."""
        if request.user.role != UserRole.TEACHER:
            raise PermissionDenied("Teacher role required; admins use admin-create")
        ser = ClassWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        klass = class_service.create_class(request.user, ser.validated_data)
        return self._read(klass, status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        klass = self.get_object()
        ser = ClassWriteSerializer(klass, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        klass = class_service.update_class(request.user, klass, ser.validated_data)
        return self._read(klass)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        class_service.delete_class(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        tags=["Classes"],
        request=AdminClassCreateSerializer,
        responses={201: ClassReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin"]}},
    )
    @action(detail=False, methods=["post"], url_path="admin-create", permission_classes=[IsAuthenticated, IsAdmin])
    def admin_create(self, request: Request) -> Response:
        """Create a class on behalf of a teacher."""
        ser = AdminClassCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        teacher = get_object_or_404(User, pk=data.pop("teacher_id"))
        klass = class_service.create_class(request.user, data, teacher=teacher)
        return self._read(klass, status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Enrollments"],
        methods=["GET"],
        responses={200: EnrollmentSerializer(many=True), **AUTH_RESPONSES},
    )
    @extend_schema(
        tags=["Enrollments"],
        methods=["POST"],
        request=StudentIdSerializer,
        responses={201: EnrollmentSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE, **CONFLICT_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin", "teacher"], "ownership": "owner"}},
    )
    @extend_schema(
        tags=["Enrollments"],
        methods=["DELETE"],
        parameters=[OpenApiParameter("student_id", int, OpenApiParameter.QUERY)],
        responses={204: OpenApiResponse(description="Removed"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["admin", "teacher"], "ownership": "owner"}},
    )
    @action(detail=True, methods=["get", "post", "delete"], url_path="enrollments")
    def enrollments(self, request: Request, pk: int | None = None) -> Response:
        """Roster of a class: list, enroll directly, or remove (?student_id=)."""
        klass = self.get_object()
        if request.method == "GET":
            return self.paginate_and_respond(class_service.class_students(request.user, klass), EnrollmentSerializer)
        if request.method == "POST":
            ser = StudentIdSerializer(data=request.data)
            ser.is_valid(raise_exception=True)
            student = get_object_or_404(User, pk=ser.validated_data["student_id"])
            enrollment = class_service.enroll_student(request.user, klass, student)
            return Response(EnrollmentSerializer(enrollment).data, status=status.HTTP_201_CREATED)
        student_id = _query_int(request, "student_id")
        if student_id is None:
            raise ValidationError({"student_id": ["This query parameter is required."]})
        student = get_object_or_404(User, pk=student_id)
        class_service.unenroll_student(request.user, klass, student)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        tags=["Enrollments"],
        request=StudentIdSerializer,
        responses={204: OpenApiResponse(description="Removed"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["admin", "teacher", "student"], "ownership": "owner-or-self"}},
    )
    @action(detail=True, methods=["post"], url_path="unenroll", permission_classes=[IsAuthenticated])
    def unenroll(self, request: Request, pk: int | None = None) -> Response:
        klass = self.get_object()
        ser = StudentIdSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        student = get_object_or_404(User, pk=ser.validated_data["student_id"])
        class_service.unenroll_student(request.user, klass, student)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        tags=["Classes"],
        parameters=[
            OpenApiParameter("start", str, OpenApiParameter.QUERY, required=False, description="YYYY-MM-DD"),
            OpenApiParameter("end", str, OpenApiParameter.QUERY, required=False, description="YYYY-MM-DD"),
        ],
        responses={200: ClassSessionSerializer(many=True), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    )
    @action(detail=True, methods=["get"], url_path="sessions")
    def sessions(self, request: Request, pk: int | None = None) -> Response:
        """Concrete occurrences of the class's recurring schedule."""
        klass = self.get_object()
        start, end = _date_range(request)
        return Response(ClassSessionSerializer(class_sessions(klass, start, end), many=True).data)

    @extend_schema(
        tags=["Attendance"],
        methods=["GET"],
        parameters=[OpenApiParameter("date", str, OpenApiParameter.QUERY, required=False)],
        responses={200: AttendanceSerializer(many=True), **AUTH_RESPONSES},
    )
    @extend_schema(
        tags=["Attendance"],
        methods=["POST"],
        request=AttendanceWriteSerializer,
        responses={200: AttendanceSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner"}},
    )
    @action(detail=True, methods=["get", "post"], url_path="attendance")
    def attendance(self, request: Request, pk: int | None = None) -> Response:
        klass = self.get_object()
        if request.method == "GET":
            records = class_service.class_attendance(request.user, klass, _query_date(request, "date"))
            return self.paginate_and_respond(records, AttendanceSerializer)
        ser = AttendanceWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        student = get_object_or_404(User, pk=ser.validated_data["student_id"])
        record = class_service.mark_attendance(
            request.user, klass, student, ser.validated_data["date"], ser.validated_data["status"]
        )
        return Response(AttendanceSerializer(record).data)

    @extend_schema(
        tags=["Materials"],
        methods=["GET"],
        responses={200: ClassMaterialSerializer(many=True), **AUTH_RESPONSES},
    )
    @extend_schema(
        tags=["Materials"],
        methods=["POST"],
        request={"multipart/form-data": MaterialUploadSerializer},
        responses={201: ClassMaterialSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner"}},
    )
    @extend_schema(
        tags=["Materials"],
        methods=["DELETE"],
        parameters=[OpenApiParameter("material_id", int, OpenApiParameter.QUERY)],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner"}},
    )
    @action(detail=True, methods=["get", "post", "delete"], url_path="materials",
            parser_classes=[MultiPartParser, FormParser])
    def materials(self, request: Request, pk: int | None = None) -> Response:
        """Reading documents on the class page: list, upload, or delete (?material_id=)."""
        klass = self.get_object()
        if request.method == "GET":
            return self.paginate_and_respond(class_service.class_materials(request.user, klass), ClassMaterialSerializer)
        if request.method == "POST":
            ser = MaterialUploadSerializer(data=request.data)
            ser.is_valid(raise_exception=True)
            material = class_service.upload_material(
                request.user,
                klass,
                ser.validated_data["file"],
                name=ser.validated_data["name"],
                description=ser.validated_data["description"],
            )
            return Response(
                ClassMaterialSerializer(material, context={"request": request}).data, status=status.HTTP_201_CREATED
            )
        material_id = _query_int(request, "material_id")
        if material_id is None:
            raise ValidationError({"material_id": ["This query parameter is required."]})
        class_service.delete_material(request.user, get_object_or_404(klass.materials, pk=material_id))
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------- Enrollment requests ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Enrollment requests"],
        parameters=[OpenApiParameter("status", str, OpenApiParameter.QUERY, required=False)],
        responses={200: EnrollmentRequestSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Enrollment requests"], responses={200: EnrollmentRequestSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Enrollment requests"],
        request=EnrollmentRequestCreateSerializer,
        description="Request to join a class. Optional `message` may be provided.",
        responses={201: EnrollmentRequestSerializer, **AUTH_RESPONSES, **CONFLICT_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    ),
)
@extend_schema(parameters=[OpenApiParameter("class_pk", int, OpenApiParameter.PATH)])
class EnrollmentRequestViewSet(
    PaginationMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """Student requests to join a class and the teacher's answers."""
    serializer_class = EnrollmentRequestSerializer
    permission_classes = [IsAuthenticated]

    def _class(self) -> Class:
        if not hasattr(self, "_resolved_class"):
            self._resolved_class = get_object_or_404(Class.objects.select_related("teacher"), pk=self.kwargs["class_pk"])
        return self._resolved_class

    def get_queryset(self):
        return class_service.list_requests(self.request.user, self._class())

    def list(self, request: Request, *args, **kwargs) -> Response:
        qs = class_service.list_requests(request.user, self._class(), status=request.query_params.get("status"))
        return self.paginate_and_respond(qs, EnrollmentRequestSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = EnrollmentRequestCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        req = class_service.request_enrollment(request.user, self._class(), ser.validated_data["message"])
        return Response(EnrollmentRequestSerializer(req).data, status=status.HTTP_201_CREATED)

    def _respond(self, request: Request, transition) -> Response:
        req = get_object_or_404(self._class().enrollment_requests, pk=self.kwargs["pk"])
        ser = EnrollmentResponseSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        req = transition(request.user, req, ser.validated_data["message"])
        return Response(EnrollmentRequestSerializer(req).data)

    @extend_schema(
        tags=["Enrollment requests"],
        request=EnrollmentResponseSerializer,
        responses={200: EnrollmentRequestSerializer, **AUTH_RESPONSES, **CONFLICT_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner"}},
    )
    @action(detail=True, methods=["post"])
    def approve(self, request: Request, class_pk: int | None = None, pk: int | None = None) -> Response:
        """Approve a pending request and enroll the student."""
        return self._respond(request, class_service.approve_request)

    @extend_schema(
        tags=["Enrollment requests"],
        request=EnrollmentResponseSerializer,
        responses={200: EnrollmentRequestSerializer, **AUTH_RESPONSES, **CONFLICT_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner"}},
    )
    @action(detail=True, methods=["post"])
    def reject(self, request: Request, class_pk: int | None = None, pk: int | None = None) -> Response:
        """Reject a pending request; `message` is stored as the reason."""
        return self._respond(request, class_service.reject_request)


# ---------- Assignments ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Assignments"],
        parameters=[OpenApiParameter("class_id", int, OpenApiParameter.QUERY, required=False)],
        description="Students get each assignment with their submission and derived status.",
        responses={200: AssignmentReadSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Assignments"], responses={200: AssignmentReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Assignments"],
        request=AssignmentCreateSerializer,
        responses={201: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "class-owner"}},
    ),
    update=extend_schema(
        tags=["Assignments"],
        request=AssignmentWriteSerializer,
        responses={200: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "class-owner"}},
    ),
    partial_update=extend_schema(
        tags=["Assignments"],
        request=AssignmentWriteSerializer,
        responses={200: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "class-owner"}},
    ),
    destroy=extend_schema(
        tags=["Assignments"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "class-owner"}},
    ),
)
class AssignmentViewSet(PaginationMixin, viewsets.ModelViewSet):
    """Assignment CRUD, submission and the grading queue."""
    serializer_class = AssignmentReadSerializer
    permission_classes = [IsAuthenticated, IsClassManager]
    throttle_classes: list[type] = []

    def get_throttles(self):
        """Apply rate throttle only on submit."""
        if self.action == "submit":
            self.throttle_classes = [SubmissionRateThrottle]
        return super().get_throttles()

    def get_serializer_class(self):
        if self.action == "create":
            return AssignmentCreateSerializer
        if self.action in ("update", "partial_update"):
            return AssignmentWriteSerializer
        return AssignmentReadSerializer

    def get_queryset(self):
        return (
            Assignment.objects.visible_to(self.request.user)
            .select_related("klass", "teacher")
            .prefetch_related("files")
            .order_by("due_date", "id")
        )

    def list(self, request: Request, *args, **kwargs) -> Response:
        """Role-shaped listing: progress for students, counters for teachers."""
        user = request.user
        class_id = _query_int(request, "class_id")
        if user.role == UserRole.STUDENT:
            rows = learning_service.list_student_assignments(user)
            if class_id is not None:
                rows = [row for row in rows if row.assignment.klass_id == class_id]
            return self.paginate_and_respond(rows, StudentAssignmentSerializer)
        if user.role == UserRole.TEACHER:
            qs, serializer_cls = learning_service.list_teacher_assignments(user), TeacherAssignmentSerializer
        else:
            qs, serializer_cls = self.get_queryset(), AssignmentReadSerializer
        if class_id is not None:
            qs = qs.filter(klass_id=class_id)
        return self.paginate_and_respond(qs, serializer_cls)

    def _create_from(self, request: Request) -> Response:
        ser = AssignmentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        klass = get_object_or_404(Class, pk=data.pop("class_id"))
        assignment = learning_service.create_assignment(request.user, klass, data)
        return Response(AssignmentReadSerializer(assignment).data, status=status.HTTP_201_CREATED)

    def create(self, request: Request, *args, **kwargs) -> Response:
        return self._create_from(request)

    def update(self, request: Request, *args, **kwargs) -> Response:
        assignment = self.get_object()
        ser = AssignmentWriteSerializer(assignment, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        assignment = learning_service.update_assignment(request.user, assignment, ser.validated_data)
        return Response(AssignmentReadSerializer(assignment).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        learning_service.delete_assignment(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Assignments"], methods=["GET"], responses={200: AssignmentReadSerializer(many=True), **AUTH_RESPONSES})
    @extend_schema(
        tags=["Assignments"],
        methods=["POST"],
        request=AssignmentCreateSerializer,
        responses={201: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    )
    @extend_schema(
        tags=["Assignments"],
        methods=["DELETE"],
        parameters=[OpenApiParameter("id", int, OpenApiParameter.QUERY)],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
    )
    @action(detail=False, methods=["get", "post", "delete"], url_path="admin", permission_classes=[IsAuthenticated, IsAdmin])
    def admin(self, request: Request) -> Response:
        """Admin console: every assignment, create in any class, delete by ?id=."""
        if request.method == "GET":
            return self.paginate_and_respond(self.get_queryset(), AssignmentReadSerializer)
        if request.method == "POST":
            return self._create_from(request)
        assignment_id = _query_int(request, "id")
        if assignment_id is None:
            raise ValidationError({"id": ["This query parameter is required."]})
        learning_service.delete_assignment(request.user, get_object_or_404(Assignment, pk=assignment_id))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        tags=["Submissions"],
        request=SubmitSerializer,
        description="Submit or resubmit work. Rate-limited per user; resubmitting clears an earlier grade.",
        responses={
            200: SubmissionReadSerializer,
            429: OpenApiResponse(description="Too many requests / throttled."),
            **AUTH_RESPONSES,
        },
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "enrolled"}},
    )
    @action(detail=True, methods=["post"], permission_classes=[IsAuthenticated])
    def submit(self, request: Request, pk: int | None = None) -> Response:
        assignment = self.get_object()
        ser = SubmitSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        submission = learning_service.submit(
            request.user,
            assignment,
            content=ser.validated_data["content"],
            notes=ser.validated_data["notes"],
        )
        return Response(SubmissionReadSerializer(submission).data)

    @extend_schema(tags=["Submissions"], responses={200: SubmissionReadSerializer(many=True), **AUTH_RESPONSES})
    @action(detail=True, methods=["get"])
    def submissions(self, request: Request, pk: int | None = None) -> Response:
        """All submissions for this assignment (class teacher or admin)."""
        qs = learning_service.assignment_submissions(request.user, self.get_object())
        return self.paginate_and_respond(qs.prefetch_related("files"), SubmissionReadSerializer)

    @extend_schema(tags=["Submissions"], responses={200: SubmissionReadSerializer(many=True), **AUTH_RESPONSES})
    @action(detail=False, methods=["get"], url_path="to-grade")
    def to_grade(self, request: Request) -> Response:
        """Submitted, ungraded work on the caller's assignments."""
        if request.user.role != UserRole.TEACHER:
            raise PermissionDenied("Teacher role required")
        qs = learning_service.list_submissions_to_grade(request.user)
        return self.paginate_and_respond(qs.prefetch_related("files"), SubmissionReadSerializer)


# ---------- Files ----------
@extend_schema(
    tags=["Files"],
    request={"multipart/form-data": AssignmentFileUploadSerializer},
    responses={201: AssignmentFileSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
)
class AssignmentFileView(APIView):
    """Attach a reference file to an assignment."""
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request: Request) -> Response:
        ser = AssignmentFileUploadSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        assignment = get_object_or_404(Assignment.objects.select_related("klass"), pk=ser.validated_data["assignment_id"])
        attachment = learning_service.attach_assignment_file(request.user, assignment, ser.validated_data["file"])
        return Response(AssignmentFileSerializer(attachment).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=["Files"],
    request={"multipart/form-data": SubmissionFileUploadSerializer},
    responses={201: SubmissionFileSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
)
class SubmissionFileView(APIView):
    """Attach a file to the caller's own submission."""
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request: Request) -> Response:
        ser = SubmissionFileUploadSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        submission = get_object_or_404(Submission, pk=ser.validated_data["submission_id"])
        attachment = learning_service.attach_submission_file(request.user, submission, ser.validated_data["file"])
        return Response(SubmissionFileSerializer(attachment).data, status=status.HTTP_201_CREATED)


# ---------- Submissions ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Submissions"],
        parameters=[OpenApiParameter("assignment_id", int, OpenApiParameter.QUERY, required=False)],
        responses={200: SubmissionReadSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Submissions"], responses={200: SubmissionReadSerializer, **AUTH_RESPONSES}),
)
class SubmissionViewSet(
    PaginationMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Role-scoped submission retrieval and grading."""
    serializer_class = SubmissionReadSerializer
    permission_classes = [IsAuthenticated, SubmissionParticipant]

    def get_queryset(self):
        qs = (
            Submission.objects.visible_to(self.request.user)
            .select_related("assignment__klass", "student")
            .prefetch_related("files")
            .order_by("-submitted_at", "-id")
        )
        assignment_id = _query_int(self.request, "assignment_id")
        if assignment_id is not None:
            qs = qs.filter(assignment_id=assignment_id)
        return qs

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), SubmissionReadSerializer)

    @extend_schema(
        tags=["Grades"],
        request=GradeSerializer,
        responses={200: SubmissionReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"], "ownership": "class-owner"}},
    )
    @action(detail=False, methods=["post"], url_path="grade")
    def grade(self, request: Request) -> Response:
        """Grade a submission (class teacher or admin)."""
        ser = GradeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        submission = get_object_or_404(
            Submission.objects.select_related("assignment__klass"), pk=ser.validated_data["submission_id"]
        )
        graded = learning_service.grade_submission(
            request.user,
            submission,
            ser.validated_data["grade"],
            ser.validated_data["feedback"],
        )
        return Response(SubmissionReadSerializer(graded).data)


# ---------- Meetings ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Meetings"],
        parameters=[OpenApiParameter("scope", str, OpenApiParameter.QUERY, required=False,
                                     enum=["upcoming", "past", "available"])],
        responses={200: MeetingReadSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Meetings"], responses={200: MeetingReadSerializer, **AUTH_RESPONSES}),
)
class MeetingViewSet(PaginationMixin, mixins.RetrieveModelMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    """One-on-one and group meetings plus the merged calendar."""
    serializer_class = MeetingReadSerializer
    permission_classes = [IsAuthenticated, IsMeetingParticipant]
    queryset = Meeting.objects.select_related("teacher", "student", "klass").with_participant_count()

    SCOPES = {
        "upcoming": meeting_service.upcoming_meetings,
        "past": meeting_service.past_meetings,
        "available": meeting_service.available_meetings,
    }

    def list(self, request: Request, *args, **kwargs) -> Response:
        scope = request.query_params.get("scope", "upcoming")
        if scope not in self.SCOPES:
            raise ValidationError({"scope": [f"Expected one of: {', '.join(self.SCOPES)}"]})
        return self.paginate_and_respond(self.SCOPES[scope](request.user), MeetingReadSerializer)

    @extend_schema(
        tags=["Meetings"],
        request=MeetingWriteSerializer,
        responses={201: MeetingReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher", "admin"]}},
    )
    @action(detail=False, methods=["post"], url_path="create", permission_classes=[IsAuthenticated, IsTeacherOrAdmin])
    def schedule(self, request: Request) -> Response:
        ser = MeetingWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        class_id = data.pop("class_id", None)
        student_id = data.pop("student_id", None)
        teacher_id = data.pop("teacher_id", None)
        data["klass"] = get_object_or_404(Class, pk=class_id) if class_id else None
        data["student"] = get_object_or_404(User, pk=student_id) if student_id else None
        if teacher_id:
            data["teacher"] = get_object_or_404(User, pk=teacher_id)
        meeting = meeting_service.schedule_meeting(request.user, data)
        return Response(MeetingReadSerializer(meeting).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Meetings"],
        parameters=[
            OpenApiParameter("start", str, OpenApiParameter.QUERY, required=False, description="YYYY-MM-DD, default today"),
            OpenApiParameter("end", str, OpenApiParameter.QUERY, required=False, description="YYYY-MM-DD, default start + 30 days"),
        ],
        responses={200: CalendarEntrySerializer(many=True), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    )
    @action(detail=False, methods=["get"], permission_classes=[IsAuthenticated])
    def calendar(self, request: Request) -> Response:
        """Stored meetings merged with class sessions derived from schedules."""
        start, end = _date_range(request)
        start = start or timezone.localdate()
        end = end or start + CALENDAR_WINDOW
        validate_date_span(start, end)
        entries = meeting_service.calendar(request.user, start, end)
        return Response(CalendarEntrySerializer(entries, many=True).data)

    @extend_schema(tags=["Meetings"], request=None, responses={200: MeetingReadSerializer, **AUTH_RESPONSES, **CONFLICT_RESPONSE})
    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: int | None = None) -> Response:
        meeting = meeting_service.cancel_meeting(request.user, self.get_object())
        return Response(MeetingReadSerializer(meeting).data)

    @extend_schema(tags=["Meetings"], request=None, responses={200: MeetingParticipantSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE})
    @action(detail=True, methods=["post"], permission_classes=[IsAuthenticated])
    def join(self, request: Request, pk: int | None = None) -> Response:
        """Join an open group meeting; repeating the call is harmless."""
        participant = meeting_service.join_meeting(request.user, self.get_object())
        return Response(MeetingParticipantSerializer(participant).data)


# ---------- Notifications ----------
@extend_schema_view(
    list=extend_schema(tags=["Notifications"], responses={200: NotificationSerializer(many=True), **AUTH_RESPONSES}),
)
class NotificationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """The caller's 50 most recent notifications and read markers."""
    serializer_class = NotificationSerializer
    pagination_class = None
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        return notification_service.list_notifications(self.request.user)

    @extend_schema(tags=["Notifications"], responses={200: OpenApiResponse(description='{"count": int}')})
    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request: Request) -> Response:
        return Response({"count": notification_service.unread_count(request.user)})

    @extend_schema(tags=["Notifications"], request=None, responses={200: NotificationSerializer, **AUTH_RESPONSES})
    @action(detail=True, methods=["post"])
    def read(self, request: Request, pk: int | None = None) -> Response:
        notification = notification_service.mark_read(request.user, int(pk))
        return Response(NotificationSerializer(notification).data)

    @extend_schema(tags=["Notifications"], request=None, responses={200: OpenApiResponse(description='{"updated": int}')})
    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request: Request) -> Response:
        return Response({"updated": notification_service.mark_all_read(request.user)})
