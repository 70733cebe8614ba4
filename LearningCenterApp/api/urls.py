from django.urls import path, include
from rest_framework_nested import routers
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from LearningCenterApp.api.views import (
    MeView,
    UserViewSet,
    TeacherViewSet,
    StudentViewSet,
    ClassViewSet,
    EnrollmentRequestViewSet,
    AssignmentViewSet,
    AssignmentFileView,
    SubmissionFileView,
    SubmissionViewSet,
    MeetingViewSet,
    NotificationViewSet,
)

router = routers.SimpleRouter()
router.register(r"users", UserViewSet, basename="user")
router.register(r"teachers", TeacherViewSet, basename="teacher")
router.register(r"students", StudentViewSet, basename="student")
router.register(r"classes", ClassViewSet, basename="class")
router.register(r"assignments", AssignmentViewSet, basename="assignment")
router.register(r"submissions", SubmissionViewSet, basename="submission")
router.register(r"meetings", MeetingViewSet, basename="meeting")
router.register(r"notifications", NotificationViewSet, basename="notification")

classes_router = routers.NestedSimpleRouter(router, r"classes", lookup="class")
classes_router.register(r"enrollment-requests", EnrollmentRequestViewSet, basename="class-enrollment-requests")

urlpatterns = [
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="docs"),
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("auth/me/", MeView.as_view(), name="auth-me"),
    path("assignment-files/", AssignmentFileView.as_view(), name="assignment-files"),
    path("submission-files/", SubmissionFileView.as_view(), name="submission-files"),
    path("", include(router.urls)),
    path("", include(classes_router.urls)),
]
