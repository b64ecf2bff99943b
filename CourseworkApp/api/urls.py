from django.urls import path, include
from rest_framework_nested import routers
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from CourseworkApp.api.views import (
    AssignmentViewSet,
    BootstrapView,
    CourseViewSet,
    InvitationViewSet,
    ProfileViewSet,
    QuestionViewSet,
    SubmissionViewSet,
)

router = routers.SimpleRouter()
router.register(r"profiles", ProfileViewSet, basename="profile")
router.register(r"invitations", InvitationViewSet, basename="invitation")
router.register(r"courses", CourseViewSet, basename="course")
router.register(r"questions", QuestionViewSet, basename="question")
router.register(r"submissions", SubmissionViewSet, basename="submission")

courses_router = routers.NestedSimpleRouter(router, r"courses", lookup="course")
courses_router.register(r"assignments", AssignmentViewSet, basename="course-assignments")

urlpatterns = [
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="docs"),
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("bootstrap/", BootstrapView.as_view(), name="bootstrap"),
    path("", include(router.urls)),
    path("", include(courses_router.urls)),
]
