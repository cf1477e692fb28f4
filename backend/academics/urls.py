"""
File: backend/academics/urls.py
API routing configuration.
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .views_bulk import (
    BulkUploadPreviewView, BulkUploadCommitView, BulkUploadTemplateView, SubmissionTemplateMetadataView,
)
from .views_courses import CollegeViewSet, CourseViewSet, AcademicYearViewSet
from .views_students import StudentViewSet, StudentStatsView

router = DefaultRouter()
router.trailing_slash = '/?'
router.register(r'colleges', CollegeViewSet, basename='college')
router.register(r'courses', CourseViewSet, basename='course')
router.register(r'academic-years', AcademicYearViewSet, basename='academic-year')
router.register(r'students', StudentViewSet, basename='student')

urlpatterns = [
    # JWT
    path('token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # bulk upload and stats must resolve before /students/<admission_number>
    path('students/bulk-upload/preview', BulkUploadPreviewView.as_view(), name='student-bulk-preview'),
    path('students/bulk-upload/commit', BulkUploadCommitView.as_view(), name='student-bulk-commit'),
    path('students/bulk-upload/template', BulkUploadTemplateView.as_view(), name='student-bulk-template'),
    path('students/stats', StudentStatsView.as_view(), name='student-stats'),
    path('submissions/template/<str:form_id>/metadata', SubmissionTemplateMetadataView.as_view(),
         name='submission-template-metadata'),

    path('', include(router.urls)),
]
