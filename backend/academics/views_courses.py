"""College, course, branch and academic year viewsets.

Includes:
  - CollegeViewSet
  - CourseViewSet (nested branches at /courses/<id>/branches, /courses/options)
  - AcademicYearViewSet

Name changes and deletes go through `cascades.py` so student rows are updated
in the same transaction. DELETE accepts `?cascade=true&hard=true`.
"""

from __future__ import annotations

import logging

from django.db.models import Prefetch, ProtectedError
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from . import cascades
from .exceptions import ConflictError, NotFoundError
from .models import AcademicYear, Branch, College, Course
from .serializers_courses import (
    AcademicYearSerializer, BranchSerializer, CollegeSerializer, CourseSerializer,
)
from .structure import build_stage_structure

logger = logging.getLogger(__name__)


def _flag(request, name):
    return str(request.query_params.get(name, '')).strip().lower() in ('1', 'true', 'yes')


class IsAcademicManager(permissions.BasePermission):
    """Anyone signed in may read; admin / staff (academic_management group) may write."""

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        if user.is_staff or user.is_superuser:
            return True
        return user.groups.filter(name__iexact="academic_management").exists()


class CollegeViewSet(viewsets.ModelViewSet):
    queryset = College.objects.all().select_related("updated_by")
    serializer_class = CollegeSerializer
    permission_classes = [IsAcademicManager]

    def get_queryset(self):
        qs = super().get_queryset()
        if not _flag(self.request, "include_inactive") and self.action == "list":
            qs = qs.filter(is_active=True)
        return qs

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        college, _ = cascades.save_college(serializer.validated_data, user=request.user)
        return Response(self.get_serializer(college).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        college, updated = cascades.save_college(serializer.validated_data, instance=instance, user=request.user)
        return Response({**self.get_serializer(college).data, "studentsUpdated": updated})

    def destroy(self, request, *args, **kwargs):
        result = cascades.delete_college(
            self.get_object(), cascade=_flag(request, "cascade"), hard=_flag(request, "hard"), user=request.user,
        )
        return Response({"success": True, **result})


class CourseViewSet(viewsets.ModelViewSet):
    queryset = Course.objects.all().select_related("college", "updated_by").prefetch_related(
        Prefetch("branches", queryset=Branch.objects.select_related("academic_year", "updated_by"))
    )
    serializer_class = CourseSerializer
    permission_classes = [IsAcademicManager]

    def get_queryset(self):
        qs = super().get_queryset()
        college_id = self.request.query_params.get("college_id")
        if college_id:
            qs = qs.filter(college_id=college_id)
        if not _flag(self.request, "include_inactive") and self.action in ("list", "course_options"):
            qs = qs.filter(is_active=True)
        return qs

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        course, _ = cascades.save_course(serializer.validated_data, user=request.user)
        return Response(self.get_serializer(course).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        course, updated = cascades.save_course(serializer.validated_data, instance=instance, user=request.user)
        course = self.get_queryset().get(pk=course.pk)
        return Response({**self.get_serializer(course).data, "studentsUpdated": updated})

    def destroy(self, request, *args, **kwargs):
        result = cascades.delete_course(
            self.get_object(), cascade=_flag(request, "cascade"), hard=_flag(request, "hard"), user=request.user,
        )
        return Response({"success": True, **result})

    @action(detail=False, methods=["get"], url_path="options")
    def course_options(self, request):
        """Active courses with their active branches and computed stage structures."""
        data = []
        for course in self.get_queryset():
            data.append({
                "id": course.id,
                "name": course.name,
                "code": course.code,
                "collegeId": course.college_id,
                "structure": build_stage_structure(course).as_dict(),
                "branches": [
                    {
                        "id": b.id,
                        "name": b.name,
                        "code": b.code,
                        "academicYearId": b.academic_year_id,
                        "structure": build_stage_structure(course, b).as_dict(),
                    }
                    for b in course.branches.all() if b.is_active
                ],
            })
        return Response({"success": True, "data": data})

    # -- nested branches -------------------------------------------------

    def _branch(self, course, branch_id):
        branch = Branch.objects.select_related("course", "academic_year").filter(course=course, pk=branch_id).first()
        if branch is None:
            raise NotFoundError(f"Branch {branch_id} not found under course '{course.name}'")
        return branch

    @action(detail=True, methods=["get", "post"], url_path="branches")
    def branches(self, request, pk=None):
        course = self.get_object()
        if request.method == "GET":
            qs = Branch.objects.filter(course=course).select_related("course", "academic_year", "updated_by")
            academic_year_id = request.query_params.get("academic_year_id")
            if academic_year_id:
                qs = qs.filter(academic_year_id=academic_year_id) | qs.filter(academic_year__isnull=True)
            if not _flag(request, "include_inactive"):
                qs = qs.filter(is_active=True)
            return Response(BranchSerializer(qs.order_by("name", "id"), many=True).data)

        serializer = BranchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        branch, upgraded = cascades.create_branch(course, serializer.validated_data, user=request.user)
        return Response(
            {**BranchSerializer(branch).data, "upgraded": upgraded},
            status=status.HTTP_200_OK if upgraded else status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["get", "put", "patch", "delete"], url_path=r"branches/(?P<branch_id>[^/.]+)")
    def branch_detail(self, request, pk=None, branch_id=None):
        course = self.get_object()
        branch = self._branch(course, branch_id)
        if request.method == "GET":
            return Response(BranchSerializer(branch).data)
        if request.method == "DELETE":
            result = cascades.delete_branch(
                branch, cascade=_flag(request, "cascade"), hard=_flag(request, "hard"), user=request.user,
            )
            return Response({"success": True, **result})

        serializer = BranchSerializer(branch, data=request.data, partial=request.method == "PATCH")
        serializer.is_valid(raise_exception=True)
        branch, updated = cascades.update_branch(branch, serializer.validated_data, user=request.user)
        return Response({**BranchSerializer(branch).data, "studentsUpdated": updated})


class AcademicYearViewSet(viewsets.ModelViewSet):
    queryset = AcademicYear.objects.all()
    serializer_class = AcademicYearSerializer
    permission_classes = [IsAcademicManager]

    def perform_destroy(self, instance):
        try:
            instance.delete()
        except ProtectedError as exc:
            raise ConflictError(
                f"Academic year '{instance.year_label}' is still used by branches.",
                blockers={"branches": len(exc.protected_objects)},
            )


__all__ = ['CollegeViewSet', 'CourseViewSet', 'AcademicYearViewSet', 'IsAcademicManager']
