"""Bulk student upload endpoints.

  POST /students/bulk-upload/preview   multipart: file, formId, collegeId, autoGenerateAdmission
  POST /students/bulk-upload/commit    JSON: records, collegeId, previewToken
  GET  /students/bulk-upload/template  .xlsx template built from the header aliases
  GET  /submissions/template/<formId>/metadata

Errors are always JSON; file-level problems surface as BulkUploadError
subclasses and never as an HTML error page.
"""
import logging
from io import BytesIO

import pandas as pd
from django.http import HttpResponse
from django.utils import timezone
from rest_framework.authentication import BasicAuthentication, SessionAuthentication
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.authentication import JWTAuthentication

from .excel_import.aliases import template_headers
from .excel_import.commit import commit_records
from .excel_import.preview import discard_preview, preview_upload
from .models import Course, Branch
from .scoping import scope_from_request
from .serializers_students import BulkCommitRequestSerializer, BulkPreviewRequestSerializer

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class _CsrfExemptSessionAuthentication(SessionAuthentication):
    def enforce_csrf(self, request):  # pragma: no cover (behavioral override)
        return  # Disable CSRF for token-based clients


class _BulkView(APIView):
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication, _CsrfExemptSessionAuthentication, BasicAuthentication]


class BulkUploadPreviewView(_BulkView):
    """Validate an uploaded sheet without writing anything.

    A preview where every row is invalid is still a 200; only problems with
    the file itself are errors.
    """
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        serializer = BulkPreviewRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data
        upload = params["file"]
        preview = preview_upload(
            upload.read(),
            upload.name,
            getattr(upload, "content_type", None),
            form_id=params.get("formId"),
            college_id=params.get("collegeId"),
            auto_generate=params.get("autoGenerateAdmission", False),
            user=request.user,
        )
        return Response({"success": True, "data": preview})


class BulkUploadCommitView(_BulkView):
    """Insert the approved rows; one bad row never aborts the others."""
    parser_classes = [JSONParser]

    def post(self, request):
        serializer = BulkCommitRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data
        token = params.get("previewToken") or None
        result = commit_records(
            params["records"],
            user=request.user,
            scope=scope_from_request(request),
            college_id=params.get("collegeId"),
            preview_token=token,
            auto_generate=params.get("autoGenerateAdmission", False),
        )
        if token:
            # a preview is committed at most once
            discard_preview(token)
        return Response({"success": True, **result})


def course_options(scope=None, college_id=None):
    """Active courses with their active branches, limited to `scope` when given."""
    qs = Course.objects.filter(is_active=True).select_related("college").order_by("name")
    if college_id:
        qs = qs.filter(college_id=college_id)
    branches = {}
    for branch in Branch.objects.filter(is_active=True, course__in=qs).order_by("name", "id"):
        names = branches.setdefault(branch.course_id, {})
        # generic and year-bound rows share a name; list it once
        names.setdefault(branch.name.casefold(), {"id": branch.id, "name": branch.name})
    options = []
    for course in qs:
        if scope is not None and not (scope.allows_college(course.college.name) and scope.allows_course(course.name)):
            continue
        options.append({
            "id": course.id,
            "name": course.name,
            "branches": [
                b for b in branches.get(course.id, {}).values()
                if scope is None or scope.allows_branch(b["name"])
            ],
        })
    return options


class BulkUploadTemplateView(_BulkView):
    def get(self, request):
        headers = template_headers()
        df = pd.DataFrame(columns=headers)
        options = [
            {"Course": opt["name"], "Branch": b["name"]}
            for opt in course_options(scope_from_request(request), request.query_params.get("collegeId"))
            for b in opt["branches"]
        ]
        output = BytesIO()
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Students")
            pd.DataFrame(options, columns=["Course", "Branch"]).to_excel(writer, index=False, sheet_name="Options")
        output.seek(0)
        filename = f"template_students_{timezone.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
        resp = HttpResponse(output.getvalue(), content_type=XLSX_CONTENT_TYPE)
        resp["Content-Disposition"] = f'attachment; filename="{filename}"'
        return resp


class SubmissionTemplateMetadataView(_BulkView):
    def get(self, request, form_id=None):
        options = course_options(scope_from_request(request), request.query_params.get("collegeId"))
        return Response({"success": True, "formId": form_id, "courseOptions": options})


__all__ = [
    'BulkUploadPreviewView', 'BulkUploadCommitView', 'BulkUploadTemplateView',
    'SubmissionTemplateMetadataView', 'course_options',
]
