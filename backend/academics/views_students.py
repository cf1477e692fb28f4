"""Scoped student read API.

Every queryset here is narrowed by the caller's UserScope before any other
filter, so a restricted user can never page or search past their scope.
"""
import logging

import pandas as pd
from django.db import connection, models
from django.db.models import Q, Value
from django.db.models.functions import Lower, Replace
from django.http import HttpResponse
from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Student
from .scoping import build_scope_conditions, scope_from_request, scope_q
from .serializers_students import StudentSerializer

logger = logging.getLogger(__name__)

_FILTERS = ("college", "course", "branch", "batch", "student_status", "current_year", "current_semester")


def _squash(field):
    """Lower-case a column and drop spaces, dashes, underscores and slashes."""
    expr = Lower(models.F(field))
    for ch in (' ', '-', '_', '/'):
        expr = Replace(expr, Value(ch), Value(''))
    return expr


class StudentViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Student.objects.all()
    serializer_class = StudentSerializer
    permission_classes = [IsAuthenticated]
    lookup_field = "admission_number"
    lookup_value_regex = r"[^/]+"

    def get_queryset(self):
        scope = scope_from_request(self.request)
        qs = super().get_queryset().filter(scope_q(scope))
        params = self.request.query_params
        for name in _FILTERS:
            value = params.get(name)
            if value not in (None, ""):
                qs = qs.filter(**{name: value.strip()})
        search = params.get("search", "").strip()
        if search:
            norm_q = ''.join(search.split()).lower().replace('-', '').replace('_', '').replace('/', '')
            qs = qs.annotate(
                n_adm=_squash("admission_number"), n_pin=_squash("pin_no"), n_name=_squash("student_name"),
            ).filter(
                Q(n_adm__contains=norm_q) | Q(n_pin__contains=norm_q) | Q(n_name__contains=norm_q)
                | Q(student_mobile__contains=search)
            )
        return qs.order_by("-created_at", "admission_number")

    def list(self, request, *args, **kwargs):
        queryset = self.get_queryset()
        try:
            limit = int(request.query_params.get("limit", 10))
            page = int(request.query_params.get("page", 1))
            if limit <= 0:
                limit = 10
            if page <= 0:
                page = 1
        except ValueError:
            limit = 10
            page = 1
        total = queryset.count()
        start = (page - 1) * limit
        page_items = queryset[start:start + limit]
        serializer = self.get_serializer(page_items, many=True)
        return Response({"items": serializer.data, "total": total})


def fetch_course_batch_counts(scope, batches=None, college=None):
    """Student counts grouped by (course, batch), restricted by `scope`."""
    conditions, params = build_scope_conditions(scope, alias="s")
    if batches:
        conditions.append(f"s.batch IN ({', '.join(['%s'] * len(batches))})")
        params.extend(batches)
    if college:
        conditions.append("s.college = %s")
        params.append(college)
    where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
    sql = (
        "SELECT s.course, s.batch, COUNT(*) AS total FROM students s"
        f"{where} GROUP BY s.course, s.batch ORDER BY s.course, s.batch"
    )
    with connection.cursor() as cursor:
        cursor.execute(sql, params)
        rows = cursor.fetchall()
    return [{"course": course, "batch": batch, "total": total} for course, batch, total in rows]


def pivot_course_batch(records):
    """Rows: course, columns: batch, plus a GRAND TOTAL row."""
    if not records:
        return pd.DataFrame(columns=["course"])
    df = pd.DataFrame(records)
    df["course"] = df["course"].fillna("Unknown Course")
    df["batch"] = df["batch"].fillna("Unknown")
    pivot = df.pivot_table(
        index="course",
        columns="batch",
        values="total",
        aggfunc="sum",
        fill_value=0,
    ).reset_index()
    pivot.columns.name = None
    numeric_cols = [c for c in pivot.columns if c != "course"]
    pivot[numeric_cols] = pivot[numeric_cols].astype(int)
    total_row = {"course": "GRAND TOTAL"}
    for col in numeric_cols:
        total_row[col] = int(pivot[col].sum())
    return pd.concat([pivot, pd.DataFrame([total_row])], ignore_index=True)


class StudentStatsView(APIView):
    """
    Student count by Course & Batch

    Rows  : course
    Cols  : batch
    Value : total students in the caller's scope
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        scope = scope_from_request(request)
        batches = [b.strip() for b in request.query_params.getlist("batch") if b.strip()]
        records = fetch_course_batch_counts(scope, batches=batches, college=request.query_params.get("college"))
        pivot = pivot_course_batch(records)

        if request.query_params.get("export") == "excel":
            response = HttpResponse(
                content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
            )
            response["Content-Disposition"] = 'attachment; filename="Students_By_Course_Batch.xlsx"'
            with pd.ExcelWriter(response, engine="openpyxl") as writer:
                pivot.to_excel(writer, index=False, sheet_name="Student Summary")
            return response

        return Response({
            "columns": [str(c) for c in pivot.columns],
            "data": pivot.to_dict(orient="records"),
        })


__all__ = ['StudentViewSet', 'StudentStatsView', 'fetch_course_batch_counts', 'pivot_course_batch']
