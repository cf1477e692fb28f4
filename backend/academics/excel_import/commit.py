"""Bulk upload commit: insert approved rows with per-row partial success.

Each row is written inside its own savepoint, so one failing row never rolls
back rows already inserted. Uniqueness of the admission number is checked
against the live table at commit time; the preview classification is only a
hint.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from rest_framework.exceptions import PermissionDenied

from ..domain_logs import AuditLog
from ..domain_structure import MAX_SEMESTERS_PER_YEAR, MAX_YEARS, College
from ..domain_students import Student
from ..exceptions import BulkUploadError, NotFoundError
from ..scoping import UserScope, scope_predicate
from ..structure import to_int
from .aliases import FIELD_LABELS
from .helpers import normalize_name, parse_excel_date
from .preview import load_preview
from .validator import REQUIRED_FIELDS

logger = logging.getLogger(__name__)

NOT_APPROVED = 'Row was not approved in preview'

_DATE_FIELDS = ('dob', 'admission_date')
_STUDENT_FIELDS = frozenset(
    f.name for f in Student._meta.concrete_fields
    if f.name not in ('id', 'created_at', 'updated_at')
)
_MAX_LENGTHS = {
    f.name: f.max_length for f in Student._meta.concrete_fields
    if f.name in _STUDENT_FIELDS and f.max_length
}
_STAGE_LIMITS = {'current_year': MAX_YEARS, 'current_semester': MAX_SEMESTERS_PER_YEAR}


class RowFailure(Exception):
    """A single row cannot be inserted; carries the messages for the report."""

    def __init__(self, *errors):
        super().__init__('; '.join(errors))
        self.errors = list(errors)


def _student_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    fields = {k: v for k, v in data.items() if k in _STUDENT_FIELDS}
    for name in _DATE_FIELDS:
        value = fields.get(name)
        if value:
            try:
                fields[name] = parse_excel_date(value)
            except ValueError:
                raise RowFailure(f"Invalid {FIELD_LABELS[name]} '{value}'")
    for name, limit in _STAGE_LIMITS.items():
        raw = fields.get(name)
        number = 1 if raw in (None, '') else to_int(raw)
        if number is None or not 1 <= number <= limit:
            raise RowFailure(f"Invalid {FIELD_LABELS[name]} '{fields.get(name)}'")
        fields[name] = number
    for name, limit in _MAX_LENGTHS.items():
        value = fields.get(name)
        if isinstance(value, str) and len(value) > limit:
            raise RowFailure(f"{FIELD_LABELS.get(name, name)} is longer than {limit} characters")
    if not fields.get('student_status'):
        fields.pop('student_status', None)
    return fields


def _check_required(data: Dict[str, Any], auto_generate: bool) -> None:
    missing = [
        FIELD_LABELS[name] for name in REQUIRED_FIELDS
        if not data.get(name) and not (name == 'admission_number' and auto_generate)
    ]
    if missing:
        raise RowFailure(*[f"Missing required field: {label}" for label in missing])


class BulkCommit:
    """One commit request. Use `run()` once."""

    def __init__(
        self,
        records: Iterable[Dict[str, Any]],
        *,
        user=None,
        scope: UserScope,
        college_id=None,
        preview_token: Optional[str] = None,
        auto_generate: bool = False,
        prefix: Optional[str] = None,
    ):
        self.records = list(records or [])
        self.user = user
        self.scope = scope
        self.in_scope = scope_predicate(scope)
        self.prefix = prefix or getattr(settings, 'ADMISSION_NUMBER_PREFIX', 'ADM')
        self.approved = None
        self.auto_generate = auto_generate
        if preview_token:
            cached = load_preview(preview_token)
            if cached is None:
                raise BulkUploadError('Preview not found or expired; upload the file again.')
            owner = cached.get('userId')
            if owner is not None and getattr(user, 'pk', None) != owner:
                raise PermissionDenied('This preview was created by another user.')
            self.approved = cached['records']
            self.auto_generate = cached.get('autoGenerate', False)
            if college_id in (None, ''):
                college_id = cached.get('collegeId')
        self.college = None
        if college_id not in (None, ''):
            self.college = College.objects.filter(pk=to_int(college_id)).first()
            if self.college is None:
                raise NotFoundError(f"College {college_id} not found")

        self.failures: List[dict] = []
        self.created: List[dict] = []

    def _row_data(self, record: Dict[str, Any]) -> Dict[str, Any]:
        if self.approved is None:
            data = dict(record.get('sanitizedData') or {})
            _check_required(data, self.auto_generate)
            return data
        approved = self.approved.get(to_int(record.get('rowNumber')))
        if approved is None:
            raise RowFailure(NOT_APPROVED)
        return dict(approved)

    def _insert(self, data: Dict[str, Any]) -> Student:
        if self.college is not None and normalize_name(data.get('college')) != normalize_name(self.college.name):
            raise RowFailure(f"College '{data.get('college')}' does not match the selected college '{self.college.name}'")
        if not self.in_scope(data):
            raise RowFailure('Row is outside your access scope')
        fields = _student_fields(data)
        with transaction.atomic():
            number = fields.get('admission_number')
            if not number:
                if not self.auto_generate:
                    raise RowFailure(f"Missing required field: {FIELD_LABELS['admission_number']}")
                number = fields['admission_number'] = Student.next_admission_number(self.prefix)
            if Student.objects.filter(admission_number=number).exists():
                raise RowFailure(f"Duplicate admission number '{number}' already exists")
            return Student.objects.create(**fields)

    def run(self) -> dict:
        for record in self.records:
            row_number = record.get('rowNumber')
            admission_number = (record.get('sanitizedData') or {}).get('admission_number')
            try:
                data = self._row_data(record)
                admission_number = data.get('admission_number') or admission_number
                student = self._insert(data)
            except RowFailure as exc:
                self._fail(row_number, admission_number, exc.errors)
            except IntegrityError as exc:
                # lost a race with a concurrent insert of the same number
                logger.info('Integrity error on bulk row %s: %s', row_number, exc)
                self._fail(row_number, admission_number, [f"Duplicate key or constraint violation: {exc}"])
            except DatabaseError as exc:
                logger.warning('Database error on bulk row %s: %s', row_number, exc)
                self._fail(row_number, admission_number, [f"Database rejected the row: {exc}"])
            except (ValidationError, ValueError, TypeError, ArithmeticError) as exc:
                self._fail(row_number, admission_number, [str(exc)])
            else:
                self.created.append({
                    'rowNumber': row_number,
                    'admissionNumber': student.admission_number,
                    'id': student.id,
                })

        result = {
            'successCount': len(self.created),
            'skippedCount': len(self.failures),
            'details': {'failures': self.failures, 'created': self.created},
        }
        AuditLog.record(
            'BULK_UPLOAD', 'student',
            user=self.user,
            details={
                'collegeId': self.college.id if self.college else None,
                'successCount': result['successCount'],
                'skippedCount': result['skippedCount'],
                'previewToken': self.approved is not None,
            },
        )
        logger.info('Bulk commit: %s inserted, %s skipped', result['successCount'], result['skippedCount'])
        return result

    def _fail(self, row_number, admission_number, errors) -> None:
        self.failures.append({
            'rowNumber': row_number,
            'admissionNumber': admission_number,
            'errors': list(errors),
        })


def commit_records(records, *, user=None, scope: UserScope, college_id=None, preview_token=None,
                   auto_generate=False, prefix=None) -> dict:
    return BulkCommit(
        records,
        user=user,
        scope=scope,
        college_id=college_id,
        preview_token=preview_token,
        auto_generate=auto_generate,
        prefix=prefix,
    ).run()
