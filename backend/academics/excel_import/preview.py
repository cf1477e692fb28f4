"""Bulk upload preview: file -> classified rows, no database writes.

`build_preview` is a pure function of the parsed upload, the academic snapshot
and the set of existing admission numbers. `preview_upload` gathers those
inputs from the database and caches the result under an opaque token so the
commit step can apply exactly the rows that were validated.
"""
from __future__ import annotations

import logging
import uuid
from typing import Iterable, Optional

from django.conf import settings
from django.core.cache import cache

from ..domain_students import Student
from ..exceptions import NotFoundError
from .aliases import build_header_map
from .reader import ParsedUpload, read_upload
from .validator import AcademicSnapshot, RowValidator

logger = logging.getLogger(__name__)

PREVIEW_CACHE_PREFIX = 'bulk-preview'


def _cache_key(token: str) -> str:
    return f"{PREVIEW_CACHE_PREFIX}:{token}"


def build_preview(
    parsed: ParsedUpload,
    snapshot: AcademicSnapshot,
    existing_admission_numbers: Iterable[str] = (),
    selected_college=None,
    auto_generate_admission: bool = False,
) -> dict:
    validator = RowValidator(
        snapshot,
        build_header_map(parsed.headers),
        selected_college=selected_college,
        existing_admission_numbers=existing_admission_numbers,
        auto_generate_admission=auto_generate_admission,
    )
    valid, invalid = [], []
    for result in validator.validate_all(parsed.rows):
        (valid if result.is_valid else invalid).append(result.to_record())
    return {
        'validRecords': valid,
        'invalidRecords': invalid,
        'summary': {
            'validCount': len(valid),
            'invalidCount': len(invalid),
            'totalRows': len(valid) + len(invalid),
        },
    }


def store_preview(preview: dict, *, form_id=None, college_id=None, auto_generate=False, user=None) -> str:
    token = uuid.uuid4().hex
    cache.set(_cache_key(token), {
        'formId': form_id,
        'collegeId': college_id,
        'autoGenerate': bool(auto_generate),
        'userId': getattr(user, 'pk', None),
        'records': {rec['rowNumber']: rec['sanitizedData'] for rec in preview['validRecords']},
    }, timeout=getattr(settings, 'BULK_PREVIEW_TTL', 3600))
    return token


def load_preview(token: str) -> Optional[dict]:
    if not token:
        return None
    return cache.get(_cache_key(token))


def discard_preview(token: str) -> None:
    cache.delete(_cache_key(token))


def preview_upload(
    content: bytes,
    filename: str,
    content_type: Optional[str] = None,
    *,
    form_id=None,
    college_id=None,
    auto_generate: bool = False,
    user=None,
) -> dict:
    """Parse, validate and cache one upload. Returns the preview payload with its token."""
    parsed = read_upload(
        content,
        filename,
        content_type=content_type,
        max_bytes=getattr(settings, 'BULK_UPLOAD_MAX_BYTES', None),
    )
    snapshot = AcademicSnapshot.load()
    selected_college = None
    if college_id not in (None, ''):
        selected_college = snapshot.college_by_id(college_id)
        if selected_college is None:
            raise NotFoundError(f"College {college_id} not found")

    existing = Student.objects.values_list('admission_number', flat=True)
    preview = build_preview(
        parsed,
        snapshot,
        existing_admission_numbers=existing,
        selected_college=selected_college,
        auto_generate_admission=auto_generate,
    )
    preview['previewToken'] = store_preview(
        preview,
        form_id=form_id,
        college_id=selected_college.id if selected_college else None,
        auto_generate=auto_generate,
        user=user,
    )
    summary = preview['summary']
    logger.info(
        'Bulk preview %s: %s valid, %s invalid (form=%s, college=%s)',
        filename, summary['validCount'], summary['invalidCount'], form_id, college_id,
    )
    return preview
