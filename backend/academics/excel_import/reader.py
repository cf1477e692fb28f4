"""Read an uploaded CSV/XLSX/XLS file into numbered raw rows.

Any problem with the file as a whole (type, size, parse failure, no data) is
fatal for the request and raised as a BulkUploadError subclass.
"""
from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from ..exceptions import BulkUploadError, UnsupportedUploadError, UploadTooLargeError
from .helpers import clean_cell

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = ('.xlsx', '.xls')
CSV_EXTENSIONS = ('.csv',)
EXCEL_CONTENT_TYPES = (
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'application/vnd.ms-excel',
)
CSV_CONTENT_TYPES = ('text/csv', 'application/csv', 'text/plain', 'application/vnd.ms-excel')


@dataclass
class RawRow:
    row_number: int
    data: Dict[str, Optional[str]]

    def is_blank(self) -> bool:
        return all(v is None for v in self.data.values())


@dataclass
class ParsedUpload:
    headers: List[str]
    rows: List[RawRow] = field(default_factory=list)
    sheet: Optional[str] = None


def detect_kind(filename: str, content_type: Optional[str] = None) -> str:
    ext = os.path.splitext((filename or '').lower())[1]
    if ext in EXCEL_EXTENSIONS:
        return 'excel'
    if ext in CSV_EXTENSIONS:
        return 'csv'
    ctype = (content_type or '').split(';')[0].strip().lower()
    if ctype in EXCEL_CONTENT_TYPES[:1]:
        return 'excel'
    if ctype in ('text/csv', 'application/csv'):
        return 'csv'
    raise UnsupportedUploadError()


def _read_csv(content: bytes) -> pd.DataFrame:
    for encoding in ('utf-8-sig', 'latin-1'):
        try:
            return pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, encoding=encoding)
        except UnicodeDecodeError:
            continue
    raise BulkUploadError('Unable to decode CSV file; save it as UTF-8 and retry.')


def _read_excel(content: bytes, preferred_sheet: Optional[str]):
    sheets = pd.read_excel(io.BytesIO(content), sheet_name=None, dtype=str)
    if not sheets:
        raise BulkUploadError('No sheets found in workbook')
    if preferred_sheet and preferred_sheet in sheets:
        return preferred_sheet, sheets[preferred_sheet]
    return next(iter(sheets.items()))


def read_upload(
    content: bytes,
    filename: str,
    content_type: Optional[str] = None,
    max_bytes: Optional[int] = None,
    preferred_sheet: Optional[str] = None,
) -> ParsedUpload:
    """Parse file bytes into rows numbered from 1 (header row excluded).

    Entirely blank rows are skipped but keep their position in the numbering,
    so row numbers always point at the same line of the source sheet.
    """
    if max_bytes is not None and len(content) > max_bytes:
        raise UploadTooLargeError(f"File too large (> {max_bytes // (1024 * 1024)}MB)")
    kind = detect_kind(filename, content_type)
    if not content:
        raise BulkUploadError('The uploaded file is empty.')

    sheet = None
    try:
        if kind == 'excel':
            sheet, df = _read_excel(content, preferred_sheet)
        else:
            df = _read_csv(content)
    except BulkUploadError:
        raise
    except Exception as exc:
        # pandas/openpyxl raise a wide range of parser errors for corrupt files
        logger.warning('Unreadable upload %s: %s', filename, exc)
        raise BulkUploadError(f"Error reading file: {exc}") from exc

    headers = [str(c).strip() for c in df.columns]
    df.columns = headers
    rows = []
    for position, record in enumerate(df.to_dict(orient='records'), start=1):
        row = RawRow(row_number=position, data={h: clean_cell(record.get(h)) for h in headers})
        if not row.is_blank():
            rows.append(row)
    if not rows:
        raise BulkUploadError('The uploaded file contains no data rows.')
    logger.debug('Parsed %s data rows from %s', len(rows), filename)
    return ParsedUpload(headers=headers, rows=rows, sheet=sheet)
