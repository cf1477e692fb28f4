"""Per-row validation of uploaded student data.

A row moves RAW -> NORMALIZED -> VALID | INVALID exactly once per preview.
Problems are collected as ValidationIssue values, never raised, so one pass
over a sheet reports everything that needs fixing.

Validation reads only an `AcademicSnapshot` taken before the run and the set
of admission numbers already in the database, which keeps a preview a pure
function of the file and those two inputs.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..domain_structure import AcademicYear, Branch, College, Course
from ..domain_students import Gender, StudentStatus
from ..structure import build_stage_structure, to_int
from .aliases import FIELD_LABELS
from .helpers import normalize_name, normalize_number_text, parse_excel_date
from .reader import RawRow

logger = logging.getLogger(__name__)

__all__ = [
    'IssueCode', 'ValidationIssue', 'RowResult', 'AcademicSnapshot', 'RowValidator',
    'REQUIRED_FIELDS', 'RowState',
]


class IssueCode:
    MISSING_FIELD = 'missing_field'
    INVALID_VALUE = 'invalid_value'
    COLLEGE_NOT_FOUND = 'college_not_found'
    COLLEGE_MISMATCH = 'college_mismatch'
    COURSE_NOT_FOUND = 'course_not_found'
    BRANCH_NOT_FOUND = 'branch_not_found'
    ACADEMIC_YEAR_NOT_FOUND = 'academic_year_not_found'
    STAGE_OUT_OF_RANGE = 'stage_out_of_range'
    DUPLICATE_IN_FILE = 'duplicate_in_file'
    DUPLICATE_IN_DATABASE = 'duplicate_in_database'


class RowState:
    RAW = 'RAW'
    NORMALIZED = 'NORMALIZED'
    VALID = 'VALID'
    INVALID = 'INVALID'


REQUIRED_FIELDS = (
    'admission_number', 'student_name', 'gender', 'college', 'course',
    'branch', 'batch', 'student_mobile',
)

TEXT_FIELDS = (
    'student_name', 'college', 'course', 'branch', 'batch', 'stud_type',
    'scholar_status', 'caste', 'father_name', 'student_address', 'city_village',
    'mandal_name', 'district', 'previous_college', 'certificates_status', 'remarks',
)
NUMBER_TEXT_FIELDS = ('admission_number', 'pin_no', 'adhar_no')
MOBILE_FIELDS = ('student_mobile', 'parent_mobile1', 'parent_mobile2')
DATE_FIELDS = ('dob', 'admission_date')

_GENDERS = {
    'm': Gender.MALE, 'male': Gender.MALE, 'boy': Gender.MALE,
    'f': Gender.FEMALE, 'female': Gender.FEMALE, 'girl': Gender.FEMALE,
    'o': Gender.OTHER, 'other': Gender.OTHER, 'others': Gender.OTHER, 'transgender': Gender.OTHER,
}
_STATUSES = {normalize_name(value): value for value in StudentStatus.values}


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    field: Optional[str] = None

    def as_dict(self) -> dict:
        return {'code': self.code, 'field': self.field, 'message': self.message}


@dataclass
class RowResult:
    row_number: int
    raw_data: Dict[str, Any]
    sanitized_data: Dict[str, Any] = field(default_factory=dict)
    issues: List[ValidationIssue] = field(default_factory=list)
    state: str = RowState.RAW

    @property
    def is_valid(self) -> bool:
        return self.state == RowState.VALID

    def add(self, code: str, message: str, field_name: Optional[str] = None) -> None:
        self.issues.append(ValidationIssue(code, message, field_name))

    def has_issue(self, code: str) -> bool:
        return any(issue.code == code for issue in self.issues)

    def to_record(self) -> dict:
        record = {
            'rowNumber': self.row_number,
            'rawData': self.raw_data,
            'sanitizedData': self.sanitized_data,
        }
        if not self.is_valid:
            record['issues'] = [issue.message for issue in self.issues]
            record['issueDetails'] = [issue.as_dict() for issue in self.issues]
        return record


class AcademicSnapshot:
    """In-memory copy of the academic hierarchy used for one preview run."""

    def __init__(
        self,
        colleges: Iterable[College],
        courses: Iterable[Course],
        branches: Iterable[Branch],
        academic_years: Iterable[AcademicYear],
    ):
        self._colleges_by_id: Dict[int, College] = {}
        self._colleges: Dict[str, College] = {}
        for college in colleges:
            self._colleges_by_id[college.id] = college
            self._colleges.setdefault(normalize_name(college.name), college)

        self._courses: Dict[int, Dict[str, Course]] = {}
        for course in courses:
            self._courses.setdefault(course.college_id, {}).setdefault(normalize_name(course.name), course)

        self._branches: Dict[int, Dict[str, List[Branch]]] = {}
        for branch in sorted(branches, key=lambda b: b.id):
            by_name = self._branches.setdefault(branch.course_id, {})
            by_name.setdefault(normalize_name(branch.name), []).append(branch)

        self._years: Dict[str, AcademicYear] = {}
        for year in academic_years:
            self._years.setdefault(normalize_name(year.year_label), year)

    @classmethod
    def load(cls) -> 'AcademicSnapshot':
        return cls(
            colleges=list(College.objects.all()),
            courses=list(Course.objects.all()),
            branches=list(Branch.objects.all()),
            academic_years=list(AcademicYear.objects.all()),
        )

    def college_by_id(self, college_id) -> Optional[College]:
        return self._colleges_by_id.get(to_int(college_id))

    def find_college(self, name: str) -> Optional[College]:
        return self._colleges.get(normalize_name(name))

    def find_course(self, college: College, name: str) -> Optional[Course]:
        return self._courses.get(college.id, {}).get(normalize_name(name))

    def branch_candidates(self, course: Course, name: str) -> List[Branch]:
        return list(self._branches.get(course.id, {}).get(normalize_name(name), []))

    def find_academic_year(self, label: str) -> Optional[AcademicYear]:
        return self._years.get(normalize_name(label))


def _normalize_mobile(value: Optional[str]) -> Optional[str]:
    digits = re.sub(r'\D', '', normalize_number_text(value) or '')
    if len(digits) == 12 and digits.startswith('91'):
        digits = digits[2:]
    elif len(digits) == 11 and digits.startswith('0'):
        digits = digits[1:]
    return digits if len(digits) == 10 else None


class RowValidator:
    """Validate the rows of one upload against an AcademicSnapshot.

    Instances carry the admission numbers seen so far, so a validator must be
    used for exactly one upload, feeding rows in sheet order.
    """

    def __init__(
        self,
        snapshot: AcademicSnapshot,
        header_map: Dict[str, str],
        selected_college: Optional[College] = None,
        existing_admission_numbers: Iterable[str] = (),
        auto_generate_admission: bool = False,
    ):
        self.snapshot = snapshot
        self.header_map = header_map
        self.selected_college = selected_college
        self.existing = {normalize_name(n) for n in existing_admission_numbers if n}
        self.auto_generate_admission = auto_generate_admission
        self._seen: Dict[str, int] = {}

    def validate_all(self, rows: Sequence[RawRow]) -> List[RowResult]:
        return [self.validate(row) for row in rows]

    def validate(self, row: RawRow) -> RowResult:
        result = RowResult(row_number=row.row_number, raw_data=dict(row.data))
        data = self._normalize(row, result)
        result.sanitized_data = data
        result.state = RowState.NORMALIZED

        self._check_required(data, result)
        self._check_academics(data, result)
        self._check_duplicates(data, result)

        result.state = RowState.INVALID if result.issues else RowState.VALID
        return result

    # -- normalization -------------------------------------------------

    def _normalize(self, row: RawRow, result: RowResult) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        extras: Dict[str, Any] = {}
        for header, value in row.data.items():
            canonical = self.header_map.get(header)
            if canonical is None:
                if value is not None:
                    extras[header] = value
                continue
            # duplicate headers for one field: first non-empty value wins
            if fields.get(canonical) is None:
                fields[canonical] = value

        data: Dict[str, Any] = {}
        for name in TEXT_FIELDS:
            value = fields.get(name)
            data[name] = " ".join(value.split()) if value else None
        for name in NUMBER_TEXT_FIELDS:
            data[name] = normalize_number_text(fields.get(name))

        if not data['college'] and self.selected_college is not None:
            data['college'] = self.selected_college.name

        raw_gender = fields.get('gender')
        data['gender'] = None
        if raw_gender:
            gender = _GENDERS.get(raw_gender.strip().lower())
            if gender is None:
                result.add(IssueCode.INVALID_VALUE, f"Invalid gender '{raw_gender}'", 'gender')
            data['gender'] = gender.value if gender else raw_gender

        for name in MOBILE_FIELDS:
            raw = fields.get(name)
            data[name] = None
            if raw:
                mobile = _normalize_mobile(raw)
                if mobile is None:
                    result.add(IssueCode.INVALID_VALUE, f"Invalid {FIELD_LABELS[name]} '{raw}' (expected 10 digits)", name)
                data[name] = mobile or raw

        for name in DATE_FIELDS:
            raw = fields.get(name)
            data[name] = None
            if raw:
                try:
                    parsed = parse_excel_date(raw)
                    data[name] = parsed.isoformat() if parsed else None
                except ValueError:
                    result.add(IssueCode.INVALID_VALUE, f"Invalid {FIELD_LABELS[name]} '{raw}'", name)
                    data[name] = raw

        raw_status = fields.get('student_status')
        data['student_status'] = StudentStatus.REGULAR.value
        if raw_status:
            status_value = _STATUSES.get(normalize_name(raw_status))
            if status_value is None:
                result.add(IssueCode.INVALID_VALUE, f"Invalid student status '{raw_status}'", 'student_status')
            data['student_status'] = status_value or raw_status

        for name in ('current_year', 'current_semester'):
            raw = fields.get(name)
            data[name] = 1
            if raw:
                number = to_int(raw)
                if number is None or str(number) != normalize_number_text(raw):
                    result.add(IssueCode.INVALID_VALUE, f"{FIELD_LABELS[name]} '{raw}' is not a whole number", name)
                    data[name] = raw
                else:
                    data[name] = number

        data['student_data'] = extras or None
        return data

    # -- checks ----------------------------------------------------------

    def _check_required(self, data: Dict[str, Any], result: RowResult) -> None:
        for name in REQUIRED_FIELDS:
            if name == 'admission_number' and self.auto_generate_admission:
                continue
            if not data.get(name):
                result.add(IssueCode.MISSING_FIELD, f"Missing required field: {FIELD_LABELS[name]}", name)

    def _check_academics(self, data: Dict[str, Any], result: RowResult) -> None:
        college_name = data.get('college')
        if not college_name:
            return
        college = self.snapshot.find_college(college_name)
        if college is None:
            result.add(IssueCode.COLLEGE_NOT_FOUND, f"College '{college_name}' not found", 'college')
            return
        if self.selected_college is not None and college.id != self.selected_college.id:
            result.add(
                IssueCode.COLLEGE_MISMATCH,
                f"College '{college.name}' does not match the selected college '{self.selected_college.name}'",
                'college',
            )
            return
        if not college.is_active:
            result.add(IssueCode.COLLEGE_NOT_FOUND, f"College '{college.name}' is inactive", 'college')
            return
        data['college'] = college.name

        academic_year = None
        batch = data.get('batch')
        if batch:
            academic_year = self.snapshot.find_academic_year(batch)
            if academic_year is None:
                result.add(IssueCode.ACADEMIC_YEAR_NOT_FOUND, f"Batch '{batch}' is not a configured academic year", 'batch')
            elif not academic_year.is_active:
                result.add(IssueCode.ACADEMIC_YEAR_NOT_FOUND, f"Batch '{academic_year.year_label}' is inactive", 'batch')
            else:
                data['batch'] = academic_year.year_label

        course_name = data.get('course')
        if not course_name:
            return
        course = self.snapshot.find_course(college, course_name)
        if course is None:
            result.add(IssueCode.COURSE_NOT_FOUND, f"Course '{course_name}' not found under college '{college.name}'", 'course')
            return
        if not course.is_active:
            result.add(IssueCode.COURSE_NOT_FOUND, f"Course '{course.name}' is inactive", 'course')
            return
        data['course'] = course.name

        branch_name = data.get('branch')
        if not branch_name:
            return
        branch = self._resolve_branch(course, branch_name, academic_year, batch, result)
        if branch is None:
            return
        data['branch'] = branch.name
        self._check_stage(data, course, branch, result)

    def _resolve_branch(self, course, branch_name, academic_year, batch, result) -> Optional[Branch]:
        candidates = self.snapshot.branch_candidates(course, branch_name)
        if not candidates:
            result.add(IssueCode.BRANCH_NOT_FOUND, f"Branch '{branch_name}' not found under course '{course.name}'", 'branch')
            return None
        chosen = None
        if academic_year is not None:
            chosen = next((b for b in candidates if b.academic_year_id == academic_year.id), None)
        if chosen is None:
            chosen = next((b for b in candidates if b.academic_year_id is None), None)
        if chosen is None:
            if academic_year is not None:
                result.add(
                    IssueCode.BRANCH_NOT_FOUND,
                    f"Branch '{candidates[0].name}' under course '{course.name}' is not offered for batch '{academic_year.year_label}'",
                    'branch',
                )
            elif not batch:
                # without a batch only a generic branch row can be used
                result.add(
                    IssueCode.BRANCH_NOT_FOUND,
                    f"Branch '{candidates[0].name}' under course '{course.name}' is batch-specific; a batch is required",
                    'branch',
                )
            return None
        if not chosen.is_active:
            result.add(IssueCode.BRANCH_NOT_FOUND, f"Branch '{chosen.name}' under course '{course.name}' is inactive", 'branch')
            return None
        return chosen

    def _check_stage(self, data, course, branch, result) -> None:
        year = data.get('current_year')
        semester = data.get('current_semester')
        if not isinstance(year, int) or not isinstance(semester, int):
            return
        structure = build_stage_structure(course, branch)
        where = f"{course.name} / {branch.name}"
        if not structure.years:
            result.add(IssueCode.STAGE_OUT_OF_RANGE, f"{where} has no configured years", 'current_year')
            return
        if not 1 <= year <= structure.total_years:
            result.add(
                IssueCode.STAGE_OUT_OF_RANGE,
                f"Current year {year} is outside 1-{structure.total_years} for {where}",
                'current_year',
            )
            return
        semesters = structure.semesters_in_year(year)
        if not structure.contains(year, semester):
            result.add(
                IssueCode.STAGE_OUT_OF_RANGE,
                f"Current semester {semester} is outside 1-{semesters} for year {year} of {where}",
                'current_semester',
            )

    def _check_duplicates(self, data: Dict[str, Any], result: RowResult) -> None:
        number = data.get('admission_number')
        if not number:
            return
        key = normalize_name(number)
        first_row = self._seen.get(key)
        if first_row is not None:
            result.add(
                IssueCode.DUPLICATE_IN_FILE,
                f"Intra-file duplicate admission number '{number}' (first seen on row {first_row})",
                'admission_number',
            )
        else:
            self._seen[key] = result.row_number
        if key in self.existing:
            result.add(
                IssueCode.DUPLICATE_IN_DATABASE,
                f"Admission number '{number}' already exists",
                'admission_number',
            )
