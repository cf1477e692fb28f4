"""Spreadsheet header aliases for the student upload.

Each canonical key maps to the header spellings seen in uploaded sheets.
Matching ignores case, whitespace and punctuation, so "Pin Number",
"PIN-NUMBER" and "pin_number" are the same header.
"""
from __future__ import annotations

from typing import Dict, Iterable, Tuple

from .helpers import normalize_header

FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "admission_number": (
        "admission_number",
        "Admission Number",
        "Admission No",
        "Admission No.",
        "Adm No",
        "admission_no",
    ),
    "pin_no": (
        "pin_no",
        "Pin No",
        "Pin Number",
        "PIN",
        "Roll No",
        "Roll Number",
    ),
    "student_name": (
        "student_name",
        "Student Name",
        "Name",
        "Name of the Student",
    ),
    "gender": (
        "gender",
        "Gender",
        "M/F",
        "Sex",
    ),
    "college": (
        "college",
        "College",
        "College Name",
    ),
    "course": (
        "course",
        "Course",
        "Course Name",
        "Program",
        "Programme",
    ),
    "branch": (
        "branch",
        "Branch",
        "Branch Name",
        "Specialization",
        "Department",
    ),
    "batch": (
        "batch",
        "Batch",
        "Academic Year",
        "Admission Batch",
    ),
    "current_year": (
        "current_year",
        "Current Year",
        "Year",
        "Year of Study",
    ),
    "current_semester": (
        "current_semester",
        "Current Semester",
        "Semester",
        "Sem",
    ),
    "student_mobile": (
        "student_mobile",
        "Student Mobile Number",
        "Student Mobile",
        "Mobile",
        "Mobile Number",
        "Phone",
    ),
    "parent_mobile1": (
        "parent_mobile1",
        "Parent Mobile Number 1",
        "Parent Mobile 1",
        "Parent Mobile",
    ),
    "parent_mobile2": (
        "parent_mobile2",
        "Parent Mobile Number 2",
        "Parent Mobile 2",
    ),
    "student_status": (
        "student_status",
        "Student Status",
        "Status",
    ),
    "scholar_status": (
        "scholar_status",
        "Scholar Status",
    ),
    "stud_type": (
        "stud_type",
        "StudType",
        "Student Type",
    ),
    "caste": (
        "caste",
        "Caste",
        "Category",
    ),
    "dob": (
        "dob",
        "DOB",
        "DOB (Date-Month-Year)",
        "Date of Birth",
    ),
    "father_name": (
        "father_name",
        "Father Name",
        "Father's Name",
    ),
    "admission_date": (
        "admission_date",
        "Admission Date",
        "Admission Year (Ex: 09-Sep-2003)",
        "Date of Admission",
    ),
    "adhar_no": (
        "adhar_no",
        "AADHAR No",
        "Aadhaar Number",
        "Aadhar Number",
    ),
    "student_address": (
        "student_address",
        "Student Address",
        "Address",
    ),
    "city_village": (
        "city_village",
        "CityVillage Name",
        "City/Village",
        "City",
        "Village",
    ),
    "mandal_name": (
        "mandal_name",
        "Mandal Name",
        "Mandal",
    ),
    "district": (
        "district",
        "District Name",
        "District",
    ),
    "previous_college": (
        "previous_college",
        "Previous College Name",
        "Previous College",
    ),
    "certificates_status": (
        "certificates_status",
        "Certificate Status",
        "Certificates Status",
    ),
    "remarks": (
        "remarks",
        "Remarks",
        "Remark",
    ),
}

FIELD_LABELS: Dict[str, str] = {key: aliases[1] for key, aliases in FIELD_ALIASES.items()}

_ALIAS_LOOKUP: Dict[str, str] = {}
for _canonical, _aliases in FIELD_ALIASES.items():
    for _alias in _aliases:
        _ALIAS_LOOKUP.setdefault(normalize_header(_alias), _canonical)


def canonical_field(header) -> str | None:
    return _ALIAS_LOOKUP.get(normalize_header(header))


def build_header_map(headers: Iterable) -> Dict[str, str]:
    """Map each recognised upload header to its canonical key.

    Built once per upload. Headers that match nothing are left out and end up
    in the student's free-form data.
    """
    mapping: Dict[str, str] = {}
    for header in headers:
        canonical = canonical_field(header)
        if canonical:
            mapping[str(header)] = canonical
    return mapping


def template_headers() -> list:
    return [FIELD_LABELS[key] for key in FIELD_ALIASES]
