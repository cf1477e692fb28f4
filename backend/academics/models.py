"""File: backend/academics/models.py
Facade re-exporting the domain models so `from .models import ...` keeps
working regardless of which domain module defines a model.
"""
from django.contrib.auth.models import User  # noqa: F401

from .domain_structure import (  # noqa: F401
    College, Course, Branch, AcademicYear,
    MAX_YEARS, MAX_SEMESTERS_PER_YEAR, DEFAULT_SEMESTERS_PER_YEAR,
)
from .domain_students import Student, StudentStatus, Gender  # noqa: F401
from .domain_scope import StaffScope  # noqa: F401
from .domain_logs import UserActivityLog, ErrorLog, AuditLog  # noqa: F401
