"""Domain Academic Hierarchy Models
College, Course, Branch, AcademicYear
"""
from django.contrib.auth.models import User
from django.db import models
from django.db.models import Q

__all__ = [
    'College', 'Course', 'Branch', 'AcademicYear',
    'MAX_YEARS', 'MAX_SEMESTERS_PER_YEAR', 'DEFAULT_SEMESTERS_PER_YEAR',
]

MAX_YEARS = 10
MAX_SEMESTERS_PER_YEAR = 4
DEFAULT_SEMESTERS_PER_YEAR = 2


class AcademicYear(models.Model):
    """Admission batch, e.g. '2023-2027'. Students reference it by label."""
    id = models.AutoField(primary_key=True)
    year_label = models.CharField(max_length=50, unique=True, db_index=True)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'academic_years'
        ordering = ['-year_label']

    def __str__(self):
        return self.year_label


class College(models.Model):
    id = models.AutoField(primary_key=True)
    name = models.CharField(max_length=255, unique=True)
    code = models.CharField(max_length=50, unique=True, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    metadata = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='updated_colleges')

    class Meta:
        db_table = 'colleges'
        ordering = ['name']

    def __str__(self):
        return self.name


class Course(models.Model):
    """Programme offered by a college. Students carry its name, not its id."""
    id = models.AutoField(primary_key=True)
    college = models.ForeignKey(College, on_delete=models.PROTECT, related_name='courses')
    name = models.CharField(max_length=255, unique=True)
    code = models.CharField(max_length=50, unique=True, null=True, blank=True)
    total_years = models.PositiveSmallIntegerField(default=4)
    semesters_per_year = models.PositiveSmallIntegerField(default=DEFAULT_SEMESTERS_PER_YEAR)
    # [{"year": 1, "semesters": 2}, ...] overriding semesters_per_year for listed years
    year_semester_config = models.JSONField(null=True, blank=True)
    metadata = models.JSONField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='updated_courses')

    class Meta:
        db_table = 'courses'
        ordering = ['name']

    def __str__(self):
        return self.name


class Branch(models.Model):
    """Specialisation under a course.

    A row with ``academic_year`` NULL is generic and applies to every batch;
    rows bound to an academic year narrow the branch to that batch.
    """
    id = models.AutoField(primary_key=True)
    course = models.ForeignKey(Course, on_delete=models.PROTECT, related_name='branches')
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50, null=True, blank=True)
    total_years = models.PositiveSmallIntegerField(null=True, blank=True)
    semesters_per_year = models.PositiveSmallIntegerField(null=True, blank=True)
    year_semester_config = models.JSONField(null=True, blank=True)
    academic_year = models.ForeignKey(AcademicYear, on_delete=models.PROTECT, null=True, blank=True, related_name='branches')
    metadata = models.JSONField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='updated_branches')

    class Meta:
        db_table = 'course_branches'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(
                fields=['course', 'name'],
                condition=Q(academic_year__isnull=True),
                name='unique_generic_branch_name',
            ),
            models.UniqueConstraint(
                fields=['course', 'name', 'academic_year'],
                name='unique_branch_name_per_year',
            ),
        ]
        indexes = [
            models.Index(fields=['course', 'academic_year'], name='course_bran_course__2f1d3e_idx'),
        ]

    def __str__(self):
        return self.name

    @property
    def is_generic(self):
        return self.academic_year_id is None
