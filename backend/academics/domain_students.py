"""Domain Student Model

`college`, `course` and `branch` are denormalized copies of the names at the
time of assignment. They are kept in step with the hierarchy only by the
cascade engines in `cascades.py`.
"""
from django.db import models, transaction
from django.utils import timezone

__all__ = ['Student', 'StudentStatus', 'Gender']


class StudentStatus(models.TextChoices):
    REGULAR = 'Regular', 'Regular'
    DETAINED = 'Detained', 'Detained'
    DISCONTINUED = 'Discontinued', 'Discontinued'
    LONG_ABSENT = 'Long Absent', 'Long Absent'
    PASSED_OUT = 'Passed Out', 'Passed Out'


class Gender(models.TextChoices):
    MALE = 'Male', 'Male'
    FEMALE = 'Female', 'Female'
    OTHER = 'Other', 'Other'


class Student(models.Model):
    id = models.BigAutoField(primary_key=True)
    admission_number = models.CharField(max_length=100, unique=True, db_index=True)
    student_name = models.CharField(max_length=255)
    college = models.CharField(max_length=255, db_index=True)
    course = models.CharField(max_length=255, db_index=True)
    branch = models.CharField(max_length=255, db_index=True)
    batch = models.CharField(max_length=50, db_index=True)
    current_year = models.PositiveSmallIntegerField(default=1)
    current_semester = models.PositiveSmallIntegerField(default=1)
    student_status = models.CharField(max_length=50, choices=StudentStatus.choices, default=StudentStatus.REGULAR)
    gender = models.CharField(max_length=10, choices=Gender.choices, null=True, blank=True)
    student_mobile = models.CharField(max_length=20, null=True, blank=True)

    pin_no = models.CharField(max_length=50, null=True, blank=True)
    stud_type = models.CharField(max_length=50, null=True, blank=True)
    scholar_status = models.CharField(max_length=50, null=True, blank=True)
    parent_mobile1 = models.CharField(max_length=20, null=True, blank=True)
    parent_mobile2 = models.CharField(max_length=20, null=True, blank=True)
    caste = models.CharField(max_length=100, null=True, blank=True)
    dob = models.DateField(null=True, blank=True)
    father_name = models.CharField(max_length=255, null=True, blank=True)
    admission_date = models.DateField(null=True, blank=True)
    adhar_no = models.CharField(max_length=20, null=True, blank=True)
    student_address = models.TextField(null=True, blank=True)
    city_village = models.CharField(max_length=255, null=True, blank=True)
    mandal_name = models.CharField(max_length=255, null=True, blank=True)
    district = models.CharField(max_length=255, null=True, blank=True)
    previous_college = models.CharField(max_length=255, null=True, blank=True)
    certificates_status = models.CharField(max_length=100, null=True, blank=True)
    remarks = models.TextField(null=True, blank=True)
    # columns from the upload that have no dedicated field
    student_data = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'students'
        ordering = ['admission_number']
        indexes = [
            models.Index(fields=['course', 'branch'], name='students_course_8c0f4a_idx'),
            models.Index(fields=['college', 'course'], name='students_college_5b7e21_idx'),
        ]

    def __str__(self):
        return f"{self.admission_number} - {self.student_name}"

    @classmethod
    def next_admission_number(cls, prefix):
        """Return the next free `<prefix>_<yy>_<nnnn>` admission number.

        Must run inside the caller's transaction so the row lock on the last
        number is held until the new row is written.
        """
        yy = timezone.now().year % 100
        base = f"{prefix}_{yy:02d}_"
        with transaction.atomic():
            last = (
                cls.objects
                .select_for_update()
                .filter(admission_number__startswith=base)
                .order_by('-admission_number')
                .first()
            )
            next_num = 1
            if last and last.admission_number:
                try:
                    next_num = int(last.admission_number.split('_')[-1]) + 1
                except ValueError:
                    next_num = 1
        return f"{base}{next_num:04d}"
