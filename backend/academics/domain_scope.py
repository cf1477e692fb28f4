"""Staff scope assignment.

One row per restricted staff user. Superusers need no row; a non-superuser
without a row sees nothing.
"""
from django.contrib.auth.models import User
from django.db import models

__all__ = ['StaffScope']


class StaffScope(models.Model):
    id = models.AutoField(primary_key=True)
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='staff_scope')
    college_ids = models.JSONField(default=list, blank=True)
    course_ids = models.JSONField(default=list, blank=True)
    branch_ids = models.JSONField(default=list, blank=True)
    all_courses = models.BooleanField(default=False)
    all_branches = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'staff_scopes'

    def __str__(self):
        return f"Scope for {self.user.username}"
