from django.contrib import admin

from .domain_logs import UserActivityLog, ErrorLog, AuditLog
from .domain_scope import StaffScope
from .domain_structure import AcademicYear, College, Course, Branch
from .domain_students import Student


class BranchInline(admin.TabularInline):
    model = Branch
    extra = 0
    fields = ('name', 'code', 'academic_year', 'total_years', 'semesters_per_year', 'is_active')
    raw_id_fields = ('academic_year',)


@admin.register(College)
class CollegeAdmin(admin.ModelAdmin):
    list_display = ('name', 'code', 'is_active', 'updated_at')
    search_fields = ('name', 'code')
    list_filter = ('is_active',)


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ('name', 'code', 'college', 'total_years', 'semesters_per_year', 'is_active')
    search_fields = ('name', 'code', 'college__name')
    list_filter = ('is_active', 'college')
    # renames from the admin would skip the student cascade
    readonly_fields = ('name',)
    inlines = [BranchInline]

    def get_readonly_fields(self, request, obj=None):
        return self.readonly_fields if obj else ()


@admin.register(AcademicYear)
class AcademicYearAdmin(admin.ModelAdmin):
    list_display = ('year_label', 'start_date', 'end_date', 'is_active')
    search_fields = ('year_label',)


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('admission_number', 'student_name', 'college', 'course', 'branch', 'batch',
                    'current_year', 'current_semester', 'student_status')
    search_fields = ('admission_number', 'pin_no', 'student_name', 'student_mobile')
    list_filter = ('student_status', 'college', 'course', 'batch')
    readonly_fields = ('created_at', 'updated_at')


@admin.register(StaffScope)
class StaffScopeAdmin(admin.ModelAdmin):
    list_display = ('user', 'college_ids', 'all_courses', 'all_branches', 'updated_at')
    search_fields = ('user__username',)
    raw_id_fields = ('user',)


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action_type', 'entity_type', 'entity_id', 'user')
    list_filter = ('action_type', 'entity_type')
    search_fields = ('entity_id', 'user__username')
    readonly_fields = ('action_type', 'entity_type', 'entity_id', 'user', 'details', 'created_at')


@admin.register(UserActivityLog)
class UserActivityLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user', 'method', 'path', 'status_code')
    list_filter = ('method', 'status_code')
    search_fields = ('path', 'user__username')


@admin.register(ErrorLog)
class ErrorLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user', 'method', 'path', 'message')
    search_fields = ('path', 'message')
