"""File: backend/academics/serializers_courses.py
College, course, branch and academic year serializers.

Name/code uniqueness is enforced in `cascades.py` (409 Conflict), so the
automatic unique validators are switched off here.
"""
from rest_framework import serializers

from .models import (
    AcademicYear, College, Course, Branch,
    MAX_YEARS, MAX_SEMESTERS_PER_YEAR,
)
from .structure import build_stage_structure

__all__ = [
    'AcademicYearSerializer', 'CollegeSerializer', 'CourseSerializer', 'BranchSerializer',
    'validate_year_semester_config',
]


def _wrap_user(user):
    return {'id': user.id, 'username': user.username} if user else None


def validate_year_semester_config(value):
    if value in (None, ''):
        return None
    if not isinstance(value, list):
        raise serializers.ValidationError('Expected a list of {"year": n, "semesters": n} entries.')
    cleaned, seen = [], set()
    for entry in value:
        if not isinstance(entry, dict):
            raise serializers.ValidationError('Each entry must be an object with "year" and "semesters".')
        try:
            year = int(entry.get('year'))
            semesters = int(entry.get('semesters'))
        except (TypeError, ValueError):
            raise serializers.ValidationError('"year" and "semesters" must be whole numbers.')
        if not 1 <= year <= MAX_YEARS:
            raise serializers.ValidationError(f'Year {year} is outside 1-{MAX_YEARS}.')
        if not 1 <= semesters <= MAX_SEMESTERS_PER_YEAR:
            raise serializers.ValidationError(f'Semesters for year {year} must be 1-{MAX_SEMESTERS_PER_YEAR}.')
        if year in seen:
            raise serializers.ValidationError(f'Year {year} is listed more than once.')
        seen.add(year)
        cleaned.append({'year': year, 'semesters': semesters})
    return sorted(cleaned, key=lambda e: e['year'])


class AcademicYearSerializer(serializers.ModelSerializer):
    class Meta:
        model = AcademicYear
        fields = ['id', 'year_label', 'start_date', 'end_date', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': 'End date must not be before start date.'})
        return attrs


class CollegeSerializer(serializers.ModelSerializer):
    class Meta:
        model = College
        fields = ['id', 'name', 'code', 'is_active', 'metadata', 'created_at', 'updated_at', 'updated_by']
        read_only_fields = ['created_at', 'updated_at', 'updated_by']
        extra_kwargs = {'name': {'validators': []}, 'code': {'validators': []}}

    def validate_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('College name cannot be empty.')
        return value

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['updated_by'] = _wrap_user(instance.updated_by)
        return data


class BranchSerializer(serializers.ModelSerializer):
    academic_year_id = serializers.PrimaryKeyRelatedField(
        queryset=AcademicYear.objects.all(), source='academic_year',
        write_only=True, allow_null=True, required=False,
    )
    total_years = serializers.IntegerField(min_value=1, max_value=MAX_YEARS, allow_null=True, required=False)
    semesters_per_year = serializers.IntegerField(
        min_value=1, max_value=MAX_SEMESTERS_PER_YEAR, allow_null=True, required=False,
    )
    structure = serializers.SerializerMethodField()

    class Meta:
        model = Branch
        fields = [
            'id', 'course', 'name', 'code', 'total_years', 'semesters_per_year', 'year_semester_config',
            'academic_year', 'academic_year_id', 'metadata', 'is_active', 'structure',
            'created_at', 'updated_at', 'updated_by',
        ]
        read_only_fields = ['course', 'academic_year', 'created_at', 'updated_at', 'updated_by']
        validators = []

    def validate_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('Branch name cannot be empty.')
        return value

    def validate_year_semester_config(self, value):
        return validate_year_semester_config(value)

    def get_structure(self, obj):
        return build_stage_structure(obj.course, obj).as_dict()

    def to_representation(self, instance):
        data = super().to_representation(instance)
        ay = instance.academic_year
        data['academic_year'] = {'id': ay.id, 'year_label': ay.year_label} if ay else None
        data['updated_by'] = _wrap_user(instance.updated_by)
        return data


class CourseSerializer(serializers.ModelSerializer):
    college_id = serializers.PrimaryKeyRelatedField(queryset=College.objects.all(), source='college', write_only=True)
    total_years = serializers.IntegerField(min_value=1, max_value=MAX_YEARS, required=False)
    semesters_per_year = serializers.IntegerField(min_value=1, max_value=MAX_SEMESTERS_PER_YEAR, required=False)
    branches = BranchSerializer(many=True, read_only=True)
    structure = serializers.SerializerMethodField()

    class Meta:
        model = Course
        fields = [
            'id', 'college', 'college_id', 'name', 'code', 'total_years', 'semesters_per_year',
            'year_semester_config', 'metadata', 'is_active', 'structure', 'branches',
            'created_at', 'updated_at', 'updated_by',
        ]
        read_only_fields = ['college', 'created_at', 'updated_at', 'updated_by']
        extra_kwargs = {'name': {'validators': []}, 'code': {'validators': []}}

    def validate_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('Course name cannot be empty.')
        return value

    def validate_year_semester_config(self, value):
        return validate_year_semester_config(value)

    def get_structure(self, obj):
        return build_stage_structure(obj).as_dict()

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['college'] = {'id': instance.college.id, 'name': instance.college.name} if instance.college_id else None
        data['updated_by'] = _wrap_user(instance.updated_by)
        return data
