"""Hierarchy mutations that must keep student rows consistent.

Students store college, course and branch as plain names. Every rename here
re-points the matching student rows, and every cascade delete removes them,
inside the same transaction as the hierarchy change. A failure at any step
rolls the whole operation back.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from django.db import IntegrityError, transaction

from .domain_logs import AuditLog
from .domain_structure import Branch, College, Course
from .domain_students import Student
from .exceptions import ConflictError

logger = logging.getLogger(__name__)

__all__ = [
    'save_college', 'save_course', 'create_branch', 'update_branch',
    'delete_college', 'delete_course', 'delete_branch', 'branch_students',
]


def _clean(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _apply(instance, data: Dict[str, Any], user=None):
    for key, value in data.items():
        setattr(instance, key, _clean(value))
    if user is not None and getattr(user, 'is_authenticated', False):
        instance.updated_by = user


def _ensure_unique(queryset, instance, label: str, field: str, value) -> None:
    if not value:
        return
    qs = queryset.filter(**{f'{field}__iexact': value})
    if instance is not None and instance.pk:
        qs = qs.exclude(pk=instance.pk)
    if qs.exists():
        raise ConflictError(f"{label} with this {field} already exists")


def branch_students(branch: Branch, course_name: Optional[str] = None, branch_name: Optional[str] = None):
    """Students attached to a branch row.

    A year-bound row owns the students of its batch. A generic row owns the
    remaining students of that branch name, except batches that have their own
    year-bound row of the same name.
    """
    course_name = course_name or branch.course.name
    branch_name = branch_name or branch.name
    qs = Student.objects.filter(course=course_name, branch=branch_name)
    if branch.academic_year_id is not None:
        return qs.filter(batch=branch.academic_year.year_label)
    bound_batches = (
        Branch.objects
        .filter(course_id=branch.course_id, name__iexact=branch_name, academic_year__isnull=False)
        .values_list('academic_year__year_label', flat=True)
    )
    return qs.exclude(batch__in=list(bound_batches))


# -- create / rename ---------------------------------------------------------

def save_college(data: Dict[str, Any], instance: Optional[College] = None, user=None) -> Tuple[College, int]:
    """Create or update a college. Returns the row and the number of students re-pointed."""
    with transaction.atomic():
        college = instance or College()
        _ensure_unique(College.objects.all(), instance, 'College', 'name', _clean(data.get('name')))
        _ensure_unique(College.objects.all(), instance, 'College', 'code', _clean(data.get('code')))
        old_name = college.name if instance else None
        _apply(college, data, user)
        try:
            with transaction.atomic():
                college.save()
        except IntegrityError as exc:
            raise ConflictError(f"College conflicts with an existing row: {exc}")
        updated = 0
        if old_name and college.name != old_name:
            updated = Student.objects.filter(college=old_name).update(college=college.name)
            AuditLog.record('RENAME', 'college', college.pk, user,
                            {'from': old_name, 'to': college.name, 'studentsUpdated': updated})
            logger.info('College %s renamed %r -> %r; %s students updated', college.pk, old_name, college.name, updated)
    return college, updated


def save_course(data: Dict[str, Any], instance: Optional[Course] = None, user=None) -> Tuple[Course, int]:
    """Create or update a course; a name change cascades to `students.course`."""
    with transaction.atomic():
        course = instance or Course()
        _ensure_unique(Course.objects.all(), instance, 'Course', 'name', _clean(data.get('name')))
        _ensure_unique(Course.objects.all(), instance, 'Course', 'code', _clean(data.get('code')))
        old_name = course.name if instance else None
        old_college_id = course.college_id if instance else None
        _apply(course, data, user)
        try:
            with transaction.atomic():
                course.save()
        except IntegrityError as exc:
            raise ConflictError(f"Course conflicts with an existing row: {exc}")
        updated = 0
        if old_name and course.name != old_name:
            updated = Student.objects.filter(course=old_name).update(course=course.name)
            AuditLog.record('RENAME', 'course', course.pk, user,
                            {'from': old_name, 'to': course.name, 'studentsUpdated': updated})
            logger.info('Course %s renamed %r -> %r; %s students updated', course.pk, old_name, course.name, updated)
        if old_college_id and course.college_id != old_college_id:
            moved = Student.objects.filter(course=course.name).update(college=course.college.name)
            logger.info('Course %s moved to college %s; %s students updated', course.pk, course.college_id, moved)
            updated = max(updated, moved)
    return course, updated


def _ensure_branch_unique(course: Course, name, academic_year, instance=None) -> None:
    if not name:
        return
    qs = Branch.objects.filter(course=course, name__iexact=name, academic_year=academic_year)
    if instance is not None:
        qs = qs.exclude(pk=instance.pk)
    if qs.exists():
        scope = f" for batch '{academic_year.year_label}'" if academic_year else ''
        raise ConflictError(f"Branch '{name}' already exists under course '{course.name}'{scope}")


def _generic_match(course: Course, data: Dict[str, Any]):
    code = _clean(data.get('code'))
    qs = Branch.objects.filter(course=course, academic_year__isnull=True)
    if code:
        return qs.filter(code__iexact=code)
    return qs.filter(name__iexact=_clean(data.get('name')))


def create_branch(course: Course, data: Dict[str, Any], user=None) -> Tuple[Branch, bool]:
    """Create a branch under `course`. Returns `(branch, upgraded)`.

    When the new branch is bound to an academic year and a generic row with the
    same code (or name, without a code) exists, that row is bound to the year
    in place. Two requests racing for the same generic row are serialised by
    the row lock; the one that finds it already bound inserts a new row.
    """
    academic_year = data.get('academic_year')
    with transaction.atomic():
        if academic_year is not None:
            candidate = _generic_match(course, data).order_by('id').first()
            if candidate is not None:
                locked = Branch.objects.select_for_update().get(pk=candidate.pk)
                if locked.academic_year_id is None:
                    _ensure_branch_unique(course, _clean(data.get('name')), academic_year, instance=locked)
                    _apply(locked, data, user)
                    locked.save()
                    AuditLog.record('UPGRADE', 'branch', locked.pk, user,
                                    {'course': course.name, 'academicYear': academic_year.year_label})
                    logger.info('Generic branch %s bound to batch %s', locked.pk, academic_year.year_label)
                    return locked, True
                logger.info('Generic branch %s was bound concurrently; inserting a new row', locked.pk)

        _ensure_branch_unique(course, _clean(data.get('name')), academic_year)
        branch = Branch(course=course)
        _apply(branch, data, user)
        try:
            with transaction.atomic():
                branch.save()
        except IntegrityError as exc:
            raise ConflictError(f"Branch conflicts with an existing row: {exc}")
    return branch, False


def update_branch(branch: Branch, data: Dict[str, Any], user=None) -> Tuple[Branch, int]:
    """Update a branch; a name change re-points the students the row owns."""
    with transaction.atomic():
        course = branch.course
        old_name = branch.name
        academic_year = data.get('academic_year', branch.academic_year)
        _ensure_branch_unique(course, _clean(data.get('name', branch.name)), academic_year, instance=branch)
        # resolve the owned students before the row changes
        owned = list(branch_students(branch, course.name, old_name).values_list('pk', flat=True))
        _apply(branch, data, user)
        try:
            with transaction.atomic():
                branch.save()
        except IntegrityError as exc:
            raise ConflictError(f"Branch conflicts with an existing row: {exc}")
        updated = 0
        if branch.name != old_name:
            updated = Student.objects.filter(pk__in=owned).update(branch=branch.name)
            AuditLog.record('RENAME', 'branch', branch.pk, user, {
                'course': course.name, 'from': old_name, 'to': branch.name, 'studentsUpdated': updated,
            })
            logger.info('Branch %s renamed %r -> %r under %r; %s students updated',
                        branch.pk, old_name, branch.name, course.name, updated)
    return branch, updated


# -- delete ------------------------------------------------------------------

def _result(students=0, branches=0, courses=0) -> Dict[str, int]:
    return {'deletedStudents': students, 'deletedBranches': branches, 'deletedCourses': courses}


def _purge_course(course: Course, college_name: str) -> Dict[str, int]:
    """Delete a course, its branches and their students. Caller owns the transaction."""
    students = 0
    branches = list(course.branches.all())
    for branch in branches:
        students += Student.objects.filter(course=course.name, branch=branch.name).delete()[0]
    Branch.objects.filter(course=course).delete()
    # students whose branch matched no row
    students += Student.objects.filter(course=course.name, college=college_name).delete()[0]
    course.delete()
    return _result(students, len(branches), 1)


def _add(total: Dict[str, int], part: Dict[str, int]) -> None:
    for key, value in part.items():
        total[key] += value


def delete_college(college: College, cascade=False, hard=False, user=None) -> Dict[str, int]:
    college_id = college.pk
    with transaction.atomic():
        result = _result()
        if cascade:
            for course in list(college.courses.select_for_update().order_by('id')):
                _add(result, _purge_course(course, college.name))
            result['deletedStudents'] += Student.objects.filter(college=college.name).delete()[0]
            college.delete()
        else:
            blockers = {
                'courses': college.courses.count(),
                'students': Student.objects.filter(college=college.name).count(),
            }
            if hard and any(blockers.values()):
                raise ConflictError(
                    'Cannot delete college: it still has courses or students. Pass cascade=true to delete them.',
                    blockers=blockers,
                )
            if hard:
                college.delete()
            else:
                college.is_active = False
                college.save(update_fields=['is_active', 'updated_at'])
        AuditLog.record('DELETE', 'college', college_id, user,
                        {'name': college.name, 'cascade': cascade, 'hard': hard, **result})
    logger.info('College %r deleted (cascade=%s hard=%s): %s', college.name, cascade, hard, result)
    return result


def delete_course(course: Course, cascade=False, hard=False, user=None) -> Dict[str, int]:
    with transaction.atomic():
        result = _result()
        name = course.name
        if cascade:
            result = _purge_course(course, course.college.name)
        else:
            blockers = {
                'branches': course.branches.count(),
                'students': Student.objects.filter(course=name).count(),
            }
            if hard and any(blockers.values()):
                raise ConflictError(
                    'Cannot delete course: it still has branches or students. Pass cascade=true to delete them.',
                    blockers=blockers,
                )
            if hard:
                course.delete()
            else:
                course.is_active = False
                course.save(update_fields=['is_active', 'updated_at'])
        AuditLog.record('DELETE', 'course', name, user, {'cascade': cascade, 'hard': hard, **result})
    logger.info('Course %r deleted (cascade=%s hard=%s): %s', name, cascade, hard, result)
    return result


def delete_branch(branch: Branch, cascade=False, hard=False, user=None) -> Dict[str, int]:
    with transaction.atomic():
        result = _result()
        course = branch.course
        name = branch.name
        students = branch_students(branch, course.name)
        if cascade:
            result['deletedStudents'] = students.delete()[0]
            branch.delete()
            result['deletedBranches'] = 1
        else:
            count = students.count()
            if hard and count:
                raise ConflictError(
                    f"Cannot delete branch: {count} student(s) are still assigned. Pass cascade=true to delete them.",
                    blockers={'students': count},
                )
            if hard:
                branch.delete()
                result['deletedBranches'] = 1
            else:
                branch.is_active = False
                branch.save(update_fields=['is_active', 'updated_at'])
        AuditLog.record('DELETE', 'branch', name, user,
                        {'course': course.name, 'cascade': cascade, 'hard': hard, **result})
    logger.info('Branch %r under %r deleted (cascade=%s hard=%s): %s', name, course.name, cascade, hard, result)
    return result
