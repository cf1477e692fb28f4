from django.db import connection
from django.test import TestCase

from academics.models import Branch, College, Course, StaffScope, Student, User
from academics.scoping import (
    MATCH_NOTHING_SQL,
    UserScope,
    build_scope_conditions,
    describe_scope,
    scope_for_user,
    scope_predicate,
    scope_q,
)


def test_unrestricted_scope_has_no_conditions():
    conditions, params = build_scope_conditions(UserScope.full_access())
    assert conditions == []
    assert params == []


def test_named_scope_builds_parameterised_conditions():
    scope = UserScope(college_names=('Tech U',), all_courses=True, branch_names=('CSE', 'ECE'))
    conditions, params = build_scope_conditions(scope, alias='s')
    assert conditions == ['s.college IN (%s)', 's.branch IN (%s, %s)']
    assert params == ['Tech U', 'CSE', 'ECE']


def test_ids_and_names_are_ored_per_level():
    scope = UserScope(college_ids=(1, 2), college_names=('Tech U',), all_courses=True, all_branches=True)
    conditions, params = build_scope_conditions(scope, alias='')
    assert conditions == ['(college IN (%s) OR college IN (SELECT name FROM colleges WHERE id IN (%s, %s)))']
    assert params == ['Tech U', 1, 2]


def test_empty_course_list_fails_closed():
    scope = UserScope(college_names=('Tech U',), all_courses=False, all_branches=True)
    conditions, _ = build_scope_conditions(scope)
    assert MATCH_NOTHING_SQL in conditions


def test_restricted_scope_without_colleges_fails_closed():
    conditions, _ = build_scope_conditions(UserScope(all_courses=True, all_branches=True))
    assert conditions == [MATCH_NOTHING_SQL]


def test_from_value_accepts_camel_case():
    scope = UserScope.from_value({
        'unrestricted': False,
        'collegeNames': ['Tech U'],
        'allCourses': True,
        'branchNames': ['CSE', 'CSE', ''],
    })
    assert scope.college_names == ('Tech U',)
    assert scope.all_courses
    assert scope.branch_names == ('CSE',)


def test_predicate_filters_in_memory_rows():
    scope = UserScope(college_names=('Tech U',), course_names=('B.Tech',), all_branches=True)
    allowed = scope_predicate(scope)
    assert allowed({'college': 'Tech U', 'course': 'B.Tech', 'branch': 'CSE'})
    assert not allowed({'college': 'Tech U', 'course': 'MBA', 'branch': 'HR'})
    assert not allowed({'college': 'Other', 'course': 'B.Tech', 'branch': 'CSE'})


def test_predicate_fails_closed_on_empty_branches():
    allowed = scope_predicate(UserScope(college_names=('Tech U',), all_courses=True))
    assert not allowed({'college': 'Tech U', 'course': 'B.Tech', 'branch': 'CSE'})


def test_describe_scope():
    assert describe_scope(UserScope.full_access()) == 'All data (Super Admin)'
    assert describe_scope(UserScope()) == 'No access'


class ScopeQueryTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.college = College.objects.create(name='Tech U')
        cls.btech = Course.objects.create(college=cls.college, name='B.Tech')
        cls.mba = Course.objects.create(college=cls.college, name='MBA')
        cls.cse = Branch.objects.create(course=cls.btech, name='CSE')
        for n, (course, branch) in enumerate([('B.Tech', 'CSE'), ('B.Tech', 'ECE'), ('MBA', 'HR')], start=1):
            Student.objects.create(
                admission_number=f'A{n}', student_name=f'S{n}', college='Tech U',
                course=course, branch=branch, batch='2023-2027',
            )

    def _raw_count(self, scope):
        conditions, params = build_scope_conditions(scope, alias='s')
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ''
        with connection.cursor() as cursor:
            cursor.execute(f'SELECT COUNT(*) FROM students s{where}', params)
            return cursor.fetchone()[0]

    def test_fail_closed_scope_matches_no_rows(self):
        scope = UserScope(college_names=('Tech U',), all_courses=False, all_branches=True)
        self.assertEqual(self._raw_count(scope), 0)
        self.assertEqual(Student.objects.filter(scope_q(scope)).count(), 0)

    def test_unrestricted_matches_all_rows(self):
        self.assertEqual(self._raw_count(UserScope.full_access()), 3)
        self.assertEqual(Student.objects.filter(scope_q(UserScope.full_access())).count(), 3)

    def test_id_based_scope_resolves_names(self):
        scope = UserScope(college_ids=(self.college.id,), course_ids=(self.btech.id,), branch_ids=(self.cse.id,))
        self.assertEqual(self._raw_count(scope), 1)
        self.assertEqual(list(Student.objects.filter(scope_q(scope)).values_list('admission_number', flat=True)), ['A1'])
        self.assertTrue(scope_predicate(scope)({'college': 'Tech U', 'course': 'B.Tech', 'branch': 'CSE'}))

    def test_scope_for_user(self):
        admin = User.objects.create_superuser('root', 'root@example.com', 'pass12345')
        self.assertTrue(scope_for_user(admin).unrestricted)

        staff = User.objects.create_user('staff', 'staff@example.com', 'pass12345')
        # no assignment: sees nothing
        self.assertEqual(Student.objects.filter(scope_q(scope_for_user(staff))).count(), 0)

        StaffScope.objects.create(user=staff, college_ids=[self.college.id], course_ids=[self.mba.id], all_branches=True)
        scope = scope_for_user(staff)
        self.assertEqual(scope.course_names, ('MBA',))
        self.assertEqual(list(Student.objects.filter(scope_q(scope)).values_list('admission_number', flat=True)), ['A3'])
