from unittest import mock

from django.test import TestCase

from academics import cascades
from academics.exceptions import ConflictError
from academics.models import AcademicYear, AuditLog, Branch, College, Course, Student


def make_student(number, college='Tech U', course='B.Tech', branch='CSE', batch='2023-2027'):
    return Student.objects.create(admission_number=number, student_name=number, college=college,
                                  course=course, branch=branch, batch=batch)


class CascadeFixture(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.college = College.objects.create(name='Tech U')
        cls.other_college = College.objects.create(name='Arts College')
        cls.btech = Course.objects.create(college=cls.college, name='B.Tech')
        cls.mtech = Course.objects.create(college=cls.college, name='M.Tech')
        cls.ba = Course.objects.create(college=cls.other_college, name='BA')
        cls.y23 = AcademicYear.objects.create(year_label='2023-2027')
        cls.y24 = AcademicYear.objects.create(year_label='2024-2028')
        cls.cse = Branch.objects.create(course=cls.btech, name='CSE', code='CSE')
        cls.ece = Branch.objects.create(course=cls.btech, name='ECE')
        cls.mtech_cse = Branch.objects.create(course=cls.mtech, name='CSE')
        cls.history = Branch.objects.create(course=cls.ba, name='History')
        make_student('B1')
        make_student('B2', branch='ECE')
        make_student('B3', branch='Unlisted')
        make_student('M1', course='M.Tech')
        make_student('H1', college='Arts College', course='BA', branch='History')
        make_student('X1', course='Legacy', branch='Old')

    def snapshot(self):
        return (
            sorted(College.objects.values_list('id', 'name', 'is_active')),
            sorted(Course.objects.values_list('id', 'name', 'college_id')),
            sorted(Branch.objects.values_list('id', 'name', 'course_id', 'academic_year_id')),
            sorted(Student.objects.values_list('admission_number', 'college', 'course', 'branch', 'batch')),
        )


class RenameTests(CascadeFixture):
    def test_course_rename_updates_every_matching_student_only(self):
        before = dict(Student.objects.values_list('admission_number', 'course'))
        course, updated = cascades.save_course({'name': 'B.E.'}, instance=self.btech)
        after = dict(Student.objects.values_list('admission_number', 'course'))

        self.assertEqual(updated, 3)
        for number, old in before.items():
            self.assertEqual(after[number], 'B.E.' if old == 'B.Tech' else old)
        self.assertEqual(AuditLog.objects.filter(action_type='RENAME', entity_type='course').count(), 1)

    def test_rename_conflict_touches_nothing(self):
        before = self.snapshot()
        with self.assertRaises(ConflictError):
            cascades.save_course({'name': 'm.tech'}, instance=self.btech)
        self.assertEqual(self.snapshot(), before)

    def test_branch_rename_is_scoped_by_course(self):
        branch, updated = cascades.update_branch(self.cse, {'name': 'CSE-AI'})
        self.assertEqual(updated, 1)
        self.assertEqual(Student.objects.get(admission_number='B1').branch, 'CSE-AI')
        # M.Tech also has a CSE branch
        self.assertEqual(Student.objects.get(admission_number='M1').branch, 'CSE')

    def test_generic_branch_rename_leaves_batches_with_their_own_row(self):
        Branch.objects.create(course=self.btech, name='CSE', academic_year=self.y24)
        make_student('B9', batch='2024-2028')
        _, updated = cascades.update_branch(self.cse, {'name': 'Computer Science'})
        self.assertEqual(updated, 1)
        self.assertEqual(Student.objects.get(admission_number='B9').branch, 'CSE')

    def test_duplicate_branch_name_conflicts(self):
        with self.assertRaises(ConflictError):
            cascades.update_branch(self.cse, {'name': 'ece'})
        self.assertEqual(Student.objects.get(admission_number='B1').branch, 'CSE')

    def test_college_rename_cascades(self):
        _, updated = cascades.save_college({'name': 'Tech University'}, instance=self.college)
        self.assertEqual(updated, 5)
        self.assertFalse(Student.objects.filter(college='Tech U').exists())

    def test_course_move_updates_student_college(self):
        cascades.save_course({'college': self.other_college}, instance=self.mtech)
        self.assertEqual(Student.objects.get(admission_number='M1').college, 'Arts College')


class BranchUpgradeTests(CascadeFixture):
    def test_year_branch_upgrades_generic_row_in_place(self):
        branch, upgraded = cascades.create_branch(self.btech, {'name': 'CSE', 'code': 'CSE', 'academic_year': self.y23})
        self.assertTrue(upgraded)
        self.assertEqual(branch.pk, self.cse.pk)
        self.assertEqual(Branch.objects.filter(course=self.btech, name='CSE').count(), 1)

    def test_second_year_inserts_new_row(self):
        cascades.create_branch(self.btech, {'name': 'CSE', 'code': 'CSE', 'academic_year': self.y23})
        branch, upgraded = cascades.create_branch(self.btech, {'name': 'CSE', 'code': 'CSE', 'academic_year': self.y24})
        self.assertFalse(upgraded)
        self.assertEqual(branch.academic_year, self.y24)
        self.assertEqual(Branch.objects.filter(course=self.btech, name='CSE').count(), 2)

    def test_same_year_twice_conflicts(self):
        cascades.create_branch(self.btech, {'name': 'Mech', 'academic_year': self.y23})
        with self.assertRaises(ConflictError):
            cascades.create_branch(self.btech, {'name': 'mech', 'academic_year': self.y23})

    def test_generic_duplicate_conflicts(self):
        with self.assertRaises(ConflictError):
            cascades.create_branch(self.btech, {'name': 'cse'})


class DeleteTests(CascadeFixture):
    def test_college_cascade_counts(self):
        result = cascades.delete_college(self.college, cascade=True)
        self.assertEqual(result, {'deletedStudents': 5, 'deletedBranches': 3, 'deletedCourses': 2})
        self.assertFalse(College.objects.filter(name='Tech U').exists())
        self.assertEqual(list(Student.objects.values_list('admission_number', flat=True)), ['H1'])
        self.assertTrue(Branch.objects.filter(pk=self.history.pk).exists())

    def test_college_cascade_is_all_or_nothing(self):
        before = self.snapshot()
        real_purge = cascades._purge_course
        calls = {'n': 0}

        def failing_purge(course, college_name):
            calls['n'] += 1
            if calls['n'] == 2:
                raise RuntimeError('simulated failure')
            return real_purge(course, college_name)

        with mock.patch.object(cascades, '_purge_course', side_effect=failing_purge):
            with self.assertRaises(RuntimeError):
                cascades.delete_college(self.college, cascade=True)

        self.assertEqual(calls['n'], 2)
        self.assertEqual(self.snapshot(), before)

    def test_hard_delete_without_cascade_reports_blockers(self):
        with self.assertRaises(ConflictError) as ctx:
            cascades.delete_course(self.btech, hard=True)
        self.assertEqual(ctx.exception.blockers, {'branches': 2, 'students': 3})
        self.assertTrue(Course.objects.filter(pk=self.btech.pk).exists())

    def test_soft_delete_deactivates(self):
        result = cascades.delete_course(self.btech)
        self.assertEqual(result, {'deletedStudents': 0, 'deletedBranches': 0, 'deletedCourses': 0})
        self.btech.refresh_from_db()
        self.assertFalse(self.btech.is_active)
        self.assertEqual(Student.objects.filter(course='B.Tech').count(), 3)

    def test_course_cascade(self):
        result = cascades.delete_course(self.btech, cascade=True)
        self.assertEqual(result, {'deletedStudents': 3, 'deletedBranches': 2, 'deletedCourses': 1})
        self.assertTrue(Student.objects.filter(admission_number='M1').exists())

    def test_branch_cascade_and_hard_delete(self):
        with self.assertRaises(ConflictError):
            cascades.delete_branch(self.ece, hard=True)
        result = cascades.delete_branch(self.ece, cascade=True)
        self.assertEqual(result['deletedStudents'], 1)
        self.assertEqual(result['deletedBranches'], 1)
        self.assertFalse(Student.objects.filter(admission_number='B2').exists())

    def test_empty_college_hard_delete(self):
        empty = College.objects.create(name='Empty')
        cascades.delete_college(empty, hard=True)
        self.assertFalse(College.objects.filter(name='Empty').exists())
