from django.test import SimpleTestCase

from academics.excel_import.aliases import build_header_map
from academics.excel_import.reader import RawRow
from academics.excel_import.validator import AcademicSnapshot, IssueCode, RowState, RowValidator
from academics.models import AcademicYear, Branch, College, Course


def _snapshot():
    colleges = [
        College(id=1, name='Tech U', is_active=True),
        College(id=2, name='Arts College', is_active=True),
        College(id=3, name='Closed College', is_active=False),
    ]
    courses = [
        Course(id=10, college_id=1, name='B.Tech', total_years=4, semesters_per_year=2, is_active=True),
        Course(id=11, college_id=1, name='Diploma', total_years=3, semesters_per_year=2,
               year_semester_config=[{'year': 1, 'semesters': 1}], is_active=True),
        Course(id=12, college_id=2, name='BA', total_years=3, semesters_per_year=2, is_active=True),
        Course(id=13, college_id=1, name='Old Course', total_years=2, is_active=False),
    ]
    years = [
        AcademicYear(id=100, year_label='2023-2027', is_active=True),
        AcademicYear(id=101, year_label='2024-2028', is_active=True),
    ]
    branches = [
        Branch(id=1000, course_id=10, name='CSE', academic_year_id=None, is_active=True),
        Branch(id=1001, course_id=10, name='AI', academic_year_id=100, is_active=True, total_years=2),
        Branch(id=1002, course_id=11, name='Mech', academic_year_id=None, is_active=True),
        Branch(id=1003, course_id=10, name='Civil', academic_year_id=None, is_active=False),
    ]
    return AcademicSnapshot(colleges, courses, branches, years)


HEADERS = ['Admission No', 'Student Name', 'Gender', 'College', 'Course', 'Branch', 'Batch',
           'Student Mobile Number', 'Current Year', 'Current Semester', 'DOB', 'Hostel Block']


def _row(number=1, **overrides):
    data = {
        'Admission No': 'A001', 'Student Name': '  Asha  Rao ', 'Gender': 'F', 'College': 'Tech U',
        'Course': 'b.tech', 'Branch': 'CSE', 'Batch': '2023-2027', 'Student Mobile Number': '+91 98765 43210',
        'Current Year': '2', 'Current Semester': '1', 'DOB': '05-08-2005', 'Hostel Block': 'B',
    }
    data.update(overrides)
    return RawRow(row_number=number, data=data)


class RowValidatorTests(SimpleTestCase):
    def setUp(self):
        self.snapshot = _snapshot()
        self.validator = RowValidator(self.snapshot, build_header_map(HEADERS))

    def codes(self, result):
        return [issue.code for issue in result.issues]

    def test_valid_row_is_normalized(self):
        result = self.validator.validate(_row())
        self.assertEqual(result.state, RowState.VALID, result.issues)
        data = result.sanitized_data
        self.assertEqual(data['student_name'], 'Asha Rao')
        self.assertEqual(data['gender'], 'Female')
        self.assertEqual(data['course'], 'B.Tech')
        self.assertEqual(data['student_mobile'], '9876543210')
        self.assertEqual(data['dob'], '2005-08-05')
        self.assertEqual(data['current_year'], 2)
        self.assertEqual(data['student_status'], 'Regular')
        self.assertEqual(data['student_data'], {'Hostel Block': 'B'})

    def test_all_missing_fields_are_reported_together(self):
        result = self.validator.validate(_row(**{'Student Name': None, 'Gender': None, 'Student Mobile Number': None}))
        self.assertEqual(result.state, RowState.INVALID)
        missing = [i.field for i in result.issues if i.code == IssueCode.MISSING_FIELD]
        self.assertEqual(missing, ['student_name', 'gender', 'student_mobile'])

    def test_auto_generate_allows_blank_admission_number(self):
        validator = RowValidator(self.snapshot, build_header_map(HEADERS), auto_generate_admission=True)
        self.assertTrue(validator.validate(_row(**{'Admission No': None})).is_valid)
        self.assertFalse(self.validator.validate(_row(**{'Admission No': None})).is_valid)

    def test_unknown_branch_message(self):
        result = self.validator.validate(_row(Branch='ECE'))
        self.assertIn(IssueCode.BRANCH_NOT_FOUND, self.codes(result))
        self.assertIn("Branch 'ECE' not found under course 'B.Tech'", [i.message for i in result.issues])

    def test_course_must_belong_to_college(self):
        result = self.validator.validate(_row(Course='BA'))
        self.assertEqual(self.codes(result), [IssueCode.COURSE_NOT_FOUND])

    def test_inactive_entities_are_rejected(self):
        self.assertIn(IssueCode.COLLEGE_NOT_FOUND, self.codes(self.validator.validate(_row(College='Closed College'))))
        self.assertIn(IssueCode.COURSE_NOT_FOUND, self.codes(self.validator.validate(_row(Course='Old Course'))))
        self.assertIn(IssueCode.BRANCH_NOT_FOUND, self.codes(self.validator.validate(_row(Branch='Civil'))))

    def test_year_bound_branch_only_for_its_batch(self):
        self.assertTrue(self.validator.validate(_row(Branch='AI')).is_valid)
        result = self.validator.validate(_row(number=2, Branch='AI', Batch='2024-2028', **{'Admission No': 'A002'}))
        self.assertIn(IssueCode.BRANCH_NOT_FOUND, self.codes(result))
        self.assertIn('not offered for batch', result.issues[0].message)

    def test_unknown_batch(self):
        result = self.validator.validate(_row(Batch='1999-2003'))
        self.assertEqual(self.codes(result), [IssueCode.ACADEMIC_YEAR_NOT_FOUND])

    def test_stage_bounds_use_branch_structure(self):
        # AI overrides the course to two years
        result = self.validator.validate(_row(Branch='AI', **{'Current Year': '3'}))
        self.assertEqual(self.codes(result), [IssueCode.STAGE_OUT_OF_RANGE])
        # Diploma year 1 has a single semester
        result = self.validator.validate(_row(number=2, Course='Diploma', Branch='Mech',
                                              **{'Admission No': 'A002', 'Current Semester': '2', 'Current Year': '1'}))
        self.assertEqual(self.codes(result), [IssueCode.STAGE_OUT_OF_RANGE])

    def test_blank_stage_defaults_to_first_semester(self):
        result = self.validator.validate(_row(**{'Current Year': None, 'Current Semester': None}))
        self.assertTrue(result.is_valid)
        self.assertEqual((result.sanitized_data['current_year'], result.sanitized_data['current_semester']), (1, 1))

    def test_invalid_values(self):
        result = self.validator.validate(_row(Gender='X', DOB='sometime', **{'Student Mobile Number': '12345',
                                                                             'Current Year': 'two'}))
        fields = sorted(i.field for i in result.issues if i.code == IssueCode.INVALID_VALUE)
        self.assertEqual(fields, ['current_year', 'dob', 'gender', 'student_mobile'])

    def test_intra_file_duplicate_keeps_first_row(self):
        first = self.validator.validate(_row(number=1))
        second = self.validator.validate(_row(number=3, **{'Admission No': 'a001'}))
        self.assertTrue(first.is_valid)
        self.assertEqual(self.codes(second), [IssueCode.DUPLICATE_IN_FILE])
        self.assertIn('Intra-file duplicate admission number', second.issues[0].message)

    def test_database_duplicate(self):
        validator = RowValidator(self.snapshot, build_header_map(HEADERS), existing_admission_numbers=['A001'])
        self.assertEqual(self.codes(validator.validate(_row())), [IssueCode.DUPLICATE_IN_DATABASE])

    def test_selected_college_fills_blank_and_rejects_others(self):
        college = self.snapshot.college_by_id(1)
        validator = RowValidator(self.snapshot, build_header_map(HEADERS), selected_college=college)
        result = validator.validate(_row(College=None))
        self.assertTrue(result.is_valid, result.issues)
        self.assertEqual(result.sanitized_data['college'], 'Tech U')
        other = validator.validate(_row(number=2, College='Arts College', Course='BA', **{'Admission No': 'A9'}))
        self.assertEqual(self.codes(other), [IssueCode.COLLEGE_MISMATCH])

    def test_invalid_record_payload(self):
        record = self.validator.validate(_row(Branch='ECE')).to_record()
        self.assertEqual(record['rowNumber'], 1)
        self.assertEqual(record['rawData']['Branch'], 'ECE')
        self.assertEqual(record['issueDetails'][0]['code'], IssueCode.BRANCH_NOT_FOUND)
        self.assertEqual(record['issues'], [d['message'] for d in record['issueDetails']])
