"""API endpoint smoke tests.

Covers:
  - JWT login
  - Bulk upload preview -> commit round trip over HTTP
  - Course rename / delete responses (studentsUpdated, blockers)
  - Options, template and submission metadata endpoints
  - Scoped student list and stats
  - Error envelopes: 503 on a database outage, single-use preview tokens

Run with: python manage.py test academics.tests.test_api -v 2
"""
import os
from io import BytesIO, StringIO
from tempfile import NamedTemporaryFile
from unittest import mock

import pandas as pd
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import OperationalError
from rest_framework import status
from rest_framework.test import APITestCase

from academics.models import College, Course, Branch, StaffScope, Student, User

from .test_preview import HierarchyMixin, three_row_csv


class BasicApiTests(HierarchyMixin, APITestCase):
    @classmethod
    def setUpTestData(cls):
        super().setUpTestData()
        cls.admin = User.objects.create_superuser('apiadmin', 'admin@example.com', 'pass12345')
        cls.clerk = User.objects.create_user('clerk', 'clerk@example.com', 'pass12345')
        StaffScope.objects.create(user=cls.clerk, college_ids=[cls.college.id], all_courses=True, all_branches=True)
        cls.arts = College.objects.create(name='Arts College')
        Course.objects.create(college=cls.arts, name='BA')
        Student.objects.create(admission_number='OLD1', student_name='Meena', college='Tech U',
                               course='B.Tech', branch='CSE', batch='2023-2027')
        Student.objects.create(admission_number='ART1', student_name='Kiran', college='Arts College',
                               course='BA', branch='History', batch='2023-2026')

    def auth(self, username='apiadmin'):
        resp = self.client.post('/api/token/', {'username': username, 'password': 'pass12345'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.content)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {resp.data['access']}")

    def upload(self, content, name='students.csv', content_type='text/csv', **extra):
        payload = {'file': SimpleUploadedFile(name, content, content_type=content_type), **extra}
        return self.client.post('/api/students/bulk-upload/preview', payload, format='multipart')

    def test_login_returns_jwt(self):
        resp = self.client.post('/api/token/', {'username': 'apiadmin', 'password': 'pass12345'}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertIn('access', resp.data)
        self.assertIn('refresh', resp.data)

    def test_preview_requires_auth(self):
        resp = self.upload(three_row_csv())
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(resp.data['success'])

    def test_preview_then_commit(self):
        self.auth()
        resp = self.upload(three_row_csv(), collegeId=self.college.id)
        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertTrue(resp.data['success'])
        preview = resp.data['data']
        self.assertEqual(preview['summary'], {'validCount': 1, 'invalidCount': 2, 'totalRows': 3})

        commit = self.client.post('/api/students/bulk-upload/commit', {
            'records': preview['validRecords'],
            'collegeId': self.college.id,
            'previewToken': preview['previewToken'],
        }, format='json')
        self.assertEqual(commit.status_code, 200, commit.content)
        self.assertEqual(commit.data['successCount'], 1)
        self.assertEqual(commit.data['skippedCount'], 0)
        self.assertTrue(Student.objects.filter(admission_number='ADM001').exists())

    def test_unsupported_file_type(self):
        self.auth()
        resp = self.upload(b'%PDF-1.4', name='students.pdf', content_type='application/pdf')
        self.assertEqual(resp.status_code, status.HTTP_415_UNSUPPORTED_MEDIA_TYPE)
        self.assertFalse(resp.data['success'])
        self.assertIn('Unsupported file type', resp.data['detail'])

    def test_commit_with_unknown_token(self):
        self.auth()
        resp = self.client.post('/api/students/bulk-upload/commit', {
            'records': [{'rowNumber': 1, 'sanitizedData': {}}], 'previewToken': 'gone',
        }, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.data['success'])

    def test_course_rename_reports_updated_students(self):
        self.auth()
        resp = self.client.patch(f'/api/courses/{self.course.id}/', {'name': 'B.E.'}, format='json')
        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertEqual(resp.data['name'], 'B.E.')
        self.assertEqual(resp.data['studentsUpdated'], 1)
        self.assertEqual(Student.objects.get(admission_number='OLD1').course, 'B.E.')

    def test_duplicate_course_name_conflicts(self):
        self.auth()
        resp = self.client.patch(f'/api/courses/{self.course.id}/', {'name': 'ba'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(resp.data['success'])

    def test_course_delete_blockers_and_cascade(self):
        self.auth()
        resp = self.client.delete(f'/api/courses/{self.course.id}/?hard=true')
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data['blockers'], {'branches': 1, 'students': 1})

        resp = self.client.delete(f'/api/courses/{self.course.id}/?cascade=true')
        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertEqual(resp.data['deletedStudents'], 1)
        self.assertFalse(Course.objects.filter(pk=self.course.id).exists())

    def test_branch_rename_through_nested_route(self):
        self.auth()
        resp = self.client.patch(f'/api/courses/{self.course.id}/branches/{self.branch.id}/',
                                 {'name': 'CSE-AI'}, format='json')
        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertEqual(resp.data['studentsUpdated'], 1)
        self.assertEqual(Branch.objects.get(pk=self.branch.id).name, 'CSE-AI')

    def test_scoped_user_cannot_write(self):
        self.auth('clerk')
        resp = self.client.patch(f'/api/courses/{self.course.id}/', {'name': 'B.E.'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_course_options(self):
        self.auth()
        resp = self.client.get('/api/courses/options')
        self.assertEqual(resp.status_code, 200, resp.content)
        names = [c['name'] for c in resp.data['data']]
        self.assertIn('B.Tech', names)
        btech = next(c for c in resp.data['data'] if c['name'] == 'B.Tech')
        self.assertEqual(len(btech['structure']['years']), 4)
        self.assertEqual([b['name'] for b in btech['branches']], ['CSE'])

    def test_submission_metadata_is_scoped(self):
        self.auth('clerk')
        resp = self.client.get('/api/submissions/template/F1/metadata')
        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertEqual(resp.data['formId'], 'F1')
        self.assertEqual([c['name'] for c in resp.data['courseOptions']], ['B.Tech'])
        self.assertEqual(resp.data['courseOptions'][0]['branches'][0]['name'], 'CSE')

    def test_template_download(self):
        self.auth()
        resp = self.client.get('/api/students/bulk-upload/template')
        self.assertEqual(resp.status_code, 200)
        self.assertIn('spreadsheetml', resp['Content-Type'])
        sheets = pd.read_excel(BytesIO(resp.content), sheet_name=None)
        self.assertEqual(set(sheets), {'Students', 'Options'})
        self.assertIn('Admission Number', sheets['Students'].columns)

    def test_student_list_respects_scope(self):
        self.auth('clerk')
        resp = self.client.get('/api/students/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['total'], 1)
        self.assertEqual(resp.data['items'][0]['admission_number'], 'OLD1')
        self.assertEqual(self.client.get('/api/students/ART1/').status_code, 404)

    def test_student_search(self):
        self.auth()
        resp = self.client.get('/api/students/', {'search': 'mee na'})
        self.assertEqual([s['admission_number'] for s in resp.data['items']], ['OLD1'])

    def test_stats_pivot(self):
        self.auth()
        resp = self.client.get('/api/students/stats')
        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertEqual(resp.data['columns'][0], 'course')
        self.assertEqual(resp.data['data'][-1]['course'], 'GRAND TOTAL')
        self.assertEqual(resp.data['data'][-1]['2023-2027'], 1)


    def test_database_outage_is_a_503(self):
        self.auth()
        with mock.patch('academics.views_students.fetch_course_batch_counts',
                        side_effect=OperationalError('server closed the connection unexpectedly')):
            resp = self.client.get('/api/students/stats')
        self.assertEqual(resp.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertFalse(resp.data['success'])
        self.assertIn('detail', resp.data)

    def test_corrupt_workbook_is_rejected(self):
        self.auth()
        resp = self.upload(b'PK\x03\x04 truncated workbook', name='students.xlsx',
                           content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(resp.data['success'])

    def test_preview_token_is_single_use(self):
        self.auth()
        preview = self.upload(three_row_csv()).data['data']
        body = {'records': preview['validRecords'], 'previewToken': preview['previewToken']}
        first = self.client.post('/api/students/bulk-upload/commit', body, format='json')
        self.assertEqual(first.data['successCount'], 1)
        replay = self.client.post('/api/students/bulk-upload/commit', body, format='json')
        self.assertEqual(replay.status_code, status.HTTP_400_BAD_REQUEST)

    def test_preview_token_is_bound_to_its_user(self):
        self.auth()
        preview = self.upload(three_row_csv()).data['data']
        self.auth('clerk')
        resp = self.client.post('/api/students/bulk-upload/commit', {
            'records': preview['validRecords'], 'previewToken': preview['previewToken'],
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Student.objects.filter(admission_number='ADM001').exists())

class ImportCommandTests(HierarchyMixin, APITestCase):
    def _write(self, content):
        handle = NamedTemporaryFile(suffix='.csv', delete=False)
        handle.write(content)
        handle.close()
        self.addCleanup(os.unlink, handle.name)
        return handle.name

    def test_dry_run_writes_nothing(self):
        path = self._write(three_row_csv())
        call_command('import_students', path, '--dry-run', stdout=StringIO())
        self.assertFalse(Student.objects.exists())

    def test_import_inserts_valid_rows(self):
        path = self._write(three_row_csv())
        out = StringIO()
        call_command('import_students', path, stdout=out)
        self.assertEqual(list(Student.objects.values_list('admission_number', flat=True)), ['ADM001'])
        self.assertIn('Inserted: 1', out.getvalue())

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command('import_students', '/nonexistent/students.csv')
