from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='AcademicYear',
            fields=[
                ('id', models.AutoField(primary_key=True, serialize=False)),
                ('year_label', models.CharField(db_index=True, max_length=50, unique=True)),
                ('start_date', models.DateField(blank=True, null=True)),
                ('end_date', models.DateField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'academic_years',
                'ordering': ['-year_label'],
            },
        ),
        migrations.CreateModel(
            name='College',
            fields=[
                ('id', models.AutoField(primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255, unique=True)),
                ('code', models.CharField(blank=True, max_length=50, null=True, unique=True)),
                ('is_active', models.BooleanField(default=True)),
                ('metadata', models.JSONField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='updated_colleges', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'colleges',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Course',
            fields=[
                ('id', models.AutoField(primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255, unique=True)),
                ('code', models.CharField(blank=True, max_length=50, null=True, unique=True)),
                ('total_years', models.PositiveSmallIntegerField(default=4)),
                ('semesters_per_year', models.PositiveSmallIntegerField(default=2)),
                ('year_semester_config', models.JSONField(blank=True, null=True)),
                ('metadata', models.JSONField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('college', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='courses', to='academics.college')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='updated_courses', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'courses',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Branch',
            fields=[
                ('id', models.AutoField(primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('code', models.CharField(blank=True, max_length=50, null=True)),
                ('total_years', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('semesters_per_year', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('year_semester_config', models.JSONField(blank=True, null=True)),
                ('metadata', models.JSONField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('academic_year', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='branches', to='academics.academicyear')),
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='branches', to='academics.course')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='updated_branches', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'course_branches',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['course', 'academic_year'], name='course_bran_course__2f1d3e_idx')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('academic_year__isnull', True)), fields=('course', 'name'), name='unique_generic_branch_name'),
                    models.UniqueConstraint(fields=('course', 'name', 'academic_year'), name='unique_branch_name_per_year'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Student',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('admission_number', models.CharField(db_index=True, max_length=100, unique=True)),
                ('student_name', models.CharField(max_length=255)),
                ('college', models.CharField(db_index=True, max_length=255)),
                ('course', models.CharField(db_index=True, max_length=255)),
                ('branch', models.CharField(db_index=True, max_length=255)),
                ('batch', models.CharField(db_index=True, max_length=50)),
                ('current_year', models.PositiveSmallIntegerField(default=1)),
                ('current_semester', models.PositiveSmallIntegerField(default=1)),
                ('student_status', models.CharField(choices=[('Regular', 'Regular'), ('Detained', 'Detained'), ('Discontinued', 'Discontinued'), ('Long Absent', 'Long Absent'), ('Passed Out', 'Passed Out')], default='Regular', max_length=50)),
                ('gender', models.CharField(blank=True, choices=[('Male', 'Male'), ('Female', 'Female'), ('Other', 'Other')], max_length=10, null=True)),
                ('student_mobile', models.CharField(blank=True, max_length=20, null=True)),
                ('pin_no', models.CharField(blank=True, max_length=50, null=True)),
                ('stud_type', models.CharField(blank=True, max_length=50, null=True)),
                ('scholar_status', models.CharField(blank=True, max_length=50, null=True)),
                ('parent_mobile1', models.CharField(blank=True, max_length=20, null=True)),
                ('parent_mobile2', models.CharField(blank=True, max_length=20, null=True)),
                ('caste', models.CharField(blank=True, max_length=100, null=True)),
                ('dob', models.DateField(blank=True, null=True)),
                ('father_name', models.CharField(blank=True, max_length=255, null=True)),
                ('admission_date', models.DateField(blank=True, null=True)),
                ('adhar_no', models.CharField(blank=True, max_length=20, null=True)),
                ('student_address', models.TextField(blank=True, null=True)),
                ('city_village', models.CharField(blank=True, max_length=255, null=True)),
                ('mandal_name', models.CharField(blank=True, max_length=255, null=True)),
                ('district', models.CharField(blank=True, max_length=255, null=True)),
                ('previous_college', models.CharField(blank=True, max_length=255, null=True)),
                ('certificates_status', models.CharField(blank=True, max_length=100, null=True)),
                ('remarks', models.TextField(blank=True, null=True)),
                ('student_data', models.JSONField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'students',
                'ordering': ['admission_number'],
                'indexes': [
                    models.Index(fields=['course', 'branch'], name='students_course_8c0f4a_idx'),
                    models.Index(fields=['college', 'course'], name='students_college_5b7e21_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StaffScope',
            fields=[
                ('id', models.AutoField(primary_key=True, serialize=False)),
                ('college_ids', models.JSONField(blank=True, default=list)),
                ('course_ids', models.JSONField(blank=True, default=list)),
                ('branch_ids', models.JSONField(blank=True, default=list)),
                ('all_courses', models.BooleanField(default=False)),
                ('all_branches', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='staff_scope', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'staff_scopes',
            },
        ),
        migrations.CreateModel(
            name='UserActivityLog',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('module', models.CharField(blank=True, max_length=200, null=True)),
                ('action', models.CharField(blank=True, max_length=50, null=True)),
                ('path', models.CharField(blank=True, max_length=1000, null=True)),
                ('method', models.CharField(blank=True, max_length=10, null=True)),
                ('payload', models.JSONField(blank=True, null=True)),
                ('status_code', models.IntegerField(blank=True, null=True)),
                ('note', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_activity_log',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ErrorLog',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('path', models.CharField(blank=True, max_length=1000, null=True)),
                ('method', models.CharField(blank=True, max_length=10, null=True)),
                ('message', models.TextField(blank=True, null=True)),
                ('stack', models.TextField(blank=True, null=True)),
                ('payload', models.JSONField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'error_log',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('action_type', models.CharField(max_length=50)),
                ('entity_type', models.CharField(max_length=50)),
                ('entity_id', models.CharField(blank=True, max_length=100, null=True)),
                ('details', models.JSONField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'audit_logs',
                'ordering': ['-created_at'],
            },
        ),
    ]
