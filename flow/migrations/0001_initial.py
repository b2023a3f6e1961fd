import datetime

import django.contrib.auth.models
import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('email', models.EmailField(blank=True, max_length=254, verbose_name='email address')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('role', models.CharField(choices=[('patient', 'Patient'), ('nurse', 'Nurse'), ('receptionist', 'Receptionist'), ('doctor', 'Doctor'), ('admin', 'Administrator'), ('service', 'Service account')], default='patient', max_length=16)),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'abstract': False,
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='SequenceCounter',
            fields=[
                ('name', models.CharField(max_length=128, primary_key=True, serialize=False)),
                ('value', models.PositiveBigIntegerField(default=0)),
            ],
        ),
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('age', models.PositiveIntegerField(blank=True, null=True)),
                ('sex', models.CharField(blank=True, max_length=10)),
                ('phone', models.CharField(blank=True, max_length=32)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='patient_record', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='Clinician',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('department', models.CharField(blank=True, max_length=255)),
                ('slot_minutes', models.PositiveIntegerField(default=30)),
                ('session_start', models.TimeField(default=datetime.time(9, 0))),
                ('session_end', models.TimeField(default=datetime.time(17, 0))),
                ('consultation_fee', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='clinician', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='TriageEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sequence', models.PositiveBigIntegerField(unique=True)),
                ('facility', models.CharField(db_index=True, default='main', max_length=64)),
                ('triage_level', models.CharField(choices=[('critical', 'Critical'), ('urgent', 'Urgent'), ('moderate', 'Moderate'), ('minor', 'Minor')], db_index=True, max_length=16)),
                ('status', models.CharField(choices=[('waiting', 'Waiting'), ('in_treatment', 'In treatment'), ('under_observation', 'Under observation'), ('discharged', 'Discharged'), ('admitted', 'Admitted')], db_index=True, default='waiting', max_length=20)),
                ('arrival_time', models.DateTimeField()),
                ('vitals', models.JSONField(blank=True, default=dict)),
                ('chief_complaint', models.TextField(blank=True)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_clinician', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='triage_entries', to='flow.clinician')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='triage_entries', to='flow.patient')),
            ],
            options={
                'indexes': [models.Index(fields=['facility', 'status'], name='triage_facility_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='TriageTransition',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_status', models.CharField(blank=True, max_length=20, null=True)),
                ('to_status', models.CharField(max_length=20)),
                ('timestamp', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('detail', models.JSONField(blank=True, default=dict)),
                ('event', models.CharField(choices=[('admit', 'Admit'), ('change_status', 'Change status'), ('reassign', 'Reassign')], max_length=20)),
                ('entry', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transitions', to='flow.triageentry')),
                ('operator', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='QueueToken',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('service_date', models.DateField(db_index=True)),
                ('number', models.PositiveIntegerField()),
                ('lane', models.CharField(choices=[('emergency', 'Emergency'), ('priority', 'Priority'), ('regular', 'Regular')], default='regular', max_length=16)),
                ('status', models.CharField(choices=[('waiting', 'Waiting'), ('with_doctor', 'With doctor'), ('completed', 'Completed')], db_index=True, default='waiting', max_length=16)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('called_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('clinician', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tokens', to='flow.clinician')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tokens', to='flow.patient')),
            ],
            options={
                'indexes': [models.Index(fields=['clinician', 'service_date', 'status'], name='token_board_idx')],
                'constraints': [models.UniqueConstraint(fields=('clinician', 'service_date', 'number'), name='uniq_token_per_clinician_day')],
            },
        ),
        migrations.CreateModel(
            name='Bed',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('ward_type', models.CharField(choices=[('general', 'General'), ('semi_private', 'Semi-private'), ('private', 'Private'), ('icu', 'ICU'), ('ccu', 'CCU'), ('emergency', 'Emergency')], db_index=True, max_length=16)),
                ('floor_number', models.IntegerField(default=0)),
                ('room_number', models.CharField(max_length=32)),
                ('bed_number', models.CharField(max_length=32)),
                ('daily_charge', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('amenities', models.JSONField(blank=True, default=list)),
                ('status', models.CharField(choices=[('available', 'Available'), ('occupied', 'Occupied'), ('maintenance', 'Maintenance'), ('cleaning', 'Cleaning'), ('reserved', 'Reserved')], db_index=True, default='available', max_length=16)),
                ('assigned_at', models.DateTimeField(blank=True, null=True)),
                ('discharged_at', models.DateTimeField(blank=True, null=True)),
                ('reserved_for', models.DateField(blank=True, null=True)),
                ('maintenance_reason', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='beds', to='flow.patient')),
                ('reserved_patient', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bed_reservations', to='flow.patient')),
            ],
            options={
                'constraints': [models.UniqueConstraint(fields=('floor_number', 'room_number', 'bed_number'), name='uniq_bed_location')],
            },
        ),
        migrations.CreateModel(
            name='BedEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_status', models.CharField(blank=True, max_length=20, null=True)),
                ('to_status', models.CharField(max_length=20)),
                ('timestamp', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('detail', models.JSONField(blank=True, default=dict)),
                ('event', models.CharField(choices=[('register', 'Register'), ('allocate', 'Allocate'), ('discharge', 'Discharge'), ('mark_clean', 'Mark clean'), ('flag_maintenance', 'Flag maintenance'), ('complete_maintenance', 'Complete maintenance'), ('reserve', 'Reserve'), ('cancel_reservation', 'Cancel reservation')], max_length=24)),
                ('bed', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='events', to='flow.bed')),
                ('operator', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('patient', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='flow.patient')),
            ],
            options={
                'indexes': [models.Index(fields=['bed', 'timestamp'], name='bed_event_bed_ts_idx')],
            },
        ),
        migrations.CreateModel(
            name='Appointment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('scheduled_date', models.DateField()),
                ('scheduled_time', models.TimeField()),
                ('end_time', models.TimeField()),
                ('modality', models.CharField(choices=[('in_person', 'In person'), ('video', 'Video')], default='in_person', max_length=16)),
                ('status', models.CharField(choices=[('upcoming', 'Upcoming'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], db_index=True, default='upcoming', max_length=16)),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid')], db_index=True, default='pending', max_length=16)),
                ('fee', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('symptoms', models.TextField(blank=True)),
                ('notes', models.TextField(blank=True)),
                ('cancellation_reason', models.CharField(blank=True, max_length=255)),
                ('video_room_id', models.CharField(blank=True, max_length=64)),
                ('video_joined_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('clinician', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='appointments', to='flow.clinician')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='appointments', to='flow.patient')),
            ],
            options={
                'indexes': [
                    models.Index(fields=['clinician', 'scheduled_date'], name='appt_clinician_date_idx'),
                    models.Index(fields=['patient', 'scheduled_date'], name='appt_patient_date_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AppointmentSlot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('time', models.TimeField()),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('appointment', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='slot', to='flow.appointment')),
                ('clinician', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='slots', to='flow.clinician')),
            ],
            options={
                'constraints': [models.UniqueConstraint(fields=('clinician', 'date', 'time'), name='uniq_clinician_slot')],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('tax_amount', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('total_amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('success', 'Success'), ('failed', 'Failed')], db_index=True, default='pending', max_length=16)),
                ('gateway_order_id', models.CharField(max_length=64, unique=True)),
                ('gateway_payment_id', models.CharField(blank=True, max_length=128)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('settled_at', models.DateTimeField(blank=True, null=True)),
                ('appointment', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='flow.appointment')),
            ],
        ),
        migrations.CreateModel(
            name='AppointmentEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_status', models.CharField(blank=True, max_length=20, null=True)),
                ('to_status', models.CharField(max_length=20)),
                ('timestamp', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('detail', models.JSONField(blank=True, default=dict)),
                ('event', models.CharField(choices=[('book', 'Book'), ('initiate_payment', 'Initiate payment'), ('confirm_payment', 'Confirm payment'), ('join_video', 'Join video session'), ('complete', 'Complete'), ('cancel', 'Cancel'), ('expire_unpaid', 'Expire unpaid booking')], max_length=24)),
                ('from_payment', models.CharField(blank=True, max_length=16, null=True)),
                ('to_payment', models.CharField(blank=True, max_length=16, null=True)),
                ('appointment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='events', to='flow.appointment')),
                ('operator', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
        ),
    ]
