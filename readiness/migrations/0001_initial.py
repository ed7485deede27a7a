import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Assignment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('worker_id', models.CharField(max_length=64)),
                ('team_leader_id', models.CharField(db_index=True, max_length=64)),
                ('team', models.CharField(db_index=True, max_length=100)),
                ('assigned_date', models.DateField()),
                ('due_time', models.DateTimeField()),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('overdue', 'Overdue'), ('cancelled', 'Cancelled')], default='pending', max_length=16)),
                ('notes', models.TextField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('linked_submission_id', models.CharField(blank=True, max_length=64, null=True)),
                ('created_at', models.DateTimeField()),
                ('updated_at', models.DateTimeField()),
            ],
            options={
                'indexes': [
                    models.Index(fields=['status', 'due_time'], name='readiness_a_status_6b1f0e_idx'),
                    models.Index(fields=['worker_id', 'assigned_date'], name='readiness_a_worker__2c7d4a_idx'),
                    models.Index(fields=['team', 'assigned_date'], name='readiness_a_team_9e3b51_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'cancelled'), _negated=True), fields=('worker_id', 'assigned_date'), name='one_active_assignment_per_worker_day'),
                    models.CheckConstraint(condition=models.Q(models.Q(('completed_at__isnull', False), ('status', 'completed')), models.Q(models.Q(('status', 'completed'), _negated=True), ('completed_at__isnull', True)), _connector='OR'), name='completed_at_iff_completed'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Submission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('worker_id', models.CharField(max_length=64)),
                ('team_leader_id', models.CharField(blank=True, max_length=64, null=True)),
                ('team', models.CharField(max_length=100)),
                ('readiness_level', models.CharField(choices=[('not_fit', 'Not fit for work'), ('minor', 'Minor concerns, fit for work'), ('fit', 'Fit for work')], max_length=16)),
                ('fatigue_level', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('pain_discomfort', models.BooleanField(default=False)),
                ('mood', models.CharField(blank=True, max_length=32, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('submitted_at', models.DateTimeField()),
                ('submitted_date', models.DateField()),
            ],
            options={
                'indexes': [
                    models.Index(fields=['team', 'submitted_at'], name='readiness_s_team_4d8c2f_idx'),
                ],
                'unique_together': {('worker_id', 'submitted_date')},
            },
        ),
        migrations.CreateModel(
            name='JobRun',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('job_id', models.CharField(max_length=128, unique=True)),
                ('job_type', models.CharField(max_length=64)),
                ('status', models.CharField(choices=[('running', 'Running'), ('completed', 'Completed'), ('partial', 'Completed with failures'), ('failed', 'Failed')], default='running', max_length=16)),
                ('processed_count', models.PositiveIntegerField(default=0)),
                ('conflict_count', models.PositiveIntegerField(default=0)),
                ('failed_count', models.PositiveIntegerField(default=0)),
                ('started_at', models.DateTimeField()),
                ('finished_at', models.DateTimeField(blank=True, null=True)),
            ],
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('recipient_id', models.CharField(db_index=True, max_length=64)),
                ('sender_id', models.CharField(blank=True, max_length=64, null=True)),
                ('type', models.CharField(max_length=64)),
                ('title', models.CharField(max_length=200)),
                ('message', models.TextField()),
                ('priority', models.CharField(default='medium', max_length=16)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
        ),
    ]
