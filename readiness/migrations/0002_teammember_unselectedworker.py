import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('readiness', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='TeamMember',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('worker_id', models.CharField(max_length=64, unique=True)),
                ('team', models.CharField(db_index=True, max_length=100)),
                ('team_leader_id', models.CharField(blank=True, max_length=64, null=True)),
                ('is_active', models.BooleanField(default=True)),
            ],
        ),
        migrations.CreateModel(
            name='UnselectedWorker',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('team_leader_id', models.CharField(db_index=True, max_length=64)),
                ('worker_id', models.CharField(max_length=64)),
                ('assignment_date', models.DateField()),
                ('reason', models.CharField(choices=[('sick', 'Sick'), ('on_leave_rdo', 'On leave / RDO'), ('transferred', 'Transferred to another site'), ('injured_medical', 'Injured / Medical'), ('not_rostered', 'Not rostered')], max_length=32)),
                ('notes', models.TextField(blank=True, null=True)),
                ('case_status', models.CharField(choices=[('open', 'Open'), ('closed', 'Closed')], default='open', max_length=16)),
                ('created_at', models.DateTimeField()),
                ('updated_at', models.DateTimeField()),
            ],
            options={
                'unique_together': {('worker_id', 'assignment_date')},
            },
        ),
    ]
