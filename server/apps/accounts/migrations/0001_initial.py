import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Role',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=64, unique=True)),
                ('can_upload_files', models.BooleanField(default=False)),
                ('can_upload_urls', models.BooleanField(default=False)),
                ('can_read_foreign_namespaces', models.BooleanField(default=False)),
                ('can_write_foreign_namespaces', models.BooleanField(default=False)),
                ('max_upload_size', models.BigIntegerField(blank=True, help_text='Largest raw upload in bytes (empty = unlimited)', null=True)),
                ('max_url_content_size', models.BigIntegerField(blank=True, help_text='Largest remote URL download in bytes (empty = unlimited)', null=True)),
            ],
            options={
                'verbose_name': 'Role',
                'verbose_name_plural': 'Roles',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Account',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='account', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('role', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='accounts', to='accounts.role')),
            ],
            options={
                'verbose_name': 'Account',
                'verbose_name_plural': 'Accounts',
            },
        ),
        migrations.CreateModel(
            name='LoginSession',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('token', models.CharField(help_text='Bearer token presented by the client', max_length=64, unique=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Session start time')),
                ('last_activity', models.DateTimeField(auto_now=True, db_index=True, help_text='Last activity timestamp')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='login_sessions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Login Session',
                'verbose_name_plural': 'Login Sessions',
                'ordering': ['-last_activity'],
                'indexes': [models.Index(fields=['user', '-last_activity'], name='session_user_activity_idx')],
            },
        ),
    ]
