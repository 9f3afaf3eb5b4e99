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
            name='Node',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=1024)),
                ('path', models.CharField(blank=True, db_index=True, default='', max_length=1024)),
                ('is_folder', models.BooleanField(default=False)),
                ('is_root', models.BooleanField(default=False)),
                ('lft', models.PositiveIntegerField(db_index=True)),
                ('rgt', models.PositiveIntegerField(db_index=True)),
                ('storage_path', models.CharField(blank=True, default='', help_text='Tier-relative key: {prefix}/{owner_id}/file.ext', max_length=1024)),
                ('mime', models.CharField(blank=True, default='', max_length=255)),
                ('size', models.BigIntegerField(default=0, help_text='Size in bytes')),
                ('uploaded_on_cloud', models.BooleanField(default=False, help_text='Set once by the cloud upload job')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='nodes', to=settings.AUTH_USER_MODEL)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='children', to='drive.node')),
            ],
            options={
                'verbose_name': 'Node',
                'verbose_name_plural': 'Nodes',
                'base_manager_name': 'all_objects',
                'indexes': [
                    models.Index(fields=['owner', 'lft', 'rgt'], name='drive_node_interval_idx'),
                    models.Index(fields=['parent', 'deleted_at'], name='drive_node_children_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('is_root', True)), fields=('owner',), name='drive_node_single_root'),
                    models.CheckConstraint(condition=models.Q(('lft__lt', models.F('rgt'))), name='drive_node_interval_ordered'),
                    models.CheckConstraint(condition=models.Q(('is_folder', False), ('storage_path', ''), _connector='OR'), name='drive_node_folder_without_payload'),
                    models.CheckConstraint(condition=models.Q(('is_root', False), ('is_folder', True), _connector='OR'), name='drive_node_root_is_folder'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FileNode',
            fields=[],
            options={
                'proxy': True,
                'indexes': [],
                'constraints': [],
            },
            bases=('drive.node',),
        ),
        migrations.CreateModel(
            name='Folder',
            fields=[],
            options={
                'proxy': True,
                'indexes': [],
                'constraints': [],
            },
            bases=('drive.node',),
        ),
        migrations.CreateModel(
            name='FileShare',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('file', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='shares', to='drive.node')),
                ('user', models.ForeignKey(help_text='Grantee', on_delete=django.db.models.deletion.CASCADE, related_name='received_shares', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'File share',
                'verbose_name_plural': 'File shares',
                'constraints': [
                    models.UniqueConstraint(fields=('file', 'user'), name='drive_file_share_unique'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StarredFile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('file', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='stars', to='drive.node')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='starred_files', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Starred file',
                'verbose_name_plural': 'Starred files',
                'constraints': [
                    models.UniqueConstraint(fields=('file', 'user'), name='drive_starred_file_user_unique'),
                ],
            },
        ),
    ]
