"""Shared fixtures for drive app tests."""

from pathlib import Path

import boto3
import pytest
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from moto import mock_aws

from server.apps.drive.logic.node_operations import (
    create_folder,
    get_root,
    upload_file,
)

User = get_user_model()

CLOUD_BUCKET = 'drive-cloud'
PUBLIC_URL = '/media/public/'


@pytest.fixture(autouse=True)
def storage_tiers(settings, tmp_path):
    """Point disk tiers at a temp dir and the cloud tier at a test bucket.

    Returns:
        Temp directory holding the ``local`` and ``public`` tiers.
    """
    settings.STORAGES = {
        'default': {
            'BACKEND': 'django.core.files.storage.FileSystemStorage',
            'OPTIONS': {'location': str(tmp_path / 'default')},
        },
        'local': {
            'BACKEND': 'django.core.files.storage.FileSystemStorage',
            'OPTIONS': {'location': str(tmp_path / 'local')},
        },
        'cloud': {
            'BACKEND': 'server.apps.drive.infrastructure.storage.CloudStorage',
            'OPTIONS': {
                'bucket_name': CLOUD_BUCKET,
                'access_key': 'testing',
                'secret_key': 'testing',
                'region_name': 'us-east-1',
                'file_overwrite': True,
            },
        },
        'public': {
            'BACKEND': 'django.core.files.storage.FileSystemStorage',
            'OPTIONS': {
                'location': str(tmp_path / 'public'),
                'base_url': PUBLIC_URL,
            },
        },
    }
    return tmp_path


@pytest.fixture
def public_dir(storage_tiers) -> Path:
    """Filesystem root of the public tier."""
    return storage_tiers / 'public'


@pytest.fixture
def local_dir(storage_tiers) -> Path:
    """Filesystem root of the local tier."""
    return storage_tiers / 'local'


@pytest.fixture
def mock_s3():
    """Mock S3 service with the cloud tier bucket.

    Yields:
        boto3 S3 resource with the bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=CLOUD_BUCKET)
        yield conn


@pytest.fixture
def user(db):
    """Create test user (root folder is provisioned by signal).

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation and sharing tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def root(user):
    """Root folder of the test user."""
    return get_root(user)


@pytest.fixture
def make_file(user):
    """Factory uploading a small file into the test user's tree.

    Returns:
        Callable ``(name, parent=None, content=b'...') -> FileNode``.
    """
    def factory(name, parent=None, content=b'test file content'):
        return upload_file(user, ContentFile(content, name=name), parent)

    return factory


@pytest.fixture
def make_folder(user):
    """Factory creating folders in the test user's tree.

    Returns:
        Callable ``(name, parent=None) -> Folder``.
    """
    def factory(name, parent=None):
        return create_folder(user, name, parent)

    return factory


@pytest.fixture
def public_file(public_dir):
    """Map a public tier URL back to its file on disk.

    Returns:
        Callable ``(url) -> Path``.
    """
    def resolve(url):
        return public_dir / url.removeprefix(PUBLIC_URL)

    return resolve
