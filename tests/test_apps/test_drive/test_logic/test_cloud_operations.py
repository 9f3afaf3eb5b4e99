"""Tests for the cloud upload job."""

import pytest

from server.apps.drive.exceptions import StorageError
from server.apps.drive.logic.cloud_operations import (
    pending_uploads,
    upload_to_cloud,
)
from server.apps.drive.logic.trash_operations import purge, trash
from server.apps.drive.models import FileNode, Node


def _cloud_body(mock_s3, key):
    return mock_s3.Object('drive-cloud', key).get()['Body'].read()


@pytest.mark.django_db
class TestUploadToCloud:
    """Tests for upload_to_cloud."""

    def test_moves_payload_to_cloud(self, make_file, local_dir, mock_s3):
        """Test payload lands in the bucket and the local copy is gone."""
        file_node = make_file('a.txt', content=b'payload')

        assert upload_to_cloud(file_node.id) is True

        file_node.refresh_from_db()
        assert file_node.uploaded_on_cloud is True
        assert file_node.tier == 'cloud'
        assert _cloud_body(mock_s3, file_node.storage_path) == b'payload'
        assert not (local_dir / file_node.storage_path).exists()

    def test_flag_flips_once(self, make_file, mock_s3):
        """Test a second run is a no-op."""
        file_node = make_file('a.txt')

        assert upload_to_cloud(file_node.id) is True
        assert upload_to_cloud(file_node.id) is False

    def test_trashed_file_is_uploaded(self, make_file, mock_s3):
        """Test trashed files still move to the cloud tier."""
        file_node = make_file('a.txt')
        trash(file_node)

        assert upload_to_cloud(file_node.id) is True
        assert Node.all_objects.get(id=file_node.id).uploaded_on_cloud

    def test_missing_local_payload_fails(self, make_file, local_dir, mock_s3):
        """Test a missing local payload leaves the flag unset."""
        file_node = make_file('a.txt')
        (local_dir / file_node.storage_path).unlink()

        with pytest.raises(StorageError) as exc_info:
            upload_to_cloud(file_node.id)

        assert exc_info.value.tier == 'local'
        file_node.refresh_from_db()
        assert file_node.uploaded_on_cloud is False

    def test_purged_file_is_not_found(self, make_file, mock_s3):
        """Test a purged node cannot be uploaded."""
        file_node = make_file('a.txt')
        trash(file_node)
        purge(file_node)

        with pytest.raises(FileNode.DoesNotExist):
            upload_to_cloud(file_node.id)

    def test_purge_deletes_cloud_payload(self, make_file, mock_s3):
        """Test purge removes the payload from the tier it lives in."""
        file_node = make_file('a.txt')
        upload_to_cloud(file_node.id)
        file_node.refresh_from_db()
        key = file_node.storage_path

        trash(file_node)
        purge(file_node)

        bucket_keys = [obj.key for obj in mock_s3.Bucket('drive-cloud').objects.all()]
        assert key not in bucket_keys


@pytest.mark.django_db
class TestPendingUploads:
    """Tests for pending_uploads."""

    def test_lists_local_files_only(self, make_file, make_folder, mock_s3):
        """Test folders and migrated files are not pending."""
        make_folder('Docs')
        migrated = make_file('a.txt')
        local = make_file('b.txt')
        upload_to_cloud(migrated.id)

        assert list(pending_uploads().values_list('id', flat=True)) == [local.id]
