"""Tests for node tree business logic."""

import pytest
from django.core.files.base import ContentFile

from server.apps.drive.exceptions import InvalidNodeStateError
from server.apps.drive.logic.favourite_operations import toggle_star
from server.apps.drive.logic.node_operations import (
    ancestors,
    append_child,
    create_folder,
    descendants,
    get_root,
    list_children,
    list_files,
    provision_root,
    resolve_by_path,
    save_file_tree,
    search,
    upload_file,
)
from server.apps.drive.logic.trash_operations import trash
from server.apps.drive.models import Folder, Node


def _assert_intervals_nested(owner):
    """Every node's interval lies inside its parent's interval."""
    nodes = {node.id: node for node in Node.all_objects.filter(owner=owner)}
    for node in nodes.values():
        assert node.lft < node.rgt
        if node.parent_id is not None:
            parent = nodes[node.parent_id]
            assert parent.lft < node.lft
            assert node.rgt < parent.rgt


@pytest.mark.django_db
class TestRoot:
    """Tests for root provisioning and lookup."""

    def test_get_root(self, user):
        """Test get_root returns the provisioned root."""
        root = get_root(user)

        assert root.is_root is True
        assert root.owner == user

    def test_get_root_missing(self, user):
        """Test get_root raises when no root exists."""
        Node.all_objects.filter(owner=user).delete()

        with pytest.raises(Node.DoesNotExist):
            get_root(user)

    def test_provision_root_is_idempotent(self, user, root):
        """Test provisioning twice keeps a single root."""
        again = provision_root(user)

        assert again.id == root.id
        assert Node.all_objects.filter(owner=user, is_root=True).count() == 1


@pytest.mark.django_db
class TestAppendChild:
    """Tests for append_child and interval maintenance."""

    def test_append_widens_ancestors(self, user, root, make_folder):
        """Test inserting deep nodes keeps every interval nested."""
        docs = make_folder('Docs')
        reports = make_folder('Reports', docs)
        make_folder('2024', reports)
        make_folder('Photos')

        root.refresh_from_db()
        assert root.lft == 1
        assert root.rgt == 2 * Node.all_objects.filter(owner=user).count()
        _assert_intervals_nested(user)

    def test_append_to_file_fails(self, make_file):
        """Test a file cannot receive children."""
        file_node = make_file('a.txt')

        with pytest.raises(InvalidNodeStateError):
            append_child(file_node, Folder(name='nested', is_folder=True))

    def test_append_to_trashed_folder_fails(self, make_folder):
        """Test a trashed folder cannot receive children."""
        folder = make_folder('Old')
        trash(folder)

        with pytest.raises(InvalidNodeStateError):
            append_child(folder, Folder(name='nested', is_folder=True))

    def test_trees_of_users_are_independent(self, user, other_user):
        """Test inserts in one tree do not shift another tree."""
        other_root = get_root(other_user)
        create_folder(user, 'Docs')

        other_root.refresh_from_db()
        assert (other_root.lft, other_root.rgt) == (1, 2)

    def test_path_follows_parent(self, make_folder):
        """Test slug paths are built from the parent path."""
        docs = make_folder('My Docs')
        reports = make_folder('Q1 Reports', docs)

        assert docs.path == 'my-docs'
        assert reports.path == 'my-docs/q1-reports'

    def test_duplicate_sibling_names_allowed(self, root, make_folder):
        """Test siblings may share a name."""
        make_folder('Same')
        make_folder('Same')

        assert list_children(root).filter(name='Same').count() == 2

    def test_create_folder_in_foreign_tree_fails(self, other_user, make_folder):
        """Test creating a folder under another user's folder fails."""
        docs = make_folder('Docs')

        with pytest.raises(Node.DoesNotExist):
            create_folder(other_user, 'Intruder', docs)


@pytest.mark.django_db
class TestListChildren:
    """Tests for list_children ordering and filtering."""

    def test_folders_first_then_newest(self, root, make_folder, make_file):
        """Test folders come first, newest first within each kind."""
        file_a = make_file('a.txt')
        folder_a = make_folder('A')
        file_b = make_file('b.txt')
        folder_b = make_folder('B')

        ids = list(list_children(root).values_list('id', flat=True))

        assert ids == [folder_b.id, folder_a.id, file_b.id, file_a.id]

    def test_trashed_children_hidden(self, root, make_file):
        """Test trashed children are not listed."""
        kept = make_file('kept.txt')
        trash(make_file('gone.txt'))

        assert list(list_children(root)) == [kept]


@pytest.mark.django_db
class TestAncestorsAndDescendants:
    """Tests for breadcrumb and subtree queries."""

    def test_ancestors_from_root_to_parent(self, root, make_folder, make_file):
        """Test ancestors are ordered root first."""
        docs = make_folder('Docs')
        reports = make_folder('Reports', docs)
        file_node = make_file('r.pdf', reports)

        names = [node.name for node in ancestors(file_node)]

        assert names == [root.name, 'Docs', 'Reports']

    def test_descendants_in_tree_order(self, make_folder, make_file):
        """Test descendants are the subtree without the node itself."""
        docs = make_folder('Docs')
        reports = make_folder('Reports', docs)
        report = make_file('r.pdf', reports)
        make_file('elsewhere.txt')
        docs.refresh_from_db()

        assert list(descendants(docs)) == [reports, report]

    def test_descendants_skip_trashed_by_default(self, make_folder, make_file):
        """Test trashed descendants are only returned on request."""
        docs = make_folder('Docs')
        gone = make_file('gone.txt', docs)
        trash(gone)
        docs.refresh_from_db()

        assert list(descendants(docs)) == []
        assert list(descendants(docs, include_trashed=True)) == [gone]

    def test_queries_on_stale_instances(self, root, make_folder, make_file):
        """Test returned objects stay usable after deeper inserts."""
        top = make_folder('Top')
        sub = make_folder('Sub', top)
        leaf = make_file('x.txt', sub)
        sibling = make_file('y.txt')

        assert list(descendants(top)) == [sub, leaf]
        assert [node.name for node in ancestors(leaf)] == [root.name, 'Top', 'Sub']
        assert list(ancestors(sibling)) == [root]
        assert top.rgt == leaf.rgt + 2


@pytest.mark.django_db
class TestLookups:
    """Tests for path resolution and search."""

    def test_resolve_by_path(self, user, make_folder):
        """Test a folder is found by its slug path."""
        docs = make_folder('Docs')
        reports = make_folder('Reports', docs)

        assert resolve_by_path(user, 'docs/reports') == reports
        assert resolve_by_path(user, '/docs/') == docs

    def test_resolve_by_path_other_owner(self, other_user, make_folder):
        """Test another user's path is not resolved."""
        make_folder('Docs')

        with pytest.raises(Node.DoesNotExist):
            resolve_by_path(other_user, 'docs')

    def test_resolve_by_path_skips_trashed(self, user, make_folder):
        """Test a trashed node is not resolved."""
        trash(make_folder('Docs'))

        with pytest.raises(Node.DoesNotExist):
            resolve_by_path(user, 'docs')

    def test_search_is_flat_and_case_insensitive(self, user, make_folder, make_file):
        """Test search crosses folders and ignores case."""
        docs = make_folder('Docs')
        deep = make_file('Annual REPORT.pdf', make_folder('Reports', docs))
        top = make_file('report-draft.txt')
        make_file('notes.txt')

        found = set(search(user, 'report'))

        assert found == {deep, top, Node.objects.get(name='Reports')}

    def test_search_excludes_trashed_and_foreign(self, user, other_user, make_file):
        """Test search ignores trashed nodes and other owners."""
        trash(make_file('report.txt'))
        upload_file(other_user, ContentFile(b'x', name='report.txt'))

        assert list(search(user, 'report')) == []


@pytest.mark.django_db
class TestListFiles:
    """Tests for the "my files" listing."""

    def test_lists_root_by_default(self, user, make_file, make_folder):
        """Test the root's children are listed without a folder."""
        top = make_file('top.txt')
        make_file('nested.txt', make_folder('Docs'))

        names = {node.name for node in list_files(user)}

        assert names == {top.name, 'Docs'}

    def test_search_ignores_folder_scope(self, user, make_file, make_folder):
        """Test a search term lists matches from the whole tree."""
        docs = make_folder('Docs')
        nested = make_file('nested.txt', docs)

        assert list(list_files(user, folder=docs, search_term='NESTED')) == [nested]

    def test_favourites_only(self, user, make_file):
        """Test the favourites filter keeps starred nodes."""
        starred = make_file('star.txt')
        make_file('plain.txt')
        toggle_star(user, starred)

        assert list(list_files(user, favourites=True)) == [starred]


@pytest.mark.django_db
class TestUploads:
    """Tests for upload_file and save_file_tree."""

    def test_upload_stores_in_local_tier(self, user, root, local_dir):
        """Test the payload lands in the local tier with metadata."""
        file_node = upload_file(
            user,
            ContentFile(b'hello world', name='hello.txt'),
        )

        assert file_node.name == 'hello.txt'
        assert file_node.mime == 'text/plain'
        assert file_node.size == 11
        assert file_node.uploaded_on_cloud is False
        assert file_node.parent_id == root.id
        assert file_node.storage_path.startswith(f'files/{user.id}/')
        assert file_node.storage_path.endswith('.txt')
        stored = local_dir / file_node.storage_path
        assert stored.read_bytes() == b'hello world'

    def test_upload_into_file_removes_payload(self, user, make_file, local_dir):
        """Test a failed tree insert removes the stored payload."""
        target = make_file('a.txt')

        with pytest.raises(InvalidNodeStateError):
            upload_file(user, ContentFile(b'x', name='b.txt'), target)

        stored = sorted(path.name for path in (local_dir / 'files' / str(user.id)).iterdir())
        assert stored == [target.storage_path.rsplit('/', 1)[-1]]

    def test_save_file_tree(self, user, root):
        """Test nested mappings become folders with their files."""
        created = save_file_tree(user, {
            'Photos': {
                '2024': {'beach.jpg': ContentFile(b'jpg', name='beach.jpg')},
                'cover.png': ContentFile(b'png', name='cover.png'),
            },
            'readme.md': ContentFile(b'# hi', name='readme.md'),
        })

        assert len(created) == 5
        photos = resolve_by_path(user, 'photos')
        assert {node.name for node in list_children(photos)} == {'2024', 'cover.png'}
        year = resolve_by_path(user, 'photos/2024')
        assert [node.name for node in list_children(year)] == ['beach.jpg']
        assert {node.name for node in list_children(root)} == {'Photos', 'readme.md'}
        _assert_intervals_nested(user)
