"""Tests for the file lifecycle."""

from unittest import mock

import pytest
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import DatabaseError

from server.apps.files.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
    RequestValidationError,
)
from server.apps.files.logic.file_operations import (
    FileDraft,
    PublishResult,
    add_groups,
    add_tags,
    delete_file,
    get_file_for_update,
    get_public_file,
    insert_file,
    list_files,
    migrate_namespace,
    open_public_content,
    publish_file,
    remove_groups,
    remove_tags,
    rename_file,
    set_visibility,
    summarize_file,
)
from server.apps.files.models import File, Group, Namespace, Tag


@pytest.mark.django_db
class TestInsertFile:
    """Tests for file row creation."""

    def test_insert_with_attributes(self, user, namespace):
        """Tags and groups are created and attached in the namespace."""
        draft = FileDraft(
            name='a.txt',
            local_name='blob1',
            size_bytes=5,
            mime_type='text/plain',
            namespace=namespace,
            tags=['y', 'x'],
            groups=['g'],
        )

        file_instance = insert_file(draft, user)

        assert file_instance.id > 0
        assert file_instance.tag_names() == ['x', 'y']
        assert file_instance.group_names() == ['g']
        assert Tag.objects.filter(namespace=namespace).count() == 2

    def test_insert_into_default_namespace(self, user):
        """Drafts without namespace go to the default one."""
        file_instance = insert_file(
            FileDraft(name='a.txt', local_name='blob1', size_bytes=1),
            user,
        )

        assert file_instance.namespace.name == 'default'
        assert file_instance.namespace.is_shared

    def test_insert_database_error(self, user, namespace):
        """Database failures surface as InternalError."""
        draft = FileDraft(
            name='a.txt',
            local_name='blob1',
            size_bytes=1,
            namespace=namespace,
        )
        with mock.patch.object(
            File.objects,
            'create',
            side_effect=DatabaseError('boom'),
        ), pytest.raises(InternalError):
            insert_file(draft, user)


@pytest.mark.django_db
class TestMutations:
    """Tests for renames, visibility and attribute edits."""

    def test_rename(self, namespace, make_file):
        """Renaming changes the stored name."""
        file_instance = make_file('a.txt', namespace)

        rename_file(file_instance, 'c.txt')

        file_instance.refresh_from_db()
        assert file_instance.name == 'c.txt'

    def test_rename_blank(self, namespace, make_file):
        """Blank names are rejected."""
        with pytest.raises(RequestValidationError):
            rename_file(make_file('a.txt', namespace), '  ')

    def test_visibility_roundtrip(self, namespace, make_file):
        """Going public allocates a slug, going private clears it."""
        file_instance = make_file('a.txt', namespace)

        assert set_visibility(file_instance, True) is True
        assert file_instance.public_slug
        assert set_visibility(file_instance, True) is False

        assert set_visibility(file_instance, False) is True
        file_instance.refresh_from_db()
        assert not file_instance.is_public
        assert file_instance.public_slug is None
        assert set_visibility(file_instance, False) is False

    def test_add_and_remove_tags(self, user, namespace, make_file):
        """Only effective changes are reported."""
        file_instance = make_file('a.txt', namespace)

        assert add_tags(file_instance, ['x', 'y'], user) is True
        assert add_tags(file_instance, ['x'], user) is False
        assert remove_tags(file_instance, ['x']) is True
        assert remove_tags(file_instance, ['x']) is False
        assert file_instance.tag_names() == ['y']
        # The tag row itself survives detaching
        assert Tag.objects.filter(name='x', namespace=namespace).exists()

    def test_add_and_remove_groups(self, user, namespace, make_file):
        """Groups behave like tags."""
        file_instance = make_file('a.txt', namespace)

        assert add_groups(file_instance, ['g'], user) is True
        assert remove_groups(file_instance, ['missing']) is False
        assert remove_groups(file_instance, ['g']) is True
        assert file_instance.group_names() == []


@pytest.mark.django_db
class TestMigrateNamespace:
    """Tests for moving files between namespaces."""

    def test_attributes_follow_file(self, user, namespace, make_file):
        """Attributes are re-resolved by name in the destination."""
        file_instance = make_file('a.txt', namespace)
        add_tags(file_instance, ['x'], user)
        add_groups(file_instance, ['g'], user)
        destination = Namespace.objects.create(name='archive', owner=user)

        migrate_namespace(file_instance, destination, user)

        file_instance.refresh_from_db()
        assert file_instance.namespace == destination
        assert {tag.namespace_id for tag in file_instance.tags.all()} == {destination.pk}
        assert {group.namespace_id for group in file_instance.groups.all()} == {
            destination.pk,
        }
        assert file_instance.tag_names() == ['x']
        assert Tag.objects.filter(name='x').count() == 2

    def test_reuses_destination_attributes(self, user, namespace, make_file):
        """Existing destination tags are reused, not duplicated."""
        destination = Namespace.objects.create(name='archive', owner=user)
        existing = Tag.objects.create(name='x', namespace=destination, owner=user)
        file_instance = make_file('a.txt', namespace)
        add_tags(file_instance, ['x'], user)

        migrate_namespace(file_instance, destination, user)

        assert list(file_instance.tags.all()) == [existing]

    def test_failure_changes_nothing(self, user, namespace, make_file):
        """A failed move leaves namespace and attributes untouched."""
        file_instance = make_file('a.txt', namespace)
        add_tags(file_instance, ['x'], user)
        destination = Namespace.objects.create(name='archive', owner=user)

        with mock.patch(
            'server.apps.files.logic.file_operations.resolve_or_create',
            side_effect=DatabaseError('boom'),
        ), pytest.raises(InternalError):
            migrate_namespace(file_instance, destination, user)

        assert file_instance.namespace == namespace
        file_instance.refresh_from_db()
        assert file_instance.namespace == namespace
        assert [tag.namespace_id for tag in file_instance.tags.all()] == [namespace.pk]
        assert not Tag.objects.filter(namespace=destination).exists()


@pytest.mark.django_db
class TestDeleteFile:
    """Tests for soft deletion."""

    def test_soft_delete_releases_slug(
        self,
        user,
        namespace,
        mock_s3,
        django_capture_on_commit_callbacks,
    ):
        """Deleted files lose their slug, row and blob go away."""
        default_storage.save('blob1', ContentFile(b'data'))
        file_instance = File.objects.create(
            name='a.txt',
            local_name='blob1',
            owner=user,
            namespace=namespace,
            is_public=True,
            public_slug='abc',
        )

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            delete_file(file_instance)

        assert len(callbacks) == 1
        assert not File.objects.filter(pk=file_instance.pk).exists()
        deleted = File.all_objects.get(pk=file_instance.pk)
        assert deleted.is_deleted
        assert deleted.public_slug is None
        assert not default_storage.exists('blob1')

        with pytest.raises(NotFoundError):
            get_public_file('abc')

    def test_blob_failure_does_not_undo_delete(
        self,
        namespace,
        make_file,
        django_capture_on_commit_callbacks,
    ):
        """Content removal is best effort."""
        file_instance = make_file('a.txt', namespace)

        with mock.patch(
            'server.apps.files.infrastructure.storage.get_content_storage',
        ) as storage, django_capture_on_commit_callbacks(execute=True):
            storage.return_value.exists.side_effect = OSError('down')
            delete_file(file_instance)

        assert File.all_objects.get(pk=file_instance.pk).is_deleted


@pytest.mark.django_db
class TestPublishFile:
    """Tests for publishing."""

    def test_publish_requested_slug(self, namespace, make_file):
        """A free slug is bound to the file."""
        file_instance = make_file('a.txt', namespace)

        result = publish_file(file_instance, 'abc')

        assert not result.conflict
        assert result.slug == 'abc'
        assert get_public_file('abc') == file_instance

    def test_publish_conflict_leaves_state(self, namespace, make_file):
        """A taken slug is reported and nothing changes."""
        make_file('b.txt', namespace, is_public=True, public_slug='abc')
        file_instance = make_file('a.txt', namespace)

        result = publish_file(file_instance, 'abc')

        assert result.conflict
        assert not file_instance.is_public
        assert file_instance.public_slug is None
        file_instance.refresh_from_db()
        assert not file_instance.is_public
        assert file_instance.public_slug is None

    def test_publish_slug_taken_before_save(self, namespace, make_file):
        """A slug claimed between allocation and save is a conflict."""
        make_file('b.txt', namespace, is_public=True, public_slug='abc')
        file_instance = make_file('a.txt', namespace)

        with mock.patch(
            'server.apps.files.logic.file_operations.allocate_public_slug',
            return_value='abc',
        ):
            result = publish_file(file_instance, 'abc')

        assert result == PublishResult(conflict=True)
        assert not file_instance.is_public
        assert file_instance.public_slug is None
        file_instance.refresh_from_db()
        assert not file_instance.is_public
        assert file_instance.public_slug is None

    def test_publish_random_slug(self, namespace, make_file):
        """Without a request a random slug is used."""
        result = publish_file(make_file('a.txt', namespace))

        assert len(result.slug) == 25

    def test_private_file_not_public(self, namespace, make_file):
        """Revoked slugs are not found."""
        make_file('a.txt', namespace, is_public=False, public_slug='abc')

        with pytest.raises(NotFoundError):
            get_public_file('abc')

    def test_open_public_content(self, user, namespace, mock_s3):
        """Published content can be streamed back."""
        default_storage.save('blob1', ContentFile(b'hello'))
        File.objects.create(
            name='a.txt',
            local_name='blob1',
            owner=user,
            namespace=namespace,
            size_bytes=5,
            mime_type='text/plain',
            is_public=True,
            public_slug='abc',
        )

        content = open_public_content('abc')

        with content.stream:
            assert content.stream.read() == b'hello'
        assert content.mime_type == 'text/plain'
        assert content.name == 'a.txt'


@pytest.mark.django_db
class TestLookupAndListing:
    """Tests for addressing and listing files."""

    def test_ambiguous_name(self, user, namespace, make_file):
        """Duplicate names need an id."""
        first = make_file('b.txt', namespace)
        make_file('b.txt', namespace)

        with pytest.raises(ConflictError, match='multiple files with same name'):
            get_file_for_update('b.txt', namespace, user)

        assert get_file_for_update('b.txt', namespace, user, first.id) == first

    def test_not_found(self, user, namespace):
        """Unknown names are not found."""
        with pytest.raises(NotFoundError, match='File not found'):
            get_file_for_update('nothing', namespace, user)

    def test_deleted_files_invisible(self, user, namespace, make_file):
        """Soft-deleted files are neither listed nor addressable."""
        file_instance = make_file('a.txt', namespace)
        delete_file(file_instance)

        assert list_files(namespace, user) == []
        with pytest.raises(NotFoundError):
            get_file_for_update('a.txt', namespace, user)

    def test_filter_or_semantics(self, user, namespace, make_file):
        """A file matches when it carries any requested tag."""
        tagged_x = make_file('x.txt', namespace)
        tagged_y = make_file('y.txt', namespace)
        make_file('plain.txt', namespace)
        add_tags(tagged_x, ['x', 'shared'], user)
        add_tags(tagged_y, ['y', 'shared'], user)

        tags = list(Tag.objects.filter(name__in=['x', 'y', 'shared']))
        files = list_files(namespace, user, tags=tags)

        assert {file_instance.name for file_instance in files} == {'x.txt', 'y.txt'}
        assert len(files) == 2

    def test_tag_and_group_filters_combine(self, user, namespace, make_file):
        """Tag and group filters must both match."""
        both = make_file('both.txt', namespace)
        only_tag = make_file('tag.txt', namespace)
        add_tags(both, ['x'], user)
        add_groups(both, ['g'], user)
        add_tags(only_tag, ['x'], user)

        files = list_files(
            namespace,
            user,
            tags=list(Tag.objects.all()),
            groups=list(Group.objects.all()),
        )

        assert files == [both]

    def test_name_filter(self, user, namespace, make_file):
        """Names are matched by substring."""
        make_file('report-2024.pdf', namespace)
        make_file('photo.jpg', namespace)

        files = list_files(namespace, user, name_contains='report')

        assert [file_instance.name for file_instance in files] == ['report-2024.pdf']

    def test_foreign_namespace_needs_capability(self, user, other_user, make_file):
        """Listing a foreign namespace is denied without the role flag."""
        foreign = Namespace.objects.create(name='work', owner=other_user)
        make_file('a.txt', foreign, owner=other_user)

        with pytest.raises(PermissionDeniedError):
            list_files(foreign, user)

    def test_shared_namespace_lists_own_files(self, user, other_user, make_file):
        """Other users' files in a shared namespace are not listed."""
        shared = Namespace.objects.create(name='common')
        own = make_file('mine.txt', shared)
        make_file('theirs.txt', shared, owner=other_user)

        assert list_files(shared, user) == [own]

    def test_summarize_verbosity(self, user, namespace, make_file):
        """Verbosity adds detail, never changes identity."""
        file_instance = make_file('a.txt', namespace)
        add_tags(file_instance, ['x'], user)

        assert summarize_file(file_instance, 0) == {
            'id': file_instance.id,
            'name': 'a.txt',
        }
        assert summarize_file(file_instance, 1)['size'] == 10
        assert summarize_file(file_instance, 2)['attributes'] == {
            'tags': ['x'],
            'groups': [],
            'namespace': 'docs',
        }
        assert summarize_file(file_instance, 3)['namespace']['owner'] == 'testuser'
