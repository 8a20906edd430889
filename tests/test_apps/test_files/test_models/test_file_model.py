"""Tests for files app models."""

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from server.apps.files.models import File, Namespace, Tag


@pytest.mark.django_db
class TestNamespaceModel:
    """Tests for Namespace constraints."""

    def test_owner_name_unique(self, user):
        """A user cannot own two namespaces with the same name."""
        Namespace.objects.create(name='work', owner=user)

        with pytest.raises(IntegrityError), transaction.atomic():
            Namespace.objects.create(name='work', owner=user)

    def test_same_name_for_different_owners(self, user, other_user):
        """Different users may reuse a namespace name."""
        Namespace.objects.create(name='work', owner=user)
        Namespace.objects.create(name='work', owner=other_user)

        assert Namespace.objects.filter(name='work').count() == 2

    def test_shared_name_unique(self, db):
        """Shared namespaces are unique by name as well."""
        Namespace.objects.create(name='default')

        with pytest.raises(IntegrityError), transaction.atomic():
            Namespace.objects.create(name='default')

    def test_str_and_shared(self, user):
        """Owned namespaces are prefixed with the owner."""
        owned = Namespace.objects.create(name='work', owner=user)
        shared = Namespace.objects.create(name='default')

        assert str(owned) == 'testuser:work'
        assert str(shared) == 'default'
        assert shared.is_shared
        assert not owned.is_shared


@pytest.mark.django_db
class TestTagModel:
    """Tests for Tag uniqueness."""

    def test_name_unique_per_namespace(self, user, namespace):
        """Two tags with one name cannot share a namespace."""
        Tag.objects.create(name='x', namespace=namespace, owner=user)

        with pytest.raises(IntegrityError), transaction.atomic():
            Tag.objects.create(name='x', namespace=namespace, owner=user)

    def test_same_name_in_other_namespace(self, user, namespace):
        """Tag names are scoped to their namespace."""
        other = Namespace.objects.create(name='other', owner=user)
        Tag.objects.create(name='x', namespace=namespace, owner=user)
        Tag.objects.create(name='x', namespace=other, owner=user)

        assert Tag.objects.filter(name='x').count() == 2


@pytest.mark.django_db
class TestFileModel:
    """Tests for File managers and helpers."""

    def test_live_manager_hides_deleted(self, namespace, make_file):
        """Soft-deleted files are only visible through all_objects."""
        live = make_file('a.txt', namespace)
        gone = make_file('b.txt', namespace, deleted_at=timezone.now())

        assert list(File.objects.all()) == [live]
        assert set(File.all_objects.all()) == {live, gone}
        assert gone.is_deleted
        assert not live.is_deleted

    def test_local_name_unique(self, user, namespace):
        """Local names identify content blobs and never repeat."""
        File.objects.create(
            name='a.txt',
            local_name='same',
            owner=user,
            namespace=namespace,
        )

        with pytest.raises(IntegrityError), transaction.atomic():
            File.objects.create(
                name='b.txt',
                local_name='same',
                owner=user,
                namespace=namespace,
            )

    def test_duplicate_names_allowed(self, namespace, make_file):
        """User-facing names may repeat inside a namespace."""
        make_file('b.txt', namespace)
        make_file('b.txt', namespace)

        assert File.objects.filter(name='b.txt').count() == 2

    def test_attribute_names_sorted(self, user, namespace, make_file):
        """tag_names and group_names are sorted."""
        file_instance = make_file('a.txt', namespace)
        file_instance.tags.set([
            Tag.objects.create(name=name, namespace=namespace, owner=user)
            for name in ('y', 'x')
        ])

        assert file_instance.tag_names() == ['x', 'y']
        assert file_instance.group_names() == []
