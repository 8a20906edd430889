"""Tests for namespace business logic."""

import pytest

from server.apps.files.exceptions import (
    ConflictError,
    NotFoundError,
    RequestValidationError,
)
from server.apps.files.logic.namespace_operations import (
    create_namespace,
    get_default_namespace,
    is_owned_by,
    list_namespaces,
    resolve_namespace,
)
from server.apps.files.models import Namespace


@pytest.mark.django_db
class TestDefaultNamespace:
    """Tests for the shared default namespace."""

    def test_created_once(self):
        """Repeated lookups return the same shared row."""
        first = get_default_namespace()
        second = get_default_namespace()

        assert first == second
        assert first.is_shared
        assert first.name == 'default'
        assert Namespace.objects.count() == 1

    def test_name_from_settings(self, settings):
        """The default name is configurable."""
        settings.DEFAULT_NAMESPACE_NAME = 'common'

        assert get_default_namespace().name == 'common'

    def test_name_from_argument(self):
        """An explicit default name wins over settings."""
        assert get_default_namespace('inbox').name == 'inbox'


@pytest.mark.django_db
class TestResolveNamespace:
    """Tests for namespace resolution."""

    @pytest.mark.parametrize('name', [None, '', '   '])
    def test_empty_name_is_default(self, user, name):
        """Empty names resolve to the default namespace."""
        assert resolve_namespace(name, user) == get_default_namespace()

    def test_own_namespace_preferred(self, user, other_user):
        """The caller's own namespace beats a foreign one."""
        foreign = Namespace.objects.create(name='work', owner=other_user)
        own = Namespace.objects.create(name='work', owner=user)

        assert resolve_namespace('work', user) == own
        assert resolve_namespace('work', other_user) == foreign

    def test_single_foreign_namespace(self, user, other_user):
        """A unique foreign namespace is resolved; access is checked later."""
        foreign = Namespace.objects.create(name='work', owner=other_user)

        assert resolve_namespace('work', user) == foreign
        assert not is_owned_by(foreign, user)

    def test_ambiguous_foreign_namespaces(self, db, user, django_user_model):
        """Several foreign candidates cannot be told apart."""
        for username in ('a', 'b'):
            owner = django_user_model.objects.create_user(username=username)
            Namespace.objects.create(name='work', owner=owner)

        with pytest.raises(ConflictError):
            resolve_namespace('work', user)

    def test_missing_namespace(self, user):
        """Unknown names are not found unless creation is requested."""
        with pytest.raises(NotFoundError, match='namespace not found'):
            resolve_namespace('nowhere', user)

    def test_create_missing(self, user):
        """create_missing creates the namespace for the caller."""
        namespace = resolve_namespace('fresh', user, create_missing=True)

        assert namespace.owner == user
        assert is_owned_by(namespace, user)

    def test_create_missing_ignores_foreign_namespace(self, user, other_user):
        """Names owned by someone else are created again for the caller."""
        foreign = Namespace.objects.create(name='photos', owner=other_user)

        namespace = resolve_namespace('photos', user, create_missing=True)

        assert namespace != foreign
        assert namespace.owner == user
        assert Namespace.objects.filter(name='photos').count() == 2

    def test_create_missing_prefers_shared(self, user):
        """A shared namespace of that name is used as-is."""
        shared = Namespace.objects.create(name='common')

        assert resolve_namespace('common', user, create_missing=True) == shared


@pytest.mark.django_db
class TestCreateNamespace:
    """Tests for explicit namespace creation."""

    def test_create(self, user):
        """Names are stripped and owned by the creator."""
        namespace = create_namespace('  photos ', user)

        assert namespace.name == 'photos'
        assert namespace.owner == user

    def test_duplicate(self, user):
        """Owning the same name twice is a conflict."""
        create_namespace('photos', user)

        with pytest.raises(ConflictError):
            create_namespace('photos', user)

    def test_empty_name(self, user):
        """Blank names are rejected."""
        with pytest.raises(RequestValidationError):
            create_namespace(' ', user)

    def test_list_namespaces(self, user, other_user):
        """Users see their own and shared namespaces only."""
        create_namespace('photos', user)
        create_namespace('secret', other_user)

        names = [namespace.name for namespace in list_namespaces(user)]

        assert names == ['default', 'photos']
