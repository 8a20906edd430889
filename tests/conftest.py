"""Shared fixtures for app tests."""

import hashlib

import boto3
import pytest
from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils.crypto import get_random_string
from moto import mock_aws

from server.apps.accounts.models import Account, Role
from server.apps.files.models import File, Namespace

User = get_user_model()


@pytest.fixture
def user(db):
    """Create test user.

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
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def uploader_role(db):
    """Role allowed to upload files and URLs, without size limits.

    Returns:
        Role instance.
    """
    return Role.objects.create(
        name='uploader',
        can_upload_files=True,
        can_upload_urls=True,
    )


@pytest.fixture
def account(user, uploader_role):
    """Attach the uploader role to ``user``.

    Returns:
        Account instance.
    """
    return Account.objects.create(user=user, role=uploader_role)


@pytest.fixture
def namespace(user):
    """Namespace owned by ``user``.

    Returns:
        Namespace named 'docs'.
    """
    return Namespace.objects.create(name='docs', owner=user)


@pytest.fixture
def make_file(user):
    """Factory creating file rows without content.

    Returns:
        Callable taking name, namespace and optional owner.
    """

    def factory(name, namespace, owner=None, **fields):
        return File.objects.create(
            name=name,
            local_name=get_random_string(40),
            owner=owner or user,
            namespace=namespace,
            size_bytes=fields.pop('size_bytes', 10),
            mime_type=fields.pop('mime_type', 'text/plain'),
            **fields,
        )

    return factory


@pytest.fixture
def mock_s3():
    """Mock S3 service with the configured content bucket.

    Yields:
        boto3 S3 resource with the bucket created.
    """
    bucket = settings.STORAGES['default']['OPTIONS']['bucket_name']
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=bucket)

        yield conn


@pytest.fixture
def bucket_keys(mock_s3):
    """Callable listing object keys in the content bucket.

    Returns:
        Function returning a set of keys.
    """
    bucket = settings.STORAGES['default']['OPTIONS']['bucket_name']

    def keys():
        return {obj.key for obj in mock_s3.Bucket(bucket).objects.all()}

    return keys


def md5_hex(data: bytes) -> str:
    """MD5 digest as sent by clients."""
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


@pytest.fixture
def checksum():
    """Expose the client-side checksum helper to tests.

    Returns:
        Function computing the MD5 hex digest of bytes.
    """
    return md5_hex
