"""Request schemas for file operations.

Each operation validates its payload with one of these forms before
touching the engine. Payloads are plain dictionaries decoded from the
wire format (raw content is base64, attribute lists are JSON arrays).
"""

import base64
import binascii
from typing import Any, Final, override

from django import forms

from server.apps.files.logic.ingestion import UPLOAD_TYPE_FILE, UPLOAD_TYPE_URL

_NAME_MAX_LENGTH: Final = 255
_MAX_VERBOSITY: Final = 3

_BOOLEAN_CHOICES: Final = (
    ('true', 'true'),
    ('True', 'True'),
    ('1', '1'),
    ('false', 'false'),
    ('False', 'False'),
    ('0', '0'),
)


def _to_bool(value: str) -> bool:
    return value in {'true', 'True', '1'}


class NameListField(forms.JSONField):
    """List of attribute names (tags or groups)."""

    @override
    def to_python(self, value: Any) -> list[str]:
        value = super().to_python(value)
        if value in self.empty_values:
            return []
        if not isinstance(value, list) or not all(
            isinstance(item, str) for item in value
        ):
            raise forms.ValidationError('Expected a list of names.')
        return value

    @override
    def prepare_value(self, value: Any) -> Any:
        return value


class AttributesMixin(forms.Form):
    """Namespace, tags and groups shared by several requests."""

    namespace = forms.CharField(max_length=_NAME_MAX_LENGTH, required=False)
    tags = NameListField(required=False)
    groups = NameListField(required=False)


class UploadRequestForm(AttributesMixin):
    """Upload by raw content or by remote URL."""

    upload_type = forms.ChoiceField(
        choices=((UPLOAD_TYPE_FILE, 'file'), (UPLOAD_TYPE_URL, 'url')),
        error_messages={'invalid_choice': 'invalid upload type'},
    )
    name = forms.CharField(max_length=_NAME_MAX_LENGTH, required=False)
    data = forms.CharField(required=False, strip=False)
    sum = forms.CharField(max_length=64, required=False)
    url = forms.CharField(max_length=2048, required=False)

    def clean_data(self) -> bytes:
        """Decode base64 content."""
        raw = self.cleaned_data.get('data') or ''
        try:
            return base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise forms.ValidationError('data must be base64') from exc

    @override
    def clean(self) -> dict[str, Any]:
        cleaned = super().clean()
        upload_type = cleaned.get('upload_type')
        if upload_type == UPLOAD_TYPE_FILE:
            if not cleaned.get('data') and 'data' not in self.errors:
                self.add_error('data', 'This field is required.')
            if not cleaned.get('sum'):
                self.add_error('sum', 'This field is required.')
        elif upload_type == UPLOAD_TYPE_URL and not cleaned.get('url'):
            self.add_error('url', 'missing or malformed url')
        return cleaned


class ListRequestForm(AttributesMixin):
    """List files of a namespace."""

    name = forms.CharField(max_length=_NAME_MAX_LENGTH, required=False)
    verbose = forms.IntegerField(
        min_value=0,
        max_value=_MAX_VERBOSITY,
        required=False,
    )

    def clean_verbose(self) -> int:
        """Missing verbosity means bare identity."""
        return self.cleaned_data.get('verbose') or 0


class FileActionRequestForm(forms.Form):
    """Address one file and describe the changes to apply.

    The ``update`` action applies every present field; ``delete``
    ignores them.
    """

    name = forms.CharField(max_length=_NAME_MAX_LENGTH)
    file_id = forms.IntegerField(min_value=1, required=False)
    namespace = forms.CharField(max_length=_NAME_MAX_LENGTH, required=False)

    new_name = forms.CharField(max_length=_NAME_MAX_LENGTH, required=False)
    is_public = forms.TypedChoiceField(
        choices=_BOOLEAN_CHOICES,
        coerce=_to_bool,
        empty_value=None,
        required=False,
        error_messages={'invalid_choice': 'isPublic must be a bool'},
    )
    new_namespace = forms.CharField(max_length=_NAME_MAX_LENGTH, required=False)
    add_tags = NameListField(required=False)
    remove_tags = NameListField(required=False)
    add_groups = NameListField(required=False)
    remove_groups = NameListField(required=False)


class PublishRequestForm(forms.Form):
    """Publish one file, optionally under a chosen slug."""

    name = forms.CharField(max_length=_NAME_MAX_LENGTH)
    file_id = forms.IntegerField(min_value=1, required=False)
    namespace = forms.CharField(max_length=_NAME_MAX_LENGTH, required=False)
    public_name = forms.SlugField(max_length=128, required=False)


class NamespaceRequestForm(forms.Form):
    """Create a namespace."""

    name = forms.CharField(max_length=_NAME_MAX_LENGTH)


class AttributeRequestForm(forms.Form):
    """List, rename or delete tags or groups of a namespace."""

    namespace = forms.CharField(max_length=_NAME_MAX_LENGTH, required=False)
    name = forms.CharField(max_length=_NAME_MAX_LENGTH, required=False)
    new_name = forms.CharField(max_length=_NAME_MAX_LENGTH, required=False)


class LoginRequestForm(forms.Form):
    """Username and password exchanged for a session token."""

    username = forms.CharField(max_length=150)
    password = forms.CharField(strip=False)
