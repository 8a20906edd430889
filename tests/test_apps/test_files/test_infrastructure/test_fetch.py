"""Tests for bounded URL downloads."""

import threading
from unittest import mock

import httpx
import pytest

from server.apps.files.exceptions import FetchCancelledError, UpstreamFetchError
from server.apps.files.infrastructure.fetch import fetch_url


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_fetch_returns_body():
    """The whole body is returned from the start."""
    client = _client(lambda request: httpx.Response(
        200,
        content=b'payload',
        headers={'Content-Type': 'application/json'},
    ))

    fetched = fetch_url('https://example.com/a', client=client)

    with fetched.stream:
        assert fetched.stream.read() == b'payload'
    assert fetched.size_bytes == 7
    assert fetched.content_type == 'application/json'


def test_declared_length_over_limit():
    """A declared Content-Length above the ceiling is refused early."""
    client = _client(lambda request: httpx.Response(200, content=b'x' * 20))

    with pytest.raises(UpstreamFetchError, match='File too large'):
        fetch_url('https://example.com/a', max_size=10, client=client)


def test_exact_limit_accepted():
    """Content of exactly the ceiling is fine."""
    client = _client(lambda request: httpx.Response(200, content=b'x' * 10))

    assert fetch_url('https://example.com/a', max_size=10, client=client).size_bytes == 10


def test_transport_error_wrapped():
    """Connection failures become UpstreamFetchError."""

    def handler(request):
        raise httpx.ConnectError('refused', request=request)

    with pytest.raises(UpstreamFetchError, match='Could not fetch url'):
        fetch_url('https://example.com/a', client=_client(handler))


def test_server_error_status():
    """Non-2xx answers are refused."""
    client = _client(lambda request: httpx.Response(503))

    with pytest.raises(UpstreamFetchError, match='Non ok response: 503'):
        fetch_url('https://example.com/a', client=client)


def test_cancel_event():
    """A cancelled fetch raises a dedicated subclass."""
    cancel_event = threading.Event()
    cancel_event.set()
    client = _client(lambda request: httpx.Response(200, content=b'data'))

    with pytest.raises(FetchCancelledError):
        fetch_url('https://example.com/a', client=client, cancel_event=cancel_event)


def test_spool_closed_on_write_error():
    """A failing temporary file is closed and the error propagates."""
    spool = mock.MagicMock()
    spool.write.side_effect = OSError('disk full')
    client = _client(lambda request: httpx.Response(200, content=b'data'))

    with mock.patch(
        'server.apps.files.infrastructure.fetch.tempfile.SpooledTemporaryFile',
        return_value=spool,
    ), pytest.raises(OSError, match='disk full'):
        fetch_url('https://example.com/a', client=client)

    spool.close.assert_called_once_with()
