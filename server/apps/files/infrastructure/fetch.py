"""Bounded download of remote URL content."""

import logging
import tempfile
import threading
from dataclasses import dataclass
from typing import IO, Final

import httpx
from django.conf import settings

from server.apps.files.exceptions import FetchCancelledError, UpstreamFetchError

logger = logging.getLogger(__name__)

# Content above this size is spooled to disk instead of memory
_SPOOL_MAX_SIZE: Final = 8 * 1024 * 1024


@dataclass(frozen=True)
class FetchedContent:
    """Downloaded body held in a temporary file."""

    stream: IO[bytes]
    size_bytes: int
    content_type: str | None


def _build_client() -> httpx.Client:
    timeout = getattr(settings, 'URL_FETCH_TIMEOUT', 30.0)
    return httpx.Client(timeout=timeout, follow_redirects=True)


def _declared_length(response: httpx.Response) -> int | None:
    raw = response.headers.get('Content-Length')
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def fetch_url(
    url: str,
    max_size: int | None = None,
    *,
    client: httpx.Client | None = None,
    cancel_event: threading.Event | None = None,
) -> FetchedContent:
    """Download ``url`` into a temporary file.

    The body is streamed chunk by chunk; nothing is returned unless the
    whole body arrived within ``max_size``. On any failure the partial
    content is discarded.

    Args:
        url: Remote http(s) URL.
        max_size: Byte ceiling of the caller's role, ``None`` for none.
        client: Optional preconfigured httpx client.
        cancel_event: Set by the caller to abort the download.

    Returns:
        FetchedContent positioned at the start of the body.

    Raises:
        UpstreamFetchError: On transport errors, non-2xx status codes or
            bodies larger than ``max_size``.
        FetchCancelledError: If ``cancel_event`` was set mid-download.
    """
    owns_client = client is None
    http_client = client or _build_client()
    chunk_size = getattr(settings, 'URL_FETCH_CHUNK_SIZE', 64 * 1024)
    spool = tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_SIZE)  # noqa: SIM115

    try:
        logger.info('Fetching remote content: %s', url)
        with http_client.stream('GET', url) as response:
            if not response.is_success:
                raise UpstreamFetchError(
                    f'Non ok response: {response.status_code}',
                )

            declared = _declared_length(response)
            if max_size is not None and declared is not None and declared > max_size:
                raise UpstreamFetchError('File too large')

            size = 0
            for chunk in response.iter_bytes(chunk_size):
                if cancel_event is not None and cancel_event.is_set():
                    raise FetchCancelledError('Download cancelled')
                size += len(chunk)
                if max_size is not None and size > max_size:
                    raise UpstreamFetchError('File too large')
                spool.write(chunk)

            content_type = response.headers.get('Content-Type')
    except httpx.HTTPError as exc:
        spool.close()
        logger.warning('Remote fetch failed for %s: %s', url, exc)
        raise UpstreamFetchError(f'Could not fetch url: {exc}') from exc
    except UpstreamFetchError as exc:
        spool.close()
        logger.warning('Remote fetch rejected for %s: %s', url, exc)
        raise
    except Exception:
        spool.close()
        logger.exception('Remote fetch aborted for %s', url)
        raise
    finally:
        if owns_client:
            http_client.close()

    spool.seek(0)
    logger.info('Fetched %d bytes from %s', size, url)
    return FetchedContent(
        stream=spool,
        size_bytes=size,
        content_type=content_type,
    )
