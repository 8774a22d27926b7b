"""Normalization of request failures into :class:`NormalizedError` values.

``normalize_error`` accepts any exception raised while talking to a hub
and reports the HTTP status code and response body text it carries,
whichever transport raised it:

* client-library failures (:class:`HttpClientError`,
  :class:`httpx.HTTPStatusError`) carrying an :class:`httpx.Response`;
* low-level web failures (:class:`urllib.error.URLError`), whose
  :class:`urllib.error.HTTPError` subclass doubles as the response.

Bodies of low-level responses are copied into a private buffer before
being decoded, so the original stream stays usable for anyone else
holding the failure, and normalizing the same failure twice gives the
same result.

Example::

    try:
        client.get("/negotiate")
    except Exception as exc:
        with normalize_error(exc) as error:
            print(error.status_code, error.response_body)
"""

from __future__ import annotations

import asyncio
import codecs
import io
import logging
import urllib.error
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from email.message import Message
from typing import TYPE_CHECKING, Literal, Union

import httpx

from hubclient.exceptions import HttpClientError, NormalizedError, unwrap

if TYPE_CHECKING:
    from hubclient._transport import ReadableStream, WebResponse

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 2048
"""Upper bound on the bytes requested per read when duplicating a stream."""


# ---------------------------------------------------------------------------
# Failure shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Unrecognized:
    """A failure that carries no response this module knows how to read."""

    kind: Literal["unrecognized"] = field(default="unrecognized", init=False)


@dataclass(frozen=True)
class ModernHttpFailure:
    """A client-library failure; ``response`` is ``None`` if none arrived.

    ``loop`` is the event loop an async response was received on, when known.
    """

    response: httpx.Response | None
    loop: asyncio.AbstractEventLoop | None = None
    kind: Literal["modern"] = field(default="modern", init=False)


@dataclass(frozen=True)
class LegacyWebFailure:
    """A low-level web failure; ``response`` is ``None`` if none arrived."""

    response: WebResponse | None
    kind: Literal["legacy"] = field(default="legacy", init=False)


ResponseShape = Union[Unrecognized, ModernHttpFailure, LegacyWebFailure]


def classify(failure: BaseException) -> ResponseShape:
    """Map an (already unwrapped) failure onto exactly one response shape."""
    if isinstance(failure, HttpClientError):
        return ModernHttpFailure(failure.response, failure.loop)
    if isinstance(failure, httpx.HTTPStatusError):
        return ModernHttpFailure(failure.response)
    if isinstance(failure, urllib.error.HTTPError):
        return LegacyWebFailure(failure)
    if isinstance(failure, urllib.error.URLError):
        return LegacyWebFailure(None)
    return Unrecognized()


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def normalize_error(
    failure: BaseException,
    *,
    default_encoding: str = "utf-8",
) -> NormalizedError:
    """Unwrap, classify and normalize a failure raised by a request.

    Args:
        failure: The raised exception. Wrapping layers are followed with
            :func:`hubclient.exceptions.unwrap` first.
        default_encoding: Charset used for low-level response bodies whose
            headers do not name a usable one.

    Returns:
        A fresh :class:`NormalizedError`. Only ``cause`` is set when the
        failure has no recognized response attached.

    Raises:
        OSError: If reading a low-level response body fails mid-copy.
        httpx.StreamError: If a client-library response body can no
            longer be read.
        RuntimeError: If an unread async body belongs to the event loop
            running on the calling thread. Call this function through
            :func:`asyncio.to_thread` from code running on that loop.
    """
    cause = unwrap(failure)
    shape = classify(cause)
    logger.debug("Normalizing %s as a %s failure", type(cause).__name__, shape.kind)

    error = NormalizedError(cause)
    if isinstance(shape, ModernHttpFailure):
        _fill_from_http_response(error, shape.response, shape.loop)
    elif isinstance(shape, LegacyWebFailure):
        _fill_from_web_response(error, shape.response, default_encoding)
    return error


# ---------------------------------------------------------------------------
# Client-library responses
# ---------------------------------------------------------------------------


def _fill_from_http_response(
    error: NormalizedError,
    response: httpx.Response | None,
    loop: asyncio.AbstractEventLoop | None,
) -> None:
    if response is None:
        return
    error.raw_response = response
    error.status_code = response.status_code
    error.response_body = _read_text(response, loop)
    logger.debug(
        "Read %d characters of HTTP %d response body",
        len(error.response_body),
        response.status_code,
    )


def _read_text(response: httpx.Response, loop: asyncio.AbstractEventLoop | None) -> str:
    """Return the full body text, reading the content first if needed."""
    try:
        return response.text
    except httpx.ResponseNotRead:
        pass

    if isinstance(response.stream, httpx.SyncByteStream):
        response.read()
    elif loop is not None:
        _read_on_loop(response, loop)
    else:
        _read_on_private_loop(response)
    return response.text


def _read_on_loop(response: httpx.Response, loop: asyncio.AbstractEventLoop) -> None:
    """Block until ``loop``, which owns the response's connection, has read its body."""
    if loop.is_closed():
        raise RuntimeError("cannot read response body: its event loop is closed")

    if not loop.is_running():
        loop.run_until_complete(response.aread())
        return

    if _running_loop() is loop:
        raise RuntimeError(
            "cannot block on the response body from its own event loop; "
            "call normalize_error through asyncio.to_thread instead"
        )
    asyncio.run_coroutine_threadsafe(response.aread(), loop).result()


def _read_on_private_loop(response: httpx.Response) -> None:
    """Block until an async body not tied to any known loop has been read.

    The read runs on its own event loop in a worker thread, so this works
    whether or not the calling thread is already running a loop.
    """

    def read() -> bytes:
        return asyncio.run(response.aread())

    with ThreadPoolExecutor(max_workers=1) as executor:
        executor.submit(read).result()


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


# ---------------------------------------------------------------------------
# Low-level web responses
# ---------------------------------------------------------------------------


def _fill_from_web_response(
    error: NormalizedError,
    response: WebResponse | None,
    default_encoding: str,
) -> None:
    if response is None:
        return
    error.raw_response = response
    error.status_code = response.code

    origin = response.fp
    if origin is None:
        logger.debug("HTTP %d response has no body stream", response.code)
        return
    if not origin.readable():
        logger.debug("HTTP %d response body stream is not readable", response.code)
        return

    stream = clone_stream(origin)
    try:
        body = stream.getvalue()
        error.response_body = _decode(body, response, default_encoding)
    except BaseException:
        stream.close()
        raise
    error.response_stream = stream
    logger.debug("Copied %d bytes of HTTP %d response body", len(body), response.code)


def _decode(body: bytes, response: WebResponse, default_encoding: str) -> str:
    """Decode ``body`` with the first usable charset, falling back to UTF-8.

    Unknown charsets and codecs that are not text encodings (``base64``,
    ``rot13``, ...) are skipped.
    """
    headers = response.headers
    declared = headers.get_content_charset() if isinstance(headers, Message) else None

    for candidate in (declared, default_encoding):
        if not candidate:
            continue
        try:
            return body.decode(_bom_aware(candidate), errors="replace")
        except LookupError:
            logger.debug("Ignoring unusable response charset %r", candidate)
    return body.decode("utf-8-sig", errors="replace")


def _bom_aware(charset: str) -> str:
    name = codecs.lookup(charset).name
    # Drop a leading byte order mark the way text readers do.
    return "utf-8-sig" if name == "utf-8" else name


def clone_stream(
    source: ReadableStream, *, chunk_size: int = COPY_CHUNK_SIZE
) -> io.BytesIO:
    """Copy ``source`` into a new, independently seekable buffer.

    The copy is made with bounded reads of at most ``chunk_size`` bytes
    until a read comes back empty, so sources that return short reads are
    handled. Afterwards ``source`` is rewound to the start if it supports
    seeking. It is never closed.

    Ownership of the returned buffer passes to the caller.

    Args:
        source: Readable binary stream to duplicate.
        chunk_size: Maximum number of bytes to request per read.

    Returns:
        A :class:`io.BytesIO` positioned at the start of the copied bytes.

    Raises:
        ValueError: If ``chunk_size`` is not positive.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    cloned = io.BytesIO()
    try:
        while chunk := source.read(chunk_size):
            cloned.write(chunk)
    except BaseException:
        cloned.close()
        raise

    if source.seekable():
        source.seek(0)
    cloned.seek(0)
    return cloned
