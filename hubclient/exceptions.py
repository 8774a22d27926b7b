"""Exception and error value classes for the hub client."""

from __future__ import annotations

import asyncio
import io
from typing import Any

import httpx


class HttpClientError(Exception):
    """Raised by the hub HTTP client when a request gets a non-success status.

    The response is attached unchanged. For long-running requests its body
    has not been read yet.

    Attributes:
        response: The :class:`httpx.Response` that triggered the failure.
        status_code: HTTP status code of the response.
        loop: Event loop the response was received on, for responses from
            the async client. Their unread body can only be read there.
    """

    def __init__(
        self,
        response: httpx.Response,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        super().__init__(f"HTTP {response.status_code}: {response.reason_phrase}")
        self.response = response
        self.status_code = response.status_code
        self.loop = loop

    def __repr__(self) -> str:
        return f"HttpClientError(status_code={self.status_code})"


class NormalizedError:
    """Uniform view of a failed request, whatever transport raised it.

    Produced by :func:`hubclient.errors.normalize_error`. All fields are
    computed eagerly, so ``response_body`` can be read any number of times.

    The duplicated body buffer in ``response_stream`` is owned by this
    object. Release it with :meth:`close` or by using the value as a
    context manager. ``raw_response`` belongs to whoever owns the original
    failure and is never closed here.

    Attributes:
        cause: The unwrapped original failure.
        status_code: HTTP status code, when a response was received.
        response_body: Full decoded response text, when the body was readable.
        raw_response: The transport-specific response object, if any.
        response_stream: Re-readable copy of the body bytes, if one was made.
    """

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        self.status_code: int | None = None
        self.response_body: str | None = None
        self.raw_response: Any = None
        self.response_stream: io.BytesIO | None = None

    # -- Context manager ----------------------------------------------------

    def __enter__(self) -> NormalizedError:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the duplicated body buffer, if one is held."""
        if self.response_stream is not None:
            self.response_stream.close()
            self.response_stream = None

    def __repr__(self) -> str:
        return (
            f"NormalizedError(cause={self.cause!r}, status_code={self.status_code}, "
            f"response_body={self.response_body!r})"
        )

    def __str__(self) -> str:
        if self.status_code is None:
            return f"[{type(self.cause).__name__}] {self.cause}"
        return f"[{type(self.cause).__name__}] {self.cause} (HTTP {self.status_code})"


def unwrap(failure: BaseException) -> BaseException:
    """Follow a failure's wrapping chain to its innermost cause.

    Explicit ``raise ... from`` links and exception groups holding a single
    exception count as wrappers. Implicit ``__context__`` does not. A
    failure with no inner cause is returned as is.
    """
    seen: set[int] = set()
    current = failure
    while id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, BaseExceptionGroup) and len(current.exceptions) == 1:
            current = current.exceptions[0]
        elif current.__cause__ is not None:
            current = current.__cause__
        else:
            break
    return current
