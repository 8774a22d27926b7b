"""Protocol definitions for the transport objects the normalizer touches.

These protocols describe the shapes ``hubclient.errors`` relies on. They
are used only for static type checking and are not instantiated at
runtime.
"""

from __future__ import annotations

from typing import Protocol


class ReadableStream(Protocol):
    """Protocol for a binary body stream that may or may not support seek."""

    def read(self, size: int = -1, /) -> bytes | None: ...

    def readable(self) -> bool: ...

    def seekable(self) -> bool: ...

    def seek(self, offset: int, whence: int = 0, /) -> int: ...


class WebResponse(Protocol):
    """Protocol for a low-level web response such as ``urllib.error.HTTPError``."""

    code: int
    fp: ReadableStream | None

    @property
    def headers(self) -> object: ...
