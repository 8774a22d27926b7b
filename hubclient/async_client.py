"""Asynchronous hub HTTP client.

Provides ``AsyncHubHttpClient``, the :class:`httpx.AsyncClient` based
counterpart of :class:`~hubclient.client.HubHttpClient`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from hubclient.exceptions import HttpClientError

logger = logging.getLogger(__name__)


class AsyncHubHttpClient:
    """Asynchronous HTTP client used to talk to a hub server.

    Usage::

        import asyncio
        from hubclient import AsyncHubHttpClient

        async def main():
            async with AsyncHubHttpClient("http://localhost:8080") as client:
                response = await client.get("/negotiate")
                print(response.json())

        asyncio.run(main())

    A failed long-running request raises with its async body unread.
    :func:`hubclient.normalize_error` still reports the full body text for
    it, blocking until this client's event loop has read the body. From a
    coroutine on that loop, run it with :func:`asyncio.to_thread`::

        except HttpClientError as exc:
            error = await asyncio.to_thread(normalize_error, exc)

    Args:
        base_url: Root URL of the hub server.
        token: Optional bearer token. Can also be set later via
            :meth:`set_token`.
        timeout: HTTP request timeout in seconds for regular requests.
            Long-running requests are sent without a timeout.
        headers: Extra headers sent with every request.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token: str | None = token
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers=headers,
        )

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> AsyncHubHttpClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying async HTTP connection pool."""
        await self._http.aclose()

    # -- Authentication -----------------------------------------------------

    def set_token(self, token: str) -> None:
        """Set the bearer token for subsequent requests.

        Args:
            token: The bearer token string.
        """
        self._token = token

    # -- Requests -----------------------------------------------------------

    async def get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        long_running: bool = False,
    ) -> httpx.Response:
        """Send an async GET request."""
        return await self._send("GET", path, long_running=long_running, params=params)

    async def post(
        self,
        path: str,
        *,
        data: dict[str, Any] | None = None,
        json: Any | None = None,
        long_running: bool = False,
    ) -> httpx.Response:
        """Send an async POST request with form ``data`` or a ``json`` body."""
        return await self._send(
            "POST", path, long_running=long_running, data=data, json=json
        )

    # -- Internal HTTP helpers ----------------------------------------------

    def _headers(self) -> dict[str, str]:
        """Build per-request headers."""
        headers: dict[str, str] = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _send(
        self, method: str, path: str, *, long_running: bool, **kwargs: Any
    ) -> httpx.Response:
        if long_running:
            kwargs["timeout"] = None
        request = self._http.build_request(method, path, headers=self._headers(), **kwargs)
        response = await self._http.send(request, stream=long_running)
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Return ``response`` unchanged, raising if it is not a success.

        The raised error records the running event loop, which owns the
        connection an unread long-running body must be read from.
        """
        if not response.is_success:
            logger.debug(
                "%s %s failed with HTTP %d",
                response.request.method,
                response.request.url,
                response.status_code,
            )
            raise HttpClientError(response, loop=asyncio.get_running_loop())
        return response
