"""Synchronous hub HTTP client.

Provides ``HubHttpClient``, a thin synchronous wrapper around
:mod:`httpx` that raises :class:`~hubclient.exceptions.HttpClientError`
for non-success responses.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from hubclient.exceptions import HttpClientError

logger = logging.getLogger(__name__)


class HubHttpClient:
    """Synchronous HTTP client used to talk to a hub server.

    Usage::

        from hubclient import HttpClientError, HubHttpClient, normalize_error

        with HubHttpClient("http://localhost:8080", token="my-token") as client:
            try:
                client.get("/negotiate", params={"clientProtocol": "1.5"})
            except HttpClientError as exc:
                error = normalize_error(exc)
                print(error.status_code, error.response_body)

    Long-running requests are streamed: the response is returned (or
    attached to the raised error) with its body still unread, and the
    caller is responsible for closing it.

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
        self._http = httpx.Client(
            base_url=self._base_url,
            timeout=timeout,
            headers=headers,
        )

    # -- Context manager ----------------------------------------------------

    def __enter__(self) -> HubHttpClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._http.close()

    # -- Authentication -----------------------------------------------------

    def set_token(self, token: str) -> None:
        """Set the bearer token for subsequent requests.

        Args:
            token: The bearer token string.
        """
        self._token = token

    # -- Requests -----------------------------------------------------------

    def get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        long_running: bool = False,
    ) -> httpx.Response:
        """Send a GET request.

        Raises:
            HttpClientError: If the server answers with a non-success status.
        """
        return self._send("GET", path, long_running=long_running, params=params)

    def post(
        self,
        path: str,
        *,
        data: dict[str, Any] | None = None,
        json: Any | None = None,
        long_running: bool = False,
    ) -> httpx.Response:
        """Send a POST request with form ``data`` or a ``json`` body.

        Raises:
            HttpClientError: If the server answers with a non-success status.
        """
        return self._send(
            "POST", path, long_running=long_running, data=data, json=json
        )

    # -- Internal HTTP helpers ----------------------------------------------

    def _headers(self) -> dict[str, str]:
        """Build per-request headers."""
        headers: dict[str, str] = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _send(self, method: str, path: str, *, long_running: bool, **kwargs: Any) -> httpx.Response:
        if long_running:
            kwargs["timeout"] = None
        request = self._http.build_request(method, path, headers=self._headers(), **kwargs)
        response = self._http.send(request, stream=long_running)
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Return ``response`` unchanged, raising if it is not a success."""
        if not response.is_success:
            logger.debug(
                "%s %s failed with HTTP %d",
                response.request.method,
                response.request.url,
                response.status_code,
            )
            raise HttpClientError(response)
        return response
