"""Hub client error normalization.

Turns any failure raised while talking to a hub server into a uniform
:class:`NormalizedError` carrying the HTTP status code and response body
text, whichever HTTP transport raised it.

Quick start::

    from hubclient import HubHttpClient, normalize_error

    client = HubHttpClient("http://localhost:8080")
    try:
        client.get("/negotiate")
    except Exception as exc:
        with normalize_error(exc) as error:
            print(error.status_code, error.response_body)
"""

from __future__ import annotations

from hubclient.client import HubHttpClient
from hubclient.async_client import AsyncHubHttpClient
from hubclient.errors import clone_stream, classify, normalize_error
from hubclient.exceptions import HttpClientError, NormalizedError, unwrap

__all__ = [
    "HubHttpClient",
    "AsyncHubHttpClient",
    "HttpClientError",
    "NormalizedError",
    "classify",
    "clone_stream",
    "normalize_error",
    "unwrap",
]

__version__ = "0.1.0"
