# Copyright 2025 Sushanth (https://github.com/sushanthpy)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Agency HTTP Connection

Sends JSON requests to one of a set of agent endpoints over HTTP.
Redirects are never followed here; a 307 is handed back to the caller,
which decides whether to switch endpoints.
"""

import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from urllib.parse import urlsplit

import httpx

from .config import ConnectionConfig, DEFAULT_TIMEOUT
from .errors import (
    ConnectionError,
    ConnectionTimeoutError,
    ProtocolError,
    RequestCancelledError,
    from_response,
)

logger = logging.getLogger(__name__)

_SCHEME_REPLACEMENTS = (
    ("http+tcp://", "http://"),
    ("http+ssl://", "https://"),
    ("tcp://", "http://"),
    ("ssl://", "https://"),
)


def fixup_endpoint_url_scheme(url: str) -> str:
    """Map arangod-style schemes (tcp://, ssl://) onto http:// and https://."""
    lowered = url.lower()
    for prefix, replacement in _SCHEME_REPLACEMENTS:
        if lowered.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


def endpoint_from_location(location: str) -> Optional[str]:
    """
    Reduce a redirect target to ``scheme://host:port``.

    Returns None when the location does not parse or does not name a host.
    """
    try:
        parts = urlsplit(fixup_endpoint_url_scheme(location.strip()))
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


class Endpoints:
    """
    Immutable ordered set of endpoints with round-robin selection.

    The list itself never changes; the connection swaps whole instances.
    """

    def __init__(self, endpoints: Iterable[str]):
        self._endpoints = tuple(endpoints)
        self._index = 0
        self._lock = Lock()

    def to_list(self) -> List[str]:
        return list(self._endpoints)

    def next(self) -> str:
        """
        Pick the next endpoint in rotation.

        Raises:
            ConnectionError: If the set is empty.
        """
        with self._lock:
            if not self._endpoints:
                raise ConnectionError("No endpoints known")
            if self._index >= len(self._endpoints):
                self._index = 0
            endpoint = self._endpoints[self._index]
            self._index += 1
            return endpoint

    def __len__(self) -> int:
        return len(self._endpoints)

    def __repr__(self) -> str:
        return f"Endpoints({list(self._endpoints)!r})"


@dataclass
class Response:
    """Answer of a single agent."""
    status: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    endpoint: str = ""

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


class Connection:
    """
    HTTP connection to a set of agents.

    Example:
        with Connection.connect(["http://agent1:8531", "http://agent2:8531"]) as conn:
            resp = conn.do("POST", "_api/agency/read", [["/arango"]])
            print(resp.status, resp.body)
    """

    def __init__(
        self,
        endpoints: Sequence[str],
        timeout: float = DEFAULT_TIMEOUT,
        verify: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._endpoints = Endpoints(endpoints)
        self._endpoints_lock = Lock()
        self._closed = False
        self._client = httpx.Client(
            timeout=timeout,
            verify=verify,
            transport=transport,
            follow_redirects=False,
        )

    @classmethod
    def connect(
        cls,
        endpoints: Sequence[str],
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "Connection":
        """
        Create a connection to the given agents.

        Args:
            endpoints: Agent URLs, e.g. ``http://agent1:8531``. tcp:// and
                ssl:// schemes are accepted.
            timeout: Default request timeout in seconds.
            transport: Optional httpx transport (used by tests).

        Returns:
            Connection instance. No request is sent yet.
        """
        return cls(
            [fixup_endpoint_url_scheme(ep) for ep in endpoints],
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: ConnectionConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "Connection":
        return cls(
            [fixup_endpoint_url_scheme(ep) for ep in config.endpoints],
            timeout=config.timeout,
            verify=config.verify,
            transport=transport,
        )

    def close(self):
        """Close the connection. Later requests raise RequestCancelledError."""
        self._closed = True
        self._client.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # =========================================================================
    # Endpoint Management
    # =========================================================================

    def get_endpoint(self) -> List[str]:
        """Return a snapshot of the current endpoint list."""
        with self._endpoints_lock:
            endpoints = self._endpoints
        return endpoints.to_list()

    def set_endpoint(self, endpoints: Union[Endpoints, Sequence[str]]) -> None:
        """
        Replace the whole endpoint set.

        Args:
            endpoints: New endpoints; an Endpoints instance is used as is.

        Raises:
            ConnectionError: If the new set is empty.
        """
        if not isinstance(endpoints, Endpoints):
            endpoints = Endpoints(endpoints)
        if len(endpoints) == 0:
            raise ConnectionError("Cannot replace endpoints with an empty set")
        with self._endpoints_lock:
            self._endpoints = endpoints

    # =========================================================================
    # Requests
    # =========================================================================

    def do(
        self,
        method: str,
        path: str,
        body: Any = None,
        timeout: Optional[float] = None,
    ) -> Response:
        """
        Send a request to the next endpoint.

        Args:
            method: HTTP method.
            path: Path relative to the endpoint, e.g. ``_api/agency/read``.
            body: JSON-serializable request body.
            timeout: Per-request timeout in seconds; the connection default
                applies when omitted.

        Returns:
            Response with the parsed JSON body (None for an empty body).

        Raises:
            RequestCancelledError: If the connection was closed.
            ConnectionTimeoutError: If the request timed out.
            ConnectionError: On any other transport failure.
            ProtocolError: If a successful answer is not valid JSON.
        """
        if self._closed:
            raise RequestCancelledError("Connection is closed")

        with self._endpoints_lock:
            endpoints = self._endpoints
        endpoint = endpoints.next()
        url = endpoint.rstrip("/") + "/" + path.lstrip("/")

        kwargs: Dict[str, Any] = {}
        if body is not None:
            kwargs["json"] = body
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            resp = self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise ConnectionTimeoutError(
                f"Request to {endpoint} timed out: {e}",
                context={"endpoint": endpoint},
            ) from e
        except httpx.TransportError as e:
            if self._closed:
                raise RequestCancelledError(
                    f"Connection closed during request to {endpoint}",
                    context={"endpoint": endpoint},
                ) from e
            raise ConnectionError(
                f"Failed to reach {endpoint}: {e}",
                context={"endpoint": endpoint},
            ) from e

        return Response(
            status=resp.status_code,
            body=self._parse_body(resp, endpoint),
            headers=dict(resp.headers),
            endpoint=endpoint,
        )

    @staticmethod
    def _parse_body(resp: httpx.Response, endpoint: str) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            if resp.is_success:
                raise ProtocolError(
                    f"Invalid JSON in response from {endpoint}: {e}",
                    status=resp.status_code,
                    context={"endpoint": endpoint},
                ) from e
            # Error pages from proxies are not JSON
            return None


def call_with_checks(
    conn: Connection,
    method: str,
    path: str,
    allowed: Sequence[int],
    body: Any = None,
    timeout: Optional[float] = None,
) -> Response:
    """
    Send a request and reject any status outside ``allowed``.

    Raises:
        ResponseError: If the status is not allowed (PreconditionFailedError for 412).
    """
    resp = conn.do(method, path, body=body, timeout=timeout)
    if resp.status not in allowed:
        raise from_response(resp.status, resp.body, endpoint=resp.endpoint)
    return resp
