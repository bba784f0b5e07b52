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
Agency Client

Reads and writes the agency, the consensus-backed key/value store that
holds ArangoDB cluster metadata.

Only the agency leader answers reads; followers reply 307 with the leader
in the Location header. read_key follows those redirects and re-points the
connection at the leader. Writes do not follow redirects, so a read is the
way to discover the leader before writing.
"""

import logging
import time
from typing import Any, Callable, List, Optional, Sequence, Set

import httpx

from .config import ConnectionConfig, DEFAULT_TIMEOUT
from .connection import Connection, call_with_checks, endpoint_from_location
from .errors import (
    AgencyError,
    ConnectionTimeoutError,
    KeyNotFoundError,
    PreconditionFailedError,
    ProtocolError,
    RedirectError,
    is_canceled,
    is_timeout,
)
from .operation import (
    create_full_key,
    new_condition_if_equal,
    new_condition_old_empty,
    new_key_delete,
    new_key_observe,
    new_key_set_with_ttl,
)
from .transaction import Transaction, TransactionOptions

logger = logging.getLogger(__name__)

READ_PATH = "_api/agency/read"
WRITE_PATH = "_api/agency/write"
TRANSIENT_PATH = "_api/agency/transient"

# Leader hops a single read may take before giving up
MAX_REDIRECTS = 5

_READ_ALLOWED = (200, 201, 202, 307)
_WRITE_ALLOWED = (200, 201, 202, 412)


def _log_failure(msg: str, *args: Any, err: BaseException) -> None:
    # Closed connections and deadlines are expected during shutdown
    if is_canceled(err) or is_timeout(err):
        logger.debug(msg + ": %s", *args, err)
    else:
        logger.error(msg + ": %s", *args, err)


def _remaining(timeout: Optional[float], deadline: Optional[float], full_key: str) -> Optional[float]:
    if deadline is None:
        return timeout
    left = deadline - time.monotonic()
    if left <= 0:
        raise ConnectionTimeoutError(
            f"Deadline exceeded while reading {full_key}",
            context={"key": full_key},
        )
    return left if timeout is None else min(timeout, left)


def _convert(value: Any, value_type: Optional[Callable[..., Any]]) -> Any:
    if value_type is None:
        return value
    if isinstance(value, dict):
        return value_type(**value)
    return value_type(value)


class AgencyClient:
    """
    Client for the agency API of an ArangoDB cluster.

    Example:
        with AgencyClient.connect(["http://agent1:8531"]) as agency:
            plan_version = agency.read_key(["arango", "Plan", "Version"])
            agency.write_key_if_empty(["locks", "upgrade"], "me", ttl=30)
    """

    def __init__(self, connection: Connection):
        self._conn = connection

    @classmethod
    def connect(
        cls,
        endpoints: Sequence[str],
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "AgencyClient":
        """
        Create a client for the agents at the given endpoints.

        Args:
            endpoints: Agent URLs. Only agents may be listed.
            timeout: Default request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        return cls(Connection.connect(endpoints, timeout=timeout, transport=transport))

    @classmethod
    def from_config(
        cls,
        config: Optional[ConnectionConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "AgencyClient":
        """Create a client from a ConnectionConfig (default: the environment)."""
        if config is None:
            config = ConnectionConfig.from_env()
        return cls(Connection.from_config(config, transport=transport))

    @property
    def connection(self) -> Connection:
        return self._conn

    def close(self):
        """Close the underlying connection."""
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # =========================================================================
    # Read Path
    # =========================================================================

    def read_key(
        self,
        key: Sequence[str],
        value_type: Optional[Callable[..., Any]] = None,
        timeout: Optional[float] = None,
        deadline: Optional[float] = None,
    ) -> Any:
        """
        Read the value stored at key.

        Args:
            key: Path segments, e.g. ``["arango", "Plan", "Version"]``. An
                empty key returns the whole tree.
            value_type: Optional callable applied to the decoded value
                (``value_type(**value)`` for objects, ``value_type(value)``
                otherwise).
            timeout: Per-request timeout in seconds.
            deadline: ``time.monotonic()`` value bounding the whole read,
                redirects included. Each request gets at most the time left.

        Returns:
            The decoded JSON value, or value_type applied to it.

        Raises:
            KeyNotFoundError: If a segment is missing; ``err.key`` is the
                path up to and including that segment.
            RedirectError: On a redirect without Location, a redirect cycle,
                or more than MAX_REDIRECTS hops.
            ConnectionTimeoutError: If the deadline passed.
            ResponseError: On any other unexpected status.
            ConnectionError: If no agent could be reached.
        """
        key = list(key)
        full_key = create_full_key(key)
        body = [[full_key]]
        visited: Set[str] = set()

        while True:
            try:
                resp = call_with_checks(
                    self._conn, "POST", READ_PATH, _READ_ALLOWED,
                    body=body, timeout=_remaining(timeout, deadline, full_key),
                )
            except AgencyError as e:
                _log_failure("Agency read_key failed: key=%s", full_key, err=e)
                raise

            if resp.status != 307:
                try:
                    value = self._resolve(resp.body, key)
                except ProtocolError as e:
                    _log_failure("Agency read_key failed: key=%s", full_key, err=e)
                    raise
                return _convert(value, value_type)

            leader = self._leader_from_redirect(resp.header("Location"), full_key, visited)
            logger.debug(
                "Agency redirect: key=%s, from=%s, leader=%s",
                full_key, resp.endpoint, leader,
            )
            self._conn.set_endpoint([leader])

    def _leader_from_redirect(
        self, location: Optional[str], full_key: str, visited: Set[str]
    ) -> str:
        context = {"key": full_key, "location": location, "visited": sorted(visited)}
        if not location:
            err = RedirectError("Agency redirect without Location header", context=context)
        else:
            leader = endpoint_from_location(location)
            if leader is None:
                err = RedirectError(
                    f"Agency redirect to invalid location {location!r}", context=context
                )
            elif leader in visited:
                err = RedirectError(f"Agency redirect cycle at {leader}", context=context)
            elif len(visited) >= MAX_REDIRECTS:
                err = RedirectError(
                    f"Agency redirected more than {MAX_REDIRECTS} times", context=context
                )
            else:
                visited.add(leader)
                return leader
        logger.error("Agency read_key failed: key=%s: %s", full_key, err)
        raise err

    @staticmethod
    def _resolve(body: Any, key: List[str]) -> Any:
        if not isinstance(body, list) or len(body) != 1:
            count = len(body) if isinstance(body, list) else 0
            raise ProtocolError(f"Agency read: expected 1 element, got {count}")

        current = body[0]
        for i, segment in enumerate(key):
            if not isinstance(current, dict) or segment not in current:
                raise KeyNotFoundError(key[: i + 1])
            current = current[segment]
        return current

    # =========================================================================
    # Write Path
    # =========================================================================

    def write_transaction(self, transaction: Transaction, timeout: Optional[float] = None) -> int:
        """
        Submit a transaction.

        Success is decided by the ``results`` array of the answer, not by the
        status code: a 412 with a non-zero result is a success and a 200 with
        a zero result is a failed precondition.

        Returns:
            The agency log index of the applied transaction.

        Raises:
            PreconditionFailedError: If a precondition did not hold.
            ProtocolError: If the answer does not carry exactly one result.
            ResponseError: On a status other than 200/201/202/412.
            ConnectionError: If the agent could not be reached.
        """
        conditions = transaction.conditions()
        if conditions:
            logger.debug("Agency write_transaction: num_conditions=%d", len(conditions))
        else:
            logger.debug("Agency write_transaction: no conditions found")

        path = TRANSIENT_PATH if transaction.options().transient else WRITE_PATH
        results = self._write(path, [transaction.to_wire()], timeout)

        if not results:
            raise PreconditionFailedError()
        if len(results) != 1:
            err = ProtocolError(f"Expected 1 result, got {len(results)}")
            logger.error("Agency write_transaction failed: path=%s: %s", path, err)
            raise err
        if results[0] == 0:
            logger.debug("Agency write_transaction: precondition failed, path=%s", path)
            raise PreconditionFailedError()
        return results[0]

    def _write(self, path: str, body: Any, timeout: Optional[float]) -> List[int]:
        try:
            resp = call_with_checks(
                self._conn, "POST", path, _WRITE_ALLOWED, body=body, timeout=timeout,
            )
        except AgencyError as e:
            _log_failure("Agency write failed: path=%s", path, err=e)
            raise

        results = resp.body.get("results") if isinstance(resp.body, dict) else None
        if results is None:
            return []
        if not isinstance(results, list) or not all(
            isinstance(r, int) and not isinstance(r, bool) for r in results
        ):
            err = ProtocolError(f"Malformed results in agency answer: {results!r}")
            logger.error("Agency write failed: path=%s: %s", path, err)
            raise err
        return results

    def write_key_if_empty(
        self, key: Sequence[str], value: Any, ttl: float = 0, timeout: Optional[float] = None
    ) -> int:
        """Write value at key only if the key is empty."""
        txn = Transaction(options=TransactionOptions())
        txn.add_key(new_key_set_with_ttl(key, value, ttl))
        txn.add_condition(key, new_condition_old_empty(True))
        return self.write_transaction(txn, timeout=timeout)

    def write_key_if_equal_to(
        self,
        key: Sequence[str],
        new_value: Any,
        old_value: Any,
        ttl: float = 0,
        timeout: Optional[float] = None,
    ) -> int:
        """Write new_value at key only if its current value equals old_value."""
        txn = Transaction(options=TransactionOptions())
        txn.add_key(new_key_set_with_ttl(key, new_value, ttl))
        txn.add_condition(key, new_condition_if_equal(old_value))
        return self.write_transaction(txn, timeout=timeout)

    def remove_key_if_equal_to(
        self, key: Sequence[str], old_value: Any, timeout: Optional[float] = None
    ) -> int:
        """Remove key only if its current value equals old_value."""
        txn = Transaction(options=TransactionOptions())
        txn.add_key(new_key_delete(key))
        txn.add_condition(key, new_condition_if_equal(old_value))
        return self.write_transaction(txn, timeout=timeout)

    # =========================================================================
    # Change Callbacks
    # =========================================================================

    def register_change_callback(
        self, key: Sequence[str], callback_url: str, timeout: Optional[float] = None
    ) -> None:
        """Ask the agency to POST to callback_url whenever key changes."""
        self._observe(key, callback_url, True, timeout)

    def unregister_change_callback(
        self, key: Sequence[str], callback_url: str, timeout: Optional[float] = None
    ) -> None:
        """Drop a callback registered with register_change_callback."""
        self._observe(key, callback_url, False, timeout)

    def _observe(
        self, key: Sequence[str], callback_url: str, observe: bool, timeout: Optional[float]
    ) -> None:
        txn = Transaction(client_id="")
        txn.add_key(new_key_observe(key, callback_url, observe))
        results = self._write(WRITE_PATH, [txn.to_wire()], timeout)
        if len(results) != 1:
            raise ProtocolError(f"Expected 1 result, got {len(results)}")
