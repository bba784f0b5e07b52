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
Agency Error Types

Error taxonomy for the agency client with machine-readable codes and
actionable remediation messages.

Error Code Ranges:
- 1xxx: Connection/Transport errors
- 2xxx: Response/Protocol errors
- 3xxx: Key errors
- 4xxx: Transaction errors
- 5xxx: Health check errors
- 6xxx: Lock errors
- 9xxx: Internal errors
"""

from enum import IntEnum
from typing import Optional, Dict, Any, List, Callable, Sequence


class ErrorCode(IntEnum):
    """Machine-readable error codes."""

    # Connection errors (1xxx)
    CONNECTION_FAILED = 1001
    CONNECTION_TIMEOUT = 1002
    REQUEST_CANCELLED = 1003
    INVALID_CONFIG = 1004

    # Response errors (2xxx)
    UNEXPECTED_STATUS = 2001
    PROTOCOL_ERROR = 2002
    REDIRECT_FAILED = 2003
    PRECONDITION_FAILED = 2004

    # Key errors (3xxx)
    KEY_NOT_FOUND = 3001

    # Transaction errors (4xxx)
    INVALID_TRANSACTION = 4001

    # Health check errors (5xxx)
    AGENCY_UNHEALTHY = 5001
    AGENT_NOT_RESPONDING = 5002
    LEADER_MISMATCH = 5003
    LEADER_COUNT = 5004

    # Lock errors (6xxx)
    LOCK_FAILED = 6001
    LOCK_ALREADY_LOCKED = 6002
    LOCK_NOT_LOCKED = 6003

    # Internal errors (9xxx)
    INTERNAL_ERROR = 9001


class AgencyError(Exception):
    """
    Base exception for agency client errors.

    All agency exceptions inherit from this class, providing:
    - Machine-readable error codes
    - Human-readable messages
    - Optional remediation hints
    - Optional context data

    Example:
        try:
            client.read_key(["arango", "Plan"])
        except KeyNotFoundError as e:
            print(f"Error {e.code}: {e.message}")
            print(f"Closest missing path: {e.key}")
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        remediation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.remediation = remediation
        self.context = context or {}

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "remediation": self.remediation,
            "context": self.context,
        }


# ============================================================================
# Connection Errors
# ============================================================================

class ConnectionError(AgencyError):
    """Failed to reach an agent."""
    code = ErrorCode.CONNECTION_FAILED

    @property
    def endpoint(self) -> Optional[str]:
        """Get the endpoint from context."""
        return self.context.get("endpoint")


class ConnectionTimeoutError(ConnectionError):
    """Request did not complete before its deadline."""
    code = ErrorCode.CONNECTION_TIMEOUT


class RequestCancelledError(ConnectionError):
    """Request was issued on a connection that has been closed."""
    code = ErrorCode.REQUEST_CANCELLED


class ConfigError(AgencyError):
    """Invalid connection configuration."""
    code = ErrorCode.INVALID_CONFIG


# ============================================================================
# Response Errors
# ============================================================================

class ResponseError(AgencyError):
    """
    Status-coded answer from an agent.

    ``status`` holds the HTTP status code; ``error_num`` the ArangoDB error
    number when the server sent an error body.
    """
    code = ErrorCode.UNEXPECTED_STATUS

    def __init__(
        self,
        message: str,
        status: int = 0,
        error_num: int = 0,
        code: Optional[ErrorCode] = None,
        remediation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        ctx.setdefault("status", status)
        if error_num:
            ctx.setdefault("error_num", error_num)
        super().__init__(message, code=code, remediation=remediation, context=ctx)
        self.status = status
        self.error_num = error_num


class PreconditionFailedError(ResponseError):
    """The preconditions of an agency transaction did not hold."""
    code = ErrorCode.PRECONDITION_FAILED

    def __init__(self, message: str = "Agency transaction precondition failed"):
        super().__init__(
            message,
            status=412,
            remediation="Re-read the key and retry the write with up-to-date conditions",
        )


class ProtocolError(ResponseError):
    """Agent answered with a shape the client does not understand."""
    code = ErrorCode.PROTOCOL_ERROR


class RedirectError(ProtocolError):
    """A leader redirect could not be followed."""
    code = ErrorCode.REDIRECT_FAILED

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            status=307,
            remediation="Wait for the agency to finish its leader election and retry",
            context=context,
        )


# ============================================================================
# Key Errors
# ============================================================================

class KeyNotFoundError(AgencyError):
    """A key (or one of its ancestors) does not exist in the agency."""
    code = ErrorCode.KEY_NOT_FOUND

    def __init__(self, key: Sequence[str]):
        key = list(key)
        super().__init__(
            f"Key '{'/'.join(key)}' not found",
            context={"key": key},
        )

    @property
    def key(self) -> List[str]:
        """Path up to and including the first segment that did not resolve."""
        return self.context["key"]


# ============================================================================
# Transaction Errors
# ============================================================================

class TransactionError(AgencyError):
    """Transaction object cannot be submitted."""
    code = ErrorCode.INVALID_TRANSACTION


# ============================================================================
# Health Check Errors
# ============================================================================

class HealthCheckError(AgencyError):
    """Base class for agency health verdicts."""
    code = ErrorCode.AGENCY_UNHEALTHY


class AgentNotRespondingError(HealthCheckError):
    """An agent did not answer its probe."""
    code = ErrorCode.AGENT_NOT_RESPONDING

    def __init__(self, endpoint: str):
        super().__init__(
            f"Agent {endpoint} is not responding",
            remediation="Check that the agent process is running and reachable",
            context={"endpoint": endpoint},
        )

    @property
    def endpoint(self) -> str:
        return self.context["endpoint"]


class LeaderMismatchError(HealthCheckError):
    """Agents point at different leaders."""
    code = ErrorCode.LEADER_MISMATCH

    def __init__(self, endpoints: Optional[List[str]] = None):
        super().__init__(
            "Not all agents report the same leader endpoint",
            remediation="A leader election may be in progress; retry shortly",
            context={"leader_endpoints": endpoints or []},
        )


class LeaderCountError(HealthCheckError):
    """The agency does not have exactly one leader."""
    code = ErrorCode.LEADER_COUNT

    def __init__(self, count: int):
        super().__init__(
            f"Unexpected number of agency leaders: {count}",
            remediation="Zero leaders usually means an election is running; "
                        "more than one is only expected during upgrades",
            context={"count": count},
        )

    @property
    def count(self) -> int:
        return self.context["count"]


# ============================================================================
# Lock Errors
# ============================================================================

class LockError(AgencyError):
    """Base class for agency lock errors."""
    code = ErrorCode.LOCK_FAILED


class AlreadyLockedError(LockError):
    """The lock is held by someone (possibly us)."""
    code = ErrorCode.LOCK_ALREADY_LOCKED

    def __init__(self, message: str = "already locked"):
        super().__init__(message)


class NotLockedError(LockError):
    """The lock is not held by us."""
    code = ErrorCode.LOCK_NOT_LOCKED

    def __init__(self, message: str = "not locked"):
        super().__init__(message)


# ============================================================================
# Error Predicates
# ============================================================================

def _check_cause(err: Optional[BaseException], pred: Callable[[BaseException], bool]) -> bool:
    """Apply pred to err and everything it was raised from."""
    seen = set()
    while err is not None and id(err) not in seen:
        if pred(err):
            return True
        seen.add(id(err))
        err = err.__cause__ or err.__context__
    return False


def is_key_not_found(err: Optional[BaseException]) -> bool:
    """Return True if err is (or is caused by) a KeyNotFoundError."""
    return _check_cause(err, lambda e: isinstance(e, KeyNotFoundError))


def is_precondition_failed(err: Optional[BaseException]) -> bool:
    """Return True if err is (or is caused by) a 412 answer."""
    return is_status(err, 412)


def is_status(err: Optional[BaseException], status: int) -> bool:
    """Return True if err is (or is caused by) a ResponseError with the given status."""
    return _check_cause(
        err, lambda e: isinstance(e, ResponseError) and e.status == status
    )


def is_canceled(err: Optional[BaseException]) -> bool:
    """Return True if err stems from a closed connection."""
    return _check_cause(err, lambda e: isinstance(e, RequestCancelledError))


def is_timeout(err: Optional[BaseException]) -> bool:
    """Return True if err stems from an exceeded deadline."""
    return _check_cause(err, lambda e: isinstance(e, ConnectionTimeoutError))


def is_already_locked(err: Optional[BaseException]) -> bool:
    return _check_cause(err, lambda e: isinstance(e, AlreadyLockedError))


def is_not_locked(err: Optional[BaseException]) -> bool:
    return _check_cause(err, lambda e: isinstance(e, NotLockedError))


# ============================================================================
# Error Mapping from Server Responses
# ============================================================================

_STATUS_MAP: Dict[int, type] = {
    412: PreconditionFailedError,
}


def from_response(status: int, body: Any = None, endpoint: Optional[str] = None) -> ResponseError:
    """
    Convert an unexpected HTTP answer to the appropriate exception.

    ArangoDB error bodies look like
    ``{"error": true, "code": 503, "errorNum": 1496, "errorMessage": "..."}``;
    when one is present its message and number are carried over.
    """
    message = f"Unexpected status code {status}"
    error_num = 0
    if isinstance(body, dict):
        if body.get("errorMessage"):
            message = str(body["errorMessage"])
        raw_num = body.get("errorNum")
        if isinstance(raw_num, int) and not isinstance(raw_num, bool):
            error_num = raw_num

    context = {"endpoint": endpoint} if endpoint else None
    error_class = _STATUS_MAP.get(status)
    if error_class is PreconditionFailedError:
        err = PreconditionFailedError(message)
        if context:
            err.context.update(context)
        err.error_num = error_num
        return err
    return ResponseError(message, status=status, error_num=error_num, context=context)
