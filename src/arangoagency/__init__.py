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
ArangoDB Agency Python Client

A Python client for the agency, the consensus-backed key/value store that
coordinates an ArangoDB cluster.

Provides:
- Read/Write: key reads with leader-redirect handling, atomic transactions
  with preconditions
- Health: one-call verification that the agency has a single agreed leader
- Lock: agency-backed exclusive locks with automatic renewal
- Compat: adapter for callers of the older agency interface
"""

from .agency import AgencyClient, MAX_REDIRECTS
from .config import ConnectionConfig
from .connection import Connection, Endpoints, Response, fixup_endpoint_url_scheme
from .operation import (
    Key,
    KeyChanger,
    KeyConditioner,
    create_full_key,
    new_key_set,
    new_key_set_with_ttl,
    new_key_delete,
    new_key_array_push,
    new_key_array_erase,
    new_key_array_replace,
    new_key_observe,
    new_condition_if_equal,
    new_condition_if_not_equal,
    new_condition_old_empty,
    new_condition_is_array,
)
from .transaction import Transaction, TransactionOptions, DEFAULT_CLIENT_ID
from .health import (
    AgentStatus,
    are_agents_healthy,
    is_same_endpoint,
    MAX_AGENT_RESPONSE_TIME,
)
from .lock import AgencyLock
from .compat import (
    AgencyAdapter,
    TransactionCompatible,
    WriteCondition,
    as_transaction,
    new_transaction_compat,
    new_key_set_compat,
)
from .errors import (
    AgencyError,
    ErrorCode,
    ConnectionError,
    ConnectionTimeoutError,
    RequestCancelledError,
    ConfigError,
    ResponseError,
    PreconditionFailedError,
    ProtocolError,
    RedirectError,
    KeyNotFoundError,
    TransactionError,
    HealthCheckError,
    AgentNotRespondingError,
    LeaderMismatchError,
    LeaderCountError,
    LockError,
    AlreadyLockedError,
    NotLockedError,
    is_key_not_found,
    is_precondition_failed,
    is_status,
    is_canceled,
    is_timeout,
    is_already_locked,
    is_not_locked,
)

__version__ = "0.1.0"
__all__ = [
    # Client
    "AgencyClient",
    "MAX_REDIRECTS",
    "Connection",
    "ConnectionConfig",
    "Endpoints",
    "Response",
    "fixup_endpoint_url_scheme",

    # Operations
    "Key",
    "KeyChanger",
    "KeyConditioner",
    "create_full_key",
    "new_key_set",
    "new_key_set_with_ttl",
    "new_key_delete",
    "new_key_array_push",
    "new_key_array_erase",
    "new_key_array_replace",
    "new_key_observe",
    "new_condition_if_equal",
    "new_condition_if_not_equal",
    "new_condition_old_empty",
    "new_condition_is_array",

    # Transactions
    "Transaction",
    "TransactionOptions",
    "DEFAULT_CLIENT_ID",

    # Health
    "AgentStatus",
    "are_agents_healthy",
    "is_same_endpoint",
    "MAX_AGENT_RESPONSE_TIME",

    # Lock
    "AgencyLock",

    # Compat
    "AgencyAdapter",
    "TransactionCompatible",
    "WriteCondition",
    "as_transaction",
    "new_transaction_compat",
    "new_key_set_compat",

    # Errors
    "AgencyError",
    "ErrorCode",
    "ConnectionError",
    "ConnectionTimeoutError",
    "RequestCancelledError",
    "ConfigError",
    "ResponseError",
    "PreconditionFailedError",
    "ProtocolError",
    "RedirectError",
    "KeyNotFoundError",
    "TransactionError",
    "HealthCheckError",
    "AgentNotRespondingError",
    "LeaderMismatchError",
    "LeaderCountError",
    "LockError",
    "AlreadyLockedError",
    "NotLockedError",
    "is_key_not_found",
    "is_precondition_failed",
    "is_status",
    "is_canceled",
    "is_timeout",
    "is_already_locked",
    "is_not_locked",
]
