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
Legacy Agency API

Callers written against the older agency interface (WriteKey/RemoveKey with
a WriteCondition builder, transactions as arbitrary objects exposing
keys()/conditions()/client_id()/options()) can use AgencyAdapter. It only
translates; all work is done by AgencyClient.

Example:
    adapter = AgencyAdapter(AgencyClient.connect(["http://agent1:8531"]))
    cond = WriteCondition().if_equal_to(["leader"], "old-id")
    adapter.write_key(["leader"], "new-id", ttl=30, condition=cond)
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from .agency import AgencyClient
from .connection import Connection
from .errors import TransactionError
from .operation import (
    KeyChanger,
    KeyConditioner,
    create_full_key,
    new_condition_if_equal,
    new_condition_is_array,
    new_condition_old_empty,
    new_key_delete,
    new_key_set,
    new_key_set_with_ttl,
)
from .transaction import Transaction, TransactionOptions


@runtime_checkable
class TransactionCompatible(Protocol):
    """Anything that looks like a transaction of the older API."""

    def keys(self) -> List[KeyChanger]: ...

    def conditions(self) -> Mapping[str, KeyConditioner]: ...

    def client_id(self) -> Optional[str]: ...

    def options(self) -> Any: ...


TransactionLike = Union[Transaction, TransactionCompatible]


def as_transaction(transaction: TransactionLike) -> Transaction:
    """
    Resolve an accepted transaction shape into a native Transaction.

    Raises:
        TransactionError: If the object is neither a Transaction nor
            TransactionCompatible.
    """
    if isinstance(transaction, Transaction):
        return transaction
    if isinstance(transaction, TransactionCompatible):
        options = transaction.options()
        if not isinstance(options, TransactionOptions):
            options = TransactionOptions(transient=bool(getattr(options, "transient", False)))
        txn = Transaction(client_id=transaction.client_id(), options=options)
        for key in transaction.keys():
            txn.add_key(key)
        for full_key, condition in transaction.conditions().items():
            txn.add_condition_by_full_key(full_key, condition)
        return txn
    raise TransactionError(
        f"Transaction must be a Transaction or TransactionCompatible, "
        f"got {type(transaction).__name__}",
        context={"type": type(transaction).__name__},
    )


# ============================================================================
# Legacy Write Conditions
# ============================================================================

_UNSET = object()


@dataclass(frozen=True)
class _KeyCondition:
    old: Any = _UNSET
    old_empty: Optional[bool] = None
    is_array: Optional[bool] = None


class WriteCondition:
    """
    Builder for per-key write conditions.

    Every method returns a new builder; the receiver is left unchanged.
    When several checks are set on one key, only the strongest is sent
    (equality, then emptiness, then array type).
    """

    def __init__(self, conditions: Optional[Mapping[str, _KeyCondition]] = None):
        self._conditions: Dict[str, _KeyCondition] = dict(conditions or {})

    def if_empty(self, key: Sequence[str]) -> "WriteCondition":
        """Require key to be empty."""
        return self._add(key, old_empty=True)

    def if_is_array(self, key: Sequence[str]) -> "WriteCondition":
        """Require key to hold an array."""
        return self._add(key, is_array=True)

    def if_equal_to(self, key: Sequence[str], old_value: Any) -> "WriteCondition":
        """Require key to hold old_value."""
        return self._add(key, old=old_value)

    def _add(self, key: Sequence[str], **changes: Any) -> "WriteCondition":
        full_key = create_full_key(key)
        conditions = dict(self._conditions)
        conditions[full_key] = replace(conditions.get(full_key, _KeyCondition()), **changes)
        return WriteCondition(conditions)

    def to_conditions(self) -> Dict[str, KeyConditioner]:
        """Convert to the conditions map used by Transaction."""
        result: Dict[str, KeyConditioner] = {}
        for full_key, cond in self._conditions.items():
            if cond.old is not _UNSET:
                result[full_key] = new_condition_if_equal(cond.old)
            elif cond.old_empty is not None:
                result[full_key] = new_condition_old_empty(cond.old_empty)
            elif cond.is_array is not None:
                result[full_key] = new_condition_is_array(cond.is_array)
        return result

    def __len__(self) -> int:
        return len(self._conditions)


# ============================================================================
# Adapter
# ============================================================================

class AgencyAdapter:
    """Exposes an AgencyClient through the older agency interface."""

    def __init__(self, client: AgencyClient):
        self._client = client

    @property
    def connection(self) -> Connection:
        return self._client.connection

    def read_key(self, key: Sequence[str], value_type=None, timeout: Optional[float] = None) -> Any:
        return self._client.read_key(key, value_type=value_type, timeout=timeout)

    def write_transaction(self, transaction: TransactionLike, timeout: Optional[float] = None) -> int:
        """Submit a native or legacy transaction."""
        return self._client.write_transaction(as_transaction(transaction), timeout=timeout)

    def write_key(
        self,
        key: Sequence[str],
        value: Any,
        ttl: float = 0,
        condition: Optional[WriteCondition] = None,
        timeout: Optional[float] = None,
    ) -> int:
        """Write value at key, guarded by condition when given."""
        txn = Transaction(client_id="")
        txn.add_key(new_key_set_with_ttl(key, value, ttl))
        self._apply(txn, condition)
        return self._client.write_transaction(txn, timeout=timeout)

    def write_key_if_empty(
        self, key: Sequence[str], value: Any, ttl: float = 0, timeout: Optional[float] = None
    ) -> int:
        return self._client.write_key_if_empty(key, value, ttl=ttl, timeout=timeout)

    def write_key_if_equal_to(
        self,
        key: Sequence[str],
        new_value: Any,
        old_value: Any,
        ttl: float = 0,
        timeout: Optional[float] = None,
    ) -> int:
        return self._client.write_key_if_equal_to(key, new_value, old_value, ttl=ttl, timeout=timeout)

    def remove_key(
        self,
        key: Sequence[str],
        condition: Optional[WriteCondition] = None,
        timeout: Optional[float] = None,
    ) -> int:
        """Remove key, guarded by condition when given."""
        txn = Transaction(client_id="")
        txn.add_key(new_key_delete(key))
        self._apply(txn, condition)
        return self._client.write_transaction(txn, timeout=timeout)

    def remove_key_if_equal_to(
        self, key: Sequence[str], old_value: Any, timeout: Optional[float] = None
    ) -> int:
        return self._client.remove_key_if_equal_to(key, old_value, timeout=timeout)

    @staticmethod
    def _apply(txn: Transaction, condition: Optional[WriteCondition]) -> None:
        if condition is None:
            return
        for full_key, cond in condition.to_conditions().items():
            txn.add_condition_by_full_key(full_key, cond)


# ============================================================================
# Migration Helpers
# ============================================================================

def new_transaction_compat(client_id: str, options: Optional[TransactionOptions] = None) -> Transaction:
    """Transaction with the older constructor signature (client ID first)."""
    return Transaction(client_id=client_id, options=options)


def new_key_set_compat(key: Sequence[str], value: Any, ttl: float = 0) -> KeyChanger:
    """Set operation with the older signature; ttl of 0 means no expiry."""
    if ttl == 0:
        return new_key_set(key, value)
    return new_key_set_with_ttl(key, value, ttl)
