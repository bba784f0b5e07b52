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
Agency Transactions

A transaction bundles key mutations with preconditions; the agency applies
all mutations atomically or none of them.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .operation import KeyChanger, KeyConditioner, create_full_key

DEFAULT_CLIENT_ID = "arangoagency/python"


@dataclass(frozen=True)
class TransactionOptions:
    """Options how a transaction should behave."""
    transient: bool = False


class Transaction:
    """
    Mutations and preconditions submitted as one agency write.

    Example:
        txn = Transaction()
        txn.add_key(new_key_set(["locks", "db"], "me"))
        txn.add_condition(["locks", "db"], new_condition_old_empty(True))
        client.write_transaction(txn)

    Args:
        client_id: Identifies the sender. None selects DEFAULT_CLIENT_ID; an
            empty string sends no client ID at all.
        options: TransactionOptions, e.g. to target the transient store.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        options: Optional[TransactionOptions] = None,
    ):
        self._keys: List[KeyChanger] = []
        self._conditions: Dict[str, KeyConditioner] = {}
        self._client_id = DEFAULT_CLIENT_ID if client_id is None else client_id
        self._options = options or TransactionOptions()

    def add_key(self, key: KeyChanger) -> None:
        """Add a mutation."""
        self._keys.append(key)

    def add_condition(self, key: Sequence[str], condition: KeyConditioner) -> None:
        """
        Attach a precondition to key.

        The agency accepts one condition per key; a second call for the same
        key replaces the first.
        """
        self.add_condition_by_full_key(create_full_key(key), condition)

    def add_condition_by_full_key(self, full_key: str, condition: KeyConditioner) -> None:
        self._conditions[full_key] = condition

    def keys(self) -> List[KeyChanger]:
        return list(self._keys)

    def conditions(self) -> Dict[str, KeyConditioner]:
        return dict(self._conditions)

    def client_id(self) -> str:
        return self._client_id

    def options(self) -> TransactionOptions:
        return self._options

    def to_wire(self) -> List[Any]:
        """
        Encode as ``[mutations-by-key, conditions-by-key, client-id?]``.

        Mutations for the same key collapse to the last one added.
        """
        mutations = {k.full_key: k.to_wire() for k in self._keys}
        conditions = {key: cond.to_wire() for key, cond in self._conditions.items()}
        wire: List[Any] = [mutations, conditions]
        if self._client_id:
            wire.append(self._client_id)
        return wire

    def __repr__(self) -> str:
        return (
            f"Transaction(keys={len(self._keys)}, conditions={len(self._conditions)}, "
            f"client_id={self._client_id!r}, transient={self._options.transient})"
        )
