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
Agency Key Operations

Key mutations (set, delete, array edits, observers) and the preconditions
that guard them. These are plain values; nothing here talks to a server.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Sequence


def create_full_key(key: Iterable[str]) -> str:
    """Join key segments into the slash-separated form used on the wire."""
    return "/" + "/".join(key)


class Key(tuple):
    """
    Path of a node in the agency tree.

    Example:
        plan = Key(["arango", "Plan"])
        plan.create_sub_key("Collections", "_system")
        # Key(('arango', 'Plan', 'Collections', '_system'))
    """

    def __new__(cls, segments: Iterable[str] = ()):
        return super().__new__(cls, segments)

    def create_sub_key(self, *elements: str) -> "Key":
        """Return a new key with the given segments appended."""
        return Key(tuple(self) + elements)

    @property
    def full_key(self) -> str:
        return create_full_key(self)

    def __repr__(self) -> str:
        return f"Key({tuple(self)!r})"


# ============================================================================
# Key Mutations
# ============================================================================

class OpName:
    """Operation names understood by the agency."""
    SET = "set"
    DELETE = "delete"
    PUSH = "push"
    ERASE = "erase"
    REPLACE = "replace"
    OBSERVE = "observe"
    UNOBSERVE = "unobserve"


@dataclass(frozen=True)
class KeyChanger:
    """
    One mutation of one key.

    ``new`` is the value written, ``val`` the value an array operation
    matches against, ``url`` the callback for observers and ``ttl`` the
    lifetime in seconds (set only).
    """
    key: Key
    operation: str
    new: Any = None
    url: str = ""
    val: Any = None
    ttl: float = 0

    @property
    def full_key(self) -> str:
        return create_full_key(self.key)

    def to_wire(self) -> Dict[str, Any]:
        """Operation descriptor as sent to /_api/agency/write."""
        desc: Dict[str, Any] = {"op": self.operation}
        if self.new is not None:
            desc["new"] = self.new
        if self.url:
            desc["url"] = self.url
        if self.val is not None:
            desc["val"] = self.val
        if self.ttl > 0:
            desc["ttl"] = int(self.ttl)
        return desc


def new_key_set(key: Sequence[str], value: Any) -> KeyChanger:
    """Set key to value."""
    return KeyChanger(Key(key), OpName.SET, new=value)


def new_key_set_with_ttl(key: Sequence[str], value: Any, ttl: float) -> KeyChanger:
    """Set key to value; the agency drops it again after ttl seconds."""
    return KeyChanger(Key(key), OpName.SET, new=value, ttl=max(ttl, 0))


def new_key_delete(key: Sequence[str]) -> KeyChanger:
    """Remove key."""
    return KeyChanger(Key(key), OpName.DELETE)


def new_key_array_push(key: Sequence[str], value: Any) -> KeyChanger:
    """Append value to the array at key."""
    return KeyChanger(Key(key), OpName.PUSH, new=value)


def new_key_array_erase(key: Sequence[str], value: Any) -> KeyChanger:
    """Remove value from the array at key."""
    return KeyChanger(Key(key), OpName.ERASE, val=value)


def new_key_array_replace(key: Sequence[str], old_value: Any, new_value: Any) -> KeyChanger:
    """Replace old_value with new_value in the array at key."""
    return KeyChanger(Key(key), OpName.REPLACE, new=new_value, val=old_value)


def new_key_observe(key: Sequence[str], url: str, observe: bool = True) -> KeyChanger:
    """Register (or with observe=False, drop) a change callback URL for key."""
    op = OpName.OBSERVE if observe else OpName.UNOBSERVE
    return KeyChanger(Key(key), op, url=url)


# ============================================================================
# Preconditions
# ============================================================================

@dataclass(frozen=True)
class KeyConditioner:
    """Predicate on the current value of a key: ``{name: value}`` on the wire."""
    name: str
    value: Any

    def to_wire(self) -> Dict[str, Any]:
        return {self.name: self.value}


def new_condition_if_equal(value: Any) -> KeyConditioner:
    """Current value must equal value."""
    return KeyConditioner("old", value)


def new_condition_if_not_equal(value: Any) -> KeyConditioner:
    """Current value must differ from value."""
    return KeyConditioner("oldNot", value)


def new_condition_old_empty(value: bool) -> KeyConditioner:
    """Key must (value=True) or must not (value=False) be empty."""
    return KeyConditioner("oldEmpty", bool(value))


def new_condition_is_array(value: bool) -> KeyConditioner:
    """Current value must (value=True) or must not (value=False) be an array."""
    return KeyConditioner("isArray", bool(value))
