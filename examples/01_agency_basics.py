#!/usr/bin/env python3
"""
Example 01: Agency Basics
=========================

This example demonstrates reading and writing the agency of a running
ArangoDB cluster:
- Connecting from ARANGO_AGENCY_* environment variables
- Reading keys (redirects to the leader are followed)
- Conditional writes and transactions
- Handling failed preconditions

Run with:
    ARANGO_AGENCY_ENDPOINTS=http://localhost:8531 python examples/01_agency_basics.py
"""

import logging

from arangoagency import (
    AgencyClient,
    Transaction,
    new_condition_if_equal,
    new_key_array_push,
    new_key_delete,
    new_key_set,
)
from arangoagency.errors import AgencyError, KeyNotFoundError, PreconditionFailedError

EXAMPLE_ROOT = ["arangoagency-example"]


def example_read(agency: AgencyClient):
    """Read cluster metadata."""
    print("\n" + "=" * 60)
    print("Example 1.1: Reading Keys")
    print("=" * 60)

    version = agency.read_key(["arango", "Plan", "Version"])
    print(f"  Plan version: {version}")
    print(f"  Leader: {agency.connection.get_endpoint()}")

    try:
        agency.read_key(EXAMPLE_ROOT + ["missing", "child"])
    except KeyNotFoundError as e:
        print(f"  Missing part of the path: {e.key}")


def example_conditional_writes(agency: AgencyClient):
    """Single-key writes guarded by a precondition."""
    print("\n" + "=" * 60)
    print("Example 1.2: Conditional Writes")
    print("=" * 60)

    key = EXAMPLE_ROOT + ["owner"]
    agency.write_key_if_empty(key, "first", ttl=60)
    print(f"  Wrote owner: {agency.read_key(key)}")

    try:
        agency.write_key_if_empty(key, "second")
    except PreconditionFailedError:
        print("  Second write rejected: key is not empty")

    agency.write_key_if_equal_to(key, "second", "first")
    print(f"  Swapped owner: {agency.read_key(key)}")

    agency.remove_key_if_equal_to(key, "second")
    print("  Removed owner")


def example_transaction(agency: AgencyClient):
    """Several mutations applied atomically."""
    print("\n" + "=" * 60)
    print("Example 1.3: Transactions")
    print("=" * 60)

    counter = EXAMPLE_ROOT + ["counter"]
    history = EXAMPLE_ROOT + ["history"]

    txn = Transaction()
    txn.add_key(new_key_set(counter, 1))
    txn.add_key(new_key_array_push(history, "set to 1"))
    index = agency.write_transaction(txn)
    print(f"  Applied at log index {index}")

    txn = Transaction()
    txn.add_key(new_key_set(counter, 2))
    txn.add_condition(counter, new_condition_if_equal(1))
    agency.write_transaction(txn)
    print(f"  Counter is now {agency.read_key(counter)}")

    txn = Transaction()
    txn.add_key(new_key_delete(EXAMPLE_ROOT))
    agency.write_transaction(txn)
    print("  Cleaned up")


def main():
    logging.basicConfig(level=logging.INFO)

    with AgencyClient.from_config() as agency:
        try:
            example_read(agency)
            example_conditional_writes(agency)
            example_transaction(agency)
        except AgencyError as e:
            print(f"✗ {e}")
            if e.remediation:
                print(f"  Hint: {e.remediation}")
            raise

    print("\n✓ All agency examples completed")


if __name__ == "__main__":
    main()
