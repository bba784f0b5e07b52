#!/usr/bin/env python3
"""
Example 02: Health Checks and Locks
===================================

This example demonstrates:
- Verifying that all agents agree on a single leader
- Taking an agency lock that renews itself in the background

Run with:
    ARANGO_AGENCY_ENDPOINTS=http://a1:8531,http://a2:8531,http://a3:8531 \
        python examples/02_health_and_locks.py
"""

import logging
import time

from arangoagency import AgencyClient, AgencyLock, ConnectionConfig, are_agents_healthy
from arangoagency.errors import AlreadyLockedError, HealthCheckError


def example_health(config: ConnectionConfig):
    """One client per agent, probed in parallel."""
    print("\n" + "=" * 60)
    print("Example 2.1: Agency Health")
    print("=" * 60)

    clients = [AgencyClient.connect([ep], timeout=config.timeout) for ep in config.endpoints]
    try:
        are_agents_healthy(clients)
        print(f"  ✓ {len(clients)} agents agree on one leader")
    except HealthCheckError as e:
        print(f"  ✗ Agency unhealthy: {e}")
    finally:
        for client in clients:
            client.close()


def example_lock(config: ConnectionConfig):
    """Exclusive lock held while doing work."""
    print("\n" + "=" * 60)
    print("Example 2.2: Agency Lock")
    print("=" * 60)

    with AgencyClient.from_config(config) as agency:
        lock = AgencyLock(agency, ["arangoagency-example", "lock"], ttl=10)
        with lock:
            print(f"  Holding lock as {lock.lock_id}")

            try:
                AgencyLock(agency, lock.key).lock()
            except AlreadyLockedError:
                print("  Second lock attempt rejected")

            time.sleep(6)
            print(f"  Still locked after renewal: {lock.is_locked()}")
        print("  Released lock")


def main():
    logging.basicConfig(level=logging.INFO)
    config = ConnectionConfig.from_env()
    example_health(config)
    example_lock(config)
    print("\n✓ All examples completed")


if __name__ == "__main__":
    main()
