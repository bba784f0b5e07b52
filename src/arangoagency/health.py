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
Agency Health Check

Probes every agent of an agency at the same time and decides whether the
agency has exactly one leader that all other agents redirect to.

Each client passed in must talk to exactly one agent. A probe reads a key
that never exists: the leader answers directly (key not found), a follower
answers 307 and the client is re-pointed at the leader. Note that a probe
therefore leaves follower clients pointing at the leader.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import urlsplit

from .agency import AgencyClient
from .errors import (
    AgencyError,
    AgentNotRespondingError,
    LeaderCountError,
    LeaderMismatchError,
    is_key_not_found,
    is_status,
)

logger = logging.getLogger(__name__)

# Upper bound for a single agent probe, in seconds
MAX_AGENT_RESPONSE_TIME = 10.0

SENTINEL_KEY = ["does-not-exist-70ddb948-59ea-52f3-9a19-baaca18de7ae"]


@dataclass
class AgentStatus:
    """Outcome of probing one agent."""
    is_leader: bool = False
    leader_endpoint: str = ""
    is_responding: bool = False


def is_same_endpoint(a: str, b: str) -> bool:
    """
    Return True when both endpoints refer to the same server.

    Endpoints match when they are equal or when both parse as URLs with the
    same hostname (ports are ignored). Anything that does not parse to a
    hostname never matches a different string.
    """
    if a == b:
        return True
    try:
        host_a = urlsplit(a).hostname
        host_b = urlsplit(b).hostname
    except ValueError:
        return False
    if not host_a or not host_b:
        return False
    return host_a == host_b


def probe_agent(client: AgencyClient, timeout: float = MAX_AGENT_RESPONSE_TIME) -> AgentStatus:
    """Classify a single agent as leader, follower or unresponsive within timeout seconds."""
    conn = client.connection
    original = ",".join(conn.get_endpoint())

    err: Optional[AgencyError] = None
    try:
        client.read_key(SENTINEL_KEY, deadline=time.monotonic() + timeout)
    except AgencyError as e:
        err = e

    current = ",".join(conn.get_endpoint())
    changed = current != original

    if err is None or is_key_not_found(err):
        if changed:
            status = AgentStatus(is_leader=False, leader_endpoint=current, is_responding=True)
        else:
            status = AgentStatus(is_leader=True, leader_endpoint=original, is_responding=True)
    elif is_status(err, 307):
        # Follower whose redirect could not be followed; leader may be unknown
        status = AgentStatus(
            is_leader=False,
            leader_endpoint=current if changed else "",
            is_responding=True,
        )
    else:
        status = AgentStatus(is_responding=False)

    logger.debug("Agent %s probed: %s", original, status)
    return status


def are_agents_healthy(
    clients: Sequence[AgencyClient],
    allow_no_leader: bool = False,
    allow_different_leader_endpoints: bool = False,
    timeout: Optional[float] = None,
) -> None:
    """
    Verify that the agency has one leader and all agents agree on it.

    Args:
        clients: One client per agent.
        allow_no_leader: Accept zero leaders (maintenance windows).
        allow_different_leader_endpoints: Accept agents disagreeing on the
            leader, and more than one leader (rolling upgrades).
        timeout: Time budget in seconds for each probe, redirects included;
            never more than MAX_AGENT_RESPONSE_TIME. Probes run in parallel.

    Raises:
        AgentNotRespondingError: If any agent failed its probe.
        LeaderMismatchError: If agents report different leaders.
        LeaderCountError: If the number of leaders is not acceptable.
    """
    probe_timeout = MAX_AGENT_RESPONSE_TIME
    if timeout is not None:
        probe_timeout = min(timeout, MAX_AGENT_RESPONSE_TIME)

    # All probes are joined when the executor block exits
    with ThreadPoolExecutor(max_workers=max(len(clients), 1)) as pool:
        statuses: List[AgentStatus] = list(
            pool.map(lambda c: probe_agent(c, probe_timeout), clients)
        )

    for client, status in zip(clients, statuses):
        if not status.is_responding:
            raise AgentNotRespondingError(",".join(client.connection.get_endpoint()))

    if not allow_different_leader_endpoints:
        for prev, status in zip(statuses, statuses[1:]):
            if not is_same_endpoint(prev.leader_endpoint, status.leader_endpoint):
                raise LeaderMismatchError([s.leader_endpoint for s in statuses])

    leaders = sum(1 for s in statuses if s.is_leader)
    if leaders == 1:
        return
    if leaders == 0:
        if allow_no_leader:
            return
    elif allow_different_leader_endpoints:
        logger.warning("Agency has %d leaders; accepted during upgrade", leaders)
        return
    raise LeaderCountError(leaders)
