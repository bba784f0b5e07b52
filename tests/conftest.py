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

"""Shared fixtures: an in-memory agency cluster behind httpx.MockTransport."""

import json
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from arangoagency import AgencyClient


def _segments(full_key: str) -> List[str]:
    return [s for s in full_key.split("/") if s]


class FakeAgency:
    """
    Simple in-memory agency.

    Every agent is registered under its endpoint with a mode:
    - "leader": serves reads and writes from ``tree``
    - "follower": answers 307 pointing at ``locations[endpoint]`` or the leader
    - "no-location": answers 307 without a Location header
    - "down": connection refused
    - "timeout": read timeout
    - "error": 503 with an ArangoDB error body

    Agents listed in ``delays`` answer after that many seconds, or time out
    when the read timeout of the request is shorter.
    """

    def __init__(self):
        self.tree: Dict[str, Any] = {}
        self.modes: Dict[str, str] = {}
        self.locations: Dict[str, str] = {}
        self.delays: Dict[str, float] = {}
        self.leader: Optional[str] = None
        self.requests: List[Tuple[str, str, Any]] = []
        self.write_override: Optional[Tuple[int, Any]] = None
        self.index = 0
        self._lock = threading.Lock()

    # =========================================================================
    # Setup
    # =========================================================================

    def add_agent(self, endpoint: str, mode: str = "follower", location: Optional[str] = None):
        self.modes[endpoint] = mode
        if mode == "leader":
            self.leader = endpoint
        if location is not None:
            self.locations[endpoint] = location
        return self

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self, *endpoints: str) -> AgencyClient:
        return AgencyClient.connect(list(endpoints), transport=self.transport())

    def requests_to(self, endpoint: str) -> List[Tuple[str, str, Any]]:
        return [r for r in self.requests if r[0] == endpoint]

    # =========================================================================
    # Request Handling
    # =========================================================================

    def handle(self, request: httpx.Request) -> httpx.Response:
        endpoint = f"{request.url.scheme}://{request.url.netloc.decode('ascii')}"
        body = json.loads(request.content) if request.content else None
        self._wait(endpoint, request)
        with self._lock:
            self.requests.append((endpoint, request.url.path, body))
            mode = self.modes.get(endpoint, "down")

            if mode == "down":
                raise httpx.ConnectError("Connection refused", request=request)
            if mode == "timeout":
                raise httpx.ReadTimeout("timed out", request=request)
            if mode == "error":
                return httpx.Response(503, json={
                    "error": True, "code": 503, "errorNum": 1496,
                    "errorMessage": "agency not ready",
                })
            if mode == "no-location":
                return httpx.Response(307)
            if mode == "follower":
                location = self.locations.get(endpoint) or (self.leader + request.url.path)
                return httpx.Response(307, headers={"Location": location})

            if request.url.path.endswith("/read"):
                return httpx.Response(200, json=[self._read(q[0]) for q in body])
            return self._write(body)

    def _wait(self, endpoint: str, request: httpx.Request):
        # Latency from ``delays``, cut short by the request's read timeout
        delay = self.delays.get(endpoint, 0.0)
        if not delay:
            return
        limit = (request.extensions.get("timeout") or {}).get("read")
        if limit is not None and limit < delay:
            time.sleep(limit)
            raise httpx.ReadTimeout("timed out", request=request)
        time.sleep(delay)

    def _read(self, full_key: str) -> Any:
        # Answer with the branch leading to the key, as far as it exists
        segments = _segments(full_key)
        result: Dict[str, Any] = {}
        src: Any = self.tree
        dst = result
        for i, segment in enumerate(segments):
            if not isinstance(src, dict) or segment not in src:
                break
            if i == len(segments) - 1 or not isinstance(src[segment], dict):
                dst[segment] = src[segment]
            else:
                dst[segment] = {}
                dst = dst[segment]
            src = src[segment]
        if not segments:
            return self.tree
        return result

    def _write(self, transactions: List[Any]) -> httpx.Response:
        if self.write_override is not None:
            status, payload = self.write_override
            return httpx.Response(status, json=payload)

        results = []
        for txn in transactions:
            ops = txn[0]
            conditions = txn[1] if len(txn) > 1 else {}
            if all(self._check(k, c) for k, c in conditions.items()):
                for key, op in ops.items():
                    self._apply(key, op)
                self.index += 1
                results.append(self.index)
            else:
                results.append(0)
        status = 412 if 0 in results else 200
        return httpx.Response(status, json={"results": results})

    def get(self, full_key: str) -> Any:
        node: Any = self.tree
        for segment in _segments(full_key):
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def set(self, full_key: str, value: Any):
        segments = _segments(full_key)
        node = self.tree
        for segment in segments[:-1]:
            node = node.setdefault(segment, {})
        node[segments[-1]] = value

    def _delete(self, full_key: str):
        segments = _segments(full_key)
        node: Any = self.tree
        for segment in segments[:-1]:
            if not isinstance(node, dict) or segment not in node:
                return
            node = node[segment]
        if isinstance(node, dict):
            node.pop(segments[-1], None)

    def _check(self, full_key: str, condition: Dict[str, Any]) -> bool:
        current = self.get(full_key)
        (name, value), = condition.items()
        if name == "old":
            return current == value
        if name == "oldNot":
            return current != value
        if name == "oldEmpty":
            return (current is None) == value
        if name == "isArray":
            return isinstance(current, list) == value
        raise AssertionError(f"unknown condition {name}")

    def _apply(self, full_key: str, op: Dict[str, Any]):
        name = op["op"]
        if name == "set":
            self.set(full_key, op.get("new"))
        elif name == "delete":
            self._delete(full_key)
        elif name == "push":
            current = self.get(full_key) or []
            self.set(full_key, current + [op.get("new")])
        elif name == "erase":
            self.set(full_key, [v for v in self.get(full_key) or [] if v != op.get("val")])
        elif name == "replace":
            self.set(full_key, [
                op.get("new") if v == op.get("val") else v for v in self.get(full_key) or []
            ])


@pytest.fixture
def agency() -> FakeAgency:
    """Agency with a single leader at http://agent1:8531."""
    return FakeAgency().add_agent("http://agent1:8531", "leader")


@pytest.fixture
def cluster() -> FakeAgency:
    """Three agents: agent1 leads, agent2 and agent3 redirect to it."""
    fake = FakeAgency()
    fake.add_agent("http://agent1:8531", "leader")
    fake.add_agent("http://agent2:8531", "follower")
    fake.add_agent("http://agent3:8531", "follower")
    return fake
