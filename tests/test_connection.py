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

"""Tests for the HTTP connection, endpoint handling and configuration."""

import threading

import httpx
import pytest

from arangoagency import AgencyClient, Connection, ConnectionConfig, Endpoints, fixup_endpoint_url_scheme
from arangoagency.connection import endpoint_from_location
from arangoagency.errors import ConfigError, ConnectionError, ProtocolError, RequestCancelledError


class TestEndpointHelpers:

    @pytest.mark.parametrize("url,expected", [
        ("tcp://a:8531", "http://a:8531"),
        ("ssl://a:8531", "https://a:8531"),
        ("http+tcp://a:8531", "http://a:8531"),
        ("http+ssl://a:8531", "https://a:8531"),
        ("TCP://a:8531", "http://a:8531"),
        ("http://a:8531", "http://a:8531"),
    ])
    def test_fixup_scheme(self, url, expected):
        assert fixup_endpoint_url_scheme(url) == expected

    def test_endpoint_from_location(self):
        assert endpoint_from_location("http://leader:8531/_api/agency/read") == "http://leader:8531"
        assert endpoint_from_location("ssl://leader:8531") == "https://leader:8531"
        assert endpoint_from_location("/_api/agency/read") is None
        assert endpoint_from_location("garbage") is None
        assert endpoint_from_location("http://[leader:8531") is None


class TestEndpoints:

    def test_round_robin(self):
        eps = Endpoints(["a", "b"])
        assert [eps.next() for _ in range(3)] == ["a", "b", "a"]
        assert len(eps) == 2

    def test_empty(self):
        with pytest.raises(ConnectionError):
            Endpoints([]).next()


class TestConnection:
    """Tests for Connection."""

    def _conn(self, handler, endpoints=("http://agent1:8531",)):
        return Connection.connect(list(endpoints), transport=httpx.MockTransport(handler))

    def test_do_sends_json(self):
        seen = []

        def handler(request):
            seen.append((str(request.url), request.content))
            return httpx.Response(200, json={"ok": True}, headers={"X-Test": "1"})

        with self._conn(handler) as conn:
            resp = conn.do("POST", "_api/agency/read", [["/a"]])
        assert seen == [("http://agent1:8531/_api/agency/read", b'[["/a"]]')]
        assert resp.status == 200
        assert resp.body == {"ok": True}
        assert resp.header("x-test") == "1"
        assert resp.endpoint == "http://agent1:8531"

    def test_redirect_not_followed(self):
        def handler(request):
            return httpx.Response(307, headers={"Location": "http://agent2:8531/x"})

        with self._conn(handler) as conn:
            resp = conn.do("POST", "_api/agency/read", [])
        assert resp.status == 307
        assert resp.header("Location") == "http://agent2:8531/x"
        assert resp.body is None

    def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, content=b"not json")

        with self._conn(handler) as conn:
            with pytest.raises(ProtocolError):
                conn.do("GET", "_api/version")

    def test_invalid_json_on_error_status(self):
        def handler(request):
            return httpx.Response(502, content=b"<html>bad gateway</html>")

        with self._conn(handler) as conn:
            assert conn.do("GET", "_api/version").body is None

    def test_tcp_endpoints_accepted(self):
        conn = self._conn(lambda r: httpx.Response(200), endpoints=["tcp://agent1:8531"])
        assert conn.get_endpoint() == ["http://agent1:8531"]
        conn.close()

    def test_set_endpoint(self):
        conn = self._conn(lambda r: httpx.Response(200))
        conn.set_endpoint(["http://agent2:8531"])
        assert conn.get_endpoint() == ["http://agent2:8531"]
        conn.set_endpoint(Endpoints(["http://agent3:8531"]))
        assert conn.get_endpoint() == ["http://agent3:8531"]
        with pytest.raises(ConnectionError):
            conn.set_endpoint([])
        assert conn.get_endpoint() == ["http://agent3:8531"]
        conn.close()

    def test_get_endpoint_is_snapshot(self):
        conn = self._conn(lambda r: httpx.Response(200))
        snapshot = conn.get_endpoint()
        snapshot.append("http://other:1")
        assert conn.get_endpoint() == ["http://agent1:8531"]
        conn.close()

    def test_concurrent_set_endpoint(self):
        """Requests and snapshots only ever see one of the whole endpoint sets."""
        sets = (["http://a:1"], ["http://b:1", "http://c:1"])
        seen, errors = [], []
        conn = self._conn(lambda r: httpx.Response(200, json={}), endpoints=sets[0])

        def writer():
            for i in range(200):
                conn.set_endpoint(sets[i % 2])

        def reader():
            try:
                for _ in range(200):
                    assert conn.get_endpoint() in sets
                    seen.append(conn.do("GET", "_api/version").endpoint)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=writer)]
        threads += [threading.Thread(target=reader) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        conn.close()

        assert errors == []
        assert len(seen) == 800
        assert set(seen) <= {"http://a:1", "http://b:1", "http://c:1"}

    def test_closed(self):
        conn = self._conn(lambda r: httpx.Response(200))
        conn.close()
        assert conn.closed
        with pytest.raises(RequestCancelledError):
            conn.do("GET", "_api/version")


class TestConnectionConfig:

    def test_defaults(self):
        config = ConnectionConfig.from_env({})
        assert config.endpoints == []
        assert config.timeout == 30.0
        assert config.verify is True

    def test_from_env(self):
        config = ConnectionConfig.from_env({
            "ARANGO_AGENCY_ENDPOINTS": "http://a:8531, tcp://b:8531,",
            "ARANGO_AGENCY_TIMEOUT": "2.5",
            "ARANGO_AGENCY_VERIFY": "no",
        })
        assert config.endpoints == ["http://a:8531", "tcp://b:8531"]
        assert config.timeout == 2.5
        assert config.verify is False

    @pytest.mark.parametrize("env", [
        {"ARANGO_AGENCY_TIMEOUT": "soon"},
        {"ARANGO_AGENCY_TIMEOUT": "0"},
        {"ARANGO_AGENCY_VERIFY": "maybe"},
    ])
    def test_invalid(self, env):
        with pytest.raises(ConfigError):
            ConnectionConfig.from_env(env)

    def test_client_from_config(self, agency):
        agency.tree = {"a": 1}
        config = ConnectionConfig(endpoints=["tcp://agent1:8531"], timeout=5)
        with AgencyClient.from_config(config, transport=agency.transport()) as client:
            assert client.read_key(["a"]) == 1

    def test_client_from_environment(self, agency, monkeypatch):
        agency.tree = {"a": 2}
        monkeypatch.setenv("ARANGO_AGENCY_ENDPOINTS", "http://agent1:8531")
        with AgencyClient.from_config(transport=agency.transport()) as client:
            assert client.read_key(["a"]) == 2
