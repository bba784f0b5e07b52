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

"""Tests for the error taxonomy and error predicates."""

import pytest

from arangoagency.errors import (
    AgencyError,
    ConnectionTimeoutError,
    ErrorCode,
    KeyNotFoundError,
    PreconditionFailedError,
    RedirectError,
    RequestCancelledError,
    ResponseError,
    from_response,
    is_canceled,
    is_key_not_found,
    is_precondition_failed,
    is_status,
    is_timeout,
)


class WrapperError(Exception):
    pass


def _wrapped(inner):
    try:
        try:
            raise inner
        except AgencyError as e:
            raise WrapperError("outer") from e
    except WrapperError as outer:
        return outer


class TestErrorBasics:

    def test_str_and_code(self):
        err = KeyNotFoundError(["a", "c"])
        assert err.code == ErrorCode.KEY_NOT_FOUND
        assert str(err) == "[KEY_NOT_FOUND] Key 'a/c' not found"
        assert err.key == ["a", "c"]

    def test_to_dict(self):
        err = PreconditionFailedError()
        data = err.to_dict()
        assert data["code"] == ErrorCode.PRECONDITION_FAILED.value
        assert data["code_name"] == "PRECONDITION_FAILED"
        assert data["context"]["status"] == 412
        assert data["remediation"]

    def test_hierarchy(self):
        assert issubclass(RequestCancelledError, AgencyError)
        assert issubclass(PreconditionFailedError, ResponseError)
        assert RedirectError("no location").status == 307


class TestPredicates:
    """Predicates see through wrapping exceptions."""

    def test_direct(self):
        assert is_key_not_found(KeyNotFoundError(["a"]))
        assert is_precondition_failed(PreconditionFailedError())
        assert is_canceled(RequestCancelledError("closed"))
        assert is_timeout(ConnectionTimeoutError("slow"))
        assert is_status(ResponseError("x", status=503), 503)

    def test_wrapped(self):
        assert is_key_not_found(_wrapped(KeyNotFoundError(["a"])))
        assert is_precondition_failed(_wrapped(PreconditionFailedError()))
        assert is_canceled(_wrapped(RequestCancelledError("closed")))
        assert is_status(_wrapped(RedirectError("cycle")), 307)

    def test_negative(self):
        assert not is_key_not_found(None)
        assert not is_key_not_found(ValueError("x"))
        assert not is_precondition_failed(ResponseError("x", status=500))
        assert not is_canceled(ConnectionTimeoutError("slow"))
        assert not is_timeout(RequestCancelledError("closed"))


class TestFromResponse:

    def test_arangodb_error_body(self):
        err = from_response(503, {"error": True, "errorNum": 1496, "errorMessage": "not ready"}, "http://a:1")
        assert type(err) is ResponseError
        assert err.status == 503
        assert err.error_num == 1496
        assert err.message == "not ready"
        assert err.context["endpoint"] == "http://a:1"

    def test_no_body(self):
        err = from_response(500)
        assert err.message == "Unexpected status code 500"
        assert err.error_num == 0

    def test_precondition(self):
        err = from_response(412, {"errorNum": 1200, "errorMessage": "conflict"})
        assert isinstance(err, PreconditionFailedError)
        assert err.error_num == 1200
        assert is_precondition_failed(err)

    @pytest.mark.parametrize("status", [301, 404, 409])
    def test_other_statuses(self, status):
        assert is_status(from_response(status), status)

    @pytest.mark.parametrize("error_num", ["E1496", None, True, 12.5])
    def test_non_integer_error_num(self, error_num):
        err = from_response(502, {"error": True, "errorNum": error_num, "errorMessage": "proxy"})
        assert err.status == 502
        assert err.error_num == 0
        assert err.message == "proxy"
