"""Tests for JSON-RPC message parsing."""

import pytest

from parley.lib import oj
from parley.protocol.messages import (
    InvalidMessage,
    JSONRPCErrorResponse,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    MessageKind,
    is_valid_request_id,
    parse_message,
)


class TestParseShapes:
    """Each well-formed payload parses to exactly one tagged shape."""

    def test_request(self):
        msg = parse_message({"jsonrpc": "2.0", "id": 1, "method": "tools/list", "params": {"cursor": "x"}})
        assert isinstance(msg, JSONRPCRequest)
        assert msg.kind is MessageKind.REQUEST
        assert msg.id == 1
        assert msg.method == "tools/list"
        assert msg.params == {"cursor": "x"}

    def test_request_with_string_id(self):
        msg = parse_message({"jsonrpc": "2.0", "id": "abc", "method": "ping"})
        assert isinstance(msg, JSONRPCRequest)
        assert msg.id == "abc"
        assert msg.params is None

    def test_notification(self):
        msg = parse_message({"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert isinstance(msg, JSONRPCNotification)
        assert msg.kind is MessageKind.NOTIFICATION

    def test_response(self):
        msg = parse_message({"jsonrpc": "2.0", "id": 7, "result": {"ok": True}})
        assert isinstance(msg, JSONRPCResponse)
        assert msg.result == {"ok": True}

    def test_response_with_null_result(self):
        msg = parse_message({"jsonrpc": "2.0", "id": 7, "result": None})
        assert isinstance(msg, JSONRPCResponse)
        assert msg.result is None

    def test_error_response(self):
        msg = parse_message(
            {"jsonrpc": "2.0", "id": 3, "error": {"code": -32601, "message": "nope", "data": {"m": "x"}}}
        )
        assert isinstance(msg, JSONRPCErrorResponse)
        assert msg.error.code == -32601
        assert msg.error.data == {"m": "x"}

    def test_error_response_with_null_id(self):
        msg = parse_message({"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "bad"}})
        assert isinstance(msg, JSONRPCErrorResponse)
        assert msg.id is None

    def test_meta_property(self):
        msg = parse_message(
            {"jsonrpc": "2.0", "id": 1, "method": "x", "params": {"_meta": {"progressToken": "t"}}}
        )
        assert msg.meta == {"progressToken": "t"}


class TestParseInvalid:
    """Malformed payloads become InvalidMessage values, never exceptions."""

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            "text",
            42,
            {"id": 1, "method": "x"},
            {"jsonrpc": "1.0", "id": 1, "method": "x"},
            {"jsonrpc": "2.0", "id": 1, "method": ""},
            {"jsonrpc": "2.0", "id": 1, "method": 5},
            {"jsonrpc": "2.0", "id": 1, "method": "x", "params": [1, 2]},
            {"jsonrpc": "2.0", "id": 1, "method": "x", "result": {}},
            {"jsonrpc": "2.0", "id": 1, "result": {}, "error": {"code": 1, "message": "m"}},
            {"jsonrpc": "2.0", "id": 1, "error": {"code": "bad", "message": "m"}},
            {"jsonrpc": "2.0", "id": 1, "error": "oops"},
            {"jsonrpc": "2.0", "id": 1},
            {"jsonrpc": "2.0", "id": True, "method": "x"},
            {"jsonrpc": "2.0", "id": "", "result": 1},
        ],
    )
    def test_invalid_payloads(self, payload):
        msg = parse_message(payload)
        assert isinstance(msg, InvalidMessage)
        assert msg.kind is MessageKind.INVALID
        assert msg.reason

    def test_invalid_message_keeps_recoverable_id(self):
        msg = parse_message({"jsonrpc": "2.0", "id": 9, "method": "x", "params": "bad"})
        assert isinstance(msg, InvalidMessage)
        assert msg.id == 9

    def test_invalid_message_without_usable_id(self):
        msg = parse_message({"jsonrpc": "2.0", "id": 1.5, "method": "x"})
        assert isinstance(msg, InvalidMessage)
        assert msg.id is None

    def test_request_id_validation(self):
        assert is_valid_request_id(0)
        assert is_valid_request_id("a")
        assert not is_valid_request_id("")
        assert not is_valid_request_id(False)
        assert not is_valid_request_id(None)
        assert not is_valid_request_id(1.0)


class TestRoundTrip:
    """Serialize, parse back, serialize again: the same JSON object."""

    @pytest.mark.parametrize(
        "message",
        [
            JSONRPCRequest(id=1, method="tools/call", params={"name": "echo", "arguments": {"a": [1, 2]}}),
            JSONRPCRequest(id="req-1", method="ping"),
            JSONRPCNotification(method="notifications/progress", params={"progressToken": 1, "progress": 0.5}),
            JSONRPCResponse(id=4, result={"tools": []}),
            JSONRPCErrorResponse.create(id=5, code=-32602, message="Invalid params", data={"field": "x"}),
        ],
    )
    def test_round_trip(self, message):
        first = message.to_dict()
        reparsed = parse_message(oj.loads(oj.dumps(first)))
        assert type(reparsed) is type(message)
        assert reparsed.to_dict() == first

    def test_key_order_does_not_matter(self):
        a = parse_message({"method": "x", "id": 2, "jsonrpc": "2.0", "params": {"b": 1, "a": 2}})
        b = parse_message({"jsonrpc": "2.0", "params": {"a": 2, "b": 1}, "id": 2, "method": "x"})
        assert a.to_dict() == b.to_dict()

    def test_notification_has_no_id(self):
        assert "id" not in JSONRPCNotification(method="x").to_dict()

    def test_optional_params_omitted(self):
        assert "params" not in JSONRPCRequest(id=1, method="ping").to_dict()
