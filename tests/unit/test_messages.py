"""Tests for wire message parsing and serialization."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from users_mcp.errors import ErrorCode, MalformedMessage
from users_mcp.protocol.messages import (
    JsonRpcRequest,
    JsonRpcResponse,
    Method,
    parse_message,
    serialize_message,
)

# =============================================================================
# Serialization
# =============================================================================


class TestSerialization:
    """Tests for building wire messages."""

    def test_request_serialization(self) -> None:
        """Request serializes to a JSON-RPC 2.0 object."""
        request = JsonRpcRequest(id=7, method=Method.TOOLS_CALL.value, params={"name": "x"})
        data = json.loads(serialize_message(request))

        assert data == {"jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": {"name": "x"}}

    def test_notification_has_no_id(self) -> None:
        """Notifications omit the id field entirely."""
        notification = JsonRpcRequest(method=Method.INITIALIZED.value)
        data = json.loads(serialize_message(notification))

        assert "id" not in data
        assert notification.is_notification()

    def test_success_response(self) -> None:
        data = json.loads(serialize_message(JsonRpcResponse.success(3, {"tools": []})))

        assert data == {"jsonrpc": "2.0", "id": 3, "result": {"tools": []}}

    def test_failure_response_omits_empty_data(self) -> None:
        response = JsonRpcResponse.failure(3, {"code": -32601, "message": "Method not found: x"})
        data = json.loads(serialize_message(response))

        assert data["error"] == {"code": -32601, "message": "Method not found: x"}
        assert "result" not in data
        assert response.is_error()

    def test_response_requires_exactly_one_of_result_or_error(self) -> None:
        with pytest.raises(ValidationError):
            JsonRpcResponse(id=1)
        with pytest.raises(ValidationError):
            JsonRpcResponse(id=1, result={}, error={"code": 1, "message": "x"})


# =============================================================================
# Parsing
# =============================================================================


class TestParsing:
    """Tests for interpreting incoming lines."""

    def test_parse_request(self) -> None:
        message = parse_message('{"jsonrpc": "2.0", "id": "a", "method": "ping"}')

        assert isinstance(message, JsonRpcRequest)
        assert message.id == "a"
        assert message.params == {}

    def test_parse_notification(self) -> None:
        message = parse_message(b'{"jsonrpc": "2.0", "method": "notifications/initialized"}')

        assert isinstance(message, JsonRpcRequest)
        assert message.is_notification()

    def test_parse_result_response(self) -> None:
        message = parse_message('{"jsonrpc": "2.0", "id": 1, "result": {"ok": true}}')

        assert isinstance(message, JsonRpcResponse)
        assert message.result == {"ok": True}

    def test_parse_error_response(self) -> None:
        message = parse_message(
            '{"jsonrpc": "2.0", "id": 1, "error": {"code": -32002, "message": "Unknown tool: x"}}'
        )

        assert isinstance(message, JsonRpcResponse)
        assert message.error is not None
        assert message.error.code == ErrorCode.NOT_FOUND

    def test_invalid_json_is_parse_error(self) -> None:
        with pytest.raises(MalformedMessage) as exc_info:
            parse_message("not json")

        assert exc_info.value.code == ErrorCode.PARSE_ERROR

    def test_non_object_is_invalid_request(self) -> None:
        with pytest.raises(MalformedMessage) as exc_info:
            parse_message("[1, 2, 3]")

        assert exc_info.value.code == ErrorCode.INVALID_REQUEST

    def test_object_without_method_or_result_is_invalid(self) -> None:
        with pytest.raises(MalformedMessage) as exc_info:
            parse_message('{"jsonrpc": "2.0", "id": 1}')

        assert exc_info.value.code == ErrorCode.INVALID_REQUEST

    def test_wrong_version_is_invalid(self) -> None:
        with pytest.raises(MalformedMessage):
            parse_message('{"jsonrpc": "1.0", "id": 1, "method": "ping"}')
