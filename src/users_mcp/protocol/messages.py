"""Wire messages for the protocol layer.

Every message is a JSON-RPC 2.0 object, one per line on the transport:

    request:       {"jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": {...}}
    notification:  {"jsonrpc": "2.0", "method": "notifications/initialized"}
    response:      {"jsonrpc": "2.0", "id": 7, "result": {...}}
    error:         {"jsonrpc": "2.0", "id": 7, "error": {"code": -32601, "message": "..."}}

The sender builds the message, the receiver interprets it. No state is
shared across the transport beyond the correlation id.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, model_validator

from ..errors import ErrorCode, MalformedMessage

JSONRPC_VERSION = "2.0"

RequestId = int | str


class Method(str, Enum):
    """All methods exchanged between host and driver."""

    # Lifecycle
    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    PING = "ping"
    CANCELLED = "notifications/cancelled"

    # Discovery
    TOOLS_LIST = "tools/list"
    RESOURCES_LIST = "resources/list"
    RESOURCE_TEMPLATES_LIST = "resources/templates/list"
    PROMPTS_LIST = "prompts/list"

    # Invocation
    TOOLS_CALL = "tools/call"
    RESOURCES_READ = "resources/read"
    PROMPTS_GET = "prompts/get"

    # Reverse direction (host -> driver): the generate-text request
    SAMPLING_CREATE_MESSAGE = "sampling/createMessage"


class JsonRpcRequest(BaseModel):
    """A request, or a notification when `id` is absent."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId | None = None
    method: str
    params: dict[str, Any] = Field(default_factory=dict)

    def is_notification(self) -> bool:
        """Notifications carry no id and expect no reply."""
        return self.id is None


class JsonRpcError(BaseModel):
    """Error object carried by a failed response."""

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """A response correlated to a request by `id`."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId | None
    result: dict[str, Any] | None = None
    error: JsonRpcError | None = None

    @model_validator(mode="after")
    def _result_or_error(self) -> JsonRpcResponse:
        if (self.result is None) == (self.error is None):
            raise ValueError("response must carry exactly one of 'result' or 'error'")
        return self

    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def success(cls, request_id: RequestId, result: dict[str, Any]) -> JsonRpcResponse:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: RequestId | None, error: dict[str, Any]) -> JsonRpcResponse:
        return cls(id=request_id, error=JsonRpcError.model_validate(error))


Message = JsonRpcRequest | JsonRpcResponse


def parse_message(raw: str | bytes) -> Message:
    """Parse one wire line into a request or response.

    Args:
        raw: A single JSON document

    Returns:
        The parsed request, notification or response

    Raises:
        MalformedMessage: If the text is not JSON or has neither shape
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedMessage(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedMessage("Message must be a JSON object", code=ErrorCode.INVALID_REQUEST)

    try:
        if "method" in data:
            return JsonRpcRequest.model_validate(data)
        if "result" in data or "error" in data:
            return JsonRpcResponse.model_validate(data)
    except ValidationError as e:
        raise MalformedMessage(
            f"Invalid message: {e.errors()[0]['msg']}",
            code=ErrorCode.INVALID_REQUEST,
        ) from e

    raise MalformedMessage(
        "Message is neither a request nor a response",
        code=ErrorCode.INVALID_REQUEST,
    )


def serialize_message(message: Message) -> str:
    """Serialize a message to a single JSON line (without newline)."""
    return message.model_dump_json(exclude_none=True)
