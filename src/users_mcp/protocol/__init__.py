"""Protocol layer: wire messages, typed payloads and the correlating peer.

Key concepts:
- Requests carry an id and expect exactly one response
- Notifications carry no id and expect nothing
- RpcPeer is used identically by host and driver, which is what lets the
  host call back into the driver for sampling
"""

from .messages import (
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    Method,
    parse_message,
    serialize_message,
)
from .peer import PendingCall, RpcPeer

__all__ = [
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "Method",
    "PendingCall",
    "RpcPeer",
    "parse_message",
    "serialize_message",
]
