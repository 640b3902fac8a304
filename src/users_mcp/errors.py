"""Error taxonomy shared by host and driver.

Two families live here:

- ProtocolError and its subclasses carry a JSON-RPC error code. The peer
  turns them into error responses when they escape a request handler,
  and raises RemoteError on the calling side.
- Capability-level errors (validation, persistence, duplicate
  registration, tool failures) never cross the wire directly. The
  invoker converts them into failure content.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """JSON-RPC error codes used on the wire."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Implementation-defined range
    CONNECTION_CLOSED = -32000
    REQUEST_TIMEOUT = -32001
    NOT_FOUND = -32002
    GENERATION_FAILED = -32003


class UsersMcpError(Exception):
    """Base class for all errors raised by this package."""


# =============================================================================
# Protocol errors
# =============================================================================


class ProtocolError(UsersMcpError):
    """An error that can be expressed as a JSON-RPC error object."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code  # type: ignore[assignment]
        self.data = data

    def to_error(self) -> dict[str, Any]:
        """Build the wire error object for this exception."""
        error: dict[str, Any] = {"code": int(self.code), "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class MalformedMessage(ProtocolError):
    """Incoming bytes could not be parsed into a request or response."""

    code = ErrorCode.PARSE_ERROR


class MethodNotFound(ProtocolError):
    """No handler is registered for the requested method."""

    code = ErrorCode.METHOD_NOT_FOUND

    def __init__(self, method: str) -> None:
        super().__init__(f"Method not found: {method}", data={"method": method})
        self.method = method


class InvalidParams(ProtocolError):
    """Request params do not have the shape the method expects."""

    code = ErrorCode.INVALID_PARAMS


class RemoteError(ProtocolError):
    """The other side answered a request with an error response."""

    @classmethod
    def from_error(cls, error: dict[str, Any]) -> RemoteError:
        return cls(
            str(error.get("message", "Unknown error")),
            code=int(error.get("code", ErrorCode.INTERNAL_ERROR)),
            data=error.get("data"),
        )


class RequestTimeout(ProtocolError):
    """A pending call was not answered within its bound."""

    code = ErrorCode.REQUEST_TIMEOUT

    def __init__(self, method: str, timeout: float | None) -> None:
        super().__init__(
            f"Request '{method}' timed out after {timeout}s",
            data={"method": method, "timeout": timeout},
        )
        self.method = method
        self.timeout = timeout


class ConnectionClosed(ProtocolError):
    """The transport ended while a call was pending."""

    code = ErrorCode.CONNECTION_CLOSED


class CapabilityNotFound(ProtocolError):
    """A resource, tool or prompt identifier is not registered."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, kind: str, identifier: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Unknown {kind}: {identifier}",
            data={"kind": kind, "identifier": identifier},
        )
        self.kind = kind
        self.identifier = identifier


class UnresolvedTemplate(CapabilityNotFound):
    """A URI matched a template's scheme but not its segment layout."""

    def __init__(self, uri: str, template: str) -> None:
        super().__init__(
            "resource",
            uri,
            f"URI '{uri}' does not match template '{template}': segment count differs",
        )
        self.template = template


class GenerationFailed(ProtocolError):
    """The text-generation backend could not produce a reply."""

    code = ErrorCode.GENERATION_FAILED


# =============================================================================
# Capability-level errors
# =============================================================================


class DuplicateIdentifier(UsersMcpError):
    """A capability with the same identifier is already registered."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} '{identifier}' already registered")
        self.kind = kind
        self.identifier = identifier


class ValidationFailed(UsersMcpError):
    """Arguments do not satisfy a capability's declared schema."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors) or "invalid arguments")
        self.errors = errors


class PersistenceFailed(UsersMcpError):
    """The user store could not be read or written."""


class ToolError(UsersMcpError):
    """A tool handler failed with a message meant for the caller."""
