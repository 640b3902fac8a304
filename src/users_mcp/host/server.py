"""Host server: serves the capability registry over an RpcPeer.

The server answers discovery and invocation requests from the driver.
Tool handlers receive a SamplingClient bound to the same connection, so
they can ask the driver for generated text mid-call.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from .. import __version__
from ..capabilities import CapabilityInvoker, CapabilityRegistry, ToolContext
from ..errors import InvalidParams
from ..protocol.messages import Method
from ..protocol.peer import RpcPeer
from ..protocol.types import (
    PROTOCOL_VERSION,
    Implementation,
    InitializeParams,
    InitializeResult,
)
from ..transport.base import Transport
from .sampling import SamplingClient

logger = logging.getLogger(__name__)

SERVER_NAME = "users-mcp-host"

SERVER_CAPABILITIES: dict[str, Any] = {
    "resources": {},
    "tools": {},
    "prompts": {},
}


def _require_str(params: dict[str, Any], key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidParams(f"Missing required parameter: {key}")
    return value


def _optional_dict(params: dict[str, Any], key: str) -> dict[str, Any]:
    value = params.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidParams(f"Parameter '{key}' must be an object")
    return value


class HostConnection:
    """State and request handlers for one connected driver."""

    def __init__(
        self,
        peer: RpcPeer,
        invoker: CapabilityInvoker,
        *,
        server_info: Implementation,
        sampling_timeout: float | None,
    ) -> None:
        self.peer = peer
        self._invoker = invoker
        self._server_info = server_info
        self.client_info: Implementation | None = None
        self.client_capabilities: dict[str, Any] = {}
        self.initialized = False
        self.sampling = SamplingClient(
            peer,
            timeout=sampling_timeout,
            is_supported=lambda: "sampling" in self.client_capabilities,
        )
        self._bind()

    @property
    def registry(self) -> CapabilityRegistry:
        return self._invoker.registry

    def _bind(self) -> None:
        handlers = {
            Method.INITIALIZE: self._initialize,
            Method.PING: self._ping,
            Method.TOOLS_LIST: self._list_tools,
            Method.RESOURCES_LIST: self._list_resources,
            Method.RESOURCE_TEMPLATES_LIST: self._list_resource_templates,
            Method.PROMPTS_LIST: self._list_prompts,
            Method.TOOLS_CALL: self._call_tool,
            Method.RESOURCES_READ: self._read_resource,
            Method.PROMPTS_GET: self._get_prompt,
        }
        for method, handler in handlers.items():
            self.peer.on_request(method, handler)
        self.peer.on_notification(Method.INITIALIZED, self._on_initialized)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            request = InitializeParams.model_validate(params)
        except ValidationError as e:
            raise InvalidParams(f"Invalid initialize params: {e.errors()[0]['msg']}") from e

        self.client_info = request.client_info
        self.client_capabilities = request.capabilities
        logger.info(
            f"Driver connected: {request.client_info.name} {request.client_info.version} "
            f"(capabilities: {sorted(request.capabilities)})"
        )
        return InitializeResult(
            protocol_version=PROTOCOL_VERSION,
            capabilities=SERVER_CAPABILITIES,
            server_info=self._server_info,
        ).to_wire()

    async def _on_initialized(self, params: dict[str, Any]) -> None:
        self.initialized = True

    async def _ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    # =========================================================================
    # Discovery
    # =========================================================================

    async def _list_tools(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": [t.info().to_wire() for t in self.registry.list_tools()]}

    async def _list_resources(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"resources": [r.info().to_wire() for r in self.registry.list_resources()]}

    async def _list_resource_templates(self, params: dict[str, Any]) -> dict[str, Any]:
        return {
            "resourceTemplates": [
                r.info().to_wire() for r in self.registry.list_resource_templates()
            ]
        }

    async def _list_prompts(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"prompts": [p.info().to_wire() for p in self.registry.list_prompts()]}

    # =========================================================================
    # Invocation
    # =========================================================================

    async def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        name = _require_str(params, "name")
        arguments = _optional_dict(params, "arguments")
        context = ToolContext(sampling=self.sampling)
        result = await self._invoker.call_tool(name, arguments, context=context)
        return result.to_wire()

    async def _read_resource(self, params: dict[str, Any]) -> dict[str, Any]:
        uri = _require_str(params, "uri")
        result = await self._invoker.read_resource(uri)
        return result.to_wire()

    async def _get_prompt(self, params: dict[str, Any]) -> dict[str, Any]:
        name = _require_str(params, "name")
        arguments = _optional_dict(params, "arguments")
        result = await self._invoker.get_prompt(name, arguments)
        return result.to_wire()


class HostServer:
    """Serves a capability registry to one driver at a time.

    Usage:
        server = HostServer(build_registry(store))
        await server.serve(StdioTransport())
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        *,
        name: str = SERVER_NAME,
        version: str = __version__,
        request_timeout: float | None = 60.0,
        sampling_timeout: float | None = 120.0,
    ) -> None:
        self._invoker = CapabilityInvoker(registry)
        self._server_info = Implementation(name=name, version=version)
        self._request_timeout = request_timeout
        self._sampling_timeout = sampling_timeout

    @property
    def registry(self) -> CapabilityRegistry:
        return self._invoker.registry

    def connect(self, transport: Transport) -> HostConnection:
        """Create a peer on the transport and bind the request handlers.

        The caller starts the peer.
        """
        peer = RpcPeer(transport, name="host", request_timeout=self._request_timeout)
        return HostConnection(
            peer,
            self._invoker,
            server_info=self._server_info,
            sampling_timeout=self._sampling_timeout,
        )

    async def serve(self, transport: Transport) -> None:
        """Serve until the transport ends."""
        connection = self.connect(transport)
        logger.info(f"{self._server_info.name} {self._server_info.version} serving")
        await connection.peer.start()
        try:
            await connection.peer.wait_closed()
            await connection.peer.drain()
        finally:
            await connection.peer.close()
            logger.info("Host shut down")
