"""Driver client: typed calls to a connected host.

Wraps an RpcPeer with one method per protocol operation and parses the
results into the protocol models. The driver also serves the host's
sampling requests on the same peer.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from typing import Any

from .. import __version__
from ..protocol.messages import Method
from ..protocol.peer import RequestHandler, RpcPeer
from ..protocol.types import (
    PROTOCOL_VERSION,
    CallToolResult,
    GetPromptResult,
    Implementation,
    InitializeParams,
    InitializeResult,
    PromptInfo,
    ReadResourceResult,
    ResourceInfo,
    ResourceTemplateInfo,
    ToolInfo,
)
from ..transport.stdio import SubprocessTransport

logger = logging.getLogger(__name__)

CLIENT_NAME = "users-mcp-driver"


def host_command(data_file: str | None = None) -> list[str]:
    """Command line that launches the host with the current interpreter."""
    command = [sys.executable, "-m", "users_mcp", "host"]
    if data_file:
        command += ["--data-file", data_file]
    return command


class DriverClient:
    """Client half of a host connection.

    Usage:
        client = DriverClient(peer, sampling_handler=handler)
        await client.connect()
        tools = await client.list_tools()
        result = await client.call_tool("create-user", {...})
    """

    def __init__(
        self,
        peer: RpcPeer,
        *,
        client_name: str = CLIENT_NAME,
        version: str = __version__,
        sampling_handler: RequestHandler | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            peer: Peer connected to the host
            client_name: Name sent in the handshake
            version: Version sent in the handshake
            sampling_handler: Answers the host's sampling requests; the
                sampling capability is only declared when one is given
        """
        self.peer = peer
        self._client_info = Implementation(name=client_name, version=version)
        self._sampling_handler = sampling_handler
        self.server_info: Implementation | None = None
        self.server_capabilities: dict[str, Any] = {}

    @classmethod
    def spawn(
        cls,
        command: Sequence[str],
        *,
        env: dict[str, str] | None = None,
        request_timeout: float | None = 60.0,
        sampling_handler: RequestHandler | None = None,
    ) -> DriverClient:
        """Create a client for a host launched as a subprocess.

        The process starts on connect().
        """
        transport = SubprocessTransport(command, env=env)
        peer = RpcPeer(transport, name="driver", request_timeout=request_timeout)
        return cls(peer, sampling_handler=sampling_handler)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> InitializeResult:
        """Start the connection and run the handshake."""
        transport = self.peer.transport
        if isinstance(transport, SubprocessTransport):
            await transport.start()

        capabilities: dict[str, Any] = {}
        if self._sampling_handler is not None:
            self.peer.on_request(Method.SAMPLING_CREATE_MESSAGE, self._sampling_handler)
            capabilities["sampling"] = {}

        await self.peer.start()
        params = InitializeParams(
            protocol_version=PROTOCOL_VERSION,
            capabilities=capabilities,
            client_info=self._client_info,
        )
        result = InitializeResult.model_validate(
            await self.peer.request(Method.INITIALIZE, params.to_wire())
        )
        self.server_info = result.server_info
        self.server_capabilities = result.capabilities
        await self.peer.notify(Method.INITIALIZED)
        logger.info(f"Connected to {result.server_info.name} {result.server_info.version}")
        return result

    async def close(self) -> None:
        await self.peer.close()

    async def __aenter__(self) -> DriverClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def ping(self) -> None:
        await self.peer.request(Method.PING)

    # =========================================================================
    # Discovery
    # =========================================================================

    async def list_tools(self) -> list[ToolInfo]:
        result = await self.peer.request(Method.TOOLS_LIST)
        return [ToolInfo.model_validate(t) for t in result.get("tools", [])]

    async def list_resources(self) -> list[ResourceInfo]:
        result = await self.peer.request(Method.RESOURCES_LIST)
        return [ResourceInfo.model_validate(r) for r in result.get("resources", [])]

    async def list_resource_templates(self) -> list[ResourceTemplateInfo]:
        result = await self.peer.request(Method.RESOURCE_TEMPLATES_LIST)
        return [
            ResourceTemplateInfo.model_validate(r) for r in result.get("resourceTemplates", [])
        ]

    async def list_prompts(self) -> list[PromptInfo]:
        result = await self.peer.request(Method.PROMPTS_LIST)
        return [PromptInfo.model_validate(p) for p in result.get("prompts", [])]

    # =========================================================================
    # Invocation
    # =========================================================================

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> CallToolResult:
        """Call a tool on the host.

        Failures inside the tool come back as a result with is_error set.

        Raises:
            RemoteError: If the tool is unknown or the params are invalid
        """
        result = await self.peer.request(
            Method.TOOLS_CALL, {"name": name, "arguments": arguments or {}}
        )
        return CallToolResult.model_validate(result)

    async def read_resource(self, uri: str) -> ReadResourceResult:
        result = await self.peer.request(Method.RESOURCES_READ, {"uri": uri})
        return ReadResourceResult.model_validate(result)

    async def get_prompt(self, name: str, arguments: dict[str, Any] | None = None) -> GetPromptResult:
        result = await self.peer.request(
            Method.PROMPTS_GET, {"name": name, "arguments": arguments or {}}
        )
        return GetPromptResult.model_validate(result)
