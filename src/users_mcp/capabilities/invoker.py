"""Capability invoker: runs handlers and shapes their results.

The invoker is the boundary where handler failures stop. Validation
errors, tool errors, persistence and generation failures all come back
as content the driver can render. Only registry-level lookups
(CapabilityNotFound) escape, and the host answers those with a protocol
error.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any

from ..errors import (
    GenerationFailed,
    PersistenceFailed,
    RequestTimeout,
    ToolError,
    ValidationFailed,
)
from ..protocol.types import (
    CallToolResult,
    ContentItem,
    GetPromptResult,
    PromptMessage,
    ReadResourceResult,
)
from .registry import CapabilityRegistry
from .types import CapabilityKind, PromptDefinition, ToolContext, ToolDefinition

logger = logging.getLogger(__name__)


def _validation_message(kind: CapabilityKind, name: str, error: ValidationFailed) -> str:
    return f"Invalid arguments for {kind.value} '{name}': {error}"


class CapabilityInvoker:
    """Executes registered capabilities against validated arguments."""

    def __init__(self, registry: CapabilityRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    async def invoke(
        self,
        kind: CapabilityKind,
        identifier: str,
        arguments: dict[str, Any] | None = None,
        *,
        context: ToolContext | None = None,
    ) -> CallToolResult | ReadResourceResult | GetPromptResult:
        """Invoke any capability by kind.

        Raises:
            CapabilityNotFound: If the identifier is not registered
        """
        match kind:
            case CapabilityKind.TOOL:
                return await self.call_tool(identifier, arguments, context=context)
            case CapabilityKind.RESOURCE:
                return await self.read_resource(identifier)
            case CapabilityKind.PROMPT:
                return await self.get_prompt(identifier, arguments)
        raise ValueError(f"Unknown capability kind: {kind}")

    # =========================================================================
    # Tools
    # =========================================================================

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        *,
        context: ToolContext | None = None,
    ) -> CallToolResult:
        """Validate arguments and run a tool.

        Returns:
            Success content, or failure content with is_error set

        Raises:
            CapabilityNotFound: If no tool has this name
        """
        definition: ToolDefinition = self._registry.resolve(CapabilityKind.TOOL, name)

        validation = definition.input_schema.validate(arguments)
        if not validation.ok:
            error = ValidationFailed(validation.errors)
            logger.info(f"Rejected call to tool '{name}': {error}")
            return CallToolResult.failure(_validation_message(CapabilityKind.TOOL, name, error))

        try:
            output = await definition.handler(validation.values, context or ToolContext())
        except (ToolError, PersistenceFailed, GenerationFailed, RequestTimeout) as e:
            logger.warning(f"Tool '{name}' failed: {e}")
            return CallToolResult.failure(str(e))
        except Exception as e:
            logger.exception(f"Tool '{name}' raised unexpectedly")
            return CallToolResult.failure(f"Tool '{name}' failed: {e}")

        if isinstance(output, str):
            return CallToolResult(content=[ContentItem.text_content(output)])
        return CallToolResult(content=list(output))

    # =========================================================================
    # Resources
    # =========================================================================

    async def read_resource(self, uri: str) -> ReadResourceResult:
        """Resolve a URI and read the resource.

        Absent domain entities are the handler's business: it returns
        content describing the absence, not an error.

        Raises:
            CapabilityNotFound: If no resource or template matches
            UnresolvedTemplate: If the URI shape does not fit the template
        """
        resolved = self._registry.resolve_resource(uri)
        definition = resolved.definition

        try:
            contents = await definition.handler(resolved.uri, resolved.variables)
        except Exception as e:
            logger.warning(f"Reading resource '{uri}' failed: {e}")
            return ReadResourceResult(
                contents=[
                    ContentItem.text_content(
                        f"Failed to read resource '{uri}': {e}",
                        uri=uri,
                        mime_type="text/plain",
                    )
                ]
            )
        return ReadResourceResult(contents=list(contents))

    # =========================================================================
    # Prompts
    # =========================================================================

    async def get_prompt(self, name: str, arguments: dict[str, Any] | None = None) -> GetPromptResult:
        """Render a prompt into messages.

        Raises:
            CapabilityNotFound: If no prompt has this name
        """
        definition: PromptDefinition = self._registry.resolve(CapabilityKind.PROMPT, name)

        validation = definition.input_schema.validate(arguments)
        if not validation.ok:
            message = _validation_message(
                CapabilityKind.PROMPT, name, ValidationFailed(validation.errors)
            )
            return self._prompt_failure(definition, message)

        try:
            rendered = definition.handler(validation.values)
            if inspect.isawaitable(rendered):
                rendered = await rendered
        except Exception as e:
            logger.warning(f"Rendering prompt '{name}' failed: {e}")
            return self._prompt_failure(definition, f"Failed to render prompt '{name}': {e}")

        return GetPromptResult(description=definition.description, messages=list(rendered))

    @staticmethod
    def _prompt_failure(definition: PromptDefinition, message: str) -> GetPromptResult:
        return GetPromptResult(
            description=definition.description,
            messages=[PromptMessage(role="assistant", content=ContentItem.text_content(message))],
            is_error=True,
        )
