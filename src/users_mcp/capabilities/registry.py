"""Capability registry: the host's catalog of resources, tools and prompts.

The registry is a plain value built once at startup and handed to the
host server; nothing here is module-global.

Example:
    registry = CapabilityRegistry()

    @registry.tool("echo", "Echo the input", InputSchema.strings("text"))
    async def echo(arguments: dict, context: ToolContext) -> str:
        return arguments["text"]

    registry.resolve(CapabilityKind.TOOL, "echo")
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from ..errors import CapabilityNotFound, DuplicateIdentifier, UnresolvedTemplate
from ..protocol.types import ToolAnnotations
from .schema import InputSchema
from .types import (
    CapabilityDefinition,
    CapabilityKind,
    PromptArgument,
    PromptDefinition,
    PromptHandler,
    ResolvedResource,
    ResourceDefinition,
    ResourceHandler,
    ToolDefinition,
    ToolHandler,
)

logger = logging.getLogger(__name__)

D = TypeVar("D", ResourceDefinition, ToolDefinition, PromptDefinition)


class CapabilityRegistry:
    """Catalog of capabilities, one namespace per kind.

    Listing order is registration order. Registration is expected to be
    complete before the host starts serving.
    """

    def __init__(self) -> None:
        self._entries: dict[CapabilityKind, dict[str, CapabilityDefinition]] = {
            kind: {} for kind in CapabilityKind
        }

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, definition: D) -> D:
        """Register a capability definition.

        Args:
            definition: Resource, tool or prompt definition

        Returns:
            The same definition, for chaining

        Raises:
            DuplicateIdentifier: If the identifier already exists in that
                kind's namespace; the existing entry is left unchanged
        """
        namespace = self._entries[definition.kind]
        if definition.identifier in namespace:
            raise DuplicateIdentifier(definition.kind.value, definition.identifier)
        namespace[definition.identifier] = definition
        logger.info(f"Registered {definition.kind.value}: {definition.identifier}")
        return definition

    def tool(
        self,
        name: str,
        description: str,
        input_schema: InputSchema | None = None,
        *,
        annotations: ToolAnnotations | None = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator registering an async tool handler."""

        def decorator(handler: ToolHandler) -> ToolHandler:
            self.register(
                ToolDefinition(
                    name=name,
                    description=description,
                    handler=handler,
                    input_schema=input_schema or InputSchema(),
                    annotations=annotations,
                )
            )
            return handler

        return decorator

    def resource(
        self,
        name: str,
        uri: str,
        description: str,
        *,
        mime_type: str = "application/json",
        title: str | None = None,
    ) -> Callable[[ResourceHandler], ResourceHandler]:
        """Decorator registering an async resource reader."""

        def decorator(handler: ResourceHandler) -> ResourceHandler:
            self.register(
                ResourceDefinition(
                    name=name,
                    uri=uri,
                    description=description,
                    handler=handler,
                    mime_type=mime_type,
                    title=title,
                )
            )
            return handler

        return decorator

    def prompt(
        self,
        name: str,
        description: str,
        arguments: tuple[PromptArgument, ...] | list[PromptArgument] = (),
    ) -> Callable[[PromptHandler], PromptHandler]:
        """Decorator registering a prompt renderer."""

        def decorator(handler: PromptHandler) -> PromptHandler:
            self.register(
                PromptDefinition(
                    name=name,
                    description=description,
                    handler=handler,
                    arguments=tuple(arguments),
                )
            )
            return handler

        return decorator

    # =========================================================================
    # Discovery
    # =========================================================================

    def list(self, kind: CapabilityKind) -> list[Any]:
        """All definitions of a kind, in registration order."""
        return list(self._entries[kind].values())

    def list_tools(self) -> list[ToolDefinition]:
        return self.list(CapabilityKind.TOOL)

    def list_prompts(self) -> list[PromptDefinition]:
        return self.list(CapabilityKind.PROMPT)

    def list_resources(self) -> list[ResourceDefinition]:
        """Resources with a static URI."""
        return [r for r in self.list(CapabilityKind.RESOURCE) if not r.is_template]

    def list_resource_templates(self) -> list[ResourceDefinition]:
        """Resources addressed through a URI template."""
        return [r for r in self.list(CapabilityKind.RESOURCE) if r.is_template]

    def count(self, kind: CapabilityKind | None = None) -> int:
        if kind is not None:
            return len(self._entries[kind])
        return sum(len(namespace) for namespace in self._entries.values())

    def __len__(self) -> int:
        return self.count()

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve(self, kind: CapabilityKind, identifier: str) -> Any:
        """Look up a definition by identifier.

        For resources, the identifier may be a concrete URI matching a
        template; use resolve_resource() to also get placeholder values.

        Raises:
            CapabilityNotFound: If nothing matches
            UnresolvedTemplate: If a resource URI matches a template's scheme
                but not its segment count
        """
        if kind is CapabilityKind.RESOURCE:
            return self.resolve_resource(identifier).definition

        definition = self._entries[kind].get(identifier)
        if definition is None:
            raise CapabilityNotFound(kind.value, identifier)
        return definition

    def resolve_resource(self, uri: str) -> ResolvedResource:
        """Match a concrete URI against static resources, then templates.

        Raises:
            CapabilityNotFound: If no resource matches
            UnresolvedTemplate: If the only candidates differ by segment count
        """
        resources = self._entries[CapabilityKind.RESOURCE]
        static = resources.get(uri)
        if static is not None and not static.is_template:
            return ResolvedResource(definition=static, uri=uri)

        unresolved: UnresolvedTemplate | None = None
        for definition in self.list_resource_templates():
            assert definition.template is not None
            try:
                variables = definition.template.match(uri)
            except UnresolvedTemplate as e:
                unresolved = unresolved or e
                continue
            if variables is not None:
                return ResolvedResource(definition=definition, uri=uri, variables=variables)

        if unresolved is not None:
            raise unresolved
        raise CapabilityNotFound(CapabilityKind.RESOURCE.value, uri)
