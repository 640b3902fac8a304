"""Capability definitions: resources, tools and prompts.

Definitions are frozen once built. Each carries its handler and knows
how to describe itself for the listing methods.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..protocol.types import (
    ContentItem,
    PromptArgumentInfo,
    PromptInfo,
    PromptMessage,
    ResourceInfo,
    ResourceTemplateInfo,
    ToolAnnotations,
    ToolInfo,
)
from .schema import FieldSpec, InputSchema
from .uri import UriTemplate, is_template as uri_is_template

if TYPE_CHECKING:
    from ..host.sampling import SamplingClient


class CapabilityKind(str, Enum):
    """The three capability namespaces."""

    RESOURCE = "resource"
    TOOL = "tool"
    PROMPT = "prompt"


@dataclass
class ToolContext:
    """Context passed to tool handlers.

    Attributes:
        sampling: Client for generate-text requests back to the driver,
            None when the tool runs without a connected driver
    """

    sampling: SamplingClient | None = None


ResourceHandler = Callable[[str, dict[str, str]], Awaitable[list[ContentItem]]]
ToolHandler = Callable[[dict[str, Any], ToolContext], Awaitable[list[ContentItem] | str]]
PromptHandler = Callable[[dict[str, Any]], list[PromptMessage] | Awaitable[list[PromptMessage]]]


@dataclass(frozen=True)
class ResourceDefinition:
    """A readable resource at a static URI or a URI template.

    Attributes:
        name: Short name shown in listings
        uri: Static URI (`users://all`) or template (`users://{userId}/profile`)
        description: Human-readable description
        handler: Async function (resolved uri, placeholder values) -> contents
        mime_type: MIME type of the contents
        title: Optional display title
    """

    name: str
    uri: str
    description: str
    handler: ResourceHandler
    mime_type: str = "application/json"
    title: str | None = None
    template: UriTemplate | None = field(init=False, default=None)

    kind = CapabilityKind.RESOURCE

    def __post_init__(self) -> None:
        if not self.uri:
            raise ValueError("Resource URI cannot be empty")
        if not callable(self.handler):
            raise ValueError("Resource handler must be callable")
        if uri_is_template(self.uri):
            object.__setattr__(self, "template", UriTemplate(self.uri))

    @property
    def identifier(self) -> str:
        return self.uri

    @property
    def is_template(self) -> bool:
        return self.template is not None

    def info(self) -> ResourceInfo | ResourceTemplateInfo:
        if self.is_template:
            return ResourceTemplateInfo(
                uri_template=self.uri,
                name=self.name,
                title=self.title,
                description=self.description,
                mime_type=self.mime_type,
            )
        return ResourceInfo(
            uri=self.uri,
            name=self.name,
            title=self.title,
            description=self.description,
            mime_type=self.mime_type,
        )


@dataclass(frozen=True)
class ToolDefinition:
    """An executable tool.

    Attributes:
        name: Unique tool name
        description: Description for users and models
        input_schema: Declared argument constraints
        handler: Async function (validated arguments, context) -> content
        annotations: Optional behavioral hints
    """

    name: str
    description: str
    handler: ToolHandler
    input_schema: InputSchema = field(default_factory=InputSchema)
    annotations: ToolAnnotations | None = None

    kind = CapabilityKind.TOOL

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tool name cannot be empty")
        if not callable(self.handler):
            raise ValueError("Tool handler must be callable")

    @property
    def identifier(self) -> str:
        return self.name

    def info(self) -> ToolInfo:
        return ToolInfo(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema.to_json_schema(),
            annotations=self.annotations,
        )


@dataclass(frozen=True)
class PromptArgument:
    name: str
    description: str | None = None
    required: bool = True


@dataclass(frozen=True)
class PromptDefinition:
    """A prompt template rendered into role-tagged messages."""

    name: str
    description: str
    handler: PromptHandler
    arguments: tuple[PromptArgument, ...] = ()

    kind = CapabilityKind.PROMPT

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Prompt name cannot be empty")
        if not callable(self.handler):
            raise ValueError("Prompt handler must be callable")

    @property
    def identifier(self) -> str:
        return self.name

    @property
    def input_schema(self) -> InputSchema:
        """Prompt arguments are always strings."""
        return InputSchema(
            tuple(
                FieldSpec(arg.name, description=arg.description, required=arg.required)
                for arg in self.arguments
            )
        )

    def info(self) -> PromptInfo:
        return PromptInfo(
            name=self.name,
            description=self.description,
            arguments=[
                PromptArgumentInfo(name=arg.name, description=arg.description, required=arg.required)
                for arg in self.arguments
            ],
        )


CapabilityDefinition = ResourceDefinition | ToolDefinition | PromptDefinition


@dataclass(frozen=True)
class ResolvedResource:
    """A resource definition matched against a concrete URI."""

    definition: ResourceDefinition
    uri: str
    variables: dict[str, str] = field(default_factory=dict)
