"""Typed payloads for the protocol methods.

These models describe the `params` and `result` objects of each method.
Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PROTOCOL_VERSION = "2025-06-18"

Role = Literal["user", "assistant"]


class WireModel(BaseModel):
    """Base model with camelCase aliases on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump to a JSON-compatible dict using wire names."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Content
# =============================================================================


class ContentItem(WireModel):
    """The uniform unit of result data.

    Tool results, resource reads and prompt messages all carry content
    items. Resource contents additionally set `uri` and `mime_type`.
    """

    type: str = "text"
    text: str | None = None
    data: str | None = None
    mime_type: str | None = None
    uri: str | None = None

    @classmethod
    def text_content(cls, text: str, **kwargs: Any) -> ContentItem:
        return cls(type="text", text=text, **kwargs)

    @property
    def is_text(self) -> bool:
        return self.type == "text" and self.text is not None


class PromptMessage(WireModel):
    """A role-tagged message, used by prompts and sampling."""

    role: Role
    content: ContentItem

    @classmethod
    def user(cls, text: str) -> PromptMessage:
        return cls(role="user", content=ContentItem.text_content(text))


# =============================================================================
# Capability listings
# =============================================================================


class ToolAnnotations(WireModel):
    """Behavioral hints for a tool."""

    title: str | None = None
    read_only_hint: bool | None = None
    destructive_hint: bool | None = None
    idempotent_hint: bool | None = None
    open_world_hint: bool | None = None


class ToolInfo(WireModel):
    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object"})
    annotations: ToolAnnotations | None = None

    @property
    def display_name(self) -> str:
        if self.annotations and self.annotations.title:
            return self.annotations.title
        return self.name


class ResourceInfo(WireModel):
    uri: str
    name: str
    title: str | None = None
    description: str = ""
    mime_type: str | None = None


class ResourceTemplateInfo(WireModel):
    uri_template: str
    name: str
    title: str | None = None
    description: str = ""
    mime_type: str | None = None


class PromptArgumentInfo(WireModel):
    name: str
    description: str | None = None
    required: bool = True


class PromptInfo(WireModel):
    name: str
    description: str = ""
    arguments: list[PromptArgumentInfo] = Field(default_factory=list)


# =============================================================================
# Invocation results
# =============================================================================


class CallToolResult(WireModel):
    content: list[ContentItem] = Field(default_factory=list)
    is_error: bool = False

    @classmethod
    def failure(cls, text: str) -> CallToolResult:
        return cls(content=[ContentItem.text_content(text)], is_error=True)

    def first_text(self) -> str | None:
        """Text of the first text item, if any."""
        for item in self.content:
            if item.is_text:
                return item.text
        return None


class ReadResourceResult(WireModel):
    contents: list[ContentItem] = Field(default_factory=list)


class GetPromptResult(WireModel):
    description: str | None = None
    messages: list[PromptMessage] = Field(default_factory=list)
    is_error: bool = False


# =============================================================================
# Sampling
# =============================================================================


class CreateMessageParams(WireModel):
    """Params of the host's generate-text request."""

    messages: list[PromptMessage]
    max_tokens: int = 1024


class CreateMessageResult(WireModel):
    """Reply to a generate-text request.

    `model` and `stop_reason` are required even when the generation
    backend does not report them; the driver fills in defaults.
    """

    role: Role = "assistant"
    model: str
    stop_reason: str
    content: ContentItem


# =============================================================================
# Handshake
# =============================================================================


class Implementation(WireModel):
    name: str
    version: str


class InitializeParams(WireModel):
    protocol_version: str = PROTOCOL_VERSION
    capabilities: dict[str, Any] = Field(default_factory=dict)
    client_info: Implementation


class InitializeResult(WireModel):
    protocol_version: str = PROTOCOL_VERSION
    capabilities: dict[str, Any] = Field(default_factory=dict)
    server_info: Implementation
