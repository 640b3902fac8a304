"""Capability registry, schemas and invoker."""

from .invoker import CapabilityInvoker
from .registry import CapabilityRegistry
from .schema import FieldSpec, FieldType, InputSchema, ValidationResult
from .types import (
    CapabilityKind,
    PromptArgument,
    PromptDefinition,
    ResolvedResource,
    ResourceDefinition,
    ToolContext,
    ToolDefinition,
)
from .uri import UriTemplate

__all__ = [
    "CapabilityInvoker",
    "CapabilityKind",
    "CapabilityRegistry",
    "FieldSpec",
    "FieldType",
    "InputSchema",
    "PromptArgument",
    "PromptDefinition",
    "ResolvedResource",
    "ResourceDefinition",
    "ToolContext",
    "ToolDefinition",
    "UriTemplate",
    "ValidationResult",
]
