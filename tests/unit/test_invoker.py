"""Tests for the capability invoker boundary."""

from __future__ import annotations

import pytest

from users_mcp.capabilities import (
    CapabilityInvoker,
    CapabilityKind,
    CapabilityRegistry,
    InputSchema,
    PromptArgument,
)
from users_mcp.errors import CapabilityNotFound, GenerationFailed, ToolError
from users_mcp.protocol.types import ContentItem, PromptMessage


@pytest.fixture
def invoker() -> CapabilityInvoker:
    registry = CapabilityRegistry()

    @registry.tool("greet", "Greet someone", InputSchema.strings("name"))
    async def greet(arguments: dict, context) -> str:
        return f"Hello, {arguments['name']}"

    @registry.tool("refuse", "Always refuses")
    async def refuse(arguments: dict, context) -> str:
        raise ToolError("Not today")

    @registry.tool("crash", "Always crashes")
    async def crash(arguments: dict, context) -> str:
        raise RuntimeError("kaboom")

    @registry.tool("no-model", "Needs generation")
    async def no_model(arguments: dict, context) -> str:
        raise GenerationFailed("backend unavailable")

    @registry.tool("multi", "Returns several items")
    async def multi(arguments: dict, context) -> list[ContentItem]:
        return [ContentItem.text_content("one"), ContentItem.text_content("two")]

    @registry.resource("broken", "broken://thing", "Always fails", mime_type="text/plain")
    async def broken(uri: str, variables: dict) -> list[ContentItem]:
        raise OSError("disk gone")

    @registry.resource("item", "items://{id}", "An item")
    async def item(uri: str, variables: dict) -> list[ContentItem]:
        return [ContentItem.text_content(variables["id"], uri=uri)]

    @registry.prompt("hello", "Say hello", [PromptArgument("name")])
    def hello(arguments: dict) -> list[PromptMessage]:
        return [PromptMessage.user(f"Say hello to {arguments['name']}")]

    @registry.prompt("async-hello", "Say hello later", [PromptArgument("name")])
    async def async_hello(arguments: dict) -> list[PromptMessage]:
        return [PromptMessage.user(f"Later, {arguments['name']}")]

    @registry.prompt("bad-render", "Fails to render")
    def bad_render(arguments: dict) -> list[PromptMessage]:
        raise KeyError("template")

    return CapabilityInvoker(registry)


# =============================================================================
# Tools
# =============================================================================


class TestToolInvocation:
    """Tool failures become content, lookups do not."""

    @pytest.mark.asyncio
    async def test_success_wraps_text(self, invoker) -> None:
        result = await invoker.call_tool("greet", {"name": "Ada"})

        assert not result.is_error
        assert result.first_text() == "Hello, Ada"

    @pytest.mark.asyncio
    async def test_validation_failure_skips_handler(self, invoker) -> None:
        result = await invoker.call_tool("greet", {})

        assert result.is_error
        assert result.first_text() == "Invalid arguments for tool 'greet': name: required"

    @pytest.mark.asyncio
    async def test_tool_error_message_is_preserved(self, invoker) -> None:
        result = await invoker.call_tool("refuse", {})

        assert result.is_error
        assert result.first_text() == "Not today"

    @pytest.mark.asyncio
    async def test_generation_failure_is_content(self, invoker) -> None:
        result = await invoker.call_tool("no-model")

        assert result.is_error
        assert result.first_text() == "backend unavailable"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_content(self, invoker) -> None:
        result = await invoker.call_tool("crash", {})

        assert result.is_error
        assert result.first_text() == "Tool 'crash' failed: kaboom"

    @pytest.mark.asyncio
    async def test_content_list_passes_through(self, invoker) -> None:
        result = await invoker.call_tool("multi")

        assert [item.text for item in result.content] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_unknown_tool_raises(self, invoker) -> None:
        with pytest.raises(CapabilityNotFound):
            await invoker.call_tool("missing", {})

    @pytest.mark.asyncio
    async def test_invoke_dispatches_by_kind(self, invoker) -> None:
        result = await invoker.invoke(CapabilityKind.TOOL, "greet", {"name": "Bo"})

        assert result.first_text() == "Hello, Bo"


# =============================================================================
# Resources
# =============================================================================


class TestResourceReading:
    """Resource reads resolve templates and contain handler failures."""

    @pytest.mark.asyncio
    async def test_template_variables_reach_handler(self, invoker) -> None:
        result = await invoker.read_resource("items://abc")

        assert result.contents[0].text == "abc"
        assert result.contents[0].uri == "items://abc"

    @pytest.mark.asyncio
    async def test_handler_failure_is_content(self, invoker) -> None:
        result = await invoker.read_resource("broken://thing")

        assert result.contents[0].mime_type == "text/plain"
        assert "disk gone" in result.contents[0].text

    @pytest.mark.asyncio
    async def test_unknown_resource_raises(self, invoker) -> None:
        with pytest.raises(CapabilityNotFound):
            await invoker.invoke(CapabilityKind.RESOURCE, "nothing://here")


# =============================================================================
# Prompts
# =============================================================================


class TestPromptRendering:
    """Prompts render sync or async handlers into messages."""

    @pytest.mark.asyncio
    async def test_sync_prompt(self, invoker) -> None:
        result = await invoker.get_prompt("hello", {"name": "Ada"})

        assert not result.is_error
        assert result.description == "Say hello"
        assert result.messages[0].role == "user"
        assert result.messages[0].content.text == "Say hello to Ada"

    @pytest.mark.asyncio
    async def test_async_prompt(self, invoker) -> None:
        result = await invoker.get_prompt("async-hello", {"name": "Ada"})

        assert result.messages[0].content.text == "Later, Ada"

    @pytest.mark.asyncio
    async def test_missing_argument(self, invoker) -> None:
        result = await invoker.get_prompt("hello", {})

        assert result.is_error
        assert "name: required" in result.messages[0].content.text

    @pytest.mark.asyncio
    async def test_render_failure(self, invoker) -> None:
        result = await invoker.get_prompt("bad-render")

        assert result.is_error
        assert result.messages[0].content.text.startswith("Failed to render prompt 'bad-render'")
