"""Interactive driver session.

Presents a menu over the host's capabilities:

    Query            One model step with the host's tools available
    Tools            Pick a tool, enter its arguments, call it
    Resources        Pick a resource or template, fill placeholders, read it
    Prompts          Pick a prompt, enter its arguments, optionally run it
    Autonomous Task  Up to five model steps with the host's tools
    Quit

Terminal interaction goes through a Prompter so the session can be
driven by a script in tests.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any, Protocol, TypeVar

import click

from ..capabilities.types import CapabilityKind
from ..capabilities.uri import UriTemplate, is_template
from ..errors import GenerationFailed, ProtocolError
from ..protocol.types import (
    PromptInfo,
    PromptMessage,
    ResourceInfo,
    ResourceTemplateInfo,
    ToolInfo,
)
from .agent import DEFAULT_MAX_STEPS, AgentRun, ToolUseLoop
from .client import DriverClient
from .llm import FunctionCall, LanguageModel

logger = logging.getLogger(__name__)

T = TypeVar("T")

MENU_QUERY = "Query"
MENU_TOOLS = "Tools"
MENU_RESOURCES = "Resources"
MENU_PROMPTS = "Prompts"
MENU_AUTONOMOUS = "Autonomous Task"
MENU_QUIT = "Quit"
MENU_CHOICES = [MENU_QUERY, MENU_TOOLS, MENU_RESOURCES, MENU_PROMPTS, MENU_AUTONOMOUS, MENU_QUIT]

QUERY_MAX_STEPS = 1

RUN_PROMPT_QUESTION = "Would you like to run the above prompt"


class Prompter(Protocol):
    """Terminal interaction used by the session."""

    async def select(self, message: str, choices: Sequence[tuple[str, T]]) -> T: ...

    async def text(self, message: str) -> str: ...

    async def confirm(self, message: str, default: bool = True) -> bool: ...

    def echo(self, text: str = "") -> None: ...


class ClickPrompter:
    """Prompter backed by click.

    click's prompts block, so they run in a worker thread to keep the
    event loop serving the host while the user types.
    """

    async def select(self, message: str, choices: Sequence[tuple[str, T]]) -> T:
        for index, (label, _value) in enumerate(choices, start=1):
            click.echo(f"  {index}) {label}")
        picked = await asyncio.to_thread(
            click.prompt, message, type=click.IntRange(1, len(choices))
        )
        return choices[picked - 1][1]

    async def text(self, message: str) -> str:
        return await asyncio.to_thread(click.prompt, message, default="", show_default=False)

    async def confirm(self, message: str, default: bool = True) -> bool:
        return await asyncio.to_thread(click.confirm, message, default=default)

    def echo(self, text: str = "") -> None:
        click.echo(text)


def convert_argument(raw: str, schema: dict[str, Any]) -> Any:
    """Convert typed-in text to the JSON type a property declares.

    Text that does not convert is passed through unchanged; the host's
    validator reports the mismatch.
    """
    kind = schema.get("type", "string")
    try:
        if kind == "integer":
            return int(raw)
        if kind == "number":
            return float(raw)
    except ValueError:
        return raw
    if kind == "boolean":
        lowered = raw.strip().lower()
        if lowered in ("true", "yes", "y", "1"):
            return True
        if lowered in ("false", "no", "n", "0"):
            return False
    return raw


def render_resource_text(text: str) -> str:
    """Pretty-print JSON resource content, leaving other text unchanged."""
    try:
        return json.dumps(json.loads(text), indent=2)
    except json.JSONDecodeError:
        return text


class DriverSession:
    """Menu loop over a connected host."""

    def __init__(
        self,
        client: DriverClient,
        model: LanguageModel,
        prompter: Prompter,
        *,
        max_steps: int = DEFAULT_MAX_STEPS,
    ) -> None:
        """Initialize the session.

        Args:
            client: Connected driver client
            model: Generation backend for queries, tasks and prompts
            prompter: Terminal interaction
            max_steps: Step ceiling for autonomous tasks
        """
        self._client = client
        self._model = model
        self._prompter = prompter
        self._max_steps = max_steps

        self.tools: list[ToolInfo] = []
        self.resources: list[ResourceInfo] = []
        self.resource_templates: list[ResourceTemplateInfo] = []
        self.prompts: list[PromptInfo] = []

    async def list_capabilities(self) -> None:
        """Refresh the cached capability listings from the host."""
        self.tools, self.resources, self.resource_templates, self.prompts = await asyncio.gather(
            self._client.list_tools(),
            self._client.list_resources(),
            self._client.list_resource_templates(),
            self._client.list_prompts(),
        )
        logger.debug(
            f"Host offers {len(self.tools)} tool(s), {len(self.resources)} resource(s), "
            f"{len(self.resource_templates)} template(s), {len(self.prompts)} prompt(s)"
        )

    async def confirm_sampling(self, text: str) -> bool:
        """Show a sampling message and ask whether to run it."""
        self._prompter.echo(text)
        return await self._prompter.confirm(RUN_PROMPT_QUESTION, default=True)

    # =========================================================================
    # Menu
    # =========================================================================

    async def run(self) -> None:
        """Run the menu until the user quits."""
        await self.list_capabilities()
        self._prompter.echo("You are connected!")

        while True:
            choice = await self._prompter.select(
                "What would you like to do", [(c, c) for c in MENU_CHOICES]
            )
            if choice == MENU_QUIT:
                return
            try:
                await self._handle(choice)
            except ProtocolError as e:
                self._prompter.echo(f"Error: {e.message}")

    async def _handle(self, choice: str) -> None:
        match choice:
            case "Query":
                query = await self._prompter.text("Enter your query")
                self._prompter.echo(await self.run_query(query))
            case "Tools":
                await self.select_and_invoke(CapabilityKind.TOOL)
            case "Resources":
                await self.select_and_invoke(CapabilityKind.RESOURCE)
            case "Prompts":
                await self.select_and_invoke(CapabilityKind.PROMPT)
            case "Autonomous Task":
                task = await self._prompter.text(
                    "Describe a task (e.g., 'Create 3 users with different backgrounds')"
                )
                self._prompter.echo("\nAgent working autonomously...\n")
                summary = await self.run_autonomous(task)
                self._prompter.echo("\nTask completed!")
                self._prompter.echo(summary)

    async def select_and_invoke(self, kind: CapabilityKind) -> None:
        """Pick a capability of `kind`, collect its inputs, invoke it and print the result."""
        match kind:
            case CapabilityKind.TOOL:
                if not self.tools:
                    self._prompter.echo("No tools available.")
                    return
                tool = await self._prompter.select(
                    "Select a tool", [(t.display_name, t) for t in self.tools]
                )
                await self.invoke_tool(tool)
            case CapabilityKind.RESOURCE:
                choices: list[tuple[str, str]] = [(r.name, r.uri) for r in self.resources]
                choices += [(t.name, t.uri_template) for t in self.resource_templates]
                if not choices:
                    self._prompter.echo("No resources available.")
                    return
                uri = await self._prompter.select("Select a resource", choices)
                await self.read_resource(uri)
            case CapabilityKind.PROMPT:
                if not self.prompts:
                    self._prompter.echo("No prompts available.")
                    return
                prompt = await self._prompter.select(
                    "Select a prompt", [(p.name, p) for p in self.prompts]
                )
                await self.run_prompt(prompt)

    # =========================================================================
    # Invocation
    # =========================================================================

    async def invoke_tool(self, tool: ToolInfo) -> None:
        arguments: dict[str, Any] = {}
        properties: dict[str, Any] = tool.input_schema.get("properties") or {}
        for name, schema in properties.items():
            raw = await self._prompter.text(
                f"Enter value for {name} ({schema.get('type', 'string')})"
            )
            arguments[name] = convert_argument(raw, schema)

        result = await self._client.call_tool(tool.name, arguments)
        self._prompter.echo(result.first_text() or "(no text content)")

    async def read_resource(self, uri: str) -> None:
        if is_template(uri):
            template = UriTemplate(uri)
            values = {}
            for name in template.variables:
                values[name] = await self._prompter.text(f"Enter value for {name}")
            uri = template.expand(values)

        result = await self._client.read_resource(uri)
        for item in result.contents:
            if item.is_text:
                self._prompter.echo(render_resource_text(item.text or ""))

    async def run_prompt(self, prompt: PromptInfo) -> None:
        arguments: dict[str, str] = {}
        for argument in prompt.arguments:
            arguments[argument.name] = await self._prompter.text(
                f"Enter value for {argument.name}"
            )

        result = await self._client.get_prompt(prompt.name, arguments)
        for message in result.messages:
            generated = await self.run_prompt_message(message)
            if generated is not None:
                self._prompter.echo(generated)

    async def run_prompt_message(self, message: PromptMessage) -> str | None:
        """Show a prompt message and, if confirmed, generate a reply to it."""
        if not message.content.is_text:
            return None
        text = message.content.text or ""
        if not await self.confirm_sampling(text):
            return None
        try:
            return await self._model.generate(text)
        except GenerationFailed as e:
            return f"Error: {e.message}"

    # =========================================================================
    # Model-driven modes
    # =========================================================================

    async def run_query(self, query: str, max_steps: int = QUERY_MAX_STEPS) -> str:
        """Answer a query with the host's tools available."""
        run = await self._run_loop(query, max_steps)
        return run.summarize()

    async def run_autonomous(self, task: str) -> str:
        """Let the model work on a task over several steps."""
        prompt = f"Complete this task: {task}. Use the available tools as needed."
        run = await self._run_loop(prompt, self._max_steps)
        return run.summarize()

    async def _run_loop(self, prompt: str, max_steps: int) -> AgentRun:
        loop = ToolUseLoop(
            self._model,
            self._client.call_tool,
            max_steps=max_steps,
            on_tool_call=self._announce_tool_call,
        )
        return await loop.run(prompt, self.tools)

    def _announce_tool_call(self, call: FunctionCall) -> None:
        self._prompter.echo(f"  -> Calling tool: {call.name}")
