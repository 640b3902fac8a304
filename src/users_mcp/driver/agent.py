"""Bounded tool-use loop.

The model is given the host's tools and a prompt. Each step it either
answers with text, which ends the run, or asks for tool calls, which are
executed through the driver client and fed back as function results.
The loop never runs more than `max_steps` model steps.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..errors import ProtocolError
from ..protocol.types import CallToolResult, ToolInfo
from .llm import FunctionCall, FunctionResult, FunctionSpec, ToolCallingModel, Turn

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 5
NO_TEXT = "No text generated."

ToolCaller = Callable[[str, dict[str, Any]], Awaitable[CallToolResult]]


@dataclass
class ToolInvocation:
    """One tool call made during a run."""

    name: str
    arguments: dict[str, Any]
    result: CallToolResult


@dataclass
class AgentRun:
    """Outcome of a loop run.

    Attributes:
        text: Final model text, empty when the run ended on tool calls
        invocations: Tool calls in the order they were made
        steps: Model steps taken
        exhausted: True when the step ceiling was reached without final text
    """

    text: str = ""
    invocations: list[ToolInvocation] = field(default_factory=list)
    steps: int = 0
    exhausted: bool = False

    def summarize(self) -> str:
        """Text to show the user for this run."""
        if self.text:
            return self.text
        for invocation in self.invocations:
            text = invocation.result.first_text()
            if text:
                return text
        return NO_TEXT


class ToolUseLoop:
    """Runs a model against the host's tools with a hard step ceiling."""

    def __init__(
        self,
        model: ToolCallingModel,
        call_tool: ToolCaller,
        *,
        max_steps: int = DEFAULT_MAX_STEPS,
        max_tokens: int | None = None,
        on_tool_call: Callable[[FunctionCall], None] | None = None,
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self._model = model
        self._call_tool = call_tool
        self.max_steps = max_steps
        self._max_tokens = max_tokens
        self._on_tool_call = on_tool_call

    async def run(self, prompt: str, tools: list[ToolInfo]) -> AgentRun:
        """Run the loop for one prompt.

        Raises:
            GenerationFailed: If the model backend fails
        """
        specs = [FunctionSpec.from_tool(t) for t in tools]
        turns = [Turn(role="user", text=prompt)]
        run = AgentRun()

        while run.steps < self.max_steps:
            run.steps += 1
            reply = await self._model.complete(turns, tools=specs, max_tokens=self._max_tokens)
            turns.append(reply)

            if not reply.function_calls:
                run.text = reply.text
                return run

            results = [await self._invoke(call, run) for call in reply.function_calls]
            turns.append(Turn(role="tool", function_results=results))

        logger.info(f"Tool-use loop stopped after {run.steps} step(s)")
        run.exhausted = True
        return run

    async def _invoke(self, call: FunctionCall, run: AgentRun) -> FunctionResult:
        if self._on_tool_call is not None:
            self._on_tool_call(call)
        try:
            result = await self._call_tool(call.name, call.arguments)
        except ProtocolError as e:
            result = CallToolResult.failure(e.message)

        run.invocations.append(ToolInvocation(call.name, call.arguments, result))
        texts = [item.text for item in result.content if item.is_text]
        return FunctionResult(
            name=call.name,
            output={"content": "\n".join(t for t in texts if t), "isError": result.is_error},
        )
