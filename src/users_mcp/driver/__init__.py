"""Driver side: connects to a host, answers its sampling requests and
runs the interactive session."""

from .agent import AgentRun, ToolInvocation, ToolUseLoop
from .client import DriverClient, host_command
from .llm import FunctionCall, FunctionResult, FunctionSpec, GeminiClient, LanguageModel, Turn
from .sampling import SamplingHandler
from .session import ClickPrompter, DriverSession, Prompter

__all__ = [
    "AgentRun",
    "ClickPrompter",
    "DriverClient",
    "DriverSession",
    "FunctionCall",
    "FunctionResult",
    "FunctionSpec",
    "GeminiClient",
    "LanguageModel",
    "Prompter",
    "SamplingHandler",
    "ToolInvocation",
    "ToolUseLoop",
    "Turn",
    "host_command",
]
