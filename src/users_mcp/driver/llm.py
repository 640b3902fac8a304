"""Language-model backend for the driver.

GeminiClient talks to the Gemini `generateContent` REST endpoint with
httpx. It serves two callers:

- the sampling handler, which needs plain text for a prompt
- the tool-use loop, which needs one model step at a time with function
  calls exposed

Conversation history is kept in the backend-neutral Turn type and only
converted to Gemini's wire format here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx

from ..errors import GenerationFailed
from ..protocol.types import ToolInfo

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.0-flash"


@dataclass
class FunctionSpec:
    """A tool as presented to the model."""

    name: str
    description: str
    parameters: dict[str, Any] | None = None

    @classmethod
    def from_tool(cls, tool: ToolInfo) -> FunctionSpec:
        schema = tool.input_schema
        # Tools without arguments are declared without a parameters object
        parameters = schema if schema.get("properties") else None
        return cls(name=tool.name, description=tool.description, parameters=parameters)


@dataclass
class FunctionCall:
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class FunctionResult:
    name: str
    output: dict[str, Any]


@dataclass
class Turn:
    """One entry of a conversation.

    Attributes:
        role: "user", "model", or "tool" (function results fed back)
        text: Plain text of the turn
        function_calls: Calls requested by the model
        function_results: Results returned to the model
    """

    role: str
    text: str = ""
    function_calls: list[FunctionCall] = field(default_factory=list)
    function_results: list[FunctionResult] = field(default_factory=list)


@runtime_checkable
class TextGenerator(Protocol):
    """Anything that turns a prompt into text."""

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str: ...


@runtime_checkable
class ToolCallingModel(Protocol):
    """A model that can take one step of a tool-use conversation."""

    async def complete(
        self,
        turns: list[Turn],
        *,
        tools: list[FunctionSpec] | None = None,
        max_tokens: int | None = None,
    ) -> Turn: ...


@runtime_checkable
class LanguageModel(TextGenerator, ToolCallingModel, Protocol):
    """A backend that serves both sampling and the tool-use loop."""


class GeminiClient:
    """Gemini REST client implementing TextGenerator and ToolCallingModel."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = GEMINI_API_URL,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Gemini API key; calls fail with GenerationFailed when unset
            model: Model identifier
            base_url: API root
            timeout: Request timeout in seconds
            http_client: Pre-configured client, mainly for tests
        """
        self.model = model
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        turn = await self.complete([Turn(role="user", text=prompt)], max_tokens=max_tokens)
        return turn.text

    async def complete(
        self,
        turns: list[Turn],
        *,
        tools: list[FunctionSpec] | None = None,
        max_tokens: int | None = None,
    ) -> Turn:
        """Run one model step.

        Raises:
            GenerationFailed: If the key is missing, the request fails, or
                the response has no candidate
        """
        if not self._api_key:
            raise GenerationFailed("GEMINI_API_KEY is not set")

        payload = self._build_payload(turns, tools, max_tokens)
        url = f"{self._base_url}/models/{self.model}:generateContent"

        try:
            response = await self._http.post(
                url,
                json=payload,
                headers={"x-goog-api-key": self._api_key, "Content-Type": "application/json"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Gemini returned {e.response.status_code}: {e.response.text[:200]}")
            raise GenerationFailed(f"Gemini request failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Gemini request error: {e}")
            raise GenerationFailed(f"Gemini request failed: {e}") from e
        except ValueError as e:
            raise GenerationFailed("Gemini returned a non-JSON response") from e

        return self._parse_response(data)

    # =========================================================================
    # Wire conversion
    # =========================================================================

    def _build_payload(
        self,
        turns: list[Turn],
        tools: list[FunctionSpec] | None,
        max_tokens: int | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"contents": [self._to_content(t) for t in turns]}
        if tools:
            declarations = []
            for spec in tools:
                declaration: dict[str, Any] = {"name": spec.name, "description": spec.description}
                if spec.parameters:
                    declaration["parameters"] = spec.parameters
                declarations.append(declaration)
            payload["tools"] = [{"functionDeclarations": declarations}]
        if max_tokens:
            payload["generationConfig"] = {"maxOutputTokens": max_tokens}
        return payload

    @staticmethod
    def _to_content(turn: Turn) -> dict[str, Any]:
        parts: list[dict[str, Any]] = []
        if turn.role == "tool":
            for result in turn.function_results:
                parts.append({"functionResponse": {"name": result.name, "response": result.output}})
            return {"role": "user", "parts": parts}

        if turn.text:
            parts.append({"text": turn.text})
        for call in turn.function_calls:
            parts.append({"functionCall": {"name": call.name, "args": call.arguments}})
        return {"role": "model" if turn.role == "model" else "user", "parts": parts}

    @staticmethod
    def _parse_response(data: dict[str, Any]) -> Turn:
        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason", "no candidates")
            raise GenerationFailed(f"Gemini returned no candidates ({reason})")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        texts: list[str] = []
        calls: list[FunctionCall] = []
        for part in parts:
            if "text" in part:
                texts.append(part["text"])
            elif "functionCall" in part:
                call = part["functionCall"]
                calls.append(FunctionCall(name=call["name"], arguments=call.get("args") or {}))
        return Turn(role="model", text="".join(texts), function_calls=calls)
