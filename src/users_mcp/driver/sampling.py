"""Driver side of the sampling bridge.

The host asks for generated text with `sampling/createMessage`. The
driver runs every text message through its generation backend, after an
optional confirmation, and answers with one assistant message.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from ..errors import GenerationFailed, InvalidParams
from ..protocol.types import ContentItem, CreateMessageParams, CreateMessageResult
from .llm import TextGenerator

logger = logging.getLogger(__name__)

STOP_REASON = "endTurn"

ConfirmCallback = Callable[[str], Awaitable[bool]]


class SamplingHandler:
    """Answers the host's generate-text requests.

    Usage:
        handler = SamplingHandler(gemini, model="gemini-2.0-flash")
        peer.on_request(Method.SAMPLING_CREATE_MESSAGE, handler)
    """

    def __init__(
        self,
        backend: TextGenerator,
        *,
        model: str,
        confirm: ConfirmCallback | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            backend: Generates text for a prompt
            model: Model identifier reported in replies
            confirm: Asked before each message is generated; declined
                messages are skipped
        """
        self._backend = backend
        self._model = model
        self._confirm = confirm

    async def __call__(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            request = CreateMessageParams.model_validate(params)
        except ValidationError as e:
            raise InvalidParams(f"Invalid sampling params: {e.errors()[0]['msg']}") from e

        outputs: list[str] = []
        for message in request.messages:
            if not message.content.is_text:
                continue
            prompt = message.content.text or ""

            if self._confirm is not None and not await self._confirm(prompt):
                logger.info("Sampling message declined")
                continue

            try:
                text = await self._backend.generate(prompt, max_tokens=request.max_tokens)
            except GenerationFailed:
                raise
            except Exception as e:
                logger.error(f"Sampling backend error: {e}")
                raise GenerationFailed(f"Generation failed: {e}") from e
            outputs.append(text)

        logger.debug(f"Answered sampling request with {len(outputs)} generation(s)")
        return CreateMessageResult(
            role="assistant",
            model=self._model,
            stop_reason=STOP_REASON,
            content=ContentItem.text_content("\n".join(outputs)),
        ).to_wire()
