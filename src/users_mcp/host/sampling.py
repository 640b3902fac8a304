"""Host side of the sampling bridge.

A tool running on the host can ask the driver to generate text. The
request travels over the same peer the driver uses for its own calls,
in the opposite direction, and the tool stays suspended until the reply
(or the timeout) arrives.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import ValidationError

from ..errors import GenerationFailed, RemoteError
from ..protocol.messages import Method
from ..protocol.peer import RpcPeer
from ..protocol.types import CreateMessageParams, CreateMessageResult, PromptMessage

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1024


class SamplingClient:
    """Issues generate-text requests to the connected driver."""

    def __init__(
        self,
        peer: RpcPeer,
        *,
        timeout: float | None = 120.0,
        is_supported: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            peer: Peer connected to the driver
            timeout: Bound on each sampling round trip in seconds
            is_supported: Returns whether the driver declared the sampling
                capability; assumed supported when omitted
        """
        self._peer = peer
        self._timeout = timeout
        self._is_supported = is_supported or (lambda: True)

    async def create_message(
        self,
        messages: str | list[PromptMessage],
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> CreateMessageResult:
        """Ask the driver to generate a reply.

        Args:
            messages: A single user prompt or a list of messages
            max_tokens: Token budget for the generation

        Returns:
            The driver's reply

        Raises:
            GenerationFailed: If the driver cannot sample, answers with an
                error, or answers with a malformed reply
            RequestTimeout: If the driver does not answer in time
        """
        if not self._is_supported():
            raise GenerationFailed("Connected driver does not support sampling")

        if isinstance(messages, str):
            messages = [PromptMessage.user(messages)]
        params = CreateMessageParams(messages=messages, max_tokens=max_tokens)

        logger.debug(f"Requesting sampling ({len(messages)} message(s), max_tokens={max_tokens})")
        try:
            raw = await self._peer.request(
                Method.SAMPLING_CREATE_MESSAGE, params.to_wire(), timeout=self._timeout
            )
        except RemoteError as e:
            raise GenerationFailed(f"Driver could not generate text: {e.message}") from e

        try:
            return CreateMessageResult.model_validate(raw)
        except ValidationError as e:
            raise GenerationFailed(f"Malformed sampling reply: {e.errors()[0]['msg']}") from e

    async def generate_text(self, prompt: str, *, max_tokens: int = DEFAULT_MAX_TOKENS) -> str:
        """Convenience wrapper returning only the generated text.

        Raises:
            GenerationFailed: If the reply is not text
        """
        result = await self.create_message(prompt, max_tokens=max_tokens)
        if not result.content.is_text:
            raise GenerationFailed(f"Expected text content, got '{result.content.type}'")
        return result.content.text or ""
