"""Tests for both halves of the sampling bridge."""

from __future__ import annotations

import asyncio

import pytest

from users_mcp.driver import SamplingHandler
from users_mcp.errors import ErrorCode, GenerationFailed, InvalidParams, RequestTimeout
from users_mcp.host import SamplingClient
from users_mcp.protocol.messages import Method
from users_mcp.protocol.types import PromptMessage


def _params(*texts: str, max_tokens: int = 1024) -> dict:
    return {
        "messages": [PromptMessage.user(t).to_wire() for t in texts],
        "maxTokens": max_tokens,
    }


# =============================================================================
# Driver side
# =============================================================================


class TestSamplingHandler:
    """The driver answers generate-text requests with the backend."""

    @pytest.mark.asyncio
    async def test_reply_shape(self, generator) -> None:
        generator.replies = ["generated"]
        handler = SamplingHandler(generator, model="gemini-2.0-flash")

        reply = await handler(_params("make a user"))

        assert reply == {
            "role": "assistant",
            "model": "gemini-2.0-flash",
            "stopReason": "endTurn",
            "content": {"type": "text", "text": "generated"},
        }
        assert generator.prompts == ["make a user"]

    @pytest.mark.asyncio
    async def test_outputs_joined_with_newline(self, generator) -> None:
        generator.replies = ["first", "second"]
        handler = SamplingHandler(generator, model="m")

        reply = await handler(_params("a", "b"))

        assert reply["content"]["text"] == "first\nsecond"

    @pytest.mark.asyncio
    async def test_declined_messages_are_skipped(self, generator) -> None:
        generator.replies = ["only"]
        answers = iter([False, True])

        async def confirm(text: str) -> bool:
            return next(answers)

        handler = SamplingHandler(generator, model="m", confirm=confirm)

        reply = await handler(_params("skip me", "run me"))

        assert generator.prompts == ["run me"]
        assert reply["content"]["text"] == "only"

    @pytest.mark.asyncio
    async def test_backend_error_becomes_generation_failed(self, generator) -> None:
        generator.error = RuntimeError("quota exceeded")
        handler = SamplingHandler(generator, model="m")

        with pytest.raises(GenerationFailed, match="quota exceeded"):
            await handler(_params("x"))

    @pytest.mark.asyncio
    async def test_invalid_params(self, generator) -> None:
        handler = SamplingHandler(generator, model="m")

        with pytest.raises(InvalidParams):
            await handler({"messages": "not a list"})


# =============================================================================
# Host side
# =============================================================================


class TestSamplingClient:
    """The host's generate-text requests over a peer."""

    @pytest.mark.asyncio
    async def test_generate_text(self, peers, generator) -> None:
        host, driver = peers
        generator.replies = ["hello there"]
        driver.on_request(Method.SAMPLING_CREATE_MESSAGE, SamplingHandler(generator, model="m"))

        text = await SamplingClient(host).generate_text("say hello", max_tokens=64)

        assert text == "hello there"
        assert generator.prompts == ["say hello"]

    @pytest.mark.asyncio
    async def test_request_params(self, peers) -> None:
        host, driver = peers
        seen = []

        async def record(params: dict) -> dict:
            seen.append(params)
            return {
                "role": "assistant",
                "model": "m",
                "stopReason": "endTurn",
                "content": {"type": "text", "text": "ok"},
            }

        driver.on_request(Method.SAMPLING_CREATE_MESSAGE, record)

        await SamplingClient(host).create_message("make a user", max_tokens=64)

        assert seen == [_params("make a user", max_tokens=64)]

    @pytest.mark.asyncio
    async def test_error_reply(self, peers, generator) -> None:
        host, driver = peers
        generator.error = GenerationFailed("no key")
        driver.on_request(Method.SAMPLING_CREATE_MESSAGE, SamplingHandler(generator, model="m"))

        with pytest.raises(GenerationFailed) as exc_info:
            await SamplingClient(host).create_message("x")

        assert "no key" in exc_info.value.message
        assert exc_info.value.code == ErrorCode.GENERATION_FAILED

    @pytest.mark.asyncio
    async def test_malformed_reply(self, peers) -> None:
        host, driver = peers

        async def sloppy(params: dict) -> dict:
            return {"content": {"type": "text", "text": "no model or stop reason"}}

        driver.on_request(Method.SAMPLING_CREATE_MESSAGE, sloppy)

        with pytest.raises(GenerationFailed, match="Malformed sampling reply"):
            await SamplingClient(host).create_message("x")

    @pytest.mark.asyncio
    async def test_unsupported_fails_without_sending(self, peers) -> None:
        host, _driver = peers
        client = SamplingClient(host, is_supported=lambda: False)

        with pytest.raises(GenerationFailed):
            await client.create_message("x")

        assert host.transport.sent == []

    @pytest.mark.asyncio
    async def test_timeout(self, peers) -> None:
        host, driver = peers

        async def stalled(params: dict) -> dict:
            await asyncio.Event().wait()
            return {}

        driver.on_request(Method.SAMPLING_CREATE_MESSAGE, stalled)

        with pytest.raises(RequestTimeout):
            await SamplingClient(host, timeout=0.05).create_message("x")

        assert host.pending_count == 0

    @pytest.mark.asyncio
    async def test_non_text_reply(self, peers) -> None:
        host, driver = peers

        async def image(params: dict) -> dict:
            return {
                "role": "assistant",
                "model": "m",
                "stopReason": "endTurn",
                "content": {"type": "image", "data": "aGk=", "mimeType": "image/png"},
            }

        driver.on_request(Method.SAMPLING_CREATE_MESSAGE, image)

        with pytest.raises(GenerationFailed):
            await SamplingClient(host).generate_text("x")
