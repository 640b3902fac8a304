"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from users_mcp.capabilities import CapabilityRegistry
from users_mcp.host import build_registry
from users_mcp.protocol import RpcPeer
from users_mcp.store import UserStore
from users_mcp.transport import MemoryTransport


class FakeGenerator:
    """Text generator returning canned replies in order."""

    def __init__(self, replies: list[str] | None = None, error: Exception | None = None) -> None:
        self.replies = list(replies or [])
        self.error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else ""


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    return tmp_path / "users.json"


@pytest.fixture
def store(data_file: Path) -> UserStore:
    return UserStore(data_file)


@pytest.fixture
def registry(store: UserStore) -> CapabilityRegistry:
    return build_registry(store)


@pytest.fixture
async def peers():
    """Two started peers connected through an in-memory pair."""
    left_transport, right_transport = MemoryTransport.pair()
    left = RpcPeer(left_transport, name="left", request_timeout=2.0)
    right = RpcPeer(right_transport, name="right", request_timeout=2.0)
    await left.start()
    await right.start()
    yield left, right
    await left.close()
    await right.close()


@pytest.fixture
def generator() -> FakeGenerator:
    """Scriptable text generator; set `replies` or `error` per test."""
    return FakeGenerator()
