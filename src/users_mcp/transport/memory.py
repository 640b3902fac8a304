"""In-process transport pair.

Connects a host and a driver running in the same event loop. Used by the
test suite and for embedding the host in another program.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

_EOF = None


class MemoryTransport:
    """One end of an in-memory channel created by `MemoryTransport.pair()`."""

    def __init__(self, inbox: asyncio.Queue[str | None], outbox: asyncio.Queue[str | None]) -> None:
        self._inbox = inbox
        self._outbox = outbox
        self._closed = False
        self.sent: list[str] = []

    @classmethod
    def pair(cls) -> tuple[MemoryTransport, MemoryTransport]:
        """Create two connected ends."""
        a_to_b: asyncio.Queue[str | None] = asyncio.Queue()
        b_to_a: asyncio.Queue[str | None] = asyncio.Queue()
        return cls(inbox=b_to_a, outbox=a_to_b), cls(inbox=a_to_b, outbox=b_to_a)

    async def send(self, message: str) -> None:
        if self._closed:
            raise ConnectionError("Transport closed")
        self.sent.append(message)
        await self._outbox.put(message)

    async def messages(self) -> AsyncIterator[str]:
        while True:
            message = await self._inbox.get()
            if message is _EOF:
                break
            yield message

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Signal EOF to both readers
        await self._outbox.put(_EOF)
        await self._inbox.put(_EOF)
