"""Transport abstraction.

A transport moves serialized protocol messages between exactly one host
and one driver. It knows nothing about JSON-RPC: it sends and yields
single-line strings, in order.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Bidirectional, order-preserving message channel."""

    async def send(self, message: str) -> None:
        """Send one serialized message.

        Raises:
            ConnectionError: If the channel is closed
        """
        ...

    def messages(self) -> AsyncIterator[str]:
        """Yield incoming messages until the channel ends."""
        ...

    async def close(self) -> None:
        """Close the channel. Safe to call more than once."""
        ...
