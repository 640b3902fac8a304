"""Transports carrying protocol messages between host and driver."""

from .base import Transport
from .memory import MemoryTransport
from .stdio import StdioTransport, SubprocessTransport

__all__ = [
    "Transport",
    "MemoryTransport",
    "StdioTransport",
    "SubprocessTransport",
]
