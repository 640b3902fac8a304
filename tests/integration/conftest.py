"""Fixtures wiring a host and a driver through an in-memory transport pair."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from users_mcp.driver import DriverClient, SamplingHandler
from users_mcp.host import HostConnection, HostServer
from users_mcp.protocol import RpcPeer
from users_mcp.store import UserStore
from users_mcp.transport import MemoryTransport


@dataclass
class Connected:
    connection: HostConnection
    client: DriverClient
    store: UserStore


async def connect_pair(
    registry,
    store: UserStore,
    *,
    sampling_handler=None,
    sampling_timeout: float = 2.0,
) -> Connected:
    host_transport, driver_transport = MemoryTransport.pair()
    server = HostServer(registry, request_timeout=2.0, sampling_timeout=sampling_timeout)
    connection = server.connect(host_transport)
    await connection.peer.start()

    peer = RpcPeer(driver_transport, name="driver", request_timeout=5.0)
    client = DriverClient(peer, sampling_handler=sampling_handler)
    await client.connect()
    return Connected(connection=connection, client=client, store=store)


@pytest.fixture
async def connected(registry, store, generator):
    """Host and driver with sampling answered by the fake generator."""
    pair = await connect_pair(
        registry, store, sampling_handler=SamplingHandler(generator, model="fake-model")
    )
    yield pair
    await pair.client.close()
    await pair.connection.peer.close()


@pytest.fixture
async def connected_without_sampling(registry, store):
    """Host and a driver that does not declare the sampling capability."""
    pair = await connect_pair(registry, store)
    yield pair
    await pair.client.close()
    await pair.connection.peer.close()


@pytest.fixture
def connector():
    """The pair builder, for tests that need custom sampling handlers."""
    return connect_pair
