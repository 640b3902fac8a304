"""Symmetric JSON-RPC peer: request/response correlation over a transport.

Both the host and the driver own one RpcPeer. Each side registers
handlers for the methods it serves and calls `request()` for the methods
the other side serves. The host's sampling call goes through the same
peer as the driver's tool calls, only in the opposite direction.

Correlation:
    Every outgoing request gets an id from a monotonic counter and a
    PendingCall holding an asyncio.Future. The reader task resolves the
    future when a response with that id arrives. Responses may arrive in
    any order; only the id decides which call they resolve.

Incoming requests run as separate tasks, so a handler can itself await
a request over this peer without blocking the reader.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..errors import (
    ConnectionClosed,
    ErrorCode,
    MalformedMessage,
    MethodNotFound,
    ProtocolError,
    RemoteError,
    RequestTimeout,
)
from ..transport.base import Transport
from .messages import (
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
    Method,
    RequestId,
    parse_message,
    serialize_message,
)

logger = logging.getLogger(__name__)

RequestHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]
NotificationHandler = Callable[[dict[str, Any]], Awaitable[None]]

_DEFAULT_TIMEOUT: Any = object()


@dataclass
class PendingCall:
    """An outgoing request waiting for its response."""

    request_id: RequestId
    method: str
    future: asyncio.Future[dict[str, Any]]
    issued_at: float = field(default_factory=time.monotonic)


class RpcPeer:
    """One end of a bidirectional JSON-RPC connection.

    Usage:
        peer = RpcPeer(transport, name="host")
        peer.on_request("tools/list", list_tools)
        await peer.start()

        result = await peer.request("sampling/createMessage", params)
    """

    def __init__(
        self,
        transport: Transport,
        *,
        name: str = "peer",
        request_timeout: float | None = 60.0,
    ) -> None:
        """Initialize the peer.

        Args:
            transport: Message channel to the other process
            name: Label used in log messages
            request_timeout: Default bound for outgoing requests in seconds,
                None to wait indefinitely
        """
        self._transport = transport
        self._name = name
        self._request_timeout = request_timeout

        self._request_handlers: dict[str, RequestHandler] = {}
        self._notification_handlers: dict[str, NotificationHandler] = {}

        self._ids = itertools.count(1)
        self._pending: dict[RequestId, PendingCall] = {}
        self._inflight: dict[RequestId, asyncio.Task[None]] = {}
        self._tasks: set[asyncio.Task[None]] = set()

        self._reader_task: asyncio.Task[None] | None = None
        self._closed = asyncio.Event()

        self.on_notification(Method.CANCELLED.value, self._handle_cancelled)

    @property
    def name(self) -> str:
        return self._name

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def pending_count(self) -> int:
        """Number of outgoing requests still waiting for a response."""
        return len(self._pending)

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    def is_pending(self, request_id: RequestId) -> bool:
        return request_id in self._pending

    # =========================================================================
    # Handler registration
    # =========================================================================

    def on_request(self, method: str | Method, handler: RequestHandler) -> None:
        """Register the handler answering requests for `method`."""
        key = method.value if isinstance(method, Method) else method
        self._request_handlers[key] = handler

    def on_notification(self, method: str | Method, handler: NotificationHandler) -> None:
        """Register the handler for notifications named `method`."""
        key = method.value if isinstance(method, Method) else method
        self._notification_handlers[key] = handler

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start the background reader."""
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop())
            logger.debug(f"[{self._name}] peer started")

    async def close(self) -> None:
        """Stop reading, cancel in-flight handlers and fail pending calls."""
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._fail_pending(ConnectionClosed(f"{self._name} peer closed"))
        await self._transport.close()
        self._closed.set()

    async def wait_closed(self) -> None:
        """Wait until the transport has ended or close() was called."""
        await self._closed.wait()

    async def drain(self) -> None:
        """Wait for in-flight incoming handlers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def __aenter__(self) -> RpcPeer:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # =========================================================================
    # Outgoing traffic
    # =========================================================================

    async def request(
        self,
        method: str | Method,
        params: dict[str, Any] | None = None,
        *,
        timeout: float | None = _DEFAULT_TIMEOUT,
    ) -> dict[str, Any]:
        """Send a request and wait for its result.

        Args:
            method: Method name
            params: Method params
            timeout: Bound in seconds; defaults to the peer's request_timeout

        Returns:
            The `result` object of the response

        Raises:
            RemoteError: If the other side answered with an error
            RequestTimeout: If no response arrived within the bound
            ConnectionClosed: If the transport ended first
        """
        if self.is_closed:
            raise ConnectionClosed(f"{self._name} peer is closed")

        method_name = method.value if isinstance(method, Method) else method
        wait = self._request_timeout if timeout is _DEFAULT_TIMEOUT else timeout

        request_id = next(self._ids)
        pending = PendingCall(
            request_id=request_id,
            method=method_name,
            future=asyncio.get_running_loop().create_future(),
        )
        self._pending[request_id] = pending

        try:
            await self._send(JsonRpcRequest(id=request_id, method=method_name, params=params or {}))
            logger.debug(f"[{self._name}] -> {method_name} (id={request_id})")
            return await asyncio.wait_for(pending.future, timeout=wait)
        except TimeoutError:
            logger.warning(f"[{self._name}] request {method_name} (id={request_id}) timed out")
            await self._send_cancelled(request_id, "timeout")
            raise RequestTimeout(method_name, wait) from None
        finally:
            self._pending.pop(request_id, None)

    async def notify(self, method: str | Method, params: dict[str, Any] | None = None) -> None:
        """Send a notification. No reply is expected."""
        method_name = method.value if isinstance(method, Method) else method
        await self._send(JsonRpcRequest(method=method_name, params=params or {}))

    async def _send(self, message: Message) -> None:
        await self._transport.send(serialize_message(message))

    async def _send_cancelled(self, request_id: RequestId, reason: str) -> None:
        with contextlib.suppress(Exception):
            await self.notify(Method.CANCELLED, {"requestId": request_id, "reason": reason})

    # =========================================================================
    # Incoming traffic
    # =========================================================================

    async def handle_raw(self, raw: str | bytes) -> None:
        """Parse and dispatch one incoming wire message.

        Malformed messages and responses for unknown ids are logged and
        dropped; they never end the session.
        """
        try:
            message = parse_message(raw)
        except MalformedMessage as e:
            logger.warning(f"[{self._name}] dropping malformed message: {e}")
            return

        if isinstance(message, JsonRpcResponse):
            self._resolve(message)
        elif message.is_notification():
            self._spawn(self._dispatch_notification(message))
        else:
            assert message.id is not None
            task = self._spawn(self._dispatch_request(message))
            self._inflight[message.id] = task
            task.add_done_callback(lambda _t, rid=message.id: self._inflight.pop(rid, None))

    def _resolve(self, response: JsonRpcResponse) -> None:
        pending = self._pending.get(response.id) if response.id is not None else None
        if pending is None or pending.future.done():
            logger.warning(
                f"[{self._name}] discarding response for unknown or settled id {response.id!r}"
            )
            return

        if response.error is not None:
            pending.future.set_exception(RemoteError.from_error(response.error.model_dump()))
        else:
            pending.future.set_result(response.result or {})
        logger.debug(f"[{self._name}] <- response for {pending.method} (id={response.id})")

    async def _dispatch_request(self, request: JsonRpcRequest) -> None:
        assert request.id is not None
        handler = self._request_handlers.get(request.method)

        try:
            if handler is None:
                raise MethodNotFound(request.method)
            result = await handler(request.params)
            response = JsonRpcResponse.success(request.id, result)
        except ProtocolError as e:
            logger.info(f"[{self._name}] {request.method} failed: {e.message}")
            response = JsonRpcResponse.failure(request.id, e.to_error())
        except Exception as e:
            logger.exception(f"[{self._name}] handler for {request.method} raised")
            response = JsonRpcResponse.failure(
                request.id,
                {"code": int(ErrorCode.INTERNAL_ERROR), "message": str(e) or type(e).__name__},
            )

        try:
            await self._send(response)
        except Exception as e:
            logger.error(f"[{self._name}] failed to send response for id={request.id}: {e}")

    async def _dispatch_notification(self, notification: JsonRpcRequest) -> None:
        handler = self._notification_handlers.get(notification.method)
        if handler is None:
            logger.debug(f"[{self._name}] ignoring notification {notification.method}")
            return
        try:
            await handler(notification.params)
        except Exception:
            logger.exception(f"[{self._name}] notification handler for {notification.method} raised")

    async def _handle_cancelled(self, params: dict[str, Any]) -> None:
        request_id = params.get("requestId")
        task = self._inflight.get(request_id) if request_id is not None else None
        if task is not None and not task.done():
            logger.info(f"[{self._name}] cancelling request id={request_id}: {params.get('reason')}")
            task.cancel()

    # =========================================================================
    # Reader
    # =========================================================================

    async def _read_loop(self) -> None:
        try:
            async for raw in self._transport.messages():
                await self.handle_raw(raw)
            logger.info(f"[{self._name}] transport closed")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[{self._name}] read loop error: {e}")
        finally:
            self._fail_pending(ConnectionClosed(f"{self._name} transport closed"))
            self._closed.set()

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task[None]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _fail_pending(self, error: ProtocolError) -> None:
        for pending in list(self._pending.values()):
            if not pending.future.done():
                pending.future.set_exception(error)
        self._pending.clear()
