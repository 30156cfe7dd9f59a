"""Application capability set and a small reference application.

The server core only talks to an application through :class:`Application`:
a warmup step plus two context factories and one handling entry point.
:class:`App` is a minimal implementation used by the command line and the
tests; anything with the same four members can be served.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from aiohttp import WSMsgType, web

logger = logging.getLogger(__name__)


@runtime_checkable
class UpgradeContext(Protocol):
    def emit(self, event: str, *args: Any) -> Any: ...


@runtime_checkable
class Application(Protocol):
    async def warmup(self) -> None: ...

    def new_http_context(self, request: web.BaseRequest, response: web.StreamResponse) -> Any: ...

    def new_websocket_context(self, request: web.BaseRequest) -> UpgradeContext: ...

    async def handle_request(self, ctx: Any) -> Any: ...


Listener = Callable[..., Any]


class HTTPContext:
    """One plain HTTP request and the response the application writes to."""

    is_websocket = False

    def __init__(self, app: App, request: web.BaseRequest, response: web.StreamResponse) -> None:
        self.app = app
        self.request = request
        self.response = response
        self.stash: dict[str, Any] = {}

    async def render(
        self,
        *,
        text: str | None = None,
        body: bytes | None = None,
        status: int = 200,
        content_type: str = "text/plain",
    ) -> None:
        payload = body if body is not None else (text or "").encode()
        self.response.set_status(status)
        self.response.content_type = content_type
        if body is None:
            self.response.charset = "utf-8"
        self.response.content_length = len(payload)
        await self.response.prepare(self.request)
        await self.response.write(payload)
        await self.response.write_eof()


class WebSocketContext:
    """A pending WebSocket upgrade.

    Listeners registered for ``connection`` receive the prepared
    ``web.WebSocketResponse`` once the handshake is done. Coroutine
    listeners are awaited in registration order, so the connection stays
    open until they return.
    """

    is_websocket = True

    def __init__(self, app: App, request: web.BaseRequest) -> None:
        self.app = app
        self.request = request
        self.stash: dict[str, Any] = {}
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> Listener:
        self._listeners[event].append(listener)
        return listener

    async def emit(self, event: str, *args: Any) -> bool:
        listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            result = listener(*args)
            if inspect.isawaitable(result):
                await result
        return bool(listeners)


Handler = Callable[[Any], Awaitable[Any]]


class App:
    """Reference application: one handler coroutine plus startup hooks.

    ``warmup()`` runs the hooks exactly once. Concurrent and repeated
    callers all await the same run.
    """

    def __init__(self, handler: Handler | None = None) -> None:
        self.handler: Handler = handler or _hello
        self.on_startup: list[Callable[[App], Awaitable[None]]] = []
        self._warmup: asyncio.Future[None] | None = None

    @property
    def warmed_up(self) -> bool:
        return self._warmup is not None and self._warmup.done() and not self._warmup.cancelled()

    async def warmup(self) -> None:
        if self._warmup is None:
            self._warmup = asyncio.ensure_future(self._run_startup())
        await asyncio.shield(self._warmup)

    async def _run_startup(self) -> None:
        for hook in self.on_startup:
            await hook(self)
        logger.debug("[app.warmup] %d startup hook(s) done", len(self.on_startup))

    def new_http_context(self, request: web.BaseRequest, response: web.StreamResponse) -> HTTPContext:
        return HTTPContext(self, request, response)

    def new_websocket_context(self, request: web.BaseRequest) -> WebSocketContext:
        return WebSocketContext(self, request)

    async def handle_request(self, ctx: HTTPContext | WebSocketContext) -> Any:
        return await self.handler(ctx)


async def _hello(ctx: HTTPContext | WebSocketContext) -> None:
    if ctx.is_websocket:
        ctx.on("connection", _echo)
        return
    await ctx.render(text="Hello Portico!\n")


async def _echo(ws: web.WebSocketResponse) -> None:
    async for msg in ws:
        if msg.type == WSMsgType.TEXT:
            await ws.send_str(msg.data)
        elif msg.type == WSMsgType.BINARY:
            await ws.send_bytes(msg.data)
