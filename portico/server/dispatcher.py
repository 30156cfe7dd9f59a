"""Per-request bridge between aiohttp and the application."""

from __future__ import annotations

import asyncio
import inspect
import logging
import sys
from typing import IO, Any

from aiohttp import hdrs, web
from aiohttp.web_protocol import RequestHandler

from .application import Application

logger = logging.getLogger(__name__)

_INBOUND = "-- Server <<< Client\n"
_OUTBOUND = "-- Server >>> Client\n"


class ConnectionDispatcher:
    """Low-level aiohttp handler turning requests into application contexts.

    Plain requests get a fresh ``StreamResponse`` which the application
    writes to; it is returned to aiohttp untouched. WebSocket upgrades are
    handed to the application first and the handshake only happens if that
    returns normally.
    """

    def __init__(self, app: Application) -> None:
        self.app = app

    async def __call__(self, request: web.BaseRequest) -> web.StreamResponse:
        if is_websocket_upgrade(request):
            return await self.handle_upgrade(request)
        return await self.handle_request(request)

    async def handle_request(self, request: web.BaseRequest) -> web.StreamResponse:
        response = web.StreamResponse()
        ctx = self.app.new_http_context(request, response)
        await self.app.handle_request(ctx)
        return response

    async def handle_upgrade(self, request: web.BaseRequest) -> web.StreamResponse:
        ctx = self.app.new_websocket_context(request)
        # A raise here means the application declined; aiohttp answers it.
        await self.app.handle_request(ctx)

        ws = web.WebSocketResponse()
        await ws.prepare(request)
        logger.debug("[dispatch.upgrade] %s %s upgraded", request.remote, request.path)
        result = ctx.emit("connection", ws)
        if inspect.isawaitable(result):
            await result
        return ws


def is_websocket_upgrade(request: web.BaseRequest) -> bool:
    return request.headers.get(hdrs.UPGRADE, "").lower() == "websocket"


# -- diagnostic mirroring --------------------------------------------------


class _MirroredTransport:
    """Transport proxy copying every outgoing chunk to a stream."""

    def __init__(self, transport: asyncio.Transport, stream: IO[str]) -> None:
        self._transport = transport
        self._stream = stream

    def write(self, data: bytes) -> None:
        _mirror(self._stream, _OUTBOUND, data)
        self._transport.write(data)

    def writelines(self, list_of_data: Any) -> None:
        chunks = [bytes(chunk) for chunk in list_of_data]
        _mirror(self._stream, _OUTBOUND, b"".join(chunks))
        self._transport.writelines(chunks)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._transport, name)


class _MirroredProtocol(asyncio.Protocol):
    """Protocol wrapper copying every incoming chunk to a stream."""

    def __init__(self, inner: RequestHandler, stream: IO[str]) -> None:
        self._inner = inner
        self._stream = stream

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._inner.connection_made(_MirroredTransport(transport, self._stream))  # type: ignore[arg-type]

    def data_received(self, data: bytes) -> None:
        _mirror(self._stream, _INBOUND, data)
        self._inner.data_received(data)

    def eof_received(self) -> bool | None:
        return self._inner.eof_received()

    def connection_lost(self, exc: Exception | None) -> None:
        self._inner.connection_lost(exc)

    def pause_writing(self) -> None:
        self._inner.pause_writing()

    def resume_writing(self) -> None:
        self._inner.resume_writing()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._inner, name)


class MirroringServer(web.Server):
    """``web.Server`` whose connections are mirrored to a diagnostic stream."""

    def __init__(self, handler: Any, *, stream: IO[str] | None = None, **kwargs: Any) -> None:
        super().__init__(handler, **kwargs)
        self._stream = stream

    def __call__(self) -> _MirroredProtocol:  # type: ignore[override]
        return _MirroredProtocol(super().__call__(), self._stream or sys.stderr)


def _mirror(stream: IO[str], label: str, data: bytes) -> None:
    stream.write(label + bytes(data).decode("utf-8", errors="replace"))
    stream.flush()
