"""Shared pytest fixtures and fakes for portico tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from aiohttp import web

DATA_DIR = Path(__file__).resolve().parent / "data"


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOTENV_PATH", str(tmp_path / ".env"))
    for key in (
        "PORTICO_LISTEN",
        "PORTICO_CLUSTER",
        "PORTICO_WORKERS",
        "PORTICO_QUIET",
        "PORTICO_SERVER_DEBUG",
        "PORTICO_SHUTDOWN_TIMEOUT",
        "PORTICO_WORKER_ID",
    ):
        monkeypatch.delenv(key, raising=False)

    from portico.config import cfg

    cfg.env.path = tmp_path / ".env"
    cfg.reload()


@pytest.fixture()
def cert_file() -> Path:
    return DATA_DIR / "cert.pem"


@pytest.fixture()
def key_file() -> Path:
    return DATA_DIR / "key.pem"


class FakeUpgradeContext:
    def __init__(self, request: web.BaseRequest) -> None:
        self.request = request
        self.events: list[tuple[str, tuple[Any, ...]]] = []
        self.is_websocket = True

    async def emit(self, event: str, *args: Any) -> None:
        self.events.append((event, args))
        ws = args[0]
        async for msg in ws:
            await ws.send_str(f"echo:{msg.data}")


class FakeHTTPContext:
    def __init__(self, request: web.BaseRequest, response: web.StreamResponse) -> None:
        self.request = request
        self.response = response
        self.is_websocket = False


class RecordingApp:
    """Implements the application capability set and records every call."""

    def __init__(self, *, reject_upgrades: bool = False) -> None:
        self.reject_upgrades = reject_upgrades
        self.warmups = 0
        self.contexts: list[Any] = []

    async def warmup(self) -> None:
        self.warmups += 1

    def new_http_context(self, request: web.BaseRequest, response: web.StreamResponse) -> FakeHTTPContext:
        return FakeHTTPContext(request, response)

    def new_websocket_context(self, request: web.BaseRequest) -> FakeUpgradeContext:
        return FakeUpgradeContext(request)

    async def handle_request(self, ctx: Any) -> None:
        self.contexts.append(ctx)
        if ctx.is_websocket:
            if self.reject_upgrades:
                raise web.HTTPForbidden(text="no websockets here")
            return
        body = f"{ctx.request.method} {ctx.request.path}".encode()
        ctx.response.content_type = "text/plain"
        ctx.response.content_length = len(body)
        await ctx.response.prepare(ctx.request)
        await ctx.response.write(body)
        await ctx.response.write_eof()


@pytest.fixture()
def recording_app() -> RecordingApp:
    return RecordingApp()


@pytest.fixture()
def make_app() -> type[RecordingApp]:
    return RecordingApp
