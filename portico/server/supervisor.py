"""Server supervisor -- owns the listeners of one process.

``Server.start()`` binds every configured listen location in order, or,
on a cluster primary, forks workers and binds nothing. ``Server.stop()``
closes all listeners concurrently and waits for in-flight requests to
drain.

Listen locations are bound one after the other without rollback: if the
third location fails, the first two stay bound and remain in
``Server.listeners`` until the caller runs ``stop()``. ``serve()`` does
exactly that before re-raising.
"""

from __future__ import annotations

import asyncio
import enum
import errno
import functools
import logging
import os
import signal
import socket
from dataclasses import dataclass
from typing import IO

from aiohttp import web
from yarl import URL

from ..config.settings import ServerConfig
from ..util.async_helpers import run_sync
from .access_log import QuietAccessLogger
from .application import Application
from .dispatcher import ConnectionDispatcher, MirroringServer
from .errors import BindFailure, ServerStateError, ShutdownError
from .listen import ListenSpec, parse_listen_url
from .protocol import Protocol, select_protocol
from .topology import ProcessTopology

logger = logging.getLogger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ServerState(enum.Enum):
    unstarted = "unstarted"
    starting = "starting"
    running = "running"
    stopping = "stopping"
    stopped = "stopped"


@dataclass(frozen=True)
class Address:
    host: str
    port: int
    family: socket.AddressFamily


@dataclass
class ActiveListener:
    spec: ListenSpec
    protocol: Protocol
    address: Address
    url: URL
    runner: web.ServerRunner
    site: web.BaseSite

    async def close(self) -> None:
        await self.runner.cleanup()
        logger.debug("[server.stop] closed %s", self.url)


class Server:

    def __init__(
        self,
        app: Application,
        config: ServerConfig | None = None,
        *,
        topology: ProcessTopology | None = None,
        diagnostic_stream: IO[str] | None = None,
    ) -> None:
        self.app = app
        self.config = config or ServerConfig()
        self.topology = topology or ProcessTopology(self.config.cluster, self.config.workers)
        self.urls: list[URL] = []
        self.listeners: list[ActiveListener] = []
        self._diagnostic_stream = diagnostic_stream
        self._state = ServerState.unstarted
        self._shutdown: asyncio.Event | None = None

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def reuse_port(self) -> bool:
        return self.config.cluster and hasattr(socket, "SO_REUSEPORT")

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        if self._state is not ServerState.unstarted:
            raise ServerStateError(f"start() called in state {self._state.value}")
        self._state = ServerState.starting

        if self.topology.should_fork():
            self.topology.fork(functools.partial(run_worker, self.app, self.config))
            self._state = ServerState.running
            return

        for location in self.config.listen:
            await self._create_listener(location)
        self._state = ServerState.running

    async def stop(self) -> None:
        listeners, self.listeners = self.listeners, []
        if not listeners:
            if self._state is not ServerState.unstarted:
                self._state = ServerState.stopped
            return

        self._state = ServerState.stopping
        results = await asyncio.gather(
            *(listener.close() for listener in listeners), return_exceptions=True,
        )
        self._state = ServerState.stopped

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            for err in errors:
                logger.error("[server.stop] listener close failed: %s", err, exc_info=err)
            raise ShutdownError(errors)

    async def serve(self) -> None:
        """Start, run until SIGINT/SIGTERM or ``request_shutdown()``, stop."""
        loop = asyncio.get_running_loop()
        self._shutdown = asyncio.Event()
        installed = self._install_signal_handlers(loop)
        try:
            await self.start()
            if self.topology.processes:
                await self._wait_for_workers()
            else:
                await self._shutdown.wait()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self.stop()

    def request_shutdown(self) -> None:
        if self._shutdown is not None:
            self._shutdown.set()

    # -- internals -------------------------------------------------------------

    async def _create_listener(self, location: str) -> ActiveListener:
        spec = parse_listen_url(location)
        await self.app.warmup()
        protocol = await select_protocol(spec)

        runner = web.ServerRunner(
            self._make_web_server(), shutdown_timeout=self.config.shutdown_timeout,
        )
        await runner.setup()
        try:
            site = self._make_site(runner, spec, protocol)
            await site.start()
            address = _resolve_address(runner)
        except OSError as exc:
            await runner.cleanup()
            raise BindFailure(location, exc) from exc
        except BaseException:
            await runner.cleanup()
            raise

        url = URL.build(scheme=protocol.name, host=address.host, port=address.port)
        listener = ActiveListener(spec, protocol, address, url, runner, site)
        self.listeners.append(listener)
        self.urls.append(url)

        logger.debug("[server.start] %s bound to %s", location, url)
        if not self.config.quiet:
            print(f"[{os.getpid()}] Web application available at {url}", flush=True)
        return listener

    def _make_web_server(self) -> web.Server:
        dispatcher = ConnectionDispatcher(self.app)
        if self.config.debug:
            return MirroringServer(
                dispatcher, stream=self._diagnostic_stream, access_log_class=QuietAccessLogger,
            )
        return web.Server(dispatcher, access_log_class=QuietAccessLogger)

    def _make_site(self, runner: web.ServerRunner, spec: ListenSpec, protocol: Protocol) -> web.BaseSite:
        target = spec.bind_target()
        if target == "port" and not spec.all_interfaces:
            return web.TCPSite(
                runner, spec.host, spec.port,
                ssl_context=protocol.ssl_context, reuse_port=self.reuse_port or None,
            )
        if target == "fd":
            sock = socket.socket(fileno=spec.fd)
        else:
            sock = _all_interfaces_socket(spec.port or 0, reuse_port=self.reuse_port)
        return web.SockSite(runner, sock, ssl_context=protocol.ssl_context)

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[signal.Signals]:
        installed = []
        for sig in _SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                continue
            installed.append(sig)
        return installed

    async def _wait_for_workers(self) -> None:
        assert self._shutdown is not None
        workers_done = asyncio.ensure_future(run_sync(self.topology.wait))
        shutdown = asyncio.ensure_future(self._shutdown.wait())
        try:
            await asyncio.wait({workers_done, shutdown}, return_when=asyncio.FIRST_COMPLETED)
            if not workers_done.done():
                logger.info("[server.serve] terminating %d worker(s)", len(self.topology.processes))
                self.topology.terminate()
            codes = await workers_done
            logger.info("[server.serve] workers exited: %s", codes)
        finally:
            shutdown.cancel()


def run_worker(app: Application, config: ServerConfig) -> None:
    """Entry point of a forked worker: serve until told to stop."""
    asyncio.run(Server(app, config).serve())


def _all_interfaces_socket(port: int, *, reuse_port: bool) -> socket.socket:
    if socket.has_dualstack_ipv6():
        return socket.create_server(
            ("::", port), family=socket.AF_INET6, dualstack_ipv6=True, reuse_port=reuse_port,
        )
    return socket.create_server(("0.0.0.0", port), reuse_port=reuse_port)


def _resolve_address(runner: web.BaseRunner) -> Address:
    addresses = runner.addresses
    if not addresses or not isinstance(addresses[0], tuple):
        raise OSError(errno.EAFNOSUPPORT, f"not an IP listener: {addresses!r}")
    sockname = addresses[0]
    family = socket.AF_INET6 if len(sockname) == 4 else socket.AF_INET
    return Address(host=sockname[0], port=sockname[1], family=family)
