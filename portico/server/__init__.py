"""Server module -- listeners, dispatch and process topology."""

from __future__ import annotations

from .application import App, Application, HTTPContext, UpgradeContext, WebSocketContext
from .dispatcher import ConnectionDispatcher, MirroringServer
from .errors import (
    BindFailure,
    CredentialLoadFailure,
    MalformedListenSpec,
    ServerError,
    ServerStateError,
    ShutdownError,
)
from .listen import ListenSpec, parse_listen_url
from .protocol import Protocol, select_protocol
from .supervisor import ActiveListener, Address, Server, ServerState, run_worker
from .topology import ProcessTopology

__all__ = [
    "ActiveListener",
    "Address",
    "App",
    "Application",
    "BindFailure",
    "ConnectionDispatcher",
    "CredentialLoadFailure",
    "HTTPContext",
    "ListenSpec",
    "MalformedListenSpec",
    "MirroringServer",
    "ProcessTopology",
    "Protocol",
    "Server",
    "ServerError",
    "ServerState",
    "ServerStateError",
    "ShutdownError",
    "UpgradeContext",
    "WebSocketContext",
    "parse_listen_url",
    "run_worker",
    "select_protocol",
]
