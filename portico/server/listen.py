"""Listen location parsing.

A listen location is a URL such as ``http://*:3000``,
``http://127.0.0.1:8080``, ``http://*?fd=3`` or
``https://*:443?cert=/etc/tls/cert.pem&key=/etc/tls/key.pem``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from urllib.parse import parse_qs, urlsplit

from .errors import MalformedListenSpec

WILDCARD_HOST = "*"
SCHEMES = frozenset({"http", "https"})

BindKind = Literal["port", "fd", "ephemeral"]


@dataclass(frozen=True)
class ListenSpec:
    location: str
    scheme: str
    host: str | None
    port: int | None = None
    fd: int | None = None
    cert: str | None = None
    key: str | None = None

    @property
    def encrypted(self) -> bool:
        return self.scheme == "https"

    @property
    def all_interfaces(self) -> bool:
        return self.host is None

    def bind_target(self) -> BindKind:
        """Which of the three bind rules applies, in priority order."""
        if self.port is not None:
            return "port"
        if self.fd is not None:
            return "fd"
        return "ephemeral"


def parse_listen_url(location: str) -> ListenSpec:
    """Parse *location* into a ``ListenSpec``.

    Raises ``MalformedListenSpec`` for anything that is not a well-formed
    ``http``/``https`` URL with a network location.
    """
    try:
        parts = urlsplit(location.strip())
        port = parts.port
        hostname = parts.hostname
    except ValueError as exc:
        raise MalformedListenSpec(location, str(exc)) from exc

    scheme = parts.scheme.lower()
    if not scheme:
        raise MalformedListenSpec(location, "missing scheme")
    if scheme not in SCHEMES:
        raise MalformedListenSpec(location, f"unsupported scheme {scheme!r}")
    if not parts.netloc or not hostname:
        raise MalformedListenSpec(location, "missing host")

    query = parse_qs(parts.query)

    fd: int | None = None
    raw_fd = _first(query, "fd")
    if raw_fd is not None:
        try:
            fd = int(raw_fd)
        except ValueError:
            raise MalformedListenSpec(location, f"fd must be an integer, got {raw_fd!r}") from None
        if fd < 0:
            raise MalformedListenSpec(location, f"fd must not be negative, got {fd}")

    return ListenSpec(
        location=location,
        scheme=scheme,
        host=None if hostname == WILDCARD_HOST else hostname,
        port=port,
        fd=fd,
        cert=_first(query, "cert"),
        key=_first(query, "key"),
    )


def _first(query: dict[str, list[str]], name: str) -> str | None:
    values = query.get(name)
    return values[0] if values else None
