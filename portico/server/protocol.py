"""Transport selection -- plain TCP or TLS, with credential loading."""

from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass

from ..util.files import read_file, temp_dir
from .errors import CredentialLoadFailure
from .listen import ListenSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Protocol:
    name: str
    ssl_context: ssl.SSLContext | None = None

    @property
    def encrypted(self) -> bool:
        return self.ssl_context is not None


PLAIN = Protocol("http")


async def select_protocol(spec: ListenSpec) -> Protocol:
    """Return the transport for *spec*, loading TLS material if needed."""
    if not spec.encrypted:
        return PLAIN

    missing = [name for name in ("cert", "key") if not getattr(spec, name)]
    if missing:
        raise CredentialLoadFailure(
            spec.location, f"missing {' and '.join(missing)} query parameter",
        )

    cert = await _read_credential(spec, spec.cert)
    key = await _read_credential(spec, spec.key)
    context = build_ssl_context(spec, cert, key)
    logger.debug("[protocol.select] TLS material loaded for %s", spec.location)
    return Protocol("https", context)


def build_ssl_context(spec: ListenSpec, cert: bytes, key: bytes) -> ssl.SSLContext:
    """Create a server ``SSLContext`` from in-memory PEM material.

    ``SSLContext.load_cert_chain`` only accepts paths, so the material is
    staged in a private temporary directory that is gone before this
    function returns.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    with temp_dir() as tmp:
        cert_path = tmp / "cert.pem"
        key_path = tmp / "key.pem"
        cert_path.write_bytes(cert)
        key_path.write_bytes(key)
        key_path.chmod(0o600)
        try:
            context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
        except ssl.SSLError as exc:
            raise CredentialLoadFailure(spec.location, f"invalid PEM material: {exc}") from exc
    return context


async def _read_credential(spec: ListenSpec, path: str | None) -> bytes:
    try:
        return await read_file(path)
    except OSError as exc:
        raise CredentialLoadFailure(spec.location, f"{path}: {exc.strerror or exc}") from exc
