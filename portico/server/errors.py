"""Error taxonomy of the listener core."""

from __future__ import annotations


class ServerError(Exception):
    """Base class for every failure raised by ``portico.server``."""


class MalformedListenSpec(ServerError, ValueError):
    """A listen location is not a usable ``scheme://host:port`` URL."""

    def __init__(self, location: str, reason: str) -> None:
        super().__init__(f"Malformed listen location {location!r}: {reason}")
        self.location = location
        self.reason = reason


class CredentialLoadFailure(ServerError):
    """Certificate or key material for a TLS listener could not be loaded."""

    def __init__(self, location: str, reason: str) -> None:
        super().__init__(f"Cannot load TLS credentials for {location!r}: {reason}")
        self.location = location
        self.reason = reason


class BindFailure(ServerError):
    """The OS refused to bind or listen (port in use, permission denied...)."""

    def __init__(self, location: str, error: OSError) -> None:
        super().__init__(f"Cannot listen on {location!r}: {error}")
        self.location = location
        self.errno = error.errno


class ServerStateError(ServerError, RuntimeError):
    """An operation was called in a state that does not allow it."""


class ShutdownError(ServerError):
    """One or more listeners failed to close.

    Raised only after every listener has finished its close attempt.
    """

    def __init__(self, errors: list[BaseException]) -> None:
        super().__init__(
            f"{len(errors)} listener(s) failed to close: "
            + "; ".join(repr(err) for err in errors)
        )
        self.errors = errors
