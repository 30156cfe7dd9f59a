"""Server settings -- reads from environment and ``.env`` file."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Any, ClassVar

from ..util.env_file import EnvFile

DEFAULT_LISTEN: tuple[str, ...] = ("http://*:3000",)

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def default_workers() -> int:
    """Number of processing units available to this process."""
    if hasattr(os, "sched_getaffinity"):
        return len(os.sched_getaffinity(0)) or 1
    return os.cpu_count() or 1


def _flag(raw: str) -> bool:
    return raw.strip().lower() in _TRUTHY


def _debug_from_env() -> bool:
    return bool(os.getenv(Settings.DEBUG_ENV))


@dataclass(frozen=True)
class ServerConfig:
    """Process-wide, read-only configuration of one ``Server``."""

    listen: tuple[str, ...] = DEFAULT_LISTEN
    cluster: bool = False
    workers: int = field(default_factory=default_workers)
    quiet: bool = False
    debug: bool = field(default_factory=_debug_from_env)
    shutdown_timeout: float | None = None

    def __post_init__(self) -> None:
        if isinstance(self.listen, str):
            object.__setattr__(self, "listen", (self.listen,))
        else:
            object.__setattr__(self, "listen", tuple(self.listen))
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")


class Settings:

    WORKER_ID_ENV: ClassVar[str] = "PORTICO_WORKER_ID"
    DEBUG_ENV: ClassVar[str] = "PORTICO_SERVER_DEBUG"

    def __init__(self) -> None:
        self.env = EnvFile(os.getenv("DOTENV_PATH") or ".env")
        self.reload()

    def reload(self) -> None:
        e = self._read

        raw_listen = e("PORTICO_LISTEN")
        self.listen: tuple[str, ...] = tuple(
            loc.strip() for loc in raw_listen.split(",") if loc.strip()
        ) if raw_listen else DEFAULT_LISTEN

        self.cluster: bool = _flag(e("PORTICO_CLUSTER"))
        self.workers: int = int(e("PORTICO_WORKERS") or default_workers())
        self.quiet: bool = _flag(e("PORTICO_QUIET"))
        self.debug: bool = bool(e(self.DEBUG_ENV))

        raw_timeout = e("PORTICO_SHUTDOWN_TIMEOUT")
        self.shutdown_timeout: float | None = float(raw_timeout) if raw_timeout else None

    @property
    def worker_id(self) -> str:
        return os.getenv(self.WORKER_ID_ENV, "")

    def server_config(self, **overrides: Any) -> ServerConfig:
        """Build a ``ServerConfig`` from the current settings.

        Keyword arguments whose value is ``None`` are ignored, so CLI
        options that were not given fall back to the environment.
        """
        config = ServerConfig(
            listen=self.listen,
            cluster=self.cluster,
            workers=self.workers,
            quiet=self.quiet,
            debug=self.debug,
            shutdown_timeout=self.shutdown_timeout,
        )
        given = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(config, **given) if given else config

    def _read(self, key: str) -> str:
        return self.env.read(key) or os.getenv(key, "")


cfg = Settings()
