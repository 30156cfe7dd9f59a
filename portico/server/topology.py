"""Process topology -- forking primary or directly serving worker."""

from __future__ import annotations

import logging
import multiprocessing
import os
from collections.abc import Callable
from multiprocessing.process import BaseProcess

from ..config.settings import Settings, default_workers

logger = logging.getLogger(__name__)


def fork_supported() -> bool:
    return "fork" in multiprocessing.get_all_start_methods()


class ProcessTopology:
    """Decides whether this process forks workers or serves itself.

    Workers are marked with ``PORTICO_WORKER_ID`` so that, when they
    re-enter the same decision, they find they are not the primary. There
    is no load balancing, restart or health collection here; the OS
    distributes connections over the shared listen ports.
    """

    def __init__(self, cluster: bool = False, workers: int | None = None) -> None:
        self.cluster = cluster
        self.workers = workers or default_workers()
        self.processes: list[BaseProcess] = []

    @staticmethod
    def is_primary() -> bool:
        return Settings.WORKER_ID_ENV not in os.environ

    @staticmethod
    def worker_id() -> int | None:
        raw = os.environ.get(Settings.WORKER_ID_ENV)
        return int(raw) if raw else None

    def should_fork(self) -> bool:
        if not (self.cluster and self.is_primary()):
            return False
        if not fork_supported():
            logger.warning(
                "[topology.fork] cluster mode requested but this platform "
                "cannot fork -- serving from the current process",
            )
            return False
        return True

    def fork(self, target: Callable[[], object]) -> list[BaseProcess]:
        """Start ``self.workers`` processes, each running *target*."""
        ctx = multiprocessing.get_context("fork")
        for worker_id in range(self.workers):
            proc = ctx.Process(
                target=_worker_entry,
                args=(worker_id, target),
                name=f"portico-worker-{worker_id}",
            )
            proc.start()
            self.processes.append(proc)
            logger.info("[topology.fork] worker %d started (pid %s)", worker_id, proc.pid)
        return list(self.processes)

    def wait(self) -> list[int | None]:
        """Block until every forked worker has exited; return exit codes."""
        for proc in self.processes:
            proc.join()
        return [proc.exitcode for proc in self.processes]

    def terminate(self) -> None:
        """Send SIGTERM to every worker that is still alive."""
        for proc in self.processes:
            if proc.is_alive():
                proc.terminate()


def _worker_entry(worker_id: int, target: Callable[[], object]) -> None:
    os.environ[Settings.WORKER_ID_ENV] = str(worker_id)
    target()
