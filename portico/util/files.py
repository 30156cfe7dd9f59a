"""File helpers used by the server core.

Only the two operations the listener code needs: read a whole file into
memory, and a temporary directory whose lifetime is bound to a ``with``
block instead of a process-exit hook.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .async_helpers import run_sync

logger = logging.getLogger(__name__)

_TEMP_PREFIX = "portico-"


async def read_file(path: str | Path) -> bytes:
    """Read *path* fully without blocking the event loop.

    Any ``OSError`` propagates unchanged.
    """
    return await run_sync(Path(path).read_bytes)


@contextmanager
def temp_dir(prefix: str = _TEMP_PREFIX) -> Iterator[Path]:
    """Yield a fresh temporary directory, removed on every exit path."""
    path = Path(tempfile.mkdtemp(prefix=prefix))
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        logger.debug("[files.temp_dir] removed %s", path)
