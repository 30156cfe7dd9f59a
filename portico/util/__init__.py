"""Shared utilities."""

from .async_helpers import run_sync
from .env_file import EnvFile
from .files import read_file, temp_dir

__all__ = [
    "EnvFile",
    "read_file",
    "run_sync",
    "temp_dir",
]
