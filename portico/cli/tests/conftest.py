"""Shared pytest fixtures for portico.cli tests."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOTENV_PATH", str(tmp_path / ".env"))
    for key in ("PORTICO_LISTEN", "PORTICO_CLUSTER", "PORTICO_WORKERS", "PORTICO_QUIET"):
        monkeypatch.delenv(key, raising=False)

    from portico.config import cfg

    cfg.env.path = tmp_path / ".env"
    cfg.reload()
