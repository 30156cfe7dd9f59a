"""Tests for the file helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from portico.util.files import read_file, temp_dir


class TestReadFile:
    @pytest.mark.asyncio
    async def test_reads_whole_file(self, tmp_path: Path) -> None:
        path = tmp_path / "blob.bin"
        path.write_bytes(b"\x00" * 70000 + b"end")
        assert await read_file(path) == b"\x00" * 70000 + b"end"

    @pytest.mark.asyncio
    async def test_missing_file_raises_oserror(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await read_file(tmp_path / "missing")


class TestTempDir:
    def test_removed_after_block(self) -> None:
        with temp_dir() as path:
            (path / "f").write_text("x")
            assert path.is_dir()
        assert not path.exists()

    def test_removed_on_error(self) -> None:
        with pytest.raises(KeyError):
            with temp_dir() as path:
                raise KeyError("boom")
        assert not path.exists()
