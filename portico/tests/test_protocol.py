"""Tests for transport selection and TLS credential loading."""

from __future__ import annotations

import ssl
from pathlib import Path

import pytest

from portico.server.errors import CredentialLoadFailure
from portico.server.listen import parse_listen_url
from portico.server.protocol import PLAIN, select_protocol


class TestPlain:
    @pytest.mark.asyncio
    async def test_http_is_plain(self) -> None:
        proto = await select_protocol(parse_listen_url("http://*:3000"))
        assert proto is PLAIN
        assert proto.encrypted is False
        assert proto.ssl_context is None

    @pytest.mark.asyncio
    async def test_cert_params_ignored_for_http(self, tmp_path: Path) -> None:
        missing = tmp_path / "nope.pem"
        proto = await select_protocol(parse_listen_url(f"http://*:3000?cert={missing}&key={missing}"))
        assert proto.encrypted is False


class TestEncrypted:
    @pytest.mark.asyncio
    async def test_loads_cert_and_key(self, cert_file: Path, key_file: Path) -> None:
        spec = parse_listen_url(f"https://127.0.0.1:0?cert={cert_file}&key={key_file}")
        proto = await select_protocol(spec)
        assert proto.name == "https"
        assert isinstance(proto.ssl_context, ssl.SSLContext)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "?cert=/x.pem", "?key=/x.pem"])
    async def test_missing_parameter(self, query: str) -> None:
        with pytest.raises(CredentialLoadFailure) as exc_info:
            await select_protocol(parse_listen_url(f"https://*:8443{query}"))
        assert "missing" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_unreadable_cert(self, tmp_path: Path, key_file: Path) -> None:
        spec = parse_listen_url(f"https://*:8443?cert={tmp_path / 'absent.pem'}&key={key_file}")
        with pytest.raises(CredentialLoadFailure) as exc_info:
            await select_protocol(spec)
        assert isinstance(exc_info.value.__cause__, OSError)

    @pytest.mark.asyncio
    async def test_unreadable_key(self, tmp_path: Path, cert_file: Path) -> None:
        spec = parse_listen_url(f"https://*:8443?cert={cert_file}&key={tmp_path}")
        with pytest.raises(CredentialLoadFailure):
            await select_protocol(spec)

    @pytest.mark.asyncio
    async def test_garbage_pem(self, tmp_path: Path) -> None:
        bogus = tmp_path / "bogus.pem"
        bogus.write_text("not a certificate\n")
        spec = parse_listen_url(f"https://*:8443?cert={bogus}&key={bogus}")
        with pytest.raises(CredentialLoadFailure) as exc_info:
            await select_protocol(spec)
        assert "invalid PEM" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_staging_directory_is_removed(
        self, cert_file: Path, key_file: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        from portico.server import protocol

        seen: list[Path] = []
        real_temp_dir = protocol.temp_dir

        def _recording_temp_dir():
            cm = real_temp_dir()

            class _Wrapper:
                def __enter__(self) -> Path:
                    path = cm.__enter__()
                    seen.append(path)
                    return path

                def __exit__(self, *exc):
                    return cm.__exit__(*exc)

            return _Wrapper()

        monkeypatch.setattr(protocol, "temp_dir", _recording_temp_dir)
        await select_protocol(parse_listen_url(f"https://*:8443?cert={cert_file}&key={key_file}"))
        assert len(seen) == 1
        assert not seen[0].exists()
