"""Tests for the sandbox HTTP server."""

from __future__ import annotations

import urllib.request
from pathlib import Path

import pytest

from fixgate.validation.server import SandboxServer


class TestSandboxServer:
    def test_serves_files(self, tmp_path: Path):
        (tmp_path / "index.html").write_text("<title>Cultivation</title>")

        with SandboxServer(tmp_path) as server:
            with urllib.request.urlopen(server.url + "index.html", timeout=5) as response:
                body = response.read().decode()

        assert "Cultivation" in body

    def test_separate_servers_get_separate_ports(self, tmp_path: Path):
        with SandboxServer(tmp_path) as a, SandboxServer(tmp_path) as b:
            assert a.url != b.url

    def test_url_unavailable_after_stop(self, tmp_path: Path):
        server = SandboxServer(tmp_path).start()
        server.stop()
        with pytest.raises(RuntimeError):
            server.url
        server.stop()
