"""CLI tests through click's test runner."""

from __future__ import annotations

import json
import socket

import pytest
from click.testing import CliRunner

from shipline.main import cli

from tests.test_config_loader import VALID

SECRET_NAMES = ("DOCKER_USERNAME", "DOCKER_PASSWORD", "DEPLOY_HOST", "DEPLOY_USER", "DEPLOY_KEY")


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in SECRET_NAMES:
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "shipline.yml"
    path.write_text(VALID)
    return str(path)


def closed_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


class TestValidate:

    def test_json_lists_missing_secrets_by_name(self, config_path, monkeypatch):
        monkeypatch.setenv("DEPLOY_HOST", "203.0.113.7")
        result = CliRunner().invoke(cli, ["validate", "-c", config_path, "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["pipeline"] == "webapp"
        assert data["valid"] is True
        assert "DEPLOY_KEY" in data["missing_secrets"]
        assert "DEPLOY_HOST" not in data["missing_secrets"]
        assert "203.0.113.7" not in result.output

    def test_env_file_next_to_config(self, config_path, tmp_path):
        (tmp_path / ".env").write_text(
            "".join(f"{name}=value-{i}\n" for i, name in enumerate(SECRET_NAMES))
        )
        result = CliRunner().invoke(cli, ["validate", "-c", config_path, "--json"])
        assert json.loads(result.output)["missing_secrets"] == []

    def test_invalid_config_exits_1(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "shipline.yml"
        path.write_text("pipeline:\n  name: webapp\n")
        result = CliRunner().invoke(cli, ["validate", "-c", str(path), "--json"])
        assert result.exit_code == 1
        assert "error" in json.loads(result.output)


class TestRun:

    def test_other_branch_is_skipped(self, config_path):
        result = CliRunner().invoke(
            cli, ["run", "-c", config_path, "--branch", "feature/login", "--json"]
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"state": "skipped", "branch": "feature/login"}

    def test_unknown_event_rejected(self, config_path):
        result = CliRunner().invoke(
            cli, ["run", "-c", config_path, "--branch", "main", "--event", "tag"]
        )
        assert result.exit_code == 2


class TestWait:

    def test_closed_port_times_out(self):
        port = closed_port()
        result = CliRunner().invoke(
            cli,
            ["wait", "--host", "127.0.0.1", "--port", str(port),
             "--interval", "0", "--max-attempts", "2", "--json"],
        )
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["status"] == "timed_out"
        assert data["attempts"] == 2

    def test_open_port_is_ready(self):
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        try:
            port = server.getsockname()[1]
            result = CliRunner().invoke(
                cli, ["wait", "--host", "127.0.0.1", "--port", str(port), "--json"]
            )
        finally:
            server.close()
        assert result.exit_code == 0
        assert json.loads(result.output)["status"] == "ready"

    def test_zero_attempts_rejected(self):
        result = CliRunner().invoke(cli, ["wait", "--port", "5432", "--max-attempts", "0"])
        assert result.exit_code == 2
