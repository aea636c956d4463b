"""Tests for ImageBuilder and RegistryClient."""

from __future__ import annotations

import hashlib

import pytest

from shipline.exceptions import ExecutionError, NonZeroExit, TransportError
from shipline.models import RegistryCredentials, CredentialRef
from shipline.services.docker_service import ImageBuilder, RegistryClient
from shipline.services.secret_service import SecretStore

from tests.fakes import FakeRunner, make_image, make_registry_credentials

SECRETS = {"DOCKER_USERNAME": "octo", "DOCKER_PASSWORD": "s3cret-token"}


class TestImageBuilder:

    def test_tag_falls_back_to_dockerfile_digest(self, tmp_path):
        dockerfile = tmp_path / "Dockerfile"
        dockerfile.write_text("FROM python:3.12-slim\n")
        tag = ImageBuilder(FakeRunner(), "myuser/webapp").resolve_tag(tmp_path)
        assert tag == hashlib.sha256(dockerfile.read_bytes()).hexdigest()[:12]

    def test_no_git_and_no_dockerfile(self, tmp_path):
        with pytest.raises(ExecutionError) as exc:
            ImageBuilder(FakeRunner(), "myuser/webapp").resolve_tag(tmp_path)
        assert exc.value.step_name == "docker-build"

    def test_build_tags_version_and_latest(self, tmp_path, monkeypatch):
        runner = FakeRunner()
        builder = ImageBuilder(runner, "myuser/webapp", build_args={"B": "2", "A": "1"})
        monkeypatch.setattr(builder, "resolve_tag", lambda context: "abc1234")

        image = builder.build(tmp_path)

        assert image.versioned.reference == "myuser/webapp:abc1234"
        assert image.latest.reference == "myuser/webapp:latest"
        step, context = runner.steps[0]
        assert step.command == (
            "docker", "build",
            "-t", "myuser/webapp:abc1234",
            "-t", "myuser/webapp:latest",
            "--build-arg", "A=1",
            "--build-arg", "B=2",
            ".",
        )
        assert context.stage == "build"
        assert context.cwd == tmp_path

    def test_custom_dockerfile(self, tmp_path, monkeypatch):
        runner = FakeRunner()
        builder = ImageBuilder(runner, "myuser/webapp", dockerfile="docker/Dockerfile.prod")
        monkeypatch.setattr(builder, "resolve_tag", lambda context: "abc1234")
        builder.build(tmp_path)
        command = runner.steps[0][0].command
        assert command[command.index("-f") + 1] == "docker/Dockerfile.prod"

    def test_build_failure_raises(self, tmp_path, monkeypatch):
        builder = ImageBuilder(FakeRunner(outcomes={"docker-build": 1}), "myuser/webapp")
        monkeypatch.setattr(builder, "resolve_tag", lambda context: "abc1234")
        with pytest.raises(NonZeroExit) as exc:
            builder.build(tmp_path)
        assert exc.value.result.step == "docker-build"


class TestRegistryClient:

    def test_push_logs_in_then_pushes_both_tags(self):
        runner = FakeRunner()
        ack = RegistryClient(runner, SecretStore(environ=SECRETS)).push(
            make_image(), make_registry_credentials()
        )
        assert [s.name for s, _ in runner.steps] == [
            "docker-login",
            "docker-push:abc1234",
            "docker-push:latest",
        ]
        assert ack.references == ("myuser/webapp:abc1234", "myuser/webapp:latest")
        assert ack.registry == "docker.io"

    def test_password_not_on_command_line(self):
        runner = FakeRunner()
        RegistryClient(runner, SecretStore(environ=SECRETS)).login(make_registry_credentials())
        step, _ = runner.steps[0]
        assert "s3cret-token" not in step.display_command
        assert "--password-stdin" in step.display_command
        assert step.env["SHIPLINE_REGISTRY_PASSWORD"] == "s3cret-token"

    def test_private_registry(self):
        runner = FakeRunner()
        credentials = RegistryCredentials(
            username=CredentialRef("DOCKER_USERNAME"),
            password=CredentialRef("DOCKER_PASSWORD"),
            registry="ghcr.io",
        )
        client = RegistryClient(runner, SecretStore(environ=SECRETS))
        ack = client.push(make_image(), credentials)
        assert runner.steps[0][0].display_command.endswith("ghcr.io")
        assert ack.registry == "ghcr.io"

    def test_login_rejected(self):
        runner = FakeRunner(outcomes={"docker-login": 1})
        with pytest.raises(TransportError) as exc:
            RegistryClient(runner, SecretStore(environ=SECRETS)).push(
                make_image(), make_registry_credentials()
            )
        assert exc.value.result.step == "docker-login"
        assert len(runner.steps) == 1

    def test_push_failure_stops_remaining_tags(self):
        runner = FakeRunner(outcomes={"docker-push:abc1234": 1})
        with pytest.raises(TransportError) as exc:
            RegistryClient(runner, SecretStore(environ=SECRETS)).push(
                make_image(), make_registry_credentials()
            )
        assert "myuser/webapp:abc1234" in exc.value.message
        assert [s.name for s, _ in runner.steps][-1] == "docker-push:abc1234"
