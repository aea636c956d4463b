"""Tests for pipeline, deployment and result models."""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from shipline.exceptions import NonZeroExit
from shipline.models import (
    DeployResult,
    ExecutionResult,
    ImageRef,
    PipelineReport,
    PipelineState,
    Stage,
    Step,
    WorkingContext,
)


class TestImageRef:

    @pytest.mark.parametrize(
        "reference,repository,tag",
        [
            ("myuser/webapp:abc1234", "myuser/webapp", "abc1234"),
            ("myuser/webapp", "myuser/webapp", "latest"),
            ("registry:5000/webapp", "registry:5000/webapp", "latest"),
            ("registry:5000/webapp:v2", "registry:5000/webapp", "v2"),
        ],
    )
    def test_parse(self, reference, repository, tag):
        ref = ImageRef.parse(reference)
        assert (ref.repository, ref.tag) == (repository, tag)

    def test_invalid_tag(self):
        with pytest.raises(ValueError):
            ImageRef("myuser/webapp", "a:b")

    def test_str_is_reference(self):
        assert str(ImageRef("myuser/webapp", "v1")) == "myuser/webapp:v1"


class TestStep:

    def test_argv_list_becomes_tuple(self):
        step = Step(name="build", command=["docker", "build", "."])
        assert step.command == ("docker", "build", ".")
        assert not step.uses_shell
        assert step.display_command == "docker build ."

    def test_immutable(self):
        step = Step(name="tests", command="pytest", env={"A": "1"})
        with pytest.raises(dataclasses.FrozenInstanceError):
            step.name = "other"
        with pytest.raises(TypeError):
            step.env["A"] = "2"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"name": "", "command": "pytest"},
            {"name": "tests", "command": ""},
            {"name": "tests", "command": "pytest", "timeout": 0},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            Step(**kwargs)

    def test_duplicate_names_in_stage(self):
        with pytest.raises(ValueError):
            Stage("test", (Step("a", "true"), Step("a", "false")))


class TestWorkingContext:

    def test_env_precedence(self):
        context = WorkingContext(stage="test", env={"A": "context", "B": "context"})
        merged = context.merged_env({"A": "base", "C": "base"}, Step("s", "true", env={"B": "step"}))
        assert merged == {"A": "context", "B": "step", "C": "base"}

    def test_relative_step_cwd(self, tmp_path):
        context = WorkingContext(stage="test", cwd=tmp_path)
        assert context.resolve_cwd(Step("s", "true", cwd="sub")) == tmp_path / "sub"
        assert context.resolve_cwd(Step("s", "true", cwd="/srv")) == Path("/srv")
        assert context.resolve_cwd(Step("s", "true")) == tmp_path


class TestResults:

    def test_execution_result(self):
        result = ExecutionResult(stage="test", step="t", exit_code=3, expected_exit_code=3,
                                 stdout="out", stderr="err")
        assert result.succeeded
        assert result.output == "out\nerr"

    def test_deploy_result_completed_steps(self):
        substeps = [
            ExecutionResult(stage="deploy", step="pull", exit_code=0),
            ExecutionResult(stage="deploy", step="run", exit_code=125),
        ]
        result = DeployResult("webapp", ImageRef("myuser/webapp"), substeps, failed_step="run")
        assert result.completed_steps == ["pull"]
        assert result.requires_manual_verification

    def test_failed_report_to_dict(self):
        failing = ExecutionResult(stage="test", step="tests", exit_code=1, stdout="1 failed")
        report = PipelineReport(
            state=PipelineState.FAILED,
            history=[PipelineState.IDLE, PipelineState.TESTING, PipelineState.FAILED],
            results=[failing],
            failed_stage="test",
            failed_step="tests",
            error=NonZeroExit(failing),
        )
        data = report.to_dict()
        assert data["state"] == "failed"
        assert data["history"] == ["idle", "testing", "failed"]
        assert data["failed_step"] == "tests"
        assert data["output"] == "1 failed"
        assert "exited with 1" in data["error"]

    def test_terminal_states(self):
        terminal = {s for s in PipelineState if s.is_terminal}
        assert terminal == {PipelineState.SUCCEEDED, PipelineState.FAILED}
