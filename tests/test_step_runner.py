"""Tests for StepRunner (real local processes)."""

from __future__ import annotations

import os

import pytest

from shipline.exceptions import ExecutionError, NonZeroExit, StepTimeout
from shipline.models import Step, WorkingContext
from shipline.services.step_runner import StepRunner

from tests.fakes import quiet_logger

BASE_ENV = {"PATH": os.environ.get("PATH", "/usr/bin:/bin")}


def ctx(stage="test", **kwargs):
    return WorkingContext(stage=stage, **kwargs)


class TestRun:

    def test_captures_stdout(self):
        runner = StepRunner(base_env=BASE_ENV)
        result = runner.run(Step(name="hello", command="echo hello"), ctx())
        assert result.exit_code == 0
        assert result.succeeded
        assert result.stdout.strip() == "hello"
        assert result.stage == "test"
        assert result.step == "hello"
        assert result.duration_seconds >= 0

    def test_captures_stderr(self):
        runner = StepRunner(base_env=BASE_ENV)
        result = runner.run(Step(name="warn", command="echo oops >&2"), ctx())
        assert result.stderr.strip() == "oops"

    def test_non_zero_exit_is_returned_not_raised(self):
        runner = StepRunner(base_env=BASE_ENV)
        result = runner.run(Step(name="fail", command="exit 3"), ctx())
        assert result.exit_code == 3
        assert not result.succeeded

    def test_check_raises_non_zero_exit(self):
        runner = StepRunner(base_env=BASE_ENV)
        with pytest.raises(NonZeroExit) as exc:
            runner.run_checked(Step(name="fail", command="exit 3"), ctx(stage="build"))
        assert exc.value.result.exit_code == 3
        assert "Stage: build" in str(exc.value)

    def test_expected_exit_code(self):
        runner = StepRunner(base_env=BASE_ENV)
        result = runner.run(Step(name="grep-miss", command="exit 1", expected_exit_code=1), ctx())
        assert result.succeeded

    def test_step_env_overrides_context_env(self):
        runner = StepRunner(base_env=BASE_ENV)
        step = Step(name="env", command='echo "$GREETING-$TARGET"', env={"GREETING": "step"})
        result = runner.run(step, ctx(env={"GREETING": "context", "TARGET": "world"}))
        assert result.stdout.strip() == "step-world"

    def test_base_env_is_merged(self):
        runner = StepRunner(base_env={**BASE_ENV, "FROM_BASE": "yes"})
        result = runner.run(Step(name="env", command='echo "$FROM_BASE"'), ctx())
        assert result.stdout.strip() == "yes"

    def test_argv_command(self):
        runner = StepRunner(base_env=BASE_ENV)
        result = runner.run(Step(name="argv", command=["echo", "a b"]), ctx())
        assert result.stdout.strip() == "a b"
        assert result.command == "echo 'a b'"

    def test_runs_in_context_cwd(self, tmp_path):
        (tmp_path / "marker.txt").write_text("here")
        runner = StepRunner(base_env=BASE_ENV)
        result = runner.run(Step(name="cat", command="cat marker.txt"), ctx(cwd=tmp_path))
        assert result.stdout == "here"

    def test_history_keeps_results(self):
        runner = StepRunner(base_env=BASE_ENV)
        runner.run(Step(name="one", command="true"), ctx())
        runner.run(Step(name="two", command="false"), ctx())
        assert [r.step for r in runner.history] == ["one", "two"]
        assert [r.succeeded for r in runner.history] == [True, False]


class TestStartFailures:

    def test_missing_binary_is_execution_error(self):
        runner = StepRunner(base_env=BASE_ENV)
        with pytest.raises(ExecutionError) as exc:
            runner.run(Step(name="nope", command=["shipline-no-such-binary-xyz"]), ctx())
        assert "nope" in exc.value.message
        assert exc.value.step_name == "nope"
        assert exc.value.result.exit_code == -1
        assert [r.step for r in runner.history] == ["nope"]
        assert not runner.history[0].succeeded

    def test_missing_cwd_is_execution_error(self, tmp_path):
        runner = StepRunner(base_env=BASE_ENV)
        with pytest.raises(ExecutionError) as exc:
            runner.run(Step(name="ls", command="ls"), ctx(cwd=tmp_path / "missing"))
        assert exc.value.step_name == "ls"

    def test_timeout(self):
        runner = StepRunner(base_env=BASE_ENV)
        with pytest.raises(StepTimeout) as exc:
            runner.run(Step(name="slow", command=["sleep", "5"], timeout=0.2), ctx())
        assert isinstance(exc.value, ExecutionError)
        assert exc.value.timeout == 0.2
        assert exc.value.step_name == "slow"
        assert runner.history[-1].step == "slow"
        assert runner.history[-1].exit_code == -1

    def test_timeout_keeps_partial_output(self):
        runner = StepRunner(base_env=BASE_ENV)
        step = Step(name="slow", command=["sh", "-c", "echo started; exec sleep 5"], timeout=0.5)
        with pytest.raises(StepTimeout) as exc:
            runner.run(step, ctx())
        assert "started" in exc.value.result.output

    def test_default_timeout_applies(self):
        runner = StepRunner(base_env=BASE_ENV, default_timeout=0.2)
        with pytest.raises(StepTimeout):
            runner.run(Step(name="slow", command=["sleep", "5"]), ctx())

    def test_invalid_default_timeout(self):
        with pytest.raises(ValueError):
            StepRunner(default_timeout=0)


class TestLogging:

    def test_output_goes_to_log(self, tmp_path):
        logger = quiet_logger(tmp_path)
        runner = StepRunner(logger=logger, base_env=BASE_ENV)
        runner.run(Step(name="hello", command="echo hello"), ctx())
        logger.close()
        text = logger.log_path.read_text()
        assert "Executing: echo hello" in text
        assert "[stdout] hello" in text
        assert "hello exited with 0" in text

    def test_secrets_are_redacted(self, tmp_path):
        logger = quiet_logger(tmp_path)
        logger.add_secret("s3cr3t-value")
        runner = StepRunner(logger=logger, base_env=BASE_ENV)
        result = runner.run(Step(name="leak", command="echo s3cr3t-value"), ctx())
        logger.close()
        text = logger.log_path.read_text()
        assert "s3cr3t-value" not in text
        assert "***" in text
        assert result.command == "echo ***"
