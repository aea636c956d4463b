"""Tests for PipelineLogger file output and redaction."""

from __future__ import annotations

from tests.fakes import quiet_logger


class TestPipelineLogger:

    def test_log_path_layout(self, tmp_path):
        logger = quiet_logger(tmp_path, name="webapp", operation="run-push")
        logger.close()
        assert logger.log_path.parent.parent == tmp_path / "logs" / "webapp"
        assert logger.log_path.name.endswith("_run-push.log")

    def test_header_and_footer(self, tmp_path):
        logger = quiet_logger(tmp_path)
        logger.step("test")
        logger.close()
        text = logger.log_path.read_text()
        assert "Pipeline: webapp" in text
        assert "[INFO] Step: test" in text
        assert "Status: SUCCESS" in text

    def test_error_marks_status_failed(self, tmp_path):
        logger = quiet_logger(tmp_path)
        logger.log_error("Step 'tests' exited with 1 (expected 0)", context="Stage: test")
        logger.close()
        text = logger.log_path.read_text()
        assert "ERROR OCCURRED" in text
        assert "Context: Stage: test" in text
        assert "Status: FAILED" in text

    def test_output_is_prefixed_and_stripped_of_ansi(self, tmp_path):
        logger = quiet_logger(tmp_path)
        logger.log_output("\x1b[32mok\x1b[0m\nsecond", "stdout")
        logger.close()
        text = logger.log_path.read_text()
        assert "  [stdout] ok\n" in text
        assert "  [stdout] second\n" in text

    def test_secrets_never_written(self, tmp_path):
        logger = quiet_logger(tmp_path, verbose=True)
        logger.add_secret("hunter2-long")
        logger.log_command("docker login -p hunter2-long")
        logger.log_output("echo hunter2-long")
        logger.log_error("failed with hunter2-long")
        logger.close()
        assert "hunter2-long" not in logger.log_path.read_text()
        assert "hunter2-long" not in logger.console.file.getvalue()

    def test_multiline_key_masked_per_line(self, tmp_path):
        logger = quiet_logger(tmp_path)
        logger.add_secret("-----BEGIN KEY-----\nAAAABBBBCCCC\n-----END KEY-----")
        assert logger.redact("line: AAAABBBBCCCC") == "line: ***"
        logger.close()

    def test_short_secret_masked_only_as_whole_token(self, tmp_path):
        logger = quiet_logger(tmp_path)
        logger.add_secret("root")
        assert logger.redact("ssh root@203.0.113.7") == "ssh ***@203.0.113.7"
        assert logger.redact("mounted /dev/rootfs on chroot") == "mounted /dev/rootfs on chroot"
        logger.close()

    def test_context_manager_logs_exception(self, tmp_path):
        logger = quiet_logger(tmp_path)
        try:
            with logger:
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        text = logger.log_path.read_text()
        assert "boom" in text
        assert "Status: FAILED" in text
