"""Tests for pipeline run logging."""

import pytest
import structlog
from structlog.testing import capture_logs

from stratforge.pipeline import PipelineRun
from stratforge.utils.logging import RunLogger


class TestRunLogger:
    """Tests for RunLogger."""

    def test_successful_run(self):
        with capture_logs() as logs:
            with RunLogger(structlog.get_logger(), "strategy", asset="BTC") as run_log:
                run_log.record(PipelineRun(success=True, stages=[]))

        start, end = logs
        assert start["event"] == "Starting strategy pipeline"
        assert start["asset"] == "BTC"
        assert end["event"] == "Finished strategy pipeline"
        assert end["log_level"] == "info"
        assert end["success"] is True
        assert "failed_stage" not in end

    def test_halted_run_reports_failed_stage(self):
        run = PipelineRun(
            success=False,
            stages=[],
            failed_stage="architecture",
            error="Architecture JSON is invalid",
        )

        with capture_logs() as logs:
            with RunLogger(structlog.get_logger(), "contract") as run_log:
                assert run_log.record(run) is run

        end = logs[-1]
        assert end["event"] == "Halted contract pipeline"
        assert end["log_level"] == "warning"
        assert end["pipeline"] == "contract"
        assert end["success"] is False
        assert end["failed_stage"] == "architecture"
        assert end["error"] == "Architecture JSON is invalid"
        assert end["duration_ms"] >= 0

    def test_exception_is_logged_and_propagated(self):
        with capture_logs() as logs:
            with pytest.raises(RuntimeError):
                with RunLogger(structlog.get_logger(), "strategy"):
                    raise RuntimeError("boom")

        end = logs[-1]
        assert end["event"] == "Aborted strategy pipeline"
        assert end["log_level"] == "error"
        assert end["success"] is False
        assert end["error_type"] == "RuntimeError"

    def test_no_recorded_run(self):
        with capture_logs() as logs:
            with RunLogger(structlog.get_logger(), "strategy"):
                pass

        assert logs[-1]["event"] == "Finished strategy pipeline"
        assert "success" not in logs[-1]
