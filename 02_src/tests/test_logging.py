"""Tests for structured logging."""

import json
import logging
import sys

import pytest

from agentflow.logging_config import JSONFormatter, setup_logging
from agentflow.models import ErrorHandling, WorkflowDefinition, WorkflowStep


def make_record(**extra):
    record = logging.LogRecord("agentflow.test", logging.WARNING, __file__, 10, "hello %s", ("x",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(make_record()))

        assert entry["level"] == "WARNING"
        assert entry["logger"] == "agentflow.test"
        assert entry["message"] == "hello x"
        assert "step_id" not in entry

    def test_context_fields(self):
        """Test that execution ids passed via extra are lifted."""
        entry = json.loads(JSONFormatter().format(make_record(step_id="s1", agent_id="a")))

        assert entry["step_id"] == "s1"
        assert entry["agent_id"] == "a"

    def test_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        entry = json.loads(JSONFormatter().format(record))

        assert "ValueError: boom" in entry["exception"]

    def test_unknown_console_format(self, tmp_path):
        with pytest.raises(ValueError):
            setup_logging("INFO", str(tmp_path / "app.log"), console_format="xml")


class TestSchedulerLogging:
    @pytest.mark.asyncio
    async def test_step_failure_carries_ids(self, scheduler, caplog):
        """Test that a failed step is logged with its execution and step ids."""
        workflow = WorkflowDefinition(
            id="wf",
            name="Missing",
            steps=[WorkflowStep(id="s1", agent_id="ghost", input="x")],
            error_handling=ErrorHandling.CONTINUE,
        )

        with caplog.at_level(logging.WARNING, logger="agentflow.workflow.scheduler"):
            result = await scheduler.execute_workflow(workflow)

        failed = [r for r in caplog.records if getattr(r, "step_id", None) == "s1"]
        assert failed
        assert failed[0].execution_id == result.context.id
        assert failed[0].agent_id == "ghost"
