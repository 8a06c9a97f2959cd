"""JSON log formatting and correlation IDs"""

import json
import logging

from checklist_rules.utils.idgen import generate_execution_id, generate_id, generate_workflow_id
from checklist_rules.utils.logger import JsonFormatter, correlation_scope, get_correlation_id


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("checklist_rules.test", logging.INFO, __file__, 1, "Ran %s", ("WF-1",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_message_and_known_extras():
    line = json.loads(JsonFormatter().format(_record(workflow_id="WF-1", attempt=2, unrelated="x")))

    assert line["message"] == "Ran WF-1"
    assert line["level"] == "INFO"
    assert line["workflow_id"] == "WF-1"
    assert line["attempt"] == 2
    assert "unrelated" not in line
    assert line["timestamp"].endswith("Z")


def test_correlation_scope():
    with correlation_scope("EXE-abc") as correlation_id:
        assert correlation_id == "EXE-abc"
        assert get_correlation_id() == "EXE-abc"
        assert json.loads(JsonFormatter().format(_record()))["correlation_id"] == "EXE-abc"

    assert get_correlation_id() is None
    assert "correlation_id" not in json.loads(JsonFormatter().format(_record()))


def test_generated_ids():
    assert generate_workflow_id().startswith("WF-")
    assert generate_workflow_id() != generate_workflow_id()
    assert generate_execution_id().startswith("EXE-")
    assert len(generate_id()) == 12
